# src/memo_did/main.py
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from memo_did.api.discovery import router as discovery_router
from memo_did.api.errors import (
    http_exception_handler,
    parse_error_handler,
    request_validation_exception_handler,
    resolve_error_handler,
)
from memo_did.api.health import router as health_router
from memo_did.api.resolver import router as resolver_router
from memo_did.config import settings
from memo_did.errors import ParseError, ResolveError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="did:memo resolver",
    description="Resolves did:memo identifiers by replaying the identity registry ledger.",
    version="0.1.0",
)

app.include_router(health_router)
app.include_router(discovery_router)
app.include_router(resolver_router)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(ParseError, parse_error_handler)
app.add_exception_handler(ResolveError, resolve_error_handler)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "memo_did.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.LOG_LEVEL == "DEBUG",
    )
