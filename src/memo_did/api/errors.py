from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import BaseModel, Field

from memo_did.errors import ParseError, ResolveError, VerificationMethodUnavailable


class ErrorBody(BaseModel):
    code: str = Field(..., description="Stable machine-readable code")
    message: str = Field(..., description="Human-readable explanation")
    status: int = Field(..., description="HTTP status code duplicated here for convenience")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Optional diagnostic details")

    @staticmethod
    def code_for_status(status: int) -> str:
        return {
            400: "bad_request",
            404: "not_found",
            405: "method_not_allowed",
            422: "unprocessable_entity",
            500: "internal_error",
            502: "ledger_unavailable",
            503: "unavailable",
        }.get(status, "error")


def _error(code: str, message: str, status: int, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body = ErrorBody(code=code, message=message, status=status, details=details)
    return JSONResponse({"error": body.model_dump()}, status_code=status)


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Error"
    details = exc.detail if isinstance(exc.detail, dict) else None
    return _error(ErrorBody.code_for_status(exc.status_code), message, exc.status_code, details)


def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Normalize FastAPI/Pydantic 422 into 400 with consistent shape
    return _error("bad_request", "Invalid request", 400, {"errors": exc.errors()})


def parse_error_handler(request: Request, exc: ParseError) -> JSONResponse:
    return _error("invalid_did", str(exc), 400)


def resolve_error_handler(request: Request, exc: ResolveError) -> JSONResponse:
    details = {"did": exc.did}
    if isinstance(exc, VerificationMethodUnavailable):
        return _error("not_found", str(exc), 404, details)
    if exc.cause is not None:
        details["cause"] = str(exc.cause)
    return _error("ledger_unavailable", str(exc), 502, details)
