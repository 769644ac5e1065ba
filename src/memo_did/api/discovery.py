from fastapi import APIRouter
from memo_did.config import settings

router = APIRouter(tags=["system"])


@router.get("/.well-known/memo-did.json")
def memo_did_discovery():
    return {
        "method": "memo",
        "endpoints": {
            "resolve": "/1.0/identifiers/{did}",
            "dereference": "/1.0/dereference?url={did_url}",
            "health": "/health",
        },
        "formats": {
            "did": "did:memo:<64 hex>",
            "did_url": "did:memo:<64 hex>#<masterKey|key-N>",
        },
        "ledger": {
            "backend": settings.LEDGER_BACKEND,
            "block_time_sec": settings.BLOCK_TIME,
            "confirm_max_attempts": settings.CONFIRM_MAX_ATTEMPTS,
        },
        "document": {"context": settings.DOCUMENT_CONTEXT},
        "server": {"port": settings.SERVER_PORT},
    }
