import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if present
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _optional_float(name: str):
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else None


# --- HTTP Resolver ---
SERVER_HOST = os.getenv("MEMO_DID_SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("MEMO_DID_SERVER_PORT", 8080))
LOG_LEVEL = os.getenv("MEMO_DID_LOG_LEVEL", "INFO").upper()

# --- Ledger ---
LEDGER_BACKEND = os.getenv("MEMO_DID_LEDGER", "memory").lower()  # memory | web3
RPC_URL = os.getenv("MEMO_DID_RPC_URL", "http://127.0.0.1:8545")
ACCOUNT_DID_ADDRESS = os.getenv("MEMO_DID_ACCOUNT_DID_ADDRESS", "")
PROXY_ADDRESS = os.getenv("MEMO_DID_PROXY_ADDRESS", "")
PRIVATE_KEY = os.getenv("MEMO_DID_PRIVATE_KEY", "")

# --- Transactions ---
GAS_LIMIT = int(os.getenv("MEMO_DID_GAS_LIMIT", 300000))
GAS_PRICE = int(os.getenv("MEMO_DID_GAS_PRICE", 1000))  # wei
BLOCK_TIME = float(os.getenv("MEMO_DID_BLOCK_TIME", 5))  # seconds
CONFIRM_INITIAL_WAIT = float(os.getenv("MEMO_DID_CONFIRM_INITIAL_WAIT", 6))  # one block plus margin
CONFIRM_MAX_ATTEMPTS = int(os.getenv("MEMO_DID_CONFIRM_MAX_ATTEMPTS", 10))
CONFIRM_TIMEOUT = _optional_float("MEMO_DID_CONFIRM_TIMEOUT")  # seconds, unset = attempts only

# --- Resolution ---
RESOLVE_WORKERS = int(os.getenv("MEMO_DID_RESOLVE_WORKERS", 1))
DOCUMENT_CONTEXT = os.getenv("MEMO_DID_DOCUMENT_CONTEXT", "https://www.w3.org/ns/did/v1")
