# src/memo_did/errors.py
"""
Exception taxonomy for the memo DID client.

ParseError is local and never retried. ResolveError wraps a ledger read
failure or a ledger/client disagreement. MutationRejected and
ConfirmationUnresolved are the two non-success outcomes of a confirmed write
and must never be conflated: the first is a negative answer from the ledger,
the second means the answer is unknown.
"""

from __future__ import annotations

from typing import Optional


class MemoDIDError(Exception):
    """Base class for every error raised by this package."""


class ParseError(MemoDIDError, ValueError):
    """Malformed or unsupported DID / DID URL text."""


class LedgerError(MemoDIDError):
    """Transport or query failure reported by a ledger adapter."""


class ResolveError(MemoDIDError):
    def __init__(self, did: str, message: str, cause: Optional[BaseException] = None) -> None:
        self.did = did
        self.cause = cause
        text = f"resolve {did}: {message}"
        if cause is not None:
            text = f"{text}: {cause}"
        super().__init__(text)


class VerificationMethodUnavailable(ResolveError):
    """The addressed verification method is missing or deactivated."""


class MutationRejected(MemoDIDError):
    LOGIC_REJECTED = "logic rejected"
    EXCEEDED_GAS_LIMIT = "exceeded gas limit"

    def __init__(self, operation: str, tx_hash: str, reason: str, target: Optional[str] = None) -> None:
        self.operation = operation
        self.tx_hash = tx_hash
        self.reason = reason
        self.target = target
        where = f" on {target}" if target else ""
        super().__init__(f"{operation}{where}: transaction {tx_hash} failed: {reason}")


class ConfirmationUnresolved(MemoDIDError):
    def __init__(self, operation: str, tx_hash: str, attempts: int, target: Optional[str] = None) -> None:
        self.operation = operation
        self.tx_hash = tx_hash
        self.attempts = attempts
        self.target = target
        where = f" on {target}" if target else ""
        super().__init__(
            f"{operation}{where}: no receipt for transaction {tx_hash} after {attempts} attempts, outcome unknown"
        )
