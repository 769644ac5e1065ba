"""did:memo identity client: identifier grammar, document resolver and identity controller."""

from memo_did.confirmer import ConfirmationOutcome, TransactionConfirmer, TxState
from memo_did.controller import IdentityController, create_memo_did
from memo_did.errors import (
    ConfirmationUnresolved,
    LedgerError,
    MemoDIDError,
    MutationRejected,
    ParseError,
    ResolveError,
    VerificationMethodUnavailable,
)
from memo_did.models import (
    DIDDocument,
    MemoDID,
    MemoDIDUrl,
    Relationship,
    RelationshipKind,
    VerificationMethod,
    parse_memo_did,
    parse_memo_did_url,
)
from memo_did.resolver import Resolver

__all__ = [
    "ConfirmationOutcome",
    "TransactionConfirmer",
    "TxState",
    "IdentityController",
    "create_memo_did",
    "ConfirmationUnresolved",
    "LedgerError",
    "MemoDIDError",
    "MutationRejected",
    "ParseError",
    "ResolveError",
    "VerificationMethodUnavailable",
    "DIDDocument",
    "MemoDID",
    "MemoDIDUrl",
    "Relationship",
    "RelationshipKind",
    "VerificationMethod",
    "parse_memo_did",
    "parse_memo_did_url",
    "Resolver",
]
