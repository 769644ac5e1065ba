from .identifier import (
    INVALID_INDEX,
    ZERO_DID,
    MemoDID,
    MemoDIDUrl,
    parse_memo_did,
    parse_memo_did_url,
    slot_index,
)
from .document import DEFAULT_CONTEXT, DEFAULT_METHOD_TYPE, DIDDocument, VerificationMethod
from .relationship import Relationship, RelationshipKind
from .ledger import ControllerAdded, RelationshipAdded, TransactionReceipt, VerificationMethodRecord

__all__ = [
    "INVALID_INDEX",
    "ZERO_DID",
    "MemoDID",
    "MemoDIDUrl",
    "parse_memo_did",
    "parse_memo_did_url",
    "slot_index",
    "DEFAULT_CONTEXT",
    "DEFAULT_METHOD_TYPE",
    "DIDDocument",
    "VerificationMethod",
    "Relationship",
    "RelationshipKind",
    "ControllerAdded",
    "RelationshipAdded",
    "TransactionReceipt",
    "VerificationMethodRecord",
]
