# src/memo_did/models/document.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    field_serializer,
    field_validator,
    model_serializer,
)

from memo_did.models.identifier import ZERO_DID, MemoDID, MemoDIDUrl, parse_memo_did
from memo_did.models.ledger import VerificationMethodRecord

DEFAULT_CONTEXT: str = "https://www.w3.org/ns/did/v1"
DEFAULT_METHOD_TYPE: str = "EcdsaSecp256k1VerificationKey2019"

# omitted from the wire form when empty; verifycationMethod is always present
_OMIT_IF_EMPTY = ("controller", "authentication", "assertion_method", "capability_delegation", "recovery")


def decode_hex(value: str) -> bytes:
    text = value.strip()
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    return bytes.fromhex(text)


def encode_hex(data: bytes) -> str:
    return "0x" + data.hex()


class VerificationMethod(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: MemoDIDUrl
    controller: MemoDID
    type: str
    public_key: bytes = Field(..., alias="publicKeyHex")

    @field_validator("public_key", mode="before")
    @classmethod
    def _decode_key(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return decode_hex(v)
            except ValueError as e:
                raise ValueError(f"publicKeyHex is not hex: {e}") from e
        return v

    @field_serializer("public_key")
    def _encode_key(self, v: bytes) -> str:
        return encode_hex(v)

    @classmethod
    def from_record(cls, did: MemoDID, index: int, record: VerificationMethodRecord) -> "VerificationMethod":
        """Map the ledger record stored at slot `index` of `did`."""
        if record.controller.startswith("did:"):
            controller = parse_memo_did(record.controller)
        elif record.controller:
            controller = parse_memo_did(f"did:memo:{record.controller}")
        else:
            controller = ZERO_DID
        return cls(
            id=did.did_url(index),
            controller=controller,
            type=record.method_type,
            public_key=record.public_key,
        )


class DIDDocument(BaseModel):
    """
    Snapshot of a did:memo document as reconstructed from the ledger.

    A deactivated identity resolves to the empty document: no context, no id
    and every list empty.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    context: Optional[str] = Field(default=None, alias="@context")
    id: Optional[MemoDID] = None
    controller: List[MemoDID] = Field(default_factory=list)
    verification_method: List[VerificationMethod] = Field(default_factory=list, alias="verifycationMethod")
    authentication: List[MemoDIDUrl] = Field(default_factory=list)
    assertion_method: List[MemoDIDUrl] = Field(default_factory=list, alias="assertionMethod")
    capability_delegation: List[MemoDIDUrl] = Field(default_factory=list, alias="capabilityDelegation")
    recovery: List[MemoDIDUrl] = Field(default_factory=list)

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler: SerializerFunctionWrapHandler, info: SerializationInfo) -> Dict[str, Any]:
        data = handler(self)
        fields = type(self).model_fields
        for name in ("context", "id") + _OMIT_IF_EMPTY:
            key = fields[name].alias if info.by_alias and fields[name].alias else name
            if key in data and not data[key]:
                del data[key]
        return data

    @property
    def is_deactivated(self) -> bool:
        return self.id is None

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with the registry's field names."""
        return self.model_dump(mode="json", by_alias=True)
