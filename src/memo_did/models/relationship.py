# src/memo_did/models/relationship.py
from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class RelationshipKind(IntEnum):
    AUTHENTICATION = 0
    ASSERTION_METHOD = 1
    CAPABILITY_DELEGATION = 2
    RECOVERY = 3

    @property
    def document_field(self) -> str:
        """Attribute of DIDDocument holding this relationship list."""
        return _DOCUMENT_FIELDS[self]

    @property
    def expires(self) -> bool:
        return self is RelationshipKind.CAPABILITY_DELEGATION


_DOCUMENT_FIELDS = {
    RelationshipKind.AUTHENTICATION: "authentication",
    RelationshipKind.ASSERTION_METHOD: "assertion_method",
    RelationshipKind.CAPABILITY_DELEGATION: "capability_delegation",
    RelationshipKind.RECOVERY: "recovery",
}


class Relationship(BaseModel):
    """
    A relationship kind plus its payload.

    Only capability delegation carries an expiration (unix seconds). Zero or
    past values are legal here; whether the entry is still live is decided at
    resolve time.
    """

    model_config = ConfigDict(frozen=True)

    kind: RelationshipKind
    expiration: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_ignored_expiration(cls, data: Any) -> Any:
        if isinstance(data, dict):
            kind = data.get("kind")
            if kind is not None and RelationshipKind(kind) is not RelationshipKind.CAPABILITY_DELEGATION:
                data = {**data, "expiration": None}
        return data

    @model_validator(mode="after")
    def _require_expiration(self) -> "Relationship":
        if self.kind.expires and self.expiration is None:
            raise ValueError("capability delegation requires an expiration")
        return self

    @classmethod
    def authentication(cls) -> "Relationship":
        return cls(kind=RelationshipKind.AUTHENTICATION)

    @classmethod
    def assertion_method(cls) -> "Relationship":
        return cls(kind=RelationshipKind.ASSERTION_METHOD)

    @classmethod
    def capability_delegation(cls, expiration: int) -> "Relationship":
        return cls(kind=RelationshipKind.CAPABILITY_DELEGATION, expiration=expiration)

    @classmethod
    def recovery(cls) -> "Relationship":
        return cls(kind=RelationshipKind.RECOVERY)
