# src/memo_did/ports/ledger.py
"""
Ledger ports: the hexagonal interfaces the core talks to.

LedgerQueryPort: point-in-time reads and "added" event history of the
identity registry. LedgerMutationPort: state-changing calls submitted as one
signing account, each returning a transaction hash, plus receipt lookup.

Identifiers and controllers are bare 64-hex strings; relationship
references are passed as canonical DID URL text.
Any method may raise memo_did.errors.LedgerError on transport failure.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from memo_did.models.ledger import (
    ControllerAdded,
    RelationshipAdded,
    TransactionReceipt,
    VerificationMethodRecord,
)
from memo_did.models.relationship import RelationshipKind


class LedgerQueryPort(Protocol):
    def is_deactivated(self, did: str) -> bool:
        ...

    def verification_method_count(self, did: str) -> int:
        ...

    def verification_method_at(self, did: str, index: int) -> Optional[VerificationMethodRecord]:
        """Record stored at `index`, or None when the slot does not exist."""
        ...

    def is_controller(self, did: str, controller: str) -> bool:
        ...

    def controller_events(self, did: str) -> Iterable[ControllerAdded]:
        ...

    def relationship_events(self, did: str, kind: RelationshipKind) -> Iterable[RelationshipAdded]:
        ...

    def in_authentication(self, did: str, did_url: str) -> bool:
        ...

    def in_assertion(self, did: str, did_url: str) -> bool:
        ...

    def delegation_expiry(self, did: str, did_url: str) -> int:
        """Unix expiry of the delegation, 0 when absent."""
        ...

    def in_recovery(self, did: str, did_url: str) -> bool:
        ...


class LedgerMutationPort(Protocol):
    @property
    def address(self) -> str:
        """Checksummed account address transactions are signed with."""
        ...

    def pending_nonce(self) -> int:
        ...

    def create_did(self, did: str, method_type: str, public_key: bytes) -> str:
        ...

    def add_controller(self, did: str, caller: str, controller: str) -> str:
        ...

    def remove_controller(self, did: str, caller: str, controller: str) -> str:
        ...

    def add_verification_method(
        self,
        did: str,
        caller: str,
        method_type: str,
        controller: str,
        public_key: bytes,
    ) -> str:
        ...

    def update_verification_method(
        self,
        did: str,
        caller: str,
        index: int,
        method_type: str,
        public_key: bytes,
    ) -> str:
        ...

    def deactivate_verification_method(self, did: str, caller: str, index: int) -> str:
        ...

    def add_authentication(self, did: str, caller: str, did_url: str) -> str:
        ...

    def remove_authentication(self, did: str, caller: str, did_url: str) -> str:
        ...

    def add_assertion(self, did: str, caller: str, did_url: str) -> str:
        ...

    def remove_assertion(self, did: str, caller: str, did_url: str) -> str:
        ...

    def add_delegation(self, did: str, caller: str, did_url: str, expiration: int) -> str:
        ...

    def remove_delegation(self, did: str, caller: str, did_url: str) -> str:
        ...

    def add_recovery(self, did: str, caller: str, did_url: str) -> str:
        ...

    def remove_recovery(self, did: str, caller: str, did_url: str) -> str:
        ...

    def deactivate_did(self, did: str, caller: str) -> str:
        ...

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        """Receipt of a mined transaction, None while it is not packaged."""
        ...
