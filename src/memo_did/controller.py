# src/memo_did/controller.py
"""
IdentityController: submits identity mutations as one DID and waits for them.

Every operation has the same shape: build typed arguments locally, submit
the matching ledger call as this controller's own DID, hand the transaction
hash to the confirmer. Whether the caller is allowed to act on the target is
the ledger's decision and shows up only as MutationRejected.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Tuple, Union

from web3 import Web3

from memo_did.confirmer import ConfirmationOutcome, TransactionConfirmer
from memo_did.errors import LedgerError, ParseError
from memo_did.models.document import DEFAULT_METHOD_TYPE, decode_hex
from memo_did.models.identifier import INVALID_INDEX, MemoDID, MemoDIDUrl
from memo_did.models.relationship import Relationship, RelationshipKind
from memo_did.ports.ledger import LedgerMutationPort

logger = logging.getLogger(__name__)

PublicKey = Union[bytes, str]

# port method names (add, remove) per relationship kind
RELATIONSHIP_CALLS: Dict[RelationshipKind, Tuple[str, str]] = {
    RelationshipKind.AUTHENTICATION: ("add_authentication", "remove_authentication"),
    RelationshipKind.ASSERTION_METHOD: ("add_assertion", "remove_assertion"),
    RelationshipKind.CAPABILITY_DELEGATION: ("add_delegation", "remove_delegation"),
    RelationshipKind.RECOVERY: ("add_recovery", "remove_recovery"),
}


def _uvarint(n: int) -> bytes:
    out = bytearray()
    while n >= 0x80:
        out.append((n & 0x7F) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


def create_memo_did(address: str, nonce: int) -> MemoDID:
    """Unregistered DID for `address`: hex(keccak256(address || uvarint(nonce)))."""
    digest = Web3.keccak(Web3.to_bytes(hexstr=address) + _uvarint(nonce))
    return MemoDID(identifier=bytes(digest).hex())


def to_key_bytes(public_key: PublicKey) -> bytes:
    if isinstance(public_key, (bytes, bytearray)):
        return bytes(public_key)
    try:
        return decode_hex(public_key)
    except ValueError as e:
        raise ValueError(f"public key is not hex: {public_key!r}") from e


def method_slot(did_url: MemoDIDUrl) -> int:
    index = did_url.method_index
    if index == INVALID_INDEX:
        raise ParseError(f"{did_url} does not address a verification method slot")
    return index


class IdentityController:
    def __init__(self, did: MemoDID, port: LedgerMutationPort, confirmer: TransactionConfirmer) -> None:
        self._did = did
        self._port = port
        self._confirmer = confirmer

    @classmethod
    def create(cls, port: LedgerMutationPort, confirmer: TransactionConfirmer) -> "IdentityController":
        """Controller for a fresh, not yet registered DID derived from the port's account."""
        did = create_memo_did(port.address, port.pending_nonce())
        return cls(did, port, confirmer)

    @property
    def did(self) -> MemoDID:
        return self._did

    # ---------- create ----------

    def register_did(self, public_key: PublicKey, method_type: str = DEFAULT_METHOD_TYPE) -> ConfirmationOutcome:
        """Register this controller's DID with `public_key` as its master key (slot 0)."""
        return self._submit(
            "register_did",
            str(self._did),
            self._port.create_did,
            self._did.identifier,
            method_type,
            to_key_bytes(public_key),
        )

    # ---------- update ----------

    def add_controller(self, did: MemoDID, controller: MemoDID) -> ConfirmationOutcome:
        """Grant `controller` full control of `did`."""
        return self._submit(
            "add_controller",
            str(did),
            self._port.add_controller,
            did.identifier,
            self._did.identifier,
            controller.identifier,
        )

    def deactivate_controller(self, did: MemoDID, controller: MemoDID) -> ConfirmationOutcome:
        return self._submit(
            "remove_controller",
            str(did),
            self._port.remove_controller,
            did.identifier,
            self._did.identifier,
            controller.identifier,
        )

    def add_verification_method(
        self,
        did: MemoDID,
        method_type: str,
        controller: MemoDID,
        public_key: PublicKey,
    ) -> ConfirmationOutcome:
        return self._submit(
            "add_verification_method",
            str(did),
            self._port.add_verification_method,
            did.identifier,
            self._did.identifier,
            method_type,
            controller.identifier,
            to_key_bytes(public_key),
        )

    def update_verification_method(
        self,
        did_url: MemoDIDUrl,
        method_type: str,
        public_key: PublicKey,
    ) -> ConfirmationOutcome:
        return self._submit(
            "update_verification_method",
            str(did_url),
            self._port.update_verification_method,
            did_url.identifier,
            self._did.identifier,
            method_slot(did_url),
            method_type,
            to_key_bytes(public_key),
        )

    def deactivate_verification_method(self, did_url: MemoDIDUrl) -> ConfirmationOutcome:
        return self._submit(
            "deactivate_verification_method",
            str(did_url),
            self._port.deactivate_verification_method,
            did_url.identifier,
            self._did.identifier,
            method_slot(did_url),
        )

    def add_relationship(self, did: MemoDID, relationship: Relationship, did_url: MemoDIDUrl) -> ConfirmationOutcome:
        """
        Authorize the verification method at `did_url` for `relationship` on `did`.

        Capability delegation forwards its expiration as given; an expiration
        in the past is accepted and simply never shows up in resolution.
        """
        method_slot(did_url)
        add, _ = RELATIONSHIP_CALLS[relationship.kind]
        args: Tuple = (did.identifier, self._did.identifier, str(did_url))
        if relationship.kind.expires:
            args += (relationship.expiration,)
        return self._submit(
            f"add_relationship[{relationship.kind.name.lower()}]",
            str(did),
            getattr(self._port, add),
            *args,
        )

    def deactivate_relationship(self, did: MemoDID, kind: RelationshipKind, did_url: MemoDIDUrl) -> ConfirmationOutcome:
        method_slot(did_url)
        _, remove = RELATIONSHIP_CALLS[RelationshipKind(kind)]
        return self._submit(
            f"deactivate_relationship[{RelationshipKind(kind).name.lower()}]",
            str(did),
            getattr(self._port, remove),
            did.identifier,
            self._did.identifier,
            str(did_url),
        )

    # ---------- delete ----------

    def deactivate_did(self, did: MemoDID) -> ConfirmationOutcome:
        """Deactivate `did` permanently; it resolves to the empty document afterwards."""
        return self._submit(
            "deactivate_did",
            str(did),
            self._port.deactivate_did,
            did.identifier,
            self._did.identifier,
        )

    # ---------- internals ----------

    def _submit(self, operation: str, target: str, call: Callable[..., str], *args) -> ConfirmationOutcome:
        try:
            tx_hash = call(*args)
        except LedgerError as e:
            raise LedgerError(f"{operation} on {target}: submit failed: {e}") from e
        logger.info("%s on %s submitted by %s as %s", operation, target, self._did, tx_hash)
        return self._confirmer.confirm(tx_hash, operation, target)
