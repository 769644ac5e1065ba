# src/memo_did/infra/memory_ledger.py
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Set

from web3 import Web3

from memo_did.errors import ParseError
from memo_did.models.identifier import parse_memo_did_url
from memo_did.models.ledger import (
    STATUS_FAILED,
    STATUS_SUCCESS,
    ControllerAdded,
    RelationshipAdded,
    TransactionReceipt,
    VerificationMethodRecord,
)
from memo_did.models.relationship import RelationshipKind

logger = logging.getLogger(__name__)

GAS_PER_CALL = 60000


class _Revert(Exception):
    pass


class _Account:
    def __init__(self, owner: str) -> None:
        self.owner = owner
        self.deactivated = False
        # append-only; a deactivated slot stays in place
        self.methods: List[VerificationMethodRecord] = []
        self.controllers: Set[str] = set()
        self.authentication: Set[str] = set()
        self.assertion: Set[str] = set()
        self.delegation: Dict[str, int] = {}
        self.recovery: Set[str] = set()


class MemoryLedger:
    """
    Dev-only in-memory identity registry (ephemeral).
    NOT a production ledger. Set MEMO_DID_LEDGER=web3 to talk to a chain.

    Implements LedgerQueryPort directly; `signer(address)` returns a
    LedgerMutationPort bound to one account. Every submitted call is mined
    immediately into its own block; `receipt_delay` hides each receipt for
    that many polls.
    """

    def __init__(self, receipt_delay: int = 0) -> None:
        self._receipt_delay = receipt_delay
        self._lock = threading.RLock()
        self._accounts: Dict[str, _Account] = {}
        self._controller_events: List[ControllerAdded] = []
        self._relationship_events: Dict[RelationshipKind, List[RelationshipAdded]] = {k: [] for k in RelationshipKind}
        self._receipts: Dict[str, TransactionReceipt] = {}
        self._hidden_polls: Dict[str, int] = {}
        self._nonces: Dict[str, int] = {}
        self._block = 0

    def signer(self, address: str) -> "MemorySigner":
        return MemorySigner(self, Web3.to_checksum_address(address))

    # --- LedgerQueryPort ---
    def is_deactivated(self, did: str) -> bool:
        with self._lock:
            acct = self._accounts.get(did)
            return acct is not None and acct.deactivated

    def verification_method_count(self, did: str) -> int:
        with self._lock:
            acct = self._accounts.get(did)
            return len(acct.methods) if acct else 0

    def verification_method_at(self, did: str, index: int) -> Optional[VerificationMethodRecord]:
        with self._lock:
            acct = self._accounts.get(did)
            if acct is None or not 0 <= index < len(acct.methods):
                return None
            return acct.methods[index]

    def is_controller(self, did: str, controller: str) -> bool:
        with self._lock:
            acct = self._accounts.get(did)
            return acct is not None and controller in acct.controllers

    def controller_events(self, did: str) -> List[ControllerAdded]:
        with self._lock:
            return [e for e in self._controller_events if e.did == did]

    def relationship_events(self, did: str, kind: RelationshipKind) -> List[RelationshipAdded]:
        with self._lock:
            return [e for e in self._relationship_events[kind] if e.did == did]

    def in_authentication(self, did: str, did_url: str) -> bool:
        with self._lock:
            acct = self._accounts.get(did)
            return acct is not None and did_url in acct.authentication

    def in_assertion(self, did: str, did_url: str) -> bool:
        with self._lock:
            acct = self._accounts.get(did)
            return acct is not None and did_url in acct.assertion

    def delegation_expiry(self, did: str, did_url: str) -> int:
        with self._lock:
            acct = self._accounts.get(did)
            return acct.delegation.get(did_url, 0) if acct else 0

    def in_recovery(self, did: str, did_url: str) -> bool:
        with self._lock:
            acct = self._accounts.get(did)
            return acct is not None and did_url in acct.recovery

    # --- transactions ---
    def pending_nonce(self, address: str) -> int:
        with self._lock:
            return self._nonces.get(address, 0)

    def submit(self, sender: str, name: str, *args) -> str:
        """Mine `name` sent by `sender`; a revert becomes a status-0 receipt."""
        with self._lock:
            nonce = self._nonces.get(sender, 0)
            self._nonces[sender] = nonce + 1
            self._block += 1
            tx_hash = "0x" + bytes(Web3.keccak(text=f"{sender}:{nonce}")).hex()
            status = STATUS_SUCCESS
            try:
                getattr(self, f"_tx_{name}")(sender, *args)
            except _Revert as e:
                logger.debug("%s reverted: %s", name, e)
                status = STATUS_FAILED
            # one transaction per block: cumulative gas equals own gas
            self._receipts[tx_hash] = TransactionReceipt(
                tx_hash=tx_hash,
                status=status,
                gas_used=GAS_PER_CALL,
                cumulative_gas_used=GAS_PER_CALL,
                block_number=self._block,
            )
            self._hidden_polls[tx_hash] = self._receipt_delay
            return tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        with self._lock:
            if tx_hash not in self._receipts:
                return None
            if self._hidden_polls[tx_hash] > 0:
                self._hidden_polls[tx_hash] -= 1
                return None
            return self._receipts[tx_hash]

    # --- contract logic ---
    def _account(self, did: str) -> _Account:
        acct = self._accounts.get(did)
        if acct is None:
            raise _Revert(f"{did} is not registered")
        if acct.deactivated:
            raise _Revert(f"{did} is deactivated")
        return acct

    def _authorize(self, sender: str, did: str, caller: str) -> _Account:
        acct = self._account(did)
        caller_acct = self._account(caller)
        if caller_acct.owner != sender:
            raise _Revert(f"{sender} does not own {caller}")
        if caller != did and caller not in acct.controllers:
            raise _Revert(f"{caller} is not a controller of {did}")
        return acct

    def _method_ref(self, did_url: str) -> str:
        try:
            url = parse_memo_did_url(did_url)
        except ParseError as e:
            raise _Revert(str(e)) from e
        target = self._accounts.get(url.identifier)
        if target is None or not 0 <= url.method_index < len(target.methods):
            raise _Revert(f"{did_url} does not exist")
        return str(url)

    def _tx_create_did(self, sender: str, did: str, method_type: str, public_key: bytes) -> None:
        if did in self._accounts:
            raise _Revert(f"{did} already registered")
        acct = _Account(owner=sender)
        # the master key carries no controller; it resolves to the all-zero DID
        acct.methods.append(VerificationMethodRecord(method_type=method_type, public_key=public_key))
        self._accounts[did] = acct

    def _tx_add_controller(self, sender: str, did: str, caller: str, controller: str) -> None:
        acct = self._authorize(sender, did, caller)
        if controller in acct.controllers:
            raise _Revert(f"{controller} already controls {did}")
        acct.controllers.add(controller)
        self._controller_events.append(ControllerAdded(did=did, controller=controller))

    def _tx_remove_controller(self, sender: str, did: str, caller: str, controller: str) -> None:
        acct = self._authorize(sender, did, caller)
        if controller not in acct.controllers:
            raise _Revert(f"{controller} does not control {did}")
        acct.controllers.discard(controller)

    def _tx_add_verification_method(
        self, sender: str, did: str, caller: str, method_type: str, controller: str, public_key: bytes
    ) -> None:
        acct = self._authorize(sender, did, caller)
        acct.methods.append(
            VerificationMethodRecord(method_type=method_type, controller=controller, public_key=public_key)
        )

    def _tx_update_verification_method(
        self, sender: str, did: str, caller: str, index: int, method_type: str, public_key: bytes
    ) -> None:
        acct = self._authorize(sender, did, caller)
        if not 0 <= index < len(acct.methods) or acct.methods[index].deactivated:
            raise _Revert(f"no active verification method at {index}")
        acct.methods[index] = acct.methods[index].model_copy(
            update={"method_type": method_type, "public_key": public_key}
        )

    def _tx_deactivate_verification_method(self, sender: str, did: str, caller: str, index: int) -> None:
        acct = self._authorize(sender, did, caller)
        if not 0 <= index < len(acct.methods):
            raise _Revert(f"no verification method at {index}")
        acct.methods[index] = acct.methods[index].model_copy(update={"deactivated": True})

    def _add_to(self, kind: RelationshipKind, members, did: str, did_url: str) -> str:
        ref = self._method_ref(did_url)
        if ref in members:
            raise _Revert(f"{ref} already in {kind.name.lower()}")
        self._relationship_events[kind].append(RelationshipAdded(did=did, ref=ref))
        return ref

    def _tx_add_authentication(self, sender: str, did: str, caller: str, did_url: str) -> None:
        acct = self._authorize(sender, did, caller)
        acct.authentication.add(self._add_to(RelationshipKind.AUTHENTICATION, acct.authentication, did, did_url))

    def _tx_add_assertion(self, sender: str, did: str, caller: str, did_url: str) -> None:
        acct = self._authorize(sender, did, caller)
        acct.assertion.add(self._add_to(RelationshipKind.ASSERTION_METHOD, acct.assertion, did, did_url))

    def _tx_add_delegation(self, sender: str, did: str, caller: str, did_url: str, expiration: int) -> None:
        acct = self._authorize(sender, did, caller)
        ref = self._add_to(RelationshipKind.CAPABILITY_DELEGATION, acct.delegation, did, did_url)
        acct.delegation[ref] = expiration

    def _tx_add_recovery(self, sender: str, did: str, caller: str, did_url: str) -> None:
        acct = self._authorize(sender, did, caller)
        acct.recovery.add(self._add_to(RelationshipKind.RECOVERY, acct.recovery, did, did_url))

    def _tx_remove_authentication(self, sender: str, did: str, caller: str, did_url: str) -> None:
        self._remove_from(self._authorize(sender, did, caller).authentication, did_url)

    def _tx_remove_assertion(self, sender: str, did: str, caller: str, did_url: str) -> None:
        self._remove_from(self._authorize(sender, did, caller).assertion, did_url)

    def _tx_remove_delegation(self, sender: str, did: str, caller: str, did_url: str) -> None:
        self._remove_from(self._authorize(sender, did, caller).delegation, did_url)

    def _tx_remove_recovery(self, sender: str, did: str, caller: str, did_url: str) -> None:
        self._remove_from(self._authorize(sender, did, caller).recovery, did_url)

    @staticmethod
    def _remove_from(members, did_url: str) -> None:
        if did_url not in members:
            raise _Revert(f"{did_url} not present")
        if isinstance(members, dict):
            del members[did_url]
        else:
            members.discard(did_url)

    def _tx_deactivate_did(self, sender: str, did: str, caller: str) -> None:
        acct = self._authorize(sender, did, caller)
        acct.deactivated = True


class MemorySigner:
    """LedgerMutationPort bound to one account of a MemoryLedger."""

    def __init__(self, ledger: MemoryLedger, address: str) -> None:
        self._ledger = ledger
        self._address = address

    @property
    def address(self) -> str:
        return self._address

    def pending_nonce(self) -> int:
        return self._ledger.pending_nonce(self._address)

    def create_did(self, did: str, method_type: str, public_key: bytes) -> str:
        return self._ledger.submit(self._address, "create_did", did, method_type, public_key)

    def add_controller(self, did: str, caller: str, controller: str) -> str:
        return self._ledger.submit(self._address, "add_controller", did, caller, controller)

    def remove_controller(self, did: str, caller: str, controller: str) -> str:
        return self._ledger.submit(self._address, "remove_controller", did, caller, controller)

    def add_verification_method(
        self, did: str, caller: str, method_type: str, controller: str, public_key: bytes
    ) -> str:
        return self._ledger.submit(
            self._address, "add_verification_method", did, caller, method_type, controller, public_key
        )

    def update_verification_method(
        self, did: str, caller: str, index: int, method_type: str, public_key: bytes
    ) -> str:
        return self._ledger.submit(
            self._address, "update_verification_method", did, caller, index, method_type, public_key
        )

    def deactivate_verification_method(self, did: str, caller: str, index: int) -> str:
        return self._ledger.submit(self._address, "deactivate_verification_method", did, caller, index)

    def add_authentication(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "add_authentication", did, caller, did_url)

    def remove_authentication(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "remove_authentication", did, caller, did_url)

    def add_assertion(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "add_assertion", did, caller, did_url)

    def remove_assertion(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "remove_assertion", did, caller, did_url)

    def add_delegation(self, did: str, caller: str, did_url: str, expiration: int) -> str:
        return self._ledger.submit(self._address, "add_delegation", did, caller, did_url, expiration)

    def remove_delegation(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "remove_delegation", did, caller, did_url)

    def add_recovery(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "add_recovery", did, caller, did_url)

    def remove_recovery(self, did: str, caller: str, did_url: str) -> str:
        return self._ledger.submit(self._address, "remove_recovery", did, caller, did_url)

    def deactivate_did(self, did: str, caller: str) -> str:
        return self._ledger.submit(self._address, "deactivate_did", did, caller)

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        return self._ledger.get_receipt(tx_hash)
