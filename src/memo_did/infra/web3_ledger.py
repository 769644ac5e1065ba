# src/memo_did/infra/web3_ledger.py
"""
web3.py adapter for the did:memo registry contracts.

Queries go to the account-DID contract (views + "added" event logs),
mutations are signed locally and sent to the proxy contract. Contract
addresses come from configuration; chain selection and address discovery
are not handled here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from memo_did.config import settings
from memo_did.errors import LedgerError
from memo_did.models.ledger import (
    ControllerAdded,
    RelationshipAdded,
    TransactionReceipt,
    VerificationMethodRecord,
)
from memo_did.models.relationship import RelationshipKind

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (Web3Exception, OSError, ValueError)


# ---------- ABI fragments ----------

def _arg(name: str, typ: str, indexed: Optional[bool] = None, components: Optional[List[Dict]] = None) -> Dict:
    out: Dict[str, Any] = {"name": name, "type": typ}
    if indexed is not None:
        out["indexed"] = indexed
    if components is not None:
        out["components"] = components
    return out


def _fn(name: str, inputs: List[Dict], outputs: Optional[List[Dict]] = None, view: bool = False) -> Dict:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs or [],
        "stateMutability": "view" if view else "nonpayable",
    }


def _event(name: str, inputs: List[Dict]) -> Dict:
    return {"type": "event", "name": name, "inputs": inputs, "anonymous": False}


_PUBLIC_KEY = [
    _arg("methodType", "string"),
    _arg("controller", "string"),
    _arg("pubKeyData", "bytes"),
    _arg("deactivated", "bool"),
]
_S = "string"

ACCOUNT_DID_ABI: List[Dict] = [
    _fn("isDeactivated", [_arg("did", _S)], [_arg("", "bool")], view=True),
    _fn("getVeriLen", [_arg("did", _S)], [_arg("", "uint256")], view=True),
    _fn("getVeri", [_arg("did", _S), _arg("index", "uint256")], [_arg("", "tuple", components=_PUBLIC_KEY)], view=True),
    _fn("isController", [_arg("did", _S), _arg("controller", _S)], [_arg("", "bool")], view=True),
    _fn("inAuth", [_arg("did", _S), _arg("id", _S)], [_arg("", "bool")], view=True),
    _fn("inAssertion", [_arg("did", _S), _arg("id", _S)], [_arg("", "bool")], view=True),
    _fn("inDelegation", [_arg("did", _S), _arg("id", _S)], [_arg("", "uint256")], view=True),
    _fn("inRecovery", [_arg("did", _S), _arg("id", _S)], [_arg("", "bool")], view=True),
    _event("AddController", [_arg("did", _S, indexed=True), _arg("controller", _S, indexed=False)]),
    _event("AddAuth", [_arg("did", _S, indexed=True), _arg("id", _S, indexed=False)]),
    _event("AddAssertion", [_arg("did", _S, indexed=True), _arg("id", _S, indexed=False)]),
    _event(
        "AddDelegation",
        [_arg("did", _S, indexed=True), _arg("id", _S, indexed=False), _arg("expireTime", "uint256", indexed=False)],
    ),
    _event("AddRecovery", [_arg("did", _S, indexed=True), _arg("recovery", _S, indexed=False)]),
]

_DID_CALLER_URL = [_arg("did", _S), _arg("caller", _S), _arg("id", _S)]

PROXY_ABI: List[Dict] = [
    _fn("createDID", [_arg("did", _S), _arg("methodType", _S), _arg("pubKey", "bytes")]),
    _fn("addController", [_arg("did", _S), _arg("caller", _S), _arg("controller", _S)]),
    _fn("removeController", [_arg("did", _S), _arg("caller", _S), _arg("controller", _S)]),
    _fn("addVeri", [_arg("did", _S), _arg("caller", _S), _arg("vpk", "tuple", components=_PUBLIC_KEY)]),
    _fn("updateVeri", [_arg("did", _S), _arg("index", "uint256"), _arg("methodType", _S), _arg("pubKey", "bytes")]),
    _fn("deactivateVeri", [_arg("did", _S), _arg("caller", _S), _arg("index", "uint256"), _arg("deactivate", "bool")]),
    _fn("addAuth", _DID_CALLER_URL),
    _fn("removeAuth", _DID_CALLER_URL),
    _fn("addAssertion", _DID_CALLER_URL),
    _fn("removeAssertion", _DID_CALLER_URL),
    _fn("addDelegation", _DID_CALLER_URL + [_arg("expireTime", "uint256")]),
    _fn("removeDelegation", _DID_CALLER_URL),
    _fn("addRecovery", _DID_CALLER_URL),
    _fn("removeRecovery", _DID_CALLER_URL),
    _fn("deactivateDID", [_arg("did", _S), _arg("caller", _S), _arg("deactivate", "bool")]),
]

# event name and the argument holding the referenced DID URL
_RELATIONSHIP_EVENTS: Dict[RelationshipKind, Tuple[str, str]] = {
    RelationshipKind.AUTHENTICATION: ("AddAuth", "id"),
    RelationshipKind.ASSERTION_METHOD: ("AddAssertion", "id"),
    RelationshipKind.CAPABILITY_DELEGATION: ("AddDelegation", "id"),
    RelationshipKind.RECOVERY: ("AddRecovery", "recovery"),
}


class Web3Ledger:
    """Implements both LedgerQueryPort and LedgerMutationPort over JSON-RPC."""

    def __init__(
        self,
        w3: Web3,
        account_did_address: str,
        proxy_address: str,
        private_key: Optional[str] = None,
        gas_limit: int = settings.GAS_LIMIT,
        gas_price: int = settings.GAS_PRICE,
    ) -> None:
        self._w3 = w3
        self._account_did = w3.eth.contract(address=Web3.to_checksum_address(account_did_address), abi=ACCOUNT_DID_ABI)
        self._proxy = w3.eth.contract(address=Web3.to_checksum_address(proxy_address), abi=PROXY_ABI)
        self._signer = w3.eth.account.from_key(private_key) if private_key else None
        self._gas_limit = gas_limit
        self._gas_price = gas_price

    @classmethod
    def from_settings(cls) -> "Web3Ledger":
        w3 = Web3(Web3.HTTPProvider(settings.RPC_URL))
        return cls(
            w3,
            settings.ACCOUNT_DID_ADDRESS,
            settings.PROXY_ADDRESS,
            private_key=settings.PRIVATE_KEY or None,
        )

    # --- LedgerQueryPort ---
    def is_deactivated(self, did: str) -> bool:
        return bool(self._call("isDeactivated", did))

    def verification_method_count(self, did: str) -> int:
        return int(self._call("getVeriLen", did))

    def verification_method_at(self, did: str, index: int) -> Optional[VerificationMethodRecord]:
        try:
            method_type, controller, public_key, deactivated = self._call("getVeri", did, index)
        except LedgerError as e:
            if isinstance(e.__cause__, ContractLogicError):
                return None
            raise
        return VerificationMethodRecord(
            method_type=method_type,
            controller=controller,
            public_key=bytes(public_key),
            deactivated=bool(deactivated),
        )

    def is_controller(self, did: str, controller: str) -> bool:
        return bool(self._call("isController", did, controller))

    def controller_events(self, did: str) -> List[ControllerAdded]:
        return [
            ControllerAdded(did=did, controller=log["args"]["controller"])
            for log in self._logs("AddController", did)
        ]

    def relationship_events(self, did: str, kind: RelationshipKind) -> List[RelationshipAdded]:
        name, field = _RELATIONSHIP_EVENTS[kind]
        return [RelationshipAdded(did=did, ref=log["args"][field]) for log in self._logs(name, did)]

    def in_authentication(self, did: str, did_url: str) -> bool:
        return bool(self._call("inAuth", did, did_url))

    def in_assertion(self, did: str, did_url: str) -> bool:
        return bool(self._call("inAssertion", did, did_url))

    def delegation_expiry(self, did: str, did_url: str) -> int:
        return int(self._call("inDelegation", did, did_url))

    def in_recovery(self, did: str, did_url: str) -> bool:
        return bool(self._call("inRecovery", did, did_url))

    # --- LedgerMutationPort ---
    @property
    def address(self) -> str:
        if self._signer is None:
            raise LedgerError("no private key configured for submissions")
        return self._signer.address

    def pending_nonce(self) -> int:
        try:
            return self._w3.eth.get_transaction_count(self.address, "pending")
        except _TRANSPORT_ERRORS as e:
            raise LedgerError(f"pending nonce: {e}") from e

    def create_did(self, did: str, method_type: str, public_key: bytes) -> str:
        return self._send("createDID", did, method_type, public_key)

    def add_controller(self, did: str, caller: str, controller: str) -> str:
        return self._send("addController", did, caller, controller)

    def remove_controller(self, did: str, caller: str, controller: str) -> str:
        return self._send("removeController", did, caller, controller)

    def add_verification_method(
        self, did: str, caller: str, method_type: str, controller: str, public_key: bytes
    ) -> str:
        return self._send("addVeri", did, caller, (method_type, controller, public_key, False))

    def update_verification_method(
        self, did: str, caller: str, index: int, method_type: str, public_key: bytes
    ) -> str:
        # the contract authorizes updates by sender, it takes no caller argument
        return self._send("updateVeri", did, index, method_type, public_key)

    def deactivate_verification_method(self, did: str, caller: str, index: int) -> str:
        return self._send("deactivateVeri", did, caller, index, True)

    def add_authentication(self, did: str, caller: str, did_url: str) -> str:
        return self._send("addAuth", did, caller, did_url)

    def remove_authentication(self, did: str, caller: str, did_url: str) -> str:
        return self._send("removeAuth", did, caller, did_url)

    def add_assertion(self, did: str, caller: str, did_url: str) -> str:
        return self._send("addAssertion", did, caller, did_url)

    def remove_assertion(self, did: str, caller: str, did_url: str) -> str:
        return self._send("removeAssertion", did, caller, did_url)

    def add_delegation(self, did: str, caller: str, did_url: str, expiration: int) -> str:
        return self._send("addDelegation", did, caller, did_url, expiration)

    def remove_delegation(self, did: str, caller: str, did_url: str) -> str:
        return self._send("removeDelegation", did, caller, did_url)

    def add_recovery(self, did: str, caller: str, did_url: str) -> str:
        return self._send("addRecovery", did, caller, did_url)

    def remove_recovery(self, did: str, caller: str, did_url: str) -> str:
        return self._send("removeRecovery", did, caller, did_url)

    def deactivate_did(self, did: str, caller: str) -> str:
        return self._send("deactivateDID", did, caller, True)

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        try:
            receipt = self._w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except _TRANSPORT_ERRORS as e:
            raise LedgerError(f"receipt {tx_hash}: {e}") from e
        return TransactionReceipt(
            tx_hash=tx_hash,
            status=receipt["status"],
            gas_used=receipt["gasUsed"],
            cumulative_gas_used=receipt["cumulativeGasUsed"],
            block_number=receipt["blockNumber"],
        )

    # --- internals ---
    def _call(self, name: str, *args):
        try:
            return getattr(self._account_did.functions, name)(*args).call()
        except _TRANSPORT_ERRORS as e:
            raise LedgerError(f"{name}: {e}") from e

    def _logs(self, event_name: str, did: str):
        event = getattr(self._account_did.events, event_name)
        try:
            logs = event.get_logs(from_block=0, argument_filters={"did": did})
        except _TRANSPORT_ERRORS as e:
            raise LedgerError(f"{event_name} logs: {e}") from e
        return sorted(logs, key=lambda log: (log["blockNumber"], log["logIndex"]))

    def _send(self, name: str, *args) -> str:
        signer = self._signer
        if signer is None:
            raise LedgerError("no private key configured for submissions")
        try:
            tx = getattr(self._proxy.functions, name)(*args).build_transaction(
                {
                    "from": signer.address,
                    "nonce": self._w3.eth.get_transaction_count(signer.address, "pending"),
                    "gas": self._gas_limit,
                    "gasPrice": self._gas_price,
                    "value": 0,
                    "chainId": self._w3.eth.chain_id,
                }
            )
            signed = signer.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except _TRANSPORT_ERRORS as e:
            raise LedgerError(f"{name}: submit failed: {e}") from e
        logger.debug("%s sent as %s", name, Web3.to_hex(tx_hash))
        return Web3.to_hex(tx_hash)
