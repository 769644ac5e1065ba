# src/memo_did/infra/providers.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Union

from memo_did.config import settings
from memo_did.confirmer import TransactionConfirmer
from memo_did.ports.ledger import LedgerMutationPort, LedgerQueryPort
from memo_did.resolver import Resolver
from .memory_ledger import MemoryLedger

if TYPE_CHECKING:
    # web3 adapter is only imported when selected
    from memo_did.infra.web3_ledger import Web3Ledger

logger = logging.getLogger(__name__)

# dev account used for the in-memory signer
MEMORY_SIGNER_ADDRESS = "0x" + "11" * 20

# singletons per-process
_memory: Optional[MemoryLedger] = None
_web3: Optional[Web3Ledger] = None


def _backend() -> Union[MemoryLedger, Web3Ledger]:
    """
    Adapter selector. Default: in-memory for dev.
    Set MEMO_DID_LEDGER=web3 (plus RPC and contract addresses) for a real chain.
    """
    global _memory, _web3
    backend = settings.LEDGER_BACKEND

    if backend == "web3":
        if _web3 is None:
            from memo_did.infra.web3_ledger import Web3Ledger

            _web3 = Web3Ledger.from_settings()
        return _web3

    if backend not in ("", "memory", "mem", "inmemory", "in-memory"):
        logger.warning("unknown ledger backend %r, falling back to memory", backend)
    if _memory is None:
        _memory = MemoryLedger()
    return _memory


def get_query_port() -> LedgerQueryPort:
    return _backend()


def get_mutation_port() -> LedgerMutationPort:
    backend = _backend()
    if isinstance(backend, MemoryLedger):
        return backend.signer(MEMORY_SIGNER_ADDRESS)
    return backend


def get_resolver() -> Resolver:
    return Resolver(
        get_query_port(),
        context=settings.DOCUMENT_CONTEXT,
        max_workers=settings.RESOLVE_WORKERS,
    )


def get_confirmer() -> TransactionConfirmer:
    return TransactionConfirmer(get_mutation_port())
