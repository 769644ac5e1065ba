# tests/conftest.py
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from memo_did.confirmer import TransactionConfirmer
from memo_did.controller import IdentityController
from memo_did.infra.memory_ledger import MemoryLedger
from memo_did.infra.providers import get_resolver
from memo_did.main import app
from memo_did.models.ledger import TransactionReceipt
from memo_did.resolver import Resolver


# ------------------ Helpers ------------------

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20

# compressed secp256k1-shaped keys; the ledger stores them opaquely
K0 = "0x02" + "ab" * 32
K1 = "0x03" + "cd" * 32

NOW = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_confirmer(port, **kwargs) -> TransactionConfirmer:
    kwargs.setdefault("initial_wait", 6)
    kwargs.setdefault("block_time", 5)
    kwargs.setdefault("max_attempts", 10)
    kwargs.setdefault("timeout", None)
    kwargs.setdefault("sleep", lambda seconds: None)
    return TransactionConfirmer(port, **kwargs)


def receipt(status: int = 1, gas_used: int = 21000, cumulative: Optional[int] = None) -> TransactionReceipt:
    return TransactionReceipt(
        tx_hash="0x" + "77" * 32,
        status=status,
        gas_used=gas_used,
        cumulative_gas_used=gas_used if cumulative is None else cumulative,
        block_number=1,
    )


# ------------------ Fixtures ------------------

@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver(ledger, clock) -> Resolver:
    return Resolver(ledger, clock=clock)


@pytest.fixture
def new_identity(ledger):
    """
    Factory: derive a DID for `address`, register it with `key` as master key
    and return its controller.
    """

    def _new(address: str = ALICE, key: str = K0) -> IdentityController:
        port = ledger.signer(address)
        controller = IdentityController.create(port, make_confirmer(port))
        controller.register_did(key)
        return controller

    return _new


# ------------------ Per-test wiring ------------------

@pytest.fixture(autouse=True)
def _override_resolver(ledger, clock):
    """
    Point the HTTP surface at the test's own ledger and clock.
    """
    app.dependency_overrides[get_resolver] = lambda: Resolver(ledger, clock=clock)
    try:
        yield
    finally:
        app.dependency_overrides.clear()


# HTTP tests do `from tests.conftest import client`; module-level, NOT a fixture.
client = TestClient(app)
