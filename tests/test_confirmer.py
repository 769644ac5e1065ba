# tests/test_confirmer.py
from typing import List, Optional

import pytest

from memo_did.confirmer import TxState, classify_receipt
from memo_did.errors import ConfirmationUnresolved, MutationRejected
from memo_did.models.ledger import TransactionReceipt
from tests.conftest import RecordingSleep, make_confirmer, receipt

TX = "0x" + "77" * 32


class ScheduledReceipts:
    """Fake mutation port: get_receipt answers from a fixed schedule, then None."""

    def __init__(self, schedule: List[Optional[TransactionReceipt]]):
        self._schedule = list(schedule)
        self.polls = 0

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        self.polls += 1
        return self._schedule.pop(0) if self._schedule else None


class FakeMonotonic:
    """Advances by whatever the paired sleep was asked to wait."""

    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def test_classify_receipt():
    assert classify_receipt(receipt(status=1)) == (TxState.CONFIRMED, None)
    assert classify_receipt(receipt(status=0, gas_used=50000, cumulative=50000)) == (
        TxState.FAILED,
        MutationRejected.LOGIC_REJECTED,
    )
    assert classify_receipt(receipt(status=0, gas_used=50000, cumulative=90000)) == (
        TxState.FAILED,
        MutationRejected.EXCEEDED_GAS_LIMIT,
    )


def test_confirmed_on_first_poll_waits_initial_delay():
    port = ScheduledReceipts([receipt(status=1)])
    sleep = RecordingSleep()
    outcome = make_confirmer(port, sleep=sleep).confirm(TX, "register_did")
    assert outcome.state is TxState.CONFIRMED
    assert outcome.attempts == 1
    assert outcome.receipt is not None and outcome.receipt.succeeded
    assert sleep.calls == [6]


def test_confirmed_after_pending_polls_uses_block_time():
    port = ScheduledReceipts([None, None, receipt(status=1)])
    sleep = RecordingSleep()
    outcome = make_confirmer(port, sleep=sleep).confirm(TX, "add_controller")
    assert outcome.state is TxState.CONFIRMED
    assert outcome.attempts == 3
    assert sleep.calls == [6, 5, 5]


def test_logic_rejection_raises():
    port = ScheduledReceipts([None, receipt(status=0, gas_used=40000, cumulative=40000)])
    with pytest.raises(MutationRejected) as ei:
        make_confirmer(port).confirm(TX, "add_verification_method", target="did:memo:" + "ab" * 32)
    err = ei.value
    assert err.reason == MutationRejected.LOGIC_REJECTED
    assert err.tx_hash == TX
    assert err.operation == "add_verification_method"
    assert "did:memo:" + "ab" * 32 in str(err)


def test_gas_exhaustion_raises_with_its_own_reason():
    port = ScheduledReceipts([receipt(status=0, gas_used=300000, cumulative=420000)])
    with pytest.raises(MutationRejected) as ei:
        make_confirmer(port).confirm(TX, "deactivate_did")
    assert ei.value.reason == MutationRejected.EXCEEDED_GAS_LIMIT


def test_budget_exhausted_is_unresolved_not_rejected():
    port = ScheduledReceipts([])
    sleep = RecordingSleep()
    with pytest.raises(ConfirmationUnresolved) as ei:
        make_confirmer(port, sleep=sleep, max_attempts=10).confirm(TX, "add_controller")
    assert not isinstance(ei.value, MutationRejected)
    assert ei.value.attempts == 10
    assert port.polls == 10
    assert sleep.calls == [6] + [5] * 9


def test_wait_reports_unresolved_without_raising():
    outcome = make_confirmer(ScheduledReceipts([]), max_attempts=3).wait(TX, "op")
    assert outcome.state is TxState.UNRESOLVED
    assert outcome.attempts == 3
    assert outcome.receipt is None


def test_timeout_maps_to_unresolved():
    clock = FakeMonotonic()
    port = ScheduledReceipts([])
    confirmer = make_confirmer(port, timeout=20, sleep=clock.sleep, monotonic=clock)
    with pytest.raises(ConfirmationUnresolved) as ei:
        confirmer.confirm(TX, "add_controller")
    # 6 + 5 + 5 = 16 fits, a fourth poll would end at 21
    assert ei.value.attempts == 3
    assert port.polls == 3


def test_receipt_inside_timeout_still_confirms():
    clock = FakeMonotonic()
    port = ScheduledReceipts([None, receipt(status=1)])
    confirmer = make_confirmer(port, timeout=20, sleep=clock.sleep, monotonic=clock)
    assert confirmer.confirm(TX, "add_controller").state is TxState.CONFIRMED


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_wait": 5, "block_time": 5},
        {"initial_wait": 4, "block_time": 5},
        {"max_attempts": 0},
    ],
)
def test_invalid_polling_parameters(kwargs):
    with pytest.raises(ValueError):
        make_confirmer(ScheduledReceipts([]), **kwargs)
