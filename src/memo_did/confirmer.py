# src/memo_did/confirmer.py
"""
Transaction confirmation: SUBMITTED -> CONFIRMED | FAILED | UNRESOLVED.

A ledger write only returns a transaction hash. The confirmer blocks the
caller until a receipt shows up (or the polling budget runs out) so every
mutation can be reported as a plain synchronous result.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional, Tuple

from pydantic import BaseModel

from memo_did.config import settings
from memo_did.errors import ConfirmationUnresolved, MutationRejected
from memo_did.models.ledger import TransactionReceipt
from memo_did.ports.ledger import LedgerMutationPort

logger = logging.getLogger(__name__)


class TxState(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    UNRESOLVED = "unresolved"


class ConfirmationOutcome(BaseModel):
    tx_hash: str
    operation: str
    state: TxState = TxState.SUBMITTED
    reason: Optional[str] = None
    attempts: int = 0
    receipt: Optional[TransactionReceipt] = None


def classify_receipt(receipt: TransactionReceipt) -> Tuple[TxState, Optional[str]]:
    if receipt.succeeded:
        return TxState.CONFIRMED, None
    # status 0: gas_used short of cumulative_gas_used means out of gas
    if receipt.gas_used != receipt.cumulative_gas_used:
        return TxState.FAILED, MutationRejected.EXCEEDED_GAS_LIMIT
    return TxState.FAILED, MutationRejected.LOGIC_REJECTED


class TransactionConfirmer:
    def __init__(
        self,
        port: LedgerMutationPort,
        initial_wait: float = settings.CONFIRM_INITIAL_WAIT,
        block_time: float = settings.BLOCK_TIME,
        max_attempts: int = settings.CONFIRM_MAX_ATTEMPTS,
        timeout: Optional[float] = settings.CONFIRM_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if initial_wait <= block_time:
            raise ValueError("initial_wait must exceed one block period")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._port = port
        self._initial_wait = initial_wait
        self._block_time = block_time
        self._max_attempts = max_attempts
        self._timeout = timeout
        self._sleep = sleep
        self._monotonic = monotonic

    def wait(self, tx_hash: str, operation: str) -> ConfirmationOutcome:
        """Poll for the receipt of `tx_hash` and classify it; never raises on FAILED/UNRESOLVED."""
        outcome = ConfirmationOutcome(tx_hash=tx_hash, operation=operation)
        deadline = None if self._timeout is None else self._monotonic() + self._timeout

        delay = self._initial_wait
        while outcome.attempts < self._max_attempts:
            if deadline is not None and self._monotonic() + delay > deadline:
                logger.debug("%s: confirmation deadline reached for %s", operation, tx_hash)
                break
            self._sleep(delay)
            outcome.attempts += 1
            receipt = self._port.get_receipt(tx_hash)
            if receipt is not None:
                outcome.receipt = receipt
                outcome.state, outcome.reason = classify_receipt(receipt)
                return outcome
            delay = self._block_time

        outcome.state = TxState.UNRESOLVED
        return outcome

    def confirm(self, tx_hash: str, operation: str, target: Optional[str] = None) -> ConfirmationOutcome:
        outcome = self.wait(tx_hash, operation)
        if outcome.state is TxState.CONFIRMED:
            logger.info("%s: transaction %s confirmed after %d polls", operation, tx_hash, outcome.attempts)
            return outcome
        if outcome.state is TxState.FAILED:
            logger.warning("%s: transaction %s failed: %s", operation, tx_hash, outcome.reason)
            raise MutationRejected(operation, tx_hash, outcome.reason or MutationRejected.LOGIC_REJECTED, target)
        logger.warning("%s: transaction %s unresolved after %d polls", operation, tx_hash, outcome.attempts)
        raise ConfirmationUnresolved(operation, tx_hash, outcome.attempts, target)
