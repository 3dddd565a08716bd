"""
Bounded polling for eventually-consistent refund and payment outcomes.

A refund (or payment) answered with resultStatus U is polled through its
inquiry operation, keyed by the original idempotency key, until the gateway
reports a terminal state or the attempts run out. Running out is not a
failure: the caller gets STILL_UNKNOWN and the operation needs manual review.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, FrozenSet, Optional, Set

from shared.errors import TransportError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from service_wallet.app.adapters.models import (
    GatewayResult,
    PaymentInquiryRequest,
    RefundInquiryRequest,
)
from service_wallet.app.adapters.operations import WalletGateway

DEFAULT_MAX_ATTEMPTS = 12
DEFAULT_INTERVAL_SECONDS = 5.0

REFUND_NOT_FOUND_CODES = frozenset({"REFUND_NOT_EXIST", "NOT_EXIST"})
PAYMENT_NOT_FOUND_CODES = frozenset({"ORDER_NOT_EXIST", "NOT_EXIST"})


class ReconciliationOutcome(str, Enum):
    """Where a reconciliation loop ended up."""
    UNKNOWN = "unknown"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    STILL_UNKNOWN = "still_unknown"

    @property
    def terminal(self) -> bool:
        return self in (
            ReconciliationOutcome.SUCCEEDED,
            ReconciliationOutcome.FAILED,
            ReconciliationOutcome.NOT_FOUND,
        )


@dataclass
class ReconciliationState:
    """Progress of one loop invocation. Never persisted.

    ``attempt`` is the 1-based number of the latest inquiry sent; 0 means
    no inquiry has gone out yet.
    """
    operation_id: str
    attempt: int = 0
    outcome: ReconciliationOutcome = ReconciliationOutcome.UNKNOWN
    last_result: Optional[GatewayResult] = None


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    operation_id: str
    attempts: int
    last_result: Optional[GatewayResult] = field(default=None, compare=False)

    @property
    def terminal(self) -> bool:
        return self.outcome.terminal

    @property
    def indeterminate(self) -> bool:
        return self.outcome == ReconciliationOutcome.STILL_UNKNOWN


def classify(result: GatewayResult, inner_status: Optional[str], not_found_codes: FrozenSet[str]) -> ReconciliationOutcome:
    """Map one inquiry answer onto the reconciliation state machine."""
    if result.is_success and inner_status == "SUCCESS":
        return ReconciliationOutcome.SUCCEEDED
    if inner_status == "FAIL":
        return ReconciliationOutcome.FAILED
    if inner_status == "PROCESSING":
        return ReconciliationOutcome.PROCESSING
    if result.is_failed and result.result_code in not_found_codes:
        return ReconciliationOutcome.NOT_FOUND
    # Unexpected combinations keep polling
    return ReconciliationOutcome.PROCESSING


class OutcomeReconciler:
    """Drives inquiry calls until a terminal state or the attempt budget runs out."""

    def __init__(
        self,
        gateway: WalletGateway,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.gateway = gateway
        self.config = config or RetryConfig(DEFAULT_MAX_ATTEMPTS, DEFAULT_INTERVAL_SECONDS)
        self.sleep = sleep
        self.metrics = metrics
        self.logger = get_logger("wallet.reconciler")
        self._tasks: Set[asyncio.Task] = set()

    async def reconcile_refund(self, refund_request_id: str) -> ReconciliationResult:
        async def inquire():
            result = await self.gateway.inquiry_refund(
                RefundInquiryRequest(refund_request_id=refund_request_id)
            )
            return result, result.refund_status

        return await self._run("refund", refund_request_id, inquire, REFUND_NOT_FOUND_CODES)

    async def reconcile_payment(self, payment_request_id: str) -> ReconciliationResult:
        async def inquire():
            result = await self.gateway.inquiry_payment(
                PaymentInquiryRequest(payment_request_id=payment_request_id)
            )
            return result, result.payment_status

        return await self._run("payment", payment_request_id, inquire, PAYMENT_NOT_FOUND_CODES)

    def start_refund_reconciliation(self, refund_request_id: str) -> "asyncio.Task[ReconciliationResult]":
        """Run :meth:`reconcile_refund` as its own task.

        The task keeps going if whoever awaits it goes away; await it through
        ``asyncio.shield`` to abandon interest without cancelling it.
        """
        return self._spawn(self.reconcile_refund(refund_request_id), f"reconcile-refund-{refund_request_id}")

    def start_payment_reconciliation(self, payment_request_id: str) -> "asyncio.Task[ReconciliationResult]":
        """Run :meth:`reconcile_payment` as its own task, like refunds."""
        return self._spawn(self.reconcile_payment(payment_request_id), f"reconcile-payment-{payment_request_id}")

    def _spawn(self, coro, name: str) -> "asyncio.Task[ReconciliationResult]":
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def _run(self, kind, operation_id, inquire, not_found_codes) -> ReconciliationResult:
        state = ReconciliationState(operation_id=operation_id)
        max_attempts = self.config.max_attempts
        self.logger.info(
            "Reconciliation started",
            kind=kind,
            operation_id=operation_id,
            max_attempts=max_attempts,
            horizon_seconds=self.config.horizon(),
        )

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                await self.sleep(self.config.interval)
            state.attempt = attempt

            try:
                result, inner_status = await inquire()
            except TransportError as e:
                self.logger.warning(
                    "Reconciliation attempt failed, will retry",
                    kind=kind,
                    operation_id=operation_id,
                    attempt=state.attempt,
                    error=str(e),
                )
                continue

            state.last_result = result
            state.outcome = classify(result, inner_status, not_found_codes)
            self.logger.info(
                "Reconciliation attempt",
                kind=kind,
                operation_id=operation_id,
                attempt=state.attempt,
                result_status=result.result_status.value,
                result_code=result.result_code,
                inner_status=inner_status,
                outcome=state.outcome.value,
            )
            if state.outcome.terminal:
                return self._finish(kind, state, state.outcome)

        self.logger.warning(
            "Reconciliation exhausted, manual review required",
            kind=kind,
            operation_id=operation_id,
            attempts=state.attempt,
        )
        return self._finish(kind, state, ReconciliationOutcome.STILL_UNKNOWN)

    def _finish(self, kind: str, state: ReconciliationState, outcome: ReconciliationOutcome) -> ReconciliationResult:
        if self.metrics:
            self.metrics.record_reconciliation(kind, outcome.value)
        return ReconciliationResult(
            outcome=outcome,
            operation_id=state.operation_id,
            attempts=state.attempt,
            last_result=state.last_result,
        )
