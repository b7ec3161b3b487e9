"""
Submission and receipt polling.

Submits a signed operation exactly once and polls the provider for its
receipt with a bounded number of attempts. The outcome is one of the
terminal states of ``OperationLifecycle``; a timed-out operation is never
resubmitted, since the original may still be included.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ConfigDict

from .events import (
    Dependencies,
    EventBus,
    OperationBuiltEvent,
    OperationConfirmedEvent,
    OperationFailedEvent,
    OperationSubmittedEvent,
    OperationTimedOutEvent,
)
from .exceptions import Timeout, ValidationRejected
from .states import OperationLifecycle, OperationState
from ..adapters.bases import ProviderAdapter
from ..config import PollingConfig
from ..schemas.bases import CanonicalModel
from ..schemas.operations import OperationReceipt, SubmissionHandle, UserOperation

logger = logging.getLogger(__name__)


class SubmissionOutcome(CanonicalModel):
    """
    Result of a submission.

    Attributes:
        state: Terminal state (CONFIRMED, FAILED or TIMED_OUT)
        handle: Identifier returned by the provider
        receipt: Inclusion record when one was obtained
        attempts: Receipt lookups performed
        error: Failure reason for FAILED outcomes
    """
    model_config = ConfigDict(frozen=True)

    state: OperationState
    handle: SubmissionHandle
    receipt: Optional[OperationReceipt] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == OperationState.CONFIRMED


class SubmissionPoller:
    """
    Drives one operation from BUILT to a terminal state.

    Args:
        adapter: Provider adapter used to submit and look up receipts
        polling: Attempt budget and interval
        event_bus: Optional bus receiving lifecycle events
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        polling: Optional[PollingConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.adapter = adapter
        self.polling = polling or PollingConfig()
        self.event_bus = event_bus or EventBus()
        self.deps = Dependencies(adapter=adapter)

    @staticmethod
    async def _sleep_async(seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def run(self, op: UserOperation) -> SubmissionOutcome:
        """
        Submit ``op`` and poll until a terminal state.

        Raises:
            ProviderError: If submission fails, or a lookup fails for a
                reason other than validation
            asyncio.CancelledError: If the caller cancels
        """
        return await self._run(op, {})

    async def wait(self, op: UserOperation, timeout: Optional[float] = None) -> SubmissionOutcome:
        """
        Like ``run`` but bounded by a wall-clock deadline.

        Raises:
            Timeout: If the deadline elapses first; the outcome is unknown
        """
        progress: Dict[str, Any] = {}
        try:
            return await asyncio.wait_for(self._run(op, progress), timeout)
        except asyncio.TimeoutError as e:
            handle = progress.get("handle")
            submission = handle.key if handle is not None else f"unsubmitted operation from {op.sender}"
            logger.warning("Deadline of %ss elapsed waiting for %s", timeout, submission)
            raise Timeout(submission) from e

    async def _run(self, op: UserOperation, progress: Dict[str, Any]) -> SubmissionOutcome:
        lifecycle = OperationLifecycle()
        await self.event_bus.publish(OperationBuiltEvent(operation=op), self.deps)

        op.freeze()
        logger.debug("Submitting %s", op.to_canonical_json())
        handle = await self.adapter.submit(op)
        progress["handle"] = handle
        lifecycle.transition(OperationState.SUBMITTED)
        await self.event_bus.publish(OperationSubmittedEvent(operation=op, handle=handle), self.deps)

        max_attempts = self.polling.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                receipt = await self.adapter.get_receipt(handle)
            except ValidationRejected as e:
                lifecycle.transition(OperationState.FAILED)
                logger.warning("Operation %s rejected while pending: %s", handle.key, e)
                await self.event_bus.publish(
                    OperationFailedEvent(handle=handle, reason=str(e), attempts=attempt), self.deps
                )
                return SubmissionOutcome(
                    state=lifecycle.state, handle=handle, attempts=attempt, error=str(e)
                )

            if receipt is not None:
                return await self._settle(lifecycle, handle, receipt, attempt)

            logger.debug("No receipt for %s yet (attempt %d/%d)", handle.key, attempt, max_attempts)
            if attempt < max_attempts:
                await self._sleep_async(self.polling.interval)

        lifecycle.transition(OperationState.TIMED_OUT)
        logger.warning("No receipt for %s after %d attempts", handle.key, max_attempts)
        await self.event_bus.publish(OperationTimedOutEvent(handle=handle, attempts=max_attempts), self.deps)
        return SubmissionOutcome(state=lifecycle.state, handle=handle, attempts=max_attempts)

    async def _settle(
        self,
        lifecycle: OperationLifecycle,
        handle: SubmissionHandle,
        receipt: OperationReceipt,
        attempt: int,
    ) -> SubmissionOutcome:
        if receipt.success:
            lifecycle.transition(OperationState.CONFIRMED)
            logger.info("Operation %s confirmed in %s", handle.key, receipt.transaction_hash)
            await self.event_bus.publish(
                OperationConfirmedEvent(handle=handle, receipt=receipt, attempts=attempt), self.deps
            )
            return SubmissionOutcome(state=lifecycle.state, handle=handle, receipt=receipt, attempts=attempt)

        reason = receipt.reason or "execution reverted"
        lifecycle.transition(OperationState.FAILED)
        logger.warning("Operation %s included in %s but reverted: %s", handle.key, receipt.transaction_hash, reason)
        await self.event_bus.publish(
            OperationFailedEvent(handle=handle, reason=reason, receipt=receipt, attempts=attempt), self.deps
        )
        return SubmissionOutcome(
            state=lifecycle.state, handle=handle, receipt=receipt, attempts=attempt, error=reason
        )
