"""
Submission Poller Test Suite

Tests:
- Single submission followed by bounded receipt polling
- Terminal states: confirmed, reverted, rejected while pending, timed out
- Exact attempt and sleep counts
- Wall-clock deadline via wait()
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock, patch

from test_mocks import MOCK_TX_HASH, MOCK_USER_OP_HASH, create_operation, create_receipt_payload

from userop_pipeline.adapters.bases import ProviderAdapter
from userop_pipeline.config import PollingConfig
from userop_pipeline.engine.events import (
    EventBus,
    OperationConfirmedEvent,
    OperationSubmittedEvent,
    OperationTimedOutEvent,
)
from userop_pipeline.engine.exceptions import (
    OperationFrozenError,
    ProviderError,
    Timeout,
    ValidationRejected,
)
from userop_pipeline.engine.poller import SubmissionPoller
from userop_pipeline.engine.states import OperationState
from userop_pipeline.schemas.operations import OperationReceipt, SubmissionHandle

HANDLE = SubmissionHandle(key=MOCK_USER_OP_HASH)


def make_adapter(receipts):
    adapter = Mock(spec=ProviderAdapter)
    adapter.submit = AsyncMock(return_value=HANDLE)
    adapter.get_receipt = AsyncMock(side_effect=receipts)
    return adapter


def make_receipt(**kwargs) -> OperationReceipt:
    return OperationReceipt.from_rpc(create_receipt_payload(**kwargs))


@pytest.fixture
def mock_sleep():
    with patch.object(SubmissionPoller, "_sleep_async", new_callable=AsyncMock) as sleep:
        yield sleep


class TestRun:

    @pytest.mark.asyncio
    async def test_confirmed_after_pending_lookups(self, mock_sleep):
        adapter = make_adapter([None, None, make_receipt()])
        poller = SubmissionPoller(adapter, PollingConfig(max_attempts=5, interval=2))
        op = create_operation(signature="0x" + "aa" * 65)

        outcome = await poller.run(op)

        assert outcome.state == OperationState.CONFIRMED
        assert outcome.succeeded
        assert outcome.attempts == 3
        assert outcome.receipt.transaction_hash == MOCK_TX_HASH
        adapter.submit.assert_awaited_once_with(op)
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(2)
        assert op.is_frozen

    @pytest.mark.asyncio
    async def test_times_out_after_exact_attempts(self, mock_sleep):
        adapter = make_adapter(lambda handle: None)
        poller = SubmissionPoller(adapter, PollingConfig(max_attempts=4, interval=0))

        outcome = await poller.run(create_operation())

        assert outcome.state == OperationState.TIMED_OUT
        assert not outcome.succeeded
        assert outcome.attempts == 4
        assert outcome.receipt is None
        assert adapter.get_receipt.await_count == 4
        assert mock_sleep.await_count == 3
        adapter.submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reverted_operation_fails(self, mock_sleep):
        adapter = make_adapter([make_receipt(success=False, reason="0x08c379a0")])
        outcome = await SubmissionPoller(adapter, PollingConfig(max_attempts=3)).run(create_operation())

        assert outcome.state == OperationState.FAILED
        assert outcome.error == "0x08c379a0"
        assert outcome.receipt is not None
        assert mock_sleep.await_count == 0

    @pytest.mark.asyncio
    async def test_revert_without_reason(self, mock_sleep):
        adapter = make_adapter([make_receipt(success=False)])
        outcome = await SubmissionPoller(adapter).run(create_operation())
        assert outcome.error == "execution reverted"

    @pytest.mark.asyncio
    async def test_rejected_while_pending(self, mock_sleep):
        rejection = ValidationRejected("pimlico", "eth_getUserOperationReceipt", "AA25 invalid account nonce")
        adapter = make_adapter([None, rejection])
        outcome = await SubmissionPoller(adapter, PollingConfig(max_attempts=5)).run(create_operation())

        assert outcome.state == OperationState.FAILED
        assert outcome.attempts == 2
        assert "AA25" in outcome.error

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self, mock_sleep):
        adapter = make_adapter([ProviderError("pimlico", "eth_getUserOperationReceipt", "connection reset")])
        with pytest.raises(ProviderError):
            await SubmissionPoller(adapter).run(create_operation())

    @pytest.mark.asyncio
    async def test_submission_failure_leaves_operation_frozen(self, mock_sleep):
        adapter = make_adapter([])
        adapter.submit.side_effect = ValidationRejected("alchemy", "eth_sendUserOperation", "AA21 didn't pay prefund")
        op = create_operation()

        with pytest.raises(ValidationRejected):
            await SubmissionPoller(adapter).run(op)

        adapter.get_receipt.assert_not_called()
        with pytest.raises(OperationFrozenError):
            op.nonce = 1


class TestEvents:

    @pytest.mark.asyncio
    async def test_lifecycle_events_published(self, mock_sleep):
        seen = []

        async def record(event, deps):
            seen.append(type(event).__name__)

        bus = EventBus()
        bus.subscribe(OperationSubmittedEvent, record)
        bus.subscribe(OperationConfirmedEvent, record)

        adapter = make_adapter([make_receipt()])
        await SubmissionPoller(adapter, event_bus=bus).run(create_operation())
        assert seen == ["OperationSubmittedEvent", "OperationConfirmedEvent"]

    @pytest.mark.asyncio
    async def test_timeout_event_reports_attempts(self, mock_sleep):
        captured = []

        async def record(event, deps):
            captured.append(event)

        bus = EventBus()
        bus.subscribe(OperationTimedOutEvent, record)
        adapter = make_adapter(lambda handle: None)
        await SubmissionPoller(adapter, PollingConfig(max_attempts=2, interval=0), bus).run(create_operation())

        assert captured[0].attempts == 2
        assert captured[0].handle == HANDLE


class TestWait:

    @pytest.mark.asyncio
    async def test_deadline_raises_timeout_with_handle(self):
        async def never_included(handle):
            await asyncio.sleep(10)

        adapter = make_adapter(never_included)
        poller = SubmissionPoller(adapter, PollingConfig(max_attempts=100, interval=0))

        with pytest.raises(Timeout) as exc_info:
            await poller.wait(create_operation(), timeout=0.05)
        assert exc_info.value.submission == MOCK_USER_OP_HASH

    @pytest.mark.asyncio
    async def test_deadline_before_submission(self):
        async def slow_submit(op):
            await asyncio.sleep(10)

        adapter = make_adapter([])
        adapter.submit = AsyncMock(side_effect=slow_submit)

        with pytest.raises(Timeout) as exc_info:
            await SubmissionPoller(adapter).wait(create_operation(), timeout=0.05)
        assert "unsubmitted" in exc_info.value.submission

    @pytest.mark.asyncio
    async def test_completes_within_deadline(self, mock_sleep):
        adapter = make_adapter([make_receipt()])
        outcome = await SubmissionPoller(adapter).wait(create_operation(), timeout=5)
        assert outcome.succeeded
