"""
Lifecycle events for UserOperation submissions.

Events carry their own data; hooks and subscribers observe them with the
infrastructure dependencies injected separately. Subscribers may return a
follow-up event, which ``dispatch`` yields back to the caller.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..schemas.operations import OperationReceipt, SubmissionHandle, UserOperation

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Lifecycle Events ====================

class OperationBuiltEvent(BaseModel, BaseEvent):
    """A fully signed operation is ready for submission."""
    operation: UserOperation

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"OperationBuiltEvent(sender={self.operation.sender}, nonce={self.operation.nonce})"


class OperationSubmittedEvent(BaseModel, BaseEvent):
    """The provider accepted the operation."""
    operation: UserOperation
    handle: SubmissionHandle

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"OperationSubmittedEvent(handle={self.handle.key})"


class OperationConfirmedEvent(BaseModel, BaseEvent):
    """The operation was included and its call succeeded."""
    handle: SubmissionHandle
    receipt: OperationReceipt
    attempts: int

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"OperationConfirmedEvent(tx={self.receipt.transaction_hash})"


class OperationFailedEvent(BaseModel, BaseEvent):
    """The operation reverted on-chain or was rejected while pending."""
    handle: SubmissionHandle
    reason: str
    receipt: Optional[OperationReceipt] = None
    attempts: int = 0

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"OperationFailedEvent(handle={self.handle.key}, reason={self.reason})"


class OperationTimedOutEvent(BaseModel, BaseEvent):
    """The polling budget ran out without a receipt."""
    handle: SubmissionHandle
    attempts: int

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"OperationTimedOutEvent(handle={self.handle.key}, attempts={self.attempts})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    adapter: Optional[Any] = None
    chain_client: Optional[Any] = None


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Handler must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(event_class, []).append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first, then all subscribers run in parallel.

        Yields:
            Results from all subscribers as they complete.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result

    async def publish(self, event: BaseEvent, deps: Dependencies) -> List[BaseEvent]:
        """Dispatch an event and collect the non-None subscriber results."""
        results = []
        async for result in self.dispatch(event, deps):
            if result is None:
                continue
            if not isinstance(result, BaseEvent):
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
            results.append(result)
        return results
