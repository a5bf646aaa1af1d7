"""Notification boundary for leave lifecycle events.

The engine hands events over after its transaction commits. Delivery is best
effort: a failing sink is logged and never affects leave state or the caller.
"""

# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from leaveflow.config import get_settings
from leaveflow.models.base import now_utc
from leaveflow.models.enums import LeaveEventType

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event models
# ---------------------------------------------------------------------------


class LeaveEvent(BaseModel):
    """Envelope shared by every leave event."""

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: LeaveEventType
    occurred_at: datetime = Field(default_factory=now_utc)
    request_id: uuid.UUID
    recipient_id: uuid.UUID
    days: int


class LeaveSubmitted(LeaveEvent):
    event_type: Literal[LeaveEventType.LEAVE_SUBMITTED] = LeaveEventType.LEAVE_SUBMITTED
    employee_id: uuid.UUID


class LeaveRequestedFromApprover(LeaveEvent):
    event_type: Literal[LeaveEventType.LEAVE_REQUESTED_FROM_APPROVER] = LeaveEventType.LEAVE_REQUESTED_FROM_APPROVER
    approver_id: uuid.UUID
    employee_name: str


class LeaveApproved(LeaveEvent):
    event_type: Literal[LeaveEventType.LEAVE_APPROVED] = LeaveEventType.LEAVE_APPROVED
    employee_id: uuid.UUID


class LeaveRejected(LeaveEvent):
    event_type: Literal[LeaveEventType.LEAVE_REJECTED] = LeaveEventType.LEAVE_REJECTED
    employee_id: uuid.UUID


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


@runtime_checkable
class NotificationSink(Protocol):
    """Consumer of leave events (in-app notifications, push, email...)."""

    async def publish(self, event: LeaveEvent) -> None:
        """Deliver one event. May raise; callers isolate failures."""
        ...


class LoggingNotificationSink:
    """Default sink that only writes events to the log."""

    async def publish(self, event: LeaveEvent) -> None:
        logger.info(
            "Leave event %s for request %s -> recipient %s",
            event.event_type,
            event.request_id,
            event.recipient_id,
        )


class InMemoryNotificationSink:
    """Sink that keeps every event, for tests."""

    def __init__(self) -> None:
        self.events: list[LeaveEvent] = []

    async def publish(self, event: LeaveEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: LeaveEventType) -> list[LeaveEvent]:
        return [e for e in self.events if e.event_type == event_type]


class QueuedNotificationSink:
    """Hands events to an in-process queue drained by a background task.

    ``publish`` never waits on the downstream sink. Each event gets up to
    ``max_attempts`` delivery attempts before it is dropped and logged.
    """

    def __init__(
        self,
        downstream: NotificationSink,
        maxsize: int | None = None,
        max_attempts: int | None = None,
    ) -> None:
        settings = get_settings()
        self._downstream = downstream
        self._queue: asyncio.Queue[LeaveEvent] = asyncio.Queue(maxsize or settings.notification_queue_size)
        self._max_attempts = max_attempts or settings.notification_max_attempts
        self._task: asyncio.Task[None] | None = None

    async def publish(self, event: LeaveEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("Notification queue full, dropping %s for request %s", event.event_type, event.request_id)

    async def _deliver(self, event: LeaveEvent) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._downstream.publish(event)
                return
            except Exception:
                logger.warning(
                    "Delivery attempt %d/%d failed for %s (request %s)",
                    attempt,
                    self._max_attempts,
                    event.event_type,
                    event.request_id,
                    exc_info=True,
                )
        logger.error("Giving up on %s for request %s", event.event_type, event.request_id)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        """Start the background dispatcher if it is not running."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="leave-notification-dispatcher")

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        """Flush pending events and stop the dispatcher."""
        if self._task is None:
            return
        await self.drain()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


_sink: NotificationSink = LoggingNotificationSink()


def get_notification_sink() -> NotificationSink:
    """Return the process-wide notification sink."""
    return _sink


def set_notification_sink(sink: NotificationSink) -> None:
    """Override the sink (for testing or production wiring)."""
    global _sink
    _sink = sink


async def dispatch_events(events: Iterable[LeaveEvent], sink: NotificationSink | None = None) -> None:
    """Publish events one by one, logging and swallowing any sink failure."""
    target = sink or get_notification_sink()
    for event in events:
        try:
            await target.publish(event)
        except Exception:
            logger.exception("Failed to publish %s for request %s", event.event_type, event.request_id)
