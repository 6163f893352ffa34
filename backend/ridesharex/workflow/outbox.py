"""
Transactional outbox for status-change notifications.

The executor writes an ``OutboxEvent`` in the same transaction as the status
change. Delivery happens afterwards, here: once right after the request
(FastAPI background task) and periodically from ``OutboxDispatcher`` for
anything still pending. Delivery errors are recorded on the event and logged;
they never reach the caller that made the change.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridesharex.core.config import get_settings
from ridesharex.db.models import Notification, OutboxEvent, utcnow
from ridesharex.workflow.states import OutboxStatus

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def send_to_user(self, user_id: int, message: Dict[str, Any]) -> int:
        ...


async def enqueue_event(
    db: AsyncSession,
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    user_id: int,
    payload: Dict[str, Any],
    notification: Optional[Notification] = None,
) -> OutboxEvent:
    """Add a pending event. No commit; the caller's transaction owns it."""
    event = OutboxEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        notification_id=notification.id if notification is not None else None,
        payload=payload,
        status=OutboxStatus.PENDING.value,
        attempts=0,
    )
    db.add(event)
    return event


async def _claim(db: AsyncSession, event: OutboxEvent) -> bool:
    seen = event.attempts
    res = await db.execute(
        update(OutboxEvent)
        .where(
            OutboxEvent.id == event.id,
            OutboxEvent.status == OutboxStatus.PENDING.value,
            OutboxEvent.attempts == seen,
        )
        .values(attempts=seen + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if res.rowcount != 1:
        logger.debug("Outbox event %s already claimed", event.id)
        return False
    await db.refresh(event)
    return True


async def dispatch_pending(
    db: AsyncSession,
    publisher: Publisher,
    *,
    max_attempts: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> int:
    """
    Deliver pending events oldest first. Returns the number dispatched.

    A recipient with no open socket still counts as delivered: the
    notification row is their inbox.

    Each event is claimed before it is sent by bumping ``attempts`` with a
    conditional UPDATE, so overlapping runs (the background task and the
    periodic dispatcher) never deliver the same event twice.
    """
    settings = get_settings()
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE

    res = await db.execute(
        select(OutboxEvent)
        .where(OutboxEvent.status == OutboxStatus.PENDING.value)
        .order_by(OutboxEvent.id.asc())
        .limit(batch_size)
        .execution_options(populate_existing=True)
    )
    events = list(res.scalars().all())

    dispatched = 0
    claimed = 0
    for event in events:
        if not await _claim(db, event):
            continue
        claimed += 1

        try:
            await publisher.send_to_user(
                event.user_id,
                {"type": event.event_type, "data": event.payload},
            )
        except Exception as e:
            event.last_error = str(e)[:2000]
            if event.attempts >= max_attempts:
                event.status = OutboxStatus.FAILED.value
            logger.error(
                "Outbox event %s delivery failed (attempt %s/%s): %s",
                event.id,
                event.attempts,
                max_attempts,
                e,
                exc_info=True,
            )
            await db.commit()
            continue

        now = utcnow()
        event.status = OutboxStatus.DISPATCHED.value
        event.dispatched_at = now
        event.last_error = None
        if event.notification_id is not None:
            notification = await db.get(Notification, event.notification_id)
            if notification is not None:
                notification.is_sent = True
                notification.sent_at = now
        await db.commit()
        dispatched += 1

    if claimed:
        logger.info("Outbox dispatched %s/%s events", dispatched, claimed)
    return dispatched


async def dispatch_now(session_factory: async_sessionmaker, publisher: Publisher) -> None:
    """Background-task entry point; swallows and logs everything."""
    try:
        async with session_factory() as session:
            await dispatch_pending(session, publisher)
    except Exception:
        logger.exception("Outbox dispatch run failed")


class OutboxDispatcher:
    """Periodically delivers pending outbox events."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        publisher: Publisher,
        interval_seconds: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self._interval = interval_seconds or get_settings().OUTBOX_POLL_INTERVAL_SECONDS
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Outbox dispatcher already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox dispatcher started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Outbox dispatcher stopped")

    async def _run_loop(self) -> None:
        while self._running:
            await dispatch_now(self._session_factory, self._publisher)
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
