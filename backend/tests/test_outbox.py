"""
Outbox delivery and the websocket room manager.
"""
import asyncio

import pytest
from sqlalchemy import select

from ridesharex.db.models import Notification, OutboxEvent
from ridesharex.realtime.manager import ConnectionManager, room_for
from ridesharex.workflow import outbox
from ridesharex.workflow.executor import TransitionRequest, apply_transition


async def _approve_listing(db, admin, host, make_listing):
    listing = await make_listing(host, status="pending")
    return await apply_transition(
        db, admin, TransitionRequest(entity_type="listing", entity_id=listing.id, new_status="approved")
    )


class TestDispatchPending:

    async def test_delivers_and_marks_sent(self, db, admin, host, make_listing, publisher):
        result = await _approve_listing(db, admin, host, make_listing)

        dispatched = await outbox.dispatch_pending(db, publisher)

        assert dispatched == 1
        user_id, message = publisher.sent[0]
        assert user_id == host.id
        assert message["type"] == "listing_approved"
        assert message["data"]["notification_id"] == result.notification.id

        event = await db.get(OutboxEvent, result.event.id)
        await db.refresh(event)
        assert event.status == "dispatched"
        assert event.dispatched_at is not None
        notification = await db.get(Notification, result.notification.id)
        await db.refresh(notification)
        assert notification.is_sent is True
        assert notification.sent_at is not None

    async def test_nothing_pending(self, db, publisher):
        assert await outbox.dispatch_pending(db, publisher) == 0
        assert publisher.sent == []

    async def test_failure_is_recorded_and_retried(self, db, admin, host, make_listing, publisher):
        result = await _approve_listing(db, admin, host, make_listing)
        publisher.fail = True

        assert await outbox.dispatch_pending(db, publisher, max_attempts=2) == 0
        event = await db.get(OutboxEvent, result.event.id)
        await db.refresh(event)
        assert event.status == "pending"
        assert event.attempts == 1
        assert "socket gone" in event.last_error

        assert await outbox.dispatch_pending(db, publisher, max_attempts=2) == 0
        await db.refresh(event)
        assert event.status == "failed"
        assert event.attempts == 2

        # failed events are not picked up again
        publisher.fail = False
        assert await outbox.dispatch_pending(db, publisher, max_attempts=2) == 0
        assert publisher.sent == []

    async def test_status_change_survives_delivery_failure(self, db, admin, host, make_listing, publisher):
        result = await _approve_listing(db, admin, host, make_listing)
        publisher.fail = True
        await outbox.dispatch_pending(db, publisher)
        await db.refresh(result.entity)
        assert result.entity.status == "approved"

    async def test_dispatch_now_uses_its_own_session(self, session_factory, db, admin, host, make_listing, publisher):
        await _approve_listing(db, admin, host, make_listing)
        await outbox.dispatch_now(session_factory, publisher)
        assert len(publisher.sent) == 1
        statuses = (await db.execute(select(OutboxEvent.status))).scalars().all()
        assert statuses == ["dispatched"]

    async def test_overlapping_runs_deliver_once(self, session_factory, db, admin, host, make_listing, publisher):
        await _approve_listing(db, admin, host, make_listing)
        await asyncio.gather(
            outbox.dispatch_now(session_factory, publisher),
            outbox.dispatch_now(session_factory, publisher),
        )
        assert len(publisher.sent) == 1
        attempts = (await db.execute(select(OutboxEvent.attempts))).scalars().all()
        assert attempts == [1]

    async def test_event_claimed_elsewhere_is_skipped(self, session_factory, db, admin, host, make_listing, publisher):
        result = await _approve_listing(db, admin, host, make_listing)
        async with session_factory() as other:
            # loaded before the other run dispatched it
            stale = await other.get(OutboxEvent, result.event.id)
            assert stale.status == "pending"

            assert await outbox.dispatch_pending(db, publisher) == 1
            assert await outbox._claim(other, stale) is False

        assert len(publisher.sent) == 1


class TestOutboxDispatcher:

    async def test_start_and_stop(self, session_factory, db, admin, host, make_listing, publisher):
        await _approve_listing(db, admin, host, make_listing)
        dispatcher = outbox.OutboxDispatcher(session_factory, publisher, interval_seconds=0.01)

        await dispatcher.start()
        assert dispatcher.is_running
        for _ in range(100):
            if publisher.sent:
                break
            await asyncio.sleep(0.01)
        await dispatcher.stop()

        assert not dispatcher.is_running
        assert len(publisher.sent) == 1


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.messages = []

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("closed")
        self.messages.append(message)


class TestConnectionManager:

    def test_room_name(self):
        assert room_for(7) == "user:7"

    async def test_send_to_user_reaches_only_that_room(self):
        manager = ConnectionManager()
        mine, theirs = FakeSocket(), FakeSocket()
        await manager.connect(1, mine)
        await manager.connect(2, theirs)

        delivered = await manager.send_to_user(1, {"type": "ping"})

        assert delivered == 1
        assert mine.messages == [{"type": "ping"}]
        assert theirs.messages == []

    async def test_dead_sockets_are_dropped(self):
        manager = ConnectionManager()
        good, dead = FakeSocket(), FakeSocket(broken=True)
        await manager.connect(1, good)
        await manager.connect(1, dead)

        assert await manager.send_to_user(1, {"type": "x"}) == 1
        assert manager.connection_count(1) == 1

    async def test_disconnect(self):
        manager = ConnectionManager()
        sock = FakeSocket()
        await manager.connect(3, sock)
        await manager.disconnect(3, sock)
        assert manager.connection_count(3) == 0
        assert await manager.send_to_user(3, {"type": "x"}) == 0


@pytest.mark.parametrize("header,expected", [
    ("bearer.abc.def", "abc.def"),
    ("json, bearer.tok", "tok"),
    ("json", None),
    ("", None),
])
def test_bearer_from_protocols(header, expected):
    from ridesharex.api.routers.notifications import _bearer_from_protocols

    class _WS:
        headers = {"sec-websocket-protocol": header}

    token, _ = _bearer_from_protocols(_WS())
    assert token == expected
