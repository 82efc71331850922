from datetime import datetime

import pytest

from interpreter_booking import worker
from interpreter_booking.domain.bookings.enums import BookingStatus
from interpreter_booking.domain.bookings.notifications import Audience, MessageKind, NotificationIntent
from interpreter_booking.services import notification_outbox
from interpreter_booking.services.notification_service import NotificationDispatcher, NotificationTargeter


@pytest.fixture
def notifications(db, factory, arabic):
    customer = factory.customer()
    factory.interpreter([arabic])
    booking = factory.booking(customer, arabic)
    return NotificationTargeter(db).resolve(
        booking,
        [
            NotificationIntent(MessageKind.BOOKING_RECEIVED, Audience.CUSTOMER),
            NotificationIntent(MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS),
        ],
    )


@pytest.fixture
def dispatcher(fake_sender):
    return NotificationDispatcher(fake_sender, clock=lambda: datetime(2026, 3, 10, 10, 0))


def test_notifications_survive_serialization(notifications):
    restored = notification_outbox.deserialize_notifications(
        notification_outbox.serialize_notifications(notifications)
    )
    assert restored == notifications


@pytest.mark.asyncio
async def test_disabled_queue_dispatches_inline(monkeypatch, notifications):
    dispatched = []

    async def fake_inline(items, dispatcher=None):
        dispatched.extend(items)

    monkeypatch.setattr(notification_outbox, "dispatch_inline", fake_inline)

    job_id = await notification_outbox.enqueue_notifications(notifications, queue_enabled=False)

    assert job_id is None
    assert dispatched == notifications


@pytest.mark.asyncio
async def test_unreachable_queue_falls_back_to_inline(monkeypatch, notifications):
    dispatched = []

    async def broken_pool(settings):
        raise ConnectionError("redis down")

    async def fake_inline(items, dispatcher=None):
        dispatched.extend(items)

    monkeypatch.setattr(notification_outbox, "create_pool", broken_pool)
    monkeypatch.setattr(notification_outbox, "dispatch_inline", fake_inline)

    assert await notification_outbox.enqueue_notifications(notifications, queue_enabled=True) is None
    assert dispatched == notifications


@pytest.mark.asyncio
async def test_worker_task_dispatches_serialized_notifications(notifications, dispatcher, fake_sender):
    summaries = await worker.dispatch_notifications_task(
        {"dispatcher": dispatcher}, notification_outbox.serialize_notifications(notifications)
    )

    assert [s["kind"] for s in summaries] == ["booking_received", "suitable_job"]
    assert len(fake_sender.emails) == 1
    assert len(fake_sender.pushes) == 1


@pytest.mark.asyncio
async def test_expiry_cron_times_out_and_notifies(monkeypatch, session_factory, db, factory, arabic, dispatcher, fake_sender):
    booking = factory.booking(factory.customer(), arabic, will_expire_at=datetime(2000, 1, 1))
    monkeypatch.setattr(worker, "SessionLocal", session_factory)

    result = await worker.expire_pending_bookings_task({"dispatcher": dispatcher})

    assert result == {"expired": 1}
    assert fake_sender.pushes[0]["payload"]["notification_type"] == "job_expired"
    db.expire_all()
    assert db.get(type(booking), booking.id).status == BookingStatus.TIMED_OUT
