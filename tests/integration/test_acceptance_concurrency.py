from datetime import timedelta

import pytest
from sqlalchemy.orm.exc import StaleDataError

from interpreter_booking import models
from interpreter_booking.domain.bookings.context import ActingUser
from interpreter_booking.domain.bookings.enums import BookingStatus
from interpreter_booking.domain.bookings.service import BookingService
from interpreter_booking.errors import ConflictError


def test_second_acceptance_of_same_booking_conflicts(session_factory, factory, arabic, clock):
    """Two interpreters accepting through separate sessions: exactly one wins"""
    customer = factory.customer()
    first = factory.interpreter([arabic])
    second = factory.interpreter([arabic])
    booking = factory.booking(customer, arabic)

    session_a, session_b = session_factory(), session_factory()
    try:
        service_a = BookingService(session_a, clock=clock)
        service_b = BookingService(session_b, clock=clock)

        accepted = service_a.accept_booking(booking.id, ActingUser.from_user(first))
        assert accepted.booking.status == BookingStatus.ASSIGNED

        with pytest.raises(ConflictError):
            service_b.accept_booking(booking.id, ActingUser.from_user(second))
    finally:
        session_a.close()
        session_b.close()

    check = session_factory()
    try:
        active = (
            check.query(models.Assignment)
            .filter_by(booking_id=booking.id, cancel_at=None, completed_at=None)
            .all()
        )
        assert [a.interpreter_id for a in active] == [first.id]
    finally:
        check.close()


def test_acceptance_racing_past_the_checks_loses_on_commit(session_factory, factory, arabic, now):
    """B passes every check, then A commits first: B must not also win"""
    customer = factory.customer()
    first = factory.interpreter([arabic])
    second = factory.interpreter([arabic])
    booking = factory.booking(customer, arabic)

    session_a, session_b = session_factory(), session_factory()
    try:
        service_a = BookingService(session_a, clock=lambda: now)
        winner = []

        def clock_after_checks():
            # Runs once B has read the pending booking and found no assignment
            if not winner:
                winner.append(service_a.accept_booking(booking.id, ActingUser.from_user(first)))
            return now

        service_b = BookingService(session_b, clock=clock_after_checks)

        with pytest.raises(ConflictError):
            service_b.accept_booking(booking.id, ActingUser.from_user(second))
        assert winner[0].booking.status == BookingStatus.ASSIGNED
    finally:
        session_a.close()
        session_b.close()

    check = session_factory()
    try:
        active = (
            check.query(models.Assignment)
            .filter_by(booking_id=booking.id, cancel_at=None, completed_at=None)
            .all()
        )
        assert [a.interpreter_id for a in active] == [first.id]
        assert check.get(models.Booking, booking.id).version == 2
    finally:
        check.close()


def test_concurrent_writers_of_one_booking_hit_the_version_check(session_factory, factory, arabic):
    """A write based on a stale read of the booking row is rejected"""
    booking = factory.booking(factory.customer(), arabic)

    session_a, session_b = session_factory(), session_factory()
    try:
        stale = session_b.get(models.Booking, booking.id)
        assert stale.version == 1

        fresh = session_a.get(models.Booking, booking.id)
        fresh.status = BookingStatus.ASSIGNED
        session_a.commit()

        stale.status = BookingStatus.WITHDRAW_BEFORE_24
        with pytest.raises(StaleDataError):
            session_b.commit()
        session_b.rollback()
    finally:
        session_a.close()
        session_b.close()


def test_interpreter_cannot_accept_overlapping_bookings(db, factory, arabic, clock, now):
    customer = factory.customer()
    interpreter = factory.interpreter([arabic])
    due = now + timedelta(days=2)
    morning = factory.booking(customer, arabic, due=due, duration=60)
    overlapping = factory.booking(customer, arabic, due=due + timedelta(minutes=30), duration=60)
    back_to_back = factory.booking(customer, arabic, due=due + timedelta(minutes=60), duration=60)
    service = BookingService(db, clock=clock)
    acting_user = ActingUser.from_user(interpreter)

    service.accept_booking(morning.id, acting_user)
    with pytest.raises(ConflictError):
        service.accept_booking(overlapping.id, acting_user)
    service.accept_booking(back_to_back.id, acting_user)

    db.expire_all()
    assert db.get(models.Booking, overlapping.id).status == BookingStatus.PENDING
    assert db.get(models.Booking, back_to_back.id).status == BookingStatus.ASSIGNED
