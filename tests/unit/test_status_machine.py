from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from interpreter_booking.domain.bookings.enums import BookingStatus
from interpreter_booking.domain.bookings.notifications import Audience, MessageKind
from interpreter_booking.domain.bookings.status_machine import TransitionContext, apply_status_change
from interpreter_booking.errors import ValidationError
from interpreter_booking.utils.booking_time import will_expire_at

NOW = datetime(2026, 3, 10, 10, 0)


def make_booking(status, due=None):
    return SimpleNamespace(id=7, status=status, due=due or NOW + timedelta(days=2))


def intents_of(result):
    return [(i.kind, i.audience) for i in result.side_effects]


def test_timedout_to_pending_reopens_and_fans_out():
    booking = make_booking(BookingStatus.TIMED_OUT)
    result = apply_status_change(booking, BookingStatus.PENDING, TransitionContext(now=NOW))

    assert result.changed
    assert result.error is None
    assert result.updates == {
        "status": BookingStatus.PENDING,
        "created_at": NOW,
        "will_expire_at": will_expire_at(booking.due, NOW),
        "email_sent": False,
        "reminder_email_sent": False,
    }
    assert intents_of(result) == [
        (MessageKind.BOOKING_REOPENED, Audience.CUSTOMER),
        (MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS),
    ]


def test_rule_does_not_mutate_booking():
    booking = make_booking(BookingStatus.TIMED_OUT)
    apply_status_change(booking, BookingStatus.PENDING, TransitionContext(now=NOW))
    assert booking.status == BookingStatus.TIMED_OUT


def test_started_to_completed_requires_comment():
    result = apply_status_change(
        make_booking(BookingStatus.STARTED), BookingStatus.COMPLETED, TransitionContext(now=NOW, session_time="01:00:00")
    )

    assert not result.changed
    assert result.updates == {}
    assert isinstance(result.error, ValidationError)
    assert result.error.message == "Please, add comment"
    assert result.error.field_name == "admin_comments"


def test_started_to_completed_requires_session_time():
    result = apply_status_change(
        make_booking(BookingStatus.STARTED), BookingStatus.COMPLETED, TransitionContext(now=NOW, admin_comment="done")
    )

    assert result.error.message == "Please, add session time"
    assert result.error.field_name == "session_time"


def test_started_to_completed_records_end_and_notifies_both_parties():
    booking = make_booking(BookingStatus.STARTED, due=NOW - timedelta(hours=1, minutes=30))
    result = apply_status_change(
        booking,
        BookingStatus.COMPLETED,
        TransitionContext(now=NOW, admin_comment="done", session_time=" 01:25:00 "),
    )

    assert result.changed
    assert result.updates == {"status": BookingStatus.COMPLETED, "end_at": NOW, "session_time": "01:25:00"}
    assert intents_of(result) == [
        (MessageKind.SESSION_COMPLETED_CUSTOMER, Audience.CUSTOMER),
        (MessageKind.SESSION_COMPLETED_INTERPRETER, Audience.ACTIVE_INTERPRETER),
    ]
    assert result.side_effects[0].params["elapsed"] == "01:30:00"
    assert result.side_effects[0].params["session_text"] == "01 tim 30 min"


def test_pending_to_assigned_without_new_interpreter_is_noop():
    result = apply_status_change(make_booking(BookingStatus.PENDING), BookingStatus.ASSIGNED, TransitionContext(now=NOW))
    assert not result.changed
    assert result.error is None
    assert result.side_effects == []


def test_pending_to_assigned_with_new_interpreter():
    result = apply_status_change(
        make_booking(BookingStatus.PENDING),
        BookingStatus.ASSIGNED,
        TransitionContext(now=NOW, assignment_changed=True),
    )

    assert result.updates == {"status": BookingStatus.ASSIGNED}
    assert intents_of(result) == [
        (MessageKind.INTERPRETER_ACCEPTED, Audience.CUSTOMER),
        (MessageKind.NEW_ASSIGNMENT, Audience.NEW_INTERPRETER),
        (MessageKind.SESSION_START_REMIND, Audience.CUSTOMER),
        (MessageKind.SESSION_START_REMIND, Audience.NEW_INTERPRETER),
    ]


def test_pending_to_timedout_requires_comment():
    result = apply_status_change(make_booking(BookingStatus.PENDING), BookingStatus.TIMED_OUT, TransitionContext(now=NOW))
    assert result.error.field_name == "admin_comments"


def test_pending_to_other_status_emails_customer():
    result = apply_status_change(
        make_booking(BookingStatus.PENDING), "withdrawbefore24", TransitionContext(now=NOW)
    )

    assert result.updates == {"status": BookingStatus.WITHDRAW_BEFORE_24}
    assert intents_of(result) == [(MessageKind.STATUS_CHANGED, Audience.CUSTOMER)]
    assert result.side_effects[0].params == {"old_status": "pending", "new_status": "withdrawbefore24"}


@pytest.mark.parametrize("target", [BookingStatus.WITHDRAW_BEFORE_24, BookingStatus.WITHDRAW_AFTER_24])
def test_assigned_to_withdrawn_notifies_customer_and_interpreter(target):
    result = apply_status_change(make_booking(BookingStatus.ASSIGNED), target, TransitionContext(now=NOW))

    assert result.updates == {"status": target}
    assert intents_of(result) == [
        (MessageKind.BOOKING_WITHDRAWN, Audience.CUSTOMER),
        (MessageKind.BOOKING_WITHDRAWN, Audience.ACTIVE_INTERPRETER),
    ]


@pytest.mark.parametrize(
    "old", [BookingStatus.COMPLETED, BookingStatus.WITHDRAW_AFTER_24, BookingStatus.ASSIGNED]
)
def test_to_timedout_with_comment_changes_status_silently(old):
    result = apply_status_change(
        make_booking(old), BookingStatus.TIMED_OUT, TransitionContext(now=NOW, admin_comment="no-show")
    )
    assert result.changed
    assert result.updates == {"status": BookingStatus.TIMED_OUT}
    assert result.side_effects == []


@pytest.mark.parametrize(
    "old, new",
    [
        (BookingStatus.COMPLETED, BookingStatus.PENDING),
        (BookingStatus.STARTED, BookingStatus.ASSIGNED),
        (BookingStatus.WITHDRAW_BEFORE_24, BookingStatus.PENDING),
        (BookingStatus.ASSIGNED, BookingStatus.ASSIGNED),
        (BookingStatus.PENDING, "bogus"),
    ],
)
def test_uncovered_combinations_are_noops(old, new):
    result = apply_status_change(make_booking(old), new, TransitionContext(now=NOW, admin_comment="x"))
    assert not result.changed
    assert result.error is None
    assert result.updates == {}
