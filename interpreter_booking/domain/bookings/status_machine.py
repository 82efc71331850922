"""
Booking Status State Machine

Pure transition rules for admin status edits. apply_status_change never touches
the database or the booking it is given: it returns the field updates to write
and the notifications the change should raise. Combinations not covered by a
rule are no-ops (changed=False, no error).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from ...errors import ValidationError
from ...utils.booking_time import format_elapsed, session_time_text, will_expire_at
from .enums import WITHDRAWN_STATUSES, BookingStatus
from .notifications import Audience, MessageKind, NotificationIntent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionContext:
    now: datetime
    assignment_changed: bool = False
    admin_comment: Optional[str] = None
    session_time: Optional[str] = None


@dataclass
class TransitionResult:
    changed: bool = False
    side_effects: list[NotificationIntent] = field(default_factory=list)
    updates: dict = field(default_factory=dict)
    error: Optional[ValidationError] = None


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _require_comment(ctx: TransitionContext) -> Optional[ValidationError]:
    if _blank(ctx.admin_comment):
        return ValidationError("Please, add comment", field_name="admin_comments")
    return None


def _fail(error: ValidationError) -> TransitionResult:
    return TransitionResult(changed=False, error=error)


def _from_timedout(booking, new: BookingStatus, ctx: TransitionContext) -> TransitionResult:
    if new == BookingStatus.PENDING:
        updates = {
            "status": BookingStatus.PENDING,
            "created_at": ctx.now,
            "will_expire_at": will_expire_at(booking.due, ctx.now),
            "email_sent": False,
            "reminder_email_sent": False,
        }
        return TransitionResult(
            changed=True,
            updates=updates,
            side_effects=[
                NotificationIntent(MessageKind.BOOKING_REOPENED, Audience.CUSTOMER),
                NotificationIntent(MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS),
            ],
        )
    if ctx.assignment_changed:
        return TransitionResult(
            changed=True,
            updates={"status": new},
            side_effects=[NotificationIntent(MessageKind.INTERPRETER_ACCEPTED, Audience.CUSTOMER)],
        )
    return TransitionResult()


def _from_completed(booking, new: BookingStatus, ctx: TransitionContext) -> TransitionResult:
    if new != BookingStatus.TIMED_OUT:
        return TransitionResult()
    error = _require_comment(ctx)
    if error:
        return _fail(error)
    return TransitionResult(changed=True, updates={"status": new})


def _from_started(booking, new: BookingStatus, ctx: TransitionContext) -> TransitionResult:
    if new != BookingStatus.COMPLETED:
        return TransitionResult()
    error = _require_comment(ctx)
    if error:
        return _fail(error)
    if _blank(ctx.session_time):
        return _fail(ValidationError("Please, add session time", field_name="session_time"))

    elapsed = format_elapsed(booking.due, ctx.now)
    params = {"elapsed": elapsed, "session_text": session_time_text(elapsed)}
    return TransitionResult(
        changed=True,
        updates={"status": new, "end_at": ctx.now, "session_time": ctx.session_time.strip()},
        side_effects=[
            NotificationIntent(MessageKind.SESSION_COMPLETED_CUSTOMER, Audience.CUSTOMER, params),
            NotificationIntent(
                MessageKind.SESSION_COMPLETED_INTERPRETER, Audience.ACTIVE_INTERPRETER, params
            ),
        ],
    )


def _from_pending(booking, new: BookingStatus, ctx: TransitionContext) -> TransitionResult:
    if new == BookingStatus.ASSIGNED:
        if not ctx.assignment_changed:
            return TransitionResult()
        return TransitionResult(
            changed=True,
            updates={"status": new},
            side_effects=[
                NotificationIntent(MessageKind.INTERPRETER_ACCEPTED, Audience.CUSTOMER),
                NotificationIntent(MessageKind.NEW_ASSIGNMENT, Audience.NEW_INTERPRETER),
                NotificationIntent(MessageKind.SESSION_START_REMIND, Audience.CUSTOMER),
                NotificationIntent(MessageKind.SESSION_START_REMIND, Audience.NEW_INTERPRETER),
            ],
        )
    if new == BookingStatus.TIMED_OUT:
        error = _require_comment(ctx)
        if error:
            return _fail(error)
    return TransitionResult(
        changed=True,
        updates={"status": new},
        side_effects=[
            NotificationIntent(
                MessageKind.STATUS_CHANGED,
                Audience.CUSTOMER,
                {"old_status": BookingStatus.PENDING.value, "new_status": new.value},
            )
        ],
    )


def _from_withdrawafter24(booking, new: BookingStatus, ctx: TransitionContext) -> TransitionResult:
    if new != BookingStatus.TIMED_OUT:
        return TransitionResult()
    error = _require_comment(ctx)
    if error:
        return _fail(error)
    return TransitionResult(changed=True, updates={"status": new})


def _from_assigned(booking, new: BookingStatus, ctx: TransitionContext) -> TransitionResult:
    if new == BookingStatus.TIMED_OUT:
        error = _require_comment(ctx)
        if error:
            return _fail(error)
        return TransitionResult(changed=True, updates={"status": new})
    if new in WITHDRAWN_STATUSES:
        return TransitionResult(
            changed=True,
            updates={"status": new},
            side_effects=[
                NotificationIntent(MessageKind.BOOKING_WITHDRAWN, Audience.CUSTOMER),
                NotificationIntent(MessageKind.BOOKING_WITHDRAWN, Audience.ACTIVE_INTERPRETER),
            ],
        )
    return TransitionResult()


_RULES: dict[BookingStatus, Callable[..., TransitionResult]] = {
    BookingStatus.TIMED_OUT: _from_timedout,
    BookingStatus.COMPLETED: _from_completed,
    BookingStatus.STARTED: _from_started,
    BookingStatus.PENDING: _from_pending,
    BookingStatus.WITHDRAW_AFTER_24: _from_withdrawafter24,
    BookingStatus.ASSIGNED: _from_assigned,
}


def apply_status_change(booking, requested_status, context: TransitionContext) -> TransitionResult:
    """
    Validate a requested status change against the transition table.

    Args:
        booking: Booking (or any object with status and due) in its current state
        requested_status: Target status, enum member or raw value
        context: Clock, admin comment, session time and whether the interpreter changed

    Returns:
        TransitionResult; error is set (and updates empty) when a required field is missing
    """
    try:
        old = BookingStatus(booking.status)
        new = BookingStatus(requested_status)
    except ValueError:
        logger.debug(f"Ignoring unknown status change {booking.status!r} -> {requested_status!r}")
        return TransitionResult()

    if old == new:
        return TransitionResult()

    rule = _RULES.get(old)
    if rule is None:
        return TransitionResult()

    result = rule(booking, new, context)
    if result.changed:
        logger.info(f"🔄 Booking {getattr(booking, 'id', None)}: status {old.value} -> {new.value}")
    return result
