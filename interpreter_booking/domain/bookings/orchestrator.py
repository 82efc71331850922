"""
Booking Update Orchestrator

Applies an admin edit to a booking in one transaction: interpreter change,
due change, language change, status transition, comment and reference. The
notifications the edit causes are resolved after the commit and returned to
the caller, which hands them to the dispatcher outside the transaction.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...errors import BookingError, ConflictError, NotFoundError, ValidationError
from ...models import Booking, User
from ...services.notification_service import (
    NotificationTargeter,
    OutboundNotification,
    RecipientContext,
)
from ...utils.booking_time import format_due, utcnow
from .context import ActingUser
from .enums import Role
from .notifications import Audience, MessageKind, NotificationIntent
from .repository import BookingRepository
from .schemas import BookingUpdateRequest
from .status_machine import TransitionContext, apply_status_change

logger = logging.getLogger(__name__)

UPDATED = "Updated"
NOTIFICATIONS_SENT = "NotificationsSent"


@dataclass
class UpdateOutcome:
    result: str
    booking: Booking
    notifications: list[OutboundNotification] = field(default_factory=list)
    log_data: list[dict] = field(default_factory=list)


class BookingUpdateOrchestrator:
    """Sequences diff detection, status transition, persistence and notification targeting"""

    def __init__(
        self,
        db: Session,
        clock: Callable = utcnow,
        targeter: Optional[NotificationTargeter] = None,
        repo: Optional[BookingRepository] = None,
    ):
        self.db = db
        self.clock = clock
        self.repo = repo or BookingRepository()
        self.targeter = targeter or NotificationTargeter(db)

    def _requested_interpreter(self, edit: BookingUpdateRequest) -> Optional[User]:
        if edit.interpreter_id is not None:
            user = self.repo.get_user(self.db, edit.interpreter_id)
            if user is None:
                raise NotFoundError(f"Interpreter {edit.interpreter_id} not found", field_name="interpreter_id")
        elif edit.interpreter_email:
            user = self.repo.get_user_by_email(self.db, edit.interpreter_email)
            if user is None:
                raise NotFoundError(
                    f"No user with email {edit.interpreter_email}", field_name="interpreter_email"
                )
        else:
            return None

        if user.role != Role.INTERPRETER:
            raise ValidationError(f"User {user.id} is not an interpreter", field_name="interpreter_id")
        return user

    def update_booking(self, booking_id: int, edit: BookingUpdateRequest, acting_user: ActingUser) -> UpdateOutcome:
        """
        Apply an admin edit to a booking.

        Args:
            booking_id: Booking to edit
            edit: Requested field values
            acting_user: Admin performing the edit (recorded in the change log)

        Returns:
            UpdateOutcome with "Updated" when the booking is already due, otherwise
            "NotificationsSent" together with the notifications to dispatch

        Raises:
            NotFoundError: booking, interpreter or language does not exist
            ValidationError: the status transition is missing a required field
            ConflictError: the booking was changed concurrently
        """
        try:
            booking = self.repo.get_booking(self.db, booking_id, for_update=True)
            if booking is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            if edit.expected_version is not None and edit.expected_version != booking.version:
                raise ConflictError("Booking was modified by someone else, reload and try again")

            now = self.clock()
            log_data = []

            # 1. Current assignment
            current = self.repo.get_current_assignment(self.db, booking.id)
            old_interpreter = current.interpreter if current else None

            # 2. Interpreter change
            new_interpreter = self._requested_interpreter(edit)
            assignment_changed = new_interpreter is not None and (
                old_interpreter is None or new_interpreter.id != old_interpreter.id
            )
            if assignment_changed:
                self.repo.cancel_active_assignments(self.db, booking.id, now)
                self.repo.create_assignment(self.db, booking.id, new_interpreter.id, now)
                log_data.append(
                    {
                        "old_interpreter": old_interpreter.email if old_interpreter else None,
                        "new_interpreter": new_interpreter.email,
                    }
                )

            # 3. Due change
            old_due = booking.due
            due_changed = edit.due is not None and edit.due != booking.due
            if due_changed:
                booking.due = edit.due
                log_data.append({"old_due": format_due(old_due), "new_due": format_due(edit.due)})

            # 4. Language change
            old_language = booking.language.name if booking.language else None
            language_changed = (
                edit.source_language_id is not None and edit.source_language_id != booking.source_language_id
            )
            new_language = None
            if language_changed:
                new_language = self.repo.get_language(self.db, edit.source_language_id)
                if new_language is None:
                    raise NotFoundError(
                        f"Language {edit.source_language_id} not found", field_name="source_language_id"
                    )
                booking.source_language_id = new_language.id
                booking.language = new_language
                log_data.append({"old_lang": old_language, "new_lang": new_language.name})

            # 5. Status transition
            status_intents: list[NotificationIntent] = []
            if edit.status is not None:
                old_status = booking.status
                result = apply_status_change(
                    booking,
                    edit.status,
                    TransitionContext(
                        now=now,
                        assignment_changed=assignment_changed,
                        admin_comment=edit.admin_comments,
                        session_time=edit.session_time,
                    ),
                )
                if result.error is not None:
                    raise result.error
                if result.changed:
                    self.repo.apply_updates(booking, result.updates)
                    status_intents = result.side_effects
                    log_data.append({"old_status": _value(old_status), "new_status": _value(edit.status)})

            # 6. Always written
            booking.admin_comments = edit.admin_comments
            booking.reference = edit.reference

            # 7. Persist
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent update of booking {booking_id}: {e}")
            raise ConflictError("Booking was modified by someone else, reload and try again") from e
        except BookingError:
            self.db.rollback()
            raise

        logger.info(f"✏️ Booking {booking_id} updated by user {acting_user.id}: {log_data}")

        active_interpreter = new_interpreter if assignment_changed else old_interpreter
        context = RecipientContext(
            active_interpreter=active_interpreter,
            old_interpreter=old_interpreter if assignment_changed else None,
            new_interpreter=new_interpreter if assignment_changed else None,
        )

        if booking.due <= now:
            notifications = self.targeter.resolve(booking, status_intents, context)
            return UpdateOutcome(UPDATED, booking, notifications, log_data)

        intents = list(status_intents)
        if due_changed:
            params = {"old_due": format_due(old_due), "new_due": format_due(booking.due)}
            intents += [
                NotificationIntent(MessageKind.DUE_CHANGED, Audience.CUSTOMER, params),
                NotificationIntent(MessageKind.DUE_CHANGED, Audience.ACTIVE_INTERPRETER, params),
            ]
        if assignment_changed:
            intents += [
                NotificationIntent(MessageKind.INTERPRETER_CHANGED, Audience.CUSTOMER),
                NotificationIntent(MessageKind.INTERPRETER_REMOVED, Audience.OLD_INTERPRETER),
                NotificationIntent(MessageKind.NEW_ASSIGNMENT, Audience.NEW_INTERPRETER),
            ]
        if language_changed:
            params = {"old_language": old_language, "new_language": new_language.name}
            intents += [
                NotificationIntent(MessageKind.LANGUAGE_CHANGED, Audience.CUSTOMER, params),
                NotificationIntent(MessageKind.LANGUAGE_CHANGED, Audience.ACTIVE_INTERPRETER, params),
            ]

        # A status rule and a diff leg can raise the same (kind, audience) pair
        intents = list(dict.fromkeys(intents))
        notifications = self.targeter.resolve(booking, intents, context)
        return UpdateOutcome(NOTIFICATIONS_SENT, booking, notifications, log_data)


def _value(member) -> str:
    return getattr(member, "value", member)
