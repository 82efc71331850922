"""Booking service - Business logic for the booking lifecycle"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...config import BUSINESS_TIMEZONE, BookingConfig
from ...errors import BookingError, ConflictError, NotFoundError, ValidationError
from ...models import Booking, User
from ...services.notification_service import (
    NotificationTargeter,
    OutboundNotification,
    RecipientContext,
)
from ...utils.booking_time import (
    format_due,
    format_elapsed,
    session_time_text,
    utcnow,
    will_expire_at,
)
from .context import ActingUser
from .eligibility import EligibilityMatcher
from .enums import (
    BookingStatus,
    Role,
    certification_from_job_for,
    gender_from_job_for,
    job_type_for_consumer,
)
from .notifications import Audience, MessageKind, NotificationIntent
from .orchestrator import BookingUpdateOrchestrator, UpdateOutcome
from .repository import BookingRepository
from .schemas import BookingCreate, BookingEmailConfirm, BookingUpdateRequest, DistanceFeedRequest

logger = logging.getLogger(__name__)


@dataclass
class BookingAction:
    booking: Booking
    notifications: list[OutboundNotification] = field(default_factory=list)
    message: Optional[str] = None


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        config: Optional[BookingConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.config = config or BookingConfig()
        self.clock = clock
        self.repo = BookingRepository()
        self.matcher = EligibilityMatcher(db, self.repo)
        self.targeter = NotificationTargeter(db, self.matcher)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_booking(self, booking_id: int, for_update: bool = False) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def _commit(self, booking_id: int) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent update of booking {booking_id}: {e}")
            raise ConflictError("Booking was modified by someone else, reload and try again") from e

    def _active_interpreter(self, booking: Booking) -> Optional[User]:
        active = self.repo.get_active_assignments(self.db, booking.id)
        return active[0].interpreter if active else None

    def _check_owner_or_admin(self, booking: Booking, acting_user: ActingUser) -> None:
        if not acting_user.is_admin and booking.customer_id != acting_user.id:
            raise NotFoundError(f"Booking {booking.id} not found")

    def _local_due(self, data: BookingCreate) -> datetime:
        local = datetime.combine(data.due_date, data.due_time, tzinfo=ZoneInfo(BUSINESS_TIMEZONE))
        return local.astimezone(timezone.utc).replace(tzinfo=None)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(self, acting_user: ActingUser, data: BookingCreate) -> Booking:
        """Create a pending booking for a customer"""
        if not acting_user.is_customer:
            raise ValidationError("Translator cannot create a booking", field_name="user_type")
        if data.source_language_id is None:
            raise ValidationError("You must fill in all fields", field_name="source_language_id")

        now = self.clock()
        if data.immediate:
            if not data.duration:
                raise ValidationError("You must fill in all fields", field_name="duration")
            due = now + timedelta(minutes=self.config.immediate_lead_minutes)
            phone_capable, in_person_capable = True, data.physical
        else:
            if data.due_date is None:
                raise ValidationError("You must fill in all fields", field_name="due_date")
            if data.due_time is None:
                raise ValidationError("You must fill in all fields", field_name="due_time")
            if not data.phone and not data.physical:
                raise ValidationError("You must choose phone or in-person", field_name="phone")
            if not data.duration:
                raise ValidationError("You must fill in all fields", field_name="duration")
            due = self._local_due(data)
            if due < now:
                raise ValidationError("Can't create booking in past", field_name="due_date")
            phone_capable, in_person_capable = data.phone, data.physical

        if self.repo.get_language(self.db, data.source_language_id) is None:
            raise NotFoundError(
                f"Language {data.source_language_id} not found", field_name="source_language_id"
            )

        customer = self.repo.get_user(self.db, acting_user.id)
        if customer is None:
            raise NotFoundError(f"User {acting_user.id} not found")
        profile = customer.profile

        if data.requested_interpreter_id is not None:
            requested = self.repo.get_user(self.db, data.requested_interpreter_id)
            if requested is None or requested.role != Role.INTERPRETER:
                raise NotFoundError(
                    f"Interpreter {data.requested_interpreter_id} not found",
                    field_name="requested_interpreter_id",
                )

        booking = self.repo.create_booking(
            self.db,
            customer_id=customer.id,
            source_language_id=data.source_language_id,
            status=BookingStatus.PENDING,
            immediate=data.immediate,
            due=due,
            duration=data.duration,
            gender=gender_from_job_for(data.job_for),
            certification=certification_from_job_for(data.job_for),
            job_type=job_type_for_consumer(profile.consumer_type if profile else None),
            phone_capable=phone_capable,
            in_person_capable=in_person_capable,
            town=data.town or (profile.city if profile else None),
            address=data.address,
            instructions=data.instructions,
            reference=data.reference,
            by_admin=data.by_admin,
            requested_interpreter_id=data.requested_interpreter_id,
            created_at=now,
            will_expire_at=will_expire_at(due, now),
        )
        self.db.commit()
        self.db.refresh(booking)
        logger.info(
            f"✅ Booking {booking.id} created by customer {customer.id} "
            f"({'immediate' if booking.immediate else format_due(booking.due)})"
        )
        return booking

    def confirm_booking_email(
        self, booking_id: int, data: BookingEmailConfirm, acting_user: ActingUser
    ) -> BookingAction:
        """Store contact details, email the customer and offer the booking to interpreters"""
        booking = self._get_booking(booking_id, for_update=True)
        self._check_owner_or_admin(booking, acting_user)

        profile = booking.customer.profile if booking.customer else None
        booking.user_email = data.user_email or None
        booking.reference = data.reference
        if data.address:
            booking.address = data.address
            booking.instructions = data.instructions
            booking.town = data.town
        elif profile is not None:
            booking.address = booking.address or profile.address
            booking.instructions = booking.instructions or profile.instructions
            booking.town = booking.town or profile.city
        booking.email_sent = True
        self._commit(booking.id)

        notifications = self.targeter.resolve(
            booking,
            [
                NotificationIntent(MessageKind.BOOKING_RECEIVED, Audience.CUSTOMER),
                NotificationIntent(MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS),
            ],
        )
        return BookingAction(booking, notifications, "Booking confirmed")

    # ------------------------------------------------------------------
    # Interpreter actions
    # ------------------------------------------------------------------

    def accept_booking(self, booking_id: int, acting_user: ActingUser) -> BookingAction:
        """
        Accept a pending booking as an interpreter.

        The interpreter row is locked first so overlapping acceptances by the
        same interpreter run one after another; the booking row carries a
        version counter so two interpreters racing for the same booking cannot
        both succeed.
        """
        if not acting_user.is_interpreter:
            raise ValidationError("Only interpreters can accept bookings", field_name="user_type")

        try:
            if self.repo.lock_user(self.db, acting_user.id) is None:
                raise NotFoundError(f"User {acting_user.id} not found")
            booking = self._get_booking(booking_id, for_update=True)

            if booking.status != BookingStatus.PENDING or self.repo.get_active_assignments(self.db, booking.id):
                raise ConflictError("Booking is already accepted by another interpreter")

            interpreter = self.repo.get_user(self.db, acting_user.id)
            if not self.matcher.is_eligible(booking, interpreter):
                raise ValidationError("Booking is not available to you", field_name="booking_id")

            if self.repo.has_overlapping_assignment(self.db, interpreter.id, booking, exclude_booking_id=booking.id):
                raise ConflictError("You already have a booking at that time. The booking was not accepted.")

            now = self.clock()
            self.repo.create_assignment(self.db, booking.id, interpreter.id, now)
            booking.status = BookingStatus.ASSIGNED
            self._commit(booking.id)
        except BookingError:
            self.db.rollback()
            raise

        logger.info(f"✅ Booking {booking.id} accepted by interpreter {interpreter.id}")
        notifications = self.targeter.resolve(
            booking,
            [
                NotificationIntent(MessageKind.INTERPRETER_ACCEPTED, Audience.CUSTOMER),
                NotificationIntent(MessageKind.JOB_ACCEPTED, Audience.CUSTOMER),
            ],
        )
        language = booking.language.name if booking.language else ""
        message = (
            f"You have accepted the booking for {language} interpreter "
            f"{booking.duration}min {format_due(booking.due)}"
        )
        return BookingAction(booking, notifications, message)

    def cancel_booking(self, booking_id: int, acting_user: ActingUser) -> BookingAction:
        """Withdraw as the customer, or hand the booking back as the assigned interpreter"""
        booking = self._get_booking(booking_id, for_update=True)
        now = self.clock()
        interpreter = self._active_interpreter(booking)

        if acting_user.is_customer or acting_user.is_admin:
            self._check_owner_or_admin(booking, acting_user)
            if booking.status not in (BookingStatus.PENDING, BookingStatus.ASSIGNED):
                raise ConflictError("Booking can no longer be cancelled")

            notice = booking.due - now
            booking.withdraw_at = now
            booking.status = (
                BookingStatus.WITHDRAW_BEFORE_24
                if notice >= timedelta(hours=self.config.cancel_notice_hours)
                else BookingStatus.WITHDRAW_AFTER_24
            )
            self.repo.cancel_active_assignments(self.db, booking.id, now)
            self._commit(booking.id)
            logger.info(f"🚫 Booking {booking.id} withdrawn by customer ({booking.status.value})")

            intents = []
            if interpreter is not None:
                intents.append(
                    NotificationIntent(MessageKind.JOB_CANCELLED, Audience.ACTIVE_INTERPRETER, {"cancelled_by": "customer"})
                )
            notifications = self.targeter.resolve(
                booking, intents, RecipientContext(active_interpreter=interpreter)
            )
            return BookingAction(booking, notifications, "Booking cancelled")

        if interpreter is None or interpreter.id != acting_user.id:
            raise NotFoundError(f"Booking {booking.id} not found")
        if booking.due - now <= timedelta(hours=self.config.cancel_notice_hours):
            raise ConflictError(
                "You cannot cancel a booking that starts within 24 hours. Please call support to cancel."
            )

        self.repo.cancel_active_assignments(self.db, booking.id, now)
        booking.status = BookingStatus.PENDING
        booking.created_at = now
        booking.will_expire_at = will_expire_at(booking.due, now)
        self._commit(booking.id)
        logger.info(f"🚫 Interpreter {acting_user.id} handed back booking {booking.id}")

        notifications = self.targeter.resolve(
            booking,
            [
                NotificationIntent(MessageKind.JOB_CANCELLED, Audience.CUSTOMER, {"cancelled_by": "interpreter"}),
                NotificationIntent(MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS),
            ],
            RecipientContext(exclude_user_id=acting_user.id),
        )
        return BookingAction(booking, notifications, "Booking cancelled")

    def end_session(self, booking_id: int, acting_user: ActingUser) -> BookingAction:
        """Close a started session and record its length"""
        booking = self._get_booking(booking_id, for_update=True)
        active = self.repo.get_active_assignments(self.db, booking.id)
        interpreter = active[0].interpreter if active else None
        is_party = booking.customer_id == acting_user.id or (
            interpreter is not None and interpreter.id == acting_user.id
        )
        if not (is_party or acting_user.is_admin):
            raise NotFoundError(f"Booking {booking.id} not found")

        if booking.status != BookingStatus.STARTED:
            return BookingAction(booking, [], "Session already ended")

        now = self.clock()
        elapsed = format_elapsed(booking.due, now)
        booking.end_at = now
        booking.status = BookingStatus.COMPLETED
        booking.session_time = elapsed
        for assignment in active:
            assignment.completed_at = now
            assignment.completed_by = acting_user.id
        self._commit(booking.id)
        logger.info(f"🏁 Session for booking {booking.id} ended by user {acting_user.id} ({elapsed})")

        params = {"elapsed": elapsed, "session_text": session_time_text(elapsed)}
        counterpart = Audience.ACTIVE_INTERPRETER if acting_user.id == booking.customer_id else Audience.CUSTOMER
        notifications = self.targeter.resolve(
            booking,
            [
                NotificationIntent(MessageKind.SESSION_COMPLETED_CUSTOMER, Audience.CUSTOMER, params),
                NotificationIntent(MessageKind.SESSION_COMPLETED_INTERPRETER, Audience.ACTIVE_INTERPRETER, params),
                NotificationIntent(MessageKind.SESSION_ENDED, counterpart, params),
            ],
            RecipientContext(active_interpreter=interpreter),
        )
        return BookingAction(booking, notifications, "Session ended")

    def customer_not_call(self, booking_id: int, acting_user: ActingUser) -> BookingAction:
        """Mark a booking as not carried out because the customer never called"""
        booking = self._get_booking(booking_id, for_update=True)
        active = self.repo.get_active_assignments(self.db, booking.id)
        interpreter = active[0].interpreter if active else None
        if not acting_user.is_admin and (interpreter is None or interpreter.id != acting_user.id):
            raise NotFoundError(f"Booking {booking.id} not found")

        now = self.clock()
        booking.end_at = now
        booking.status = BookingStatus.NOT_CARRIED_OUT_CUSTOMER
        for assignment in active:
            assignment.completed_at = now
            assignment.completed_by = assignment.interpreter_id
        self._commit(booking.id)
        logger.info(f"📵 Booking {booking.id} marked as not carried out by customer")
        return BookingAction(booking, [], "Status changed")

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    def update_booking(
        self, booking_id: int, edit: BookingUpdateRequest, acting_user: ActingUser
    ) -> UpdateOutcome:
        orchestrator = BookingUpdateOrchestrator(self.db, self.clock, self.targeter, self.repo)
        return orchestrator.update_booking(booking_id, edit, acting_user)

    def reopen(self, booking_id: int, acting_user: ActingUser) -> BookingAction:
        """
        Offer a booking to interpreters again.

        A timed-out booking is cloned into a new pending booking; any other
        booking is reset to pending in place. Active assignments of the
        original are cancelled either way.
        """
        source = self._get_booking(booking_id, for_update=True)
        self._check_owner_or_admin(source, acting_user)
        now = self.clock()

        self.repo.cancel_active_assignments(self.db, source.id, now)
        if source.status == BookingStatus.TIMED_OUT:
            booking = self.repo.create_booking(
                self.db,
                customer_id=source.customer_id,
                source_language_id=source.source_language_id,
                status=BookingStatus.PENDING,
                immediate=source.immediate,
                due=source.due,
                duration=source.duration,
                gender=source.gender,
                certification=source.certification,
                job_type=source.job_type,
                phone_capable=source.phone_capable,
                in_person_capable=source.in_person_capable,
                town=source.town,
                address=source.address,
                instructions=source.instructions,
                user_email=source.user_email,
                reference=source.reference,
                requested_interpreter_id=source.requested_interpreter_id,
                admin_comments=f"This booking is a reopening of booking #{source.id}",
                reopened_from_id=source.id,
                created_at=now,
                will_expire_at=will_expire_at(source.due, now),
            )
        else:
            booking = source
            booking.status = BookingStatus.PENDING
            booking.created_at = now
            booking.will_expire_at = will_expire_at(booking.due, now)
            booking.email_sent = False
            booking.reminder_email_sent = False
            booking.withdraw_at = None
        self._commit(source.id)
        logger.info(f"🔁 Booking {source.id} reopened as booking {booking.id}")

        notifications = self.targeter.resolve(
            booking, [NotificationIntent(MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS)]
        )
        return BookingAction(booking, notifications, "Booking reopened")

    def record_distance_feed(self, data: DistanceFeedRequest) -> Booking:
        """Store travel distance/time and admin flags for a booking"""
        if data.booking_id is None:
            raise ValidationError("Booking id is required", field_name="booking_id")
        if data.flagged and not (data.admin_comment or "").strip():
            raise ValidationError("Please, add comment", field_name="admin_comment")

        booking = self._get_booking(data.booking_id, for_update=True)
        if data.distance is not None or data.time is not None:
            distance = self.repo.get_or_create_distance(self.db, booking.id)
            if data.distance is not None:
                distance.distance = data.distance
            if data.time is not None:
                distance.time = data.time

        if data.admin_comment or data.session_time or data.flagged or data.manually_handled or data.by_admin:
            booking.admin_comments = data.admin_comment
            booking.session_time = data.session_time
            booking.flagged = data.flagged
            booking.manually_handled = data.manually_handled
            booking.by_admin = data.by_admin
        self._commit(booking.id)
        return booking

    def resend_notifications(self, booking_id: int) -> list[OutboundNotification]:
        booking = self._get_booking(booking_id)
        return self.targeter.resolve(
            booking, [NotificationIntent(MessageKind.SUITABLE_JOB, Audience.ELIGIBLE_INTERPRETERS)]
        )

    def resend_sms(self, booking_id: int) -> list[OutboundNotification]:
        booking = self._get_booking(booking_id)
        return self.targeter.resolve(
            booking, [NotificationIntent(MessageKind.SUITABLE_JOB_SMS, Audience.ELIGIBLE_INTERPRETERS)]
        )

    def expire_pending_bookings(self) -> list[OutboundNotification]:
        """Time out pending bookings nobody accepted and tell their customers"""
        now = self.clock()
        notifications = []
        for booking in self.repo.get_expired_pending_bookings(self.db, now):
            booking.status = BookingStatus.TIMED_OUT
            try:
                self._commit(booking.id)
            except ConflictError:
                logger.warning(f"⚠️ Booking {booking.id} changed while expiring, skipping")
                continue
            logger.info(f"⌛ Booking {booking.id} timed out")
            notifications += self.targeter.resolve(
                booking, [NotificationIntent(MessageKind.JOB_EXPIRED, Audience.CUSTOMER)]
            )
        return notifications

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: int, acting_user: ActingUser) -> Booking:
        """A booking visible to its customer, any interpreter ever assigned to it, and admins"""
        booking = self._get_booking(booking_id)
        if acting_user.is_admin or booking.customer_id == acting_user.id:
            return booking
        if any(a.interpreter_id == acting_user.id for a in booking.assignments):
            return booking
        raise NotFoundError(f"Booking {booking_id} not found")

    def potential_bookings(self, acting_user: ActingUser) -> list[Booking]:
        interpreter = self.repo.get_user(self.db, acting_user.id)
        if interpreter is None:
            raise NotFoundError(f"User {acting_user.id} not found")
        return self.matcher.find_bookings_for_interpreter(interpreter)

    def list_user_bookings(self, user_id: int) -> dict:
        user = self.repo.get_user(self.db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        if user.role == Role.CUSTOMER:
            bookings = self.repo.get_customer_open_bookings(self.db, user.id)
            user_type = "customer"
        elif user.role == Role.INTERPRETER:
            bookings = self.repo.get_interpreter_bookings(self.db, user.id)
            user_type = "interpreter"
        else:
            bookings, user_type = [], user.role.value

        return {
            "user_type": user_type,
            "emergency_bookings": [b for b in bookings if b.immediate],
            "normal_bookings": [b for b in bookings if not b.immediate],
        }

    def booking_history(self, user_id: int, page: int = 1) -> dict:
        user = self.repo.get_user(self.db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        page = max(page, 1)
        limit = self.config.history_page_size
        offset = (page - 1) * limit
        if user.role == Role.CUSTOMER:
            bookings, total = self.repo.get_customer_history(self.db, user.id, offset, limit)
            user_type = "customer"
        elif user.role == Role.INTERPRETER:
            bookings, total = self.repo.get_interpreter_history(self.db, user.id, offset, limit)
            user_type = "interpreter"
        else:
            bookings, total, user_type = [], 0, user.role.value

        return {
            "user_type": user_type,
            "bookings": bookings,
            "total": total,
            "page": page,
            "page_size": limit,
        }
