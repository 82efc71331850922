"""
Eligibility Matcher

Decides which interpreters may see and accept a booking. The individual rules
live in rejection_reason() so they can be checked without a database; the
matcher class adds the lookups (blacklist, candidate scan, overlap check).
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, User
from .enums import (
    BookingStatus,
    Role,
    UserStatus,
    allowed_levels,
    job_type_for_interpreter,
)
from .repository import BookingRepository

logger = logging.getLogger(__name__)


def _norm_town(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().casefold()
    return value or None


def booking_town(booking) -> Optional[str]:
    """Town of the session; falls back to the customer's city"""
    if booking.town:
        return booking.town
    customer = getattr(booking, "customer", None)
    profile = getattr(customer, "profile", None) if customer is not None else None
    return getattr(profile, "city", None)


def rejection_reason(booking, interpreter, blacklisted_ids: set[int]) -> Optional[str]:
    """
    First rule the interpreter fails for this booking, or None when every rule passes.

    The requested-interpreter overlap check needs the database and is done by
    EligibilityMatcher.is_eligible.
    """
    if interpreter.role != Role.INTERPRETER or interpreter.status != UserStatus.ACTIVE:
        return "not an active interpreter"
    if booking.status != BookingStatus.PENDING:
        return "booking is not pending"

    requested = getattr(booking, "requested_interpreter_id", None)
    if requested is not None and requested != interpreter.id:
        return "booking is reserved for another interpreter"

    profile = interpreter.profile
    if profile is None:
        return "no interpreter profile"

    if job_type_for_interpreter(profile.interpreter_type) != booking.job_type:
        return "job type mismatch"

    if booking.source_language_id not in interpreter.language_ids:
        return "language not spoken"

    if booking.gender is not None and profile.gender != booking.gender:
        return "gender mismatch"

    if profile.certification_level not in allowed_levels(booking.certification):
        return "certification level not accepted"

    if booking.in_person_capable and not booking.phone_capable:
        if _norm_town(booking_town(booking)) != _norm_town(profile.city):
            return "town mismatch for in-person booking"

    if interpreter.id in blacklisted_ids:
        return "blacklisted by customer"

    return None


class EligibilityMatcher:
    """Computes interpreter eligibility for bookings"""

    def __init__(self, db: Session, repo: Optional[BookingRepository] = None):
        self.db = db
        self.repo = repo or BookingRepository()

    def _free_for(self, booking: Booking, interpreter: User) -> bool:
        return not self.repo.has_overlapping_assignment(
            self.db, interpreter.id, booking, exclude_booking_id=booking.id
        )

    def is_eligible(self, booking: Booking, interpreter: User) -> bool:
        blacklisted = self.repo.get_blacklisted_interpreter_ids(self.db, booking.customer_id)
        reason = rejection_reason(booking, interpreter, blacklisted)
        if reason:
            logger.debug(f"Interpreter {interpreter.id} not eligible for booking {booking.id}: {reason}")
            return False
        if booking.requested_interpreter_id is not None and not self._free_for(booking, interpreter):
            logger.debug(
                f"Interpreter {interpreter.id} requested for booking {booking.id} but already busy"
            )
            return False
        return True

    def find_eligible_interpreters(self, booking: Booking, exclude_user_id: Optional[int] = None) -> set[User]:
        """All interpreters permitted to see and accept the booking"""
        if booking.status != BookingStatus.PENDING:
            return set()

        blacklisted = self.repo.get_blacklisted_interpreter_ids(self.db, booking.customer_id)
        eligible = set()
        for interpreter in self.repo.get_interpreter_candidates(self.db, booking.source_language_id):
            if exclude_user_id is not None and interpreter.id == exclude_user_id:
                continue
            if rejection_reason(booking, interpreter, blacklisted) is None:
                eligible.add(interpreter)

        if booking.requested_interpreter_id is not None:
            eligible = {i for i in eligible if self._free_for(booking, i)}

        logger.info(f"🎯 Booking {booking.id}: {len(eligible)} eligible interpreters")
        return eligible

    def find_bookings_for_interpreter(self, interpreter: User) -> list[Booking]:
        """Pending bookings the interpreter could accept, soonest first"""
        profile = interpreter.profile
        if profile is None or interpreter.role != Role.INTERPRETER:
            return []

        job_type = job_type_for_interpreter(profile.interpreter_type)
        candidates = self.repo.get_pending_bookings(self.db, job_type, interpreter.language_ids)
        blocked_by = self.repo.get_blacklisting_customer_ids(self.db, interpreter.id)

        bookings = []
        for booking in candidates:
            blacklisted = {interpreter.id} if booking.customer_id in blocked_by else set()
            if rejection_reason(booking, interpreter, blacklisted) is not None:
                continue
            if booking.requested_interpreter_id is not None and not self._free_for(booking, interpreter):
                continue
            bookings.append(booking)
        return bookings
