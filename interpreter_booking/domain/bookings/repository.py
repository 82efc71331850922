"""Booking repository - Database operations for bookings, assignments and interpreters"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import (
    Assignment,
    BlacklistEntry,
    Booking,
    Distance,
    Language,
    User,
    UserLanguage,
)
from ...utils.booking_time import overlaps
from .enums import HISTORY_STATUSES, OPEN_STATUSES, BookingStatus, Role, UserStatus


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        """Get a booking with its customer, language and assignments loaded"""
        query = db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            return query.with_for_update().populate_existing().first()
        return query.options(
            joinedload(Booking.customer).joinedload(User.profile),
            joinedload(Booking.language),
            selectinload(Booking.assignments),
        ).first()

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking

    @staticmethod
    def apply_updates(booking: Booking, updates: dict) -> None:
        for key, value in updates.items():
            setattr(booking, key, value)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return (
            db.query(User)
            .options(joinedload(User.profile), selectinload(User.languages))
            .filter(User.id == user_id)
            .first()
        )

    @staticmethod
    def lock_user(db: Session, user_id: int) -> Optional[User]:
        """SELECT ... FOR UPDATE on the user row; serializes acceptances per interpreter"""
        return db.query(User).filter(User.id == user_id).with_for_update().first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    @staticmethod
    def get_language(db: Session, language_id: int) -> Optional[Language]:
        return db.query(Language).filter(Language.id == language_id).first()

    @staticmethod
    def get_interpreter_candidates(db: Session, language_id: int) -> list[User]:
        """Active interpreters speaking the language; remaining rules are applied by the matcher"""
        return (
            db.query(User)
            .join(UserLanguage, UserLanguage.user_id == User.id)
            .options(joinedload(User.profile), selectinload(User.languages))
            .filter(
                User.role == Role.INTERPRETER,
                User.status == UserStatus.ACTIVE,
                UserLanguage.language_id == language_id,
            )
            .all()
        )

    @staticmethod
    def get_blacklisted_interpreter_ids(db: Session, customer_id: int) -> set[int]:
        rows = (
            db.query(BlacklistEntry.interpreter_id)
            .filter(BlacklistEntry.customer_id == customer_id)
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def get_blacklisting_customer_ids(db: Session, interpreter_id: int) -> set[int]:
        rows = (
            db.query(BlacklistEntry.customer_id)
            .filter(BlacklistEntry.interpreter_id == interpreter_id)
            .all()
        )
        return {row[0] for row in rows}

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    @staticmethod
    def get_current_assignment(db: Session, booking_id: int) -> Optional[Assignment]:
        """Assignment with cancel_at unset, else the most recently completed one"""
        current = (
            db.query(Assignment)
            .filter(Assignment.booking_id == booking_id, Assignment.cancel_at.is_(None))
            .order_by(Assignment.id.desc())
            .first()
        )
        if current is not None:
            return current
        return (
            db.query(Assignment)
            .filter(Assignment.booking_id == booking_id, Assignment.completed_at.isnot(None))
            .order_by(Assignment.completed_at.desc(), Assignment.id.desc())
            .first()
        )

    @staticmethod
    def get_active_assignments(db: Session, booking_id: int) -> list[Assignment]:
        return (
            db.query(Assignment)
            .filter(
                Assignment.booking_id == booking_id,
                Assignment.cancel_at.is_(None),
                Assignment.completed_at.is_(None),
            )
            .all()
        )

    @staticmethod
    def create_assignment(db: Session, booking_id: int, interpreter_id: int, now: datetime) -> Assignment:
        assignment = Assignment(booking_id=booking_id, interpreter_id=interpreter_id, assigned_at=now)
        db.add(assignment)
        db.flush()
        return assignment

    @staticmethod
    def cancel_active_assignments(db: Session, booking_id: int, now: datetime) -> list[Assignment]:
        cancelled = BookingRepository.get_active_assignments(db, booking_id)
        for assignment in cancelled:
            assignment.cancel_at = now
        return cancelled

    @staticmethod
    def has_overlapping_assignment(
        db: Session, interpreter_id: int, booking: Booking, exclude_booking_id: Optional[int] = None
    ) -> bool:
        """Whether the interpreter holds an active assignment whose session overlaps the booking"""
        query = (
            db.query(Booking.id, Booking.due, Booking.duration)
            .join(Assignment, Assignment.booking_id == Booking.id)
            .filter(
                Assignment.interpreter_id == interpreter_id,
                Assignment.cancel_at.is_(None),
                Assignment.completed_at.is_(None),
            )
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return any(
            overlaps(due, duration, booking.due, booking.duration) for _id, due, duration in query.all()
        )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    @staticmethod
    def get_pending_bookings(db: Session, job_type, language_ids: set[int]) -> list[Booking]:
        if not language_ids:
            return []
        return (
            db.query(Booking)
            .options(joinedload(Booking.customer).joinedload(User.profile), joinedload(Booking.language))
            .filter(
                Booking.status == BookingStatus.PENDING,
                Booking.job_type == job_type,
                Booking.source_language_id.in_(sorted(language_ids)),
            )
            .order_by(Booking.due.asc())
            .all()
        )

    @staticmethod
    def get_customer_open_bookings(db: Session, customer_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.language))
            .filter(Booking.customer_id == customer_id, Booking.status.in_(list(OPEN_STATUSES)))
            .order_by(Booking.due.asc())
            .all()
        )

    @staticmethod
    def get_customer_history(db: Session, customer_id: int, offset: int, limit: int) -> tuple[list[Booking], int]:
        query = db.query(Booking).filter(
            Booking.customer_id == customer_id, Booking.status.in_(list(HISTORY_STATUSES))
        )
        total = query.count()
        rows = (
            query.options(joinedload(Booking.language))
            .order_by(Booking.due.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def get_interpreter_bookings(db: Session, interpreter_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .join(Assignment, Assignment.booking_id == Booking.id)
            .options(joinedload(Booking.language))
            .filter(
                Assignment.interpreter_id == interpreter_id,
                Assignment.cancel_at.is_(None),
                Assignment.completed_at.is_(None),
            )
            .order_by(Booking.due.asc())
            .all()
        )

    @staticmethod
    def get_interpreter_history(
        db: Session, interpreter_id: int, offset: int, limit: int
    ) -> tuple[list[Booking], int]:
        query = (
            db.query(Booking)
            .join(Assignment, Assignment.booking_id == Booking.id)
            .filter(Assignment.interpreter_id == interpreter_id, Assignment.completed_at.isnot(None))
        )
        total = query.count()
        rows = (
            query.options(joinedload(Booking.language))
            .order_by(Booking.due.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def get_expired_pending_bookings(db: Session, now: datetime) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(
                Booking.status == BookingStatus.PENDING,
                Booking.will_expire_at.isnot(None),
                Booking.will_expire_at <= now,
            )
            .all()
        )

    @staticmethod
    def get_or_create_distance(db: Session, booking_id: int) -> Distance:
        distance = db.query(Distance).filter(Distance.booking_id == booking_id).first()
        if distance is None:
            distance = Distance(booking_id=booking_id)
            db.add(distance)
        return distance
