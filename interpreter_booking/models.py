from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .domain.bookings.enums import (
    BookingStatus,
    Certification,
    CertificationLevel,
    ConsumerType,
    Gender,
    InterpreterType,
    JobType,
    Role,
    UserStatus,
)


def enum_column(enum_cls, **kwargs):
    """String-backed enum column storing the member values (not names)"""
    return Column(
        SAEnum(
            enum_cls,
            native_enum=False,
            length=64,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    role = enum_column(Role, nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    mobile = Column(String(50), nullable=True)  # E.164 format for SMS
    status = enum_column(UserStatus, default=UserStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    profile = relationship(
        "UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    languages = relationship("UserLanguage", back_populates="user", cascade="all, delete-orphan")

    @property
    def language_ids(self) -> set[int]:
        return {ul.language_id for ul in self.languages}


class UserProfile(Base):
    """Customer and interpreter attributes plus notification preferences"""

    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Customer side
    consumer_type = enum_column(ConsumerType, nullable=True)
    customer_type = Column(String(100), nullable=True)  # e.g. municipality, healthcare
    city = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)
    instructions = Column(Text, nullable=True)

    # Interpreter side
    interpreter_type = enum_column(InterpreterType, nullable=True)
    certification_level = enum_column(CertificationLevel, nullable=True)
    gender = enum_column(Gender, nullable=True)

    # Notification preferences
    suppress_all = Column(Boolean, default=False, nullable=False)
    suppress_night = Column(Boolean, default=False, nullable=False)
    suppress_emergency = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="profile")


class Language(Base):
    __tablename__ = "languages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    active = Column(Boolean, default=True, nullable=False)


class UserLanguage(Base):
    __tablename__ = "user_languages"
    __table_args__ = (UniqueConstraint("user_id", "language_id", name="uq_user_language"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    language_id = Column(Integer, ForeignKey("languages.id"), nullable=False, index=True)

    user = relationship("User", back_populates="languages")
    language = relationship("Language")


class BlacklistEntry(Base):
    __tablename__ = "blacklist_entries"
    __table_args__ = (
        UniqueConstraint("customer_id", "interpreter_id", name="uq_blacklist_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    interpreter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    source_language_id = Column(Integer, ForeignKey("languages.id"), nullable=False)
    status = enum_column(BookingStatus, default=BookingStatus.PENDING, nullable=False, index=True)
    immediate = Column(Boolean, default=False, nullable=False)  # Emergency booking
    due = Column(DateTime, nullable=False, index=True)  # Naive UTC
    duration = Column(Integer, nullable=False)  # Minutes
    gender = enum_column(Gender, nullable=True)
    certification = enum_column(Certification, nullable=True)
    job_type = enum_column(JobType, nullable=False)

    phone_capable = Column(Boolean, default=False, nullable=False)
    in_person_capable = Column(Boolean, default=False, nullable=False)
    town = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)
    instructions = Column(Text, nullable=True)
    user_email = Column(String(255), nullable=True)  # Alternative customer contact
    reference = Column(String(255), nullable=True)
    admin_comments = Column(Text, nullable=True)

    session_time = Column(String(20), nullable=True)  # H:M:S
    end_at = Column(DateTime, nullable=True)
    withdraw_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    will_expire_at = Column(DateTime, nullable=True)

    email_sent = Column(Boolean, default=False, nullable=False)
    reminder_email_sent = Column(Boolean, default=False, nullable=False)
    by_admin = Column(Boolean, default=False, nullable=False)
    flagged = Column(Boolean, default=False, nullable=False)
    manually_handled = Column(Boolean, default=False, nullable=False)

    # Booking offered to one named interpreter only
    requested_interpreter_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reopened_from_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)

    # Optimistic lock: concurrent writers of the same row raise StaleDataError
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    customer = relationship("User", foreign_keys=[customer_id])
    requested_interpreter = relationship("User", foreign_keys=[requested_interpreter_id])
    language = relationship("Language")
    assignments = relationship(
        "Assignment", back_populates="booking", order_by="Assignment.id"
    )
    distance = relationship("Distance", back_populates="booking", uselist=False)


class Assignment(Base):
    """Links a booking to the interpreter committed to it; rows are never deleted"""

    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    interpreter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, nullable=False)
    cancel_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    booking = relationship("Booking", back_populates="assignments")
    interpreter = relationship("User", foreign_keys=[interpreter_id])

    @property
    def is_active(self) -> bool:
        return self.cancel_at is None and self.completed_at is None


class Distance(Base):
    """Travel distance and time recorded by admins for in-person bookings"""

    __tablename__ = "distances"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    distance = Column(String(50), nullable=True)
    time = Column(String(50), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="distance")
