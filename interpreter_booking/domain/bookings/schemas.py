"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, field_validator

from .enums import BookingStatus, Certification, Gender, JobType


def _to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


class BookingCreate(BaseModel):
    """Schema for a customer creating a booking; due date and time are local business time"""

    source_language_id: Optional[int] = None
    immediate: bool = False
    due_date: Optional[date] = None
    due_time: Optional[time] = None
    duration: Optional[int] = None
    phone: bool = False
    physical: bool = False
    job_for: list[str] = []
    town: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    reference: Optional[str] = None
    requested_interpreter_id: Optional[int] = None
    by_admin: bool = False

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Duration must be a positive number of minutes")
        return v


class BookingEmailConfirm(BaseModel):
    """Contact details sent after a booking is created"""

    user_email: Optional[str] = None
    reference: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    town: Optional[str] = None


class BookingUpdateRequest(BaseModel):
    """Admin edit of a booking"""

    due: Optional[datetime] = None
    source_language_id: Optional[int] = None
    interpreter_id: Optional[int] = None
    interpreter_email: Optional[str] = None
    status: Optional[BookingStatus] = None
    admin_comments: Optional[str] = None
    reference: Optional[str] = None
    session_time: Optional[str] = None
    # Version the client last saw; a mismatch is reported as a conflict
    expected_version: Optional[int] = None

    @field_validator("due")
    @classmethod
    def normalize_due(cls, v):
        return _to_naive_utc(v)


class DistanceFeedRequest(BaseModel):
    booking_id: Optional[int] = None
    distance: Optional[str] = None
    time: Optional[str] = None
    session_time: Optional[str] = None
    admin_comment: Optional[str] = None
    flagged: bool = False
    manually_handled: bool = False
    by_admin: bool = False


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    customer_id: int
    source_language_id: int
    status: BookingStatus
    immediate: bool
    due: datetime
    duration: int
    gender: Optional[Gender] = None
    certification: Optional[Certification] = None
    job_type: JobType
    phone_capable: bool
    in_person_capable: bool
    town: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    reference: Optional[str] = None
    admin_comments: Optional[str] = None
    session_time: Optional[str] = None
    end_at: Optional[datetime] = None
    withdraw_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    will_expire_at: Optional[datetime] = None
    requested_interpreter_id: Optional[int] = None
    reopened_from_id: Optional[int] = None
    version: int

    class Config:
        from_attributes = True


class UserBookingsResponse(BaseModel):
    user_type: str
    emergency_bookings: list[BookingResponse]
    normal_bookings: list[BookingResponse]


class BookingHistoryResponse(BaseModel):
    user_type: str
    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingActionResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None
    booking: Optional[BookingResponse] = None


class UpdateOutcomeResponse(BaseModel):
    result: str
    notifications: int
    booking: BookingResponse


class ResendResponse(BaseModel):
    status: str = "success"
    message: str
    recipients: int
