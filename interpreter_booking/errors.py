"""
Booking error taxonomy

ValidationError, ConflictError and NotFoundError abort the operation that raised
them and leave the booking untouched. DeliveryError only ever reaches the logs:
a failed push, SMS or email never undoes the state change that triggered it.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for booking domain errors"""

    status_code = 400

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field_name = field_name

    def to_dict(self) -> dict:
        body = {"status": "fail", "message": self.message}
        if self.field_name:
            body["field_name"] = self.field_name
        return body


class ValidationError(BookingError):
    """A field required by the attempted operation is missing or invalid"""

    status_code = 422


class ConflictError(BookingError):
    """Double booking, stale status or a cancellation that is no longer allowed"""

    status_code = 409


class NotFoundError(BookingError):
    status_code = 404


class DeliveryError(BookingError):
    """An external sender rejected or failed to deliver a message"""

    status_code = 502

    def __init__(self, message: str, channel: str, recipient: Optional[str] = None):
        super().__init__(message)
        self.channel = channel
        self.recipient = recipient
