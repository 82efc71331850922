"""
Message sender port

The dispatcher talks to push, SMS and email transports only through this
interface so tests can substitute an in-memory fake.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class DeliveryResult:
    ok: bool
    provider_id: Optional[str] = None
    error: Optional[str] = None


class MessageSender(Protocol):
    async def send_email(
        self, to: str, name: Optional[str], subject: str, template_id: str, data: dict
    ) -> DeliveryResult: ...

    async def send_push(
        self, targets: list, payload: dict, send_after: Optional[datetime] = None
    ) -> DeliveryResult: ...

    async def send_sms(self, from_number: Optional[str], to: str, body: str) -> DeliveryResult: ...


class DefaultMessageSender:
    """Production sender: OneSignal push, Twilio SMS and Resend email"""

    async def send_email(self, to, name, subject, template_id, data) -> DeliveryResult:
        from ..email_service import send_booking_email

        return await send_booking_email(to, name, subject, template_id, data)

    async def send_push(self, targets, payload, send_after=None) -> DeliveryResult:
        from .push_service import send_push_notification

        return await send_push_notification(targets, payload, send_after=send_after)

    async def send_sms(self, from_number, to, body) -> DeliveryResult:
        from .twilio_service import send_sms

        return await send_sms(from_number, to, body)
