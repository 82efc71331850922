"""
Booking Notification Service
Resolves notification intents into recipients and delivers them over push, SMS and email

The targeter runs inside the request (it needs the database) and produces
serializable OutboundNotification objects. The dispatcher needs no database and
can run in the request's background task or in the arq worker.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import SMS_NUMBER
from ..domain.bookings.eligibility import EligibilityMatcher, booking_town
from ..domain.bookings.notifications import (
    KIND_CHANNELS,
    Audience,
    Channel,
    MessageKind,
    NotificationIntent,
)
from ..errors import DeliveryError
from ..i18n import translate
from ..models import Booking, User
from ..utils.booking_time import convert_to_hours_mins, format_due, to_local, utcnow
from .business_hours import BusinessHours
from .senders import DeliveryResult, MessageSender

logger = logging.getLogger(__name__)


class RecipientSnapshot(BaseModel):
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    mobile: Optional[str] = None
    suppress_all: bool = False
    suppress_night: bool = False
    suppress_emergency: bool = False

    @classmethod
    def from_user(cls, user: User, email: Optional[str] = None) -> "RecipientSnapshot":
        profile = user.profile
        return cls(
            user_id=user.id,
            email=email or user.email,
            name=user.name,
            mobile=user.mobile,
            suppress_all=bool(profile and profile.suppress_all),
            suppress_night=bool(profile and profile.suppress_night),
            suppress_emergency=bool(profile and profile.suppress_emergency),
        )


class BookingSnapshot(BaseModel):
    id: int
    language: str
    due: datetime
    duration: int
    immediate: bool
    job_for: list[str] = []
    town: Optional[str] = None
    phone_capable: bool = False
    in_person_capable: bool = False

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingSnapshot":
        job_for = []
        if booking.gender is not None:
            job_for.append(_value(booking.gender))
        if booking.certification is not None:
            job_for.append(_value(booking.certification))
        return cls(
            id=booking.id,
            language=booking.language.name if booking.language else "",
            due=booking.due,
            duration=booking.duration,
            immediate=booking.immediate,
            job_for=job_for,
            town=booking_town(booking),
            phone_capable=booking.phone_capable,
            in_person_capable=booking.in_person_capable,
        )


class NotificationPayload(BaseModel):
    job_id: int
    notification_type: str
    language: str
    due: str
    duration: int
    job_for: list[str] = []
    immediate: bool = False
    text: str = ""
    subject: Optional[str] = None
    template_id: Optional[str] = None
    data: dict = {}


class OutboundNotification(BaseModel):
    kind: MessageKind
    recipients: list[RecipientSnapshot]
    booking: BookingSnapshot
    payload: NotificationPayload

    @property
    def channel(self) -> Channel:
        return KIND_CHANNELS[self.kind]


def _value(member) -> str:
    return getattr(member, "value", member)


# Email kinds: (subject key, template id)
EMAIL_TEMPLATES = {
    MessageKind.BOOKING_RECEIVED: ("email.booking_received", "booking-received"),
    MessageKind.BOOKING_REOPENED: ("email.booking_reopened", "booking-reopened"),
    MessageKind.INTERPRETER_ACCEPTED: ("email.interpreter_accepted", "job-accepted"),
    MessageKind.NEW_ASSIGNMENT: ("email.new_assignment", "job-assigned"),
    MessageKind.STATUS_CHANGED: ("email.status_changed", "status-changed"),
    MessageKind.SESSION_COMPLETED_CUSTOMER: ("email.session_completed", "session-ended-customer"),
    MessageKind.SESSION_COMPLETED_INTERPRETER: ("email.session_completed", "session-ended-interpreter"),
    MessageKind.BOOKING_WITHDRAWN: ("email.booking_withdrawn", "job-cancelled"),
    MessageKind.DUE_CHANGED: ("email.booking_changed", "job-changed"),
    MessageKind.INTERPRETER_CHANGED: ("email.booking_changed", "job-changed"),
    MessageKind.LANGUAGE_CHANGED: ("email.booking_changed", "job-changed"),
    MessageKind.INTERPRETER_REMOVED: ("email.interpreter_removed", "interpreter-removed"),
}


def sms_template_key(booking: BookingSnapshot) -> str:
    """Physical-job text only for in-person-only bookings; phone text otherwise (also when both)"""
    if booking.in_person_capable and not booking.phone_capable:
        return "sms.physical_job"
    return "sms.phone_job"


def _push_text_key(kind: MessageKind, booking: BookingSnapshot, params: dict) -> str:
    if kind == MessageKind.SUITABLE_JOB:
        return "push.suitable_job_immediate" if booking.immediate else "push.suitable_job"
    if kind == MessageKind.SESSION_START_REMIND:
        if booking.in_person_capable:
            return "push.session_start_remind_physical"
        return "push.session_start_remind_phone"
    if kind == MessageKind.JOB_CANCELLED:
        if params.get("cancelled_by") == "customer":
            return "push.job_cancelled_by_customer"
        return "push.job_cancelled_by_interpreter"
    return f"push.{kind.value}"


def _change_text(kind: MessageKind, params: dict) -> str:
    if kind == MessageKind.DUE_CHANGED:
        return translate("change.due", params)
    if kind == MessageKind.LANGUAGE_CHANGED:
        return translate("change.language", params)
    if kind == MessageKind.INTERPRETER_CHANGED:
        return translate("change.interpreter", params)
    return ""


def build_payload(booking: BookingSnapshot, kind: MessageKind, params: Optional[dict] = None) -> NotificationPayload:
    """Fixed payload shape plus the localized text for one message kind"""
    params = dict(params or {})
    local_due = to_local(booking.due)
    text_params = {
        "job_id": booking.id,
        "language": booking.language,
        "due": format_due(booking.due),
        "date": local_due.strftime("%d.%m.%Y"),
        "time": local_due.strftime("%H:%M"),
        "duration": booking.duration,
        "town": booking.town or "",
        **params,
    }
    payload = NotificationPayload(
        job_id=booking.id,
        notification_type=kind.value,
        language=booking.language,
        due=text_params["due"],
        duration=booking.duration,
        job_for=booking.job_for,
        immediate=booking.immediate,
    )

    channel = KIND_CHANNELS[kind]
    if channel == Channel.EMAIL:
        subject_key, template_id = EMAIL_TEMPLATES[kind]
        payload.subject = translate(subject_key, text_params)
        payload.template_id = template_id
        payload.text = payload.subject
        payload.data = {
            **{k: v for k, v in text_params.items() if k not in ("date", "time")},
            "change_text": _change_text(kind, params),
        }
    elif channel == Channel.SMS:
        sms_params = {**text_params, "duration": convert_to_hours_mins(booking.duration)}
        payload.text = translate(sms_template_key(booking), sms_params)
    else:
        payload.text = translate(_push_text_key(kind, booking, params), text_params)
    return payload


@dataclass
class RecipientContext:
    """Users the audiences of an intent resolve to"""

    active_interpreter: Optional[User] = None
    old_interpreter: Optional[User] = None
    new_interpreter: Optional[User] = None
    exclude_user_id: Optional[int] = None


class NotificationTargeter:
    """Turns notification intents into concrete, serializable notifications"""

    def __init__(self, db: Session, matcher: Optional[EligibilityMatcher] = None):
        self.db = db
        self.matcher = matcher or EligibilityMatcher(db)

    def _audience(self, booking: Booking, audience: Audience, context: RecipientContext) -> list[RecipientSnapshot]:
        if audience == Audience.CUSTOMER:
            if booking.customer is None:
                return []
            return [RecipientSnapshot.from_user(booking.customer, email=booking.user_email)]
        if audience == Audience.ELIGIBLE_INTERPRETERS:
            interpreters = self.matcher.find_eligible_interpreters(booking, context.exclude_user_id)
            return [RecipientSnapshot.from_user(u) for u in sorted(interpreters, key=lambda u: u.id)]

        user = {
            Audience.ACTIVE_INTERPRETER: context.active_interpreter,
            Audience.OLD_INTERPRETER: context.old_interpreter,
            Audience.NEW_INTERPRETER: context.new_interpreter,
        }[audience]
        return [RecipientSnapshot.from_user(user)] if user is not None else []

    def resolve(
        self,
        booking: Booking,
        intents: list[NotificationIntent],
        context: Optional[RecipientContext] = None,
    ) -> list[OutboundNotification]:
        context = context or RecipientContext()
        snapshot = BookingSnapshot.from_booking(booking)
        notifications = []
        for intent in intents:
            recipients = self._audience(booking, intent.audience, context)
            if not recipients:
                logger.debug(f"No recipients for {intent.kind.value} ({intent.audience.value}) on booking {booking.id}")
                continue
            notifications.append(
                OutboundNotification(
                    kind=intent.kind,
                    recipients=recipients,
                    booking=snapshot,
                    payload=build_payload(snapshot, intent.kind, intent.params),
                )
            )
        return notifications


@dataclass
class DispatchReport:
    kind: MessageKind
    channel: Channel
    sent: list[int] = field(default_factory=list)
    delayed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    send_after: Optional[datetime] = None
    errors: list[DeliveryError] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "kind": self.kind.value,
            "channel": self.channel.value,
            "sent": len(self.sent),
            "delayed": len(self.delayed),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }


class NotificationDispatcher:
    """
    Best-effort delivery of booking notifications.

    Push and SMS honour the recipient's preferences: suppress_all skips them,
    suppress_emergency skips emergency bookings, and suppress_night holds push
    until the next business window while it is night. Email is transactional
    and always sent at once. Failures are logged and reported, never raised.
    """

    def __init__(
        self,
        sender: MessageSender,
        business_hours: Optional[BusinessHours] = None,
        clock: Callable[[], datetime] = utcnow,
        sms_from_number: Optional[str] = SMS_NUMBER,
    ):
        self.sender = sender
        self.business_hours = business_hours or BusinessHours()
        self.clock = clock
        self.sms_from_number = sms_from_number

    @staticmethod
    def _suppressed(recipient: RecipientSnapshot, booking: BookingSnapshot) -> bool:
        if recipient.suppress_all:
            return True
        return booking.immediate and recipient.suppress_emergency

    async def _deliver(self, report: DispatchReport, user_ids: list[int], send, recipient: str) -> bool:
        try:
            result: DeliveryResult = await send()
            if not result.ok:
                raise DeliveryError(result.error or "Delivery rejected", report.channel.value, recipient)
            return True
        except DeliveryError as e:
            error = e
        except Exception as e:
            error = DeliveryError(str(e), report.channel.value, recipient)
        logger.error(f"❌ Failed to send {report.kind.value} {report.channel.value} to {recipient}: {error.message}")
        report.failed.extend(user_ids)
        report.errors.append(error)
        return False

    async def _dispatch_email(self, report, recipients, booking, payload: NotificationPayload):
        for r in recipients:
            if not r.email:
                report.skipped.append(r.user_id)
                continue
            ok = await self._deliver(
                report,
                [r.user_id],
                lambda r=r: self.sender.send_email(r.email, r.name, payload.subject, payload.template_id, payload.data),
                r.email,
            )
            if ok:
                report.sent.append(r.user_id)

    async def _dispatch_push(self, report, recipients, booking, payload: NotificationPayload):
        now = self.clock()
        night = self.business_hours.is_night_time(now)
        send_now, send_later = [], []
        for r in recipients:
            if self._suppressed(r, booking):
                report.skipped.append(r.user_id)
            elif night and r.suppress_night:
                send_later.append(r)
            else:
                send_now.append(r)

        body = payload.model_dump()
        if send_now:
            ids = [r.user_id for r in send_now]
            if await self._deliver(report, ids, lambda: self.sender.send_push(send_now, body), f"{len(ids)} users"):
                report.sent.extend(ids)
        if send_later:
            send_after = self.business_hours.next_business_window_start(now)
            report.send_after = send_after
            ids = [r.user_id for r in send_later]
            if await self._deliver(
                report, ids, lambda: self.sender.send_push(send_later, body, send_after), f"{len(ids)} users"
            ):
                report.delayed.extend(ids)

    async def _dispatch_sms(self, report, recipients, booking, payload: NotificationPayload):
        for r in recipients:
            if self._suppressed(r, booking) or not r.mobile:
                report.skipped.append(r.user_id)
                continue
            ok = await self._deliver(
                report,
                [r.user_id],
                lambda r=r: self.sender.send_sms(self.sms_from_number, r.mobile, payload.text),
                r.mobile,
            )
            if ok:
                report.sent.append(r.user_id)

    async def dispatch(
        self,
        recipients: list[RecipientSnapshot],
        booking: BookingSnapshot,
        kind: MessageKind,
        payload: NotificationPayload,
    ) -> DispatchReport:
        channel = KIND_CHANNELS[kind]
        report = DispatchReport(kind=kind, channel=channel)
        if channel == Channel.EMAIL:
            await self._dispatch_email(report, recipients, booking, payload)
        elif channel == Channel.PUSH:
            await self._dispatch_push(report, recipients, booking, payload)
        else:
            await self._dispatch_sms(report, recipients, booking, payload)
        logger.info(f"📨 Booking {booking.id} {kind.value}: {report.summary()}")
        return report

    async def dispatch_all(self, notifications: list[OutboundNotification]) -> list[DispatchReport]:
        reports = []
        for notification in notifications:
            reports.append(
                await self.dispatch(
                    notification.recipients, notification.booking, notification.kind, notification.payload
                )
            )
        return reports
