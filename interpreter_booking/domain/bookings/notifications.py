"""
Notification intents

The state machine and the update orchestrator never send anything. They return
NotificationIntent values naming what happened and who should hear about it;
the targeter turns those into concrete recipients after the transaction commits.
"""

from dataclasses import dataclass, field
from enum import Enum


class Channel(str, Enum):
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class Audience(str, Enum):
    CUSTOMER = "customer"
    ACTIVE_INTERPRETER = "active_interpreter"
    NEW_INTERPRETER = "new_interpreter"
    OLD_INTERPRETER = "old_interpreter"
    ELIGIBLE_INTERPRETERS = "eligible_interpreters"


class MessageKind(str, Enum):
    SUITABLE_JOB = "suitable_job"
    SUITABLE_JOB_SMS = "suitable_job_sms"
    BOOKING_RECEIVED = "booking_received"
    BOOKING_REOPENED = "booking_reopened"
    INTERPRETER_ACCEPTED = "interpreter_accepted"
    NEW_ASSIGNMENT = "new_assignment"
    SESSION_START_REMIND = "session_start_remind"
    STATUS_CHANGED = "status_changed"
    SESSION_COMPLETED_CUSTOMER = "session_completed_customer"
    SESSION_COMPLETED_INTERPRETER = "session_completed_interpreter"
    BOOKING_WITHDRAWN = "booking_withdrawn"
    DUE_CHANGED = "due_changed"
    INTERPRETER_CHANGED = "interpreter_changed"
    INTERPRETER_REMOVED = "interpreter_removed"
    LANGUAGE_CHANGED = "language_changed"
    JOB_ACCEPTED = "job_accepted"
    JOB_CANCELLED = "job_cancelled"
    JOB_EXPIRED = "job_expired"
    SESSION_ENDED = "session_ended"


KIND_CHANNELS = {
    MessageKind.SUITABLE_JOB: Channel.PUSH,
    MessageKind.SUITABLE_JOB_SMS: Channel.SMS,
    MessageKind.BOOKING_RECEIVED: Channel.EMAIL,
    MessageKind.BOOKING_REOPENED: Channel.EMAIL,
    MessageKind.INTERPRETER_ACCEPTED: Channel.EMAIL,
    MessageKind.NEW_ASSIGNMENT: Channel.EMAIL,
    MessageKind.SESSION_START_REMIND: Channel.PUSH,
    MessageKind.STATUS_CHANGED: Channel.EMAIL,
    MessageKind.SESSION_COMPLETED_CUSTOMER: Channel.EMAIL,
    MessageKind.SESSION_COMPLETED_INTERPRETER: Channel.EMAIL,
    MessageKind.BOOKING_WITHDRAWN: Channel.EMAIL,
    MessageKind.DUE_CHANGED: Channel.EMAIL,
    MessageKind.INTERPRETER_CHANGED: Channel.EMAIL,
    MessageKind.INTERPRETER_REMOVED: Channel.EMAIL,
    MessageKind.LANGUAGE_CHANGED: Channel.EMAIL,
    MessageKind.JOB_ACCEPTED: Channel.PUSH,
    MessageKind.JOB_CANCELLED: Channel.PUSH,
    MessageKind.JOB_EXPIRED: Channel.PUSH,
    MessageKind.SESSION_ENDED: Channel.PUSH,
}


@dataclass(frozen=True)
class NotificationIntent:
    kind: MessageKind
    audience: Audience
    params: dict = field(default_factory=dict, compare=False)

    @property
    def channel(self) -> Channel:
        return KIND_CHANNELS[self.kind]
