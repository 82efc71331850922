"""
Booking enums and the mapping tables that drive interpreter matching

Every lookup here is an exhaustive table keyed by enum member, so adding a
member without extending the tables fails loudly in the tests.
"""

from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"
    WITHDRAW_BEFORE_24 = "withdrawbefore24"
    WITHDRAW_AFTER_24 = "withdrawafter24"
    TIMED_OUT = "timedout"
    NOT_CARRIED_OUT_CUSTOMER = "not_carried_out_customer"


WITHDRAWN_STATUSES = {BookingStatus.WITHDRAW_BEFORE_24, BookingStatus.WITHDRAW_AFTER_24}
OPEN_STATUSES = {BookingStatus.PENDING, BookingStatus.ASSIGNED, BookingStatus.STARTED}
HISTORY_STATUSES = {
    BookingStatus.COMPLETED,
    BookingStatus.WITHDRAW_BEFORE_24,
    BookingStatus.WITHDRAW_AFTER_24,
    BookingStatus.TIMED_OUT,
}


class Role(str, Enum):
    CUSTOMER = "customer"
    INTERPRETER = "interpreter"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


ADMIN_ROLES = {Role.ADMIN, Role.SUPERADMIN}


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class JobType(str, Enum):
    PAID = "paid"
    RWS = "rws"
    UNPAID = "unpaid"


class InterpreterType(str, Enum):
    PROFESSIONAL = "professional"
    AGENCY = "rwstranslator"
    VOLUNTEER = "volunteer"


class ConsumerType(str, Enum):
    PAID = "paid"
    AGENCY = "rwsconsumer"
    NGO = "ngo"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class CertificationLevel(str, Enum):
    LAYMAN = "Layman"
    COURSE = "Read Translation courses"
    CERTIFIED = "Certified"
    CERTIFIED_LAW = "Certified with specialisation in law"
    CERTIFIED_HEALTH = "Certified with specialisation in health care"


class Certification(str, Enum):
    NONE = "none"
    NORMAL = "normal"
    CERTIFIED = "certified"
    LAW = "law"
    HEALTH = "health"
    BOTH = "both"
    NORMAL_LAW = "n_law"
    NORMAL_HEALTH = "n_health"


INTERPRETER_JOB_TYPES = {
    InterpreterType.PROFESSIONAL: JobType.PAID,
    InterpreterType.AGENCY: JobType.RWS,
    InterpreterType.VOLUNTEER: JobType.UNPAID,
}

CONSUMER_JOB_TYPES = {
    ConsumerType.PAID: JobType.PAID,
    ConsumerType.AGENCY: JobType.RWS,
    ConsumerType.NGO: JobType.UNPAID,
}

_UNCERTIFIED = frozenset({CertificationLevel.LAYMAN, CertificationLevel.COURSE})
_ALL_CERTIFIED = frozenset(
    {
        CertificationLevel.CERTIFIED,
        CertificationLevel.CERTIFIED_LAW,
        CertificationLevel.CERTIFIED_HEALTH,
    }
)

CERTIFICATION_LEVELS = {
    Certification.NONE: frozenset(CertificationLevel),
    Certification.NORMAL: _UNCERTIFIED,
    Certification.CERTIFIED: _ALL_CERTIFIED,
    Certification.LAW: frozenset({CertificationLevel.CERTIFIED_LAW}),
    Certification.HEALTH: frozenset({CertificationLevel.CERTIFIED_HEALTH}),
    Certification.BOTH: _ALL_CERTIFIED,
    Certification.NORMAL_LAW: _UNCERTIFIED | {CertificationLevel.CERTIFIED_LAW},
    Certification.NORMAL_HEALTH: _UNCERTIFIED | {CertificationLevel.CERTIFIED_HEALTH},
}

# Values accepted in the "job_for" list of a new booking
JOB_FOR_CERTIFICATIONS = {
    "normal": Certification.NORMAL,
    "certified": Certification.CERTIFIED,
    "certified_in_law": Certification.LAW,
    "certified_in_helth": Certification.HEALTH,
}


def _coerce(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def job_type_for_interpreter(interpreter_type) -> JobType:
    """Job type an interpreter may take; unknown types only see unpaid bookings"""
    return INTERPRETER_JOB_TYPES.get(_coerce(InterpreterType, interpreter_type), JobType.UNPAID)


def job_type_for_consumer(consumer_type) -> JobType:
    """Job type of a booking created by a customer of the given tier"""
    return CONSUMER_JOB_TYPES.get(_coerce(ConsumerType, consumer_type), JobType.UNPAID)


def allowed_levels(certification) -> frozenset:
    """Certification levels accepted for a booking; unset certification accepts all"""
    cert = _coerce(Certification, certification)
    if cert is None:
        return CERTIFICATION_LEVELS[Certification.NONE]
    return CERTIFICATION_LEVELS[cert]


def certification_from_job_for(job_for: list[str]) -> Optional[Certification]:
    """Collapse the job_for flags of a booking request into a single certification value"""
    picked = [JOB_FOR_CERTIFICATIONS[item] for item in job_for if item in JOB_FOR_CERTIFICATIONS]
    if not picked:
        return None
    if Certification.NORMAL in picked and len(picked) > 1:
        others = [c for c in picked if c != Certification.NORMAL]
        if Certification.CERTIFIED in others:
            return Certification.BOTH
        if Certification.LAW in others:
            return Certification.NORMAL_LAW
        if Certification.HEALTH in others:
            return Certification.NORMAL_HEALTH
    return picked[-1]


def gender_from_job_for(job_for: list[str]) -> Optional[Gender]:
    if Gender.MALE.value in job_for:
        return Gender.MALE
    if Gender.FEMALE.value in job_for:
        return Gender.FEMALE
    return None
