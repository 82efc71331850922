from types import SimpleNamespace

import pytest

from interpreter_booking.domain.bookings.eligibility import booking_town, rejection_reason
from interpreter_booking.domain.bookings.enums import (
    BookingStatus,
    Certification,
    CertificationLevel,
    ConsumerType,
    Gender,
    InterpreterType,
    JobType,
    Role,
    UserStatus,
    allowed_levels,
    certification_from_job_for,
    gender_from_job_for,
    job_type_for_consumer,
    job_type_for_interpreter,
)


def make_interpreter(**overrides):
    profile = SimpleNamespace(
        interpreter_type=overrides.pop("interpreter_type", InterpreterType.PROFESSIONAL),
        gender=overrides.pop("gender", Gender.FEMALE),
        certification_level=overrides.pop("level", CertificationLevel.CERTIFIED),
        city=overrides.pop("city", "Stockholm"),
    )
    fields = {
        "id": 10,
        "role": Role.INTERPRETER,
        "status": UserStatus.ACTIVE,
        "profile": profile,
        "language_ids": {1},
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_booking(**overrides):
    fields = {
        "id": 1,
        "status": BookingStatus.PENDING,
        "requested_interpreter_id": None,
        "job_type": JobType.PAID,
        "source_language_id": 1,
        "gender": None,
        "certification": None,
        "phone_capable": True,
        "in_person_capable": False,
        "town": None,
        "customer": SimpleNamespace(profile=SimpleNamespace(city="Stockholm")),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_matching_interpreter_is_eligible():
    assert rejection_reason(make_booking(), make_interpreter(), set()) is None


@pytest.mark.parametrize(
    "booking, interpreter, reason",
    [
        (make_booking(), make_interpreter(status=UserStatus.INACTIVE), "not an active interpreter"),
        (make_booking(), make_interpreter(role=Role.CUSTOMER), "not an active interpreter"),
        (make_booking(status=BookingStatus.ASSIGNED), make_interpreter(), "booking is not pending"),
        (make_booking(requested_interpreter_id=99), make_interpreter(), "booking is reserved for another interpreter"),
        (make_booking(), make_interpreter(profile=None), "no interpreter profile"),
        (make_booking(), make_interpreter(interpreter_type=InterpreterType.VOLUNTEER), "job type mismatch"),
        (make_booking(), make_interpreter(language_ids={2, 3}), "language not spoken"),
        (make_booking(gender=Gender.MALE), make_interpreter(), "gender mismatch"),
        (
            make_booking(certification=Certification.LAW),
            make_interpreter(level=CertificationLevel.CERTIFIED),
            "certification level not accepted",
        ),
        (
            make_booking(phone_capable=False, in_person_capable=True, town="Uppsala"),
            make_interpreter(),
            "town mismatch for in-person booking",
        ),
    ],
)
def test_first_failing_rule_is_reported(booking, interpreter, reason):
    assert rejection_reason(booking, interpreter, set()) == reason


def test_blacklisted_interpreter_is_rejected():
    assert rejection_reason(make_booking(), make_interpreter(), {10}) == "blacklisted by customer"


def test_requested_interpreter_passes_reservation_rule():
    assert rejection_reason(make_booking(requested_interpreter_id=10), make_interpreter(), set()) is None


def test_town_match_ignores_case_and_whitespace():
    booking = make_booking(phone_capable=False, in_person_capable=True, town=" STOCKHOLM")
    assert rejection_reason(booking, make_interpreter(city="stockholm"), set()) is None


def test_town_ignored_when_phone_is_also_possible():
    booking = make_booking(phone_capable=True, in_person_capable=True, town="Malmö")
    assert rejection_reason(booking, make_interpreter(city="Stockholm"), set()) is None


def test_booking_town_falls_back_to_customer_city():
    booking = make_booking(town=None, customer=SimpleNamespace(profile=SimpleNamespace(city="Göteborg")))
    assert booking_town(booking) == "Göteborg"
    assert booking_town(make_booking(town="Lund")) == "Lund"


def test_normal_or_law_certification_accepts_laymen_and_law_specialists():
    booking = make_booking(certification=Certification.NORMAL_LAW)
    assert rejection_reason(booking, make_interpreter(level=CertificationLevel.LAYMAN), set()) is None
    assert rejection_reason(booking, make_interpreter(level=CertificationLevel.CERTIFIED_LAW), set()) is None
    assert rejection_reason(booking, make_interpreter(level=CertificationLevel.CERTIFIED_HEALTH), set()) is not None


def test_every_certification_has_a_level_table():
    for cert in Certification:
        assert allowed_levels(cert)
    assert allowed_levels(None) == frozenset(CertificationLevel)
    assert allowed_levels("unknown") == frozenset(CertificationLevel)


def test_job_type_tables():
    assert job_type_for_interpreter(InterpreterType.AGENCY) == JobType.RWS
    assert job_type_for_interpreter("rwstranslator") == JobType.RWS
    assert job_type_for_interpreter(None) == JobType.UNPAID
    assert job_type_for_consumer(ConsumerType.PAID) == JobType.PAID
    assert job_type_for_consumer("something-else") == JobType.UNPAID


@pytest.mark.parametrize(
    "job_for, expected",
    [
        ([], None),
        (["normal"], Certification.NORMAL),
        (["certified"], Certification.CERTIFIED),
        (["normal", "certified"], Certification.BOTH),
        (["normal", "certified_in_law"], Certification.NORMAL_LAW),
        (["normal", "certified_in_helth"], Certification.NORMAL_HEALTH),
        (["female", "certified_in_law"], Certification.LAW),
    ],
)
def test_certification_from_job_for(job_for, expected):
    assert certification_from_job_for(job_for) == expected


def test_gender_from_job_for():
    assert gender_from_job_for(["male", "normal"]) == Gender.MALE
    assert gender_from_job_for(["female"]) == Gender.FEMALE
    assert gender_from_job_for(["normal"]) is None
