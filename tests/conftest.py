from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from interpreter_booking import models
from interpreter_booking.database import Base, build_engine
from interpreter_booking.domain.bookings.context import ActingUser
from interpreter_booking.domain.bookings.enums import (
    BookingStatus,
    CertificationLevel,
    ConsumerType,
    Gender,
    InterpreterType,
    JobType,
    Role,
)
from interpreter_booking.services.senders import DeliveryResult

# Tuesday 2026-03-10, 11:00 in Stockholm
NOW = datetime(2026, 3, 10, 10, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class FakeSender:
    """In-memory MessageSender recording every call"""

    def __init__(self):
        self.emails: list[dict] = []
        self.pushes: list[dict] = []
        self.sms: list[dict] = []
        self.fail_channels: set[str] = set()

    async def send_email(self, to, name, subject, template_id, data):
        if "email" in self.fail_channels:
            return DeliveryResult(ok=False, error="smtp down")
        self.emails.append({"to": to, "name": name, "subject": subject, "template_id": template_id, "data": data})
        return DeliveryResult(ok=True, provider_id=f"email-{len(self.emails)}")

    async def send_push(self, targets, payload, send_after=None):
        if "push" in self.fail_channels:
            raise RuntimeError("onesignal unreachable")
        self.pushes.append({"targets": [t.user_id for t in targets], "payload": payload, "send_after": send_after})
        return DeliveryResult(ok=True, provider_id=f"push-{len(self.pushes)}")

    async def send_sms(self, from_number, to, body):
        if "sms" in self.fail_channels:
            return DeliveryResult(ok=False, error="[21211] Invalid 'To' Phone Number")
        self.sms.append({"from": from_number, "to": to, "body": body})
        return DeliveryResult(ok=True, provider_id=f"sms-{len(self.sms)}")


@pytest.fixture
def fake_sender():
    return FakeSender()


class Factory:
    """Creates committed users, languages and bookings"""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def language(self, name="Arabic"):
        return self._save(models.Language(name=name))

    def customer(self, consumer_type=ConsumerType.PAID, city="Stockholm", email=None, **profile):
        n = self._next()
        user = models.User(
            role=Role.CUSTOMER,
            email=email or f"customer{n}@example.com",
            name=f"Customer {n}",
            mobile=f"+4670000{n:04d}",
        )
        user.profile = models.UserProfile(consumer_type=consumer_type, city=city, **profile)
        return self._save(user)

    def interpreter(
        self,
        languages=(),
        interpreter_type=InterpreterType.PROFESSIONAL,
        level=CertificationLevel.CERTIFIED,
        gender=Gender.FEMALE,
        city="Stockholm",
        mobile="default",
        **prefs,
    ):
        n = self._next()
        user = models.User(
            role=Role.INTERPRETER,
            email=f"interpreter{n}@example.com",
            name=f"Interpreter {n}",
            mobile=f"+4673000{n:04d}" if mobile == "default" else mobile,
        )
        user.profile = models.UserProfile(
            interpreter_type=interpreter_type,
            certification_level=level,
            gender=gender,
            city=city,
            **prefs,
        )
        user.languages = [models.UserLanguage(language_id=lang.id) for lang in languages]
        return self._save(user)

    def admin(self):
        n = self._next()
        return self._save(models.User(role=Role.ADMIN, email=f"admin{n}@example.com", name=f"Admin {n}"))

    def booking(
        self,
        customer,
        language,
        due=None,
        status=BookingStatus.PENDING,
        duration=60,
        phone=True,
        physical=False,
        immediate=False,
        job_type=JobType.PAID,
        **fields,
    ):
        due = due or NOW + timedelta(days=2)
        return self._save(
            models.Booking(
                customer_id=customer.id,
                source_language_id=language.id,
                status=status,
                due=due,
                duration=duration,
                phone_capable=phone,
                in_person_capable=physical,
                immediate=immediate,
                job_type=job_type,
                created_at=fields.pop("created_at", NOW - timedelta(hours=1)),
                **fields,
            )
        )

    def assign(self, booking, interpreter, at=None, completed=False):
        assignment = models.Assignment(
            booking_id=booking.id,
            interpreter_id=interpreter.id,
            assigned_at=at or NOW - timedelta(minutes=30),
            completed_at=(at or NOW) if completed else None,
        )
        return self._save(assignment)

    def blacklist(self, customer, interpreter):
        return self._save(models.BlacklistEntry(customer_id=customer.id, interpreter_id=interpreter.id))


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def arabic(factory):
    return factory.language("Arabic")


@pytest.fixture
def admin(factory):
    user = factory.admin()
    return ActingUser(id=user.id, role=Role.ADMIN, email=user.email)
