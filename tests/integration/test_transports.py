from datetime import datetime

import pytest

from interpreter_booking.services import push_service, twilio_service
from interpreter_booking.services.notification_service import RecipientSnapshot

ONESIGNAL_URL = "https://onesignal.test/api/v1/notifications"


@pytest.fixture
def onesignal(monkeypatch):
    monkeypatch.setattr(push_service, "ONESIGNAL_APP_ID", "app-123")
    monkeypatch.setattr(push_service, "ONESIGNAL_API_KEY", "key-abc")
    monkeypatch.setattr(push_service, "ONESIGNAL_API_URL", ONESIGNAL_URL)


@pytest.fixture
def twilio(monkeypatch):
    monkeypatch.setattr(twilio_service, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(twilio_service, "TWILIO_AUTH_TOKEN", "secret")


def targets(*emails):
    return [RecipientSnapshot(user_id=i, email=e) for i, e in enumerate(emails, start=1)]


def test_user_tags_are_or_joined():
    assert push_service.build_user_tags(["a@x.se", "b@x.se"]) == [
        {"key": "email", "relation": "=", "value": "a@x.se"},
        {"operator": "OR"},
        {"key": "email", "relation": "=", "value": "b@x.se"},
    ]


def test_booking_push_sounds():
    assert push_service.pick_sounds({"notification_type": "suitable_job", "immediate": True}) == (
        "emergency_booking",
        "emergency_booking.mp3",
    )
    assert push_service.pick_sounds({"notification_type": "suitable_job"}) == ("normal_booking", "normal_booking.mp3")
    assert push_service.pick_sounds({"notification_type": "job_expired"}) == ("default", "default")


@pytest.mark.asyncio
async def test_push_posts_to_onesignal(onesignal, httpx_mock):
    httpx_mock.add_response(method="POST", url=ONESIGNAL_URL, json={"id": "notif-1", "recipients": 2})
    payload = {"job_id": 42, "notification_type": "suitable_job", "immediate": False, "text": "Ny bokning"}

    result = await push_service.send_push_notification(
        targets("a@x.se", "b@x.se"), payload, send_after=datetime(2026, 3, 11, 6, 0)
    )

    assert result.ok
    assert result.provider_id == "notif-1"
    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Basic key-abc"
    body = request.read().decode()
    assert '"app_id":"app-123"' in body.replace(" ", "")
    assert "2026-03-11 06:00:00 GMT+0000" in body
    assert '"text"' not in body


@pytest.mark.asyncio
async def test_push_error_status_is_a_failed_result(onesignal, httpx_mock):
    httpx_mock.add_response(method="POST", url=ONESIGNAL_URL, status_code=400, json={"errors": ["bad"]})

    result = await push_service.send_push_notification(targets("a@x.se"), {"job_id": 1, "text": "x"})

    assert not result.ok
    assert "400" in result.error


@pytest.mark.asyncio
async def test_push_without_configuration_does_not_call_out(monkeypatch):
    monkeypatch.setattr(push_service, "ONESIGNAL_APP_ID", None)
    result = await push_service.send_push_notification(targets("a@x.se"), {"job_id": 1})
    assert not result.ok


@pytest.mark.asyncio
async def test_sms_posts_to_twilio(twilio, httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json",
        status_code=201,
        json={"sid": "SM1"},
    )

    result = await twilio_service.send_sms("+46700000000", "+46701234567", "Hej!")

    assert result.ok
    assert result.provider_id == "SM1"
    body = httpx_mock.get_request().read().decode()
    assert "To=%2B46701234567" in body
    assert "From=%2B46700000000" in body


@pytest.mark.asyncio
async def test_sms_error_carries_twilio_code(twilio, httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json",
        status_code=400,
        json={"code": 21211, "message": "Invalid 'To' Phone Number"},
    )

    result = await twilio_service.send_sms("+46700000000", "+46701234567", "Hej!")

    assert not result.ok
    assert result.error == "[21211] Invalid 'To' Phone Number"


@pytest.mark.asyncio
async def test_sms_rejects_numbers_without_country_code(twilio):
    result = await twilio_service.send_sms("+46700000000", "0701234567", "Hej!")
    assert not result.ok
    assert "E.164" in result.error


@pytest.mark.asyncio
async def test_sms_error_without_json_body_is_a_failed_result(twilio, httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json",
        status_code=502,
        text="<html>Bad Gateway</html>",
    )

    result = await twilio_service.send_sms("+46700000000", "+46701234567", "Hej!")

    assert not result.ok
    assert result.error == "<html>Bad Gateway</html>"
