"""
OneSignal Push Service
Sends booking push notifications to interpreters and customers by email tag
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..config import ONESIGNAL_API_KEY, ONESIGNAL_API_URL, ONESIGNAL_APP_ID, PUSH_TITLE
from .senders import DeliveryResult

logger = logging.getLogger(__name__)


def build_user_tags(emails: list[str]) -> list[dict]:
    """OneSignal tag filter matching any of the given user emails"""
    tags = []
    for i, email in enumerate(emails):
        if i > 0:
            tags.append({"operator": "OR"})
        tags.append({"key": "email", "relation": "=", "value": email})
    return tags


def pick_sounds(payload: dict) -> tuple[str, str]:
    """Android and iOS sounds; new-booking pushes get a distinct sound for emergencies"""
    if payload.get("notification_type") != "suitable_job":
        return "default", "default"
    if payload.get("immediate"):
        return "emergency_booking", "emergency_booking.mp3"
    return "normal_booking", "normal_booking.mp3"


def build_push_fields(emails: list[str], payload: dict, send_after: Optional[datetime] = None) -> dict:
    android_sound, ios_sound = pick_sounds(payload)
    data = {key: value for key, value in payload.items() if key not in ("text", "subject", "template_id", "data")}
    fields = {
        "app_id": ONESIGNAL_APP_ID,
        "filters": build_user_tags(emails),
        "data": data,
        "headings": {"en": PUSH_TITLE},
        "contents": {"en": payload.get("text", "")},
        "ios_badgeType": "Increase",
        "ios_badgeCount": 1,
        "android_sound": android_sound,
        "ios_sound": ios_sound,
    }
    if send_after is not None:
        fields["send_after"] = send_after.replace(tzinfo=timezone.utc).strftime("%Y-%m-%d %H:%M:%S GMT%z")
    return fields


async def send_push_notification(
    targets: list, payload: dict, send_after: Optional[datetime] = None
) -> DeliveryResult:
    """
    Send one OneSignal notification to a group of recipients

    Args:
        targets: Recipient snapshots (only the email tag is used)
        payload: Booking payload including the localized text
        send_after: Optional UTC time to hold the notification until

    Returns:
        DeliveryResult with the OneSignal notification id on success
    """
    emails = [t.email for t in targets if t.email]
    if not emails:
        return DeliveryResult(ok=False, error="No push targets")

    if not ONESIGNAL_APP_ID or not ONESIGNAL_API_KEY:
        logger.error("❌ OneSignal not configured - ONESIGNAL_APP_ID or ONESIGNAL_API_KEY missing")
        return DeliveryResult(ok=False, error="Push service not configured")

    fields = build_push_fields(emails, payload, send_after)
    job_id = payload.get("job_id")
    logger.info(
        f"📱 Sending push for booking {job_id} to {len(emails)} recipients"
        + (f" (send_after={fields['send_after']})" if send_after else "")
    )

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                ONESIGNAL_API_URL,
                headers={"Authorization": f"Basic {ONESIGNAL_API_KEY}"},
                json=fields,
                timeout=10.0,
            )
        if response.status_code in [200, 201]:
            notification_id = response.json().get("id")
            logger.info(f"✅ Push sent for booking {job_id} (id: {notification_id})")
            return DeliveryResult(ok=True, provider_id=notification_id)

        logger.error(f"❌ OneSignal API error {response.status_code}: {response.text[:200]}")
        return DeliveryResult(ok=False, error=f"OneSignal returned {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Push request failed for booking {job_id}: {e}")
        return DeliveryResult(ok=False, error=str(e))
