"""
Twilio SMS Service
Sends new-booking SMS to interpreters
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN
from .senders import DeliveryResult

logger = logging.getLogger(__name__)


async def send_sms(from_number: Optional[str], to_phone: str, message_body: str) -> DeliveryResult:
    """
    Send SMS via Twilio

    Args:
        from_number: Sender number in E.164 format
        to_phone: Recipient phone number (should be in E.164 format)
        message_body: SMS message content

    Returns:
        DeliveryResult with the Twilio message SID on success
    """
    if not to_phone:
        return DeliveryResult(ok=False, error="No phone number provided")

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return DeliveryResult(ok=False, error="Phone number must be in E.164 format (e.g., +46701234567)")

    if not TWILIO_ACCOUNT_SID or not TWILIO_AUTH_TOKEN or not from_number:
        logger.error("❌ Twilio not configured - account SID, auth token or SMS_NUMBER missing")
        return DeliveryResult(ok=False, error="SMS service not configured")

    try:
        logger.info(f"🚀 Sending SMS to Twilio API for {to_phone}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"https://api.twilio.com/2010-04-01/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data={"To": to_phone, "From": from_number, "Body": message_body},
                timeout=10.0,
            )

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully to {to_phone} (SID: {message_sid})")
            return DeliveryResult(ok=True, provider_id=message_sid)

        try:
            error_data = response.json()
        except ValueError:
            # Gateways in front of Twilio answer with HTML or plain text
            error_data = {"message": response.text or f"HTTP {response.status_code}"}
        error_message = error_data.get("message", "Unknown error")
        error_code = error_data.get("code")
        logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
        return DeliveryResult(
            ok=False, error=f"[{error_code}] {error_message}" if error_code else error_message
        )
    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {str(e)}")
        return DeliveryResult(ok=False, error=str(e))
