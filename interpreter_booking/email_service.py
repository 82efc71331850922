"""
Booking Email Service using Resend
Renders MJML templates and sends transactional booking emails
"""

import logging
from typing import Optional

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import render_template
from .services.senders import DeliveryResult

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        errors = getattr(result, "errors", None)
        if errors:
            logger.warning(f"MJML compilation warnings: {errors}")
        return getattr(result, "html", str(result))
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_booking_email(
    to: str,
    name: Optional[str],
    subject: str,
    template_id: str,
    data: dict,
    from_address: Optional[str] = None,
) -> DeliveryResult:
    """
    Send a booking email through Resend

    Args:
        to: Recipient email
        name: Recipient display name used in the greeting
        subject: Email subject line
        template_id: Key in email_templates.TEMPLATES
        data: Template data (booking details and change parameters)
        from_address: Optional custom from address

    Returns:
        DeliveryResult with the Resend email id on success
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        return DeliveryResult(ok=False, error="Email service not configured")

    html_content = compile_mjml_to_html(render_template(template_id, {**data, "name": name, "subject": subject}))

    try:
        logger.info(f"📧 Sending {template_id} email via Resend to: {to}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": [to],
                "subject": subject,
                "html": html_content,
            }
        )
        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"✅ Email sent successfully via Resend: {email_id}")
        return DeliveryResult(ok=True, provider_id=email_id)
    except Exception as e:
        logger.error(f"❌ Email send error to {to}: {e}")
        return DeliveryResult(ok=False, error=str(e))
