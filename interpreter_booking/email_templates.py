"""
MJML Email Templates
Booking emails for customers and interpreters, looked up by template id
"""

from html import escape
from typing import Callable, Optional

THEME = {
    "primary": "#1d4ed8",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}

BRAND_NAME = "DigitalTolk"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all booking emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="18px 40px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="22px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>
        {cta_section}
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              {BRAND_NAME}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _booking_details(data: dict) -> str:
    rows = [
        ("Bokningsnr", f"#{data.get('job_id', '')}"),
        ("Språk", data.get("language", "")),
        ("Datum och tid", data.get("due", "")),
        ("Längd", f"{data.get('duration', '')} min"),
    ]
    if data.get("town"):
        rows.append(("Ort", data["town"]))
    lines = "<br/>".join(f"<strong>{label}:</strong> {escape(str(value))}" for label, value in rows)
    return f"""
    <mj-text padding="8px 0 16px 0" color="{THEME['text_muted']}">
      {lines}
    </mj-text>
    """


def _greeting(data: dict) -> str:
    name = escape(data.get("name") or "")
    return f"<mj-text>Hej {name},</mj-text>"


def _paragraph(text: str) -> str:
    return f"<mj-text>{text}</mj-text>"


def booking_received_template(data: dict) -> str:
    content = (
        _greeting(data)
        + _paragraph("Vi har mottagit er tolkbokning och letar nu efter en tolk.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Vi har mottagit er bokning", content)


def booking_reopened_template(data: dict) -> str:
    content = (
        _greeting(data)
        + _paragraph("Er bokning har återöppnats och erbjuds nu på nytt till våra tolkar.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Bokningen är återöppnad", content)


def job_accepted_template(data: dict) -> str:
    content = (
        _greeting(data)
        + _paragraph("En tolk har accepterat er bokning. Detaljer om tolken finns i appen.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Tolk har accepterat er bokning", content)


def job_assigned_template(data: dict) -> str:
    content = (
        _greeting(data)
        + _paragraph("Du har tilldelats följande tolkuppdrag.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Nytt tolkuppdrag", content)


def status_changed_template(data: dict) -> str:
    new_status = escape(str(data.get("new_status", "")))
    content = (
        _greeting(data)
        + _paragraph(f"Statusen för er bokning har ändrats till <strong>{new_status}</strong>.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Statusändring", content)


def session_ended_customer_template(data: dict) -> str:
    session = escape(data.get("session_text", ""))
    content = (
        _greeting(data)
        + _paragraph(f"Tolkningen är avslutad. Faktureringsbar tid: <strong>{session}</strong>.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Avslutad tolkning", content)


def session_ended_interpreter_template(data: dict) -> str:
    session = escape(data.get("session_text", ""))
    content = (
        _greeting(data)
        + _paragraph(f"Tack för ditt uppdrag. Tid som ligger till grund för lön: <strong>{session}</strong>.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Avslutad tolkning", content)


def job_cancelled_template(data: dict) -> str:
    content = (
        _greeting(data)
        + _paragraph("Bokningen nedan har avbokats.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Avbokning", content)


def job_changed_template(data: dict) -> str:
    change = escape(data.get("change_text", ""))
    content = (
        _greeting(data)
        + _paragraph(f"Bokningen har ändrats: {change}")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Ändrad bokning", content)


def interpreter_removed_template(data: dict) -> str:
    content = (
        _greeting(data)
        + _paragraph("Du är inte längre tilldelad följande uppdrag.")
        + _booking_details(data)
    )
    return get_base_template(data["subject"], "Ändrad bokning", content)


TEMPLATES: dict[str, Callable[[dict], str]] = {
    "booking-received": booking_received_template,
    "booking-reopened": booking_reopened_template,
    "job-accepted": job_accepted_template,
    "job-assigned": job_assigned_template,
    "status-changed": status_changed_template,
    "session-ended-customer": session_ended_customer_template,
    "session-ended-interpreter": session_ended_interpreter_template,
    "job-cancelled": job_cancelled_template,
    "job-changed": job_changed_template,
    "interpreter-removed": interpreter_removed_template,
}


def render_template(template_id: str, data: dict) -> str:
    try:
        builder = TEMPLATES[template_id]
    except KeyError as e:
        raise ValueError(f"Unknown email template: {template_id}") from e
    return builder(data)
