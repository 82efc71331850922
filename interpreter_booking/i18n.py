"""
Localized message catalogue

Push, SMS and email subject texts are Swedish. Missing keys fall back to the
key itself so a typo never blocks a notification.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

MESSAGES = {
    # Push texts
    "push.suitable_job": "Ny bokning för {language}tolk {duration}min {due}",
    "push.suitable_job_immediate": "Ny akutbokning för {language}tolk {duration}min",
    "push.job_accepted": (
        "Din bokning för {language} tolk, {duration}min, {due} har accepterats av en tolk. "
        "Vänligen öppna appen för att se detaljer om tolken."
    ),
    "push.job_cancelled_by_customer": (
        "Kunden har avbokat bokningen för {language} tolk, {duration}min, {due}. "
        "Var god och kolla dina tidigare bokningar för detaljer."
    ),
    "push.job_cancelled_by_interpreter": (
        "Er {language} tolk, {duration}min {due}, har avbokat tolkningen. "
        "Vi letar nu efter en ny tolk som kan ersätta denne. Tack."
    ),
    "push.job_expired": (
        "Tyvärr har ingen tolk accepterat er bokning: ({language}, {duration}min, {due}). "
        "Vänligen pröva boka om tiden."
    ),
    "push.session_start_remind_physical": (
        "Detta är en påminnelse om att du har en {language}tolkning (på plats i {town}) kl {time} "
        "på {date} som varar i {duration} min. Lycka till och kom ihåg att ge feedback efter "
        "utförd tolkning!"
    ),
    "push.session_start_remind_phone": (
        "Detta är en påminnelse om att du har en {language}tolkning (telefon) kl {time} "
        "på {date} som varar i {duration} min. Lycka till och kom ihåg att ge feedback efter "
        "utförd tolkning!"
    ),
    "push.session_ended": "Tolkningen för bokning #{job_id} ({language}, {due}) är nu avslutad.",
    # SMS texts
    "sms.phone_job": (
        "Hej! Ett nytt telefontolkuppdrag finns den {date} kl {time}, {duration}. "
        "Bokningsnr #{job_id}. Öppna appen för att acceptera."
    ),
    "sms.physical_job": (
        "Hej! Ett nytt platstolkuppdrag finns i {town} den {date} kl {time}, {duration}. "
        "Bokningsnr #{job_id}. Öppna appen för att acceptera."
    ),
    # Email subjects
    "email.booking_received": "Vi har mottagit er tolkbokning. Bokningsnr: #{job_id}",
    "email.booking_reopened": (
        "Vi har nu återöppnat er bokning av {language}tolk för bokning #{job_id}"
    ),
    "email.interpreter_accepted": (
        "Bekräftelse - tolk har accepterat er bokning (bokning # {job_id})"
    ),
    "email.new_assignment": "Meddelande om tilldelning av tolkuppdrag för uppdrag #{job_id}",
    "email.status_changed": "Statusändring för er tolkbokning #{job_id}",
    "email.session_completed": "Information om avslutad tolkning för bokningsnummer #{job_id}",
    "email.booking_withdrawn": "Avbokning av bokningsnr: #{job_id}",
    "email.booking_changed": "Meddelande om ändring av tolkbokning för uppdrag #{job_id}",
    "email.interpreter_removed": "Meddelande om ändring av tolkbokning för uppdrag #{job_id}",
    # Booking change descriptions
    "change.due": "ny tid {new_due} (tidigare {old_due})",
    "change.language": "nytt språk {new_language} (tidigare {old_language})",
    "change.interpreter": "en ny tolk har tilldelats bokningen",
    # Session length
    "session.elapsed": "{hours} tim {minutes} min",
}


def translate(key: str, params: Optional[dict] = None) -> str:
    template = MESSAGES.get(key)
    if template is None:
        logger.warning(f"⚠️ Missing translation key: {key}")
        return key
    try:
        return template.format(**(params or {}))
    except KeyError as e:
        logger.warning(f"⚠️ Missing parameter {e} for translation key {key}")
        return template
