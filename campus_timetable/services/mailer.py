"""
SMTP delivery of timetable PDFs.
"""

import logging
import os
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Iterable, List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "Class Timetable"
EMAIL_BODY = "Please find attached the latest class timetable."


class EmailDeliveryError(RuntimeError):
    pass


def _smtp_settings() -> dict:
    return {
        "host": os.getenv("SMTP_HOST", "smtp.gmail.com"),
        "port": int(os.getenv("SMTP_PORT", "587")),
        "user": os.getenv("SMTP_EMAIL"),
        "password": os.getenv("SMTP_PASSWORD"),
        "from_name": os.getenv("SMTP_FROM_NAME", "Admin"),
    }


def _build_message(sender: str, from_name: str, recipient: str, pdf_bytes: bytes, filename: str) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["Subject"] = EMAIL_SUBJECT
    msg["From"] = formataddr((from_name, sender))
    msg["To"] = recipient
    msg.attach(MIMEText(EMAIL_BODY, "plain", "utf-8"))

    attachment = MIMEApplication(pdf_bytes, _subtype="pdf")
    attachment.add_header("Content-Disposition", "attachment", filename=filename)
    msg.attach(attachment)
    return msg


def send_timetable_email(recipients: Iterable[str], pdf_bytes: bytes, filename: str = "timetable.pdf") -> List[str]:
    """
    Send the timetable PDF to each recipient over one SMTP connection.
    Returns the addresses the message was sent to.
    """
    recipients = [r for r in recipients if r]
    if not recipients:
        raise EmailDeliveryError("No recipients to send the timetable to")

    settings = _smtp_settings()
    if not settings["user"] or not settings["password"]:
        raise EmailDeliveryError("SMTP credentials are not configured")

    try:
        with smtplib.SMTP(settings["host"], settings["port"], timeout=15) as server:
            server.starttls()
            server.login(settings["user"], settings["password"])
            for recipient in recipients:
                msg = _build_message(settings["user"], settings["from_name"], recipient, pdf_bytes, filename)
                server.sendmail(settings["user"], [recipient], msg.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send timetable email: {exc}")
        raise EmailDeliveryError(f"Failed to send timetable email: {exc}") from exc

    logger.info(f"Timetable emailed to {len(recipients)} recipient(s)")
    return recipients
