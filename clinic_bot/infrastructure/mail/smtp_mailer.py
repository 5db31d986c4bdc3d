from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from clinic_bot.application.exceptions import MailDeliveryError
from clinic_bot.application.ports.mailer import MailerPort
from clinic_bot.domain.entities.appointment import Appointment

BOOKING_SUBJECT = "Nueva cita agendada"


def booking_fields(appointment: Appointment) -> list[tuple[str, str]]:
    return [
        ("Cédula", appointment.person_id),
        ("Nombre", appointment.full_name),
        ("Celular", appointment.phone),
        ("Fecha", appointment.date),
        ("Hora", appointment.time_slot),
    ]


def render_booking_email(appointment: Appointment) -> tuple[str, str, str]:
    """Return (subject, text body, html body) for a new-booking notice."""
    fields = booking_fields(appointment)
    text = "\n".join([BOOKING_SUBJECT, ""] + [f"{label}: {value}" for label, value in fields])
    html = f"<h1>{BOOKING_SUBJECT}</h1>\n" + "\n".join(
        f"<p><strong>{label}:</strong> {escape(value)}</p>" for label, value in fields
    )
    return BOOKING_SUBJECT, text, html


class SmtpMailer(MailerPort):
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str | None,
        recipient: str | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._recipient = recipient or user
        self._timeout = timeout
        self._logger = logging.getLogger(__name__)

    def send_booking_notification(self, appointment: Appointment) -> None:
        subject, text, html = render_booking_email(appointment)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._user
        msg["To"] = self._recipient
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls()
                if self._password:
                    server.login(self._user, self._password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery to {self._recipient} failed: {e}") from e

        self._logger.info("Booking email delivered", extra={"appointment_id": appointment.id})
