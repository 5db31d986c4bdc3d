from __future__ import annotations

import logging

from clinic_bot.application.ports.mailer import MailerPort
from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.infrastructure.mail.smtp_mailer import render_booking_email


class MockMailer(MailerPort):
    def __init__(self) -> None:
        self.sent: list[Appointment] = []
        self._logger = logging.getLogger(__name__)

    def send_booking_notification(self, appointment: Appointment) -> None:
        subject, text, _ = render_booking_email(appointment)
        self.sent.append(appointment)
        self._logger.info("Mock booking email", extra={"reason": subject, "reply_text": text})
