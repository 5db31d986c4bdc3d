from abc import ABC, abstractmethod

from clinic_bot.domain.entities.appointment import Appointment


class MailerPort(ABC):
    @abstractmethod
    def send_booking_notification(self, appointment: Appointment) -> None:
        """Notify the office of a new booking. Raises MailDeliveryError."""
        raise NotImplementedError
