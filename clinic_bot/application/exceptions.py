class BookingRuleViolation(Exception):
    """Raised when a candidate appointment breaks a booking rule."""

    def __init__(self, message: str, date: str, time_slot: str) -> None:
        super().__init__(message)
        self.date = date
        self.time_slot = time_slot


class SlotTakenError(BookingRuleViolation):
    """Raised when the (date, time slot) pair is already booked."""
    pass


class DailyLimitExceededError(BookingRuleViolation):
    """Raised when the person already holds the maximum appointments for the date."""

    def __init__(self, message: str, date: str, time_slot: str, limit: int) -> None:
        super().__init__(message, date, time_slot)
        self.limit = limit


class SlotConflictError(SlotTakenError):
    """Raised by the store when the UNIQUE(fecha, hora) constraint rejects an insert."""
    pass


class PersistenceError(RuntimeError):
    """Raised when the appointment store fails for reasons other than a slot conflict."""
    pass


class BackupError(RuntimeError):
    """Raised when the remote backup cannot be read or written."""
    pass


class BackupAuthError(BackupError):
    """Raised when the backup provider rejects the access token (HTTP 401)."""
    pass


class MailDeliveryError(RuntimeError):
    """Raised when the mail relay does not accept a notification."""
    pass
