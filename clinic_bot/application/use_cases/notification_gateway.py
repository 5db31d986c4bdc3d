from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from clinic_bot.application.exceptions import BackupError, MailDeliveryError
from clinic_bot.application.ports.backup import BackupPort
from clinic_bot.application.ports.mailer import MailerPort
from clinic_bot.domain.entities.step_result import BookingCommitted, SideEffect, StoreChanged


class NotificationGateway:
    """
    Runs conversation side effects off the reply path.

    A committed booking emails the office and syncs the backup; any other
    store change only syncs the backup. Failures are logged and never reach
    the conversation: the local store stays the source of truth.
    """

    def __init__(
        self,
        mailer: MailerPort,
        backup: BackupPort,
        executor: Executor | None = None,
        max_workers: int = 2,
    ) -> None:
        self._mailer = mailer
        self._backup = backup
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify"
        )
        self._logger = logging.getLogger(__name__)

    def dispatch(self, effects: list[SideEffect]) -> list[Future]:
        """Schedule effects and return immediately."""
        return [self._executor.submit(self.run, effect) for effect in effects]

    def run(self, effect: SideEffect) -> None:
        if isinstance(effect, BookingCommitted):
            self._send_email(effect)
            self._sync_backup("booking_committed")
        elif isinstance(effect, StoreChanged):
            self._sync_backup(effect.reason)
        else:
            self._logger.warning("Unknown side effect ignored", extra={"effect": type(effect).__name__})

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _send_email(self, effect: BookingCommitted) -> None:
        try:
            self._mailer.send_booking_notification(effect.appointment)
            self._logger.info(
                "Booking email sent",
                extra={"effect": "email", "appointment_id": effect.appointment.id},
            )
        except MailDeliveryError as e:
            self._logger.error(
                "Booking email failed",
                extra={"effect": "email", "appointment_id": effect.appointment.id, "error": str(e)},
            )
        except Exception as e:
            self._logger.exception("Unexpected error sending booking email", extra={"error": str(e)})

    def _sync_backup(self, reason: str) -> None:
        try:
            self._backup.upload()
            self._logger.info("Backup synced", extra={"effect": "backup", "reason": reason})
        except BackupError as e:
            self._logger.error(
                "Backup sync failed", extra={"effect": "backup", "reason": reason, "error": str(e)}
            )
        except Exception as e:
            self._logger.exception("Unexpected error syncing backup", extra={"error": str(e)})
