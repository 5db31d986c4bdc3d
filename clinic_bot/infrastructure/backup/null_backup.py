from __future__ import annotations

import logging

from clinic_bot.application.ports.backup import BackupPort


class NullBackup(BackupPort):
    """Backup that only logs; used in dev/local or when Dropbox is not configured."""

    def __init__(self) -> None:
        self.uploads = 0
        self._logger = logging.getLogger(__name__)

    def upload(self) -> None:
        self.uploads += 1
        self._logger.info("Backup upload skipped (no remote configured)")

    def download(self) -> bool:
        self._logger.info("Backup download skipped (no remote configured)")
        return False
