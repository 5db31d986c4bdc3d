from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable

import httpx

from clinic_bot.application.exceptions import BackupAuthError, BackupError, PersistenceError
from clinic_bot.application.ports.backup import BackupPort
from clinic_bot.infrastructure.backup.token_refresh import with_token_refresh


class DropboxBackup(BackupPort):
    """Whole-file snapshot of the appointments database kept in Dropbox."""

    def __init__(
        self,
        database_path: str,
        access_token: str | None,
        refresh_token: str | None,
        client_id: str | None,
        client_secret: str | None,
        remote_path: str = "/citas.db",
        token_url: str = "https://api.dropbox.com/oauth2/token",
        content_url: str = "https://content.dropboxapi.com/2",
        http_client: httpx.Client | None = None,
        snapshot: Callable[[Path], None] | None = None,
    ) -> None:
        self._database_path = Path(database_path)
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._client_id = client_id
        self._client_secret = client_secret
        self._remote_path = remote_path
        self._token_url = token_url
        self._content_url = content_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=30.0)
        self._snapshot = snapshot
        self._io_lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

        if not (access_token or refresh_token):
            raise ValueError("DROPBOX_ACCESS_TOKEN or DROPBOX_REFRESH_TOKEN is required for Dropbox backup")

    @with_token_refresh
    def upload(self) -> None:
        with self._io_lock:
            contents = self._read_snapshot()
            response = self._post(
                "/files/upload",
                {"path": self._remote_path, "mode": "overwrite", "mute": True},
                content=contents,
            )
            self._raise_for_status(response, "upload")
            self._logger.info(
                "Database uploaded to Dropbox",
                extra={"path": self._remote_path, "size": len(contents)},
            )

    @with_token_refresh
    def download(self) -> bool:
        with self._io_lock:
            response = self._post("/files/download", {"path": self._remote_path})
            if response.status_code == 409 and "not_found" in response.text:
                self._logger.info("No remote backup yet", extra={"path": self._remote_path})
                return False
            self._raise_for_status(response, "download")

            self._database_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self._database_path.with_suffix(".download.tmp")
            try:
                temp_path.write_bytes(response.content)
                temp_path.replace(self._database_path)
            except OSError as e:
                temp_path.unlink(missing_ok=True)
                raise BackupError(f"Cannot write database file {self._database_path}") from e

            self._logger.info(
                "Database downloaded from Dropbox",
                extra={"path": self._remote_path, "size": len(response.content)},
            )
            return True

    def _read_snapshot(self) -> bytes:
        """Bytes of a consistent copy of the database, never a raw read of the live file."""
        if not self._database_path.exists():
            raise BackupError(f"Database file {self._database_path} does not exist")

        temp_path = self._database_path.with_suffix(".snapshot.tmp")
        try:
            temp_path.unlink(missing_ok=True)
            if self._snapshot is not None:
                self._snapshot(temp_path)
            else:
                sqlite_file_snapshot(self._database_path, temp_path)
            return temp_path.read_bytes()
        except (PersistenceError, sqlite3.Error, OSError) as e:
            raise BackupError(f"Cannot snapshot database file {self._database_path}") from e
        finally:
            temp_path.unlink(missing_ok=True)

    def refresh_access_token(self) -> str:
        if not (self._refresh_token and self._client_id and self._client_secret):
            raise BackupError("Dropbox refresh credentials are not configured")

        try:
            response = self._client.post(
                self._token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.HTTPError as e:
            raise BackupError("Dropbox token endpoint unreachable") from e

        if response.status_code >= 400:
            self._logger.error(
                "Dropbox token refresh failed",
                extra={"status": response.status_code, "error": response.text[:200]},
            )
            raise BackupError(f"Dropbox token refresh failed with HTTP {response.status_code}")

        token = response.json().get("access_token")
        if not token:
            raise BackupError("Dropbox token response had no access_token")

        self._access_token = token
        self._logger.info("Dropbox access token renewed")
        return token

    def _post(self, endpoint: str, api_arg: dict, content: bytes = b"") -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._access_token or ''}",
            "Dropbox-API-Arg": json.dumps(api_arg),
            "Content-Type": "application/octet-stream",
        }
        try:
            return self._client.post(f"{self._content_url}{endpoint}", headers=headers, content=content)
        except httpx.HTTPError as e:
            raise BackupError(f"Dropbox request {endpoint} failed: {e}") from e

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code == 401:
            raise BackupAuthError(f"Dropbox {operation} unauthorized")
        if response.status_code >= 400:
            self._logger.error(
                "Dropbox request failed",
                extra={"status": response.status_code, "reason": operation, "error": response.text[:200]},
            )
            raise BackupError(f"Dropbox {operation} failed with HTTP {response.status_code}")


def sqlite_file_snapshot(source: Path, target: Path) -> None:
    """Copy a SQLite file through the backup API, which reads under SQLite's own locks."""
    src = sqlite3.connect(f"{source.resolve().as_uri()}?mode=ro", uri=True)
    try:
        dst = sqlite3.connect(str(target))
        try:
            src.backup(dst)
        finally:
            dst.close()
    finally:
        src.close()
