from __future__ import annotations

import functools
import logging
from typing import Callable, TypeVar

from clinic_bot.application.exceptions import BackupAuthError, BackupError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_token_refresh(method: Callable[..., T]) -> Callable[..., T]:
    """
    Retry a remote call once after refreshing an expired access token.

    The wrapped method raises BackupAuthError on HTTP 401. Its owner must
    provide `refresh_access_token()`. A second 401, or a failed refresh,
    surfaces as BackupError.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs) -> T:
        try:
            return method(self, *args, **kwargs)
        except BackupAuthError:
            logger.warning("Access token rejected; refreshing", extra={"reason": method.__name__})

        self.refresh_access_token()
        try:
            return method(self, *args, **kwargs)
        except BackupAuthError as e:
            raise BackupError(f"{method.__name__} rejected after token refresh") from e

    return wrapper
