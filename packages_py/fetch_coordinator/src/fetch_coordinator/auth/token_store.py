"""
Token stores supplying the bearer token for outbound requests.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..observability.sinks import mask_sensitive

logger = logging.getLogger("fetch_coordinator.token_store")


class MemoryTokenStore:
    """Token store kept in process memory."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token or None

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        logger.debug(f"MemoryTokenStore.set_token: token={mask_sensitive(token)}")
        self._token = token or None

    def clear_token(self) -> None:
        logger.debug("MemoryTokenStore.clear_token")
        self._token = None


class FileTokenStore:
    """
    Token store persisted as ``{"access_token": ...}`` in a JSON file.

    A missing, unreadable or malformed file reads as "no token"; a malformed
    file is removed.
    """

    def __init__(self, path: Union[str, Path], key: str = "access_token") -> None:
        self._path = Path(path)
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def get_token(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r") as f:
                data = json.load(f)
            token = data[self._key]
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.warning(f"FileTokenStore: discarding malformed token file {self._path}")
            self._path.unlink(missing_ok=True)
            return None
        return token if isinstance(token, str) and token else None

    def set_token(self, token: str) -> None:
        logger.debug(f"FileTokenStore.set_token: token={mask_sensitive(token)}")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w") as f:
            json.dump({self._key: token}, f)

    def clear_token(self) -> None:
        logger.debug(f"FileTokenStore.clear_token: removing {self._path}")
        self._path.unlink(missing_ok=True)
