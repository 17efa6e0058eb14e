"""
Configuration for fetch_coordinator.

ConfigSnapshot is the value the coordinator copies at configuration time.
HttpConfigProvider is the mutable holder applications edit before pushing a
snapshot with ``RequestCoordinator.update_config``.
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("fetch_coordinator.config")

ENV_API_URL = "APP_API_URL"
ENV_API_TIMEOUT_MS = "APP_API_TIMEOUT_MS"

DEFAULT_BASE_URL = "http://localhost:8726"
DEFAULT_TIMEOUT_MS = 10000
DEFAULT_HEADERS: Dict[str, str] = {"Content-Type": "application/json"}


@dataclass
class ConfigSnapshot:
    """Base URL, timeout and default headers applied to every request."""

    base_url: str = DEFAULT_BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    default_headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def copy(self) -> "ConfigSnapshot":
        return ConfigSnapshot(
            base_url=self.base_url,
            timeout_ms=self.timeout_ms,
            default_headers=dict(self.default_headers),
        )


def validate_config(config: ConfigSnapshot) -> None:
    """Validate a configuration snapshot."""
    if not config.base_url:
        raise ValueError("base_url is required")

    parsed = urlparse(config.base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid base_url: {config.base_url}")

    if isinstance(config.timeout_ms, bool) or not isinstance(config.timeout_ms, int):
        raise ValueError(f"timeout_ms must be an integer, got: {config.timeout_ms!r}")
    if config.timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be positive, got: {config.timeout_ms}")


def resolve_config(config: Optional[ConfigSnapshot] = None) -> ConfigSnapshot:
    """Validate and return a private copy of ``config`` (or the defaults)."""
    resolved = (config or ConfigSnapshot()).copy()
    validate_config(resolved)
    return resolved


class HttpConfigProvider:
    """Holder of the application's HTTP configuration.

    Example:
        provider = HttpConfigProvider()
        provider.set_port("api.internal", 9000)
        provider.set_headers({"X-Client": "desktop"})
        coordinator.update_config(provider.get_config())
    """

    def __init__(self, config: Optional[ConfigSnapshot] = None) -> None:
        if config is None:
            config = ConfigSnapshot(
                base_url=os.environ.get(ENV_API_URL) or DEFAULT_BASE_URL,
            )
        self._config = config.copy()

    def set_config(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Replace the given fields, keeping the others."""
        if base_url is not None:
            self._config.base_url = base_url
        if timeout_ms is not None:
            self._config.timeout_ms = timeout_ms
        if default_headers is not None:
            self._config.default_headers = dict(default_headers)

    def get_config(self) -> ConfigSnapshot:
        """Return a copy of the current configuration."""
        return self._config.copy()

    def set_base_url(self, base_url: str) -> None:
        self._config.base_url = base_url

    def set_port(self, host: str, port: int) -> None:
        """Point the base URL at ``host:port``, keeping the current scheme."""
        protocol = "https" if self._config.base_url.startswith("https") else "http"
        self._config.base_url = f"{protocol}://{host}:{port}"

    def set_timeout(self, timeout_ms: int) -> None:
        self._config.timeout_ms = timeout_ms

    def set_headers(self, headers: Mapping[str, str]) -> None:
        """Merge ``headers`` into the default headers."""
        self._config.default_headers = {**self._config.default_headers, **headers}


class HttpClientSettings(BaseModel):
    """Validated ``http_client`` section of a YAML config file."""

    base_url: Optional[str] = None
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    headers: Dict[str, str] = Field(default_factory=dict)

    def to_snapshot(self) -> ConfigSnapshot:
        return ConfigSnapshot(
            base_url=self.base_url or DEFAULT_BASE_URL,
            timeout_ms=self.timeout_ms or DEFAULT_TIMEOUT_MS,
            default_headers={**DEFAULT_HEADERS, **self.headers},
        )


def load_config_from_env(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ConfigSnapshot:
    """
    Build a snapshot from environment variables.

    Values from ``env_file`` (a dotenv file) are read first; variables already
    present in the process environment take precedence.

    Args:
        env_file: Optional path to a .env file
        environ: Environment mapping (default: os.environ)
    """
    values: Dict[str, Any] = {}
    if env_file is not None:
        path = Path(env_file)
        if path.exists():
            values.update({k: v for k, v in dotenv_values(path).items() if v is not None})
            logger.debug(f"load_config_from_env: loaded {len(values)} vars from {path}")
        else:
            logger.warning(f"load_config_from_env: env file not found: {path}")
    values.update(environ if environ is not None else os.environ)

    timeout_raw = values.get(ENV_API_TIMEOUT_MS)
    timeout_ms = DEFAULT_TIMEOUT_MS
    if timeout_raw:
        try:
            timeout_ms = int(timeout_raw)
        except ValueError as e:
            raise ValueError(f"{ENV_API_TIMEOUT_MS} must be an integer, got: {timeout_raw!r}") from e

    snapshot = ConfigSnapshot(
        base_url=values.get(ENV_API_URL) or DEFAULT_BASE_URL,
        timeout_ms=timeout_ms,
    )
    validate_config(snapshot)
    return snapshot


def load_config_from_yaml(
    path: Union[str, Path],
    section: str = "http_client",
) -> ConfigSnapshot:
    """
    Build a snapshot from the ``section`` of a YAML file.

    Example file:
        http_client:
          base_url: https://api.example.com
          timeout_ms: 5000
          headers:
            X-Client: desktop
    """
    file_path = Path(path)
    logger.debug(f"load_config_from_yaml: parsing {file_path}")
    raw = yaml.safe_load(file_path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {file_path}")

    try:
        settings = HttpClientSettings.model_validate(raw.get(section) or {})
    except ValidationError as e:
        raise ValueError(f"Invalid '{section}' section in {file_path}: {e}") from e

    snapshot = settings.to_snapshot()
    validate_config(snapshot)
    logger.info(f"Loaded HTTP config from: {file_path}")
    return snapshot
