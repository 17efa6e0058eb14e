"""
Factory functions for creating request coordinators.
"""
from pathlib import Path
from typing import Optional, Union

import httpx

from .auth.token_store import FileTokenStore, MemoryTokenStore
from .config import ConfigSnapshot, HttpConfigProvider, load_config_from_env, validate_config
from .core.coordinator import RequestCoordinator
from .observability.sinks import ConsoleSink, LoggingSink, NullSink
from .transport.httpx_transport import HttpxTransport
from .types import ObservabilitySink, TokenStore


def _resolve_sink(sink: Union[ObservabilitySink, str, None]) -> ObservabilitySink:
    if sink is None or sink == "null":
        return NullSink()
    if sink == "logging":
        return LoggingSink()
    if sink == "console":
        return ConsoleSink()
    if isinstance(sink, str):
        raise ValueError(f"Unknown sink: {sink}. Must be one of: ['console', 'logging', 'null']")
    return sink


def create_coordinator(
    config: Optional[ConfigSnapshot] = None,
    *,
    base_url: Optional[str] = None,
    timeout_ms: Optional[int] = None,
    token_store: Optional[TokenStore] = None,
    sink: Union[ObservabilitySink, str, None] = None,
    httpx_client: Optional[httpx.AsyncClient] = None,
) -> RequestCoordinator:
    """
    Create a RequestCoordinator over the default httpx transport.

    Args:
        config: Base configuration (default: ConfigSnapshot())
        base_url: Override config.base_url
        timeout_ms: Override config.timeout_ms
        token_store: Token store (default: empty MemoryTokenStore)
        sink: Sink instance or one of "console", "logging", "null"
        httpx_client: Pre-configured httpx.AsyncClient to send through

    Example:
        http = create_coordinator(base_url="https://api.example.com", sink="logging")
        envelope = await http.get("/users")
    """
    snapshot = (config or ConfigSnapshot()).copy()
    if base_url is not None:
        snapshot.base_url = base_url
    if timeout_ms is not None:
        snapshot.timeout_ms = timeout_ms
    validate_config(snapshot)

    return RequestCoordinator(
        snapshot,
        transport=HttpxTransport(httpx_client),
        token_store=token_store if token_store is not None else MemoryTokenStore(),
        sink=_resolve_sink(sink),
    )


def create_coordinator_from_provider(
    provider: HttpConfigProvider,
    **kwargs,
) -> RequestCoordinator:
    """Create a coordinator from the provider's current configuration."""
    return create_coordinator(provider.get_config(), **kwargs)


def create_coordinator_from_env(
    env_file: Optional[Union[str, Path]] = None,
    *,
    token_file: Optional[Union[str, Path]] = None,
    **kwargs,
) -> RequestCoordinator:
    """
    Create a coordinator configured from APP_API_URL / APP_API_TIMEOUT_MS.

    When ``token_file`` is given the token is persisted in that JSON file.
    """
    if token_file is not None:
        kwargs["token_store"] = FileTokenStore(token_file)
    return create_coordinator(load_config_from_env(env_file), **kwargs)
