"""
Observability sinks.

Sinks receive one ObservabilityEvent per dispatch phase. They are called
synchronously on the request path, so they must be fast and must not block.
"""
import json
import logging
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax

from ..types import EventPhase, ObservabilityEvent, ObservabilitySink

SENSITIVE_KEYS = frozenset({"password", "token", "access_token", "authorization", "secret"})


def mask_sensitive(value: Any, show_chars: int = 4) -> str:
    """Mask a sensitive value for display."""
    if value is None or value == "":
        return "<none>"
    text = str(value)
    if len(text) <= show_chars:
        return "*" * len(text)
    return text[:show_chars] + "***"


def redact(data: Any) -> Any:
    """Return ``data`` with values under sensitive keys masked."""
    if isinstance(data, dict):
        return {
            key: mask_sensitive(value)
            if str(key).lower() in SENSITIVE_KEYS
            else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data


def _format_body(body: Any) -> str:
    """Format body for pretty printing."""
    if body is None:
        return ""
    if isinstance(body, (dict, list)):
        return json.dumps(body, indent=2, ensure_ascii=False, default=str)
    if isinstance(body, bytes):
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return f"<binary data: {len(body)} bytes>"
    return str(body)


class NullSink:
    """Sink that drops every event."""

    def emit(self, event: ObservabilityEvent) -> None:
        return None


class LoggingSink:
    """Sink writing one log record per event through stdlib logging."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("fetch_coordinator.events")

    def emit(self, event: ObservabilityEvent) -> None:
        extra: Dict[str, Any] = {
            "phase": event.phase.value,
            "method": event.method,
            "url": event.url,
            "status_code": event.status_code,
            "error_kind": event.error_kind,
        }
        if event.phase is EventPhase.PRE:
            self._logger.info(
                f"request {event.method} {event.url} params={redact(event.params)} "
                f"data={redact(event.data)}",
                extra=extra,
            )
        elif event.phase is EventPhase.POST:
            self._logger.info(
                f"response {event.method} {event.url} status={event.status_code}",
                extra=extra,
            )
        else:
            self._logger.error(
                f"error {event.method} {event.url} kind={event.error_kind} "
                f"status={event.status_code}: {event.message}",
                extra=extra,
            )


class ConsoleSink:
    """Sink rendering events as rich panels on the console."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console()

    def emit(self, event: ObservabilityEvent) -> None:
        # URLs and server messages may contain markup-like brackets
        method = escape(event.method)
        url = escape(event.url)
        if event.phase is EventPhase.PRE:
            info = f"[bold cyan]{method}[/bold cyan] {url}"
            self._console.print(Panel(info, title="[bold blue]Request[/bold blue]"))
            if event.params:
                self._console.print("[bold]Params:[/bold]", redact(event.params))
            if event.data is not None:
                self._print_body(event.data, "[bold]Request Body[/bold]")
        elif event.phase is EventPhase.POST:
            status_color = (
                "green" if event.status_code is not None and 200 <= event.status_code < 300 else "red"
            )
            info = f"[bold {status_color}]{event.status_code}[/bold {status_color}]"
            self._console.print(
                Panel(info, title=f"[bold blue]Response[/bold blue] ({url})")
            )
            if event.data:
                self._print_body(event.data, f"[bold]Response Body[/bold] (URL: {url})")
        else:
            status = f" {event.status_code}" if event.status_code is not None else ""
            kind = escape(event.error_kind or "")
            message = escape(event.message or "")
            info = f"[bold red]{kind}{status}[/bold red] {message}"
            self._console.print(
                Panel(info, title=f"[bold red]Error[/bold red] ({method} {url})")
            )

    def _print_body(self, body: Any, title: str) -> None:
        syntax = Syntax(_format_body(redact(body)), "json", theme="monokai")
        self._console.print(Panel(syntax, title=title, expand=True))


class CompositeSink:
    """Fan events out to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable[ObservabilitySink]) -> None:
        self._sinks = list(sinks)

    def emit(self, event: ObservabilityEvent) -> None:
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception:
                logging.getLogger("fetch_coordinator.events").debug(
                    f"CompositeSink: sink {sink!r} failed", exc_info=True
                )
