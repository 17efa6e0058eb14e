"""
Request fingerprint generation.

A fingerprint identifies a logical request: method, url, params and body.
Headers and timeout never take part in it.
"""
import hashlib
import json
from typing import Any

from ..types import RequestDescriptor

ABSENT_SENTINEL: dict = {}


def canonicalize(value: Any) -> Any:
    """Return a JSON-ready copy of ``value`` with a stable key order."""
    if isinstance(value, dict) or hasattr(value, "items"):
        return {
            str(key): canonicalize(item)
            for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))
        }
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, default=str))
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def serialize_component(value: Any) -> str:
    """Serialize params or body; absent values use the ``{}`` sentinel."""
    if value is None:
        value = ABSENT_SENTINEL
    return json.dumps(
        canonicalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def generate_fingerprint(descriptor: RequestDescriptor) -> str:
    """Default fingerprint generator using SHA-256."""
    components = [
        descriptor.method.upper(),
        descriptor.url,
        serialize_component(descriptor.params),
        serialize_component(descriptor.body),
    ]
    hasher = hashlib.sha256()
    hasher.update(json.dumps(components, ensure_ascii=False).encode())
    return hasher.hexdigest()
