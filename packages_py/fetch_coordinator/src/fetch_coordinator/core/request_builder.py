"""
Request builder utilities for fetch_coordinator.

Merge functions document their precedence explicitly: the right-hand
argument always wins.
"""
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin, urlparse

NONCE_PARAM = "_t"
AUTHORIZATION_HEADER = "Authorization"


def build_url(base_url: str, path: str) -> str:
    """Build full URL from base and path."""
    parsed_path = urlparse(path)
    if parsed_path.scheme and parsed_path.netloc:
        return path

    # Absolute paths keep the base_url path and append the new path
    if path.startswith("/"):
        parsed = urlparse(base_url)
        base_path = parsed.path.rstrip("/")
        return f"{parsed.scheme}://{parsed.netloc}{base_path}{path}"

    if path:
        # urljoin replaces the last segment if base doesn't end with /
        if not base_url.endswith("/"):
            base_url = base_url + "/"
        return urljoin(base_url, path)

    return base_url


def find_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Return the key of ``name`` in ``headers``, matched case-insensitively."""
    lower = name.lower()
    for key in headers:
        if key.lower() == lower:
            return key
    return None


def merge_headers(
    defaults: Optional[Mapping[str, str]],
    overrides: Optional[Mapping[str, str]],
) -> Dict[str, str]:
    """
    Merge ``overrides`` over ``defaults``.

    Keys are matched case-insensitively; on conflict the override's key
    spelling and value replace the default entry.
    """
    result: Dict[str, str] = dict(defaults or {})
    for key, value in (overrides or {}).items():
        existing = find_header(result, key)
        if existing is not None:
            del result[existing]
        result[key] = value
    return result


def merge_params(
    params: Optional[Mapping[str, Any]],
    extra: Mapping[str, Any],
) -> Dict[str, Any]:
    """Merge ``extra`` over a copy of ``params``."""
    result: Dict[str, Any] = dict(params or {})
    result.update(extra)
    return result


def with_cache_nonce(params: Optional[Mapping[str, Any]], now_ms: int) -> Dict[str, Any]:
    """Return params with the cache-defeating ``_t`` nonce merged in."""
    return merge_params(params, {NONCE_PARAM: now_ms})


def with_bearer_token(headers: Mapping[str, str], token: Optional[str]) -> Dict[str, str]:
    """Merge ``Authorization: Bearer <token>`` over ``headers`` when a token is set."""
    if not token:
        return dict(headers)
    return merge_headers(headers, {AUTHORIZATION_HEADER: f"Bearer {token}"})


def build_request_headers(
    default_headers: Optional[Mapping[str, str]],
    caller_headers: Optional[Mapping[str, str]],
    token: Optional[str],
) -> Dict[str, str]:
    """
    Build outbound headers.

    Precedence, lowest first: configured defaults, stored bearer token,
    caller headers. A caller-supplied Authorization header is never
    overwritten by the token.
    """
    return merge_headers(with_bearer_token(default_headers or {}, token), caller_headers)
