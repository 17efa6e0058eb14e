from .base import Transport
from .httpx_transport import HttpxTransport

__all__ = [
    "Transport",
    "HttpxTransport",
]
