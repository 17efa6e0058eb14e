from .request_interceptor import RequestInterceptor
from .response_interceptor import ResponseInterceptor, to_envelope

__all__ = [
    "RequestInterceptor",
    "ResponseInterceptor",
    "to_envelope",
]
