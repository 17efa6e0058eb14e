from .fingerprint import generate_fingerprint, canonicalize
from .registry import CancellationHandle, PendingRegistry
from .classifier import ErrorClassifier
from .coordinator import RequestCoordinator

__all__ = [
    "generate_fingerprint",
    "canonicalize",
    "CancellationHandle",
    "PendingRegistry",
    "ErrorClassifier",
    "RequestCoordinator",
]
