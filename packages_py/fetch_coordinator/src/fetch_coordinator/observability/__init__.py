from .sinks import CompositeSink, ConsoleSink, LoggingSink, NullSink

__all__ = [
    "CompositeSink",
    "ConsoleSink",
    "LoggingSink",
    "NullSink",
]
