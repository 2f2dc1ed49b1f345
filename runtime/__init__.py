"""Lambda Runtime API client: data model, protocol client and runtime loop."""

from .config import LoggingConfiguration, RuntimeConfiguration, load_configuration
from .errors import ErrorKind, LambdaRuntimeError
from .interfaces import Context, Event, Handler, Invocation
from .loop import Runtime
from .worker import Worker

__all__ = [
    "Context",
    "ErrorKind",
    "Event",
    "Handler",
    "Invocation",
    "LambdaRuntimeError",
    "LoggingConfiguration",
    "Runtime",
    "RuntimeConfiguration",
    "Worker",
    "load_configuration",
]
