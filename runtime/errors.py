"""Error taxonomy for the Lambda runtime client.

All runtime failures are represented by a single exception class tagged with
an ``ErrorKind``. Context is attached incrementally with ``add_context`` so
each layer can record what it knew when the failure happened.
"""

import json
import os
import traceback
from enum import Enum
from typing import Any, Dict, List, Optional

ENVIRONMENT_VARIABLES = [
    "AWS_LAMBDA_RUNTIME_API",
    "AWS_LAMBDA_FUNCTION_NAME",
    "AWS_LAMBDA_FUNCTION_VERSION",
    "AWS_LAMBDA_FUNCTION_MEMORY_SIZE",
    "AWS_LAMBDA_LOG_GROUP_NAME",
    "AWS_LAMBDA_LOG_STREAM_NAME",
]


class ErrorKind(str, Enum):
    """Kinds of runtime failures."""

    INITIALIZATION = "InitializationError"
    RUNTIME = "RuntimeError"
    TRANSFORMATION = "TransformationError"


class LambdaRuntimeError(Exception):
    """Raised for every failure the runtime reports to the control plane.

    ``INITIALIZATION`` errors are fatal: the control plane can no longer be
    reached and the process must exit. ``RUNTIME`` and ``TRANSFORMATION``
    errors are scoped to one invocation and reported through the error
    endpoint.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.RUNTIME,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message
            kind: Error kind
            context: Initial structured context
            cause: Underlying exception, if any
        """
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.context: Dict[str, Any] = dict(context or {})
        self.cause = cause
        self.invocation_id: Optional[str] = None
        self.stack_trace: List[str] = []
        if cause is not None:
            self.__cause__ = cause
            self.stack_trace = format_stack_trace(cause)

    def __str__(self) -> str:
        return self.message

    @property
    def error_type(self) -> str:
        """Name reported as ``errorType`` to the control plane."""
        return self.kind.value

    @property
    def is_fatal(self) -> bool:
        """True when the process cannot continue after this error."""
        return self.kind is ErrorKind.INITIALIZATION

    @property
    def transformation_type(self) -> str:
        """``request`` or ``response`` for transformation errors, else empty."""
        return str(self.context.get("transformation_type", ""))

    def add_context(self, key: str, value: Any) -> "LambdaRuntimeError":
        """Attach one context entry and return self for chaining."""
        self.context[key] = value
        return self

    def with_invocation_id(self, invocation_id: str) -> "LambdaRuntimeError":
        """Associate the error with an invocation."""
        self.invocation_id = invocation_id
        return self.add_context("invocation_id", invocation_id)

    def describe(self) -> str:
        """Message followed by the JSON-encoded context, for log lines."""
        if not self.context:
            return self.message
        return f"{self.message}\nContext: {json.dumps(self.context, indent=2, default=str)}"

    @classmethod
    def initialization(
        cls,
        message: str,
        configuration: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> "LambdaRuntimeError":
        """Create a fatal initialization error.

        Args:
            message: Error message
            configuration: Configuration in effect when the failure happened
            cause: Underlying exception

        Returns:
            Initialization error
        """
        error = cls(message, ErrorKind.INITIALIZATION, cause=cause)
        return error.add_context("configuration", dict(configuration or {}))

    @classmethod
    def from_environment(
        cls, message: str, cause: Optional[BaseException] = None
    ) -> "LambdaRuntimeError":
        """Create an initialization error carrying the Lambda environment."""
        environment = {
            name: os.environ[name] for name in ENVIRONMENT_VARIABLES if name in os.environ
        }
        return cls.initialization(message, {"environment": environment}, cause)

    @classmethod
    def for_invocation(
        cls, message: str, invocation_id: str, cause: Optional[BaseException] = None
    ) -> "LambdaRuntimeError":
        """Create a per-invocation runtime error."""
        return cls(message, ErrorKind.RUNTIME, cause=cause).with_invocation_id(invocation_id)

    @classmethod
    def for_request(
        cls,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> "LambdaRuntimeError":
        """Create an error for an event that could not become an HTTP request."""
        return cls._transformation("request", message, context, cause)

    @classmethod
    def for_response(
        cls,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> "LambdaRuntimeError":
        """Create an error for a response that could not become a Lambda envelope."""
        return cls._transformation("response", message, context, cause)

    @classmethod
    def _transformation(
        cls,
        transformation_type: str,
        message: str,
        context: Optional[Dict[str, Any]],
        cause: Optional[BaseException],
    ) -> "LambdaRuntimeError":
        merged = {"transformation_type": transformation_type}
        merged.update(context or {})
        return cls(message, ErrorKind.TRANSFORMATION, context=merged, cause=cause)

    @classmethod
    def wrap(cls, error: BaseException, invocation_id: str) -> "LambdaRuntimeError":
        """Wrap an arbitrary handler exception into a runtime error.

        The original message is kept verbatim and the original type is
        recorded as ``error_type`` context.

        Args:
            error: Exception raised by handler code
            invocation_id: AWS request id of the failing invocation

        Returns:
            Runtime error for the invocation
        """
        wrapped = cls.for_invocation(str(error), invocation_id, cause=error)
        return wrapped.add_context("error_type", type(error).__name__)


def format_stack_trace(error: BaseException) -> List[str]:
    """Format an exception's traceback as a list of lines.

    Args:
        error: Exception to format

    Returns:
        Stack frames, one string per line, or an empty list without a traceback
    """
    if error.__traceback__ is None:
        return []
    lines: List[str] = []
    for frame in traceback.format_tb(error.__traceback__):
        lines.extend(line for line in frame.rstrip("\n").split("\n") if line)
    return lines
