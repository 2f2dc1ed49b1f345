"""Core data model for the Lambda runtime client.

This module defines the value types that travel through one poll cycle:
the invocation ``Event`` (raw payload), the invocation ``Context``
(function and request identity) and the ``Invocation`` pairing them.
"""

import copy
import json
import time
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Iterator, Optional, Protocol

from pydantic import BaseModel, Field


class Context(BaseModel):
    """Invocation metadata passed to handler code.

    Function identity comes from the process configuration and stays constant
    for the lifetime of the runtime; request identity comes from the headers
    of the ``next`` response and changes per invocation. Every field is a
    string and defaults to empty. Instances are frozen: assigning a field
    raises a ``ValidationError``.
    """

    function_name: str = Field(default="", description="AWS_LAMBDA_FUNCTION_NAME")
    function_version: str = Field(default="", description="AWS_LAMBDA_FUNCTION_VERSION")
    invoked_function_arn: str = Field(
        default="", description="Lambda-Runtime-Invoked-Function-Arn header"
    )
    memory_limit_in_mb: str = Field(default="", description="AWS_LAMBDA_FUNCTION_MEMORY_SIZE")
    aws_request_id: str = Field(default="", description="Lambda-Runtime-Aws-Request-Id header")
    log_group_name: str = Field(default="", description="AWS_LAMBDA_LOG_GROUP_NAME")
    log_stream_name: str = Field(default="", description="AWS_LAMBDA_LOG_STREAM_NAME")
    deadline_ms: str = Field(
        default="", description="Lambda-Runtime-Deadline-Ms header (epoch milliseconds)"
    )
    trace_id: str = Field(default="", description="Lambda-Runtime-Trace-Id header")
    x_amzn_trace_id: str = Field(default="", description="_X_AMZN_TRACE_ID of this invocation")
    identity: str = Field(default="", description="Lambda-Runtime-Cognito-Identity header")
    client_context: str = Field(default="", description="Lambda-Runtime-Client-Context header")

    class Config:
        """Pydantic config."""

        frozen = True
        extra = "forbid"

    def to_dict(self) -> Dict[str, str]:
        """Return the context as a camelCase dictionary.

        These keys are what HTTP handlers see as server parameters.

        Returns:
            Context fields keyed by their Lambda names
        """
        return {
            "functionName": self.function_name,
            "functionVersion": self.function_version,
            "invokedFunctionArn": self.invoked_function_arn,
            "memoryLimitInMB": self.memory_limit_in_mb,
            "awsRequestId": self.aws_request_id,
            "logGroupName": self.log_group_name,
            "logStreamName": self.log_stream_name,
            "deadlineMs": self.deadline_ms,
            "traceId": self.trace_id,
            "xAmznTraceId": self.x_amzn_trace_id,
            "identity": self.identity,
            "clientContext": self.client_context,
        }

    def get_remaining_time_in_millis(self) -> int:
        """Milliseconds left before the invocation deadline.

        Returns:
            Remaining time, never negative; 0 when the deadline is unknown
        """
        try:
            deadline = int(self.deadline_ms)
        except ValueError:
            return 0
        return max(deadline - int(time.time() * 1000), 0)


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class Event(Mapping):
    """Read-only view of one invocation payload.

    The payload is an arbitrary JSON tree whose shape depends on the trigger.
    Indexing follows the mapping contract and raises ``KeyError``; ``get`` and
    ``lookup`` return a default for absent keys. Nested objects are exposed as
    read-only mappings and arrays as tuples.
    """

    def __init__(self, payload: Any = None) -> None:
        self._payload = _freeze(copy.deepcopy(payload))

    @classmethod
    def from_json(cls, raw: str) -> "Event":
        """Parse a JSON document into an event.

        Args:
            raw: JSON text from the ``next`` response body

        Returns:
            Parsed event

        Raises:
            json.JSONDecodeError: If the document is malformed
        """
        return cls(json.loads(raw))

    @property
    def payload(self) -> Any:
        """The frozen payload, which may be a scalar or array for non-object events."""
        return self._payload

    def __getitem__(self, key: str) -> Any:
        if not isinstance(self._payload, Mapping):
            raise KeyError(key)
        return self._payload[key]

    def __iter__(self) -> Iterator[str]:
        if not isinstance(self._payload, Mapping):
            return iter(())
        return iter(self._payload)

    def __len__(self) -> int:
        if not isinstance(self._payload, Mapping):
            return 0
        return len(self._payload)

    def __repr__(self) -> str:
        return f"Event({self.to_dict()!r})"

    def lookup(self, *path: str, default: Any = None) -> Any:
        """Walk a key path through nested objects.

        Args:
            *path: Keys to follow, outermost first
            default: Value returned when any step is missing or not an object

        Returns:
            The value at the end of the path, or ``default``
        """
        current = self._payload
        for key in path:
            if not isinstance(current, Mapping) or key not in current:
                return default
            current = current[key]
        return current

    def to_dict(self) -> Any:
        """Return a mutable deep copy of the payload."""
        return _thaw(self._payload)

    def to_json(self) -> str:
        """Serialize the payload back to JSON."""
        return json.dumps(self.to_dict())


class Invocation(BaseModel):
    """One poll cycle's payload and metadata."""

    event: Event
    context: Context

    class Config:
        """Pydantic config."""

        frozen = True
        arbitrary_types_allowed = True

    @property
    def invocation_id(self) -> str:
        """AWS request id used to address the terminal call."""
        return self.context.aws_request_id


class Handler(Protocol):
    """Callable invoked once per event in the generic runtime."""

    def __call__(self, event: Dict[str, Any], context: Context) -> Any:
        ...


def build_context(
    headers: Mapping,
    function_identity: Optional[Dict[str, str]] = None,
) -> Context:
    """Assemble a context from ``next`` response headers and function identity.

    Args:
        headers: Response headers (case-insensitive mapping)
        function_identity: Function-level fields taken from the configuration

    Returns:
        Context with every field populated, missing values as empty strings
    """
    identity = function_identity or {}
    return Context(
        function_name=identity.get("function_name", ""),
        function_version=identity.get("function_version", ""),
        invoked_function_arn=headers.get("Lambda-Runtime-Invoked-Function-Arn", ""),
        memory_limit_in_mb=identity.get("memory_limit_in_mb", ""),
        aws_request_id=headers.get("Lambda-Runtime-Aws-Request-Id", ""),
        log_group_name=identity.get("log_group_name", ""),
        log_stream_name=identity.get("log_stream_name", ""),
        deadline_ms=headers.get("Lambda-Runtime-Deadline-Ms", ""),
        trace_id=headers.get("Lambda-Runtime-Trace-Id", ""),
        # The header value is what the process exports as _X_AMZN_TRACE_ID
        x_amzn_trace_id=headers.get("Lambda-Runtime-Trace-Id", ""),
        identity=headers.get("Lambda-Runtime-Cognito-Identity", ""),
        client_context=headers.get("Lambda-Runtime-Client-Context", ""),
    )
