"""Logging utilities for the Lambda runtime client.

Provides centralized JSON and LTSV logging configuration, Lambda context
enrichment and sensitive data sanitization.
"""

import json
import logging
import os
import resource
import sys
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional

from pythonjsonlogger import json as jsonlogger

from runtime.config import LoggingConfiguration, resolve_timezone

# Sensitive keys to filter (case-insensitive)
SENSITIVE_KEYS = [
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "token",
    "bearer",
    "password",
    "passwd",
    "secret",
    "credential",
    "credentials",
    "session_id",
    "cookie",
]

# Sensitive header prefixes (case-insensitive)
SENSITIVE_HEADER_PREFIXES = [
    "x-api-key",
    "x-auth",
    "x-token",
    "x-secret",
    "x-amz-security-token",
    "authorization",
    "cookie",
    "set-cookie",
]

LAMBDA_CONTEXT_VARIABLES = [
    "AWS_LAMBDA_FUNCTION_NAME",
    "AWS_LAMBDA_FUNCTION_VERSION",
    "AWS_LAMBDA_LOG_GROUP_NAME",
    "AWS_LAMBDA_LOG_STREAM_NAME",
]

_RESERVED_RECORD_KEYS = (
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "asctime", "datefmt", "taskName",
)


def configure_json_logging(config: Optional[LoggingConfiguration] = None) -> None:
    """Configure ALL loggers to use structured output.

    Sets up the root logger with a single stream handler so every module
    logger inherits the same format. Lambda forwards stderr to CloudWatch,
    so records go there.

    Args:
        config: Logging settings; defaults to INFO, compact JSON in UTC
    """
    config = config or LoggingConfiguration()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, config.level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    if config.format == "ltsv":
        formatter: logging.Formatter = _LtsvFormatter()
    elif config.pretty:
        formatter = _PrettyJsonFormatter()
    else:
        formatter = _JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            timestamp=True,
        )
    formatter.tz = resolve_timezone(config.timezone)

    handler.setFormatter(formatter)
    handler.addFilter(
        LambdaContextFilter(
            lambda_context=config.lambda_context,
            trace_id=config.request_id,
            memory_usage=config.include_memory_usage,
        )
    )

    root_logger.addHandler(handler)


class LambdaContextFilter(logging.Filter):
    """Adds Lambda environment information to every log record."""

    def __init__(
        self, lambda_context: bool = True, trace_id: bool = True, memory_usage: bool = False
    ) -> None:
        super().__init__()
        self.lambda_context = lambda_context
        self.trace_id = trace_id
        self.memory_usage = memory_usage

    def filter(self, record: logging.LogRecord) -> bool:
        if self.lambda_context and not hasattr(record, "lambda_context"):
            lambda_context = {
                name: os.environ[name] for name in LAMBDA_CONTEXT_VARIABLES if name in os.environ
            }
            if lambda_context:
                record.lambda_context = lambda_context

        # X-Ray trace id of the current invocation, exported by the worker
        if self.trace_id and not hasattr(record, "trace_id"):
            trace_id = os.environ.get("_X_AMZN_TRACE_ID")
            if trace_id:
                record.trace_id = trace_id

        if self.memory_usage:
            # ru_maxrss is reported in kilobytes on Linux
            record.memory = {"peak_kb": resource.getrusage(resource.RUSAGE_SELF).ru_maxrss}

        return True


class _ZonedTimeMixin:
    """Renders record times as ISO 8601 in ``tz``."""

    tz: tzinfo = timezone.utc

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        created = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return created.strftime(datefmt)
        return created.isoformat(timespec="milliseconds")


class _JsonFormatter(_ZonedTimeMixin, jsonlogger.JsonFormatter):
    """Compact JSON for CloudWatch."""


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in record.__dict__.items() if key not in _RESERVED_RECORD_KEYS
    }


class _LtsvFormatter(_ZonedTimeMixin, logging.Formatter):
    """Labeled Tab-separated Values, one ``label:value`` pair per field.

    Nested values are written as compact JSON. Tabs and line breaks inside
    values are escaped so every record stays on one line.
    """

    def _format_value(self, value: Any) -> str:
        if isinstance(value, (dict, list, tuple)):
            text = json.dumps(value, ensure_ascii=False, default=str)
        else:
            text = str(value)
        return text.replace("\t", "\\t").replace("\n", "\\n").replace("\r", "\\r")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as one LTSV line."""
        fields: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields.update(_extra_fields(record))
        if record.exc_info:
            fields["exc_info"] = self.formatException(record.exc_info)

        return "\t".join(f"{key}:{self._format_value(value)}" for key, value in fields.items())


class _PrettyJsonFormatter(_ZonedTimeMixin, logging.Formatter):
    """Pretty JSON formatter for local development.

    Formats logs as indented JSON and truncates large nested structures
    to keep terminal output readable.
    """

    def __init__(self, max_string_length: int = 500, max_list_items: int = 10):
        super().__init__()
        self.max_string_length = max_string_length
        self.max_list_items = max_list_items

    def _truncate_value(self, value: Any, depth: int = 0) -> Any:
        if depth > 3:
            return "..."

        if isinstance(value, str):
            if len(value) > self.max_string_length:
                return value[:self.max_string_length] + f"... (truncated, {len(value)} chars)"
            return value
        elif isinstance(value, dict):
            truncated = {}
            for k, v in list(value.items())[:20]:
                truncated[k] = self._truncate_value(v, depth + 1)
            if len(value) > 20:
                truncated["..."] = f"(truncated, {len(value)} keys)"
            return truncated
        elif isinstance(value, (list, tuple)):
            items = [self._truncate_value(item, depth + 1) for item in value[:self.max_list_items]]
            if len(value) > self.max_list_items:
                items.append(f"... (truncated, {len(value)} items)")
            return items
        else:
            return value

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as pretty JSON."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in _extra_fields(record).items():
            log_data[key] = self._truncate_value(value)

        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        try:
            return json.dumps(log_data, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return json.dumps({"message": str(record.getMessage())}, indent=2)


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(sensitive_key in key_lower for sensitive_key in SENSITIVE_KEYS)


def sanitize_dict(data: Any, sensitive_keys: Optional[List[str]] = None) -> Any:
    """Recursively sanitize dictionary values for sensitive keys.

    Preserves structure but replaces sensitive values with [REDACTED].

    Args:
        data: Data to sanitize (dict, list, or primitive)
        sensitive_keys: Optional list of additional sensitive keys to check

    Returns:
        Sanitized data with same structure
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if _is_sensitive_key(str(key)) or (
                sensitive_keys and any(sk.lower() in str(key).lower() for sk in sensitive_keys)
            ):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = sanitize_dict(value, sensitive_keys)
        return sanitized
    elif isinstance(data, list):
        return [sanitize_dict(item, sensitive_keys) for item in data]
    else:
        return data


def sanitize_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize HTTP headers by filtering sensitive headers.

    Args:
        headers: HTTP headers dictionary

    Returns:
        Sanitized headers dictionary
    """
    sanitized = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if any(
            key_lower.startswith(prefix) for prefix in SENSITIVE_HEADER_PREFIXES
        ) or _is_sensitive_key(key):
            sanitized[key] = "[REDACTED]"
        else:
            sanitized[key] = value
    return sanitized


def format_request_log(
    request_id: str,
    http_method: str,
    request_path: str,
    headers: Dict[str, Any],
    query_params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Format structured log entry for an inbound HTTP request.

    Args:
        request_id: AWS request id
        http_method: HTTP method (GET, POST, etc.)
        request_path: Request path
        headers: HTTP headers
        query_params: Query string parameters

    Returns:
        Dictionary with structured log data
    """
    return {
        "request_id": request_id,
        "http_method": http_method,
        "request_path": request_path,
        "request_headers": sanitize_headers(headers),
        "query_params": sanitize_dict(dict(query_params or {})),
    }


def format_response_log(
    request_id: str,
    status_code: int,
    headers: Dict[str, Any],
    is_base64_encoded: bool,
    duration_ms: Optional[float] = None,
) -> Dict[str, Any]:
    """Format structured log entry for an outbound HTTP response.

    Args:
        request_id: AWS request id
        status_code: HTTP status code
        headers: Folded response headers
        is_base64_encoded: Whether the body is sent base64-encoded
        duration_ms: Handler duration in milliseconds

    Returns:
        Dictionary with structured log data
    """
    log_data: Dict[str, Any] = {
        "request_id": request_id,
        "response_status": status_code,
        "response_headers": sanitize_headers(headers),
        "is_base64_encoded": is_base64_encoded,
    }
    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)
    return log_data
