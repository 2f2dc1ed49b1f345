"""Runtime configuration for the Lambda runtime client.

The configuration is built once at process start, from the Lambda
environment variables and, for local runs, an optional YAML file. It is
then passed explicitly to the worker and the transformers.
"""

import logging
import os
from datetime import timezone as dt_timezone, tzinfo
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from runtime.errors import LambdaRuntimeError

logger = logging.getLogger(__name__)

DEFAULT_RUNTIME_API = "127.0.0.1:9001"
DEFAULT_API_VERSION = "2018-06-01"

_TRUE_VALUES = ("1", "true", "yes", "on")

LOG_FORMATS = ("json", "ltsv")


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in _TRUE_VALUES


def resolve_timezone(name: str) -> tzinfo:
    """Look up a timezone by IANA name.

    Raises:
        ValueError: If the name is not a known timezone
    """
    if name.strip().upper() == "UTC":
        return dt_timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


class LoggingConfiguration(BaseModel):
    """Logging settings for the runtime process."""

    level: str = Field(default="INFO", description="Root log level")
    pretty: bool = Field(default=False, description="Indented JSON for local development")
    include_memory_usage: bool = Field(default=False, description="Add peak RSS to each record")
    lambda_context: bool = Field(default=True, description="Add function identity to each record")
    request_id: bool = Field(default=True, description="Add the X-Ray trace id to each record")
    format: str = Field(default="json", description="Record format: json or ltsv")
    timezone: str = Field(default="UTC", description="Timezone of record timestamps")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate that the level is a standard logging level name."""
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate the record format name."""
        log_format = v.strip().lower()
        if log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown log format: {v}, expected one of {LOG_FORMATS}")
        return log_format

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate that the timezone can be resolved."""
        resolve_timezone(v)
        return v.strip()

    class Config:
        """Pydantic config."""

        extra = "forbid"


class RuntimeConfiguration(BaseModel):
    """Configuration schema for the runtime process."""

    runtime_api: str = Field(
        default=DEFAULT_RUNTIME_API, description="host:port of the Runtime API (AWS_LAMBDA_RUNTIME_API)"
    )
    api_version: str = Field(default=DEFAULT_API_VERSION, description="Runtime API path prefix")
    function_name: str = Field(default="", description="AWS_LAMBDA_FUNCTION_NAME")
    function_version: str = Field(default="", description="AWS_LAMBDA_FUNCTION_VERSION")
    memory_size: str = Field(default="", description="AWS_LAMBDA_FUNCTION_MEMORY_SIZE")
    log_group_name: str = Field(default="", description="AWS_LAMBDA_LOG_GROUP_NAME")
    log_stream_name: str = Field(default="", description="AWS_LAMBDA_LOG_STREAM_NAME")
    x_amzn_trace_id: str = Field(default="", description="_X_AMZN_TRACE_ID at startup")
    handler: str = Field(default="", description="Handler name from _HANDLER")
    request_timeout: float = Field(
        default=30.0, ge=1, le=300, description="Timeout in seconds for respond/error calls"
    )
    poll_retry_attempts: int = Field(
        default=1, ge=1, le=10, description="Attempts for the next-invocation call on transport failure"
    )
    debug: bool = Field(default=False, description="Include debug details in HTTP error responses")
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    @field_validator("runtime_api")
    @classmethod
    def validate_runtime_api(cls, v: str) -> str:
        """Validate that the Runtime API address is host:port."""
        value = v.strip()
        for scheme in ("http://", "https://"):
            if value.startswith(scheme):
                value = value[len(scheme):]
        value = value.rstrip("/")
        if not value:
            raise ValueError("Runtime API address cannot be empty")
        host, _, port = value.rpartition(":")
        if not host or not port.isdigit():
            raise ValueError(f"Runtime API address must be host:port, got '{v}'")
        return value

    @field_validator("api_version")
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        """Strip surrounding slashes from the API version prefix."""
        value = v.strip().strip("/")
        if not value:
            raise ValueError("API version cannot be empty")
        return value

    class Config:
        """Pydantic config."""

        extra = "forbid"

    @property
    def base_uri(self) -> str:
        """Base URI of the Runtime API, e.g. ``http://127.0.0.1:9001/2018-06-01``."""
        return f"http://{self.runtime_api}/{self.api_version}"

    def function_identity(self) -> Dict[str, str]:
        """Function-level context fields shared by every invocation."""
        return {
            "function_name": self.function_name,
            "function_version": self.function_version,
            "memory_limit_in_mb": self.memory_size,
            "log_group_name": self.log_group_name,
            "log_stream_name": self.log_stream_name,
        }

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "RuntimeConfiguration":
        """Build the configuration from Lambda environment variables.

        Args:
            environ: Environment mapping (defaults to ``os.environ``)

        Returns:
            Validated configuration

        Raises:
            LambdaRuntimeError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        return build_configuration(_settings_from_environment(env))


def _settings_from_environment(env: Mapping[str, str]) -> Dict[str, Any]:
    settings: Dict[str, Any] = {
        "runtime_api": env.get("AWS_LAMBDA_RUNTIME_API") or DEFAULT_RUNTIME_API,
        "function_name": env.get("AWS_LAMBDA_FUNCTION_NAME", ""),
        "function_version": env.get("AWS_LAMBDA_FUNCTION_VERSION", ""),
        "memory_size": env.get("AWS_LAMBDA_FUNCTION_MEMORY_SIZE", ""),
        "log_group_name": env.get("AWS_LAMBDA_LOG_GROUP_NAME", ""),
        "log_stream_name": env.get("AWS_LAMBDA_LOG_STREAM_NAME", ""),
        "x_amzn_trace_id": env.get("_X_AMZN_TRACE_ID", ""),
        "handler": env.get("_HANDLER", ""),
        "debug": _env_flag(env, "RUNTIME_DEBUG"),
        "logging": {
            "level": env.get("LOG_LEVEL") or "INFO",
            "pretty": _env_flag(env, "LOG_PRETTY_PRINT"),
            "include_memory_usage": _env_flag(env, "LOG_MEMORY_USAGE"),
            "lambda_context": not _env_flag(env, "LOG_DISABLE_LAMBDA_CONTEXT"),
            "request_id": not _env_flag(env, "LOG_DISABLE_REQUEST_ID"),
            "format": env.get("LOG_FORMAT") or "json",
            "timezone": env.get("LOG_TIMEZONE") or "UTC",
        },
    }
    if env.get("RUNTIME_POLL_RETRY_ATTEMPTS"):
        settings["poll_retry_attempts"] = env["RUNTIME_POLL_RETRY_ATTEMPTS"]
    return settings


def build_configuration(settings: Dict[str, Any]) -> RuntimeConfiguration:
    """Validate a settings dictionary.

    Args:
        settings: Raw settings

    Returns:
        Validated configuration

    Raises:
        LambdaRuntimeError: Initialization error describing every invalid field
    """
    try:
        return RuntimeConfiguration(**settings)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise LambdaRuntimeError.initialization(
            f"Invalid runtime configuration: {problems}", configuration=settings, cause=e
        ) from e


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load runtime settings from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        Settings dictionary (empty for an empty file)

    Raises:
        LambdaRuntimeError: If the file is missing, unreadable or not a mapping
    """
    try:
        with open(config_path, "r") as f:
            settings = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise LambdaRuntimeError.initialization(
            f"Configuration file not found: {config_path}",
            configuration={"config_path": config_path},
            cause=e,
        ) from e
    except yaml.YAMLError as e:
        raise LambdaRuntimeError.initialization(
            f"Invalid YAML in {config_path}: {e}",
            configuration={"config_path": config_path},
            cause=e,
        ) from e

    if settings is None:
        return {}
    if not isinstance(settings, dict):
        raise LambdaRuntimeError.initialization(
            f"Configuration file {config_path} must contain a YAML mapping",
            configuration={"config_path": config_path},
        )
    return settings


def load_configuration(
    config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> RuntimeConfiguration:
    """Load the configuration from the environment, overlaid with a YAML file.

    Values in the file win over environment variables; the nested
    ``logging`` section is merged key by key.

    Args:
        config_path: Optional YAML file for local runs
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated configuration
    """
    env = os.environ if environ is None else environ
    settings = _settings_from_environment(env)

    if config_path:
        overrides = load_config_file(config_path)
        logging_overrides = overrides.pop("logging", None) or {}
        settings.update(overrides)
        settings["logging"] = {**settings["logging"], **logging_overrides}
        logger.info(f"Loaded configuration overrides from {config_path}")

    return build_configuration(settings)
