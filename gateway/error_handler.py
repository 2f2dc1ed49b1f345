"""Converts exceptions into JSON error responses for HTTP handlers."""

import json
import re
import traceback
from typing import Any, Dict, Optional

from gateway.messages import HttpResponse
from runtime.errors import LambdaRuntimeError


def error_code(error: BaseException) -> str:
    """Derive a SNAKE_CASE error code from an exception.

    Runtime errors use their kind name, other exceptions their class name,
    e.g. ``ValueError`` becomes ``VALUE_ERROR``.
    """
    name = error.error_type if isinstance(error, LambdaRuntimeError) else type(error).__name__
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name).upper()


class ErrorHandler:
    """Builds HTTP error responses.

    Validation errors map to 400 and everything else to 500. In debug mode
    the body also carries the error location, traceback and context.
    """

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    def status_code(self, error: BaseException) -> int:
        """HTTP status code for an error."""
        if isinstance(error, ValueError):
            return 400
        return 500

    def handle(
        self, error: BaseException, context: Optional[Dict[str, Any]] = None
    ) -> HttpResponse:
        """Create an error response.

        Args:
            error: Error to render
            context: Additional caller context, only rendered in debug mode

        Returns:
            JSON response with body ``{"error": {"code", "message"}}``
        """
        error_data: Dict[str, Any] = {"code": error_code(error), "message": str(error)}
        if self.debug:
            error_data["context"] = self._debug_context(error, context)

        return HttpResponse(
            status_code=self.status_code(error),
            headers={"Content-Type": "application/json"},
            body=json.dumps({"error": error_data}, indent=2, default=str),
        )

    def _debug_context(
        self, error: BaseException, context: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
        debug_context: Dict[str, Any] = {
            "file": frames[-1].filename if frames else "",
            "line": frames[-1].lineno if frames else 0,
            "trace": "".join(traceback.format_tb(error.__traceback__)) if frames else "",
        }
        if isinstance(error, LambdaRuntimeError):
            debug_context.update(error.context)
        if context:
            debug_context["additional"] = context
        return debug_context
