"""Protocol client for the AWS Lambda Runtime API.

The worker owns one synchronous HTTP client and performs the four control
plane calls: fetching the next invocation, posting a success payload,
posting an invocation error and posting an initialization error.
"""

import json
import logging
import os
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from runtime.config import RuntimeConfiguration
from runtime.errors import LambdaRuntimeError, format_stack_trace
from runtime.interfaces import Event, Invocation, build_context

logger = logging.getLogger(__name__)

ERROR_TYPE_HEADER = "Lambda-Runtime-Function-Error-Type"


def build_error_payload(error: BaseException) -> Dict[str, Any]:
    """Build the JSON document reported to the error endpoints.

    Args:
        error: Error to report

    Returns:
        Dictionary with errorMessage, errorType and, when available,
        stackTrace and context
    """
    if isinstance(error, LambdaRuntimeError):
        error_type = error.error_type
        stack_trace = error.stack_trace or format_stack_trace(error)
        context = error.context
    else:
        error_type = type(error).__name__
        stack_trace = format_stack_trace(error)
        context = {}

    payload: Dict[str, Any] = {"errorMessage": str(error), "errorType": error_type}
    if stack_trace:
        payload["stackTrace"] = stack_trace
    if context:
        payload["context"] = context
    return payload


class Worker:
    """Client for the Lambda Runtime API control plane.

    Every invocation returned by ``next_invocation`` must receive exactly one
    ``respond`` or ``error`` call before the next poll.
    """

    def __init__(
        self, config: RuntimeConfiguration, client: Optional[httpx.Client] = None
    ) -> None:
        """Initialize the worker.

        Args:
            config: Runtime configuration
            client: HTTP client to use; one is created and owned when omitted
        """
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=config.request_timeout)

    def _url(self, path: str) -> str:
        return f"{self.config.base_uri}/{path}"

    def close(self) -> None:
        """Close the HTTP client if this worker created it."""
        if self._owns_client:
            self.client.close()

    def _fetch_next(self) -> httpx.Response:
        # Long poll: no read timeout, the call blocks until an event arrives
        timeout = httpx.Timeout(self.config.request_timeout, read=None)
        return self.client.get(self._url("runtime/invocation/next"), timeout=timeout)

    def _poll(self) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.config.poll_retry_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        return retrying(self._fetch_next)

    def next_invocation(self) -> Invocation:
        """Block until the control plane delivers the next invocation.

        Returns:
            Invocation with the parsed event and its context

        Raises:
            LambdaRuntimeError: Initialization error if the call fails, the
                status is not 200 or the body is not valid JSON
        """
        try:
            response = self._poll()
        except httpx.RequestError as e:
            raise self._fail_initialization(f"Failed to fetch next invocation: {e}", e)

        if response.status_code != 200:
            error = self._fail_initialization(
                f"Failed to fetch next invocation: unexpected status {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )
            raise error

        try:
            event = Event.from_json(response.text)
        except json.JSONDecodeError as e:
            raise self._fail_initialization(f"Failed to decode invocation event: {e}", e)

        context = build_context(response.headers, self.config.function_identity())
        # Scoped to this invocation; a missing header clears the previous one
        if context.trace_id:
            os.environ["_X_AMZN_TRACE_ID"] = context.trace_id
        else:
            os.environ.pop("_X_AMZN_TRACE_ID", None)

        logger.info(
            "Received invocation",
            extra={
                "aws_request_id": context.aws_request_id,
                "invoked_function_arn": context.invoked_function_arn,
                "deadline_ms": context.deadline_ms,
            },
        )
        return Invocation(event=event, context=context)

    def _fail_initialization(
        self, message: str, cause: Optional[BaseException] = None, **context: Any
    ) -> LambdaRuntimeError:
        error = LambdaRuntimeError.from_environment(message, cause)
        for key, value in context.items():
            error.add_context(key, value)

        logger.critical(message, extra={"error_context": error.context})
        try:
            self.init_error(error)
        except LambdaRuntimeError as report_error:
            logger.error(f"Could not report initialization error: {report_error}")
        return error

    def respond(self, invocation_id: str, body: Union[str, bytes]) -> None:
        """Submit a successful result for an invocation.

        A failed submission is reported through ``error`` for the same
        invocation and never raised to the caller.

        Args:
            invocation_id: AWS request id
            body: Serialized JSON payload
        """
        url = self._url(f"runtime/invocation/{invocation_id}/response")
        try:
            response = self.client.post(
                url,
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=self.config.request_timeout,
            )
        except httpx.RequestError as e:
            error = LambdaRuntimeError.for_invocation(
                f"Failed to send response for invocation {invocation_id}: {e}",
                invocation_id,
                cause=e,
            )
            error.add_context("error_type", type(e).__name__)
            self.error(invocation_id, error)
            return

        if response.status_code != 202:
            error = LambdaRuntimeError.for_invocation(
                f"Failed to send response for invocation {invocation_id}: "
                f"unexpected status {response.status_code}",
                invocation_id,
            )
            error.add_context("status_code", response.status_code)
            error.add_context("response_body", response.text)
            logger.error(str(error), extra={"aws_request_id": invocation_id})
            self.error(invocation_id, error)
            return

        logger.debug("Response accepted", extra={"aws_request_id": invocation_id})

    def error(self, invocation_id: str, error: BaseException) -> None:
        """Report an invocation-scoped error.

        Args:
            invocation_id: AWS request id
            error: Error to report

        Raises:
            LambdaRuntimeError: Initialization error if the control plane
                cannot be reached
        """
        payload = build_error_payload(error)
        url = self._url(f"runtime/invocation/{invocation_id}/error")

        logger.error(
            f"Invocation failed: {error}",
            extra={"aws_request_id": invocation_id, "error_type": payload["errorType"]},
        )
        try:
            response = self.client.post(
                url,
                content=json.dumps(payload, default=str),
                headers={
                    "Content-Type": "application/json",
                    ERROR_TYPE_HEADER: payload["errorType"],
                },
                timeout=self.config.request_timeout,
            )
        except httpx.RequestError as e:
            fatal = LambdaRuntimeError.from_environment(
                f"Failed to report error for invocation {invocation_id}: {e}", e
            )
            fatal.add_context("invocation_id", invocation_id)
            fatal.add_context("original_error", payload)
            self.init_error(fatal)
            raise fatal

        if response.status_code != 202:
            logger.error(
                f"Error report for invocation {invocation_id} was rejected "
                f"with status {response.status_code}",
                extra={"aws_request_id": invocation_id, "response_body": response.text},
            )

    def init_error(self, error: BaseException) -> None:
        """Report an error that prevents the runtime from starting or continuing.

        Args:
            error: Error to report

        Raises:
            LambdaRuntimeError: Initialization error if the control plane
                cannot be reached
        """
        payload = build_error_payload(error)
        try:
            response = self.client.post(
                self._url("runtime/init/error"),
                content=json.dumps(payload, default=str),
                headers={"Content-Type": "application/json", ERROR_TYPE_HEADER: "Unhandled"},
                timeout=self.config.request_timeout,
            )
        except httpx.RequestError as e:
            logger.critical(
                f"Failed to report initialization error: {e}",
                extra={"original_error": payload},
            )
            raise LambdaRuntimeError.from_environment(
                f"Failed to report initialization error: {e}", e
            ) from e

        if response.status_code != 202:
            logger.error(
                f"Initialization error report was rejected with status {response.status_code}",
                extra={"response_body": response.text},
            )
