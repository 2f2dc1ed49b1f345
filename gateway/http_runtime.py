"""Runtime loop for HTTP-triggered functions."""

import logging
import sys
import time
from typing import Optional, Protocol

from gateway.error_handler import ErrorHandler
from gateway.http_worker import HttpWorker
from gateway.messages import HttpRequest, HttpResponse
from runtime.config import RuntimeConfiguration
from runtime.errors import LambdaRuntimeError
from runtime.interfaces import Invocation
from runtime.worker import Worker

logger = logging.getLogger(__name__)


class HttpHandler(Protocol):
    """Callable that turns an HTTP request into an HTTP response."""

    def __call__(self, request: HttpRequest) -> HttpResponse:
        ...


class HttpRuntime:
    """Runs an HTTP handler against the Runtime API forever.

    With an error handler, failures of the request transformation and of
    the handler are answered with an HTTP error response. Without one they
    are reported through the invocation error endpoint.
    """

    def __init__(
        self,
        handler: HttpHandler,
        http_worker: HttpWorker,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        self.handler = handler
        self.http_worker = http_worker
        self.error_handler = error_handler
        logger.info("HTTP runtime initialized")

    def run(self) -> None:
        """Poll and process invocations until a fatal error is raised."""
        logger.info("Starting HTTP request handling loop")
        while True:
            invocation = self.http_worker.next_invocation()
            self.process(invocation)

    def process(self, invocation: Invocation) -> None:
        """Handle one HTTP invocation and make its terminal call.

        Args:
            invocation: Invocation returned by the worker
        """
        invocation_id = invocation.invocation_id
        start_time = time.time()
        try:
            request = self.http_worker.to_request(invocation)
            response = self.handler(request)
        except Exception as e:
            self._handle_failure(invocation_id, e)
            return

        duration_ms = (time.time() - start_time) * 1000
        self._respond(invocation_id, response, duration_ms)

    def _handle_failure(self, invocation_id: str, error: Exception) -> None:
        if isinstance(error, LambdaRuntimeError):
            logger.error(
                f"Request handling error: {error}",
                extra={"aws_request_id": invocation_id, "error_context": error.context},
            )
        else:
            logger.error(
                f"Unexpected handler error: {type(error).__name__}: {error}",
                extra={"aws_request_id": invocation_id},
                exc_info=True,
            )

        if self.error_handler is None:
            if not isinstance(error, LambdaRuntimeError):
                error = LambdaRuntimeError.wrap(error, invocation_id)
            self.http_worker.error(invocation_id, error)
            return

        response = self.error_handler.handle(error, {"awsRequestId": invocation_id})
        self._respond(invocation_id, response)

    def _respond(
        self, invocation_id: str, response: HttpResponse, duration_ms: Optional[float] = None
    ) -> None:
        try:
            self.http_worker.respond(invocation_id, response, duration_ms)
        except LambdaRuntimeError as e:
            if e.is_fatal:
                raise
            self.http_worker.error(invocation_id, e)

    @classmethod
    def execute(
        cls,
        handler: HttpHandler,
        config: Optional[RuntimeConfiguration] = None,
        debug: Optional[bool] = None,
    ) -> None:
        """Run an HTTP handler until the process must stop.

        Installs an ``ErrorHandler`` so handler failures become HTTP error
        responses. Initialization errors are logged and end the process
        with status 1.

        Args:
            handler: Callable taking an ``HttpRequest``
            config: Runtime configuration; read from the environment when omitted
            debug: Include debug details in error responses (defaults to ``config.debug``)
        """
        worker: Optional[Worker] = None
        try:
            config = config or RuntimeConfiguration.from_environment()
            worker = Worker(config)
            error_handler = ErrorHandler(debug=config.debug if debug is None else debug)
            cls(handler, HttpWorker(worker), error_handler).run()
        except LambdaRuntimeError as e:
            if not e.is_fatal:
                raise
            logger.critical(f"Fatal initialization error: {e.describe()}", extra={"error_type": e.error_type})
            sys.exit(1)
        finally:
            if worker is not None:
                worker.close()
