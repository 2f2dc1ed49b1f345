"""HTTP-aware wrapper around the Runtime API worker."""

import base64
import json
import logging
from typing import Optional

from gateway.messages import HttpRequest, HttpResponse
from gateway.request_transformer import RequestTransformer
from gateway.response_transformer import ResponseTransformer
from runtime.interfaces import Invocation
from runtime.logging_utils import format_request_log, format_response_log
from runtime.worker import Worker

logger = logging.getLogger(__name__)


class HttpWorker:
    """Translates between Lambda HTTP envelopes and ``HttpRequest``/``HttpResponse``."""

    def __init__(
        self,
        worker: Worker,
        request_transformer: Optional[RequestTransformer] = None,
        response_transformer: Optional[ResponseTransformer] = None,
    ) -> None:
        self.worker = worker
        self.request_transformer = request_transformer or RequestTransformer()
        self.response_transformer = response_transformer or ResponseTransformer()

    def next_invocation(self) -> Invocation:
        """Fetch the next invocation from the control plane."""
        return self.worker.next_invocation()

    def to_request(self, invocation: Invocation) -> HttpRequest:
        """Transform an invocation into an HTTP request.

        Raises:
            LambdaRuntimeError: Transformation error for non-HTTP events
        """
        request = self.request_transformer.transform(invocation.event, invocation.context)
        logger.info(
            f"Received HTTP request: {request.method} {request.path}",
            extra=format_request_log(
                request_id=invocation.invocation_id,
                http_method=request.method,
                request_path=request.path,
                headers=dict(request.headers),
                query_params=request.query_params,
            ),
        )
        return request

    def respond(
        self,
        invocation_id: str,
        response: HttpResponse,
        duration_ms: Optional[float] = None,
    ) -> None:
        """Send an HTTP response as the invocation result.

        Binary bodies are base64-encoded before the envelope is serialized.

        Args:
            invocation_id: AWS request id
            response: Response produced by the handler
            duration_ms: Handler duration, for the log line

        Raises:
            LambdaRuntimeError: Transformation error if the response cannot
                be converted
        """
        envelope = self.response_transformer.transform(response)
        if envelope["isBase64Encoded"]:
            envelope["body"] = base64.b64encode(envelope["body"]).decode("ascii")

        logger.info(
            f"Sending HTTP response: {envelope['statusCode']} {envelope['statusDescription']}",
            extra=format_response_log(
                request_id=invocation_id,
                status_code=envelope["statusCode"],
                headers=envelope["headers"],
                is_base64_encoded=envelope["isBase64Encoded"],
                duration_ms=duration_ms,
            ),
        )
        self.worker.respond(invocation_id, json.dumps(envelope))

    def error(self, invocation_id: str, error: BaseException) -> None:
        """Report an invocation error to the control plane."""
        self.worker.error(invocation_id, error)
