"""Example HTTP handler.

Run locally against the emulator:

    lambda-emulator &
    AWS_LAMBDA_RUNTIME_API=127.0.0.1:9001 lambda-bootstrap examples.http_handler:ExampleHandler --mode http
"""

import logging
import secrets
import time

from gateway.messages import HttpRequest, HttpResponse
from runtime.interfaces import Context

logger = logging.getLogger(__name__)


class ExampleHandler:
    """Greets the caller and echoes JSON bodies sent to ``/api/update``."""

    def handle(self, request: HttpRequest) -> HttpResponse:
        request_id = request.attributes.get("awsRequestId", "")
        context: Context = request.attributes.get("lambdaContext") or Context()

        logger.info(
            "Handling request",
            extra={
                "aws_request_id": request_id,
                "function": {
                    "name": context.function_name,
                    "version": context.function_version,
                    "memory": context.memory_limit_in_mb,
                },
            },
        )

        if request.method == "POST" and request.path == "/api/update":
            # Raises json.JSONDecodeError (a 400) for malformed bodies
            return HttpResponse.json_response(request.json_body())

        arn_parts = context.invoked_function_arn.split(":")
        region = arn_parts[3] if len(arn_parts) > 3 else "unknown"
        return HttpResponse.json_response(
            {
                "message": "Hello from the Lambda runtime client!",
                "timestamp": int(time.time()),
                "request_id": request_id,
            },
            headers={
                "X-Request-ID": request_id,
                "X-Function-Name": context.function_name,
                "X-Function-Version": context.function_version,
                "X-Content-Type-Options": "nosniff",
                "Cache-Control": "no-store, max-age=0",
                "Set-Cookie": [
                    f"session={secrets.token_hex(16)}; HttpOnly; Secure; SameSite=Strict; Path=/",
                    f"region={region}; Path=/",
                ],
            },
        )
