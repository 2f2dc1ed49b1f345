"""Transforms Lambda HTTP events into ``HttpRequest`` objects.

Supports the API Gateway REST proxy format (v1, top-level ``httpMethod`` and
``path``) and the HTTP API / Function URL format (v2, ``requestContext.http``).
"""

import base64
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

from gateway.messages import HttpRequest
from runtime.errors import LambdaRuntimeError
from runtime.interfaces import Context, Event
from runtime.logging_utils import format_request_log

logger = logging.getLogger(__name__)


def parse_cookies(cookies: Any) -> Dict[str, str]:
    """Parse the event ``cookies`` field into a name to value map.

    Args:
        cookies: List of ``name=value`` strings (v2) or a mapping

    Returns:
        Cookie map, empty when absent
    """
    if not cookies:
        return {}
    if isinstance(cookies, Mapping):
        return {str(name): str(value) for name, value in cookies.items()}

    parsed: Dict[str, str] = {}
    for cookie in cookies:
        name, _, value = str(cookie).partition("=")
        name = name.strip()
        if name:
            parsed[name] = value.strip()
    return parsed


class RequestTransformer:
    """Builds an HTTP request from an invocation event and context."""

    def transform(self, event: Event, context: Context) -> HttpRequest:
        """Transform a Lambda HTTP event into a request.

        Args:
            event: Invocation event
            context: Invocation context

        Returns:
            HTTP request

        Raises:
            LambdaRuntimeError: Transformation error if the event is not a
                recognizable HTTP event
        """
        try:
            request = self._build(event, context)
        except LambdaRuntimeError:
            raise
        except Exception as e:
            raise self._failure(
                f"Failed to transform event into HTTP request: {e}", event, context, e
            ) from e

        logger.debug(
            "Transformed event into HTTP request",
            extra=format_request_log(
                request_id=context.aws_request_id,
                http_method=request.method,
                request_path=request.path,
                headers=dict(request.headers),
                query_params=request.query_params,
            ),
        )
        return request

    def _build(self, event: Event, context: Context) -> HttpRequest:
        http = event.lookup("requestContext", "http")
        if isinstance(http, Mapping):
            method = http.get("method")
            path = http.get("path")
        else:
            method = event.get("httpMethod")
            path = event.get("path")

        if not method or not path:
            raise self._failure("Event is missing the HTTP method or path", event, context)

        return HttpRequest(
            method=str(method).upper(),
            path=str(path),
            server_params=context.to_dict(),
            attributes={"awsRequestId": context.aws_request_id, "lambdaContext": context},
            headers=event.get("headers") or {},
            cookie_params=parse_cookies(event.get("cookies")),
            query_params=dict(event.get("queryStringParameters") or {}),
            body=self._body(event),
        )

    def _body(self, event: Event) -> Optional[bytes]:
        body = event.get("body")
        if body is None or body == "":
            return None
        if isinstance(body, str):
            if event.get("isBase64Encoded"):
                return base64.b64decode(body)
            return body.encode("utf-8")
        # Already-parsed JSON body
        return json.dumps(event.to_dict()["body"]).encode("utf-8")

    def _failure(
        self,
        message: str,
        event: Event,
        context: Context,
        cause: Optional[BaseException] = None,
    ) -> LambdaRuntimeError:
        return LambdaRuntimeError.for_request(
            message,
            {
                "event": event.to_json(),
                "context": {
                    "awsRequestId": context.aws_request_id,
                    "functionName": context.function_name,
                },
            },
            cause,
        )
