"""Transforms ``HttpResponse`` objects into Lambda HTTP response envelopes."""

import logging
from typing import Any, Dict, List

import httpx

from gateway.messages import HttpResponse, header_items
from runtime.errors import LambdaRuntimeError

logger = logging.getLogger(__name__)

# Content types sent as text; everything else non-empty is binary
TEXT_CONTENT_TYPES = (
    "text/",
    "application/json",
    "application/xml",
    "application/javascript",
    "application/xhtml+xml",
)


def is_binary_content_type(content_type: str) -> bool:
    """Return True if a body with this content type must be base64-encoded.

    Args:
        content_type: Content-Type header value, possibly empty

    Returns:
        False for text-like or absent content types
    """
    content_type = content_type.strip().lower()
    if not content_type:
        return False
    return not content_type.startswith(TEXT_CONTENT_TYPES)


class ResponseTransformer:
    """Builds the Lambda response envelope for an HTTP response."""

    def transform(self, response: Any) -> Dict[str, Any]:
        """Transform an HTTP response into a Lambda response envelope.

        The envelope has ``statusCode``, ``statusDescription``, ``headers``,
        ``multiValueHeaders``, ``cookies``, ``body`` and ``isBase64Encoded``.
        ``body`` is text for text responses and raw bytes when
        ``isBase64Encoded`` is true.

        Args:
            response: Handler result

        Returns:
            Response envelope

        Raises:
            LambdaRuntimeError: Transformation error if the response cannot
                be converted
        """
        if not isinstance(response, HttpResponse):
            raise LambdaRuntimeError.for_response(
                f"Expected HttpResponse, got {type(response).__name__}",
                {"response_type": type(response).__name__},
            )

        try:
            return self._build(response)
        except Exception as e:
            raise LambdaRuntimeError.for_response(
                f"Failed to transform HTTP response: {e}",
                {"response_type": type(response).__name__, "status_code": response.status_code},
                e,
            ) from e

    def _build(self, response: HttpResponse) -> Dict[str, Any]:
        headers: Dict[str, str] = {}
        multi_value_headers: Dict[str, List[str]] = {}
        cookies: List[str] = []
        names: Dict[str, str] = {}

        for name, value in header_items(response.headers):
            key = names.setdefault(name.lower(), name)
            multi_value_headers.setdefault(key, []).append(value)
            if key.lower() == "set-cookie":
                cookies.append(value)
                continue
            if key in headers:
                headers[key] = f"{headers[key]}, {value}"
            else:
                headers[key] = value

        is_base64_encoded = is_binary_content_type(response.headers.get("content-type", ""))
        raw_body = response.read_body()
        body: Any = raw_body if is_base64_encoded else raw_body.decode("utf-8", errors="replace")

        return {
            "statusCode": response.status_code,
            "statusDescription": self._status_description(response),
            "headers": headers,
            "multiValueHeaders": multi_value_headers,
            "cookies": cookies,
            "body": body,
            "isBase64Encoded": is_base64_encoded,
        }

    def _status_description(self, response: HttpResponse) -> str:
        if response.reason_phrase:
            return response.reason_phrase
        return httpx.codes.get_reason_phrase(response.status_code)
