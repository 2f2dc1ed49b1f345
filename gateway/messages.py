"""Generic HTTP request and response model for HTTP-triggered functions."""

import json
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, Field, field_validator


def _to_headers(value: Any) -> httpx.Headers:
    """Coerce a mapping or list of pairs into ``httpx.Headers``.

    Mapping values that are lists or tuples become repeated headers.
    """
    if value is None:
        return httpx.Headers()
    if isinstance(value, httpx.Headers):
        return value
    if isinstance(value, Mapping):
        items: List[Tuple[str, str]] = []
        for name, item in value.items():
            if item is None:
                continue
            if isinstance(item, (list, tuple)):
                items.extend((str(name), str(v)) for v in item)
            else:
                items.append((str(name), str(item)))
        return httpx.Headers(items)
    return httpx.Headers([(str(name), str(item)) for name, item in value])


def header_items(headers: httpx.Headers) -> List[Tuple[str, str]]:
    """Return every header pair in insertion order with the original name case."""
    return [
        (name.decode(headers.encoding), value.decode(headers.encoding))
        for name, value in headers.raw
    ]


class HttpRequest(BaseModel):
    """HTTP request built from a Lambda HTTP event."""

    method: str
    path: str
    headers: httpx.Headers = Field(default_factory=httpx.Headers)
    query_params: Dict[str, Any] = Field(default_factory=dict)
    cookie_params: Dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None
    server_params: Dict[str, Any] = Field(default_factory=dict)
    attributes: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic config."""

        arbitrary_types_allowed = True

    @field_validator("headers", mode="before")
    @classmethod
    def validate_headers(cls, v: Any) -> httpx.Headers:
        """Accept plain mappings as headers."""
        return _to_headers(v)

    @property
    def has_body(self) -> bool:
        return bool(self.body)

    def text(self, encoding: str = "utf-8") -> str:
        """Decode the body as text; empty string without a body."""
        return (self.body or b"").decode(encoding)

    def json_body(self) -> Any:
        """Parse the body as JSON.

        Raises:
            json.JSONDecodeError: If the body is not valid JSON
        """
        return json.loads(self.text())


class HttpResponse(BaseModel):
    """HTTP response produced by an HTTP handler.

    The body may be bytes, text, or a readable binary stream.
    """

    status_code: int = 200
    reason_phrase: Optional[str] = None
    headers: httpx.Headers = Field(default_factory=httpx.Headers)
    body: Any = b""

    class Config:
        """Pydantic config."""

        arbitrary_types_allowed = True

    @field_validator("headers", mode="before")
    @classmethod
    def validate_headers(cls, v: Any) -> httpx.Headers:
        """Accept plain mappings as headers."""
        return _to_headers(v)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: Any) -> Any:
        """Validate that the body is bytes, str or a readable stream."""
        if v is None:
            return b""
        if isinstance(v, (bytes, str)) or hasattr(v, "read"):
            return v
        raise ValueError(f"Unsupported response body type: {type(v).__name__}")

    @classmethod
    def json_response(
        cls,
        data: Any,
        status_code: int = 200,
        headers: Optional[Dict[str, Any]] = None,
    ) -> "HttpResponse":
        """Create a JSON response with ``Content-Type: application/json``."""
        response_headers = _to_headers(headers)
        if "content-type" not in response_headers:
            response_headers["Content-Type"] = "application/json"
        return cls(status_code=status_code, headers=response_headers, body=json.dumps(data))

    def read_body(self) -> bytes:
        """Return the full body as bytes, rewinding seekable streams first."""
        body = self.body
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")
        if getattr(body, "seekable", None) and body.seekable():
            body.seek(0)
        data = body.read()
        return data.encode("utf-8") if isinstance(data, str) else data
