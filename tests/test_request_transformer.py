"""Tests for Lambda event to HTTP request transformation."""

import base64
import binascii
import json

import pytest

from gateway.request_transformer import RequestTransformer, parse_cookies
from runtime.errors import ErrorKind, LambdaRuntimeError
from runtime.interfaces import Context, Event


@pytest.fixture
def context():
    return Context(aws_request_id="abc", function_name="fn", function_version="1")


@pytest.fixture
def transformer():
    return RequestTransformer()


def v1_event(**overrides):
    """API Gateway REST proxy (v1) event."""
    event = {
        "resource": "/{proxy+}",
        "path": "/items/42",
        "httpMethod": "GET",
        "headers": {"Accept": "application/json", "X-Custom": "value"},
        "queryStringParameters": {"page": "2"},
        "requestContext": {"requestId": "gw-1", "stage": "prod"},
        "body": None,
        "isBase64Encoded": False,
    }
    event.update(overrides)
    return Event(event)


def v2_event(**overrides):
    """HTTP API / Function URL (v2) event."""
    event = {
        "version": "2.0",
        "rawPath": "/api/update",
        "headers": {"content-type": "application/json"},
        "cookies": ["session=abc123", "theme=dark"],
        "requestContext": {"http": {"method": "POST", "path": "/api/update"}},
        "body": '{"name":"x"}',
        "isBase64Encoded": False,
    }
    event.update(overrides)
    return Event(event)


class TestFormatDetection:
    """Test v1/v2 detection."""

    def test_v1_uses_top_level_fields(self, transformer, context):
        """Test REST proxy events use httpMethod and path."""
        request = transformer.transform(v1_event(), context)
        assert request.method == "GET"
        assert request.path == "/items/42"

    def test_v2_uses_request_context(self, transformer, context):
        """Test HTTP API events use requestContext.http."""
        request = transformer.transform(v2_event(httpMethod="GET", path="/ignored"), context)
        assert request.method == "POST"
        assert request.path == "/api/update"

    def test_method_is_upper_cased(self, transformer, context):
        """Test lower-case methods are normalized."""
        request = transformer.transform(v1_event(httpMethod="delete"), context)
        assert request.method == "DELETE"

    def test_non_http_event_fails(self, transformer, context):
        """Test an event without method and path is a transformation error."""
        with pytest.raises(LambdaRuntimeError) as exc_info:
            transformer.transform(Event({"Records": []}), context)

        error = exc_info.value
        assert error.kind is ErrorKind.TRANSFORMATION
        assert error.transformation_type == "request"
        assert json.loads(error.context["event"]) == {"Records": []}
        assert error.context["context"] == {"awsRequestId": "abc", "functionName": "fn"}

    def test_missing_path_fails(self, transformer, context):
        """Test a v2 event without a path is a transformation error."""
        event = v2_event(requestContext={"http": {"method": "GET"}})
        with pytest.raises(LambdaRuntimeError):
            transformer.transform(event, context)


class TestRequestFields:
    """Test the fields copied onto the request."""

    def test_attributes_and_server_params(self, transformer, context):
        """Test the request id and context are attached."""
        request = transformer.transform(v1_event(), context)

        assert request.attributes["awsRequestId"] == "abc"
        assert request.attributes["lambdaContext"] is context
        assert request.server_params == context.to_dict()
        assert request.server_params["functionName"] == "fn"

    def test_headers_keep_case(self, transformer, context):
        """Test headers are copied with their original names."""
        request = transformer.transform(v1_event(), context)

        assert request.headers["accept"] == "application/json"
        assert ("X-Custom", "value") in [
            (name.decode(), value.decode()) for name, value in request.headers.raw
        ]

    def test_absent_optional_fields_are_empty(self, transformer, context):
        """Test absent headers, cookies and query parameters become empty maps."""
        event = Event({"httpMethod": "GET", "path": "/"})
        request = transformer.transform(event, context)

        assert len(request.headers) == 0
        assert request.cookie_params == {}
        assert request.query_params == {}
        assert request.body is None
        assert not request.has_body

    def test_null_query_parameters(self, transformer, context):
        """Test a null queryStringParameters is an empty map."""
        request = transformer.transform(v1_event(queryStringParameters=None, headers=None), context)
        assert request.query_params == {}
        assert len(request.headers) == 0

    def test_query_parameters(self, transformer, context):
        """Test query parameters are copied."""
        request = transformer.transform(v1_event(), context)
        assert request.query_params == {"page": "2"}

    def test_v2_cookie_list_is_parsed(self, transformer, context):
        """Test name=value cookie strings become a map."""
        request = transformer.transform(v2_event(), context)
        assert request.cookie_params == {"session": "abc123", "theme": "dark"}

    def test_cookie_map_is_used_as_is(self, transformer, context):
        """Test an already-parsed cookie map is kept."""
        request = transformer.transform(v1_event(cookies={"session": "abc"}), context)
        assert request.cookie_params == {"session": "abc"}


class TestRequestBody:
    """Test body handling."""

    def test_text_body(self, transformer, context):
        """Test a string body is attached as bytes."""
        request = transformer.transform(v2_event(), context)
        assert request.body == b'{"name":"x"}'
        assert request.has_body
        assert request.json_body() == {"name": "x"}

    def test_empty_body_is_absent(self, transformer, context):
        """Test an empty body is treated as no body."""
        request = transformer.transform(v2_event(body=""), context)
        assert request.body is None

    def test_base64_body_is_decoded(self, transformer, context):
        """Test isBase64Encoded bodies are decoded."""
        raw = b"\x89PNG\r\n\x1a\n"
        event = v2_event(body=base64.b64encode(raw).decode(), isBase64Encoded=True)

        request = transformer.transform(event, context)

        assert request.body == raw

    def test_invalid_base64_body_fails(self, transformer, context):
        """Test a corrupt base64 body is a transformation error."""
        with pytest.raises(LambdaRuntimeError) as exc_info:
            transformer.transform(v2_event(body="abc", isBase64Encoded=True), context)

        assert exc_info.value.transformation_type == "request"
        assert isinstance(exc_info.value.__cause__, binascii.Error)

    def test_parsed_json_body_is_serialized(self, transformer, context):
        """Test an object body is serialized back to JSON."""
        request = transformer.transform(v2_event(body={"name": "x"}), context)
        assert json.loads(request.body) == {"name": "x"}


class TestParseCookies:
    """Test cookie parsing."""

    def test_values_containing_equals(self):
        """Test only the first equals sign separates name and value."""
        assert parse_cookies(["token=a=b", "flag="]) == {"token": "a=b", "flag": ""}

    def test_empty(self):
        """Test absent cookies."""
        assert parse_cookies(None) == {}
        assert parse_cookies([]) == {}
