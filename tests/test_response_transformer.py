"""Tests for HTTP response to Lambda envelope transformation."""

import io

import pytest

from gateway.messages import HttpResponse
from gateway.response_transformer import ResponseTransformer, is_binary_content_type
from runtime.errors import ErrorKind, LambdaRuntimeError


@pytest.fixture
def transformer():
    return ResponseTransformer()


class TestHeaders:
    """Test header folding and cookie extraction."""

    def test_multi_value_headers_are_folded(self, transformer):
        """Test repeated headers are joined and kept as lists."""
        envelope = transformer.transform(HttpResponse(headers={"X": ["a", "b"]}))

        assert envelope["headers"]["X"] == "a, b"
        assert envelope["multiValueHeaders"]["X"] == ["a", "b"]

    def test_set_cookie_goes_to_cookies(self, transformer):
        """Test Set-Cookie values are extracted and never folded."""
        response = HttpResponse(
            headers=[
                ("Content-Type", "text/plain"),
                ("Set-Cookie", "a=1; Path=/"),
                ("set-cookie", "b=2"),
            ]
        )

        envelope = transformer.transform(response)

        assert envelope["cookies"] == ["a=1; Path=/", "b=2"]
        assert "Set-Cookie" not in envelope["headers"]
        assert "set-cookie" not in envelope["headers"]
        assert envelope["headers"] == {"Content-Type": "text/plain"}
        assert envelope["multiValueHeaders"]["Set-Cookie"] == ["a=1; Path=/", "b=2"]

    def test_header_names_keep_first_seen_case(self, transformer):
        """Test differently-cased repeats merge under the first name."""
        response = HttpResponse(headers=[("X-Custom", "a"), ("x-custom", "b")])

        envelope = transformer.transform(response)

        assert envelope["headers"] == {"X-Custom": "a, b"}
        assert envelope["multiValueHeaders"] == {"X-Custom": ["a", "b"]}

    def test_envelope_always_has_every_key(self, transformer):
        """Test an empty response still produces the full envelope."""
        envelope = transformer.transform(HttpResponse(status_code=204))

        assert envelope == {
            "statusCode": 204,
            "statusDescription": "No Content",
            "headers": {},
            "multiValueHeaders": {},
            "cookies": [],
            "body": "",
            "isBase64Encoded": False,
        }


class TestStatus:
    """Test status code and description."""

    def test_standard_reason_phrase(self, transformer):
        """Test the description defaults to the standard phrase."""
        envelope = transformer.transform(HttpResponse(status_code=404))
        assert envelope["statusCode"] == 404
        assert envelope["statusDescription"] == "Not Found"

    def test_explicit_reason_phrase(self, transformer):
        """Test an explicit phrase wins."""
        envelope = transformer.transform(HttpResponse(status_code=200, reason_phrase="Fine"))
        assert envelope["statusDescription"] == "Fine"

    def test_unknown_status_has_empty_description(self, transformer):
        """Test nonstandard codes have no description."""
        envelope = transformer.transform(HttpResponse(status_code=599))
        assert envelope["statusDescription"] == ""


class TestBody:
    """Test body and base64 handling."""

    def test_json_is_text(self, transformer):
        """Test JSON bodies are not base64-encoded."""
        response = HttpResponse(headers={"Content-Type": "application/json"}, body='{"a":1}')
        envelope = transformer.transform(response)
        assert envelope["isBase64Encoded"] is False
        assert envelope["body"] == '{"a":1}'

    def test_missing_content_type_is_text(self, transformer):
        """Test responses without a content type are not base64-encoded."""
        envelope = transformer.transform(HttpResponse(body=b"plain"))
        assert envelope["isBase64Encoded"] is False
        assert envelope["body"] == "plain"

    def test_image_is_binary(self, transformer):
        """Test binary content types keep raw bytes for encoding."""
        png = b"\x89PNG\r\n\x1a\n"
        response = HttpResponse(headers={"Content-Type": "image/png"}, body=png)

        envelope = transformer.transform(response)

        assert envelope["isBase64Encoded"] is True
        assert envelope["body"] == png

    def test_stream_is_rewound(self, transformer):
        """Test a stream that was already read is sent in full."""
        stream = io.BytesIO(b"streamed")
        stream.read()
        envelope = transformer.transform(HttpResponse(body=stream))
        assert envelope["body"] == "streamed"


class TestBinaryDetection:
    """Test content type classification."""

    @pytest.mark.parametrize(
        "content_type",
        [
            "text/html; charset=utf-8",
            "Text/Plain",
            "application/json",
            "application/json; charset=utf-8",
            "application/xml",
            "application/javascript",
            "application/xhtml+xml",
            "",
        ],
    )
    def test_text_types(self, content_type):
        assert is_binary_content_type(content_type) is False

    @pytest.mark.parametrize("content_type", ["image/png", "application/octet-stream", "application/pdf"])
    def test_binary_types(self, content_type):
        assert is_binary_content_type(content_type) is True


class TestInvalidResponse:
    """Test transformation failures."""

    def test_non_response_fails(self, transformer):
        """Test handler results that are not responses are rejected."""
        with pytest.raises(LambdaRuntimeError) as exc_info:
            transformer.transform({"statusCode": 200})

        error = exc_info.value
        assert error.kind is ErrorKind.TRANSFORMATION
        assert error.transformation_type == "response"
        assert error.context["response_type"] == "dict"

    def test_unreadable_stream_fails(self, transformer):
        """Test stream read errors are wrapped."""

        class BrokenStream:
            def read(self):
                raise OSError("stream closed")

        with pytest.raises(LambdaRuntimeError) as exc_info:
            transformer.transform(HttpResponse(body=BrokenStream()))

        assert exc_info.value.transformation_type == "response"
        assert isinstance(exc_info.value.__cause__, OSError)
