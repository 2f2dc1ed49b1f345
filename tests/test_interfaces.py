"""Tests for the invocation data model."""

import json
import time

import httpx
import pytest
from pydantic import ValidationError

from runtime.interfaces import Context, Event, Invocation, build_context


class TestContext:
    """Test the immutable invocation context."""

    def test_defaults_are_empty_strings(self):
        """Test every field defaults to an empty string."""
        context = Context()
        assert all(value == "" for value in context.model_dump().values())

    def test_is_immutable(self):
        """Test assigning a field raises."""
        context = Context(aws_request_id="abc")
        with pytest.raises(ValidationError):
            context.aws_request_id = "other"
        assert context.aws_request_id == "abc"

    def test_rejects_unknown_fields(self):
        """Test unknown fields are rejected."""
        with pytest.raises(ValidationError):
            Context(unknown="value")

    def test_to_dict_uses_lambda_names(self):
        """Test the camelCase server parameter keys."""
        context = Context(function_name="fn", memory_limit_in_mb="256", aws_request_id="abc")
        data = context.to_dict()
        assert data["functionName"] == "fn"
        assert data["memoryLimitInMB"] == "256"
        assert data["awsRequestId"] == "abc"
        assert set(data) == {
            "functionName", "functionVersion", "invokedFunctionArn", "memoryLimitInMB",
            "awsRequestId", "logGroupName", "logStreamName", "deadlineMs", "traceId",
            "xAmznTraceId", "identity", "clientContext",
        }

    def test_remaining_time(self):
        """Test remaining time is computed from the deadline."""
        deadline = int(time.time() * 1000) + 10000
        remaining = Context(deadline_ms=str(deadline)).get_remaining_time_in_millis()
        assert 0 < remaining <= 10000

    def test_remaining_time_is_never_negative(self):
        """Test a past or unknown deadline yields zero."""
        assert Context(deadline_ms="1000").get_remaining_time_in_millis() == 0
        assert Context().get_remaining_time_in_millis() == 0
        assert Context(deadline_ms="soon").get_remaining_time_in_millis() == 0


class TestEvent:
    """Test the read-only event payload."""

    def test_mapping_access(self):
        """Test keys can be read like a mapping."""
        event = Event({"name": "x", "count": 2})
        assert event["name"] == "x"
        assert event.get("count") == 2
        assert len(event) == 2
        assert set(event) == {"name", "count"}

    def test_missing_keys(self):
        """Test get returns a default while indexing raises KeyError."""
        event = Event({"name": "x"})
        assert event.get("missing") is None
        assert event.get("missing", "fallback") == "fallback"
        with pytest.raises(KeyError):
            event["missing"]

    def test_nested_values_are_read_only(self):
        """Test nested objects and arrays cannot be modified."""
        event = Event({"headers": {"Accept": "*/*"}, "cookies": ["a=1"]})
        with pytest.raises(TypeError):
            event["headers"]["Accept"] = "text/html"
        assert event["cookies"] == ("a=1",)

    def test_source_mutation_does_not_leak(self):
        """Test the event is a copy of the payload it was built from."""
        payload = {"nested": {"value": 1}}
        event = Event(payload)
        payload["nested"]["value"] = 2
        assert event.lookup("nested", "value") == 1

    def test_lookup(self):
        """Test walking a key path."""
        event = Event({"requestContext": {"http": {"method": "GET"}}, "body": "text"})
        assert event.lookup("requestContext", "http", "method") == "GET"
        assert event.lookup("requestContext", "missing", "method") is None
        assert event.lookup("body", "inner", default="none") == "none"

    def test_to_dict_round_trips(self):
        """Test the payload can be recovered and serialized."""
        payload = {"items": [1, {"a": None}], "flag": True}
        event = Event.from_json(json.dumps(payload))
        assert event.to_dict() == payload
        assert json.loads(event.to_json()) == payload

    def test_non_object_payload(self):
        """Test scalar and array payloads are kept but have no keys."""
        event = Event([1, 2])
        assert event.payload == (1, 2)
        assert len(event) == 0
        assert event.get("key") is None
        assert event.to_dict() == [1, 2]

    def test_from_json_rejects_malformed_input(self):
        """Test malformed JSON raises a decode error."""
        with pytest.raises(json.JSONDecodeError):
            Event.from_json("{not json")


class TestInvocation:
    """Test the invocation pair."""

    def test_invocation_id_is_request_id(self):
        """Test the invocation id is the AWS request id."""
        invocation = Invocation(event=Event({}), context=Context(aws_request_id="abc"))
        assert invocation.invocation_id == "abc"

    def test_is_immutable(self):
        """Test the pair cannot be reassigned."""
        invocation = Invocation(event=Event({}), context=Context())
        with pytest.raises(ValidationError):
            invocation.context = Context(aws_request_id="other")


class TestBuildContext:
    """Test context assembly from response headers."""

    def test_reads_headers_case_insensitively(self):
        """Test request identity comes from the Runtime API headers."""
        headers = httpx.Headers(
            {
                "lambda-runtime-aws-request-id": "abc",
                "lambda-runtime-deadline-ms": "1700000000000",
                "lambda-runtime-invoked-function-arn": "arn:aws:lambda:us-east-1:1:function:fn",
                "lambda-runtime-cognito-identity": '{"cognitoIdentityId": "id"}',
            }
        )
        context = build_context(headers, {"function_name": "fn", "memory_limit_in_mb": "128"})

        assert context.aws_request_id == "abc"
        assert context.deadline_ms == "1700000000000"
        assert context.invoked_function_arn == "arn:aws:lambda:us-east-1:1:function:fn"
        assert context.identity == '{"cognitoIdentityId": "id"}'
        assert context.function_name == "fn"
        assert context.memory_limit_in_mb == "128"
        assert context.trace_id == ""

    def test_trace_id_comes_from_invocation_headers(self):
        """Test both trace fields carry the invocation's trace header."""
        headers = httpx.Headers({"lambda-runtime-trace-id": "Root=1-abc;Sampled=1"})

        context = build_context(headers, {"function_name": "fn"})

        assert context.trace_id == "Root=1-abc;Sampled=1"
        assert context.x_amzn_trace_id == "Root=1-abc;Sampled=1"

    def test_without_identity(self):
        """Test function identity fields default to empty strings."""
        context = build_context({})
        assert context == Context()
