"""Shared fixtures: an in-memory Runtime API behind httpx.MockTransport."""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
import pytest

from runtime.config import RuntimeConfiguration
from runtime.worker import Worker

BASE_URI = "http://127.0.0.1:9001/2018-06-01"
FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:test-function"


class FakeControlPlane:
    """Records every request and answers like the Lambda Runtime API.

    ``next`` pops queued responses; once the queue is empty it behaves like
    an unreachable endpoint, which ends runtime loops under test. Kinds in
    ``undecodable`` answer with a gzip-labelled body that fails to decode.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.next_responses: List[httpx.Response] = []
        self.status = {"response": 202, "error": 202, "init_error": 202}
        self.unreachable: set = set()
        self.undecodable: set = set()
        self.transient_next_failures = 0

    def queue_event(
        self,
        event: Any,
        request_id: str = "abc",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        response_headers = {
            "Lambda-Runtime-Aws-Request-Id": request_id,
            "Lambda-Runtime-Deadline-Ms": "1700000000000",
            "Lambda-Runtime-Invoked-Function-Arn": FUNCTION_ARN,
        }
        response_headers.update(headers or {})
        self.next_responses.append(
            httpx.Response(200, headers=response_headers, text=json.dumps(event))
        )

    @staticmethod
    def kind(request: httpx.Request) -> str:
        path = request.url.path
        if path.endswith("/runtime/invocation/next"):
            return "next"
        if path.endswith("/runtime/init/error"):
            return "init_error"
        if path.endswith("/response"):
            return "response"
        return "error"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        kind = self.kind(request)
        if kind in self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if kind in self.undecodable:
            return httpx.Response(
                self.status.get(kind, 200),
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(b"not gzip"),
            )
        if kind == "next":
            if self.transient_next_failures:
                self.transient_next_failures -= 1
                raise httpx.ConnectError("Connection reset", request=request)
            if not self.next_responses:
                raise httpx.ConnectError("Connection refused", request=request)
            return self.next_responses.pop(0)
        return httpx.Response(self.status[kind], json={"status": "OK"})

    def calls(self, kind: str) -> List[httpx.Request]:
        return [request for request in self.requests if self.kind(request) == kind]

    def payloads(self, kind: str) -> List[Any]:
        return [json.loads(request.content) for request in self.calls(kind)]


@pytest.fixture(autouse=True)
def isolated_trace_id(monkeypatch):
    """Keep the exported trace id from leaking between tests."""
    monkeypatch.setenv("_X_AMZN_TRACE_ID", "")


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers after tests that configure logging."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    root_logger.handlers = handlers
    root_logger.setLevel(level)


@pytest.fixture
def config():
    """Runtime configuration for a test function."""
    return RuntimeConfiguration(
        function_name="test-function",
        function_version="$LATEST",
        memory_size="128",
        log_group_name="/aws/lambda/test-function",
        log_stream_name="2024/01/01/[$LATEST]abcdef",
    )


@pytest.fixture
def control_plane():
    return FakeControlPlane()


@pytest.fixture
def worker(config, control_plane):
    """Worker talking to the fake control plane."""
    client = httpx.Client(transport=httpx.MockTransport(control_plane))
    yield Worker(config, client=client)
    client.close()
