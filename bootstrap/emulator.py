"""Local emulator of the Lambda Runtime API (no Lambda needed).

Serves the runtime-facing endpoints used by ``lambda-bootstrap`` and a
client-facing invoke endpoint that queues an event and waits for the result:

    lambda-emulator --port 9001
    AWS_LAMBDA_RUNTIME_API=127.0.0.1:9001 lambda-bootstrap app.handler
    curl -d '{"name": "x"}' http://127.0.0.1:9001/2015-03-31/functions/function/invocations
"""

import argparse
import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aiohttp import web

from runtime.config import DEFAULT_API_VERSION, LoggingConfiguration
from runtime.logging_utils import configure_json_logging

logger = logging.getLogger(__name__)


@dataclass
class PendingInvocation:
    """An event waiting for, or being processed by, the runtime."""

    request_id: str
    payload: bytes
    result: "asyncio.Future[Dict[str, Any]]"
    deadline_ms: int = 0


@dataclass
class EmulatorState:
    """Mutable state shared by the emulator routes."""

    function_name: str
    timeout: float
    queue: "asyncio.Queue[PendingInvocation]" = field(default_factory=asyncio.Queue)
    in_flight: Dict[str, PendingInvocation] = field(default_factory=dict)
    init_errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def function_arn(self) -> str:
        return f"arn:aws:lambda:us-east-1:000000000000:function:{self.function_name}"


STATE_KEY = web.AppKey("state", EmulatorState)


def _error_response(status: int, error_type: str, message: str) -> web.Response:
    return web.json_response({"errorType": error_type, "errorMessage": message}, status=status)


async def handle_next(request: web.Request) -> web.Response:
    """GET /runtime/invocation/next: block until an event is queued."""
    state = request.app[STATE_KEY]
    pending = await state.queue.get()
    pending.deadline_ms = int((time.time() + state.timeout) * 1000)
    state.in_flight[pending.request_id] = pending

    logger.info("Dispatching invocation", extra={"aws_request_id": pending.request_id})
    return web.Response(
        body=pending.payload,
        content_type="application/json",
        headers={
            "Lambda-Runtime-Aws-Request-Id": pending.request_id,
            "Lambda-Runtime-Deadline-Ms": str(pending.deadline_ms),
            "Lambda-Runtime-Invoked-Function-Arn": state.function_arn,
            "Lambda-Runtime-Trace-Id": f"Root=1-{uuid.uuid4().hex[:8]}-{uuid.uuid4().hex[:24]};Sampled=0",
        },
    )


async def _complete(request: web.Request, outcome: str) -> web.Response:
    state = request.app[STATE_KEY]
    request_id = request.match_info["request_id"]
    pending = state.in_flight.pop(request_id, None)
    if pending is None:
        return _error_response(400, "InvalidRequestID", f"Unknown request id {request_id}")

    body = await request.text()
    if not pending.result.done():
        pending.result.set_result(
            {
                "outcome": outcome,
                "body": body,
                "error_type": request.headers.get("Lambda-Runtime-Function-Error-Type"),
            }
        )
    logger.info(
        f"Invocation {outcome}",
        extra={"aws_request_id": request_id, "response_size": len(body)},
    )
    return web.json_response({"status": "OK"}, status=202)


async def handle_response(request: web.Request) -> web.Response:
    """POST /runtime/invocation/{request_id}/response."""
    return await _complete(request, "success")


async def handle_error(request: web.Request) -> web.Response:
    """POST /runtime/invocation/{request_id}/error."""
    return await _complete(request, "error")


async def handle_init_error(request: web.Request) -> web.Response:
    """POST /runtime/init/error: record the startup failure."""
    state = request.app[STATE_KEY]
    body = await request.text()
    try:
        error = json.loads(body)
    except json.JSONDecodeError:
        error = {"errorMessage": body}
    state.init_errors.append(error)
    logger.error("Runtime reported an initialization error", extra={"init_error": error})
    return web.json_response({"status": "OK"}, status=202)


async def handle_invoke(request: web.Request) -> web.Response:
    """POST /2015-03-31/functions/function/invocations: run one event."""
    state = request.app[STATE_KEY]
    payload = await request.read()
    if not payload:
        payload = b"{}"

    request_id = str(uuid.uuid4())
    future: "asyncio.Future[Dict[str, Any]]" = asyncio.get_running_loop().create_future()
    await state.queue.put(PendingInvocation(request_id=request_id, payload=payload, result=future))
    logger.info("Queued invocation", extra={"aws_request_id": request_id})

    try:
        result = await asyncio.wait_for(future, timeout=state.timeout)
    except asyncio.TimeoutError:
        state.in_flight.pop(request_id, None)
        return _error_response(
            504, "TimeoutError", f"Invocation {request_id} timed out after {state.timeout} seconds"
        )

    headers = {"X-Amz-Request-Id": request_id}
    if result["outcome"] == "error":
        headers["X-Amz-Function-Error"] = "Unhandled"
    return web.Response(
        text=result["body"], status=200, content_type="application/json", headers=headers
    )


def create_app(
    function_name: str = "function",
    timeout: float = 30.0,
    api_version: str = DEFAULT_API_VERSION,
) -> web.Application:
    """Create the emulator application.

    Args:
        function_name: Name used in the invoked function ARN
        timeout: Seconds an invoke call waits for the runtime
        api_version: Runtime API path prefix

    Returns:
        aiohttp application
    """
    app = web.Application()
    app[STATE_KEY] = EmulatorState(function_name=function_name, timeout=timeout)

    prefix = f"/{api_version}/runtime"
    app.router.add_get(f"{prefix}/invocation/next", handle_next)
    app.router.add_post(f"{prefix}/invocation/{{request_id}}/response", handle_response)
    app.router.add_post(f"{prefix}/invocation/{{request_id}}/error", handle_error)
    app.router.add_post(f"{prefix}/init/error", handle_init_error)
    app.router.add_post("/2015-03-31/functions/function/invocations", handle_invoke)
    return app


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="lambda-emulator", description="Local emulator of the Lambda Runtime API."
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=9001)
    parser.add_argument("--function-name", default="function")
    parser.add_argument("--timeout", type=float, default=30.0, help="Invocation timeout in seconds")
    args = parser.parse_args(argv)

    # Pretty-print JSON for local readability
    configure_json_logging(LoggingConfiguration(pretty=True))

    logger.info(f"Runtime API emulator listening on http://{args.host}:{args.port}")
    web.run_app(
        create_app(function_name=args.function_name, timeout=args.timeout),
        host=args.host,
        port=args.port,
        print=None,
    )


if __name__ == "__main__":
    main()
