"""Example event handler: ``lambda-bootstrap examples.event_handler.handler``."""

from typing import Any, Dict

from runtime.interfaces import Context


def handler(event: Dict[str, Any], context: Context) -> Dict[str, Any]:
    name = event.get("name", "world")
    return {
        "greeting": f"Hello, {name}!",
        "request_id": context.aws_request_id,
        "remaining_ms": context.get_remaining_time_in_millis(),
    }
