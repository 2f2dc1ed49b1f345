"""Generic runtime loop.

Polls the worker for invocations, hands each event to the user handler and
reports the JSON-serialized result or the failure.
"""

import json
import logging
import sys
import time
from typing import Optional

from runtime.config import RuntimeConfiguration
from runtime.errors import LambdaRuntimeError
from runtime.interfaces import Handler, Invocation
from runtime.worker import Worker

logger = logging.getLogger(__name__)


class Runtime:
    """Runs a handler against the Runtime API forever."""

    def __init__(self, handler: Handler, worker: Worker) -> None:
        self.handler = handler
        self.worker = worker

    def run(self) -> None:
        """Poll and process invocations until a fatal error is raised."""
        logger.info("Starting invocation loop")
        while True:
            invocation = self.worker.next_invocation()
            self.process(invocation)

    def process(self, invocation: Invocation) -> None:
        """Dispatch one invocation and make its terminal call.

        Args:
            invocation: Invocation returned by the worker
        """
        invocation_id = invocation.invocation_id
        start_time = time.time()
        try:
            result = self.handler(invocation.event.to_dict(), invocation.context)
            body = json.dumps(result)
        except LambdaRuntimeError as e:
            self.worker.error(invocation_id, e)
            return
        except Exception as e:
            logger.error(
                f"Handler raised {type(e).__name__}: {e}",
                extra={"aws_request_id": invocation_id},
                exc_info=True,
            )
            self.worker.error(invocation_id, LambdaRuntimeError.wrap(e, invocation_id))
            return

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Invocation completed",
            extra={"aws_request_id": invocation_id, "duration_ms": round(duration_ms, 2)},
        )
        self.worker.respond(invocation_id, body)

    @classmethod
    def execute(cls, handler: Handler, config: Optional[RuntimeConfiguration] = None) -> None:
        """Run a handler until the process must stop.

        Initialization errors are logged and end the process with status 1.

        Args:
            handler: Callable taking ``(event, context)``
            config: Runtime configuration; read from the environment when omitted
        """
        worker: Optional[Worker] = None
        try:
            config = config or RuntimeConfiguration.from_environment()
            worker = Worker(config)
            cls(handler, worker).run()
        except LambdaRuntimeError as e:
            if not e.is_fatal:
                raise
            logger.critical(f"Fatal runtime error: {e.describe()}", extra={"error_type": e.error_type})
            sys.exit(1)
        finally:
            if worker is not None:
                worker.close()
