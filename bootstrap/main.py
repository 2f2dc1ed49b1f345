"""Command-line entry point for the Lambda runtime client.

Usage:
    lambda-bootstrap app.handler
    lambda-bootstrap app:App --mode http
    lambda-bootstrap --config runtime.yaml       # handler from _HANDLER
"""

import argparse
import importlib
import inspect
import logging
import os
import sys
from typing import Any, Callable, List, Optional

from gateway.http_runtime import HttpRuntime
from runtime.config import RuntimeConfiguration, load_configuration
from runtime.errors import LambdaRuntimeError
from runtime.logging_utils import configure_json_logging
from runtime.loop import Runtime
from runtime.worker import Worker

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="lambda-bootstrap",
        description="Run a Python handler against the AWS Lambda Runtime API.",
    )
    parser.add_argument(
        "handler",
        nargs="?",
        default=None,
        help="Handler as module:attribute or module.attribute (default: $_HANDLER)",
    )
    parser.add_argument(
        "--mode",
        choices=("event", "http"),
        default="event",
        help="event: handler(event, context); http: handler(HttpRequest) -> HttpResponse",
    )
    parser.add_argument("--config", default=None, help="YAML configuration file for local runs")
    parser.add_argument(
        "--debug", action="store_true", help="Include debug details in HTTP error responses"
    )
    return parser.parse_args(argv)


def load_handler(name: str) -> Any:
    """Import the object a handler name points to.

    Args:
        name: ``package.module:attribute`` or ``package.module.attribute``

    Returns:
        The imported attribute

    Raises:
        LambdaRuntimeError: Initialization error if the name is malformed or
            the module or attribute cannot be loaded
    """
    module_name, separator, attribute = name.partition(":")
    if not separator:
        module_name, _, attribute = name.rpartition(".")
    if not module_name or not attribute:
        raise LambdaRuntimeError.initialization(
            f"Invalid handler name '{name}', expected module.attribute",
            configuration={"handler": name},
        )

    try:
        module = importlib.import_module(module_name)
    except Exception as e:
        raise LambdaRuntimeError.initialization(
            f"Unable to import module '{module_name}': {e}",
            configuration={"handler": name},
            cause=e,
        ) from e

    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise LambdaRuntimeError.initialization(
            f"Handler '{attribute}' missing on module '{module_name}'",
            configuration={"handler": name},
            cause=e,
        ) from e


def resolve_handler(target: Any, mode: str) -> Callable[..., Any]:
    """Turn a loaded handler object into the callable the runtime invokes.

    In HTTP mode a class is instantiated without arguments, and an object
    with a ``handle`` method contributes that method.

    Raises:
        LambdaRuntimeError: Initialization error if the result is not callable
    """
    if mode == "http":
        if inspect.isclass(target):
            try:
                target = target()
            except Exception as e:
                raise LambdaRuntimeError.initialization(
                    f"Unable to instantiate handler class {target.__name__}: {e}", cause=e
                ) from e
        handle = getattr(target, "handle", None)
        if callable(handle):
            target = handle

    if not callable(target):
        raise LambdaRuntimeError.initialization(
            f"Handler {target!r} is not callable",
            configuration={"mode": mode},
        )
    return target


def _report_and_exit(config: RuntimeConfiguration, error: LambdaRuntimeError) -> None:
    logger.critical(f"Failed to initialize handler: {error.describe()}")
    worker = Worker(config)
    try:
        worker.init_error(error)
    except LambdaRuntimeError as report_error:
        logger.error(f"Could not report initialization error: {report_error}")
    finally:
        worker.close()
    sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Basic logging until the configuration is known
    configure_json_logging()
    try:
        config = load_configuration(args.config)
    except LambdaRuntimeError as e:
        logger.critical(f"Invalid runtime configuration: {e.describe()}")
        sys.exit(1)

    if args.debug:
        config = config.model_copy(update={"debug": True})
    configure_json_logging(config.logging)

    # Handlers are resolved relative to the task root, as on Lambda
    task_root = os.environ.get("LAMBDA_TASK_ROOT") or os.getcwd()
    if task_root not in sys.path:
        sys.path.insert(0, task_root)

    handler_name = args.handler or config.handler
    try:
        if not handler_name:
            raise LambdaRuntimeError.initialization(
                "No handler given on the command line or in _HANDLER"
            )
        handler = resolve_handler(load_handler(handler_name), args.mode)
    except LambdaRuntimeError as e:
        _report_and_exit(config, e)
        return

    logger.info(
        f"Starting runtime for handler {handler_name}",
        extra={"mode": args.mode, "runtime_api": config.runtime_api},
    )
    if args.mode == "http":
        HttpRuntime.execute(handler, config)
    else:
        Runtime.execute(handler, config)


if __name__ == "__main__":
    main()
