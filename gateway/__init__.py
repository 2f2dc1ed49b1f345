"""HTTP mode for the Lambda runtime client.

Translates API Gateway / Function URL events into generic HTTP requests
and handler responses back into Lambda response envelopes:

- ``RequestTransformer``: v1 (REST proxy) and v2 (HTTP API) events -> ``HttpRequest``
- ``ResponseTransformer``: ``HttpResponse`` -> envelope with cookies and multi-value headers
- ``ErrorHandler``: exceptions -> JSON error responses
"""

from .error_handler import ErrorHandler
from .http_runtime import HttpRuntime
from .http_worker import HttpWorker
from .messages import HttpRequest, HttpResponse
from .request_transformer import RequestTransformer
from .response_transformer import ResponseTransformer

__all__ = [
    "ErrorHandler",
    "HttpRequest",
    "HttpResponse",
    "HttpRuntime",
    "HttpWorker",
    "RequestTransformer",
    "ResponseTransformer",
]
