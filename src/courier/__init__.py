"""Courier: functional-style HTTP requests with typed response handling.

Public API:
    - GET/HEAD/DELETE/POST/PUT: Immutable request values
    - HttpxClient / MockClient: Transports that send them
    - handle_response(): Start a response handler chain from any source
    - ResponseHandler: Immutable chain of code -> outcome handlers
    - Success / Failure: The outcome of a sealed chain
    - Config: Configuration dataclass
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
import logging

try:
    __version__ = version("courier-http")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

from courier.client import HttpClient, HttpxClient
from courier.codec import decode_json, json_decoder
from courier.config import Config
from courier.deferred import Deferred
from courier.errors import (
    ConfigurationError,
    CourierError,
    InvariantViolationError,
    JSONParsingError,
    SerializationError,
    TransportError,
    UnhandledResponseCode,
)
from courier.handlers import (
    HandlerRegistry,
    ResponseHandler,
    handle_response,
    seal,
)
from courier.mock import MockClient
from courier.outcome import Failure, Outcome, Success
from courier.request import (
    DELETE,
    GET,
    HEAD,
    POST,
    PUT,
    DeleteRequest,
    GetRequest,
    HeadRequest,
    HttpRequest,
    PostRequest,
    PutRequest,
)
from courier.response import HttpResponse, ResponseCode
from courier.retry import RetryPolicy

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("courier").addHandler(logging.NullHandler())

# Re-export for convenience
__all__ = [
    "DELETE",
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "Config",
    "ConfigurationError",
    "CourierError",
    "Deferred",
    "DeleteRequest",
    "Failure",
    "GetRequest",
    "HandlerRegistry",
    "HeadRequest",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpxClient",
    "InvariantViolationError",
    "JSONParsingError",
    "MockClient",
    "Outcome",
    "PostRequest",
    "PutRequest",
    "ResponseCode",
    "ResponseHandler",
    "RetryPolicy",
    "SerializationError",
    "Success",
    "TransportError",
    "UnhandledResponseCode",
    "__version__",
    "decode_json",
    "handle_response",
    "json_decoder",
    "seal",
]
