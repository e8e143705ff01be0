"""reqchain - HTTP client built around a middleware pipeline.

A client pairs an ordered list of middleware with a single terminal adapter:
- Middleware run in order on the way down and in reverse order on the way up
- Each middleware continues the chain explicitly via `next_handler.run(ctx)`, or short-circuits it
- Transport and middleware errors can be recovered by any enclosing middleware
- Safe calls return `Ok`/`Err` results, `*_or_raise` calls raise
- Asynchronous and blocking clients
- Pluggable adapters: aiohttp, requests, in-process ASGI
- Mocking and testing utilities
"""

from reqchain.client import Client, ClientBuilder, SyncClient, SyncClientBuilder, client, sync_client
from reqchain.config import Config
from reqchain.context import Context
from reqchain.exceptions import (
    ConfigurationError,
    ConnectError,
    MiddlewareError,
    MisuseError,
    ReqchainError,
    RequestTimeoutError,
    StatusError,
    TLSError,
    TransportError,
)
from reqchain.http import HeaderMap, Method
from reqchain.middleware import Next, SyncNext
from reqchain.result import Err, Ok, Result

__version__ = "0.1.0"

__all__ = [
    "Client",
    "ClientBuilder",
    "Config",
    "ConfigurationError",
    "ConnectError",
    "Context",
    "Err",
    "HeaderMap",
    "Method",
    "MiddlewareError",
    "MisuseError",
    "Next",
    "Ok",
    "ReqchainError",
    "RequestTimeoutError",
    "Result",
    "StatusError",
    "SyncClient",
    "SyncClientBuilder",
    "SyncNext",
    "TLSError",
    "TransportError",
    "__version__",
    "client",
    "sync_client",
]
