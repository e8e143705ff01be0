"""Adapters performing the actual request at the end of the middleware chain."""

from reqchain.adapters.aiohttp_adapter import AiohttpAdapter
from reqchain.adapters.asgi import ASGIAdapter
from reqchain.adapters.echo import EchoAdapter, SyncEchoAdapter
from reqchain.adapters.requests_adapter import RequestsAdapter

__all__ = ["ASGIAdapter", "AiohttpAdapter", "EchoAdapter", "RequestsAdapter", "SyncEchoAdapter"]
