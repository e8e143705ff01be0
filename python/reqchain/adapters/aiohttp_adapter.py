"""Aiohttp-based adapter (asynchronous)."""

import asyncio
import logging
from datetime import timedelta
from typing import Any

import aiohttp

from reqchain.adapters._body import request_body, timeout_seconds
from reqchain.context import Context
from reqchain.exceptions import ConnectError, RequestTimeoutError, TLSError, TransportError

logger = logging.getLogger(__name__)


class AiohttpAdapter:
    """Asynchronous adapter sending requests with aiohttp.

    Options (bound at client construction, overridable per call via `options={"adapter": {...}}`):
    - timeout: total request timeout, timedelta or seconds
    - allow_redirects: follow redirects, default True

    The request body must be bytes, str, a list of bytes chunks, an iterator or async iterable of chunks or None.
    Other bodies are rejected with `MiddlewareError`.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None, *, timeout: timedelta | None = None) -> None:
        """Initialize aiohttp adapter.

        Args:
            session: Optional aiohttp.ClientSession instance, closed by the caller. Without one, a session is created
                on first use and closed by `close()`.
            timeout: Default total timeout of a request
        """
        self._external_session = session is not None
        self._session = session
        self._timeout = timeout

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def __call__(self, ctx: Context, options: dict[str, Any] | None) -> Context:
        opts = options or {}
        kwargs: dict[str, Any] = {"allow_redirects": opts.get("allow_redirects", True)}
        if (timeout := timeout_seconds(opts.get("timeout", self._timeout))) is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        data = request_body(ctx)
        try:
            async with self._get_session().request(
                ctx.method.value,
                ctx.full_url,
                headers=list(ctx.headers.items()),
                data=data,
                **kwargs,
            ) as response:
                body = await response.read()
                return ctx.respond(response.status, body, list(response.headers.items()))

        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Request timed out: {ctx.method} {ctx.url}", context=ctx) from e

        except aiohttp.ClientSSLError as e:
            raise TLSError(f"TLS error: {e}", context=ctx) from e

        except aiohttp.ClientConnectorError as e:
            raise ConnectError(
                f"Connection failed: {e}", context=ctx, details={"host": e.host, "port": e.port}
            ) from e

        except aiohttp.ClientError as e:
            logger.debug("aiohttp request failed", exc_info=True)
            raise TransportError(f"Network request failed: {e}", context=ctx) from e

    async def close(self) -> None:
        """Close the session if it was created by the adapter."""
        if not self._external_session and self._session is not None:
            await self._session.close()
            self._session = None
