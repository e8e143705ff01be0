"""Adapter routing requests into an ASGI application in-process."""

import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine
from datetime import timedelta
from typing import Any, Self
from urllib.parse import unquote, urlsplit

from reqchain.adapters._body import request_body, timeout_seconds
from reqchain.context import Context
from reqchain.exceptions import RequestTimeoutError, TransportError


class ASGIAdapter:
    """Adapter that sends requests to an ASGI application instead of the network.

    Use `async with` to run the application lifespan (startup/shutdown). Options:
    - timeout: how long to wait for each ASGI message, timedelta or seconds, None waits without a timeout
    """

    def __init__(
        self,
        app: Callable,
        *,
        timeout: timedelta | None = None,
        scope_update: Callable[[dict[str, Any], Context], Coroutine[Any, Any, None]] | None = None,
    ) -> None:
        """Initialize the ASGI adapter.

        Args:
            app: ASGI application callable
            timeout: Timeout for ASGI operations (default: 5 seconds)
            scope_update: Optional coroutine to modify the ASGI scope per request
        """
        self._app = app
        self._scope_update = scope_update
        self._timeout = timeout or timedelta(seconds=5)
        self._lifespan_input_queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._lifespan_output_queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._lifespan_task: asyncio.Task[None] | None = None
        self._state: dict[str, Any] = {}

    async def __aenter__(self) -> Self:
        async def wrapped_lifespan() -> None:
            await self._app(
                {"type": "lifespan", "asgi": {"version": "3.0"}, "state": self._state},
                self._lifespan_input_queue.get,
                self._lifespan_output_queue.put,
            )

        self._lifespan_task = asyncio.create_task(wrapped_lifespan())
        await self._send_lifespan("startup")
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._send_lifespan("shutdown")
        self._lifespan_task = None

    async def _send_lifespan(self, action: str) -> None:
        assert self._lifespan_task

        await self._lifespan_input_queue.put({"type": f"lifespan.{action}"})
        message = await asyncio.wait_for(self._lifespan_output_queue.get(), timeout=self._timeout.total_seconds())

        if message["type"] == f"lifespan.{action}.failed":
            await asyncio.sleep(0)
            if self._lifespan_task.done() and (exc := self._lifespan_task.exception()) is not None:
                raise exc
            msg = f"ASGI lifespan {action} failed: {message.get('message', '')}"
            raise RuntimeError(msg)

    async def __call__(self, ctx: Context, options: dict[str, Any] | None) -> Context:
        timeout_secs = timeout_seconds((options or {}).get("timeout", self._timeout))

        body_parts = self._asgi_body_parts(request_body(ctx))
        scope = await self._context_to_asgi_scope(ctx)
        send_queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        response_complete = asyncio.Event()

        async def receive() -> dict[str, Any]:
            if part := await anext(body_parts, None):
                return part
            await response_complete.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                response_complete.set()
            await send_queue.put(message)

        try:
            await asyncio.wait_for(self._app(scope, receive, send), timeout=timeout_secs)
            return await self._asgi_response_to_context(ctx, send_queue, timeout_secs)
        except TimeoutError as e:
            raise RequestTimeoutError(f"ASGI app timed out: {ctx.method} {ctx.url}", context=ctx) from e

    async def _context_to_asgi_scope(self, ctx: Context) -> dict[str, Any]:
        url = urlsplit(ctx.full_url)
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": ctx.method.value,
            "scheme": url.scheme or "http",
            "path": unquote(url.path or "/"),
            "raw_path": (url.path or "/").encode(),
            "root_path": "",
            "query_string": url.query.encode(),
            "headers": [[name.encode(), value.encode()] for name, value in ctx.headers.items()],
            "server": (url.hostname or "testserver", url.port or (443 if url.scheme == "https" else 80)),
            "state": self._state.copy(),
        }
        if url.hostname and "host" not in ctx.headers:
            scope["headers"].insert(0, [b"host", url.netloc.encode()])
        if self._scope_update is not None:
            await self._scope_update(scope, ctx)
        return scope

    async def _asgi_body_parts(self, body: bytes | AsyncIterator[bytes] | None) -> AsyncIterator[dict[str, Any]]:
        if isinstance(body, AsyncIterator):
            body_parts = [chunk async for chunk in body]
            if not body_parts:
                yield {"type": "http.request", "body": b"", "more_body": False}
                return
            *parts, last = body_parts
            for part in parts:
                yield {"type": "http.request", "body": part, "more_body": True}
            yield {"type": "http.request", "body": last, "more_body": False}
            return

        yield {"type": "http.request", "body": body or b"", "more_body": False}

    async def _asgi_response_to_context(
        self, ctx: Context, send_queue: asyncio.Queue[dict[str, Any]], timeout: float | None
    ) -> Context:
        status: int | None = None
        headers: list[tuple[str, str]] = []
        body_parts: list[bytes] = []

        while True:
            if send_queue.empty() and status is None:
                raise TransportError("ASGI app returned without sending a response", context=ctx)
            message = await asyncio.wait_for(send_queue.get(), timeout=timeout)

            if message["type"] == "http.response.start":
                status = message["status"]
                headers = [(k.decode(), v.decode()) for k, v in message.get("headers", [])]

            elif message["type"] == "http.response.body":
                if body := message.get("body"):
                    body_parts.append(body)

                if not message.get("more_body", False):
                    break

        assert status is not None
        return ctx.respond(status, b"".join(body_parts), headers)
