"""Middleware examples for reqchain. These run in-process, without network.

Run directly:
    python -m examples.middleware
"""

import asyncio
import json
import sys
import time
from typing import Any

from reqchain import ClientBuilder, Context, MiddlewareError, Next, SyncClientBuilder, SyncNext, TransportError, client
from reqchain.adapters import ASGIAdapter, EchoAdapter, SyncEchoAdapter


async def example_ordering() -> None:
    """Example 1: Before logic runs in order, after logic in reverse"""
    trace: list[str] = []

    async def traced(ctx: Context, next_handler: Next, name: str) -> Context:
        trace.append(f"{name}>")
        res = await next_handler.run(ctx)
        trace.append(f"<{name}")
        return res

    api = client([(traced, "auth"), (traced, "retry"), (traced, "log")], EchoAdapter())
    await api.get_or_raise("http://example.invalid/")
    print({"example": "ordering", "trace": trace})


async def example_short_circuit_cache() -> None:
    """Example 2: Short-circuit from a cache"""
    cache: dict[str, Context] = {}

    async def add_header(ctx: Context, next_handler: Next, options: tuple[str, str]) -> Context:
        ctx.headers[options[0]] = options[1]
        return await next_handler.run(ctx)

    async def cached(ctx: Context, next_handler: Next, _options: Any) -> Context:
        if (hit := cache.get(ctx.full_url)) is not None:
            return hit
        res = await next_handler.run(ctx)
        cache[ctx.full_url] = res
        return res

    adapter = EchoAdapter()
    api = client([(add_header, ("x-test", "1")), cached], adapter)
    for _ in range(3):
        ctx = await api.get_or_raise("http://example.invalid/items")
    print({"example": "short_circuit_cache", "adapter_calls": adapter.calls, "x_test": ctx.response_headers["x-test"]})


async def example_error_recovery() -> None:
    """Example 3: Recover a transport error with a fallback response"""

    async def offline(ctx: Context, _options: Any) -> Context:
        raise TransportError("network unreachable", context=ctx)

    async def fallback(ctx: Context, next_handler: Next, _options: Any) -> Context:
        try:
            return await next_handler.run(ctx)
        except TransportError as e:
            return ctx.respond(503, str(e).encode())

    api = ClientBuilder().with_middleware(fallback).adapter(offline).build()
    ctx = await api.get_or_raise("http://example.invalid/")
    print({"example": "error_recovery", "status": ctx.status, "body": ctx.response_body.decode()})


async def example_domain_error() -> None:
    """Example 4: Middleware signalling a domain error"""

    async def require_token(ctx: Context, next_handler: Next, _options: Any) -> Context:
        if "authorization" not in ctx.headers:
            raise MiddlewareError("missing token", context=ctx, details={"header": "authorization"})
        return await next_handler.run(ctx)

    api = ClientBuilder().with_middleware(require_token).adapter(EchoAdapter()).build()
    res = await api.get("http://example.invalid/")
    print({"example": "domain_error", "is_err": res.is_err(), "details": res.unwrap_err().details})


async def example_asgi_app() -> None:
    """Example 5: Route requests into an ASGI application"""

    async def app(scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] == "lifespan":
            while (message := await receive())["type"] != "lifespan.shutdown":
                await send({"type": f"{message['type']}.complete"})
            await send({"type": "lifespan.shutdown.complete"})
            return
        body = json.dumps({"method": scope["method"], "path": scope["path"]}).encode()
        await send({"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"application/json")]})
        await send({"type": "http.response.body", "body": body})

    async with ASGIAdapter(app) as adapter:
        api = ClientBuilder().adapter(adapter).base_url("http://testserver/").build()
        ctx = await api.delete_or_raise("users/1")
    print({"example": "asgi_app", "status": ctx.status, "body": json.loads(ctx.response_body)})


def example_sync_timing() -> None:
    """Example 6: Blocking middleware"""
    timings: list[float] = []

    def timed(ctx: Context, next_handler: SyncNext, _options: Any) -> Context:
        start = time.perf_counter()
        try:
            return next_handler.run(ctx)
        finally:
            timings.append(time.perf_counter() - start)

    api = SyncClientBuilder().with_middleware(timed).adapter(SyncEchoAdapter()).build()
    ctx = api.post_or_raise("http://example.invalid/", b"ping")
    print({"example": "sync_timing", "status": ctx.status, "body": ctx.response_body, "timed": len(timings)})


if __name__ == "__main__":  # pragma: no cover
    from ._utils import run_examples

    asyncio.run(run_examples(sys.modules[__name__]))
