"""Basic usage examples for reqchain.

Run directly against a local echo server:
    ECHO_URL=http://127.0.0.1:8000/ python -m examples.basic_client
"""

import asyncio
import json
import sys
from typing import Any

from reqchain import ClientBuilder, Err, Ok, RequestTimeoutError, StatusError, SyncClientBuilder
from reqchain.adapters import AiohttpAdapter, RequestsAdapter

from ._utils import echo_url


async def example_simple_get() -> None:
    """Example 1: Simple GET"""
    async with ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_url()).error_for_status(True).build() as client:
        ctx = await client.get_or_raise("get", query={"q": "reqchain"})
        data = json.loads(ctx.response_body)
        print({"example": "simple_get", "status": ctx.status, "path": data["path"], "query": data["query"]})


async def example_post_json() -> None:
    """Example 2: POST JSON"""
    async with ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_url()).build() as client:
        payload = {"message": "hello"}
        ctx = await client.post_or_raise(
            "post", json.dumps(payload), headers={"content-type": "application/json"}
        )
        data = json.loads(ctx.response_body)
        print({"example": "post_json", "status": ctx.status, "echo": json.loads(data["body"])})


async def example_safe_call() -> None:
    """Example 3: Safe calls return Ok or Err"""
    async with ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_url()).error_for_status(True).build() as client:
        for status in (200, 404):
            match await client.get("status", query={"status": status}):
                case Ok(ctx):
                    print({"example": "safe_call", "ok": ctx.status})
                case Err(StatusError() as e):
                    print({"example": "safe_call", "err": type(e).__name__, "details": e.details})
                case Err(e):
                    raise e


async def example_concurrent_requests() -> None:
    """Example 4: Concurrency"""
    async with ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_url()).build() as client:

        async def fetch(i: int) -> Any:
            ctx = await client.get_or_raise("get", query={"i": i})
            return json.loads(ctx.response_body)

        results = await asyncio.gather(*(fetch(i) for i in range(3)))
        print(
            {
                "example": "concurrent_requests",
                "count": len(results),
                "indices": sorted(int(r["query"][0][1]) for r in results),
            }
        )


async def example_timeouts() -> None:
    """Example 5: Per-call adapter options"""
    async with ClientBuilder().adapter(AiohttpAdapter(), {"timeout": 5}).base_url(echo_url()).build() as client:
        res = await client.get("delay", query={"sleep_start": 1}, options={"adapter": {"timeout": 0.1}})
        match res:
            case Err(RequestTimeoutError() as e):
                print({"example": "timeouts", "error": type(e).__name__})
            case _:
                raise RuntimeError("should have timed out")


async def example_default_headers() -> None:
    """Example 6: Default headers"""
    builder = ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_url()).default_headers({"X-Client": "demo"})
    async with builder.build() as client:
        ctx = await client.get_or_raise("headers")
        headers = dict(json.loads(ctx.response_body)["headers"])
        print({"example": "default_headers", "status": ctx.status, "x_client": headers.get("x-client")})


def example_sync_client() -> None:
    """Example 7: Blocking client"""
    with SyncClientBuilder().adapter(RequestsAdapter()).base_url(echo_url()).build() as client:
        ctx = client.put_or_raise("items/1", b"data")
        data = json.loads(ctx.response_body)
        print({"example": "sync_client", "status": ctx.status, "method": data["method"], "body": data["body"]})


if __name__ == "__main__":  # pragma: no cover
    from ._utils import run_examples

    asyncio.run(run_examples(sys.modules[__name__]))
