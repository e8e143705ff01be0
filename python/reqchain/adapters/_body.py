from collections.abc import AsyncIterable, AsyncIterator, Iterator
from datetime import timedelta
from typing import Any

from reqchain.context import Context
from reqchain.exceptions import MiddlewareError


def request_body(ctx: Context, *, blocking: bool = False) -> bytes | Iterator[bytes] | AsyncIterator[bytes] | None:
    """Request body in a shape the adapters send: bytes, a stream of bytes chunks or None.

    Accepted bodies are bytes-like, str, a list or tuple of bytes chunks, an iterator of chunks and (for
    non-blocking adapters) an async iterable of chunks. Other shapes must be encoded by a middleware before reaching
    the adapter, otherwise `MiddlewareError` is raised.
    """
    body = ctx.body
    if body is None or isinstance(body, bytes):
        return body
    if isinstance(body, bytearray | memoryview):
        return bytes(body)
    if isinstance(body, str):
        return body.encode()
    if isinstance(body, list | tuple) and all(isinstance(chunk, bytes) for chunk in body):
        return b"".join(body)
    if isinstance(body, Iterator):
        return _chunks(ctx, body) if blocking else _async_chunks(ctx, body)
    if isinstance(body, AsyncIterable) and not blocking:
        return _async_chunks(ctx, body)

    kind = "blocking" if blocking else "async"
    msg = f"request body of type {type(body).__name__!r} can not be sent by an {kind} adapter, encode it to bytes"
    raise MiddlewareError(msg, context=ctx, details={"body_type": type(body).__name__})


def _chunk_bytes(ctx: Context, chunk: Any) -> bytes:
    if isinstance(chunk, bytes | bytearray | memoryview):
        return bytes(chunk)
    if isinstance(chunk, str):
        return chunk.encode()
    msg = f"request body chunk of type {type(chunk).__name__!r} must be bytes or str"
    raise MiddlewareError(msg, context=ctx, details={"body_type": type(chunk).__name__})


def _chunks(ctx: Context, body: Iterator[Any]) -> Iterator[bytes]:
    for chunk in body:
        yield _chunk_bytes(ctx, chunk)


async def _async_chunks(ctx: Context, body: Iterator[Any] | AsyncIterable[Any]) -> AsyncIterator[bytes]:
    if isinstance(body, AsyncIterable):
        async for chunk in body:
            yield _chunk_bytes(ctx, chunk)
    else:
        for chunk in body:
            yield _chunk_bytes(ctx, chunk)


def timeout_seconds(timeout: timedelta | float | None) -> float | None:
    if timeout is None:
        return None
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)
