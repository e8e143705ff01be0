"""Adapters reflecting the request back as the response, without any network."""

from typing import Any

from reqchain.context import Context


def _echo(ctx: Context, options: dict[str, Any] | None) -> Context:
    status = (options or {}).get("status", 200)
    return ctx.respond(status, ctx.body, ctx.headers.items())


class EchoAdapter:
    """Responds with the request headers and body. Option `status` sets the response status (default 200)."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, ctx: Context, options: dict[str, Any] | None) -> Context:
        self.calls += 1
        return _echo(ctx, options)


class SyncEchoAdapter:
    """Blocking version of `EchoAdapter`."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, ctx: Context, options: dict[str, Any] | None) -> Context:
        self.calls += 1
        return _echo(ctx, options)
