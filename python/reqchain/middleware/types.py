"""Middleware and adapter types and interfaces."""

from typing import TYPE_CHECKING, Any, Protocol

from reqchain.context import Context

if TYPE_CHECKING:
    from reqchain.middleware import Next, SyncNext


class Middleware(Protocol):
    """Middleware interface for processing HTTP requests and responses."""

    async def __call__(self, ctx: Context, next_handler: "Next", options: Any) -> Context:
        """Invoked with the request context before it is sent.

        Call `await next_handler.run(ctx)` to continue processing the request, at most once. Alternatively, return
        without calling it to short-circuit the rest of the chain, e.g. with `ctx.respond(...)`. Errors raised by
        `next_handler.run` can be caught and recovered from by returning a context.
        If you need to forward data down the middleware stack, you can use ctx.extensions.

        Args:
            ctx: Request context to process
            next_handler: Rest of the chain, including the adapter
            options: Options bound to this middleware when the client was built

        Returns:
            Context from the next middleware or a custom one.
        """
        ...


class SyncMiddleware(Protocol):
    """Blocking middleware interface, see `Middleware`."""

    def __call__(self, ctx: Context, next_handler: "SyncNext", options: Any) -> Context: ...


class Adapter(Protocol):
    """Terminal link performing the network exchange."""

    async def __call__(self, ctx: Context, options: Any) -> Context:
        """Send the request and fill in the response fields of ctx.

        Raises:
            TransportError: On connection, timeout or TLS failures
        """
        ...


class SyncAdapter(Protocol):
    """Blocking adapter interface, see `Adapter`."""

    def __call__(self, ctx: Context, options: Any) -> Context: ...


MiddlewareSpec = Middleware | tuple[Middleware, Any]
SyncMiddlewareSpec = SyncMiddleware | tuple[SyncMiddleware, Any]
AdapterSpec = Adapter | tuple[Adapter, Any]
SyncAdapterSpec = SyncAdapter | tuple[SyncAdapter, Any]
