import copy
from collections.abc import Iterable
from typing import Any, Self

from reqchain.client.client import Client, SyncClient
from reqchain.config import Config
from reqchain.context import Context
from reqchain.exceptions import ConfigurationError, StatusError
from reqchain.http import HeaderMap, validate_base_url
from reqchain.middleware import Chain, Link, Next, SyncNext
from reqchain.middleware.types import AdapterSpec, MiddlewareSpec, SyncAdapterSpec, SyncMiddlewareSpec
from reqchain.types import HeadersType


class BaseClientBuilder:
    """Common base of `ClientBuilder` and `SyncClientBuilder`.

    Builders are copy-on-write, every setter returns a new builder and leaves the original untouched.
    """

    def __init__(self) -> None:
        self._middleware: tuple[Link, ...] = ()
        self._adapter: Link | None = None
        self._config = Config()
        self._base_url: str | None = None
        self._default_headers: HeaderMap | None = None
        self._error_for_status: bool | None = None

    def _replace(self, **changes: Any) -> Self:
        new = copy.copy(self)
        for name, value in changes.items():
            setattr(new, f"_{name}", value)
        return new

    def _with_middleware(self, middleware: Any, options: Any) -> Self:
        spec = middleware if options is None else (middleware, options)
        return self._replace(middleware=(*self._middleware, Link.resolve(spec)))

    def _with_adapter(self, adapter: Any, options: Any) -> Self:
        spec = adapter if options is None else (adapter, options)
        return self._replace(adapter=Link.resolve(spec, "adapter"))

    def config(self, config: Config | None) -> Self:
        """Defaults used for anything not set on the builder, including the default adapter."""
        return self._replace(config=config if config is not None else Config())

    def base_url(self, url: str) -> Self:
        """Base URL that relative request paths are joined onto. Must end with a trailing slash."""
        try:
            validate_base_url(url)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        return self._replace(base_url=url)

    def default_headers(self, headers: HeadersType) -> Self:
        """Headers sent with every request, unless overridden per call."""
        try:
            header_map = HeaderMap(headers)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid default headers: {e}") from e
        return self._replace(default_headers=header_map)

    def error_for_status(self, enable: bool) -> Self:
        """Fail with StatusError for 4xx and 5xx responses."""
        return self._replace(error_for_status=enable)

    def _build_chain(self, default_adapter: Any, error_for_status_link: Any) -> Chain:
        adapter = self._adapter
        if adapter is None:
            if default_adapter is None:
                raise ConfigurationError("no adapter given and no default adapter configured")
            adapter = Link.resolve(default_adapter, "adapter")
        chain = Chain(links=self._middleware, adapter=adapter)
        error_for_status = self._error_for_status
        if error_for_status is None:
            error_for_status = self._config.error_for_status
        if error_for_status:
            chain = chain.with_middleware(error_for_status_link, outermost=True)
        return chain

    def _client_kwargs(self) -> dict[str, Any]:
        headers = HeaderMap(self._config.default_headers)
        if self._default_headers is not None:
            for name in self._default_headers:
                headers.popall(name, None)
            headers.extend(self._default_headers.items())
        return {
            "base_url": self._base_url if self._base_url is not None else self._config.base_url,
            "default_headers": headers,
        }


class ClientBuilder(BaseClientBuilder):
    """Builder for the asynchronous `Client`."""

    def with_middleware(self, middleware: MiddlewareSpec, options: Any = None) -> Self:
        """Add a middleware. Middleware run in the order they are added, before the adapter.

        Options are passed unchanged to the middleware on every call.
        """
        return self._with_middleware(middleware, options)

    def adapter(self, adapter: AdapterSpec, options: Any = None) -> Self:
        """Set the terminal adapter performing the network exchange."""
        return self._with_adapter(adapter, options)

    def build(self) -> Client:
        chain = self._build_chain(self._config.default_adapter, _error_for_status)
        return Client(chain, **self._client_kwargs())


class SyncClientBuilder(BaseClientBuilder):
    """Builder for the blocking `SyncClient`."""

    def with_middleware(self, middleware: SyncMiddlewareSpec, options: Any = None) -> Self:
        """Add a blocking middleware. Middleware run in the order they are added, before the adapter."""
        return self._with_middleware(middleware, options)

    def adapter(self, adapter: SyncAdapterSpec, options: Any = None) -> Self:
        """Set the terminal blocking adapter."""
        return self._with_adapter(adapter, options)

    def build(self) -> SyncClient:
        chain = self._build_chain(self._config.default_sync_adapter, _error_for_status_sync)
        return SyncClient(chain, **self._client_kwargs())


def client(
    middleware: Iterable[MiddlewareSpec],
    adapter: AdapterSpec | None = None,
    *,
    config: Config | None = None,
) -> Client:
    """Build a `Client` from a middleware list and an adapter.

    Each middleware is a callable or a (callable, options) pair. Without an adapter the config's default adapter is
    used, and ConfigurationError is raised if there is none.
    """
    builder = ClientBuilder().config(config)
    for spec in middleware:
        builder = builder.with_middleware(spec)
    if adapter is not None:
        builder = builder.adapter(adapter)
    return builder.build()


def sync_client(
    middleware: Iterable[SyncMiddlewareSpec],
    adapter: SyncAdapterSpec | None = None,
    *,
    config: Config | None = None,
) -> SyncClient:
    """Blocking version of `client`."""
    builder = SyncClientBuilder().config(config)
    for spec in middleware:
        builder = builder.with_middleware(spec)
    if adapter is not None:
        builder = builder.adapter(adapter)
    return builder.build()


def _check_status(ctx: Context) -> Context:
    if ctx.status is not None and ctx.status >= 400:
        kind = "client" if ctx.status < 500 else "server"
        msg = f"HTTP status {kind} error ({ctx.status}) for url ({ctx.full_url})"
        raise StatusError(msg, context=ctx, details={"status": ctx.status})
    return ctx


async def _error_for_status(ctx: Context, next_handler: Next, _options: Any) -> Context:
    return _check_status(await next_handler.run(ctx))


def _error_for_status_sync(ctx: Context, next_handler: SyncNext, _options: Any) -> Context:
    return _check_status(next_handler.run(ctx))
