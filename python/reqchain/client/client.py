import inspect
from typing import Any, NoReturn, Self

from reqchain.context import Context
from reqchain.exceptions import ReqchainError
from reqchain.http import HeaderMap, Method, join_url
from reqchain.middleware import Chain, run_pipeline, run_pipeline_sync
from reqchain.result import Result
from reqchain.types import ExtensionsType, HeadersType, QueryParams


class BaseClient:
    """Common base of `Client` and `SyncClient`.

    A client is immutable after construction and safe to share between concurrent calls. Each call builds its own
    `Context`, all per-request state lives there.
    """

    __slots__ = ("_base_url", "_chain", "_default_headers")

    def __init__(self, chain: Chain, *, base_url: str | None = None, default_headers: HeaderMap | None = None) -> None:
        """Do not use directly. Instead, use ClientBuilder / SyncClientBuilder or client() / sync_client()."""
        object.__setattr__(self, "_chain", chain)
        object.__setattr__(self, "_base_url", base_url)
        object.__setattr__(self, "_default_headers", default_headers.copy() if default_headers else HeaderMap())

    def __setattr__(self, name: str, value: Any) -> NoReturn:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    def __delattr__(self, name: str) -> NoReturn:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def base_url(self) -> str | None:
        return self._base_url

    @property
    def default_headers(self) -> HeaderMap:
        """Copy of the default headers sent with every request."""
        return self._default_headers.copy()

    def build_context(
        self,
        method: Method | str,
        url: str,
        body: Any = None,
        *,
        headers: HeadersType | None = None,
        query: QueryParams | None = None,
        extensions: ExtensionsType | None = None,
        options: dict[str, Any] | None = None,
    ) -> Context:
        """Build the initial context of a call, merged with the client defaults.

        Per-call headers replace default headers with the same name.
        """
        ctx = Context.build(
            method,
            join_url(self._base_url, url),
            query=query,
            body=body,
            options=options,
            extensions=extensions,
        )
        ctx.headers = self._default_headers.copy()
        call_headers = HeaderMap(headers)
        for name in call_headers:
            ctx.headers.popall(name, None)
        ctx.headers.extend(call_headers.items())
        return ctx

    def _adapter_closer(self, name: str) -> Any:
        return getattr(self._chain.adapter.func, name, None)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} base_url={self._base_url!r} middleware={len(self._chain)}>"


class Client(BaseClient):
    """Asynchronous HTTP client. Use ClientBuilder or client() to create one.

    Every verb comes in two shapes: the safe one (e.g. `get`) returns `Ok(context)` or `Err(error)` for transport and
    middleware failures, the raising one (e.g. `get_or_raise`) returns the context or raises the error.
    """

    __slots__ = ()

    async def request(
        self,
        method: Method | str,
        url: str,
        body: Any = None,
        *,
        headers: HeadersType | None = None,
        query: QueryParams | None = None,
        extensions: ExtensionsType | None = None,
        options: dict[str, Any] | None = None,
    ) -> Result[Context, ReqchainError]:
        """Send a request through the middleware chain."""
        ctx = self.build_context(
            method, url, body, headers=headers, query=query, extensions=extensions, options=options
        )
        return await run_pipeline(self._chain, ctx)

    async def request_or_raise(
        self,
        method: Method | str,
        url: str,
        body: Any = None,
        *,
        headers: HeadersType | None = None,
        query: QueryParams | None = None,
        extensions: ExtensionsType | None = None,
        options: dict[str, Any] | None = None,
    ) -> Context:
        """Send a request through the middleware chain, raising transport and middleware errors."""
        res = await self.request(
            method, url, body, headers=headers, query=query, extensions=extensions, options=options
        )
        return res.unwrap()

    async def get(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """GET request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.GET, url, body, **kwargs)

    async def post(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """POST request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.POST, url, body, **kwargs)

    async def put(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """PUT request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.PUT, url, body, **kwargs)

    async def patch(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """PATCH request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.PATCH, url, body, **kwargs)

    async def delete(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """DELETE request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.DELETE, url, body, **kwargs)

    async def head(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """HEAD request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.HEAD, url, body, **kwargs)

    async def options(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """OPTIONS request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.OPTIONS, url, body, **kwargs)

    async def trace(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        """TRACE request. Accepts the keyword arguments of `request`."""
        return await self.request(Method.TRACE, url, body, **kwargs)

    async def get_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.GET, url, body, **kwargs)

    async def post_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.POST, url, body, **kwargs)

    async def put_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.PUT, url, body, **kwargs)

    async def patch_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.PATCH, url, body, **kwargs)

    async def delete_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.DELETE, url, body, **kwargs)

    async def head_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.HEAD, url, body, **kwargs)

    async def options_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.OPTIONS, url, body, **kwargs)

    async def trace_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return await self.request_or_raise(Method.TRACE, url, body, **kwargs)

    async def aclose(self) -> None:
        """Close the adapter if it holds resources (e.g. a connection pool)."""
        if (close := self._adapter_closer("aclose") or self._adapter_closer("close")) is None:
            return
        res = close()
        if inspect.isawaitable(res):
            await res

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


class SyncClient(BaseClient):
    """Blocking HTTP client. Use SyncClientBuilder or sync_client() to create one.

    Same call shapes as `Client`, usable from many threads at once.
    """

    __slots__ = ()

    def request(
        self,
        method: Method | str,
        url: str,
        body: Any = None,
        *,
        headers: HeadersType | None = None,
        query: QueryParams | None = None,
        extensions: ExtensionsType | None = None,
        options: dict[str, Any] | None = None,
    ) -> Result[Context, ReqchainError]:
        """Send a request through the middleware chain."""
        ctx = self.build_context(
            method, url, body, headers=headers, query=query, extensions=extensions, options=options
        )
        return run_pipeline_sync(self._chain, ctx)

    def request_or_raise(
        self,
        method: Method | str,
        url: str,
        body: Any = None,
        *,
        headers: HeadersType | None = None,
        query: QueryParams | None = None,
        extensions: ExtensionsType | None = None,
        options: dict[str, Any] | None = None,
    ) -> Context:
        """Send a request through the middleware chain, raising transport and middleware errors."""
        return self.request(
            method, url, body, headers=headers, query=query, extensions=extensions, options=options
        ).unwrap()

    def get(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.GET, url, body, **kwargs)

    def post(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.POST, url, body, **kwargs)

    def put(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.PUT, url, body, **kwargs)

    def patch(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.PATCH, url, body, **kwargs)

    def delete(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.DELETE, url, body, **kwargs)

    def head(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.HEAD, url, body, **kwargs)

    def options(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.OPTIONS, url, body, **kwargs)

    def trace(self, url: str, body: Any = None, **kwargs: Any) -> Result[Context, ReqchainError]:
        return self.request(Method.TRACE, url, body, **kwargs)

    def get_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.GET, url, body, **kwargs)

    def post_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.POST, url, body, **kwargs)

    def put_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.PUT, url, body, **kwargs)

    def patch_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.PATCH, url, body, **kwargs)

    def delete_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.DELETE, url, body, **kwargs)

    def head_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.HEAD, url, body, **kwargs)

    def options_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.OPTIONS, url, body, **kwargs)

    def trace_or_raise(self, url: str, body: Any = None, **kwargs: Any) -> Context:
        return self.request_or_raise(Method.TRACE, url, body, **kwargs)

    def close(self) -> None:
        """Close the adapter if it holds resources (e.g. a session)."""
        if (close := self._adapter_closer("close")) is not None:
            close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
