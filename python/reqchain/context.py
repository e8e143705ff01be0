"""Context threaded through the middleware chain."""

from typing import Any, Self

from reqchain.http import HeaderMap, Method, encode_url, normalize_query
from reqchain.types import ExtensionsType, HeadersType, QueryParams


class Context:
    """Mutable record of one request/response exchange.

    A context is created per client call and handed to every middleware in order. Middleware may change the request
    fields on the way down, the adapter fills in the response fields, and middleware may inspect or replace them on the
    way back up. Use `extensions` to forward data between middleware (e.g. path params, telemetry spans).
    """

    __slots__ = (
        "body",
        "extensions",
        "headers",
        "method",
        "options",
        "query",
        "response_body",
        "response_headers",
        "status",
        "url",
    )

    def __init__(
        self,
        method: Method,
        url: str,
        *,
        headers: HeaderMap | None = None,
        query: dict[str, list[str]] | None = None,
        body: Any = None,
        options: dict[str, Any] | None = None,
        extensions: dict[str, Any] | None = None,
    ) -> None:
        self.method = method
        self.url = url
        self.headers = headers if headers is not None else HeaderMap()
        self.query = query if query is not None else {}
        self.body = body
        self.options = options if options is not None else {}
        self.extensions = extensions if extensions is not None else {}
        self.status: int | None = None
        self.response_headers = HeaderMap()
        self.response_body: Any = None

    @classmethod
    def build(
        cls,
        method: Method | str,
        url: str,
        *,
        headers: HeadersType | None = None,
        query: QueryParams | None = None,
        body: Any = None,
        options: dict[str, Any] | None = None,
        extensions: ExtensionsType | None = None,
    ) -> Self:
        """Create a context from loosely typed request parts."""
        if not isinstance(url, str):
            msg = f"url must be str, got {type(url).__name__!r}"
            raise TypeError(msg)
        return cls(
            Method.parse(method),
            url,
            headers=HeaderMap(headers),
            query=normalize_query(query),
            body=body,
            options=dict(options or {}),
            extensions=dict(extensions or {}),
        )

    @property
    def full_url(self) -> str:
        """Url with the query params appended."""
        return encode_url(self.url, self.query)

    @property
    def has_response(self) -> bool:
        return self.status is not None

    def respond(self, status: int, body: Any = None, headers: HeadersType | None = None) -> Self:
        """Fill in the response fields. Returns the same context."""
        self.status = status
        self.response_body = body
        self.response_headers = HeaderMap(headers)
        return self

    def copy(self) -> Self:
        """Copy of the context. Headers, query, options and extensions are copied, bodies are shared."""
        new = type(self)(
            self.method,
            self.url,
            headers=self.headers.copy(),
            query={k: list(v) for k, v in self.query.items()},
            body=self.body,
            options=dict(self.options),
            extensions=dict(self.extensions),
        )
        new.status = self.status
        new.response_headers = self.response_headers.copy()
        new.response_body = self.response_body
        return new

    def __repr__(self) -> str:
        return f"<Context {self.method} {self.full_url} status={self.status}>"
