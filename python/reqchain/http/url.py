from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode, urljoin, urlsplit, urlunsplit

from reqchain.types import QueryParams


def validate_base_url(url: str) -> str:
    """Check that a base URL is absolute and ends with a trailing slash."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        msg = f"base_url must be an absolute URL, got {url!r}"
        raise ValueError(msg)
    if not parts.path.endswith("/"):
        msg = "base_url must end with a trailing slash '/'"
        raise ValueError(msg)
    return url


def join_url(base: str | None, url: str) -> str:
    """Resolve url against base. Absolute urls are returned as is.

    A path without a leading slash is resolved relative to the base path, a path with a leading slash replaces it.
    """
    if base is None:
        return url
    return urljoin(base, url)


def normalize_query(params: QueryParams | None) -> dict[str, list[str]]:
    """Normalize query params into a mapping of key to one or many string values."""
    res: dict[str, list[str]] = {}
    if params is None:
        return res
    if isinstance(params, str | bytes):
        msg = f"query must be a mapping or a sequence of pairs, got {type(params).__name__!r}"
        raise TypeError(msg)
    pairs = params.items() if isinstance(params, Mapping) else params
    for key, value in pairs:
        res.setdefault(str(key), []).extend(_query_values(value))
    return res


def _query_values(value: Any) -> list[str]:
    if isinstance(value, list | tuple):
        return [_query_value(v) for v in value]
    return [_query_value(value)]


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_url(url: str, query: Mapping[str, list[str]]) -> str:
    """Append query params to url, keeping any query string already present in it."""
    if not query:
        return url
    parts = urlsplit(url)
    encoded = urlencode([(k, v) for k, values in query.items() for v in values])
    query_string = f"{parts.query}&{encoded}" if parts.query else encoded
    return urlunsplit(parts._replace(query=query_string))
