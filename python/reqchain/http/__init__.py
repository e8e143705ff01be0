"""HTTP utils classes and types."""

from reqchain.http.headers import HeaderMap, HeaderMapItemsView
from reqchain.http.method import Method
from reqchain.http.url import encode_url, join_url, normalize_query, validate_base_url

__all__ = [
    "HeaderMap",
    "HeaderMapItemsView",
    "Method",
    "encode_url",
    "join_url",
    "normalize_query",
    "validate_base_url",
]
