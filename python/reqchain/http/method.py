from enum import StrEnum
from typing import Self


class Method(StrEnum):
    """HTTP request method."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"

    @classmethod
    def parse(cls, value: "str | Method") -> Self:
        """Parse a method name in any case."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            msg = f"method must be str, got {type(value).__name__!r}"
            raise TypeError(msg)
        try:
            return cls(value.upper())
        except ValueError:
            msg = f"invalid HTTP method: {value!r}"
            raise ValueError(msg) from None
