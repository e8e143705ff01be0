"""Types used in the pytest plugin."""

from collections.abc import Awaitable, Callable
from re import Pattern
from typing import Any

from reqchain.context import Context

Matcher = str | Pattern[str] | Any
JsonMatcher = Any

MethodMatcher = str | set[str] | Matcher
UrlMatcher = Matcher
QueryMatcher = dict[str, Matcher | list[str]] | Matcher
BodyContentMatcher = bytes | Matcher
CustomMatcher = Callable[[Context], Awaitable[bool] | bool]
CustomHandler = Callable[[Context], Awaitable[Context | None] | Context | None]
