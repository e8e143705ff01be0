import json
import re
from re import Pattern
from typing import TYPE_CHECKING, Any, Literal, assert_never

from reqchain.context import Context

if TYPE_CHECKING:
    from reqchain.pytest_plugin.mock import Mock


class InternalMatcher:
    """Matches a value against a string, a set of allowed values, a compiled regex or any __eq__ object."""

    def __init__(self, matcher: Any) -> None:
        self.matcher = matcher

    def matches(self, value: Any) -> bool:
        if isinstance(self.matcher, set | frozenset):
            return value in self.matcher
        if isinstance(self.matcher, Pattern):
            return isinstance(value, str) and self.matcher.search(value) is not None
        return bool(self.matcher == value)

    def __repr__(self) -> str:
        if isinstance(self.matcher, Pattern):
            return f"{self.matcher.pattern} (regex)"
        return repr(self.matcher)


def format_context(ctx: Context) -> str:
    return f"{ctx.method} {ctx.full_url}"


def format_unmatched_context(ctx: Context, unmatched: set[str]) -> str:
    return f"{format_context(ctx)} (unmatched: {', '.join(sorted(unmatched))})"


def format_assert_called_error(
    mock: "Mock",
    *,
    count: int | None = None,
    min_count: int | None = None,
    max_count: int | None = None,
) -> str:
    actual_count = len(mock._matched)
    error_parts = ["Mock was not called as expected."]

    if count is not None:
        error_parts.append(f"Expected exactly {count} call(s), but got {actual_count}.")
    else:
        expectations = []
        if min_count is not None:
            expectations.append(f"at least {min_count}")
        if max_count is not None:
            expectations.append(f"at most {max_count}")
        expected_desc = " and ".join(expectations)
        error_parts.append(f"Expected {expected_desc} call(s), but got {actual_count}.")

    error_parts.append("\nMock configuration:")
    error_parts.append(_format_mock_matchers(mock))

    if mock._unmatched_reprs:
        error_parts.append(f"\nUnmatched requests ({len(mock._unmatched_reprs)}):")
        for i, request_repr in enumerate(mock._unmatched_reprs[-5:], 1):
            error_parts.append(f"  {i}. {request_repr}")
        if len(mock._unmatched_reprs) > 5:
            error_parts.append(f"  ... and {len(mock._unmatched_reprs) - 5} more")

    if mock._matched:
        error_parts.append(f"\nMatched requests ({len(mock._matched)}):")
        for i, ctx in enumerate(mock._matched[-3:], 1):
            error_parts.append(f"  {i}. {format_context(ctx)}")
        if len(mock._matched) > 3:
            error_parts.append(f"  ... and {len(mock._matched) - 3} more")

    return "\n".join(error_parts)


def _format_mock_matchers(mock: "Mock") -> str:
    parts = [
        f"  Method: {mock._method_matcher if mock._method_matcher is not None else 'Any'}",
        f"  Path: {mock._path_matcher if mock._path_matcher is not None else 'Any'}",
    ]

    if isinstance(mock._query_matcher, dict):
        parts.append(f"  Query: {', '.join(f'{k}={v}' for k, v in mock._query_matcher.items())}")
    elif mock._query_matcher is not None:
        parts.append(f"  Query: {mock._query_matcher}")

    if mock._header_matchers:
        parts.append(f"  Headers: {', '.join(f'{k}: {v}' for k, v in mock._header_matchers.items())}")

    if mock._body_matcher is not None:
        parts.append(_format_body_matcher(*mock._body_matcher))

    if mock._custom_matcher is not None:
        parts.append(f"  Custom matcher: {getattr(mock._custom_matcher, '__name__', mock._custom_matcher)}")

    if mock._custom_handler is not None:
        parts.append(f"  Custom handler: {getattr(mock._custom_handler, '__name__', mock._custom_handler)}")

    return "\n".join(parts)


def _format_body_matcher(matcher: InternalMatcher, kind: Literal["content", "json"]) -> str:
    if kind == "json":
        try:
            return f"  Body (JSON): {json.dumps(matcher.matcher, separators=(',', ':'))}"
        except TypeError:
            return f"  Body (JSON): {matcher!r}"
    elif kind == "content":
        if isinstance(matcher.matcher, bytes):
            return f"  Body (bytes): {matcher.matcher!r}"
        elif isinstance(matcher.matcher, re.Pattern):
            return f"  Body (text): {matcher.matcher.pattern} (regex)"
        else:
            return f"  Body (text): {matcher.matcher!r}"
    else:
        assert_never(kind)
