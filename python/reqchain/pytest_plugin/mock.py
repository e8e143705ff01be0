"""Module providing HTTP request mocking capabilities for reqchain clients in tests."""

import inspect
import json
from re import Pattern
from typing import Any, Literal, Self, assert_never
from urllib.parse import parse_qsl, urlsplit

import pytest

from reqchain.client import ClientBuilder, SyncClientBuilder
from reqchain.context import Context
from reqchain.http import HeaderMap
from reqchain.middleware import Next, SyncNext
from reqchain.middleware.types import Middleware, SyncMiddleware
from reqchain.pytest_plugin.internal import InternalMatcher, format_assert_called_error, format_unmatched_context
from reqchain.pytest_plugin.types import (
    BodyContentMatcher,
    CustomHandler,
    CustomMatcher,
    JsonMatcher,
    Matcher,
    MethodMatcher,
    QueryMatcher,
    UrlMatcher,
)


class Mock:
    """Class representing a single mock rule."""

    def __init__(self, method: MethodMatcher | None = None, path: UrlMatcher | None = None) -> None:
        """Do not use directly. Instead, use ClientMocker.mock()."""
        self._method_matcher = InternalMatcher(method) if method is not None else None
        self._path_matcher = InternalMatcher(path) if path is not None else None
        self._query_matcher: dict[str, InternalMatcher] | InternalMatcher | None = None
        self._header_matchers: dict[str, InternalMatcher] = {}
        self._body_matcher: tuple[InternalMatcher, Literal["content", "json"]] | None = None
        self._custom_matcher: CustomMatcher | None = None
        self._custom_handler: CustomHandler | None = None

        self._matched: list[Context] = []
        self._unmatched_reprs: list[str] = []

        self._status = 200
        self._headers = HeaderMap()
        self._body: bytes | None = None
        self._using_response = False

    def assert_called(
        self,
        *,
        count: int | None = None,
        min_count: int | None = None,
        max_count: int | None = None,
    ) -> None:
        """Assert that this mock was called the expected number of times. By default, exactly once."""
        if count is None and min_count is None and max_count is None:
            count = 1

        if self._assertion_passes(count, min_count, max_count):
            return

        raise AssertionError(format_assert_called_error(self, count=count, min_count=min_count, max_count=max_count))

    def _assertion_passes(self, count: int | None, min_count: int | None, max_count: int | None) -> bool:
        actual_count = len(self._matched)
        if count is not None:
            return actual_count == count

        min_satisfied = min_count is None or actual_count >= min_count
        max_satisfied = max_count is None or actual_count <= max_count

        return min_satisfied and max_satisfied

    def get_requests(self) -> list[Context]:
        """Get all request contexts captured by this mock."""
        return [*self._matched]

    def get_call_count(self) -> int:
        """Get the total number of calls to this mock."""
        return len(self._matched)

    def reset_requests(self) -> None:
        """Reset all captured requests for this mock."""
        self._matched.clear()
        self._unmatched_reprs.clear()

    def match_query(self, query: QueryMatcher) -> Self:
        """Set a matcher to match the entire query string or specific query parameters."""
        if isinstance(query, dict):
            self._query_matcher = {k: InternalMatcher(v) for k, v in query.items()}
        else:
            self._query_matcher = InternalMatcher(query)
        return self

    def match_query_param(self, name: str, value: Matcher) -> Self:
        """Set a matcher to match a specific query parameter."""
        if not isinstance(self._query_matcher, dict):
            self._query_matcher = {}
        self._query_matcher[name] = InternalMatcher(value)
        return self

    def match_header(self, name: str, value: Matcher) -> Self:
        """Set a matcher to match a specific request header."""
        self._header_matchers[name.lower()] = InternalMatcher(value)
        return self

    def match_body(self, matcher: BodyContentMatcher) -> Self:
        """Set a matcher to match request bodies as raw content (text or bytes)."""
        self._body_matcher = (InternalMatcher(matcher), "content")
        return self

    def match_body_json(self, matcher: JsonMatcher) -> Self:
        """Set a matcher to match JSON request bodies."""
        self._body_matcher = (InternalMatcher(matcher), "json")
        return self

    def match_request(self, matcher: CustomMatcher) -> Self:
        """Set a custom matcher to match requests."""
        self._custom_matcher = matcher
        return self

    def match_request_with_response(self, handler: CustomHandler) -> Self:
        """Set a custom handler to generate the response for matched requests. Returning None means no match."""
        assert not self._using_response, "Cannot use response setters and custom handler together"
        self._custom_handler = handler
        return self

    def with_status(self, status: int) -> Self:
        """Set the mocked response status code."""
        self._check_response_setter()
        self._status = status
        return self

    def with_header(self, name: str, value: str) -> Self:
        """Add a header to the mocked response."""
        self._check_response_setter()
        self._headers.append(name, value)
        return self

    def with_body(self, body: bytes | str) -> Self:
        """Set the mocked response body."""
        self._check_response_setter()
        self._body = body.encode() if isinstance(body, str) else bytes(body)
        return self

    def with_body_json(self, json_body: Any) -> Self:
        """Set the mocked response body to the given JSON-serializable object."""
        self._check_response_setter()
        self._body = json.dumps(json_body).encode()
        self._headers["content-type"] = "application/json"
        return self

    def _check_response_setter(self) -> None:
        assert self._custom_handler is None, "Cannot use response setters and custom handler together"
        self._using_response = True

    def _handle_common_matchers(self, ctx: Context) -> dict[str, bool]:
        return {
            "method": self._method_matcher is None or self._method_matcher.matches(ctx.method.value),
            "path": self._match_path(ctx),
            "query": self._match_query(ctx),
            "headers": self._match_headers(ctx),
            "body": self._match_body(ctx),
        }

    async def _handle(self, ctx: Context) -> Context | None:
        matches = self._handle_common_matchers(ctx)
        response: Context | None = None
        if all(matches.values()):
            matches["custom"] = await _maybe_await(self._custom_matcher(ctx)) if self._custom_matcher else True
        if all(matches.values()):
            if self._custom_handler is not None:
                response = await _maybe_await(self._custom_handler(ctx))
                matches["handler"] = response is not None
            else:
                response = self._respond(ctx)
        return self._check_matched(ctx, matches, response)

    def _handle_sync(self, ctx: Context) -> Context | None:
        matches = self._handle_common_matchers(ctx)
        response: Context | None = None
        if all(matches.values()):
            matches["custom"] = _check_sync(self._custom_matcher(ctx)) if self._custom_matcher else True
        if all(matches.values()):
            if self._custom_handler is not None:
                response = _check_sync(self._custom_handler(ctx))
                matches["handler"] = response is not None
            else:
                response = self._respond(ctx)
        return self._check_matched(ctx, matches, response)

    def _respond(self, ctx: Context) -> Context:
        return ctx.respond(self._status, self._body, self._headers.items())

    def _check_matched(self, ctx: Context, matches: dict[str, bool], response: Context | None) -> Context | None:
        if response is not None:
            self._matched.append(ctx)
            return response

        # Memo the repr as the context may be changed by outer middleware
        self._unmatched_reprs.append(
            format_unmatched_context(ctx, unmatched={k for k, matched in matches.items() if not matched}),
        )
        return None

    def _match_path(self, ctx: Context) -> bool:
        if self._path_matcher is None:
            return True
        url = urlsplit(ctx.full_url)
        # Either the full url without the query string or only its path
        without_query = url._replace(query="", fragment="").geturl()
        return self._path_matcher.matches(without_query) or self._path_matcher.matches(url.path)

    def _match_headers(self, ctx: Context) -> bool:
        for header_name, expected_value in self._header_matchers.items():
            actual_value = ctx.headers.get(header_name)
            if actual_value is None or not expected_value.matches(actual_value):
                return False
        return True

    def _match_body(self, ctx: Context) -> bool:
        if self._body_matcher is None:
            return True

        if ctx.body is None:
            return False

        matcher, kind = self._body_matcher
        body = bytes(ctx.body) if isinstance(ctx.body, bytearray | memoryview) else ctx.body
        if kind == "json":
            if not isinstance(body, bytes | str):
                return matcher.matches(body)  # not encoded yet, match the object itself
            try:
                return matcher.matches(json.loads(body))
            except json.JSONDecodeError:
                return False
        elif kind == "content":
            if isinstance(matcher.matcher, bytes):
                return matcher.matches(body.encode() if isinstance(body, str) else body)
            return matcher.matches(body.decode() if isinstance(body, bytes) else body)
        else:
            assert_never(kind)

    def _match_query(self, ctx: Context) -> bool:
        if self._query_matcher is None:
            return True

        query_str = urlsplit(ctx.full_url).query
        query_dict: dict[str, str | list[str]] = {}
        for key, value in parse_qsl(query_str, keep_blank_values=True):
            current = query_dict.get(key)
            if current is None:
                query_dict[key] = value
            elif isinstance(current, list):
                current.append(value)
            else:
                query_dict[key] = [current, value]

        if isinstance(self._query_matcher, dict):
            for key, expected_value in self._query_matcher.items():
                actual_value = query_dict.get(key)
                if actual_value is None or not expected_value.matches(actual_value):
                    return False
            return True
        if isinstance(self._query_matcher.matcher, str | Pattern):
            return self._query_matcher.matches(query_str)
        return self._query_matcher.matches(query_dict)


class ClientMocker:
    """Main class for mocking HTTP requests."""

    def __init__(self) -> None:
        """Initialize the ClientMocker."""
        self._mocks: list[Mock] = []
        self._strict = False

    def mock(self, method: MethodMatcher | None = None, path: UrlMatcher | None = None) -> Mock:
        """Add a mock rule for requests matching the given criteria."""
        mock = Mock(method, path)
        self._mocks.append(mock)
        return mock

    def get(self, path: UrlMatcher | None = None) -> Mock:
        """Mock GET requests to the given URL."""
        return self.mock("GET", path)

    def post(self, path: UrlMatcher | None = None) -> Mock:
        """Mock POST requests to the given URL."""
        return self.mock("POST", path)

    def put(self, path: UrlMatcher | None = None) -> Mock:
        """Mock PUT requests to the given URL."""
        return self.mock("PUT", path)

    def patch(self, path: UrlMatcher | None = None) -> Mock:
        """Mock PATCH requests to the given URL."""
        return self.mock("PATCH", path)

    def delete(self, path: UrlMatcher | None = None) -> Mock:
        """Mock DELETE requests to the given URL."""
        return self.mock("DELETE", path)

    def head(self, path: UrlMatcher | None = None) -> Mock:
        """Mock HEAD requests to the given URL."""
        return self.mock("HEAD", path)

    def options(self, path: UrlMatcher | None = None) -> Mock:
        """Mock OPTIONS requests to the given URL."""
        return self.mock("OPTIONS", path)

    def strict(self, enabled: bool = True) -> Self:
        """Enable strict mode - unmatched requests will raise an error."""
        self._strict = enabled
        return self

    def get_requests(self) -> list[Context]:
        """Get all captured request contexts in all mocks."""
        return [ctx for mock in self._mocks for ctx in mock.get_requests()]

    def get_call_count(self) -> int:
        """Get the total number of calls in all mocks."""
        return sum(mock.get_call_count() for mock in self._mocks)

    def clear(self) -> None:
        """Remove all mocks."""
        self._mocks.clear()

    def reset_requests(self) -> None:
        """Reset all captured requests in all mocks."""
        for mock in self._mocks:
            mock.reset_requests()

    def _create_middleware(self) -> Middleware:
        async def mock_middleware(ctx: Context, next_handler: Next, _options: Any) -> Context:
            for mock in self._mocks:
                if (response := await mock._handle(ctx)) is not None:
                    return response

            # No rule matched
            if self._strict:
                msg = f"No mock rule matched request: {ctx.method} {ctx.full_url}"
                raise AssertionError(msg)
            return await next_handler.run(ctx)  # Proceed normally

        return mock_middleware

    def _create_sync_middleware(self) -> SyncMiddleware:
        def mock_middleware(ctx: Context, next_handler: SyncNext, _options: Any) -> Context:
            for mock in self._mocks:
                if (response := mock._handle_sync(ctx)) is not None:
                    return response

            # No rule matched
            if self._strict:
                msg = f"No mock rule matched request: {ctx.method} {ctx.full_url}"
                raise AssertionError(msg)
            return next_handler.run(ctx)  # Proceed normally

        return mock_middleware


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _check_sync(value: Any) -> Any:
    if inspect.iscoroutine(value):
        value.close()
    assert not inspect.isawaitable(value), "Blocking clients require blocking custom matchers and handlers"
    return value


@pytest.fixture
def client_mocker(monkeypatch: pytest.MonkeyPatch) -> ClientMocker:
    """Fixture that provides a ClientMocker for mocking HTTP requests in tests.

    Every client built during the test gets the mock as its innermost middleware, right before the adapter.
    """
    mocker = ClientMocker()

    orig_build = ClientBuilder.build
    orig_build_sync = SyncClientBuilder.build

    def build_patch(self: ClientBuilder) -> Any:
        return orig_build(self.with_middleware(mocker._create_middleware()))

    def build_patch_sync(self: SyncClientBuilder) -> Any:
        return orig_build_sync(self.with_middleware(mocker._create_sync_middleware()))

    monkeypatch.setattr(ClientBuilder, "build", build_patch)
    monkeypatch.setattr(SyncClientBuilder, "build", build_patch_sync)

    return mocker
