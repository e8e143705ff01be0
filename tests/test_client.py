import asyncio
from datetime import timedelta
from typing import Any

import pytest
from dirty_equals import Contains, IsPartialDict
from reqchain import Config
from reqchain.adapters import AiohttpAdapter, EchoAdapter
from reqchain.client import BaseClient, Client, ClientBuilder, SyncClientBuilder, client
from reqchain.context import Context
from reqchain.exceptions import (
    ConfigurationError,
    ConnectError,
    MiddlewareError,
    RequestTimeoutError,
    StatusError,
    TLSError,
    TransportError,
)
from reqchain.http import Method
from reqchain.middleware import Next
from reqchain.result import Err, Ok

from .servers.echo_server import EchoServer
from .servers.server import find_free_port
from .utils import json_body


async def test_base_url(echo_server: EchoServer):
    async def echo_path(client_: Client, path: str) -> str:
        return str(json_body(await client_.get_or_raise(path))["path"])

    async with ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_server.url).build() as client_:
        assert await echo_path(client_, "") == "/"
        assert await echo_path(client_, "/") == "/"
        assert await echo_path(client_, "test") == "/test"
        assert await echo_path(client_, "/test") == "/test"
        assert await echo_path(client_, "test/") == "/test/"
        assert await echo_path(client_, "/test/") == "/test/"

    async with ClientBuilder().adapter(AiohttpAdapter()).base_url(echo_server.url + "mid/").build() as client_:
        assert await echo_path(client_, "") == "/mid/"
        assert await echo_path(client_, "/") == "/"
        assert await echo_path(client_, "test") == "/mid/test"
        assert await echo_path(client_, "/test") == "/test"
        assert await echo_path(client_, "test/") == "/mid/test/"
        assert await echo_path(client_, "/test/") == "/test/"

    with pytest.raises(ConfigurationError, match="base_url must end with a trailing slash '/'"):
        ClientBuilder().base_url(echo_server.url + "bad")
    with pytest.raises(ConfigurationError, match="must be an absolute URL"):
        ClientBuilder().base_url("relative/")


@pytest.mark.parametrize("value", [True, False])
async def test_error_for_status(echo_server: EchoServer, value: bool):
    async with ClientBuilder().adapter(AiohttpAdapter()).error_for_status(value).build() as client_:
        res = await client_.get(echo_server.url, query={"status": 400})
        if value:
            match res:
                case Err(StatusError() as e):
                    assert e.details == {"status": 400}
                    assert e.context is not None and e.context.status == 400
                    assert "HTTP status client error (400)" in str(e)
                case _:
                    pytest.fail(f"Unexpected result {res!r}")
        else:
            assert res.unwrap().status == 400


async def test_error_for_status_outermost():
    seen: list[int | None] = []

    async def middleware(ctx: Context, next_handler: Next, _options: Any) -> Context:
        res = await next_handler.run(ctx)
        seen.append(res.status)
        return res

    builder = ClientBuilder().with_middleware(middleware).adapter(EchoAdapter(), {"status": 503}).error_for_status(True)

    with pytest.raises(StatusError, match=r"HTTP status server error \(503\)"):
        await builder.build().get_or_raise("http://foo.invalid")
    assert seen == [503]


async def test_construction_errors():
    with pytest.raises(ConfigurationError, match="no adapter given and no default adapter configured"):
        client([], None)
    with pytest.raises(ConfigurationError, match="no adapter given"):
        ClientBuilder().build()
    with pytest.raises(ConfigurationError, match="no adapter given"):
        SyncClientBuilder().build()
    with pytest.raises(ConfigurationError, match="must be callable"):
        client([object()], EchoAdapter())
    with pytest.raises(ConfigurationError, match="adapter must be callable"):
        client([], "not an adapter")  # type: ignore[arg-type]
    with pytest.raises(ConfigurationError, match="invalid default headers"):
        ClientBuilder().default_headers({"bad header": "value"})


async def test_config_default_adapter():
    adapter = EchoAdapter()
    config = Config(default_adapter=adapter, default_headers={"x-default": "1"})

    client_ = client([], config=config)
    assert client_.chain.adapter.func is adapter

    ctx = await client_.get_or_raise("http://foo.invalid")
    assert ctx.response_headers["x-default"] == "1"
    assert adapter.calls == 1

    explicit = EchoAdapter()
    assert client([], explicit, config=config).chain.adapter.func is explicit
    assert ClientBuilder().config(config).build().chain.adapter.func is adapter

    # No process-wide state: a fresh builder does not see the config
    with pytest.raises(ConfigurationError):
        ClientBuilder().build()


async def test_config_with_defaults():
    config = Config.with_defaults(base_url="http://foo.invalid/api/")
    async with client([], config=config) as client_:
        assert isinstance(client_.chain.adapter.func, AiohttpAdapter)
        assert client_.base_url == "http://foo.invalid/api/"
        assert client_.build_context("GET", "users").url == "http://foo.invalid/api/users"

    with pytest.raises(ValueError, match="trailing slash"):
        Config(base_url="http://foo.invalid/api")


async def test_default_headers(echo_server: EchoServer):
    builder = ClientBuilder().adapter(AiohttpAdapter()).default_headers({"X-Test": "default", "X-Other": "other"})

    async with builder.build() as client_:
        ctx = await client_.get_or_raise(echo_server.url)
        assert json_body(ctx)["headers"] == Contains(["x-test", "default"], ["x-other", "other"])

        ctx = await client_.get_or_raise(echo_server.url, headers={"x-test": "call"})
        assert json_body(ctx)["headers"] == Contains(["x-test", "call"], ["x-other", "other"])
        assert ["x-test", "default"] not in json_body(ctx)["headers"]

        assert client_.default_headers["x-test"] == "default"


async def test_default_headers_merged_with_config():
    config = Config(default_headers={"x-a": "config", "x-b": "config"})
    builder = ClientBuilder().config(config).adapter(EchoAdapter()).default_headers({"x-b": "builder"})

    ctx = await builder.build().get_or_raise("http://foo.invalid")
    assert ctx.response_headers.dict_multi_value() == {"x-a": "config", "x-b": "builder"}


@pytest.mark.parametrize("method", list(Method))
async def test_verbs(method: Method):
    client_ = ClientBuilder().adapter(EchoAdapter()).build()

    safe = getattr(client_, method.lower())
    res = await safe("http://foo.invalid", b"body", headers={"x-verb": method.value})
    assert isinstance(res, Ok)
    assert res.value.method == method
    assert res.value.response_body == b"body"
    assert res.value.response_headers["x-verb"] == method.value

    raising = getattr(client_, f"{method.lower()}_or_raise")
    ctx = await raising("http://foo.invalid")
    assert isinstance(ctx, Context)
    assert ctx.method == method


@pytest.mark.parametrize("method", ["GET", "get", Method.GET])
async def test_request_method_parse(method: Any):
    ctx = await ClientBuilder().adapter(EchoAdapter()).build().request_or_raise(method, "http://foo.invalid")
    assert ctx.method is Method.GET


async def test_request_bad_method():
    client_ = ClientBuilder().adapter(EchoAdapter()).build()
    with pytest.raises(ValueError, match="invalid HTTP method"):
        await client_.request("GE T", "http://foo.invalid")


async def test_safe_and_raising_shapes():
    async def deny(ctx: Context, _next_handler: Next, _options: Any) -> Context:
        raise MiddlewareError("denied", context=ctx)

    client_ = ClientBuilder().with_middleware(deny).adapter(EchoAdapter()).build()

    res = await client_.get("http://foo.invalid")
    assert res.is_err()
    assert res.unwrap_or(None) is None
    assert str(res.unwrap_err()) == "denied"

    with pytest.raises(MiddlewareError, match="denied"):
        await client_.get_or_raise("http://foo.invalid")


async def test_query(echo_server: EchoServer):
    async with ClientBuilder().adapter(AiohttpAdapter()).build() as client_:
        ctx = await client_.get_or_raise(
            echo_server.url + "?a=0", query={"b": "1", "c": ["2", "3"], "d": True, "e": 4}
        )
    assert json_body(ctx)["query"] == [["a", "0"], ["b", "1"], ["c", "2"], ["c", "3"], ["d", "true"], ["e", "4"]]


async def test_body_and_headers(echo_server: EchoServer):
    async with ClientBuilder().adapter(AiohttpAdapter()).build() as client_:
        ctx = await client_.post_or_raise(
            echo_server.url, b"test body", headers=[("x-multi", "1"), ("x-multi", "2")]
        )
    assert ctx.status == 200
    assert ctx.response_headers["content-type"] == "application/json"
    assert json_body(ctx) == IsPartialDict(method="POST", body="test body")
    assert json_body(ctx)["headers"] == Contains(["x-multi", "1"], ["x-multi", "2"])


async def test_response_headers(echo_server: EchoServer):
    async with ClientBuilder().adapter(AiohttpAdapter()).build() as client_:
        ctx = await client_.get_or_raise(echo_server.url, query={"header_x_custom": "value"})
    assert ctx.response_headers["x-custom"] == "value"


async def test_connect_error():
    url = f"http://127.0.0.1:{find_free_port()}/"

    async with ClientBuilder().adapter(AiohttpAdapter()).build() as client_:
        res = await client_.get(url)

    assert isinstance(res, Err)
    assert isinstance(res.error, ConnectError)
    assert isinstance(res.error, TransportError)
    assert res.error.details == {"host": "127.0.0.1", "port": int(url.rsplit(":", 1)[1].strip("/"))}


@pytest.mark.parametrize("per_call", [False, True])
async def test_timeout(echo_server: EchoServer, per_call: bool):
    if per_call:
        builder = ClientBuilder().adapter(AiohttpAdapter(), {"timeout": 5})
        kwargs: dict[str, Any] = {"options": {"adapter": {"timeout": timedelta(seconds=0.05)}}}
    else:
        builder = ClientBuilder().adapter(AiohttpAdapter(timeout=timedelta(seconds=0.05)))
        kwargs = {}

    async with builder.build() as client_:
        res = await client_.get(echo_server.url, query={"sleep_start": 0.5}, **kwargs)

    assert isinstance(res.unwrap_err(), RequestTimeoutError)
    assert isinstance(res.unwrap_err(), TimeoutError)


async def test_tls_error(echo_server: EchoServer):
    async with ClientBuilder().adapter(AiohttpAdapter()).build() as client_:
        res = await client_.get(echo_server.url.replace("http://", "https://"))

    assert isinstance(res.unwrap_err(), TLSError)
    assert isinstance(res.unwrap_err(), TransportError)


@pytest.mark.parametrize("allow_redirects", [True, False])
async def test_allow_redirects(echo_server: EchoServer, allow_redirects: bool):
    builder = ClientBuilder().adapter(AiohttpAdapter(), {"allow_redirects": allow_redirects})
    async with builder.base_url(echo_server.url).build() as client_:
        ctx = await client_.get_or_raise("redirect", query={"status": 302, "header_location": "/target"})

    if allow_redirects:
        assert ctx.status == 200
        assert json_body(ctx)["path"] == "/target"
    else:
        assert ctx.status == 302
        assert ctx.response_headers["location"] == "/target"


async def test_concurrent_requests(echo_server: EchoServer):
    async with ClientBuilder().adapter(AiohttpAdapter()).build() as client_:
        results = await asyncio.gather(
            *(client_.get_or_raise(echo_server.url, query={"n": i}, headers={"x-n": str(i)}) for i in range(10))
        )

    for i, ctx in enumerate(results):
        assert json_body(ctx)["query"] == [["n", str(i)]]
        assert json_body(ctx)["headers"] == Contains(["x-n", str(i)])


async def test_client_immutable():
    client_ = ClientBuilder().adapter(EchoAdapter()).build()

    with pytest.raises(AttributeError, match="Client is immutable"):
        client_.foo = 1  # type: ignore[attr-defined]
    with pytest.raises(AttributeError, match="Client is immutable"):
        client_._chain = None  # type: ignore[misc]
    with pytest.raises(AttributeError, match="Client is immutable"):
        del client_._base_url

    headers = client_.default_headers
    headers["x-mutated"] = "1"
    assert "x-mutated" not in client_.default_headers


def test_builder_copy_on_write():
    base = ClientBuilder().adapter(EchoAdapter())
    with_base_url = base.base_url("http://foo.invalid/")

    assert base.build().base_url is None
    assert with_base_url.build().base_url == "http://foo.invalid/"

    async def middleware(ctx: Context, next_handler: Next, _options: Any) -> Context:
        return await next_handler.run(ctx)

    assert len(base.with_middleware(middleware).build().chain) == 1
    assert len(base.build().chain) == 0


def test_repr():
    client_ = ClientBuilder().adapter(EchoAdapter()).base_url("http://foo.invalid/").build()
    assert repr(client_) == "<Client base_url='http://foo.invalid/' middleware=0>"
    assert isinstance(client_, BaseClient)


async def test_aclose():
    class ClosingAdapter(EchoAdapter):
        def __init__(self) -> None:
            super().__init__()
            self.closed = False

        async def aclose(self) -> None:
            self.closed = True

    adapter = ClosingAdapter()
    async with ClientBuilder().adapter(adapter).build() as client_:
        await client_.get_or_raise("http://foo.invalid")
        assert not adapter.closed
    assert adapter.closed

    # Adapters without close methods are fine
    await ClientBuilder().adapter(EchoAdapter()).build().aclose()
