from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any

import pytest
from dirty_equals import Contains
from reqchain import Config
from reqchain.adapters import RequestsAdapter, SyncEchoAdapter
from reqchain.client import SyncClient, SyncClientBuilder, sync_client
from reqchain.context import Context
from reqchain.exceptions import ConnectError, MisuseError, RequestTimeoutError, StatusError, TLSError, TransportError
from reqchain.http import Method
from reqchain.middleware import Chain, Next, SyncNext, run_pipeline_sync
from reqchain.result import Err, Ok

from .servers.echo_server import EchoServer
from .servers.server import find_free_port
from .utils import json_body


def build_client(*middleware: Any, adapter: Any = None) -> SyncClient:
    builder = SyncClientBuilder().adapter(adapter or SyncEchoAdapter())
    for mw in middleware:
        builder = builder.with_middleware(mw)
    return builder.build()


def test_sync_middleware_order():
    calls: list[str] = []

    def make_middleware(name: str) -> Any:
        def middleware(ctx: Context, next_handler: SyncNext, _options: Any) -> Context:
            calls.append(f"before {name}")
            res = next_handler.run(ctx)
            calls.append(f"after {name}")
            return res

        return middleware

    adapter = SyncEchoAdapter()
    ctx = build_client(make_middleware("L1"), make_middleware("L2"), adapter=adapter).get_or_raise("http://foo.invalid")

    assert ctx.status == 200
    assert calls == ["before L1", "before L2", "after L2", "after L1"]
    assert adapter.calls == 1


def test_sync_short_circuit():
    def short_circuit(ctx: Context, _next_handler: SyncNext, _options: Any) -> Context:
        return ctx.respond(204)

    adapter = SyncEchoAdapter()
    res = build_client(short_circuit, adapter=adapter).delete("http://foo.invalid")

    assert isinstance(res, Ok)
    assert res.value.status == 204
    assert adapter.calls == 0


def test_sync_error_recovery():
    def failing_adapter(ctx: Context, _options: Any) -> Context:
        raise ConnectError("refused", context=ctx)

    def recover(ctx: Context, next_handler: SyncNext, _options: Any) -> Context:
        try:
            return next_handler.run(ctx)
        except TransportError:
            return ctx.respond(503)

    assert build_client(recover, adapter=failing_adapter).get_or_raise("http://foo.invalid").status == 503

    res = build_client(adapter=failing_adapter).get("http://foo.invalid")
    assert isinstance(res, Err)
    assert isinstance(res.error, ConnectError)
    with pytest.raises(ConnectError, match="refused"):
        build_client(adapter=failing_adapter).get_or_raise("http://foo.invalid")


def test_sync_multi_run_error():
    def middleware(ctx: Context, next_handler: SyncNext, _options: Any) -> Context:
        next_handler.run(ctx)
        return next_handler.run(ctx)

    with pytest.raises(MisuseError, match="already called"):
        build_client(middleware).get("http://foo.invalid")


def test_sync_rejects_async_links():
    async def async_middleware(ctx: Context, next_handler: Next, _options: Any) -> Context:
        return await next_handler.run(ctx)

    with pytest.raises(TypeError, match="blocking clients require blocking middleware"):
        build_client(async_middleware).get("http://foo.invalid")

    async def async_adapter(ctx: Context, _options: Any) -> Context:
        return ctx.respond(200)

    with pytest.raises(TypeError, match="blocking clients require blocking middleware"):
        build_client(adapter=async_adapter).get("http://foo.invalid")


@pytest.mark.parametrize("method", list(Method))
def test_sync_verbs(method: Method):
    client = build_client()

    res = getattr(client, method.lower())("http://foo.invalid", "body")
    assert res.unwrap().method == method
    assert res.unwrap().response_body == "body"

    ctx = getattr(client, f"{method.lower()}_or_raise")("http://foo.invalid")
    assert ctx.method == method


def test_sync_client_function():
    def add_header(ctx: Context, next_handler: SyncNext, options: tuple[str, str]) -> Context:
        ctx.headers[options[0]] = options[1]
        return next_handler.run(ctx)

    config = Config(default_sync_adapter=SyncEchoAdapter(), base_url="http://foo.invalid/api/")
    client = sync_client([(add_header, ("x-test", "1"))], config=config)

    ctx = client.get_or_raise("users")
    assert ctx.url == "http://foo.invalid/api/users"
    assert ctx.response_headers["x-test"] == "1"


def test_run_pipeline_sync():
    chain = Chain.build([], SyncEchoAdapter())
    res = run_pipeline_sync(chain, Context.build("PUT", "http://foo.invalid", body=b"1"))
    assert res.unwrap().response_body == b"1"


def test_requests_adapter(echo_server: EchoServer):
    with SyncClientBuilder().adapter(RequestsAdapter()).base_url(echo_server.url).build() as client:
        ctx = client.post_or_raise(
            "path", b"test body", headers=[("x-test", "1"), ("x-test", "2")], query={"a": ["1", "2"]}
        )

    assert ctx.status == 200
    body = json_body(ctx)
    assert body["method"] == "POST"
    assert body["path"] == "/path"
    assert body["body"] == "test body"
    assert body["query"] == [["a", "1"], ["a", "2"]]
    assert body["headers"] == Contains(["x-test", "1, 2"])


def test_requests_adapter_error_for_status(echo_server: EchoServer):
    client = SyncClientBuilder().adapter(RequestsAdapter()).error_for_status(True).build()

    res = client.get(echo_server.url, query={"status": 500})
    assert isinstance(res.unwrap_err(), StatusError)
    assert res.unwrap_err().details == {"status": 500}
    client.close()


def test_requests_adapter_connect_error():
    client = SyncClientBuilder().adapter(RequestsAdapter()).build()
    res = client.get(f"http://127.0.0.1:{find_free_port()}/")
    assert isinstance(res.unwrap_err(), ConnectError)


def test_requests_adapter_timeout(echo_server: EchoServer):
    client = SyncClientBuilder().adapter(RequestsAdapter(), {"timeout": timedelta(seconds=0.05)}).build()
    res = client.get(echo_server.url, query={"sleep_start": 0.5})
    assert isinstance(res.unwrap_err(), RequestTimeoutError)


def test_requests_adapter_tls_error(echo_server: EchoServer):
    with SyncClientBuilder().adapter(RequestsAdapter()).build() as client:
        res = client.get(echo_server.url.replace("http://", "https://"))
    assert isinstance(res.unwrap_err(), TLSError)
    assert isinstance(res.unwrap_err(), TransportError)


@pytest.mark.parametrize("allow_redirects", [True, False])
def test_requests_adapter_allow_redirects(echo_server: EchoServer, allow_redirects: bool):
    builder = SyncClientBuilder().adapter(RequestsAdapter(), {"allow_redirects": allow_redirects})
    with builder.base_url(echo_server.url).build() as client:
        ctx = client.get_or_raise("redirect", query={"status": 302, "header_location": "/target"})

    if allow_redirects:
        assert ctx.status == 200
        assert json_body(ctx)["path"] == "/target"
    else:
        assert ctx.status == 302
        assert ctx.response_headers["location"] == "/target"


@pytest.mark.parametrize("max_retries", [0, 2])
def test_requests_adapter_error_status_not_retried(echo_server: EchoServer, max_retries: int):
    calls = echo_server.calls

    with sync_client([], RequestsAdapter(max_retries=max_retries)) as client:
        res = client.get(echo_server.url, query={"status": 503})

    assert res.unwrap().status == 503
    assert echo_server.calls == calls + 1


def test_requests_adapter_retries_error_for_status(echo_server: EchoServer):
    builder = SyncClientBuilder().adapter(RequestsAdapter(max_retries=2)).error_for_status(True)
    with builder.build() as client:
        res = client.get(echo_server.url, query={"status": 503})

    assert isinstance(res.unwrap_err(), StatusError)
    assert res.unwrap_err().details == {"status": 503}


def test_requests_adapter_retries_connect_error():
    with SyncClientBuilder().adapter(RequestsAdapter(max_retries=1)).build() as client:
        res = client.get(f"http://127.0.0.1:{find_free_port()}/")
    assert isinstance(res.unwrap_err(), ConnectError)


def test_sync_concurrent(echo_server: EchoServer):
    with SyncClientBuilder().adapter(RequestsAdapter()).build() as client:

        def send(i: int) -> Context:
            return client.get_or_raise(echo_server.url, headers={"x-n": str(i)})

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(send, range(8)))

    for i, ctx in enumerate(results):
        assert json_body(ctx)["headers"] == Contains(["x-n", str(i)])
