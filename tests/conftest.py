from collections.abc import Generator

import pytest

from .servers.echo_server import EchoServer


@pytest.fixture(scope="session")
def echo_server() -> Generator[EchoServer, None, None]:
    with EchoServer().serve_context() as server:
        assert server.url.startswith("http://")
        yield server
