from __future__ import annotations

import os

import pytest
from pytest_socket import disable_socket, enable_socket, socket_allow_hosts


@pytest.fixture(autouse=True)
def _disable_network(request: pytest.FixtureRequest):
    """Keep the suite offline unless a test opts in with ``network``.

    Unix sockets stay available for the asyncio self-pipe.
    """

    if os.getenv("PYTEST_ALLOW_NETWORK", "0") == "1":
        yield
        return

    socket_allow_hosts(["127.0.0.1", "::1"])
    if request.node.get_closest_marker("network"):
        enable_socket()
        try:
            yield
        finally:
            disable_socket(allow_unix_socket=True)
    else:
        disable_socket(allow_unix_socket=True)
        try:
            yield
        finally:
            enable_socket()


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "network: test needs real sockets")
