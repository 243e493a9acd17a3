"""
Shared pytest fixtures for store, state and HTTP API tests.
"""

import asyncio
import os
import tempfile

import pytest
import pytest_asyncio

from http_server.server import HTTPServer
from kvapp.engine.state import ServerState
from kvapp.engine.store import StoreHandle
from serve import register_routes
from tester import HTTPClient


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def store_dir(temp_dir):
    """Path of a store directory that does not exist yet."""
    return os.path.join(temp_dir, "db.kv")


@pytest.fixture
def store(store_dir):
    """Provide an open StoreHandle."""
    with StoreHandle.open(store_dir) as handle:
        yield handle


@pytest_asyncio.fixture
async def state(store_dir):
    """Provide a ServerState named 'testdb' over a fresh store."""
    server_state = ServerState("testdb", StoreHandle.open(store_dir))
    yield server_state
    await server_state.close()


@pytest_asyncio.fixture
async def api_server(state):
    """Start the HTTP server with all routes on a random free port."""
    server = HTTPServer(host="127.0.0.1", port=0)
    await register_routes(server, state)

    test_server = await asyncio.start_server(
        server.handle_client, server.host, server.port
    )
    actual_port = test_server.sockets[0].getsockname()[1]

    client = HTTPClient(server.host, actual_port)

    try:
        yield client, state
    finally:
        test_server.close()
        await test_server.wait_closed()


@pytest.fixture
def write_config(temp_dir):
    """Write a JSON document to a config file and return its path."""

    def _write(content: str) -> str:
        path = os.path.join(temp_dir, "cfg-kvapp.json")
        with open(path, "w") as f:
            f.write(content)
        return path

    return _write
