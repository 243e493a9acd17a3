"""
Tests for process startup: arguments and fatal configuration failures.
"""

import json
import logging
import os

import serve
from serve import DEFAULT_BIND_ADDR, DEFAULT_BIND_PORT, main, parse_args


class TestParseArgs:
    """Tests for command line parsing."""

    def test_defaults(self):
        args = parse_args([])

        assert args.config == "cfg-kvapp.json"
        assert args.bind_addr == DEFAULT_BIND_ADDR
        assert args.bind_port == DEFAULT_BIND_PORT

    def test_overrides(self):
        args = parse_args(["--config", "x.json", "--bind-addr", "0.0.0.0", "--bind-port", "9000"])

        assert args.config == "x.json"
        assert args.bind_addr == "0.0.0.0"
        assert args.bind_port == 9000


class TestStartupFailures:
    """Configuration failures abort before the server binds."""

    async def test_missing_config(self, temp_dir, monkeypatch, caplog):
        monkeypatch.setattr(serve.HTTPServer, "start", _must_not_start)

        with caplog.at_level(logging.CRITICAL):
            code = await main(["--config", os.path.join(temp_dir, "missing.json")])

        assert code == 1
        assert "Startup failed" in caplog.text

    async def test_store_cannot_be_opened(self, temp_dir, write_config, monkeypatch):
        blocker = os.path.join(temp_dir, "blocker")
        with open(blocker, "w") as f:
            f.write("x")
        path = write_config(json.dumps({"database": {"name": "db", "path": blocker}}))
        monkeypatch.setattr(serve.HTTPServer, "start", _must_not_start)

        assert await main(["--config", path]) == 1

    async def test_legacy_config_rejected(self, write_config, monkeypatch):
        path = write_config(json.dumps({"databases": [{"name": "db", "path": "db.kv"}]}))
        monkeypatch.setattr(serve.HTTPServer, "start", _must_not_start)

        assert await main(["--config", path]) == 1


class TestStartup:
    """A valid configuration serves and closes the store afterwards."""

    async def test_serves_and_closes_store(self, temp_dir, write_config, monkeypatch):
        store_dir = os.path.join(temp_dir, "db.kv")
        path = write_config(json.dumps({"database": {"name": "db", "path": store_dir}}))
        started = []

        async def fake_start(server):
            started.append((server.host, server.port, sorted(server.routes)))

        monkeypatch.setattr(serve.HTTPServer, "start", fake_start)

        code = await main(["--config", path, "--bind-port", "0"])

        assert code == 0
        assert started == [(DEFAULT_BIND_ADDR, 0, [("GET", "/"), ("GET", "/health")])]
        assert os.path.isdir(store_dir)


async def _must_not_start(server):
    raise AssertionError("server must not start on configuration failure")
