#!/usr/bin/env python3
"""
End-to-end tester for a running kvapp server.

Expects a clean store without key "1":

    $ kvapp --config cfg-kvapp.json
    $ python tester.py --endpoint 127.0.0.1:8080
"""

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass, field
from typing import Any

T_VALUE = b"helloworld"


@dataclass
class HTTPResult:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        return json.loads(self.body)


class HTTPClient:
    """Minimal HTTP/1.1 client, one connection per request."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    async def request(self, method: str, path: str, body: bytes | None = None) -> HTTPResult:
        """Send a request with a raw body and return the parsed response."""
        reader, writer = await asyncio.open_connection(self.host, self.port)

        try:
            body_bytes = b"" if body is None else body

            request_line = f"{method} {path} HTTP/1.1\r\n"
            headers = f"Host: {self.host}\r\n"
            headers += f"Content-Length: {len(body_bytes)}\r\n"
            headers += "Connection: close\r\n"
            headers += "\r\n"

            writer.write(request_line.encode() + headers.encode() + body_bytes)
            await writer.drain()

            raw = await reader.read()
        finally:
            writer.close()
            await writer.wait_closed()

        head, _, payload = raw.partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")
        status = int(lines[0].split(" ")[1])

        response_headers = {}
        for line in lines[1:]:
            if ":" in line:
                key, value = line.split(":", 1)
                response_headers[key.strip().lower()] = value.strip()

        return HTTPResult(status=status, headers=response_headers, body=payload)

    async def get(self, path: str) -> HTTPResult:
        return await self.request("GET", path)

    async def put(self, path: str, body: bytes) -> HTTPResult:
        return await self.request("PUT", path, body)

    async def delete(self, path: str) -> HTTPResult:
        return await self.request("DELETE", path)


def expect(condition: bool, what: str) -> None:
    if not condition:
        raise AssertionError(what)
    print(f"  ok  {what}")


async def run_scenario(client: HTTPClient) -> None:
    """Index, health, then the get/put/delete lifecycle of key 1."""
    res = await client.get("/")
    expect(res.status == 200, "GET / returns 200")
    expect(res.json()["name"] == "kvapp", "GET / names the service")

    res = await client.get("/health")
    expect(res.status == 200, "GET /health returns 200")
    expect(res.json()["healthy"] is True, "store is healthy")

    url = "/api/1"
    expect((await client.get(url)).status == 404, "GET missing key returns 404")
    expect((await client.delete(url)).status == 404, "DELETE missing key returns 404")

    res = await client.put(url, T_VALUE)
    expect(res.status == 200, "PUT returns 200")
    expect(res.json() == {"result": True}, "PUT returns result true")

    res = await client.get(url)
    expect(res.status == 200, "GET stored key returns 200")
    expect(res.body == T_VALUE, "GET returns the stored value")

    expect((await client.delete(url)).status == 200, "DELETE stored key returns 200")
    expect((await client.get(url)).status == 404, "GET deleted key returns 404")
    expect((await client.delete(url)).status == 404, "DELETE deleted key returns 404")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Integration tester for kvapp")
    parser.add_argument(
        "--endpoint",
        default="127.0.0.1:8080",
        help="Server address as HOST:PORT (default: 127.0.0.1:8080)",
    )
    args = parser.parse_args(argv)

    host, _, port = args.endpoint.rpartition(":")
    client = HTTPClient(host, int(port))

    try:
        asyncio.run(run_scenario(client))
    except (AssertionError, OSError) as e:
        print(f"Integration testing FAILED: {e}")
        return 1

    print("Integration testing successful.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
