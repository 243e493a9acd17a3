import argparse
import asyncio
import logging
import os
import sys

from http_server.request import Request
from http_server.response import Response, response
from http_server.server import HTTPServer
from kvapp import APP_NAME, __version__
from kvapp.engine.state import ServerState
from kvapp.models.api_error import INTERNAL_ERROR, NOT_FOUND, ApiError
from kvapp.models.config import DEFAULT_CONFIG_PATH, load_config
from kvapp.models.exceptions import ConfigError, StoreError

DEFAULT_BIND_ADDR = "127.0.0.1"
DEFAULT_BIND_PORT = 8080

logger = logging.getLogger(__name__)


def api_error(error: ApiError) -> Response:
    return response(status_code=error.status).json(error.envelope())


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Database server for key/value db"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        default=DEFAULT_CONFIG_PATH,
        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--bind-addr",
        metavar="IP-ADDRESS",
        default=DEFAULT_BIND_ADDR,
        help=f"Server socket bind address (default: {DEFAULT_BIND_ADDR})",
    )
    parser.add_argument(
        "--bind-port",
        metavar="PORT",
        type=int,
        default=DEFAULT_BIND_PORT,
        help=f"Server socket bind port (default: {DEFAULT_BIND_PORT})",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        state = ServerState.from_config(config)
    except ConfigError as e:
        logger.critical(f"Startup failed: {e}")
        return 1

    server = HTTPServer(
        host=args.bind_addr,
        port=args.bind_port,
        server_header=f"{APP_NAME}/{__version__}",
    )
    await register_routes(server, state)
    logger.debug(f"Registered routes: {list(server.routes)} {server.pattern_routes}")

    try:
        await server.start()
    finally:
        try:
            await state.close()
        except StoreError as e:
            logger.error(f"Failed to close store cleanly: {e}")
    return 0


async def register_routes(server: HTTPServer, state: ServerState):

    @server.route('/', ['GET'])
    async def index(request: Request) -> Response:
        return response(status_code=200).json({
            "name": APP_NAME,
            "version": __version__,
            "database_info": {"name": state.name},
        })

    @server.route('/health', ['GET'])
    async def health(request: Request) -> Response:
        try:
            await state.health()
        except StoreError as e:
            logger.error(f"Health check failed: {e}")
            return api_error(INTERNAL_ERROR)

        return response(status_code=200).json({"healthy": True})

    @server.route('/api/{key}', ['GET'])
    async def get(request: Request) -> Response:
        key = request.param_bytes("key")
        try:
            value = await state.get(key)
        except StoreError as e:
            logger.error(f"GET {key!r}: {e}")
            return api_error(INTERNAL_ERROR)

        if value is None:
            return api_error(NOT_FOUND)
        return response(status_code=200).binary(value)

    @server.route('/api/{key}', ['PUT'])
    async def put(request: Request) -> Response:
        key = request.param_bytes("key")
        try:
            await state.put(key, request.body)
        except StoreError as e:
            logger.error(f"PUT {key!r}: {e}")
            return api_error(INTERNAL_ERROR)

        return response(status_code=200).json({"result": True})

    @server.route('/api/{key}', ['DELETE'])
    async def delete(request: Request) -> Response:
        key = request.param_bytes("key")
        try:
            removed = await state.delete(key)
        except StoreError as e:
            logger.error(f"DELETE {key!r}: {e}")
            return api_error(INTERNAL_ERROR)

        if not removed:
            return api_error(NOT_FOUND)
        return response(status_code=200).json({"result": True})

    @server.not_found
    async def not_found(request: Request) -> Response:
        return api_error(NOT_FOUND)

    @server.on_error
    async def internal_error(request: Request, exc: Exception) -> Response:
        return api_error(INTERNAL_ERROR)


def run():
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
