import asyncio
import re
import time
from re import Pattern
from typing import Dict, Callable, Tuple, Optional, List
from urllib.parse import parse_qs, urlsplit
import json
from .request import Request
from .response import Response
import logging

logger = logging.getLogger(__name__)

_PARAM_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_CHUNK_SIZE_RE = re.compile(rb"[0-9A-Fa-f]+")


def compile_path(path: str) -> Pattern:
    """Turn '/api/{key}' into a regex matching one non-empty segment per placeholder"""
    pattern = ''
    last = 0
    for match in _PARAM_RE.finditer(path):
        pattern += re.escape(path[last:match.start()])
        pattern += f"(?P<{match.group(1)}>[^/]+)"
        last = match.end()
    pattern += re.escape(path[last:])
    return re.compile(f"^{pattern}$")


class HTTPServer:
    def __init__(
        self,
        host: str = '0.0.0.0',
        port: int = 8080,
        server_header: str = 'KvAppHttp/1.0',
        max_body_size: int = 10 * 1024 * 1024,
        header_timeout: float = 5.0,
        body_timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.server_header = server_header
        self.max_body_size = max_body_size
        self.header_timeout = header_timeout
        self.body_timeout = body_timeout
        self.routes: Dict[Tuple[str, str], Callable] = {}
        self.pattern_routes: List[Tuple[str, Pattern, Callable]] = []
        self.not_found_handler: Optional[Callable] = None
        self.error_handler: Optional[Callable] = None

    def route(self, path: str, methods: Optional[List] = None):
        """Decorator for registering route handlers"""
        if methods is None:
            methods = ['GET']

        def decorator(handler):
            for method in methods:
                if _PARAM_RE.search(path):
                    self.pattern_routes.append((method.upper(), compile_path(path), handler))
                else:
                    self.routes[(method.upper(), path)] = handler
            return handler
        return decorator

    def not_found(self, handler):
        """Decorator for the handler of unmatched GET requests"""
        self.not_found_handler = handler
        return handler

    def on_error(self, handler):
        """Decorator for the handler turning an uncaught handler exception into a response"""
        self.error_handler = handler
        return handler

    def match(self, method: str, path: str) -> Tuple[Optional[Callable], Dict[str, str]]:
        """Find the handler for method+path, exact routes first"""
        handler = self.routes.get((method, path))
        if handler is not None:
            return handler, {}

        for route_method, pattern, route_handler in self.pattern_routes:
            if route_method != method:
                continue
            m = pattern.match(path)
            if m:
                return route_handler, m.groupdict()

        return None, {}

    async def parse_request(self, reader: asyncio.StreamReader) -> Optional[Request]:
        """Parse HTTP request with timeout and size limits"""
        try:
            # Read request line with timeout
            request_line = await asyncio.wait_for(
                reader.readline(),
                timeout=self.header_timeout
            )

            if not request_line:
                return None

            request_line = request_line.decode('latin-1').strip()
            method, full_path, version = request_line.split(' ', 2)

            # Parse URL and query parameters
            parsed_url = urlsplit(full_path)
            path = parsed_url.path
            query_params = parse_qs(parsed_url.query)

            # Parse headers
            headers = {}
            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=self.header_timeout)
                if line in (b'\r\n', b'\n', b''):
                    break

                header_line = line.decode('latin-1').strip()
                if ':' in header_line:
                    key, value = header_line.split(':', 1)
                    headers[key.strip().lower()] = value.strip()

            # Read body if present; chunked framing takes precedence over content-length
            body = b''
            transfer_encoding = headers.get('transfer-encoding')
            content_length = int(headers.get('content-length', 0))

            if transfer_encoding is not None:
                if transfer_encoding.lower() != 'chunked':
                    raise ValueError(f"Unsupported transfer-encoding: {transfer_encoding}")
                body = await self.read_chunked_body(reader)
            elif content_length > 0:
                if content_length > self.max_body_size:
                    raise ValueError(f"Request body too large: {content_length} bytes")

                body = await asyncio.wait_for(
                    reader.readexactly(content_length),
                    timeout=self.body_timeout
                )

            return Request(
                method=method.upper(),
                path=path,
                headers=headers,
                query_params=query_params,
                body=body,
                version=version
            )

        except asyncio.TimeoutError:
            return None
        except asyncio.IncompleteReadError:
            return None
        except ValueError as e:
            logger.error(f"Error parsing request: {e}")
            return None

    async def read_chunked_body(self, reader: asyncio.StreamReader) -> bytes:
        """Decode a chunked request body, bounded by max_body_size"""
        body = bytearray()
        while True:
            size_line = await asyncio.wait_for(reader.readline(), timeout=self.body_timeout)
            if not size_line.endswith(b'\n'):
                raise asyncio.IncompleteReadError(size_line, None)

            # Chunk extensions after ';' are ignored
            size_token = size_line.split(b';', 1)[0].strip()
            if not _CHUNK_SIZE_RE.fullmatch(size_token):
                raise ValueError(f"Malformed chunk size: {size_token!r}")

            size = int(size_token, 16)
            if size == 0:
                break
            if len(body) + size > self.max_body_size:
                raise ValueError(f"Request body too large: more than {self.max_body_size} bytes")

            body += await asyncio.wait_for(reader.readexactly(size), timeout=self.body_timeout)
            terminator = await asyncio.wait_for(reader.readexactly(2), timeout=self.body_timeout)
            if terminator != b'\r\n':
                raise ValueError("Malformed chunk terminator")

        # Trailer section ends with an empty line
        while True:
            line = await asyncio.wait_for(reader.readline(), timeout=self.body_timeout)
            if line in (b'\r\n', b'\n'):
                break
            if not line:
                raise asyncio.IncompleteReadError(b'', None)

        return bytes(body)

    def build_response(self, response: Response) -> bytes:
        """Build HTTP response bytes"""
        status_messages = {
            200: 'OK',
            404: 'Not Found',
            405: 'Method Not Allowed',
            500: 'Internal Server Error',
        }

        status_text = status_messages.get(response.status, 'Unknown')

        # Set default headers
        if 'content-type' not in response.headers and response.body:
            response.headers['content-type'] = 'text/plain'

        response.headers['content-length'] = str(len(response.body))
        response.headers['connection'] = 'keep-alive'
        response.headers['server'] = self.server_header

        # Build response
        response_line = f"HTTP/1.1 {response.status} {status_text}\r\n"
        header_lines = ''.join(
            f"{key}: {value}\r\n"
            for key, value in response.headers.items()
        )

        response_bytes = (
            response_line.encode() +
            header_lines.encode() +
            b'\r\n' +
            response.body
        )

        return response_bytes

    async def handle_request(self, request: Request) -> Response:
        """Route request to appropriate handler"""
        handler, path_params = self.match(request.method, request.path)

        if handler is None:
            # Unmatched GET is "not found", anything else is "method not allowed"
            if request.method != 'GET':
                return Response(status=405)
            if self.not_found_handler is None:
                return Response(status=404, body=b'Route Not Found')
            handler = self.not_found_handler

        request.path_params = path_params

        try:
            # Call handler
            result = await handler(request)

            if isinstance(result, Response):
                return result
            elif isinstance(result, dict):
                return Response(
                    status=200,
                    headers={'content-type': 'application/json'},
                    body=json.dumps(result).encode()
                )
            elif isinstance(result, str):
                return Response(
                    status=200,
                    body=result.encode()
                )
            elif isinstance(result, bytes):
                return Response(
                    status=200,
                    body=result
                )

            raise TypeError("Response cannot be casted to appropriate HTTP response format")
        except Exception as e:
            logger.exception(f"Handler error on {request.method} {request.path}: {e}")
            if self.error_handler is not None:
                return await self.error_handler(request, e)
            return Response(
                status=500,
                body=b'Internal Server Error'
            )

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle a single client connection with keep-alive"""
        peer = writer.get_extra_info('peername')

        try:
            # Keep-alive loop
            while True:
                request = await self.parse_request(reader)
                if request is None:
                    break

                start_time = time.perf_counter()
                logger.debug(f"--> {request.method} {request.path}")

                # Handle request
                response = await self.handle_request(request)

                # Send response
                response_bytes = self.build_response(response)
                writer.write(response_bytes)
                await writer.drain()

                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    f"<-- {request.method} {request.path} {response.status} - "
                    f"{len(response.body)} bytes - {elapsed_ms:.2f}ms"
                )

                # Check if client wants to close connection
                if not request.keep_alive:
                    break

        except ConnectionResetError:
            pass
        except Exception as e:
            logger.error(f"Connection error from {peer}: {e}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def start(self):
        """Start the HTTP server"""
        server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port
        )

        addr = server.sockets[0].getsockname()
        logger.info(f'{self.server_header} running on http://{addr[0]}:{addr[1]}')

        try:
            async with server:
                await server.serve_forever()
        except asyncio.CancelledError:
            logger.info("Server shutdown requested")
        finally:
            await self.shutdown(server)

    async def shutdown(self, server):
        """Gracefully shutdown the server"""
        logger.info("Shutting down server...")
        server.close()
        await server.wait_closed()
        logger.info("Server shutdown complete")
