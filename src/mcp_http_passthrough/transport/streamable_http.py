"""
Streamable HTTP transport.

Each POST to the MCP endpoint carries one JSON-RPC message and is answered
with one JSON body, so every request has a live HTTP exchange of its own.
That makes this the transport on which handlers' HttpResponse values are
written as real HTTP responses.
"""

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..config import config
from ..core.capability import TransportKind
from ..core.server import McpServer
from ..errors import ExchangeClosedError
from ..http.headers import fold_name

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"

# Computed from the body when the response is built.
_EXCHANGE_MANAGED_HEADERS = frozenset({"content-length"})


class StarletteExchange:
    """
    HTTP exchange bound to a single POST.

    Status, header lines and body are collected until ``end``, which turns
    them into the Starlette Response returned for the request. Header lines
    stay distinct even when names repeat. ASGI carries header names
    lowercased and has no reason phrase field, so the status text is kept
    on the exchange only.
    """

    def __init__(self) -> None:
        self.status = 200
        self.status_text = ""
        self._header_lines: list[tuple[str, str]] = []
        self._body = b""
        self._body_is_text = False
        self._closed = False
        self.response: Response | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ExchangeClosedError("HTTP exchange already ended")

    def write_status(self, code: int, text: str) -> None:
        self._ensure_open()
        self.status = code
        self.status_text = text

    def append_header(self, name: str, value: str) -> None:
        self._ensure_open()
        self._header_lines.append((name, value))

    async def write_body(self, body: str | bytes) -> None:
        self._ensure_open()
        if isinstance(body, str):
            self._body += body.encode("utf-8")
            self._body_is_text = True
        else:
            self._body += body

    async def end(self) -> None:
        self._ensure_open()
        self.response = self._build_response()
        self._closed = True

    def close(self) -> None:
        """Tear the exchange down without a response; later writes fail."""
        self._closed = True

    def _build_response(self) -> Response:
        response = Response(content=self._body, status_code=self.status)
        names = {fold_name(name) for name, _ in self._header_lines}
        if self._body_is_text and "content-type" not in names:
            response.raw_headers.append((b"content-type", b"text/plain; charset=utf-8"))
        for name, value in self._header_lines:
            folded = fold_name(name)
            if folded in _EXCHANGE_MANAGED_HEADERS:
                continue
            response.raw_headers.append((folded.encode("latin-1"), value.encode("latin-1")))
        return response


def _jsonrpc_error(code: int, message: str, status_code: int, data: Any = None) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return JSONResponse({"jsonrpc": "2.0", "id": None, "error": error}, status_code=status_code)


class StreamableHTTPTransport:
    """
    Streamable HTTP transport serving MCP servers built by a factory.

    In stateful mode an ``initialize`` request creates a session (and a
    server instance) identified by the Mcp-Session-Id header; later requests
    must carry it. Sessions live until DELETE or shutdown; there is no idle
    expiry, so at most ``max_sessions`` exist at once and further
    ``initialize`` requests are refused with 503 until one ends. In
    stateless mode every request gets a fresh server.
    """

    kind = TransportKind.STREAMABLE_HTTP

    def __init__(
        self,
        server_factory: Callable[[], McpServer],
        host: str = "127.0.0.1",
        port: int = 8080,
        path: str = "/mcp",
        stateful: bool = True,
        max_sessions: int | None = None,
    ):
        """
        Initialize streamable HTTP transport.

        Args:
            server_factory: Factory function creating MCP server instances
            host: Host to bind to
            port: Port to bind to
            path: Endpoint path for MCP messages
            stateful: Whether to track sessions via Mcp-Session-Id
            max_sessions: Cap on concurrent sessions (defaults to config)
        """
        self.server_factory = server_factory
        self.host = host
        self.port = port
        self.path = path
        self.stateful = stateful
        self.max_sessions = max_sessions if max_sessions is not None else config.max_sessions

        self.sessions: dict[str, McpServer] = {}

        self.metrics = {
            "requests_handled": 0,
            "sessions_created": 0,
            "native_responses": 0,
            "errors": 0,
        }

    def create_app(self) -> Starlette:
        """Create Starlette application with HTTP routes."""
        routes = [
            Route(self.path, self.handle_mcp_request, methods=["POST"]),
            Route(self.path, self.handle_mcp_get, methods=["GET"]),
            Route(self.path, self.handle_mcp_delete, methods=["DELETE"]),
            Route("/health", self.handle_health, methods=["GET"]),
        ]
        return Starlette(routes=routes, lifespan=self._lifespan)

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        logger.info(f"Streamable HTTP transport initialized on {self.host}:{self.port}")
        yield
        await self.cleanup()

    async def handle_health(self, request: Request) -> JSONResponse:
        """Health check endpoint for load balancers."""
        return JSONResponse(
            {
                "status": "healthy",
                "transport": self.kind.value,
                "active_sessions": len(self.sessions),
            }
        )

    async def handle_mcp_get(self, request: Request) -> JSONResponse:
        """GET is not offered: there is no server-initiated stream."""
        return _jsonrpc_error(
            -32601,
            "Method not allowed. Use POST for JSON-RPC requests.",
            405,
            data={"allowed_methods": ["POST", "DELETE"], "endpoint": self.path},
        )

    async def handle_mcp_delete(self, request: Request) -> Response:
        """Terminate a session."""
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return _jsonrpc_error(-32600, "Invalid Request", 400, data="Session ID required")

        server = self.sessions.pop(session_id, None)
        if server is None:
            return _jsonrpc_error(-32001, "Session not found", 404)

        await server.close()
        logger.info(f"Deleted session: {session_id}")
        return Response(status_code=204)

    async def handle_mcp_request(self, request: Request) -> Response:
        """
        Handle POST requests to the MCP endpoint.

        Returns the handler's own HTTP response when it raised one, otherwise
        the JSON-RPC frame (or 202 when there is nothing to answer).
        """
        self.metrics["requests_handled"] += 1

        try:
            body = await request.json()
        except ValueError:
            return _jsonrpc_error(-32700, "Parse error", 400, data="Invalid JSON in request body")

        if not isinstance(body, dict) or not isinstance(body.get("method"), str):
            return _jsonrpc_error(
                -32600, "Invalid Request", 400, data="Missing or invalid JSON-RPC 2.0 structure"
            )

        server, session_id, rejection = self._resolve_server(
            body, request.headers.get(SESSION_HEADER)
        )
        if rejection is not None:
            return rejection

        exchange = StarletteExchange()
        try:
            frame = await server.handle_message(
                body, transport=self, exchange=exchange, session_id=session_id
            )
        except Exception as e:
            self.metrics["errors"] += 1
            logger.exception(f"Error handling MCP request: {e}")
            return _jsonrpc_error(-32603, "Internal error", 500, data=str(e))
        finally:
            exchange.close()
            if not self.stateful:
                await server.close()

        if exchange.response is not None:
            self.metrics["native_responses"] += 1
            logger.debug(f"Answered {body.get('method')} with native HTTP {exchange.status}")
            return exchange.response

        headers = {SESSION_HEADER: session_id} if session_id else None
        if frame is None:
            return Response(status_code=202, headers=headers)
        return JSONResponse(frame, headers=headers)

    def _resolve_server(
        self, body: dict[str, Any], session_id: str | None
    ) -> tuple[Any, str | None, JSONResponse | None]:
        """
        Pick the server instance for a request.

        Returns:
            Tuple of (server, session_id, rejection response or None)
        """
        if not self.stateful:
            return self.server_factory(), None, None

        if session_id is None:
            if body.get("method") != "initialize":
                return (
                    None,
                    None,
                    _jsonrpc_error(-32000, "Bad Request: No valid session ID provided", 400),
                )
            if len(self.sessions) >= self.max_sessions:
                logger.warning(f"Session limit {self.max_sessions} reached; refusing initialize")
                return None, None, _jsonrpc_error(-32000, "Too many sessions", 503)
            session_id = str(uuid.uuid4())
            self.sessions[session_id] = self.server_factory()
            self.metrics["sessions_created"] += 1
            logger.debug(f"Created session: {session_id}")
            return self.sessions[session_id], session_id, None

        server = self.sessions.get(session_id)
        if server is None:
            return (
                None,
                None,
                _jsonrpc_error(
                    -32001, "Session not found", 404, data=f"Session {session_id} does not exist"
                ),
            )
        return server, session_id, None

    def get_metrics(self) -> dict[str, Any]:
        """Get transport metrics."""
        return {
            **self.metrics,
            "active_sessions": len(self.sessions),
            "transport_type": self.kind.value,
            "stateful": self.stateful,
            "max_sessions": self.max_sessions,
        }

    async def cleanup(self) -> None:
        """Close every session's server."""
        session_count = len(self.sessions)
        for server in self.sessions.values():
            await server.close()
        self.sessions.clear()
        logger.info(f"Streamable HTTP transport cleanup complete ({session_count} sessions)")
