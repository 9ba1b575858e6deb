#!/usr/bin/env python3
"""
MCP HTTP Passthrough
Lets MCP handlers answer with HTTP responses on any transport

CRITICAL: The stdio transport uses stdout for MCP protocol communication.
- stdout is reserved for MCP JSON-RPC messages
- All logging/debug output must go to stderr or files
- Never print() to stdout in MCP server code
"""

import asyncio
import logging
import sys

from .config import config

# Configure logging to stderr only - NEVER stdout in MCP servers
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.WARNING),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

from .client import (  # noqa: E402
    HttpResponseError,
    McpClient,
    RpcCallError,
    StreamableHTTPClientTransport,
    StreamClientTransport,
    extract_http_error_info,
    is_http_response_error,
)
from .core.server import McpServer  # noqa: E402
from .http import Headers, HttpResponse  # noqa: E402

__all__ = [
    "Headers",
    "HttpResponse",
    "HttpResponseError",
    "McpClient",
    "McpServer",
    "RpcCallError",
    "StreamClientTransport",
    "StreamableHTTPClientTransport",
    "create_server",
    "extract_http_error_info",
    "is_http_response_error",
    "main",
    "streamable_http_main",
]


def create_server() -> McpServer:
    """Create an MCP server with the demo handlers registered.

    Returns:
        A new server instance; each call returns a fresh one.
    """
    from .tools import register_protected_handlers

    server = McpServer(config.server_name, config.server_version)
    register_protected_handlers(server)
    return server


def main() -> None:
    """Run the MCP server with stdio transport (default)"""
    from .transport import run_stdio_server

    logger.info(f"Starting {config.server_name} (stdio)")

    try:
        asyncio.run(run_stdio_server(create_server()))
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


def streamable_http_main(host: str | None = None, port: int | None = None) -> None:
    """Run the MCP server with the streamable HTTP transport.

    Args:
        host: Host to bind to (default: MCP_HTTP_HOST, 127.0.0.1)
        port: Port to bind to (default: MCP_HTTP_PORT, 8080)
    """
    import uvicorn

    from .transport import StreamableHTTPTransport

    host = host or config.http_host
    port = port or config.http_port
    logger.info(f"Starting {config.server_name} (Streamable HTTP) on {host}:{port}")

    try:
        transport = StreamableHTTPTransport(
            server_factory=create_server,
            host=host,
            port=port,
            path=config.http_path,
            stateful=config.stateful_sessions,
            max_sessions=config.max_sessions,
        )
        app = transport.create_app()

        uvicorn_config = uvicorn.Config(
            app=app,
            host=host,
            port=port,
            log_level="warning",  # Reduce uvicorn logging, let our logger handle it
            access_log=False,
        )
        server = uvicorn.Server(uvicorn_config)
        logger.info(f"Streamable HTTP transport ready on http://{host}:{port}{config.http_path}")
        server.run()

    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception:
        logger.exception("Server error")
        raise
