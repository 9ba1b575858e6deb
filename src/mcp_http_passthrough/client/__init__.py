"""MCP client with HTTP response error reconstruction"""

from .errors import (
    HttpErrorInfo,
    HttpResponseError,
    RpcCallError,
    error_from_native_response,
    error_from_rpc,
    extract_http_error_info,
    is_http_response_error,
)
from .session import McpClient
from .transports import StreamableHTTPClientTransport, StreamClientTransport

__all__ = [
    "HttpErrorInfo",
    "HttpResponseError",
    "McpClient",
    "RpcCallError",
    "StreamClientTransport",
    "StreamableHTTPClientTransport",
    "error_from_native_response",
    "error_from_rpc",
    "extract_http_error_info",
    "is_http_response_error",
]
