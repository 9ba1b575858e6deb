"""Dispatch core: capability check, interceptor, error synthesis and the server engine"""

from .capability import NativeHttpExchange, TransportKind, supports_native_http
from .interceptor import (
    DispatchAction,
    DispatchInterceptor,
    NativeResponseDropped,
    NativeResponseWritten,
    RequestContext,
    RpcErrorFrame,
    RpcResult,
)
from .outcome import HandlerOutcome, HttpResponseRaised, Normal, OtherError, capture
from .server import McpServer
from .synthesizer import HTTP_RESPONSE_MARKER, synthesize_error

__all__ = [
    "HTTP_RESPONSE_MARKER",
    "DispatchAction",
    "DispatchInterceptor",
    "HandlerOutcome",
    "HttpResponseRaised",
    "McpServer",
    "NativeHttpExchange",
    "NativeResponseDropped",
    "NativeResponseWritten",
    "Normal",
    "OtherError",
    "RequestContext",
    "RpcErrorFrame",
    "RpcResult",
    "TransportKind",
    "capture",
    "supports_native_http",
    "synthesize_error",
]
