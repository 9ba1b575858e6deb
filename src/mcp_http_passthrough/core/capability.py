"""
Transport capability classification.

A transport declares its kind once, at class level. Only kinds that bind a
live HTTP request/response exchange to every request can answer natively.
"""

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class TransportKind(str, Enum):
    """Kinds of server transports"""

    STDIO = "stdio"
    IN_MEMORY = "in-memory"
    STREAMABLE_HTTP = "streamable-http"


NATIVE_HTTP_KINDS = frozenset({TransportKind.STREAMABLE_HTTP})


@runtime_checkable
class NativeHttpExchange(Protocol):
    """
    Per-request HTTP exchange offered by native-capable transports.

    ``end`` is the terminal write; any write after it raises
    ExchangeClosedError.
    """

    @property
    def closed(self) -> bool: ...

    def write_status(self, code: int, text: str) -> None: ...

    def append_header(self, name: str, value: str) -> None: ...

    async def write_body(self, body: str | bytes) -> None: ...

    async def end(self) -> None: ...


class Transport(Protocol):
    """Anything the server dispatches requests for."""

    kind: TransportKind


def supports_native_http(transport: Any) -> bool:
    """Whether ``transport`` can write a real HTTP response for a request."""
    return getattr(transport, "kind", None) in NATIVE_HTTP_KINDS
