"""
Transport layer implementations.

- InMemoryTransport: linked message queues (no HTTP exchange)
- StdioServerTransport: newline-delimited JSON-RPC over stdio (no HTTP exchange)
- StreamableHTTPTransport: one HTTP exchange per request, native HTTP answers
"""

from .memory import InMemoryTransport
from .stdio import StdioServerTransport, run_stdio_server
from .streamable_http import StarletteExchange, StreamableHTTPTransport

__all__ = [
    "InMemoryTransport",
    "StarletteExchange",
    "StdioServerTransport",
    "StreamableHTTPTransport",
    "run_stdio_server",
]
