"""
Stdio transport: newline-delimited JSON-RPC over stdin/stdout.

Framing, decoding and the non-blocking stdout writer come from the MCP SDK's
``stdio_server``; this module adapts its streams to the engine's dict
frames. stdout is reserved for protocol messages; logging goes to stderr.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server.stdio import stdio_server
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage
from pydantic import ValidationError

from ..core.capability import TransportKind
from ..core.server import McpServer

logger = logging.getLogger(__name__)


class StdioServerTransport:
    """
    Server side of a stdio pipe.

    Lines the SDK cannot decode reach us as exceptions; they are logged and
    skipped because no id is known to answer them with.

    Args:
        read_stream: Decoded client messages (or decode failures)
        write_stream: Messages for the stdout writer
    """

    kind = TransportKind.STDIO

    def __init__(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ):
        self.read_stream = read_stream
        self.write_stream = write_stream
        self._closed = False

    async def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionError("Stdio transport is closed")

        try:
            frame = JSONRPCMessage.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Dropping frame for id={message.get('id')}; not writable on stdio: {e}")
            return

        try:
            await self.write_stream.send(SessionMessage(frame))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise ConnectionError("stdout closed") from e

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        async for item in self.read_stream:
            if self._closed:
                return
            if isinstance(item, Exception):
                logger.warning(f"Unparsable message on stdin: {item}")
                continue
            yield item.message.model_dump(by_alias=True, mode="json", exclude_unset=True)
        logger.info("stdin closed")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.write_stream.aclose()


async def run_stdio_server(server: McpServer) -> None:
    """Serve ``server`` over this process's stdin/stdout until stdin closes."""
    async with stdio_server() as (read_stream, write_stream):
        transport = StdioServerTransport(read_stream, write_stream)
        logger.info(f"Serving '{server.name}' over stdio")
        try:
            await server.serve(transport)
        finally:
            await transport.close()
