"""
MCP client session.
"""

import itertools
import logging
from typing import Any

from mcp.types import LATEST_PROTOCOL_VERSION, ErrorData

from .errors import error_from_rpc
from .transports import ClientTransport

logger = logging.getLogger(__name__)


class McpClient:
    """
    Minimal MCP client.

    Failed calls raise HttpResponseError when the server's handler answered
    with an HTTP response (on either transport path) and RpcCallError for
    any other JSON-RPC error.
    """

    def __init__(self, name: str, version: str = "1.0.0"):
        self.name = name
        self.version = version
        self.server_info: dict[str, Any] | None = None
        self._transport: ClientTransport | None = None
        self._ids = itertools.count(1)

    async def connect(self, transport: ClientTransport) -> dict[str, Any]:
        """Start the transport and run the initialize handshake."""
        self._transport = transport
        await transport.start()

        result = await self.request(
            "initialize",
            {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": self.name, "version": self.version},
            },
        )
        self.server_info = result.get("serverInfo")
        await self.notify("notifications/initialized")
        logger.debug(f"Connected to {self.server_info}")
        return result

    async def request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send a request and return its result, raising on JSON-RPC errors."""
        if self._transport is None:
            raise RuntimeError("Client is not connected")

        message: dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            message["params"] = params

        frame = await self._transport.send_request(message)
        if "error" in frame:
            raise error_from_rpc(ErrorData.model_validate(frame["error"]))
        return frame.get("result", {})

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        if self._transport is None:
            raise RuntimeError("Client is not connected")

        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._transport.send_notification(message)

    async def ping(self) -> dict[str, Any]:
        return await self.request("ping")

    async def list_tools(self) -> list[dict[str, Any]]:
        return (await self.request("tools/list")).get("tools", [])

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("tools/call", {"name": name, "arguments": arguments or {}})

    async def list_resources(self) -> list[dict[str, Any]]:
        return (await self.request("resources/list")).get("resources", [])

    async def read_resource(self, uri: str) -> dict[str, Any]:
        return await self.request("resources/read", {"uri": uri})

    async def list_prompts(self) -> list[dict[str, Any]]:
        return (await self.request("prompts/list")).get("prompts", [])

    async def get_prompt(
        self, name: str, arguments: dict[str, str] | None = None
    ) -> dict[str, Any]:
        return await self.request("prompts/get", {"name": name, "arguments": arguments or {}})

    async def complete(self, ref: dict[str, Any], argument: dict[str, str]) -> dict[str, Any]:
        return await self.request("completion/complete", {"ref": ref, "argument": argument})

    async def close(self) -> None:
        if self._transport is not None:
            await self._transport.close()
            self._transport = None
