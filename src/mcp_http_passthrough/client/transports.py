"""
Client transports.

Both expose the same two coroutines to McpClient: ``send_request`` returns
the JSON-RPC response frame for a request, ``send_notification`` fires and
forgets.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Any, Protocol

import httpx

from ..config import config
from .errors import error_from_native_response

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"


class ClientTransport(Protocol):
    async def start(self) -> None: ...

    async def send_request(self, message: dict[str, Any]) -> dict[str, Any]: ...

    async def send_notification(self, message: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class StreamClientTransport:
    """
    Client over a message-stream transport (in-memory pair, stdio pipe).

    Responses are matched to pending requests by JSON-RPC id.
    """

    def __init__(self, stream: Any):
        self.stream = stream
        self._pending: dict[Any, asyncio.Future] = {}
        self._reader: asyncio.Task | None = None

    async def start(self) -> None:
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            async for message in self.stream:
                future = self._pending.pop(message.get("id"), None)
                if future is None:
                    logger.debug(f"Unmatched message from server: {message}")
                    continue
                if not future.done():
                    future.set_result(message)
        finally:
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(ConnectionError("Connection closed"))
            self._pending.clear()

    async def send_request(self, message: dict[str, Any]) -> dict[str, Any]:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[message["id"]] = future
        try:
            await self.stream.send(message)
        except Exception:
            self._pending.pop(message["id"], None)
            raise
        return await future

    async def send_notification(self, message: dict[str, Any]) -> None:
        await self.stream.send(message)

    async def close(self) -> None:
        await self.stream.close()
        if self._reader is not None:
            self._reader.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None


class StreamableHTTPClientTransport:
    """
    Client for the streamable HTTP transport.

    A non-2xx answer to a POST, or a 2xx answer that is not the JSON-RPC
    response to the request, is the server handler's own HTTP response and
    is raised as HttpResponseError.

    Args:
        url: MCP endpoint URL
        client: httpx client to use; one is created (and owned) when omitted
        headers: Extra headers sent with every request
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ):
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout if timeout is not None else config.client_timeout
        self.session_id: str | None = None
        self._client = client
        self._owns_client = client is None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

    def _request_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", **self.headers}
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        return headers

    async def _post(self, message: dict[str, Any]) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Transport not started")

        response = await self._client.post(self.url, json=message, headers=self._request_headers())
        if not response.is_success:
            raise error_from_native_response(response)

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.session_id = session_id
        return response

    async def send_request(self, message: dict[str, Any]) -> dict[str, Any]:
        response = await self._post(message)
        frame = _jsonrpc_frame(response, message.get("id"))
        if frame is None:
            # 2xx that is not our frame: the handler's own HTTP response
            raise error_from_native_response(response)
        return frame

    async def send_notification(self, message: dict[str, Any]) -> None:
        await self._post(message)

    async def close(self) -> None:
        if self._client is None:
            return
        if self.session_id:
            try:
                await self._client.delete(self.url, headers=self._request_headers())
            except httpx.HTTPError as e:
                logger.debug(f"Session termination failed: {e}")
            self.session_id = None
        if self._owns_client:
            await self._client.aclose()
            self._client = None


def _jsonrpc_frame(response: httpx.Response, request_id: Any) -> dict[str, Any] | None:
    """JSON-RPC response frame carried by ``response``, or None if it holds something else."""
    content_type = response.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        return None
    try:
        frame = response.json()
    except ValueError:
        return None
    if not isinstance(frame, dict) or frame.get("jsonrpc") != "2.0":
        return None
    if frame.get("id") != request_id or not ("result" in frame or "error" in frame):
        return None
    return frame
