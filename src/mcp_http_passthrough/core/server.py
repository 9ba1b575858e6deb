# MIT License
#
# Copyright (c) 2025 MCP HTTP Passthrough Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
MCP server engine: handler registry and JSON-RPC dispatch.

Every handler kind (tool, resource, prompt, completion) runs through the
DispatchInterceptor, so a raised HttpResponse reaches the caller the same
way whichever transport the request came in on.
"""

import asyncio
import base64
import inspect
import json
import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, get_type_hints

from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    BlobResourceContents,
    CallToolResult,
    CompleteResult,
    Completion,
    ErrorData,
    GetPromptResult,
    Implementation,
    InitializeResult,
    JSONRPCError,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    Prompt,
    PromptArgument,
    PromptMessage,
    PromptsCapability,
    Resource,
    ResourcesCapability,
    ServerCapabilities,
    TextContent,
    TextResourceContents,
    Tool,
    ToolsCapability,
)
from pydantic import BaseModel, ValidationError, create_model

from ..errors import HttpPassthroughError
from ..http.response import HttpResponse
from .capability import Transport
from .interceptor import (
    DispatchInterceptor,
    RequestContext,
    RpcErrorFrame,
    RpcResult,
)

logger = logging.getLogger(__name__)

RESOURCE_NOT_FOUND = -32002
MAX_COMPLETION_VALUES = 100


@dataclass
class _ToolEntry:
    name: str
    fn: Callable[..., Any]
    title: str | None = None
    description: str | None = None
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass
class _ResourceEntry:
    uri: str
    fn: Callable[..., Any]
    name: str
    description: str | None = None
    mime_type: str = "text/plain"


@dataclass
class _PromptEntry:
    name: str
    fn: Callable[..., Any]
    description: str | None = None
    arguments: list[PromptArgument] = field(default_factory=list)


async def _call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call a sync or async handler."""
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def _signature_fields(fn: Callable[..., Any]) -> dict[str, tuple[Any, Any]]:
    hints = get_type_hints(fn)
    fields: dict[str, tuple[Any, Any]] = {}
    for param in inspect.signature(fn).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, Any)
        default = ... if param.default is param.empty else param.default
        fields[param.name] = (annotation, default)
    return fields


def _arguments_schema(fn: Callable[..., Any]) -> dict[str, Any]:
    """JSON schema of a handler's keyword arguments, built with pydantic."""
    fields = _signature_fields(fn)
    model = create_model(f"{fn.__name__}Arguments", **fields)  # type: ignore[call-overload]
    return model.model_json_schema()


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return value


def _frame(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json", exclude_unset=True)


def error_frame(request_id: Any, error: ErrorData) -> dict[str, Any]:
    """JSON-RPC 2.0 error frame; ``request_id`` is None when the request's id is unknown."""
    if request_id is None:
        # JSONRPCError requires an id
        return {"jsonrpc": "2.0", "id": None, "error": _frame(error)}
    return _frame(JSONRPCError(jsonrpc="2.0", id=request_id, error=error))


def result_frame(request_id: Any, result: Any) -> dict[str, Any]:
    """JSON-RPC 2.0 success frame."""
    return _frame(JSONRPCResponse(jsonrpc="2.0", id=request_id, result=_dump(result)))


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def _tool_content(value: Any) -> list[Any]:
    if isinstance(value, list) and all(isinstance(item, BaseModel) for item in value):
        return value
    if isinstance(value, BaseModel):
        return [value]
    return [TextContent(type="text", text=_to_text(value))]


def _is_valid_jsonrpc(message: Any) -> bool:
    """Check if a message is a JSON-RPC 2.0 request or notification."""
    if not isinstance(message, dict):
        return False
    model = JSONRPCRequest if "id" in message else JSONRPCNotification
    try:
        model.model_validate(message, strict=True)
    except ValidationError:
        return False
    return True


class McpServer:
    """
    Registry of MCP handlers plus the JSON-RPC dispatch loop.

    Handlers are registered with decorators:

        server = McpServer("example")

        @server.tool(description="Read a protected document")
        async def read_document(name: str) -> str:
            raise HttpResponse("Unauthorized", status=401, status_text="Unauthorized")
    """

    def __init__(self, name: str, version: str = "1.0.0", instructions: str | None = None):
        self.name = name
        self.version = version
        self.instructions = instructions
        self.interceptor = DispatchInterceptor()

        self._tools: dict[str, _ToolEntry] = {}
        self._resources: dict[str, _ResourceEntry] = {}
        self._prompts: dict[str, _PromptEntry] = {}
        self._completion_handler: Callable[..., Any] | None = None

        self._in_flight: dict[Any, RequestContext] = {}
        self._serve_task: asyncio.Task | None = None
        self._stream: Any = None

        self._routes: dict[str, Callable[[dict[str, Any], RequestContext], Any]] = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
            "resources/list": self._handle_resources_list,
            "resources/read": self._handle_resources_read,
            "prompts/list": self._handle_prompts_list,
            "prompts/get": self._handle_prompts_get,
            "completion/complete": self._handle_complete,
        }

    # Registration

    def tool(
        self,
        name: str | None = None,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a tool handler; its keyword arguments become the input schema."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            tool_name = name or fn.__name__
            self._tools[tool_name] = _ToolEntry(
                name=tool_name,
                fn=fn,
                title=title,
                description=description or inspect.getdoc(fn),
                input_schema=_arguments_schema(fn),
            )
            logger.debug(f"Registered tool {tool_name}")
            return fn

        return decorator

    def resource(
        self,
        uri: str,
        *,
        name: str | None = None,
        description: str | None = None,
        mime_type: str = "text/plain",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a handler returning the contents of ``uri`` (str or bytes)."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self._resources[uri] = _ResourceEntry(
                uri=uri,
                fn=fn,
                name=name or fn.__name__,
                description=description or inspect.getdoc(fn),
                mime_type=mime_type,
            )
            logger.debug(f"Registered resource {uri}")
            return fn

        return decorator

    def prompt(
        self, name: str | None = None, *, description: str | None = None
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a prompt handler returning text or a list of PromptMessage."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            prompt_name = name or fn.__name__
            arguments = [
                PromptArgument(name=arg_name, required=default is ...)
                for arg_name, (_, default) in _signature_fields(fn).items()
            ]
            self._prompts[prompt_name] = _PromptEntry(
                name=prompt_name,
                fn=fn,
                description=description or inspect.getdoc(fn),
                arguments=arguments,
            )
            logger.debug(f"Registered prompt {prompt_name}")
            return fn

        return decorator

    def completion(self) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register the argument completion handler: ``fn(ref, argument) -> list[str]``."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self._completion_handler = fn
            return fn

        return decorator

    # Dispatch

    async def handle_message(
        self,
        message: Any,
        transport: Transport,
        exchange: Any = None,
        session_id: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Dispatch one incoming JSON-RPC message.

        Args:
            message: Decoded JSON-RPC message
            transport: Transport the message arrived on
            exchange: HTTP exchange bound to this request (native transports)
            session_id: Transport session id, if any

        Returns:
            The frame to send back, or None when nothing must be sent
            (notifications, native HTTP writes, cancelled requests)
        """
        if isinstance(message, dict) and "method" not in message and (
            "result" in message or "error" in message
        ):
            logger.debug(f"Ignoring response message for id={message.get('id')}")
            return None

        if not _is_valid_jsonrpc(message):
            request_id = message.get("id") if isinstance(message, dict) else None
            if isinstance(request_id, bool) or not isinstance(request_id, (str, int)):
                request_id = None
            return error_frame(
                request_id,
                ErrorData(code=INVALID_REQUEST, message="Invalid Request"),
            )

        method = message["method"]
        params = message.get("params") or {}

        if "id" not in message:
            await self._handle_notification(method, params)
            return None

        request_id = message["id"]
        route = self._routes.get(method)
        if route is None:
            return error_frame(
                request_id,
                ErrorData(code=METHOD_NOT_FOUND, message=f"Method not found: {method}"),
            )

        context = RequestContext(
            request_id=request_id,
            method=method,
            transport=transport,
            exchange=exchange,
            session_id=session_id,
        )
        self._in_flight[request_id] = context

        try:
            action = await self.interceptor.run(lambda: route(params, context), context)
        except HttpPassthroughError as e:
            logger.error(f"Local fault while dispatching {method} (id={request_id}): {e}")
            return error_frame(request_id, ErrorData(code=INTERNAL_ERROR, message="Internal error"))
        except McpError as e:
            return error_frame(request_id, e.error)
        except Exception as e:
            logger.exception(f"Error handling {method} (id={request_id})")
            return error_frame(request_id, ErrorData(code=INTERNAL_ERROR, message=str(e)))
        finally:
            self._in_flight.pop(request_id, None)

        if context.cancelled:
            logger.debug(f"Request {request_id} was cancelled; not responding")
            return None
        if isinstance(action, RpcResult):
            return result_frame(request_id, action.result)
        if isinstance(action, RpcErrorFrame):
            return error_frame(request_id, action.error)
        return None

    async def _handle_notification(self, method: str, params: dict[str, Any]) -> None:
        if method == "notifications/cancelled":
            request_id = params.get("requestId")
            context = self._in_flight.get(request_id)
            if context is not None:
                logger.info(f"Cancelling request {request_id}: {params.get('reason', '')}")
                context.cancel()
        elif method == "notifications/initialized":
            logger.debug("Client initialized")
        else:
            logger.debug(f"Ignoring notification {method}")

    # Method handlers

    async def _handle_initialize(
        self, params: dict[str, Any], context: RequestContext
    ) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        result = InitializeResult(
            protocolVersion=requested if isinstance(requested, str) else LATEST_PROTOCOL_VERSION,
            capabilities=ServerCapabilities(
                tools=ToolsCapability(listChanged=False),
                resources=ResourcesCapability(subscribe=False, listChanged=False),
                prompts=PromptsCapability(listChanged=False),
            ),
            serverInfo=Implementation(name=self.name, version=self.version),
            instructions=self.instructions,
        )
        payload = _dump(result)
        payload["capabilities"]["completions"] = {}
        return payload

    async def _handle_ping(self, params: dict[str, Any], context: RequestContext) -> dict:
        return {}

    async def _handle_tools_list(self, params: dict[str, Any], context: RequestContext) -> dict:
        tools = [
            Tool(
                name=entry.name,
                title=entry.title,
                description=entry.description,
                inputSchema=entry.input_schema,
            )
            for entry in self._tools.values()
        ]
        return {"tools": [_dump(tool) for tool in tools]}

    async def _handle_tools_call(
        self, params: dict[str, Any], context: RequestContext
    ) -> CallToolResult:
        tool_name = params.get("name")
        arguments = params.get("arguments") or {}
        entry = self._tools.get(tool_name) if isinstance(tool_name, str) else None
        if entry is None:
            raise McpError(ErrorData(code=INVALID_PARAMS, message=f"Unknown tool: {tool_name}"))

        try:
            value = await _call(entry.fn, **arguments)
        except (HttpResponse, McpError):
            raise
        except Exception as e:
            logger.warning(f"Tool {tool_name} failed: {type(e).__name__}: {e}")
            return CallToolResult(content=[TextContent(type="text", text=str(e))], isError=True)

        return CallToolResult(content=_tool_content(value), isError=False)

    async def _handle_resources_list(
        self, params: dict[str, Any], context: RequestContext
    ) -> dict:
        resources = [
            Resource(
                uri=entry.uri,
                name=entry.name,
                description=entry.description,
                mimeType=entry.mime_type,
            )
            for entry in self._resources.values()
        ]
        return {"resources": [_dump(resource) for resource in resources]}

    async def _handle_resources_read(
        self, params: dict[str, Any], context: RequestContext
    ) -> dict:
        uri = params.get("uri")
        entry = self._resources.get(uri) if isinstance(uri, str) else None
        if entry is None:
            raise McpError(
                ErrorData(code=RESOURCE_NOT_FOUND, message=f"Resource not found: {uri}")
            )

        value = await _call(entry.fn)
        if isinstance(value, bytes):
            contents: Any = BlobResourceContents(
                uri=entry.uri,
                mimeType=entry.mime_type,
                blob=base64.b64encode(value).decode("ascii"),
            )
        else:
            contents = TextResourceContents(
                uri=entry.uri, mimeType=entry.mime_type, text=_to_text(value)
            )
        return {"contents": [_dump(contents)]}

    async def _handle_prompts_list(self, params: dict[str, Any], context: RequestContext) -> dict:
        prompts = [
            Prompt(name=entry.name, description=entry.description, arguments=entry.arguments)
            for entry in self._prompts.values()
        ]
        return {"prompts": [_dump(prompt) for prompt in prompts]}

    async def _handle_prompts_get(
        self, params: dict[str, Any], context: RequestContext
    ) -> GetPromptResult:
        prompt_name = params.get("name")
        entry = self._prompts.get(prompt_name) if isinstance(prompt_name, str) else None
        if entry is None:
            raise McpError(
                ErrorData(code=INVALID_PARAMS, message=f"Unknown prompt: {prompt_name}")
            )

        value = await _call(entry.fn, **(params.get("arguments") or {}))
        if isinstance(value, list):
            messages = value
        else:
            messages = [
                PromptMessage(role="user", content=TextContent(type="text", text=_to_text(value)))
            ]
        return GetPromptResult(description=entry.description, messages=messages)

    async def _handle_complete(
        self, params: dict[str, Any], context: RequestContext
    ) -> CompleteResult:
        if self._completion_handler is None:
            return CompleteResult(completion=Completion(values=[]))

        values = list(
            await _call(
                self._completion_handler, params.get("ref") or {}, params.get("argument") or {}
            )
        )
        return CompleteResult(
            completion=Completion(
                values=values[:MAX_COMPLETION_VALUES],
                total=len(values),
                hasMore=len(values) > MAX_COMPLETION_VALUES,
            )
        )

    # Message-stream serving

    async def serve(self, stream: Any) -> None:
        """Serve requests from a message-stream transport until it closes."""
        tasks: set[asyncio.Task] = set()
        try:
            async for message in stream:
                task = asyncio.create_task(self._serve_one(message, stream))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

    async def _serve_one(self, message: Any, stream: Any) -> None:
        frame = await self.handle_message(message, stream)
        if frame is None:
            return
        try:
            await stream.send(frame)
        except ConnectionError as e:
            logger.warning(f"Could not send response for id={frame.get('id')}: {e}")

    async def connect(self, stream: Any) -> None:
        """Start serving ``stream`` in the background."""
        self._stream = stream
        self._serve_task = asyncio.create_task(self.serve(stream))
        logger.info(f"MCP server '{self.name}' connected over {stream.kind.value}")

    async def close(self) -> None:
        if self._serve_task is not None:
            self._serve_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._serve_task
            self._serve_task = None
        if self._stream is not None:
            await self._stream.close()
            self._stream = None
