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
Dispatch interceptor: runs one handler invocation for one request and turns
a raised HttpResponse into either a native HTTP write or a JSON-RPC error.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union

from mcp.types import ErrorData, RequestId

from ..errors import ExchangeClosedError, NativeExchangeUnavailableError
from ..http.response import HttpResponse
from .capability import NativeHttpExchange, Transport, supports_native_http
from .outcome import HttpResponseRaised, Normal, OtherError, capture
from .synthesizer import synthesize_error

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """
    Per-request state shared between the engine and the interceptor.

    Attributes:
        request_id: JSON-RPC id of the request
        method: JSON-RPC method name
        transport: Transport the request arrived on
        exchange: HTTP exchange bound to this request, native transports only
        session_id: Transport session, when the transport has sessions
    """

    request_id: RequestId
    method: str
    transport: Transport
    exchange: NativeHttpExchange | None = None
    session_id: str | None = None
    _cancelled: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


@dataclass(frozen=True)
class RpcResult:
    """Handler returned normally; emit a JSON-RPC result."""

    result: Any


@dataclass(frozen=True)
class RpcErrorFrame:
    """Handler raised an HttpResponse on a non-HTTP transport."""

    error: ErrorData


@dataclass(frozen=True)
class NativeResponseWritten:
    """A real HTTP response was written; no JSON-RPC frame follows."""

    status: int


@dataclass(frozen=True)
class NativeResponseDropped:
    """The native write was skipped or failed; there is no caller left to answer."""

    reason: str


DispatchAction = Union[RpcResult, RpcErrorFrame, NativeResponseWritten, NativeResponseDropped]


class DispatchInterceptor:
    """
    Wraps handler execution with HTTP response passthrough.

    Ordinary exceptions are re-raised untouched so the surrounding RPC error
    path handles them. Exactly one terminal action results from a raised
    HttpResponse: a native write or a synthesized error frame.
    """

    async def run(
        self, invocation: Callable[[], Awaitable[Any]], context: RequestContext
    ) -> DispatchAction:
        outcome = await capture(invocation)

        if isinstance(outcome, Normal):
            return RpcResult(outcome.value)
        if isinstance(outcome, OtherError):
            raise outcome.error

        if not isinstance(outcome, HttpResponseRaised):
            raise TypeError(f"Unexpected handler outcome: {outcome!r}")
        response = outcome.response
        response.validate()

        if supports_native_http(context.transport):
            return await self._write_native(response, context)

        logger.debug(
            f"{context.method} (id={context.request_id}) raised HTTP {response.status}; "
            f"answering with synthesized error over {context.transport.kind.value}"
        )
        return RpcErrorFrame(synthesize_error(response))

    async def _write_native(
        self, response: HttpResponse, context: RequestContext
    ) -> NativeResponseWritten | NativeResponseDropped:
        exchange = context.exchange
        if exchange is None:
            raise NativeExchangeUnavailableError(
                f"No HTTP exchange bound to request {context.request_id} ({context.method})"
            )

        if context.cancelled:
            logger.info(
                f"Request {context.request_id} cancelled; skipping HTTP {response.status} write"
            )
            return NativeResponseDropped("cancelled")

        try:
            exchange.write_status(response.status, response.status_text)
            for name, value in response.headers.items():
                exchange.append_header(name, value)
            if response.body is not None:
                await exchange.write_body(response.body)
            await exchange.end()
        except ExchangeClosedError as e:
            logger.warning(
                f"HTTP {response.status} for request {context.request_id} not delivered: {e}"
            )
            return NativeResponseDropped("exchange closed")

        logger.debug(f"Wrote native HTTP {response.status} for request {context.request_id}")
        return NativeResponseWritten(response.status)
