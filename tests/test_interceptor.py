"""
Tests for the dispatch interceptor and handler outcome capture.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from mcp_http_passthrough.core.capability import (
    NativeHttpExchange,
    TransportKind,
    supports_native_http,
)
from mcp_http_passthrough.core.interceptor import (
    DispatchInterceptor,
    NativeResponseDropped,
    NativeResponseWritten,
    RequestContext,
    RpcErrorFrame,
    RpcResult,
)
from mcp_http_passthrough.core.outcome import HttpResponseRaised, Normal, OtherError, capture
from mcp_http_passthrough.errors import (
    DescriptorValidationError,
    ExchangeClosedError,
    NativeExchangeUnavailableError,
)
from mcp_http_passthrough.http import HttpResponse
from mcp_http_passthrough.transport import InMemoryTransport, StarletteExchange


class FakeHttpTransport:
    kind = TransportKind.STREAMABLE_HTTP


class FakeStdioTransport:
    kind = TransportKind.STDIO


class RecordingExchange:
    """Exchange that records every write"""

    def __init__(self, fail_on: str | None = None):
        self.calls: list[tuple] = []
        self.fail_on = fail_on
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _record(self, *call):
        if self._closed or self.fail_on == call[0]:
            raise ExchangeClosedError("exchange gone")
        self.calls.append(call)

    def write_status(self, code, text):
        self._record("status", code, text)

    def append_header(self, name, value):
        self._record("header", name, value)

    async def write_body(self, body):
        self._record("body", body)

    async def end(self):
        self._record("end")
        self._closed = True


def unauthorized() -> HttpResponse:
    response = HttpResponse("Unauthorized", status=401, status_text="Unauthorized")
    response.headers.set("WWW-Authenticate", 'Bearer realm="a"')
    response.headers.append("WWW-Authenticate", 'Basic realm="b"')
    return response


def raiser(exc: BaseException):
    async def invocation():
        raise exc

    return invocation


class TestCapability:
    """Test transport capability classification"""

    def test_streamable_http_is_native(self):
        assert supports_native_http(FakeHttpTransport()) is True

    def test_stdio_is_not_native(self):
        assert supports_native_http(FakeStdioTransport()) is False

    def test_in_memory_is_not_native(self):
        first, _ = InMemoryTransport.create_linked_pair()
        assert supports_native_http(first) is False

    def test_undeclared_kind_is_not_native(self):
        assert supports_native_http(object()) is False

    def test_exchanges_satisfy_protocol(self):
        assert isinstance(RecordingExchange(), NativeHttpExchange)
        assert isinstance(StarletteExchange(), NativeHttpExchange)


class TestCapture:
    """Test handler outcome classification"""

    @pytest.mark.asyncio
    async def test_normal(self):
        async def ok():
            return {"value": 1}

        assert await capture(ok) == Normal({"value": 1})

    @pytest.mark.asyncio
    async def test_http_response(self):
        response = unauthorized()
        outcome = await capture(raiser(response))

        assert isinstance(outcome, HttpResponseRaised)
        assert outcome.response is response

    @pytest.mark.asyncio
    async def test_other_error(self):
        error = RuntimeError("boom")
        outcome = await capture(raiser(error))

        assert isinstance(outcome, OtherError)
        assert outcome.error is error

    @pytest.mark.asyncio
    async def test_cancellation_is_not_captured(self):
        with pytest.raises(asyncio.CancelledError):
            await capture(raiser(asyncio.CancelledError()))


class TestDispatchInterceptor:
    """Test interceptor branching"""

    @pytest.fixture
    def interceptor(self):
        return DispatchInterceptor()

    @pytest.mark.asyncio
    async def test_normal_result_passes_through(self, interceptor):
        result = object()

        async def ok():
            return result

        context = RequestContext(1, "tools/call", FakeStdioTransport())
        action = await interceptor.run(ok, context)

        assert isinstance(action, RpcResult)
        assert action.result is result

    @pytest.mark.asyncio
    async def test_other_error_is_reraised_unchanged(self, interceptor):
        error = KeyError("missing")
        context = RequestContext(1, "tools/call", FakeHttpTransport(), RecordingExchange())

        with pytest.raises(KeyError) as exc_info:
            await interceptor.run(raiser(error), context)

        assert exc_info.value is error
        assert context.exchange.calls == []

    @pytest.mark.asyncio
    async def test_unknown_outcome_is_type_error(self, interceptor):
        context = RequestContext(1, "tools/call", FakeStdioTransport())

        with patch(
            "mcp_http_passthrough.core.interceptor.capture",
            AsyncMock(return_value=object()),
        ):
            with pytest.raises(TypeError, match="Unexpected handler outcome"):
                await interceptor.run(raiser(RuntimeError()), context)

    @pytest.mark.asyncio
    async def test_non_native_transport_synthesizes_error(self, interceptor):
        context = RequestContext(7, "tools/call", FakeStdioTransport())

        action = await interceptor.run(raiser(unauthorized()), context)

        assert isinstance(action, RpcErrorFrame)
        assert action.error.code == 401
        assert action.error.data["headers"] == {
            "www-authenticate": 'Bearer realm="a", Basic realm="b"'
        }

    @pytest.mark.asyncio
    async def test_native_transport_writes_each_header_line(self, interceptor):
        exchange = RecordingExchange()
        context = RequestContext(7, "tools/call", FakeHttpTransport(), exchange)

        action = await interceptor.run(raiser(unauthorized()), context)

        assert action == NativeResponseWritten(401)
        assert exchange.calls == [
            ("status", 401, "Unauthorized"),
            ("header", "WWW-Authenticate", 'Bearer realm="a"'),
            ("header", "WWW-Authenticate", 'Basic realm="b"'),
            ("body", "Unauthorized"),
            ("end",),
        ]

    @pytest.mark.asyncio
    async def test_native_write_without_body_skips_body(self, interceptor):
        exchange = RecordingExchange()
        context = RequestContext(1, "tools/call", FakeHttpTransport(), exchange)

        await interceptor.run(raiser(HttpResponse(status=204, status_text="No Content")), context)

        assert [call[0] for call in exchange.calls] == ["status", "end"]

    @pytest.mark.asyncio
    async def test_native_transport_without_exchange_is_local_fault(self, interceptor):
        context = RequestContext(1, "tools/call", FakeHttpTransport(), exchange=None)

        with pytest.raises(NativeExchangeUnavailableError):
            await interceptor.run(raiser(unauthorized()), context)

    @pytest.mark.asyncio
    async def test_invalid_status_is_local_fault(self, interceptor):
        context = RequestContext(1, "tools/call", FakeStdioTransport())

        with pytest.raises(DescriptorValidationError):
            await interceptor.run(raiser(HttpResponse(status=700)), context)

    @pytest.mark.asyncio
    async def test_invalid_status_never_written_natively(self, interceptor):
        exchange = RecordingExchange()
        context = RequestContext(1, "tools/call", FakeHttpTransport(), exchange)

        with pytest.raises(DescriptorValidationError):
            await interceptor.run(raiser(HttpResponse(status=42)), context)

        assert exchange.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_request_skips_native_write(self, interceptor):
        exchange = RecordingExchange()
        context = RequestContext(1, "tools/call", FakeHttpTransport(), exchange)
        context.cancel()

        action = await interceptor.run(raiser(unauthorized()), context)

        assert isinstance(action, NativeResponseDropped)
        assert exchange.calls == []

    @pytest.mark.asyncio
    async def test_closed_exchange_is_dropped_not_raised(self, interceptor):
        exchange = RecordingExchange(fail_on="body")
        context = RequestContext(1, "tools/call", FakeHttpTransport(), exchange)

        action = await interceptor.run(raiser(unauthorized()), context)

        assert action == NativeResponseDropped("exchange closed")

    @pytest.mark.asyncio
    async def test_already_ended_exchange_is_dropped(self, interceptor):
        exchange = RecordingExchange()
        await exchange.end()
        context = RequestContext(1, "tools/call", FakeHttpTransport(), exchange)

        action = await interceptor.run(raiser(unauthorized()), context)

        assert isinstance(action, NativeResponseDropped)

    @pytest.mark.asyncio
    async def test_descriptor_headers_untouched_by_native_write(self, interceptor):
        response = unauthorized()
        before = response.headers.items()
        context = RequestContext(1, "tools/call", FakeHttpTransport(), RecordingExchange())

        await interceptor.run(raiser(response), context)

        assert response.headers.items() == before


class TestStarletteExchange:
    """Test the Starlette-backed exchange"""

    @pytest.mark.asyncio
    async def test_builds_response_with_repeated_headers(self):
        exchange = StarletteExchange()
        exchange.write_status(401, "Unauthorized")
        exchange.append_header("WWW-Authenticate", "Bearer")
        exchange.append_header("WWW-Authenticate", "Basic")
        await exchange.write_body("Unauthorized")
        await exchange.end()

        response = exchange.response
        assert response.status_code == 401
        assert response.body == b"Unauthorized"
        challenges = [v for k, v in response.raw_headers if k == b"www-authenticate"]
        assert challenges == [b"Bearer", b"Basic"]
        assert (b"content-type", b"text/plain; charset=utf-8") in response.raw_headers

    @pytest.mark.asyncio
    async def test_explicit_content_type_wins(self):
        exchange = StarletteExchange()
        exchange.write_status(403, "Forbidden")
        exchange.append_header("Content-Type", "application/json")
        await exchange.write_body('{"error": "forbidden"}')
        await exchange.end()

        content_types = [v for k, v in exchange.response.raw_headers if k == b"content-type"]
        assert content_types == [b"application/json"]

    @pytest.mark.asyncio
    async def test_writes_after_end_fail(self):
        exchange = StarletteExchange()
        exchange.write_status(401, "Unauthorized")
        await exchange.end()

        assert exchange.closed
        with pytest.raises(ExchangeClosedError):
            exchange.append_header("X", "1")
        with pytest.raises(ExchangeClosedError):
            await exchange.end()

    @pytest.mark.asyncio
    async def test_closed_exchange_rejects_writes(self):
        exchange = StarletteExchange()
        exchange.close()

        with pytest.raises(ExchangeClosedError):
            exchange.write_status(401, "Unauthorized")
        assert exchange.response is None
