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
Client-side reconstruction of HTTP responses raised by server handlers.

Whether the server answered with a real HTTP response (streamable HTTP) or
with a JSON-RPC error tagged ``originalHttpResponse`` (stdio, in-memory),
the caller gets the same HttpResponseError shape.
"""

import logging
from typing import Any, Literal, TypedDict

import httpx
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData

from ..core.synthesizer import HTTP_RESPONSE_MARKER
from ..http.headers import Headers
from ..http.response import MAX_STATUS, MIN_STATUS

logger = logging.getLogger(__name__)


class RpcCallError(McpError):
    """An ordinary JSON-RPC error returned for a call."""

    def __init__(self, error: ErrorData):
        super().__init__(error)
        self.message = f"MCP error {error.code}: {error.message}"
        self.args = (self.message,)

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def data(self) -> Any:
        return self.error.data


class HttpResponseError(McpError):
    """
    A call answered with an HTTP response raised by the server's handler.

    Attributes:
        status: HTTP status code
        status_text: HTTP reason phrase
        headers: Response headers (case-insensitive multimap)
        body: Response body as text, None when there was none
        response: The httpx.Response received, or one rebuilt from the
            JSON-RPC error data when the transport had no HTTP exchange
    """

    def __init__(
        self,
        message: str,
        *,
        status: int,
        status_text: str,
        headers: Headers,
        body: str | None,
        response: httpx.Response,
        error: ErrorData | None = None,
    ):
        super().__init__(error or ErrorData(code=status, message=message))
        self.message = message
        self.args = (message,)
        self.status = status
        self.status_text = status_text
        self.headers = headers
        self.body = body
        self.response = response

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def data(self) -> Any:
        return self.error.data


class HttpErrorInfo(TypedDict, total=False):
    type: Literal["http_response", "other_error"]
    status: int
    status_text: str
    body: str | None
    headers: dict[str, str]
    response: httpx.Response
    error: Any


def error_from_native_response(
    response: httpx.Response, verb: str = "POSTing"
) -> HttpResponseError:
    """
    Build an HttpResponseError from a non-2xx HTTP answer.

    The response body must already be read.
    """
    text = response.text
    status_text = response.reason_phrase
    return HttpResponseError(
        f"Error {verb} to endpoint (HTTP {response.status_code}): {text or status_text}",
        status=response.status_code,
        status_text=status_text,
        headers=Headers(response.headers.multi_items()),
        body=text or None,
        response=response,
    )


def _is_http_payload(data: Any) -> bool:
    if not isinstance(data, dict) or data.get(HTTP_RESPONSE_MARKER) is not True:
        return False

    status = data.get("status")
    if isinstance(status, bool) or not isinstance(status, int):
        return False
    if not MIN_STATUS <= status <= MAX_STATUS:
        return False
    if not isinstance(data.get("statusText"), str):
        return False

    headers = data.get("headers")
    if not isinstance(headers, dict):
        return False
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in headers.items()):
        return False

    body = data.get("body")
    return body is None or isinstance(body, str)


def _rebuild_response(
    status: int, status_text: str, headers: Headers, body: str | None
) -> httpx.Response:
    return httpx.Response(
        status,
        headers=httpx.Headers(headers.items(), encoding="utf-8"),
        content=body.encode("utf-8") if body is not None else b"",
        extensions={"reason_phrase": status_text.encode("ascii", errors="ignore")},
    )


def error_from_rpc(error: ErrorData) -> McpError:
    """
    Turn a JSON-RPC error received for a call into the exception to raise.

    Errors tagged ``originalHttpResponse`` with well-formed data become
    HttpResponseError; everything else, malformed tagged payloads included,
    becomes RpcCallError.
    """
    data = error.data
    if not _is_http_payload(data):
        if isinstance(data, dict) and HTTP_RESPONSE_MARKER in data:
            logger.warning(
                f"Malformed HTTP response payload in error {error.code}; treating as RPC error"
            )
        return RpcCallError(error)

    status = data["status"]
    status_text = data["statusText"]
    headers = Headers(data["headers"])
    body = data["body"]

    try:
        response = _rebuild_response(status, status_text, headers, body)
    except (UnicodeError, ValueError) as e:
        logger.warning(f"Cannot rebuild HTTP response from error {error.code}: {e}")
        return RpcCallError(error)

    return HttpResponseError(
        f"MCP error {error.code}: {error.message}",
        status=status,
        status_text=status_text,
        headers=headers,
        body=body,
        response=response,
        error=error,
    )


def is_http_response_error(value: Any) -> bool:
    """Whether ``value`` is an error carrying a handler's HTTP response."""
    return isinstance(value, HttpResponseError)


def extract_http_error_info(value: Any) -> HttpErrorInfo:
    """
    Structured view of an error for logging or branching.

    Returns:
        ``{"type": "http_response", status, status_text, body, headers,
        response}`` for HTTP response errors, ``{"type": "other_error",
        "error": value}`` otherwise
    """
    if is_http_response_error(value):
        return {
            "type": "http_response",
            "status": value.status,
            "status_text": value.status_text,
            "body": value.body,
            "headers": value.headers.to_dict(),
            "response": value.response,
        }
    return {"type": "other_error", "error": value}
