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
HTTP response a handler raises to answer a call with HTTP semantics.
"""

import re
from typing import Any

from ..errors import DescriptorValidationError
from .headers import Headers, HeadersInit

MIN_STATUS = 100
MAX_STATUS = 599

# RFC 9110 token
_HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_FORBIDDEN_VALUE_CHARS = ("\r", "\n", "\0")


class HttpResponse(Exception):
    """
    Status, status text, header multimap and body of an HTTP answer.

    Handlers raise it instead of returning a result:

        raise HttpResponse(
            "Unauthorized",
            status=401,
            status_text="Unauthorized",
            headers={"WWW-Authenticate": 'Bearer realm="api"'},
        )

    Headers may be adjusted with ``response.headers.append`` before the
    raise; afterwards the dispatch layer only reads them.

    Args:
        body: Response body, or None for no body
        status: HTTP status code (100-599)
        status_text: Reason phrase, empty when omitted
        headers: Initial header lines (mapping, pairs or Headers)
    """

    def __init__(
        self,
        body: str | bytes | None = None,
        *,
        status: int = 200,
        status_text: str = "",
        headers: HeadersInit = None,
    ):
        self.status = status
        self.status_text = status_text
        self.headers = Headers(headers)
        self.body = body
        super().__init__(f"HTTP {status}: {status_text}")

    def text(self) -> str | None:
        """Body as text, or None when the response has no body."""
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return self.body

    def validate(self) -> None:
        """Raise DescriptorValidationError unless every field is well-formed."""
        status: Any = self.status
        if isinstance(status, bool) or not isinstance(status, int):
            raise DescriptorValidationError(f"HTTP status must be an int, got {status!r}")
        if not MIN_STATUS <= status <= MAX_STATUS:
            raise DescriptorValidationError(
                f"HTTP status {status} outside {MIN_STATUS}-{MAX_STATUS}"
            )
        if not isinstance(self.status_text, str):
            raise DescriptorValidationError("HTTP status text must be a string")
        if not isinstance(self.headers, Headers):
            raise DescriptorValidationError("HTTP headers must be a Headers instance")
        for name, value in self.headers.items():
            _validate_header_line(name, value)
        if self.body is not None and not isinstance(self.body, (str, bytes)):
            raise DescriptorValidationError(
                f"HTTP body must be str, bytes or None, got {type(self.body).__name__}"
            )

    def __repr__(self) -> str:
        return (
            f"HttpResponse(status={self.status!r}, status_text={self.status_text!r}, "
            f"headers={self.headers!r}, body={self.body!r})"
        )


def _validate_header_line(name: str, value: str) -> None:
    """Reject header lines that cannot be written on an HTTP/1.1 wire."""
    if not _HEADER_NAME.fullmatch(name):
        raise DescriptorValidationError(f"Invalid HTTP header name {name!r}")
    if any(char in value for char in _FORBIDDEN_VALUE_CHARS):
        raise DescriptorValidationError(f"HTTP header {name!r} contains a line break or NUL")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        raise DescriptorValidationError(
            f"HTTP header {name!r} value is not latin-1 encodable"
        ) from None
