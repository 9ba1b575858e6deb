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
JSON-RPC error synthesis for transports without native HTTP.
"""

from mcp.types import ErrorData

from ..http.headers import normalize_headers
from ..http.response import HttpResponse

HTTP_RESPONSE_MARKER = "originalHttpResponse"


def synthesize_error(response: HttpResponse) -> ErrorData:
    """
    Build the JSON-RPC error carrying a raised HttpResponse.

    The error code is the HTTP status. ``data`` holds the status, status
    text, normalized headers and body, tagged with ``originalHttpResponse``
    so clients can tell it apart from an ordinary handler error.

    Args:
        response: A validated HttpResponse

    Returns:
        ErrorData ready to be placed in a JSON-RPC error frame
    """
    status_text = response.status_text or ""
    return ErrorData(
        code=response.status,
        message=f"HTTP {response.status}: {status_text}",
        data={
            "status": response.status,
            "statusText": status_text,
            "headers": normalize_headers(response.headers),
            "body": response.text(),
            HTTP_RESPONSE_MARKER: True,
        },
    )
