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
Local faults raised by the HTTP passthrough layer.

None of these are forwarded to the caller as an HTTP response. The RPC
engine logs them and, where a caller still exists, answers with a generic
internal error.
"""


class HttpPassthroughError(Exception):
    """Base class for faults local to the server process."""


class DescriptorValidationError(HttpPassthroughError, ValueError):
    """A raised HttpResponse is malformed (status out of range, bad field types)."""


class NativeExchangeUnavailableError(HttpPassthroughError):
    """The transport claims native HTTP support but no exchange is bound to the request."""


class ExchangeClosedError(HttpPassthroughError):
    """A write was attempted on an HTTP exchange that has already ended."""
