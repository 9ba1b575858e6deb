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
Handler outcomes as a tagged union.

``capture`` turns "the handler returned / raised an HttpResponse / raised
something else" into a value the dispatch layer can branch on.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

from ..http.response import HttpResponse


@dataclass(frozen=True)
class Normal:
    value: Any


@dataclass(frozen=True)
class HttpResponseRaised:
    response: HttpResponse


@dataclass(frozen=True)
class OtherError:
    error: Exception


HandlerOutcome = Union[Normal, HttpResponseRaised, OtherError]


async def capture(invocation: Callable[[], Awaitable[Any]]) -> HandlerOutcome:
    """Await ``invocation()`` and classify how it finished."""
    try:
        value = await invocation()
    except HttpResponse as response:
        return HttpResponseRaised(response)
    except Exception as e:
        return OtherError(e)
    return Normal(value)
