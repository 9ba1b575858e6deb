"""
Custom decorators for MCP tool handlers
"""

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from mcp.shared.exceptions import McpError

from .http.response import HttpResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


def handle_tool_errors(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to handle standard error patterns for MCP tools.

    Expected failures become a readable message for the model. A raised
    HttpResponse is the handler's answer, not a failure, and passes through
    along with McpError.
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        tool_name = func.__name__
        try:
            return await func(*args, **kwargs)  # type: ignore[misc]
        except (HttpResponse, McpError):
            raise
        except ValueError as e:
            logger.warning(f"Validation error in {tool_name}: {e}")
            return f"❌ **Invalid input**: {str(e)}"
        except KeyError as e:
            logger.error(f"Configuration error in {tool_name}: Missing key {e}")
            return f"❌ **Configuration error**: Missing required field {e}"
        except Exception as e:
            logger.exception(f"Unexpected error in {tool_name}")
            return f"❌ **Unexpected error in {tool_name}**: {type(e).__name__}: {str(e)}"

    return wrapper  # type: ignore[return-value]
