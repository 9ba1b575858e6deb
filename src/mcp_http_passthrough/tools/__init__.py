"""Demo MCP handlers"""

from .protected import register_protected_handlers

__all__ = ["register_protected_handlers"]
