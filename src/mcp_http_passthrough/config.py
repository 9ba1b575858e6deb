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
Configuration module for MCP HTTP Passthrough
Centralizes all configuration values and environment variables
"""

import os
from dataclasses import dataclass, field
from typing import Any


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """Configuration for the MCP server and client"""

    # Server identity
    server_name: str = field(
        default_factory=lambda: os.getenv("MCP_SERVER_NAME", "mcp-http-passthrough")
    )
    server_version: str = "1.0.0"

    # Transport selection: stdio or streamable_http
    transport: str = field(default_factory=lambda: os.getenv("MCP_TRANSPORT", "stdio"))

    # HTTP transport
    http_host: str = field(default_factory=lambda: os.getenv("MCP_HTTP_HOST", "127.0.0.1"))
    http_port: int = field(default_factory=lambda: int(os.getenv("MCP_HTTP_PORT", "8080")))
    http_path: str = field(default_factory=lambda: os.getenv("MCP_HTTP_PATH", "/mcp"))
    stateful_sessions: bool = field(
        default_factory=lambda: _env_flag("MCP_STATEFUL_SESSIONS", "true")
    )
    max_sessions: int = field(default_factory=lambda: int(os.getenv("MCP_MAX_SESSIONS", "1000")))

    # Client
    client_timeout: float = field(
        default_factory=lambda: float(os.getenv("MCP_CLIENT_TIMEOUT", "30"))
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "WARNING").upper())

    # Demo handlers
    demo_auth_realm: str = field(
        default_factory=lambda: os.getenv("DEMO_AUTH_REALM", "api.example.com")
    )
    demo_retry_after: int = field(
        default_factory=lambda: int(os.getenv("DEMO_RETRY_AFTER", "30"))
    )

    def reload(self) -> None:
        """Re-read every environment-backed value in place"""
        self.__dict__.update(ServerConfig().__dict__)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "server_name": self.server_name,
            "server_version": self.server_version,
            "transport": self.transport,
            "http_host": self.http_host,
            "http_port": self.http_port,
            "http_path": self.http_path,
            "stateful_sessions": self.stateful_sessions,
            "max_sessions": self.max_sessions,
            "client_timeout": self.client_timeout,
            "log_level": self.log_level,
        }


# Global configuration instance
config = ServerConfig()
