"""
Demo handlers answering with HTTP responses.

One of each handler kind raises an HttpResponse so clients can see the
same error shape over stdio, in-memory and streamable HTTP.
"""

import logging

from ..config import config
from ..core.server import McpServer
from ..decorators import handle_tool_errors
from ..http.response import HttpResponse

logger = logging.getLogger(__name__)


def _unauthorized(error: str = "invalid_token") -> HttpResponse:
    return HttpResponse(
        "Unauthorized",
        status=401,
        status_text="Unauthorized",
        headers={"WWW-Authenticate": f'Bearer realm="{config.demo_auth_realm}", error="{error}"'},
    )


def register_protected_handlers(server: McpServer) -> None:
    """Install the HTTP-answering demo handlers on ``server``."""

    @server.tool(title="Echo", description="Echo a message back")
    @handle_tool_errors
    async def echo(message: str) -> str:
        if not message:
            raise ValueError("message must not be empty")
        return message

    @server.tool(title="Protected Resource", description="Read a resource that needs a token")
    @handle_tool_errors
    async def protected_resource(resource: str, token: str = "") -> str:
        # No token is ever accepted: the demo only shows the challenge.
        logger.info(f"Rejecting access to {resource}")
        raise _unauthorized()

    @server.tool(
        title="Auth Challenge",
        description="Answer with several WWW-Authenticate challenges",
    )
    @handle_tool_errors
    async def auth_challenge() -> str:
        response = HttpResponse(
            "Authentication Required",
            status=401,
            status_text="Unauthorized",
            headers={"Content-Type": "text/plain"},
        )
        response.headers.set(
            "WWW-Authenticate", f'Bearer realm="{config.demo_auth_realm}", error="invalid_token"'
        )
        response.headers.append("WWW-Authenticate", 'Basic realm="admin.example.com"')
        raise response

    @server.tool(title="Rate Limited", description="Always reports the rate limit as exceeded")
    @handle_tool_errors
    async def rate_limited() -> str:
        raise HttpResponse(
            "Too Many Requests",
            status=429,
            status_text="Too Many Requests",
            headers={"Retry-After": str(config.demo_retry_after)},
        )

    @server.resource(
        "demo://admin/settings",
        name="admin-settings",
        description="Settings only administrators may read",
    )
    async def admin_settings() -> str:
        raise HttpResponse(
            "Forbidden",
            status=403,
            status_text="Forbidden",
            headers={
                "WWW-Authenticate": (
                    f'Bearer realm="{config.demo_auth_realm}", error="insufficient_scope"'
                )
            },
        )

    @server.resource("demo://public/readme", name="readme", description="Public readme")
    async def readme() -> str:
        return "This server demonstrates HTTP responses raised from MCP handlers."

    @server.prompt(description="Prompt that requires a signed-in user")
    async def account_summary(account: str) -> str:
        raise _unauthorized()

    @server.prompt(description="Greet someone")
    async def greeting(name: str) -> str:
        return f"Say hello to {name}."

    @server.completion()
    async def complete_argument(ref: dict, argument: dict) -> list[str]:
        if ref.get("name") == "account_summary":
            raise _unauthorized()
        prefix = argument.get("value", "")
        return [name for name in ("alice", "bob", "carol") if name.startswith(prefix)]
