"""
Example usage of MCP HTTP Passthrough
Shows how a client reads the HTTP response a tool raised

Start a server first:

    MCP_TRANSPORT=streamable_http mcp-http-passthrough

then run this script. Pass --in-memory to run against an in-process server
instead; the error handling code below is the same either way.
"""

import asyncio
import sys

from mcp_http_passthrough import (
    McpClient,
    StreamableHTTPClientTransport,
    StreamClientTransport,
    create_server,
    extract_http_error_info,
    is_http_response_error,
)
from mcp_http_passthrough.transport import InMemoryTransport

SERVER_URL = "http://127.0.0.1:8080/mcp"


def describe_error(error: Exception) -> None:
    if not is_http_response_error(error):
        print(f"Non-HTTP error: {error!r}")
        return

    print("HTTP Response Details:")
    print(f"Status: {error.status} {error.status_text}")
    print(f"Body: {error.body}")
    print("Headers:")
    for name, value in error.headers.items():
        print(f"  {name}: {value}")

    if error.status == 401:
        print("Authentication required")
        challenge = error.headers.get("www-authenticate")
        if challenge and "Bearer" in challenge:
            print(f"Bearer token authentication required ({challenge})")
    elif error.status == 403:
        print("Access forbidden")
    elif error.status == 429:
        retry_after = error.headers.get("retry-after")
        print(f"Rate limited, retry after {retry_after} seconds")
    else:
        print(f"Unexpected status: {error.status}")

    print(f"Full response object available: {error.response!r}")


async def demonstrate(client: McpClient) -> None:
    for tool, arguments in [
        ("protected_resource", {"resource": "user-data"}),
        ("auth_challenge", {}),
        ("rate_limited", {}),
    ]:
        print(f"\n=== {tool} ===")
        try:
            await client.call_tool(tool, arguments)
        except Exception as e:
            describe_error(e)
            print(f"Structured: {extract_http_error_info(e)}")


async def main() -> None:
    client = McpClient("http-response-handling-example")

    if "--in-memory" in sys.argv:
        server_transport, client_transport = InMemoryTransport.create_linked_pair()
        server = create_server()
        await server.connect(server_transport)
        await client.connect(StreamClientTransport(client_transport))
        try:
            await demonstrate(client)
        finally:
            await client.close()
            await server.close()
        return

    await client.connect(StreamableHTTPClientTransport(SERVER_URL))
    try:
        await demonstrate(client)
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
