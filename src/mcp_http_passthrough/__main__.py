"""
CLI entry point for MCP HTTP Passthrough
"""

import logging

from dotenv import load_dotenv

from . import main, streamable_http_main
from .config import config


def run() -> None:
    """Load .env, then start the transport named by MCP_TRANSPORT."""
    load_dotenv()
    config.reload()
    logging.getLogger().setLevel(getattr(logging, config.log_level, logging.WARNING))

    if config.transport in ("http", "streamable_http"):
        streamable_http_main()
    else:
        main()


if __name__ == "__main__":
    run()
