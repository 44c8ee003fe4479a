from __future__ import annotations

import asyncio
import logging

from mcp.server.fastmcp import FastMCP

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.config import ClientSettings
from trello_mcp.core.context import (
    apply_request_context,
    client_from_context,
    reset_context,
    seed_from_env,
)
from trello_mcp.core.logging import setup_logging
from trello_mcp.core.registry import register_discovered_tools

log = logging.getLogger("trello_mcp.transports.stdio")


def build_app(client: TrelloClient) -> FastMCP:
    app = FastMCP("trello-mcp")
    names = register_discovered_tools(app, lambda: client)
    log.info("Registered %d tools", len(names))
    return app


async def main() -> None:
    # Seed ContextVars from env (stdio bootstrap); also loads .env
    ctx = seed_from_env(use_dotenv=True)
    settings = ClientSettings.from_env()
    setup_logging(settings.log_level)
    tokens = list(
        apply_request_context(
            api_key=ctx.api_key,
            token=ctx.token,
            request_id=ctx.request_id,
        )
    )
    try:
        client = client_from_context(
            timeout_seconds=settings.timeout_seconds,
            retry=settings.retry_config(),
        )
        await build_app(client).run_stdio_async()
    finally:
        reset_context(tokens)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
