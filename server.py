from __future__ import annotations

import os
from typing import TYPE_CHECKING

from explorer.client import ExplorerClient
from explorer.constants import LOGGER
from explorer.env import load_env, load_settings, setup_logging
from explorer.errors import AuthError
from explorer.mcp_app import mount_health_route, register_tools

if TYPE_CHECKING:
    from fastmcp import FastMCP


def _log_unauthenticated(error: AuthError) -> None:
    LOGGER.warning("Explorer session ended; call the login tool again (%s)", error)


def print_tool_list(names: list[str]) -> None:
    print(f"Registered {len(names)} explorer tools:")
    for name in sorted(names):
        print(f"- {name}")


def create_mcp() -> "FastMCP":
    from fastmcp import FastMCP

    load_env()
    debug_enabled = setup_logging()
    settings = load_settings()
    settings.debug = debug_enabled

    explorer = ExplorerClient.from_settings(settings, on_unauthenticated=_log_unauthenticated)
    LOGGER.info("Explorer API at %s (state file %s)", settings.api_url, settings.state_path)

    mcp = FastMCP(name="Explorer Session")
    print_tool_list(register_tools(mcp, explorer))
    mount_health_route(mcp, explorer)
    setattr(mcp, "_explorer", explorer)
    return mcp


def main() -> None:
    host = os.getenv("MCP_HOST", "127.0.0.1")
    port = int(os.getenv("MCP_PORT", "8000"))
    mcp = create_mcp()
    mcp.run(transport="streamable-http", host=host, port=port)


if __name__ == "__main__":
    main()
