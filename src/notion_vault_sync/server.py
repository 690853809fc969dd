"""MCP server for bidirectional vault <-> Notion sync.

This is the main entry point.  It creates a FastMCP server, checks the
settings, and registers the sync tools.  Each tool call builds a fresh
engine so the vault is re-read on every call.

Run with:
    uv run notion-vault-sync
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from notion_vault_sync.config import settings
from notion_vault_sync.logger import setup_logging
from notion_vault_sync.sync.engine import SyncEngine
from notion_vault_sync.sync.resolver import StaticDecisionProvider
from notion_vault_sync.tools.sync_tools import register_sync_tools

mcp = FastMCP(
    "notion-vault-sync",
    instructions=(
        "Notion-Vault-Sync MCP server for bidirectional sync between a "
        "Markdown vault and a Notion database. Use these tools to sync, "
        "push, pull or clone the vault and to check each note's status."
    ),
)


def _build_engine(provider: StaticDecisionProvider) -> SyncEngine:
    return SyncEngine.from_settings(provider)


def _initialize() -> None:
    """Validate settings and register tools."""
    setup_logging("mcp")
    settings.validate()
    register_sync_tools(mcp, _build_engine)


def main() -> None:
    """Entry point for the MCP server."""
    _initialize()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
