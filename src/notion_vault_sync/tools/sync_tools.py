"""MCP tools for syncing the vault and checking sync status."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.server.fastmcp import FastMCP

from notion_vault_sync.sync.engine import SyncEngine
from notion_vault_sync.sync.resolver import Resolution, StaticDecisionProvider


def register_sync_tools(mcp: FastMCP, build_engine: Callable[[StaticDecisionProvider], SyncEngine]) -> None:
    """Register the vault sync tools with the MCP server.

    *build_engine* takes a :class:`StaticDecisionProvider` and returns a
    :class:`SyncEngine`; a tool call has no terminal to prompt on, so every
    call picks its conflict policy up front.
    """

    def _engine(strategy: str, detach: bool) -> SyncEngine:
        return build_engine(StaticDecisionProvider(Resolution(strategy), detach=detach))

    @mcp.tool()
    async def sync_vault(strategy: str = "skip", detach: bool = False) -> dict[str, Any]:
        """Bidirectionally sync the vault with the Notion database.

        Uploads new and changed notes, downloads pages edited in Notion,
        archives pages no note links to, and resolves conflicts by *strategy*.

        Args:
            strategy: Conflict policy: "local", "remote" or "skip".
            detach: Unlink notes whose Notion page no longer exists.
        """
        return (await _engine(strategy, detach).sync()).model_dump()

    @mcp.tool()
    async def push_vault(strategy: str = "skip", detach: bool = False) -> dict[str, Any]:
        """Upload local changes and archive orphaned pages.

        Args:
            strategy: Conflict policy: "local", "remote" or "skip".
            detach: Unlink notes whose Notion page no longer exists.
        """
        return (await _engine(strategy, detach).push()).model_dump()

    @mcp.tool()
    async def pull_vault(strategy: str = "skip", detach: bool = False) -> dict[str, Any]:
        """Download pages edited in Notion into their linked notes.

        Args:
            strategy: Conflict policy: "local", "remote" or "skip".
            detach: Unlink notes whose Notion page no longer exists.
        """
        return (await _engine(strategy, detach).pull()).model_dump()

    @mcp.tool()
    async def clone_collection() -> dict[str, Any]:
        """Write every page of the Notion database into the vault.

        Page titles of the form "path:name" decide where each note goes;
        existing notes at those paths are overwritten.
        """
        return (await _engine("skip", False).clone()).model_dump()

    @mcp.tool()
    async def get_sync_status() -> list[dict[str, Any]]:
        """Report, for every note, whether it is in sync, ahead, behind,
        conflicted or not linked to Notion yet.
        """
        entries = await _engine("skip", False).get_sync_status()
        return [entry.model_dump(mode="json") for entry in entries]
