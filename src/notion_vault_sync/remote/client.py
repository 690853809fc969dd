"""Composed Notion API client that exposes all sub-clients.

``NotionClient`` is the single entry point for all remote operations.  It
builds the underlying ``notion_client.Client`` via
``auth.build_notion_client`` and exposes domain-specific sub-clients as
properties, all sharing one rate limiter.
"""

from __future__ import annotations

from notion_client import Client

from notion_vault_sync.config import settings
from notion_vault_sync.converter.block_types import Block
from notion_vault_sync.remote.auth import build_notion_client
from notion_vault_sync.remote.blocks import BlocksClient
from notion_vault_sync.remote.databases import DatabasesClient
from notion_vault_sync.remote.pages import PagesClient
from notion_vault_sync.remote.throttle import RateLimiter


class NotionClient:
    """Unified Notion API client composing all domain sub-clients.

    Instantiate with no arguments to use settings from environment
    variables, or pass an explicit SDK client for testing.

    Usage::

        client = NotionClient()
        docs = client.databases.query_all("some_database_id")
        blocks = client.blocks.list_all_children(docs[0].id)

    Args:
        token: Optional override for ``NOTION_TOKEN``.
        raw_client: Pre-built SDK client; skips token handling entirely.
        requests_per_second: Optional override for the rate limit.
        append_batch_size: Optional override for the append chunk size.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        raw_client: Client | None = None,
        requests_per_second: int | None = None,
        append_batch_size: int | None = None,
    ) -> None:
        self._raw_client: Client = raw_client or build_notion_client(token=token)
        self.limiter = RateLimiter(requests_per_second or settings.requests_per_second)
        self._append_batch_size = append_batch_size or settings.append_batch_size

        self._databases: DatabasesClient | None = None
        self._pages: PagesClient | None = None
        self._blocks: BlocksClient | None = None

    # ------------------------------------------------------------------
    # Sub-client accessors (lazy-initialized)
    # ------------------------------------------------------------------

    @property
    def databases(self) -> DatabasesClient:
        """Database query and schema operations."""
        if self._databases is None:
            self._databases = DatabasesClient(self._raw_client, self.limiter)
        return self._databases

    @property
    def blocks(self) -> BlocksClient:
        """Block children listing, appending and deletion."""
        if self._blocks is None:
            self._blocks = BlocksClient(
                self._raw_client,
                self.limiter,
                append_batch_size=self._append_batch_size,
            )
        return self._blocks

    @property
    def pages(self) -> PagesClient:
        """Page creation, renaming and archiving."""
        if self._pages is None:
            self._pages = PagesClient(
                self._raw_client, self.limiter, self.databases, self.blocks
            )
        return self._pages

    @property
    def raw(self) -> Client:
        """Access the underlying ``notion_client.Client`` for advanced use cases."""
        return self._raw_client

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def fetch_children(self, block_id: str) -> list[Block]:
        """Children loader suitable for ``BlocksToMarkdownConverter``."""
        return self.blocks.list_all_children(block_id)


def page_link(page_id: str) -> str:
    """Return the canonical browser link for a page id."""
    return f"https://www.notion.so/{page_id.replace('-', '')}"
