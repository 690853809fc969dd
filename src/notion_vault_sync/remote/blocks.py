"""Block-level operations against the Notion API.

Wraps ``/v1/blocks/{id}/children`` (list and append) and ``/v1/blocks/{id}``
(delete).  Appends are chunked, and nested children are appended under the
ids Notion assigns to their parents, so a tree of any depth is written
without relying on the API's two-level inline nesting limit.
"""

from __future__ import annotations

import logging
from typing import Any

from notion_client import Client

from notion_vault_sync.converter.block_types import Block, BlockType
from notion_vault_sync.converter.notion_blocks import block_from_payload, block_to_payload
from notion_vault_sync.remote.errors import call_api
from notion_vault_sync.remote.throttle import RateLimiter

logger = logging.getLogger(__name__)

CHILDREN_PAGE_SIZE = 100
APPEND_BATCH_SIZE = 10


class BlocksClient:
    """Client for the block children of Notion pages.

    Args:
        client: A configured ``notion_client.Client`` instance.
        limiter: Rate limiter shared with the other sub-clients.
        append_batch_size: Number of blocks sent per append request.
    """

    def __init__(
        self,
        client: Client,
        limiter: RateLimiter | None = None,
        *,
        append_batch_size: int = APPEND_BATCH_SIZE,
    ) -> None:
        self._client = client
        self._limiter = limiter
        self.append_batch_size = max(1, append_batch_size)

    # ------------------------------------------------------------------
    # List children (paginated)
    # ------------------------------------------------------------------

    def list_children(
        self,
        block_id: str,
        *,
        start_cursor: str | None = None,
        page_size: int = CHILDREN_PAGE_SIZE,
    ) -> tuple[list[Block], str | None]:
        """List the children of a block or page, returning one page.

        Returns:
            A tuple of ``(blocks, next_cursor)``.  ``next_cursor`` is
            ``None`` when there are no more pages.
        """
        kwargs: dict[str, Any] = {"block_id": block_id, "page_size": page_size}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor

        response = call_api(
            self._limiter,
            self._client.blocks.children.list,
            f"list children of {block_id}",
            **kwargs,
        )
        blocks = [block_from_payload(item) for item in response.get("results") or []]
        next_cursor = response.get("next_cursor") if response.get("has_more") else None
        return blocks, next_cursor

    def list_all_children(self, block_id: str) -> list[Block]:
        """Follow the cursor until exhausted and return every direct child.

        Grandchildren are not fetched; blocks that have them keep
        ``children=None`` for the renderer to load on demand.
        """
        all_blocks: list[Block] = []
        cursor: str | None = None
        while True:
            blocks, cursor = self.list_children(block_id, start_cursor=cursor)
            all_blocks.extend(blocks)
            if cursor is None:
                break
        return all_blocks

    # ------------------------------------------------------------------
    # Append children
    # ------------------------------------------------------------------

    def append_children(self, block_id: str, blocks: list[Block]) -> list[str]:
        """Append *blocks* (and their descendants) under *block_id*.

        Returns:
            The ids Notion assigned to the top-level appended blocks.
        """
        created_ids: list[str] = []
        for start in range(0, len(blocks), self.append_batch_size):
            batch = blocks[start : start + self.append_batch_size]
            response = call_api(
                self._limiter,
                self._client.blocks.children.append,
                f"append {len(batch)} blocks to {block_id}",
                block_id=block_id,
                children=[block_to_payload(block) for block in batch],
            )
            results = response.get("results") or []
            # The response lists the parent's trailing children; the last
            # len(batch) of them are the ones just created.
            batch_ids = [item.get("id", "") for item in results[-len(batch) :]]
            created_ids.extend(batch_ids)

            for block, new_id in zip(batch, batch_ids):
                if block.type == BlockType.TABLE or not block.children or not new_id:
                    continue
                self.append_children(new_id, block.children)

        return created_ids

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, block_id: str) -> None:
        call_api(
            self._limiter,
            self._client.blocks.delete,
            f"delete block {block_id}",
            block_id=block_id,
        )

    def clear_children(self, block_id: str) -> int:
        """Delete every child of *block_id*, last first.

        Returns:
            The number of blocks deleted.
        """
        children = self.list_all_children(block_id)
        for child in reversed(children):
            if child.id:
                self.delete(child.id)
        logger.debug("Cleared %d blocks under %s", len(children), block_id)
        return len(children)
