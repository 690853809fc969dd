"""Page-level operations against the Notion API.

Each synced document is one page of the vault's database.  Its title
property carries the document's vault path; its body is the page's block
children, written through :class:`BlocksClient`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from notion_client import Client

from notion_vault_sync.converter.block_types import Block
from notion_vault_sync.remote.errors import call_api
from notion_vault_sync.remote.throttle import RateLimiter

if TYPE_CHECKING:
    from notion_vault_sync.remote.blocks import BlocksClient
    from notion_vault_sync.remote.databases import DatabasesClient

logger = logging.getLogger(__name__)

DEFAULT_TITLE_PROPERTY = "Name"


@dataclass
class RemoteDocument:
    """A page of the vault's database."""

    id: str
    title: str
    url: str = ""
    tags: list[str] = field(default_factory=list)
    last_edited_time: str = ""
    parent_database_id: str = ""
    # Resolved lazily; ``None`` until the page body has been fetched.
    blocks: list[Block] | None = None


def title_property_name(properties: dict[str, Any]) -> str | None:
    """Pick the title property out of a schema or page ``properties`` dict."""
    for preferred in (DEFAULT_TITLE_PROPERTY, "Title"):
        if (properties.get(preferred) or {}).get("type") == "title":
            return preferred
    for name, prop in properties.items():
        if (prop or {}).get("type") == "title":
            return name
    return None


def document_from_page(page: dict[str, Any]) -> RemoteDocument | None:
    """Build a :class:`RemoteDocument` from a page object.

    Returns ``None`` for pages without an id or a non-empty title.
    """
    page_id = page.get("id")
    properties = page.get("properties") or {}
    title_name = title_property_name(properties)
    if not page_id or title_name is None:
        return None

    title = "".join(
        item.get("plain_text") or (item.get("text") or {}).get("content", "")
        for item in properties[title_name].get("title") or []
    )
    if not title:
        return None

    tags_prop = properties.get("Tags") or {}
    tags = [
        option.get("name", "")
        for option in tags_prop.get("multi_select") or []
        if option.get("name")
    ]
    parent = page.get("parent") or {}
    return RemoteDocument(
        id=page_id,
        title=title,
        url=page.get("url", ""),
        tags=tags,
        last_edited_time=page.get("last_edited_time", ""),
        parent_database_id=parent.get("database_id", ""),
    )


def _title_value(title: str) -> dict[str, Any]:
    return {"title": [{"type": "text", "text": {"content": title}}]}


def _tags_value(tags: Sequence[str]) -> dict[str, Any]:
    return {"multi_select": [{"name": tag} for tag in tags]}


class PagesClient:
    """Client for the pages of the vault's database.

    Args:
        client: A configured ``notion_client.Client`` instance.
        limiter: Rate limiter shared with the other sub-clients.
        databases: Used to resolve the schema's title and tag properties.
        blocks: Used to write page bodies.
    """

    def __init__(
        self,
        client: Client,
        limiter: RateLimiter | None,
        databases: DatabasesClient,
        blocks: BlocksClient,
    ) -> None:
        self._client = client
        self._limiter = limiter
        self._databases = databases
        self._blocks = blocks

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, page_id: str) -> dict[str, Any]:
        """Return the raw page object."""
        return call_api(
            self._limiter,
            self._client.pages.retrieve,
            f"retrieve page {page_id}",
            page_id=page_id,
        )

    def get_document(self, page_id: str) -> RemoteDocument | None:
        """Return the page as a :class:`RemoteDocument`, or ``None`` if archived."""
        page = self.retrieve(page_id)
        if page.get("archived") or page.get("in_trash"):
            return None
        document = document_from_page(page)
        if document is None:
            # Untitled pages still exist; only the title is unusable.
            return RemoteDocument(id=page.get("id") or page_id, title="", url=page.get("url", ""))
        return document

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        database_id: str,
        title: str,
        blocks: list[Block],
        tags: Sequence[str] = (),
    ) -> str:
        """Create a page in *database_id* and write *blocks* as its body.

        Returns:
            The new page's id.
        """
        properties: dict[str, Any] = {
            self._databases.title_property(database_id): _title_value(title)
        }
        if tags and self._databases.has_tags(database_id):
            properties["Tags"] = _tags_value(tags)

        page = call_api(
            self._limiter,
            self._client.pages.create,
            f"create page '{title}'",
            parent={"database_id": database_id},
            properties=properties,
        )
        page_id: str = page["id"]
        logger.info("Created page %s for '%s'", page_id, title)

        if blocks:
            self._blocks.append_children(page_id, blocks)
        return page_id

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_title(
        self,
        page_id: str,
        title: str,
        tags: Sequence[str] | None = None,
    ) -> None:
        """Rename a page, optionally replacing its tags.

        The title property name is read from the page itself, falling back to
        the parent database's schema.
        """
        page = self.retrieve(page_id)
        properties = page.get("properties") or {}
        database_id = (page.get("parent") or {}).get("database_id", "")

        title_name = title_property_name(properties)
        if title_name is None:
            title_name = (
                self._databases.title_property(database_id)
                if database_id
                else DEFAULT_TITLE_PROPERTY
            )

        update: dict[str, Any] = {title_name: _title_value(title)}
        if tags is not None and (properties.get("Tags") or {}).get("type") == "multi_select":
            update["Tags"] = _tags_value(tags)

        call_api(
            self._limiter,
            self._client.pages.update,
            f"update title of {page_id}",
            page_id=page_id,
            properties=update,
        )

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive(self, page_id: str) -> None:
        """Move a page to the trash; Notion has no hard delete."""
        call_api(
            self._limiter,
            self._client.pages.update,
            f"archive page {page_id}",
            page_id=page_id,
            archived=True,
        )
        logger.info("Archived page %s", page_id)
