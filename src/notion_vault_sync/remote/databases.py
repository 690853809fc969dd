"""Database-level operations against the Notion API.

Covers querying the collection that mirrors the vault and reading its
schema, which decides the name of the title property and whether tags can
be written.
"""

from __future__ import annotations

import logging
from typing import Any

from notion_client import Client

from notion_vault_sync.remote.errors import SyncError, call_api
from notion_vault_sync.remote.pages import (
    DEFAULT_TITLE_PROPERTY,
    RemoteDocument,
    document_from_page,
    title_property_name,
)
from notion_vault_sync.remote.throttle import RateLimiter

logger = logging.getLogger(__name__)

QUERY_PAGE_SIZE = 100

TAGS_PROPERTY = "Tags"


class DatabasesClient:
    """Client for the Notion database backing the vault.

    Args:
        client: A configured ``notion_client.Client`` instance.
        limiter: Rate limiter shared with the other sub-clients.
    """

    def __init__(self, client: Client, limiter: RateLimiter | None = None) -> None:
        self._client = client
        self._limiter = limiter
        self._schemas: dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(
        self,
        database_id: str,
        *,
        start_cursor: str | None = None,
        page_size: int = QUERY_PAGE_SIZE,
    ) -> tuple[list[RemoteDocument], str | None]:
        """Query one page of the database.

        Results without an id or a title are dropped.

        Returns:
            A tuple of ``(documents, next_cursor)``.  ``next_cursor`` is
            ``None`` when there are no more pages.
        """
        body: dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor

        response = call_api(
            self._limiter,
            self._client.request,
            f"query database {database_id}",
            path=f"databases/{database_id}/query",
            method="POST",
            body=body,
        )

        documents: list[RemoteDocument] = []
        for page in response.get("results") or []:
            doc = document_from_page(page)
            if doc is None:
                logger.debug("Skipping malformed query result: %s", page.get("id"))
                continue
            documents.append(doc)

        next_cursor = response.get("next_cursor") if response.get("has_more") else None
        return documents, next_cursor

    def query_all(self, database_id: str) -> list[RemoteDocument]:
        """Convenience: iterate all pages and return every document."""
        all_documents: list[RemoteDocument] = []
        cursor: str | None = None
        while True:
            documents, cursor = self.query(database_id, start_cursor=cursor)
            all_documents.extend(documents)
            if cursor is None:
                break
        return all_documents

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def retrieve(self, database_id: str) -> dict[str, Any]:
        """Return the database object, cached per database id."""
        if database_id not in self._schemas:
            self._schemas[database_id] = call_api(
                self._limiter,
                self._client.databases.retrieve,
                f"retrieve database {database_id}",
                database_id=database_id,
            )
        return self._schemas[database_id]

    def title_property(self, database_id: str) -> str:
        """Return the name of the database's title property.

        ``Name`` is preferred, then ``Title``, then any property of type
        ``title``.  Falls back to ``Name`` when the schema is unreachable.
        """
        try:
            properties = self.retrieve(database_id).get("properties") or {}
        except SyncError as exc:
            logger.warning("Could not read schema of %s, assuming '%s': %s", database_id, DEFAULT_TITLE_PROPERTY, exc)
            return DEFAULT_TITLE_PROPERTY
        return title_property_name(properties) or DEFAULT_TITLE_PROPERTY

    def has_tags(self, database_id: str) -> bool:
        """Whether the database has a ``Tags`` multi-select property."""
        try:
            properties = self.retrieve(database_id).get("properties") or {}
        except SyncError as exc:
            logger.warning("Could not read schema of %s: %s", database_id, exc)
            return False
        return (properties.get(TAGS_PROPERTY) or {}).get("type") == "multi_select"

