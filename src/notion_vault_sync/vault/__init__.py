"""Local vault access: file storage and front matter metadata."""

from notion_vault_sync.vault.frontmatter import (
    DocumentMetadata,
    join_front_matter,
    split_front_matter,
)
from notion_vault_sync.vault.store import (
    DocumentStore,
    FileSystemStore,
    LocalStore,
    LocalStoreError,
    SyncedDocument,
)

__all__ = [
    "DocumentMetadata",
    "DocumentStore",
    "FileSystemStore",
    "LocalStore",
    "LocalStoreError",
    "SyncedDocument",
    "join_front_matter",
    "split_front_matter",
]
