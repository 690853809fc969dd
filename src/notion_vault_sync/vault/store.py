"""Local document storage.

``LocalStore`` is the minimal file contract the sync engine needs;
``FileSystemStore`` implements it over a directory on disk.
``DocumentStore`` layers the front matter handling on top of any store, so
the engine only ever sees :class:`SyncedDocument` values.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from notion_vault_sync.remote.errors import SyncError
from notion_vault_sync.vault.frontmatter import (
    DocumentMetadata,
    join_front_matter,
    split_front_matter,
)

logger = logging.getLogger(__name__)


class LocalStoreError(SyncError):
    """A vault file could not be read or written."""


@dataclass
class SyncedDocument:
    """A vault note split into body and sync metadata."""

    path: str
    body: str
    metadata: DocumentMetadata | None = None
    # Front matter keys owned by the user (e.g. ``tags``).
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def remote_id(self) -> str | None:
        return self.metadata.remote_id if self.metadata else None

    @property
    def tags(self) -> list[str]:
        raw = self.extra.get("tags")
        if isinstance(raw, str):
            return [raw]
        if isinstance(raw, list):
            return [str(tag) for tag in raw if tag is not None]
        return []


class LocalStore(Protocol):
    """File operations over vault-relative POSIX paths."""

    def list_documents(self) -> list[str]: ...

    def read(self, path: str) -> str: ...

    def write(self, path: str, text: str) -> None: ...

    def exists(self, path: str) -> bool: ...

    def mkdir(self, path: str) -> None: ...


class FileSystemStore:
    """``LocalStore`` over a directory.

    Lists ``*.md`` files recursively, skipping dot-directories such as
    ``.obsidian`` or ``.git``.  Text is read and written byte-for-byte
    (no newline translation) so content hashes stay stable.

    Args:
        root: The vault directory.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        full = (self.root / path).resolve()
        root = self.root.resolve()
        if full != root and root not in full.parents:
            raise LocalStoreError(f"Path escapes the vault: {path}")
        return full

    def list_documents(self) -> list[str]:
        paths: list[str] = []
        for file in self.root.rglob("*.md"):
            rel = file.relative_to(self.root)
            if any(part.startswith(".") for part in rel.parts[:-1]):
                continue
            if file.is_file():
                paths.append(rel.as_posix())
        return sorted(paths)

    def read(self, path: str) -> str:
        with open(self._resolve(path), encoding="utf-8", newline="") as fh:
            return fh.read()

    def write(self, path: str, text: str) -> None:
        with open(self._resolve(path), "w", encoding="utf-8", newline="") as fh:
            fh.write(text)

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def mkdir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)


class DocumentStore:
    """Reads and writes :class:`SyncedDocument` values through a ``LocalStore``.

    Every failure of the underlying store surfaces as ``LocalStoreError``.
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    def list_paths(self) -> list[str]:
        try:
            return self.store.list_documents()
        except OSError as exc:
            raise LocalStoreError(f"Cannot list vault documents: {exc}") from exc

    def exists(self, path: str) -> bool:
        try:
            return self.store.exists(path)
        except OSError as exc:
            raise LocalStoreError(f"Cannot stat {path}: {exc}") from exc

    def load(self, path: str) -> SyncedDocument:
        data, body = split_front_matter(self._read(path))
        metadata, extra = DocumentMetadata.from_front_matter(data)
        return SyncedDocument(path=path, body=body, metadata=metadata, extra=extra)

    def save_metadata(self, path: str, metadata: DocumentMetadata) -> SyncedDocument:
        """Replace the sync metadata of *path*, keeping its current body."""
        document = self.load(path)
        document.metadata = metadata
        self._write(path, self._render(document))
        return document

    def remove_metadata(self, path: str) -> SyncedDocument:
        """Drop the sync metadata of *path*, detaching it from its remote page."""
        document = self.load(path)
        document.metadata = None
        self._write(path, self._render(document))
        return document

    def write_document(
        self,
        path: str,
        body: str,
        metadata: DocumentMetadata | None,
    ) -> SyncedDocument:
        """Write *body* and *metadata* to *path*, creating directories as needed.

        User-owned front matter of an existing file is preserved.
        """
        extra: dict[str, Any] = {}
        if self.exists(path):
            extra = self.load(path).extra
        else:
            self._ensure_parent(path)
        document = SyncedDocument(path=path, body=body, metadata=metadata, extra=extra)
        self._write(path, self._render(document))
        return document

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _render(document: SyncedDocument) -> str:
        data = dict(document.extra)
        if document.metadata is not None:
            data.update(document.metadata.to_front_matter())
        return join_front_matter(data, document.body)

    def _ensure_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if not parent:
            return
        try:
            if not self.store.exists(parent):
                self.store.mkdir(parent)
        except OSError as exc:
            raise LocalStoreError(f"Cannot create directory {parent}: {exc}") from exc

    def _read(self, path: str) -> str:
        try:
            return self.store.read(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise LocalStoreError(f"Cannot read {path}: {exc}") from exc

    def _write(self, path: str, text: str) -> None:
        try:
            self.store.write(path, text)
        except OSError as exc:
            raise LocalStoreError(f"Cannot write {path}: {exc}") from exc
        logger.debug("Wrote %s", path)
