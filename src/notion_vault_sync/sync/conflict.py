"""Change detection for bidirectional sync.

Compares a note's current body and path against the hashes recorded in its
front matter at the last successful sync, and the page's current rendering
against the remote hash, to decide which way (if any) the note must move.
"""

from __future__ import annotations

from enum import StrEnum

from notion_vault_sync.sync.state import compute_content_hash
from notion_vault_sync.vault.store import SyncedDocument


class SyncAction(StrEnum):
    """What a sync pass should do with one document."""

    SKIP = "skip"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    CONFLICT = "conflict"


class ChangeDetector:
    """Classifies a document by what changed since its last sync."""

    @staticmethod
    def local_changed(document: SyncedDocument) -> bool:
        """The body differs from ``contentHash`` or the note has moved."""
        metadata = document.metadata
        if metadata is None:
            return True
        if compute_content_hash(document.body) != metadata.content_hash:
            return True
        return metadata.file_path != document.path

    @staticmethod
    def remote_changed(document: SyncedDocument, remote_markup: str | None) -> bool:
        """The rendered page differs from the remote hash of the last sync.

        ``remote_markup=None`` means the remote was not inspected and is
        treated as unchanged.  Metadata written without ``remoteHash`` falls
        back to ``contentHash``.
        """
        metadata = document.metadata
        if remote_markup is None or metadata is None:
            return False
        baseline = metadata.remote_hash or metadata.content_hash
        return compute_content_hash(remote_markup) != baseline

    def classify(self, document: SyncedDocument, remote_markup: str | None) -> SyncAction:
        """Decide the action for *document*.

        Returns:
            - ``UPLOAD`` -- the note is unbound, or only the note changed.
            - ``DOWNLOAD`` -- only the remote page changed.
            - ``CONFLICT`` -- both changed to different content, or the
              note moved while the page changed.
            - ``SKIP`` -- nothing to do.
        """
        if document.metadata is None or not document.metadata.remote_id:
            return SyncAction.UPLOAD

        local = self.local_changed(document)
        remote = self.remote_changed(document, remote_markup)

        if local and remote:
            moved = document.metadata.file_path != document.path
            if not moved and remote_markup is not None and (
                compute_content_hash(remote_markup) == compute_content_hash(document.body)
            ):
                return SyncAction.SKIP
            return SyncAction.CONFLICT
        if local:
            return SyncAction.UPLOAD
        if remote:
            return SyncAction.DOWNLOAD
        return SyncAction.SKIP
