"""Sync engine orchestrator for bidirectional vault <-> Notion sync.

Coordinates the entire sync workflow: reading local notes, querying the
database, fetching and rendering remote pages, classifying changes,
resolving conflicts, and driving the operation queue that performs the
actual uploads, downloads and archives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field

from notion_vault_sync.config import settings
from notion_vault_sync.converter.blocks_to_markdown import BlocksToMarkdownConverter
from notion_vault_sync.converter.markdown_to_blocks import MarkdownToBlocksConverter
from notion_vault_sync.remote.client import NotionClient, page_link
from notion_vault_sync.remote.errors import APIError, NetworkError, SyncError, ValidationError
from notion_vault_sync.remote.pages import RemoteDocument
from notion_vault_sync.sync.conflict import ChangeDetector, SyncAction
from notion_vault_sync.sync.mapper import decode_title, encode_title, validate_path
from notion_vault_sync.sync.queue import (
    OperationKind,
    QueueReport,
    QueueState,
    SyncOperation,
    SyncQueue,
)
from notion_vault_sync.sync.resolver import (
    ConflictRecord,
    ConflictResolver,
    DecisionProvider,
    StaticDecisionProvider,
)
from notion_vault_sync.sync.state import RemoteIdCache, compute_content_hash
from notion_vault_sync.vault.frontmatter import DocumentMetadata
from notion_vault_sync.vault.store import (
    DocumentStore,
    FileSystemStore,
    LocalStoreError,
    SyncedDocument,
)

logger = logging.getLogger(__name__)

EMPTY_HASH = compute_content_hash("")


# ------------------------------------------------------------------
# Result / Status models
# ------------------------------------------------------------------


class SyncStatusLabel(StrEnum):
    """Human-readable label for a document's sync status."""

    IN_SYNC = "in_sync"
    LOCAL_AHEAD = "local_ahead"
    REMOTE_AHEAD = "remote_ahead"
    CONFLICT = "conflict"
    UNLINKED = "unlinked"


_STATUS_FOR_ACTION = {
    SyncAction.SKIP: SyncStatusLabel.IN_SYNC,
    SyncAction.UPLOAD: SyncStatusLabel.LOCAL_AHEAD,
    SyncAction.DOWNLOAD: SyncStatusLabel.REMOTE_AHEAD,
    SyncAction.CONFLICT: SyncStatusLabel.CONFLICT,
}


class SyncStatusEntry(BaseModel):
    """Status snapshot for one vault document."""

    path: str
    status: SyncStatusLabel
    remote_id: str | None = None
    link: str = ""
    last_sync: datetime | None = None
    error: str | None = None


class SyncSummary(BaseModel):
    """Outcome of one pass over the vault."""

    uploaded: int = 0
    downloaded: int = 0
    archived: int = 0
    detached: int = 0
    skipped: int = 0
    conflicts: int = 0
    failed: int = 0
    pending: int = 0
    errors: list[str] = Field(default_factory=list)
    offline: bool = False

    def record_error(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def absorb(self, report: QueueReport) -> SyncSummary:
        """Fold a queue report into the counters."""
        for op in report.completed:
            if op.kind == OperationKind.UPLOAD:
                self.uploaded += 1
            elif op.kind == OperationKind.DOWNLOAD:
                self.downloaded += 1
            else:
                self.archived += 1
        for failure in report.failures:
            self.record_error(str(failure))
        self.pending = report.pending
        self.offline = self.offline or report.offline
        return self


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


class SyncEngine:
    """Orchestrates bidirectional sync between a vault and a Notion database.

    The engine owns the queue and the path <-> remote id cache; the cache is
    rebuilt from the vault at the start of every pass and afterwards only
    changed by completed operations.

    Args:
        client: Notion API client.
        store: Vault access.
        database_id: The database mirroring the vault.
        provider: Source of conflict and detach decisions.  Defaults to
            skipping every conflict.
        batch_size: Operations executed concurrently per batch.
        batch_delay: Seconds between batches.
        max_retries: Attempts per operation for retryable failures.
        allow_tags: Copy the front matter ``tags`` to the ``Tags`` property.
        sleep: Awaitable sleep for the queue, replaceable in tests.
    """

    def __init__(
        self,
        client: NotionClient,
        store: DocumentStore,
        database_id: str,
        provider: DecisionProvider | None = None,
        *,
        batch_size: int = 5,
        batch_delay: float = 1.0,
        max_retries: int = 3,
        allow_tags: bool = False,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.store = store
        self.database_id = database_id
        self.provider: DecisionProvider = provider or StaticDecisionProvider()
        self.allow_tags = allow_tags
        self.cache = RemoteIdCache()
        self.detector = ChangeDetector()
        self.queue = SyncQueue(
            self._execute,
            batch_size=batch_size,
            batch_delay=batch_delay,
            max_retries=max_retries,
            sleep=sleep,
        )
        self.resolver = ConflictResolver(self.provider, self.queue)
        self._to_blocks = MarkdownToBlocksConverter()
        self._to_markdown = BlocksToMarkdownConverter(fetch_children=client.fetch_children)

    @classmethod
    def from_settings(
        cls,
        provider: DecisionProvider | None = None,
        *,
        vault_dir: str | None = None,
    ) -> SyncEngine:
        """Build an engine from environment settings."""
        settings.validate()
        return cls(
            NotionClient(),
            DocumentStore(FileSystemStore(vault_dir or settings.sync_dir)),
            settings.database_id,
            provider,
            batch_size=settings.batch_size,
            batch_delay=settings.batch_delay,
            max_retries=settings.max_retries,
            allow_tags=settings.allow_tags,
        )

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def sync(self) -> SyncSummary:
        """Full bidirectional pass: archive orphans, upload, download, resolve."""
        return await self._run_pass(push=True, pull=True)

    async def push(self) -> SyncSummary:
        """Upload local changes and archive orphans; remote edits are not read."""
        return await self._run_pass(push=True, pull=False)

    async def pull(self) -> SyncSummary:
        """Download remote changes of bound notes; local-only edits stay put."""
        return await self._run_pass(push=False, pull=True)

    async def clone(self) -> SyncSummary:
        """Write every remote document whose title names a valid vault path."""
        summary = SyncSummary()
        if not await self._flush_pending(summary):
            return summary
        await self._load_documents(summary)
        remote_docs = await self._query_remote(summary)
        if remote_docs is None:
            return summary

        for remote in remote_docs:
            try:
                path, _ = decode_title(remote.title)
                validate_path(path)
            except ValidationError as exc:
                logger.warning("Not cloning %s: %s", remote.id, exc)
                summary.record_error(f"{remote.id}: {exc}")
                continue
            self.queue.enqueue(
                SyncOperation(
                    kind=OperationKind.DOWNLOAD,
                    path=path,
                    remote_id=remote.id,
                    payload=remote,
                )
            )
        return await self._drain(summary)

    async def resume(self) -> SyncSummary:
        """Connectivity is back: continue the operations left pending."""
        summary = SyncSummary()
        return summary.absorb(await self.queue.connectivity_restored())

    async def get_sync_status(self) -> list[SyncStatusEntry]:
        """Classify every vault document without changing anything."""
        documents, _ = await self._load_documents(SyncSummary())
        entries: list[SyncStatusEntry] = []
        for document in documents:
            metadata = document.metadata
            if metadata is None:
                entries.append(SyncStatusEntry(path=document.path, status=SyncStatusLabel.UNLINKED))
                continue

            error: str | None = None
            markup: str | None = None
            try:
                remote, markup = await asyncio.to_thread(self._fetch_remote, metadata.remote_id, None)
                if remote is None:
                    error = "remote page no longer exists"
            except SyncError as exc:
                error = str(exc)

            action = self.detector.classify(document, markup)
            entries.append(
                SyncStatusEntry(
                    path=document.path,
                    status=_STATUS_FOR_ACTION[action],
                    remote_id=metadata.remote_id,
                    link=metadata.link,
                    last_sync=metadata.last_sync,
                    error=error,
                )
            )
        return entries

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def _run_pass(self, *, push: bool, pull: bool) -> SyncSummary:
        summary = SyncSummary()
        if not await self._flush_pending(summary):
            return summary
        documents, complete = await self._load_documents(summary)
        remote_docs = await self._query_remote(summary)
        if remote_docs is None:
            return summary

        if push:
            self._enqueue_orphans(remote_docs, complete)

        remote_by_id = {doc.id: doc for doc in remote_docs}
        for document in documents:
            await self._plan_document(document, remote_by_id, summary, push=push, pull=pull)

        logger.info("Planned %d operations for %d documents", len(self.queue), len(documents))
        return await self._drain(summary)

    async def _flush_pending(self, summary: SyncSummary) -> bool:
        """Finish operations left by an earlier pass before planning new ones.

        Planning runs against the vault and database as those operations left
        them, so nothing is queued twice.

        Returns:
            ``False`` if the queue is still offline.
        """
        if not len(self.queue):
            return True
        logger.info("Resuming %d operations left by the previous pass", len(self.queue))
        summary.absorb(await self.queue.connectivity_restored())
        return not summary.offline

    async def _load_documents(self, summary: SyncSummary) -> tuple[list[SyncedDocument], bool]:
        """Read the vault and rebuild the cache.

        Returns:
            The readable documents, and whether every document was readable.
        """
        self.cache.clear()
        try:
            paths = await asyncio.to_thread(self.store.list_paths)
        except LocalStoreError as exc:
            summary.record_error(str(exc))
            return [], False

        documents: list[SyncedDocument] = []
        complete = True
        for path in paths:
            try:
                document = await asyncio.to_thread(self.store.load, path)
            except LocalStoreError as exc:
                logger.warning("Skipping unreadable document %s: %s", path, exc)
                summary.record_error(str(exc))
                complete = False
                continue
            documents.append(document)
            if document.remote_id:
                self.cache.bind(path, document.remote_id)
        logger.debug("Loaded %d documents, %d bound", len(documents), len(self.cache))
        return documents, complete

    async def _query_remote(self, summary: SyncSummary) -> list[RemoteDocument] | None:
        try:
            remote_docs = await asyncio.to_thread(self.client.databases.query_all, self.database_id)
        except NetworkError as exc:
            logger.warning("Cannot reach Notion: %s", exc)
            self.queue.connectivity_lost()
            summary.record_error(str(exc))
            summary.offline = True
            summary.pending = len(self.queue)
            return None
        except SyncError as exc:
            logger.error("Cannot query database %s: %s", self.database_id, exc)
            summary.record_error(str(exc))
            summary.pending = len(self.queue)
            return None

        if self.queue.state == QueueState.OFFLINE:
            self.queue.mark_online()
        return remote_docs

    def _enqueue_orphans(self, remote_docs: list[RemoteDocument], complete: bool) -> int:
        """Queue an archive for every page no vault document is bound to."""
        if not complete:
            logger.warning("Skipping orphan cleanup: some documents could not be read")
            return 0

        bound = self.cache.remote_ids()
        seen: set[str] = set()
        for remote in remote_docs:
            if remote.id in bound or remote.id in seen:
                continue
            seen.add(remote.id)
            try:
                path, _ = decode_title(remote.title)
            except ValidationError:
                path = remote.id
            logger.info("Archiving orphaned page %s (%s)", remote.id, remote.title)
            self.queue.enqueue(
                SyncOperation(kind=OperationKind.DELETE, path=path, remote_id=remote.id)
            )
        return len(seen)

    async def _plan_document(
        self,
        document: SyncedDocument,
        remote_by_id: dict[str, RemoteDocument],
        summary: SyncSummary,
        *,
        push: bool,
        pull: bool,
    ) -> None:
        remote_id = document.remote_id
        if remote_id is None:
            if push:
                self._enqueue(OperationKind.UPLOAD, document.path)
            else:
                summary.skipped += 1
            return

        remote = remote_by_id.get(remote_id)
        remote_markup: str | None = None
        if pull or remote is None:
            try:
                remote, remote_markup = await asyncio.to_thread(
                    self._fetch_remote, remote_id, remote, with_content=pull
                )
            except SyncError as exc:
                logger.warning("Cannot fetch remote page for %s: %s", document.path, exc)
                summary.record_error(f"{document.path}: {exc}")
                return
            if remote is None:
                await self._handle_missing(document, summary)
                return

        action = self.detector.classify(document, remote_markup)
        logger.debug("%s classified as %s", document.path, action)

        if action == SyncAction.UPLOAD:
            if push:
                self._enqueue(OperationKind.UPLOAD, document.path, remote_id)
            else:
                summary.skipped += 1
        elif action == SyncAction.DOWNLOAD:
            self._enqueue(OperationKind.DOWNLOAD, document.path, remote_id, payload=remote)
        elif action == SyncAction.CONFLICT:
            summary.conflicts += 1
            try:
                await self.resolver.resolve(ConflictRecord(document, remote, remote_markup))
            except Exception as exc:
                logger.error("No decision for conflict on %s: %s", document.path, exc)
                summary.record_error(f"{document.path}: {exc}")
        else:
            summary.skipped += 1
            if remote_markup is not None and self.detector.local_changed(document):
                # Both sides changed to the same content.
                await self._rebaseline(document, remote_id, remote_markup, summary)

    def _enqueue(
        self,
        kind: OperationKind,
        path: str,
        remote_id: str | None = None,
        payload: RemoteDocument | None = None,
    ) -> None:
        self.queue.enqueue(SyncOperation(kind=kind, path=path, remote_id=remote_id, payload=payload))

    def _fetch_remote(
        self,
        remote_id: str,
        known: RemoteDocument | None,
        *,
        with_content: bool = True,
    ) -> tuple[RemoteDocument | None, str | None]:
        """Fetch a page and render its body.

        Returns:
            ``(None, None)`` when the page is gone (deleted or archived).
        """
        try:
            if known is None:
                known = self.client.pages.get_document(remote_id)
                if known is None:
                    return None, None
            if not with_content:
                return known, None
            blocks = self.client.blocks.list_all_children(remote_id)
        except APIError as exc:
            if exc.not_found:
                return None, None
            raise
        markup = self._to_markdown.render_document(blocks)
        known.blocks = blocks
        return known, markup

    async def _handle_missing(self, document: SyncedDocument, summary: SyncSummary) -> None:
        logger.warning("Remote page of %s no longer exists", document.path)
        try:
            detach = await self.provider.confirm_detach(document)
        except Exception as exc:
            logger.error("No detach decision for %s: %s", document.path, exc)
            summary.record_error(f"{document.path}: {exc}")
            return
        if not detach:
            summary.skipped += 1
            return
        try:
            await asyncio.to_thread(self.store.remove_metadata, document.path)
        except LocalStoreError as exc:
            summary.record_error(str(exc))
            return
        self.cache.unbind_path(document.path)
        summary.detached += 1
        logger.info("Detached %s from its remote page", document.path)

    async def _rebaseline(
        self,
        document: SyncedDocument,
        remote_id: str,
        remote_markup: str,
        summary: SyncSummary,
    ) -> None:
        metadata = self._metadata(remote_id, document.body, remote_markup, document.path)
        try:
            await asyncio.to_thread(self.store.save_metadata, document.path, metadata)
        except LocalStoreError as exc:
            summary.record_error(str(exc))

    async def _drain(self, summary: SyncSummary) -> SyncSummary:
        report = await self.queue.process()
        summary.absorb(report)
        logger.info(
            "Sync pass finished: %d uploaded, %d downloaded, %d archived, %d failed, %d pending",
            summary.uploaded,
            summary.downloaded,
            summary.archived,
            summary.failed,
            summary.pending,
        )
        return summary

    # ------------------------------------------------------------------
    # Operation execution (worker threads)
    # ------------------------------------------------------------------

    def _execute(self, op: SyncOperation) -> None:
        if op.kind == OperationKind.UPLOAD:
            self._upload(op)
        elif op.kind == OperationKind.DOWNLOAD:
            self._download(op)
        else:
            self._archive(op)

    def _upload(self, op: SyncOperation) -> None:
        validate_path(op.path)
        document = self.store.load(op.path)
        title = encode_title(op.path)
        blocks = self._to_blocks.convert(document.body)
        tags = document.tags if self.allow_tags else []

        remote_id = document.remote_id
        if remote_id:
            self.client.pages.update_title(remote_id, title, tags=tags if self.allow_tags else None)
            self.client.blocks.clear_children(remote_id)
        else:
            remote_id = self.client.pages.create(self.database_id, title, [], tags=tags)
            # Bind before writing content so a failure below updates this
            # page on retry instead of creating another one.
            self.store.save_metadata(
                op.path,
                DocumentMetadata(
                    remote_id=remote_id,
                    link=page_link(remote_id),
                    last_sync=datetime.now(timezone.utc),
                    content_hash="",
                    remote_hash=EMPTY_HASH,
                    file_path=op.path,
                ),
            )
            self.cache.bind(op.path, remote_id)
        self.client.blocks.append_children(remote_id, blocks)

        remote_markup = self._to_markdown.render_document(
            self.client.blocks.list_all_children(remote_id)
        )
        self.store.save_metadata(
            op.path, self._metadata(remote_id, document.body, remote_markup, op.path)
        )
        self.cache.bind(op.path, remote_id)
        logger.info("Uploaded %s to %s", op.path, remote_id)

    def _download(self, op: SyncOperation) -> None:
        validate_path(op.path)
        remote = op.payload
        if remote is None:
            if not op.remote_id:
                raise ValidationError(f"Download of {op.path} has no remote page")
            remote = self.client.pages.get_document(op.remote_id)
            if remote is None:
                raise APIError(404, "object_not_found", "Remote page no longer exists", f"download {op.path}")
        if remote.blocks is None:
            remote.blocks = self.client.blocks.list_all_children(remote.id)

        markup = self._to_markdown.render_document(remote.blocks)
        self.store.write_document(op.path, markup, self._metadata(remote.id, markup, markup, op.path))
        self.cache.bind(op.path, remote.id)
        logger.info("Downloaded %s from %s", op.path, remote.id)

    def _archive(self, op: SyncOperation) -> None:
        if not op.remote_id:
            raise ValidationError(f"Archive of {op.path} has no remote page")
        try:
            self.client.pages.archive(op.remote_id)
        except APIError as exc:
            if not exc.not_found:
                raise
            logger.info("Page %s was already gone", op.remote_id)
        self.cache.unbind_id(op.remote_id)

    @staticmethod
    def _metadata(remote_id: str, body: str, remote_markup: str, path: str) -> DocumentMetadata:
        return DocumentMetadata(
            remote_id=remote_id,
            link=page_link(remote_id),
            last_sync=datetime.now(timezone.utc),
            content_hash=compute_content_hash(body),
            remote_hash=compute_content_hash(remote_markup),
            file_path=path,
        )
