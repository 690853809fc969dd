"""Conflict resolution through a pluggable decision provider.

When both a note and its page changed since the last sync, the engine hands
a :class:`ConflictRecord` to :class:`ConflictResolver`, which awaits the
provider's choice and turns it into queue operations.  The provider decides
how the choice is obtained: a fixed policy, a terminal prompt, or anything
else implementing :class:`DecisionProvider`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from notion_vault_sync.remote.pages import RemoteDocument
from notion_vault_sync.sync.differ import SyncDiffer
from notion_vault_sync.sync.queue import OperationKind, SyncOperation, SyncQueue
from notion_vault_sync.vault.store import SyncedDocument

logger = logging.getLogger(__name__)


class Resolution(StrEnum):
    """Outcomes a decision provider can choose for a conflict."""

    LOCAL = "local"
    REMOTE = "remote"
    INSPECT = "inspect"
    SKIP = "skip"


@dataclass
class ConflictRecord:
    """Both sides of a conflicted document.  Never persisted."""

    document: SyncedDocument
    remote: RemoteDocument
    remote_markdown: str


class DecisionProvider(Protocol):
    async def choose(self, record: ConflictRecord) -> Resolution:
        """Pick how to resolve *record*."""
        ...

    async def show_differences(self, record: ConflictRecord, diff: str) -> None:
        """Present *diff* (remote -> local) before the next choice."""
        ...

    async def confirm_detach(self, document: SyncedDocument) -> bool:
        """Whether to unbind *document* whose remote page no longer exists."""
        ...


class StaticDecisionProvider:
    """Resolves every conflict the same way, without asking anyone.

    Args:
        resolution: The outcome applied to every conflict.  ``INSPECT`` is
            rejected since nobody would ever answer after the diff.
        detach: Answer for documents whose remote page is gone.
    """

    def __init__(self, resolution: Resolution = Resolution.SKIP, *, detach: bool = False) -> None:
        resolution = Resolution(resolution)
        if resolution == Resolution.INSPECT:
            raise ValueError("A static decision provider cannot inspect conflicts")
        self.resolution = resolution
        self.detach = detach

    async def choose(self, record: ConflictRecord) -> Resolution:
        return self.resolution

    async def show_differences(self, record: ConflictRecord, diff: str) -> None:
        logger.info("Differences for %s:\n%s", record.document.path, diff)

    async def confirm_detach(self, document: SyncedDocument) -> bool:
        return self.detach


class ConflictResolver:
    """Turns decision-provider choices into queued operations.

    Args:
        provider: Source of decisions.
        queue: Queue receiving the resulting upload or download.
        differ: Diff builder for the inspect outcome.
    """

    def __init__(
        self,
        provider: DecisionProvider,
        queue: SyncQueue,
        differ: SyncDiffer | None = None,
    ) -> None:
        self.provider = provider
        self.queue = queue
        self.differ = differ or SyncDiffer()

    async def resolve(self, record: ConflictRecord) -> Resolution:
        """Ask the provider until it settles, then enqueue the outcome.

        Returns:
            The final resolution (never ``INSPECT``).
        """
        document = record.document
        while True:
            choice = Resolution(await self.provider.choose(record))
            logger.info("Conflict on %s resolved as '%s'", document.path, choice)

            if choice == Resolution.INSPECT:
                diff = self.differ.compute_diff(document.body, record.remote_markdown, document.path)
                await self.provider.show_differences(record, diff)
                continue

            if choice == Resolution.LOCAL:
                self.queue.enqueue(
                    SyncOperation(
                        kind=OperationKind.UPLOAD,
                        path=document.path,
                        remote_id=document.remote_id,
                    )
                )
            elif choice == Resolution.REMOTE:
                self.queue.enqueue(
                    SyncOperation(
                        kind=OperationKind.DOWNLOAD,
                        path=document.path,
                        remote_id=record.remote.id,
                        payload=record.remote,
                    )
                )
            return choice
