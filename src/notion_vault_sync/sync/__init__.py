"""Sync engine package for bidirectional vault <-> Notion synchronization."""

from notion_vault_sync.sync.conflict import ChangeDetector, SyncAction
from notion_vault_sync.sync.differ import SyncDiffer
from notion_vault_sync.sync.engine import (
    SyncEngine,
    SyncStatusEntry,
    SyncStatusLabel,
    SyncSummary,
)
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
    Resolution,
    StaticDecisionProvider,
)
from notion_vault_sync.sync.state import RemoteIdCache, compute_content_hash

__all__ = [
    "ChangeDetector",
    "ConflictRecord",
    "ConflictResolver",
    "DecisionProvider",
    "OperationKind",
    "QueueReport",
    "QueueState",
    "RemoteIdCache",
    "Resolution",
    "StaticDecisionProvider",
    "SyncAction",
    "SyncDiffer",
    "SyncEngine",
    "SyncOperation",
    "SyncQueue",
    "SyncStatusEntry",
    "SyncStatusLabel",
    "SyncSummary",
    "compute_content_hash",
    "decode_title",
    "encode_title",
    "validate_path",
]
