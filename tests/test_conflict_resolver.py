import asyncio

import pytest

from notion_vault_sync.remote.pages import RemoteDocument
from notion_vault_sync.sync.conflict import ChangeDetector, SyncAction
from notion_vault_sync.sync.queue import OperationKind, SyncQueue
from notion_vault_sync.sync.resolver import (
    ConflictRecord,
    ConflictResolver,
    Resolution,
    StaticDecisionProvider,
)
from notion_vault_sync.sync.state import compute_content_hash
from notion_vault_sync.vault.frontmatter import DocumentMetadata
from notion_vault_sync.vault.store import SyncedDocument

BASE = "base\n"


def bound(body=BASE, *, path="a.md", file_path="a.md", remote_hash=BASE):
    meta = DocumentMetadata(
        remote_id="page-1",
        content_hash=compute_content_hash(BASE),
        remote_hash=compute_content_hash(remote_hash) if remote_hash is not None else None,
        file_path=file_path,
    )
    return SyncedDocument(path=path, body=body, metadata=meta)


# ---------------------------------------------------------------------------
# ChangeDetector
# ---------------------------------------------------------------------------

detector = ChangeDetector()


def test_unbound_document_is_uploaded():
    assert detector.classify(SyncedDocument(path="a.md", body="x"), None) == SyncAction.UPLOAD


def test_unchanged_document_is_skipped():
    assert detector.classify(bound(), BASE) == SyncAction.SKIP


def test_local_change_uploads():
    assert detector.classify(bound("edited\n"), BASE) == SyncAction.UPLOAD


def test_remote_change_downloads():
    assert detector.classify(bound(), "remote edit\n") == SyncAction.DOWNLOAD


def test_both_changed_to_same_content_is_skipped():
    assert detector.classify(bound("same\n"), "same\n") == SyncAction.SKIP


def test_both_changed_differently_conflicts():
    assert detector.classify(bound("local\n"), "remote\n") == SyncAction.CONFLICT


def test_moved_document_uploads_when_remote_unchanged():
    assert detector.classify(bound(path="new/a.md"), BASE) == SyncAction.UPLOAD


def test_moved_document_with_remote_change_conflicts():
    document = bound("moved\n", path="new/a.md")
    assert detector.classify(document, "moved\n") == SyncAction.CONFLICT


def test_missing_remote_hash_falls_back_to_content_hash():
    assert detector.classify(bound(remote_hash=None), BASE) == SyncAction.SKIP
    assert detector.classify(bound(remote_hash=None), "other\n") == SyncAction.DOWNLOAD


def test_uninspected_remote_counts_as_unchanged():
    assert detector.classify(bound(), None) == SyncAction.SKIP
    assert detector.classify(bound("edited\n"), None) == SyncAction.UPLOAD


def test_remote_rendering_differing_from_local_is_not_a_change():
    # The page renders differently from the note, but matches the last sync.
    document = bound(remote_hash="# Title\n\n- one\n")
    assert detector.classify(document, "# Title\n\n- one\n") == SyncAction.SKIP


# ---------------------------------------------------------------------------
# ConflictResolver
# ---------------------------------------------------------------------------


class ScriptedProvider:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.diffs = []

    async def choose(self, record):
        return self.answers.pop(0)

    async def show_differences(self, record, diff):
        self.diffs.append(diff)

    async def confirm_detach(self, document):
        return False


def record():
    remote = RemoteDocument(id="page-1", title="a.md:a", blocks=[])
    return ConflictRecord(bound("local line\n"), remote, "remote line\n")


def resolve(provider):
    queue = SyncQueue(lambda op: None)
    choice = asyncio.run(ConflictResolver(provider, queue).resolve(record()))
    return choice, queue.pending


def test_inspect_shows_diff_then_asks_again():
    provider = ScriptedProvider(Resolution.INSPECT, Resolution.LOCAL)
    choice, pending = resolve(provider)

    assert choice == Resolution.LOCAL
    assert len(provider.diffs) == 1
    assert "-remote line" in provider.diffs[0]
    assert "+local line" in provider.diffs[0]
    assert [(op.kind, op.path, op.remote_id) for op in pending] == [
        (OperationKind.UPLOAD, "a.md", "page-1")
    ]


def test_remote_choice_enqueues_download_with_payload():
    choice, pending = resolve(ScriptedProvider(Resolution.REMOTE))
    assert choice == Resolution.REMOTE
    assert pending[0].kind == OperationKind.DOWNLOAD
    assert pending[0].payload.id == "page-1"


def test_skip_enqueues_nothing():
    choice, pending = resolve(StaticDecisionProvider())
    assert choice == Resolution.SKIP
    assert pending == []


def test_static_provider_cannot_inspect():
    with pytest.raises(ValueError):
        StaticDecisionProvider(Resolution.INSPECT)
    assert StaticDecisionProvider("local").resolution == Resolution.LOCAL
