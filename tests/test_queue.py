import asyncio
import threading

from notion_vault_sync.remote.errors import APIError, NetworkError, ValidationError
from notion_vault_sync.sync.queue import OperationKind, QueueState, SyncOperation, SyncQueue
from notion_vault_sync.vault.store import LocalStoreError


def op(path, kind=OperationKind.UPLOAD):
    return SyncOperation(kind=kind, path=path)


class Recorder:
    """Executor that logs calls and fails on demand."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.log = []
        self._lock = threading.Lock()

    def __call__(self, operation):
        with self._lock:
            self.log.append(operation.describe())
            pending = self.failures.get(operation.path)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

    async def sleep(self, seconds):
        self.log.append(f"sleep {seconds}")


def make_queue(recorder, **kwargs):
    kwargs.setdefault("batch_delay", 1.0)
    return SyncQueue(recorder, sleep=recorder.sleep, **kwargs)


def test_enqueue_does_not_execute():
    recorder = Recorder()
    queue = make_queue(recorder)
    queue.enqueue(op("a.md"))
    assert recorder.log == []
    assert len(queue) == 1


def test_batches_are_paced():
    recorder = Recorder()
    queue = make_queue(recorder, batch_size=5)
    for i in range(7):
        queue.enqueue(op(f"{i}.md"))

    report = asyncio.run(queue.process())

    assert len(report.completed) == 7
    assert recorder.log.count("sleep 1.0") == 1
    assert recorder.log.index("sleep 1.0") == 5
    assert queue.state == QueueState.IDLE
    assert report.pending == 0


def test_same_path_never_shares_a_batch():
    recorder = Recorder()
    queue = make_queue(recorder, batch_size=5)
    queue.enqueue(op("a.md"))
    queue.enqueue(op("a.md", OperationKind.DOWNLOAD))
    queue.enqueue(op("b.md"))

    asyncio.run(queue.process())

    first, second = " ".join(recorder.log).split("sleep 1.0")
    assert "upload a.md" in first and "upload b.md" in first
    assert "download a.md" in second


def test_retry_exhaustion_reports_exactly_one_failure():
    recorder = Recorder({"a.md": [APIError(500, "internal_server_error", "boom")] * 3})
    queue = make_queue(recorder, max_retries=3, batch_delay=0)
    queue.enqueue(op("a.md"))

    report = asyncio.run(queue.process())

    assert recorder.log == ["upload a.md"] * 3
    assert len(report.failures) == 1
    assert report.failures[0].operation.retry_count == 3
    assert "boom" in str(report.failures[0])
    assert report.pending == 0


def test_transient_failure_is_retried():
    recorder = Recorder({"a.md": [RuntimeError("flaky")]})
    queue = make_queue(recorder, batch_delay=0)
    queue.enqueue(op("a.md"))

    report = asyncio.run(queue.process())

    assert len(report.completed) == 1
    assert report.failures == []


def test_retry_stays_ahead_of_later_work_on_same_path():
    recorder = Recorder({"a.md": [RuntimeError("flaky")]})
    queue = make_queue(recorder, batch_size=1, batch_delay=0)
    queue.enqueue(op("a.md"))
    queue.enqueue(op("a.md", OperationKind.DOWNLOAD))

    asyncio.run(queue.process())

    assert recorder.log == ["upload a.md", "upload a.md", "download a.md"]


def test_validation_and_local_errors_are_terminal():
    recorder = Recorder(
        {"a.md": [ValidationError("bad path")], "b.md": [LocalStoreError("disk full")]}
    )
    queue = make_queue(recorder, batch_delay=0)
    queue.enqueue(op("a.md"))
    queue.enqueue(op("b.md"))

    report = asyncio.run(queue.process())

    assert sorted(recorder.log) == ["upload a.md", "upload b.md"]
    assert len(report.failures) == 2


def test_network_failure_goes_offline_and_resumes_in_order():
    recorder = Recorder({"b.md": [NetworkError("unreachable")]})
    queue = make_queue(recorder, batch_size=1, batch_delay=0)
    for path in ("a.md", "b.md", "c.md"):
        queue.enqueue(op(path))

    report = asyncio.run(queue.process())
    assert report.offline
    assert [o.path for o in report.completed] == ["a.md"]
    assert report.failures == []
    assert [o.path for o in queue.pending] == ["b.md", "c.md"]
    assert queue.state == QueueState.OFFLINE

    # Nothing runs while offline.
    again = asyncio.run(queue.process())
    assert again.offline
    assert again.pending == 2
    assert recorder.log == ["upload a.md", "upload b.md"]

    resumed = asyncio.run(queue.connectivity_restored())
    assert not resumed.offline
    assert [o.path for o in resumed.completed] == ["b.md", "c.md"]
    assert queue.state == QueueState.IDLE
    assert len(queue) == 0


def test_rate_limited_batch_waits_longer():
    recorder = Recorder({"a.md": [APIError(429, "rate_limited", "slow down")]})
    queue = make_queue(recorder, batch_size=1, rate_limit_delay=10.0)
    queue.enqueue(op("a.md"))
    queue.enqueue(op("b.md"))

    report = asyncio.run(queue.process())

    assert recorder.log == ["upload a.md", "sleep 10.0", "upload b.md", "sleep 1.0", "upload a.md"]
    assert len(report.completed) == 2
    assert report.failures == []
