"""Content hashing and the in-memory path <-> remote id index.

The authoritative sync state lives in each document's front matter (see
``vault.frontmatter``).  At the start of every pass the engine rebuilds a
:class:`RemoteIdCache` from it so lookups in either direction are cheap.
"""

from __future__ import annotations

import hashlib
import threading


def compute_content_hash(content: str) -> str:
    """Compute a SHA-256 hash of a document body.

    The exact UTF-8 bytes are hashed; callers strip the front matter first
    so metadata updates never count as content changes.

    Args:
        content: The text content to hash.

    Returns:
        Hex-encoded SHA-256 digest string.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class RemoteIdCache:
    """Bidirectional index of vault paths and the remote pages they are bound to.

    Operations run on worker threads, so every access takes the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_path: dict[str, str] = {}
        self._by_id: dict[str, str] = {}

    def clear(self) -> None:
        with self._lock:
            self._by_path.clear()
            self._by_id.clear()

    def bind(self, path: str, remote_id: str) -> None:
        """Record that *path* is bound to *remote_id*, replacing older entries."""
        with self._lock:
            old_id = self._by_path.pop(path, None)
            if old_id is not None:
                self._by_id.pop(old_id, None)
            old_path = self._by_id.pop(remote_id, None)
            if old_path is not None:
                self._by_path.pop(old_path, None)
            self._by_path[path] = remote_id
            self._by_id[remote_id] = path

    def unbind_path(self, path: str) -> None:
        with self._lock:
            remote_id = self._by_path.pop(path, None)
            if remote_id is not None:
                self._by_id.pop(remote_id, None)

    def unbind_id(self, remote_id: str) -> None:
        with self._lock:
            path = self._by_id.pop(remote_id, None)
            if path is not None:
                self._by_path.pop(path, None)

    def remote_id_for(self, path: str) -> str | None:
        with self._lock:
            return self._by_path.get(path)

    def path_for(self, remote_id: str) -> str | None:
        with self._lock:
            return self._by_id.get(remote_id)

    def remote_ids(self) -> set[str]:
        with self._lock:
            return set(self._by_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_path)
