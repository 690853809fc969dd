"""Shared fixtures: an in-memory Notion workspace and an in-memory vault."""

from __future__ import annotations

import functools
import itertools
import json
import threading
from typing import Any

import httpx
import pytest
from notion_client.errors import HTTPResponseError

from notion_vault_sync.remote.client import NotionClient
from notion_vault_sync.vault.store import DocumentStore

DATABASE_ID = "db-1"


def http_error(status: int, code: str = "", message: str = "failed") -> HTTPResponseError:
    """Build the exception the SDK raises for an error response."""
    body = json.dumps({"object": "error", "status": status, "code": code, "message": message})
    return HTTPResponseError(httpx.Response(status, text=body))


def title_of(page: dict[str, Any]) -> str:
    return "".join(item["text"]["content"] for item in page["properties"]["Name"]["title"])


class _Namespace:
    pass


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class FakeNotion:
    """Just enough of ``notion_client.Client`` for the sync engine.

    Pages live in ``pages``; block children (stored as API payloads with
    ids) live in ``children`` keyed by parent id.  ``failures`` maps a method
    name such as ``"pages.create"`` to exceptions raised by the next calls.
    """

    def __init__(self, *, has_tags: bool = True) -> None:
        self.pages: dict[str, dict[str, Any]] = {}
        self.children: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.has_tags = has_tags
        self._ids = itertools.count(1)
        # Operations run on worker threads.
        self._lock = threading.RLock()

        self.pages_api = _Namespace()
        self.pages_api.create = self._create_page
        self.pages_api.update = self._update_page
        self.pages_api.retrieve = self._retrieve_page

        self.blocks = _Namespace()
        self.blocks.delete = self._delete_block
        self.blocks.children = _Namespace()
        self.blocks.children.list = self._list_children
        self.blocks.children.append = self._append_children

        self.databases = _Namespace()
        self.databases.retrieve = self._retrieve_database

    # ------------------------------------------------------------------
    # Helpers for tests
    # ------------------------------------------------------------------

    def add_page(self, title: str, paragraphs: tuple[str, ...] = (), *, page_id: str | None = None) -> str:
        page_id = page_id or self._new_id("page")
        self.pages[page_id] = {
            "object": "page",
            "id": page_id,
            "url": f"https://www.notion.so/{page_id}",
            "archived": False,
            "parent": {"type": "database_id", "database_id": DATABASE_ID},
            "properties": {
                "Name": {"type": "title", "title": [{"type": "text", "text": {"content": title}}]}
            },
        }
        self.children[page_id] = []
        for text in paragraphs:
            self._store_child(page_id, _paragraph(text))
        return page_id

    def set_paragraphs(self, page_id: str, *paragraphs: str) -> None:
        self.children[page_id] = []
        for text in paragraphs:
            self._store_child(page_id, _paragraph(text))

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for method, kwargs in self.calls if method == name]

    # ------------------------------------------------------------------
    # SDK surface
    # ------------------------------------------------------------------

    @_locked
    def request(self, path: str, method: str, body: dict[str, Any] | None = None, **_: Any) -> dict[str, Any]:
        self._record("request", path=path, method=method, body=body)
        database_id = path.split("/")[1]
        results = [
            page
            for page in self.pages.values()
            if not page["archived"] and page["parent"]["database_id"] == database_id
        ]
        body = body or {}
        start = int(body.get("start_cursor") or 0)
        size = body.get("page_size", 100)
        chunk = results[start : start + size]
        more = start + size < len(results)
        return {"results": chunk, "has_more": more, "next_cursor": str(start + size) if more else None}

    @_locked
    def _create_page(self, parent: dict[str, Any], properties: dict[str, Any], **_: Any) -> dict[str, Any]:
        self._record("pages.create", parent=parent, properties=properties)
        title = "".join(item["text"]["content"] for item in properties["Name"]["title"])
        page_id = self.add_page(title)
        self.pages[page_id]["properties"].update(
            {k: v for k, v in properties.items() if k != "Name"}
        )
        return self.pages[page_id]

    @_locked
    def _update_page(self, page_id: str, **kwargs: Any) -> dict[str, Any]:
        self._record("pages.update", page_id=page_id, **kwargs)
        page = self._page(page_id)
        if "archived" in kwargs:
            page["archived"] = kwargs["archived"]
        for name, value in (kwargs.get("properties") or {}).items():
            page["properties"][name] = {"type": "title" if name == "Name" else "multi_select", **value}
        return page

    @_locked
    def _retrieve_page(self, page_id: str, **_: Any) -> dict[str, Any]:
        self._record("pages.retrieve", page_id=page_id)
        return self._page(page_id)

    @_locked
    def _retrieve_database(self, database_id: str, **_: Any) -> dict[str, Any]:
        self._record("databases.retrieve", database_id=database_id)
        properties: dict[str, Any] = {"Name": {"type": "title", "title": {}}}
        if self.has_tags:
            properties["Tags"] = {"type": "multi_select", "multi_select": {"options": []}}
        return {"object": "database", "id": database_id, "properties": properties}

    @_locked
    def _list_children(self, block_id: str, page_size: int = 100, start_cursor: str | None = None, **_: Any) -> dict[str, Any]:
        self._record("blocks.children.list", block_id=block_id, start_cursor=start_cursor)
        if block_id not in self.children:
            raise http_error(404, "object_not_found", f"Could not find block with ID: {block_id}")
        items = self.children[block_id]
        start = int(start_cursor or 0)
        chunk = items[start : start + page_size]
        more = start + page_size < len(items)
        return {"results": chunk, "has_more": more, "next_cursor": str(start + page_size) if more else None}

    @_locked
    def _append_children(self, block_id: str, children: list[dict[str, Any]], **_: Any) -> dict[str, Any]:
        self._record("blocks.children.append", block_id=block_id, children=children)
        created = [self._store_child(block_id, payload) for payload in children]
        for items in self.children.values():
            for item in items:
                if item["id"] == block_id:
                    item["has_children"] = True
        return {"results": created}

    @_locked
    def _delete_block(self, block_id: str, **_: Any) -> dict[str, Any]:
        self._record("blocks.delete", block_id=block_id)
        for items in self.children.values():
            for item in items:
                if item["id"] == block_id:
                    items.remove(item)
                    return item
        raise http_error(404, "object_not_found", f"Could not find block with ID: {block_id}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        pending = self.failures.get(name)
        if pending:
            raise pending.pop(0)

    def _page(self, page_id: str) -> dict[str, Any]:
        if page_id not in self.pages:
            raise http_error(404, "object_not_found", f"Could not find page with ID: {page_id}")
        return self.pages[page_id]

    def _store_child(self, parent_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        block_type = payload["type"]
        body = dict(payload[block_type])
        nested = body.pop("children", None) or []
        block_id = self._new_id("block")
        stored = {
            "object": "block",
            "id": block_id,
            "type": block_type,
            block_type: body,
            "has_children": False,
        }
        self.children.setdefault(parent_id, []).append(stored)
        self.children[block_id] = []
        for child in nested:
            self._store_child(block_id, child)
        stored["has_children"] = bool(self.children[block_id])
        return stored


def _paragraph(text: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": [{"type": "text", "text": {"content": text}}]},
    }


class FakeSDK:
    """Exposes a :class:`FakeNotion` under the attribute names of the SDK client."""

    def __init__(self, notion: FakeNotion) -> None:
        self.state = notion
        self.pages = notion.pages_api
        self.blocks = notion.blocks
        self.databases = notion.databases
        self.request = notion.request


class MemoryStore:
    """``LocalStore`` over a dict of path -> text."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.dirs: set[str] = set()
        self.unreadable: set[str] = set()

    def list_documents(self) -> list[str]:
        return sorted(path for path in self.files if path.endswith(".md"))

    def read(self, path: str) -> str:
        if path in self.unreadable:
            raise PermissionError(f"Permission denied: {path}")
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write(self, path: str, text: str) -> None:
        self.files[path] = text

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    def mkdir(self, path: str) -> None:
        self.dirs.add(path)


@pytest.fixture
def notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def client(notion: FakeNotion) -> NotionClient:
    return NotionClient(raw_client=FakeSDK(notion), requests_per_second=10_000)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def documents(memory_store: MemoryStore) -> DocumentStore:
    return DocumentStore(memory_store)
