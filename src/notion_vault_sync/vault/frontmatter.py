"""YAML front matter holding per-document sync metadata.

A synced note starts with a front matter block::

    ---
    tags: [reading]
    remoteID: 0f1e2d3c-...
    link: https://www.notion.so/0f1e2d3c...
    lastSync: '2024-05-01T12:00:00+00:00'
    contentHash: 9b74c9897bac770ffc029102a200c5de...
    remoteHash: 9b74c9897bac770ffc029102a200c5de...
    filePath: notes/today.md
    ---

The sync keys are modelled by :class:`DocumentMetadata`; every other key
belongs to the user and is carried through untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DELIMITER = "---"

METADATA_KEYS: tuple[str, ...] = (
    "remoteID",
    "link",
    "lastSync",
    "contentHash",
    "remoteHash",
    "filePath",
)


class DocumentMetadata(BaseModel):
    """Sync state recorded in a document's front matter."""

    model_config = ConfigDict(populate_by_name=True)

    remote_id: str = Field(alias="remoteID")
    link: str = ""
    last_sync: datetime | None = Field(default=None, alias="lastSync")
    content_hash: str = Field(default="", alias="contentHash")
    remote_hash: str | None = Field(default=None, alias="remoteHash")
    file_path: str | None = Field(default=None, alias="filePath")

    @classmethod
    def from_front_matter(
        cls, data: dict[str, Any] | None
    ) -> tuple[DocumentMetadata | None, dict[str, Any]]:
        """Split parsed front matter into sync metadata and user keys.

        Returns ``(None, extra)`` when the document is not bound to a remote
        page or its sync keys are malformed.
        """
        if not data:
            return None, {}
        extra = {k: v for k, v in data.items() if k not in METADATA_KEYS}
        if not data.get("remoteID"):
            return None, extra
        try:
            metadata = cls.model_validate(
                {k: data[k] for k in METADATA_KEYS if data.get(k) is not None}
            )
        except pydantic.ValidationError as exc:
            logger.warning("Ignoring malformed sync metadata: %s", exc)
            return None, extra
        return metadata, extra

    def to_front_matter(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def split_front_matter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Separate the front matter mapping from the document body.

    Returns ``(None, text)`` when there is no front matter, when it is not
    terminated, or when it is not a valid YAML mapping.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return None, text

    for index in range(1, len(lines)):
        if lines[index].rstrip() == DELIMITER:
            break
    else:
        return None, text

    header = "".join(lines[1:index])
    body = "".join(lines[index + 1 :])
    try:
        data = yaml.safe_load(header) if header.strip() else {}
    except yaml.YAMLError as exc:
        logger.warning("Invalid front matter, treating document as unsynced: %s", exc)
        return None, text
    if not isinstance(data, dict):
        logger.warning("Front matter is not a mapping, treating document as unsynced")
        return None, text
    return data, body


def join_front_matter(data: dict[str, Any] | None, body: str) -> str:
    """Prefix *body* with *data* as front matter; no header when *data* is empty."""
    if not data:
        return body
    dumped = yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"{DELIMITER}\n{dumped}{DELIMITER}\n{body}"
