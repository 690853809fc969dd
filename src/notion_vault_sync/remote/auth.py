"""Token handling around notion-client.

Notion integrations authenticate with a static bearer token, which the SDK
attaches to every request.  This module builds the ``notion_client.Client``
configured from application settings.
"""

from __future__ import annotations

import logging

from notion_client import Client

from notion_vault_sync.config import settings
from notion_vault_sync.remote.errors import ValidationError

NOTION_VERSION = "2022-06-28"

DEFAULT_TIMEOUT_MS = 60_000


def build_notion_client(
    *,
    token: str | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    log_level: int = logging.WARNING,
) -> Client:
    """Build a configured ``notion_client.Client``.

    Args:
        token: Integration token. Falls back to ``settings.token``.
        timeout_ms: Per-request timeout handed to the HTTP transport.
        log_level: SDK log verbosity. Defaults to WARNING.

    Returns:
        A client pinned to Notion-Version ``2022-06-28``.

    Raises:
        ValidationError: If no token is configured.
    """
    resolved_token = token or settings.token
    if not resolved_token:
        raise ValidationError(
            "Notion token is required. Set NOTION_TOKEN env var or pass token explicitly."
        )

    return Client(
        auth=resolved_token,
        notion_version=NOTION_VERSION,
        timeout_ms=timeout_ms,
        log_level=log_level,
    )
