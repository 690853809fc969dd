from notion_vault_sync.remote.blocks import BlocksClient
from notion_vault_sync.remote.client import NotionClient, page_link
from notion_vault_sync.remote.databases import DatabasesClient
from notion_vault_sync.remote.errors import (
    APIError,
    NetworkError,
    SyncError,
    ValidationError,
    call_api,
)
from notion_vault_sync.remote.pages import PagesClient, RemoteDocument
from notion_vault_sync.remote.throttle import RateLimiter

__all__ = [
    "APIError",
    "BlocksClient",
    "DatabasesClient",
    "NetworkError",
    "NotionClient",
    "PagesClient",
    "RateLimiter",
    "RemoteDocument",
    "SyncError",
    "ValidationError",
    "call_api",
    "page_link",
]
