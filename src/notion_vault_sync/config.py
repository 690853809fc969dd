from __future__ import annotations

import os


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.token: str = os.environ.get("NOTION_TOKEN", "")
        self.database_id: str = os.environ.get("NOTION_DATABASE_ID", "")
        self.sync_dir: str = os.environ.get("NOTION_SYNC_DIR", ".")
        self.batch_size: int = int(os.environ.get("NOTION_SYNC_BATCH_SIZE", "5"))
        self.batch_delay: float = float(
            os.environ.get("NOTION_SYNC_BATCH_DELAY", "1.0")
        )
        self.max_retries: int = int(os.environ.get("NOTION_SYNC_MAX_RETRIES", "3"))
        self.append_batch_size: int = int(
            os.environ.get("NOTION_SYNC_APPEND_BATCH", "10")
        )
        self.requests_per_second: int = int(
            os.environ.get("NOTION_SYNC_REQUESTS_PER_SECOND", "3")
        )
        self.allow_tags: bool = os.environ.get(
            "NOTION_SYNC_TAGS", "false"
        ).lower() in ("1", "true", "yes")

    def validate(self) -> None:
        if not self.token:
            raise ValueError("NOTION_TOKEN environment variable is required")
        if not self.database_id:
            raise ValueError("NOTION_DATABASE_ID environment variable is required")
        if self.batch_size < 1:
            raise ValueError("NOTION_SYNC_BATCH_SIZE must be at least 1")
        if self.max_retries < 1:
            raise ValueError("NOTION_SYNC_MAX_RETRIES must be at least 1")


settings = Settings()
