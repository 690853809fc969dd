"""Cross-reference between vault paths and remote page titles.

A remote page is tied to its note through its title, which is the note's
vault path followed by a colon and the note's display name::

    projects/alpha/plan.md:plan

Paths never contain a colon, so the last colon always separates the two.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from notion_vault_sync.remote.errors import ValidationError

INVALID_PATH_CHARS = frozenset('<>:"|?*')


def validate_path(path: str) -> str:
    """Return *path* unchanged if it can be synced, else raise ``ValidationError``."""
    if not path.endswith(".md"):
        raise ValidationError(f"Not a markdown document: {path!r}")
    bad = sorted(INVALID_PATH_CHARS.intersection(path))
    if bad:
        raise ValidationError(f"Path {path!r} contains invalid characters: {''.join(bad)}")
    pure = PurePosixPath(path)
    if pure.is_absolute() or ".." in pure.parts or "\\" in path:
        raise ValidationError(f"Path {path!r} must be relative to the vault")
    return path


def display_name(path: str) -> str:
    """The note's name as shown in the vault: its file stem."""
    return PurePosixPath(path).stem


def encode_title(path: str) -> str:
    """Build the remote title for the note at *path*."""
    validate_path(path)
    return f"{path}:{display_name(path)}"


def decode_title(title: str) -> tuple[str, str]:
    """Split a remote title into ``(path, display_name)``.

    Raises:
        ValidationError: If the title has no colon or an empty path.
    """
    path, sep, name = title.rpartition(":")
    if not sep or not path:
        raise ValidationError(f"Remote title {title!r} does not reference a vault path")
    return path, name
