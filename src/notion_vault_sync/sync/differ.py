"""Unified diff between a note and its remote page.

Shown to the user when they choose to inspect a conflict before deciding
which side wins.
"""

from __future__ import annotations

import difflib


class SyncDiffer:
    """Stateless helper for displaying changes between a local note and the
    Markdown rendered from its remote page.
    """

    @staticmethod
    def compute_diff(local_content: str, remote_content: str, path: str = "") -> str:
        """Generate a unified diff from the remote content to the local content.

        Both inputs are normalized to ``\\n`` line endings before
        comparison to avoid spurious line-ending differences.

        Args:
            local_content: The body of the local note.
            remote_content: The Markdown rendered from the remote page.
            path: Optional vault path used in the diff headers.

        Returns:
            A unified diff string.  Empty string if the contents are
            identical after normalization.
        """
        local_lines = _lines(local_content)
        remote_lines = _lines(remote_content)
        suffix = f" {path}" if path else ""

        diff = difflib.unified_diff(
            remote_lines,
            local_lines,
            fromfile=f"remote (Notion){suffix}",
            tofile=f"local (vault){suffix}",
        )
        return "".join(diff)


def _lines(text: str) -> list[str]:
    lines = text.replace("\r\n", "\n").replace("\r", "\n").splitlines(keepends=True)
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"
    return lines
