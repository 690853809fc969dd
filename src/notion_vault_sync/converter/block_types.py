"""Typed block tree shared by the Markdown and Notion converters.

``BlockType`` values are the Notion API ``type`` strings, so a block can be
serialized to a request payload without a lookup table.  Blocks whose type
the converters do not understand are kept as ``UNSUPPORTED`` with the
original type name in ``raw_type``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

# Markdown for an empty paragraph, which Notion pages use as spacing.
EMPTY_PARAGRAPH = "&nbsp;"


class BlockType(StrEnum):
    """Notion block type identifiers understood by the converters."""

    PARAGRAPH = "paragraph"
    HEADING1 = "heading_1"
    HEADING2 = "heading_2"
    HEADING3 = "heading_3"
    BULLETED = "bulleted_list_item"
    NUMBERED = "numbered_list_item"
    TODO = "to_do"
    CODE = "code"
    QUOTE = "quote"
    DIVIDER = "divider"
    TABLE = "table"
    TABLE_ROW = "table_row"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------

    @classmethod
    def heading_types(cls) -> frozenset[BlockType]:
        """Return the set of all heading block types."""
        return frozenset({cls.HEADING1, cls.HEADING2, cls.HEADING3})

    @classmethod
    def list_types(cls) -> frozenset[BlockType]:
        """Return the block types rendered as Markdown list items."""
        return frozenset({cls.BULLETED, cls.NUMBERED, cls.TODO})

    @classmethod
    def heading_level(cls, block_type: BlockType | str) -> int | None:
        """Return the heading level (1-3) for a heading block type, or ``None``."""
        bt = cls.from_value(block_type)
        if bt in cls.heading_types():
            return int(bt.value[-1])
        return None

    @classmethod
    def heading(cls, level: int) -> BlockType:
        """Return the heading type for *level*, clamped to the 1-3 range."""
        level = min(max(level, 1), 3)
        return cls(f"heading_{level}")

    @classmethod
    def from_value(cls, value: str) -> BlockType:
        """Resolve a type string to a ``BlockType``, falling back to ``UNSUPPORTED``."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNSUPPORTED


@dataclass
class Annotations:
    """Inline formatting flags of a rich-text span."""

    bold: bool = False
    italic: bool = False
    code: bool = False
    strikethrough: bool = False


@dataclass
class RichTextSpan:
    """A run of text sharing one set of annotations and an optional link."""

    text: str
    annotations: Annotations = field(default_factory=Annotations)
    link: str | None = None

    def same_style(self, other: RichTextSpan) -> bool:
        return self.annotations == other.annotations and self.link == other.link


@dataclass
class Block:
    """One node of a document's block tree.

    ``children`` is ``None`` when the remote service reported children
    (``has_children``) that have not been fetched yet; an empty list means
    the block has no children.  ``id`` and ``has_children`` describe where
    the block came from and are excluded from equality.
    """

    type: BlockType
    rich_text: list[RichTextSpan] = field(default_factory=list)
    children: list[Block] | None = field(default_factory=list)
    id: str | None = field(default=None, compare=False)
    has_children: bool = field(default=False, compare=False)
    checked: bool = False
    language: str = ""
    url: str = ""
    table_width: int = 0
    has_column_header: bool = False
    cells: list[list[RichTextSpan]] = field(default_factory=list)
    raw_type: str = ""

    @property
    def plain_text(self) -> str:
        return "".join(span.text for span in self.rich_text)

    @property
    def needs_children(self) -> bool:
        """True when children exist remotely but are not loaded yet."""
        return self.children is None and self.has_children


def plain_span(text: str) -> RichTextSpan:
    """Build an unformatted span."""
    return RichTextSpan(text=text)
