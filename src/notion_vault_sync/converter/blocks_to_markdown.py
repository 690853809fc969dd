"""Convert a tree of :class:`Block` values into a Markdown string.

Blocks fetched from Notion may arrive without their children: the API only
reports ``has_children`` and the caller is expected to request them
separately.  The converter takes an optional ``fetch_children`` callable and
loads such children on demand, caching them on the block so a tree is only
fetched once however often it is rendered.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from notion_vault_sync.converter.block_types import (
    EMPTY_PARAGRAPH,
    Block,
    BlockType,
    RichTextSpan,
)
from notion_vault_sync.converter.rich_text import (
    escape_line_start,
    escape_markdown,
    link_destination,
    spans_to_markdown,
)

logger = logging.getLogger(__name__)

FetchChildren = Callable[[str], list[Block]]

_INDENT = "    "


class BlocksToMarkdownConverter:
    """Block tree -> Markdown text."""

    def __init__(self, fetch_children: FetchChildren | None = None) -> None:
        self._fetch_children = fetch_children

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def convert(
        self,
        blocks: list[Block],
        indent_level: int = 0,
        numbering: dict[int, int] | None = None,
    ) -> str:
        """Render *blocks* at *indent_level*.

        Parameters
        ----------
        blocks:
            Sibling blocks, in document order.
        indent_level:
            Nesting depth of the blocks; each level indents by four spaces.
        numbering:
            Per-level counters for numbered list items.  Shared across the
            recursive calls of one render so a run of numbered items keeps
            counting past nested children.

        Returns
        -------
        str
            The rendered Markdown, without a trailing newline.
        """
        if numbering is None:
            numbering = {}

        parts: list[str] = []
        previous: Block | None = None
        for block in blocks:
            chunk = self._render_block(block, indent_level, numbering)
            if not chunk:
                continue
            if previous is not None:
                parts.append("\n" if _is_tight(previous, block) else "\n\n")
            parts.append(chunk)
            previous = block
        return "".join(parts)

    def render_document(self, blocks: list[Block]) -> str:
        """Render a whole document body, terminated by a single newline."""
        text = self.convert(blocks)
        return text + "\n" if text else ""

    # ------------------------------------------------------------------
    # Block-level rendering
    # ------------------------------------------------------------------

    def _render_block(
        self,
        block: Block,
        indent_level: int,
        numbering: dict[int, int],
    ) -> str:
        if block.needs_children and self._fetch_children is not None and block.id:
            block.children = self._fetch_children(block.id)

        if block.type == BlockType.NUMBERED:
            numbering[indent_level] = numbering.get(indent_level, 0) + 1
        else:
            numbering[indent_level] = 0

        handler = self._HANDLERS.get(block.type, BlocksToMarkdownConverter._render_unsupported)
        try:
            return handler(self, block, indent_level, numbering)
        except Exception as exc:
            logger.warning(
                "Failed to render %s block %s: %s",
                block.raw_type or block.type.value,
                block.id or "<local>",
                exc,
                exc_info=True,
            )
            return _indent(f"[Unable to render {block.type.value} block: {exc}]", indent_level)

    def _render_children_flat(
        self,
        block: Block,
        indent_level: int,
        numbering: dict[int, int],
    ) -> str:
        """Render a non-list block's children at the block's own level."""
        if not block.children:
            return ""
        numbering[indent_level + 1] = 0
        return self.convert(block.children, indent_level, numbering)

    def _with_children(self, own: str, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        children = self._render_children_flat(block, indent_level, numbering)
        if not children:
            return own
        if not own:
            return children
        return f"{own}\n\n{children}"

    # -- PARAGRAPH ---------------------------------------------------------

    def _render_paragraph(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        text = _paragraph_text(block.rich_text)
        if not text and not block.children:
            text = EMPTY_PARAGRAPH
        return self._with_children(_indent(text, indent_level), block, indent_level, numbering)

    # -- HEADINGS ----------------------------------------------------------

    def _render_heading(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        level = BlockType.heading_level(block.type) or 1
        text = spans_to_markdown(block.rich_text).replace("\n", " ").strip()
        if text.endswith("#"):
            # A trailing run of '#' would be read as a closing sequence.
            text = text[:-1] + "\\#"
        own = _indent(f"{'#' * level} {text}".rstrip(), indent_level)
        return self._with_children(own, block, indent_level, numbering)

    # -- LIST ITEMS --------------------------------------------------------

    def _render_list_item(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        if block.type == BlockType.NUMBERED:
            marker = f"{numbering[indent_level]}. "
        elif block.type == BlockType.TODO:
            marker = "- [x] " if block.checked else "- [ ] "
        else:
            marker = "- "

        # Content under a wide marker ("100. ") must start past the marker,
        # or it parses as lazy continuation text.
        width = len(marker) if block.type == BlockType.NUMBERED else 2
        pad = " " * max(0, width - len(_INDENT))

        lines = _paragraph_text(block.rich_text).split("\n")
        prefix = _INDENT * indent_level
        rendered = [f"{prefix}{marker}{lines[0]}".rstrip()]
        rendered.extend(f"{prefix}{_INDENT}{pad}{line}" if line else "" for line in lines[1:])
        own = "\n".join(rendered)

        if not block.children:
            return own

        numbering[indent_level + 1] = 0
        children = self.convert(block.children, indent_level + 1, numbering)
        if not children:
            return own
        if pad:
            children = "\n".join(pad + line if line else line for line in children.split("\n"))
        first = block.children[0]
        separator = "\n" if first.type in BlockType.list_types() else "\n\n"
        return f"{own}{separator}{children}"

    # -- CODE BLOCK --------------------------------------------------------

    def _render_code(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        code_text = "".join(span.text for span in block.rich_text)
        longest = max((len(run) for run in re.findall(r"`+", code_text)), default=0)
        fence = "`" * max(3, longest + 1)
        if code_text:
            own = f"{fence}{block.language}\n{code_text}\n{fence}"
        else:
            own = f"{fence}{block.language}\n{fence}"
        return self._with_children(_indent(own, indent_level), block, indent_level, numbering)

    # -- QUOTE -------------------------------------------------------------

    def _render_quote(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        sections: list[str] = []
        text = _paragraph_text(block.rich_text)
        if text:
            sections.append(text)
        if block.children:
            # Quote children stay inside the quote so they parse back as
            # children rather than as siblings.
            inner = self.convert(block.children)
            if inner:
                sections.append(inner)

        quoted = [
            f"> {line}" if line else ">"
            for line in "\n\n".join(sections).split("\n")
        ]
        return _indent("\n".join(quoted) or ">", indent_level)

    # -- DIVIDER -----------------------------------------------------------

    def _render_divider(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        return self._with_children(_indent("---", indent_level), block, indent_level, numbering)

    # -- TABLE -------------------------------------------------------------

    def _render_table(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        """Render a table block as a GitHub-flavoured Markdown table.

        A table without a column header gets an empty header row, since GFM
        tables always start with one.
        """
        rows = [child.cells for child in block.children or [] if child.type == BlockType.TABLE_ROW]
        col_count = max([block.table_width, *(len(r) for r in rows)], default=0)
        if col_count == 0:
            return ""

        rendered = [[_table_cell(row[c]) if c < len(row) else "" for c in range(col_count)] for row in rows]
        if block.has_column_header and rendered:
            header, body = rendered[0], rendered[1:]
        else:
            header, body = [""] * col_count, rendered

        lines = [_table_line(header), "| " + " | ".join("---" for _ in range(col_count)) + " |"]
        lines.extend(_table_line(row) for row in body)
        return _indent("\n".join(lines), indent_level)

    # -- IMAGE -------------------------------------------------------------

    def _render_image(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        caption = escape_markdown(block.plain_text.replace("\n", " "))
        own = f"![{caption}]({link_destination(block.url)})"
        return self._with_children(_indent(own, indent_level), block, indent_level, numbering)

    # -- UNSUPPORTED / FALLBACK --------------------------------------------

    def _render_unsupported(self, block: Block, indent_level: int, numbering: dict[int, int]) -> str:
        spans = list(block.rich_text)
        if not spans and block.cells:
            spans = [RichTextSpan(text=" | ".join("".join(s.text for s in cell) for cell in block.cells))]
        if not spans:
            logger.debug("Skipping %s block without text", block.raw_type or block.type.value)
        text = _paragraph_text(spans)
        return self._with_children(_indent(text, indent_level), block, indent_level, numbering)

    # ------------------------------------------------------------------
    # Handler dispatch table
    # ------------------------------------------------------------------

    _HANDLERS: dict[BlockType, Callable[..., str]] = {
        BlockType.PARAGRAPH: _render_paragraph,
        BlockType.HEADING1: _render_heading,
        BlockType.HEADING2: _render_heading,
        BlockType.HEADING3: _render_heading,
        BlockType.BULLETED: _render_list_item,
        BlockType.NUMBERED: _render_list_item,
        BlockType.TODO: _render_list_item,
        BlockType.CODE: _render_code,
        BlockType.QUOTE: _render_quote,
        BlockType.DIVIDER: _render_divider,
        BlockType.TABLE: _render_table,
        BlockType.IMAGE: _render_image,
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _paragraph_text(spans: list[RichTextSpan]) -> str:
    """Render spans as paragraph text, neutralising block markers per line."""
    text = spans_to_markdown(spans)
    if not text:
        return ""
    return "\n".join(escape_line_start(line.lstrip(" \t")) for line in text.split("\n"))


def _indent(text: str, level: int) -> str:
    if not level or not text:
        return text
    prefix = _INDENT * level
    return "\n".join(prefix + line if line else line for line in text.split("\n"))


def _table_cell(spans: list[RichTextSpan]) -> str:
    return spans_to_markdown(spans).replace("|", "\\|").replace("\n", " ")


def _table_line(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def _ends_with_list_item(block: Block) -> bool:
    if block.type not in BlockType.list_types():
        return False
    if not block.children:
        return True
    return _ends_with_list_item(block.children[-1])


def _is_tight(previous: Block, current: Block) -> bool:
    """Consecutive list items share a single newline."""
    return current.type in BlockType.list_types() and _ends_with_list_item(previous)
