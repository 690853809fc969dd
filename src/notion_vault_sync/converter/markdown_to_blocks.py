"""Convert a Markdown string into a tree of :class:`Block` values.

Uses ``markdown-it-py`` to tokenise the Markdown source, then walks the token
stream and emits typed blocks.  Nesting follows the document: list items
carry nested lists (and any other content indented under them) as
``children``, and a blockquote's first paragraph becomes the quote text while
the rest of its content becomes the quote's children.

The converter is total: anything it does not recognise degrades to a
paragraph instead of raising.
"""

from __future__ import annotations

import re
from typing import Any

from markdown_it import MarkdownIt

from notion_vault_sync.converter.block_types import EMPTY_PARAGRAPH, Block, BlockType, plain_span
from notion_vault_sync.converter.rich_text import parse_inline_markdown

_TODO_PATTERN = re.compile(r"^\[(?P<mark>[ xX])\](?:[ \t]+(?P<text>.*))?$", re.DOTALL)

_IMAGE_PATTERN = re.compile(
    r"^!\[(?P<alt>(?:\\.|[^\]\\])*)\]"
    r"\((?:<(?P<url_angle>[^>]*)>|(?P<url>[^)\s]+))\)$"
)


class MarkdownToBlocksConverter:
    """Stateless converter: Markdown text -> block tree."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"typographer": False})
        self._md.enable("table")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def convert(self, markdown_text: str) -> list[Block]:
        """Parse *markdown_text* and return the top-level blocks."""
        tokens = self._md.parse(markdown_text)
        blocks: list[Block] = []
        idx = 0
        while idx < len(tokens):
            idx = self._consume_token(tokens, idx, blocks)
        return blocks

    # ------------------------------------------------------------------
    # Token consumers
    # ------------------------------------------------------------------

    def _consume_token(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        """Dispatch on the current token type and return the next index."""
        tok = tokens[idx]

        if tok.type == "heading_open":
            return self._consume_heading(tokens, idx, blocks)
        if tok.type == "paragraph_open":
            return self._consume_paragraph(tokens, idx, blocks)
        if tok.type == "bullet_list_open":
            return self._consume_list(tokens, idx, blocks, ordered=False)
        if tok.type == "ordered_list_open":
            return self._consume_list(tokens, idx, blocks, ordered=True)
        if tok.type == "fence" or tok.type == "code_block":
            return self._consume_code(tokens, idx, blocks)
        if tok.type == "blockquote_open":
            return self._consume_blockquote(tokens, idx, blocks)
        if tok.type == "hr":
            blocks.append(Block(type=BlockType.DIVIDER))
            return idx + 1
        if tok.type == "html_block":
            return self._consume_html_block(tokens, idx, blocks)
        if tok.type == "table_open":
            return self._consume_table(tokens, idx, blocks)

        # Skip tokens we do not handle (close tags, etc.).
        return idx + 1

    # -- Heading -----------------------------------------------------------

    def _consume_heading(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        level = int(tokens[idx].tag.replace("h", ""))  # "h1" -> 1
        content = tokens[idx + 1].content or ""
        blocks.append(
            Block(
                type=BlockType.heading(level),
                rich_text=parse_inline_markdown(content),
            )
        )
        return idx + 3  # open, inline, close

    # -- Paragraph ---------------------------------------------------------

    def _consume_paragraph(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        content = tokens[idx + 1].content or ""

        image = self._try_extract_image(content)
        if image is not None:
            blocks.append(image)
        elif content.strip() == EMPTY_PARAGRAPH:
            blocks.append(Block(type=BlockType.PARAGRAPH))
        else:
            blocks.append(
                Block(
                    type=BlockType.PARAGRAPH,
                    rich_text=parse_inline_markdown(content),
                )
            )
        return idx + 3  # open, inline, close

    # -- List (bullet / ordered) -------------------------------------------

    def _consume_list(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
        *,
        ordered: bool,
    ) -> int:
        close_type = "ordered_list_close" if ordered else "bullet_list_close"
        idx += 1  # skip list_open
        while idx < len(tokens) and tokens[idx].type != close_type:
            if tokens[idx].type == "list_item_open":
                idx = self._consume_list_item(tokens, idx, blocks, ordered=ordered)
            else:
                idx += 1
        return idx + 1  # skip list_close

    def _consume_list_item(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
        *,
        ordered: bool,
    ) -> int:
        idx += 1  # skip list_item_open
        item = Block(type=BlockType.NUMBERED if ordered else BlockType.BULLETED)
        children: list[Block] = []

        # The item's own text is its leading paragraph; everything after it
        # (nested lists, further paragraphs, code) becomes children.
        if idx < len(tokens) and tokens[idx].type == "paragraph_open":
            content = tokens[idx + 1].content or ""
            todo = _TODO_PATTERN.match(content)
            if todo is not None:
                item.type = BlockType.TODO
                item.checked = todo.group("mark") in ("x", "X")
                content = todo.group("text") or ""
            item.rich_text = parse_inline_markdown(content)
            idx += 3

        while idx < len(tokens) and tokens[idx].type != "list_item_close":
            idx = self._consume_token(tokens, idx, children)

        item.children = children
        blocks.append(item)
        return idx + 1  # skip list_item_close

    # -- Code block --------------------------------------------------------

    def _consume_code(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        tok = tokens[idx]
        language = tok.info.strip() if tok.info else ""
        code_content = tok.content or ""
        # Strip trailing newline that markdown-it includes.
        if code_content.endswith("\n"):
            code_content = code_content[:-1]

        blocks.append(
            Block(
                type=BlockType.CODE,
                rich_text=[plain_span(code_content)] if code_content else [],
                language=language,
            )
        )
        return idx + 1

    # -- Block quote -------------------------------------------------------

    def _consume_blockquote(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        idx += 1  # skip blockquote_open
        quote = Block(type=BlockType.QUOTE)
        children: list[Block] = []

        if idx < len(tokens) and tokens[idx].type == "paragraph_open":
            quote.rich_text = parse_inline_markdown(tokens[idx + 1].content or "")
            idx += 3

        while idx < len(tokens) and tokens[idx].type != "blockquote_close":
            idx = self._consume_token(tokens, idx, children)

        quote.children = children
        blocks.append(quote)
        return idx + 1  # skip blockquote_close

    # -- HTML block (passthrough as paragraph) -----------------------------

    def _consume_html_block(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        content = (tokens[idx].content or "").strip()
        if content:
            blocks.append(Block(type=BlockType.PARAGRAPH, rich_text=[plain_span(content)]))
        return idx + 1

    # -- Table -------------------------------------------------------------

    def _consume_table(
        self,
        tokens: list[Any],
        idx: int,
        blocks: list[Block],
    ) -> int:
        """Parse markdown-it table tokens into a TABLE block with TABLE_ROW children."""
        idx += 1  # skip table_open
        rows: list[list[str]] = []
        current_row: list[str] = []

        while idx < len(tokens) and tokens[idx].type != "table_close":
            tok = tokens[idx]
            if tok.type == "tr_open":
                current_row = []
                idx += 1
                continue
            if tok.type == "tr_close":
                rows.append(current_row)
                idx += 1
                continue
            if tok.type in ("th_open", "td_open"):
                # Next token is inline content.
                current_row.append(tokens[idx + 1].content or "")
                idx += 3  # open, inline, close
                continue
            idx += 1

        idx += 1  # skip table_close

        if not rows:
            return idx

        col_count = max(len(r) for r in rows)
        has_header = any(cell.strip() for cell in rows[0])
        if not has_header:
            rows = rows[1:]

        row_blocks = [
            Block(
                type=BlockType.TABLE_ROW,
                cells=[
                    parse_inline_markdown(row[c] if c < len(row) else "")
                    for c in range(col_count)
                ],
            )
            for row in rows
        ]
        blocks.append(
            Block(
                type=BlockType.TABLE,
                children=row_blocks,
                table_width=col_count,
                has_column_header=has_header,
            )
        )
        return idx

    # -- Image extraction --------------------------------------------------

    @staticmethod
    def _try_extract_image(content: str) -> Block | None:
        """If the paragraph holds only an image, return an IMAGE block."""
        m = _IMAGE_PATTERN.match(content.strip())
        if m is None:
            return None
        url = m.group("url_angle")
        if url is None:
            url = m.group("url")
        caption = "".join(span.text for span in parse_inline_markdown(m.group("alt")))
        return Block(
            type=BlockType.IMAGE,
            rich_text=[plain_span(caption)] if caption else [],
            url=url,
        )
