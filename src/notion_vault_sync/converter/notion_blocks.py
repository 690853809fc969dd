"""Translate between :class:`Block` values and Notion API block objects.

``block_from_payload`` reads the JSON objects returned by the *retrieve
block children* endpoint; ``block_to_payload`` builds the objects accepted by
*append block children*.  Children are never nested in the payload, except
for table rows, which Notion requires to be created together with their
table.  Other children are appended separately under the id the API assigns
to their parent.
"""

from __future__ import annotations

from typing import Any

from notion_vault_sync.converter.block_types import (
    Annotations,
    Block,
    BlockType,
    RichTextSpan,
    plain_span,
)
from notion_vault_sync.converter.rich_text import merge_adjacent

# Notion rejects rich-text objects whose content exceeds 2000 characters.
MAX_TEXT_LENGTH = 2000

PLAIN_TEXT_LANGUAGE = "plain text"


# ---------------------------------------------------------------------------
# Rich text
# ---------------------------------------------------------------------------

def rich_text_to_spans(items: list[dict[str, Any]] | None) -> list[RichTextSpan]:
    """Convert Notion rich-text objects into spans.

    Mentions and equations carry no ``text`` body; their ``plain_text`` is
    used so nothing visible is lost.
    """
    spans: list[RichTextSpan] = []
    for item in items or []:
        text_body = item.get("text") or {}
        text = item.get("plain_text")
        if text is None:
            text = text_body.get("content", "")
        if not text:
            continue

        annotations = item.get("annotations") or {}
        link = item.get("href") or (text_body.get("link") or {}).get("url")
        spans.append(
            RichTextSpan(
                text=text,
                annotations=Annotations(
                    bold=bool(annotations.get("bold")),
                    italic=bool(annotations.get("italic")),
                    code=bool(annotations.get("code")),
                    strikethrough=bool(annotations.get("strikethrough")),
                ),
                link=link or None,
            )
        )
    return merge_adjacent(spans)


def spans_to_rich_text(spans: list[RichTextSpan]) -> list[dict[str, Any]]:
    """Convert spans into Notion rich-text objects, splitting long runs."""
    items: list[dict[str, Any]] = []
    for span in spans:
        for start in range(0, len(span.text), MAX_TEXT_LENGTH):
            text: dict[str, Any] = {"content": span.text[start : start + MAX_TEXT_LENGTH]}
            if span.link:
                text["link"] = {"url": span.link}
            items.append(
                {
                    "type": "text",
                    "text": text,
                    "annotations": {
                        "bold": span.annotations.bold,
                        "italic": span.annotations.italic,
                        "strikethrough": span.annotations.strikethrough,
                        "underline": False,
                        "code": span.annotations.code,
                        "color": "default",
                    },
                }
            )
    return items


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

_TEXT_TYPES = frozenset(
    {
        BlockType.PARAGRAPH,
        BlockType.HEADING1,
        BlockType.HEADING2,
        BlockType.HEADING3,
        BlockType.BULLETED,
        BlockType.NUMBERED,
        BlockType.QUOTE,
    }
)


def block_from_payload(data: dict[str, Any]) -> Block:
    """Build a block from a Notion block object.

    When the API reports ``has_children`` the block's ``children`` is left as
    ``None`` so the renderer knows to fetch them.
    """
    raw_type = data.get("type", "")
    block_type = BlockType.from_value(raw_type)
    body = data.get(raw_type) or {}
    has_children = bool(data.get("has_children"))

    block = Block(
        type=block_type,
        id=data.get("id"),
        has_children=has_children,
        children=None if has_children else [],
    )

    if block_type in _TEXT_TYPES:
        block.rich_text = rich_text_to_spans(body.get("rich_text"))
    elif block_type == BlockType.TODO:
        block.rich_text = rich_text_to_spans(body.get("rich_text"))
        block.checked = bool(body.get("checked"))
    elif block_type == BlockType.CODE:
        block.rich_text = rich_text_to_spans(body.get("rich_text"))
        language = body.get("language") or ""
        block.language = "" if language == PLAIN_TEXT_LANGUAGE else language
    elif block_type == BlockType.TABLE:
        block.table_width = int(body.get("table_width") or 0)
        block.has_column_header = bool(body.get("has_column_header"))
    elif block_type == BlockType.TABLE_ROW:
        block.cells = [rich_text_to_spans(cell) for cell in body.get("cells") or []]
    elif block_type == BlockType.IMAGE:
        source = body.get(body.get("type", "external")) or {}
        block.url = source.get("url", "")
        block.rich_text = rich_text_to_spans(body.get("caption"))
    elif block_type == BlockType.UNSUPPORTED:
        block.raw_type = raw_type
        block.rich_text = _best_effort_text(body)

    return block


def _best_effort_text(body: dict[str, Any]) -> list[RichTextSpan]:
    """Recover whatever text an unsupported block carries."""
    if body.get("rich_text"):
        return rich_text_to_spans(body["rich_text"])
    if body.get("caption"):
        return rich_text_to_spans(body["caption"])
    for key in ("title", "url", "expression"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return [plain_span(value)]
    return []


def block_to_payload(block: Block) -> dict[str, Any]:
    """Build the Notion request object for *block*, without its children."""
    block_type = block.type

    if block_type in _TEXT_TYPES:
        body: dict[str, Any] = {"rich_text": spans_to_rich_text(block.rich_text)}
    elif block_type == BlockType.TODO:
        body = {
            "rich_text": spans_to_rich_text(block.rich_text),
            "checked": block.checked,
        }
    elif block_type == BlockType.CODE:
        body = {
            "rich_text": spans_to_rich_text(block.rich_text),
            "language": normalize_language(block.language),
        }
    elif block_type == BlockType.DIVIDER:
        body = {}
    elif block_type == BlockType.TABLE:
        return _table_payload(block)
    elif block_type == BlockType.TABLE_ROW:
        body = {"cells": [spans_to_rich_text(cell) for cell in block.cells]}
    elif block_type == BlockType.IMAGE:
        if block.url.startswith(("http://", "https://")):
            body = {
                "type": "external",
                "external": {"url": block.url},
                "caption": spans_to_rich_text(block.rich_text),
            }
        else:
            # Notion only accepts external images by URL; local attachments
            # keep their caption as text.
            caption = block.rich_text or ([plain_span(block.url)] if block.url else [])
            return _payload(BlockType.PARAGRAPH, {"rich_text": spans_to_rich_text(caption)})
    else:
        return _payload(BlockType.PARAGRAPH, {"rich_text": spans_to_rich_text(block.rich_text)})

    return _payload(block_type, body)


def _payload(block_type: BlockType, body: dict[str, Any]) -> dict[str, Any]:
    return {"object": "block", "type": block_type.value, block_type.value: body}


def _table_payload(block: Block) -> dict[str, Any]:
    rows = [child for child in block.children or [] if child.type == BlockType.TABLE_ROW]
    width = max([block.table_width, *(len(row.cells) for row in rows)], default=0) or 1
    row_payloads = []
    for row in rows:
        cells = list(row.cells) + [[] for _ in range(width - len(row.cells))]
        row_payloads.append(
            _payload(BlockType.TABLE_ROW, {"cells": [spans_to_rich_text(c) for c in cells]})
        )
    return _payload(
        BlockType.TABLE,
        {
            "table_width": width,
            "has_column_header": block.has_column_header,
            "has_row_header": False,
            "children": row_payloads,
        },
    )


# ---------------------------------------------------------------------------
# Code languages
# ---------------------------------------------------------------------------

NOTION_LANGUAGES: frozenset[str] = frozenset(
    {
        "abap", "arduino", "bash", "basic", "c", "clojure", "coffeescript",
        "c++", "c#", "css", "dart", "diff", "docker", "elixir", "elm",
        "erlang", "flow", "fortran", "f#", "gherkin", "glsl", "go", "graphql",
        "groovy", "haskell", "html", "java", "javascript", "json", "julia",
        "kotlin", "latex", "less", "lisp", "livescript", "lua", "makefile",
        "markdown", "markup", "matlab", "mermaid", "nix", "objective-c",
        "ocaml", "pascal", "perl", "php", "plain text", "powershell",
        "prolog", "protobuf", "python", "r", "reason", "ruby", "rust", "sass",
        "scala", "scheme", "scss", "shell", "sql", "swift", "typescript",
        "vb.net", "verilog", "vhdl", "visual basic", "webassembly", "xml",
        "yaml", "java/c/c++/c#",
    }
)

# Common fence info strings -> Notion language names.
_LANGUAGE_ALIASES: dict[str, str] = {
    "": PLAIN_TEXT_LANGUAGE,
    "text": PLAIN_TEXT_LANGUAGE,
    "txt": PLAIN_TEXT_LANGUAGE,
    "plaintext": PLAIN_TEXT_LANGUAGE,
    "plain": PLAIN_TEXT_LANGUAGE,
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "shell-session": "shell",
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "jsx": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "yml": "yaml",
    "rb": "ruby",
    "rs": "rust",
    "cpp": "c++",
    "cc": "c++",
    "hpp": "c++",
    "cs": "c#",
    "csharp": "c#",
    "fsharp": "f#",
    "golang": "go",
    "dockerfile": "docker",
    "md": "markdown",
    "ps1": "powershell",
    "pwsh": "powershell",
    "kt": "kotlin",
    "objc": "objective-c",
    "tex": "latex",
    "make": "makefile",
    "proto": "protobuf",
    "vb": "visual basic",
    "hs": "haskell",
    "htm": "html",
    "jsonc": "json",
    "patch": "diff",
    "clj": "clojure",
    "ex": "elixir",
    "exs": "elixir",
    "erl": "erlang",
    "ml": "ocaml",
    "wasm": "webassembly",
    "gql": "graphql",
}


def normalize_language(language: str) -> str:
    """Map a fence info string to a language name Notion accepts."""
    lower = language.strip().lower()
    if lower in NOTION_LANGUAGES:
        return lower
    return _LANGUAGE_ALIASES.get(lower, PLAIN_TEXT_LANGUAGE)
