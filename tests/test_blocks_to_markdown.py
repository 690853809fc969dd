import pytest

from notion_vault_sync.converter.block_types import (
    Annotations,
    Block,
    BlockType,
    RichTextSpan,
    plain_span,
)
from notion_vault_sync.converter.blocks_to_markdown import BlocksToMarkdownConverter
from notion_vault_sync.converter.markdown_to_blocks import MarkdownToBlocksConverter
from notion_vault_sync.remote.errors import APIError


def block(block_type, text="", **kwargs):
    return Block(type=block_type, rich_text=[plain_span(text)] if text else [], **kwargs)


def render(blocks):
    return BlocksToMarkdownConverter().convert(blocks)


def test_numbering_restarts_after_other_block():
    blocks = [
        block(BlockType.NUMBERED, "a"),
        block(BlockType.NUMBERED, "b"),
        block(BlockType.BULLETED, "c"),
        block(BlockType.NUMBERED, "d"),
    ]
    assert render(blocks) == "1. a\n2. b\n- c\n1. d"


def test_nested_numbering_is_per_level():
    blocks = [
        block(
            BlockType.NUMBERED,
            "a",
            children=[block(BlockType.NUMBERED, "x"), block(BlockType.NUMBERED, "y")],
        ),
        block(BlockType.NUMBERED, "b"),
    ]
    assert render(blocks) == "1. a\n    1. x\n    2. y\n2. b"


def test_paragraphs_are_separated_by_blank_line():
    assert render([block(BlockType.PARAGRAPH, "a"), block(BlockType.PARAGRAPH, "b")]) == "a\n\nb"


def test_nested_bullets_indent_four_spaces():
    blocks = [block(BlockType.BULLETED, "parent", children=[block(BlockType.BULLETED, "child")])]
    assert render(blocks) == "- parent\n    - child"


def test_todo_items():
    blocks = [block(BlockType.TODO, "done", checked=True), block(BlockType.TODO, "open")]
    assert render(blocks) == "- [x] done\n- [ ] open"


def test_code_fence_outgrows_backticks_in_content():
    rendered = render([block(BlockType.CODE, "a ``` b")])
    assert rendered == "````\na ``` b\n````"


def test_heading_trailing_hash_is_escaped():
    assert render([block(BlockType.HEADING1, "C#")]) == "# C\\#"


def test_paragraph_block_markers_are_escaped():
    assert render([block(BlockType.PARAGRAPH, "# not heading")]) == "\\# not heading"
    assert render([block(BlockType.PARAGRAPH, "1. not list")]) == "1\\. not list"


def test_quote_children_stay_inside_the_quote():
    blocks = [block(BlockType.QUOTE, "q", children=[block(BlockType.PARAGRAPH, "inner")])]
    assert render(blocks) == "> q\n>\n> inner"


def test_table_with_and_without_header():
    rows = [
        Block(type=BlockType.TABLE_ROW, cells=[[plain_span("a")], [plain_span("b")]]),
        Block(type=BlockType.TABLE_ROW, cells=[[plain_span("1")], [plain_span("2")]]),
    ]
    with_header = Block(type=BlockType.TABLE, children=rows, table_width=2, has_column_header=True)
    assert render([with_header]) == "| a | b |\n| --- | --- |\n| 1 | 2 |"

    without = Block(type=BlockType.TABLE, children=rows[1:], table_width=2)
    assert render([without]) == "|  |  |\n| --- | --- |\n| 1 | 2 |"


def test_image():
    assert render([block(BlockType.IMAGE, "cap", url="https://x/y.png")]) == "![cap](https://x/y.png)"


def test_unsupported_block_keeps_its_text():
    callout = block(BlockType.UNSUPPORTED, "callout text", raw_type="callout")
    assert render([callout]) == "callout text"


def test_render_document_terminates_with_newline():
    converter = BlocksToMarkdownConverter()
    assert converter.render_document([]) == ""
    assert converter.render_document([block(BlockType.PARAGRAPH, "a")]) == "a\n"


def test_children_are_fetched_once_on_demand():
    calls = []

    def fetch(block_id):
        calls.append(block_id)
        return [block(BlockType.BULLETED, "child")]

    parent = block(BlockType.BULLETED, "parent", id="b1", has_children=True, children=None)
    converter = BlocksToMarkdownConverter(fetch_children=fetch)

    assert converter.convert([parent]) == "- parent\n    - child"
    assert converter.convert([parent]) == "- parent\n    - child"
    assert calls == ["b1"]


def test_fetch_failure_propagates():
    def fetch(block_id):
        raise APIError(500, "internal_server_error", "boom")

    parent = block(BlockType.BULLETED, "parent", id="b1", has_children=True, children=None)
    with pytest.raises(APIError):
        BlocksToMarkdownConverter(fetch_children=fetch).convert([parent])


def test_render_failure_becomes_placeholder(monkeypatch):
    def boom(self, block, indent_level, numbering):
        raise RuntimeError("boom")

    monkeypatch.setitem(BlocksToMarkdownConverter._HANDLERS, BlockType.DIVIDER, boom)
    rendered = render([Block(type=BlockType.DIVIDER)])
    assert rendered == "[Unable to render divider block: boom]"


def test_formatted_spans():
    spans = [
        RichTextSpan("bold", Annotations(bold=True)),
        RichTextSpan(" and "),
        RichTextSpan("link", link="https://example.com"),
    ]
    assert render([Block(type=BlockType.PARAGRAPH, rich_text=spans)]) == (
        "**bold** and [link](https://example.com)"
    )


# ---------------------------------------------------------------------------
# Markdown -> blocks -> Markdown
# ---------------------------------------------------------------------------

ROUND_TRIP_DOCUMENTS = [
    "1. a\n2. b\n- c\n1. d\n",
    (
        "# Title\n\n"
        "Some **bold** and *italic* text with `code` and [a link](https://example.com).\n\n"
        "- one\n- two\n    - nested\n1. first\n2. second\n- [ ] open\n- [x] done\n\n"
        "> quoted\n\n"
        '```python\nprint("hi")\n```\n\n'
        "---\n\n"
        "| a | b |\n| --- | --- |\n| 1 | 2 |\n\n"
        "![cap](https://example.com/i.png)\n"
    ),
    "\\# not a heading\n\n1\\. not a list\n\nuse snake_case names\n",
    "~~gone~~ and ***both***\n",
]


@pytest.mark.parametrize("source", ROUND_TRIP_DOCUMENTS)
def test_canonical_markdown_round_trips(source):
    blocks = MarkdownToBlocksConverter().convert(source)
    assert BlocksToMarkdownConverter().render_document(blocks) == source


def test_children_of_wide_numbered_marker_stay_nested():
    items = [block(BlockType.NUMBERED, f"i{n}") for n in range(100)]
    items[-1].children = [block(BlockType.BULLETED, "child")]

    markdown = render(items)

    assert markdown.endswith("100. i99\n     - child")
    assert MarkdownToBlocksConverter().convert(markdown) == items


# ---------------------------------------------------------------------------
# Blocks -> Markdown -> blocks
# ---------------------------------------------------------------------------


def _row(*texts):
    return Block(type=BlockType.TABLE_ROW, cells=[[plain_span(text)] for text in texts])


SINGLE_BLOCKS = {
    "paragraph": block(BlockType.PARAGRAPH, "plain text"),
    "heading_1": block(BlockType.HEADING1, "one"),
    "heading_2": block(BlockType.HEADING2, "two"),
    "heading_3": block(BlockType.HEADING3, "three"),
    "bulleted": block(BlockType.BULLETED, "item"),
    "numbered": block(BlockType.NUMBERED, "item"),
    "todo_open": block(BlockType.TODO, "open"),
    "todo_done": block(BlockType.TODO, "done", checked=True),
    "code": block(BlockType.CODE, 'print("hi")', language="python"),
    "quote": block(BlockType.QUOTE, "quoted"),
    "divider": Block(type=BlockType.DIVIDER),
    "table_header": Block(
        type=BlockType.TABLE,
        children=[_row("a", "b"), _row("1", "2")],
        table_width=2,
        has_column_header=True,
    ),
    "table_plain": Block(type=BlockType.TABLE, children=[_row("1", "2")], table_width=2),
    "image": block(BlockType.IMAGE, "cap", url="https://example.com/i.png"),
    "nested_bullets": block(
        BlockType.BULLETED,
        "parent",
        children=[block(BlockType.BULLETED, "child", children=[block(BlockType.BULLETED, "leaf")])],
    ),
    "nested_numbers": block(
        BlockType.NUMBERED,
        "parent",
        children=[block(BlockType.NUMBERED, "x"), block(BlockType.NUMBERED, "y")],
    ),
    "todo_with_child": block(BlockType.TODO, "task", children=[block(BlockType.BULLETED, "note")]),
}


@pytest.mark.parametrize("name", sorted(SINGLE_BLOCKS))
def test_block_survives_markdown(name):
    original = SINGLE_BLOCKS[name]
    markdown = render([original])
    assert MarkdownToBlocksConverter().convert(markdown) == [original]


ANNOTATION_FLAGS = [
    Annotations(bold=bold, italic=italic, code=code, strikethrough=strike)
    for bold in (False, True)
    for italic in (False, True)
    for code in (False, True)
    for strike in (False, True)
]


@pytest.mark.parametrize("link", [None, "https://example.com/page"])
@pytest.mark.parametrize("annotations", ANNOTATION_FLAGS, ids=repr)
def test_annotations_survive_markdown(annotations, link):
    spans = [RichTextSpan("word", annotations, link=link)]
    markdown = render([Block(type=BlockType.PARAGRAPH, rich_text=spans)])

    (parsed,) = MarkdownToBlocksConverter().convert(markdown)

    assert parsed.type == BlockType.PARAGRAPH
    assert parsed.rich_text == spans


def test_empty_paragraphs_keep_their_spacing():
    blocks = [block(BlockType.PARAGRAPH, "a"), Block(type=BlockType.PARAGRAPH), block(BlockType.PARAGRAPH, "b")]

    markdown = render(blocks)

    assert markdown == "a\n\n&nbsp;\n\nb"
    assert MarkdownToBlocksConverter().convert(markdown) == blocks
