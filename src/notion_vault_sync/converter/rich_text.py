"""Bi-directional conversion between rich-text spans and Markdown inline text.

Notion represents inline content as a list of rich-text objects, each with
``annotations`` that toggle **bold**, *italic*, ~~strikethrough~~ and
``code``, plus an optional link.  The converters work on
:class:`RichTextSpan` values; this module turns those spans into Markdown
inline text and parses Markdown inline text back into spans.

Markers are always applied in the same order (code innermost, then bold,
italic, strikethrough, and the link outermost) so the parser can recover
exactly the flags that were rendered.
"""

from __future__ import annotations

import re

from notion_vault_sync.converter.block_types import Annotations, RichTextSpan


# ---------------------------------------------------------------------------
# Spans -> Markdown string
# ---------------------------------------------------------------------------

def spans_to_markdown(spans: list[RichTextSpan]) -> str:
    """Convert a list of spans into a Markdown inline string."""
    return "".join(_render_span(span) for span in spans if span.text)


def _render_span(span: RichTextSpan) -> str:
    """Wrap the span's text with the Markdown markers for its annotations."""
    style = span.annotations
    if style.code:
        content = _code_span(span.text)
    else:
        content = escape_markdown(span.text)

    if style.bold and style.italic:
        content = f"***{content}***"
    elif style.bold:
        content = f"**{content}**"
    elif style.italic:
        content = f"*{content}*"

    if style.strikethrough:
        content = f"~~{content}~~"

    if span.link:
        return f"[{content}]({link_destination(span.link)})"
    return content


def _code_span(text: str) -> str:
    """Wrap *text* in a backtick fence longer than any run it contains."""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    fence = "`" * (longest + 1)
    if text.startswith("`") or text.endswith("`") or (
        text.startswith(" ") and text.endswith(" ") and text.strip()
    ):
        text = f" {text} "
    return f"{fence}{text}{fence}"


def link_destination(url: str) -> str:
    """Return *url* as a link destination, in angle brackets when needed."""
    if any(ch in url for ch in "() <>"):
        return f"<{url}>"
    return url


_ESCAPE_CHARS = frozenset("\\*`~[]")


def escape_markdown(text: str) -> str:
    """Backslash-escape characters the inline parser would treat as markup.

    Underscores are only escaped at word boundaries so identifiers such as
    ``snake_case`` stay readable.
    """
    out: list[str] = []
    for i, ch in enumerate(text):
        if ch in _ESCAPE_CHARS:
            out.append("\\" + ch)
        elif ch == "_":
            before = text[i - 1] if i > 0 else ""
            after = text[i + 1] if i + 1 < len(text) else ""
            if before.isalnum() and after.isalnum():
                out.append(ch)
            else:
                out.append("\\_")
        else:
            out.append(ch)
    return "".join(out)


_LINE_START_MARKER = re.compile(r"^(\s*)([#>+=<\-]|\d+[.)])")


def escape_line_start(line: str) -> str:
    """Escape a leading block marker so the line stays a plain paragraph."""
    m = _LINE_START_MARKER.match(line)
    if m is None:
        return line
    marker = m.group(2)
    if marker[0].isdigit():
        escaped = marker[:-1] + "\\" + marker[-1]
    else:
        escaped = "\\" + marker
    return m.group(1) + escaped + line[m.end():]


# ---------------------------------------------------------------------------
# Markdown string -> Spans
# ---------------------------------------------------------------------------

# A run of inline content where a backslash always consumes the next char.
_INNER = r"(?:\\.|[^\\])+?"

# Order matters: at a given position the first alternative that matches
# wins, so ``***bold+italic***`` is tried before ``**bold**`` or ``*italic*``.
_INLINE_PATTERN = re.compile(
    r"(?P<escape>\\(?P<e_char>[!-/:-@\[-`{-~]))"
    r"|(?P<inline_code>(?P<c_fence>`+)(?P<c_text>.+?)(?<!`)(?P=c_fence)(?!`))"
    r"|(?P<link>\[(?P<l_text>(?:\\.|[^\]\\])*)\]"
    r"\((?:<(?P<l_url_angle>[^>]*)>|(?P<l_url>[^)\s]+))\))"
    rf"|(?P<bold_italic>\*\*\*(?P<bi_text>{_INNER})\*\*\*)"
    rf"|(?P<bold>\*\*(?P<b_text>{_INNER})\*\*)"
    rf"|(?P<italic>\*(?P<i_text>{_INNER})\*)"
    rf"|(?P<strikethrough>~~(?P<s_text>{_INNER})~~)"
    rf"|(?P<u_bold>(?<!\w)__(?P<ub_text>{_INNER})__(?!\w))"
    rf"|(?P<u_italic>(?<!\w)_(?P<ui_text>{_INNER})_(?!\w))",
    re.DOTALL,
)


def parse_inline_markdown(text: str) -> list[RichTextSpan]:
    """Parse a Markdown inline string into a list of spans.

    Handles bold, italic, bold+italic, strikethrough, inline code, links and
    backslash escapes.  Nested formatting (e.g. ``**bold *and italic***``) is
    supported via recursive descent on the inner content of each match.
    Adjacent spans with identical styling are merged.
    """
    if not text:
        return []
    return merge_adjacent(_parse(text))


def _parse(text: str) -> list[RichTextSpan]:
    spans: list[RichTextSpan] = []
    last_end = 0

    for m in _INLINE_PATTERN.finditer(text):
        if m.start() > last_end:
            spans.append(RichTextSpan(text=text[last_end : m.start()]))

        if m.group("escape"):
            spans.append(RichTextSpan(text=m.group("e_char")))

        elif m.group("inline_code"):
            code_text = m.group("c_text")
            if (
                len(code_text) > 2
                and code_text.startswith(" ")
                and code_text.endswith(" ")
                and code_text.strip()
            ):
                code_text = code_text[1:-1]
            spans.append(
                RichTextSpan(text=code_text, annotations=Annotations(code=True))
            )

        elif m.group("link"):
            url = m.group("l_url_angle")
            if url is None:
                url = m.group("l_url")
            for child in _ensure_spans(m.group("l_text")):
                child.link = url
                spans.append(child)

        elif m.group("bold_italic"):
            for child in _ensure_spans(m.group("bi_text")):
                _merge_style(child, bold=True, italic=True)
                spans.append(child)

        elif m.group("bold") or m.group("u_bold"):
            inner = m.group("b_text") if m.group("bold") else m.group("ub_text")
            for child in _ensure_spans(inner):
                _merge_style(child, bold=True)
                spans.append(child)

        elif m.group("italic") or m.group("u_italic"):
            inner = m.group("i_text") if m.group("italic") else m.group("ui_text")
            for child in _ensure_spans(inner):
                _merge_style(child, italic=True)
                spans.append(child)

        elif m.group("strikethrough"):
            for child in _ensure_spans(m.group("s_text")):
                _merge_style(child, strikethrough=True)
                spans.append(child)

        last_end = m.end()

    if last_end < len(text):
        spans.append(RichTextSpan(text=text[last_end:]))

    return spans


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _merge_style(
    span: RichTextSpan,
    *,
    bold: bool = False,
    italic: bool = False,
    strikethrough: bool = False,
) -> None:
    """Merge additional style flags into an existing span **in-place**."""
    if bold:
        span.annotations.bold = True
    if italic:
        span.annotations.italic = True
    if strikethrough:
        span.annotations.strikethrough = True


def _ensure_spans(text: str) -> list[RichTextSpan]:
    """Recursively parse *text* into spans, guaranteeing at least one."""
    result = _parse(text)
    if not result:
        result = [RichTextSpan(text=text)]
    return result


def merge_adjacent(spans: list[RichTextSpan]) -> list[RichTextSpan]:
    """Join neighbouring spans that share a style, dropping empty ones."""
    merged: list[RichTextSpan] = []
    for span in spans:
        if not span.text:
            continue
        if merged and merged[-1].same_style(span):
            merged[-1].text += span.text
        else:
            merged.append(span)
    return merged
