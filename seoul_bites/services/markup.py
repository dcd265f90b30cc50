from __future__ import annotations

import html
import re
from typing import List

from seoul_bites.models import BlockKind, DisplayBlock, Span

# Non-greedy so "**a** and **b**" yields two bold spans.
_BOLD_RE = re.compile(r"(\*\*.*?\*\*)")
_BULLET_RE = re.compile(r"^[*\-]\s+")
_NUMBERED_RE = re.compile(r"^\d+\.\s")
_LINE_BREAK_RE = re.compile(r"\r?\n")

_BLOCK_TAGS = {
    BlockKind.HEADING_2: "h2",
    BlockKind.HEADING_3: "h3",
    BlockKind.PARAGRAPH: "p",
}


def parse_inline(text: str) -> List[Span]:
    """Split a line into plain and bold spans, keeping the original order."""
    spans: List[Span] = []
    # re.split with a capture group puts the delimited matches at odd indices
    for i, part in enumerate(_BOLD_RE.split(text)):
        if i % 2 == 1:
            spans.append(Span(text=part[2:-2], bold=True))
        elif part:
            spans.append(Span(text=part))
    return spans


def _classify(line: str) -> DisplayBlock:
    if line.startswith("### "):
        return DisplayBlock(kind=BlockKind.HEADING_3, spans=parse_inline(line[4:]))
    if line.startswith("## "):
        return DisplayBlock(kind=BlockKind.HEADING_2, spans=parse_inline(line[3:]))

    stripped = line.strip()
    if stripped.startswith("* ") or stripped.startswith("- "):
        return DisplayBlock(kind=BlockKind.BULLET_ITEM, spans=parse_inline(_BULLET_RE.sub("", stripped, count=1)))
    if _NUMBERED_RE.match(stripped):
        return DisplayBlock(kind=BlockKind.NUMBERED_ITEM, spans=parse_inline(_NUMBERED_RE.sub("", stripped, count=1)))
    if not stripped:
        return DisplayBlock(kind=BlockKind.SPACER)
    return DisplayBlock(kind=BlockKind.PARAGRAPH, spans=parse_inline(line))


def render(text: str) -> List[DisplayBlock]:
    """Turn markdown-ish narrative into display blocks, one per input line.

    Only headings (## / ###), bullet and numbered list items, blank-line
    spacers and **bold** spans are recognised; everything else is a
    paragraph. Empty input gives no blocks.
    """
    if not text:
        return []
    return [_classify(line) for line in _LINE_BREAK_RE.split(text)]


def _spans_html(spans: List[Span]) -> str:
    out = []
    for span in spans:
        escaped = html.escape(span.text)
        out.append(f"<strong>{escaped}</strong>" if span.bold else escaped)
    return "".join(out)


def to_html(blocks: List[DisplayBlock]) -> str:
    """Serialize blocks to HTML. All span text is escaped."""
    parts: List[str] = []
    for block in blocks:
        if block.kind == BlockKind.SPACER:
            parts.append('<div class="spacer"></div>')
        elif block.kind == BlockKind.BULLET_ITEM:
            parts.append(f'<li class="list-disc">{_spans_html(block.spans)}</li>')
        elif block.kind == BlockKind.NUMBERED_ITEM:
            parts.append(f'<li class="list-decimal">{_spans_html(block.spans)}</li>')
        else:
            tag = _BLOCK_TAGS[block.kind]
            parts.append(f"<{tag}>{_spans_html(block.spans)}</{tag}>")
    return "\n".join(parts)
