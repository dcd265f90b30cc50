from __future__ import annotations

from seoul_bites.models import BlockKind, Span
from seoul_bites.services.markup import parse_inline, render, to_html


def test_bold_then_plain_with_single_asterisks():
    blocks = render("**Bold** and *not bold*")

    assert len(blocks) == 1
    assert blocks[0].kind == BlockKind.PARAGRAPH
    assert blocks[0].spans == [Span(text="Bold", bold=True), Span(text=" and *not bold*")]


def test_empty_input_gives_no_blocks():
    assert render("") == []


def test_one_block_per_line_including_blank_lines():
    blocks = render("intro\n\n## Picks\n### Budget\n* one\n- two\n1. first\n  12. twelfth\noutro\n")

    assert [b.kind for b in blocks] == [
        BlockKind.PARAGRAPH,
        BlockKind.SPACER,
        BlockKind.HEADING_2,
        BlockKind.HEADING_3,
        BlockKind.BULLET_ITEM,
        BlockKind.BULLET_ITEM,
        BlockKind.NUMBERED_ITEM,
        BlockKind.NUMBERED_ITEM,
        BlockKind.PARAGRAPH,
        BlockKind.SPACER,
    ]


def test_prefixes_are_stripped():
    blocks = render("### Gangnam\n   -   indented bullet\n3. **Jinju** hoe")

    assert blocks[0].spans == [Span(text="Gangnam")]
    assert blocks[1].spans == [Span(text="indented bullet")]
    assert blocks[2].spans == [Span(text="Jinju", bold=True), Span(text=" hoe")]


def test_whitespace_only_line_is_spacer():
    blocks = render("   \t")
    assert len(blocks) == 1
    assert blocks[0].kind == BlockKind.SPACER
    assert blocks[0].spans == []


def test_crlf_line_breaks():
    blocks = render("a\r\nb")
    assert [b.spans[0].text for b in blocks] == ["a", "b"]


def test_empty_bold_span_does_not_crash():
    assert parse_inline("a****b") == [Span(text="a"), Span(text="", bold=True), Span(text="b")]


def test_bold_is_non_greedy():
    spans = parse_inline("**a** and **b**")
    assert spans == [Span(text="a", bold=True), Span(text=" and "), Span(text="b", bold=True)]


def test_unclosed_bold_stays_plain():
    assert parse_inline("**open only") == [Span(text="**open only")]


def test_parsing_rendered_text_again_adds_no_emphasis():
    first = render("**Bold** word")[0]
    flattened = "".join(span.text for span in first.spans)

    again = render(flattened)[0]
    assert again.spans == [Span(text="Bold word")]


def test_to_html_escapes_span_text():
    html = to_html(render("## <b>hi</b>\n**<script>x</script>**\n\n- a & b"))

    assert "<h2>&lt;b&gt;hi&lt;/b&gt;</h2>" in html
    assert "<strong>&lt;script&gt;x&lt;/script&gt;</strong>" in html
    assert '<div class="spacer"></div>' in html
    assert '<li class="list-disc">a &amp; b</li>' in html
    assert "<script>" not in html
