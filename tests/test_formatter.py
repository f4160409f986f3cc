from knowbot.knowledge.types import SourceCitation
from knowbot.pipeline.formatter import ensure_html, format_response, render_read_more


class TestEnsureHtml:
    def test_existing_markup_passes_through(self) -> None:
        text = "<p>Already <strong>formatted</strong></p>"

        assert ensure_html(text) == text

    def test_paragraphs_and_line_breaks(self) -> None:
        text = "First line\nsecond line\n\nNew paragraph"

        assert ensure_html(text) == "<p>First line<br>second line</p><p>New paragraph</p>"

    def test_bullets_become_list(self) -> None:
        text = "Plans:\n- Starter\n- Pro"

        assert ensure_html(text) == "<p>Plans:</p><ul><li>Starter</li><li>Pro</li></ul>"

    def test_plain_text_is_escaped(self) -> None:
        assert ensure_html("Tom & Jerry") == "<p>Tom &amp; Jerry</p>"


class TestReadMore:
    def test_no_citations_no_block(self) -> None:
        assert render_read_more([]) == ""

    def test_block_lists_citations_in_order(self) -> None:
        block = render_read_more(
            [
                SourceCitation("Pricing", "https://example.com/pricing", 0.9),
                SourceCitation("Docs & FAQ", "https://example.com/docs?a=1&b=2", 0.7),
            ]
        )

        assert "📚 Read More:" in block
        assert block.index("Pricing") < block.index("Docs &amp; FAQ")
        assert 'href="https://example.com/docs?a=1&amp;b=2"' in block
        assert 'target="_blank" rel="noopener noreferrer"' in block
        assert block.count("<li") == 2


class TestFormatResponse:
    def test_answer_followed_by_read_more(self) -> None:
        result = format_response(
            "<p>Answer</p>", [SourceCitation("Pricing", "https://example.com/pricing", 0.9)]
        )

        assert result.startswith("<p>Answer</p>\n<div class=\"read-more\"")

    def test_without_citations_only_answer(self) -> None:
        assert format_response("Hi") == "<p>Hi</p>"

    def test_read_more_appended_once(self) -> None:
        citations = [SourceCitation("Pricing", "https://example.com/pricing", 0.9)]

        once = format_response("Plans start at $10.", citations)
        twice = format_response(once, citations)

        assert twice == once
        assert twice.count("Read More:") == 1

    def test_formatting_is_idempotent_for_html(self) -> None:
        once = format_response("Plain answer\n- one\n- two")

        assert format_response(once) == once
