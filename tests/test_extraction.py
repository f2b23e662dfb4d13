from datetime import datetime, timezone

import pytest

from llm_spider.config import ExtractConfig, MarkdownConfig
from llm_spider.errors import EmptyContentError
from llm_spider.extraction import ContentExtractor, MarkdownConverter, extract_links, format_frontmatter


class TestContentExtractor:
    """Test suite for noise removal and main-content selection."""

    def test_removes_noise_and_picks_main(self):
        html = (
            "<html><head><title> Pricing | Acme </title></head><body>"
            "<header>Logo</header><nav><a href='/'>Home</a></nav>"
            "<main><h1>Pricing</h1><script>x()</script><div class='cookie'>Accept?</div><p>Plans</p></main>"
            "<footer>Legal</footer></body></html>"
        )
        content = ContentExtractor().extract(html, "/pricing")

        assert content.title == "Pricing | Acme"
        assert "<h1>Pricing</h1>" in content.main_html
        assert "Plans" in content.main_html
        assert "x()" not in content.main_html
        assert "Accept?" not in content.main_html
        assert "Logo" not in content.main_html

    def test_first_matching_selector_wins(self):
        html = (
            "<html><body><main>Generic</main>"
            "<div id='main-content'>Specific</div><div data-main>Data</div></body></html>"
        )
        config = ExtractConfig(main_selector=["article", "#main-content", "[data-main]"])
        content = ContentExtractor(config).extract(html, "/")
        assert content.main_html == "Specific"

    def test_falls_back_to_main_then_body(self):
        config = ExtractConfig(main_selector=["article"])
        extractor = ContentExtractor(config)

        with_main = extractor.extract("<html><body><div>Side</div><main>Core</main></body></html>", "/a")
        assert with_main.main_html == "Core"

        body_only = extractor.extract("<html><body><div>Everything</div></body></html>", "/b")
        assert body_only.main_html == "<div>Everything</div>"

    def test_title_defaults_to_route(self):
        content = ContentExtractor().extract("<html><head><title>  </title></head><body><main>x</main></body></html>", "/about")
        assert content.title == "/about"

        content = ContentExtractor().extract("<main>x</main>", "/docs/")
        assert content.title == "/docs/"

    def test_invalid_selector_is_skipped(self):
        config = ExtractConfig(main_selector=["[[broken", "section"], remove_selectors=["::nope("])
        content = ContentExtractor(config).extract("<html><body><section>Kept</section></body></html>", "/")
        assert content.main_html == "Kept"

    def test_empty_content_raises(self):
        with pytest.raises(EmptyContentError):
            ContentExtractor().extract("<html><body><main>   </main></body></html>", "/empty")


class TestLinks:

    def test_extract_links_in_order(self):
        html = "<nav><a href='/a'>A</a><a>No href</a></nav><main><a href='b?x=1'>B</a><a href='#top'>Top</a></main>"
        assert extract_links(html) == ["/a", "b?x=1", "#top"]


class TestMarkdownConverter:

    def test_converts_with_defaults(self):
        text = MarkdownConverter().convert("<h1>Title</h1><p>Some <em>emphasis</em> here.</p><ul><li>One</li></ul>")
        assert text.startswith("# Title")
        assert "_emphasis_" in text
        assert "- One" in text
        assert text.endswith("\n")
        assert "\n\n\n" not in text

    def test_setext_and_asterisk(self):
        config = MarkdownConfig(converter_options={"headingStyle": "setext", "emDelimiter": "*"})
        text = MarkdownConverter(config).convert("<h1>Title</h1><p><em>x</em></p>")
        assert "Title\n=====" in text
        assert "*x*" in text

    def test_fenced_code(self):
        text = MarkdownConverter().convert("<pre><code>print(1)</code></pre>")
        assert "```" in text
        assert "print(1)" in text


class TestFrontmatter:

    def test_format(self):
        generated_at = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)
        assert format_frontmatter("/pricing", "Pricing", generated_at) == (
            "---\n"
            "source: /pricing\n"
            "title: Pricing\n"
            "generated_at: 2024-05-01T12:30:00.000Z\n"
            "---\n\n"
        )

    def test_quotes_unsafe_title(self):
        block = format_frontmatter("/", "Acme: the #1 tool")
        assert 'title: "Acme: the #1 tool"' in block
