import pytest

from llm_spider.llms_index import (
    CapturedPage,
    build_index_document,
    make_link,
    render_index_document,
    write_index_document,
)


def page(route, md_rel_path, title=None, section="Pages", optional=False, notes=None):
    return CapturedPage(
        route=route,
        title=title,
        section=section,
        optional=optional,
        notes=notes,
        md_rel_path=md_rel_path,
    )


class TestIndexDocument:
    """Test suite for llms.txt assembly."""

    def test_sections_and_optional(self):
        pages = [
            page("/pricing", "pricing.md", title="Pricing", section="Product"),
            page("/changelog", "changelog.md", title="Changelog", optional=True, notes="Release history"),
            page("/", "index.html.md", title="Home", section="Product", notes="Landing page"),
        ]
        document = build_index_document(pages, "Acme", "Acme makes widgets.")

        assert [section.name for section in document.sections] == ["Product"]
        assert [p.route for p in document.sections[0].pages] == ["/", "/pricing"]
        assert [p.route for p in document.optional] == ["/changelog"]

        assert render_index_document(document) == (
            "# Acme\n"
            "\n"
            "> Acme makes widgets.\n"
            "\n"
            "## Product\n"
            "\n"
            "- [Home](index.html.md): Landing page\n"
            "- [Pricing](pricing.md)\n"
            "\n"
            "## Optional\n"
            "\n"
            "- [Changelog](changelog.md): Release history\n"
            "\n"
        )

    def test_sections_in_first_seen_order(self):
        pages = [
            page("/b", "b.md", section="Guides"),
            page("/a", "a.md", section="Reference"),
            page("/c", "c.md", section="Guides"),
        ]
        document = build_index_document(pages, "T", "S")
        assert [section.name for section in document.sections] == ["Reference", "Guides"]

        unsorted = build_index_document(pages, "T", "S", sort=False)
        assert [section.name for section in unsorted.sections] == ["Guides", "Reference"]
        assert [p.route for p in unsorted.sections[0].pages] == ["/b", "/c"]

    def test_capture_order_does_not_matter(self):
        pages = [page("/x", "x.md"), page("/", "index.html.md"), page("/docs/", "docs/index.html.md")]
        first = render_index_document(build_index_document(pages, "T", "S"))
        second = render_index_document(build_index_document(list(reversed(pages)), "T", "S"))
        assert first == second

    def test_label_falls_back_to_route(self):
        text = render_index_document(build_index_document([page("/docs/", "ai/docs/index.html.md")], "T", "S"))
        assert "- [/docs/](ai/docs/index.html.md)\n" in text

    def test_empty(self):
        assert render_index_document(build_index_document([], "Site", "Nothing")) == "# Site\n\n> Nothing\n\n"

    def test_links_are_relative(self):
        assert make_link("/ai/pricing.md") == "ai/pricing.md"
        assert make_link("docs\\api.md") == "docs/api.md"

    @pytest.mark.asyncio
    async def test_write(self, tmp_path):
        document = build_index_document([page("/", "index.html.md", title="Home")], "Site", "Summary")
        path = await write_index_document(document, tmp_path, "llms.txt")
        assert path == tmp_path / "llms.txt"
        assert path.read_text(encoding="utf-8").startswith("# Site\n\n> Summary\n\n## Pages\n\n- [Home](index.html.md)\n")
