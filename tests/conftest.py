import asyncio
from typing import Dict, Iterable, Optional

import pytest

from llm_spider.base import PageSource
from llm_spider.config import SpiderConfig
from llm_spider.crawl_runner import CrawlRunner, RunSettings
from llm_spider.errors import PageFetchError
from llm_spider.extraction import ContentExtractor, MarkdownConverter
from llm_spider.persistence import create_persistence_strategy


def make_page(title: str, body: str, links: Iterable[str] = ()) -> str:
    """Build a page with site chrome around the main content."""
    nav = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        f"<html><head><title>{title}</title><script>track()</script></head>"
        f"<body><nav>{nav}</nav>"
        f"<main><h1>{title}</h1><p>{body}</p></main>"
        f"<footer>Copyright</footer></body></html>"
    )


class FakeSource(PageSource):
    """In-memory page source with optional per-route delays and failures."""

    def __init__(self, pages: Dict[str, str], failing: Iterable[str] = (), delays: Optional[Dict[str, float]] = None):
        self.pages = pages
        self.failing = set(failing)
        self.delays = delays or {}
        self.fetched = []

    async def fetch(self, route: str) -> str:
        self.fetched.append(route)
        await asyncio.sleep(self.delays.get(route, 0))
        if route in self.failing:
            raise PageFetchError(route, "forced failure")
        if route not in self.pages:
            raise PageFetchError(route, "not found")
        return self.pages[route]


@pytest.fixture
def site_pages():
    """A small site: two levels under the root plus one page at depth 3."""
    return {
        "/": make_page("Home", "Welcome", [
            "/docs/", "pricing", "/admin", "mailto:team@example.com",
            "https://example.com/external", "/pricing?ref=nav#plans",
        ]),
        "/docs/": make_page("Docs", "Documentation", ["/docs/api", "./docs/guide", "/"]),
        "/pricing": make_page("Pricing", "Plans", ["/"]),
        "/docs/api": make_page("API", "Reference", ["/docs/api/v2"]),
        "/docs/guide": make_page("Guide", "Getting started", ["/#intro"]),
        "/docs/api/v2": make_page("API v2", "Next version"),
        "/admin": make_page("Admin", "Secret"),
    }


def build_runner(source: PageSource, output_dir, config: Optional[SpiderConfig] = None, seeds=("/",), specs=(), base_path="/"):
    config = config or SpiderConfig()
    persistence = create_persistence_strategy(config.output.mode, output_dir, subdir=config.output.subdir)
    settings = RunSettings.from_config(config, list(specs), list(seeds), base_path=base_path)
    return CrawlRunner(
        source,
        ContentExtractor(config.extract),
        MarkdownConverter(config.markdown),
        persistence,
        settings,
    )
