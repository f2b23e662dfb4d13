"""
Page source module for llm_spider.

Provides the two ways of obtaining page markup: rendering through Crawl4AI's
AsyncWebCrawler against the preview server, or reading the built HTML from
disk. Both are async context managers that own their shared resource for the
whole run.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union

from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from .config import RenderConfig
from .errors import PageFetchError, SpiderError
from .persistence import DIRECTORY_INDEX_HTML, route_to_html_path
from .utils import route_from_url, route_to_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookContext:
    """Passed to render hooks."""
    route: str
    url: str


class RenderHooks:
    """
    User hooks around navigation and extraction.

    Subclass and override to mutate browser state, e.g. set cookies or
    headers before navigation. Both hooks are awaited before the pipeline
    continues; an exception fails only the current route.
    """

    async def before_goto(self, page: Any, ctx: HookContext) -> None:
        pass

    async def before_extract(self, page: Any, ctx: HookContext) -> None:
        pass


class PageSource(ABC):
    """Produces page markup for a route."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    @abstractmethod
    async def fetch(self, route: str) -> str:
        """
        Get page markup.

        Args:
            route: Normalized route key

        Returns:
            Page markup

        Raises:
            PageFetchError: If the page cannot be obtained
        """
        pass


class StaticReader(PageSource):
    """Reads previously generated HTML from the build output directory."""

    def __init__(self, root: Union[str, Path], timeout: float = 30.0):
        """
        Initialize StaticReader.

        Args:
            root: Build output directory
            timeout: Per-read timeout in seconds
        """
        self.root = Path(root).resolve()
        self.timeout = timeout

    def candidates(self, route: str) -> List[Path]:
        """
        Files to try for a route, in order.

        A route whose last segment has an extension ("/about.html") is tried
        as a literal file first and never falls back to the single-page-app
        shell. Otherwise: direct path, the directory-index variant for leaf
        routes, then the shell.
        """
        rel_paths = [route_to_html_path(route)]
        if route != "/" and not route.endswith("/"):
            rel_paths.append(route[1:] + "/" + DIRECTORY_INDEX_HTML)

        if "." in route.rsplit("/", 1)[-1]:
            rel_paths.insert(0, route[1:])
        else:
            rel_paths.append(DIRECTORY_INDEX_HTML)

        paths = []
        for rel_path in rel_paths:
            path = self.root.joinpath(*[part for part in rel_path.split("/") if part]).resolve()
            if path != self.root and self.root not in path.parents:
                logger.debug(f"Ignoring path outside build output: {path}")
                continue
            if path not in paths:
                paths.append(path)
        return paths

    def _read(self, route: str) -> str:
        shell = self.root / DIRECTORY_INDEX_HTML
        for path in self.candidates(route):
            if path.is_file():
                if path == shell and route not in ("/", "/" + DIRECTORY_INDEX_HTML):
                    logger.debug(f"Using SPA fallback index.html for {route}")
                return path.read_text(encoding="utf-8")
        raise PageFetchError(route, "no HTML found")

    async def fetch(self, route: str) -> str:
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._read, route), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise PageFetchError(route, f"read timed out after {self.timeout}s")
        except OSError as e:
            raise PageFetchError(route, f"read failed: {e}") from e


class C4ARenderer(PageSource):
    """
    Renders pages through Crawl4AI's AsyncWebCrawler.

    Manages the crawler lifecycle, installs request blocking and user hooks,
    and builds one CrawlerRunConfig per run.
    """

    def __init__(self, config: RenderConfig, base_url: str, hooks: Optional[RenderHooks] = None):
        """
        Initialize C4ARenderer.

        Args:
            config: Render configuration
            base_url: Preview server URL including the base path, ending in '/'
            hooks: User hooks, no-op by default
        """
        self.config = config
        self.base_url = base_url
        self.hooks = hooks or RenderHooks()
        self.crawler: Optional[AsyncWebCrawler] = None
        self.browser_config = self._build_browser_config()
        self.run_config = self.build_run_config()

    def _build_browser_config(self) -> BrowserConfig:
        """Build browser configuration with performance optimizations."""
        return BrowserConfig(
            headless=self.config.headless,
            verbose=False,
            extra_args=[
                "--disable-gpu",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ]
        )

    def build_run_config(self) -> CrawlerRunConfig:
        """Build CrawlerRunConfig from render settings."""
        wait_for = None
        if self.config.wait_for_selector:
            wait_for = f"css:{self.config.wait_for_selector}"

        return CrawlerRunConfig(
            cache_mode=CacheMode.BYPASS,
            wait_until=self.config.playwright_wait_until,
            page_timeout=self.config.timeout_ms,
            wait_for=wait_for,
            delay_before_return_html=self.config.post_load_delay_ms / 1000.0,
            verbose=False,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        logger.info("Starting AsyncWebCrawler")
        self.crawler = AsyncWebCrawler(config=self.browser_config)
        try:
            await self.crawler.start()
        except Exception as e:
            try:
                await self.crawler.close()
            except Exception as close_error:
                logger.debug(f"Error closing crawler after failed start: {close_error}")
            self.crawler = None
            raise SpiderError(f"Could not start browser: {e}") from e
        self._install_hooks()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.crawler:
            logger.info("Closing AsyncWebCrawler")
            await self.crawler.close()
            self.crawler = None

    def _install_hooks(self) -> None:
        strategy = self.crawler.crawler_strategy
        strategy.set_hook("on_page_context_created", self._on_page_context_created)
        strategy.set_hook("before_goto", self._before_goto)
        strategy.set_hook("before_retrieve_html", self._before_retrieve_html)

    def is_blocked(self, url: str) -> bool:
        return any(rule.matches(url) for rule in self.config.block_requests)

    async def _on_page_context_created(self, page, context=None, **kwargs):
        if not self.config.block_requests:
            return page

        async def handle(route):
            if self.is_blocked(route.request.url):
                logger.debug(f"Blocked request: {route.request.url}")
                await route.abort()
            else:
                await route.continue_()

        await page.route("**/*", handle)
        return page

    async def _before_goto(self, page, context=None, url: str = "", **kwargs):
        await self.hooks.before_goto(page, HookContext(route=route_from_url(url, self.base_url), url=url))
        return page

    async def _before_retrieve_html(self, page, context=None, **kwargs):
        url = page.url
        await self.hooks.before_extract(page, HookContext(route=route_from_url(url, self.base_url), url=url))
        return page

    async def fetch(self, route: str) -> str:
        if self.crawler is None:
            raise SpiderError("Renderer used outside of its context")

        url = route_to_url(self.base_url, route)
        # navigation, selector wait and delay are each bounded by page_timeout
        budget = self.config.timeout_seconds * 3 + self.config.post_load_delay_ms / 1000.0

        try:
            result = await asyncio.wait_for(self.crawler.arun(url=url, config=self.run_config), timeout=budget)
        except asyncio.TimeoutError:
            raise PageFetchError(route, f"render timed out after {budget:.0f}s")

        if not result.success:
            raise PageFetchError(route, result.error_message or "render failed")
        if not result.html:
            raise PageFetchError(route, "renderer returned no markup")
        return result.html
