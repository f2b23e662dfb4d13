"""
Crawl runner module for llm_spider.

Drives bounded breadth-first traversal over the route queue: batches of up to
`concurrency` captures run together on the event loop, each batch finishes
before the next one is formed, and harvested links join the queue behind the
current level.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set

from .base import PageSource
from .config import DEFAULT_SECTION, ExclusionRule, RouteSpec, SpiderConfig
from .extraction import ContentExtractor, MarkdownConverter, extract_links, format_frontmatter
from .llms_index import CapturedPage
from .persistence import PersistenceStrategy
from .utils import is_excluded, normalize_route, strip_base_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Depth:
    """BFS distance from the nearest seed, or pending until the parent finishes."""
    value: Optional[int] = None

    @classmethod
    def resolved(cls, value: int) -> "Depth":
        return cls(value)

    @classmethod
    def pending(cls) -> "Depth":
        return cls(None)

    @property
    def is_pending(self) -> bool:
        return self.value is None

    def child_of(self, parent_depth: int) -> "Depth":
        """Resolve a pending depth; resolved depths are kept."""
        if not self.is_pending:
            return self
        return Depth.resolved(max(parent_depth + 1, 1))


@dataclass
class QueueEntry:
    route: str
    depth: Depth


@dataclass
class CrawlStats:
    """Statistics for one run."""
    dispatched: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    max_depth_reached: int = 0
    depth_distribution: Dict[str, int] = field(default_factory=dict)


@dataclass
class RunSettings:
    """Limits and switches for one traversal."""
    crawl: bool = False
    max_depth: int = 0
    max_pages: int = 50
    concurrency: int = 3
    strip_query: bool = True
    base_path: str = "/"
    exclude: Sequence[ExclusionRule] = ()
    add_frontmatter: bool = True
    route_specs: Sequence[RouteSpec] = ()

    @classmethod
    def from_config(
        cls,
        config: SpiderConfig,
        specs: Sequence[RouteSpec],
        seeds: Sequence[str],
        base_path: str = "/",
    ) -> "RunSettings":
        """
        Derive run limits from configuration.

        Explicit mode never harvests links and captures at most one page per
        seed; crawl mode uses the configured depth and page caps.
        """
        crawl = config.crawl.enabled
        return cls(
            crawl=crawl,
            max_depth=config.crawl.max_depth if crawl else 0,
            max_pages=config.crawl.max_pages if crawl else max(len(seeds), 1),
            concurrency=config.crawl.concurrency,
            strip_query=config.crawl.strip_query,
            base_path=base_path,
            exclude=list(config.exclude),
            add_frontmatter=config.markdown.add_frontmatter,
            route_specs=list(specs),
        )


class CrawlRunner:
    """Breadth-first capture of routes with dedup, exclusion and hard limits."""

    def __init__(
        self,
        source: PageSource,
        extractor: ContentExtractor,
        converter: MarkdownConverter,
        persistence: PersistenceStrategy,
        settings: RunSettings,
    ):
        """
        Initialize CrawlRunner.

        Args:
            source: Page source (renderer or static reader), already entered
            extractor: Content extractor
            converter: HTML-to-Markdown converter
            persistence: Output layout used to write documents
            settings: Traversal limits
        """
        self.source = source
        self.extractor = extractor
        self.converter = converter
        self.persistence = persistence
        self.settings = settings

        self.queue: Deque[QueueEntry] = deque()
        self.visited: Set[str] = set()
        self.captured: List[CapturedPage] = []
        self.stats = CrawlStats()

        self._queued: Dict[str, QueueEntry] = {}
        self._writing = 0
        self._batch_depth = 0
        self._specs = {spec.path: spec for spec in settings.route_specs}

    async def run(self, seeds: Iterable[str]) -> List[CapturedPage]:
        """
        Capture seeds and, in crawl mode, the pages they link to.

        Args:
            seeds: Seed routes (depth 0)

        Returns:
            Captured pages in capture order
        """
        for seed in seeds:
            route = normalize_route(seed, strip_query=self.settings.strip_query)
            if route is None:
                continue
            self._enqueue(route, Depth.resolved(0))

        logger.info(
            f"Starting {'crawl' if self.settings.crawl else 'capture'}: {len(self.queue)} seed routes "
            f"(max_depth={self.settings.max_depth}, max_pages={self.settings.max_pages}, "
            f"concurrency={self.settings.concurrency})"
        )

        while self.queue and len(self.captured) < self.settings.max_pages:
            batch = self._next_batch()
            if not batch:
                continue

            await asyncio.gather(*(self._dispatch(entry) for entry in batch))
            self._patch_pending(self._batch_depth)

        if self.queue:
            logger.info(f"Page cap reached, discarding {len(self.queue)} queued routes")
            self.queue.clear()
            self._queued.clear()

        logger.info(
            f"Capture completed: {self.stats.success} success, {self.stats.failed} failed, "
            f"{self.stats.skipped} skipped, max depth reached: {self.stats.max_depth_reached}"
        )
        return self.captured

    def _enqueue(self, route: str, depth: Depth) -> bool:
        if route in self.visited or route in self._queued:
            return False
        if is_excluded(route, self.settings.exclude):
            return False
        entry = QueueEntry(route=route, depth=depth)
        self.queue.append(entry)
        self._queued[route] = entry
        return True

    def _next_batch(self) -> List[QueueEntry]:
        """
        Pop up to `concurrency` dispatchable entries and mark them visited.

        Pending depths count as children of the previous batch.
        """
        batch: List[QueueEntry] = []
        while self.queue and len(batch) < self.settings.concurrency:
            entry = self.queue.popleft()
            self._queued.pop(entry.route, None)
            entry.depth = entry.depth.child_of(self._batch_depth)

            if entry.route in self.visited:
                continue
            if is_excluded(entry.route, self.settings.exclude):
                continue
            if self.settings.crawl and entry.depth.value > self.settings.max_depth:
                logger.debug(f"Skipping {entry.route}: depth {entry.depth.value} > {self.settings.max_depth}")
                continue

            self.visited.add(entry.route)
            batch.append(entry)

        if batch:
            self._batch_depth = min(entry.depth.value for entry in batch)
        return batch

    def _patch_pending(self, parent_depth: int) -> None:
        for entry in self.queue:
            if entry.depth.is_pending:
                entry.depth = entry.depth.child_of(parent_depth)

    async def _dispatch(self, entry: QueueEntry) -> None:
        self.stats.dispatched += 1
        try:
            await self._capture(entry)
        except Exception as e:
            logger.warning(f"Failed to capture {entry.route}: {e}")
            self.stats.failed += 1
        self._patch_pending(entry.depth.value)

    def _has_capacity(self) -> bool:
        return len(self.captured) + self._writing < self.settings.max_pages

    async def _capture(self, entry: QueueEntry) -> None:
        """
        Capture one route: fetch, extract, convert, write, record, harvest.

        Args:
            entry: Queue entry with resolved depth
        """
        route = entry.route
        depth = entry.depth.value

        if not self._has_capacity():
            logger.debug(f"Page cap reached, skipping {route}")
            self.stats.skipped += 1
            return

        html = await self.source.fetch(route)

        if not self._has_capacity():
            logger.debug(f"Page cap reached, skipping {route}")
            self.stats.skipped += 1
            return

        extracted = self.extractor.extract(html, route)
        body = self.converter.convert(extracted.main_html)

        spec = self._specs.get(route)
        title = spec.title if spec is not None and spec.title else extracted.title
        document = format_frontmatter(route, title) + body if self.settings.add_frontmatter else body

        self._writing += 1
        try:
            saved = await self.persistence.save(route, document)
        finally:
            self._writing -= 1

        if saved.displaced is not None:
            self._drop_captured(saved.displaced)

        self.captured.append(CapturedPage(
            route=route,
            title=title,
            section=(spec.section if spec is not None and spec.section else DEFAULT_SECTION),
            optional=spec.optional if spec is not None else False,
            notes=spec.notes if spec is not None else None,
            md_rel_path=saved.rel_path,
            depth=depth,
        ))
        self._update_stats(depth)
        logger.info(f"  {route} -> {saved.rel_path}")

        if self.settings.crawl and depth < self.settings.max_depth:
            self._harvest(html, route, depth)

    def _harvest(self, html: str, route: str, depth: int) -> None:
        added = 0
        for href in extract_links(html):
            link = normalize_route(href, strip_query=self.settings.strip_query)
            if link is None:
                continue
            link = strip_base_path(link, self.settings.base_path)

            queued = self._queued.get(link)
            if queued is not None:
                # a shallower parent finished in the same batch
                if not queued.depth.is_pending and queued.depth.value > depth + 1:
                    queued.depth = Depth.resolved(depth + 1)
                continue

            if self._enqueue(link, Depth.pending()):
                added += 1
        logger.debug(f"Harvested {added} new routes from {route}")

    def _drop_captured(self, route: str) -> None:
        """Forget a page whose document was taken over by another route."""
        for page in self.captured:
            if page.route == route:
                self.captured.remove(page)
                self.stats.success -= 1
                self.stats.failed += 1
                depth_key = f"depth_{page.depth}"
                self.stats.depth_distribution[depth_key] -= 1
                if not self.stats.depth_distribution[depth_key]:
                    del self.stats.depth_distribution[depth_key]
                return

    def _update_stats(self, depth: int) -> None:
        self.stats.success += 1
        if depth > self.stats.max_depth_reached:
            self.stats.max_depth_reached = depth
        depth_key = f"depth_{depth}"
        self.stats.depth_distribution[depth_key] = self.stats.depth_distribution.get(depth_key, 0) + 1

    def get_stats(self) -> CrawlStats:
        """Get processing statistics."""
        return self.stats

    def get_results(self) -> List[CapturedPage]:
        """Get captured pages."""
        return self.captured.copy()
