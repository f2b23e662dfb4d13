"""
Pipeline entry point for llm_spider.

Resolves routes, opens the page source for the run, captures pages and
writes the llms.txt index.
"""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .base import C4ARenderer, PageSource, RenderHooks, StaticReader
from .config import BuildContext, SpiderConfig, resolve_route_specs, seed_routes, use_static_reader
from .crawl_runner import CrawlRunner, CrawlStats, RunSettings
from .errors import BuildOutputError
from .extraction import ContentExtractor, MarkdownConverter
from .llms_index import CapturedPage, build_index_document, write_index_document
from .persistence import PersistenceStrategy, create_persistence_strategy
from .preview import PreviewServer
from .utils import is_excluded

logger = logging.getLogger(__name__)

DEFAULT_INDEX_TITLE = "Site"


@dataclass
class SpiderResult:
    """Outcome of one run."""
    pages: List[CapturedPage]
    index_path: Path
    stats: CrawlStats
    static: bool


def _persistence_for(config: SpiderConfig, build: BuildContext) -> PersistenceStrategy:
    return create_persistence_strategy(config.output.mode, build.out_dir, subdir=config.output.subdir)


def plan_routes(config: SpiderConfig, build: BuildContext) -> List[Tuple[str, Optional[str]]]:
    """
    List seed routes and the document each would produce, without capturing.

    Args:
        config: Spider configuration
        build: Build context

    Returns:
        (route, output-relative path) pairs; path is None for excluded routes
    """
    specs = resolve_route_specs(config)
    persistence = _persistence_for(config, build)
    plan = []
    for route in seed_routes(config, specs):
        if is_excluded(route, config.exclude):
            plan.append((route, None))
        else:
            plan.append((route, persistence.rel_path(route)))
    return plan


async def run_spider(
    config: SpiderConfig,
    build: BuildContext,
    hooks: Optional[RenderHooks] = None,
) -> Optional[SpiderResult]:
    """
    Generate Markdown snapshots and the index for a built site.

    Args:
        config: Spider configuration
        build: Build output location, base path and project name
        hooks: Optional render hooks (renderer mode only)

    Returns:
        Run result, or None when the spider is disabled

    Raises:
        BuildOutputError: If the build output directory does not exist
        SpiderError: If the preview server or the browser cannot be started
    """
    if not config.enabled:
        logger.info("LLM Spider disabled, skipping")
        return None

    out_dir = Path(build.out_dir)
    if not out_dir.is_dir():
        raise BuildOutputError(f"Build output directory not found: {out_dir}")

    specs = resolve_route_specs(config)
    seeds = seed_routes(config, specs)
    static = use_static_reader(config)

    logger.info(
        f"LLM Spider: generating markdown + {config.output.index_file_name} "
        f"({'static' if static else 'browser'} mode)"
    )
    logger.debug(f"out_dir: {out_dir}, base: {build.base_path}")

    persistence = _persistence_for(config, build)
    settings = RunSettings.from_config(config, specs, seeds, base_path=build.base_path)

    async with AsyncExitStack() as stack:
        source: PageSource
        if static:
            source = await stack.enter_async_context(
                StaticReader(out_dir, timeout=config.render.timeout_seconds)
            )
        else:
            server = await stack.enter_async_context(PreviewServer(out_dir, build.base_path))
            source = await stack.enter_async_context(C4ARenderer(config.render, server.base_url, hooks))

        runner = CrawlRunner(
            source,
            ContentExtractor(config.extract),
            MarkdownConverter(config.markdown),
            persistence,
            settings,
        )
        pages = await runner.run(seeds)

    await persistence.finalize()

    document = build_index_document(
        pages,
        title=config.output.title or build.project_name or DEFAULT_INDEX_TITLE,
        summary=config.output.summary,
        sort=config.output.sort,
    )
    index_path = await write_index_document(document, out_dir, config.output.index_file_name)

    logger.info(f"LLM Spider: wrote {len(pages)} markdown pages + {config.output.index_file_name}")

    return SpiderResult(pages=pages, index_path=index_path, stats=runner.get_stats(), static=static)
