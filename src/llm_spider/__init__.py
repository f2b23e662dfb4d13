"""
llm_spider - Markdown snapshots and an llms.txt index for built web apps

This package renders (or reads) the pages of a built site and publishes:
- One clean Markdown document per page, noise removed, main content only
- A curated llms.txt index grouped by section
- Explicit route lists (default) or bounded breadth-first crawling
- Sibling or subdirectory output layouts
"""

__version__ = "0.3.0"

from .config import (
    load_config,
    merge_config,
    resolve_route_specs,
    seed_routes,
    BuildContext,
    SpiderConfig,
    RouteSpec,
    LiteralRule,
    PatternRule,
    OutputMode,
)
from .errors import SpiderError, ConfigError, BuildOutputError, PageCaptureError
from .base import PageSource, StaticReader, C4ARenderer, RenderHooks, HookContext
from .extraction import ContentExtractor, MarkdownConverter, extract_links
from .persistence import PersistenceStrategy, create_persistence_strategy, route_to_md_path
from .crawl_runner import CrawlRunner, RunSettings, CrawlStats
from .llms_index import CapturedPage, IndexDocument, build_index_document, render_index_document
from .preview import PreviewServer
from .spider import run_spider, SpiderResult
from .utils import normalize_route, is_excluded
from .cli import main

__all__ = [
    "load_config",
    "merge_config",
    "resolve_route_specs",
    "seed_routes",
    "BuildContext",
    "SpiderConfig",
    "RouteSpec",
    "LiteralRule",
    "PatternRule",
    "OutputMode",
    "SpiderError",
    "ConfigError",
    "BuildOutputError",
    "PageCaptureError",
    "PageSource",
    "StaticReader",
    "C4ARenderer",
    "RenderHooks",
    "HookContext",
    "ContentExtractor",
    "MarkdownConverter",
    "extract_links",
    "PersistenceStrategy",
    "create_persistence_strategy",
    "route_to_md_path",
    "CrawlRunner",
    "RunSettings",
    "CrawlStats",
    "CapturedPage",
    "IndexDocument",
    "build_index_document",
    "render_index_document",
    "PreviewServer",
    "run_spider",
    "SpiderResult",
    "normalize_route",
    "is_excluded",
    "main",
]
