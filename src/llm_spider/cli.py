"""
CLI module for llm_spider.

Provides command-line interface and orchestration logic.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import BuildContext, SpiderConfig, load_config, merge_config
from .spider import plan_routes, run_spider

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "silent": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def setup_logging(level: int = logging.INFO) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def apply_cli_overrides(config: SpiderConfig, crawl: bool = False, static: Optional[bool] = None) -> SpiderConfig:
    """Fold command-line switches into the loaded configuration."""
    overrides: Dict[str, Any] = {}
    if crawl:
        overrides["crawl"] = {"enabled": True}
    if static is not None:
        overrides["static"] = static
    if not overrides:
        return config
    return merge_config(config, overrides)


async def run_cli(
    dist_dir: str,
    config_path: Optional[str] = None,
    base_path: str = "/",
    project_name: Optional[str] = None,
    crawl: bool = False,
    static: Optional[bool] = None,
    dry_run: bool = False,
    verbose: bool = False
) -> None:
    """
    Main orchestration function for the command line.

    Args:
        dist_dir: Build output directory
        config_path: Path to JSON configuration file, defaults when omitted
        base_path: Deployment base path of the build
        project_name: Index title fallback
        crawl: Force crawl mode on
        static: Force static reader on/off, None keeps the configured value
        dry_run: If True, only print routes and output paths
        verbose: Enable verbose logging
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        config = load_config(config_path)
        config = apply_cli_overrides(config, crawl=crawl, static=static)

        if not verbose:
            logging.getLogger().setLevel(LOG_LEVELS[config.log_level])

        build = BuildContext(
            out_dir=Path(dist_dir),
            base_path=base_path,
            project_name=project_name or Path(dist_dir).resolve().parent.name or None,
        )

        if dry_run:
            for route, rel_path in plan_routes(config, build):
                if rel_path is None:
                    logger.info(f"Would skip excluded route: {route}")
                else:
                    logger.info(f"Would capture: {route} -> {rel_path}")
            if config.crawl.enabled:
                logger.info("Crawl mode: further routes are discovered while capturing")
            return

        result = await run_spider(config, build)
        if result is not None:
            stats = result.stats
            logger.info(f"Capture stats: {stats.success} success, {stats.failed} failed, {stats.skipped} skipped")

    except Exception as e:
        logger.error(f"LLM Spider failed: {e}")
        sys.exit(1)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate Markdown snapshots and an llms.txt index for a built web app",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  llm-spider run dist/
  llm-spider run dist/ --config llm-spider.json --base /app/
  llm-spider run dist/ --crawl --no-static --verbose
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    run_parser = subparsers.add_parser('run', help='Run the spider')
    run_parser.add_argument('dist_dir', help='Build output directory')
    run_parser.add_argument('--config', '-c', dest='config_file',
                            help='Path to JSON configuration file')
    run_parser.add_argument('--base', default='/',
                            help='Deployment base path of the build (default: /)')
    run_parser.add_argument('--name',
                            help='Project name used as index title fallback')
    run_parser.add_argument('--crawl', action='store_true',
                            help='Enable crawl mode')
    static_group = run_parser.add_mutually_exclusive_group()
    static_group.add_argument('--static', dest='static', action='store_true', default=None,
                              help='Read built HTML files instead of rendering')
    static_group.add_argument('--no-static', dest='static', action='store_false', default=None,
                              help='Always render pages in a browser')
    run_parser.add_argument('--dry-run', action='store_true',
                            help='Print routes only, don\'t capture or write files')
    run_parser.add_argument('--verbose', '-v', action='store_true',
                            help='Enable verbose logging')

    args = parser.parse_args()

    if args.command == 'run':
        asyncio.run(run_cli(
            dist_dir=args.dist_dir,
            config_path=args.config_file,
            base_path=args.base,
            project_name=args.name,
            crawl=args.crawl,
            static=args.static,
            dry_run=args.dry_run,
            verbose=args.verbose
        ))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
