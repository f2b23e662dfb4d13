"""
Extraction module for llm_spider.

Strips noise from page markup, isolates the main content, harvests links and
converts the result to Markdown.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from bs4 import BeautifulSoup
from markdownify import ATX, SETEXT, markdownify as md
from soupsieve import SelectorSyntaxError

from .config import ExtractConfig, MarkdownConfig
from .errors import EmptyContentError

logger = logging.getLogger(__name__)

# Last-resort selectors when no configured main selector matches
FALLBACK_MAIN_SELECTOR = "main"

HEADING_STYLES = {"atx": ATX, "setext": SETEXT}

_BLANK_LINES = re.compile(r"\n{3,}")
_YAML_UNSAFE = re.compile(r"^[\s\-?:,\[\]{}#&*!|>'\"%@`]|: | #|\s$|^$")


@dataclass
class ExtractedContent:
    """Main content of one page."""
    main_html: str
    title: str


class ContentExtractor:
    """Removes noisy elements and picks the main content region."""

    def __init__(self, config: Optional[ExtractConfig] = None):
        """
        Initialize ContentExtractor.

        Args:
            config: Removal and main-content selectors
        """
        self.config = config or ExtractConfig()

    def extract(self, html: str, route: str) -> ExtractedContent:
        """
        Extract main content and title from page markup.

        Args:
            html: Raw page markup
            route: Route key, used as title fallback and in errors

        Returns:
            Inner markup of the main content plus the page title

        Raises:
            EmptyContentError: If nothing is left after extraction
        """
        soup = BeautifulSoup(html, "lxml")

        title = ""
        if soup.title is not None:
            title = soup.title.get_text(strip=True)

        for selector in self.config.remove_selectors:
            for node in self._select(soup, selector):
                node.decompose()

        main_html = None
        for selector in self.config.main_selector:
            if not selector:
                continue
            nodes = self._select(soup, selector)
            if nodes:
                main_html = nodes[0].decode_contents()
                logger.debug(f"{route}: main content from '{selector}'")
                break

        if main_html is None:
            main = soup.select_one(FALLBACK_MAIN_SELECTOR)
            if main is not None:
                main_html = main.decode_contents()
            elif soup.body is not None:
                main_html = soup.body.decode_contents()
            else:
                main_html = soup.decode_contents()

        if not main_html.strip():
            raise EmptyContentError(route, "no content left after extraction")

        return ExtractedContent(main_html=main_html, title=title or route)

    def _select(self, soup: BeautifulSoup, selector: str) -> list:
        try:
            return soup.select(selector)
        except SelectorSyntaxError as e:
            logger.warning(f"Invalid CSS selector '{selector}': {e}")
            return []


def extract_links(html: str) -> List[str]:
    """
    Collect raw href values of all anchors, in document order.

    Args:
        html: Raw page markup

    Returns:
        List of href attribute values
    """
    soup = BeautifulSoup(html, "lxml")
    return [a["href"] for a in soup.select("a[href]") if isinstance(a.get("href"), str)]


class MarkdownConverter:
    """HTML-to-Markdown conversion via markdownify."""

    def __init__(self, config: Optional[MarkdownConfig] = None):
        self.config = config or MarkdownConfig()
        options = self.config.converter_options
        self._options = {
            "heading_style": HEADING_STYLES[options.heading_style],
            "strong_em_symbol": options.em_delimiter,
            "bullets": options.bullet_list_marker,
        }

    def convert(self, html: str) -> str:
        text = md(html, **self._options)
        return _BLANK_LINES.sub("\n\n", text).strip() + "\n"


def _yaml_scalar(value: str) -> str:
    if _YAML_UNSAFE.search(value) or "\n" in value:
        return json.dumps(value, ensure_ascii=False)
    return value


def format_frontmatter(route: str, title: str, generated_at: Optional[datetime] = None) -> str:
    """
    Build the metadata block prefixed to each generated document.

    Args:
        route: Source route key
        title: Resolved page title
        generated_at: Generation time, defaults to now (UTC)

    Returns:
        Frontmatter block followed by a blank line
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    timestamp = generated_at.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return (
        "---\n"
        f"source: {_yaml_scalar(route)}\n"
        f"title: {_yaml_scalar(title)}\n"
        f"generated_at: {timestamp}\n"
        "---\n\n"
    )
