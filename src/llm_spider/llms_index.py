"""
Index module for llm_spider.

Builds the llms.txt index document from the captured pages once a run has
finished.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

OPTIONAL_SECTION = "Optional"


@dataclass(frozen=True)
class CapturedPage:
    """A successfully captured route and its index metadata."""
    route: str
    title: Optional[str]
    section: str
    optional: bool
    notes: Optional[str]
    md_rel_path: str
    depth: int = 0


@dataclass
class IndexSection:
    name: str
    pages: List[CapturedPage] = field(default_factory=list)


@dataclass
class IndexDocument:
    """Content of the index file."""
    title: str
    summary: str
    sections: List[IndexSection] = field(default_factory=list)
    optional: List[CapturedPage] = field(default_factory=list)


def build_index_document(
    pages: Iterable[CapturedPage],
    title: str,
    summary: str,
    sort: bool = True,
) -> IndexDocument:
    """
    Group captured pages into index sections.

    Args:
        pages: Captured pages in capture order
        title: H1 title
        summary: Blockquote summary line
        sort: Order pages by route key first, making the output independent
            of capture order

    Returns:
        Index document with sections in first-seen order
    """
    items = sorted(pages, key=lambda page: page.route) if sort else list(pages)

    sections: List[IndexSection] = []
    by_name = {}
    optional: List[CapturedPage] = []

    for page in items:
        if page.optional:
            optional.append(page)
            continue
        section = by_name.get(page.section)
        if section is None:
            section = IndexSection(name=page.section)
            by_name[page.section] = section
            sections.append(section)
        section.pages.append(page)

    return IndexDocument(title=title, summary=summary, sections=sections, optional=optional)


def make_link(md_rel_path: str) -> str:
    """Relative link (forward slashes, no leading slash) so subpath deployments work."""
    return md_rel_path.replace("\\", "/").lstrip("/")


def _render_entry(page: CapturedPage) -> str:
    label = page.title or page.route
    notes = f": {page.notes}" if page.notes else ""
    return f"- [{label}]({make_link(page.md_rel_path)}){notes}\n"


def render_index_document(document: IndexDocument) -> str:
    """
    Render the index document as Markdown.

    Args:
        document: Index document

    Returns:
        H1 title, blockquote summary, one H2 block per section and a trailing
        "Optional" block when optional pages exist
    """
    out = f"# {document.title}\n\n> {document.summary}\n\n"

    blocks = [(section.name, section.pages) for section in document.sections]
    if document.optional:
        blocks.append((OPTIONAL_SECTION, document.optional))

    for name, pages in blocks:
        out += f"## {name}\n\n"
        for page in pages:
            out += _render_entry(page)
        out += "\n"

    return out


async def write_index_document(
    document: IndexDocument,
    output_dir: Union[str, Path],
    file_name: str = "llms.txt",
) -> Path:
    """
    Write the rendered index to the output root.

    Args:
        document: Index document
        output_dir: Output root
        file_name: Index file name

    Returns:
        Path of the written file
    """
    path = Path(output_dir) / file_name
    text = render_index_document(document)
    await asyncio.to_thread(path.write_text, text, encoding="utf-8")
    logger.debug(f"Wrote index: {path}")
    return path
