"""
Persistence module for llm_spider.

Maps routes to output document paths and writes the generated Markdown under
one of two layouts: next to the built pages ("sibling") or isolated in one
subdirectory ("subdir").
"""

import asyncio
import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .config import OutputMode
from .errors import OutputCollisionError, PageCaptureError

logger = logging.getLogger(__name__)

DIRECTORY_INDEX_MD = "index.html.md"
DIRECTORY_INDEX_HTML = "index.html"


def route_to_md_path(route: str) -> str:
    """
    Map a route key to its Markdown document path.

    "/" -> "index.html.md", "/docs/" -> "docs/index.html.md",
    "/pricing" -> "pricing.md".

    Args:
        route: Normalized route key

    Returns:
        Relative path with forward slashes and no leading slash
    """
    if route == "/":
        return DIRECTORY_INDEX_MD
    if route.endswith("/"):
        return route[1:] + DIRECTORY_INDEX_MD
    return route[1:] + ".md"


def route_to_html_path(route: str) -> str:
    """Map a route key to the HTML file a static build emits for it."""
    if route == "/":
        return DIRECTORY_INDEX_HTML
    if route.endswith("/"):
        return route[1:] + DIRECTORY_INDEX_HTML
    return route[1:] + ".html"


@dataclass
class SavedFileInfo:
    """Information about a saved file."""
    route: str
    rel_path: str
    path: str
    size: int
    displaced: Optional[str] = None


class PersistenceStrategy(ABC):
    """Abstract base class for output layouts."""

    def __init__(self, output_dir: Union[str, Path]):
        """
        Initialize PersistenceStrategy.

        Args:
            output_dir: Output root (the build output directory)
        """
        self.output_dir = Path(output_dir)
        self._owners: Dict[str, str] = {}  # rel_path -> route
        self._saved_files: List[SavedFileInfo] = []
        self._write_lock = asyncio.Lock()

    @abstractmethod
    def rel_path(self, route: str) -> str:
        """
        Output-relative document path for a route.

        Args:
            route: Normalized route key

        Returns:
            Path with forward slashes and no leading slash
        """
        pass

    def output_path(self, route: str) -> Path:
        """
        Absolute document path for a route.

        Raises:
            PageCaptureError: If the path resolves outside the output directory
        """
        root = self.output_dir.resolve()
        path = root.joinpath(*self.rel_path(route).split("/")).resolve()
        if root not in path.parents:
            raise PageCaptureError(route, f"output path {path} is outside {root}")
        return path

    def claim(self, route: str) -> Tuple[str, Optional[str]]:
        """
        Reserve the output path of a route.

        When two routes map to the same path, the lexicographically smaller
        route owns it, whatever order they arrive in.

        Returns:
            The relative path and the route it was taken from, if any

        Raises:
            OutputCollisionError: If a smaller route already owns the path
        """
        rel_path = self.rel_path(route)
        owner = self._owners.get(rel_path)
        if owner is not None and owner < route:
            raise OutputCollisionError(route, f"output {rel_path} belongs to {owner}")
        self._owners[rel_path] = route
        displaced = owner if owner is not None and owner != route else None
        return rel_path, displaced

    async def save(self, route: str, content: str) -> SavedFileInfo:
        """
        Write a document for a route.

        Writes happen in claim order, so the owning route's content is the
        one left on disk.

        Args:
            route: Normalized route key
            content: Full document text (frontmatter included)

        Returns:
            Information about the written file
        """
        file_path = self.output_path(route)
        rel_path, displaced = self.claim(route)

        async with self._write_lock:
            await asyncio.to_thread(self._write, file_path, content)

        if displaced is not None:
            logger.warning(f"Output collision: {route} replaces {displaced} at {rel_path}")
            self._saved_files = [info for info in self._saved_files if info.route != displaced]

        info = SavedFileInfo(
            route=route, rel_path=rel_path, path=str(file_path), size=len(content), displaced=displaced
        )
        self._saved_files.append(info)
        logger.debug(f"Saved content to: {file_path}")
        return info

    @staticmethod
    def _write(file_path: Path, content: str) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(content)

    async def finalize(self) -> None:
        logger.info(f"{type(self).__name__} completed. Saved {len(self._saved_files)} files.")

    def get_saved_files(self) -> List[SavedFileInfo]:
        """Get list of saved files."""
        return self._saved_files.copy()


class SiblingLayoutStrategy(PersistenceStrategy):
    """Documents sit next to the built pages: /pricing -> pricing.md."""

    def rel_path(self, route: str) -> str:
        return route_to_md_path(route)


class SubdirLayoutStrategy(PersistenceStrategy):
    """All documents live under one subdirectory: /pricing -> ai/pricing.md."""

    def __init__(self, output_dir: Union[str, Path], subdir: str = "ai"):
        super().__init__(output_dir)
        self.subdir = subdir.replace("\\", "/").strip("/")

    def rel_path(self, route: str) -> str:
        return posixpath.join(self.subdir, route_to_md_path(route))


def create_persistence_strategy(
    mode: Union[str, OutputMode],
    output_dir: Union[str, Path],
    **kwargs
) -> PersistenceStrategy:
    """
    Factory function to create persistence strategy.

    Args:
        mode: Output layout ("sibling" or "subdir")
        output_dir: Output directory
        **kwargs: Layout-specific parameters (subdir)

    Returns:
        Configured persistence strategy

    Raises:
        ValueError: If mode is not supported
    """
    mode = OutputMode(mode)
    if mode is OutputMode.SIBLING:
        return SiblingLayoutStrategy(output_dir)
    elif mode is OutputMode.SUBDIR:
        return SubdirLayoutStrategy(output_dir, kwargs.get("subdir", "ai"))
    else:
        raise ValueError(f"Unsupported output mode: {mode}")
