"""
Error types for llm_spider.

SpiderError and its direct subclasses abort a run. PageCaptureError and its
subclasses are raised inside a single route's capture and never escape it.
"""


class SpiderError(Exception):
    """Fatal error: the run cannot continue."""


class ConfigError(SpiderError):
    """Configuration file is missing or invalid."""


class BuildOutputError(SpiderError):
    """Build output directory is missing or unusable."""


class PageCaptureError(SpiderError):
    """Base class for failures scoped to one route."""

    def __init__(self, route: str, message: str):
        super().__init__(f"{route}: {message}")
        self.route = route


class PageFetchError(PageCaptureError):
    """Page markup could not be obtained (navigation failure, timeout, missing file)."""


class EmptyContentError(PageCaptureError):
    """Extraction left nothing to convert."""


class OutputCollisionError(PageCaptureError):
    """Two routes map to the same output document."""
