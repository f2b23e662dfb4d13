"""
Preview server module for llm_spider.

Serves the build output over HTTP on 127.0.0.1 so the renderer can navigate
to pages the way a browser would, including single-page-app deep links.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from aiohttp import web

from .errors import SpiderError
from .utils import normalize_base_path

logger = logging.getLogger(__name__)


class PreviewServer:
    """Static file server for the build output, mounted under the base path."""

    def __init__(self, root: Union[str, Path], base_path: str = "/", host: str = "127.0.0.1", port: int = 0):
        """
        Initialize PreviewServer.

        Args:
            root: Build output directory
            base_path: Deployment base path, e.g. "/app/"
            host: Interface to bind
            port: Port to bind, 0 for an ephemeral port
        """
        self.root = Path(root).resolve()
        self.base_path = normalize_base_path(base_path)
        self.host = host
        self.port = port
        self.base_url: Optional[str] = None
        self._runner: Optional[web.AppRunner] = None

    def resolve_file(self, request_path: str) -> Optional[Path]:
        """
        Map a request path to a file in the build output.

        Tries the exact file, "<path>.html", "<path>/index.html", then falls
        back to the root index.html for extensionless paths.

        Args:
            request_path: Decoded URL path

        Returns:
            File to serve, or None for 404
        """
        if request_path == self.base_path.rstrip("/"):
            request_path = self.base_path
        if not request_path.startswith(self.base_path):
            return None

        rel = request_path[len(self.base_path):].strip("/")
        parts = [part for part in rel.split("/") if part]
        target = self.root.joinpath(*parts)

        if parts:
            candidates = [target, target.with_name(target.name + ".html"), target / "index.html"]
        else:
            candidates = [self.root / "index.html"]

        for candidate in candidates:
            candidate = candidate.resolve()
            if candidate != self.root and self.root not in candidate.parents:
                return None
            if candidate.is_file():
                return candidate

        if parts and "." in parts[-1]:
            return None

        fallback = self.root / "index.html"
        return fallback if fallback.is_file() else None

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        path = self.resolve_file(request.path)
        if path is None:
            raise web.HTTPNotFound()
        return web.FileResponse(path)

    async def __aenter__(self):
        app = web.Application()
        app.router.add_get("/{tail:.*}", self._handle)

        self._runner = web.AppRunner(app, access_log=None)
        try:
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()
        except OSError as e:
            await self._runner.cleanup()
            raise SpiderError(f"Preview server failed to start: {e}") from e

        addresses = self._runner.addresses
        if not addresses or not isinstance(addresses[0], tuple):
            await self._runner.cleanup()
            raise SpiderError("Could not determine preview server port")

        port = addresses[0][1]
        self.base_url = f"http://{self.host}:{port}{self.base_path}"
        logger.debug(f"Preview server at: {self.base_url}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
