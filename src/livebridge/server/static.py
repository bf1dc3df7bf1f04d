"""Static resource serving for the bundled web client."""

from __future__ import annotations

import asyncio
from pathlib import Path

from aiohttp import web

from livebridge.core.exceptions import StaticResourceNotFound

CONTENT_TYPES: dict[str, str] = {
    "js": "application/javascript",
    "css": "text/css",
    "html": "text/html",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}

DEFAULT_CONTENT_TYPE = "text/plain"
CHARSET_SUFFIX = "; charset=UTF-8"
NOT_FOUND_CONTENT_TYPE = DEFAULT_CONTENT_TYPE + CHARSET_SUFFIX


def content_type_for(path: str) -> str:
    """Infer a Content-Type header value from the file extension."""
    name = path.rsplit("/", 1)[-1]
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE) + CHARSET_SUFFIX


class StaticStore:
    """Reads files below a root directory by request path."""

    def __init__(self, root: str | Path, index_document: str = "index.html") -> None:
        self.root = Path(root).resolve()
        self.index_document = index_document

    def request_path_for(self, path: str) -> str:
        """Map ``/`` and ``/index.html`` to the index document."""
        if path in ("/", "", "/index.html"):
            return "/" + self.index_document
        return path

    def resolve(self, path: str) -> Path:
        """Return the file for a request path.

        Raises:
            StaticResourceNotFound: If the path is malformed or escapes the
                static root.
        """
        relative = self.request_path_for(path).lstrip("/")
        try:
            candidate = (self.root / relative).resolve()
        except (OSError, ValueError) as e:
            raise StaticResourceNotFound(path) from e
        if not candidate.is_relative_to(self.root):
            raise StaticResourceNotFound(path)
        return candidate

    async def read(self, path: str) -> bytes:
        """Read a static resource without blocking the event loop.

        Raises:
            StaticResourceNotFound: On any lookup or read failure.
        """
        file_path = self.resolve(path)
        try:
            return await asyncio.to_thread(file_path.read_bytes)
        except (OSError, ValueError) as e:
            raise StaticResourceNotFound(path) from e


async def serve_static(store: StaticStore, path: str) -> web.Response:
    try:
        body = await store.read(path)
    except StaticResourceNotFound:
        return web.Response(
            body=b"Not Found",
            status=404,
            headers={"Content-Type": NOT_FOUND_CONTENT_TYPE},
        )
    return web.Response(
        body=body,
        headers={"Content-Type": content_type_for(store.request_path_for(path))},
    )
