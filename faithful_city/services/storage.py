"""
faithful_city.services.storage — Object Storage Backends
=========================================================

Uploaded media bytes live in object storage, addressed by key.  Keys are
always family-namespaced (``<family_id>/<file>``) by the caller.

:class:`LocalObjectStorage` writes under a directory (a Docker volume in
production) that the API serves as static files below ``public_base_url``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from faithful_city.config import FaithfulCityConfig

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    def write(self, key: str, data: bytes, content_type: str | None = None) -> None:
        """Store *data* under *key*, replacing anything already there."""

    def public_url(self, key: str) -> str:
        """Durable URL a browser can fetch *key* from."""


class LocalObjectStorage:
    """Filesystem-backed storage served as static files."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Storage key escapes the media root: {key!r}")
        return path

    def write(self, key: str, data: bytes, content_type: str | None = None) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Stored %d bytes at %s (%s)", len(data), key, content_type)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"


def storage_from_config(cfg: FaithfulCityConfig) -> LocalObjectStorage:
    return LocalObjectStorage(cfg.media_dir, cfg.media_public_url)
