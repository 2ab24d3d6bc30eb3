"""
faithful_city.config — YAML Configuration Loader
=================================================

**Why this file exists:**
This module reads ``config.yaml`` for **infrastructure-only** settings
(community identity, API port, where uploaded media lives).  Secrets such as
``DATABASE_URL`` and ``JWT_SECRET`` stay in the environment (``.env``).

Usage::

    from faithful_city.config import load_config

    cfg = load_config()          # $FAITHFUL_CONFIG, else ./config.yaml
    print(cfg.community_name)    # "The Faithful City"
    print(cfg.media_public_url)  # "/api/media-files"
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class FaithfulCityConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # HTTP
    api_port: int

    # Media storage
    media_dir: str
    media_public_url: str  # URL prefix the media directory is served under
    max_upload_mb: int = 25


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> FaithfulCityConfig:
    """Read *path* and return a :class:`FaithfulCityConfig` instance.

    With no *path*, reads ``FAITHFUL_CONFIG`` or ``./config.yaml``, so the
    launcher and the API always agree on the file.

    ``FAITHFUL_MEDIA_DIR`` in the environment overrides ``media_dir`` so a
    container can point uploads at a mounted volume without editing YAML.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path or os.getenv("FAITHFUL_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh)

    return FaithfulCityConfig(
        community_name=raw["community_name"],
        api_port=int(raw["api_port"]),
        media_dir=os.getenv("FAITHFUL_MEDIA_DIR") or raw["media_dir"],
        media_public_url=str(raw["media_public_url"]).rstrip("/"),
        max_upload_mb=int(raw.get("max_upload_mb", 25)),
    )
