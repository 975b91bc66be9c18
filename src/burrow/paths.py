"""Data directory resolution for Burrow.

Keys live in one directory per host:
- <data root>/burrow/<host>/burrow_<type>       # private key
- <data root>/burrow/<host>/burrow_<type>.pub   # public key
"""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Mapping, Optional

from .config import Config

APP_NAME = "burrow"


def user_data_root(
    system: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Return the platform's per-user data directory."""
    system = system or platform.system()
    env = os.environ if environ is None else environ
    home = Path.home()

    if system == "Windows":
        local = env.get("LOCALAPPDATA")
        return Path(local) if local else home / "AppData" / "Local"
    if system == "Darwin":
        return home / "Library" / "Application Support"
    xdg = env.get("XDG_DATA_HOME", "").strip()
    # XDG spec: relative paths are invalid and must be ignored.
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return home / ".local" / "share"


def resolve_data_path(config: Config) -> Path:
    """Directory where the user's keys for ``config.host`` are stored."""
    if config.data_dir:
        return Path(config.data_dir).expanduser() / config.host
    return user_data_root() / APP_NAME / config.host
