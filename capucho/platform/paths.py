"""User-level path resolution.

Project-scoped paths (descriptor, counters, cache) live in
``capucho.core.project``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

__all__ = ["CONFIG_DIR_NAME", "home", "global_config_path", "is_windows"]

# Directory name used both under the user's home and under a project root
CONFIG_DIR_NAME = ".capucho"
CONFIG_FILE_NAME = "config.json"


def is_windows() -> bool:
    return sys.platform.startswith("win")


def home() -> Path:
    """Get the user's home directory.

    Checks USERPROFILE (Windows) or HOME first so CI containers and tests can
    redirect it; falls back to ``Path.home()``.
    """
    if is_windows():
        userprofile = os.environ.get("USERPROFILE")
        if userprofile:
            return Path(userprofile)
    else:
        home_env = os.environ.get("HOME")
        if home_env:
            return Path(home_env)

    return Path.home()


def global_config_path(home_dir: Path | None = None) -> Path:
    """Path to the global config file: ``<home>/.capucho/config.json``."""
    return (home_dir or home()) / CONFIG_DIR_NAME / CONFIG_FILE_NAME
