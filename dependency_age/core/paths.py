from __future__ import annotations

import os
from pathlib import Path
import sys
import tempfile

APP_DIR_NAME = "dependency-age"
DEFAULT_CACHE_FILENAME = ".dependency-age.cache"


def user_cache_dir() -> Path:
    if override := os.getenv("DEPENDENCY_AGE_CACHE_DIR"):
        return Path(override).expanduser().resolve()

    if sys.platform == "win32":
        if local_app_data := os.getenv("LOCALAPPDATA") or os.getenv("APPDATA"):
            return Path(local_app_data) / APP_DIR_NAME

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / APP_DIR_NAME

    if xdg_cache_home := os.getenv("XDG_CACHE_HOME"):
        return Path(xdg_cache_home) / APP_DIR_NAME

    try:
        return Path.home() / ".cache" / APP_DIR_NAME
    except RuntimeError:
        return Path(tempfile.gettempdir()) / APP_DIR_NAME


def _is_writable_dir(directory: Path) -> bool:
    return directory.is_dir() and os.access(directory, os.W_OK)


def resolve_cache_file(configured: str | Path | None, project_dir: Path) -> Path:
    """Pick the cache file location.

    Absolute paths are used as given. A relative name lives in the project
    directory when that directory is writable and in the user cache
    directory otherwise.
    """
    path = Path(configured) if configured else Path(DEFAULT_CACHE_FILENAME)
    path = path.expanduser()
    if path.is_absolute():
        return path

    if _is_writable_dir(project_dir):
        return project_dir / path
    return user_cache_dir() / path.name
