"""Path helpers for locating loomkit config and metadata files."""

from __future__ import annotations

import re
from pathlib import Path

from platformdirs import user_config_dir

LOOMKIT_APP_NAME = "loomkit"
LOOMS_DIRNAME = "looms"
LOCKS_DIRNAME = ".locks"
SETTINGS_FILENAME = "settings.json"

_SEPARATOR_RE = re.compile(r"[/\\]")
_TRAILING_SEPARATORS_RE = re.compile(r"[/\\]+$")
_UNSAFE_CHAR_RE = re.compile(r"[^a-zA-Z0-9_-]")


def loomkit_config_dir() -> Path:
    """Return the base loomkit config directory.

    Example:
        >>> isinstance(loomkit_config_dir(), Path)
        True
    """
    return Path(user_config_dir(LOOMKIT_APP_NAME))


def settings_path() -> Path:
    """Return the path of the user settings file.

    Example:
        >>> settings_path().name == SETTINGS_FILENAME
        True
    """
    return loomkit_config_dir() / SETTINGS_FILENAME


def default_metadata_dir() -> Path:
    """Return the default directory holding one metadata file per loom.

    Example:
        >>> default_metadata_dir().name == LOOMS_DIRNAME
        True
    """
    return loomkit_config_dir() / LOOMS_DIRNAME


def slugify_path(path: str | Path) -> str:
    """Map a worktree path to its metadata filename.

    Trailing separators are dropped, every ``/`` or ``\\`` becomes ``___``,
    anything else outside ``[A-Za-z0-9_-]`` becomes ``-``. The mapping is
    deterministic and is the only place metadata filenames are derived.

    Example:
        >>> slugify_path("/a/b/c")
        '___a___b___c.json'
        >>> slugify_path("/a/b/c/")
        '___a___b___c.json'
        >>> slugify_path("/Users/me/proj.looms/issue 7")
        '___Users___me___proj-looms___issue-7.json'
    """
    text = _TRAILING_SEPARATORS_RE.sub("", str(path))
    text = _SEPARATOR_RE.sub("___", text)
    text = _UNSAFE_CHAR_RE.sub("-", text)
    return f"{text}.json"


def ensure_dir(path: Path) -> None:
    """Create a directory (and parents) if it does not exist."""
    path.mkdir(parents=True, exist_ok=True)
