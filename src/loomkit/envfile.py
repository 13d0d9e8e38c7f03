"""Minimal ``.env`` reader.

Only presence checks are needed by the lifecycle code, so values are parsed
but never interpreted.
"""

from __future__ import annotations

from pathlib import Path


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        inner = value[1:-1]
        return inner.replace('\\"', '"').replace("\\'", "'").replace("\\n", "\n")
    return value


def parse_env(content: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines.

    Blank lines and ``#`` comments are skipped, an ``export`` prefix is
    dropped and quoted values are unescaped.

    Example:
        >>> parse_env('# db\\nexport DATABASE_URL="postgres://x"\\nPORT=3042\\n')
        {'DATABASE_URL': 'postgres://x', 'PORT': '3042'}
    """
    values: dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if key:
            values[key] = _unquote(value.strip())
    return values


def read_env_file(path: Path) -> dict[str, str]:
    """Read and parse an env file; a missing file is empty."""
    if not path.exists():
        return {}
    return parse_env(path.read_text(encoding="utf-8"))


def has_variable(path: Path, *names: str) -> bool:
    """Return whether any of ``names`` is set to a non-empty value in ``path``."""
    values = read_env_file(path)
    return any(values.get(name) for name in names)
