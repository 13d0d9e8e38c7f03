"""Configuration loading and small JSON helpers.

Settings come from ``<user_config_dir>/settings.json`` with ``LOOMKIT_*``
environment variables layered on top. The environment is read here and
nowhere else; the resulting ``LoomkitConfig`` is handed to constructors.
"""

from __future__ import annotations

import datetime as dt
import json
import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ValidationError

from . import log, paths
from .models import LoomkitConfig
from .services.errors import ValidationFailedError

ENV_PREFIX = "LOOMKIT_"
_ENV_FIELDS = {
    "BASE_PORT": "base_port",
    "METADATA_DIR": "metadata_dir",
    "GIT_PATH": "git_path",
    "ISSUE_TRACKER": "issue_tracker",
    "GITHUB_REPO": "github_repo",
    "DATABASE_PROVIDER": "database_provider",
    "NEON_PROJECT_ID": "neon_project_id",
    "PROTECTED_BRANCHES": "protected_branches",
    "ENV_FILE_NAME": "env_file_name",
}


def utc_now() -> str:
    """Return the current UTC timestamp in ISO-8601 format.

    Example:
        >>> utc_now().endswith("Z")
        True
    """
    now = dt.datetime.now(tz=dt.timezone.utc).replace(microsecond=0)
    return now.isoformat().replace("+00:00", "Z")


def load_json(path: Path) -> dict | None:
    """Load a JSON file if it exists.

    Example:
        >>> load_json(Path("missing.json")) is None
        True
    """
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def dump_json(payload: dict | BaseModel) -> str:
    """Serialize a payload the way every loomkit JSON file is written.

    Example:
        >>> dump_json({"ok": True})
        '{\\n  "ok": true\\n}\\n'
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    return json.dumps(payload, indent=2) + "\n"


def env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """Collect ``LOOMKIT_*`` overrides keyed by config field name.

    Example:
        >>> env_overrides({"LOOMKIT_BASE_PORT": "4000", "HOME": "/root"})
        {'base_port': '4000'}
    """
    overrides: dict[str, str] = {}
    for suffix, field in _ENV_FIELDS.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is not None and value.strip():
            overrides[field] = value
    return overrides


def load_config(
    path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> LoomkitConfig:
    """Build the process-wide configuration.

    Args:
        path: Settings file; defaults to ``settings.json`` in the user config dir.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        ValidationFailedError: The settings file is not valid JSON or does not
            validate.
    """
    settings_file = path or paths.settings_path()
    try:
        payload = load_json(settings_file) or {}
    except json.JSONDecodeError as exc:
        raise ValidationFailedError(
            f"invalid JSON in {settings_file}: {exc}",
            recovery_hint="fix or delete the settings file",
        ) from exc
    if not isinstance(payload, dict):
        raise ValidationFailedError(f"settings must be a JSON object: {settings_file}")
    overrides = env_overrides(os.environ if environ is None else environ)
    if overrides:
        log.debug(f"config overrides from environment: {', '.join(sorted(overrides))}")
    try:
        return LoomkitConfig.model_validate({**payload, **overrides})
    except ValidationError as exc:
        raise ValidationFailedError(
            f"invalid settings in {settings_file}: {exc}",
            recovery_hint=f"check the values in {settings_file} and LOOMKIT_* variables",
        ) from exc


def metadata_dir(config: LoomkitConfig) -> Path:
    """Resolve the metadata directory for a configuration.

    Example:
        >>> metadata_dir(LoomkitConfig(metadata_dir="/tmp/looms")).as_posix()
        '/tmp/looms'
    """
    if config.metadata_dir:
        return Path(config.metadata_dir).expanduser()
    return paths.default_metadata_dir()
