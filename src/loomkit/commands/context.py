"""Shared configuration and repository wiring for commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from .. import config, git, log
from ..io import die
from ..metadata import MetadataStore
from ..models import LoomkitConfig
from ..resolver import IdentifierResolver
from ..services.errors import LoomFailure
from ..worktrees import WorktreeRegistry


@dataclass(frozen=True)
class RepoContext:
    settings: LoomkitConfig
    repo_root: Path
    registry: WorktreeRegistry
    resolver: IdentifierResolver
    metadata: MetadataStore


def fail(exc: LoomFailure) -> NoReturn:
    """Exit with a failure's message and recovery hint."""
    log.debug(f"failure code: {exc.code}")
    die(str(exc), hint=exc.recovery_hint)


def load_settings() -> LoomkitConfig:
    """Load the configuration or exit with its validation error."""
    try:
        return config.load_config()
    except LoomFailure as exc:
        fail(exc)


def metadata_store(settings: LoomkitConfig) -> MetadataStore:
    return MetadataStore(config.metadata_dir(settings))


def current_repo(settings: LoomkitConfig | None = None) -> RepoContext:
    """Resolve the repository that owns the current directory."""
    settings = settings or load_settings()
    cwd = Path.cwd()
    repo_root = git.git_repo_root(cwd, git_path=settings.git_path)
    if repo_root is None:
        die("not inside a git repository", hint="run loomkit from a repository or one of its looms")
    registry = WorktreeRegistry(repo_root, git_path=settings.git_path)
    return RepoContext(
        settings=settings,
        repo_root=repo_root,
        registry=registry,
        resolver=IdentifierResolver(registry),
        metadata=metadata_store(settings),
    )
