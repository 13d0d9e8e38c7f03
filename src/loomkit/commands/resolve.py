"""Implementation for the ``loomkit resolve`` command."""

from __future__ import annotations

import json
from pathlib import Path

from ..io import say
from ..resolver import ResourceDescriptor
from ..services.errors import LoomFailure, PortOverflowError
from .context import RepoContext, current_repo, fail


def descriptor_for(context: RepoContext, identifier: str | None) -> ResourceDescriptor:
    """Resolve ``identifier``, or auto-detect from the working directory."""
    try:
        if identifier:
            return context.resolver.resolve(identifier)
        return context.resolver.auto_detect(Path.cwd())
    except LoomFailure as exc:
        fail(exc)


def resolve_identifier(args: object) -> None:
    """Print what an identifier resolves to.

    Args:
        args: CLI argument object with ``identifier`` and ``json`` fields.

    Example:
        $ loomkit resolve 42
    """
    context = current_repo()
    descriptor = descriptor_for(context, getattr(args, "identifier", None))
    try:
        worktree = context.resolver.find_worktree(descriptor)
    except LoomFailure as exc:
        fail(exc)
    try:
        port: int | None = descriptor.port(context.settings.base_port)
    except PortOverflowError:
        port = None

    if getattr(args, "json", False):
        payload = {**descriptor.to_dict(), "worktree_path": str(worktree.path), "port": port}
        say(json.dumps(payload, indent=2))
        return

    say(descriptor.label)
    say(f"worktree: {worktree.path}")
    if worktree.branch:
        say(f"branch: {worktree.branch}")
    say(f"port: {port if port is not None else 'n/a'}")
