"""Implementation for the ``loomkit port`` command."""

from __future__ import annotations

from ..io import say
from ..services.errors import LoomFailure
from .context import current_repo, fail
from .resolve import descriptor_for


def show_port(args: object) -> None:
    """Print the dev-server port for a loom.

    A port recorded in the loom's metadata wins over the computed one.
    """
    context = current_repo()
    descriptor = descriptor_for(context, getattr(args, "identifier", None))
    try:
        worktree = context.resolver.find_worktree(descriptor)
        record = context.metadata.read(worktree.path)
        if record is not None and record.port is not None:
            say(str(record.port))
            return
        say(str(descriptor.port(context.settings.base_port)))
    except LoomFailure as exc:
        fail(exc)
