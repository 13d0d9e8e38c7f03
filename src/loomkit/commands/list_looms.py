"""Implementation for the ``loomkit list`` command."""

from __future__ import annotations

import json

from ..io import say
from .context import load_settings, metadata_store


def list_looms(args: object) -> None:
    """List active (or finished) looms from their metadata records.

    Args:
        args: CLI argument object with ``finished`` and ``json`` flags.

    Example:
        $ loomkit list --finished
    """
    store = metadata_store(load_settings())
    finished = getattr(args, "finished", False)
    records = store.list_finished() if finished else store.list_active()

    if getattr(args, "json", False):
        say(json.dumps([record.to_payload() for record in records], indent=2))
        return
    if not records:
        say("No finished looms." if finished else "No active looms.")
        return

    rows = [("branch", "type", "port", "path")]
    for record in records:
        rows.append(
            (
                record.branch_name or "-",
                record.issue_type or "-",
                str(record.port) if record.port is not None else "-",
                record.worktree_path or "-",
            )
        )
    widths = [max(len(row[index]) for row in rows) for index in range(len(rows[0]))]
    for row in rows:
        say("  ".join(value.ljust(widths[index]) for index, value in enumerate(row)).rstrip())
