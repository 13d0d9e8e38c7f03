"""Implementation for the ``loomkit deps`` command."""

from __future__ import annotations

import json

from ..connector_registry import issue_tracker_for
from ..dependency_map import build_dependency_map
from ..io import die, say
from .context import load_settings


def show_dependencies(args: object) -> None:
    """Print which of the given issues block each other.

    Example:
        $ loomkit deps 101 102 103
    """
    ids = [str(value).lstrip("#") for value in getattr(args, "ids", None) or []]
    if not ids:
        die("at least one issue id is required")
    tracker = issue_tracker_for(load_settings())
    dependencies = build_dependency_map(ids, tracker.fetch_blocked_by)

    if getattr(args, "json", False):
        say(json.dumps(dependencies, indent=2))
        return
    for child, blockers in dependencies.items():
        say(f"{child}: {', '.join(blockers) if blockers else '(none)'}")
