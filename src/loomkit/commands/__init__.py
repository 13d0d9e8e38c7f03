"""Command implementations exposed by the loomkit CLI."""

from .cleanup import cleanup_looms
from .deps import show_dependencies
from .list_looms import list_looms
from .port import show_port
from .resolve import resolve_identifier

__all__ = [
    "cleanup_looms",
    "list_looms",
    "resolve_identifier",
    "show_dependencies",
    "show_port",
]
