"""Deterministic dev-server port assignment for looms.

Numeric identifiers map to ``base_port + n``. That path is strictly
monotonic, so it refuses to wrap: two issues sharing a port would be unsafe.
Branch names hash into ``[1, 999]`` and may wrap, because that path must
accept any name.
"""

from __future__ import annotations

import hashlib

from .identifiers import IssueKey, is_numeric, numeric_suffix
from .services.errors import PortOverflowError

DEFAULT_BASE_PORT = 3000
MAX_PORT = 65535
BRANCH_OFFSET_RANGE = 999


def wrap_port(raw_port: int, base_port: int) -> int:
    """Fold a port above 65535 back into ``(base_port, 65535]``.

    Example:
        >>> wrap_port(4000, 3000)
        4000
        >>> wrap_port(65536, 3000)
        3001
    """
    if raw_port <= MAX_PORT:
        return raw_port
    span = MAX_PORT - base_port
    return ((raw_port - base_port - 1) % span) + base_port + 1


def branch_port_offset(branch_name: str) -> int:
    """Hash a branch name into an offset in ``[1, 999]``.

    Raises:
        ValueError: The branch name is empty.

    Example:
        >>> 1 <= branch_port_offset("feature/login") <= 999
        True
    """
    if not branch_name or not branch_name.strip():
        raise ValueError("branch name cannot be empty")
    digest = hashlib.sha256(branch_name.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % BRANCH_OFFSET_RANGE + 1


def port_for_branch(branch_name: str, base_port: int = DEFAULT_BASE_PORT) -> int:
    """Deterministic port for a branch-only loom."""
    return wrap_port(base_port + branch_port_offset(branch_name), base_port)


def port_for_number(number: int, base_port: int = DEFAULT_BASE_PORT) -> int:
    """``base_port + number``; raises ``PortOverflowError`` past 65535.

    Example:
        >>> port_for_number(42)
        3042
    """
    port = base_port + number
    if port > MAX_PORT:
        raise PortOverflowError(number, base_port)
    return port


def calculate_port(
    issue_number: IssueKey | None = None,
    pr_number: int | None = None,
    branch_name: str | None = None,
    base_port: int = DEFAULT_BASE_PORT,
) -> int:
    """Compute the dev-server port for a loom.

    ``issue_number`` wins over ``pr_number``, which wins over ``branch_name``.
    Tracker keys like ``MARK-324`` use their numeric suffix; keys without one
    are hashed like a branch name. With no identifier the base port is
    returned unchanged.

    Example:
        >>> calculate_port(issue_number=7, pr_number=9)
        3007
        >>> calculate_port(issue_number="MARK-324", base_port=5000)
        5324
        >>> calculate_port()
        3000
    """
    if issue_number is not None:
        if isinstance(issue_number, int):
            return port_for_number(issue_number, base_port)
        key = str(issue_number).strip()
        if is_numeric(key):
            return port_for_number(int(key), base_port)
        suffix = numeric_suffix(key)
        if suffix is not None:
            return port_for_number(suffix, base_port)
        return port_for_branch(key, base_port)

    if pr_number is not None:
        return port_for_number(pr_number, base_port)

    if branch_name is not None:
        return port_for_branch(branch_name, base_port)

    return base_port
