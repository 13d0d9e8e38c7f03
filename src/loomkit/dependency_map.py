"""Sibling dependency maps for grouped work items (epics).

Each child issue is asked for its ``blocked_by`` list; only blockers that are
themselves in the child set are kept. Lookups run in parallel and a failing
lookup only blanks its own entry. Cycles reported by the tracker are passed
through untouched.
"""

from __future__ import annotations

import concurrent.futures
from typing import Callable, Iterable

from . import log

DependencyMap = dict[str, list[str]]
BlockedByLookup = Callable[[str], Iterable[str]]

DEFAULT_MAX_WORKERS = 8


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def build_dependency_map(
    child_ids: Iterable[str],
    fetch_blocked_by: BlockedByLookup,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> DependencyMap:
    """Build ``{child_id: [sibling blockers]}`` for a set of children.

    Every child id gets an entry, possibly empty. Blockers outside the child
    set are dropped and duplicates collapse to their first occurrence.

    Example:
        >>> blockers = {"A": [], "B": ["A", "Z"], "C": []}
        >>> build_dependency_map(["A", "B", "C"], blockers.__getitem__)
        {'A': [], 'B': ['A'], 'C': []}
    """
    ids = _unique(str(child_id) for child_id in child_ids)
    sibling_set = set(ids)
    dependency_map: DependencyMap = {child_id: [] for child_id in ids}
    if not ids:
        return dependency_map

    log.debug(f"building dependency map for {len(ids)} child issues")

    def lookup(child_id: str) -> list[str]:
        raw = fetch_blocked_by(child_id)
        return _unique(str(blocker) for blocker in raw if str(blocker) in sibling_set)

    workers = max(1, min(max_workers, len(ids)))
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(lookup, child_id): child_id for child_id in ids}
        for future in concurrent.futures.as_completed(futures):
            child_id = futures[future]
            try:
                dependency_map[child_id] = future.result()
            except Exception as exc:
                log.warning(f"failed to fetch dependencies for {child_id}: {exc}")
    return dependency_map
