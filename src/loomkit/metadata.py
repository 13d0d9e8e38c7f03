"""Sidecar metadata persistence: one JSON file per loom.

Files are named by ``paths.slugify_path(worktree_path)`` inside the metadata
directory. Every mutation runs read, modify, temp-file, ``os.replace`` while
holding the advisory lock for that file, so readers never observe a partial
write. Records outlive their worktree: cleanup marks them ``finished``
instead of deleting them.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from pathlib import Path
from typing import Callable, Literal

from pydantic import ValidationError

from . import config, log, paths
from .locking import file_lock, write_text_atomic
from .models import LoomMetadata, LoomType, ParentLoom

UrlKind = Literal["issue", "pr"]

LOOM_COLOR_PALETTE = (
    (220, 235, 248),
    (248, 220, 235),
    (220, 248, 235),
    (248, 240, 220),
    (240, 220, 248),
    (220, 240, 248),
    (235, 235, 235),
    (228, 238, 248),
    (248, 228, 238),
    (228, 248, 238),
)


def loom_color(branch_name: str) -> str:
    """Pick a stable soft background color for a branch.

    Example:
        >>> loom_color("feat/issue-1") == loom_color("feat/issue-1")
        True
        >>> len(loom_color("main"))
        7
    """
    digest = hashlib.sha256(branch_name.encode("utf-8")).hexdigest()
    red, green, blue = LOOM_COLOR_PALETTE[int(digest[:8], 16) % len(LOOM_COLOR_PALETTE)]
    return f"#{red:02x}{green:02x}{blue:02x}"


def session_id_for(worktree_path: str | Path) -> str:
    """Derive the agent session id for a worktree path (UUID v5, URL namespace).

    Example:
        >>> session_id_for("/src/app") == session_id_for("/src/app")
        True
    """
    return str(uuid.uuid5(uuid.NAMESPACE_URL, str(worktree_path)))


def build_metadata(
    worktree_path: Path,
    *,
    branch_name: str,
    issue_type: LoomType,
    description: str = "",
    issue_numbers: list[str] | None = None,
    pr_numbers: list[str] | None = None,
    issue_tracker: str | None = None,
    port: int | None = None,
    database_branch_name: str | None = None,
    parent_loom: ParentLoom | None = None,
    capabilities: list[str] | None = None,
) -> LoomMetadata:
    """Assemble the initial record for a freshly created loom."""
    return LoomMetadata(
        description=description,
        created_at=config.utc_now(),
        branch_name=branch_name,
        worktree_path=str(worktree_path),
        issue_type=issue_type,
        issue_numbers=issue_numbers or [],
        pr_numbers=pr_numbers or [],
        issue_tracker=issue_tracker,
        parent_loom=parent_loom,
        database_branch_name=database_branch_name,
        color_hex=loom_color(branch_name),
        capabilities=capabilities or [],
        session_id=session_id_for(worktree_path),
        port=port,
    )


class MetadataStore:
    """Read and write loom metadata files under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, worktree_path: str | Path) -> Path:
        return self.directory / paths.slugify_path(worktree_path)

    def _load(self, file_path: Path) -> LoomMetadata | None:
        try:
            payload = config.load_json(file_path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.debug(f"skipping unreadable metadata {file_path.name}: {exc}")
            return None
        if payload is None:
            return None
        if not isinstance(payload, dict):
            log.debug(f"skipping metadata {file_path.name}: not a JSON object")
            return None
        try:
            return LoomMetadata.model_validate(payload)
        except ValidationError as exc:
            log.debug(f"skipping invalid metadata {file_path.name}: {exc}")
            return None

    def _store(self, file_path: Path, metadata: LoomMetadata) -> None:
        write_text_atomic(file_path, config.dump_json(metadata.to_payload()))

    def read(self, worktree_path: str | Path) -> LoomMetadata | None:
        """Return the record for a worktree; missing or unparsable is ``None``."""
        return self._load(self.path_for(worktree_path))

    def write(self, worktree_path: str | Path, metadata: LoomMetadata) -> LoomMetadata:
        """Replace the record for a worktree atomically."""
        file_path = self.path_for(worktree_path)
        updates: dict[str, object] = {}
        if metadata.created_at is None:
            updates["created_at"] = config.utc_now()
        if metadata.worktree_path is None:
            updates["worktree_path"] = str(worktree_path)
        if updates:
            metadata = metadata.model_copy(update=updates)
        with file_lock(file_path):
            self._store(file_path, metadata)
        log.debug(f"metadata written for {worktree_path}")
        return metadata

    def update(
        self,
        worktree_path: str | Path,
        mutate: Callable[[LoomMetadata], LoomMetadata | None],
    ) -> LoomMetadata | None:
        """Read under lock, apply ``mutate``, then replace atomically.

        ``mutate`` may modify the record in place (returning ``None``) or
        return a replacement. Returns the stored record, or ``None`` when no
        record exists.
        """
        file_path = self.path_for(worktree_path)
        with file_lock(file_path):
            current = self._load(file_path)
            if current is None:
                return None
            result = mutate(current)
            updated = current if result is None else result
            self._store(file_path, updated)
        return updated

    def mark_finished(self, worktree_path: str | Path) -> LoomMetadata | None:
        """Transition a record to ``finished``; already finished records keep their timestamp."""

        def _finish(meta: LoomMetadata) -> LoomMetadata:
            if meta.is_finished and meta.finished_at:
                return meta
            return meta.model_copy(update={"status": "finished", "finished_at": config.utc_now()})

        return self.update(worktree_path, _finish)

    def add_url(
        self, worktree_path: str | Path, kind: UrlKind, number: int | str, url: str
    ) -> LoomMetadata | None:
        """Record an issue or PR URL and the matching number."""
        key = str(number).lstrip("#")

        def _add(meta: LoomMetadata) -> LoomMetadata:
            if kind == "issue":
                return meta.model_copy(
                    update={
                        "issue_urls": {**meta.issue_urls, key: url},
                        "issue_numbers": [*meta.issue_numbers, key]
                        if key not in meta.issue_numbers
                        else meta.issue_numbers,
                    }
                )
            return meta.model_copy(
                update={
                    "pr_urls": {**meta.pr_urls, key: url},
                    "pr_numbers": [*meta.pr_numbers, key]
                    if key not in meta.pr_numbers
                    else meta.pr_numbers,
                }
            )

        return self.update(worktree_path, _add)

    def delete(self, worktree_path: str | Path) -> bool:
        """Remove a record; returns ``False`` when there was nothing to delete."""
        file_path = self.path_for(worktree_path)
        with file_lock(file_path):
            if not file_path.exists():
                return False
            file_path.unlink(missing_ok=True)
        log.debug(f"metadata deleted for {worktree_path}")
        return True

    def list_all(self) -> list[LoomMetadata]:
        """Return every parsable record, oldest first."""
        if not self.directory.is_dir():
            return []
        records: list[LoomMetadata] = []
        for file_path in sorted(self.directory.glob("*.json")):
            meta = self._load(file_path)
            if meta is not None:
                records.append(meta)
        records.sort(key=lambda meta: meta.created_at or "")
        return records

    def list_active(self) -> list[LoomMetadata]:
        return [meta for meta in self.list_all() if not meta.is_finished]

    def list_finished(self) -> list[LoomMetadata]:
        return [meta for meta in self.list_all() if meta.is_finished]
