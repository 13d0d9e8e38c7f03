"""Connector contracts used by the loom lifecycle.

The core only needs three narrow capabilities from the outside world:

- an issue tracker that can list the issues blocking a given issue,
- a database provider that can tell whether a worktree uses database
  branching and delete a branch,
- a process manager that can stop the dev server bound to a port.

Concrete variants live in ``issue_trackers``, ``database`` and ``process``;
``connector_registry`` picks one per capability from the configuration.

Example:
    class StaticTracker(IssueTrackerConnector):
        slug = "static"

        def fetch_blocked_by(self, issue_id: str) -> list[str]:
            return {"B": ["A"]}.get(issue_id, [])
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class DatabaseDeletionResult:
    """Outcome of a database branch deletion.

    ``not_found`` with ``success`` means there was nothing to delete, which
    is not an error.
    """

    success: bool
    deleted: bool = False
    not_found: bool = False
    error: str | None = None
    branch_name: str | None = None


class IssueTrackerConnector(Protocol):
    slug: str

    def fetch_blocked_by(self, issue_id: str) -> list[str]:
        """Return ids of issues blocking ``issue_id``."""
        ...


class DatabaseConnector(Protocol):
    def should_use_database_branching(self, env_path: Path) -> bool:
        """Return whether the env file at ``env_path`` configures a database."""
        ...

    def delete_branch_if_configured(
        self, branch_name: str, should_cleanup: bool, is_preview: bool = False
    ) -> DatabaseDeletionResult:
        """Delete a database branch; never raises for provider failures."""
        ...


class ProcessConnector(Protocol):
    def stop_dev_server(self, port: int) -> bool:
        """Stop the dev server on ``port``; ``False`` when none was running."""
        ...
