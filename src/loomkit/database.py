"""Database branch connector with a Neon CLI provider.

``DatabaseBranchManager`` guards every provider call: branching is only in
play when the provider is configured and the worktree's env file sets
``DATABASE_URL`` or ``DATABASE_URI``. Deletion never raises; every failure
comes back as a ``DatabaseDeletionResult``.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from . import exec as exec_util
from . import log
from .connectors import DatabaseDeletionResult
from .envfile import has_variable
from .services.errors import ExternalCommandFailedError

DATABASE_URL_VARIABLES = ("DATABASE_URL", "DATABASE_URI")
_PROJECT_ID_RE = re.compile(r"^[a-zA-Z0-9-]+$")
_AUTH_ERROR_MARKERS = (
    "not authenticated",
    "not logged in",
    "authentication required",
    "login required",
)


class DatabaseProvider(Protocol):
    def is_configured(self) -> bool: ...

    def is_cli_available(self) -> bool: ...

    def is_authenticated(self) -> bool: ...

    def delete_branch(self, branch_name: str, is_preview: bool = False) -> DatabaseDeletionResult: ...


class NeonBranch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


def sanitize_branch_name(branch_name: str) -> str:
    """Neon branch names cannot contain ``/``.

    Example:
        >>> sanitize_branch_name("feat/issue-7__login")
        'feat_issue-7__login'
    """
    return branch_name.replace("/", "_")


@dataclass
class NeonCliProvider:
    """Talks to Neon through the ``neon`` CLI."""

    project_id: str | None
    executable: str = "neon"
    runner: exec_util.CommandRunner | None = None

    def is_configured(self) -> bool:
        return bool(self.project_id and _PROJECT_ID_RE.match(self.project_id))

    def is_cli_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def _run(self, args: list[str]) -> exec_util.CommandResult:
        return exec_util.run_checked(
            exec_util.CommandRequest(argv=(self.executable, *args)), runner=self.runner
        )

    def is_authenticated(self) -> bool:
        """Return ``False`` for auth failures; other CLI errors propagate."""
        try:
            self._run(["me"])
        except ExternalCommandFailedError as exc:
            detail = f"{exc} {exc.detail}".lower()
            if any(marker in detail for marker in _AUTH_ERROR_MARKERS):
                return False
            raise
        return True

    def list_branches(self) -> list[NeonBranch]:
        result = self._run(
            ["branches", "list", "--project-id", str(self.project_id), "--output", "json"]
        )
        payload = exec_util.parse_json_payload(result, context="neon branches list")
        if not isinstance(payload, list):
            raise ExternalCommandFailedError("neon branches list did not return a JSON list")
        return [NeonBranch.model_validate(item) for item in payload]

    def find_preview_branch(self, branch_name: str) -> str | None:
        names = {branch.name for branch in self.list_branches()}
        for candidate in (f"preview/{branch_name}", f"preview_{sanitize_branch_name(branch_name)}"):
            if candidate in names:
                return candidate
        return None

    def delete_branch(self, branch_name: str, is_preview: bool = False) -> DatabaseDeletionResult:
        if is_preview:
            preview = self.find_preview_branch(branch_name)
            if preview is not None:
                log.warning(
                    f"preview database {preview} is managed by the hosting platform; not deleting it"
                )
                return DatabaseDeletionResult(success=True, branch_name=preview)

        sanitized = sanitize_branch_name(branch_name)
        if sanitized not in {branch.name for branch in self.list_branches()}:
            log.info(f"No database branch found for {branch_name!r}")
            return DatabaseDeletionResult(success=True, not_found=True, branch_name=sanitized)

        log.info(f"Deleting Neon database branch: {sanitized}")
        self._run(["branches", "delete", sanitized, "--project-id", str(self.project_id)])
        return DatabaseDeletionResult(success=True, deleted=True, branch_name=sanitized)


class DatabaseBranchManager:
    """``DatabaseConnector`` over a ``DatabaseProvider``."""

    def __init__(self, provider: DatabaseProvider) -> None:
        self.provider = provider

    def should_use_database_branching(self, env_path: Path) -> bool:
        if not self.provider.is_configured():
            log.debug("skipping database branching: provider not configured")
            return False
        if not has_variable(env_path, *DATABASE_URL_VARIABLES):
            log.debug(f"skipping database branching: no DATABASE_URL/DATABASE_URI in {env_path}")
            return False
        return True

    def delete_branch_if_configured(
        self, branch_name: str, should_cleanup: bool, is_preview: bool = False
    ) -> DatabaseDeletionResult:
        if not should_cleanup:
            return DatabaseDeletionResult(success=True, not_found=True, branch_name=branch_name)
        if not self.provider.is_configured():
            log.debug("skipping database branch deletion: provider not configured")
            return DatabaseDeletionResult(success=True, not_found=True, branch_name=branch_name)
        if not self.provider.is_cli_available():
            log.info("skipping database branch deletion: CLI tool not available")
            return DatabaseDeletionResult(
                success=False, not_found=True, error="CLI tool not available", branch_name=branch_name
            )

        try:
            authenticated = self.provider.is_authenticated()
        except Exception as exc:
            log.error(f"database authentication check failed: {exc}")
            return DatabaseDeletionResult(
                success=False,
                error=f"authentication check failed: {exc}",
                branch_name=branch_name,
            )
        if not authenticated:
            log.warning("skipping database branch deletion: not authenticated with provider")
            return DatabaseDeletionResult(
                success=False, error="not authenticated with database provider", branch_name=branch_name
            )

        try:
            return self.provider.delete_branch(branch_name, is_preview)
        except Exception as exc:
            log.warning(f"database branch deletion failed: {exc}")
            return DatabaseDeletionResult(success=False, error=str(exc), branch_name=branch_name)


class DisabledDatabase:
    """Connector used when no database provider is configured."""

    def should_use_database_branching(self, env_path: Path) -> bool:
        return False

    def delete_branch_if_configured(
        self, branch_name: str, should_cleanup: bool, is_preview: bool = False
    ) -> DatabaseDeletionResult:
        return DatabaseDeletionResult(success=True, not_found=True, branch_name=branch_name)
