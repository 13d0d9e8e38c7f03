"""Issue tracker connectors for blocked-by lookups."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from . import exec as exec_util
from . import log
from .services.errors import ConnectorError, ExternalCommandFailedError

_API_HEADERS = (
    "-H",
    "Accept: application/vnd.github+json",
    "-H",
    "X-GitHub-Api-Version: 2022-11-28",
)


class GithubDependency(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str = ""
    state: str = ""
    html_url: str = ""


def _require_gh() -> None:
    if shutil.which("gh") is None:
        raise ConnectorError("github", "missing required command: gh")


@dataclass(frozen=True)
class GithubIssueTracker:
    """Reads issue dependencies through ``gh api``."""

    repo: str | None = None
    runner: exec_util.CommandRunner | None = None

    slug: str = "github"

    def _api_path(self, issue_number: int) -> str:
        owner_repo = self.repo or ":owner/:repo"
        return f"repos/{owner_repo}/issues/{issue_number}/dependencies/blocked_by"

    def fetch_blocked_by(self, issue_id: str) -> list[str]:
        """Return the numbers of issues blocking ``issue_id``.

        A 404 from the dependencies endpoint means no dependencies.

        Raises:
            ConnectorError: ``gh`` is missing or the call failed.
        """
        issue_key = str(issue_id).lstrip("#")
        if not issue_key.isdigit():
            log.warning(f"invalid GitHub issue number: {issue_id}")
            return []
        if self.runner is None:
            _require_gh()
        api_path = self._api_path(int(issue_key))
        request = exec_util.CommandRequest(argv=("gh", "api", *_API_HEADERS, api_path))
        try:
            result = exec_util.run_checked(request, runner=self.runner)
        except ExternalCommandFailedError as exc:
            combined = f"{exc} {exc.detail}"
            if "404" in combined and "dependencies" in combined:
                return []
            raise ConnectorError("github", f"blocked-by lookup for #{issue_key} failed") from exc
        if not result.stdout.strip():
            return []
        payload = exec_util.parse_json_payload(result, context="gh api dependencies")
        if not isinstance(payload, list):
            raise ConnectorError("github", "dependencies endpoint did not return a list")
        return [str(GithubDependency.model_validate(item).number) for item in payload]


@dataclass(frozen=True)
class NullIssueTracker:
    """Tracker used when none is configured: nothing blocks anything."""

    slug: str = "none"

    def fetch_blocked_by(self, issue_id: str) -> list[str]:
        return []
