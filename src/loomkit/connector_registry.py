"""Select connector variants from the configuration, once per process."""

from __future__ import annotations

from . import exec as exec_util
from . import log
from .connectors import DatabaseConnector, IssueTrackerConnector, ProcessConnector
from .database import DatabaseBranchManager, DisabledDatabase, NeonCliProvider
from .issue_trackers import GithubIssueTracker, NullIssueTracker
from .models import LoomkitConfig
from .process import PortProcessManager


def issue_tracker_for(
    config: LoomkitConfig, *, runner: exec_util.CommandRunner | None = None
) -> IssueTrackerConnector:
    """
    Example:
        >>> issue_tracker_for(LoomkitConfig()).slug
        'none'
    """
    if config.issue_tracker == "github":
        return GithubIssueTracker(repo=config.github_repo, runner=runner)
    return NullIssueTracker()


def database_for(
    config: LoomkitConfig, *, runner: exec_util.CommandRunner | None = None
) -> DatabaseConnector:
    if config.database_provider == "neon":
        provider = NeonCliProvider(project_id=config.neon_project_id, runner=runner)
        if not provider.is_configured():
            log.debug("neon selected but neon_project_id is missing or invalid")
        return DatabaseBranchManager(provider)
    return DisabledDatabase()


def processes_for(
    config: LoomkitConfig, *, runner: exec_util.CommandRunner | None = None
) -> ProcessConnector:
    return PortProcessManager(runner=runner)
