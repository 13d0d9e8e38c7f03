"""Git helper functions used by the loom lifecycle modules."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from . import exec as exec_util
from .services.errors import ExternalCommandFailedError


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path.

    Example:
        >>> git_command(["status"], git_path=" /usr/bin/git ")
        ['/usr/bin/git', 'status']
        >>> git_command(["status"])
        ['git', 'status']
    """
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def run_git(
    repo_dir: Path,
    args: list[str],
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> exec_util.CommandResult:
    """Run ``git -C <repo_dir> <args>`` and return the raw result.

    A non-zero exit is returned to the caller; only a missing git executable
    raises.
    """
    argv = git_command(["-C", str(repo_dir), *args], git_path=git_path)
    result = exec_util.run_with_runner(
        exec_util.CommandRequest(argv=tuple(argv)), runner=runner
    )
    if result is None:
        raise ExternalCommandFailedError(
            exec_util.missing_command_detail(argv),
            recovery_hint="install git or set git_path in settings.json",
        )
    return result


def git_repo_root(
    start: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> Path | None:
    """Return the git repository root for a starting path, if any."""
    result = run_git(start, ["rev-parse", "--show-toplevel"], git_path=git_path, runner=runner)
    if not result.ok:
        return None
    resolved = result.stdout.strip()
    if not resolved:
        return None
    return Path(resolved)


def git_current_branch(
    repo_dir: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> str | None:
    """Return the checked-out branch name, or ``None`` when detached or unavailable."""
    result = run_git(repo_dir, ["branch", "--show-current"], git_path=git_path, runner=runner)
    if not result.ok:
        return None
    return result.stdout.strip() or None


def git_is_repo(
    repo_dir: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    """Return whether the path is inside a git work tree."""
    result = run_git(
        repo_dir, ["rev-parse", "--is-inside-work-tree"], git_path=git_path, runner=runner
    )
    return result.ok


def git_status_porcelain(
    repo_dir: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> list[str] | None:
    """Return ``git status --porcelain=v1`` lines, or ``None`` on error."""
    result = run_git(repo_dir, ["status", "--porcelain=v1"], git_path=git_path, runner=runner)
    if not result.ok:
        return None
    return [line for line in result.stdout.splitlines() if line.strip()]


def git_is_clean(
    repo_dir: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool | None:
    """Check whether the working tree is clean.

    Returns:
        ``True`` if clean, ``False`` if dirty, ``None`` on error.
    """
    lines = git_status_porcelain(repo_dir, git_path=git_path, runner=runner)
    if lines is None:
        return None
    return not lines


def git_ref_exists(
    repo_dir: Path,
    ref: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    """Check whether a git ref (e.g. ``refs/heads/main``) exists."""
    result = run_git(
        repo_dir, ["show-ref", "--verify", "--quiet", ref], git_path=git_path, runner=runner
    )
    return result.ok


def git_default_branch(
    repo_dir: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> str | None:
    """Determine the default branch for a repository.

    Tries ``origin/HEAD`` first, then local ``main`` and ``master``, then the
    current branch.
    """
    result = run_git(
        repo_dir, ["symbolic-ref", "refs/remotes/origin/HEAD"], git_path=git_path, runner=runner
    )
    if result.ok:
        ref = result.stdout.strip()
        prefix = "refs/remotes/origin/"
        if ref.startswith(prefix):
            branch = ref[len(prefix) :].strip()
            if branch:
                return branch

    for candidate in ("main", "master"):
        if git_ref_exists(repo_dir, f"refs/heads/{candidate}", git_path=git_path, runner=runner):
            return candidate

    return git_current_branch(repo_dir, git_path=git_path, runner=runner)


@dataclass(frozen=True)
class RemoteBranchStatus:
    """Where a local branch stands against its copy on a remote.

    ``network_error`` means the remote could not be queried; the other
    fields are meaningless then.
    """

    exists: bool
    local_ahead: bool = False
    network_error: bool = False
    error: str | None = None


def git_remote_branch_status(
    repo_dir: Path,
    branch: str,
    *,
    remote: str = "origin",
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> RemoteBranchStatus:
    """Check whether ``branch`` exists on ``remote`` and has unpushed commits.

    A branch whose remote-tracking ref is missing locally counts as ahead,
    because its commits cannot be shown to be on the remote.
    """
    listing = run_git(
        repo_dir,
        ["ls-remote", "--heads", remote, f"refs/heads/{branch}"],
        git_path=git_path,
        runner=runner,
    )
    if not listing.ok:
        return RemoteBranchStatus(
            exists=False,
            network_error=True,
            error=listing.output.strip() or f"git ls-remote {remote} failed",
        )
    if not listing.stdout.strip():
        return RemoteBranchStatus(exists=False)

    ahead = run_git(
        repo_dir,
        ["rev-list", "--count", f"refs/remotes/{remote}/{branch}..refs/heads/{branch}"],
        git_path=git_path,
        runner=runner,
    )
    if not ahead.ok:
        return RemoteBranchStatus(exists=True, local_ahead=True)
    count = ahead.stdout.strip()
    return RemoteBranchStatus(exists=True, local_ahead=count.isdigit() and int(count) > 0)


def git_is_ancestor(
    repo_dir: Path,
    ancestor: str,
    descendant: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool | None:
    """Return whether ``ancestor`` is reachable from ``descendant``.

    Returns:
        ``True`` or ``False`` from ``git merge-base --is-ancestor``, ``None``
        when git cannot answer (for example an unknown ref).
    """
    result = run_git(
        repo_dir,
        ["merge-base", "--is-ancestor", ancestor, descendant],
        git_path=git_path,
        runner=runner,
    )
    if result.returncode == 0:
        return True
    if result.returncode == 1:
        return False
    return None
