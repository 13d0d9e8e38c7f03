"""Git worktree bookkeeping for looms.

The registry is a thin, typed layer over ``git worktree``. Git owns the
worktree list; nothing here caches it, and every lookup re-reads
``git worktree list --porcelain``. Paths are resolved to absolute form before
they are compared or passed to git.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from . import exec as exec_util
from . import git, log
from .identifiers import IssueKey, issue_branch_pattern, pr_number_from_path
from .services.errors import (
    ExternalCommandFailedError,
    PathConflictError,
    UncommittedChangesError,
    UnresolvedIdentifierError,
    ValidationFailedError,
)


@dataclass(frozen=True)
class Worktree:
    """One entry of ``git worktree list --porcelain``."""

    path: Path
    branch: str | None = None
    commit: str = ""
    bare: bool = False
    detached: bool = False
    locked: bool = False
    lock_reason: str | None = None
    prunable: bool = False


@dataclass(frozen=True)
class WorktreeOperationResult:
    success: bool
    message: str = ""
    error: str | None = None
    exit_code: int = 0


@dataclass(frozen=True)
class WorktreeValidation:
    is_valid: bool
    issues: list[str] = field(default_factory=list)
    exists_on_disk: bool = False
    is_valid_repo: bool = False
    has_valid_branch: bool = False


@dataclass(frozen=True)
class WorktreeStatus:
    """Porcelain change counts plus upstream divergence for a worktree."""

    modified: int = 0
    staged: int = 0
    deleted: int = 0
    untracked: int = 0
    branch: str | None = None
    detached: bool = False
    ahead: int = 0
    behind: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.modified or self.staged or self.deleted or self.untracked)


def _absolute(path: str | Path) -> Path:
    return Path(path).expanduser().resolve()


def parse_worktree_porcelain(output: str) -> list[Worktree]:
    """Parse ``git worktree list --porcelain`` output.

    Records are separated by blank lines; the first record is the main
    worktree.

    Example:
        >>> text = "worktree /repo\\nHEAD abc\\nbranch refs/heads/main\\n\\n"
        >>> text += "worktree /repo_pr_4\\nHEAD def\\ndetached\\nlocked busy\\n"
        >>> [(w.path.name, w.branch, w.detached, w.lock_reason) for w in parse_worktree_porcelain(text)]
        [('repo', 'main', False, None), ('repo_pr_4', None, True, 'busy')]
    """
    worktrees: list[Worktree] = []
    record: dict[str, object] = {}

    def _flush() -> None:
        if "path" in record:
            worktrees.append(Worktree(**record))  # type: ignore[arg-type]
        record.clear()

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            _flush()
            continue
        key, _, value = line.partition(" ")
        if key == "worktree":
            _flush()
            record["path"] = Path(value.strip())
        elif key == "HEAD":
            record["commit"] = value.strip()
        elif key == "branch":
            branch = value.strip()
            prefix = "refs/heads/"
            record["branch"] = branch[len(prefix) :] if branch.startswith(prefix) else branch
        elif key == "bare":
            record["bare"] = True
        elif key == "detached":
            record["detached"] = True
        elif key == "locked":
            record["locked"] = True
            record["lock_reason"] = value.strip() or None
        elif key == "prunable":
            record["prunable"] = True
    _flush()
    return worktrees


def count_status_lines(lines: list[str]) -> tuple[int, int, int, int]:
    """Count modified, staged, deleted and untracked entries in porcelain v1 lines.

    Example:
        >>> count_status_lines([" M a.py", "A  b.py", " D c.py", "?? d.py"])
        (1, 1, 1, 1)
    """
    modified = staged = deleted = untracked = 0
    for line in lines:
        code = line[:2].ljust(2)
        if code == "??":
            untracked += 1
            continue
        if "M" in code:
            modified += 1
        if code[0] in {"A", "D", "R"}:
            staged += 1
        if "D" in code:
            deleted += 1
    return modified, staged, deleted, untracked


class WorktreeRegistry:
    """Create, find, inspect and remove the worktrees of one repository."""

    def __init__(
        self,
        repo_root: Path,
        *,
        git_path: str | None = None,
        runner: exec_util.CommandRunner | None = None,
    ) -> None:
        self.repo_root = _absolute(repo_root)
        self.git_path = git_path
        self.runner = runner

    def _git(self, args: list[str], *, cwd: Path | None = None) -> exec_util.CommandResult:
        return git.run_git(cwd or self.repo_root, args, git_path=self.git_path, runner=self.runner)

    def list(self) -> list[Worktree]:
        result = self._git(["worktree", "list", "--porcelain"])
        if not result.ok:
            raise ExternalCommandFailedError(
                f"failed to list worktrees in {self.repo_root}", detail=result.output
            )
        return parse_worktree_porcelain(result.stdout)

    def _find(self, predicate: Callable[[Worktree], bool]) -> Worktree | None:
        for worktree in self.list():
            if predicate(worktree):
                return worktree
        return None

    def find_by_path(self, path: str | Path) -> Worktree | None:
        target = _absolute(path)
        return self._find(lambda wt: _absolute(wt.path) == target)

    def find_for_branch(self, branch_name: str) -> Worktree | None:
        return self._find(lambda wt: wt.branch == branch_name)

    def find_for_pr(self, pr_number: int) -> Worktree | None:
        """Find the worktree whose directory ends with ``_pr_<n>``."""
        return self._find(lambda wt: pr_number_from_path(str(wt.path)) == pr_number)

    def find_for_issue(self, issue_key: IssueKey) -> Worktree | None:
        """Find the worktree whose branch carries ``issue-<key>``."""
        pattern = issue_branch_pattern(issue_key)
        return self._find(lambda wt: bool(wt.branch and pattern.search(wt.branch)))

    def main_worktree(self) -> Worktree | None:
        worktrees = self.list()
        return worktrees[0] if worktrees else None

    def is_main(self, worktree: Worktree) -> bool:
        main = self.main_worktree()
        return main is not None and _absolute(main.path) == _absolute(worktree.path)

    def create(
        self,
        path: str | Path,
        branch: str,
        *,
        base_branch: str | None = None,
        create_branch: bool = False,
        force: bool = False,
    ) -> WorktreeOperationResult:
        """Add a worktree at ``path`` for ``branch``.

        Raises:
            ValidationFailedError: ``branch`` is empty.
            PathConflictError: ``path`` exists and ``force`` is not set.
        """
        if not branch or not branch.strip():
            raise ValidationFailedError("branch name is required")
        target = _absolute(path)
        if target.exists():
            if not force:
                raise PathConflictError(target)
            log.debug(f"removing existing directory {target}")
            shutil.rmtree(target)

        args = ["worktree", "add"]
        if create_branch:
            args.extend(["-b", branch])
        if force:
            args.append("--force")
        args.append(str(target))
        if not create_branch:
            args.append(branch)
        elif base_branch:
            args.append(base_branch)

        result = self._git(args)
        if not result.ok:
            return WorktreeOperationResult(
                success=False,
                message=result.stdout.strip(),
                error=result.output,
                exit_code=result.returncode,
            )
        log.debug(f"created worktree {target} on {branch}")
        return WorktreeOperationResult(success=True, message=result.output)

    def remove(
        self,
        path: str | Path,
        *,
        force: bool = False,
        dry_run: bool = False,
        remove_directory: bool = False,
        remove_branch: bool = False,
    ) -> WorktreeOperationResult:
        """Unregister a worktree and optionally delete its directory and branch.

        A failed branch delete does not fail the removal; it is appended to
        the result message as a warning.

        Raises:
            UnresolvedIdentifierError: ``path`` is not a registered worktree.
            UncommittedChangesError: The worktree is dirty and neither
                ``force`` nor ``dry_run`` is set.
            ExternalCommandFailedError: ``git worktree remove`` failed.
        """
        target = _absolute(path)
        worktree = self.find_by_path(target)
        if worktree is None:
            raise UnresolvedIdentifierError(str(path), detail=f"worktree not found: {target}")

        if not force and not dry_run:
            clean = git.git_is_clean(target, git_path=self.git_path, runner=self.runner)
            if clean is False:
                raise UncommittedChangesError(target)

        if dry_run:
            actions = ["Remove worktree registration"]
            if remove_directory:
                actions.append("Remove directory from disk")
            if remove_branch and worktree.branch:
                actions.append(f"Remove branch: {worktree.branch}")
            return WorktreeOperationResult(
                success=True, message=f"Would perform: {', '.join(actions)}"
            )

        args = ["worktree", "remove"]
        if force:
            args.append("--force")
        args.append(str(target))
        result = self._git(args)
        if not result.ok:
            raise ExternalCommandFailedError(
                f"failed to remove worktree {target}: {result.output}", detail=result.output
            )
        message = f"Removed worktree {target}"

        if remove_directory and target.exists():
            shutil.rmtree(target)

        if remove_branch and worktree.branch and not worktree.bare:
            branch_result = self._git(["branch", "-D", worktree.branch])
            if branch_result.ok:
                message += f"\nDeleted branch {worktree.branch}"
            else:
                warning = f"could not delete branch {worktree.branch}: {branch_result.output}"
                log.warning(warning)
                message += f"\nWarning: {warning}"

        return WorktreeOperationResult(success=True, message=message)

    def delete_branch(self, branch: str, *, force: bool = False) -> WorktreeOperationResult:
        """Delete a local branch (``-D`` with ``force``, else ``-d``).

        Raises:
            ExternalCommandFailedError: git refused, e.g. the branch is unmerged.
        """
        result = self._git(["branch", "-D" if force else "-d", branch])
        if not result.ok:
            raise ExternalCommandFailedError(
                f"failed to delete branch {branch}: {result.output}", detail=result.output
            )
        return WorktreeOperationResult(success=True, message=f"Deleted branch {branch}")

    def validate(self, path: str | Path) -> WorktreeValidation:
        """Check disk presence, repository validity, branch and registration independently."""
        target = _absolute(path)
        issues: list[str] = []
        is_valid_repo = False
        has_valid_branch = False

        exists_on_disk = target.is_dir()
        if not exists_on_disk:
            issues.append("Worktree directory does not exist on disk")
        else:
            is_valid_repo = git.git_is_repo(target, git_path=self.git_path, runner=self.runner)
            if not is_valid_repo:
                issues.append("Directory is not a valid Git repository")

        if is_valid_repo:
            branch = git.git_current_branch(target, git_path=self.git_path, runner=self.runner)
            has_valid_branch = branch is not None
            if not has_valid_branch:
                issues.append("Could not determine current branch")

        if self.find_by_path(target) is None:
            issues.append("Worktree is not registered with Git")

        return WorktreeValidation(
            is_valid=not issues,
            issues=issues,
            exists_on_disk=exists_on_disk,
            is_valid_repo=is_valid_repo,
            has_valid_branch=has_valid_branch,
        )

    def status(self, path: str | Path) -> WorktreeStatus:
        target = _absolute(path)
        lines = git.git_status_porcelain(target, git_path=self.git_path, runner=self.runner) or []
        modified, staged, deleted, untracked = count_status_lines(lines)
        branch = git.git_current_branch(target, git_path=self.git_path, runner=self.runner)

        ahead = behind = 0
        if branch:
            counts = self._git(
                ["rev-list", "--left-right", "--count", f"origin/{branch}...HEAD"], cwd=target
            )
            if counts.ok:
                parts = counts.stdout.split()
                if len(parts) == 2 and all(part.isdigit() for part in parts):
                    behind, ahead = int(parts[0]), int(parts[1])

        return WorktreeStatus(
            modified=modified,
            staged=staged,
            deleted=deleted,
            untracked=untracked,
            branch=branch,
            detached=branch is None,
            ahead=ahead,
            behind=behind,
        )

    def _simple(self, args: list[str]) -> WorktreeOperationResult:
        result = self._git(args)
        if not result.ok:
            return WorktreeOperationResult(
                success=False, error=result.output, exit_code=result.returncode
            )
        return WorktreeOperationResult(success=True, message=result.output)

    def prune(self) -> WorktreeOperationResult:
        """Drop registrations whose directories no longer exist."""
        return self._simple(["worktree", "prune", "-v"])

    def lock(self, path: str | Path, reason: str | None = None) -> WorktreeOperationResult:
        args = ["worktree", "lock", str(_absolute(path))]
        if reason:
            args.extend(["--reason", reason])
        return self._simple(args)

    def unlock(self, path: str | Path) -> WorktreeOperationResult:
        return self._simple(["worktree", "unlock", str(_absolute(path))])
