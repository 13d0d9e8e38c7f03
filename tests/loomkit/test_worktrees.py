from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from loomkit.services.errors import (
    ExternalCommandFailedError,
    PathConflictError,
    UncommittedChangesError,
    UnresolvedIdentifierError,
    ValidationFailedError,
)
from loomkit.worktrees import WorktreeRegistry, parse_worktree_porcelain
from tests.loomkit.helpers import (
    ISSUE_PATH,
    MAIN_PATH,
    FakeRunner,
    git_runner,
    porcelain,
)


def test_parse_porcelain_reads_all_flags() -> None:
    output = (
        "worktree /repo\nHEAD abc\nbare\n\n"
        "worktree /repo_pr_3\nHEAD def\nbranch refs/heads/fix\nlocked\nprunable gitdir missing\n"
    )

    main, pr = parse_worktree_porcelain(output)

    assert main.bare is True
    assert main.branch is None
    assert pr.branch == "fix"
    assert pr.locked is True
    assert pr.lock_reason is None
    assert pr.prunable is True


def test_list_raises_when_git_fails() -> None:
    runner = FakeRunner().on("worktree", "list", returncode=128, stderr="fatal: not a git repo")

    with pytest.raises(ExternalCommandFailedError) as excinfo:
        WorktreeRegistry(Path(MAIN_PATH), runner=runner).list()

    assert "not a git repo" in excinfo.value.detail


def test_list_raises_when_git_is_missing() -> None:
    runner = FakeRunner().on("worktree", missing=True)

    with pytest.raises(ExternalCommandFailedError, match="missing required command: git"):
        WorktreeRegistry(Path(MAIN_PATH), runner=runner).list()


def test_main_worktree_is_first_entry() -> None:
    registry = WorktreeRegistry(Path(MAIN_PATH), runner=git_runner())

    main = registry.main_worktree()

    assert main is not None
    assert main.path == Path(MAIN_PATH)
    assert registry.is_main(main)
    assert not registry.is_main(registry.find_for_issue(87))  # type: ignore[arg-type]


def test_git_path_override_is_used() -> None:
    runner = git_runner()
    WorktreeRegistry(Path(MAIN_PATH), git_path="/opt/git", runner=runner).list()

    assert runner.calls[0][:3] == ("/opt/git", "-C", MAIN_PATH)


def test_create_refuses_existing_path() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        registry = WorktreeRegistry(Path(MAIN_PATH), runner=FakeRunner())

        with pytest.raises(PathConflictError) as excinfo:
            registry.create(tmp, "feature/x")

    assert excinfo.value.code == "path_conflict"


def test_create_requires_branch_name() -> None:
    with pytest.raises(ValidationFailedError):
        WorktreeRegistry(Path(MAIN_PATH), runner=FakeRunner()).create("/w/new", " ")


def test_create_builds_new_branch_command() -> None:
    runner = FakeRunner()
    registry = WorktreeRegistry(Path(MAIN_PATH), runner=runner)

    with tempfile.TemporaryDirectory() as tmp:
        target = Path(tmp) / "issue-5"
        result = registry.create(target, "issue-5", base_branch="main", create_branch=True)

    assert result.success
    assert runner.git_calls("worktree", "add") == [
        ("git", "-C", MAIN_PATH, "worktree", "add", "-b", "issue-5", str(target.resolve()), "main")
    ]


def test_create_reports_git_failure_without_raising() -> None:
    runner = FakeRunner().on("worktree", "add", returncode=128, stderr="fatal: invalid reference")
    registry = WorktreeRegistry(Path(MAIN_PATH), runner=runner)

    with tempfile.TemporaryDirectory() as tmp:
        result = registry.create(Path(tmp) / "w", "nope")

    assert not result.success
    assert result.exit_code == 128
    assert result.error == "fatal: invalid reference"


def test_remove_dry_run_describes_actions_without_running_git() -> None:
    runner = git_runner()
    registry = WorktreeRegistry(Path(MAIN_PATH), runner=runner)

    result = registry.remove(ISSUE_PATH, dry_run=True, remove_directory=True, remove_branch=True)

    assert result.success
    assert result.message == (
        "Would perform: Remove worktree registration, Remove directory from disk, "
        "Remove branch: issue-87-test"
    )
    assert runner.git_calls("worktree", "remove") == []
    assert runner.git_calls("status") == []


def test_remove_refuses_dirty_worktree() -> None:
    runner = git_runner().on("status", "--porcelain=v1", stdout=" M app.py\n")

    with pytest.raises(UncommittedChangesError) as excinfo:
        WorktreeRegistry(Path(MAIN_PATH), runner=runner).remove(ISSUE_PATH)

    assert excinfo.value.recovery_hint and "--force" in excinfo.value.recovery_hint
    assert runner.git_calls("worktree", "remove") == []


def test_remove_with_force_skips_status_and_passes_force() -> None:
    runner = git_runner()

    result = WorktreeRegistry(Path(MAIN_PATH), runner=runner).remove(ISSUE_PATH, force=True)

    assert result.success
    assert runner.git_calls("status") == []
    assert runner.git_calls("worktree", "remove") == [
        ("git", "-C", MAIN_PATH, "worktree", "remove", "--force", ISSUE_PATH)
    ]


def test_remove_unknown_path_is_unresolved() -> None:
    with pytest.raises(UnresolvedIdentifierError):
        WorktreeRegistry(Path(MAIN_PATH), runner=git_runner()).remove("/elsewhere")


def test_remove_keeps_going_when_branch_delete_fails() -> None:
    runner = git_runner().on("branch", "-D", returncode=1, stderr="error: branch not found")

    result = WorktreeRegistry(Path(MAIN_PATH), runner=runner).remove(
        ISSUE_PATH, remove_branch=True
    )

    assert result.success
    assert "Warning: could not delete branch issue-87-test" in result.message


def test_remove_deletes_directory_when_asked() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        target = Path(tmp) / "loom"
        target.mkdir()
        (target / "leftover.txt").write_text("x", encoding="utf-8")
        runner = git_runner(porcelain((MAIN_PATH, "main"), (str(target.resolve()), "feature/x")))

        WorktreeRegistry(Path(MAIN_PATH), runner=runner).remove(target, remove_directory=True)

        assert not target.exists()


def test_delete_branch_uses_safe_delete_unless_forced() -> None:
    runner = FakeRunner()
    registry = WorktreeRegistry(Path(MAIN_PATH), runner=runner)

    registry.delete_branch("feature/x")
    registry.delete_branch("feature/y", force=True)

    assert [call[3:] for call in runner.git_calls("branch")] == [
        ("branch", "-d", "feature/x"),
        ("branch", "-D", "feature/y"),
    ]


def test_delete_branch_raises_on_git_refusal() -> None:
    runner = FakeRunner().on("branch", "-d", returncode=1, stderr="error: not fully merged")

    with pytest.raises(ExternalCommandFailedError, match="not fully merged"):
        WorktreeRegistry(Path(MAIN_PATH), runner=runner).delete_branch("feature/x")


def test_validate_reports_every_issue_independently() -> None:
    validation = WorktreeRegistry(Path(MAIN_PATH), runner=git_runner()).validate("/gone")

    assert not validation.is_valid
    assert validation.issues == [
        "Worktree directory does not exist on disk",
        "Worktree is not registered with Git",
    ]


def test_validate_detects_non_repository_directory() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        runner = git_runner().on("rev-parse", "--is-inside-work-tree", returncode=128)

        validation = WorktreeRegistry(Path(MAIN_PATH), runner=runner).validate(tmp)

    assert validation.exists_on_disk
    assert not validation.is_valid_repo
    assert validation.issues == [
        "Directory is not a valid Git repository",
        "Worktree is not registered with Git",
    ]


def test_validate_accepts_registered_worktree() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        resolved = str(Path(tmp).resolve())
        runner = (
            git_runner(porcelain((MAIN_PATH, "main"), (resolved, "feature/x")))
            .on("rev-parse", "--is-inside-work-tree", stdout="true\n")
            .on("branch", "--show-current", stdout="feature/x\n")
        )

        validation = WorktreeRegistry(Path(MAIN_PATH), runner=runner).validate(tmp)

    assert validation.is_valid
    assert validation.has_valid_branch


def test_status_counts_changes_and_divergence() -> None:
    runner = (
        FakeRunner()
        .on("status", "--porcelain=v1", stdout=" M a.py\nA  b.py\n?? c.py\n")
        .on("branch", "--show-current", stdout="feature/x\n")
        .on("rev-list", stdout="2\t3\n")
    )

    status = WorktreeRegistry(Path(MAIN_PATH), runner=runner).status(ISSUE_PATH)

    assert (status.modified, status.staged, status.untracked) == (1, 1, 1)
    assert (status.behind, status.ahead) == (2, 3)
    assert status.has_changes
    assert not status.detached


def test_lock_passes_reason() -> None:
    runner = FakeRunner()

    result = WorktreeRegistry(Path(MAIN_PATH), runner=runner).lock(ISSUE_PATH, "in review")

    assert result.success
    assert runner.calls[-1][3:] == ("worktree", "lock", ISSUE_PATH, "--reason", "in review")
