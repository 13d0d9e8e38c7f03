# ruff: noqa: E402

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from loomkit import exec as exec_util
from loomkit.connectors import DatabaseDeletionResult

MAIN_PATH = "/repo"
PR_PATH = "/repo_pr_42"
ISSUE_PATH = "/looms/issue-87-test"
FEATURE_PATH = "/looms/feat-issue-123"
BRANCH_PATH = "/looms/feature-login"

WORKTREE_PORCELAIN = f"""worktree {MAIN_PATH}
HEAD aaa111
branch refs/heads/main

worktree {PR_PATH}
HEAD bbb222
branch refs/heads/fix-header

worktree {ISSUE_PATH}
HEAD ccc333
branch refs/heads/issue-87-test

worktree {FEATURE_PATH}
HEAD ddd444
branch refs/heads/feat/issue-123__add-auth

worktree {BRANCH_PATH}
HEAD eee555
branch refs/heads/feature/login

"""


def porcelain(*entries: tuple[str, str | None]) -> str:
    """Build ``git worktree list --porcelain`` output from (path, branch) pairs."""
    blocks = []
    for index, (path, branch) in enumerate(entries):
        lines = [f"worktree {path}", f"HEAD {index:040d}"]
        lines.append(f"branch refs/heads/{branch}" if branch else "detached")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


def _command_key(argv: tuple[str, ...]) -> tuple[str, ...]:
    if len(argv) >= 3 and argv[1] == "-C":
        return argv[3:]
    return argv


@dataclass
class FakeRunner:
    """Scripted ``CommandRunner``: the most recent matching prefix wins.

    Git calls are matched on the arguments after ``git -C <dir>``; every other
    command is matched on its full argv. Unmatched commands succeed silently.
    """

    responses: list[tuple[tuple[str, ...], str | None, exec_util.CommandResult | None]] = field(
        default_factory=list
    )
    calls: list[tuple[str, ...]] = field(default_factory=list)

    def on(
        self,
        *prefix: str,
        cwd: str | None = None,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        missing: bool = False,
    ) -> FakeRunner:
        result = (
            None
            if missing
            else exec_util.CommandResult(
                argv=prefix, returncode=returncode, stdout=stdout, stderr=stderr
            )
        )
        self.responses.append((prefix, cwd, result))
        return self

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult | None:
        argv = tuple(request.argv)
        self.calls.append(argv)
        key = _command_key(argv)
        for prefix, cwd, result in reversed(self.responses):
            if key[: len(prefix)] != prefix:
                continue
            if cwd is not None and (len(argv) < 3 or argv[2] != cwd):
                continue
            if result is None:
                return None
            return exec_util.CommandResult(
                argv=argv,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return exec_util.CommandResult(argv=argv, returncode=0, stdout="", stderr="")

    def git_calls(self, *prefix: str) -> list[tuple[str, ...]]:
        return [
            call
            for call in self.calls
            if call and call[0] == "git" and _command_key(call)[: len(prefix)] == prefix
        ]


def git_runner(worktree_output: str = WORKTREE_PORCELAIN) -> FakeRunner:
    return FakeRunner().on("worktree", "list", "--porcelain", stdout=worktree_output)


@dataclass
class FakeDatabase:
    """``DatabaseConnector`` double that records its calls."""

    should_cleanup: bool = True
    result: DatabaseDeletionResult = field(
        default_factory=lambda: DatabaseDeletionResult(success=True, deleted=True)
    )
    decision_error: Exception | None = None
    env_paths: list[Path] = field(default_factory=list)
    deletions: list[tuple[str, bool, bool]] = field(default_factory=list)

    def should_use_database_branching(self, env_path: Path) -> bool:
        self.env_paths.append(env_path)
        if self.decision_error is not None:
            raise self.decision_error
        return self.should_cleanup

    def delete_branch_if_configured(
        self, branch_name: str, should_cleanup: bool, is_preview: bool = False
    ) -> DatabaseDeletionResult:
        self.deletions.append((branch_name, should_cleanup, is_preview))
        return self.result


@dataclass
class FakeProcesses:
    running: bool = True
    error: Exception | None = None
    ports: list[int] = field(default_factory=list)

    def stop_dev_server(self, port: int) -> bool:
        self.ports.append(port)
        if self.error is not None:
            raise self.error
        return self.running
