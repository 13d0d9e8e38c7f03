"""Resolve informal loom identifiers to resource descriptors.

Input precedence:

1. A leading ``#`` is dropped.
2. ``pr/<n>``, ``PR/<n>`` and ``PR-<n>`` are PRs, no probing.
3. A bare number is a PR when a ``_pr_<n>`` worktree exists, otherwise an
   issue when an ``issue-<n>`` branch exists. PR wins ties.
4. A tracker key such as ``ENG-123`` is an issue when an ``issue-<key>``
   branch exists; otherwise it is tried as a branch name.
5. Anything else is an exact branch name. The matched branch may be
   re-tagged as a PR or issue from numbers embedded in its name; the matched
   worktree never changes.

Only local worktrees are consulted; nothing here talks to a tracker.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from . import git, log
from .identifiers import (
    IssueKey,
    explicit_pr_number,
    extract_issue_number,
    extract_pr_number,
    is_numeric,
    is_tracker_key,
    issue_number_from_name,
    pr_number_from_path,
)
from .models import LoomType
from .ports import DEFAULT_BASE_PORT, calculate_port
from .services.errors import UnresolvedIdentifierError
from .worktrees import Worktree, WorktreeRegistry


@dataclass(frozen=True)
class ResourceDescriptor:
    """Resolved identity of a loom.

    Exactly one of ``number`` (issue, pr, epic) or ``branch_name`` (branch)
    is populated. ``matched_branch`` pins a number-tagged descriptor to the
    branch whose worktree it was resolved from.
    """

    type: LoomType
    original_input: str
    number: IssueKey | None = None
    branch_name: str | None = None
    auto_detected: bool = False
    matched_branch: str | None = None

    def __post_init__(self) -> None:
        if self.type == "branch":
            if not self.branch_name or self.number is not None:
                raise ValueError("branch descriptors carry a branch_name and no number")
        elif self.number is None or self.branch_name is not None:
            raise ValueError(f"{self.type} descriptors carry a number and no branch_name")

    @property
    def label(self) -> str:
        """Human label such as ``issue #42`` or ``branch feature/x``."""
        if self.type == "branch":
            return f"branch {self.branch_name}"
        prefix = "PR" if self.type == "pr" else self.type
        return f"{prefix} #{self.number}"

    def port(self, base_port: int = DEFAULT_BASE_PORT) -> int:
        """Dev-server port for this loom.

        Raises:
            PortOverflowError: The number pushes the port past 65535.
        """
        if self.type == "pr" and isinstance(self.number, int):
            return calculate_port(pr_number=self.number, base_port=base_port)
        if self.type != "branch":
            return calculate_port(issue_number=self.number, base_port=base_port)
        return calculate_port(branch_name=self.branch_name, base_port=base_port)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "number": self.number,
            "branch_name": self.branch_name,
            "original_input": self.original_input,
            "auto_detected": self.auto_detected,
            "matched_branch": self.matched_branch,
        }


def _retag_branch(branch_name: str, original_input: str) -> ResourceDescriptor:
    pr_number = extract_pr_number(branch_name)
    if pr_number is not None:
        return ResourceDescriptor(
            type="pr",
            number=pr_number,
            original_input=original_input,
            matched_branch=branch_name,
        )
    issue_key = extract_issue_number(branch_name)
    if issue_key is not None:
        return ResourceDescriptor(
            type="issue",
            number=issue_key,
            original_input=original_input,
            matched_branch=branch_name,
        )
    return ResourceDescriptor(type="branch", branch_name=branch_name, original_input=original_input)


class IdentifierResolver:
    def __init__(self, registry: WorktreeRegistry) -> None:
        self.registry = registry

    def resolve(self, raw_input: str) -> ResourceDescriptor:
        """Resolve user input to a descriptor.

        Raises:
            UnresolvedIdentifierError: No local worktree matches.
        """
        clean = raw_input.strip()
        if clean.startswith("#"):
            clean = clean[1:].strip()
        if not clean:
            raise UnresolvedIdentifierError(raw_input, detail="identifier must not be empty")

        explicit_pr = explicit_pr_number(clean)
        if explicit_pr is not None:
            log.debug(f"{raw_input!r} is an explicit PR reference")
            return ResourceDescriptor(type="pr", number=explicit_pr, original_input=raw_input)

        if is_numeric(clean):
            number = int(clean)
            if self.registry.find_for_pr(number) is not None:
                return ResourceDescriptor(type="pr", number=number, original_input=raw_input)
            if self.registry.find_for_issue(number) is not None:
                return ResourceDescriptor(type="issue", number=number, original_input=raw_input)
            raise UnresolvedIdentifierError(raw_input)

        if is_tracker_key(clean) and self.registry.find_for_issue(clean) is not None:
            return ResourceDescriptor(type="issue", number=clean, original_input=raw_input)

        if self.registry.find_for_branch(clean) is None:
            raise UnresolvedIdentifierError(raw_input)
        descriptor = _retag_branch(clean, raw_input)
        if descriptor.type != "branch":
            log.debug(f"branch {clean!r} re-tagged as {descriptor.label}")
        return descriptor

    def auto_detect(self, cwd: Path) -> ResourceDescriptor:
        """Infer the loom for ``cwd`` when no identifier was given.

        Checks the directory name (``_pr_<n>`` then ``issue-<n>``), then the
        checked-out branch. Read-only.

        Raises:
            UnresolvedIdentifierError: The current branch cannot be determined.
        """
        leaf = cwd.resolve().name
        pr_number = pr_number_from_path(leaf)
        if pr_number is not None:
            return ResourceDescriptor(
                type="pr", number=pr_number, original_input=leaf, auto_detected=True
            )
        issue_number = issue_number_from_name(leaf)
        if issue_number is not None:
            return ResourceDescriptor(
                type="issue", number=issue_number, original_input=leaf, auto_detected=True
            )

        branch = git.git_current_branch(
            cwd, git_path=self.registry.git_path, runner=self.registry.runner
        )
        if not branch:
            raise UnresolvedIdentifierError(
                str(cwd), detail=f"could not determine the current branch in {cwd}"
            )
        issue_key = extract_issue_number(branch)
        if issue_key is None:
            issue_key = issue_number_from_name(branch)
        if issue_key is not None:
            return ResourceDescriptor(
                type="issue",
                number=issue_key,
                original_input=branch,
                auto_detected=True,
                matched_branch=branch,
            )
        return ResourceDescriptor(
            type="branch", branch_name=branch, original_input=branch, auto_detected=True
        )

    def find_worktree(self, descriptor: ResourceDescriptor) -> Worktree:
        """Map a descriptor back to its live worktree.

        A descriptor pinned to ``matched_branch`` only ever maps to that
        branch's worktree; the number is not looked up again, since another
        loom may carry the same number.

        Raises:
            UnresolvedIdentifierError: No live worktree matches.
        """
        worktree: Worktree | None = None
        if descriptor.matched_branch:
            worktree = self.registry.find_for_branch(descriptor.matched_branch)
        elif descriptor.type == "pr" and isinstance(descriptor.number, int):
            worktree = self.registry.find_for_pr(descriptor.number)
        elif descriptor.type in {"issue", "epic"} and descriptor.number is not None:
            worktree = self.registry.find_for_issue(descriptor.number)
        elif descriptor.type == "branch" and descriptor.branch_name:
            worktree = self.registry.find_for_branch(descriptor.branch_name)

        if worktree is None:
            raise UnresolvedIdentifierError(
                descriptor.original_input,
                detail=f"no worktree found for {descriptor.label}",
            )
        return worktree
