"""Loom failure contracts.

Core operations return typed outcomes on success and raise ``LoomFailure`` when
a request cannot be satisfied at all (unknown identifier, conflicting path,
dirty worktree, unusable configuration). Per-resource failures that happen
while tearing a loom down are not raised; they are recorded in the cleanup
report instead. Programmer bugs raise normal exceptions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

LoomFailureCode = Literal[
    "unresolved_identifier",
    "path_conflict",
    "uncommitted_changes",
    "unsafe_branch_deletion",
    "port_overflow",
    "validation_failed",
    "external_command_failed",
    "connector_failed",
    "io_failed",
]


class LoomFailure(Exception):
    """Expected failure: the requested operation cannot start.

    Use ``raise LoomFailure(...) from exc`` to chain a causing exception; it
    stays available as ``__cause__``. Callers catch ``LoomFailure`` and handle
    it per interface (the CLI prints the message and hint, then exits).
    """

    def __init__(
        self,
        code: LoomFailureCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint


class UnresolvedIdentifierError(LoomFailure):
    """No loom matches the identifier the user supplied."""

    def __init__(self, identifier: str, *, detail: str | None = None) -> None:
        message = detail or f"no worktree found for identifier: {identifier}"
        super().__init__(
            "unresolved_identifier",
            message,
            recovery_hint="pass an issue number, PR number, or branch name of an existing loom",
        )
        self.identifier = identifier


class PathConflictError(LoomFailure):
    """The worktree target directory already exists."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(
            "path_conflict",
            f"path already exists: {path}",
            recovery_hint="remove the directory or retry with force",
        )
        self.path = Path(path)


class UncommittedChangesError(LoomFailure):
    """Destructive operation refused because the worktree is dirty."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(
            "uncommitted_changes",
            f"worktree has uncommitted changes: {path}",
            recovery_hint="commit or stash the changes, or retry with --force",
        )
        self.path = Path(path)


class UnsafeBranchDeletionError(LoomFailure):
    """Deleting the branch could lose commits that exist nowhere else."""

    def __init__(self, branch: str, reason: str, *, recovery_hint: str) -> None:
        super().__init__(
            "unsafe_branch_deletion",
            f"refusing to delete branch {branch}: {reason}",
            recovery_hint=recovery_hint,
        )
        self.branch = branch


class PortOverflowError(LoomFailure):
    """Numeric identifier pushes the port past 65535."""

    def __init__(self, identifier: int, base_port: int) -> None:
        super().__init__(
            "port_overflow",
            f"port for identifier {identifier} exceeds 65535 (base port {base_port})",
            recovery_hint="lower the configured base_port",
        )
        self.identifier = identifier
        self.base_port = base_port


class ValidationFailedError(LoomFailure):
    """Configuration or input failed validation."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)


class ExternalCommandFailedError(LoomFailure):
    """External command (git, gh, neon) failed; ``detail`` keeps its raw output."""

    def __init__(
        self,
        message: str,
        *,
        detail: str = "",
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__("external_command_failed", message, recovery_hint=recovery_hint)
        self.detail = detail


class ConnectorError(LoomFailure):
    """A connector call failed; the original error is chained as ``__cause__``."""

    def __init__(self, connector: str, message: str) -> None:
        super().__init__("connector_failed", f"{connector}: {message}")
        self.connector = connector


class IoFailedError(LoomFailure):
    """I/O operation failed (read, write, lock)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("io_failed", message, recovery_hint=recovery_hint)
