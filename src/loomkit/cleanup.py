"""Loom teardown: snapshot configuration, then destroy.

Cleanup runs in two explicit phases.

``snapshot`` resolves the loom and reads everything a later step depends on
while the worktree still exists. That covers the database decision, which
lives in the worktree's ``.env``. It also covers the dev-server port and the
metadata record. The result is a frozen ``CleanupSnapshot``.

``commit`` performs the destructive steps in a fixed order: stop the dev
server, remove the worktree, delete the branch, delete the database branch,
mark the metadata finished. It only consults the snapshot, never the
(possibly deleted) worktree. Step failures are recorded in the
``CleanupReport`` and never raised; ``snapshot`` raises ``LoomFailure`` when
the cleanup cannot start at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Literal, Sequence

from . import git, log
from .connectors import DatabaseConnector, ProcessConnector
from .metadata import MetadataStore
from .models import LoomMetadata
from .ports import DEFAULT_BASE_PORT
from .resolver import IdentifierResolver, ResourceDescriptor
from .services.base import BaseService
from .services.errors import (
    LoomFailure,
    PortOverflowError,
    UncommittedChangesError,
    UnsafeBranchDeletionError,
    ValidationFailedError,
)
from .worktrees import Worktree, WorktreeRegistry

OperationType = Literal["dev-server", "worktree", "branch", "database", "metadata"]

DRY_RUN_PREFIX = "[DRY RUN]"


@dataclass(frozen=True)
class CleanupOptions:
    delete_branch: bool = False
    keep_database: bool = False
    force: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class CleanupRequest:
    descriptor: ResourceDescriptor
    options: CleanupOptions = field(default_factory=CleanupOptions)


@dataclass(frozen=True)
class OperationResult:
    type: OperationType
    success: bool
    message: str
    deleted: bool | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "type": self.type,
            "success": self.success,
            "message": self.message,
        }
        if self.deleted is not None:
            payload["deleted"] = self.deleted
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class CleanupReport:
    """Ordered per-resource outcomes of one cleanup.

    ``success`` is false only when a step produced a genuine error; skipped
    and not-found steps count as successes.
    """

    identifier: str
    branch_name: str | None = None
    dry_run: bool = False
    operations: list[OperationResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def record(self, operation: OperationResult) -> None:
        self.operations.append(operation)
        if not operation.success:
            self.errors.append(operation.error or operation.message)

    def render_lines(self) -> list[str]:
        """Plain text lines, one per operation, then a summary line."""
        lines = []
        for operation in self.operations:
            marker = "ok" if operation.success else "FAILED"
            line = f"[{marker}] {operation.type}: {operation.message}"
            if operation.error:
                line += f" ({operation.error})"
            lines.append(line)
        if self.success:
            verb = "would be cleaned up" if self.dry_run else "cleaned up"
            lines.append(f"{self.identifier} {verb}")
        else:
            lines.append(f"{self.identifier}: cleanup finished with {len(self.errors)} error(s)")
        return lines

    def to_dict(self) -> dict[str, object]:
        return {
            "identifier": self.identifier,
            "branch_name": self.branch_name,
            "dry_run": self.dry_run,
            "success": self.success,
            "operations": [operation.to_dict() for operation in self.operations],
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class CleanupSnapshot:
    """Everything ``commit`` needs, captured before anything is destroyed.

    ``database_should_cleanup`` is ``None`` when the database step is out of
    play (``keep_database`` or no connector).
    """

    descriptor: ResourceDescriptor
    options: CleanupOptions
    worktree: Worktree
    port: int | None
    database_should_cleanup: bool | None
    database_branch_name: str | None
    metadata: LoomMetadata | None


def _error_text(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class ResourceCleanupOrchestrator(BaseService[CleanupRequest, CleanupReport]):
    """Tear down every resource of a loom.

    Example:
        orchestrator = ResourceCleanupOrchestrator(registry, resolver, database=db)
        report = orchestrator(CleanupRequest(descriptor, CleanupOptions(dry_run=True)))
    """

    def __init__(
        self,
        registry: WorktreeRegistry,
        resolver: IdentifierResolver,
        *,
        database: DatabaseConnector | None = None,
        processes: ProcessConnector | None = None,
        metadata: MetadataStore | None = None,
        base_port: int = DEFAULT_BASE_PORT,
        protected_branches: Sequence[str] = (),
        env_file_name: str = ".env",
    ) -> None:
        self.registry = registry
        self.resolver = resolver
        self.database = database
        self.processes = processes
        self.metadata = metadata
        self.base_port = base_port
        self.protected_branches = frozenset(protected_branches)
        self.env_file_name = env_file_name

    def _run(self, request: CleanupRequest) -> CleanupReport:
        return self.commit(self.snapshot(request))

    # Snapshot phase

    def snapshot(self, request: CleanupRequest) -> CleanupSnapshot:
        """Resolve the loom and freeze every later decision.

        Raises:
            UnresolvedIdentifierError: No live worktree matches the descriptor.
            ValidationFailedError: The descriptor points at the main worktree.
            UncommittedChangesError: The worktree is dirty and neither
                ``force`` nor ``dry_run`` is set.
            UnsafeBranchDeletionError: ``delete_branch`` is set without
                ``force`` and the branch has commits that exist nowhere else.
        """
        descriptor = request.descriptor
        options = request.options
        worktree = self.resolver.find_worktree(descriptor)
        log.debug(f"found worktree: path={worktree.path} branch={worktree.branch}")

        if self.registry.is_main(worktree):
            raise ValidationFailedError(
                f"refusing to clean up the main worktree: {worktree.path}",
                recovery_hint="pass the identifier of a loom, not the main checkout",
            )

        if not options.force and not options.dry_run:
            clean = git.git_is_clean(
                worktree.path, git_path=self.registry.git_path, runner=self.registry.runner
            )
            if clean is False:
                raise UncommittedChangesError(worktree.path)

        metadata = self.metadata.read(worktree.path) if self.metadata else None

        branch = worktree.branch
        if (
            options.delete_branch
            and not options.force
            and not options.dry_run
            and branch
            and branch not in self.protected_branches
        ):
            self._check_branch_safety(worktree, branch, metadata)

        return CleanupSnapshot(
            descriptor=descriptor,
            options=options,
            worktree=worktree,
            port=self._port_for(descriptor, metadata),
            database_should_cleanup=self._database_decision(worktree, options),
            database_branch_name=(metadata.database_branch_name if metadata else None)
            or worktree.branch,
            metadata=metadata,
        )

    def _merge_target(self, metadata: LoomMetadata | None) -> str | None:
        if metadata is not None and metadata.parent_loom is not None:
            return metadata.parent_loom.branch_name
        return git.git_default_branch(
            self.registry.repo_root, git_path=self.registry.git_path, runner=self.registry.runner
        )

    def _check_branch_safety(
        self, worktree: Worktree, branch: str, metadata: LoomMetadata | None
    ) -> None:
        """Refuse a branch deletion that could lose commits.

        Runs before anything is destroyed, so a refused branch never leaves
        the worktree removed and the branch behind.

        Raises:
            UnsafeBranchDeletionError: The remote cannot be reached, the branch
                has unpushed commits, or it has no remote copy and is not
                merged into its merge target.
        """
        status = git.git_remote_branch_status(
            worktree.path, branch, git_path=self.registry.git_path, runner=self.registry.runner
        )
        if status.network_error:
            raise UnsafeBranchDeletionError(
                branch,
                f"cannot verify the remote branch ({status.error})",
                recovery_hint="check your network connection, or retry with --force",
            )
        if status.exists:
            if status.local_ahead:
                raise UnsafeBranchDeletionError(
                    branch,
                    "it has unpushed commits",
                    recovery_hint=f"push them with: git push origin {branch}, or retry with --force",
                )
            return

        target = self._merge_target(metadata)
        merged = (
            git.git_is_ancestor(
                worktree.path,
                branch,
                target,
                git_path=self.registry.git_path,
                runner=self.registry.runner,
            )
            if target
            else None
        )
        if not merged:
            raise UnsafeBranchDeletionError(
                branch,
                f"it is not on the remote and not merged into {target or 'the default branch'}",
                recovery_hint=(
                    f"push it with: git push -u origin {branch}, merge it, or retry with --force"
                ),
            )
        log.debug(f"branch {branch} has no remote copy but is merged into {target}")

    def _port_for(self, descriptor: ResourceDescriptor, metadata: LoomMetadata | None) -> int | None:
        if metadata is not None and metadata.port is not None:
            return metadata.port
        try:
            return descriptor.port(self.base_port)
        except PortOverflowError as exc:
            log.warning(f"{exc}; skipping dev server shutdown")
            return None

    def _database_decision(self, worktree: Worktree, options: CleanupOptions) -> bool | None:
        if options.keep_database or self.database is None:
            return None
        env_path = Path(worktree.path) / self.env_file_name
        try:
            return bool(self.database.should_use_database_branching(env_path))
        except Exception as exc:
            log.warning(
                f"failed to read database config from {env_path}, skipping database cleanup: {exc}"
            )
            return False

    # Commit phase

    def commit(self, snapshot: CleanupSnapshot) -> CleanupReport:
        """Run the destructive steps in order and collect their outcomes."""
        report = CleanupReport(
            identifier=snapshot.descriptor.original_input or snapshot.descriptor.label,
            branch_name=snapshot.worktree.branch,
            dry_run=snapshot.options.dry_run,
        )
        for step in (
            self._stop_dev_server,
            self._remove_worktree,
            self._delete_branch,
            self._delete_database_branch,
            self._finish_metadata,
        ):
            operation = step(snapshot)
            if operation is not None:
                report.record(operation)
                if operation.success:
                    log.debug(f"{operation.type}: {operation.message}")
                else:
                    log.warning(f"{operation.type}: {operation.message}: {operation.error}")
        return report

    def _attempt(
        self,
        operation_type: OperationType,
        action: Callable[[], OperationResult],
        failure_message: str,
    ) -> OperationResult:
        try:
            return action()
        except Exception as exc:
            return OperationResult(
                type=operation_type,
                success=False,
                message=failure_message,
                error=_error_text(exc),
            )

    def _stop_dev_server(self, snapshot: CleanupSnapshot) -> OperationResult | None:
        port = snapshot.port
        if port is None or self.processes is None:
            return None
        if snapshot.options.dry_run:
            return OperationResult(
                type="dev-server",
                success=True,
                message=f"{DRY_RUN_PREFIX} Would check for dev server on port {port}",
            )
        processes = self.processes

        def action() -> OperationResult:
            stopped = processes.stop_dev_server(port)
            message = (
                f"Dev server on port {port} terminated"
                if stopped
                else f"No dev server running on port {port}"
            )
            return OperationResult(type="dev-server", success=True, message=message)

        return self._attempt("dev-server", action, "Failed to terminate dev server")

    def _remove_worktree(self, snapshot: CleanupSnapshot) -> OperationResult:
        path = snapshot.worktree.path
        if snapshot.options.dry_run:
            return OperationResult(
                type="worktree",
                success=True,
                message=f"{DRY_RUN_PREFIX} Would remove worktree: {path}",
            )

        def action() -> OperationResult:
            self.registry.remove(
                path,
                force=snapshot.options.force,
                remove_directory=True,
                remove_branch=False,
            )
            return OperationResult(type="worktree", success=True, message=f"Worktree removed: {path}")

        return self._attempt("worktree", action, "Failed to remove worktree")

    def _delete_branch(self, snapshot: CleanupSnapshot) -> OperationResult | None:
        branch = snapshot.worktree.branch
        if not snapshot.options.delete_branch or not branch:
            return None
        if branch in self.protected_branches:
            return OperationResult(
                type="branch",
                success=False,
                message="Failed to delete branch",
                error=f"cannot delete protected branch: {branch}",
            )
        if snapshot.options.dry_run:
            return OperationResult(
                type="branch",
                success=True,
                message=f"{DRY_RUN_PREFIX} Would delete branch: {branch}",
            )

        def action() -> OperationResult:
            self.registry.delete_branch(branch, force=snapshot.options.force)
            return OperationResult(type="branch", success=True, message=f"Branch deleted: {branch}")

        return self._attempt("branch", action, "Failed to delete branch")

    def _delete_database_branch(self, snapshot: CleanupSnapshot) -> OperationResult | None:
        should_cleanup = snapshot.database_should_cleanup
        database = self.database
        if should_cleanup is None or database is None:
            return None
        branch = snapshot.database_branch_name or ""
        if snapshot.options.dry_run:
            return OperationResult(
                type="database",
                success=True,
                message=f"{DRY_RUN_PREFIX} Would cleanup database branch for: {branch}",
            )
        if not should_cleanup:
            return OperationResult(
                type="database",
                success=True,
                message="Database cleanup skipped (not configured)",
                deleted=False,
            )

        def action() -> OperationResult:
            result = database.delete_branch_if_configured(branch, should_cleanup, False)
            if result.deleted:
                return OperationResult(
                    type="database", success=True, message="Database branch deleted", deleted=True
                )
            if result.not_found:
                message = "No database branch found (skipped)"
                if result.error:
                    message = f"Database cleanup skipped ({result.error})"
                return OperationResult(
                    type="database", success=True, message=message, deleted=False
                )
            if not result.success:
                return OperationResult(
                    type="database",
                    success=False,
                    message="Database cleanup failed",
                    error=result.error or "unknown error",
                    deleted=False,
                )
            return OperationResult(
                type="database",
                success=True,
                message="Database cleanup skipped",
                deleted=False,
            )

        return self._attempt("database", action, "Database cleanup failed")

    def _finish_metadata(self, snapshot: CleanupSnapshot) -> OperationResult | None:
        store = self.metadata
        if store is None:
            return None
        path = snapshot.worktree.path
        if snapshot.options.dry_run:
            return OperationResult(
                type="metadata",
                success=True,
                message=f"{DRY_RUN_PREFIX} Would mark metadata finished for: {path}",
            )

        def action() -> OperationResult:
            finished = store.mark_finished(path)
            message = "Metadata marked finished" if finished else "No metadata record (skipped)"
            return OperationResult(type="metadata", success=True, message=message)

        return self._attempt("metadata", action, "Metadata update failed")

    def cleanup_many(
        self, raw_identifiers: Iterable[str], options: CleanupOptions
    ) -> list[CleanupReport]:
        """Clean up several looms; a failure on one never stops the rest."""
        reports: list[CleanupReport] = []
        for raw in raw_identifiers:
            try:
                descriptor = self.resolver.resolve(raw)
                reports.append(self(CleanupRequest(descriptor=descriptor, options=options)))
            except LoomFailure as exc:
                log.error(f"{raw}: {exc}")
                reports.append(
                    CleanupReport(identifier=raw, dry_run=options.dry_run, errors=[str(exc)])
                )
        return reports
