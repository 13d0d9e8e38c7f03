"""Implementation for the ``loomkit cleanup`` command."""

from __future__ import annotations

import json

from .. import log
from ..cleanup import CleanupOptions, CleanupReport, CleanupRequest, ResourceCleanupOrchestrator
from ..connector_registry import database_for, processes_for
from ..io import confirm, die, say
from ..services.errors import LoomFailure
from .context import RepoContext, current_repo, fail
from .resolve import descriptor_for


def build_orchestrator(context: RepoContext) -> ResourceCleanupOrchestrator:
    settings = context.settings
    return ResourceCleanupOrchestrator(
        context.registry,
        context.resolver,
        database=database_for(settings),
        processes=processes_for(settings),
        metadata=context.metadata,
        base_port=settings.base_port,
        protected_branches=settings.protected_branches,
        env_file_name=settings.env_file_name,
    )


def _print_report(report: CleanupReport) -> None:
    for operation in report.operations:
        if operation.success:
            log.success(f"{operation.type}: {operation.message}")
        else:
            log.error(f"{operation.type}: {operation.message}: {operation.error}")
    for line in report.render_lines()[len(report.operations) :]:
        say(line)


def cleanup_looms(args: object) -> None:
    """Tear down one or more looms.

    With no identifiers the loom owning the working directory is cleaned up.

    Args:
        args: CLI argument object with ``identifiers``, ``delete_branch``,
            ``keep_database``, ``force``, ``dry_run``, ``yes`` and ``json``.

    Example:
        $ loomkit cleanup 42 feature/login --delete-branch
    """
    options = CleanupOptions(
        delete_branch=bool(getattr(args, "delete_branch", False)),
        keep_database=bool(getattr(args, "keep_database", False)),
        force=bool(getattr(args, "force", False)),
        dry_run=bool(getattr(args, "dry_run", False)),
    )
    identifiers = [value for value in getattr(args, "identifiers", None) or [] if value.strip()]
    context = current_repo()
    orchestrator = build_orchestrator(context)

    targets = ", ".join(identifiers) if identifiers else "the current loom"
    if not options.dry_run and not getattr(args, "yes", False):
        if not confirm(f"Clean up {targets}?", default=False):
            say("Aborted.")
            return

    if identifiers:
        reports = orchestrator.cleanup_many(identifiers, options)
    else:
        descriptor = descriptor_for(context, None)
        try:
            reports = [orchestrator(CleanupRequest(descriptor=descriptor, options=options))]
        except LoomFailure as exc:
            fail(exc)

    if getattr(args, "json", False):
        say(json.dumps([report.to_dict() for report in reports], indent=2))
    else:
        for report in reports:
            _print_report(report)

    failed = [report.identifier for report in reports if not report.success]
    if failed:
        die(f"cleanup failed for: {', '.join(failed)}")
