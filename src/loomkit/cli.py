"""Command-line entry point for loomkit."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Annotated

import typer

from . import __version__
from . import log as loomkit_log
from .commands.cleanup import cleanup_looms as cleanup_cmd
from .commands.deps import show_dependencies as deps_cmd
from .commands.list_looms import list_looms as list_cmd
from .commands.port import show_port as port_cmd
from .commands.resolve import resolve_identifier as resolve_cmd

app = typer.Typer(
    help="Resolve, inspect and tear down looms (isolated per-issue worktrees).",
    add_completion=False,
    no_args_is_help=True,
)


def _validate_log_level(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in loomkit_log.LEVEL_NAMES and normalized != "warn":
        expected = ", ".join(loomkit_log.LEVEL_NAMES)
        raise typer.BadParameter(f"expected one of: {expected}")
    return normalized


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"loomkit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Log verbosity: trace, debug, info, success, warning or error.",
            callback=_validate_log_level,
        ),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="Disable colorized output.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version", callback=_version_callback, is_eager=True, help="Show version."
        ),
    ] = False,
) -> None:
    if log_level is not None:
        loomkit_log.set_level(log_level)
    if no_color:
        loomkit_log.set_no_color(True)


@app.command("resolve")
def resolve(
    identifier: Annotated[
        str | None,
        typer.Argument(help="Issue number, PR number or branch; defaults to the current loom."),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """Show which loom an identifier refers to."""
    resolve_cmd(SimpleNamespace(identifier=identifier, json=json_output))


@app.command("cleanup")
def cleanup(
    identifiers: Annotated[
        list[str] | None,
        typer.Argument(help="Looms to clean up; defaults to the current loom."),
    ] = None,
    delete_branch: Annotated[
        bool, typer.Option("--delete-branch", help="Also delete the git branch.")
    ] = False,
    keep_database: Annotated[
        bool, typer.Option("--keep-database", help="Leave the database branch alone.")
    ] = False,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Remove even with uncommitted changes.")
    ] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report what would be removed.")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON reports.")] = False,
) -> None:
    """Tear down looms: dev server, worktree, branch, database branch, metadata."""
    cleanup_cmd(
        SimpleNamespace(
            identifiers=identifiers or [],
            delete_branch=delete_branch,
            keep_database=keep_database,
            force=force,
            dry_run=dry_run,
            yes=yes,
            json=json_output,
        )
    )


@app.command("list")
def list_looms(
    finished: Annotated[
        bool, typer.Option("--finished", help="Show finished looms instead.")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """List looms recorded in the metadata directory."""
    list_cmd(SimpleNamespace(finished=finished, json=json_output))


@app.command("port")
def port(
    identifier: Annotated[
        str | None,
        typer.Argument(help="Issue number, PR number or branch; defaults to the current loom."),
    ] = None,
) -> None:
    """Print the dev-server port for a loom."""
    port_cmd(SimpleNamespace(identifier=identifier))


@app.command("deps")
def deps(
    ids: Annotated[list[str], typer.Argument(help="Child issue ids.")],
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """Show which of the given issues block each other."""
    deps_cmd(SimpleNamespace(ids=ids, json=json_output))
