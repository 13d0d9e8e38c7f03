import re
from types import SimpleNamespace
from unittest.mock import patch

from typer.testing import CliRunner

import loomkit.cli as cli

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def _strip_ansi(output: str) -> str:
    return ANSI_ESCAPE_RE.sub("", output)


def test_global_log_level_flag_sets_runtime_level() -> None:
    runner = CliRunner()
    with (
        patch("loomkit.cli.resolve_cmd", lambda _args: None),
        patch("loomkit.cli.loomkit_log.set_level") as mock_set_level,
    ):
        result = runner.invoke(cli.app, ["--log-level", "DEBUG", "resolve", "42"])

    assert result.exit_code == 0
    mock_set_level.assert_called_once_with("debug")


def test_global_log_level_rejects_unknown_values() -> None:
    runner = CliRunner()
    result = runner.invoke(cli.app, ["--log-level", "loud", "resolve"], color=False)
    clean_output = _strip_ansi(result.output)

    assert result.exit_code != 0
    assert "--log-level" in clean_output
    assert "expected one of" in clean_output.lower()


def test_no_color_flag_disables_colorized_output() -> None:
    runner = CliRunner()
    with (
        patch("loomkit.cli.resolve_cmd", lambda _args: None),
        patch("loomkit.cli.loomkit_log.set_no_color") as mock_set_no_color,
    ):
        result = runner.invoke(cli.app, ["--no-color", "resolve"])

    assert result.exit_code == 0
    mock_set_no_color.assert_called_once_with(True)


def test_cleanup_passes_args_to_command() -> None:
    captured: dict[str, object] = {}

    def fake_cleanup(args: SimpleNamespace) -> None:
        captured.update(vars(args))

    runner = CliRunner()
    with patch("loomkit.cli.cleanup_cmd", fake_cleanup):
        result = runner.invoke(
            cli.app,
            ["cleanup", "42", "feature/login", "--delete-branch", "--dry-run", "--yes", "--json"],
        )

    assert result.exit_code == 0
    assert captured == {
        "identifiers": ["42", "feature/login"],
        "delete_branch": True,
        "keep_database": False,
        "force": False,
        "dry_run": True,
        "yes": True,
        "json": True,
    }


def test_cleanup_without_identifiers_targets_current_loom() -> None:
    captured: dict[str, object] = {}

    def fake_cleanup(args: SimpleNamespace) -> None:
        captured["identifiers"] = args.identifiers

    runner = CliRunner()
    with patch("loomkit.cli.cleanup_cmd", fake_cleanup):
        result = runner.invoke(cli.app, ["cleanup", "-f", "-y"])

    assert result.exit_code == 0
    assert captured == {"identifiers": []}


def test_deps_requires_ids() -> None:
    runner = CliRunner()
    result = runner.invoke(cli.app, ["deps"])

    assert result.exit_code != 0


def test_version_flag() -> None:
    runner = CliRunner()
    result = runner.invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert result.output.startswith("loomkit ")
