"""Subprocess helpers for running external commands."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .services.errors import ExternalCommandFailedError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout_seconds: float | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Stripped stderr, falling back to stdout (git reports on either)."""
        return (self.stderr or self.stdout or "").strip()


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess.

    Returns ``None`` when the executable is missing and a result with exit
    code 124 when the timeout expires.
    """

    def run(self, request: CommandRequest) -> CommandResult | None:
        run_kwargs: dict[str, object] = {
            "cwd": request.cwd,
            "env": request.env,
            "check": False,
            "capture_output": True,
            "text": True,
        }
        if request.timeout_seconds is not None:
            run_kwargs["timeout"] = request.timeout_seconds
        try:
            completed = subprocess.run(list(request.argv), **run_kwargs)
        except FileNotFoundError:
            return None
        except subprocess.TimeoutExpired as exc:
            stdout = exc.stdout if isinstance(exc.stdout, str) else ""
            stderr = exc.stderr if isinstance(exc.stderr, str) else ""
            return CommandResult(
                argv=request.argv,
                returncode=124,
                stdout=stdout,
                stderr=stderr,
                timed_out=True,
            )

        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=completed.stdout if isinstance(completed.stdout, str) else "",
            stderr=completed.stderr if isinstance(completed.stderr, str) else "",
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def missing_command_detail(argv: tuple[str, ...] | list[str]) -> str:
    """Describe a missing executable.

    Example:
        >>> missing_command_detail(("git", "status"))
        'missing required command: git'
    """
    if not argv:
        return "missing required command"
    return f"missing required command: {argv[0]}"


def command_failure_detail(result: CommandResult) -> str:
    """Describe a failed command, keeping the tool's own output.

    Example:
        >>> command_failure_detail(CommandResult(("git", "x"), 1, "", "fatal: nope\\n"))
        'command failed: git x\\nfatal: nope'
    """
    command_text = " ".join(result.argv)
    if result.output:
        return f"command failed: {command_text}\n{result.output}"
    return f"command failed: {command_text}"


def run_checked(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult:
    """Run a command and raise ``ExternalCommandFailedError`` unless it succeeds."""
    result = run_with_runner(request, runner=runner)
    if result is None:
        raise ExternalCommandFailedError(missing_command_detail(request.argv))
    if not result.ok:
        raise ExternalCommandFailedError(
            command_failure_detail(result), detail=result.output
        )
    return result


def parse_json_payload(result: CommandResult, *, context: str | None = None) -> object:
    """Decode command stdout as JSON; empty output is an error."""
    context_suffix = f" ({context})" if context else ""
    raw = (result.stdout or "").strip()
    if not raw:
        raise ExternalCommandFailedError(
            f"failed to parse command output{context_suffix}: empty output"
        )
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExternalCommandFailedError(
            f"failed to parse command output{context_suffix}: {exc}", detail=raw
        ) from exc


def parse_json_model(
    result: CommandResult, *, model_type: type[ModelT], context: str | None = None
) -> ModelT:
    """Parse command stdout JSON into a validated Pydantic model."""
    payload = parse_json_payload(result, context=context)
    try:
        return model_type.model_validate(payload)
    except ValidationError as exc:
        context_suffix = f" ({context})" if context else ""
        raise ExternalCommandFailedError(
            f"failed to validate command output{context_suffix}: {exc}"
        ) from exc
