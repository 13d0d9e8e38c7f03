from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from loomkit import database
from loomkit.connectors import DatabaseDeletionResult
from loomkit.services.errors import ExternalCommandFailedError
from tests.loomkit.helpers import FakeRunner

BRANCHES = json.dumps(
    [
        {"id": "br-1", "name": "main"},
        {"id": "br-2", "name": "feat_issue-7__login"},
        {"id": "br-3", "name": "preview/feature/x"},
    ]
)


@dataclass
class StubProvider:
    configured: bool = True
    cli_available: bool = True
    authenticated: bool | Exception = True
    deletion: DatabaseDeletionResult | Exception = field(
        default_factory=lambda: DatabaseDeletionResult(success=True, deleted=True)
    )
    deleted: list[tuple[str, bool]] = field(default_factory=list)

    def is_configured(self) -> bool:
        return self.configured

    def is_cli_available(self) -> bool:
        return self.cli_available

    def is_authenticated(self) -> bool:
        if isinstance(self.authenticated, Exception):
            raise self.authenticated
        return self.authenticated

    def delete_branch(self, branch_name: str, is_preview: bool = False) -> DatabaseDeletionResult:
        self.deleted.append((branch_name, is_preview))
        if isinstance(self.deletion, Exception):
            raise self.deletion
        return self.deletion


def _neon(runner: FakeRunner, project_id: str | None = "proj-1") -> database.NeonCliProvider:
    return database.NeonCliProvider(project_id=project_id, runner=runner)


def test_should_use_database_branching_needs_provider_and_env_url() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        env_path = Path(tmp) / ".env"
        manager = database.DatabaseBranchManager(StubProvider())

        assert not manager.should_use_database_branching(env_path)
        env_path.write_text("DATABASE_URL=postgres://x\n", encoding="utf-8")
        assert manager.should_use_database_branching(env_path)
        assert not database.DatabaseBranchManager(
            StubProvider(configured=False)
        ).should_use_database_branching(env_path)


def test_delete_skips_when_cleanup_not_requested() -> None:
    provider = StubProvider()

    result = database.DatabaseBranchManager(provider).delete_branch_if_configured("b", False)

    assert result.success and result.not_found
    assert provider.deleted == []


def test_delete_reports_missing_cli_as_not_found() -> None:
    provider = StubProvider(cli_available=False)

    result = database.DatabaseBranchManager(provider).delete_branch_if_configured("b", True)

    assert not result.success
    assert result.not_found
    assert result.error == "CLI tool not available"
    assert provider.deleted == []


def test_delete_reports_unauthenticated_provider() -> None:
    result = database.DatabaseBranchManager(
        StubProvider(authenticated=False)
    ).delete_branch_if_configured("b", True)

    assert not result.success
    assert result.error == "not authenticated with database provider"


def test_delete_never_raises_for_provider_errors() -> None:
    provider = StubProvider(deletion=RuntimeError("api exploded"))

    result = database.DatabaseBranchManager(provider).delete_branch_if_configured("b", True, True)

    assert not result.success
    assert result.error == "api exploded"
    assert provider.deleted == [("b", True)]


def test_auth_check_errors_become_results() -> None:
    result = database.DatabaseBranchManager(
        StubProvider(authenticated=RuntimeError("timeout"))
    ).delete_branch_if_configured("b", True)

    assert not result.success
    assert result.error is not None and "timeout" in result.error


def test_neon_configuration_requires_a_valid_project_id() -> None:
    assert _neon(FakeRunner()).is_configured()
    assert not _neon(FakeRunner(), project_id=None).is_configured()
    assert not _neon(FakeRunner(), project_id="bad id!").is_configured()


def test_neon_authentication_distinguishes_auth_errors() -> None:
    unauthenticated = FakeRunner().on("neon", "me", returncode=1, stderr="Error: not authenticated")
    broken = FakeRunner().on("neon", "me", returncode=1, stderr="network unreachable")

    assert _neon(FakeRunner()).is_authenticated()
    assert not _neon(unauthenticated).is_authenticated()
    with pytest.raises(ExternalCommandFailedError):
        _neon(broken).is_authenticated()


def test_neon_delete_sanitizes_branch_name() -> None:
    runner = FakeRunner().on("neon", "branches", "list", stdout=BRANCHES)

    result = _neon(runner).delete_branch("feat/issue-7__login")

    assert result.deleted
    assert result.branch_name == "feat_issue-7__login"
    assert runner.calls[-1] == (
        "neon",
        "branches",
        "delete",
        "feat_issue-7__login",
        "--project-id",
        "proj-1",
    )


def test_neon_delete_missing_branch_is_not_found() -> None:
    runner = FakeRunner().on("neon", "branches", "list", stdout=BRANCHES)

    result = _neon(runner).delete_branch("feature/unknown")

    assert result.success
    assert result.not_found
    assert not result.deleted
    assert all(call[:3] != ("neon", "branches", "delete") for call in runner.calls)


def test_neon_preview_branches_are_left_alone() -> None:
    runner = FakeRunner().on("neon", "branches", "list", stdout=BRANCHES)

    result = _neon(runner).delete_branch("feature/x", is_preview=True)

    assert result.success
    assert not result.deleted
    assert result.branch_name == "preview/feature/x"
    assert all(call[:3] != ("neon", "branches", "delete") for call in runner.calls)


def test_neon_list_rejects_non_list_payload() -> None:
    runner = FakeRunner().on("neon", "branches", "list", stdout='{"branches": []}')

    with pytest.raises(ExternalCommandFailedError):
        _neon(runner).list_branches()


def test_disabled_database_never_cleans_up() -> None:
    disabled = database.DisabledDatabase()

    assert not disabled.should_use_database_branching(Path("/w/.env"))
    assert disabled.delete_branch_if_configured("b", True).not_found
