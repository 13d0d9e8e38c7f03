"""Pydantic models for loom metadata and loomkit configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

METADATA_SCHEMA_VERSION = 1

LOOM_TYPE_VALUES = ("issue", "pr", "branch", "epic")
LoomType = Literal["issue", "pr", "branch", "epic"]

LOOM_STATUS_VALUES = ("active", "finished")
LoomStatus = Literal["active", "finished"]

ISSUE_TRACKER_VALUES = ("none", "github")
IssueTrackerKind = Literal["none", "github"]

DATABASE_PROVIDER_VALUES = ("none", "neon")
DatabaseProviderKind = Literal["none", "neon"]


def _dedupe_numbers(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return value
    seen: list[str] = []
    for item in value:
        normalized = str(item).strip().lstrip("#")
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen


class ParentLoom(BaseModel):
    """Back-reference from a child loom to the loom it was branched from.

    Example:
        >>> ParentLoom(type="epic", identifier="12", branchName="feat/issue-12")
        ParentLoom(...)
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: LoomType
    identifier: str
    branch_name: str = Field(alias="branchName")
    worktree_path: str | None = Field(default=None, alias="worktreePath")

    @field_validator("identifier", mode="before")
    @classmethod
    def stringify_identifier(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value


class LoomMetadata(BaseModel):
    """Sidecar record persisted for each loom.

    Keys are written with their on-disk spelling (``branchName``,
    ``issue_numbers``, ...). Issue and PR numbers keep set semantics: they are
    stored as strings, deduplicated, first-seen order.

    Example:
        >>> meta = LoomMetadata(description="x", issue_numbers=[7, "7", "#8"])
        >>> meta.issue_numbers
        ['7', '8']
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    description: str = ""
    created_at: str | None = None
    version: int = METADATA_SCHEMA_VERSION
    branch_name: str | None = Field(default=None, alias="branchName")
    worktree_path: str | None = Field(default=None, alias="worktreePath")
    issue_type: LoomType | None = Field(default=None, alias="issueType")
    issue_numbers: list[str] = Field(default_factory=list)
    pr_numbers: list[str] = Field(default_factory=list)
    issue_tracker: str | None = Field(default=None, alias="issueTracker")
    parent_loom: ParentLoom | None = Field(default=None, alias="parentLoom")
    database_branch_name: str | None = Field(default=None, alias="databaseBranchName")
    color_hex: str | None = Field(default=None, alias="colorHex")
    capabilities: list[str] = Field(default_factory=list)
    session_id: str | None = Field(default=None, alias="sessionId")
    port: int | None = None
    status: LoomStatus = "active"
    finished_at: str | None = Field(default=None, alias="finishedAt")
    issue_urls: dict[str, str] = Field(default_factory=dict, alias="issueUrls")
    pr_urls: dict[str, str] = Field(default_factory=dict, alias="prUrls")

    @field_validator("issue_numbers", "pr_numbers", mode="before")
    @classmethod
    def dedupe_numbers(cls, value: object) -> object:
        return _dedupe_numbers(value)

    @field_validator("capabilities", mode="before")
    @classmethod
    def normalize_capabilities(cls, value: object) -> object:
        if value is None:
            return []
        return value

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        if value is None:
            return "active"
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_finished(self) -> bool:
        return self.status == "finished"

    def to_payload(self) -> dict:
        """Return the JSON-ready dict with on-disk key names."""
        return self.model_dump(mode="json", by_alias=True)


class LoomkitConfig(BaseModel):
    """User settings, built once at process start and passed explicitly.

    Attributes:
        base_port: Port offset for dev servers (issue ``n`` gets ``base_port + n``).
        metadata_dir: Override for the metadata directory.
        git_path: Git executable path (default ``git``).
        issue_tracker: Issue tracker provider (``none`` or ``github``).
        github_repo: ``owner/name`` passed to ``gh`` when set.
        database_provider: Database branching provider (``none`` or ``neon``).
        neon_project_id: Neon project id passed to the ``neon`` CLI.
        protected_branches: Branches cleanup never deletes.
        env_file_name: Env file checked for database configuration.

    Example:
        >>> LoomkitConfig(base_port=4000, issue_tracker=" GitHub ")
        LoomkitConfig(...)
    """

    model_config = ConfigDict(extra="ignore")

    base_port: int = Field(default=3000, ge=1, le=65535)
    metadata_dir: str | None = None
    git_path: str = "git"
    issue_tracker: IssueTrackerKind = "none"
    github_repo: str | None = None
    database_provider: DatabaseProviderKind = "none"
    neon_project_id: str | None = None
    protected_branches: list[str] = Field(default_factory=lambda: ["main", "master", "develop"])
    env_file_name: str = ".env"

    @field_validator("git_path", mode="before")
    @classmethod
    def normalize_git_path(cls, value: object) -> object:
        if value is None:
            return "git"
        if isinstance(value, str):
            normalized = value.strip()
            return normalized or "git"
        return value

    @field_validator("issue_tracker", "database_provider", mode="before")
    @classmethod
    def normalize_provider(cls, value: object) -> object:
        if value is None:
            return "none"
        if isinstance(value, str):
            normalized = value.strip().lower()
            return normalized or "none"
        return value

    @field_validator("metadata_dir", "github_repo", "neon_project_id", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip()
            return normalized or None
        return value

    @field_validator("protected_branches", mode="before")
    @classmethod
    def split_protected_branches(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value
