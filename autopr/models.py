"""Data models for autopr."""

import fnmatch
import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PRType(str, Enum):
    """Pull request types a branch pattern can map to."""

    FEAT = "feat"
    FIX = "fix"
    REFACTOR = "refactor"
    DOCS = "docs"
    CHORE = "chore"
    TEST = "test"
    RELEASE = "release"


class RotationStrategy(str, Enum):
    """How one member of a reviewer group is chosen."""

    ROUND_ROBIN = "round-robin"
    RANDOM = "random"
    LEAST_BUSY = "least-busy"


class PullRequestStatus(str, Enum):
    """Mergeability classification of a pull request."""

    UNKNOWN = "UNKNOWN"
    MERGEABLE = "MERGEABLE"
    CONFLICTING = "CONFLICTING"
    CHECKING = "CHECKING"


class Language(str, Enum):
    """Supported message languages."""

    EN = "en"
    KO = "ko"


class MergeMethod(str, Enum):
    """GitHub merge methods."""

    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


class CollaboratorPermission(str, Enum):
    """Repository permission levels for invitations."""

    PULL = "pull"
    PUSH = "push"
    ADMIN = "admin"


class InvitationState(str, Enum):
    """Derived state of a repository invitation."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class BranchPattern(BaseModel):
    """Glob rule mapping a branch naming convention to a PR policy."""

    model_config = ConfigDict(extra="forbid")

    pattern: str = Field(description="Glob matched against the branch name")
    type: PRType = Field(description="PR type")
    draft: bool = Field(default=True, description="Create the PR as draft")
    labels: list[str] = Field(default_factory=list, description="Labels to apply")
    template: str | None = Field(default=None, description="PR body template name")
    auto_assign_reviewers: bool = Field(
        default=True, description="Add the project's default reviewers"
    )
    reviewers: list[str] = Field(default_factory=list, description="Explicit reviewers")
    reviewer_groups: list[str] = Field(
        default_factory=list, description="Reviewer groups to draw one member from"
    )

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Validate the glob is non-empty and compiles."""
        v = v.strip()
        if not v:
            raise ValueError("Branch pattern cannot be empty")
        try:
            re.compile(fnmatch.translate(v))
        except re.error as e:
            raise ValueError(f"Invalid branch pattern '{v}': {e}") from None
        return v


class ReviewerGroup(BaseModel):
    """Named set of users with a rotation policy."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(description="Unique group name")
    members: list[str] = Field(description="GitHub logins")
    rotation_strategy: RotationStrategy = Field(
        default=RotationStrategy.ROUND_ROBIN, description="Rotation strategy"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reviewer group name cannot be empty")
        return v

    @field_validator("members")
    @classmethod
    def validate_members(cls, v: list[str]) -> list[str]:
        """Strip names, drop blanks and duplicates, and require at least one."""
        members: list[str] = []
        for member in v:
            member = member.strip()
            if member and member not in members:
                members.append(member)
        if not members:
            raise ValueError("Reviewer group must have at least one member")
        return members


class FilePattern(BaseModel):
    """Reviewers responsible for files matching a glob."""

    model_config = ConfigDict(extra="forbid")

    pattern: str
    reviewers: list[str] = Field(default_factory=list)


class AIConfig(BaseModel):
    """AI backend settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=False, description="Use the AI backend")
    base_url: str | None = Field(default=None, description="AI backend base URL")
    api_key: str | None = Field(default=None, description="AI backend API key")
    model: str | None = Field(default=None, description="Model name passed to the backend")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=2, description="Retries for failed requests")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("AI timeout must be positive")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Max retries cannot be negative")
        if v > 10:
            raise ValueError("Max retries cannot exceed 10")
        return v

    @property
    def is_usable(self) -> bool:
        """Whether requests can be sent at all."""
        return self.enabled and bool(self.base_url)


class GlobalConfig(BaseModel):
    """Per-user settings stored in ~/.autopr/config.json."""

    model_config = ConfigDict(extra="forbid")

    language: Language = Field(default=Language.EN, description="Message language")
    github_token: str | None = Field(default=None, description="GitHub access token")
    github_client_id: str | None = Field(
        default=None, description="OAuth app client ID used by `autopr auth login`"
    )
    ai: AIConfig = Field(default_factory=AIConfig, description="AI backend settings")


def _default_branch_patterns() -> list[BranchPattern]:
    defaults = [
        ("feat/*", PRType.FEAT, True, ["feature"], "feature", True),
        ("fix/*", PRType.FIX, True, ["bug"], "bugfix", True),
        ("refactor/*", PRType.REFACTOR, True, ["refactor"], "refactor", True),
        ("docs/*", PRType.DOCS, False, ["documentation"], "docs", False),
        ("chore/*", PRType.CHORE, False, ["chore"], "chore", False),
        ("test/*", PRType.TEST, True, ["test"], "test", True),
        ("release/*", PRType.RELEASE, False, ["release"], None, True),
    ]
    return [
        BranchPattern(
            pattern=pattern,
            type=pr_type,
            draft=draft,
            labels=labels,
            template=template,
            auto_assign_reviewers=auto_assign,
        )
        for pattern, pr_type, draft, labels, template, auto_assign in defaults
    ]


class ProjectConfig(BaseModel):
    """Repository settings stored in <git root>/.autopr.json."""

    model_config = ConfigDict(extra="forbid")

    owner: str | None = Field(default=None, description="Repository owner override")
    repo: str | None = Field(default=None, description="Repository name override")
    default_branch: str = Field(default="main", description="Production branch")
    development_branch: str = Field(default="dev", description="Integration branch")
    release_pr_title: str = Field(default="Release: {development} to {production}")
    release_pr_body: str = Field(
        default="Merge {development} branch into {production} for release"
    )
    default_reviewers: list[str] = Field(default_factory=list)
    default_labels: list[str] = Field(default_factory=list)
    auto_pr_enabled: bool = Field(default=True)
    reviewer_groups: list[ReviewerGroup] = Field(default_factory=list)
    file_patterns: list[FilePattern] = Field(default_factory=list)
    branch_patterns: list[BranchPattern] = Field(default_factory=_default_branch_patterns)

    @model_validator(mode="after")
    def validate_unique_group_names(self) -> "ProjectConfig":
        """Reviewer group names are unique within a project."""
        seen: set[str] = set()
        for group in self.reviewer_groups:
            if group.name in seen:
                raise ValueError(f"Duplicate reviewer group name: {group.name}")
            seen.add(group.name)
        return self

    def get_reviewer_group(self, name: str) -> "ReviewerGroup | None":
        for group in self.reviewer_groups:
            if group.name == name:
                return group
        return None


class Config(GlobalConfig, ProjectConfig):
    """Global and project configuration merged into one validated view."""

    model_config = ConfigDict(extra="forbid")


GLOBAL_FIELDS = frozenset(GlobalConfig.model_fields)
PROJECT_FIELDS = frozenset(ProjectConfig.model_fields)


# ---------------------------------------------------------------------------
# Repository and pull request models
# ---------------------------------------------------------------------------


class RepoInfo(BaseModel):
    """Repository coordinates and the checked-out branch."""

    owner: str
    repo: str
    current_branch: str = ""

    @property
    def full_name(self) -> str:
        """Get full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"


class PullRequest(BaseModel):
    """Pull request as seen by the gateway."""

    number: int
    title: str
    body: str | None = None
    state: str = "open"
    draft: bool = False
    author: str | None = None
    head_ref: str
    head_sha: str = ""
    base_ref: str
    url: str | None = None
    mergeable: bool | None = None
    mergeable_state: str | None = None
    merged: bool = False
    requested_reviewers: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "open"


class Collaborator(BaseModel):
    """User with access to the repository."""

    login: str
    permissions: dict[str, bool] = Field(default_factory=dict)

    @property
    def role(self) -> CollaboratorPermission:
        """Highest permission held."""
        if self.permissions.get("admin"):
            return CollaboratorPermission.ADMIN
        if self.permissions.get("push"):
            return CollaboratorPermission.PUSH
        return CollaboratorPermission.PULL


class InvitationStatus(BaseModel):
    """Invitation with its derived state."""

    username: str
    status: InvitationState
    invited_at: datetime
    expires_at: datetime


class ChangedFile(BaseModel):
    """File changed by a pull request."""

    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None


class ConflictBlock(BaseModel):
    """One ``<<<<<<<`` ... ``>>>>>>>`` region in a file."""

    start_line: int
    middle_line: int | None = None
    end_line: int
    head_content: str = ""
    base_content: str = ""


class ConflictFile(BaseModel):
    """File reported as conflicting."""

    filename: str
    status: str = "conflicted"
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    conflict_blocks: list[ConflictBlock] = Field(default_factory=list)


class ConflictReport(BaseModel):
    """Conflicting files of a pull request."""

    conflicts: list[ConflictFile] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


class Mergeability(BaseModel):
    """Raw mergeability answer from GitHub."""

    mergeable: bool | None
    mergeable_state: str | None = None

    @property
    def has_conflicts(self) -> bool:
        return self.mergeable_state == "dirty"


class ReviewerSelection(BaseModel):
    """Reviewers to request and the names dropped as non-collaborators."""

    reviewers: list[str] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Commit report models
# ---------------------------------------------------------------------------


class CommitFile(BaseModel):
    filename: str
    additions: int = 0
    deletions: int = 0


class CommitInfo(BaseModel):
    """Commit with its file-level stats."""

    sha: str
    message: str
    date: datetime
    files: list[CommitFile] = Field(default_factory=list)


class CommitStats(BaseModel):
    """Aggregated statistics for a commit report."""

    total_commits: int = 0
    files_changed: int = 0
    additions: int = 0
    deletions: int = 0
    branches: dict[str, int] = Field(default_factory=dict)
    hourly_commits: dict[str, int] = Field(default_factory=dict)
    file_types: dict[str, int] = Field(default_factory=dict)

    def add_commit(self, commit: CommitInfo, branches: list[str] | None = None) -> None:
        """Fold one commit into the totals."""
        self.total_commits += 1
        hour = f"{commit.date.hour:02d}"
        self.hourly_commits[hour] = self.hourly_commits.get(hour, 0) + 1

        for branch in branches or []:
            self.branches[branch] = self.branches.get(branch, 0) + 1

        self.files_changed += len(commit.files)
        for file in commit.files:
            self.additions += file.additions
            self.deletions += file.deletions
            ext = file.filename.rsplit(".", 1)[-1] if "." in file.filename else "unknown"
            self.file_types[ext] = self.file_types.get(ext, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
