# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit data models.

This module defines Pydantic models for the Gerrit REST entities the
client consumes and produces.

These models provide:
- Schema validation of every decoded response (unknown fields ignored)
- Factory methods that turn validation failures into GerritParseError
- Posting shapes for reviews and inline comments
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Final, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ger.gerrit.client import GerritParseError

CHANGE_REF_PATTERN: Final[re.Pattern[str]] = re.compile(r"^refs/changes/\d{2}/\d+/\d+$")

_ModelT = TypeVar("_ModelT", bound="GerritModel")


def _describe(exc: ValidationError) -> str:
    """Human location and message of the first validation error."""
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "(root)"
    return f"{location}: {error.get('msg', 'invalid value')}"


class GerritModel(BaseModel):
    """Base model: wire aliases accepted, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_api_response(cls: type[_ModelT], data: Any, endpoint: str = "") -> _ModelT:
        """
        Validate a decoded response.

        Args:
            data: The decoded JSON value.
            endpoint: The endpoint the data came from, for error reports.

        Raises:
            GerritParseError: If the data does not match the schema.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise GerritParseError(endpoint or cls.__name__, _describe(exc)) from exc

    @classmethod
    def list_from_api_response(
        cls: type[_ModelT], data: Any, endpoint: str = ""
    ) -> list[_ModelT]:
        """Validate a decoded JSON array of this model."""
        if not isinstance(data, list):
            raise GerritParseError(endpoint or cls.__name__, "expected a JSON array")
        return [
            cls.from_api_response(item, f"{endpoint}[{index}]")
            for index, item in enumerate(data)
        ]


class ChangeStatus(str, Enum):
    """Gerrit change status values."""

    NEW = "NEW"
    MERGED = "MERGED"
    ABANDONED = "ABANDONED"


class ReviewerState(str, Enum):
    """Reviewer states accepted by the reviewers endpoint."""

    REVIEWER = "REVIEWER"
    CC = "CC"


class NotifyLevel(str, Enum):
    """Email notification levels."""

    NONE = "NONE"
    OWNER = "OWNER"
    OWNER_REVIEWERS = "OWNER_REVIEWERS"
    ALL = "ALL"


class CommentSide(str, Enum):
    """Side of the diff an inline comment is attached to."""

    REVISION = "REVISION"
    PARENT = "PARENT"


class AccountInfo(GerritModel):
    """A Gerrit account as embedded in other entities."""

    account_id: int | None = Field(None, alias="_account_id")
    name: str | None = None
    email: str | None = None
    username: str | None = None

    @property
    def display_name(self) -> str:
        """Best human-readable name for the account."""
        return self.name or self.email or self.username or (
            str(self.account_id) if self.account_id is not None else "Unknown"
        )


class ApprovalInfo(AccountInfo):
    """A single vote on a label."""

    value: int | None = None
    date: str | None = None


class LabelInfo(GerritModel):
    """Label (vote) information for a change."""

    approved: AccountInfo | None = None
    rejected: AccountInfo | None = None
    recommended: AccountInfo | None = None
    disliked: AccountInfo | None = None
    blocking: bool | None = None
    value: int | None = None
    default_value: int | None = None
    optional: bool | None = None
    all: list[ApprovalInfo] | None = None


class GitPersonInfo(GerritModel):
    """Author or committer of a commit."""

    name: str | None = None
    email: str | None = None
    date: str | None = None


class CommitInfo(GerritModel):
    """Commit metadata for a revision."""

    commit: str | None = None
    subject: str | None = None
    message: str | None = None
    author: GitPersonInfo | None = None
    committer: GitPersonInfo | None = None


class FetchInfo(GerritModel):
    """How to fetch a revision over one protocol."""

    url: str
    ref: str


class RevisionInfo(GerritModel):
    """A patchset of a change."""

    number: int = Field(..., alias="_number")
    ref: str
    created: str | None = None
    uploader: AccountInfo | None = None
    fetch: dict[str, FetchInfo] | None = None
    commit: CommitInfo | None = None

    @field_validator("ref")
    @classmethod
    def _validate_ref(cls, value: str) -> str:
        if not CHANGE_REF_PATTERN.match(value):
            raise ValueError(f"invalid change ref {value!r}")
        return value


class MessageInfo(GerritModel):
    """A change message (review activity)."""

    id: str
    message: str
    date: str
    author: AccountInfo | None = None
    revision_number: int | None = Field(None, alias="_revision_number")
    tag: str | None = None


class ChangeInfo(GerritModel):
    """A Gerrit change."""

    id: str
    change_id: str
    number: int = Field(..., alias="_number")
    subject: str
    status: ChangeStatus
    project: str
    branch: str
    topic: str | None = None
    created: str | None = None
    updated: str | None = None
    owner: AccountInfo = Field(default_factory=AccountInfo)
    reviewers: dict[str, list[AccountInfo]] | None = None
    labels: dict[str, LabelInfo] | None = None
    submittable: bool | None = None
    work_in_progress: bool | None = None
    current_revision: str | None = None
    revisions: dict[str, RevisionInfo] | None = None
    insertions: int | None = None
    deletions: int | None = None
    hashtags: list[str] | None = None
    messages: list[MessageInfo] | None = None

    @property
    def current_revision_info(self) -> RevisionInfo | None:
        """The RevisionInfo of the current patchset, when included."""
        if self.current_revision and self.revisions:
            return self.revisions.get(self.current_revision)
        return None

    def reviewers_in(self, state: str) -> list[AccountInfo]:
        """Reviewers in a given state (REVIEWER or CC)."""
        if not self.reviewers:
            return []
        return list(self.reviewers.get(state, []))

    def label_approved(self, label: str) -> bool:
        """Check whether a label carries an approval."""
        info = (self.labels or {}).get(label)
        return info is not None and info.approved is not None


class CommentRange(GerritModel):
    """A character range for an inline comment."""

    start_line: int
    end_line: int
    start_character: int | None = None
    end_character: int | None = None


class CommentInfo(GerritModel):
    """A published inline comment."""

    id: str
    path: str | None = None
    line: int | None = None
    range: CommentRange | None = None
    message: str = ""
    author: AccountInfo | None = None
    updated: str | None = None
    unresolved: bool | None = None
    in_reply_to: str | None = None
    side: CommentSide = CommentSide.REVISION
    patch_set: int | None = None


class CommentInput(GerritModel):
    """
    Posting shape of an inline comment.

    Exactly one of ``line`` or ``range`` must be present.
    """

    message: str
    line: int | None = None
    range: CommentRange | None = None
    side: CommentSide | None = None
    unresolved: bool | None = None
    in_reply_to: str | None = None

    @model_validator(mode="after")
    def _line_or_range(self) -> CommentInput:
        if (self.line is None) == (self.range is None):
            raise ValueError("exactly one of 'line' or 'range' is required")
        return self


class ReviewInput(GerritModel):
    """Body of the review endpoint."""

    message: str | None = None
    labels: dict[str, int] | None = None
    comments: dict[str, list[CommentInput]] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the wire, dropping absent fields."""
        return self.model_dump(mode="json", exclude_none=True)


class FileInfo(GerritModel):
    """File entry of a revision."""

    status: str | None = None
    lines_inserted: int | None = None
    lines_deleted: int | None = None
    size_delta: int | None = None
    size: int | None = None
    old_path: str | None = None
    binary: bool | None = None


class DiffContent(GerritModel):
    """One section of a structured file diff."""

    a: list[str] | None = None
    b: list[str] | None = None
    ab: list[str] | None = None
    skip: int | None = None


class FileDiff(GerritModel):
    """Structured diff of one file."""

    change_type: str | None = None
    diff_header: list[str] | None = None
    content: list[DiffContent] = Field(default_factory=list)

    def to_unified(self, path: str) -> str:
        """Render as unified diff text."""
        lines: list[str] = list(self.diff_header or [f"--- a/{path}", f"+++ b/{path}"])
        for section in self.content:
            lines.extend(f" {line}" for line in section.ab or [])
            lines.extend(f"-{line}" for line in section.a or [])
            lines.extend(f"+{line}" for line in section.b or [])
        return "\n".join(lines)


class AddReviewerResult(GerritModel):
    """Result of adding a reviewer or CC."""

    input: str | None = None
    reviewers: list[AccountInfo] | None = None
    ccs: list[AccountInfo] | None = None
    error: str | None = None
    confirm: bool | None = None

    @property
    def added(self) -> AccountInfo | None:
        """The first account that was added."""
        for accounts in (self.reviewers, self.ccs):
            if accounts:
                return accounts[0]
        return None


class ProjectInfo(GerritModel):
    """A Gerrit project."""

    id: str
    name: str = ""
    parent: str | None = None
    state: str | None = None
    description: str | None = None


class GroupOptions(GerritModel):
    """Group visibility options."""

    visible_to_all: bool | None = None


class GroupInfo(GerritModel):
    """A Gerrit group, optionally with members and subgroups."""

    id: str
    name: str | None = None
    url: str | None = None
    options: GroupOptions | None = None
    description: str | None = None
    group_id: int | None = None
    owner: str | None = None
    owner_id: str | None = None
    created_on: str | None = None
    members: list[AccountInfo] | None = None
    includes: list[GroupInfo] | None = None


__all__ = [
    "AccountInfo",
    "AddReviewerResult",
    "ApprovalInfo",
    "CHANGE_REF_PATTERN",
    "ChangeInfo",
    "ChangeStatus",
    "CommentInfo",
    "CommentInput",
    "CommentRange",
    "CommentSide",
    "CommitInfo",
    "DiffContent",
    "FetchInfo",
    "FileDiff",
    "FileInfo",
    "GerritModel",
    "GitPersonInfo",
    "GroupInfo",
    "GroupOptions",
    "LabelInfo",
    "MessageInfo",
    "NotifyLevel",
    "ProjectInfo",
    "ReviewInput",
    "ReviewerState",
    "RevisionInfo",
]
