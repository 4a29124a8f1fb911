# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit service layer.

This module provides the high-level operations the commands use. Every
method builds one endpoint path, performs the request through the REST
client and validates the response against its schema:

- Change queries, details, revisions, files, diffs and patches
- Comments and messages
- Reviews, votes, submit, abandon, restore and rebase
- Reviewers, topics, projects and groups
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from ger.config import Credentials
from ger.gerrit.client import (
    GerritNotFoundError,
    GerritParseError,
    GerritRestClient,
    build_client,
)
from ger.gerrit.models import (
    AccountInfo,
    AddReviewerResult,
    ChangeInfo,
    CommentInfo,
    FileDiff,
    FileInfo,
    GroupInfo,
    MessageInfo,
    NotifyLevel,
    ProjectInfo,
    ReviewInput,
    ReviewerState,
    RevisionInfo,
)
from ger.gerrit.urls import GerritUrlBuilder, create_url_builder
from ger.identifiers import normalize_change_identifier

log = logging.getLogger("ger.gerrit.service")


# Default query options for fetching one change
DEFAULT_CHANGE_OPTIONS: Final[list[str]] = ["CURRENT_REVISION", "CURRENT_COMMIT"]

# Default query options for listing changes
DEFAULT_LIST_OPTIONS: Final[list[str]] = [
    "LABELS",
    "DETAILED_LABELS",
    "DETAILED_ACCOUNTS",
]

# Options that populate reviewer data on a change
REVIEWER_OPTIONS: Final[list[str]] = ["DETAILED_LABELS", "DETAILED_ACCOUNTS"]

# Pseudo files Gerrit includes in file listings
MAGIC_FILES: Final[frozenset[str]] = frozenset({"/COMMIT_MSG", "/MERGE_LIST"})

class DiffFormat(str, Enum):
    """Formats understood by ``get_diff``."""

    UNIFIED = "unified"
    JSON = "json"
    FILES = "files"


DIFF_FORMATS: Final[tuple[str, ...]] = tuple(f.value for f in DiffFormat)


class GerritServiceError(Exception):
    """Raised for service-level errors."""


@dataclass(frozen=True)
class DiffOptions:
    """
    Options for ``get_diff``.

    Attributes:
        format: "unified" (patch text), "json" (file map or file diff)
                or "files" (list of paths).
        file: Restrict the diff to one file.
        patchset: Patchset number; the current revision when None.
        base: Patchset to diff against.
        full_files: Return full file contents instead of a diff.
    """

    format: str = "unified"
    file: str | None = None
    patchset: int | None = None
    base: int | None = None
    full_files: bool = False


@dataclass(frozen=True)
class GroupQuery:
    """Filters for ``list_groups``."""

    pattern: str | None = None
    owned: bool = False
    project: str | None = None
    user: str | None = None
    limit: int = 25


def _decode_base64(text: str, what: str) -> str:
    try:
        return base64.b64decode(text.strip()).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as exc:
        raise GerritParseError(what, f"invalid base64 payload ({exc})") from exc


class GerritService:
    """
    High-level service for Gerrit operations.

    The service holds no mutable state besides its immutable client, so
    concurrent read calls on one change are safe.
    """

    def __init__(
        self,
        client: GerritRestClient,
        url_builder: GerritUrlBuilder,
    ) -> None:
        """
        Initialize the Gerrit service.

        Args:
            client: REST client for the server.
            url_builder: URL builder for the same server.
        """
        self._client = client
        self._urls = url_builder
        log.debug(
            "GerritService initialized: host=%s, auth=%s",
            url_builder.host,
            "yes" if client.is_authenticated else "no",
        )

    @property
    def host(self) -> str:
        """The normalized server URL."""
        return self._urls.host

    @property
    def url_builder(self) -> GerritUrlBuilder:
        """Get the URL builder for constructing URLs."""
        return self._urls

    @property
    def client(self) -> GerritRestClient:
        """The underlying REST client."""
        return self._client

    # -- accounts -----------------------------------------------------------

    def test_connection(self) -> AccountInfo:
        """
        Fetch the authenticated account.

        Raises:
            GerritAuthError: If the credentials are rejected.
        """
        endpoint = "/accounts/self"
        return AccountInfo.from_api_response(self._client.get(endpoint), endpoint)

    # -- changes ------------------------------------------------------------

    def list_changes(
        self,
        query: str,
        options: list[str] | None = None,
    ) -> list[ChangeInfo]:
        """
        Query changes.

        Args:
            query: Gerrit query string.
            options: Query options; defaults to DEFAULT_LIST_OPTIONS.
        """
        endpoint = self._urls.changes_query_path(
            query, DEFAULT_LIST_OPTIONS if options is None else options
        )
        log.debug("Querying changes: %s", endpoint)
        return ChangeInfo.list_from_api_response(self._client.get(endpoint), endpoint)

    def get_change(
        self,
        change_id: str,
        options: list[str] | None = None,
    ) -> ChangeInfo:
        """
        Fetch one change.

        Args:
            change_id: Change number or Change-Id.
            options: Query options; defaults to DEFAULT_CHANGE_OPTIONS.

        Raises:
            ValidationError: If the identifier is malformed.
            GerritNotFoundError: If the change does not exist.
        """
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.change_path(
            normalized, options=DEFAULT_CHANGE_OPTIONS if options is None else options
        )
        log.debug("Fetching change info: %s", endpoint)
        return ChangeInfo.from_api_response(self._client.get(endpoint), endpoint)

    def get_revision(self, change_id: str, revision: str | int = "current") -> RevisionInfo:
        """
        Fetch one revision (patchset) of a change.

        Args:
            change_id: Change number or Change-Id.
            revision: "current", a patchset number or a commit SHA.

        Raises:
            GerritNotFoundError: If the change or revision does not exist.
        """
        wanted = str(revision)
        options = ["CURRENT_REVISION", "CURRENT_COMMIT"] if wanted == "current" else ["ALL_REVISIONS"]
        change = self.get_change(change_id, options)

        if wanted == "current":
            current = change.current_revision_info
            if current is not None:
                return current
        for sha, info in (change.revisions or {}).items():
            if wanted == sha or wanted == str(info.number):
                return info
        raise GerritNotFoundError(
            f"Revision {wanted} not found for change {change_id}", status_code=404
        )

    def get_files(self, change_id: str, revision: str | int = "current") -> dict[str, FileInfo]:
        """Fetch the file map of a revision."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, revision, "files")
        data = self._client.get(endpoint)
        if not isinstance(data, dict):
            raise GerritParseError(endpoint, "expected a JSON object")
        return {path: FileInfo.from_api_response(info, endpoint) for path, info in data.items()}

    def get_file_diff(
        self,
        change_id: str,
        file_path: str,
        revision: str | int = "current",
        base: int | None = None,
    ) -> FileDiff:
        """Fetch the structured diff of one file."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, revision, "files", file_path, "diff")
        if base is not None:
            endpoint += f"?base={base}"
        return FileDiff.from_api_response(self._client.get(endpoint), endpoint)

    def get_file_content(
        self, change_id: str, file_path: str, revision: str | int = "current"
    ) -> str:
        """Fetch the full content of one file (decoded from base64)."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, revision, "files", file_path, "content")
        return _decode_base64(self._client.get_text(endpoint), endpoint)

    def get_patch(self, change_id: str, revision: str | int = "current") -> str:
        """Fetch the revision as a git patch (decoded from base64)."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, revision, "patch")
        return _decode_base64(self._client.get_text(endpoint), endpoint)

    def get_diff(self, change_id: str, options: DiffOptions | None = None) -> Any:
        """
        Fetch a diff in the requested format.

        Returns:
            A list of paths for "files", a dict for "json" and a string
            for "unified".
        """
        opts = options or DiffOptions()
        if opts.format not in DIFF_FORMATS:
            raise GerritServiceError(
                f"Unknown diff format: {opts.format}. Valid formats: {', '.join(DIFF_FORMATS)}"
            )
        revision: str | int = opts.patchset if opts.patchset is not None else "current"

        if opts.format == "files":
            return [path for path in self.get_files(change_id, revision) if path not in MAGIC_FILES]

        if opts.file:
            diff = self.get_file_diff(change_id, opts.file, revision, opts.base)
            if opts.format == "json":
                return diff.model_dump(mode="json", exclude_none=True)
            return diff.to_unified(opts.file)

        if opts.full_files:
            contents: dict[str, str] = {}
            for path in self.get_files(change_id, revision):
                if path in MAGIC_FILES:
                    continue
                try:
                    contents[path] = self.get_file_content(change_id, path, revision)
                except (GerritNotFoundError, GerritParseError) as exc:
                    log.debug("Skipping content of %s: %s", path, exc)
                    contents[path] = "Binary file or permission denied"
            if opts.format == "json":
                return contents
            return "\n".join(f"=== {path} ===\n{content}\n" for path, content in contents.items())

        if opts.format == "json":
            return {
                path: info.model_dump(mode="json", exclude_none=True)
                for path, info in self.get_files(change_id, revision).items()
            }
        return self.get_patch(change_id, revision)

    def get_comments(
        self, change_id: str, revision: str | int = "current"
    ) -> dict[str, list[CommentInfo]]:
        """Fetch published inline comments keyed by file path."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, revision, "comments")
        data = self._client.get(endpoint)
        if not isinstance(data, dict):
            raise GerritParseError(endpoint, "expected a JSON object")
        return {
            path: CommentInfo.list_from_api_response(items, f"{endpoint}:{path}")
            for path, items in data.items()
        }

    def get_messages(self, change_id: str) -> list[MessageInfo]:
        """Fetch the change messages in server order."""
        change = self.get_change(change_id, ["MESSAGES"])
        return list(change.messages or [])

    # -- reviewers ----------------------------------------------------------

    def add_reviewer(
        self,
        change_id: str,
        reviewer: str,
        state: ReviewerState = ReviewerState.REVIEWER,
        notify: NotifyLevel | None = None,
    ) -> AddReviewerResult:
        """Add a reviewer or CC (account or group) to a change."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.change_path(normalized, "reviewers")
        body: dict[str, Any] = {"reviewer": reviewer, "state": state.value}
        if notify is not None:
            body["notify"] = notify.value
        log.debug("Adding %s as %s on %s", reviewer, state.value, normalized)
        return AddReviewerResult.from_api_response(self._client.post(endpoint, body), endpoint)

    def remove_reviewer(
        self,
        change_id: str,
        reviewer: str,
        notify: NotifyLevel | None = None,
    ) -> None:
        """Remove a reviewer from a change."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.change_path(normalized, "reviewers", reviewer, "delete")
        body = {"notify": notify.value} if notify is not None else {}
        log.debug("Removing %s from %s", reviewer, normalized)
        self._client.post(endpoint, body)

    # -- review actions -----------------------------------------------------

    def post_review(self, change_id: str, review: ReviewInput) -> dict[str, Any]:
        """Post a review (message, labels and/or inline comments)."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, "current", "review")
        result = self._client.post(endpoint, review.to_payload())
        log.info("Posted review on change %s", normalized)
        return result if isinstance(result, dict) else {}

    def submit_change(self, change_id: str) -> ChangeInfo:
        """Submit a change for merging."""
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.change_path(normalized, "submit")
        return ChangeInfo.from_api_response(self._client.post(endpoint, {}), endpoint)

    def abandon_change(self, change_id: str, message: str | None = None) -> ChangeInfo:
        """Abandon a change with an optional message."""
        return self._change_action(change_id, "abandon", message)

    def restore_change(self, change_id: str, message: str | None = None) -> ChangeInfo:
        """Restore an abandoned change with an optional message."""
        return self._change_action(change_id, "restore", message)

    def _change_action(self, change_id: str, action: str, message: str | None) -> ChangeInfo:
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.change_path(normalized, action)
        body = {"message": message} if message else {}
        result = self._client.post(endpoint, body)
        log.info("Change %s: %s", normalized, action)
        return ChangeInfo.from_api_response(result, endpoint)

    def rebase_change(self, change_id: str, base: str | None = None) -> ChangeInfo:
        """
        Rebase the current revision onto the target branch or ``base``.

        A merge conflict surfaces as GerritRestError with status 409 and
        the server's explanation as the message.
        """
        normalized = normalize_change_identifier(change_id)
        endpoint = self._urls.revision_path(normalized, "current", "rebase")
        body = {"base": base} if base else {}
        return ChangeInfo.from_api_response(self._client.post(endpoint, body), endpoint)

    # -- topics -------------------------------------------------------------

    def get_topic(self, change_id: str) -> str:
        """Fetch the topic of a change ("" when unset)."""
        normalized = normalize_change_identifier(change_id)
        result = self._client.get(self._urls.change_path(normalized, "topic"))
        return result if isinstance(result, str) else ""

    def set_topic(self, change_id: str, topic: str) -> str:
        """Set the topic of a change and return the stored value."""
        normalized = normalize_change_identifier(change_id)
        result = self._client.put(self._urls.change_path(normalized, "topic"), {"topic": topic})
        return result if isinstance(result, str) else topic

    def delete_topic(self, change_id: str) -> None:
        """Remove the topic of a change."""
        normalized = normalize_change_identifier(change_id)
        self._client.delete(self._urls.change_path(normalized, "topic"))

    # -- projects and groups ------------------------------------------------

    def list_projects(self, pattern: str | None = None) -> list[ProjectInfo]:
        """List projects, optionally filtered by name prefix."""
        endpoint = self._urls.projects_path(pattern)
        data = self._client.get(endpoint)
        if not isinstance(data, dict):
            raise GerritParseError(endpoint, "expected a JSON object")
        projects = [
            ProjectInfo.from_api_response({**info, "name": name}, f"{endpoint}:{name}")
            for name, info in data.items()
        ]
        return sorted(projects, key=lambda p: p.name)

    def list_groups(self, query: GroupQuery | None = None) -> list[GroupInfo]:
        """List groups matching the filters, sorted by name."""
        q = query or GroupQuery()
        endpoint = self._urls.groups_path(
            owned=q.owned, project=q.project, user=q.user, pattern=q.pattern, limit=q.limit
        )
        data = self._client.get(endpoint)
        if isinstance(data, dict):
            groups = [
                GroupInfo.from_api_response({"name": name, **info}, f"{endpoint}:{name}")
                for name, info in data.items()
            ]
        else:
            groups = GroupInfo.list_from_api_response(data, endpoint)
        return sorted(groups, key=lambda g: g.name or g.id)

    def get_group_detail(self, group_id: str) -> GroupInfo:
        """Fetch a group with members and subgroups."""
        endpoint = self._urls.group_path(group_id, "detail")
        return GroupInfo.from_api_response(self._client.get(endpoint), endpoint)

    def get_group_members(self, group_id: str) -> list[AccountInfo]:
        """Fetch the direct members of a group."""
        endpoint = self._urls.group_path(group_id, "members/")
        return AccountInfo.list_from_api_response(self._client.get(endpoint), endpoint)


def create_gerrit_service(
    credentials: Credentials,
    timeout: float = 30.0,
    http: Any = None,
) -> GerritService:
    """
    Factory function to create a GerritService from credentials.

    Args:
        credentials: Resolved connection settings.
        timeout: Request timeout in seconds.
        http: Optional requests-compatible transport.

    Returns:
        Configured GerritService instance.
    """
    client = build_client(
        credentials.host,
        timeout=timeout,
        username=credentials.username,
        password=credentials.password,
        http=http,
    )
    return GerritService(client, create_url_builder(credentials.host))


__all__ = [
    "DEFAULT_CHANGE_OPTIONS",
    "DEFAULT_LIST_OPTIONS",
    "DIFF_FORMATS",
    "DiffFormat",
    "DiffOptions",
    "GerritService",
    "GerritServiceError",
    "GroupQuery",
    "MAGIC_FILES",
    "REVIEWER_OPTIONS",
    "create_gerrit_service",
]
