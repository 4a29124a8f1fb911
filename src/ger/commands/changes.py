# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Read commands over changes: status, search, mine, incoming, show, diff
and comments, plus the comment poster.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import groupby
from typing import Any, Final

from ger.commands import CommandResult
from ger.commands.formatting import (
    RULE_WIDTH,
    SECTION_WIDTH,
    account_dict,
    account_label,
    activity_lines,
    comment_dict,
    comment_lines,
    flatten_comments,
    format_date,
    message_dict,
    status_indicators,
    xml_account,
    xml_comment,
    xml_message,
)
from ger.errors import ValidationError
from ger.gerrit.client import GerritRestError
from ger.gerrit.models import (
    AccountInfo,
    ChangeInfo,
    CommentInfo,
    CommentInput,
    MessageInfo,
    ReviewInput,
)
from ger.gerrit.service import REVIEWER_OPTIONS, DiffOptions, GerritService
from ger.output import OutputFormat, XmlDocument, to_json

log = logging.getLogger("ger.commands.changes")

DEFAULT_QUERY: Final[str] = "is:open"
DEFAULT_LIMIT: Final[int] = 25
MINE_QUERY: Final[str] = "owner:self status:open"
INCOMING_QUERY: Final[str] = "reviewer:self -owner:self status:open"


# -- status ---------------------------------------------------------------


def run_status(service: GerritService, fmt: OutputFormat) -> CommandResult:
    """Verify the connection and credentials."""
    account = service.test_connection()
    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "connected": True,
                    "host": service.host,
                    "account": account_dict(account),
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("status_result")
        doc.element("status", "success")
        doc.element("connected", True)
        doc.element("host", service.host)
        xml_account(doc, "account", account)
        return CommandResult(doc.render())
    lines = [f"✓ Connected to {service.host}"]
    lines.append(f"  Account: {account_label(account)}")
    return CommandResult("\n".join(lines))


# -- change lists ---------------------------------------------------------


def build_search_query(query: str | None, limit: int | None) -> str:
    """Default the query and append ``limit:`` unless the query has one."""
    final = (query or "").strip() or DEFAULT_QUERY
    if limit is None or limit < 1:
        limit = DEFAULT_LIMIT
    if "limit:" not in final:
        final = f"{final} limit:{limit}"
    return final


def group_by_project(changes: Sequence[ChangeInfo]) -> list[tuple[str, list[ChangeInfo]]]:
    """Group changes by project (alphabetical), newest update first within each."""
    ordered = sorted(changes, key=lambda c: c.project)
    grouped: list[tuple[str, list[ChangeInfo]]] = []
    for project, items in groupby(ordered, key=lambda c: c.project):
        grouped.append(
            (project, sorted(items, key=lambda c: c.updated or "", reverse=True))
        )
    return grouped


def _change_summary(change: ChangeInfo) -> dict[str, Any]:
    owner = change.owner
    return {
        "number": change.number,
        "id": change.id,
        "change_id": change.change_id,
        "subject": change.subject,
        "status": change.status.value,
        "project": change.project,
        "branch": change.branch,
        "owner": owner.name or "Unknown",
        "owner_account_id": owner.account_id,
        "owner_email": owner.email,
        "owner_username": owner.username,
        "created": change.created,
        "updated": change.updated,
        "insertions": change.insertions,
        "deletions": change.deletions,
        "current_revision": change.current_revision,
        "submittable": change.submittable,
        "work_in_progress": change.work_in_progress,
        "topic": change.topic or None,
        "labels": (
            {
                name: info.model_dump(mode="json", by_alias=False, exclude_none=True)
                for name, info in change.labels.items()
            }
            if change.labels
            else None
        ),
        "reviewers": [account_dict(a) for a in change.reviewers_in("REVIEWER")] or None,
        "cc": [account_dict(a) for a in change.reviewers_in("CC")] or None,
    }


def _change_list_text(grouped: list[tuple[str, list[ChangeInfo]]], title: str) -> str:
    count = sum(len(items) for _, items in grouped)
    if count == 0:
        return "No changes found"
    lines = [f"{title} ({count})", ""]
    for project, items in grouped:
        lines.append(project)
        for change in items:
            indicators = status_indicators(change)
            prefix = f"{' '.join(indicators)} " if indicators else ""
            date = f" • {format_date(change.updated)}" if change.updated else ""
            lines.append(f"  {prefix}#{change.number} {change.subject}")
            lines.append(
                f"    by {change.owner.name or 'Unknown'} • {change.status.value}{date}"
            )
        lines.append("")
    return "\n".join(lines).rstrip("\n")


def _xml_change(doc: XmlDocument, change: ChangeInfo, with_project: bool) -> None:
    with doc.section("change"):
        doc.element("number", change.number)
        doc.text("subject", change.subject)
        doc.element("status", change.status.value)
        if with_project:
            doc.element("project", change.project)
        doc.element("owner", change.owner.name or "Unknown")
        doc.element("branch", change.branch)
        doc.element("updated", change.updated or None)
        doc.element("owner_email", change.owner.email)


def run_search(
    service: GerritService,
    query: str | None,
    limit: int | None,
    fmt: OutputFormat,
) -> CommandResult:
    """Search changes, grouped by project."""
    final_query = build_search_query(query, limit)
    changes = service.list_changes(final_query)
    grouped = group_by_project(changes)

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "query": final_query,
                    "count": len(changes),
                    "changes": [
                        _change_summary(change) for _, items in grouped for change in items
                    ],
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("search_results")
        doc.text("query", final_query)
        doc.element("count", len(changes))
        if changes:
            with doc.section("changes"):
                for project, items in grouped:
                    with doc.section("project", {"name": project}):
                        for change in items:
                            _xml_change(doc, change, with_project=False)
        return CommandResult(doc.render())
    return CommandResult(_change_list_text(grouped, "Search results"))


def list_changes_result(
    service: GerritService,
    query: str,
    fmt: OutputFormat,
    title: str,
) -> tuple[CommandResult, list[ChangeInfo]]:
    """
    Render a fixed query (mine, incoming).

    Returns the result and the changes in display order.
    """
    changes = service.list_changes(query)
    grouped = group_by_project(changes)
    ordered = [change for _, items in grouped for change in items]

    if fmt == OutputFormat.JSON:
        return (
            CommandResult(
                to_json(
                    {
                        "status": "success",
                        "count": len(ordered),
                        "changes": [_change_summary(c) for c in ordered],
                    }
                )
            ),
            ordered,
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("changes", {"count": len(ordered)})
        for change in ordered:
            _xml_change(doc, change, with_project=True)
        return CommandResult(doc.render()), ordered
    return CommandResult(_change_list_text(grouped, title)), ordered


def run_mine(service: GerritService, fmt: OutputFormat) -> CommandResult:
    """List the caller's open changes."""
    return list_changes_result(service, MINE_QUERY, fmt, "My changes")[0]


def run_incoming(
    service: GerritService, fmt: OutputFormat
) -> tuple[CommandResult, list[ChangeInfo]]:
    """List open changes awaiting the caller's review."""
    return list_changes_result(service, INCOMING_QUERY, fmt, "Incoming reviews")


# -- show -----------------------------------------------------------------


@dataclass(frozen=True)
class ChangeDetails:
    """Change metadata with reviewer data filled in."""

    change: ChangeInfo
    reviewers: list[AccountInfo]
    ccs: list[AccountInfo]


def fetch_change_details(service: GerritService, change_id: str) -> ChangeDetails:
    """
    Fetch a change; when it carries no reviewer data, look the change up
    again through the query endpoint with reviewer options.
    """
    change = service.get_change(change_id)
    reviewers = change.reviewers_in("REVIEWER")
    ccs = change.reviewers_in("CC")
    if not reviewers and not ccs:
        try:
            detailed = service.list_changes(f"change:{change.change_id}", REVIEWER_OPTIONS)
        except GerritRestError as exc:
            log.debug("Reviewer lookup failed for %s: %s", change.change_id, exc)
            detailed = []
        match = next((c for c in detailed if c.change_id == change.change_id), None)
        if match is None and detailed:
            match = detailed[0]
        if match is not None:
            reviewers = match.reviewers_in("REVIEWER")
            ccs = match.reviewers_in("CC")
    return ChangeDetails(change, reviewers, ccs)


def _fetch_diff_text(service: GerritService, change_id: str) -> str:
    diff = service.get_diff(change_id, DiffOptions(format="unified"))
    return diff if isinstance(diff, str) else json.dumps(diff, indent=2)


def fetch_comments_and_messages(
    service: GerritService, change_id: str
) -> tuple[list[CommentInfo], list[MessageInfo]]:
    """Fetch inline comments and messages concurrently, both oldest first."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        comments_future = executor.submit(service.get_comments, change_id)
        messages_future = executor.submit(service.get_messages, change_id)
        comments = flatten_comments(comments_future.result())
        messages = sorted(messages_future.result(), key=lambda m: m.date)
    return comments, messages


def run_show(service: GerritService, change_id: str, fmt: OutputFormat) -> CommandResult:
    """Show a change with its diff, comments and review activity."""
    with ThreadPoolExecutor(max_workers=3) as executor:
        details_future = executor.submit(fetch_change_details, service, change_id)
        diff_future = executor.submit(_fetch_diff_text, service, change_id)
        activity_future = executor.submit(fetch_comments_and_messages, service, change_id)
        details = details_future.result()
        diff = diff_future.result()
        comments, messages = activity_future.result()

    if fmt == OutputFormat.JSON:
        return CommandResult(_show_json(details, diff, comments, messages))
    if fmt == OutputFormat.XML:
        return CommandResult(_show_xml(details, diff, comments, messages))
    return CommandResult(_show_text(details, diff, comments, messages))


def _show_json(
    details: ChangeDetails,
    diff: str,
    comments: list[CommentInfo],
    messages: list[MessageInfo],
) -> str:
    change = details.change
    return to_json(
        {
            "status": "success",
            "change": {
                "id": change.change_id,
                "number": change.number,
                "subject": change.subject,
                "status": change.status.value,
                "project": change.project,
                "branch": change.branch,
                "topic": change.topic or None,
                "owner": {"name": change.owner.name, "email": change.owner.email},
                "reviewers": [account_dict(a) for a in details.reviewers],
                "ccs": [account_dict(a) for a in details.ccs],
                "created": change.created,
                "updated": change.updated,
            },
            "diff": diff,
            "comments": [comment_dict(c) for c in comments],
            "messages": [message_dict(m) for m in messages],
        }
    )


def _show_xml(
    details: ChangeDetails,
    diff: str,
    comments: list[CommentInfo],
    messages: list[MessageInfo],
) -> str:
    change = details.change
    doc = XmlDocument("show_result")
    doc.element("status", "success")
    with doc.section("change"):
        doc.element("id", change.change_id)
        doc.element("number", change.number)
        doc.text("subject", change.subject)
        doc.element("status", change.status.value)
        doc.element("project", change.project)
        doc.element("branch", change.branch)
        if change.topic:
            doc.text("topic", change.topic)
        with doc.section("owner"):
            if change.owner.name:
                doc.text("name", change.owner.name)
            doc.element("email", change.owner.email)
        with doc.section("reviewers"):
            doc.element("count", len(details.reviewers))
            for reviewer in details.reviewers:
                xml_account(doc, "reviewer", reviewer)
        with doc.section("ccs"):
            doc.element("count", len(details.ccs))
            for cc in details.ccs:
                xml_account(doc, "cc", cc)
        doc.element("created", change.created or "")
        doc.element("updated", change.updated or "")
    doc.text("diff", diff)
    with doc.section("comments"):
        doc.element("count", len(comments))
        for comment in comments:
            xml_comment(doc, comment)
    with doc.section("messages"):
        doc.element("count", len(messages))
        for message in messages:
            xml_message(doc, message)
    return doc.render()


def _show_text(
    details: ChangeDetails,
    diff: str,
    comments: list[CommentInfo],
    messages: list[MessageInfo],
) -> str:
    change = details.change
    rule = "━" * RULE_WIDTH
    section = "─" * SECTION_WIDTH
    lines = [rule, f"📋 Change {change.number}: {change.subject}", rule, ""]
    lines.append("📝 Details:")
    lines.append(f"   Project: {change.project}")
    lines.append(f"   Branch: {change.branch}")
    lines.append(f"   Status: {change.status.value}")
    if change.topic:
        lines.append(f"   Topic: {change.topic}")
    lines.append(f"   Owner: {change.owner.name or change.owner.email or 'Unknown'}")
    lines.append(f"   Created: {format_date(change.created)}")
    lines.append(f"   Updated: {format_date(change.updated)}")
    if details.reviewers:
        lines.append(
            f"   Reviewers: {', '.join(account_label(r) for r in details.reviewers)}"
        )
    if details.ccs:
        lines.append(f"   CCs: {', '.join(account_label(c) for c in details.ccs)}")
    lines.append(f"   Change-Id: {change.change_id}")
    lines.append("")
    lines.extend(["🔍 Diff:", section, diff.rstrip("\n"), ""])

    if comments:
        lines.extend(["💬 Inline Comments:", section])
        for comment in comments:
            lines.extend(comment_lines(comment))
            lines.append("")
    if messages:
        lines.extend(["📝 Review Activity:", section])
        lines.extend(activity_lines(messages))
    if not comments and not messages:
        lines.extend(
            ["💬 Comments & Activity:", section, "No comments or review activity found."]
        )
    return "\n".join(lines).rstrip("\n")


# -- diff -----------------------------------------------------------------


def run_diff(
    service: GerritService,
    change_id: str,
    options: DiffOptions,
    fmt: OutputFormat,
) -> CommandResult:
    """Show the diff of a change in the requested format."""
    diff = service.get_diff(change_id, options)

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json({"status": "success", "change_id": change_id, "diff": diff})
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("diff_result")
        doc.element("status", "success")
        doc.element("change_id", change_id)
        if isinstance(diff, list):
            with doc.section("files"):
                doc.element("count", len(diff))
                for path in diff:
                    doc.text("file", path)
        elif isinstance(diff, str):
            doc.text("content", diff)
        else:
            doc.text("content", json.dumps(diff, indent=2))
        return CommandResult(doc.render())

    if isinstance(diff, list):
        return CommandResult("\n".join(diff))
    if isinstance(diff, str):
        return CommandResult(diff.rstrip("\n"))
    return CommandResult(json.dumps(diff, indent=2))


# -- comments -------------------------------------------------------------


def run_comments(service: GerritService, change_id: str, fmt: OutputFormat) -> CommandResult:
    """Show all published inline comments, oldest first."""
    comments = flatten_comments(service.get_comments(change_id))

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "change_id": change_id,
                    "comments": [comment_dict(c) for c in comments],
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("comments_result")
        doc.element("status", "success")
        doc.element("change_id", change_id)
        with doc.section("comments"):
            doc.element("count", len(comments))
            for comment in comments:
                xml_comment(doc, comment)
        return CommandResult(doc.render())

    if not comments:
        return CommandResult(f"No comments found on change {change_id}")
    lines: list[str] = [f"Comments on change {change_id} ({len(comments)}):", ""]
    for comment in comments:
        lines.extend(comment_lines(comment))
        lines.append("")
    return CommandResult("\n".join(lines).rstrip("\n"))


# -- comment --------------------------------------------------------------


def parse_batch_comments(raw: str) -> ReviewInput:
    """
    Parse batch comment JSON from stdin.

    Accepts ``{"message"?, "comments": [...]}`` or a bare array of
    comments. Each comment needs ``file``, ``message`` and exactly one of
    ``line`` or ``range``.

    Raises:
        ValidationError: If the JSON or a comment is malformed.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON input: {exc}") from exc

    if isinstance(data, list):
        data = {"comments": data}
    if not isinstance(data, dict):
        raise ValidationError("Batch input must be a JSON object or array")
    items = data.get("comments", [])
    if not isinstance(items, list):
        raise ValidationError("'comments' must be an array")

    comments: dict[str, list[CommentInput]] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Comment {index} must be an object")
        path = item.get("file") or item.get("path")
        if not path:
            raise ValidationError(f"Comment {index} is missing 'file'")
        payload = {k: v for k, v in item.items() if k not in ("file", "path")}
        try:
            comment = CommentInput.model_validate(payload)
        except ValueError as exc:
            raise ValidationError(f"Invalid comment {index} for {path}: {exc}") from exc
        comments.setdefault(path, []).append(comment)

    message = data.get("message")
    if message is not None and not isinstance(message, str):
        raise ValidationError("'message' must be a string")
    if not message and not comments:
        raise ValidationError("Batch input contains no message and no comments")
    return ReviewInput(message=message or None, comments=comments or None)


def build_comment_review(
    message: str | None,
    file: str | None,
    line: int | None,
    unresolved: bool,
) -> ReviewInput:
    """
    Build the review for a single comment.

    Raises:
        ValidationError: If the message is missing or file/line are not
            given together.
    """
    text = (message or "").strip()
    if not text:
        raise ValidationError("Message is required. Use -m or pipe the message via stdin.")
    if (file is None) != (line is None):
        raise ValidationError("Both --file and --line are required for line comments")
    if file is not None and line is not None:
        if line < 1:
            raise ValidationError("Line number must be a positive integer")
        inline = CommentInput(message=text, line=line, unresolved=unresolved or None)
        return ReviewInput(comments={file: [inline]})
    return ReviewInput(message=text)


def run_comment(
    service: GerritService,
    change_id: str,
    review: ReviewInput,
    fmt: OutputFormat,
) -> CommandResult:
    """Post a review message and/or inline comments."""
    service.post_review(change_id, review)
    inline_count = sum(len(items) for items in (review.comments or {}).values())

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "change_id": change_id,
                    "message": review.message,
                    "comments_posted": inline_count,
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("comment_result")
        doc.element("status", "success")
        doc.element("change_id", change_id)
        if review.message:
            doc.text("message", review.message)
        doc.element("comments_posted", inline_count)
        return CommandResult(doc.render())

    lines = [f"✓ Comment posted on change {change_id}"]
    if review.message:
        lines.append(f"  Message: {review.message}")
    if inline_count:
        lines.append(f"  Inline comments: {inline_count}")
    return CommandResult("\n".join(lines))


__all__ = [
    "ChangeDetails",
    "DEFAULT_LIMIT",
    "DEFAULT_QUERY",
    "INCOMING_QUERY",
    "MINE_QUERY",
    "build_comment_review",
    "build_search_query",
    "fetch_change_details",
    "fetch_comments_and_messages",
    "group_by_project",
    "list_changes_result",
    "parse_batch_comments",
    "run_comment",
    "run_comments",
    "run_diff",
    "run_incoming",
    "run_mine",
    "run_search",
    "run_show",
    "run_status",
]
