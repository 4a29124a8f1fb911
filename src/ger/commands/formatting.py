# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Shared rendering helpers for command executors."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Final

from ger.gerrit.models import AccountInfo, ChangeInfo, CommentInfo, MessageInfo
from ger.output import XmlDocument

RULE_WIDTH: Final[int] = 80
SECTION_WIDTH: Final[int] = 40

# Messages shorter than this that mention builds or patch uploads are noise
SHORT_MESSAGE_LENGTH: Final[int] = 10

COMMIT_MSG_PATH: Final[str] = "/COMMIT_MSG"
COMMIT_MSG_LABEL: Final[str] = "Commit Message"


def format_date(value: str | None) -> str:
    """Format a Gerrit timestamp (``2024-01-15 10:30:00.000000000``) for humans."""
    if not value:
        return "Unknown"
    text = value.strip()
    try:
        parsed = datetime.strptime(text[:19], "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return text
    return parsed.strftime("%Y-%m-%d %H:%M")


def account_dict(account: AccountInfo | None) -> dict[str, Any] | None:
    """JSON shape of an account (absent fields dropped later)."""
    if account is None:
        return None
    return {
        "account_id": account.account_id,
        "name": account.name,
        "email": account.email,
        "username": account.username,
    }


def account_label(account: AccountInfo) -> str:
    """``Name <email>`` when both are known, otherwise the best identity."""
    preferred = account.name or account.email or account.username
    if not preferred:
        if account.account_id is not None:
            return f"Account {account.account_id}"
        return "Unknown Reviewer"
    if account.email and account.name and account.name != account.email:
        return f"{account.name} <{account.email}>"
    return preferred


def xml_account(doc: XmlDocument, tag: str, account: AccountInfo) -> None:
    """Append an account element."""
    with doc.section(tag):
        doc.element("account_id", account.account_id)
        if account.name:
            doc.text("name", account.name)
        doc.element("email", account.email or None)
        doc.element("username", account.username or None)


def status_indicators(change: ChangeInfo) -> list[str]:
    """Short markers summarizing the votes on a change."""
    indicators: list[str] = []
    labels = change.labels or {}
    verified = labels.get("Verified")
    if verified is not None:
        if verified.rejected is not None:
            indicators.append("✗")
        elif verified.approved is not None:
            indicators.append("✓")
    review = labels.get("Code-Review")
    if review is not None:
        if review.rejected is not None:
            indicators.append("✗✗")
        elif review.approved is not None:
            indicators.append("✓✓")
        elif review.disliked is not None:
            indicators.append("↓")
        elif review.recommended is not None:
            indicators.append("↑")
    if change.work_in_progress:
        indicators.append("🚧")
    return indicators


def flatten_comments(comments: dict[str, list[CommentInfo]]) -> list[CommentInfo]:
    """
    Flatten a path-keyed comment map, oldest first.

    The path is attached to every comment; ``/COMMIT_MSG`` is shown as
    "Commit Message".
    """
    flat: list[CommentInfo] = []
    for path, items in comments.items():
        shown = COMMIT_MSG_LABEL if path == COMMIT_MSG_PATH else path
        flat.extend(item.model_copy(update={"path": shown}) for item in items)
    return sorted(flat, key=lambda c: c.updated or "")


def comment_dict(comment: CommentInfo) -> dict[str, Any]:
    """JSON shape of a published comment."""
    return {
        "id": comment.id,
        "path": comment.path,
        "line": comment.line,
        "range": comment.range.model_dump(exclude_none=True) if comment.range else None,
        "author": (
            {
                "name": comment.author.name,
                "email": comment.author.email,
                "account_id": comment.author.account_id,
            }
            if comment.author
            else None
        ),
        "updated": comment.updated,
        "message": comment.message,
        "unresolved": comment.unresolved,
        "in_reply_to": comment.in_reply_to,
    }


def xml_comment(doc: XmlDocument, comment: CommentInfo) -> None:
    """Append a comment element."""
    with doc.section("comment"):
        doc.element("id", comment.id)
        if comment.path:
            doc.text("path", comment.path)
        doc.element("line", comment.line)
        if comment.author and comment.author.name:
            doc.text("author", comment.author.name)
        doc.element("updated", comment.updated)
        if comment.message:
            doc.text("message", comment.message)
        if comment.unresolved:
            doc.element("unresolved", True)


def comment_lines(comment: CommentInfo) -> list[str]:
    """Text rendering of one comment."""
    author = comment.author.display_name if comment.author else "Unknown"
    location = comment.path or ""
    if comment.line is not None:
        location += f":{comment.line}"
    elif comment.range is not None:
        location += f":{comment.range.start_line}-{comment.range.end_line}"
    lines = [f"📍 {location}", f"   {author} • {format_date(comment.updated)}"]
    if comment.unresolved:
        lines[-1] += " • unresolved"
    lines.extend(f"   {line}" for line in comment.message.strip().splitlines())
    return lines


def message_dict(message: MessageInfo) -> dict[str, Any]:
    """JSON shape of a change message."""
    return {
        "id": message.id,
        "author": (
            {
                "name": message.author.name,
                "email": message.author.email,
                "account_id": message.author.account_id,
            }
            if message.author
            else None
        ),
        "date": message.date,
        "message": message.message,
        "revision": message.revision_number,
        "tag": message.tag,
    }


def xml_message(doc: XmlDocument, message: MessageInfo) -> None:
    """Append a message element."""
    with doc.section("message"):
        doc.element("id", message.id)
        if message.author and message.author.name:
            doc.text("author", message.author.name)
        if message.author and message.author.account_id:
            doc.element("author_id", message.author.account_id)
        doc.element("date", message.date)
        doc.element("revision", message.revision_number or None)
        doc.element("tag", message.tag)
        doc.text("message", message.message)


def is_noise(message: MessageInfo) -> bool:
    """Short automated messages about builds or patch uploads."""
    text = message.message.strip()
    return len(text) < SHORT_MESSAGE_LENGTH and ("Build" in text or "Patch" in text)


def activity_lines(messages: Iterable[MessageInfo]) -> list[str]:
    """Text rendering of review activity, noise skipped."""
    lines: list[str] = []
    for message in messages:
        if is_noise(message):
            continue
        author = message.author.name if message.author and message.author.name else "Unknown"
        lines.append(f"📅 {format_date(message.date)} - {author}")
        lines.extend(f"   {line}" for line in message.message.strip().splitlines())
        lines.append("")
    return lines


__all__ = [
    "COMMIT_MSG_LABEL",
    "RULE_WIDTH",
    "SECTION_WIDTH",
    "account_dict",
    "account_label",
    "activity_lines",
    "comment_dict",
    "comment_lines",
    "flatten_comments",
    "format_date",
    "is_noise",
    "message_dict",
    "status_indicators",
    "xml_account",
    "xml_comment",
    "xml_message",
]
