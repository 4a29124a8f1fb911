# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Prompt assembly for AI reviews."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ger.commands.changes import fetch_comments_and_messages
from ger.commands.formatting import is_noise
from ger.gerrit.models import ChangeInfo, CommentInfo, MessageInfo
from ger.gerrit.service import GerritService

log = logging.getLogger("ger.review.prompt")

COMMENT_MARKER: Final[str] = "🤖 "

DEFAULT_REVIEW_PROMPT: Final[str] = """\
Review this change as an experienced maintainer of the project.

Look for:
- Bugs, logic errors and unhandled edge cases
- Security problems such as injection or unsafe input handling
- Missing or inadequate tests for the new behaviour
- Code that is hard to read or inconsistent with the surrounding code

Be specific and constructive. Skip praise and trivial style nits.
"""

INLINE_REVIEW_SYSTEM_PROMPT: Final[str] = f"""\
You are producing INLINE review comments for a Gerrit change.

Respond with a JSON array wrapped in <response></response> tags and
nothing else inside the tags. Each element is an object with:
- "file": path of a changed file, exactly as listed under CHANGED FILES
- "line": the line number in the new version of the file, OR
- "range": {{"start_line": N, "end_line": M}} for multi-line comments
- "message": the comment text, starting with "{COMMENT_MARKER}"

Use either "line" or "range", never both. Return [] when there is
nothing worth commenting on.
"""

OVERALL_REVIEW_SYSTEM_PROMPT: Final[str] = f"""\
You are producing the OVERALL review comment for a Gerrit change.

Summarize the change, then list the most important problems you found,
most severe first. Plain text only; no markdown headings. Start the
comment with "{COMMENT_MARKER}" and wrap it in <response></response> tags.
"""


@dataclass(frozen=True)
class ReviewContext:
    """Server-side data the prompts describe."""

    change: ChangeInfo
    comments: list[CommentInfo]
    messages: list[MessageInfo]


def fetch_review_context(service: GerritService, change_id: str) -> ReviewContext:
    """Fetch the change, its comments and its messages concurrently."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        change_future = executor.submit(service.get_change, change_id)
        activity_future = executor.submit(fetch_comments_and_messages, service, change_id)
        change = change_future.result()
        comments, messages = activity_future.result()
    return ReviewContext(change=change, comments=comments, messages=messages)


def read_prompt_file(path: str) -> str | None:
    """Read a custom prompt file (``~`` expanded); None when it cannot be read."""
    expanded = Path(path).expanduser()
    try:
        return expanded.read_text(encoding="utf-8")
    except OSError as exc:
        log.warning("Could not read prompt file %s: %s", expanded, exc)
        return None


def build_prompt(
    user_prompt: str,
    system_prompt: str,
    context: ReviewContext,
    changed_files: Sequence[str],
) -> str:
    """Compose the full prompt sent to the AI tool."""
    change = context.change
    lines: list[str] = []

    if user_prompt.strip():
        lines.extend([user_prompt.strip(), ""])
    lines.extend([system_prompt.strip(), ""])

    lines.extend(
        [
            "CHANGE INFORMATION",
            "==================",
            f"Change ID: {change.change_id}",
            f"Number: {change.number}",
            f"Subject: {change.subject}",
            f"Project: {change.project}",
            f"Branch: {change.branch}",
            f"Status: {change.status.value}",
        ]
    )
    if change.owner.name:
        lines.append(f"Author: {change.owner.name}")
    lines.append("")

    if context.comments:
        lines.extend(["EXISTING COMMENTS", "================="])
        for comment in context.comments:
            author = comment.author.name if comment.author and comment.author.name else "Unknown"
            location = "General"
            if comment.path:
                location = f"{comment.path}:{comment.line}" if comment.line else comment.path
            lines.append(f"[{author}] on {location} ({comment.updated or 'Unknown date'}):")
            lines.append(f"  {comment.message}")
            if comment.unresolved:
                lines.append("  ⚠️ UNRESOLVED")
            lines.append("")

    activity = [m for m in context.messages if not is_noise(m)]
    if activity:
        lines.extend(["REVIEW ACTIVITY", "==============="])
        for message in activity:
            author = message.author.name if message.author and message.author.name else "Unknown"
            lines.append(f"[{author}] {message.date}:")
            lines.append(f"  {message.message.strip()}")
            lines.append("")

    lines.extend(["CHANGED FILES", "============="])
    lines.extend(f"- {path}" for path in changed_files)
    lines.append("")

    lines.extend(
        [
            "GIT CAPABILITIES",
            "================",
            "You are running in a git worktree with the change checked out and may use:",
            "- git diff, git show and git log to understand the change",
            "- git blame for code ownership context",
            "- Any project file for architectural context",
            "",
            "Focus on the changed files listed above, but examine related files,",
            "tests and project structure as needed.",
        ]
    )
    return "\n".join(lines)


__all__ = [
    "COMMENT_MARKER",
    "DEFAULT_REVIEW_PROMPT",
    "INLINE_REVIEW_SYSTEM_PROMPT",
    "OVERALL_REVIEW_SYSTEM_PROMPT",
    "ReviewContext",
    "build_prompt",
    "fetch_review_context",
    "read_prompt_file",
]
