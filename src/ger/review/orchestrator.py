# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
AI review orchestration.

A review runs in two passes inside an ephemeral worktree holding the
change's current patchset: an inline pass that must return a JSON array of
comments, and an overall pass that returns a narrative review. Drafts are
printed; with ``--comment`` they are posted after confirmation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from ger.checkout import DEFAULT_REMOTE
from ger.gerrit.client import GerritRestError
from ger.gerrit.models import CommentInput, CommentRange, CommentSide, ReviewInput
from ger.gerrit.service import GerritService
from ger.git import GitRepository
from ger.review.prompt import (
    COMMENT_MARKER,
    DEFAULT_REVIEW_PROMPT,
    INLINE_REVIEW_SYSTEM_PROMPT,
    OVERALL_REVIEW_SYSTEM_PROMPT,
    build_prompt,
    fetch_review_context,
    read_prompt_file,
)
from ger.review.strategy import ReviewStrategy, ReviewStrategyError, extract_response
from ger.review.worktree import WorktreeManager

log = logging.getLogger("ger.review.orchestrator")

RULE = "━" * 35


class PostingError(RuntimeError):
    """Raised when posting review comments to Gerrit fails."""


class InlineComment(BaseModel):
    """One inline comment proposed by the AI tool."""

    model_config = ConfigDict(extra="allow")

    file: str
    message: str
    line: int | None = None
    range: CommentRange | None = None
    side: CommentSide | None = None

    @model_validator(mode="after")
    def _check(self) -> InlineComment:
        if not self.file.strip():
            raise ValueError("'file' must not be empty")
        if not self.message.startswith(COMMENT_MARKER):
            raise ValueError(f"'message' must start with {COMMENT_MARKER.strip()}")
        if (self.line is None) == (self.range is None):
            raise ValueError("exactly one of 'line' or 'range' is required")
        return self

    @property
    def location(self) -> str:
        if self.line is not None:
            return f"{self.file}:{self.line}"
        if self.range is not None:
            return f"{self.file}:{self.range.start_line}-{self.range.end_line}"
        return self.file

    def to_input(self) -> CommentInput:
        return CommentInput(message=self.message, line=self.line, range=self.range, side=self.side)


def parse_inline_response(text: str) -> list[Any]:
    """
    Parse the inline pass output as a JSON array.

    Raises:
        ReviewStrategyError: If the text is not a JSON array.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReviewStrategyError(f"Invalid JSON response from AI tool: {exc}") from exc
    if not isinstance(data, list):
        raise ReviewStrategyError("AI response is not an array of comments")
    return data


def repair_path(path: str, available: Sequence[str]) -> str | None:
    """
    Map a path reported by the AI tool onto a changed file.

    Exact matches win; otherwise the path must be a unique suffix of a
    changed file at a ``/`` boundary (backslashes count as ``/``).
    """
    if path in available:
        return path
    wanted = path.replace("\\", "/").lstrip("/")
    if not wanted:
        return None
    matches = []
    for candidate in available:
        normalized = candidate.replace("\\", "/")
        if normalized == wanted or normalized.endswith(f"/{wanted}"):
            matches.append(candidate)
    return matches[0] if len(matches) == 1 else None


def validate_inline_comments(
    raw: Sequence[Any],
    changed_files: Sequence[str],
    warn: Callable[[str], None] | None = None,
) -> list[InlineComment]:
    """Keep the well-formed comments, with paths repaired where possible."""
    warn = warn or log.warning
    valid: list[InlineComment] = []
    for index, item in enumerate(raw):
        try:
            comment = InlineComment.model_validate(item)
        except ValidationError as exc:
            warn(f"Skipping comment {index}: {exc.errors()[0].get('msg', 'invalid structure')}")
            continue

        fixed = repair_path(comment.file, changed_files)
        if fixed is None:
            warn(f"File not found in change or ambiguous: {comment.file}. Skipping comment.")
            continue
        if fixed != comment.file:
            log.info("Fixed file path: %s -> %s", comment.file, fixed)
            comment = comment.model_copy(update={"file": fixed})
        valid.append(comment)
    return valid


@dataclass(frozen=True)
class ReviewOptions:
    """
    Attributes:
        comment: Post the drafts to Gerrit.
        yes: Skip the confirmation prompts.
        debug: Echo raw AI output to stderr.
        prompt_file: Custom review prompt file.
        system_prompt: Replaces both built-in system prompts.
    """

    comment: bool = False
    yes: bool = False
    debug: bool = False
    prompt_file: str | None = None
    system_prompt: str | None = None


class ReviewOrchestrator:
    """
    Runs an AI review of one change.

    Args:
        service: Gerrit service for change data and posting.
        repo: The local repository the worktree is created from.
        strategy: The AI tool to run.
        options: Review options.
        worktrees: Worktree manager; defaults to one for ``repo``.
        out: Receives draft and progress lines (stdout).
        err: Receives warnings and debug output (stderr).
        confirm: Asks a yes/no question; defaults to ``typer.confirm``.
    """

    def __init__(
        self,
        service: GerritService,
        repo: GitRepository,
        strategy: ReviewStrategy,
        options: ReviewOptions,
        worktrees: WorktreeManager | None = None,
        out: Callable[[str], None] = print,
        err: Callable[[str], None] | None = None,
        confirm: Callable[[str], bool] | None = None,
    ) -> None:
        self.service = service
        self.repo = repo
        self.strategy = strategy
        self.options = options
        self.out = out
        self.err = err or log.warning
        self.worktrees = worktrees or WorktreeManager(repo, notify=out)
        self._confirm = confirm or (lambda question: typer.confirm(question, default=False))

    def _user_prompt(self) -> str:
        if not self.options.prompt_file:
            return DEFAULT_REVIEW_PROMPT
        custom = read_prompt_file(self.options.prompt_file)
        if custom is None:
            self.out(f"⚠ Could not read custom prompt file: {self.options.prompt_file}")
            self.out("→ Using default review prompt")
            return DEFAULT_REVIEW_PROMPT
        self.out(f"✓ Using custom review prompt from {self.options.prompt_file}")
        return custom

    def _ask(self, prompt: str, stage: str, cwd: Path) -> str:
        """Run one pass and return the extracted response."""
        raw = self.strategy.execute(prompt, cwd=cwd)
        if self.options.debug:
            self.err(f"[DEBUG] Raw {stage} response ({len(raw)} chars):\n{raw}")
        extracted = extract_response(raw)
        if not extracted:
            raise ReviewStrategyError(f"{self.strategy.name} returned an empty {stage} response")
        return extracted

    def run(self, change_id: str) -> None:
        """
        Review a change.

        Raises:
            NotGitRepoError: Outside a repository.
            ReviewStrategyError: If an AI pass fails.
            WorktreeCreationError, PatchsetFetchError: From the worktree.
            PostingError: If posting to Gerrit fails.
        """
        self.repo.ensure_repo()
        self.out("✓ Git repository validation passed")
        self.out(f"✓ Using AI tool: {self.strategy.name}")
        user_prompt = self._user_prompt()

        revision = self.service.get_revision(change_id, "current")
        remote = self.repo.find_matching_remote(self.service.host) or DEFAULT_REMOTE

        with self.worktrees.session(change_id, remote, revision.ref) as info:
            changed_files = self.worktrees.changed_files(info)
            self.out(f"→ Found {len(changed_files)} changed files")
            if self.options.debug:
                self.err(f"[DEBUG] Changed files: {', '.join(changed_files)}")
            context = fetch_review_context(self.service, change_id)

            self.out(f"→ Generating inline comments for change {change_id}...")
            inline_prompt = build_prompt(
                user_prompt,
                self.options.system_prompt or INLINE_REVIEW_SYSTEM_PROMPT,
                context,
                changed_files,
            )
            raw_comments = parse_inline_response(self._ask(inline_prompt, "inline", info.path))
            comments = validate_inline_comments(raw_comments, changed_files, self.err)
            if len(raw_comments) > len(comments):
                self.out(
                    f"→ Filtered {len(raw_comments) - len(comments)} invalid comments, "
                    f"{len(comments)} remain"
                )
            self.handle_inline_comments(change_id, comments)

            self.out(f"→ Generating overall review comment for change {change_id}...")
            overall_prompt = build_prompt(
                user_prompt,
                self.options.system_prompt or OVERALL_REVIEW_SYSTEM_PROMPT,
                context,
                changed_files,
            )
            self.handle_overall_review(change_id, self._ask(overall_prompt, "overall", info.path))

        self.out(f"✓ Review complete for {change_id}")

    def handle_inline_comments(self, change_id: str, comments: Sequence[InlineComment]) -> None:
        """Print the inline drafts and post them when asked to."""
        if not comments:
            self.out("")
            self.out("→ No inline comments")
            return

        title = "INLINE COMMENTS TO POST" if self.options.comment else "INLINE COMMENTS"
        self.out("")
        self.out(f"━━━━━━ {title} ━━━━━━")
        for comment in comments:
            self.out("")
            self.out(f"📍 {comment.location}")
            self.out(comment.message)
        if not self.options.comment:
            return
        self.out("")
        self.out(RULE)

        if not (self.options.yes or self._confirm("Post these inline comments to Gerrit?")):
            self.out("→ Inline comments not posted")
            return

        grouped: dict[str, list[CommentInput]] = {}
        for comment in comments:
            grouped.setdefault(comment.file, []).append(comment.to_input())
        try:
            self.service.post_review(change_id, ReviewInput(comments=grouped))
        except GerritRestError as exc:
            raise PostingError(f"Failed to post inline comments: {exc}") from exc
        self.out(f"✓ Inline comments posted for {change_id}")

    def handle_overall_review(self, change_id: str, review: str) -> None:
        """Print the overall draft and post it when asked to."""
        title = "OVERALL REVIEW TO POST" if self.options.comment else "OVERALL REVIEW"
        self.out("")
        self.out(f"━━━━━━ {title} ━━━━━━")
        self.out(review)
        self.out("")
        self.out(RULE)
        if not self.options.comment:
            return

        if not (self.options.yes or self._confirm("Post this overall review to Gerrit?")):
            self.out("→ Overall review not posted")
            return
        try:
            self.service.post_review(change_id, ReviewInput(message=review))
        except GerritRestError as exc:
            raise PostingError(f"Failed to post review comment: {exc}") from exc
        self.out(f"✓ Overall review posted for {change_id}")


__all__ = [
    "InlineComment",
    "PostingError",
    "ReviewOptions",
    "ReviewOrchestrator",
    "parse_inline_response",
    "repair_path",
    "validate_inline_comments",
]
