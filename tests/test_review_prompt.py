# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Tests for AI review prompt assembly."""

from unittest.mock import MagicMock

from ger.gerrit.models import ChangeInfo, CommentInfo, MessageInfo
from ger.review.prompt import (
    COMMENT_MARKER,
    INLINE_REVIEW_SYSTEM_PROMPT,
    OVERALL_REVIEW_SYSTEM_PROMPT,
    ReviewContext,
    build_prompt,
    fetch_review_context,
    read_prompt_file,
)

CHANGE = ChangeInfo.model_validate(
    {
        "id": "tools%2Fger~main~I" + "a" * 40,
        "change_id": "I" + "a" * 40,
        "_number": 12345,
        "subject": "Fix the frobnicator",
        "status": "NEW",
        "project": "tools/ger",
        "branch": "main",
        "owner": {"_account_id": 1, "name": "Alice"},
    }
)


def context(comments=(), messages=()):
    return ReviewContext(change=CHANGE, comments=list(comments), messages=list(messages))


class TestSystemPrompts:
    """Tests for the built-in prompts."""

    def test_marker_required(self):
        """Test that both prompts ask for the comment marker."""
        assert f'"{COMMENT_MARKER}"' in INLINE_REVIEW_SYSTEM_PROMPT
        assert f'"{COMMENT_MARKER}"' in OVERALL_REVIEW_SYSTEM_PROMPT
        assert "<response></response>" in INLINE_REVIEW_SYSTEM_PROMPT


class TestBuildPrompt:
    """Tests for build_prompt."""

    def test_sections_in_order(self):
        """Test the prompt layout."""
        prompt = build_prompt("Be strict.", "SYSTEM", context(), ["src/app.py", "README"])

        assert prompt.startswith("Be strict.\n\nSYSTEM\n\nCHANGE INFORMATION")
        assert "Number: 12345" in prompt
        assert "Author: Alice" in prompt
        assert "CHANGED FILES\n=============\n- src/app.py\n- README" in prompt
        assert prompt.index("CHANGED FILES") < prompt.index("GIT CAPABILITIES")
        assert "EXISTING COMMENTS" not in prompt
        assert "REVIEW ACTIVITY" not in prompt

    def test_empty_user_prompt(self):
        """Test that a blank user prompt is left out."""
        assert build_prompt("  ", "SYSTEM", context(), []).startswith("SYSTEM\n")

    def test_comments_and_activity(self):
        """Test existing comments and filtered review activity."""
        comments = [
            CommentInfo(
                id="c1",
                path="src/app.py",
                line=10,
                message="Off by one?",
                unresolved=True,
                updated="2024-01-01",
                author={"_account_id": 2, "name": "Bob"},
            )
        ]
        messages = [
            MessageInfo(id="m1", message="Build OK", date="2024-01-01"),
            MessageInfo(
                id="m2",
                message="Patch Set 1: Code-Review-1\n\nPlease add tests.",
                date="2024-01-02",
                author={"_account_id": 2, "name": "Bob"},
            ),
        ]

        prompt = build_prompt("", "SYSTEM", context(comments, messages), ["src/app.py"])

        assert "[Bob] on src/app.py:10 (2024-01-01):\n  Off by one?\n  ⚠️ UNRESOLVED" in prompt
        assert "[Bob] 2024-01-02:" in prompt
        assert "Build OK" not in prompt


class TestFetchReviewContext:
    """Tests for fetch_review_context."""

    def test_fetches_everything(self):
        """Test that change, comments and messages are collected."""
        service = MagicMock()
        service.get_change.return_value = CHANGE
        service.get_comments.return_value = {}
        service.get_messages.return_value = [
            MessageInfo(id="m1", message="Looks good to me", date="2024-01-01")
        ]

        result = fetch_review_context(service, "12345")

        assert result.change is CHANGE
        assert result.comments == []
        assert [m.id for m in result.messages] == ["m1"]


class TestReadPromptFile:
    """Tests for read_prompt_file."""

    def test_reads(self, tmp_path):
        """Test a readable file."""
        path = tmp_path / "prompt.md"
        path.write_text("Focus on security.")
        assert read_prompt_file(str(path)) == "Focus on security."

    def test_missing(self, tmp_path, caplog):
        """Test that a missing file warns and returns None."""
        assert read_prompt_file(str(tmp_path / "nope.md")) is None
        assert "Could not read prompt file" in caplog.text
