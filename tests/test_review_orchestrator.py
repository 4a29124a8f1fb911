# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Tests for AI review orchestration."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ger.gerrit.client import GerritRestError
from ger.gerrit.models import ChangeInfo, CommentInput, CommentRange, ReviewInput, RevisionInfo
from ger.review.orchestrator import (
    InlineComment,
    PostingError,
    ReviewOptions,
    ReviewOrchestrator,
    parse_inline_response,
    repair_path,
    validate_inline_comments,
)
from ger.review.strategy import ReviewStrategyError
from ger.review.worktree import WorktreeInfo

FILES = ["src/ger/app.py", "tests/test_app.py", "README.md"]
REF = "refs/changes/45/12345/3"

INLINE = [
    {"file": "src/ger/app.py", "line": 10, "message": "🤖 Possible None dereference."},
    {"file": "app.py", "range": {"start_line": 3, "end_line": 5}, "message": "🤖 Extract this."},
    {"file": "README.md", "line": 1, "message": "No marker here."},
]
OVERALL = "🤖 The change is small and mostly correct."


def wrap(payload):
    return f"some preamble\n<response>{payload}</response>\n"


class TestParseInlineResponse:
    """Tests for parse_inline_response."""

    def test_array(self):
        """Test a valid array."""
        assert parse_inline_response('[{"a": 1}]') == [{"a": 1}]

    def test_invalid_json(self):
        """Test malformed JSON."""
        with pytest.raises(ReviewStrategyError, match="Invalid JSON response"):
            parse_inline_response("[{")

    def test_not_array(self):
        """Test a JSON object instead of an array."""
        with pytest.raises(ReviewStrategyError, match="not an array"):
            parse_inline_response('{"file": "x"}')


class TestRepairPath:
    """Tests for repair_path."""

    def test_exact(self):
        """Test an exact match."""
        assert repair_path("README.md", FILES) == "README.md"

    def test_unique_suffix(self):
        """Test suffix repair at a directory boundary."""
        assert repair_path("ger/app.py", FILES) == "src/ger/app.py"
        assert repair_path("\\ger\\app.py", FILES) == "src/ger/app.py"

    def test_partial_segment_rejected(self):
        """Test that a suffix must start at a slash."""
        assert repair_path("r/app.py", FILES) is None

    def test_ambiguous(self):
        """Test that an ambiguous suffix is refused."""
        assert repair_path("app.py", ["a/app.py", "b/app.py"]) is None

    def test_missing(self):
        """Test an unknown file."""
        assert repair_path("nope.py", FILES) is None


class TestInlineComment:
    """Tests for InlineComment validation."""

    def test_line_xor_range(self):
        """Test that exactly one position is required."""
        with pytest.raises(ValueError, match="exactly one of 'line' or 'range'"):
            InlineComment(file="a", message="🤖 x")
        with pytest.raises(ValueError, match="exactly one of 'line' or 'range'"):
            InlineComment(
                file="a",
                message="🤖 x",
                line=1,
                range=CommentRange(start_line=1, end_line=2),
            )

    def test_location(self):
        """Test the printed location."""
        assert InlineComment(file="a.py", line=3, message="🤖 x").location == "a.py:3"
        ranged = InlineComment(
            file="a.py", range={"start_line": 1, "end_line": 4}, message="🤖 x"
        )
        assert ranged.location == "a.py:1-4"

    def test_to_input(self):
        """Test the REST payload."""
        comment = InlineComment(file="a.py", line=3, message="🤖 x")
        assert isinstance(comment.to_input(), CommentInput)
        assert comment.to_input().model_dump(exclude_none=True) == {"message": "🤖 x", "line": 3}


class TestValidateInlineComments:
    """Tests for validate_inline_comments."""

    def test_filters_and_repairs(self):
        """Test that bad comments are dropped with a warning."""
        warnings = []
        comments = validate_inline_comments(
            [*INLINE, {"file": "gone.py", "line": 1, "message": "🤖 y"}, "junk"],
            FILES,
            warnings.append,
        )
        assert [c.file for c in comments] == ["src/ger/app.py", "src/ger/app.py"]
        assert len(warnings) == 3
        assert any("gone.py" in w for w in warnings)


@pytest.fixture
def service():
    """Service double for one change."""
    mock = MagicMock()
    mock.host = "https://gerrit.example.org"
    mock.get_revision.return_value = RevisionInfo(number=3, ref=REF)
    mock.get_change.return_value = ChangeInfo.model_validate(
        {
            "id": "x",
            "change_id": "I" + "a" * 40,
            "_number": 12345,
            "subject": "Fix the frobnicator",
            "status": "NEW",
            "project": "tools/ger",
            "branch": "main",
        }
    )
    mock.get_comments.return_value = {}
    mock.get_messages.return_value = []
    return mock


@pytest.fixture
def repo():
    mock = MagicMock()
    mock.find_matching_remote.return_value = "gerrit"
    return mock


@pytest.fixture
def worktrees(tmp_path):
    """Worktree manager double yielding a fixed worktree."""
    mock = MagicMock()
    info = WorktreeInfo(path=tmp_path / "wt", change_id="12345", original_cwd=Path.cwd())
    mock.session.return_value.__enter__.return_value = info
    mock.changed_files.return_value = FILES
    return mock


@pytest.fixture
def strategy():
    mock = MagicMock()
    mock.name = "llm"
    mock.execute.side_effect = [wrap(json.dumps(INLINE)), wrap(OVERALL)]
    return mock


def make_orchestrator(service, repo, strategy, worktrees, options, confirm=None):
    out, err = [], []
    orchestrator = ReviewOrchestrator(
        service,
        repo,
        strategy,
        options,
        worktrees=worktrees,
        out=out.append,
        err=err.append,
        confirm=confirm or MagicMock(return_value=True),
    )
    return orchestrator, out, err


class TestReviewOrchestrator:
    """Tests for ReviewOrchestrator.run."""

    def test_print_only(self, service, repo, strategy, worktrees):
        """Test that drafts are printed and nothing is posted."""
        orchestrator, out, err = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions()
        )

        orchestrator.run("12345")

        worktrees.session.assert_called_once_with("12345", "gerrit", REF)
        assert "━━━━━━ INLINE COMMENTS ━━━━━━" in out
        assert "📍 src/ger/app.py:10" in out
        assert "📍 src/ger/app.py:3-5" in out
        assert "→ Filtered 1 invalid comments, 2 remain" in out
        assert "━━━━━━ OVERALL REVIEW ━━━━━━" in out
        assert OVERALL in out
        assert out[-1] == "✓ Review complete for 12345"
        service.post_review.assert_not_called()
        assert len(err) == 1

    def test_prompts_run_in_worktree(self, service, repo, strategy, worktrees, tmp_path):
        """Test that both passes run inside the worktree with their system prompts."""
        orchestrator, _, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions()
        )
        orchestrator.run("12345")

        inline_call, overall_call = strategy.execute.call_args_list
        assert inline_call.kwargs["cwd"] == tmp_path / "wt"
        assert "INLINE review comments" in inline_call.args[0]
        assert "OVERALL review comment" in overall_call.args[0]
        assert "- src/ger/app.py" in inline_call.args[0]

    def test_post_with_yes(self, service, repo, strategy, worktrees):
        """Test posting inline comments grouped by file, then the overall review."""
        confirm = MagicMock()
        orchestrator, out, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions(comment=True, yes=True), confirm
        )

        orchestrator.run("12345")

        confirm.assert_not_called()
        inline_review, overall_review = [c.args[1] for c in service.post_review.call_args_list]
        assert list(inline_review.comments) == ["src/ger/app.py"]
        assert len(inline_review.comments["src/ger/app.py"]) == 2
        assert overall_review == ReviewInput(message=OVERALL)
        assert "━━━━━━ INLINE COMMENTS TO POST ━━━━━━" in out
        assert "✓ Overall review posted for 12345" in out

    def test_declined(self, service, repo, strategy, worktrees):
        """Test that declining the prompts posts nothing."""
        orchestrator, out, _ = make_orchestrator(
            service,
            repo,
            strategy,
            worktrees,
            ReviewOptions(comment=True),
            MagicMock(return_value=False),
        )
        orchestrator.run("12345")
        service.post_review.assert_not_called()
        assert "→ Inline comments not posted" in out
        assert "→ Overall review not posted" in out

    def test_posting_failure(self, service, repo, strategy, worktrees):
        """Test that a REST failure while posting becomes PostingError."""
        service.post_review.side_effect = GerritRestError("HTTP 500", status_code=500)
        orchestrator, _, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions(comment=True, yes=True)
        )
        with pytest.raises(PostingError, match="Failed to post inline comments"):
            orchestrator.run("12345")
        worktrees.session.return_value.__exit__.assert_called_once()

    def test_tool_failure_propagates(self, service, repo, strategy, worktrees):
        """Test that a tool failure aborts the review."""
        strategy.execute.side_effect = ReviewStrategyError("llm exited with code 1: boom")
        orchestrator, _, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions()
        )
        with pytest.raises(ReviewStrategyError, match="boom"):
            orchestrator.run("12345")

    def test_empty_extracted_response(self, service, repo, strategy, worktrees):
        """Test that empty response tags are an error."""
        strategy.execute.side_effect = ["<response>  </response>"]
        orchestrator, _, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions()
        )
        with pytest.raises(ReviewStrategyError, match="empty inline response"):
            orchestrator.run("12345")

    def test_debug_output(self, service, repo, strategy, worktrees):
        """Test that --debug echoes raw output to stderr."""
        orchestrator, _, err = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions(debug=True)
        )
        orchestrator.run("12345")
        assert any(line.startswith("[DEBUG] Raw inline response") for line in err)
        assert any(line.startswith("[DEBUG] Changed files:") for line in err)

    def test_custom_prompt_file(self, service, repo, strategy, worktrees, tmp_path):
        """Test that a custom prompt file replaces the default review prompt."""
        prompt_file = tmp_path / "prompt.md"
        prompt_file.write_text("Only check licensing.")
        orchestrator, out, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions(prompt_file=str(prompt_file))
        )
        orchestrator.run("12345")
        assert f"✓ Using custom review prompt from {prompt_file}" in out
        assert strategy.execute.call_args_list[0].args[0].startswith("Only check licensing.")

    def test_no_inline_comments(self, service, repo, strategy, worktrees):
        """Test an empty inline array."""
        strategy.execute.side_effect = [wrap("[]"), wrap(OVERALL)]
        orchestrator, out, _ = make_orchestrator(
            service, repo, strategy, worktrees, ReviewOptions(comment=True, yes=True)
        )
        orchestrator.run("12345")
        assert "→ No inline comments" in out
        service.post_review.assert_called_once_with("12345", ReviewInput(message=OVERALL))
