# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Tests for AI tool discovery and invocation."""

import subprocess
from unittest.mock import patch

import pytest

from ger.review.strategy import (
    ReviewStrategy,
    ReviewStrategyError,
    available_strategies,
    configured_tools,
    extract_response,
    select_strategy,
)


def which_only(*names):
    """shutil.which replacement that finds only the given tools."""
    return lambda cmd: f"/usr/bin/{cmd}" if cmd in names else None


class TestConfiguredTools:
    """Tests for configured_tools."""

    def test_defaults(self):
        """Test the built-in preference order."""
        assert configured_tools({}) == ["claude", "llm", "opencode", "gemini"]

    def test_env_prepended_without_duplicates(self):
        """Test that GER_AI_TOOLS entries come first and are deduplicated."""
        assert configured_tools({"GER_AI_TOOLS": " aider, gemini ,,aider"}) == [
            "aider",
            "gemini",
            "claude",
            "llm",
            "opencode",
        ]


class TestReviewStrategy:
    """Tests for ReviewStrategy."""

    def test_argv(self):
        """Test the non-interactive flags."""
        assert ReviewStrategy.for_tool("claude").argv == ("claude", "-p")
        assert ReviewStrategy.for_tool("llm").argv == ("llm",)

    @patch("ger.review.strategy.subprocess.run")
    def test_execute(self, mock_run, tmp_path):
        """Test that the prompt goes to stdin."""
        mock_run.return_value = subprocess.CompletedProcess(["llm"], 0, stdout="ok\n", stderr="")

        assert ReviewStrategy.for_tool("llm").execute("review this", cwd=tmp_path) == "ok\n"

        kwargs = mock_run.call_args.kwargs
        assert mock_run.call_args.args[0] == ["llm"]
        assert kwargs["input"] == "review this"
        assert kwargs["cwd"] == tmp_path
        assert kwargs["timeout"] == 1800

    @patch("ger.review.strategy.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        """Test that a failing tool raises with its stderr."""
        mock_run.return_value = subprocess.CompletedProcess(
            ["llm"], 2, stdout="", stderr="rate limited\n"
        )
        with pytest.raises(ReviewStrategyError, match="llm exited with code 2: rate limited"):
            ReviewStrategy.for_tool("llm").execute("x")

    @patch("ger.review.strategy.subprocess.run")
    def test_empty_output(self, mock_run):
        """Test that a blank answer is an error."""
        mock_run.return_value = subprocess.CompletedProcess(["llm"], 0, stdout="  \n", stderr="")
        with pytest.raises(ReviewStrategyError, match="empty response"):
            ReviewStrategy.for_tool("llm").execute("x")

    @patch("ger.review.strategy.subprocess.run")
    def test_timeout(self, mock_run):
        """Test the timeout message."""
        mock_run.side_effect = subprocess.TimeoutExpired(["llm"], 1800)
        with pytest.raises(ReviewStrategyError, match="timed out after 1800s"):
            ReviewStrategy.for_tool("llm").execute("x")

    @patch("ger.review.strategy.subprocess.run")
    def test_not_installed(self, mock_run):
        """Test a missing executable."""
        mock_run.side_effect = FileNotFoundError
        with pytest.raises(ReviewStrategyError, match="gemini is not installed"):
            ReviewStrategy.for_tool("gemini").execute("x")


class TestExtractResponse:
    """Tests for extract_response."""

    def test_tags(self):
        """Test that text outside the tags is dropped."""
        output = "thinking...\n<RESPONSE>\n## Summary\nfine\n</Response>\ntrailer"
        assert extract_response(output) == "## Summary\nfine"

    def test_no_tags(self):
        """Test that untagged output is returned whole."""
        assert extract_response("  plain answer \n") == "plain answer"


class TestSelectStrategy:
    """Tests for select_strategy."""

    def test_preferred_available(self):
        """Test that the preferred tool is used when installed."""
        with patch("ger.review.strategy.shutil.which", which_only("llm", "gemini")):
            assert select_strategy("gemini", ["llm", "gemini"]).name == "gemini"

    def test_preferred_matches_substring_ignoring_case(self):
        """Test that a preference matches known tool names loosely."""
        with patch("ger.review.strategy.shutil.which", which_only("llm", "opencode")):
            assert select_strategy("Code", ["llm", "opencode"]).name == "opencode"

    def test_unknown_preference_is_not_executed(self, caplog):
        """Test that a preference outside the known tools never becomes argv."""
        with patch("ger.review.strategy.shutil.which", which_only("llm", "/opt/evil")):
            strategy = select_strategy("/opt/evil", ["llm"])
        assert strategy.argv == ("llm",)
        assert "Preferred AI tool /opt/evil not found" in caplog.text

    def test_preferred_missing_without_auto_detect(self):
        """Test that disabled discovery turns a missing preference into an error."""
        with patch("ger.review.strategy.shutil.which", which_only("llm")):
            with pytest.raises(ReviewStrategyError, match="auto-detection is disabled"):
                select_strategy("claude", ["claude", "llm"], auto_detect=False)

    def test_auto_detect_off_without_preference(self):
        """Test that discovery still runs when nothing is preferred."""
        with patch("ger.review.strategy.shutil.which", which_only("llm")):
            assert select_strategy(None, ["claude", "llm"], auto_detect=False).name == "llm"

    def test_preferred_missing_falls_back(self, caplog):
        """Test discovery when the preferred tool is absent."""
        with patch("ger.review.strategy.shutil.which", which_only("opencode")):
            strategy = select_strategy("claude", ["claude", "opencode"])
        assert strategy.name == "opencode"
        assert "Preferred AI tool claude not found" in caplog.text

    def test_discovery_order(self):
        """Test that the first available tool wins."""
        with patch("ger.review.strategy.shutil.which", which_only("gemini", "llm")):
            assert select_strategy(None, ["claude", "llm", "gemini"]).name == "llm"
            assert [s.name for s in available_strategies(["gemini", "llm"])] == [
                "gemini",
                "llm",
            ]

    def test_none_available(self):
        """Test the error listing the tools that were tried."""
        with patch("ger.review.strategy.shutil.which", which_only()):
            with pytest.raises(
                ReviewStrategyError, match="No AI tools available. Please install one of: a, b"
            ):
                select_strategy(None, ["a", "b"])
