# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
# ruff: noqa: S105, S106
"""Tests for setup, install-hook and open."""

import json
from unittest.mock import MagicMock

import pytest

from ger.commands.setup import (
    SetupAnswers,
    prompt_setup_answers,
    run_install_hook,
    run_open,
    run_setup,
)
from ger.config import ConfigError, ConfigStore, Credentials
from ger.gerrit.models import ChangeInfo
from ger.output import OutputFormat


def _response(status=200, text=""):
    response = MagicMock()
    response.status_code = status
    response.text = text
    return response


class FakePrompt:
    """Replays answers and records each prompt."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    def __call__(self, text, **kwargs):
        self.calls.append((text, kwargs))
        answer = self.answers.pop(0)
        return kwargs.get("default") if answer is None else answer


@pytest.fixture
def store(tmp_path):
    """Store writing into a temporary home."""
    return ConfigStore(path=tmp_path / ".ger" / "config.json", environ={})


@pytest.fixture
def http():
    """Transport double that accepts the credentials."""
    transport = MagicMock()
    transport.request.return_value = _response(
        200, ')]}\'\n{"_account_id": 1, "name": "Alice"}'
    )
    return transport


class TestPromptSetupAnswers:
    """Tests for the interactive prompts."""

    def test_first_run(self):
        """Test a fresh setup with a detected tool."""
        prompt = FakePrompt("https://gerrit.example.org", "alice", "s3cret", None)
        echoed = []

        answers = prompt_setup_answers(None, ["gemini", "claude"], prompt, echoed.append)

        assert answers == SetupAnswers(
            "https://gerrit.example.org", "alice", "s3cret", "claude"
        )
        assert prompt.calls[2][1]["hide_input"] is True
        assert "Detected AI tools: gemini, claude" in echoed

    def test_keeps_existing_password(self):
        """Test that an empty password keeps the stored one."""
        existing = Credentials("https://gerrit.example.org", "alice", "old", ai_tool="llm")
        prompt = FakePrompt(None, None, "", None)

        answers = prompt_setup_answers(existing, [], prompt, lambda _: None)

        assert answers.password == "old"
        assert answers.host == "https://gerrit.example.org"
        assert answers.ai_tool == "llm"
        assert "press Enter to keep existing" in prompt.calls[2][0]


class TestRunSetup:
    """Tests for run_setup."""

    def test_saves_after_verification(self, store, http):
        """Test that verified credentials are written."""
        answers = SetupAnswers("gerrit.example.org", "alice", "s3cret", "claude")

        result = run_setup(store, answers, http=http)

        assert "✓ Successfully authenticated as Alice" in result.output
        saved = json.loads(store.path.read_text())
        assert saved == {
            "host": "https://gerrit.example.org",
            "username": "alice",
            "password": "s3cret",
            "aiTool": "claude",
            "aiAutoDetect": False,
        }
        url = http.request.call_args.args[1]
        assert url == "https://gerrit.example.org/a/accounts/self"

    def test_rejected_credentials_not_saved(self, store, http):
        """Test that nothing is written when the server says 401."""
        http.request.return_value = _response(401, "Unauthorized")
        with pytest.raises(ConfigError, match="Invalid credentials"):
            run_setup(store, SetupAnswers("gerrit.example.org", "a", "b"), http=http)
        assert not store.exists()

    def test_forbidden(self, store, http):
        """Test the 403 message."""
        http.request.return_value = _response(403, "")
        with pytest.raises(ConfigError, match="Access denied"):
            run_setup(store, SetupAnswers("gerrit.example.org", "a", "b"), http=http)

    def test_invalid_host(self, store, http):
        """Test that a bad host fails before any request."""
        with pytest.raises(ConfigError, match="Invalid configuration"):
            run_setup(store, SetupAnswers("nohost", "a", "b"), http=http)
        http.request.assert_not_called()


class TestInstallHook:
    """Tests for run_install_hook."""

    def test_skips_existing(self):
        """Test the skip message without --force."""
        manager = MagicMock()
        manager.has_hook.return_value = True
        result = run_install_hook(manager, False, OutputFormat.TEXT)
        assert result.output == "commit-msg hook already installed\nUse --force to overwrite"
        manager.install_hook.assert_not_called()

    def test_force_overwrites(self):
        """Test overwriting with --force."""
        manager = MagicMock()
        manager.has_hook.return_value = True
        result = run_install_hook(manager, True, OutputFormat.TEXT)
        manager.install_hook.assert_called_once_with(force=True)
        assert result.output.startswith("Overwriting existing commit-msg hook...")

    def test_fresh_json(self):
        """Test the JSON result of a fresh install."""
        manager = MagicMock()
        manager.has_hook.return_value = False
        payload = json.loads(run_install_hook(manager, False, OutputFormat.JSON).output)
        assert payload == {
            "status": "success",
            "message": "commit-msg hook installed successfully",
        }


class TestOpen:
    """Tests for run_open."""

    def test_launches_change_url(self):
        """Test the browser is pointed at the change page."""
        service = MagicMock()
        service.host = "https://gerrit.example.org"
        service.get_change.return_value = ChangeInfo.model_validate(
            {
                "id": "x",
                "change_id": "I" + "a" * 40,
                "_number": 42,
                "subject": "s",
                "status": "NEW",
                "project": "tools/ger",
                "branch": "main",
            }
        )
        launch = MagicMock()

        result = run_open(service, "42", launch)

        launch.assert_called_once_with("https://gerrit.example.org/c/tools/ger/+/42")
        assert result.output == "Opened https://gerrit.example.org/c/tools/ger/+/42"
