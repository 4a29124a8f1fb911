# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Tests for the checkout pipeline."""

from unittest.mock import MagicMock

import pytest

from ger.checkout import (
    CheckoutError,
    CheckoutOptions,
    CheckoutPlan,
    PatchsetNotFoundError,
    describe_checkout,
    perform_checkout,
    plan_checkout,
)
from ger.gerrit.client import GerritNotFoundError
from ger.gerrit.models import ChangeInfo, RevisionInfo
from ger.git import GitError, InvalidInputError

CHANGE_URL = "https://gerrit.example.org/c/tools/ger/+/12345"
SHA = "f" * 40


def make_change(**overrides):
    payload = {
        "id": "tools%2Fger~main~I" + "a" * 40,
        "change_id": "I" + "a" * 40,
        "_number": 12345,
        "subject": "Fix the frobnicator",
        "status": "NEW",
        "project": "tools/ger",
        "branch": "main",
        "current_revision": SHA,
        "revisions": {SHA: {"_number": 3, "ref": "refs/changes/45/12345/3"}},
    }
    payload.update(overrides)
    return ChangeInfo.model_validate(payload)


@pytest.fixture
def service():
    """Service double serving one change."""
    mock = MagicMock()
    mock.host = "https://gerrit.example.org"
    mock.get_change.return_value = make_change()
    mock.url_builder.change_url.return_value = CHANGE_URL
    return mock


@pytest.fixture
def repo():
    """Repository double with a matching remote."""
    mock = MagicMock()
    mock.find_matching_remote.return_value = "gerrit"
    mock.branch_exists.return_value = False
    return mock


@pytest.fixture
def plan(service, repo):
    return plan_checkout(service, repo, "12345", CheckoutOptions())


class TestPlanCheckout:
    """Tests for plan_checkout."""

    def test_current_revision(self, plan, service):
        """Test that the current patchset is used by default."""
        assert plan.ref == "refs/changes/45/12345/3"
        assert plan.remote == "gerrit"
        assert plan.branch == "review/12345"
        assert plan.upstream == "gerrit/main"
        assert plan.change_url == CHANGE_URL
        service.get_revision.assert_not_called()
        service.url_builder.change_url.assert_called_once_with("tools/ger", 12345)

    def test_explicit_patchset(self, service, repo):
        """Test NNN/M shorthand."""
        service.get_revision.return_value = RevisionInfo(number=1, ref="refs/changes/45/12345/1")
        plan = plan_checkout(service, repo, "12345/1", CheckoutOptions())
        service.get_revision.assert_called_once_with("12345", 1)
        assert plan.ref == "refs/changes/45/12345/1"

    def test_url_with_patchset(self, service, repo):
        """Test a change URL carrying a patchset."""
        service.get_revision.return_value = RevisionInfo(number=2, ref="refs/changes/45/12345/2")
        plan = plan_checkout(service, repo, f"{CHANGE_URL}/2", CheckoutOptions())
        service.get_revision.assert_called_once_with("12345", 2)
        assert plan.revision.number == 2

    def test_missing_patchset(self, service, repo):
        """Test that an unknown patchset is reported as such."""
        service.get_revision.side_effect = GerritNotFoundError("HTTP 404", status_code=404)
        with pytest.raises(PatchsetNotFoundError, match="Patchset 9 not found"):
            plan_checkout(service, repo, "12345/9", CheckoutOptions())

    def test_revision_fallback(self, service, repo):
        """Test that the current revision is fetched when not inlined."""
        service.get_change.return_value = make_change(revisions=None)
        service.get_revision.return_value = RevisionInfo(number=3, ref="refs/changes/45/12345/3")
        plan_checkout(service, repo, "12345", CheckoutOptions())
        service.get_revision.assert_called_once_with("12345", "current")

    def test_explicit_remote(self, service, repo):
        """Test that --remote overrides discovery."""
        plan = plan_checkout(service, repo, "12345", CheckoutOptions(remote="upstream"))
        assert plan.remote == "upstream"
        repo.find_matching_remote.assert_not_called()

    def test_default_remote(self, service, repo):
        """Test origin when no remote matches the host."""
        repo.find_matching_remote.return_value = None
        assert plan_checkout(service, repo, "12345", CheckoutOptions()).remote == "origin"

    def test_unsafe_remote(self, service, repo):
        """Test that an unsafe remote is rejected."""
        with pytest.raises(InvalidInputError, match="Remote name"):
            plan_checkout(service, repo, "12345", CheckoutOptions(remote="x;id"))

    def test_bad_ref_from_server(self, service, repo):
        """Test that an unexpected ref is not handed to git."""
        service.get_revision.return_value = RevisionInfo.model_construct(
            number=3, ref="refs/heads/main"
        )
        with pytest.raises(InvalidInputError, match="Invalid Gerrit ref format"):
            plan_checkout(service, repo, "12345/3", CheckoutOptions())
        repo.fetch_ref.assert_not_called()


class TestDescribeCheckout:
    """Tests for describe_checkout."""

    def test_lines(self, plan):
        """Test the summary."""
        assert describe_checkout(plan) == [
            "Checking out Gerrit change",
            "  Change: 12345 - Fix the frobnicator",
            "  Patchset: 3",
            "  Status: NEW",
            "  Branch: review/12345",
            "  Remote: gerrit",
            "",
            "Fetching refs/changes/45/12345/3...",
        ]


class TestPerformCheckout:
    """Tests for perform_checkout."""

    def test_new_branch(self, repo, plan):
        """Test creating the review branch."""
        lines = perform_checkout(repo, plan)
        repo.fetch_ref.assert_called_once_with("gerrit", "refs/changes/45/12345/3")
        repo.create_branch.assert_called_once_with("review/12345", "FETCH_HEAD")
        repo.set_upstream.assert_called_once_with("review/12345", "gerrit/main")
        assert lines == [
            "Created and checked out review/12345",
            "Tracking gerrit/main",
            "",
            f"Change URL: {CHANGE_URL}",
        ]

    def test_existing_branch(self, repo, plan):
        """Test that an existing branch is switched to and reset."""
        repo.branch_exists.return_value = True
        repo.current_branch.return_value = "main"
        lines = perform_checkout(repo, plan)
        repo.checkout.assert_called_once_with("review/12345")
        repo.reset_hard.assert_called_once_with("FETCH_HEAD")
        assert lines[0] == "Updated and checked out review/12345"

    def test_existing_branch_already_current(self, repo, plan):
        """Test that no switch happens when already on the branch."""
        repo.branch_exists.return_value = True
        repo.current_branch.return_value = "review/12345"
        perform_checkout(repo, plan)
        repo.checkout.assert_not_called()

    def test_detached(self, repo, plan):
        """Test detached mode."""
        lines = perform_checkout(repo, plan, detach=True)
        repo.checkout.assert_called_once_with("FETCH_HEAD")
        repo.create_branch.assert_not_called()
        assert lines[0] == "Checked out in detached HEAD mode"
        assert lines[-1] == f"Change URL: {CHANGE_URL}"

    def test_fetch_failure(self, repo, plan):
        """Test that a failed fetch aborts."""
        repo.fetch_ref.side_effect = GitError("couldn't find remote ref")
        with pytest.raises(CheckoutError, match="Failed to fetch change from remote"):
            perform_checkout(repo, plan)
        repo.create_branch.assert_not_called()

    def test_upstream_failure_is_a_note(self, repo, plan):
        """Test that failing to set tracking does not fail the checkout."""
        repo.set_upstream.side_effect = GitError("no such branch")
        lines = perform_checkout(repo, plan)
        assert "Note: Could not set upstream tracking to gerrit/main" in lines

    def test_unsafe_upstream_is_a_note(self, repo, plan):
        """Test that an unusable target branch name only skips tracking."""
        repo.set_upstream.side_effect = InvalidInputError("Upstream contains invalid characters")
        lines = perform_checkout(repo, plan)
        assert lines[0] == "Created and checked out review/12345"
        assert "Note: Could not set upstream tracking to gerrit/main" in lines
        assert lines[-1] == f"Change URL: {CHANGE_URL}"

    def test_plan_is_frozen(self, plan):
        """Test that the plan is immutable."""
        assert isinstance(plan, CheckoutPlan)
        with pytest.raises(AttributeError):
            plan.remote = "other"
