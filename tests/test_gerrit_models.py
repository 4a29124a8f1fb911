# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Tests for Gerrit data models.

This module tests schema validation of REST responses, the posting
shapes and the helpers on ChangeInfo and FileDiff.
"""

import pytest

from ger.gerrit.client import GerritParseError
from ger.gerrit.models import (
    AccountInfo,
    AddReviewerResult,
    ChangeInfo,
    ChangeStatus,
    CommentInput,
    CommentRange,
    FileDiff,
    ReviewInput,
    RevisionInfo,
)


def change_payload(**overrides):
    payload = {
        "id": "proj~main~I" + "a" * 40,
        "change_id": "I" + "a" * 40,
        "_number": 12345,
        "subject": "Fix the frobnicator",
        "status": "NEW",
        "project": "proj",
        "branch": "main",
        "owner": {"_account_id": 1000, "name": "Alice", "email": "alice@example.org"},
    }
    payload.update(overrides)
    return payload


class TestChangeInfo:
    """Tests for ChangeInfo parsing and helpers."""

    def test_parse(self):
        """Test parsing a minimal change with wire aliases."""
        change = ChangeInfo.from_api_response(change_payload())
        assert change.number == 12345
        assert change.status == ChangeStatus.NEW
        assert change.owner.display_name == "Alice"

    def test_unknown_fields_ignored(self):
        """Test that extra server fields do not break parsing."""
        change = ChangeInfo.from_api_response(change_payload(mergeable=True, _more_changes=True))
        assert change.subject == "Fix the frobnicator"

    def test_invalid_status(self):
        """Test that an unknown status is a parse error naming the endpoint."""
        with pytest.raises(GerritParseError, match="/changes/12345"):
            ChangeInfo.from_api_response(change_payload(status="DRAFT"), "/changes/12345")

    def test_missing_required_field(self):
        """Test that a missing subject is rejected."""
        payload = change_payload()
        del payload["subject"]
        with pytest.raises(GerritParseError, match="subject"):
            ChangeInfo.from_api_response(payload)

    def test_list_requires_array(self):
        """Test that list parsing rejects a non-array."""
        with pytest.raises(GerritParseError, match="expected a JSON array"):
            ChangeInfo.list_from_api_response({"not": "a list"}, "/changes/")

    def test_current_revision_info(self):
        """Test access to the current revision."""
        change = ChangeInfo.from_api_response(
            change_payload(
                current_revision="abc",
                revisions={"abc": {"_number": 3, "ref": "refs/changes/45/12345/3"}},
            )
        )
        assert change.current_revision_info.number == 3

    def test_reviewers_and_labels(self):
        """Test reviewer and label helpers."""
        change = ChangeInfo.from_api_response(
            change_payload(
                reviewers={"REVIEWER": [{"_account_id": 7}], "CC": []},
                labels={"Code-Review": {"approved": {"_account_id": 7}}, "Verified": {}},
            )
        )
        assert len(change.reviewers_in("REVIEWER")) == 1
        assert change.reviewers_in("REMOVED") == []
        assert change.label_approved("Code-Review")
        assert not change.label_approved("Verified")


class TestRevisionInfo:
    """Tests for revision ref validation."""

    def test_valid_ref(self):
        """Test a well-formed change ref."""
        revision = RevisionInfo.from_api_response({"_number": 2, "ref": "refs/changes/45/12345/2"})
        assert revision.ref.endswith("/2")

    def test_invalid_ref(self):
        """Test that a non-change ref is rejected."""
        with pytest.raises(GerritParseError, match="invalid change ref"):
            RevisionInfo.from_api_response({"_number": 2, "ref": "refs/heads/main"})


class TestAccountInfo:
    """Tests for AccountInfo."""

    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ({"name": "Bob", "email": "b@x.org"}, "Bob"),
            ({"email": "b@x.org"}, "b@x.org"),
            ({"username": "bob"}, "bob"),
            ({"_account_id": 42}, "42"),
            ({}, "Unknown"),
        ],
    )
    def test_display_name(self, data, expected):
        """Test display name fallbacks."""
        assert AccountInfo.model_validate(data).display_name == expected


class TestPostingShapes:
    """Tests for review and comment inputs."""

    def test_comment_needs_line_or_range(self):
        """Test that a comment needs exactly one location."""
        with pytest.raises(ValueError):
            CommentInput(message="x")
        with pytest.raises(ValueError):
            CommentInput(message="x", line=1, range=CommentRange(start_line=1, end_line=2))

    def test_review_payload_drops_none(self):
        """Test that absent fields are not serialized."""
        review = ReviewInput(
            labels={"Code-Review": 1},
            comments={"a.py": [CommentInput(message="nit", line=3, unresolved=True)]},
        )
        assert review.to_payload() == {
            "labels": {"Code-Review": 1},
            "comments": {"a.py": [{"message": "nit", "line": 3, "unresolved": True}]},
        }


class TestFileDiff:
    """Tests for FileDiff.to_unified."""

    def test_to_unified(self):
        """Test rendering of common, removed and added sections."""
        diff = FileDiff.model_validate(
            {
                "diff_header": ["--- a/x.py", "+++ b/x.py"],
                "content": [{"ab": ["same"]}, {"a": ["old"], "b": ["new"]}],
            }
        )
        assert diff.to_unified("x.py") == "--- a/x.py\n+++ b/x.py\n same\n-old\n+new"

    def test_default_header(self):
        """Test the header used when the server sends none."""
        assert FileDiff().to_unified("y.py") == "--- a/y.py\n+++ b/y.py"


class TestAddReviewerResult:
    """Tests for AddReviewerResult."""

    def test_added_prefers_reviewers(self):
        """Test the added account lookup."""
        result = AddReviewerResult.model_validate(
            {"input": "bob", "ccs": [{"name": "Bob"}]}
        )
        assert result.added.name == "Bob"
        assert AddReviewerResult.model_validate({"error": "nope"}).added is None
