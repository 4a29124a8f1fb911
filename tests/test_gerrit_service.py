# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
# ruff: noqa: S106
"""
Tests for the Gerrit service layer.

The REST client is replaced with a MagicMock so each test can assert on
the endpoint path and request body the service produced.
"""

import base64
from unittest.mock import MagicMock

import pytest

from ger.config import Credentials
from ger.errors import ValidationError
from ger.gerrit.client import GerritNotFoundError, GerritParseError
from ger.gerrit.models import (
    CommentInput,
    NotifyLevel,
    ReviewerState,
    ReviewInput,
)
from ger.gerrit.service import (
    DiffOptions,
    GerritService,
    GerritServiceError,
    GroupQuery,
    create_gerrit_service,
)
from ger.gerrit.urls import GerritUrlBuilder


def change_payload(**overrides):
    payload = {
        "id": "proj~main~I" + "a" * 40,
        "change_id": "I" + "a" * 40,
        "_number": 12345,
        "subject": "Fix the frobnicator",
        "status": "NEW",
        "project": "proj",
        "branch": "main",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client():
    """Mock REST client."""
    mock = MagicMock()
    mock.is_authenticated = True
    return mock


@pytest.fixture
def service(client):
    """Service wired to the mock client."""
    return GerritService(client, GerritUrlBuilder("https://gerrit.example.org"))


class TestChanges:
    """Tests for change queries."""

    def test_list_changes(self, service, client):
        """Test list_changes endpoint and parsing."""
        client.get.return_value = [change_payload(), change_payload(_number=2)]

        changes = service.list_changes("status:open")

        assert [c.number for c in changes] == [12345, 2]
        endpoint = client.get.call_args.args[0]
        assert endpoint.startswith("/changes/?q=status:open&o=LABELS")

    def test_get_change_validates_identifier(self, service, client):
        """Test that malformed identifiers are rejected before any request."""
        with pytest.raises(ValidationError):
            service.get_change("not a change")
        client.get.assert_not_called()

    def test_get_change_canonicalizes(self, service, client):
        """Test that the change number is canonical in the path."""
        client.get.return_value = change_payload()
        service.get_change("00012345")
        assert client.get.call_args.args[0].startswith("/changes/12345?")

    def test_get_revision_current(self, service, client):
        """Test resolving the current revision."""
        client.get.return_value = change_payload(
            current_revision="sha3",
            revisions={"sha3": {"_number": 3, "ref": "refs/changes/45/12345/3"}},
        )
        assert service.get_revision("12345").number == 3

    def test_get_revision_by_number_or_sha(self, service, client):
        """Test matching a revision by patchset number or commit SHA."""
        client.get.return_value = change_payload(
            revisions={
                "sha1": {"_number": 1, "ref": "refs/changes/45/12345/1"},
                "sha2": {"_number": 2, "ref": "refs/changes/45/12345/2"},
            }
        )
        assert service.get_revision("12345", 1).ref.endswith("/1")
        assert service.get_revision("12345", "sha2").number == 2
        assert "o=ALL_REVISIONS" in client.get.call_args.args[0]

    def test_get_revision_missing(self, service, client):
        """Test that an unknown patchset raises GerritNotFoundError."""
        client.get.return_value = change_payload(revisions={})
        with pytest.raises(GerritNotFoundError, match="Revision 9 not found"):
            service.get_revision("12345", 9)

    def test_get_messages(self, service, client):
        """Test that messages come from the MESSAGES option."""
        client.get.return_value = change_payload(
            messages=[{"id": "m1", "message": "Uploaded patch set 1.", "date": "2025-01-01 00:00:00"}]
        )
        messages = service.get_messages("12345")
        assert messages[0].id == "m1"
        assert "o=MESSAGES" in client.get.call_args.args[0]


class TestDiff:
    """Tests for the diff formats."""

    def test_files_format_hides_magic_files(self, service, client):
        """Test that /COMMIT_MSG is not listed."""
        client.get.return_value = {"/COMMIT_MSG": {}, "a.py": {"lines_inserted": 1}}
        assert service.get_diff("12345", DiffOptions(format="files")) == ["a.py"]

    def test_unified_patch(self, service, client):
        """Test that the patch is base64 decoded."""
        client.get_text.return_value = base64.b64encode(b"diff --git a/x b/x\n").decode()
        assert service.get_diff("12345").startswith("diff --git")
        assert client.get_text.call_args.args[0] == "/changes/12345/revisions/current/patch"

    def test_single_file_json(self, service, client):
        """Test a structured single-file diff."""
        client.get.return_value = {"content": [{"b": ["new"]}]}
        result = service.get_diff("12345", DiffOptions(format="json", file="src/x.py"))
        assert result == {"content": [{"b": ["new"]}]}
        assert "files/src%2Fx.py/diff" in client.get.call_args.args[0]

    def test_unknown_format(self, service):
        """Test that an unknown format is rejected."""
        with pytest.raises(GerritServiceError, match="Unknown diff format"):
            service.get_diff("12345", DiffOptions(format="html"))

    def test_bad_base64(self, service, client):
        """Test that a corrupt patch payload is a parse error."""
        client.get_text.return_value = "!!!not base64!!!"
        with pytest.raises(GerritParseError):
            service.get_patch("12345")


class TestActions:
    """Tests for write operations."""

    def test_post_review_payload(self, service, client):
        """Test the review endpoint and body."""
        client.post.return_value = {"labels": {"Code-Review": 2}}
        review = ReviewInput(
            message="LGTM",
            labels={"Code-Review": 2},
            comments={"a.py": [CommentInput(message="nit", line=4)]},
        )

        service.post_review("12345", review)

        endpoint, body = client.post.call_args.args
        assert endpoint == "/changes/12345/revisions/current/review"
        assert body == {
            "message": "LGTM",
            "labels": {"Code-Review": 2},
            "comments": {"a.py": [{"message": "nit", "line": 4}]},
        }

    def test_abandon_with_message(self, service, client):
        """Test abandon sends the optional message."""
        client.post.return_value = change_payload(status="ABANDONED")
        change = service.abandon_change("12345", "obsolete")
        assert change.status.value == "ABANDONED"
        assert client.post.call_args.args == ("/changes/12345/abandon", {"message": "obsolete"})

    def test_restore_without_message(self, service, client):
        """Test restore sends an empty body without a message."""
        client.post.return_value = change_payload()
        service.restore_change("12345")
        assert client.post.call_args.args == ("/changes/12345/restore", {})

    def test_rebase_with_base(self, service, client):
        """Test rebase onto an explicit base."""
        client.post.return_value = change_payload()
        service.rebase_change("12345", "abc123")
        assert client.post.call_args.args == (
            "/changes/12345/revisions/current/rebase",
            {"base": "abc123"},
        )

    def test_add_reviewer(self, service, client):
        """Test the reviewer body with state and notify."""
        client.post.return_value = {"input": "bob", "ccs": [{"name": "Bob"}]}
        result = service.add_reviewer("12345", "bob", ReviewerState.CC, NotifyLevel.NONE)
        assert result.added.name == "Bob"
        assert client.post.call_args.args[1] == {"reviewer": "bob", "state": "CC", "notify": "NONE"}

    def test_remove_reviewer(self, service, client):
        """Test the reviewer delete endpoint."""
        service.remove_reviewer("12345", "bob@example.org")
        assert client.post.call_args.args[0] == "/changes/12345/reviewers/bob%40example.org/delete"

    def test_topics(self, service, client):
        """Test get, set and delete topic."""
        client.get.return_value = "feature-x"
        client.put.return_value = "feature-y"
        assert service.get_topic("12345") == "feature-x"
        assert service.set_topic("12345", "feature-y") == "feature-y"
        service.delete_topic("12345")
        client.delete.assert_called_once_with("/changes/12345/topic")


class TestProjectsAndGroups:
    """Tests for project and group listings."""

    def test_list_projects_sorted(self, service, client):
        """Test that projects are named from their keys and sorted."""
        client.get.return_value = {"zeta": {"id": "zeta"}, "alpha": {"id": "alpha"}}
        assert [p.name for p in service.list_projects()] == ["alpha", "zeta"]

    def test_list_groups_from_map(self, service, client):
        """Test group listing from the name-keyed map."""
        client.get.return_value = {"devs": {"id": "uuid-1"}, "admins": {"id": "uuid-2"}}
        groups = service.list_groups(GroupQuery(owned=True))
        assert [g.name for g in groups] == ["admins", "devs"]
        assert client.get.call_args.args[0] == "/groups/?owned&n=25"

    def test_group_members(self, service, client):
        """Test member listing."""
        client.get.return_value = [{"_account_id": 1, "name": "Alice"}]
        members = service.get_group_members("devs")
        assert members[0].name == "Alice"
        assert client.get.call_args.args[0] == "/groups/devs/members/"


class TestFactory:
    """Tests for create_gerrit_service."""

    def test_create(self):
        """Test that the factory wires host and credentials."""
        service = create_gerrit_service(
            Credentials(host="https://gerrit.example.org", username="u", password="p")
        )
        assert service.host == "https://gerrit.example.org"
        assert service.client.is_authenticated
