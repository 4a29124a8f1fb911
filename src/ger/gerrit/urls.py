# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit URL construction utilities.

This module provides a centralized way to construct Gerrit REST endpoint
paths and web UI URLs for a configured server. Paths returned by the
``*_path`` helpers are relative to the server root; the REST client adds
the ``/a/`` prefix for authenticated calls.

Usage:
    from ger.gerrit.urls import GerritUrlBuilder

    builder = GerritUrlBuilder("https://gerrit.example.org")
    path = builder.change_path("12345", options=["CURRENT_REVISION"])
    url = builder.change_url("releng/project", 12345)
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from ger.url_parser import normalize_gerrit_host

log = logging.getLogger("ger.gerrit.urls")


def encode_segment(value: str | int) -> str:
    """Percent-encode one path segment (slashes included)."""
    return quote(str(value), safe="")


def encode_query(query: str) -> str:
    """Encode a Gerrit search query, keeping operator colons readable."""
    return quote(query, safe=":")


def _with_params(path: str, params: list[str]) -> str:
    return f"{path}?{'&'.join(params)}" if params else path


class GerritUrlBuilder:
    """
    Builder for Gerrit URLs for one server.

    The host is kept in normalized form (scheme, optional base path, no
    trailing slash).
    """

    def __init__(self, host: str) -> None:
        """
        Initialize the URL builder for a Gerrit host.

        Args:
            host: Server URL or bare host name; normalized on entry.
        """
        self.host = normalize_gerrit_host(host)
        log.debug("GerritUrlBuilder: host=%s", self.host)

    def web_url(self, path: str = "") -> str:
        """
        Build a Gerrit web UI URL.

        Args:
            path: Web path (e.g., "c/project/+/123", "dashboard").

        Returns:
            Complete web URL.
        """
        if path:
            return f"{self.host}/{path.lstrip('/')}"
        return self.host

    def change_url(self, project: str | None, change_number: int) -> str:
        """
        Build a URL for a specific Gerrit change.

        Args:
            project: Gerrit project name (e.g., "releng/tool"); when None
                     the project-less ``/c/+/N`` form is used.
            change_number: Gerrit change number.

        Returns:
            Complete change URL.
        """
        if project:
            return self.web_url(f"c/{project}/+/{change_number}")
        return self.web_url(f"c/+/{change_number}")

    def hook_url(self) -> str:
        """URL of the server's commit-msg hook script."""
        return self.web_url("tools/hooks/commit-msg")

    def changes_query_path(
        self,
        query: str,
        options: list[str] | None = None,
        limit: int | None = None,
    ) -> str:
        """
        Build the path for querying changes.

        Args:
            query: Gerrit query string (e.g., "status:open project:foo").
            options: List of query options (e.g., ["LABELS"]).
            limit: Maximum number of results (``n=`` parameter).
        """
        params = [f"q={encode_query(query)}"]
        params.extend(f"o={opt}" for opt in options or [])
        if limit is not None:
            params.append(f"n={limit}")
        return _with_params("/changes/", params)

    def change_path(
        self,
        change_id: str | int,
        *parts: str | int,
        options: list[str] | None = None,
    ) -> str:
        """
        Build the path of a change or one of its sub-resources.

        Args:
            change_id: Change number or Change-Id.
            parts: Further path segments, each percent-encoded.
            options: Query options (e.g., ["CURRENT_REVISION"]).
        """
        segments = [encode_segment(change_id), *(encode_segment(p) for p in parts)]
        path = "/changes/" + "/".join(segments)
        return _with_params(path, [f"o={opt}" for opt in options or []])

    def revision_path(
        self, change_id: str | int, revision: str | int, *parts: str | int
    ) -> str:
        """Build the path of a revision sub-resource."""
        return self.change_path(change_id, "revisions", revision, *parts)

    def projects_path(self, pattern: str | None = None) -> str:
        """Build the project listing path."""
        params = [f"p={quote(pattern, safe='')}"] if pattern else []
        return _with_params("/projects/", params)

    def groups_path(
        self,
        *,
        owned: bool = False,
        project: str | None = None,
        user: str | None = None,
        pattern: str | None = None,
        limit: int | None = None,
    ) -> str:
        """Build the group listing path."""
        params: list[str] = []
        if owned:
            params.append("owned")
        if project:
            params.append(f"p={quote(project, safe='')}")
        if user:
            params.append(f"user={quote(user, safe='')}")
        if pattern:
            params.append(f"r={quote(pattern, safe='')}")
        if limit is not None:
            params.append(f"n={limit}")
        return _with_params("/groups/", params)

    def group_path(self, group_id: str, *parts: str) -> str:
        """Build the path of a group sub-resource."""
        path = "/groups/" + encode_segment(group_id)
        for part in parts:
            path += f"/{part}"
        return path

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"GerritUrlBuilder(host={self.host!r})"


def create_url_builder(host: str) -> GerritUrlBuilder:
    """
    Factory function to create a GerritUrlBuilder.

    Args:
        host: Gerrit server URL or host name.

    Returns:
        Configured GerritUrlBuilder instance.
    """
    return GerritUrlBuilder(host)


__all__ = [
    "GerritUrlBuilder",
    "create_url_builder",
    "encode_query",
    "encode_segment",
]
