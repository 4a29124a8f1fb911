# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Tests for Gerrit change URL parsing.

Covers path-routed and hash-routed URLs, base paths, multi-segment
projects, patchsets and the checkout shorthand.
"""

import pytest

from ger.url_parser import (
    UrlParseError,
    build_change_url,
    is_url,
    normalize_gerrit_host,
    parse_change_input,
    parse_change_url,
)


class TestParseChangeUrl:
    """Tests for parse_change_url."""

    def test_project_url(self):
        """Test the standard /c/project/+/N form."""
        parsed = parse_change_url("https://gerrit.example.org/c/project/+/12345")
        assert parsed.host == "gerrit.example.org"
        assert parsed.project == "project"
        assert parsed.change_number == 12345
        assert parsed.patchset is None
        assert parsed.base_path is None

    def test_nested_project_with_patchset(self):
        """Test a multi-segment project and a patchset."""
        parsed = parse_change_url("https://gerrit.example.org/c/project/name/+/12345/3")
        assert parsed.project == "project/name"
        assert parsed.change_number == 12345
        assert parsed.patchset == 3

    def test_base_path(self):
        """Test a server mounted under a base path."""
        parsed = parse_change_url("https://gerrit.example.org/infra/c/releng/+/777")
        assert parsed.base_path == "infra"
        assert parsed.project == "releng"
        assert parsed.change_id == "777"

    def test_hash_routed(self):
        """Test the legacy /#/c/ form."""
        parsed = parse_change_url("https://gerrit.example.org/#/c/project/+/12345/")
        assert parsed.project == "project"
        assert parsed.change_number == 12345

    def test_projectless(self):
        """Test the /c/+/N form without a project."""
        parsed = parse_change_url("https://gerrit.example.org/c/+/42/2")
        assert parsed.project is None
        assert parsed.change_number == 42
        assert parsed.patchset == 2

    def test_trailing_file_path(self):
        """Test that a file path after the patchset is ignored."""
        parsed = parse_change_url("https://gerrit.example.org/c/p/+/10/4/src/main.py")
        assert parsed.change_number == 10
        assert parsed.patchset == 4

    def test_host_is_lowercased(self):
        """Test host normalization."""
        assert parse_change_url("https://Gerrit.Example.ORG/c/p/+/1").host == "gerrit.example.org"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "gerrit.example.org/c/p/+/1",
            "https://gerrit.example.org/dashboard/self",
            "https://gerrit.example.org/c/p/+/0",
        ],
    )
    def test_invalid(self, url):
        """Test that unrecognized URLs raise UrlParseError."""
        with pytest.raises(UrlParseError):
            parse_change_url(url)


class TestParseChangeInput:
    """Tests for the checkout input parser."""

    def test_shorthand(self):
        """Test NUMBER/PATCHSET shorthand."""
        parsed = parse_change_input("12345/3")
        assert parsed.change_id == "12345"
        assert parsed.patchset == 3

    def test_url_with_patchset(self):
        """Test a URL naming a patchset."""
        parsed = parse_change_input("https://g.example.org/c/p/+/12345/5")
        assert parsed.change_id == "12345"
        assert parsed.patchset == 5

    def test_plain(self):
        """Test a bare number."""
        parsed = parse_change_input("12345")
        assert parsed.change_id == "12345"
        assert parsed.patchset is None


class TestHostHelpers:
    """Tests for host normalization and URL building."""

    def test_is_url(self):
        """Test URL detection."""
        assert is_url("https://x.example")
        assert is_url("http://x.example")
        assert not is_url("x.example")

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("gerrit.example.com", "https://gerrit.example.com"),
            ("http://gerrit.example.com", "http://gerrit.example.com"),
            ("https://g.example/infra/", "https://g.example/infra"),
        ],
    )
    def test_normalize_gerrit_host(self, raw, expected):
        """Test scheme defaulting and trailing slash removal."""
        assert normalize_gerrit_host(raw) == expected

    def test_build_change_url(self):
        """Test change URL construction."""
        assert (
            build_change_url("https://g.example.org/", 12, "a/b")
            == "https://g.example.org/c/a/b/+/12"
        )
        assert build_change_url("g.example.org", 12) == "https://g.example.org/c/+/12"
        assert build_change_url("g.example.org", 12, "p", 3) == "https://g.example.org/c/p/+/12/3"
