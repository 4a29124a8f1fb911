# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
URL detection and parsing for Gerrit changes.

This module extracts change numbers (and optional patchsets) from the
URLs users copy out of the Gerrit web UI, and normalizes the configured
server host.

Supported URL formats:

    https://gerrit.example.org/c/project/+/12345
    https://gerrit.example.org/c/project/name/+/12345/3
    https://gerrit.example.org/infra/c/project/+/12345
    https://gerrit.example.org/#/c/project/+/12345/
    https://gerrit.example.org/c/+/12345
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final
from urllib.parse import urlparse

# optional base path, /c/, project path, /+/, number, optional patchset
_PROJECT_CHANGE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:/([^/]+))?/c/(.+)/\+/(\d+)(?:/(\d+))?(?:/.*)?$"
)
_SIMPLE_CHANGE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:/([^/]+))?/c/\+/(\d+)(?:/(\d+))?(?:/.*)?$"
)
_SHORTHAND_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d+)/(\d+)$")


class UrlParseError(ValueError):
    """Raised when a URL cannot be parsed as a valid change URL."""


@dataclass(frozen=True)
class ParsedChangeUrl:
    """
    Parsed Gerrit change URL.

    Attributes:
        host: The hostname of the server.
        base_path: The base path in front of ``/c/`` (e.g., "infra"), if any.
        project: The project path, or None for the ``/c/+/N`` form.
        change_number: The change number.
        patchset: The patchset number, when the URL names one.
        original_url: The original URL that was parsed.
    """

    host: str
    base_path: str | None
    project: str | None
    change_number: int
    patchset: int | None
    original_url: str

    @property
    def change_id(self) -> str:
        """The change number as an identifier string."""
        return str(self.change_number)


@dataclass(frozen=True)
class ChangeInput:
    """A change reference with an optional patchset, as typed by a user."""

    change_id: str
    patchset: int | None = None


def is_url(value: str) -> bool:
    """Check if a value looks like an HTTP(S) URL."""
    return value.strip().startswith(("http://", "https://"))


def parse_change_url(url: str) -> ParsedChangeUrl:
    """
    Parse a Gerrit change URL.

    Both path-routed and hash-routed (``/#/c/...``) URLs are accepted.

    Raises:
        UrlParseError: If the URL format is not recognized.
    """
    url = url.strip()
    if not url:
        raise UrlParseError("URL cannot be empty")
    if not is_url(url):
        raise UrlParseError(f"Not an HTTP(S) URL: {url}")

    parsed = urlparse(url)
    if not parsed.netloc:
        raise UrlParseError("URL must include a hostname")

    host = parsed.netloc.lower()
    candidates = [parsed.path.rstrip("/")]
    if parsed.fragment:
        candidates.append("/" + parsed.fragment.strip("/"))

    for path in candidates:
        match = _PROJECT_CHANGE_PATTERN.match(path)
        if match:
            base_path, project, number, patchset = match.groups()
            return _build(host, base_path, project, number, patchset, url)
        match = _SIMPLE_CHANGE_PATTERN.match(path)
        if match:
            base_path, number, patchset = match.groups()
            return _build(host, base_path, None, number, patchset, url)

    raise UrlParseError(
        f"Invalid Gerrit change URL format. Expected: "
        f"https://{host}/c/project/+/12345"
    )


def _build(
    host: str,
    base_path: str | None,
    project: str | None,
    number: str,
    patchset: str | None,
    original_url: str,
) -> ParsedChangeUrl:
    change_number = int(number)
    if change_number <= 0:
        raise UrlParseError("Gerrit change number must be positive")
    return ParsedChangeUrl(
        host=host,
        base_path=base_path or None,
        project=project,
        change_number=change_number,
        patchset=int(patchset) if patchset else None,
        original_url=original_url,
    )


def parse_change_input(value: str) -> ChangeInput:
    """
    Parse a checkout style input: URL, ``NNN/M`` shorthand or identifier.
    """
    trimmed = value.strip()
    if is_url(trimmed):
        try:
            parsed = parse_change_url(trimmed)
        except UrlParseError:
            return ChangeInput(change_id=trimmed)
        return ChangeInput(change_id=parsed.change_id, patchset=parsed.patchset)

    match = _SHORTHAND_PATTERN.match(trimmed)
    if match:
        return ChangeInput(change_id=match.group(1), patchset=int(match.group(2)))

    return ChangeInput(change_id=trimmed)


def normalize_gerrit_host(host: str) -> str:
    """
    Normalize a Gerrit host URL.

    Adds ``https://`` when no scheme is given and strips one trailing
    slash. An embedded base path is preserved.

    Examples:
        gerrit.example.com        -> https://gerrit.example.com
        http://gerrit.example.com -> http://gerrit.example.com
        https://g.example/infra/  -> https://g.example/infra
    """
    normalized = host.strip()
    if not is_url(normalized):
        normalized = f"https://{normalized}"
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def build_change_url(
    host: str,
    change_number: int,
    project: str | None = None,
    patchset: int | None = None,
) -> str:
    """Build the web URL of a change (optionally of one patchset)."""
    base = normalize_gerrit_host(host)
    url = f"{base}/c/{project}/+/{change_number}" if project else f"{base}/c/+/{change_number}"
    if patchset is not None:
        url += f"/{patchset}"
    return url


__all__ = [
    "ChangeInput",
    "ParsedChangeUrl",
    "UrlParseError",
    "build_change_url",
    "is_url",
    "normalize_gerrit_host",
    "parse_change_input",
    "parse_change_url",
]
