# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Change resolver.

Turns optional user input into a canonical change identifier. In order:

1. A URL is parsed and its change number (and patchset) used.
2. Otherwise the input is classified as a change number or Change-Id.
3. Without input, the Change-Id footer of HEAD is used when inside a
   git repository.
4. Anything else fails with NoChangeIdError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final

from ger.errors import NoChangeIdError
from ger.git import GitError, GitRepository
from ger.identifiers import classify, extract_change_id_from_commit_message
from ger.url_parser import UrlParseError, is_url, parse_change_url

log = logging.getLogger("ger.resolver")

_MSG_NO_CHANGE: Final[str] = (
    "No change ID found. Provide a change number or Change-Id "
    "(e.g., -c 12345), or run from a branch whose HEAD commit has a Change-Id footer."
)


class ChangeSource(str, Enum):
    """Where a resolved identifier came from."""

    URL = "url"
    ARGUMENT = "argument"
    HEAD = "head"


@dataclass(frozen=True)
class ResolvedChange:
    """A canonical change identifier plus the patchset a URL named."""

    change_id: str
    source: ChangeSource
    patchset: int | None = None

    def __str__(self) -> str:
        return self.change_id


def resolve_change(raw: str | None, repo: GitRepository | None = None) -> ResolvedChange:
    """
    Resolve user input (or the working tree) to a change identifier.

    Args:
        raw: Identifier, URL, or None to auto-detect from HEAD.
        repo: Repository used for auto-detection.

    Raises:
        NoChangeIdError: If nothing usable was found.
    """
    value = (raw or "").strip()

    if value and is_url(value):
        try:
            parsed = parse_change_url(value)
        except UrlParseError as exc:
            raise NoChangeIdError(f"Could not extract a change from URL: {exc}") from exc
        return ResolvedChange(parsed.change_id, ChangeSource.URL, parsed.patchset)

    if value:
        identifier = classify(value)
        if identifier.is_valid:
            return ResolvedChange(identifier.value, ChangeSource.ARGUMENT)
        raise NoChangeIdError(
            f'Invalid change identifier: "{value}". Expected a change number, '
            "a Change-Id (I followed by 40 hex characters) or a change URL."
        )

    change_id = _change_id_from_head(repo or GitRepository())
    if change_id is None:
        raise NoChangeIdError(_MSG_NO_CHANGE)
    log.debug("Resolved change %s from HEAD", change_id)
    return ResolvedChange(change_id, ChangeSource.HEAD)


def _change_id_from_head(repo: GitRepository) -> str | None:
    if not repo.is_in_repo():
        return None
    try:
        message = repo.head_commit_message()
    except GitError as exc:
        log.debug("Could not read HEAD commit message: %s", exc)
        return None
    return extract_change_id_from_commit_message(message)


__all__ = [
    "ChangeSource",
    "ResolvedChange",
    "resolve_change",
]
