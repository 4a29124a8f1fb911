# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
URL extraction from change messages and inline comments.

URLs are filtered by a case-insensitive substring or, with ``--regex``,
by a user supplied pattern. Patterns are screened for nested quantifiers
before they are compiled, so a hostile pattern cannot stall the process.
"""

from __future__ import annotations

import logging
import re
from typing import Final

from ger.commands import CommandResult
from ger.commands.changes import fetch_comments_and_messages
from ger.errors import RegexValidationError, ValidationError
from ger.gerrit.service import GerritService
from ger.output import OutputFormat, XmlDocument, to_json

log = logging.getLogger("ger.commands.extract_url")

URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")
MAX_PATTERN_LENGTH: Final[int] = 500

_NESTED_QUANTIFIER: Final[re.Pattern[str]] = re.compile(r"\([^)]*[+*][^)]*\)[+*?]")
_STACKED_CLASS_QUANTIFIER: Final[re.Pattern[str]] = re.compile(r"\[[^\]]*\][+*]{2,}")


def compile_safe_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile a user pattern after screening it for catastrophic backtracking.

    Raises:
        RegexValidationError: If the pattern is too long, has nested
            quantifiers, or does not compile.
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        raise RegexValidationError(
            f"Pattern is too long (max {MAX_PATTERN_LENGTH} characters)"
        )
    if _NESTED_QUANTIFIER.search(pattern) or _STACKED_CLASS_QUANTIFIER.search(pattern):
        raise RegexValidationError(
            "Pattern contains potentially dangerous nested quantifiers "
            "that could cause performance issues"
        )
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise RegexValidationError(f"Invalid regular expression: {exc}") from exc


def validate_pattern(pattern: str, use_regex: bool) -> re.Pattern[str] | None:
    """
    Validate the filter before any request is made.

    Returns:
        The compiled pattern in regex mode, None for substring mode.
    """
    if not pattern:
        raise ValidationError("Pattern cannot be empty")
    if use_regex:
        return compile_safe_pattern(pattern)
    if len(pattern) > MAX_PATTERN_LENGTH:
        raise ValidationError(f"Pattern is too long (max {MAX_PATTERN_LENGTH} characters)")
    return None


def extract_urls(text: str, pattern: str, compiled: re.Pattern[str] | None) -> list[str]:
    """Find URLs in text that match the filter, in order of appearance."""
    urls = URL_PATTERN.findall(text)
    if compiled is not None:
        return [url for url in urls if compiled.search(url)]
    needle = pattern.lower()
    return [url for url in urls if needle in url.lower()]


def run_extract_url(
    service: GerritService,
    change_id: str,
    pattern: str,
    compiled: re.Pattern[str] | None,
    include_comments: bool,
    fmt: OutputFormat,
) -> CommandResult:
    """Extract matching URLs from a change, oldest first."""
    comments, messages = fetch_comments_and_messages(service, change_id)

    urls: list[str] = []
    for message in messages:
        urls.extend(extract_urls(message.message, pattern, compiled))
    if include_comments:
        for comment in comments:
            urls.extend(extract_urls(comment.message, pattern, compiled))
    log.debug("Found %d matching URLs on %s", len(urls), change_id)

    if fmt == OutputFormat.JSON:
        return CommandResult(to_json({"status": "success", "urls": urls}))
    if fmt == OutputFormat.XML:
        doc = XmlDocument("extract_url_result")
        doc.element("status", "success")
        with doc.section("urls"):
            doc.element("count", len(urls))
            for url in urls:
                doc.element("url", url)
        return CommandResult(doc.render())
    return CommandResult("\n".join(urls))


__all__ = [
    "MAX_PATTERN_LENGTH",
    "URL_PATTERN",
    "compile_safe_pattern",
    "extract_urls",
    "run_extract_url",
    "validate_pattern",
]
