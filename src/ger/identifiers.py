# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Change identifier classification.

Gerrit accepts two user-facing identifiers for a change:

    392385                                      (numeric change number)
    If5a3ae8cb5a107e187447802358417f311d0c4b1   (Change-Id trailer value)

Everything in this module is a pure function over strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Final

from ger.errors import ValidationError

CHANGE_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^I[0-9a-f]{40}$")
CHANGE_NUMBER_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\d+$")

# Footer form written by the commit-msg hook
CHANGE_ID_FOOTER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^Change-Id:\s*(I[0-9a-f]{40})\s*$", re.IGNORECASE | re.MULTILINE
)


class IdentifierKind(str, Enum):
    """Classification result for a change identifier."""

    NUMBER = "change-number"
    CHANGE_ID = "change-id"
    INVALID = "invalid"


@dataclass(frozen=True)
class ChangeIdentifier:
    """
    A classified change identifier.

    Attributes:
        kind: The identifier classification.
        value: The canonical text. Numbers carry no leading zeros.
    """

    kind: IdentifierKind
    value: str

    @property
    def is_valid(self) -> bool:
        """Check if the identifier can be sent to Gerrit."""
        return self.kind != IdentifierKind.INVALID

    @property
    def number(self) -> int | None:
        """The change number, when this identifier is numeric."""
        if self.kind == IdentifierKind.NUMBER:
            return int(self.value)
        return None

    def __str__(self) -> str:
        return self.value


def canonicalize(value: str) -> str:
    """
    Return the canonical text of an identifier.

    Whitespace is trimmed and numeric identifiers lose leading zeros.
    Anything else is returned trimmed but otherwise untouched, so the
    function is idempotent for every input.
    """
    trimmed = value.strip()
    if CHANGE_NUMBER_PATTERN.match(trimmed) and int(trimmed) > 0:
        return str(int(trimmed))
    return trimmed


def classify(value: str) -> ChangeIdentifier:
    """
    Classify a raw identifier.

    Rules, evaluated in order: empty is invalid; positive integers are
    change numbers; ``I`` followed by 40 lowercase hex characters is a
    Change-Id; anything else is invalid.
    """
    canonical = canonicalize(value)
    if not canonical:
        return ChangeIdentifier(IdentifierKind.INVALID, canonical)
    if CHANGE_NUMBER_PATTERN.match(canonical) and int(canonical) > 0:
        return ChangeIdentifier(IdentifierKind.NUMBER, canonical)
    if CHANGE_ID_PATTERN.match(canonical):
        return ChangeIdentifier(IdentifierKind.CHANGE_ID, canonical)
    return ChangeIdentifier(IdentifierKind.INVALID, canonical)


def is_change_id(value: str) -> bool:
    """Check whether a string is a Gerrit Change-Id."""
    return bool(CHANGE_ID_PATTERN.match(value))


def normalize_change_identifier(value: str) -> str:
    """
    Validate an identifier and return its canonical form.

    Raises:
        ValidationError: If the value is neither a change number nor a
            Change-Id.
    """
    identifier = classify(value)
    if not identifier.is_valid:
        raise ValidationError(
            f'Invalid change identifier: "{value}". Expected either a numeric '
            'change number (e.g., "392385") or a Change-ID starting with "I" '
            '(e.g., "If5a3ae8cb5a107e187447802358417f311d0c4b1")'
        )
    return identifier.value


def extract_change_id_from_commit_message(message: str) -> str | None:
    """
    Extract the Change-Id footer from a commit message.

    Only a ``Change-Id:`` line at the start of a line counts; the first
    such line wins. Matching is case-insensitive and tolerates CRLF.
    """
    match = CHANGE_ID_FOOTER_PATTERN.search(message)
    return match.group(1) if match else None


__all__ = [
    "CHANGE_ID_FOOTER_PATTERN",
    "CHANGE_ID_PATTERN",
    "ChangeIdentifier",
    "IdentifierKind",
    "canonicalize",
    "classify",
    "extract_change_id_from_commit_message",
    "is_change_id",
    "normalize_change_identifier",
]
