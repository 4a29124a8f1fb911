# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Reviewer management: add-reviewer and remove-reviewer.

Every principal is processed on its own; a failure for one does not
stop the others, and the outcome is reported per principal.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ger.commands import CommandResult
from ger.errors import ValidationError
from ger.gerrit.client import GerritRestError
from ger.gerrit.models import NotifyLevel, ReviewerState
from ger.gerrit.service import GerritService
from ger.output import OutputFormat, XmlDocument, to_json

log = logging.getLogger("ger.commands.reviewers")

_MSG_CHANGE_REQUIRED = (
    "Change ID is required. Use -c <change-id> or run from a branch with an active change."
)


@dataclass(frozen=True)
class PrincipalOutcome:
    """Result for one reviewer, CC or group."""

    input: str
    success: bool
    name: str | None = None
    error: str | None = None


def parse_notify(value: str | None) -> NotifyLevel | None:
    """
    Normalize a ``--notify`` value.

    Raises:
        ValidationError: If the value is not a known level.
    """
    if value is None:
        return None
    try:
        return NotifyLevel(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid notify level: {value}. Valid values: none, owner, owner_reviewers, all"
        ) from exc


def validate_principals(
    change_id: str | None, principals: Sequence[str], group: bool = False
) -> None:
    """
    Validate reviewer input before any request is made.

    Raises:
        ValidationError: On a missing change, no principals, or email-like
            input together with ``--group``.
    """
    if not change_id:
        raise ValidationError(_MSG_CHANGE_REQUIRED)
    if not principals:
        raise ValidationError(f"At least one {'group' if group else 'reviewer'} is required.")
    if group:
        email_like = [p for p in principals if "@" in p]
        if email_like:
            raise ValidationError(
                "The --group flag expects group identifiers, but received email-like "
                f"input: {', '.join(email_like)}. Did you mean to omit --group?"
            )


def run_add_reviewer(
    service: GerritService,
    change_id: str,
    principals: Sequence[str],
    cc: bool,
    group: bool,
    notify: NotifyLevel | None,
    fmt: OutputFormat,
) -> CommandResult:
    """Add reviewers, CCs or groups to a change."""
    state = ReviewerState.CC if cc else ReviewerState.REVIEWER
    entity_type = "group" if group else "individual"
    state_label = "cc" if cc else "group" if group else "reviewer"

    outcomes: list[PrincipalOutcome] = []
    for principal in principals:
        try:
            result = service.add_reviewer(change_id, principal, state, notify)
        except GerritRestError as exc:
            log.debug("Adding %s failed: %s", principal, exc)
            outcomes.append(PrincipalOutcome(principal, False, error=str(exc)))
            continue
        if result.error:
            outcomes.append(PrincipalOutcome(principal, False, error=result.error))
            continue
        added = result.added
        name = (added.name or added.email) if added else None
        outcomes.append(PrincipalOutcome(principal, True, name=name or principal))

    all_ok = all(o.success for o in outcomes)
    exit_code = 0 if all_ok else 1

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success" if all_ok else "partial_failure",
                    "change_id": change_id,
                    "state": state.value,
                    "entity_type": entity_type,
                    "reviewers": [
                        {
                            "input": o.input,
                            "status": "added" if o.success else "failed",
                            "name": o.name,
                            "error": o.error,
                        }
                        for o in outcomes
                    ],
                }
            ),
            exit_code=exit_code,
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("add_reviewer_result")
        doc.element("change_id", change_id)
        doc.element("state", state.value)
        doc.element("entity_type", entity_type)
        with doc.section("reviewers"):
            for o in outcomes:
                with doc.section("reviewer", {"status": "added" if o.success else "failed"}):
                    doc.element("input", o.input)
                    if o.success:
                        doc.text("name", o.name)
                    else:
                        doc.text("error", o.error)
        doc.element("status", "success" if all_ok else "partial_failure")
        return CommandResult(doc.render(), exit_code=exit_code)

    lines = [
        f"✓ Added {o.name} as {state_label}" if o.success
        else f"✗ Failed to add {o.input}: {o.error}"
        for o in outcomes
    ]
    return CommandResult("\n".join(lines), exit_code=exit_code)


def run_remove_reviewer(
    service: GerritService,
    change_id: str,
    principals: Sequence[str],
    notify: NotifyLevel | None,
    fmt: OutputFormat,
) -> CommandResult:
    """Remove reviewers from a change."""
    outcomes: list[PrincipalOutcome] = []
    for principal in principals:
        try:
            service.remove_reviewer(change_id, principal, notify)
        except GerritRestError as exc:
            log.debug("Removing %s failed: %s", principal, exc)
            outcomes.append(PrincipalOutcome(principal, False, error=str(exc)))
            continue
        outcomes.append(PrincipalOutcome(principal, True, name=principal))

    all_ok = all(o.success for o in outcomes)
    exit_code = 0 if all_ok else 1

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success" if all_ok else "partial_failure",
                    "change_id": change_id,
                    "reviewers": [
                        {
                            "input": o.input,
                            "status": "removed" if o.success else "failed",
                            "error": o.error,
                        }
                        for o in outcomes
                    ],
                }
            ),
            exit_code=exit_code,
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("remove_reviewer_result")
        doc.element("change_id", change_id)
        with doc.section("reviewers"):
            for o in outcomes:
                with doc.section("reviewer", {"status": "removed" if o.success else "failed"}):
                    doc.element("input", o.input)
                    if not o.success:
                        doc.text("error", o.error)
        doc.element("status", "success" if all_ok else "partial_failure")
        return CommandResult(doc.render(), exit_code=exit_code)

    lines = [
        f"✓ Removed {o.input}" if o.success else f"✗ Failed to remove {o.input}: {o.error}"
        for o in outcomes
    ]
    return CommandResult("\n".join(lines), exit_code=exit_code)


__all__ = [
    "PrincipalOutcome",
    "parse_notify",
    "run_add_reviewer",
    "run_remove_reviewer",
    "validate_principals",
]
