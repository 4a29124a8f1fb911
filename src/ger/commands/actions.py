# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Write commands on a single change: vote, submit, abandon, restore,
rebase and topic.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Final

from ger.commands import CommandResult
from ger.errors import ValidationError
from ger.gerrit.models import ChangeInfo, ChangeStatus, ReviewInput
from ger.gerrit.service import GerritService
from ger.output import OutputFormat, XmlDocument, to_json

log = logging.getLogger("ger.commands.actions")

CODE_REVIEW: Final[str] = "Code-Review"
VERIFIED: Final[str] = "Verified"


# -- vote -----------------------------------------------------------------


def build_labels(
    code_review: int | None,
    verified: int | None,
    custom: Sequence[str] | None,
) -> dict[str, int]:
    """
    Collect votes from the label options.

    ``custom`` is a flat list of name/value pairs.

    Raises:
        ValidationError: On odd pairs, non-integer values or no labels.
    """
    labels: dict[str, int] = {}
    if code_review is not None:
        labels[CODE_REVIEW] = code_review
    if verified is not None:
        labels[VERIFIED] = verified

    pairs = list(custom or [])
    if len(pairs) % 2 != 0:
        raise ValidationError(
            "Invalid label format: labels must be provided as name-value pairs"
        )
    for name, value in zip(pairs[::2], pairs[1::2]):
        try:
            labels[name] = int(value)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid label value for {name}: {value}. Label values must be integers"
            ) from exc

    if not labels:
        raise ValidationError("At least one label is required")
    return labels


def run_vote(
    service: GerritService,
    change_id: str,
    labels: dict[str, int],
    message: str | None,
    fmt: OutputFormat,
) -> CommandResult:
    """Cast votes, optionally with a message."""
    service.post_review(change_id, ReviewInput(labels=labels, message=message or None))

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "change_id": change_id,
                    "labels": labels,
                    "message": message or None,
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("vote_result")
        doc.element("status", "success")
        doc.element("change_id", change_id)
        with doc.section("labels"):
            for name, value in labels.items():
                doc.element("label", value, attrs={"name": name})
        if message:
            doc.text("message", message)
        return CommandResult(doc.render())

    lines = [f"✓ Voted on change {change_id}"]
    lines.extend(f"  {name}: {value:+d}" for name, value in labels.items())
    if message:
        lines.append(f"  Message: {message}")
    return CommandResult("\n".join(lines))


# -- submit ---------------------------------------------------------------


def submit_blockers(change: ChangeInfo) -> list[str]:
    """
    Reasons a change cannot be submitted.

    Empty unless the server reports ``submittable`` as false.
    """
    if change.submittable is not False:
        return []
    reasons: list[str] = []
    if change.status != ChangeStatus.NEW:
        reasons.append(f"Change status is {change.status.value} (must be NEW)")
    if change.work_in_progress:
        reasons.append("Change is marked as work-in-progress")
    labels = change.labels or {}
    if CODE_REVIEW in labels and not change.label_approved(CODE_REVIEW):
        reasons.append("Missing Code-Review+2 approval")
    if VERIFIED in labels and not change.label_approved(VERIFIED):
        reasons.append("Missing Verified+1 approval")
    if not reasons:
        reasons.append("Change does not meet submit requirements")
    return reasons


def run_submit(service: GerritService, change_id: str, fmt: OutputFormat) -> CommandResult:
    """Check submit requirements, then submit."""
    change = service.get_change(change_id, ["CURRENT_REVISION", "LABELS", "SUBMITTABLE"])
    reasons = submit_blockers(change)

    if reasons:
        log.info("Change %s is not submittable: %s", change.number, reasons)
        if fmt == OutputFormat.JSON:
            return CommandResult(
                to_json(
                    {
                        "status": "error",
                        "change_number": change.number,
                        "subject": change.subject,
                        "submittable": False,
                        "reasons": reasons,
                    }
                ),
                exit_code=1,
            )
        if fmt == OutputFormat.XML:
            doc = XmlDocument("submit_result")
            doc.element("status", "error")
            doc.element("change_number", change.number)
            doc.text("subject", change.subject)
            doc.element("submittable", False)
            with doc.section("reasons"):
                for reason in reasons:
                    doc.text("reason", reason)
            return CommandResult(doc.render(), exit_code=1)
        lines = [
            f"✗ Change {change.number} cannot be submitted:",
            f"  {change.subject}",
            "",
            "  Reasons:",
        ]
        lines.extend(f"  - {reason}" for reason in reasons)
        return CommandResult("\n".join(lines), exit_code=1, to_stderr=True)

    result = service.submit_change(change_id)
    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "change_number": change.number,
                    "subject": change.subject,
                    "submit_status": result.status.value,
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("submit_result")
        doc.element("status", "success")
        doc.element("change_number", change.number)
        doc.text("subject", change.subject)
        doc.element("submit_status", result.status.value)
        return CommandResult(doc.render())
    return CommandResult(
        f"✓ Submitted change {change.number}: {change.subject}\n"
        f"  Status: {result.status.value}"
    )


# -- abandon / restore ----------------------------------------------------


def _state_change(
    command: str,
    verb: str,
    change: ChangeInfo,
    message: str | None,
    fmt: OutputFormat,
) -> CommandResult:
    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "change_number": change.number,
                    "subject": change.subject,
                    "message": message or None,
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument(f"{command}_result")
        doc.element("status", "success")
        doc.element("change_number", change.number)
        doc.text("subject", change.subject)
        if message:
            doc.text("message", message)
        return CommandResult(doc.render())
    lines = [f"✓ {verb} change {change.number}: {change.subject}"]
    if message:
        lines.append(f"  Message: {message}")
    return CommandResult("\n".join(lines))


def run_abandon(
    service: GerritService, change_id: str, message: str | None, fmt: OutputFormat
) -> CommandResult:
    """Abandon a change."""
    change = service.abandon_change(change_id, message)
    return _state_change("abandon", "Abandoned", change, message, fmt)


def run_restore(
    service: GerritService, change_id: str, message: str | None, fmt: OutputFormat
) -> CommandResult:
    """Restore an abandoned change."""
    change = service.restore_change(change_id, message)
    return _state_change("restore", "Restored", change, message, fmt)


# -- rebase ---------------------------------------------------------------


def run_rebase(
    service: GerritService, change_id: str, base: str | None, fmt: OutputFormat
) -> CommandResult:
    """Rebase a change onto its branch tip or ``base``."""
    change = service.rebase_change(change_id, base)

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "change_number": change.number,
                    "subject": change.subject,
                    "branch": change.branch,
                    "base": base or None,
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("rebase_result")
        doc.element("status", "success")
        doc.element("change_number", change.number)
        doc.text("subject", change.subject)
        doc.element("branch", change.branch)
        if base:
            doc.text("base", base)
        return CommandResult(doc.render())
    lines = [f"✓ Rebased change {change.number}: {change.subject}", f"  Branch: {change.branch}"]
    if base:
        lines.append(f"  Base: {base}")
    return CommandResult("\n".join(lines))


# -- topic ----------------------------------------------------------------


def run_topic(
    service: GerritService,
    change_id: str,
    topic: str | None,
    delete: bool,
    fmt: OutputFormat,
) -> CommandResult:
    """Get, set or delete the topic of a change."""
    if delete:
        service.delete_topic(change_id)
        action, value = "deleted", None
    elif topic is not None and topic.strip():
        value = service.set_topic(change_id, topic.strip())
        action = "set"
    else:
        value = service.get_topic(change_id) or None
        action = "get"

    if fmt == OutputFormat.JSON:
        payload: dict[str, Any] = {"status": "success", "action": action, "change_id": change_id}
        if action != "deleted":
            payload["topic"] = value
        return CommandResult(to_json(payload))
    if fmt == OutputFormat.XML:
        doc = XmlDocument("topic_result")
        doc.element("status", "success")
        doc.element("action", action)
        doc.text("change_id", change_id)
        if value:
            doc.text("topic", value)
        elif action == "get":
            doc.empty("topic")
        return CommandResult(doc.render())

    if action == "deleted":
        return CommandResult(f"✓ Removed topic from change {change_id}")
    if action == "set":
        return CommandResult(f"✓ Set topic on change {change_id}: {value}")
    return CommandResult(value or f"No topic set for change {change_id}")


__all__ = [
    "build_labels",
    "run_abandon",
    "run_rebase",
    "run_restore",
    "run_submit",
    "run_topic",
    "run_vote",
    "submit_blockers",
]
