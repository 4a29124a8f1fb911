# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Push pipeline.

Uploads HEAD for review by pushing to ``refs/for/<branch>`` on the remote
that points at the configured Gerrit host. Push options (topic, reviewers,
WIP and so on) are encoded in the refspec after ``%``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final
from urllib.parse import quote

from ger.commit_hook import CommitHookManager
from ger.git import GitRepository, validate_git_safe

log = logging.getLogger("ger.push")

EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CHANGE_URL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^remote:\s+(https?://\S+/c/\S+/\+/\d+)", re.MULTILINE
)

# characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE: Final[str] = "!~*'()"

# separators inside the refs/for options suffix
_PUSH_OPTION_SEPARATORS: Final[frozenset[str]] = frozenset(",%")


class PushError(RuntimeError):
    """Raised when a push cannot be prepared or is rejected."""


@dataclass(frozen=True)
class PushOptions:
    """Options for one push."""

    branch: str | None = None
    topic: str | None = None
    reviewers: Sequence[str] = ()
    cc: Sequence[str] = ()
    hashtags: Sequence[str] = ()
    wip: bool = False
    ready: bool = False
    private: bool = False
    draft: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class PushPlan:
    """Where and how HEAD will be pushed."""

    remote: str
    host: str
    source_branch: str
    target_branch: str
    refspec: str


@dataclass(frozen=True)
class PushOutcome:
    """Classified result of ``git push``."""

    success: bool
    no_changes: bool = False
    change_url: str | None = None
    remote_lines: list[str] = field(default_factory=list)
    output: str = ""


def validate_emails(emails: Sequence[str], field_name: str) -> None:
    """
    Raises:
        PushError: On the first address that does not look like an email.
    """
    for email in emails:
        if not EMAIL_PATTERN.match(email) or _PUSH_OPTION_SEPARATORS & set(email):
            raise PushError(
                f'Invalid email address for {field_name}: "{email}"\n'
                "Expected format: user@domain.com"
            )


def _encode(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_refspec(branch: str, options: PushOptions) -> str:
    """
    Build ``refs/for/<branch>`` with push options.

    >>> build_refspec("main", PushOptions(topic="feat", wip=True, reviewers=["a@b.io"]))
    'refs/for/main%topic=feat,wip,r=a@b.io'
    """
    validate_emails(options.reviewers, "reviewer")
    validate_emails(options.cc, "cc")
    params: list[str] = []
    if options.topic:
        params.append(f"topic={_encode(options.topic)}")
    if options.wip or options.draft:
        params.append("wip")
    if options.ready:
        params.append("ready")
    if options.private:
        params.append("private")
    params.extend(f"r={reviewer}" for reviewer in options.reviewers)
    params.extend(f"cc={cc}" for cc in options.cc)
    params.extend(f"hashtag={_encode(tag)}" for tag in options.hashtags)

    refspec = f"refs/for/{branch}"
    if params:
        refspec += "%" + ",".join(params)
    return refspec


def determine_target_branch(repo: GitRepository, remote: str, explicit: str | None) -> str:
    """
    Pick the branch to push for review.

    Order: explicit ``--branch``, the tracking branch without its remote
    prefix, ``main`` when the remote has it, otherwise ``master``.
    """
    if explicit:
        return explicit
    tracking = repo.tracking_branch()
    if tracking:
        _, _, branch = tracking.partition("/")
        return branch or tracking
    if repo.remote_branch_exists(remote, "main"):
        return "main"
    return "master"


def extract_change_url(output: str) -> str | None:
    """First change URL announced by the server in ``remote:`` lines."""
    match = CHANGE_URL_PATTERN.search(output)
    return match.group(1) if match else None


def plan_push(
    repo: GitRepository,
    host: str,
    options: PushOptions,
    hooks: CommitHookManager | None = None,
) -> PushPlan:
    """
    Validate input, make sure HEAD has a Change-Id and work out the refspec.

    Raises:
        PushError: On invalid addresses or no remote for the host.
        NotGitRepoError: Outside a repository.
        HookInstallError, MissingChangeIdError: From Change-Id provisioning.
    """
    validate_emails(options.reviewers, "reviewer")
    validate_emails(options.cc, "cc")

    repo.ensure_repo()
    remote = repo.find_matching_remote(host)
    if remote is None:
        raise PushError(
            f"No git remote found matching Gerrit host: {host}\n"
            "Please ensure your git remote points to the Gerrit server."
        )

    outcome = (hooks or CommitHookManager(repo, host)).ensure_change_id()
    log.debug("Change-Id check: %s", outcome)

    target = validate_git_safe(determine_target_branch(repo, remote, options.branch), "Branch name")
    return PushPlan(
        remote=remote,
        host=host,
        source_branch=repo.current_branch() or "HEAD",
        target_branch=target,
        refspec=build_refspec(target, options),
    )


def describe_plan(plan: PushPlan, options: PushOptions) -> list[str]:
    """Summary printed before pushing."""
    lines: list[str] = []
    if options.dry_run:
        lines.extend(["Dry run mode - no changes will be pushed", ""])
    lines.append("Pushing to Gerrit")
    lines.append(f"  Remote: {plan.remote} ({plan.host})")
    lines.append(f"  Branch: {plan.source_branch} -> {plan.target_branch}")
    if options.topic:
        lines.append(f"  Topic: {options.topic}")
    if options.reviewers:
        lines.append(f"  Reviewers: {', '.join(options.reviewers)}")
    if options.cc:
        lines.append(f"  CC: {', '.join(options.cc)}")
    if options.wip or options.draft:
        lines.append("  Status: Work-in-Progress")
    if options.ready:
        lines.append("  Status: Ready for Review")
    if options.hashtags:
        lines.append(f"  Hashtags: {', '.join(options.hashtags)}")
    return lines


def classify_push_output(returncode: int, output: str) -> PushOutcome:
    """
    Turn ``git push`` output into an outcome.

    Raises:
        PushError: For rejected pushes other than "no new changes".
    """
    if returncode != 0:
        if "no new changes" in output:
            return PushOutcome(success=False, no_changes=True, output=output)
        if "Permission denied" in output or "authentication failed" in output:
            raise PushError(
                "Authentication failed. Please check your credentials with: ger status\n"
                "You may need to regenerate your HTTP password in Gerrit settings."
            )
        if "prohibited by Gerrit" in output:
            raise PushError(
                "Push rejected by Gerrit. Common causes:\n"
                "  - Missing permissions for the target branch\n"
                "  - Branch may be read-only\n"
                "  - Change-Id may be in use by another change"
            )
        raise PushError(f"Push failed:\n{output}")

    remote_lines = [
        line[len("remote:") :].strip()
        for line in output.splitlines()
        if line.startswith("remote:")
    ]
    return PushOutcome(
        success=True,
        change_url=extract_change_url(output),
        remote_lines=[line for line in remote_lines if line],
        output=output,
    )


def execute_push(repo: GitRepository, plan: PushPlan, dry_run: bool = False) -> PushOutcome:
    """Run ``git push <remote> HEAD:<refspec>`` and classify the result."""
    result = repo.push(plan.remote, f"HEAD:{plan.refspec}", dry_run=dry_run)
    output = (result.stdout or "") + (result.stderr or "")
    log.debug("git push exited %s", result.returncode)
    return classify_push_output(result.returncode, output)


def describe_outcome(outcome: PushOutcome) -> list[str]:
    """Text printed after pushing."""
    if outcome.no_changes:
        return ["No new changes to push"]
    lines = ["Push successful!"]
    if outcome.change_url:
        lines.extend(["", f"  {outcome.change_url}"])
    if outcome.remote_lines:
        lines.extend(["", "Gerrit response:"])
        lines.extend(f"  {line}" for line in outcome.remote_lines)
    return lines


__all__ = [
    "CHANGE_URL_PATTERN",
    "EMAIL_PATTERN",
    "PushError",
    "PushOptions",
    "PushOutcome",
    "PushPlan",
    "build_refspec",
    "classify_push_output",
    "describe_outcome",
    "describe_plan",
    "determine_target_branch",
    "execute_push",
    "extract_change_url",
    "plan_push",
    "validate_emails",
]
