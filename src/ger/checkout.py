# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Checkout pipeline.

Fetches a change's patchset into the local repository and checks it out
on a ``review/<number>`` branch (or detached), tracking the change's
target branch on the Gerrit remote.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ger.gerrit.client import GerritRestError
from ger.gerrit.models import ChangeInfo, RevisionInfo
from ger.gerrit.service import GerritService
from ger.git import (
    GitError,
    GitRepository,
    InvalidInputError,
    validate_gerrit_ref,
    validate_git_safe,
)
from ger.url_parser import ChangeInput, parse_change_input

log = logging.getLogger("ger.checkout")

DEFAULT_REMOTE = "origin"
BRANCH_PREFIX = "review/"


class CheckoutError(RuntimeError):
    """Raised when a git step of the checkout fails."""


class PatchsetNotFoundError(CheckoutError):
    """Raised when the requested patchset does not exist."""

    def __init__(self, patchset: int) -> None:
        super().__init__(f"Patchset {patchset} not found")
        self.patchset = patchset


@dataclass(frozen=True)
class CheckoutOptions:
    detach: bool = False
    remote: str | None = None


@dataclass(frozen=True)
class CheckoutPlan:
    """Everything resolved before touching the working tree."""

    change: ChangeInfo
    revision: RevisionInfo
    ref: str
    remote: str
    branch: str
    change_url: str

    @property
    def upstream(self) -> str:
        return f"{self.remote}/{self.change.branch}"


def resolve_revision(
    service: GerritService, change: ChangeInfo, parsed: ChangeInput
) -> RevisionInfo:
    """
    The revision to check out: the requested patchset, else the current one.

    Raises:
        PatchsetNotFoundError: If a requested patchset cannot be fetched.
    """
    if parsed.patchset is not None:
        try:
            return service.get_revision(parsed.change_id, parsed.patchset)
        except GerritRestError as exc:
            raise PatchsetNotFoundError(parsed.patchset) from exc
    current = change.current_revision_info
    if current is not None:
        return current
    return service.get_revision(parsed.change_id, "current")


def plan_checkout(
    service: GerritService,
    repo: GitRepository,
    change_input: str,
    options: CheckoutOptions,
) -> CheckoutPlan:
    """
    Resolve the change, revision, remote and branch for a checkout.

    Raises:
        NotGitRepoError: Outside a repository.
        InvalidInputError: If the ref, remote or branch is unsafe.
        PatchsetNotFoundError: If a requested patchset does not exist.
    """
    parsed = parse_change_input(change_input)
    repo.ensure_repo()

    change = service.get_change(parsed.change_id)
    revision = resolve_revision(service, change, parsed)
    ref = validate_gerrit_ref(revision.ref)

    remote = options.remote or repo.find_matching_remote(service.host) or DEFAULT_REMOTE
    validate_git_safe(remote, "Remote name")
    branch = validate_git_safe(f"{BRANCH_PREFIX}{change.number}", "Branch name")

    return CheckoutPlan(
        change=change,
        revision=revision,
        ref=ref,
        remote=remote,
        branch=branch,
        change_url=service.url_builder.change_url(change.project, change.number),
    )


def describe_checkout(plan: CheckoutPlan) -> list[str]:
    """Summary printed before fetching."""
    return [
        "Checking out Gerrit change",
        f"  Change: {plan.change.number} - {plan.change.subject}",
        f"  Patchset: {plan.revision.number}",
        f"  Status: {plan.change.status.value}",
        f"  Branch: {plan.branch}",
        f"  Remote: {plan.remote}",
        "",
        f"Fetching {plan.ref}...",
    ]


def perform_checkout(repo: GitRepository, plan: CheckoutPlan, detach: bool = False) -> list[str]:
    """
    Fetch the ref and check it out.

    Returns:
        Lines describing what was done, ending with the change URL.

    Raises:
        CheckoutError: If fetching or checking out fails.
    """
    try:
        repo.fetch_ref(plan.remote, plan.ref)
    except GitError as exc:
        raise CheckoutError(f"Failed to fetch change from remote: {exc}") from exc

    lines: list[str] = []
    if detach:
        try:
            repo.checkout("FETCH_HEAD")
        except GitError as exc:
            raise CheckoutError(f"Failed to checkout in detached HEAD mode: {exc}") from exc
        lines.append("Checked out in detached HEAD mode")
    else:
        lines.extend(_checkout_branch(repo, plan))

    lines.extend(["", f"Change URL: {plan.change_url}"])
    return lines


def _checkout_branch(repo: GitRepository, plan: CheckoutPlan) -> list[str]:
    lines: list[str] = []
    if repo.branch_exists(plan.branch):
        if repo.current_branch() != plan.branch:
            try:
                repo.checkout(plan.branch)
            except GitError as exc:
                raise CheckoutError(f"Failed to switch to branch: {exc}") from exc
        try:
            repo.reset_hard("FETCH_HEAD")
        except GitError as exc:
            raise CheckoutError(f"Failed to update branch: {exc}") from exc
        lines.append(f"Updated and checked out {plan.branch}")
    else:
        try:
            repo.create_branch(plan.branch, "FETCH_HEAD")
        except GitError as exc:
            raise CheckoutError(f"Failed to create branch: {exc}") from exc
        lines.append(f"Created and checked out {plan.branch}")

    try:
        repo.set_upstream(plan.branch, plan.upstream)
    except (GitError, InvalidInputError) as exc:
        log.warning("Could not set upstream of %s: %s", plan.branch, exc)
        lines.append(f"Note: Could not set upstream tracking to {plan.upstream}")
    else:
        lines.append(f"Tracking {plan.upstream}")
    return lines


__all__ = [
    "BRANCH_PREFIX",
    "CheckoutError",
    "CheckoutOptions",
    "CheckoutPlan",
    "DEFAULT_REMOTE",
    "PatchsetNotFoundError",
    "describe_checkout",
    "perform_checkout",
    "plan_checkout",
    "resolve_revision",
]
