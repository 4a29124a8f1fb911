# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Git integration for the Gerrit workflows.

Every git invocation is spawned with an argv list (never a shell string)
and an explicit timeout. Values that end up in a git command line are
validated first:

- branch and remote names against ``^[A-Za-z0-9_\\-./]+$``
- Gerrit change refs against ``^refs/changes/\\d{2}/\\d+/\\d+$``

A rejected value raises InvalidInputError with a truncated echo of the
input.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Final
from urllib.parse import urlparse

from ger.identifiers import extract_change_id_from_commit_message

log = logging.getLogger("ger.git")

GIT_SAFE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9_\-/.]+$")
GERRIT_REF_PATTERN: Final[re.Pattern[str]] = re.compile(r"^refs/changes/\d{2}/\d+/\d+$")
_REMOTE_LINE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\S+)\s+(\S+)\s+\(push\)$")
_SCP_URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:[^@/]+@)?([^:/]+):(?!//)")

# Timeouts in seconds
FETCH_TIMEOUT: Final[int] = 60
CHECKOUT_TIMEOUT: Final[int] = 30
UPSTREAM_TIMEOUT: Final[int] = 10
PROBE_TIMEOUT: Final[int] = 5
PUSH_TIMEOUT: Final[int] = 120


class GitError(RuntimeError):
    """Raised when a git command fails."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class NotGitRepoError(GitError):
    """Raised when the working directory is not inside a git repository."""

    def __init__(self, message: str = "Not in a git repository") -> None:
        super().__init__(message)


class InvalidInputError(ValueError):
    """Raised when a value is unsafe to pass to git."""


def _truncate(value: str, limit: int) -> str:
    printable = "".join(ch if ch.isprintable() else "?" for ch in value)
    if len(printable) > limit:
        return printable[:limit] + "..."
    return printable


def validate_git_safe(value: str, field: str) -> str:
    """
    Validate a branch or remote name for use on a git command line.

    Raises:
        InvalidInputError: If the value is empty or contains characters
            outside the safe set.
    """
    if not value or not GIT_SAFE_PATTERN.fullmatch(value) or value.startswith("-"):
        raise InvalidInputError(
            f"{field} contains invalid characters: {_truncate(value, 20)}"
        )
    return value


def validate_gerrit_ref(ref: str) -> str:
    """
    Validate a Gerrit change ref (``refs/changes/NN/NNNN/N``).

    Raises:
        InvalidInputError: If the ref does not have the expected shape.
    """
    if not GERRIT_REF_PATTERN.fullmatch(ref or ""):
        raise InvalidInputError(f"Invalid Gerrit ref format: {_truncate(ref or '', 30)}")
    return ref


def remote_hostname(url: str) -> str:
    """
    Extract the host name from a remote URL.

    Handles ``https://``, ``ssh://`` and scp-like ``git@host:path`` forms.
    """
    url = url.strip()
    if "://" in url:
        return (urlparse(url).hostname or "").lower()
    match = _SCP_URL_PATTERN.match(url)
    return match.group(1).lower() if match else ""


class GitRepository:
    """
    Wrapper around the git executable for one working directory.

    Args:
        cwd: Directory git runs in; the process working directory when None.
    """

    def __init__(self, cwd: Path | str | None = None) -> None:
        self.cwd = Path(cwd) if cwd is not None else None

    def _run(
        self,
        args: Sequence[str],
        timeout: int = CHECKOUT_TIMEOUT,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run ``git <args>`` and capture text output."""
        argv = ["git", *args]
        log.debug("Running: %s", " ".join(argv))
        try:
            result = subprocess.run(
                argv,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitError(f"git {args[0]} timed out after {timeout}s") from exc
        except FileNotFoundError as exc:
            raise GitError("git executable not found on PATH") from exc

        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise GitError(
                f"git {args[0]} failed: {stderr or f'exit code {result.returncode}'}",
                stderr=stderr,
            )
        return result

    # -- repository state ---------------------------------------------------

    def is_in_repo(self) -> bool:
        """Check whether the working directory is inside a git repository."""
        try:
            result = self._run(["rev-parse", "--git-dir"], PROBE_TIMEOUT, check=False)
        except GitError:
            return False
        return result.returncode == 0

    def ensure_repo(self) -> None:
        """
        Raises:
            NotGitRepoError: If not inside a git repository.
        """
        if not self.is_in_repo():
            raise NotGitRepoError()

    def git_dir(self) -> str:
        """The git directory as reported by git (may be relative)."""
        self.ensure_repo()
        return self._run(["rev-parse", "--git-dir"], PROBE_TIMEOUT).stdout.strip()

    def absolute_git_dir(self) -> Path:
        """The absolute path of the git directory."""
        self.ensure_repo()
        out = self._run(["rev-parse", "--absolute-git-dir"], PROBE_TIMEOUT).stdout.strip()
        return Path(out)

    def hooks_dir(self) -> Path:
        """Directory holding the repository's hooks."""
        return self.absolute_git_dir() / "hooks"

    def current_branch(self) -> str | None:
        """The checked-out branch name, or None when HEAD is detached."""
        out = self._run(["rev-parse", "--abbrev-ref", "HEAD"], PROBE_TIMEOUT).stdout.strip()
        return None if out in ("", "HEAD") else out

    def tracking_branch(self) -> str | None:
        """The upstream of the current branch (``remote/branch``), if any."""
        result = self._run(
            ["rev-parse", "--abbrev-ref", "@{upstream}"], PROBE_TIMEOUT, check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def branch_exists(self, branch: str) -> bool:
        """Check whether a local branch exists."""
        validate_git_safe(branch, "Branch name")
        result = self._run(
            ["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"],
            PROBE_TIMEOUT,
            check=False,
        )
        return result.returncode == 0

    def remote_branch_exists(self, remote: str, branch: str) -> bool:
        """Check whether ``remote/branch`` is known locally."""
        validate_git_safe(remote, "Remote name")
        validate_git_safe(branch, "Branch name")
        result = self._run(
            ["rev-parse", "--verify", "--quiet", f"{remote}/{branch}"],
            PROBE_TIMEOUT,
            check=False,
        )
        return result.returncode == 0

    def list_remotes(self) -> dict[str, str]:
        """Map of remote name to push URL."""
        out = self._run(["remote", "-v"], PROBE_TIMEOUT).stdout
        remotes: dict[str, str] = {}
        for line in out.splitlines():
            match = _REMOTE_LINE_PATTERN.match(line.strip())
            if match:
                remotes[match.group(1)] = match.group(2)
        return remotes

    def find_matching_remote(self, host: str) -> str | None:
        """Name of the first remote whose host matches the Gerrit host."""
        wanted = remote_hostname(host if "://" in host else f"https://{host}")
        if not wanted:
            return None
        for name, url in self.list_remotes().items():
            if remote_hostname(url) == wanted:
                log.debug("Remote %s matches host %s", name, wanted)
                return name
        return None

    # -- commits ------------------------------------------------------------

    def head_commit_message(self) -> str:
        """Full message of the HEAD commit."""
        return self._run(["log", "-1", "--format=%B"], PROBE_TIMEOUT).stdout

    def commit_has_change_id(self) -> bool:
        """Check whether HEAD carries a Change-Id footer."""
        return extract_change_id_from_commit_message(self.head_commit_message()) is not None

    def amend_keeping_message(self) -> None:
        """Amend HEAD without editing the message, so commit-msg hooks run."""
        self._run(["commit", "--amend", "--no-edit"], CHECKOUT_TIMEOUT)

    # -- fetch and checkout -------------------------------------------------

    def fetch_ref(self, remote: str, ref: str) -> None:
        """Fetch a Gerrit change ref into FETCH_HEAD."""
        validate_git_safe(remote, "Remote name")
        validate_gerrit_ref(ref)
        self._run(["fetch", remote, ref], FETCH_TIMEOUT)

    def checkout(self, ref: str) -> None:
        """Check out a branch or FETCH_HEAD."""
        validate_git_safe(ref, "Ref")
        self._run(["checkout", ref], CHECKOUT_TIMEOUT)

    def create_branch(self, branch: str, start_point: str = "FETCH_HEAD") -> None:
        """Create and check out a branch at ``start_point``."""
        validate_git_safe(branch, "Branch name")
        validate_git_safe(start_point, "Start point")
        self._run(["checkout", "-b", branch, start_point], CHECKOUT_TIMEOUT)

    def reset_hard(self, ref: str = "FETCH_HEAD") -> None:
        """Reset the current branch and working tree to ``ref``."""
        validate_git_safe(ref, "Ref")
        self._run(["reset", "--hard", ref], CHECKOUT_TIMEOUT)

    def set_upstream(self, branch: str, upstream: str) -> None:
        """Set the upstream of a branch to ``remote/branch``."""
        validate_git_safe(branch, "Branch name")
        validate_git_safe(upstream, "Upstream")
        self._run(
            ["branch", f"--set-upstream-to={upstream}", branch], UPSTREAM_TIMEOUT
        )

    # -- worktrees ----------------------------------------------------------

    def add_worktree(self, path: Path, ref: str = "HEAD") -> None:
        """Create a detached worktree at ``path``."""
        validate_git_safe(ref, "Ref")
        self._run(["worktree", "add", "--detach", str(path), ref], CHECKOUT_TIMEOUT)

    def remove_worktree(self, path: Path) -> None:
        """Remove a worktree, discarding local modifications."""
        self._run(["worktree", "remove", "--force", str(path)], CHECKOUT_TIMEOUT)

    def list_changed_files(self, from_ref: str = "HEAD~1") -> list[str]:
        """Paths changed between ``from_ref`` and the working tree."""
        validate_git_safe(from_ref.replace("~", "/").replace("^", "/"), "Ref")
        out = self._run(["diff", "--name-only", from_ref], CHECKOUT_TIMEOUT).stdout
        return [line.strip() for line in out.splitlines() if line.strip()]

    # -- push ---------------------------------------------------------------

    def push(
        self, remote: str, refspec: str, dry_run: bool = False
    ) -> subprocess.CompletedProcess[str]:
        """
        Push HEAD to ``refspec`` on ``remote``.

        The result is returned unchecked; callers classify the outcome.
        """
        validate_git_safe(remote, "Remote name")
        args = ["push"]
        if dry_run:
            args.append("--dry-run")
        args.extend([remote, refspec])
        return self._run(args, PUSH_TIMEOUT, check=False)


__all__ = [
    "GERRIT_REF_PATTERN",
    "GIT_SAFE_PATTERN",
    "GitError",
    "GitRepository",
    "InvalidInputError",
    "NotGitRepoError",
    "remote_hostname",
    "validate_gerrit_ref",
    "validate_git_safe",
]
