# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Ephemeral git worktrees for reviewing a change in isolation.

Each review gets its own worktree under ``~/.ger/worktrees`` whose name
embeds the change, a millisecond timestamp and the process id, so
concurrent invocations never collide. ``WorktreeManager.session`` is the
scoped form: the worktree is removed and the working directory restored
on every exit path.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from ger.config import CONFIG_DIR_NAME
from ger.git import GitError, GitRepository

log = logging.getLogger("ger.review.worktree")


class WorktreeCreationError(RuntimeError):
    """Raised when the worktree cannot be created."""


class PatchsetFetchError(RuntimeError):
    """Raised when the patchset cannot be fetched into the worktree."""


def default_worktrees_dir() -> Path:
    return Path.home() / CONFIG_DIR_NAME / "worktrees"


@dataclass(frozen=True)
class WorktreeInfo:
    path: Path
    change_id: str
    original_cwd: Path
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    pid: int = field(default_factory=os.getpid)


class WorktreeManager:
    """
    Creates, populates and removes review worktrees.

    Args:
        repo: The repository the worktree is attached to.
        base_dir: Parent directory of worktrees.
        notify: Receives progress lines.
    """

    def __init__(
        self,
        repo: GitRepository,
        base_dir: Path | None = None,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self.repo = repo
        self.base_dir = base_dir or default_worktrees_dir()
        self.notify = notify or (lambda message: log.info("%s", message))

    def create(self, change_id: str) -> WorktreeInfo:
        """
        Add a detached worktree at HEAD.

        Raises:
            NotGitRepoError: Outside a repository.
            WorktreeCreationError: If git refuses.
        """
        self.repo.ensure_repo()
        self.notify(f"→ Creating worktree for change {change_id}...")

        timestamp = int(time.time() * 1000)
        pid = os.getpid()
        path = self.base_dir / f"{change_id}-{timestamp}-{pid}"
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self.repo.add_worktree(path, "HEAD")
        except (GitError, OSError) as exc:
            raise WorktreeCreationError(f"Failed to create worktree: {exc}") from exc

        self.notify(f"✓ Worktree created at {path}")
        return WorktreeInfo(
            path=path,
            change_id=change_id,
            original_cwd=Path.cwd(),
            timestamp=timestamp,
            pid=pid,
        )

    def checkout_patchset(self, info: WorktreeInfo, remote: str, ref: str) -> None:
        """
        Fetch ``ref`` and check out FETCH_HEAD inside the worktree.

        Raises:
            PatchsetFetchError: If fetching or checking out fails.
        """
        self.notify(f"→ Fetching {ref} for {info.change_id}...")
        worktree_repo = GitRepository(info.path)
        try:
            worktree_repo.fetch_ref(remote, ref)
            worktree_repo.checkout("FETCH_HEAD")
        except GitError as exc:
            raise PatchsetFetchError(f"Failed to fetch patchset: {exc}") from exc
        self.notify(f"✓ Checked out {ref}")

    def changed_files(self, info: WorktreeInfo) -> list[str]:
        """Files touched by the checked out patchset."""
        return GitRepository(info.path).list_changed_files("HEAD~1")

    def cleanup(self, info: WorktreeInfo) -> None:
        """Restore the working directory and remove the worktree; never raises."""
        self.notify(f"→ Cleaning up worktree for {info.change_id}...")
        try:
            os.chdir(info.original_cwd)
        except OSError as exc:
            log.warning("Could not restore original directory: %s", exc)
        try:
            self.repo.remove_worktree(info.path)
        except GitError as exc:
            log.warning("Could not remove worktree: %s", exc)
            log.warning("Manual cleanup may be required: %s", info.path)
            return
        self.notify(f"✓ Cleanup completed for {info.change_id}")

    @contextmanager
    def session(self, change_id: str, remote: str, ref: str) -> Iterator[WorktreeInfo]:
        """
        Scoped worktree with the patchset checked out.

        The process working directory is the worktree inside the block.
        """
        info = self.create(change_id)
        try:
            self.checkout_patchset(info, remote, ref)
            os.chdir(info.path)
            yield info
        finally:
            self.cleanup(info)


__all__ = [
    "PatchsetFetchError",
    "WorktreeCreationError",
    "WorktreeInfo",
    "WorktreeManager",
    "default_worktrees_dir",
]
