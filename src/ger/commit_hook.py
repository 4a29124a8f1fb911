# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Commit-msg hook provisioning and Change-Id enforcement.

Gerrit identifies changes by the ``Change-Id`` footer that its commit-msg
hook appends. Before pushing, the HEAD commit must carry one: when the
hook is missing it is downloaded from the server and installed, and HEAD
is amended (message unchanged) so the hook runs.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Any, Final

import requests

from ger.git import GitRepository
from ger.gerrit.urls import create_url_builder

log = logging.getLogger("ger.commit_hook")

HOOK_NAME: Final[str] = "commit-msg"
HOOK_MODE: Final[int] = 0o755
DOWNLOAD_TIMEOUT: Final[float] = 30.0

_MSG_HOOK_DID_NOT_RUN: Final[str] = (
    "Commit is missing Change-Id. The commit-msg hook is installed but did not run.\n"
    "Please amend your commit: git commit --amend"
)


class HookInstallError(RuntimeError):
    """Raised when the commit-msg hook cannot be downloaded or installed."""


class MissingChangeIdError(RuntimeError):
    """Raised when HEAD still lacks a Change-Id after provisioning."""


def is_executable(path: Path) -> bool:
    """Check whether a file exists and has an execute bit set."""
    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        return False
    return bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def write_hook(hook_dir: Path, content: str, mode: int = HOOK_MODE) -> Path:
    """
    Write a commit-msg hook script.

    Raises:
        HookInstallError: If the content is not a script or cannot be written.
    """
    if not content.startswith("#!"):
        raise HookInstallError("Downloaded hook is not a valid script (missing #! header)")
    path = hook_dir / HOOK_NAME
    try:
        hook_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        os.chmod(path, mode)
    except OSError as exc:
        raise HookInstallError(f"Failed to write hook to {path}: {exc}") from exc
    log.debug("Installed %s hook at %s", HOOK_NAME, path)
    return path


class CommitHookManager:
    """
    Installs the commit-msg hook and makes sure HEAD has a Change-Id.

    Args:
        repo: Repository to operate on.
        host: Gerrit server URL the hook is downloaded from.
        http: Object with a requests-compatible ``get()``; defaults to requests.
    """

    def __init__(self, repo: GitRepository, host: str, http: Any = None) -> None:
        self.repo = repo
        self.hook_url = create_url_builder(host).hook_url()
        self._http = http if http is not None else requests

    def hook_path(self) -> Path:
        """Location of the repository's commit-msg hook."""
        return self.repo.hooks_dir() / HOOK_NAME

    def has_hook(self) -> bool:
        """Check whether an executable commit-msg hook is installed."""
        return is_executable(self.hook_path())

    def download_hook(self) -> str:
        """
        Download the hook script from the server.

        Raises:
            HookInstallError: On network failure or a non-200 response.
        """
        log.debug("Downloading commit-msg hook from %s", self.hook_url)
        try:
            response = self._http.get(self.hook_url, timeout=DOWNLOAD_TIMEOUT)
        except requests.exceptions.RequestException as exc:
            raise HookInstallError(f"Failed to download commit-msg hook: {exc}") from exc
        if response.status_code != 200:
            raise HookInstallError(
                f"Failed to download commit-msg hook from {self.hook_url}: "
                f"HTTP {response.status_code}"
            )
        return response.text

    def install_hook(self, force: bool = False) -> bool:
        """
        Install the hook unless it is already present.

        Returns:
            True when the hook was written, False when skipped.
        """
        if self.has_hook() and not force:
            log.debug("commit-msg hook already installed")
            return False
        write_hook(self.repo.hooks_dir(), self.download_hook())
        return True

    def ensure_change_id(self) -> str:
        """
        Make sure HEAD carries a Change-Id footer.

        Returns:
            A short description of what was done.

        Raises:
            MissingChangeIdError: If HEAD still has no Change-Id.
            HookInstallError: If the hook cannot be installed.
        """
        if self.repo.commit_has_change_id():
            return "present"
        if self.has_hook():
            raise MissingChangeIdError(_MSG_HOOK_DID_NOT_RUN)

        log.info("Installing commit-msg hook and amending HEAD")
        self.install_hook()
        self.repo.amend_keeping_message()
        if not self.repo.commit_has_change_id():
            raise MissingChangeIdError(_MSG_HOOK_DID_NOT_RUN)
        return "amended"


__all__ = [
    "CommitHookManager",
    "HOOK_MODE",
    "HOOK_NAME",
    "HookInstallError",
    "MissingChangeIdError",
    "is_executable",
    "write_hook",
]
