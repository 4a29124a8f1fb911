# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Build-status watcher.

CI systems report on a change through review messages: a "Build Started"
message when a run begins, and a ``Verified+1`` / ``Verified-1`` vote when
it finishes. The state of the latest run is derived from those messages.

In watch mode the change is polled until the run reaches a terminal
state, printing one JSON line per poll (like ``gh run watch``) and
progress lines on stderr.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final

from ger.gerrit.client import GerritNotFoundError
from ger.gerrit.models import MessageInfo
from ger.gerrit.service import GerritService
from ger.output_utils import DrainAwareWriter, err_console

log = logging.getLogger("ger.build_status")

BUILD_STARTED_PATTERN: Final[re.Pattern[str]] = re.compile(r"Build\s+Started", re.IGNORECASE)
VERIFIED_PLUS_PATTERN: Final[re.Pattern[str]] = re.compile(r"Verified\s*[+]\s*1")
VERIFIED_MINUS_PATTERN: Final[re.Pattern[str]] = re.compile(r"Verified\s*[-]\s*1")

DEFAULT_INTERVAL: Final[int] = 10
DEFAULT_TIMEOUT: Final[int] = 1800

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_TIMEOUT: Final[int] = 2
EXIT_UNEXPECTED: Final[int] = 3


class BuildState(str, Enum):
    """State of the latest build on a change."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    NOT_FOUND = "not_found"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildState.SUCCESS, BuildState.FAILURE, BuildState.NOT_FOUND)


class BuildStatusTimeoutError(Exception):
    """Raised when watching exceeds the wall-clock timeout."""

    def __init__(self, timeout: int) -> None:
        super().__init__(f"Build status check timed out after {timeout}s")
        self.timeout = timeout


@dataclass(frozen=True)
class WatchOptions:
    """
    Watch settings.

    Attributes:
        watch: Poll until a terminal state instead of checking once.
        interval: Seconds between polls (at least 1).
        timeout: Wall-clock limit in seconds (at least 1).
        exit_status: Exit 1 when the build failed.
    """

    watch: bool = False
    interval: int = DEFAULT_INTERVAL
    timeout: int = DEFAULT_TIMEOUT
    exit_status: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "interval", max(1, int(self.interval)))
        object.__setattr__(self, "timeout", max(1, int(self.timeout)))


def interpret_messages(messages: Sequence[MessageInfo]) -> BuildState:
    """
    Derive the build state from a change's messages.

    The last "Build Started" message marks the current run. The first
    later message carrying a Verified vote decides the result; when both
    messages report a patchset number they must agree.
    """
    if not messages:
        return BuildState.PENDING

    started: MessageInfo | None = None
    for message in messages:
        if BUILD_STARTED_PATTERN.search(message.message):
            started = message
    if started is None:
        return BuildState.PENDING

    for message in messages:
        # ISO-8601 timestamps from the server order lexicographically
        if message.date <= started.date:
            continue
        if (
            started.revision_number is not None
            and message.revision_number is not None
            and message.revision_number != started.revision_number
        ):
            continue
        if VERIFIED_PLUS_PATTERN.search(message.message):
            return BuildState.SUCCESS
        if VERIFIED_MINUS_PATTERN.search(message.message):
            return BuildState.FAILURE
    return BuildState.RUNNING


def get_build_status(service: GerritService, change_id: str) -> BuildState:
    """Fetch messages once and interpret them; a missing change is ``not_found``."""
    try:
        messages = service.get_messages(change_id)
    except GerritNotFoundError:
        log.debug("Change %s not found", change_id)
        return BuildState.NOT_FOUND
    return interpret_messages(messages)


def status_line(state: BuildState) -> str:
    """The JSON line written for one observation."""
    return json.dumps({"state": state.value})


class BuildStatusWatcher:
    """
    Polls a change until its build finishes.

    Args:
        service: Gerrit service used for polling.
        options: Watch settings.
        writer: Destination for JSON status lines (stdout by default).
        notify: Receives progress lines meant for stderr.
        sleep: Sleep function, replaceable in tests.
        clock: Monotonic clock in seconds, replaceable in tests.
    """

    def __init__(
        self,
        service: GerritService,
        options: WatchOptions,
        writer: DrainAwareWriter | None = None,
        notify: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.options = options
        self.writer = writer or DrainAwareWriter()
        self.notify = notify or err_console.print
        self._sleep = sleep
        self._clock = clock

    def _check_timeout(self, started_at: float) -> None:
        if self._clock() - started_at > self.options.timeout:
            self.notify(f"Timeout: Build status check exceeded {self.options.timeout}s")
            raise BuildStatusTimeoutError(self.options.timeout)

    def check(self, change_id: str) -> BuildState:
        """Single observation, written as one JSON line."""
        state = get_build_status(self.service, change_id)
        self.writer.writeline(status_line(state))
        return state

    def watch(self, change_id: str) -> BuildState:
        """
        Poll until a terminal state.

        Raises:
            BuildStatusTimeoutError: When the timeout elapses first.
        """
        opts = self.options
        self.notify(
            f"Watching build status (polling every {opts.interval}s, timeout: {opts.timeout}s)..."
        )
        started_at = self._clock()

        while True:
            self._check_timeout(started_at)
            elapsed = int(self._clock() - started_at)

            state = get_build_status(self.service, change_id)
            self._check_timeout(started_at)
            self.writer.writeline(status_line(state))

            if state.is_terminal:
                self.notify(f"Build completed with status: {state.value}")
                if state == BuildState.FAILURE:
                    # give CI a moment to publish its logs
                    self._sleep(opts.interval)
                return state

            self.notify(f"[{elapsed}s elapsed] Build status: {state.value}")
            self._sleep(opts.interval)

    def run(self, change_id: str) -> int:
        """
        Check or watch, and map the final state to an exit code.

        Raises:
            BuildStatusTimeoutError: When watching times out.
        """
        state = self.watch(change_id) if self.options.watch else self.check(change_id)
        if self.options.exit_status and state == BuildState.FAILURE:
            return EXIT_FAILURE
        return EXIT_OK


__all__ = [
    "BuildState",
    "BuildStatusTimeoutError",
    "BuildStatusWatcher",
    "DEFAULT_INTERVAL",
    "DEFAULT_TIMEOUT",
    "EXIT_FAILURE",
    "EXIT_OK",
    "EXIT_TIMEOUT",
    "EXIT_UNEXPECTED",
    "WatchOptions",
    "get_build_status",
    "interpret_messages",
    "status_line",
]
