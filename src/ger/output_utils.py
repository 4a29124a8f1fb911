# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Console helpers shared by the command executors.

Human-readable output goes through rich consoles (colour only when the
stream is a terminal); structured XML/JSON documents go through a
drain-aware writer so piped consumers always receive complete documents.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Final

from rich.console import Console

# soft_wrap keeps long lines intact for grep/tail
console = Console(markup=False, highlight=False, emoji=False, soft_wrap=True)
err_console = Console(stderr=True, markup=False, highlight=False, emoji=False, soft_wrap=True)

_CHUNK_SIZE: Final[int] = 64 * 1024
_LOG_LEVELS: Final[frozenset[str]] = frozenset({"debug", "info", "warning", "error"})


class DrainAwareWriter:
    """
    Writer that waits for the stream to drain between chunks.

    ``flush()`` blocks until the underlying pipe has accepted the data,
    which gives the same back-pressure behaviour as waiting for a drain
    event.
    """

    def __init__(self, stream: IO[str] | None = None, chunk_size: int = _CHUNK_SIZE) -> None:
        self._stream = stream
        self._chunk_size = chunk_size

    @property
    def stream(self) -> IO[str]:
        """The target stream (resolved lazily so redirection is honoured)."""
        return self._stream if self._stream is not None else sys.stdout

    def write(self, text: str) -> None:
        """Write text in chunks, flushing after each one."""
        stream = self.stream
        for start in range(0, len(text), self._chunk_size):
            stream.write(text[start : start + self._chunk_size])
            stream.flush()

    def writeline(self, text: str) -> None:
        """Write text followed by a newline."""
        self.write(text if text.endswith("\n") else text + "\n")


def log_and_print(
    logger: logging.Logger,
    console: Console,
    message: str,
    style: str | None = None,
    level: str = "info",
) -> None:
    """
    Print a user-facing message and record it in the log.

    Without a style the message goes to plain ``print``; with one it is
    rendered through the rich console. Unknown levels log at INFO.
    """
    if style is None:
        print(message)
    else:
        console.print(message, style=style)

    log_method = getattr(logger, level) if level in _LOG_LEVELS else logger.info
    log_method(message)


def emit(document: str, stream: IO[str] | None = None) -> None:
    """Write a complete structured document to stdout."""
    DrainAwareWriter(stream).writeline(document)


__all__ = [
    "DrainAwareWriter",
    "console",
    "emit",
    "err_console",
    "log_and_print",
]
