# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Command executors.

Each executor takes a GerritService (plus command options), performs
the REST calls and returns a CommandResult holding the rendered output.
Errors propagate as exceptions; the CLI boundary lowers them to the
selected output format.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """
    Rendered command output.

    Attributes:
        output: The complete text, XML or JSON document.
        exit_code: Process exit code the command asks for.
        to_stderr: Write the output to stderr (plain-text failures).
    """

    output: str
    exit_code: int = 0
    to_stderr: bool = False


def result_tag(command: str) -> str:
    """Root element of a command's XML document (``add-reviewer`` -> ``add_reviewer_result``)."""
    return f"{command.replace('-', '_')}_result"


__all__ = ["CommandResult", "result_tag"]
