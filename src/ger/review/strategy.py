# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
AI tool discovery and invocation.

A review strategy is an external command-line tool that reads a prompt on
stdin and writes its answer to stdout. Tools are discovered on ``PATH`` in
preference order; the list can be extended with the ``GER_AI_TOOLS``
environment variable (comma separated, tried first).
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

log = logging.getLogger("ger.review.strategy")

AI_TOOLS_ENV: Final[str] = "GER_AI_TOOLS"
DEFAULT_AI_TOOLS: Final[tuple[str, ...]] = ("claude", "llm", "opencode", "gemini")

# Tools that need a flag to run non-interactively
TOOL_ARGS: Final[dict[str, tuple[str, ...]]] = {
    "claude": ("-p",),
    "gemini": ("-p",),
}

AI_TOOL_TIMEOUT: Final[int] = 1800

_RESPONSE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"<response>(.*)</response>", re.IGNORECASE | re.DOTALL
)


class ReviewStrategyError(RuntimeError):
    """Raised when no tool is available or a tool run fails."""


@dataclass(frozen=True)
class ReviewStrategy:
    """An AI command-line tool."""

    name: str
    argv: tuple[str, ...]

    @classmethod
    def for_tool(cls, name: str) -> ReviewStrategy:
        return cls(name=name, argv=(name, *TOOL_ARGS.get(name, ())))

    def is_available(self) -> bool:
        return shutil.which(self.argv[0]) is not None

    def execute(self, prompt: str, cwd: Path | str | None = None) -> str:
        """
        Run the tool with the prompt on stdin.

        Returns:
            The raw stdout of the tool.

        Raises:
            ReviewStrategyError: On spawn failure, timeout, non-zero exit
                or empty output.
        """
        log.debug("Running %s in %s", " ".join(self.argv), cwd or os.getcwd())
        try:
            result = subprocess.run(
                list(self.argv),
                input=prompt,
                capture_output=True,
                text=True,
                cwd=cwd,
                timeout=AI_TOOL_TIMEOUT,
            )
        except FileNotFoundError as exc:
            raise ReviewStrategyError(f"{self.name} is not installed") from exc
        except subprocess.TimeoutExpired as exc:
            raise ReviewStrategyError(
                f"{self.name} timed out after {AI_TOOL_TIMEOUT}s"
            ) from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise ReviewStrategyError(
                f"{self.name} exited with code {result.returncode}: {stderr}"
            )
        if not (result.stdout or "").strip():
            raise ReviewStrategyError(f"{self.name} returned an empty response")
        return result.stdout


def extract_response(output: str) -> str:
    """
    Contents of the outermost ``<response>`` tags, or the whole output.

    >>> extract_response("noise <response>[1]</response>")
    '[1]'
    """
    match = _RESPONSE_PATTERN.search(output)
    return (match.group(1) if match else output).strip()


def configured_tools(environ: Mapping[str, str] | None = None) -> list[str]:
    """Tool names in preference order, ``GER_AI_TOOLS`` entries first."""
    env = os.environ if environ is None else environ
    extra = [t.strip() for t in env.get(AI_TOOLS_ENV, "").split(",") if t.strip()]
    tools: list[str] = []
    for name in [*extra, *DEFAULT_AI_TOOLS]:
        if name not in tools:
            tools.append(name)
    return tools


def available_strategies(tools: Sequence[str] | None = None) -> list[ReviewStrategy]:
    """Strategies whose executable is on ``PATH``."""
    candidates = [ReviewStrategy.for_tool(name) for name in (tools or configured_tools())]
    return [strategy for strategy in candidates if strategy.is_available()]


def select_strategy(
    preferred: str | None = None,
    tools: Sequence[str] | None = None,
    auto_detect: bool = True,
) -> ReviewStrategy:
    """
    Pick the tool to run.

    Only known tools are considered. A preference selects the first
    available tool whose name contains it, ignoring case. Without a match
    the first available tool is used, unless ``auto_detect`` is off.

    Raises:
        ReviewStrategyError: If no tool is available, or the preferred one
            is missing and discovery is disabled.
    """
    names = list(tools or configured_tools())
    available = available_strategies(names)

    if preferred and preferred.strip():
        needle = preferred.strip().lower()
        for strategy in available:
            if needle in strategy.name.lower():
                return strategy
        if not auto_detect:
            raise ReviewStrategyError(
                f"Preferred AI tool {preferred} is not available and auto-detection is disabled"
            )
        log.warning("Preferred AI tool %s not found, falling back to discovery", preferred)

    if not available:
        raise ReviewStrategyError(
            f"No AI tools available. Please install one of: {', '.join(names)}"
        )
    return available[0]


__all__ = [
    "AI_TOOLS_ENV",
    "AI_TOOL_TIMEOUT",
    "DEFAULT_AI_TOOLS",
    "ReviewStrategy",
    "ReviewStrategyError",
    "available_strategies",
    "configured_tools",
    "extract_response",
    "select_strategy",
]
