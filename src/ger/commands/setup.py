# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Local setup commands: setup/init, install-hook and open.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import typer

from ger.commands import CommandResult
from ger.commit_hook import CommitHookManager
from ger.config import ConfigError, ConfigStore, Credentials, GerConfig
from ger.gerrit.client import GerritAuthError, GerritNetworkError
from ger.gerrit.models import AccountInfo
from ger.gerrit.service import GerritService, create_gerrit_service
from ger.output import OutputFormat, XmlDocument, to_json
from ger.review.strategy import available_strategies
from ger.url_parser import build_change_url


@dataclass(frozen=True)
class SetupAnswers:
    host: str
    username: str
    password: str
    ai_tool: str | None = None


def detect_ai_tools() -> list[str]:
    """Names of the AI tools found on ``PATH``."""
    return [strategy.name for strategy in available_strategies()]


def prompt_setup_answers(
    existing: Credentials | None,
    ai_tools: list[str],
    prompt: Callable[..., Any] = typer.prompt,
    echo: Callable[[str], None] = typer.echo,
) -> SetupAnswers:
    """Ask for connection details; Enter keeps an existing value."""
    echo("🔧 Gerrit CLI Setup")
    echo("")
    if existing is not None:
        echo("(Press Enter to keep existing values)")
    else:
        echo("Please provide your Gerrit connection details:")
        echo("Example URL: https://gerrit.example.com")
        echo("You can find your HTTP password in Gerrit Settings > HTTP Credentials")
    echo("")

    host = prompt(
        "Gerrit Host URL (e.g., https://gerrit.example.com)",
        default=existing.host if existing else None,
    )
    username = prompt(
        "Username (your Gerrit username)",
        default=existing.username if existing else None,
    )
    password_label = "HTTP Password (generated from Gerrit settings)"
    if existing is not None:
        password = prompt(
            f"{password_label} (press Enter to keep existing)",
            default="",
            hide_input=True,
            show_default=False,
        ) or existing.password
    else:
        password = prompt(password_label, hide_input=True)

    echo("")
    echo("Optional: AI Configuration")
    if ai_tools:
        echo(f"Detected AI tools: {', '.join(ai_tools)}")
    default_tool = (
        (existing.ai_tool if existing else None)
        or ("claude" if "claude" in ai_tools else (ai_tools[0] if ai_tools else "claude"))
    )
    ai_tool = prompt(
        "AI tool command (detected from system)"
        if ai_tools
        else "AI tool command (e.g., claude, llm, opencode, gemini)",
        default=default_tool,
    )
    return SetupAnswers(
        host=str(host).strip(),
        username=str(username).strip(),
        password=str(password),
        ai_tool=str(ai_tool).strip() or None,
    )


def verify_credentials(credentials: Credentials, http: Any = None) -> AccountInfo:
    """
    Check the credentials against the server.

    Raises:
        ConfigError: With a remediation hint when the server rejects them
            or cannot be reached.
    """
    try:
        return create_gerrit_service(credentials, http=http).test_connection()
    except GerritAuthError as exc:
        if exc.status_code == 403:
            raise ConfigError(
                "Access denied. Please verify your credentials and server permissions."
            ) from exc
        raise ConfigError(
            "Invalid credentials. Please check your username and password."
        ) from exc
    except GerritNetworkError as exc:
        raise ConfigError(
            f"Network error: {exc}\nPlease check your connection and the Gerrit server URL."
        ) from exc


def run_setup(store: ConfigStore, answers: SetupAnswers, http: Any = None) -> CommandResult:
    """
    Validate, verify and persist the answers.

    Nothing is written unless the server accepts the credentials.
    """
    try:
        config = GerConfig(
            host=answers.host,
            username=answers.username,
            password=answers.password,
            ai_tool=answers.ai_tool,
            ai_auto_detect=answers.ai_tool is None,
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    credentials = Credentials.from_config(config)

    account = verify_credentials(credentials, http=http)
    path = store.save(credentials)
    return CommandResult(
        "\n".join(
            [
                "",
                "Verifying credentials...",
                f"✓ Successfully authenticated as {account.display_name}",
                f"✓ Configuration saved to {path}",
            ]
        )
    )


def run_install_hook(manager: CommitHookManager, force: bool, fmt: OutputFormat) -> CommandResult:
    """Install the commit-msg hook, skipping an existing one unless forced."""
    existed = manager.has_hook()
    if existed and not force:
        message, hint = "commit-msg hook already installed", "Use --force to overwrite"
        if fmt == OutputFormat.JSON:
            return CommandResult(to_json({"status": "skipped", "message": message, "hint": hint}))
        if fmt == OutputFormat.XML:
            doc = XmlDocument("install_hook_result")
            doc.element("status", "skipped")
            doc.text("message", message)
            doc.text("hint", hint)
            return CommandResult(doc.render())
        return CommandResult(f"{message}\n{hint}")

    manager.install_hook(force=True)
    message = "commit-msg hook installed successfully"
    if fmt == OutputFormat.JSON:
        return CommandResult(to_json({"status": "success", "message": message}))
    if fmt == OutputFormat.XML:
        doc = XmlDocument("install_hook_result")
        doc.element("status", "success")
        doc.text("message", message)
        return CommandResult(doc.render())
    lines = ["Overwriting existing commit-msg hook..."] if existed else []
    lines.append(f"✓ {message}")
    return CommandResult("\n".join(lines))


def run_open(
    service: GerritService,
    change_id: str,
    launch: Callable[[str], Any] = typer.launch,
) -> CommandResult:
    """Open a change in the browser."""
    change = service.get_change(change_id, [])
    url = build_change_url(service.host, change.number, change.project)
    launch(url)
    return CommandResult(f"Opened {url}")


__all__ = [
    "SetupAnswers",
    "detect_ai_tools",
    "prompt_setup_answers",
    "run_install_hook",
    "run_open",
    "run_setup",
    "verify_credentials",
]
