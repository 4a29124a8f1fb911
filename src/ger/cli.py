# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Command line interface for ger, a Gerrit code review client.

Commands are thin: they resolve the change, build the Gerrit service from
the configured credentials, call an executor and write its result. Errors
raised anywhere below are caught here and rendered in the selected output
format before exiting non-zero.
"""

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

import click
import typer

from ger import __version__
from ger.build_status import (
    EXIT_TIMEOUT,
    EXIT_UNEXPECTED,
    BuildStatusTimeoutError,
    BuildStatusWatcher,
    WatchOptions,
)
from ger.checkout import (
    CheckoutError,
    CheckoutOptions,
    describe_checkout,
    perform_checkout,
    plan_checkout,
)
from ger.commands import CommandResult, result_tag
from ger.commands.actions import (
    build_labels,
    run_abandon,
    run_rebase,
    run_restore,
    run_submit,
    run_topic,
    run_vote,
)
from ger.commands.changes import (
    build_comment_review,
    parse_batch_comments,
    run_comment,
    run_comments,
    run_diff,
    run_incoming,
    run_mine,
    run_search,
    run_show,
    run_status,
)
from ger.commands.extract_url import run_extract_url, validate_pattern
from ger.commands.groups import run_group_members, run_group_show, run_groups, run_projects
from ger.commands.reviewers import (
    parse_notify,
    run_add_reviewer,
    run_remove_reviewer,
    validate_principals,
)
from ger.commands.setup import (
    detect_ai_tools,
    prompt_setup_answers,
    run_install_hook,
    run_open,
    run_setup,
)
from ger.commit_hook import CommitHookManager, HookInstallError, MissingChangeIdError
from ger.config import ConfigError, ConfigStore, Credentials, NetrcOptions
from ger.errors import ValidationError
from ger.gerrit.client import GerritRestError
from ger.gerrit.service import (
    DiffFormat,
    DiffOptions,
    GerritService,
    GerritServiceError,
    GroupQuery,
    create_gerrit_service,
)
from ger.git import GitError, GitRepository, InvalidInputError
from ger.output import OutputFormat, render_error
from ger.output_utils import console, emit, err_console, log_and_print
from ger.push import (
    PushError,
    PushOptions,
    describe_outcome,
    describe_plan,
    execute_push,
    plan_push,
)
from ger.resolver import resolve_change
from ger.review import (
    PatchsetFetchError,
    PostingError,
    ReviewOptions,
    ReviewOrchestrator,
    ReviewStrategyError,
    WorktreeCreationError,
    select_strategy,
)
from ger.url_parser import UrlParseError

log = logging.getLogger("ger.cli")

# Errors lowered to an error envelope at the command boundary
HANDLED_ERRORS = (
    ValidationError,
    ConfigError,
    GerritRestError,
    GerritServiceError,
    GitError,
    InvalidInputError,
    UrlParseError,
    HookInstallError,
    MissingChangeIdError,
    PushError,
    CheckoutError,
    ReviewStrategyError,
    WorktreeCreationError,
    PatchsetFetchError,
    PostingError,
)

app = typer.Typer(
    help="Gerrit code review from the command line",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass
class AppState:
    """Global options shared by every command."""

    netrc: NetrcOptions = field(default_factory=NetrcOptions)
    config_path: Optional[Path] = None

    def store(self) -> ConfigStore:
        return ConfigStore(self.config_path, self.netrc)

    def credentials(self) -> Credentials:
        return self.store().load()

    def service(self) -> GerritService:
        return create_gerrit_service(self.credentials())


def _state(ctx: typer.Context) -> AppState:
    if not isinstance(ctx.obj, AppState):
        ctx.obj = AppState()
    return ctx.obj


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ger version {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    no_netrc: bool = typer.Option(
        False, "--no-netrc", help="Do not read credentials from .netrc"
    ),
    netrc_file: Optional[Path] = typer.Option(
        None, "--netrc-file", help="Read credentials from this .netrc file"
    ),
) -> None:
    """Gerrit code review from the command line."""
    _configure_logging(verbose)
    ctx.obj = AppState(netrc=NetrcOptions(enabled=not no_netrc, path=netrc_file))


# -- boundary ---------------------------------------------------------------


def _fmt(xml: bool, json_output: bool = False) -> OutputFormat:
    return OutputFormat.from_flags(xml=xml, json_output=json_output)


def _report_error(command: str, fmt: OutputFormat, message: str) -> None:
    if fmt == OutputFormat.TEXT:
        err_console.print(f"✗ Error: {message}")
    else:
        emit(render_error(fmt, result_tag(command), message))


@contextmanager
def command_boundary(command: str, fmt: OutputFormat = OutputFormat.TEXT) -> Iterator[None]:
    """Render known errors in the output format and exit 1."""
    try:
        yield
    except HANDLED_ERRORS as exc:
        log.debug("%s failed", command, exc_info=True)
        _report_error(command, fmt, str(exc))
        raise typer.Exit(1) from exc


def _write(result: CommandResult, fmt: OutputFormat) -> None:
    """Print an executor result and exit with its code."""
    if fmt == OutputFormat.TEXT:
        if result.output:
            (err_console if result.to_stderr else console).print(result.output)
    else:
        emit(result.output)
    if result.exit_code:
        raise typer.Exit(result.exit_code)


def _print_lines(lines: List[str]) -> None:
    for line in lines:
        log_and_print(log, console, line)


def _resolve(change: Optional[str]) -> str:
    return resolve_change(change).change_id


def _read_stdin() -> Optional[str]:
    stream = click.get_text_stream("stdin")
    if stream.isatty():
        return None
    return stream.read()


# -- setup ------------------------------------------------------------------


def _setup(ctx: typer.Context) -> None:
    store = _state(ctx).store()
    with command_boundary("setup"):
        try:
            existing = store.load_optional()
        except ConfigError as exc:
            log.warning("Ignoring existing configuration: %s", exc)
            existing = None
        answers = prompt_setup_answers(existing, detect_ai_tools())
        _print_lines(run_setup(store, answers).output.splitlines())


@app.command()
def setup(ctx: typer.Context) -> None:
    """Configure Gerrit credentials interactively."""
    _setup(ctx)


@app.command()
def init(ctx: typer.Context) -> None:
    """Alias for setup."""
    _setup(ctx)


@app.command()
def status(
    ctx: typer.Context,
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Check the connection to Gerrit."""
    fmt = _fmt(xml, json_output)
    with command_boundary("status", fmt):
        _write(run_status(_state(ctx).service(), fmt), fmt)


# -- change lists -----------------------------------------------------------


@app.command()
def search(
    ctx: typer.Context,
    query: Optional[str] = typer.Argument(None, help="Gerrit query (default: is:open)"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum results (default 25)"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Search changes, grouped by project."""
    fmt = _fmt(xml, json_output)
    with command_boundary("search", fmt):
        _write(run_search(_state(ctx).service(), query, limit, fmt), fmt)


@app.command()
def mine(
    ctx: typer.Context,
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List your open changes."""
    fmt = _fmt(xml, json_output)
    with command_boundary("mine", fmt):
        _write(run_mine(_state(ctx).service(), fmt), fmt)


@app.command()
def incoming(
    ctx: typer.Context,
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Pick a change to show"
    ),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List changes waiting for your review."""
    fmt = _fmt(xml, json_output)
    with command_boundary("incoming", fmt):
        service = _state(ctx).service()
        result, changes = run_incoming(service, fmt)
        if not interactive or fmt != OutputFormat.TEXT or not changes:
            _write(result, fmt)
            return

        for index, change in enumerate(changes, start=1):
            console.print(f"  {index}. [{change.project}] {change.number}: {change.subject}")
        choice = typer.prompt("Select a change", type=click.IntRange(1, len(changes)))
        _write(run_show(service, str(changes[choice - 1].number), fmt), fmt)


# -- single change reads ----------------------------------------------------


@app.command()
def show(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show a change with diff, comments and review activity."""
    fmt = _fmt(xml, json_output)
    with command_boundary("show", fmt):
        change_id = _resolve(change)
        _write(run_show(_state(ctx).service(), change_id, fmt), fmt)


@app.command()
def diff(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    file: Optional[str] = typer.Option(None, "--file", help="Only this file"),
    files_only: bool = typer.Option(False, "--files-only", help="List changed files"),
    diff_format: DiffFormat = typer.Option(DiffFormat.UNIFIED, "--format", help="Diff format"),
    patchset: Optional[int] = typer.Option(None, "--patchset", "-p", help="Patchset to show"),
    base: Optional[int] = typer.Option(None, "--base", help="Patchset to diff against"),
    full_files: bool = typer.Option(
        False, "--full-files", help="Show full file contents instead of a diff"
    ),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show the diff of a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("diff", fmt):
        change_id = _resolve(change)
        options = DiffOptions(
            format=DiffFormat.FILES.value if files_only else diff_format.value,
            file=file,
            patchset=patchset,
            base=base,
            full_files=full_files,
        )
        _write(run_diff(_state(ctx).service(), change_id, options, fmt), fmt)


@app.command()
def comments(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List the inline comments of a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("comments", fmt):
        change_id = _resolve(change)
        _write(run_comments(_state(ctx).service(), change_id, fmt), fmt)


@app.command("extract-url")
def extract_url(
    ctx: typer.Context,
    pattern: str = typer.Argument(..., help="Substring (or regex with --regex) to match"),
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    include_comments: bool = typer.Option(
        False, "--include-comments", help="Also search inline comments"
    ),
    regex: bool = typer.Option(False, "--regex", help="Treat the pattern as a regex"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Extract URLs from change messages, oldest first."""
    fmt = _fmt(xml, json_output)
    with command_boundary("extract-url", fmt):
        compiled = validate_pattern(pattern, regex)
        change_id = _resolve(change)
        _write(
            run_extract_url(
                _state(ctx).service(), change_id, pattern, compiled, include_comments, fmt
            ),
            fmt,
        )


@app.command("build-status")
def build_status(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    watch: bool = typer.Option(False, "--watch", help="Poll until the build finishes"),
    interval: int = typer.Option(10, "--interval", "-i", help="Seconds between polls"),
    timeout: int = typer.Option(1800, "--timeout", help="Give up after this many seconds"),
    exit_status: bool = typer.Option(
        False, "--exit-status", help="Exit 1 when the build failed"
    ),
) -> None:
    """Report the CI build state of a change as JSON lines."""
    options = WatchOptions(
        watch=watch, interval=interval, timeout=timeout, exit_status=exit_status
    )
    try:
        change_id = _resolve(change)
        code = BuildStatusWatcher(_state(ctx).service(), options).run(change_id)
    except BuildStatusTimeoutError as exc:
        err_console.print(f"✗ Error: {exc}")
        raise typer.Exit(EXIT_TIMEOUT) from exc
    except HANDLED_ERRORS as exc:
        err_console.print(f"✗ Error: {exc}")
        raise typer.Exit(EXIT_UNEXPECTED) from exc
    except Exception as exc:
        log.debug("build-status failed", exc_info=True)
        err_console.print(f"✗ Error: {exc}")
        raise typer.Exit(EXIT_UNEXPECTED) from exc
    if code:
        raise typer.Exit(code)


@app.command("open")
def open_change(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
) -> None:
    """Open a change in the browser."""
    with command_boundary("open"):
        change_id = _resolve(change)
        _write(run_open(_state(ctx).service(), change_id), OutputFormat.TEXT)


# -- single change writes ---------------------------------------------------


@app.command()
def comment(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Comment text"),
    file: Optional[str] = typer.Option(None, "--file", help="File for a line comment"),
    line: Optional[int] = typer.Option(None, "--line", help="Line for a line comment"),
    unresolved: bool = typer.Option(False, "--unresolved", help="Mark as unresolved"),
    batch: bool = typer.Option(False, "--batch", help="Read comments as JSON from stdin"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Post a comment (overall, line, or a JSON batch from stdin)."""
    fmt = _fmt(xml, json_output)
    with command_boundary("comment", fmt):
        change_id = _resolve(change)
        if batch:
            raw = _read_stdin()
            if not raw or not raw.strip():
                raise ValidationError("Batch mode requires JSON input on stdin")
            review = parse_batch_comments(raw)
        else:
            text = message if message is not None else _read_stdin()
            review = build_comment_review(text, file, line, unresolved)
        _write(run_comment(_state(ctx).service(), change_id, review, fmt), fmt)


def _flatten_label_pairs(labels: Optional[List[str]]) -> List[str]:
    pairs: List[str] = []
    for entry in labels or []:
        if "=" in entry:
            pairs.extend(entry.split("=", 1))
        else:
            pairs.append(entry)
    return pairs


@app.command()
def vote(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    code_review: Optional[int] = typer.Option(None, "--code-review", help="Code-Review vote"),
    verified: Optional[int] = typer.Option(None, "--verified", help="Verified vote"),
    label: Optional[List[str]] = typer.Option(
        None, "--label", help="Custom label as NAME=VALUE (repeatable)"
    ),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Message"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Vote on a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("vote", fmt):
        change_id = _resolve(change)
        labels = build_labels(code_review, verified, _flatten_label_pairs(label))
        _write(run_vote(_state(ctx).service(), change_id, labels, message, fmt), fmt)


@app.command()
def submit(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Submit a change after checking its requirements."""
    fmt = _fmt(xml, json_output)
    with command_boundary("submit", fmt):
        change_id = _resolve(change)
        _write(run_submit(_state(ctx).service(), change_id, fmt), fmt)


@app.command()
def abandon(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Reason"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Abandon a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("abandon", fmt):
        change_id = _resolve(change)
        _write(run_abandon(_state(ctx).service(), change_id, message, fmt), fmt)


@app.command()
def restore(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Reason"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Restore an abandoned change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("restore", fmt):
        change_id = _resolve(change)
        _write(run_restore(_state(ctx).service(), change_id, message, fmt), fmt)


@app.command()
def rebase(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    base: Optional[str] = typer.Option(None, "--base", help="Base revision or change"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Rebase a change on the server."""
    fmt = _fmt(xml, json_output)
    with command_boundary("rebase", fmt):
        change_id = _resolve(change)
        _write(run_rebase(_state(ctx).service(), change_id, base, fmt), fmt)


@app.command()
def topic(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    new_topic: Optional[str] = typer.Argument(None, help="Topic to set"),
    delete: bool = typer.Option(False, "--delete", help="Remove the topic"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Get, set or delete the topic of a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("topic", fmt):
        change_id = _resolve(change)
        _write(run_topic(_state(ctx).service(), change_id, new_topic, delete, fmt), fmt)


# -- reviewers --------------------------------------------------------------


@app.command("add-reviewer")
def add_reviewer(
    ctx: typer.Context,
    principals: Optional[List[str]] = typer.Argument(None, help="Accounts, emails or groups"),
    change: Optional[str] = typer.Option(None, "--change", "-c", help="Change to update"),
    cc: bool = typer.Option(False, "--cc", help="Add as CC instead of reviewer"),
    group: bool = typer.Option(False, "--group", help="Principals are groups"),
    notify: Optional[str] = typer.Option(
        None, "--notify", help="none, owner, owner_reviewers or all"
    ),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Add reviewers, CCs or groups to a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("add-reviewer", fmt):
        change_id = _resolve(change)
        names = principals or []
        validate_principals(change_id, names, group)
        level = parse_notify(notify)
        _write(
            run_add_reviewer(_state(ctx).service(), change_id, names, cc, group, level, fmt),
            fmt,
        )


@app.command("remove-reviewer")
def remove_reviewer(
    ctx: typer.Context,
    principals: Optional[List[str]] = typer.Argument(None, help="Accounts or emails"),
    change: Optional[str] = typer.Option(None, "--change", "-c", help="Change to update"),
    notify: Optional[str] = typer.Option(
        None, "--notify", help="none, owner, owner_reviewers or all"
    ),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Remove reviewers from a change."""
    fmt = _fmt(xml, json_output)
    with command_boundary("remove-reviewer", fmt):
        change_id = _resolve(change)
        names = principals or []
        validate_principals(change_id, names)
        level = parse_notify(notify)
        _write(run_remove_reviewer(_state(ctx).service(), change_id, names, level, fmt), fmt)


# -- projects and groups ----------------------------------------------------


@app.command()
def projects(
    ctx: typer.Context,
    pattern: Optional[str] = typer.Option(None, "--pattern", help="Project name prefix"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List projects."""
    fmt = _fmt(xml, json_output)
    with command_boundary("projects", fmt):
        _write(run_projects(_state(ctx).service(), pattern, fmt), fmt)


@app.command()
def groups(
    ctx: typer.Context,
    pattern: Optional[str] = typer.Option(None, "--pattern", help="Group name filter"),
    owned: bool = typer.Option(False, "--owned", help="Only groups you own"),
    project: Optional[str] = typer.Option(None, "--project", help="Groups used by a project"),
    user: Optional[str] = typer.Option(None, "--user", help="Groups a user belongs to"),
    limit: int = typer.Option(25, "--limit", help="Maximum results"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List groups."""
    fmt = _fmt(xml, json_output)
    query = GroupQuery(pattern=pattern, owned=owned, project=project, user=user, limit=limit)
    with command_boundary("groups", fmt):
        _write(run_groups(_state(ctx).service(), query, fmt), fmt)


@app.command("groups-show")
def groups_show(
    ctx: typer.Context,
    group_id: str = typer.Argument(..., help="Group name, UUID or numeric id"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show a group's details."""
    fmt = _fmt(xml, json_output)
    with command_boundary("groups-show", fmt):
        _write(run_group_show(_state(ctx).service(), group_id, fmt), fmt)


@app.command("groups-members")
def groups_members(
    ctx: typer.Context,
    group_id: str = typer.Argument(..., help="Group name, UUID or numeric id"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List the members of a group."""
    fmt = _fmt(xml, json_output)
    with command_boundary("groups-members", fmt):
        _write(run_group_members(_state(ctx).service(), group_id, fmt), fmt)


# -- local repository workflows ---------------------------------------------


@app.command("install-hook")
def install_hook(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing hook"),
    xml: bool = typer.Option(False, "--xml", help="XML output"),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Install Gerrit's commit-msg hook in this repository."""
    fmt = _fmt(xml, json_output)
    with command_boundary("install-hook", fmt):
        credentials = _state(ctx).credentials()
        manager = CommitHookManager(GitRepository(), credentials.host)
        _write(run_install_hook(manager, force, fmt), fmt)


@app.command()
def push(
    ctx: typer.Context,
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Target branch"),
    topic_name: Optional[str] = typer.Option(None, "--topic", "-t", help="Topic"),
    reviewer: Optional[List[str]] = typer.Option(
        None, "--reviewer", "-r", help="Reviewer email (repeatable)"
    ),
    cc: Optional[List[str]] = typer.Option(None, "--cc", help="CC email (repeatable)"),
    wip: bool = typer.Option(False, "--wip", help="Mark as work in progress"),
    ready: bool = typer.Option(False, "--ready", help="Mark as ready for review"),
    private: bool = typer.Option(False, "--private", help="Mark as private"),
    draft: bool = typer.Option(False, "--draft", help="Same as --wip"),
    hashtag: Optional[List[str]] = typer.Option(
        None, "--hashtag", help="Hashtag (repeatable)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be pushed"),
) -> None:
    """Push HEAD to Gerrit for review."""
    options = PushOptions(
        branch=branch,
        topic=topic_name,
        reviewers=tuple(reviewer or ()),
        cc=tuple(cc or ()),
        hashtags=tuple(hashtag or ()),
        wip=wip,
        ready=ready,
        private=private,
        draft=draft,
        dry_run=dry_run,
    )
    with command_boundary("push"):
        credentials = _state(ctx).credentials()
        repo = GitRepository()
        plan = plan_push(repo, credentials.host, options)
        _print_lines(describe_plan(plan, options) + [""])
        _print_lines(describe_outcome(execute_push(repo, plan, dry_run=dry_run)))


@app.command()
def checkout(
    ctx: typer.Context,
    change: str = typer.Argument(..., help="Change number, URL or NUMBER/PATCHSET"),
    detach: bool = typer.Option(False, "--detach", help="Check out as detached HEAD"),
    remote: Optional[str] = typer.Option(None, "--remote", help="Remote to fetch from"),
) -> None:
    """Fetch a change and check it out locally."""
    with command_boundary("checkout"):
        service = _state(ctx).service()
        repo = GitRepository()
        plan = plan_checkout(service, repo, change, CheckoutOptions(detach=detach, remote=remote))
        _print_lines(describe_checkout(plan))
        _print_lines(perform_checkout(repo, plan, detach=detach))


@app.command()
def review(
    ctx: typer.Context,
    change: Optional[str] = typer.Argument(None, help="Change number, Change-Id or URL"),
    post: bool = typer.Option(False, "--comment", help="Post the review to Gerrit"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Post without asking"),
    debug: bool = typer.Option(False, "--debug", help="Show raw AI output"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Custom review prompt file"),
    tool: Optional[str] = typer.Option(None, "--tool", help="AI tool to use"),
    system_prompt: Optional[str] = typer.Option(
        None, "--system-prompt", help="Replace the built-in system prompts"
    ),
) -> None:
    """Review a change with an AI tool."""
    with command_boundary("review"):
        change_id = _resolve(change)
        state = _state(ctx)
        credentials = state.credentials()
        log_and_print(log, console, "→ Checking AI tool availability...")
        strategy = select_strategy(
            tool or credentials.ai_tool, auto_detect=credentials.ai_auto_detect
        )
        options = ReviewOptions(
            comment=post,
            yes=yes,
            debug=debug,
            prompt_file=prompt,
            system_prompt=system_prompt,
        )
        orchestrator = ReviewOrchestrator(
            create_gerrit_service(credentials),
            GitRepository(),
            strategy,
            options,
            out=console.print,
            err=err_console.print,
        )
        orchestrator.run(change_id)


if __name__ == "__main__":
    app()
