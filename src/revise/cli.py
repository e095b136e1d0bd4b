"""CLI commands for reviewing and applying assistant-proposed changes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .changes.controller import ChangeSetApplyError, ConfirmationRequired
from .changes.schema import ChangeSet
from .config import DEFAULT_CONFIG_NAME, ConfigError, ReviseConfig, load_config, write_default_config
from .session import ReviewSession
from .tools.line_diff import count_changes
from .tools.patch import PatchError, apply_unified_diff
from .workspace import LocalWorkspace, WorkspaceError

APP_HELP = "Review, apply and revert assistant-proposed file changes."

app = typer.Typer(help=APP_HELP)


def _load(config: str, *, required: bool = False) -> ReviseConfig:
    try:
        loaded = load_config(Path(config), required=required)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    logging.basicConfig(level=loaded.logging.level, format="%(levelname)s %(name)s: %(message)s")
    return loaded


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as error:
        raise typer.BadParameter(f"Cannot read {path}: {error}") from error


def _render_change_set(change_set: ChangeSet) -> None:
    stats = change_set.stats
    typer.echo(
        f"Change set {change_set.id}: {stats.files_changed} file(s), "
        f"+{stats.lines_added} -{stats.lines_removed}"
    )
    for change in change_set.files:
        marker = "new" if change.is_new_file else change.kind.value
        typer.echo(f"- [{marker}] {change.path} (+{change.counts.added} -{change.counts.removed})")


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path of the configuration file to create.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists: {config_path}")
        raise typer.Exit(code=1)
    write_default_config(config_path)
    typer.echo(f"Wrote {config_path}")


@app.command()
def diff(
    old: Path = typer.Argument(..., help="Original file."),
    new: Path = typer.Argument(..., help="Updated file."),
) -> None:
    """Report how many lines differ between two files."""
    counts = count_changes(_read_text(old), _read_text(new))
    typer.echo(f"+{counts.added} -{counts.removed}")


@app.command("apply-patch")
def apply_patch(
    target: Path = typer.Argument(..., help="File the diff applies to."),
    patch_file: Path = typer.Argument(..., help="Unified diff to apply."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result here instead of stdout."),
) -> None:
    """Apply a unified diff to a single file without touching it."""
    base = _read_text(target) if target.exists() else None
    try:
        result = apply_unified_diff(base, _read_text(patch_file))
    except PatchError as error:
        typer.echo(f"Patch failed: {error}", err=True)
        raise typer.Exit(code=1) from error
    if output is None:
        typer.echo(result, nl=False)
    else:
        output.write_text(result, encoding="utf-8")
        typer.echo(f"Wrote {output}")


@app.command()
def review(
    response: Path = typer.Argument(..., help="File holding the raw assistant response."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
    apply: bool = typer.Option(False, "--apply", help="Apply the change set after showing it."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt for risky change sets."),
) -> None:
    """Recover edits from an assistant response and optionally apply them."""
    loaded = _load(config)
    root = loaded.workspace_root()
    try:
        workspace = LocalWorkspace(root)
    except WorkspaceError as error:
        typer.echo(f"Workspace unavailable: {error}")
        raise typer.Exit(code=1) from error

    session = ReviewSession(workspace, policy=loaded.review_policy(), workspace_root=str(root))
    try:
        result = session.propose(_read_text(response))
    except PatchError as error:
        typer.echo(f"Patch failed: {error}")
        raise typer.Exit(code=1) from error
    except WorkspaceError as error:
        typer.echo(f"Cannot build change set: {error}")
        raise typer.Exit(code=1) from error

    if result is None:
        typer.echo("No edits proposed.")
        return
    if result.proposal.message:
        typer.echo(result.proposal.message)
    if result.did_sanitize:
        typer.echo("Warning: some paths were rewritten to stay inside the workspace:")
        for raw, safe in result.sanitized_paths:
            typer.echo(f"  {raw} -> {safe}")
    if result.change_set is None:
        typer.echo("No file changes proposed.")
        return

    _render_change_set(result.change_set)
    if not apply:
        return

    try:
        outcome = session.accept_all()
        if isinstance(outcome, ConfirmationRequired):
            typer.echo("This change set needs confirmation:")
            for reason in outcome.reasons:
                typer.echo(f"- {reason}")
            if not yes and not typer.confirm("Apply anyway?", default=False):
                typer.echo("Change set not applied.")
                return
            outcome = session.accept_all(confirmed=True)
    except ChangeSetApplyError as error:
        typer.echo(f"Apply failed: {error}")
        if error.completed:
            typer.echo("Already written: " + ", ".join(error.completed))
        raise typer.Exit(code=1) from error

    typer.echo("Change set applied.")
    for command in session.drain_commands():
        typer.echo(f"Queued command: {command.command}")


@app.command()
def status(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    )
) -> None:
    """Validate configuration and report the workspace and review policy."""
    loaded = _load(config, required=True)
    root = loaded.workspace_root()
    typer.echo(f"Loaded configuration from {config}")
    typer.echo(f"Workspace: {root.as_posix()}")
    try:
        files = LocalWorkspace(root).list_files()
    except WorkspaceError as error:
        typer.echo(f"Workspace unavailable: {error}")
        raise typer.Exit(code=1) from error
    typer.echo(f"Files: {len(files)}")

    policy = loaded.review_policy()
    typer.echo(
        f"Confirm when: >{policy.confirm_file_threshold} files"
        f"{', deletes' if policy.confirm_on_delete else ''}"
        f"{', renames' if policy.confirm_on_rename else ''}"
        f"{', new files' if policy.confirm_on_new_file else ''}"
    )
    tracking = "per file" if policy.per_file_applied_state else "whole change set"
    typer.echo(f"Applied state: {tracking}")


if __name__ == "__main__":
    app()
