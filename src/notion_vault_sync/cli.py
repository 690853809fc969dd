"""CLI entrypoint for notion-vault-sync.

Provides commands to sync a Markdown vault with a Notion database without
needing the MCP server running.  Conflicts are either prompted for
interactively (``--strategy ask``) or resolved by a fixed policy, which is
what unattended runs such as CI jobs want.
"""

from __future__ import annotations

import asyncio
import sys

import click

from notion_vault_sync.logger import setup_logging
from notion_vault_sync.sync.engine import SyncEngine, SyncSummary
from notion_vault_sync.sync.resolver import (
    ConflictRecord,
    DecisionProvider,
    Resolution,
    StaticDecisionProvider,
)
from notion_vault_sync.vault.store import SyncedDocument

STRATEGIES = ["ask", "local", "remote", "skip"]

_CHOICES = {
    "l": Resolution.LOCAL,
    "r": Resolution.REMOTE,
    "i": Resolution.INSPECT,
    "s": Resolution.SKIP,
}


class PromptDecisionProvider:
    """Asks on the terminal how to resolve each conflict."""

    async def choose(self, record: ConflictRecord) -> Resolution:
        click.echo(f"\nConflict: {record.document.path} changed locally and in Notion.")
        answer = await asyncio.to_thread(
            click.prompt,
            "Keep [l]ocal, keep [r]emote, [i]nspect differences or [s]kip",
            type=click.Choice(list(_CHOICES)),
            default="s",
        )
        return _CHOICES[answer]

    async def show_differences(self, record: ConflictRecord, diff: str) -> None:
        click.echo(diff or "(no textual differences; the note was moved)")

    async def confirm_detach(self, document: SyncedDocument) -> bool:
        return await asyncio.to_thread(
            click.confirm,
            f"The Notion page of {document.path} no longer exists. Unlink the note?",
            default=False,
        )


def _provider(strategy: str, detach: bool) -> DecisionProvider:
    if strategy == "ask":
        return PromptDecisionProvider()
    return StaticDecisionProvider(Resolution(strategy), detach=detach)


def _build_engine(vault: str | None, strategy: str, detach: bool) -> SyncEngine:
    try:
        return SyncEngine.from_settings(_provider(strategy, detach), vault_dir=vault)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


def _report(summary: SyncSummary) -> None:
    click.echo(
        f"Uploaded {summary.uploaded}, downloaded {summary.downloaded}, "
        f"archived {summary.archived}, detached {summary.detached}, "
        f"skipped {summary.skipped}, conflicts {summary.conflicts}."
    )
    for error in summary.errors:
        click.echo(f"  FAIL: {error}", err=True)
    if summary.offline:
        click.echo(f"Offline: {summary.pending} operation(s) left pending.", err=True)
    if summary.failed or summary.offline:
        sys.exit(1)


@click.group()
@click.option("--vault", default=None, help="Vault directory (default: NOTION_SYNC_DIR).")
@click.option(
    "--strategy",
    type=click.Choice(STRATEGIES),
    default="ask",
    show_default=True,
    help="How to resolve conflicts.",
)
@click.option("--detach", is_flag=True, help="Unlink notes whose Notion page is gone.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--log-file", default=None, help="Also write logs to this file.")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Log line format.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    vault: str | None,
    strategy: str,
    detach: bool,
    verbose: bool,
    log_file: str | None,
    log_format: str,
) -> None:
    """notion-vault-sync CLI: sync a Markdown vault with a Notion database."""
    setup_logging("cli", debug=verbose, log_file=log_file, debug_format=log_format)
    ctx.ensure_object(dict)
    ctx.obj.update(vault=vault, strategy=strategy, detach=detach)


def _run(ctx: click.Context, operation: str) -> None:
    engine = _build_engine(ctx.obj["vault"], ctx.obj["strategy"], ctx.obj["detach"])
    summary = asyncio.run(getattr(engine, operation)())
    _report(summary)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Bidirectional sync of the whole vault."""
    _run(ctx, "sync")


@cli.command()
@click.pass_context
def push(ctx: click.Context) -> None:
    """Upload local changes and archive orphaned pages."""
    _run(ctx, "push")


@cli.command()
@click.pass_context
def pull(ctx: click.Context) -> None:
    """Download remote changes of linked notes."""
    _run(ctx, "pull")


@cli.command()
@click.pass_context
def clone(ctx: click.Context) -> None:
    """Write every page of the database into the vault."""
    _run(ctx, "clone")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the sync status of every note."""
    engine = _build_engine(ctx.obj["vault"], ctx.obj["strategy"], ctx.obj["detach"])
    entries = asyncio.run(engine.get_sync_status())
    if not entries:
        click.echo("No notes in the vault.")
        return
    for entry in entries:
        line = f"{entry.status.value:<13} {entry.path}"
        if entry.link:
            line += f"  {entry.link}"
        if entry.error:
            line += f"  ({entry.error})"
        click.echo(line)


if __name__ == "__main__":
    cli()
