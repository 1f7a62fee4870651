"""Keyring inspection commands."""

from __future__ import annotations

from fnmatch import fnmatchcase

import anyio
import typer

from devca.apps.cli.commands.ca import cli_state, run_safe

app = typer.Typer(help="Inspect and purge private keys held in the OS keyring.")


async def _accounts(ctx: typer.Context) -> list[str]:
    store = cli_state(ctx).secrets()
    return [entry.account async for entry in store.list()]


@app.command("list")
@run_safe
def cmd_list(ctx: typer.Context):
    """List stored key accounts."""

    accounts = anyio.run(_accounts, ctx)
    if not accounts:
        typer.echo("no keys stored")
        return
    for account in accounts:
        typer.echo(account)


@app.command("purge")
@run_safe
def cmd_purge(
    ctx: typer.Context,
    pattern: str = typer.Argument(..., help="Glob matched against the key account (its would-be file path)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only show what would be deleted."),
):
    """Delete keys whose account matches PATTERN."""

    store = cli_state(ctx).secrets()

    async def _purge() -> list[str]:
        removed = []
        async for entry in store.list():
            if not fnmatchcase(entry.account, pattern):
                continue
            if not dry_run:
                await entry.delete()
            removed.append(entry.account)
        return removed

    removed = anyio.run(_purge)
    for account in removed:
        typer.echo(("would delete " if dry_run else "deleted ") + account)
    typer.echo(f"{len(removed)} key(s) matched")


__all__ = ["app"]
