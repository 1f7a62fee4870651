"""Certificate authority CLI commands."""

from __future__ import annotations

import logging
import os
import traceback
from dataclasses import dataclass
from functools import partial, wraps
from pathlib import Path
from typing import List, Optional

import anyio
import typer

from devca.adapters.fs.path_provider import PathProvider
from devca.config.const import DEFAULT_CERT_HOSTS
from devca.services.certs.authority import CertificateAuthority, create_ca, create_cert
from devca.services.certs.errors import DevCAError
from devca.services.certs.options import CertOptions, CommonCertOptions
from devca.services.certs.record import SELF_SIGNED, CertificateRecord
from devca.services.crypto.keychain import SecretStore
from devca.services.settings import Settings

_log = logging.getLogger("devca.cli")


@dataclass
class CliState:
    settings: Settings

    @property
    def paths(self) -> PathProvider:
        return PathProvider(self.settings)

    @property
    def ca_dir(self) -> Path:
        return self.paths.ca_dir()

    def secrets(self) -> SecretStore:
        return SecretStore.from_settings(self.settings)

    def cert_options(self, **overrides) -> CertOptions:
        return CertOptions.from_settings(self.settings, **overrides)

    def ca_location(self, subject: str | None = None, **overrides) -> CommonCertOptions:
        return CommonCertOptions(
            dir=self.ca_dir,
            host=subject or self.settings.ca_subject,
            **overrides,
        )


def cli_state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if not isinstance(state, CliState):
        state = CliState(settings=Settings.from_sources())
        ctx.obj = state
    return state


def run_safe(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DevCAError as exc:
            _log.debug("%s failed", func.__name__, exc_info=True)
            if os.getenv("DEVCA_CLI_DEBUG") == "1":
                traceback.print_exc()
            typer.secho(f"error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _describe(record: CertificateRecord) -> str:
    return f"{record.not_after.isoformat()} {record.subject}"


def cmd_create(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Always create a new CA certificate."),
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Subject for the CA cert."),
):
    """Create a CA certificate."""

    state = cli_state(ctx)
    opts = state.cert_options(force_ca=force, **({"ca_subject": subject} if subject else {}))
    record = anyio.run(partial(create_ca, opts, secrets=state.secrets()))
    typer.echo(_describe(record))


def cmd_cert(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Always create a new certificate."),
    host: Optional[List[str]] = typer.Option(
        None, "--host", "-H", help="Hostname for the certificate; repeat for more SANs."
    ),
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Subject for the CA cert."),
    cert_dir: Optional[Path] = typer.Option(None, "--cert-dir", help="Directory for the issued certificate."),
    not_after_days: float = typer.Option(7, "--days", help="Certificate lifetime in days."),
    min_run_days: float = typer.Option(1, "--min-run-days", help="Renew when less validity than this remains."),
):
    """Create a certificate signed by the CA."""

    state = cli_state(ctx)
    overrides: dict = {
        "force_cert": force,
        "host": list(host) if host else list(DEFAULT_CERT_HOSTS),
        "not_after_days": not_after_days,
        "min_run_days": min_run_days,
    }
    if subject:
        overrides["ca_subject"] = subject
    if cert_dir:
        overrides["cert_dir"] = cert_dir
    opts = state.cert_options(**overrides)
    record = anyio.run(partial(create_cert, opts, secrets=state.secrets()))
    typer.echo(_describe(record))
    if record.cert_file:
        typer.echo(str(record.cert_file))


def cmd_dir(ctx: typer.Context):
    """Show the directory holding CA certificates."""

    typer.echo(str(cli_state(ctx).ca_dir))


async def _collect_authorities(state: CliState) -> list[CertificateRecord]:
    location = state.ca_location(no_key=True)
    return [record async for record in CertificateAuthority.list_authorities(location, secrets=state.secrets())]


def cmd_list(ctx: typer.Context):
    """List existing CA certificates by subject."""

    state = cli_state(ctx)
    records = anyio.run(_collect_authorities, state)
    if not records:
        typer.echo("no CA certificates found")
        return
    for record in records:
        typer.echo(_describe(record))


def cmd_rm(ctx: typer.Context, subject: str = typer.Argument(..., help="Subject of the CA cert to remove.")):
    """Remove a CA certificate and its key by subject."""

    state = cli_state(ctx)

    async def _remove() -> bool:
        location = state.ca_location(subject, no_key=True)
        record = await CertificateRecord.read(location, subject, SELF_SIGNED, secrets=state.secrets())
        if record is None:
            return False
        await record.delete(location, secrets=state.secrets())
        return True

    if not anyio.run(_remove):
        typer.secho(f"no CA certificate for {subject}", fg=typer.colors.YELLOW)
        raise typer.Exit(1)
    typer.echo(f"removed {subject}")


def cmd_rm_all(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Remove every CA certificate and key in the CA directory."""

    state = cli_state(ctx)
    if not yes:
        typer.confirm(f"Delete all CA certificates in {state.ca_dir}?", abort=True)

    async def _remove_all() -> int:
        count = 0
        for record in await _collect_authorities(state):
            await record.delete(secrets=state.secrets())
            count += 1
        return count

    count = anyio.run(_remove_all)
    typer.echo(f"removed {count} CA certificate(s)")


def register(app: typer.Typer) -> None:
    app.command("create")(run_safe(cmd_create))
    app.command("cert")(run_safe(cmd_cert))
    app.command("dir")(run_safe(cmd_dir))
    app.command("list")(run_safe(cmd_list))
    app.command("rm")(run_safe(cmd_rm))
    app.command("rm-all")(run_safe(cmd_rm_all))


__all__ = ["CliState", "cli_state", "register", "run_safe"]
