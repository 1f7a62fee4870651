from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from devca.apps.cli.commands import ca as ca_commands
from devca.apps.cli.commands import keys as keys_commands
from devca.services.logging import setup_logging
from devca.services.settings import Settings, SettingsError

app = typer.Typer(help="Local certificate authority for development TLS.", no_args_is_help=True)
ca_commands.register(app)
app.add_typer(keys_commands.app, name="keys")


@app.callback()
def main(
    ctx: typer.Context,
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Directory for CA certs."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="More verbose."),
    quiet: int = typer.Option(0, "--quiet", "-q", count=True, help="Less verbose."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write JSON logs to this file."),
):
    try:
        settings = Settings.from_sources(config_file=config)
    except SettingsError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc
    if directory is not None:
        settings = settings.with_overrides(ca_dir=directory)
    setup_logging(verbose - quiet, base_level=settings.log_level, log_file=log_file)
    ctx.obj = ca_commands.CliState(settings=settings)


def run() -> None:
    """Console entry point."""

    app(prog_name="devca")


__all__ = ["app", "run"]
