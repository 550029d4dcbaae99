import os
from pathlib import Path

import click

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.arti_service import UserDirs, install_arti_service
from admkit.core.context import AdmContext


@click.group("arti")
def arti_group() -> None:
    """Run the Arti Tor client as a systemd user service."""


@arti_group.command("install-service")
@click.pass_obj
def install_service_cmd(ctx: AdmContext) -> None:
    """Install arti.service for the current user and start it.

    Any existing arti.toml is backed up before the example configuration
    replaces it. Install the arti binary first with 'admkit update arti'.
    """
    Ensure.command_available(ctx, "systemctl")
    home = ctx.host.user_home(ctx.host.user_name()) or Path.home()
    dirs = UserDirs.from_env(os.environ, home)

    try:
        report = install_arti_service(ctx, dirs)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if report.backup is not None:
        user_output(f"Previous configuration saved as {report.backup}")
