import logging
import os

import click

from admkit.cli.commands.apt import apt_group
from admkit.cli.commands.arti import arti_group
from admkit.cli.commands.btrfs import btrfs_group
from admkit.cli.commands.clamav import clamav_group
from admkit.cli.commands.config import config_group
from admkit.cli.commands.github import github_group
from admkit.cli.commands.gpg import gpg_group
from admkit.cli.commands.maintenance import clean_logs_cmd, sysupgrade_cmd
from admkit.cli.commands.sysclean import sysclean_group
from admkit.cli.commands.update import update_cmd
from admkit.cli.commands.website import website_group
from admkit.cli.ensure import fail
from admkit.core.context import create_context, env_dry_run

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


def configure_logging() -> None:
    """Debug diagnostics go to stderr only when ADMKIT_DEBUG is set."""
    if os.environ.get("ADMKIT_DEBUG"):
        logging.basicConfig(
            level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s"
        )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="admkit")
@click.option(
    "-n", "--dry-run", is_flag=True, help="Print mutating commands instead of running them."
)
@click.option(
    "--silent", is_flag=True, help="Hide progress and command output unless a command fails."
)
@click.pass_context
def cli(ctx: click.Context, dry_run: bool, silent: bool) -> None:
    """Administer Debian-family hosts: repositories, updates and maintenance."""
    configure_logging()
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        try:
            ctx.obj = create_context(dry_run=dry_run or env_dry_run(), silent=silent)
        except ValueError as e:
            fail(str(e))


cli.add_command(apt_group)
cli.add_command(arti_group)
cli.add_command(btrfs_group)
cli.add_command(clamav_group)
cli.add_command(clean_logs_cmd)
cli.add_command(config_group)
cli.add_command(github_group)
cli.add_command(gpg_group)
cli.add_command(sysclean_group)
cli.add_command(sysupgrade_cmd)
cli.add_command(update_cmd)
cli.add_command(website_group)


def main() -> None:
    """CLI entry point used by the `admkit` console script."""
    cli()
