"""Routine host maintenance: log cleanup and full upgrades."""

import dataclasses

import click

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.logs import clean_logs
from admkit.core.sysupgrade import UpgradeOptions, sysupgrade


@click.command("clean-logs")
@click.option(
    "-n", "--dry-run", "list_only", is_flag=True, help="List matching files without deleting."
)
@click.pass_obj
def clean_logs_cmd(ctx: AdmContext, list_only: bool) -> None:
    """Delete rotated *.gz logs and leftover *.old files."""
    if list_only and not ctx.dry_run:
        # Only Python-level deletes happen here, so flipping the flag is enough
        ctx = dataclasses.replace(ctx, dry_run=True)
    Ensure.is_root(ctx)

    result = clean_logs(ctx)
    if ctx.dry_run:
        user_output(f"{len(result.matched)} file(s) would be deleted")
    else:
        user_output(f"Deleted {len(result.deleted)} of {len(result.matched)} file(s)")


@click.command("sysupgrade")
@click.option("--tor", is_flag=True, help="Run APT through torsocks.")
@click.option("--no-audit", is_flag=True, help="Skip the Lynis and systemcheck audit.")
@click.option("--no-report", is_flag=True, help="Skip the system information report.")
@click.pass_obj
def sysupgrade_cmd(ctx: AdmContext, tor: bool, no_audit: bool, no_report: bool) -> None:
    """Back up /etc, fully upgrade the system and write an audit report."""
    Ensure.is_root(ctx)
    if tor:
        Ensure.command_available(ctx, "torsocks")
    Ensure.command_available(ctx, "tar")

    options = UpgradeOptions(tor=tor, audit=not no_audit, report=not no_report)
    try:
        result = sysupgrade(ctx, options)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if result.backup is not None:
        user_output(f"/etc backup: {result.backup}")
    if result.report is not None:
        user_output(f"System report: {result.report}")
