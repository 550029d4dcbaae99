import click

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.clamav import setup_clamav
from admkit.core.context import AdmContext


@click.group("clamav")
def clamav_group() -> None:
    """ClamAV on-access and periodic scanning."""


@clamav_group.command("setup")
@click.option(
    "--apply-live",
    is_flag=True,
    help="Apply layered rpm-ostree packages now instead of after a reboot.",
)
@click.pass_obj
def setup_cmd(ctx: AdmContext, apply_live: bool) -> None:
    """Configure freshclam, clamd, clamonacc and a daily scan timer."""
    Ensure.is_root(ctx)
    Ensure.command_available(ctx, "systemctl")

    try:
        report = setup_clamav(ctx, apply_live=apply_live)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if report.scheduled:
        user_output("Packages layered. Setup finishes automatically after the next reboot.")
        return
    clamav = ctx.config.clamav
    user_output(f"Logs: {ctx.config.paths.log_root / 'freshclam.log'}, {clamav.log_dir}/*.log")
    user_output(f"Quarantine: {clamav.quarantine_dir}")
