import click

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.website import sync_website


@click.group("website")
def website_group() -> None:
    """Keep a deployed website checkout in sync with GitHub."""


@website_group.command("sync")
@click.pass_obj
def sync_cmd(ctx: AdmContext) -> None:
    """Sync the website checkout and restart the web server.

    Exits successfully without doing anything when another sync is running.
    """
    Ensure.is_root(ctx)

    try:
        report = sync_website(ctx)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if report.method is not None:
        user_output(f"Synced via {report.method}")
