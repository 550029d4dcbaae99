"""APT repository commands."""

import click
from rich.console import Console
from rich.table import Table

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.apt.repos import (
    REPOSITORIES,
    RepoOptions,
    add_repository,
    configured_sources,
    repository_names,
)
from admkit.core.apt.tor_transport import enable_tor_transport
from admkit.core.context import AdmContext


@click.group("apt")
def apt_group() -> None:
    """Manage APT repositories and transports."""


@apt_group.command("add-repo")
@click.argument("name", type=click.Choice(repository_names()))
@click.option(
    "--no-install", is_flag=True, help="Only write the source and key; install nothing."
)
@click.option(
    "--transport",
    type=click.Choice(["onion", "https"]),
    default=None,
    help="Tor only: fetch packages over the onion service or HTTPS.",
)
@click.option(
    "--branch",
    type=click.Choice(["stable", "devel"]),
    default=None,
    help="GnuPG only: which upstream branch to track.",
)
@click.pass_obj
def add_repo_cmd(
    ctx: AdmContext, name: str, no_install: bool, transport: str | None, branch: str | None
) -> None:
    """Add the NAME third-party repository and install its packages."""
    Ensure.is_root(ctx)
    options = RepoOptions(transport=transport, branch=branch, install=not no_install)
    try:
        add_repository(ctx, REPOSITORIES[name], options)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None


@apt_group.command("tor-transport")
@click.pass_obj
def tor_transport_cmd(ctx: AdmContext) -> None:
    """Fetch every configured APT source through Tor."""
    Ensure.is_root(ctx)
    try:
        result = enable_tor_transport(ctx)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if result.backup_dir is not None:
        user_output(f"Previous sources saved in {result.backup_dir}")


@apt_group.command("list-sources")
@click.pass_obj
def list_sources_cmd(ctx: AdmContext) -> None:
    """Show the deb822 sources configured on this host."""
    sources_dir = ctx.config.paths.apt_sources_dir
    try:
        entries = configured_sources(sources_dir)
    except OSError as e:
        user_output(click.style("Error: ", fg="red") + f"Could not read {sources_dir}: {e}")
        raise SystemExit(1) from None

    if not entries:
        user_output(f"No .sources files in {sources_dir}")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("file", style="cyan", no_wrap=True)
    table.add_column("uris", no_wrap=True)
    table.add_column("suites", no_wrap=True)
    table.add_column("components", no_wrap=True)
    table.add_column("enabled", no_wrap=True)

    for path, sources in entries:
        for stanza in sources.stanzas:
            table.add_row(
                path.name,
                stanza.get("URIs") or "-",
                stanza.get("Suites") or "-",
                stanza.get("Components") or "-",
                "[green]yes[/green]" if stanza.enabled else "[yellow]no[/yellow]",
            )

    console = Console(stderr=True, width=200)
    console.print(table)
