import click
from rich.console import Console
from rich.table import Table

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.gh_repos import RepoSync, sync_repos

ACTION_STYLES = {
    "cloned": "green",
    "updated": "cyan",
    "fetched": "yellow",
    "failed": "red",
}


def _summary_table(results: list[RepoSync]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("repository", style="cyan", no_wrap=True)
    table.add_column("action", no_wrap=True)
    table.add_column("path", no_wrap=True)
    table.add_column("detail")

    for result in results:
        style = ACTION_STYLES.get(result.action, "white")
        table.add_row(
            result.name,
            f"[{style}]{result.action}[/{style}]",
            str(result.target),
            result.detail or "-",
        )
    return table


@click.group("github")
def github_group() -> None:
    """Work with GitHub repositories."""


@github_group.command("sync-repos")
@click.option("--owner", help="GitHub user whose repositories are mirrored.")
@click.pass_obj
def sync_repos_cmd(ctx: AdmContext, owner: str | None) -> None:
    """Clone or hard-reset every repository of OWNER under the base directory."""
    Ensure.command_available(ctx, "gh", "git")

    try:
        results = sync_repos(ctx, owner)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if not results:
        user_output("No repositories found.")
        return

    Console(stderr=True, width=200).print(_summary_table(results))

    failed = [r.name for r in results if not r.ok]
    if failed:
        user_output(click.style("Error: ", fg="red") + f"{len(failed)} repositories failed to sync")
        raise SystemExit(1)
