import click
from rich.console import Console
from rich.table import Table

from admkit.cli.ensure import Ensure, fail
from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.updaters import UPDATERS, run_update


def _print_updaters() -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("name", style="cyan", no_wrap=True)
    table.add_column("description")
    table.add_column("root", no_wrap=True)
    for name in sorted(UPDATERS):
        updater = UPDATERS[name]
        table.add_row(name, updater.description, "yes" if updater.requires_root else "no")
    Console(stderr=True, width=200).print(table)


@click.command("update")
@click.argument("name", required=False, type=click.Choice(sorted(UPDATERS)))
@click.option("-f", "--force", is_flag=True, help="Reinstall even when already up to date.")
@click.option("-l", "--list", "list_only", is_flag=True, help="List the tools that can be updated.")
@click.option(
    "--reboot/--no-reboot",
    "-r/-N",
    default=None,
    help="Reboot (or not) after tools that need one. Asks when interactive.",
)
@click.pass_obj
def update_cmd(
    ctx: AdmContext, name: str | None, force: bool, list_only: bool, reboot: bool | None
) -> None:
    """Install or update the tool NAME from its upstream release."""
    if list_only:
        _print_updaters()
        return
    if name is None:
        fail("Missing tool name. Run 'admkit update --list' to see the choices.")

    updater = UPDATERS[name]
    if updater.requires_root:
        Ensure.is_root(ctx)
    Ensure.command_available(ctx, *updater.required_commands)

    try:
        outcome = run_update(ctx, updater, force=force)
    except RuntimeError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if not outcome.updated:
        return
    user_output(f"{outcome.name}: {outcome.installed or 'not installed'} -> {outcome.latest}")

    if updater.reboot_after_install:
        if reboot is None:
            reboot = ctx.prompt.confirm("Reboot now to apply all changes?", default=False)
        if reboot:
            ctx.shell.run(["reboot"], operation="reboot")
        else:
            user_output("Reboot later to apply all changes.")
