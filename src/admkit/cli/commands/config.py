import click

from admkit.cli.output import machine_output, user_output
from admkit.core.config import config_keys, get_value
from admkit.core.context import AdmContext


@click.group("config")
def config_group() -> None:
    """Manage admkit configuration."""


@config_group.command("list")
@click.pass_obj
def config_list(ctx: AdmContext) -> None:
    """Print every setting with its effective value."""
    user_output(click.style(f"Config file: {ctx.config_store.path()}", bold=True))
    for key in config_keys():
        machine_output(f"{key}={get_value(ctx.config, key)}")


@config_group.command("get")
@click.argument("key", metavar="KEY")
@click.pass_obj
def config_get(ctx: AdmContext, key: str) -> None:
    """Print the effective value of KEY."""
    try:
        value = get_value(ctx.config, key)
    except KeyError:
        user_output(f"Invalid key: {key}")
        raise SystemExit(1) from None
    machine_output(str(value))


@config_group.command("set")
@click.argument("key", metavar="KEY")
@click.argument("value", metavar="VALUE")
@click.pass_obj
def config_set(ctx: AdmContext, key: str, value: str) -> None:
    """Persist VALUE for KEY in the config file."""
    if key not in config_keys():
        user_output(f"Invalid key: {key}")
        raise SystemExit(1)

    if ctx.dry_run:
        user_output(f"Would set {key}={value} in {ctx.config_store.path()}")
        return

    ctx.config_store.set_value(key, value)
    user_output(f"Set {key}={value}")
