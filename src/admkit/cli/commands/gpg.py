import click

from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.gpg_setup import GpgSetupOptions, setup_gpg


@click.group("gpg")
def gpg_group() -> None:
    """GnuPG installation and key management."""


@gpg_group.command("setup")
@click.option("--no-pqc", is_flag=True, help="Never generate a post-quantum key.")
@click.option("--pqc-only", is_flag=True, help="Generate only the post-quantum key.")
@click.option("--name", help="Real name for the key user ID.")
@click.option("--email", help="Email address for the key user ID.")
@click.option("--install-only", is_flag=True, help="Install GnuPG and its config only.")
@click.option("--keygen-only", is_flag=True, help="Skip installation, only generate keys.")
@click.option(
    "--gnupg-branch",
    type=click.Choice(["stable", "devel"]),
    default=None,
    help="Upstream GnuPG branch on Debian-family systems.",
)
@click.option("--no-upload", is_flag=True, help="Do not send keys to a keyserver.")
@click.pass_obj
def setup_cmd(
    ctx: AdmContext,
    no_pqc: bool,
    pqc_only: bool,
    name: str | None,
    email: str | None,
    install_only: bool,
    keygen_only: bool,
    gnupg_branch: str | None,
    no_upload: bool,
) -> None:
    """Install GnuPG and generate passphrase-less signing keys."""
    options = GpgSetupOptions(
        no_pqc=no_pqc,
        pqc_only=pqc_only,
        name=name,
        email=email,
        install_only=install_only,
        keygen_only=keygen_only,
        gnupg_branch=gnupg_branch,
        upload=not no_upload,
    )
    try:
        result = setup_gpg(ctx, options)
    except (RuntimeError, ValueError) as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if not result.keys:
        return

    user_output()
    user_output(click.style("Generated keys:", bold=True))
    for key in result.keys:
        user_output(f"  {key.kind}: {key.key_id}  fingerprint {key.fingerprint}")
    user_output()
    user_output("The keys have NO passphrase. To add one, run:")
    for key in result.keys:
        user_output(f"  gpg --edit-key {key.fingerprint} passwd")
