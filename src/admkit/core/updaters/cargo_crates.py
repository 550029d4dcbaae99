"""Rust tools installed with ``cargo install`` from a tagged git checkout.

cargo builds as the invoking user into ``<cargo_home>/bin``; the binary is then
copied into ``<install_prefix>/bin``, escalating with run0, sudo or doas when
admkit is not already root.
"""

import re
from typing import TYPE_CHECKING

from admkit.core.gpg_setup import escalation_prefix
from admkit.core.releases import tags_from_ls_remote
from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext


def installed_crate_version(listing: str, crate: str) -> str | None:
    """Version of crate in ``cargo install --list`` output.

    Examples:
        >>> installed_crate_version("arti v1.4.6 (https://x#1f2e):\\n    arti\\n", "arti")
        '1.4.6'
    """
    pattern = re.compile(rf"^{re.escape(crate)} v(\S+?):?(?:\s|$)")
    for line in listing.splitlines():
        match = pattern.match(line)
        if match:
            return match.group(1)
    return None


class CargoCrateUpdater(Updater):
    repo_url: str
    crate: str
    tag_prefix: str = "v"
    features: tuple[str, ...] = ()
    required_commands = ("git", "cargo")
    requires_root = False

    def installed_version(self, ctx: "AdmContext") -> str | None:
        result = ctx.shell.query(
            ["cargo", "install", "--list"], operation="list cargo-installed crates"
        )
        if not result.ok:
            return None
        return installed_crate_version(result.stdout, self.crate)

    def latest_version(self, ctx: "AdmContext") -> str:
        result = ctx.shell.query(
            ["git", "ls-remote", "--tags", self.repo_url, f"refs/tags/{self.tag_prefix}*"],
            operation=f"list {self.name} tags",
        )
        tags = [t for t in tags_from_ls_remote(result.stdout) if t.startswith(self.tag_prefix)]
        if not result.ok or not tags:
            raise RuntimeError(f"could not find a {self.tag_prefix}* tag in {self.repo_url}.")
        return tags[-1]

    def is_up_to_date(self, installed: str, latest: str) -> bool:
        return installed == latest.removeprefix(self.tag_prefix)

    def install(self, ctx: "AdmContext", version: str) -> None:
        cmd = ["env", "-u", "LD_PRELOAD", "cargo", "install", "--locked"]
        if self.features:
            cmd.append(f"--features={','.join(self.features)}")
        cmd += ["--git", self.repo_url, "--tag", version, self.crate]
        ctx.feedback.info(f"Building {self.crate} {version} with cargo...")
        ctx.shell.run(cmd, operation=f"build {self.crate}")

        built = ctx.config.paths.cargo_home / "bin" / self.crate
        target = ctx.config.paths.install_prefix / "bin"
        ctx.shell.run(
            [*escalation_prefix(ctx), "install", "-m", "0755", str(built), str(target)],
            operation=f"install {self.crate}",
        )


class ArtiUpdater(CargoCrateUpdater):
    name = "arti"
    description = "Arti Tor client (built with cargo)"
    repo_url = "https://gitlab.torproject.org/tpo/core/arti.git"
    crate = "arti"
    tag_prefix = "arti-v"
    features = ("full",)


class OniuxUpdater(CargoCrateUpdater):
    name = "oniux"
    description = "oniux Tor network isolation (built with cargo)"
    repo_url = "https://gitlab.torproject.org/tpo/core/oniux.git"
    crate = "oniux"
