"""Tools built from a git checkout under the source directory.

The latest version is the remote HEAD commit. The installed version is the
commit recorded in the checkout's ``.git/admkit-installed`` after the last
successful install, and only while the installed artifact is still present;
a failed build or a removed binary therefore triggers a rebuild.
"""

from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

STAMP_NAME = "admkit-installed"


class SourceBuildUpdater(Updater):
    """Clone-or-fetch, build, install."""

    repo_url: str
    checkout_name: str
    binaries: tuple[str, ...] = ()

    def checkout(self, ctx: "AdmContext") -> Path:
        return ctx.config.paths.source_dir / self.checkout_name

    def stamp_path(self, ctx: "AdmContext") -> Path:
        return self.checkout(ctx) / ".git" / STAMP_NAME

    def is_installed(self, ctx: "AdmContext") -> bool:
        bin_dir = ctx.config.paths.install_prefix / "bin"
        return all((bin_dir / name).is_file() for name in self.binaries)

    def installed_version(self, ctx: "AdmContext") -> str | None:
        stamp = self.stamp_path(ctx)
        if not stamp.is_file() or not self.is_installed(ctx):
            return None
        return stamp.read_text(encoding="utf-8").strip() or None

    def latest_version(self, ctx: "AdmContext") -> str:
        result = ctx.shell.query(
            ["git", "ls-remote", self.repo_url, "HEAD"],
            operation=f"read {self.name} upstream revision",
        )
        fields = result.stdout.split()
        if not result.ok or not fields:
            raise RuntimeError(f"could not read upstream HEAD of {self.repo_url}.")
        return fields[0]

    def sync_checkout(self, ctx: "AdmContext") -> Path:
        src = self.checkout(ctx)
        shell = ctx.shell
        if (src / ".git").is_dir():
            ctx.feedback.info(f"Updating existing {self.name} repository...")
            shell.run(["git", "-C", str(src), "fetch", "--quiet", "origin"], operation="fetch")
            shell.run(
                ["git", "-C", str(src), "reset", "--hard", "origin/HEAD"],
                operation=f"reset {self.name} checkout",
            )
        else:
            ctx.feedback.info(f"Cloning {self.name} repository into {src}...")
            src.parent.mkdir(parents=True, exist_ok=True)
            shell.run(["git", "clone", self.repo_url, str(src)], operation=f"clone {self.name}")
        return src

    def install(self, ctx: "AdmContext", version: str) -> None:
        src = self.sync_checkout(ctx)
        ctx.feedback.info(f"Building {self.name}...")
        self.build(ctx, src)
        ctx.feedback.info(f"Installing {self.name}...")
        self.install_build(ctx, src)
        self.record_installed(ctx, version)

    def record_installed(self, ctx: "AdmContext", version: str) -> None:
        stamp = self.stamp_path(ctx)
        stamp.parent.mkdir(parents=True, exist_ok=True)
        stamp.write_text(f"{version}\n", encoding="utf-8")

    def build(self, ctx: "AdmContext", src: Path) -> None:
        ctx.shell.run(["make"], operation=f"build {self.name}", cwd=src)

    def install_build(self, ctx: "AdmContext", src: Path) -> None:
        ctx.shell.run(["make", "install"], operation=f"install {self.name}", cwd=src)


class LyrebirdUpdater(SourceBuildUpdater):
    name = "lyrebird"
    description = "lyrebird pluggable transport (built with Go)"
    required_commands = ("git", "go", "make")
    repo_url = "https://gitlab.torproject.org/tpo/anti-censorship/lyrebird.git"
    checkout_name = "lyrebird"
    binaries = ("lyrebird",)

    def build(self, ctx: "AdmContext", src: Path) -> None:
        ctx.shell.run(["make", "build"], operation="build lyrebird", cwd=src)
        if not (src / "lyrebird").is_file():
            raise RuntimeError("Build failed: lyrebird binary not found.")

    def install_build(self, ctx: "AdmContext", src: Path) -> None:
        target = ctx.config.paths.install_prefix / "bin" / "lyrebird"
        ctx.shell.run(
            ["install", "-m", "0755", str(src / "lyrebird"), str(target)],
            operation="install lyrebird",
        )


class XdTorrentUpdater(SourceBuildUpdater):
    name = "xd-torrent"
    description = "XD I2P BitTorrent client (built with Go)"
    required_commands = ("git", "go", "make")
    repo_url = "https://github.com/majestrate/XD.git"
    checkout_name = "XD"
    binaries = ("XD",)


class KrohnkiteUpdater(SourceBuildUpdater):
    name = "krohnkite"
    description = "Krohnkite KWin tiling script"
    required_commands = ("git", "task", "npm", "7z", "kpackagetool6")
    requires_root = False
    repo_url = "https://codeberg.org/anametologin/Krohnkite.git"
    checkout_name = "Krohnkite"

    def is_installed(self, ctx: "AdmContext") -> bool:
        return ctx.shell.query(
            ["kpackagetool6", "-t", "KWin/Script", "-s", "krohnkite"],
            operation="check installed krohnkite",
        ).ok

    def build(self, ctx: "AdmContext", src: Path) -> None:
        ctx.shell.run(["task", "package"], operation="package krohnkite", cwd=src)
        if not (src / "builds").is_dir():
            raise RuntimeError("Build directory 'builds' not found.")

    def install_build(self, ctx: "AdmContext", src: Path) -> None:
        packages = sorted((src / "builds").glob("*.kwinscript"))
        if not packages:
            raise RuntimeError("No .kwinscript package found.")
        kpackagetool = ["kpackagetool6", "-t", "KWin/Script"]
        flag = "-u" if self.is_installed(ctx) else "-i"
        ctx.shell.run(
            [*kpackagetool, flag, str(packages[0])], operation="install krohnkite package"
        )
        ctx.feedback.info("Restart KWin or log out/in if required.")
