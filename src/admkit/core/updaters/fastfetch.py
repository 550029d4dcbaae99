import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.apt.packages import apt_install, detect_apt
from admkit.core.errors import UnsupportedSystemError
from admkit.core.releases import extract_version, latest_github_tag
from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

REPO = "fastfetch-cli/fastfetch"

PKG_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "armv6l": "armv6l",
    "armv7l": "armv7l",
    "armv7hl": "armv7l",
    "i386": "i686",
    "i686": "i686",
    "ppc64le": "ppc64le",
    "ppc64el": "ppc64le",
    "riscv64": "riscv64",
    "s390x": "s390x",
}


def deb_url(tag: str, arch: str) -> str:
    return f"https://github.com/{REPO}/releases/download/{tag}/fastfetch-linux-{arch}.deb"


class FastfetchUpdater(Updater):
    name = "fastfetch"
    description = "fastfetch from its GitHub .deb releases"

    def installed_version(self, ctx: "AdmContext") -> str | None:
        result = ctx.shell.query(["fastfetch", "--version"], operation="read fastfetch version")
        return extract_version(result.stdout) if result.ok else None

    def latest_version(self, ctx: "AdmContext") -> str:
        tag = latest_github_tag(ctx, REPO)
        if not tag:
            raise RuntimeError("could not fetch latest fastfetch release version from GitHub.")
        return tag

    def install(self, ctx: "AdmContext", version: str) -> None:
        machine = ctx.host.machine()
        arch = PKG_ARCH.get(machine)
        if arch is None:
            raise UnsupportedSystemError(f"Unsupported architecture: {machine}")
        apt = detect_apt(ctx)

        with tempfile.TemporaryDirectory(prefix="admkit-fastfetch-") as tmp:
            deb = Path(tmp) / f"fastfetch-linux-{arch}.deb"
            ctx.feedback.info(f"Downloading fastfetch {version} ({arch})...")
            ctx.http.download(deb_url(version, arch), deb)
            ctx.feedback.info("Installing the package...")
            apt_install(ctx, apt, [str(deb)])
