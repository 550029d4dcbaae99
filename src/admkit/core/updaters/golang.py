"""Go toolchain from the official go.dev tarballs."""

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.errors import UnsupportedSystemError
from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

VERSION_URL = "https://go.dev/VERSION?m=text"
DOWNLOAD_URL = "https://go.dev/dl"
PROFILE_MARKER = "/usr/local/go/bin"
PROFILE_SNIPPET = '# Go binary path\nexport PATH="$PATH:/usr/local/go/bin"\n'

GO_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i486": "386",
    "i586": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "armv6l",
    "armv7l": "armv6l",
    "armv7hl": "armv6l",
    "armv7": "armv6l",
    "loongarch64": "loong64",
    "mips": "mips",
    "mips64": "mips64",
    "mipsel": "mipsle",
    "mipsle": "mipsle",
    "mips64el": "mips64le",
    "mips64le": "mips64le",
    "ppc64": "ppc64",
    "ppc64le": "ppc64le",
    "ppc64el": "ppc64le",
    "riscv64": "riscv64",
    "s390x": "s390x",
}


def go_arch(machine: str) -> str:
    arch = GO_ARCH.get(machine)
    if arch is None:
        raise UnsupportedSystemError(
            f"Unsupported architecture: {machine}. "
            "No matching official Go Linux tarball known for this arch."
        )
    return arch


def ensure_profile_path(ctx: "AdmContext", profile: Path) -> bool:
    """Append the Go PATH export to profile unless it is already there.

    Returns:
        True if the profile was changed
    """
    feedback = ctx.feedback
    if not profile.is_file():
        feedback.warn(f"{profile} not found; cannot automatically update system PATH.")
        return False

    content = profile.read_text(encoding="utf-8")
    if PROFILE_MARKER in content:
        feedback.info(f"{profile} already contains {PROFILE_MARKER} in PATH. No changes made.")
        return False

    if ctx.dry_run:
        feedback.info(f"Would add {PROFILE_MARKER} to PATH in {profile}")
        return False

    backup = profile.with_name(f"{profile.name}.bak.{ctx.time.now().strftime('%Y%m%d%H%M%S')}")
    backup.write_text(content, encoding="utf-8")
    feedback.info(f"Backup of {profile} created at {backup}")

    with profile.open("a", encoding="utf-8") as f:
        f.write("\n" + PROFILE_SNIPPET)
    feedback.info(f"{profile} updated to include {PROFILE_MARKER} in PATH.")
    return True


class GoUpdater(Updater):
    name = "golang"
    description = "Go toolchain (go.dev)"
    required_commands = ("tar",)

    def installed_version(self, ctx: "AdmContext") -> str | None:
        go_root_bin = ctx.config.paths.install_prefix / "go" / "bin" / "go"
        for go in ("go", str(go_root_bin)):
            result = ctx.shell.query([go, "version"], operation="read installed Go version")
            fields = result.stdout.split()
            if result.ok and len(fields) >= 3:
                return fields[2]
        return None

    def latest_version(self, ctx: "AdmContext") -> str:
        text = ctx.http.fetch_text(VERSION_URL)
        fields = text.split()
        if not fields:
            raise RuntimeError(f"could not fetch latest Go version from {VERSION_URL}.")
        return fields[0]

    def install(self, ctx: "AdmContext", version: str) -> None:
        prefix = ctx.config.paths.install_prefix
        arch = go_arch(ctx.host.machine())
        tar_name = f"{version}.linux-{arch}.tar.gz"
        url = f"{DOWNLOAD_URL}/{tar_name}"

        with tempfile.TemporaryDirectory(prefix="admkit-go-") as tmp:
            tarball = Path(tmp) / tar_name
            ctx.feedback.info(f"Downloading {tar_name} (GO_ARCH={arch}) from {url}...")
            ctx.http.download(url, tarball)

            ctx.feedback.info(f"Installing Go into {prefix / 'go'}...")
            ctx.shell.run(["install", "-d", "-m", "0755", str(prefix)], operation="create prefix")
            ctx.shell.run(["rm", "-rf", str(prefix / "go")], operation="remove previous Go")
            ctx.shell.run(
                ["tar", "-C", str(prefix), "-xzf", str(tarball)], operation="extract Go tarball"
            )

        ensure_profile_path(ctx, ctx.config.paths.profile)
        ctx.feedback.info(
            "Log out and log back in (or source /etc/profile) to ensure the new PATH is applied."
        )
