import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.errors import UnsupportedSystemError
from admkit.core.releases import is_at_least, release_assets, strip_v
from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

REPO = "microsoft/edit"

EDIT_ARCH = {"x86_64": "x86_64", "amd64": "x86_64", "aarch64": "aarch64", "arm64": "aarch64"}


def select_asset(urls: list[str], arch: str) -> str | None:
    """First linux .tar.gz asset for arch."""
    for url in urls:
        if "linux" in url and arch in url and url.endswith(".tar.gz"):
            return url
    return None


def find_executable(root: Path, name: str) -> Path | None:
    for path in sorted(root.rglob(name)):
        if path.is_file() and path.stat().st_mode & 0o100:
            return path
    return None


class MseditUpdater(Updater):
    name = "msedit"
    description = "Microsoft Edit (prebuilt binaries)"
    required_commands = ("tar",)

    def installed_version(self, ctx: "AdmContext") -> str | None:
        result = ctx.shell.query(["edit", "-v"], operation="read edit version")
        fields = result.stdout.split()
        return fields[2] if result.ok and len(fields) >= 3 else None

    def latest_version(self, ctx: "AdmContext") -> str:
        data = ctx.http.fetch_json(f"https://api.github.com/repos/{REPO}/releases/latest")
        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not tag:
            raise RuntimeError("could not determine the latest edit release.")
        return strip_v(tag)

    def is_up_to_date(self, installed: str, latest: str) -> bool:
        return is_at_least(installed, latest)

    def install(self, ctx: "AdmContext", version: str) -> None:
        machine = ctx.host.machine()
        arch = EDIT_ARCH.get(machine)
        if arch is None:
            raise UnsupportedSystemError(f"Unsupported architecture: {machine}")

        url = select_asset(release_assets(ctx, REPO), arch)
        if url is None:
            raise RuntimeError(f"no linux {arch} .tar.gz asset in the latest edit release.")

        target = ctx.config.paths.install_prefix / "bin" / "edit"
        with tempfile.TemporaryDirectory(prefix="admkit-msedit-") as tmp:
            workdir = Path(tmp)
            archive = workdir / url.rsplit("/", 1)[-1]
            ctx.feedback.info(f"Downloading {url}")
            ctx.http.download(url, archive)
            ctx.shell.run(
                ["tar", "-xzf", str(archive), "-C", str(workdir)], operation="extract edit"
            )
            binary = find_executable(workdir, "edit")
            if binary is None:
                raise RuntimeError("edit binary not found.")
            ctx.feedback.info(f"Installing edit to {target}")
            ctx.shell.run(
                ["install", "-m", "0755", str(binary), str(target)], operation="install edit"
            )
