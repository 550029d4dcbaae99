"""btop built from the latest release tag."""

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.apt.packages import apt_install, apt_update, detect_apt
from admkit.core.releases import extract_version, latest_github_tag
from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

REPO = "aristocratos/btop"
REPO_URL = f"https://github.com/{REPO}.git"
BUILD_DEPS = ("gh", "git", "build-essential", "cmake", "libncurses-dev")


def fetch_source(ctx: "AdmContext", tag: str, dest: Path) -> Path:
    """Check out tag into dest with gh, then git, then a release tarball.

    Returns:
        The source directory

    Raises:
        RuntimeError: If every method failed
    """
    shell = ctx.shell
    feedback = ctx.feedback
    target = dest / "btop"

    if shell.has("gh"):
        feedback.info(f"Cloning btop tag {tag} with GitHub CLI...")
        result = shell.run(
            ["gh", "repo", "clone", REPO, str(target), "--", "--branch", tag, "--depth", "1"],
            operation="clone btop with gh",
            check=False,
            capture=True,
        )
        if result.ok:
            return target
        feedback.warn("gh repo clone failed; falling back to git/curl.")

    if shell.has("git"):
        feedback.info(f"Cloning btop tag {tag} with git...")
        result = shell.run(
            ["git", "clone", "--depth", "1", "--branch", tag, REPO_URL, str(target)],
            operation="clone btop with git",
            check=False,
        )
        if result.ok:
            return target
        feedback.warn("git clone failed; falling back to tarball download.")

    tarball_url = f"https://github.com/{REPO}/archive/refs/tags/{tag}.tar.gz"
    tarball = dest / "btop.tar.gz"
    feedback.info(f"Downloading tarball {tarball_url} as last resort...")
    ctx.http.download(tarball_url, tarball)
    shell.run(["tar", "-xzf", str(tarball), "-C", str(dest)], operation="extract btop tarball")
    for candidate in sorted(dest.glob("btop*")):
        if candidate.is_dir():
            return candidate
    raise RuntimeError("could not fetch btop source via gh/git/curl.")


class BtopUpdater(Updater):
    name = "btop"
    description = "btop built from source"

    def installed_version(self, ctx: "AdmContext") -> str | None:
        result = ctx.shell.query(["btop", "--version"], operation="read btop version")
        return extract_version(result.stdout) if result.ok else None

    def latest_version(self, ctx: "AdmContext") -> str:
        tag = latest_github_tag(ctx, REPO)
        if not tag:
            raise RuntimeError("could not determine latest release tag from GitHub.")
        return tag

    def install(self, ctx: "AdmContext", version: str) -> None:
        apt = detect_apt(ctx)
        ctx.feedback.info(f"Installing build dependencies ({' '.join(BUILD_DEPS)})...")
        apt_update(ctx, apt)
        apt_install(ctx, apt, BUILD_DEPS)

        with tempfile.TemporaryDirectory(prefix="admkit-btop-") as tmp:
            src = fetch_source(ctx, version, Path(tmp))
            ctx.feedback.info("Building btop...")
            jobs = ctx.host.cpu_count()
            ctx.shell.run(["make", f"-j{jobs}"], operation="build btop", cwd=src)
            ctx.feedback.info("Installing btop...")
            ctx.shell.run(["make", "install"], operation="install btop", cwd=src)
