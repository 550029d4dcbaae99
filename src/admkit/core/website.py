"""Website checkout synchronization (``admkit website sync``).

Keeps a deployed website checkout identical to its upstream branch. Three
methods are tried in order: ``gh repo sync`` with the GitHub CLI configuration
of a designated user, plain ``git fetch``, and finally downloading the branch
ZIP archive. After a successful sync, permissions are normalized and the web
server is restarted.

Runs are serialized by a ``.sync.lock`` directory inside the checkout; a run
that finds the lock held exits quietly.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.errors import LockHeldError
from admkit.core.lock import LockDir

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

LOCK_NAME = ".sync.lock"


@dataclass(frozen=True)
class SyncReport:
    method: str | None
    locked: bool = False


def gh_config_dir(ctx: "AdmContext") -> Path:
    user = ctx.config.website.gh_user
    home = ctx.host.user_home(user) or Path("/home") / user
    return home / ".config" / "gh"


def _git(ctx: "AdmContext", repo: Path, *args: str, operation: str) -> bool:
    return ctx.shell.run(["git", *args], operation=operation, cwd=repo, check=False).ok


def _rev(ctx: "AdmContext", repo: Path, ref: str) -> str | None:
    result = ctx.shell.query(["git", "rev-parse", ref], operation=f"resolve {ref}", cwd=repo)
    return result.first_line if result.ok and result.first_line else None


def prepare_branch(ctx: "AdmContext", repo: Path, branch: str) -> bool:
    """Make sure repo is a work tree with branch checked out."""
    log = ctx.feedback
    inside = ctx.shell.query(
        ["git", "rev-parse", "--is-inside-work-tree"], operation="check work tree", cwd=repo
    )
    if not inside.ok:
        log.warn(f"{repo} is not a git repository.")
        return False

    current = ctx.shell.query(
        ["git", "rev-parse", "--abbrev-ref", "HEAD"], operation="read current branch", cwd=repo
    ).first_line
    if current != branch:
        log.info(f"Switching to branch {branch} (current: {current})")
        if not _git(ctx, repo, "checkout", branch, operation=f"check out {branch}"):
            log.error(f"could not checkout branch {branch}.")
            return False
    return True


def force_match_remote(ctx: "AdmContext", repo: Path, branch: str) -> bool:
    """Reset repo to origin/branch unless it already matches."""
    log = ctx.feedback
    local = _rev(ctx, repo, "@")
    remote = _rev(ctx, repo, f"origin/{branch}")
    if local is None or remote is None:
        log.error("cannot get local or remote revision.")
        return False

    if local == remote:
        log.info("No new changes in the repository.")
        return True

    log.info(f"New changes found. Forcing local branch to match origin/{branch}...")
    if not _git(ctx, repo, "reset", "--hard", f"origin/{branch}", operation="reset checkout"):
        log.error("git reset failed.")
        return False
    if not _git(ctx, repo, "clean", "-fd", operation="clean checkout"):
        log.error("git clean failed.")
        return False
    return True


def sync_with_gh(ctx: "AdmContext") -> bool:
    log = ctx.feedback
    website = ctx.config.website
    repo = website.repo_dir
    gh_config = gh_config_dir(ctx)

    if not ctx.shell.has("gh"):
        log.info("GitHub CLI (gh) is not installed; skipping gh sync.")
        return False
    if not ctx.shell.has("git"):
        log.info("git is not installed; GitHub CLI sync is not possible.")
        return False
    if not (gh_config / "hosts.yml").is_file():
        log.warn(
            f"{gh_config}/hosts.yml not found; GitHub CLI is not authenticated for user "
            f"'{website.gh_user}'. Skipping gh sync."
        )
        return False
    if not prepare_branch(ctx, repo, website.branch):
        return False

    log.info(f"Syncing repository using GitHub CLI with config of user '{website.gh_user}'...")
    result = ctx.shell.run(
        ["gh", "repo", "sync", "--branch", website.branch],
        operation="sync repository with gh",
        cwd=repo,
        env={"GH_CONFIG_DIR": str(gh_config)},
        check=False,
        capture=True,
    )
    if not result.ok:
        log.error("gh repo sync failed.")
        return False
    return force_match_remote(ctx, repo, website.branch)


def sync_with_git(ctx: "AdmContext") -> bool:
    log = ctx.feedback
    website = ctx.config.website
    repo = website.repo_dir

    if not ctx.shell.has("git"):
        log.info("git is not installed or not in PATH. Skipping git sync.")
        return False
    if not prepare_branch(ctx, repo, website.branch):
        return False

    log.info("Fetching latest changes via git...")
    if not _git(ctx, repo, "fetch", "origin", website.branch, operation="fetch origin"):
        log.error("git fetch failed.")
        return False
    return force_match_remote(ctx, repo, website.branch)


def single_top_level_dir(root: Path) -> Path | None:
    dirs = sorted(p for p in root.iterdir() if p.is_dir())
    return dirs[0] if dirs else None


def replace_contents(ctx: "AdmContext", src: Path, dest: Path) -> None:
    """Mirror src into dest, keeping dest/.git and the lock directory."""
    if ctx.shell.has("rsync"):
        ctx.shell.run(
            [
                "rsync",
                "-a",
                "--delete",
                "--exclude=.git",
                f"--exclude={LOCK_NAME}",
                f"{src}/",
                f"{dest}/",
            ],
            operation=f"sync files into {dest}",
        )
        return
    for entry in dest.iterdir():
        if entry.name in (".git", LOCK_NAME):
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)


def sync_with_zip(ctx: "AdmContext") -> bool:
    log = ctx.feedback
    website = ctx.config.website
    url = website.resolved_zip_url
    if not url:
        log.error("no ZIP URL configured (set website.zip_url or website.repo_slug).")
        return False

    with tempfile.TemporaryDirectory(prefix="admkit-site-sync-") as tmp:
        zip_path = Path(tmp) / "source.zip"
        log.info(f"Downloading ZIP from {url} ...")
        try:
            ctx.http.download(url, zip_path)
        except RuntimeError as e:
            log.error(f"download failed: {e}")
            return False

        if ctx.dry_run:
            log.info(f"Would unpack the archive into {website.repo_dir}")
            return True

        log.info("Unpacking ZIP...")
        unpacked = Path(tmp) / "unpacked"
        try:
            with zipfile.ZipFile(zip_path) as archive:
                archive.extractall(unpacked)
        except zipfile.BadZipFile as e:
            log.error(f"failed to unzip archive: {e}")
            return False

        src = single_top_level_dir(unpacked)
        if src is None:
            log.error("could not determine source directory inside ZIP.")
            return False

        log.info(f"Syncing extracted files into {website.repo_dir} ...")
        try:
            replace_contents(ctx, src, website.repo_dir)
        except (RuntimeError, OSError) as e:
            log.error(f"copy from ZIP to {website.repo_dir} failed: {e}")
            return False

    log.info("Repository successfully updated via GitHub ZIP fallback.")
    return True


def normalize_permissions(repo: Path) -> None:
    """Directories 755 and files 644 outside .git; .git itself 700 throughout."""
    for dirpath, dirnames, filenames in os.walk(repo):
        current = Path(dirpath)
        if current == repo and ".git" in dirnames:
            dirnames.remove(".git")
        current.chmod(0o755)
        for name in filenames:
            path = current / name
            if not path.is_symlink():
                path.chmod(0o644)

    git_dir = repo / ".git"
    if git_dir.is_dir():
        for dirpath, _, filenames in os.walk(git_dir):
            Path(dirpath).chmod(0o700)
            for name in filenames:
                path = Path(dirpath) / name
                if not path.is_symlink():
                    path.chmod(0o700)


def post_update(ctx: "AdmContext") -> None:
    """Normalize permissions and restart the web service.

    Raises:
        RuntimeError: If the service cannot be restarted
    """
    website = ctx.config.website
    log = ctx.feedback

    if ctx.dry_run:
        log.info(f"Would normalize permissions under {website.repo_dir}")
    else:
        log.info("Setting file permissions (excluding .git)...")
        normalize_permissions(website.repo_dir)

    log.info(f"Restarting web service ({website.service})...")
    result = ctx.shell.run(
        ["systemctl", "restart", website.service],
        operation=f"restart {website.service}",
        check=False,
    )
    if not result.ok:
        raise RuntimeError(f"Error restarting {website.service}.")
    log.info(f"{website.service} restarted successfully.")


SYNC_METHODS = (
    ("gh", sync_with_gh, "GitHub CLI sync not available or failed. Falling back to plain git..."),
    ("git", sync_with_git, "Git sync failed or was not possible. Trying GitHub ZIP fallback..."),
    ("zip", sync_with_zip, "all sync methods (gh, git, ZIP) failed. Aborting."),
)


def sync_website(ctx: "AdmContext") -> SyncReport:
    """Bring the website checkout in line with its upstream branch.

    Returns:
        SyncReport naming the method that worked, or locked=True when another
        sync holds the lock

    Raises:
        RuntimeError: If the checkout is missing, every method failed, or the
            web service could not be restarted
    """
    website = ctx.config.website
    log = ctx.feedback
    repo = website.repo_dir

    log.info("----------------------------------------")
    log.info(
        f"Sync started (using GitHub CLI config for user: {website.gh_user}, "
        f"home: {gh_config_dir(ctx).parent.parent})"
    )
    if not repo.is_dir():
        raise RuntimeError(f"directory {repo} does not exist.")

    try:
        with LockDir(repo / LOCK_NAME):
            method = None
            for name, sync, fallback_message in SYNC_METHODS:
                if sync(ctx):
                    method = name
                    break
                log.info(fallback_message)
            if method is None:
                raise RuntimeError("all sync methods (gh, git, ZIP) failed.")
            post_update(ctx)
    except LockHeldError as e:
        log.info(f"Another sync is already running (lock: {e.lock_path}). Exiting.")
        return SyncReport(method=None, locked=True)

    log.info("Sync completed")
    log.info("----------------------------------------")
    return SyncReport(method=method)
