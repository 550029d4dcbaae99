"""Upstream release discovery.

Latest release tags are looked up with the GitHub CLI first, then with
``git ls-remote`` and finally with the GitHub REST API, so a host without gh
(or without an authenticated gh) can still update.
"""

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

_VERSION = re.compile(r"\d+\.\d+\.\d+")
_CHUNK = re.compile(r"(\d+)|(\D+)")


def extract_version(text: str) -> str | None:
    """First ``X.Y.Z`` in text (e.g. from ``btop --version``)."""
    match = _VERSION.search(text)
    return match.group(0) if match else None


def strip_v(tag: str) -> str:
    """``v1.2.3`` -> ``1.2.3``."""
    return tag[1:] if tag[:1] in ("v", "V") and tag[1:2].isdigit() else tag


def version_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """Natural sort key, ordering versions like ``sort -V``.

    Digit runs compare numerically and sort before text at the same position.
    """
    key: list[tuple[int, int | str]] = []
    for digits, text in _CHUNK.findall(strip_v(version)):
        if digits:
            key.append((1, int(digits)))
        else:
            key.append((0, text))
    return tuple(key)


def is_at_least(installed: str, latest: str) -> bool:
    """Whether installed sorts at or after latest."""
    return version_key(installed) >= version_key(latest)


def tags_from_ls_remote(output: str) -> list[str]:
    """Tag names from ``git ls-remote --tags`` output, peeled refs collapsed."""
    tags = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != 2 or not parts[1].startswith("refs/tags/"):
            continue
        tags.add(parts[1].removeprefix("refs/tags/").removesuffix("^{}"))
    return sorted(tags, key=version_key)


def latest_github_tag(ctx: "AdmContext", repo: str, stable_only: bool = True) -> str | None:
    """Latest release tag of a GitHub repository (``owner/name``).

    Args:
        ctx: Application context
        repo: GitHub repository slug
        stable_only: Ignore pre-release looking tags (rc, beta, alpha) from ls-remote

    Returns:
        The tag, or None when every lookup failed
    """
    shell = ctx.shell

    if shell.has("gh"):
        result = shell.query(
            ["gh", "release", "view", "--repo", repo, "--json", "tagName", "--jq", ".tagName"],
            operation=f"look up latest {repo} release",
        )
        if result.ok and result.first_line:
            return result.first_line
        logger.debug("gh release view failed for %s: %s", repo, result.stderr.strip())

    if shell.has("git"):
        result = shell.query(
            ["git", "ls-remote", "--tags", "--refs", f"https://github.com/{repo}.git"],
            operation=f"list {repo} tags",
        )
        if result.ok:
            tags = tags_from_ls_remote(result.stdout)
            if stable_only:
                tags = [t for t in tags if not re.search(r"(?i)(rc|beta|alpha|pre)", t)]
            if tags:
                return tags[-1]

    try:
        data = ctx.http.fetch_json(f"https://api.github.com/repos/{repo}/releases/latest")
    except RuntimeError as e:
        logger.debug("GitHub API lookup failed for %s: %s", repo, e)
        return None
    tag = data.get("tag_name") if isinstance(data, dict) else None
    return tag or None


def release_assets(ctx: "AdmContext", repo: str) -> list[str]:
    """Download URLs of the latest GitHub release's assets."""
    data = ctx.http.fetch_json(f"https://api.github.com/repos/{repo}/releases/latest")
    if not isinstance(data, dict):
        return []
    return [
        asset["browser_download_url"]
        for asset in data.get("assets", [])
        if isinstance(asset, dict) and "browser_download_url" in asset
    ]
