"""Mirror every repository of a GitHub owner into a local directory."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

LIST_JQ = ".[] | [.name, .ssh_url, .default_branch] | @tsv"


@dataclass(frozen=True)
class RemoteRepo:
    name: str
    ssh_url: str
    default_branch: str


@dataclass(frozen=True)
class RepoSync:
    name: str
    target: Path
    action: str
    ok: bool
    detail: str = ""


def parse_repo_listing(output: str) -> list[RemoteRepo]:
    """Parse the tab-separated name/ssh_url/default_branch listing."""
    repos = []
    for line in output.splitlines():
        fields = line.split("\t")
        if not fields[0].strip():
            continue
        fields += [""] * (3 - len(fields))
        repos.append(RemoteRepo(fields[0].strip(), fields[1].strip(), fields[2].strip()))
    return repos


def list_repos(ctx: "AdmContext", owner: str) -> list[RemoteRepo]:
    """Raises RuntimeError if the GitHub API call fails."""
    result = ctx.shell.query(
        ["gh", "api", "--paginate", f"users/{owner}/repos", "--jq", LIST_JQ],
        operation=f"list repositories of {owner}",
    )
    if not result.ok:
        raise RuntimeError(f"Failed to list repositories of {owner}: {result.stderr.strip()}")
    return parse_repo_listing(result.stdout)


def check_gh_auth(ctx: "AdmContext") -> None:
    if not ctx.shell.query(["gh", "auth", "status"], operation="check gh authentication").ok:
        raise RuntimeError("GitHub CLI is not authenticated; run 'gh auth login' first.")


def sync_repo(ctx: "AdmContext", repo: RemoteRepo, base_dir: Path) -> RepoSync:
    shell = ctx.shell
    target = base_dir / repo.name
    git = ["git", "-C", str(target)]

    try:
        if (target / ".git").is_dir():
            ctx.feedback.info(
                f"Syncing {repo.name} -> {target} (branch: {repo.default_branch or 'unknown'})"
            )
            shell.run([*git, "fetch", "--all", "--prune"], operation=f"fetch {repo.name}")
            if not repo.default_branch:
                ctx.feedback.warn(f"Default branch unknown for {repo.name}; skipping reset")
                return RepoSync(repo.name, target, "fetched", ok=True, detail="no default branch")
            shell.run(
                [*git, "checkout", repo.default_branch],
                operation=f"check out {repo.default_branch}",
                check=False,
            )
            shell.run(
                [*git, "reset", "--hard", f"origin/{repo.default_branch}"],
                operation=f"reset {repo.name}",
            )
            return RepoSync(repo.name, target, "updated", ok=True)

        ctx.feedback.info(f"Cloning {repo.name} -> {target}")
        shell.run(["git", "clone", repo.ssh_url, str(target)], operation=f"clone {repo.name}")
        if repo.default_branch:
            shell.run(
                [*git, "checkout", repo.default_branch],
                operation=f"check out {repo.default_branch}",
                check=False,
            )
        return RepoSync(repo.name, target, "cloned", ok=True)
    except RuntimeError as e:
        ctx.feedback.error(f"{repo.name}: {e}")
        return RepoSync(repo.name, target, "failed", ok=False, detail=str(e).splitlines()[0])


def sync_repos(ctx: "AdmContext", owner: str | None = None) -> list[RepoSync]:
    """Clone or hard-reset every repository of owner under the base directory.

    A failing repository is reported and the remaining ones are still synced.

    Raises:
        RuntimeError: If no owner is configured, the base directory is missing,
            gh is not authenticated, or the listing fails
    """
    github = ctx.config.github
    owner = owner or github.owner
    if not owner:
        raise RuntimeError("no GitHub owner configured (set github.owner or OWNER).")
    if not github.base_dir.is_dir():
        raise RuntimeError(f"Base directory {github.base_dir} does not exist")

    check_gh_auth(ctx)
    ctx.feedback.info(f"Listing repositories for {owner}")
    results = [sync_repo(ctx, repo, github.base_dir) for repo in list_repos(ctx, owner)]
    ctx.feedback.info("Sync complete")
    return results
