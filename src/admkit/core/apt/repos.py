"""Third-party APT repository catalog.

Each repository knows where its signing key lives, which releases and
architectures it publishes, and how its deb822 source looks. add_repository()
runs the common flow: detect the release, install base tooling, import the
key, write the source, refresh the index, install and start the software.

Writing the source is idempotent: the file is rendered from scratch on every
run and only rewritten when it differs, and the legacy ``.list`` twin is
removed, so repeated runs converge on a single entry.
"""

import logging
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.apt.packages import (
    apt_install,
    apt_update,
    detect_apt,
    ensure_packages,
    native_architecture,
)
from admkit.core.deb822 import SourcesFile, Stanza, parse_sources, write_sources
from admkit.core.errors import UnsupportedSystemError
from admkit.core.osrelease import OsRelease, Release, read_os_release, resolve_release
from admkit.core.services import enable_and_start

if TYPE_CHECKING:
    from admkit.core.config import PathsConfig
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

TOR_ONION_URL = (
    "tor+http://apow7mjfryruh65chtdydfmqfpj5btws7nbocgtaovhvezgccyjazpqd.onion/torproject.org"
)
TOR_HTTPS_URL = "https://deb.torproject.org/torproject.org"


@dataclass(frozen=True)
class RepoOptions:
    """Operator choices for add_repository.

    Attributes:
        transport: Tor only: "onion" or "https"; None asks interactively
        branch: GnuPG only: "stable" or "devel"; None picks the default
        install: Install the repository's packages after writing the source
    """

    transport: str | None = None
    branch: str | None = None
    install: bool = True


@dataclass(frozen=True)
class RepoPlan:
    """Everything add_repository needs once the host is known."""

    key_url: str
    sources: SourcesFile
    install_attempts: tuple[tuple[str, ...], ...] = field(default=())


@dataclass(frozen=True)
class AddResult:
    path: Path
    changed: bool
    release: Release
    architecture: str


class Repository(ABC):
    """A third-party APT repository admkit can configure."""

    name: str
    file_stem: str
    keyring_name: str
    packages: tuple[str, ...]
    supported: Mapping[str, tuple[str, ...]]
    architectures: tuple[str, ...] | None = None
    dearmor: bool = True
    in_share_keyrings: bool = True
    base_packages: tuple[str, ...] = ("apt-transport-https",)
    service: str | None = None
    systemd_units: tuple[str, ...] = ()

    def keyring_path(self, paths: "PathsConfig") -> Path:
        directory = paths.share_keyrings_dir if self.in_share_keyrings else paths.apt_keyrings_dir
        return directory / self.keyring_name

    def sources_path(self, paths: "PathsConfig") -> Path:
        return paths.apt_sources_dir / f"{self.file_stem}.sources"

    def resolve(self, os_release: OsRelease) -> Release:
        return resolve_release(os_release, self.supported)

    def check_architecture(self, arch: str) -> None:
        if self.architectures is not None and arch not in self.architectures:
            raise UnsupportedSystemError(
                f"unsupported native architecture '{arch}'. "
                f"The {self.name} repository supports only {', '.join(self.architectures)}."
            )

    @abstractmethod
    def plan(
        self,
        ctx: "AdmContext",
        release: Release,
        arch: str,
        keyring: Path,
        options: RepoOptions,
    ) -> RepoPlan:
        """Decide key URL, source content and install commands for this host."""


class GitHubCliRepository(Repository):
    name = "gh-cli"
    file_stem = "github-cli"
    keyring_name = "githubcli-archive-keyring.gpg"
    packages = ("gh",)
    supported = {"debian": ("bookworm", "trixie", "sid"), "ubuntu": ("jammy", "noble")}
    architectures = ("amd64", "arm64", "i386", "armhf")
    dearmor = False
    in_share_keyrings = False

    def plan(
        self,
        ctx: "AdmContext",
        release: Release,
        arch: str,
        keyring: Path,
        options: RepoOptions,
    ) -> RepoPlan:
        stanza = Stanza.of(
            types="deb",
            uris="https://cli.github.com/packages",
            suites="stable",
            components="main",
            architectures=arch,
            signed_by=str(keyring),
        )
        return RepoPlan(
            key_url="https://cli.github.com/packages/githubcli-archive-keyring.gpg",
            sources=SourcesFile((stanza,)),
        )


class LynisRepository(Repository):
    name = "lynis"
    file_stem = "cisofy-lynis"
    keyring_name = "cisofy-lynis-archive-keyring.gpg"
    packages = ("lynis",)
    supported = {"debian": ("bookworm", "trixie", "sid")}
    in_share_keyrings = False

    def plan(
        self,
        ctx: "AdmContext",
        release: Release,
        arch: str,
        keyring: Path,
        options: RepoOptions,
    ) -> RepoPlan:
        stanza = Stanza.of(
            types="deb",
            uris="https://packages.cisofy.com/community/lynis/deb/",
            suites="stable",
            components="main",
            architectures=arch,
            signed_by=str(keyring),
        )
        return RepoPlan(
            key_url="https://packages.cisofy.com/keys/cisofy-software-public.key",
            sources=SourcesFile((stanza,)),
        )


class TorRepository(Repository):
    name = "tor"
    file_stem = "tor"
    keyring_name = "deb.torproject.org-keyring.gpg"
    packages = ("tor", "torsocks", "obfs4proxy", "deb.torproject.org-keyring")
    supported = {"debian": ("bookworm", "trixie"), "ubuntu": ("jammy", "noble")}
    architectures = ("amd64", "arm64")
    base_packages = ("apt-transport-https", "apt-transport-tor")
    service = "tor"
    systemd_units = ("tor.service", "tor@default.service")

    def choose_url(self, ctx: "AdmContext", transport: str | None) -> str:
        if transport is None:
            transport = ctx.prompt.choose(
                "Tor repository transport (onion via apt-transport-tor, or clearnet https)",
                ["onion", "https"],
                default="onion",
            )
        if transport == "onion":
            ctx.feedback.info(f"Using onion transport: {TOR_ONION_URL}")
            return TOR_ONION_URL
        if transport == "https":
            ctx.feedback.info(f"Using HTTPS transport: {TOR_HTTPS_URL}")
            return TOR_HTTPS_URL
        raise ValueError(f"Unknown transport '{transport}' (expected onion or https)")

    def plan(
        self,
        ctx: "AdmContext",
        release: Release,
        arch: str,
        keyring: Path,
        options: RepoOptions,
    ) -> RepoPlan:
        url = self.choose_url(ctx, options.transport)
        main = Stanza.of(
            types=("deb", "deb-src"),
            uris=url,
            suites=release.suite,
            components="main",
            architectures=arch,
            signed_by=str(keyring),
        )
        nightly = Stanza.of(
            enabled="no",
            types=("deb", "deb-src"),
            uris=url,
            suites=f"tor-nightly-main-{release.suite}",
            components="main",
            architectures=arch,
            signed_by=str(keyring),
        )
        return RepoPlan(
            key_url=f"{TOR_HTTPS_URL}/A3C4F0F979CAA22CDBA8F512EE8CBC9E886DDD89.asc",
            sources=SourcesFile((main, nightly)),
        )


class I2pdRepository(Repository):
    name = "i2pd"
    file_stem = "purplei2p"
    keyring_name = "purplei2p.gpg"
    packages = ("i2pd",)
    supported = {
        "debian": ("buster", "bullseye", "bookworm", "trixie", "sid"),
        "raspbian": ("buster", "bullseye", "bookworm", "trixie"),
        "ubuntu": ("focal", "jammy", "noble", "plucky", "questing", "oracular"),
    }
    architectures = ("amd64", "i386", "arm64", "armhf")
    service = "i2pd"

    def plan(
        self,
        ctx: "AdmContext",
        release: Release,
        arch: str,
        keyring: Path,
        options: RepoOptions,
    ) -> RepoPlan:
        suite = f"{release.suite}-rpi" if release.dist == "raspbian" else release.suite
        uri = f"https://repo.i2pd.xyz/{release.dist}"
        stanza = Stanza.of(
            types="deb",
            uris=uri,
            suites=suite,
            components="main",
            architectures=arch,
            signed_by=str(keyring),
        )
        # Source packages are opt-in: the deb-src stanza ships commented out
        disabled_src = (
            "",
            "Types: deb-src",
            f"URIs: {uri}",
            f"Suites: {suite}",
            "Components: main",
            f"Architectures: {arch}",
            f"Signed-By: {keyring}",
        )
        return RepoPlan(
            key_url="https://repo.i2pd.xyz/r4sas.gpg",
            sources=SourcesFile((stanza,), disabled_src),
        )


class GnuPGRepository(Repository):
    """Upstream GnuPG packages (stable or development branch)."""

    name = "gnupg"
    file_stem = "gnupg"
    keyring_name = "gnupg-keyring.gpg"
    packages = ("gnupg2",)
    supported = {
        "debian": ("bookworm", "trixie"),
        "ubuntu": ("jammy", "noble", "plucky"),
        "devuan": ("daedalus",),
    }
    architectures = ("amd64", "i386")

    def resolve(self, os_release: OsRelease) -> Release:
        # Upstream publishes Devuan suites under their own names
        if os_release.family() == "devuan":
            codename = os_release.get("VERSION_CODENAME") or os_release.codename
            if codename not in self.supported["devuan"]:
                raise UnsupportedSystemError(
                    f"Devuan codename '{codename}' is not covered by the GnuPG repository."
                )
            return Release(dist="devuan", suite=codename, codename=codename)
        return resolve_release(os_release, self.supported)

    def choose_branch(self, ctx: "AdmContext", release: Release, branch: str | None) -> str:
        if branch is not None:
            return branch
        if release.dist == "debian":
            return "devel"
        return ctx.prompt.choose(
            f"GnuPG upstream branch for {release.dist} ({release.codename})",
            ["stable", "devel"],
            default="stable",
        )

    def plan(
        self,
        ctx: "AdmContext",
        release: Release,
        arch: str,
        keyring: Path,
        options: RepoOptions,
    ) -> RepoPlan:
        branch = self.choose_branch(ctx, release, options.branch)
        if branch not in ("stable", "devel"):
            raise ValueError(f"Unknown GnuPG branch '{branch}' (expected stable or devel)")
        suite = f"{release.suite}-devel" if branch == "devel" else release.suite
        ctx.feedback.info(f"Using GnuPG upstream repository suite {suite} on {arch}")
        base = f"https://repos.gnupg.org/deb/gnupg/{suite}/"
        stanza = Stanza.of(
            types="deb",
            uris=base,
            suites=suite,
            components="main",
            signed_by=str(keyring),
        )
        return RepoPlan(
            key_url=f"{base}gnupg-signing-key.gpg",
            sources=SourcesFile((stanza,)),
            install_attempts=(("-t", suite, "gnupg2"), ("-t", suite, "gnupg"), ("gnupg",)),
        )


REPOSITORIES: dict[str, Repository] = {
    repo.name: repo
    for repo in (
        GitHubCliRepository(),
        LynisRepository(),
        TorRepository(),
        I2pdRepository(),
        GnuPGRepository(),
    )
}


def install_signing_key(ctx: "AdmContext", url: str, keyring: Path, dearmor: bool) -> None:
    """Fetch a repository signing key into keyring (mode 0644).

    Armored keys are converted with ``gpg --dearmor``; binary keyrings are
    written as downloaded.
    """
    if ctx.dry_run:
        ctx.feedback.info(f"Would import signing key {url} into {keyring}")
        return

    data = ctx.http.fetch_bytes(url)
    keyring.parent.mkdir(parents=True, exist_ok=True)
    keyring.parent.chmod(0o755)

    if not dearmor:
        keyring.write_bytes(data)
        keyring.chmod(0o644)
        return

    with tempfile.TemporaryDirectory(prefix="admkit-key-") as tmp:
        armored = Path(tmp) / "key.asc"
        armored.write_bytes(data)
        ctx.shell.run(
            ["gpg", "--dearmor", "--yes", "-o", str(keyring), str(armored)],
            operation=f"dearmor signing key into {keyring}",
        )
    if keyring.exists():
        keyring.chmod(0o644)


def _install(ctx: "AdmContext", apt: str, repo: Repository, plan: RepoPlan) -> None:
    if not plan.install_attempts:
        ctx.feedback.info(f"Installing {', '.join(repo.packages)}...")
        apt_install(ctx, apt, repo.packages)
        return

    *fallible, last = plan.install_attempts
    for attempt in fallible:
        if apt_install(ctx, apt, attempt[-1:], extra_args=attempt[:-1], check=False).ok:
            return
        logger.debug("install attempt failed: %s", attempt)
    apt_install(ctx, apt, last[-1:], extra_args=last[:-1])


def add_repository(ctx: "AdmContext", repo: Repository, options: RepoOptions) -> AddResult:
    """Configure repo on this host and optionally install its packages.

    Raises:
        UnsupportedSystemError: If release, architecture or tooling is unsupported
        RuntimeError: If a command or download fails
    """
    feedback = ctx.feedback
    paths = ctx.config.paths

    apt = detect_apt(ctx)
    os_release = read_os_release(paths.os_release)
    release = repo.resolve(os_release)
    arch = native_architecture(ctx)
    repo.check_architecture(arch)

    feedback.info(f"Detected distribution: {release.dist}")
    feedback.info(f"Detected release codename: {release.codename}")
    feedback.info(f"Using repository suite: {release.suite}")
    feedback.info(f"Using native APT architecture: {arch}")

    feedback.info("Updating APT index for base repositories...")
    apt_update(ctx, apt)
    if repo.dearmor and not ctx.shell.has("gpg"):
        feedback.info("Installing gnupg (for gpg)...")
        apt_install(ctx, apt, ["gnupg"])
    ensure_packages(ctx, apt, repo.base_packages)

    keyring = repo.keyring_path(paths)
    plan = repo.plan(ctx, release, arch, keyring, options)

    feedback.info("Importing signing key...")
    install_signing_key(ctx, plan.key_url, keyring, repo.dearmor)

    path = repo.sources_path(paths)
    changed = write_sources(path, plan.sources, dry_run=ctx.dry_run)
    if changed:
        feedback.info(f"Wrote APT deb822 source {path}")
    else:
        feedback.info(f"APT source {path} already up to date")

    if not options.install:
        return AddResult(path=path, changed=changed, release=release, architecture=arch)

    feedback.info(f"Updating APT index (including {repo.name} repository)...")
    apt_update(ctx, apt)
    _install(ctx, apt, repo, plan)

    if repo.service is not None:
        feedback.info(f"Enabling and starting {repo.service} service...")
        enable_and_start(ctx, repo.service, repo.systemd_units)

    feedback.success(f"{repo.name} repository configured.")
    return AddResult(path=path, changed=changed, release=release, architecture=arch)


def configured_sources(sources_dir: Path) -> list[tuple[Path, SourcesFile]]:
    """Parse every ``.sources`` file in sources_dir, sorted by name."""
    if not sources_dir.is_dir():
        return []
    return [
        (path, parse_sources(path.read_text(encoding="utf-8")))
        for path in sorted(sources_dir.glob("*.sources"))
    ]


def repository_names() -> Sequence[str]:
    return sorted(REPOSITORIES)
