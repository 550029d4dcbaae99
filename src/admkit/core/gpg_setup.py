"""GnuPG installation and key generation (``admkit gpg setup``).

On Debian, Ubuntu and Devuan GnuPG comes from the upstream repository at
repos.gnupg.org; elsewhere the native package manager is used. Keys are
generated without a passphrase: a composite ECC+Kyber key when the installed
GnuPG supports post-quantum algorithms, plus an RSA-4096 key for peers that
do not.
"""

import logging
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.apt.packages import detect_apt
from admkit.core.apt.repos import REPOSITORIES, RepoOptions, add_repository
from admkit.core.errors import UnsupportedSystemError
from admkit.core.osrelease import read_os_release

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

KEYSERVER = "hkps://keys.openpgp.org"
DEBIAN_LIKE = ("debian", "ubuntu", "devuan")
ESCALATORS = ("run0", "sudo", "doas")

# Tried in order; the first available manager installs GnuPG.
PACKAGE_MANAGERS: tuple[tuple[str, tuple[str, ...], bool], ...] = (
    ("dnf", ("dnf", "install", "-y", "gnupg2"), True),
    ("yum", ("yum", "install", "-y", "gnupg2"), True),
    ("pacman", ("pacman", "-Sy", "--noconfirm", "gnupg"), True),
    ("zypper", ("zypper", "--non-interactive", "install", "gpg2"), True),
    ("xbps-install", ("xbps-install", "-Sy", "gnupg"), True),
    ("apk", ("apk", "add", "gnupg"), True),
    ("brew", ("brew", "install", "gnupg"), False),
    ("pkg", ("pkg", "install", "-y", "gnupg"), True),
    ("pkg_add", ("pkg_add", "gnupg"), True),
)

RSA_PARAMETERS = """\
Key-Type: rsa
Key-Length: 4096
Subkey-Type: rsa
Subkey-Length: 4096
Name-Real: {name}
Name-Email: {email}
Name-Comment: RSA compatibility key
Expire-Date: 0
%no-protection
%commit
"""


@dataclass(frozen=True)
class GpgSetupOptions:
    no_pqc: bool = False
    pqc_only: bool = False
    name: str | None = None
    email: str | None = None
    install_only: bool = False
    keygen_only: bool = False
    gnupg_branch: str | None = None
    upload: bool = True

    def validate(self) -> None:
        """Raises ValueError on contradictory options."""
        if self.no_pqc and self.pqc_only:
            raise ValueError("Options --no-pqc and --pqc-only are mutually exclusive.")
        if self.install_only and self.keygen_only:
            raise ValueError("Options --install-only and --keygen-only are mutually exclusive.")
        if self.gnupg_branch not in (None, "stable", "devel"):
            raise ValueError(
                f"Invalid value for --gnupg-branch: {self.gnupg_branch} "
                "(expected 'stable' or 'devel')"
            )


@dataclass(frozen=True)
class GeneratedKey:
    kind: str
    key_id: str
    fingerprint: str


@dataclass
class GpgSetupResult:
    keys: list[GeneratedKey] = field(default_factory=list)
    uploaded: bool = False
    installed_configs: list[Path] = field(default_factory=list)


def escalation_prefix(ctx: "AdmContext") -> list[str]:
    """Command prefix that runs a package manager or installer as root.

    Raises:
        RuntimeError: If not root and none of run0, sudo or doas exists
    """
    if ctx.host.is_root():
        return []
    for tool in ESCALATORS:
        if ctx.shell.has(tool):
            return [tool]
    raise RuntimeError("Need root/sudo/run0/doas to install system files.")


def _distro_gnupg(ctx: "AdmContext", prefix: list[str]) -> None:
    apt = detect_apt(ctx)
    ctx.shell.run([*prefix, apt, "update"], operation="update APT index")
    ctx.shell.run([*prefix, apt, "install", "-y", "gnupg"], operation="install gnupg")


def install_gnupg_debian_like(ctx: "AdmContext", branch: str | None) -> None:
    """GnuPG from the upstream repository, or the distribution package when unsupported."""
    gnupg = REPOSITORIES["gnupg"]
    prefix = escalation_prefix(ctx)

    if not prefix:
        try:
            add_repository(ctx, gnupg, RepoOptions(branch=branch))
            return
        except UnsupportedSystemError as e:
            ctx.feedback.warn(f"{e} Using distro gnupg instead.")
            _distro_gnupg(ctx, prefix)
            return

    cmd = [*prefix, "admkit", "apt", "add-repo", gnupg.name]
    if branch:
        cmd += ["--branch", branch]
    if not ctx.shell.run(cmd, operation="add the GnuPG repository", check=False).ok:
        ctx.feedback.warn("Could not use the official GnuPG repository; using distro gnupg.")
        _distro_gnupg(ctx, prefix)


def install_gnupg(ctx: "AdmContext", branch: str | None) -> None:
    """Install GnuPG with whatever this system provides.

    Raises:
        RuntimeError: If no supported package manager is found
    """
    os_path = ctx.config.paths.os_release
    if os_path.exists():
        os_release = read_os_release(os_path)
        if os_release.id in DEBIAN_LIKE:
            install_gnupg_debian_like(ctx, branch)
            return

    if ctx.shell.has("apt-get"):
        ctx.feedback.info("Detected apt-get (generic Debian-like).")
        _distro_gnupg(ctx, escalation_prefix(ctx))
        return

    for tool, cmd, needs_root in PACKAGE_MANAGERS:
        if not ctx.shell.has(tool):
            continue
        ctx.feedback.info(f"Installing gnupg with {tool}...")
        prefix = escalation_prefix(ctx) if needs_root else []
        ctx.shell.run([*prefix, *cmd], operation="install gnupg")
        return
    raise RuntimeError("Could not detect a supported package manager to install gnupg.")


def install_gpg_conf(ctx: "AdmContext") -> list[Path]:
    """Copy files from the gpg-conf directory into the GnuPG home.

    Existing files are moved to ``<name>.bak`` (or a timestamped backup when
    that already exists). Returns the installed destinations.
    """
    paths = ctx.config.paths
    source = paths.gpg_conf_source
    if not source.is_absolute():
        source = ctx.cwd / source
    if not source.is_dir():
        return []

    home = paths.gnupg_home
    ctx.feedback.info(f"Found {source}; installing config files into {home} ...")
    installed = []
    for src in sorted(p for p in source.iterdir() if p.is_file()):
        dest = home / src.name
        if ctx.dry_run:
            ctx.feedback.info(f"Would copy {src} -> {dest}")
            installed.append(dest)
            continue

        home.mkdir(mode=0o700, parents=True, exist_ok=True)
        home.chmod(0o700)
        if dest.exists():
            backup = dest.with_name(f"{dest.name}.bak")
            if backup.exists():
                backup = dest.with_name(f"{dest.name}.bak.{ctx.time.now():%Y%m%d%H%M%S}")
            ctx.feedback.info(f"Backing up existing {dest} to {backup}")
            dest.rename(backup)
        shutil.copyfile(src, dest)
        dest.chmod(0o600)
        installed.append(dest)
    ctx.feedback.info(f"GnuPG configuration from {source} installed into {home}.")
    return installed


def supports_kyber(version_output: str) -> bool:
    return re.search(r"kyber", version_output, re.IGNORECASE) is not None


def parse_secret_keys(colons: str) -> list[tuple[str, str]]:
    """(key id, fingerprint) of every primary secret key in ``--with-colons`` output."""
    keys: list[tuple[str, str]] = []
    pending: str | None = None
    for line in colons.splitlines():
        fields = line.split(":")
        if fields[0] == "sec" and len(fields) > 4:
            pending = fields[4]
        elif fields[0] == "fpr" and pending is not None and len(fields) > 9:
            keys.append((pending, fields[9]))
            pending = None
    return keys


class GpgKeygen:
    """Key generation against one GnuPG home."""

    def __init__(self, ctx: "AdmContext") -> None:
        self.ctx = ctx
        self.env = {"GNUPGHOME": str(ctx.config.paths.gnupg_home)}

    def version_output(self) -> str:
        result = self.ctx.shell.query(
            ["gpg", "--version"], operation="read gpg version", env=self.env
        )
        return result.stdout

    def newest_key(self) -> tuple[str, str] | None:
        result = self.ctx.shell.query(
            ["gpg", "--list-secret-keys", "--with-colons", "--keyid-format", "LONG"],
            operation="list secret keys",
            env=self.env,
        )
        keys = parse_secret_keys(result.stdout)
        return keys[-1] if keys else None

    def generate_pqc(self, uid: str) -> bool:
        return self.ctx.shell.run(
            [
                "gpg",
                "--batch",
                "--yes",
                "--pinentry-mode",
                "loopback",
                "--passphrase",
                "",
                "--quick-gen-key",
                f"{uid} (PQC)",
                "pqc",
                "default",
                "0",
            ],
            operation="generate ECC+Kyber key",
            env=self.env,
            check=False,
        ).ok

    def generate_rsa(self, name: str, email: str) -> None:
        with tempfile.TemporaryDirectory(prefix="admkit-gpg-") as tmp:
            params = Path(tmp) / "gpg-key-rsa.conf"
            params.write_text(RSA_PARAMETERS.format(name=name, email=email), encoding="utf-8")
            self.ctx.shell.run(
                ["gpg", "--batch", "--generate-key", str(params)],
                operation="generate RSA 4096-bit key",
                env=self.env,
            )

    def upload(self, fingerprints: list[str]) -> bool:
        return self.ctx.shell.run(
            ["gpg", "--keyserver", KEYSERVER, "--send-keys", *fingerprints],
            operation=f"upload keys to {KEYSERVER}",
            env=self.env,
            check=False,
        ).ok


def ask_identity(ctx: "AdmContext", options: GpgSetupOptions) -> tuple[str, str]:
    default_name = ctx.host.user_name()
    default_email = f"{default_name}@{ctx.host.hostname()}"
    if options.name:
        name = options.name
        ctx.feedback.info(f"Using provided name: {name}")
    else:
        name = ctx.prompt.ask("Real name", default=default_name) or default_name
    if options.email:
        email = options.email
        ctx.feedback.info(f"Using provided email: {email}")
    else:
        email = ctx.prompt.ask("Email address", default=default_email) or default_email
    return name, email


def generate_keys(ctx: "AdmContext", options: GpgSetupOptions) -> list[GeneratedKey]:
    """Generate the PQC and/or RSA keys the options and GnuPG build allow.

    Raises:
        RuntimeError: If PQC is required but unavailable, or nothing was generated
    """
    feedback = ctx.feedback
    keygen = GpgKeygen(ctx)

    feedback.info("Checking for Kyber (post-quantum) support in this GnuPG build...")
    kyber = supports_kyber(keygen.version_output())
    if options.no_pqc:
        feedback.info("PQC support explicitly disabled via --no-pqc.")
        kyber = False
    if not kyber and options.pqc_only:
        raise RuntimeError(
            "Option --pqc-only was requested, but this GnuPG build does not advertise "
            "any Kyber/PQC algorithms."
        )
    feedback.info(
        "Kyber/PQC algorithms detected in this GnuPG build."
        if kyber
        else "No Kyber/PQC algorithms detected in this GnuPG build."
    )

    want_pqc = kyber
    want_rsa = not options.pqc_only
    if want_pqc and want_rsa:
        feedback.info("Key generation plan: ECC+Kyber (PQC) key + RSA 4096-bit compatibility key.")
    elif want_pqc:
        feedback.info("Key generation plan: ECC+Kyber (PQC) key only (no RSA compatibility key).")
    else:
        feedback.info("Key generation plan: RSA 4096-bit key only.")

    name, email = ask_identity(ctx, options)
    uid = f"{name} <{email}>"
    keys: list[GeneratedKey] = []

    if want_pqc:
        feedback.info("Generating a composite ECC+Kyber (PQC) key (no expiry, no passphrase)...")
        if keygen.generate_pqc(uid):
            newest = None if ctx.dry_run else keygen.newest_key()
            if newest is not None:
                keys.append(GeneratedKey("ECC+Kyber (PQC)", *newest))
        elif options.pqc_only:
            raise RuntimeError(
                "PQC key generation failed and --pqc-only was requested. "
                "No RSA fallback will be created."
            )
        else:
            feedback.warn("PQC key generation with 'pqc' failed. Continuing with RSA only.")

    if want_rsa:
        feedback.info("Generating an RSA 4096-bit key (no expiry, no passphrase)...")
        keygen.generate_rsa(name, email)
        newest = None if ctx.dry_run else keygen.newest_key()
        if newest is None and not ctx.dry_run:
            raise RuntimeError("Could not determine generated RSA key ID.")
        if newest is not None:
            keys.append(GeneratedKey("RSA 4096-bit", *newest))

    if not keys and not ctx.dry_run:
        raise RuntimeError("Key generation did not produce any usable keys.")
    return keys


def setup_gpg(ctx: "AdmContext", options: GpgSetupOptions) -> GpgSetupResult:
    """Install GnuPG, install its configuration, generate and upload keys.

    Raises:
        ValueError: On contradictory options
        RuntimeError: If installation or key generation fails
    """
    options.validate()
    result = GpgSetupResult()

    if options.keygen_only:
        ctx.feedback.info("Key-generation-only mode requested; skipping GnuPG installation.")
    else:
        install_gnupg(ctx, options.gnupg_branch)

    if not ctx.shell.has("gpg") and not ctx.dry_run:
        raise RuntimeError("gpg binary not found. Please ensure GnuPG is installed and in PATH.")

    result.installed_configs = install_gpg_conf(ctx)
    if options.install_only:
        ctx.feedback.info("Install-only mode: GnuPG is installed. No keys were generated.")
        return result

    result.keys = generate_keys(ctx, options)

    fingerprints = [key.fingerprint for key in result.keys if key.fingerprint]
    if options.upload and fingerprints:
        ctx.feedback.info(f"Uploading generated keys to {KEYSERVER}: {' '.join(fingerprints)}")
        result.uploaded = GpgKeygen(ctx).upload(fingerprints)
        if result.uploaded:
            ctx.feedback.info(f"Keys successfully submitted to {KEYSERVER}.")
        else:
            ctx.feedback.warn(f"failed to upload keys to {KEYSERVER}")
    return result
