"""Monero daemon and CLI tools from getmonero.org.

The release tarball is only installed after the signed ``hashes.txt`` has been
verified against binaryFate's key in a throwaway GnuPG home and the tarball's
SHA-256 matches the signed hash.
"""

import hashlib
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.errors import UnsupportedSystemError, VerificationError
from admkit.core.releases import latest_github_tag
from admkit.core.updaters.base import Updater

if TYPE_CHECKING:
    from admkit.core.config import MoneroConfig
    from admkit.core.context import AdmContext

REPO = "monero-project/monero"
DOWNLOAD_URL = "https://downloads.getmonero.org/cli"
HASHES_URL = "https://www.getmonero.org/downloads/hashes.txt"
SIGNING_KEY_URL = (
    "https://raw.githubusercontent.com/monero-project/monero/master/utils/gpg_keys/binaryfate.asc"
)
UNIT_URL = (
    "https://raw.githubusercontent.com/monero-project/monero/master/utils/systemd/monerod.service"
)

_HASH_LINE = re.compile(r"^([0-9a-fA-F]{64})\s+(\S+)\s*$")


def monero_platform(machine: str) -> str:
    if machine in ("x86_64", "amd64"):
        return "linux-x64"
    if machine in ("i386", "i686"):
        return "linux-x86"
    if machine in ("aarch64", "arm64"):
        return "linux-armv8"
    if machine.startswith("armv7"):
        return "linux-armv7"
    if machine == "riscv64":
        return "linux-riscv64"
    raise UnsupportedSystemError(f"Unsupported architecture for Monero binaries: {machine}")


def tarball_name(platform: str, tag: str) -> str:
    return f"monero-{platform}-{tag}.tar.bz2"


def expected_hash(hashes_text: str, filename: str) -> str | None:
    """SHA-256 listed for filename in the (decrypted) hashes file."""
    for line in hashes_text.splitlines():
        match = _HASH_LINE.match(line.strip())
        if match and match.group(2) == filename:
            return match.group(1).lower()
    return None


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def render_conf(config: "MoneroConfig") -> str:
    return (
        f"data-dir={config.data_dir}\n"
        f"log-file={config.log_dir / 'monerod.log'}\n"
        "log-level=0\n"
        "db-sync-mode=safe\n"
        "max-log-file-size=10485760\n"
        "max-log-files=5\n"
    )


def verify_release(ctx: "AdmContext", tarball: Path, workdir: Path) -> None:
    """Check the signed hashes file and the tarball digest.

    Raises:
        VerificationError: If the signature or the hash does not match
    """
    shell = ctx.shell
    hashes = workdir / "hashes.txt"
    key = workdir / "binaryfate.asc"
    gnupg_home = workdir / "gnupg"
    gnupg_home.mkdir(mode=0o700)

    ctx.http.download(HASHES_URL, hashes)
    ctx.http.download(SIGNING_KEY_URL, key)

    gpg = ["gpg", "--homedir", str(gnupg_home), "--batch"]
    shell.run([*gpg, "--import", str(key)], operation="import Monero signing key", capture=True)
    verified = shell.run(
        [*gpg, "--verify", str(hashes)],
        operation="verify Monero hashes signature",
        check=False,
        capture=True,
    )
    if not verified.ok:
        raise VerificationError("GPG signature verification of hashes.txt failed.")
    ctx.feedback.info("GPG signature of hashes.txt is valid.")

    plain = shell.run(
        [*gpg, "--decrypt", str(hashes)], operation="extract signed Monero hashes", capture=True
    )
    expected = expected_hash(plain.stdout, tarball.name)
    if expected is None:
        raise VerificationError(f"no hash for {tarball.name} found in hashes.txt.")

    actual = sha256_file(tarball)
    if actual != expected:
        raise VerificationError(
            f"SHA-256 mismatch for {tarball.name}: expected {expected}, got {actual}."
        )
    ctx.feedback.info("SHA-256 checksum verified.")


def install_binaries(ctx: "AdmContext", extracted: Path, bin_dir: Path) -> list[str]:
    """Install monerod and the monero-* tools from an extracted release."""
    installed = []
    for path in sorted(extracted.iterdir()):
        if not path.is_file():
            continue
        if path.name == "monerod" or path.name.startswith("monero-"):
            ctx.shell.run(
                ["install", "-m", "0755", str(path), str(bin_dir / path.name)],
                operation=f"install {path.name}",
            )
            installed.append(path.name)
    return installed


def ensure_service_user(ctx: "AdmContext", config: "MoneroConfig") -> None:
    shell = ctx.shell
    if not shell.query(["id", "-u", config.user], operation="look up monero user").ok:
        ctx.feedback.info(f"Creating system user {config.user}...")
        shell.run(
            [
                "useradd",
                "--system",
                "--home-dir",
                str(config.data_dir),
                "--shell",
                "/usr/sbin/nologin",
                config.user,
            ],
            operation=f"create user {config.user}",
        )
    shell.run(
        ["mkdir", "-p", str(config.data_dir), str(config.log_dir)],
        operation="create Monero data directories",
    )
    shell.run(
        ["chown", "-R", f"{config.user}:{config.user}", str(config.data_dir), str(config.log_dir)],
        operation="set Monero data directory ownership",
    )


def write_conf(ctx: "AdmContext", config: "MoneroConfig") -> bool:
    if config.conf.exists():
        ctx.feedback.info(f"Keeping existing {config.conf}")
        return False
    config.conf.parent.mkdir(parents=True, exist_ok=True)
    config.conf.write_text(render_conf(config), encoding="utf-8")
    config.conf.chmod(0o644)
    ctx.feedback.info(f"Wrote {config.conf}")
    return True


class MoneroUpdater(Updater):
    name = "monero"
    description = "Monero CLI binaries with GPG and SHA-256 verification"
    required_commands = ("gpg", "tar")

    def installed_version(self, ctx: "AdmContext") -> str | None:
        result = ctx.shell.query(["monerod", "--version"], operation="read monerod version")
        return result.first_line if result.ok and result.first_line else None

    def latest_version(self, ctx: "AdmContext") -> str:
        tag = latest_github_tag(ctx, REPO)
        if not tag:
            raise RuntimeError("could not determine the latest Monero release.")
        return tag

    def is_up_to_date(self, installed: str, latest: str) -> bool:
        # monerod prints e.g. "Monero 'Fluorine Fermi' (v0.18.3.4-release)"
        return latest in installed

    def install(self, ctx: "AdmContext", version: str) -> None:
        shell = ctx.shell
        monero = ctx.config.monero
        platform = monero_platform(ctx.host.machine())
        name = tarball_name(platform, version)

        with tempfile.TemporaryDirectory(prefix="admkit-monero-") as tmp:
            workdir = Path(tmp)
            tarball = workdir / name
            ctx.feedback.info(f"Downloading {name}...")
            ctx.http.download(f"{DOWNLOAD_URL}/{name}", tarball)
            verify_release(ctx, tarball, workdir)

            was_active = shell.has("systemctl") and shell.query(
                ["systemctl", "is-active", "--quiet", "monerod"],
                operation="check monerod state",
            ).ok
            if was_active:
                ctx.feedback.info("Stopping monerod...")
                shell.run(["systemctl", "stop", "monerod"], operation="stop monerod")

            shell.run(["tar", "-xjf", str(tarball), "-C", str(workdir)], operation="extract Monero")
            extracted = next((p for p in sorted(workdir.glob("monero-*")) if p.is_dir()), None)
            if extracted is None:
                raise RuntimeError(f"no monero-* directory found in {name}.")
            installed = install_binaries(ctx, extracted, monero.bin_dir)
            ctx.feedback.info(f"Installed {', '.join(installed)} into {monero.bin_dir}")

        ensure_service_user(ctx, monero)
        write_conf(ctx, monero)

        unit = ctx.config.paths.systemd_dir / "monerod.service"
        ctx.http.download(UNIT_URL, unit)
        unit.chmod(0o644)
        ctx.feedback.info(f"Installed {unit}")

        if not shell.has("systemctl"):
            ctx.feedback.warn("systemctl not found; enable monerod with your init system.")
            return
        shell.run(["systemctl", "daemon-reload"], operation="reload systemd units")
        if not shell.run(
            ["systemctl", "enable", "monerod"], operation="enable monerod", check=False
        ).ok:
            ctx.feedback.warn("Could not enable monerod.")
        if was_active:
            ctx.feedback.info("Restarting monerod...")
            shell.run(["systemctl", "restart", "monerod"], operation="restart monerod")
