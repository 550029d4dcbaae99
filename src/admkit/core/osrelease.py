"""Distribution detection from /etc/os-release.

APT repositories publish per-release suites. This module turns the host's
os-release data into the (distribution, suite) pair a repository expects,
mapping derivatives onto their parent distribution along the way.
"""

import shlex
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from pathlib import Path

from admkit.core.errors import UnsupportedSystemError

# Devuan releases are binary compatible with these Debian releases
DEVUAN_TO_DEBIAN: dict[str, str] = {
    "daedalus": "bookworm",
    "excalibur": "trixie",
}

NATIVE_IDS = frozenset({"debian", "devuan", "raspbian", "ubuntu"})


@dataclass(frozen=True)
class OsRelease:
    """Parsed /etc/os-release fields."""

    fields: Mapping[str, str]

    def get(self, key: str) -> str:
        return self.fields.get(key, "")

    @property
    def id(self) -> str:
        return self.get("ID")

    @property
    def id_like(self) -> list[str]:
        return self.get("ID_LIKE").split()

    @property
    def pretty_name(self) -> str:
        return self.get("PRETTY_NAME") or self.id

    @property
    def codename(self) -> str:
        """DEBIAN_CODENAME, then UBUNTU_CODENAME, then VERSION_CODENAME."""
        for key in ("DEBIAN_CODENAME", "UBUNTU_CODENAME", "VERSION_CODENAME"):
            value = self.get(key)
            if value:
                return value
        return ""

    def family(self) -> str:
        """Normalized distribution family: debian, devuan, raspbian or ubuntu.

        Derivatives are mapped through ID_LIKE (ubuntu wins over debian, since
        Ubuntu derivatives list both).

        Raises:
            UnsupportedSystemError: If the system is neither Debian- nor Ubuntu-like
        """
        if self.id in NATIVE_IDS:
            return self.id
        if "ubuntu" in self.id_like:
            return "ubuntu"
        if "debian" in self.id_like:
            return "debian"
        raise UnsupportedSystemError(
            f"'{self.id or 'unknown'}' is not supported. "
            "Only Debian-like and Ubuntu-like systems are supported."
        )


def parse_os_release(text: str) -> OsRelease:
    """Parse os-release content (shell-style KEY=value lines).

    Values may be unquoted, single- or double-quoted. Comments and blank lines
    are ignored, as are lines that are not assignments.
    """
    fields: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if not key.isidentifier():
            continue
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip("\"'")]
        fields[key] = " ".join(parts)
    return OsRelease(fields)


def read_os_release(path: Path) -> OsRelease:
    """Read and parse an os-release file.

    Raises:
        UnsupportedSystemError: If the file is missing or unreadable
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise UnsupportedSystemError(f"{path} not found. Cannot detect distribution.") from e
    return parse_os_release(text)


@dataclass(frozen=True)
class Release:
    """Distribution/suite pair as used in repository URLs."""

    dist: str
    suite: str
    codename: str


def resolve_release(
    os_release: OsRelease,
    supported: Mapping[str, Collection[str]],
) -> Release:
    """Map the host onto a repository's supported (dist, suite).

    Args:
        os_release: Parsed host os-release
        supported: Suites the repository publishes, keyed by dist
            ("debian", "raspbian", "ubuntu"). Devuan is resolved to Debian.

    Returns:
        Release with the repository dist and suite

    Raises:
        UnsupportedSystemError: If the codename is missing or not published
    """
    family = os_release.family()
    codename = os_release.codename
    if family == "ubuntu":
        codename = os_release.get("UBUNTU_CODENAME") or codename
    if not codename:
        raise UnsupportedSystemError(
            "could not detect distribution codename "
            "(DEBIAN_CODENAME/UBUNTU_CODENAME/VERSION_CODENAME missing)."
        )

    dist = family
    suite = codename
    if family == "devuan":
        mapped = DEVUAN_TO_DEBIAN.get(codename)
        if mapped is None:
            names = ", ".join(f"{k} (-> {v})" for k, v in DEVUAN_TO_DEBIAN.items())
            raise UnsupportedSystemError(
                f"unsupported Devuan codename '{codename}'. Supported: {names}."
            )
        dist, suite = "debian", mapped

    if dist == "raspbian" and "raspbian" not in supported:
        dist = "debian"

    allowed = supported.get(dist)
    if allowed is None:
        raise UnsupportedSystemError(f"{dist} is not supported by this repository.")
    if suite not in allowed:
        raise UnsupportedSystemError(
            f"unsupported {dist} release '{suite}'. Supported: {', '.join(allowed)}."
        )
    return Release(dist=dist, suite=suite, codename=codename)
