"""Route APT over Tor.

Rewrites every APT source so that ``http://`` and ``https://`` URIs use the
``tor+http://``/``tor+https://`` transports from apt-transport-tor. Sources
already using a ``tor+`` transport are left alone, so the rewrite can be run
repeatedly.
"""

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.apt.packages import apt_install, apt_update, detect_apt
from admkit.core.services import enable_and_start

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

# Scheme at the start of a whitespace-separated token, unless already tor+
_URI = re.compile(r"(?<![\w+])(https?)://")
_LIST_LINE = re.compile(r"^(\s*deb(?:-src)?\s)")
_URIS_FIELD = re.compile(r"^(\s*URIs:)(.*)$", re.IGNORECASE)


def torify_uris(text: str) -> str:
    """Prefix every bare http(s):// URI in text with ``tor+``."""
    return _URI.sub(lambda m: f"tor+{m.group(1)}://", text)


def rewrite_list(content: str) -> str:
    """Rewrite ``deb``/``deb-src`` lines of a one-line-style source list."""
    out = []
    for line in content.splitlines(keepends=True):
        if _LIST_LINE.match(line):
            line = torify_uris(line)
        out.append(line)
    return "".join(out)


def rewrite_sources(content: str) -> str:
    """Rewrite ``URIs:`` fields of a deb822 source file."""
    out = []
    for line in content.splitlines(keepends=True):
        match = _URIS_FIELD.match(line)
        if match:
            line = match.group(1) + torify_uris(match.group(2)) + line[match.end() :]
        out.append(line)
    return "".join(out)


@dataclass(frozen=True)
class TransportResult:
    backup_dir: Path | None
    rewritten: tuple[Path, ...]


def source_files(sources_list: Path, sources_dir: Path) -> list[Path]:
    files = [sources_list] if sources_list.is_file() else []
    if sources_dir.is_dir():
        files.extend(sorted(p for p in sources_dir.iterdir() if p.suffix in (".list", ".sources")))
    return files


def backup_sources(sources_list: Path, sources_dir: Path, backup_dir: Path) -> None:
    """Copy sources.list and sources.list.d into backup_dir."""
    backup_dir.mkdir(parents=True, exist_ok=True)
    if sources_list.is_file():
        shutil.copy2(sources_list, backup_dir / sources_list.name)
    if sources_dir.is_dir():
        shutil.copytree(sources_dir, backup_dir / sources_dir.name, dirs_exist_ok=True)


def enable_tor_transport(ctx: "AdmContext") -> TransportResult:
    """Install apt-transport-tor and switch every APT source to Tor.

    Raises:
        RuntimeError: If package installation fails
    """
    paths = ctx.config.paths
    feedback = ctx.feedback

    apt = detect_apt(ctx)
    feedback.info("Installing apt-transport-tor and tor...")
    apt_update(ctx, apt)
    apt_install(ctx, apt, ["apt-transport-tor", "tor"])

    files = source_files(paths.apt_sources_list, paths.apt_sources_dir)
    changes: list[tuple[Path, str]] = []
    for path in files:
        original = path.read_text(encoding="utf-8")
        rewrite = rewrite_sources if path.suffix == ".sources" else rewrite_list
        updated = rewrite(original)
        if updated != original:
            changes.append((path, updated))

    if not changes:
        feedback.info("All APT sources already use Tor transports.")
        enable_and_start(ctx, "tor", ("tor.service", "tor@default.service"))
        return TransportResult(backup_dir=None, rewritten=())

    backup_dir = paths.apt_backup_root / f"tor-transport-backup-{ctx.time.stamp()}"
    if ctx.dry_run:
        for path, _ in changes:
            feedback.info(f"Would rewrite {path} to use tor+ transports")
        return TransportResult(backup_dir=None, rewritten=tuple(p for p, _ in changes))

    feedback.info(f"Backing up APT sources to {backup_dir}...")
    backup_sources(paths.apt_sources_list, paths.apt_sources_dir, backup_dir)

    for path, updated in changes:
        feedback.info(f"Rewriting {path}")
        path.write_text(updated, encoding="utf-8")

    feedback.info("Enabling tor service...")
    enable_and_start(ctx, "tor", ("tor.service", "tor@default.service"))
    feedback.success("APT now fetches packages over Tor.")
    return TransportResult(backup_dir=backup_dir, rewritten=tuple(p for p, _ in changes))
