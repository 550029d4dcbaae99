"""deb822 APT source files.

A ``.sources`` file is a sequence of stanzas separated by blank lines, each a
list of ``Field: value`` lines. admkit renders files from Stanza objects and
writes them only when the rendered text differs from what is on disk, so
running a repository command twice leaves exactly one, identical entry.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

SPECIAL_NAMES = {"uris": "URIs"}


@dataclass(frozen=True)
class Stanza:
    """One deb822 paragraph. Field order is preserved on render."""

    fields: tuple[tuple[str, str], ...]

    @staticmethod
    def of(**values: str | Iterable[str] | None) -> "Stanza":
        """Build a stanza from keyword arguments.

        Underscores in names become dashes (``signed_by`` -> ``Signed-By``),
        iterables are space-joined and None values are dropped.

        Example:
            >>> Stanza.of(types=["deb"], uris="https://example.org", suites="stable")
        """
        items: list[tuple[str, str]] = []
        for name, value in values.items():
            if value is None:
                continue
            key = SPECIAL_NAMES.get(name) or "-".join(p.capitalize() for p in name.split("_"))
            text = value if isinstance(value, str) else " ".join(value)
            items.append((key, text))
        return Stanza(tuple(items))

    def get(self, key: str) -> str | None:
        for name, value in self.fields:
            if name.lower() == key.lower():
                return value
        return None

    @property
    def enabled(self) -> bool:
        return (self.get("Enabled") or "yes").lower() != "no"

    def render(self) -> str:
        lines = []
        for key, value in self.fields:
            first, *rest = value.split("\n")
            lines.append(f"{key}: {first}")
            lines.extend(f" {line}" if line else " ." for line in rest)
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class SourcesFile:
    """A whole ``.sources`` file: stanzas plus a trailing comment block."""

    stanzas: tuple[Stanza, ...]
    comments: tuple[str, ...] = field(default=())

    def render(self) -> str:
        text = "\n".join(stanza.render() for stanza in self.stanzas)
        if self.comments:
            text += "".join(f"# {line}".rstrip() + "\n" for line in self.comments)
        return text


def parse_sources(text: str) -> SourcesFile:
    """Parse deb822 text. Comment lines are collected separately."""
    stanzas: list[Stanza] = []
    comments: list[str] = []
    current: list[tuple[str, str]] = []

    def flush() -> None:
        if current:
            stanzas.append(Stanza(tuple(current)))
            current.clear()

    for raw in text.splitlines():
        if raw.startswith("#"):
            comments.append(raw[1:].strip())
            continue
        if not raw.strip():
            flush()
            continue
        if raw[0] in " \t" and current:
            key, value = current[-1]
            continuation = raw.strip()
            current[-1] = (key, f"{value}\n{'' if continuation == '.' else continuation}")
            continue
        key, sep, value = raw.partition(":")
        if not sep:
            logger.debug("ignoring malformed deb822 line: %r", raw)
            continue
        current.append((key.strip(), value.strip()))
    flush()
    return SourcesFile(tuple(stanzas), tuple(comments))


def write_sources(path: Path, sources: SourcesFile, *, dry_run: bool = False) -> bool:
    """Write a .sources file and drop its legacy one-line ``.list`` twin.

    Args:
        path: Target ``<name>.sources`` path
        sources: Content to write
        dry_run: Report whether a change would happen without touching disk

    Returns:
        True if the file was (or would be) created or changed
    """
    content = sources.render()
    legacy = path.with_suffix(".list")

    changed = not path.exists() or path.read_text(encoding="utf-8") != content
    if dry_run:
        return changed or legacy.exists()

    if legacy.exists():
        logger.debug("removing legacy source list %s", legacy)
        legacy.unlink()

    if changed:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        path.chmod(0o644)
    return changed
