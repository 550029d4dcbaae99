"""Apply a sysclean report.

sysclean lists files, users and groups that are left over after upgrades. The
report format is one item per line::

    # comment
    /usr/local/lib/libfoo.so.1.0
    @user _foo:1001:1001::...
    @group _foo:1001

Only the items named in the report are ever removed, and directories are only
removed once they are empty.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from admkit.core.errors import ReportParseError

if TYPE_CHECKING:
    from admkit.core.context import AdmContext


class ItemKind(Enum):
    PATH = "path"
    USER = "user"
    GROUP = "group"


@dataclass(frozen=True)
class CleanupItem:
    kind: ItemKind
    value: str


@dataclass(frozen=True)
class ItemOutcome:
    item: CleanupItem
    action: str


def _account_name(owner: str) -> str:
    return owner.split(":", 1)[0].strip()


def parse_report(lines: Iterable[str]) -> list[CleanupItem]:
    """Parse report lines into cleanup items, keeping their order.

    Raises:
        ReportParseError: On a relative path, the root directory, or an
            account line without a name
    """
    items: list[CleanupItem] = []
    seen: set[CleanupItem] = set()
    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("@"):
            tag, _, rest = line.partition(" ")
            if tag not in ("@user", "@group"):
                raise ReportParseError(number, line, "unknown directive")
            kind = ItemKind.USER if tag == "@user" else ItemKind.GROUP
            name = _account_name(rest)
            if not name:
                raise ReportParseError(number, line, f"missing {kind.value} name")
            item = CleanupItem(kind, name)
        else:
            path = PurePosixPath(line)
            if not path.is_absolute():
                raise ReportParseError(number, line, "path is not absolute")
            if path == PurePosixPath("/"):
                raise ReportParseError(number, line, "refusing to remove /")
            if ".." in path.parts:
                raise ReportParseError(number, line, "path contains '..'")
            item = CleanupItem(ItemKind.PATH, str(path))

        if item not in seen:
            seen.add(item)
            items.append(item)
    return items


def removal_order(items: list[CleanupItem]) -> list[CleanupItem]:
    """Deepest paths first so listed children go before listed parents.

    Users are removed after paths and groups last.
    """
    paths = [i for i in items if i.kind is ItemKind.PATH]
    paths.sort(key=lambda i: len(PurePosixPath(i.value).parts), reverse=True)
    users = [i for i in items if i.kind is ItemKind.USER]
    groups = [i for i in items if i.kind is ItemKind.GROUP]
    return paths + users + groups


def _remove_path(ctx: "AdmContext", item: CleanupItem) -> str:
    path = ctx.config.paths.old_files_root / item.value.lstrip("/")
    if not path.exists() and not path.is_symlink():
        ctx.feedback.warn(f"{item.value} does not exist; skipping")
        return "missing"

    if path.is_dir() and not path.is_symlink():
        if any(path.iterdir()):
            ctx.feedback.warn(f"{item.value} is a non-empty directory; skipping")
            return "not-empty"
        if ctx.dry_run:
            ctx.feedback.info(f"Would remove directory {item.value}")
            return "would-remove"
        path.rmdir()
    else:
        if ctx.dry_run:
            ctx.feedback.info(f"Would remove {item.value}")
            return "would-remove"
        path.unlink()
    ctx.feedback.info(f"Removed {item.value}")
    return "removed"


def _remove_account(ctx: "AdmContext", item: CleanupItem) -> str:
    if item.kind is ItemKind.USER:
        lookup = ["id", "-u", item.value]
        remove = ["userdel", item.value]
    else:
        lookup = ["getent", "group", item.value]
        remove = ["groupdel", item.value]

    if not ctx.shell.query(lookup, operation=f"look up {item.kind.value} {item.value}").ok:
        ctx.feedback.warn(f"{item.kind.value} {item.value} does not exist; skipping")
        return "missing"
    if ctx.dry_run:
        ctx.feedback.info(f"Would remove {item.kind.value} {item.value}")
        return "would-remove"
    ctx.shell.run(remove, operation=f"remove {item.kind.value} {item.value}")
    ctx.feedback.info(f"Removed {item.kind.value} {item.value}")
    return "removed"


def apply_report(ctx: "AdmContext", items: list[CleanupItem]) -> list[ItemOutcome]:
    """Remove exactly the listed items.

    Raises:
        RuntimeError: If userdel or groupdel fails
        OSError: If a listed file cannot be removed
    """
    outcomes = []
    for item in removal_order(items):
        if item.kind is ItemKind.PATH:
            action = _remove_path(ctx, item)
        else:
            action = _remove_account(ctx, item)
        outcomes.append(ItemOutcome(item, action))
    return outcomes
