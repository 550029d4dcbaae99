"""Rotated log cleanup (``admkit clean-logs``)."""

import fnmatch
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.cli.output import machine_output

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupResult:
    matched: tuple[Path, ...]
    deleted: tuple[Path, ...]


def find_files(root: Path, pattern: str) -> Iterator[Path]:
    """Regular files under root whose name matches pattern.

    Like ``find root -xdev -type f -name pattern``: directories on another
    filesystem than root are not descended into and symlinks are not followed.
    """
    try:
        root_dev = root.lstat().st_dev
    except FileNotFoundError:
        return

    def on_error(err: OSError) -> None:
        logger.debug("skipping unreadable path: %s", err)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        kept = []
        for name in dirnames:
            try:
                if (current / name).lstat().st_dev == root_dev:
                    kept.append(name)
            except OSError as e:
                logger.debug("skipping %s: %s", current / name, e)
        dirnames[:] = sorted(kept)

        for name in sorted(filenames):
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            path = current / name
            if path.is_file() and not path.is_symlink():
                yield path


def clean_logs(ctx: "AdmContext") -> CleanupResult:
    """Delete ``*.gz`` under the log root and ``*.old`` under the old-file root.

    In dry-run mode the files are only listed.
    """
    paths = ctx.config.paths
    feedback = ctx.feedback

    feedback.info("----------------------------------------")
    feedback.info("Log cleanup started")

    matched: list[Path] = []
    deleted: list[Path] = []
    for root, pattern in ((paths.log_root, "*.gz"), (paths.old_files_root, "*.old")):
        if ctx.dry_run:
            feedback.info(
                f"DRY RUN: listing {pattern} files under {root} (no deletion will occur):"
            )
        else:
            feedback.info(f"Deleting {pattern} files under {root}...")

        for path in find_files(root, pattern):
            matched.append(path)
            if ctx.dry_run:
                machine_output(str(path))
                continue
            try:
                path.unlink()
            except OSError as e:
                feedback.warn(f"could not delete {path}: {e}")
                continue
            feedback.info(f"removed {path}")
            deleted.append(path)

    feedback.info("Log cleanup finished")
    feedback.info("----------------------------------------")
    return CleanupResult(matched=tuple(matched), deleted=tuple(deleted))
