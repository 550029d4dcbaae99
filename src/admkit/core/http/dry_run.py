"""No-op wrapper for HTTP downloads.

Fetching metadata is read-only and is delegated. Downloads that would land on
disk are printed instead.
"""

from pathlib import Path

from admkit.cli.output import user_output
from admkit.core.http.abc import Http
from admkit.core.shell.dry_run import DRY_RUN_PREFIX


class DryRunHttp(Http):
    """Wrapper that skips file downloads."""

    def __init__(self, wrapped: Http) -> None:
        self._wrapped = wrapped

    def fetch_bytes(self, url: str) -> bytes:
        return self._wrapped.fetch_bytes(url)

    def download(self, url: str, dest: Path) -> None:
        user_output(DRY_RUN_PREFIX + f"Would download {url} to {dest}")
