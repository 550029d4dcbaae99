"""HTTP download interface.

Release metadata, signing keys and tarballs are all fetched through this
interface so tests can serve canned payloads.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class Http(ABC):
    """Abstract interface for HTTP fetches."""

    @abstractmethod
    def fetch_bytes(self, url: str) -> bytes:
        """Fetch a URL and return the raw body.

        Raises:
            RuntimeError: On network errors or non-2xx responses
        """

    @abstractmethod
    def download(self, url: str, dest: Path) -> None:
        """Stream a URL into dest, creating or replacing the file.

        Raises:
            RuntimeError: On network errors or non-2xx responses
        """

    def fetch_text(self, url: str) -> str:
        """Fetch a URL and decode the body as UTF-8."""
        return self.fetch_bytes(url).decode("utf-8")

    def fetch_json(self, url: str) -> Any:
        """Fetch a URL and parse the body as JSON."""
        try:
            return json.loads(self.fetch_text(url))
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Invalid JSON from {url}: {e}") from e
