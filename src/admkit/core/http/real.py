"""Production HTTP implementation using requests.

Mirrors ``curl -fLsS --retry 5``: follow redirects, fail on HTTP errors and
retry transient failures up to five times with backoff.
"""

import logging
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from admkit import __version__
from admkit.core.http.abc import Http

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
CHUNK_SIZE = 1024 * 64


def build_session(retries: int = 5) -> requests.Session:
    """Create a session that retries connection errors and 429/5xx responses."""
    retry = Retry(
        total=retries,
        backoff_factor=1.0,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = f"admkit/{__version__}"
    return session


class RealHttp(Http):
    """HTTP client backed by a retrying requests.Session."""

    def __init__(self, session: requests.Session | None = None, timeout: float = DEFAULT_TIMEOUT):
        self._session = session if session is not None else build_session()
        self._timeout = timeout

    def fetch_bytes(self, url: str) -> bytes:
        logger.debug("GET %s", url)
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RuntimeError(f"Failed to fetch {url}: {e}") from e
        return response.content

    def download(self, url: str, dest: Path) -> None:
        logger.debug("GET %s -> %s", url, dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._session.get(url, timeout=self._timeout, stream=True) as response:
                response.raise_for_status()
                with dest.open("wb") as fh:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        fh.write(chunk)
        except requests.RequestException as e:
            dest.unlink(missing_ok=True)
            raise RuntimeError(f"Failed to download {url}: {e}") from e
