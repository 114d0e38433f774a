"""Download of the raw expression table with local caching.

Fetches the dataset over HTTP with retrying sessions and keeps a copy in
a cache directory so repeated runs do not hit the network.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import DEFAULT_DATA_URL

logger = logging.getLogger(__name__)

# Default cache location
DEFAULT_CACHE_DIR = Path.home() / ".nutrient_growth"

DEFAULT_TIMEOUT = 120


def create_session(
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    status_forcelist: tuple = (429, 500, 502, 503, 504),
    user_agent: str = "nutrient-growth/0.1",
) -> requests.Session:
    """
    Create a requests Session with retry logic and standard headers.

    Args:
        max_retries: Maximum retry attempts
        backoff_factor: Backoff multiplier between retries
        status_forcelist: HTTP status codes that trigger retries
        user_agent: User-Agent header value

    Returns:
        Configured requests.Session
    """
    session = requests.Session()
    retries = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=("GET",),
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": user_agent})
    return session


def fetch_bytes(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> bytes:
    """
    Download a URL and return its body.

    Raises:
        requests.HTTPError: on a non-success status after retries
    """
    session = session or create_session()
    logger.info(f"Downloading {url}")
    response = session.get(url, timeout=timeout)
    response.raise_for_status()
    logger.info(f"Downloaded {len(response.content):,} bytes")
    return response.content


def is_url(source) -> bool:
    return isinstance(source, str) and urlparse(source).scheme in ("http", "https")


class DatasetCache:
    """Keeps downloaded datasets in a local directory.

    Args:
        cache_dir: Directory for cached files. Defaults to
            ``~/.nutrient_growth``, overridable via the
            ``NUTRIENT_GROWTH_CACHE_DIR`` environment variable.
        session: HTTP session used for downloads (created lazily if None).
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if cache_dir is not None:
            self.cache_dir = Path(cache_dir)
        else:
            env_dir = os.environ.get("NUTRIENT_GROWTH_CACHE_DIR")
            self.cache_dir = Path(env_dir) if env_dir else DEFAULT_CACHE_DIR
        self._session = session

    def path_for(self, url: str) -> Path:
        """Cache path for a URL: the URL's file name, prefixed by a short hash."""
        name = Path(urlparse(url).path).name or "dataset"
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
        return self.cache_dir / f"{digest}_{name}"

    def get(self, url: str = DEFAULT_DATA_URL, refresh: bool = False) -> Path:
        """
        Return the cached copy of a URL, downloading it if needed.

        Args:
            url: Dataset URL
            refresh: Download even if a cached copy exists

        Returns:
            Path to the cached file
        """
        path = self.path_for(url)
        if path.exists() and not refresh:
            logger.info(f"Using cached dataset: {path}")
            return path

        if self._session is None:
            self._session = create_session()
        content = fetch_bytes(url, session=self._session)

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".part")
        tmp_path.write_bytes(content)
        tmp_path.replace(path)
        logger.info(f"Cached {url} to {path}")
        return path
