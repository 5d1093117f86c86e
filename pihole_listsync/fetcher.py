"""Retrieval of remote and local list sources."""

import logging
import os
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pihole_listsync import __version__
from pihole_listsync.exceptions import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = f"pihole-listsync/{__version__}"

MAX_RETRIES = 3
RETRY_BACKOFF = 0.5
RETRY_STATUS_CODES = [429, 500, 502, 503, 504]


def local_path(source: str) -> Optional[str]:
    """Return the filesystem path for local sources, None for remote URLs."""
    parsed = urlparse(source)
    if parsed.scheme == 'file':
        return unquote(parsed.path)
    if not parsed.scheme or len(parsed.scheme) == 1:
        # No scheme, or a Windows drive letter
        return source
    return None


class HTTPClient:
    """Fetches list sources over HTTP(S) with retries, or from disk."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, user_agent: str = DEFAULT_USER_AGENT):
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a session with retry logic."""
        session = requests.Session()
        retry = Retry(
            total=MAX_RETRIES,
            backoff_factor=RETRY_BACKOFF,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers['User-Agent'] = self.user_agent
        return session

    def close(self) -> None:
        self.session.close()

    def fetch(self, source: str) -> bytes:
        """Return the raw body of ``source``.

        Raises:
            FetchError: on HTTP status errors (``status`` set), transport
                errors or unreadable files.
        """
        path = local_path(source)
        if path is not None:
            return self._read_file(source, path)

        try:
            response = self.session.get(source, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(source, str(e)) from e

        if response.status_code >= 400:
            raise FetchError(source, f"HTTP {response.status_code} {response.reason or ''}".strip(),
                             status=response.status_code)

        logger.debug(f"Fetched {source} ({len(response.content)} bytes)")
        return response.content

    def _read_file(self, source: str, path: str) -> bytes:
        if not os.path.isfile(path):
            raise FetchError(source, "file not found")
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise FetchError(source, e.strerror or str(e)) from e
