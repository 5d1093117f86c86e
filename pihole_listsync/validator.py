"""Per-kind syntax checks for list entries."""

import functools
import logging
import re
from typing import Optional
from urllib.parse import urlparse

import idna

from pihole_listsync.models import ListKind

logger = logging.getLogger(__name__)

MAX_DOMAIN_LENGTH = 253

# Pre-compiled regex patterns
HOSTNAME_PATTERN = re.compile(
    r'^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)*[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.?$'
)
URL_FORBIDDEN_CHARS = re.compile(r"[^a-zA-Z0-9$\-_.+!*'(),;/?:@=&%]")


def is_url(value: str) -> bool:
    """Absolute URL check: scheme plus host, or a file URL with a path."""
    try:
        result = urlparse(value)
    except ValueError:
        return False
    if not result.scheme:
        return False
    if result.scheme == 'file':
        return bool(result.path)
    return bool(result.netloc)


@functools.lru_cache(maxsize=10000)
def is_hostname(domain: str) -> bool:
    """Validate hostname syntax of an already ASCII, lowercase domain."""
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        return False
    return bool(HOSTNAME_PATTERN.match(domain))


@functools.lru_cache(maxsize=10000)
def to_ascii(domain: str) -> str:
    """IDNA-encode a lowercase domain, returning it unchanged when encoding fails."""
    try:
        return idna.encode(domain, uts46=True, transitional=False).decode('ascii')
    except (idna.IDNAError, UnicodeError):
        return domain


def validate_url(value: str) -> Optional[str]:
    """Return the adlist address when valid, otherwise None."""
    if not is_url(value) or URL_FORBIDDEN_CHARS.search(value):
        return None
    return value


def validate_domain(value: str) -> Optional[str]:
    """Return the normalized exact domain when valid, otherwise None."""
    domain = to_ascii(value.lower().rstrip('.'))
    if not is_hostname(domain):
        return None
    return domain


def validate(value: str, kind: ListKind) -> Optional[str]:
    """Return the normalized value for ``kind``, or None when it is invalid.

    Regex entries are opaque and always accepted.
    """
    if kind.is_url:
        return validate_url(value)
    if kind.is_exact:
        return validate_domain(value)
    return value
