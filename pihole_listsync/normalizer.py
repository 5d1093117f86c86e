"""Turn fetched list text into ordered, unique values."""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from pihole_listsync.validator import is_hostname, is_url

# Pre-compiled regex patterns
LINE_SPLIT_PATTERN = re.compile(r'\r\n|\r|\n')
ANNOTATION_PATTERN = re.compile(r'^(\S+)\s+#\s*(.*?)\s*$')

COMMENT_PREFIXES = ('#',)
ADLIST_COMMENT_PREFIXES = ('#', '=')


@dataclass
class NormalizedList:
    """Unique values in first-seen order plus their inline annotations."""
    values: List[str] = field(default_factory=list)
    annotations: Dict[str, str] = field(default_factory=dict)
    _seen: Set[str] = field(default_factory=set, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def add(self, value: str, annotation: Optional[str] = None) -> None:
        # First annotation seen for a value wins
        if annotation and value not in self.annotations:
            self.annotations[value] = annotation
        if value not in self._seen:
            self._seen.add(value)
            self.values.append(value)

    def annotation(self, value: str) -> Optional[str]:
        return self.annotations.get(value)

    def merge(self, other: "NormalizedList") -> None:
        for value in other.values:
            self.add(value, other.annotation(value))


def split_annotation(line: str):
    """Split ``value # comment`` into its parts; comment is None when absent."""
    match = ANNOTATION_PATTERN.match(line)
    if match:
        return match.group(1), (match.group(2) or None)
    return line, None


def normalize_text(text: str, comment_prefixes: Sequence[str] = COMMENT_PREFIXES) -> NormalizedList:
    """Normalize a raw list body into unique values with annotations."""
    result = NormalizedList()

    for raw_line in LINE_SPLIT_PATTERN.split(text):
        line = raw_line.strip()
        if not line or line.startswith(tuple(comment_prefixes)):
            continue

        value, annotation = split_annotation(line)
        result.add(value, annotation)

    return result


def is_single_list_source(normalized: NormalizedList) -> bool:
    """Detect an adlist source that is really a blocklist itself.

    A list of adlists holds URLs; when its first entry is a bare hostname the
    source is a plain domain list and must be registered as one adlist.
    """
    if not normalized.values:
        return False
    first = normalized.values[0]
    return not is_url(first) and is_hostname(first.lower())


def normalize_adlist_source(text: str, source_url: str) -> NormalizedList:
    """Normalize one fetched adlist source."""
    normalized = normalize_text(text, ADLIST_COMMENT_PREFIXES)
    if is_single_list_source(normalized):
        single = NormalizedList()
        single.add(source_url)
        return single
    return normalized


def decode(content: bytes) -> str:
    """Decode fetched bytes, tolerating a BOM and stray invalid sequences."""
    return content.decode('utf-8-sig', errors='replace')


def normalize_sources(bodies: Iterable, adlist: bool = False) -> NormalizedList:
    """Normalize several ``(source_url, content)`` pairs and merge them in order."""
    merged = NormalizedList()
    for source_url, content in bodies:
        text = decode(content) if isinstance(content, bytes) else content
        if adlist:
            merged.merge(normalize_adlist_source(text, source_url))
        else:
            merged.merge(normalize_text(text))
    return merged
