"""Data classes shared by the normalizer, reconciler and store."""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_COMMENT = "Managed by pihole-listsync"
DEFAULT_GROUP = 0


# ============================================================================
# ENUMS
# ============================================================================

class ListKind(Enum):
    """The five list categories, in processing order.

    The value is the config key prefix; ``domain_type`` is the
    ``domainlist.type`` column value (``None`` for the ``adlist`` table).
    """
    ADLIST = "ADLISTS"
    WHITELIST = "WHITELIST"
    BLACKLIST = "BLACKLIST"
    REGEX_WHITELIST = "REGEX_WHITELIST"
    REGEX_BLACKLIST = "REGEX_BLACKLIST"

    @property
    def config_key(self) -> str:
        return f"{self.value}_URL"

    @property
    def domain_type(self) -> Optional[int]:
        return _DOMAIN_TYPES.get(self)

    @property
    def is_url(self) -> bool:
        return self is ListKind.ADLIST

    @property
    def is_regex(self) -> bool:
        return self in (ListKind.REGEX_WHITELIST, ListKind.REGEX_BLACKLIST)

    @property
    def is_exact(self) -> bool:
        return self in (ListKind.WHITELIST, ListKind.BLACKLIST)

    @classmethod
    def from_domain_type(cls, domain_type: int) -> "ListKind":
        for kind, value in _DOMAIN_TYPES.items():
            if value == domain_type:
                return kind
        raise ValueError(f"Unknown domainlist type: {domain_type}")


_DOMAIN_TYPES = {
    ListKind.WHITELIST: 0,
    ListKind.BLACKLIST: 1,
    ListKind.REGEX_WHITELIST: 2,
    ListKind.REGEX_BLACKLIST: 3,
}

KIND_ORDER = (
    ListKind.ADLIST,
    ListKind.WHITELIST,
    ListKind.BLACKLIST,
    ListKind.REGEX_WHITELIST,
    ListKind.REGEX_BLACKLIST,
)

DOMAIN_KINDS = KIND_ORDER[1:]


class MigrationMode(Enum):
    """How a disabled record owned by another section is taken over."""
    NONE = 0
    REPLACE = 1
    APPEND = 2

    @classmethod
    def parse(cls, value) -> "MigrationMode":
        if isinstance(value, MigrationMode):
            return value
        text = str(value).strip().lower()
        if text.isdigit():
            return cls(int(text))
        if text in ("", "none", "false", "no", "off"):
            return cls.NONE
        return cls[text.upper()]


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class Entry:
    """A candidate item from a remote list after normalization."""
    value: str
    kind: ListKind
    annotation: Optional[str] = None


@dataclass
class Record:
    """A persisted registry row with its group memberships."""
    id: int
    value: str
    kind: ListKind
    enabled: bool
    comment: str = ""
    groups: Set[int] = field(default_factory=set)

    @property
    def key(self):
        return record_key(self.value, self.kind)


@dataclass
class Section:
    """One configured synchronization job."""
    name: str
    comment: str = DEFAULT_COMMENT
    group_id: int = DEFAULT_GROUP
    group_exclusive: bool = False
    persistent_group: bool = False
    require_comment: bool = True
    migration_mode: MigrationMode = MigrationMode.NONE
    ignore_download_failure: bool = False
    sources: Dict[ListKind, List[str]] = field(default_factory=dict)

    @property
    def explicit_group(self) -> int:
        """Group id without its sign, 0 when only the default group is used."""
        return abs(self.group_id)

    @property
    def keeps_default_group(self) -> bool:
        return self.group_id >= 0

    @property
    def target_groups(self) -> Set[int]:
        groups = set()
        if self.keeps_default_group:
            groups.add(DEFAULT_GROUP)
        if self.explicit_group > 0:
            groups.add(self.explicit_group)
        return groups

    def urls(self, kind: ListKind) -> List[str]:
        return [url for url in self.sources.get(kind, []) if url]

    @property
    def is_inert(self) -> bool:
        return not any(self.urls(kind) for kind in KIND_ORDER)


def record_key(value: str, kind: ListKind):
    """Registry key: exact domains compare case-insensitively, everything else byte-exact."""
    if kind.is_exact:
        return value.lower(), kind
    return value, kind
