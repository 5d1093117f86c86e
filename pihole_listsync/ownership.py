"""Ownership tag handling.

Records carry a free-text comment; a section owns a record when its tag
appears anywhere in that comment. Tags of several sections may be joined
with ``TAG_SEPARATOR``, which is why matching is substring containment and
not equality.
"""

from typing import Iterable, Optional

from pihole_listsync.models import Record, Section

TAG_SEPARATOR = " | "


def matches(tag: str, record_tag: Optional[str]) -> bool:
    """Return True when ``tag`` is contained in ``record_tag``."""
    if not tag:
        return False
    return tag in (record_tag or "")


def is_touchable(section: Section, record: Record) -> bool:
    """Whether ``section`` may mutate ``record``."""
    return not section.require_comment or matches(section.comment, record.comment)


def compose(annotation: Optional[str], tag: str) -> str:
    """Comment for a freshly inserted record."""
    if annotation:
        return f"{annotation}{TAG_SEPARATOR}{tag}"
    return tag


def replace_tag(record_tag: str, old_tag: str, new_tag: str) -> str:
    return (record_tag or "").replace(old_tag, new_tag)


def append_tag(record_tag: str, new_tag: str) -> str:
    if not record_tag:
        return new_tag
    return f"{record_tag}{TAG_SEPARATOR}{new_tag}"


def find_owner(sections: Iterable[Section], record: Record,
               exclude: Optional[Section] = None) -> Optional[Section]:
    """First section (other than ``exclude``) whose tag matches the record comment."""
    for section in sections:
        if section is exclude:
            continue
        if matches(section.comment, record.comment):
            return section
    return None


def first_touching(sections: Iterable[Section], record: Record) -> Optional[Section]:
    """First section allowed to mutate ``record``."""
    for section in sections:
        if is_touchable(section, record):
            return section
    return None
