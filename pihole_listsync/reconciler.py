"""Merge one fetched list into the registry.

For a single (section, kind) pair the reconciler:

1. scopes the snapshot to the enabled records the section manages,
2. unlinks or disables records that disappeared from the remote list,
3. inserts, enables or migrates records for every valid remote entry.

Every decision is counted in :class:`~pihole_listsync.stats.Stats`. The
caller owns the transaction; the reconciler only issues store calls and
keeps the snapshot in step with them.
"""

import logging
from typing import Dict, List, Sequence, Set

from pihole_listsync import ownership
from pihole_listsync.models import DEFAULT_GROUP, Entry, ListKind, MigrationMode, Record, Section
from pihole_listsync.normalizer import NormalizedList
from pihole_listsync.snapshot import RegistrySnapshot
from pihole_listsync.stats import Stats
from pihole_listsync.validator import validate

logger = logging.getLogger(__name__)


class Reconciler:
    """Applies ownership, conflict and migration policy to one list at a time."""

    def __init__(self, store, snapshot: RegistrySnapshot, stats: Stats,
                 sections: Sequence[Section], verbose: bool = False):
        self.store = store
        self.snapshot = snapshot
        self.stats = stats
        self.sections = list(sections)
        self.verbose = verbose

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def reconcile(self, section: Section, kind: ListKind, remote: NormalizedList) -> None:
        """Bring the registry in line with ``remote`` for ``section`` and ``kind``."""
        entries = self.validate_entries(kind, remote)
        remote_keys = {(entry.value.lower() if kind.is_exact else entry.value) for entry in entries}

        for record in self.removal_set(section, kind, remote_keys):
            self.remove(section, record)

        for entry in entries:
            self.upsert(section, entry)

    def validate_entries(self, kind: ListKind, remote: NormalizedList) -> List[Entry]:
        """Normalize and validate remote values, counting invalid ones once per run."""
        entries = []
        for raw in remote:
            value = validate(raw, kind)
            if value is None:
                if self.stats.increment('invalid', raw):
                    logger.info(f"Invalid: {raw}")
                continue
            entries.append(Entry(value=value, kind=kind, annotation=remote.annotation(raw)))
        return entries

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def scope(self, section: Section, kind: ListKind) -> List[Record]:
        """Enabled records of ``kind`` that ``section`` manages."""
        scoped: Dict[int, Record] = {}
        for record in self.snapshot.enabled(kind):
            if ownership.is_touchable(section, record):
                scoped[record.id] = record

        if section.group_exclusive and section.explicit_group > 0:
            for record in self.snapshot.in_group(kind, section.explicit_group):
                if record.enabled:
                    scoped.setdefault(record.id, record)

        return [record for record in scoped.values() if not record.value.strip().startswith('#')]

    def removal_set(self, section: Section, kind: ListKind, remote_keys: Set[str]) -> List[Record]:
        removed = []
        for record in self.scope(section, kind):
            value = record.value.lower() if kind.is_exact else record.value
            if value not in remote_keys:
                removed.append(record)
        return removed

    def configured_groups(self) -> Set[int]:
        return {section.explicit_group for section in self.sections if section.explicit_group > 0}

    def foreign_groups(self, section: Section, record: Record) -> Set[int]:
        """Group memberships of ``record`` no configured section accounts for."""
        foreign = set(record.groups) - self.configured_groups()
        if section.keeps_default_group:
            foreign.discard(DEFAULT_GROUP)
        return foreign

    def remove(self, section: Section, record: Record) -> bool:
        """Unlink ``record`` from the section's groups, disabling it once orphaned."""
        touchable = ownership.is_touchable(section, record)
        explicit = section.explicit_group
        changed = False

        if explicit > 0 and (touchable or (section.group_exclusive and explicit in record.groups)):
            changed |= self.unlink(record, explicit)
        if touchable and section.keeps_default_group:
            changed |= self.unlink(record, DEFAULT_GROUP)

        foreign = self.foreign_groups(section, record)
        if not foreign and record.enabled:
            owner = ownership.first_touching(self.sections, record)
            if owner is not None:
                self.set_enabled(record, False)
                changed = True
                if owner is not section:
                    logger.debug(f"{record.value}: disabled on behalf of section '{owner.name}'")
        elif foreign:
            logger.debug(f"{record.value}: kept enabled, still in groups {sorted(foreign)}")

        if changed:
            self.stats.increment('disabled')
            logger.info(f"Disabled: {record.value}")
        return changed

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    def upsert(self, section: Section, entry: Entry) -> str:
        """Apply one remote entry; returns the name of the counter it landed in."""
        record = self.snapshot.get(entry.value, entry.kind)

        if record is None:
            record = self.insert(section, entry)
            outcome = 'inserted'
        elif record.kind is not entry.kind:
            # (value, kind) keys make this unreachable for well-formed snapshots
            if self.stats.increment('conflict', entry.value):
                logger.warning(f"Conflict: {entry.value} ({record.kind.name})")
            return 'conflict'
        else:
            outcome = self._update_existing(section, record)

        if section.persistent_group:
            self.assign_groups(record, section)

        return outcome

    def _update_existing(self, section: Section, record: Record) -> str:
        touchable = ownership.is_touchable(section, record)

        if touchable and not record.enabled:
            self.set_enabled(record, True)
            self.assign_groups(record, section, exclusive_default=True)
            self.stats.increment('enabled')
            logger.info(f"Enabled: {record.value}")
            return 'enabled'

        if touchable:
            self.stats.increment('exists')
            self._log_quiet(f"Exists: {record.value}")
            return 'exists'

        if not record.enabled and section.migration_mode is not MigrationMode.NONE:
            donor = ownership.find_owner(self.sections, record, exclude=section)
            if donor is not None:
                self.migrate(section, donor, record)
                return 'migrated'

        self.stats.increment('ignored')
        self._log_quiet(f"Ignored: {record.value}")
        return 'ignored'

    def insert(self, section: Section, entry: Entry) -> Record:
        comment = ownership.compose(entry.annotation, section.comment)
        record_id = self.store.insert(entry.value, entry.kind, comment)
        record = Record(id=record_id, value=entry.value, kind=entry.kind, enabled=True, comment=comment)
        self.snapshot.add(record)

        self.assign_groups(record, section, exclusive_default=True)
        self.stats.increment('inserted')
        logger.info(f"Inserted: {entry.value}")
        return record

    def migrate(self, section: Section, donor: Section, record: Record) -> None:
        """Take over a disabled record owned by ``donor``."""
        if section.migration_mode is MigrationMode.REPLACE:
            comment = ownership.replace_tag(record.comment, donor.comment, section.comment)
        else:
            comment = ownership.append_tag(record.comment, section.comment)

        self.store.set_comment(record.id, record.kind, comment)
        record.comment = comment
        self.set_enabled(record, True)

        if donor.explicit_group > 0 and donor.explicit_group != section.explicit_group:
            self.unlink(record, donor.explicit_group)
        self.assign_groups(record, section, exclusive_default=True)

        self.stats.increment('migrated')
        logger.info(f"Migrated: {record.value} (from '{donor.name}' to '{section.name}')")

    # ------------------------------------------------------------------
    # Store mutations mirrored into the snapshot
    # ------------------------------------------------------------------

    def assign_groups(self, record: Record, section: Section, exclusive_default: bool = False) -> None:
        """Link ``record`` to the section's groups.

        With ``exclusive_default`` a negative group id also drops the default
        group, as happens when a record is inserted, enabled or migrated.
        """
        for group_id in sorted(section.target_groups):
            self.link(record, group_id)
        if exclusive_default and not section.keeps_default_group:
            self.unlink(record, DEFAULT_GROUP)

    def link(self, record: Record, group_id: int) -> bool:
        added = self.store.add_group_membership(record.id, record.kind, group_id)
        record.groups.add(group_id)
        return added

    def unlink(self, record: Record, group_id: int) -> bool:
        removed = self.store.remove_group_membership(record.id, record.kind, group_id)
        record.groups.discard(group_id)
        return removed

    def set_enabled(self, record: Record, enabled: bool) -> None:
        self.store.set_enabled(record.id, record.kind, enabled)
        record.enabled = enabled

    def _log_quiet(self, message: str) -> None:
        if self.verbose:
            logger.info(message)
        else:
            logger.debug(message)
