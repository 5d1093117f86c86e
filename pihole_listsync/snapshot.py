"""In-memory view of the registry, read once per run."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from pihole_listsync.models import KIND_ORDER, ListKind, Record, record_key

logger = logging.getLogger(__name__)


class RegistrySnapshot:
    """Index of records keyed by ``(value, kind)``.

    The reconciler updates records in place as it mutates the store, so
    later entries of the same pass see inserts and enables made earlier
    without re-reading the database mid-transaction.
    """

    def __init__(self, records: Iterable[Record] = ()):
        self._index: Dict[Tuple[str, ListKind], Record] = {}
        for record in records:
            self.add(record)

    @classmethod
    def load(cls, store, kinds: Iterable[ListKind] = KIND_ORDER) -> "RegistrySnapshot":
        """Read all records of ``kinds`` and their group memberships from ``store``."""
        snapshot = cls()
        for kind in kinds:
            records = {record.id: record for record in store.list_records(kind)}
            for record_id, group_id in store.list_group_memberships(kind):
                record = records.get(record_id)
                if record is not None:
                    record.groups.add(group_id)
            for record in records.values():
                snapshot.add(record)

        logger.debug(f"Loaded {len(snapshot)} registry records")
        return snapshot

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key) -> bool:
        return key in self._index

    def add(self, record: Record) -> None:
        key = record.key
        if key in self._index and self._index[key] is not record:
            logger.warning(f"Duplicate registry record for {record.value} ({record.kind.name}), "
                           f"keeping id={self._index[key].id}")
            return
        self._index[key] = record

    def get(self, value: str, kind: ListKind) -> Optional[Record]:
        return self._index.get(record_key(value, kind))

    def records(self, kind: ListKind) -> List[Record]:
        return [record for record in self._index.values() if record.kind is kind]

    def enabled(self, kind: ListKind) -> List[Record]:
        return [record for record in self.records(kind) if record.enabled]

    def in_group(self, kind: ListKind, group_id: int) -> List[Record]:
        return [record for record in self.records(kind) if group_id in record.groups]
