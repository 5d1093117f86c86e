"""Outcome counters for a synchronization run."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

COUNTERS = (
    'errors',
    'warnings',
    'exists',
    'ignored',
    'inserted',
    'enabled',
    'disabled',
    'invalid',
    'conflict',
    'migrated',
)


@dataclass
class Stats:
    """Counters accumulated over a run.

    Counters incremented with a ``dedup_key`` count each key once per run;
    the keys are kept in ``seen`` for the end-of-run report.
    """
    counters: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in COUNTERS})
    seen: Dict[str, List[str]] = field(default_factory=dict)
    _seen_keys: Dict[str, Set[str]] = field(default_factory=dict, repr=False, compare=False)

    def increment(self, counter: str, dedup_key: Optional[str] = None) -> bool:
        """Increment ``counter``; returns False when ``dedup_key`` was already counted."""
        if counter not in self.counters:
            raise KeyError(f"Unknown counter: {counter}")

        if dedup_key is not None:
            keys = self._seen_keys.setdefault(counter, set())
            if dedup_key in keys:
                return False
            keys.add(dedup_key)
            self.seen.setdefault(counter, []).append(dedup_key)

        self.counters[counter] += 1
        return True

    def fork(self) -> "Stats":
        """Zeroed counters that continue this run's dedup history."""
        child = Stats()
        child.seen = {counter: list(keys) for counter, keys in self.seen.items()}
        child._seen_keys = {counter: set(keys) for counter, keys in self._seen_keys.items()}
        return child

    def merge(self, child: "Stats") -> None:
        """Add the counters of a committed ``fork()`` and adopt its dedup history."""
        for counter, value in child.counters.items():
            self.counters[counter] += value
        self.seen = child.seen
        self._seen_keys = child._seen_keys

    def __getitem__(self, counter: str) -> int:
        return self.counters[counter]

    def __getattr__(self, name: str) -> int:
        counters = self.__dict__.get('counters')
        if counters is not None and name in counters:
            return counters[name]
        raise AttributeError(name)

    def snapshot(self) -> Dict[str, int]:
        return dict(self.counters)

    @property
    def failed(self) -> bool:
        return self.counters['errors'] > 0
