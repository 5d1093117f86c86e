"""Runs the reconciler over every configured section and list kind."""

import logging
import sqlite3
from typing import List, Optional, Sequence, Tuple

from tqdm import tqdm

from pihole_listsync.exceptions import FetchError
from pihole_listsync.models import KIND_ORDER, ListKind, Section
from pihole_listsync.normalizer import NormalizedList, normalize_sources
from pihole_listsync.reconciler import Reconciler
from pihole_listsync.snapshot import RegistrySnapshot
from pihole_listsync.stats import Stats

logger = logging.getLogger(__name__)


class Updater:
    """Main orchestrator: fetch, normalize and reconcile each (section, kind)."""

    def __init__(self, store, fetcher, sections: Sequence[Section],
                 snapshot: Optional[RegistrySnapshot] = None, stats: Optional[Stats] = None,
                 dry_run: bool = False, verbose: bool = False, progress: bool = False):
        self.store = store
        self.fetcher = fetcher
        self.sections = list(sections)
        self.snapshot = snapshot
        self.stats = stats if stats is not None else Stats()
        self.dry_run = dry_run
        self.verbose = verbose
        self.progress = progress
        self.reconciler: Optional[Reconciler] = None

    def run(self) -> Stats:
        """Synchronize all sections; failures are counted, never raised."""
        if self.snapshot is None:
            self.snapshot = RegistrySnapshot.load(self.store)
        self.reconciler = Reconciler(self.store, self.snapshot, self.stats, self.sections, self.verbose)

        for section in self.sections:
            self.sync_section(section)

        return self.stats

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def sync_section(self, section: Section) -> None:
        if section.is_inert:
            logger.debug(f"Section '{section.name}' has no sources, skipping")
            return

        if section.explicit_group > 0 and not self._group_exists(section.explicit_group):
            self.stats.increment('errors')
            logger.error(f"Section '{section.name}': group ID {section.explicit_group} does not exist, skipping")
            return

        logger.info(f"Processing section '{section.name}'")
        for kind in KIND_ORDER:
            urls = section.urls(kind)
            if urls:
                self.sync_kind(section, kind, urls)
            elif section.require_comment:
                self.disable_orphans(section, kind)

    def _group_exists(self, group_id: int) -> bool:
        try:
            return self.store.group_exists(group_id)
        except sqlite3.Error as e:
            logger.error(f"Failed to look up group ID {group_id}: {e}")
            return False

    # ------------------------------------------------------------------
    # Kinds
    # ------------------------------------------------------------------

    def sync_kind(self, section: Section, kind: ListKind, urls: List[str]) -> None:
        bodies = self.fetch_sources(section, kind, urls)
        if bodies is None:
            return

        remote = normalize_sources(bodies, adlist=kind.is_url)
        logger.info(f"Fetched {kind.value} for '{section.name}': {len(remote)} entries "
                    f"from {len(bodies)} source(s)")
        self.apply(section, kind, remote)

    def fetch_sources(self, section: Section, kind: ListKind,
                      urls: List[str]) -> Optional[List[Tuple[str, bytes]]]:
        """Fetch every source of one kind; None aborts the kind."""
        bodies = []
        sources = tqdm(urls, desc=f"{section.name} {kind.value}", unit="source",
                       leave=False, disable=not self.progress)

        for url in sources:
            logger.debug(f"Fetching {kind.value} from '{url}'")
            try:
                bodies.append((url, self.fetcher.fetch(url)))
            except FetchError as e:
                if section.ignore_download_failure:
                    self.stats.increment('warnings')
                    logger.warning(f"Failed to fetch '{url}': {e.reason} (ignored)")
                    continue
                self.stats.increment('errors')
                logger.error(f"Failed to fetch '{url}': {e.reason}")
                if len(urls) > 1:
                    logger.error(f"Skipping {kind.value} for '{section.name}', not all sources were fetched")
                return None

        if not bodies:
            logger.warning(f"Nothing fetched for {kind.value} in '{section.name}', skipping")
            return None
        return bodies

    def disable_orphans(self, section: Section, kind: ListKind) -> None:
        """Remove entries this section still owns for a kind it no longer lists."""
        for other in self.sections:
            if other is not section and other.comment == section.comment and other.urls(kind):
                return

        if not self.reconciler.scope(section, kind):
            return

        logger.info(f"No remote list set for {kind.value} in '{section.name}', disabling orphaned entries")
        self.apply(section, kind, NormalizedList())

    def apply(self, section: Section, kind: ListKind, remote: NormalizedList) -> bool:
        """Reconcile inside one transaction; a store failure aborts only this pair.

        Counters of a rolled back pass are discarded with its changes.
        """
        pass_stats = self.stats.fork()
        self.reconciler.stats = pass_stats
        try:
            with self.store.transaction(dry_run=self.dry_run):
                self.reconciler.reconcile(section, kind, remote)
        except sqlite3.Error as e:
            self.stats.increment('errors')
            logger.error(f"Database error while processing {kind.value} for '{section.name}': {e}")
            self._reload_snapshot()
            return False
        finally:
            self.reconciler.stats = self.stats

        self.stats.merge(pass_stats)
        return True

    def _reload_snapshot(self) -> None:
        # The rolled back transaction left the in-memory index ahead of the store
        try:
            fresh = RegistrySnapshot.load(self.store)
        except sqlite3.Error as e:
            logger.error(f"Failed to reload registry: {e}")
            return
        self.snapshot = fresh
        self.reconciler.snapshot = fresh


def reconcile(sections: Sequence[Section], snapshot: Optional[RegistrySnapshot], store, fetcher,
              dry_run: bool = False, verbose: bool = False, progress: bool = False) -> Stats:
    """Synchronize ``sections`` against ``store`` and return the run's counters."""
    updater = Updater(store, fetcher, sections, snapshot=snapshot,
                      dry_run=dry_run, verbose=verbose, progress=progress)
    return updater.run()
