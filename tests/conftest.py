import pytest

from pihole_listsync.exceptions import FetchError
from pihole_listsync.models import MigrationMode, Section
from pihole_listsync.normalizer import normalize_text
from pihole_listsync.reconciler import Reconciler
from pihole_listsync.snapshot import RegistrySnapshot
from pihole_listsync.stats import Stats
from pihole_listsync.store import GravityStore


class FakeFetcher:
    """Serves list bodies from a dict; missing sources fail like a 404."""

    def __init__(self, bodies=None):
        self.bodies = dict(bodies or {})
        self.calls = []

    def fetch(self, source):
        self.calls.append(source)
        if source not in self.bodies:
            raise FetchError(source, "HTTP 404 Not Found", status=404)
        body = self.bodies[source]
        return body.encode("utf-8") if isinstance(body, str) else body


@pytest.fixture
def store(tmp_path):
    s = GravityStore(str(tmp_path / "gravity.db"))
    s.init_schema()
    yield s
    s.close()


@pytest.fixture
def fetcher():
    return FakeFetcher()


def make_section(name="main", comment="Managed by X", **kwargs):
    kwargs.setdefault("migration_mode", MigrationMode.NONE)
    return Section(name=name, comment=comment, **kwargs)


def add_record(store, value, kind, enabled=True, comment="", groups=(0,)):
    record_id = store.insert(value, kind, comment)
    if not enabled:
        store.set_enabled(record_id, kind, False)
    for group_id in groups:
        store.add_group_membership(record_id, kind, group_id)
    return record_id


def fetch_record(store, value, kind):
    for record in store.list_records(kind):
        if record.value == value:
            record.groups = {g for rid, g in store.list_group_memberships(kind) if rid == record.id}
            return record
    return None


def sync(store, section, kind, text, sections=None, stats=None):
    """Reconcile ``text`` for one section/kind against a fresh snapshot."""
    stats = stats if stats is not None else Stats()
    snapshot = RegistrySnapshot.load(store)
    reconciler = Reconciler(store, snapshot, stats, sections or [section])
    with store.transaction():
        reconciler.reconcile(section, kind, normalize_text(text))
    return stats
