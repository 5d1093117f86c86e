from conftest import add_record

from pihole_listsync.models import ListKind, Record
from pihole_listsync.snapshot import RegistrySnapshot


def test_load_reads_records_and_groups(store):
    store.add_group("five", 5)
    add_record(store, "https://example.com/list.txt", ListKind.ADLIST, comment="Managed by X", groups=(0, 5))
    add_record(store, "ads.example.com", ListKind.BLACKLIST, enabled=False, groups=())
    add_record(store, "ads.example.com", ListKind.WHITELIST, groups=(5,))

    snapshot = RegistrySnapshot.load(store)

    assert len(snapshot) == 3
    adlist = snapshot.get("https://example.com/list.txt", ListKind.ADLIST)
    assert adlist.groups == {0, 5}
    assert snapshot.get("ads.example.com", ListKind.BLACKLIST).enabled is False
    assert snapshot.get("ads.example.com", ListKind.WHITELIST).groups == {5}
    assert [r.value for r in snapshot.in_group(ListKind.WHITELIST, 5)] == ["ads.example.com"]
    assert snapshot.enabled(ListKind.BLACKLIST) == []


def test_exact_domains_match_case_insensitively():
    snapshot = RegistrySnapshot([
        Record(id=1, value="ads.example.com", kind=ListKind.BLACKLIST, enabled=True),
        Record(id=2, value="Ads[0-9]", kind=ListKind.REGEX_BLACKLIST, enabled=True),
    ])

    assert snapshot.get("ADS.example.com", ListKind.BLACKLIST).id == 1
    assert snapshot.get("ads[0-9]", ListKind.REGEX_BLACKLIST) is None


def test_duplicate_key_keeps_first_record():
    first = Record(id=1, value="ads.example.com", kind=ListKind.BLACKLIST, enabled=True)
    second = Record(id=2, value="ADS.example.com", kind=ListKind.BLACKLIST, enabled=False)

    snapshot = RegistrySnapshot([first, second])

    assert len(snapshot) == 1
    assert snapshot.get("ads.example.com", ListKind.BLACKLIST) is first
