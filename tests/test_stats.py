import time

import pytest

from pihole_listsync.stats import COUNTERS, Stats


def test_counters_start_at_zero():
    stats = Stats()

    assert set(stats.snapshot()) == set(COUNTERS)
    assert not stats.failed


def test_dedup_key_counts_once():
    stats = Stats()

    assert stats.increment('invalid', 'bad!') is True
    assert stats.increment('invalid', 'bad!') is False
    stats.increment('inserted')
    stats.increment('inserted')

    assert stats['invalid'] == 1
    assert stats.inserted == 2


def test_errors_mark_run_failed():
    stats = Stats()
    stats.increment('warnings')
    assert not stats.failed

    stats.increment('errors')
    assert stats.failed


def test_unknown_counter_rejected():
    with pytest.raises(KeyError):
        Stats().increment('deleted')


def test_many_dedup_keys_stay_fast():
    stats = Stats()
    start = time.monotonic()

    for i in range(100000):
        stats.increment('invalid', f"0.0.0.0 host{i}.example.com")
    for i in range(100000):
        stats.increment('invalid', f"0.0.0.0 host{i}.example.com")

    assert stats['invalid'] == 100000
    assert stats.seen['invalid'][0] == "0.0.0.0 host0.example.com"
    assert time.monotonic() - start < 5


def test_fork_shares_dedup_history_until_merged():
    stats = Stats()
    stats.increment('invalid', 'bad!')

    child = stats.fork()
    assert child['invalid'] == 0
    assert child.increment('invalid', 'bad!') is False
    assert child.increment('invalid', 'worse!') is True
    child.increment('disabled')
    assert stats['disabled'] == 0

    stats.merge(child)

    assert stats['invalid'] == 2
    assert stats['disabled'] == 1
    assert stats.seen['invalid'] == ['bad!', 'worse!']
    assert stats.increment('invalid', 'worse!') is False


def test_discarded_fork_leaves_run_untouched():
    stats = Stats()
    child = stats.fork()
    child.increment('invalid', 'bad!')
    child.increment('inserted')

    assert stats.snapshot()['inserted'] == 0
    assert stats.increment('invalid', 'bad!') is True
