import os

import pytest

from pihole_listsync.exceptions import LockError
from pihole_listsync.lock import ProcessLock


def test_second_lock_fails_fast(tmp_path):
    path = str(tmp_path / "run.lock")

    with ProcessLock(path) as first:
        assert first.locked
        with pytest.raises(LockError) as excinfo:
            ProcessLock(path).acquire()
        assert excinfo.value.held is True

    assert not os.path.exists(path)


def test_lock_can_be_reacquired_after_release(tmp_path):
    path = str(tmp_path / "run.lock")
    lock = ProcessLock(path)
    lock.acquire()
    lock.release()

    with ProcessLock(path) as again:
        assert again.locked


def test_empty_lock_path_rejected():
    with pytest.raises(LockError):
        ProcessLock("")
