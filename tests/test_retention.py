import os

import pytest

from conftest import FakeRemote
from homelab_backup.core.retention import (
    apply_local_retention,
    apply_remote_retention,
    list_local_archive_dates,
    rotate,
)


def _dates(count):
    return [f"2024-01-{day:02d}" for day in range(1, count + 1)]


def test_rotate_deletes_oldest_prefix():
    for count in range(0, 8):
        ids = _dates(count)
        for keep in range(0, 10):
            deleted = rotate(ids, keep)
            assert len(deleted) == max(0, count - keep)
            assert deleted == ids[:len(deleted)]


def test_rotate_rejects_negative_keep():
    with pytest.raises(ValueError):
        rotate(_dates(3), -1)


def test_local_retention_ignores_non_date_directories(tmp_path):
    archive = tmp_path / "archive"
    for date in _dates(4):
        (archive / date).mkdir(parents=True)
    (archive / "manual-copy").mkdir()
    (archive / "2024-01-99.txt").write_text("x")

    assert list_local_archive_dates(str(tmp_path)) == _dates(4)
    deleted = apply_local_retention(str(tmp_path), 2)

    assert deleted == ["2024-01-01", "2024-01-02"]
    assert sorted(os.listdir(archive)) == ["2024-01-03", "2024-01-04", "2024-01-99.txt", "manual-copy"]


def test_local_retention_zero_keeps_nothing(tmp_path):
    for date in _dates(2):
        (tmp_path / "archive" / date).mkdir(parents=True)
    assert apply_local_retention(str(tmp_path), 0) == _dates(2)
    assert list_local_archive_dates(str(tmp_path)) == []


def test_local_retention_without_archive_dir(tmp_path):
    assert apply_local_retention(str(tmp_path), 3) == []


def test_remote_retention_skips_failed_purge():
    remote = FakeRemote()
    for date in _dates(4):
        remote.add_file(f"/backups/archive/{date}/radarr.tar.zst", b"x")
    remote.fail_purge.add("/backups/archive/2024-01-01")

    deleted = apply_remote_retention(remote, "/backups/archive", 1)

    assert deleted == ["2024-01-02", "2024-01-03"]
    assert remote.list_dirs("/backups/archive") == ["2024-01-01", "2024-01-04"]
