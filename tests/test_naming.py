from datetime import datetime

from homelab_backup.core.naming import (
    archive_path,
    artifact_name,
    is_archive_date,
    is_valid_date_arg,
    latest_path,
    remote_archive_path,
    secrets_path,
    today,
)


def test_archive_layout():
    assert archive_path("/backups", "2024-03-01", "radarr") == "/backups/archive/2024-03-01/radarr.tar.zst"
    assert secrets_path("/backups", "2024-03-01") == "/backups/archive/2024-03-01/secrets.tar.zst"
    assert latest_path("/backups", "radarr") == "/backups/latest/radarr.tar.zst"
    assert remote_archive_path("/backups/archive/", "2024-03-01", "sonarr") == "/backups/archive/2024-03-01/sonarr.tar.zst"


def test_archive_date_pattern():
    assert is_archive_date("2024-03-01")
    assert not is_archive_date("latest")
    assert not is_archive_date("2024-3-1")
    assert not is_archive_date("notes")


def test_date_argument_validation():
    assert is_valid_date_arg("latest")
    assert is_valid_date_arg("2024-02-29")
    assert not is_valid_date_arg("2023-02-29")
    assert not is_valid_date_arg("2024-13-01")
    assert not is_valid_date_arg("yesterday")


def test_artifact_name():
    assert artifact_name("uptime-kuma.tar.zst") == "uptime-kuma"
    assert artifact_name("secrets.tar.zst") == "secrets"
    assert artifact_name("radarr.tar.zst.partial") is None
    assert artifact_name(".tar.zst") is None
    assert artifact_name("notes.txt") is None


def test_today_sorts_chronologically():
    earlier = today(datetime(2024, 9, 30, 23, 59))
    later = today(datetime(2024, 10, 1, 0, 1))
    assert earlier == "2024-09-30"
    assert sorted([later, earlier]) == [earlier, later]
