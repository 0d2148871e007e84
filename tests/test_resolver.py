import os

from conftest import FakeRemote, write_fake_artifact
from homelab_backup.core.naming import archive_path, latest_path
from homelab_backup.core.resolver import ArtifactResolver

REMOTE_BASE = "/backups/archive"


def _local_artifact(root, date, name):
    return write_fake_artifact(archive_path(root, date, name), {f"{name}/config": None})


def _point_latest(root, name, target):
    pointer = latest_path(root, name)
    os.makedirs(os.path.dirname(pointer), exist_ok=True)
    os.symlink(target, pointer)


def test_latest_pointer_is_preferred(tmp_path):
    root = str(tmp_path)
    older = _local_artifact(root, "2024-01-01", "radarr")
    _local_artifact(root, "2024-01-02", "radarr")
    _point_latest(root, "radarr", older)

    artifact = ArtifactResolver(root).resolve("radarr")

    assert artifact.source == "latest"
    assert os.path.realpath(artifact.path) == os.path.realpath(older)
    assert artifact.staging_dir is None


def test_dangling_latest_pointer_falls_back_to_newest_local(tmp_path):
    root = str(tmp_path)
    _local_artifact(root, "2024-01-01", "radarr")
    newest = _local_artifact(root, "2024-01-03", "radarr")
    _point_latest(root, "radarr", str(tmp_path / "gone.tar.zst"))

    artifact = ArtifactResolver(root).resolve("radarr")

    assert artifact.path == newest
    assert artifact.source == "local"


def test_dated_lookup(tmp_path):
    root = str(tmp_path)
    dated = _local_artifact(root, "2024-01-01", "sonarr")
    _local_artifact(root, "2024-01-02", "sonarr")

    assert ArtifactResolver(root).resolve("sonarr", "2024-01-01").path == dated


def test_local_copy_wins_over_remote(tmp_path):
    root = str(tmp_path)
    local = _local_artifact(root, "2024-01-01", "radarr")
    remote = FakeRemote()
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-05/radarr.tar.zst", {})

    artifact = ArtifactResolver(root, remote, REMOTE_BASE).resolve("radarr")

    assert artifact.path == local
    assert remote.calls == []


def test_remote_download_uses_staging_dir(tmp_path, staging_root):
    remote = FakeRemote()
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-04/radarr.tar.zst", {"radarr/config": None})
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-05/radarr.tar.zst", {"radarr/config": None})

    artifact = ArtifactResolver(str(tmp_path / "backups"), remote, REMOTE_BASE).resolve("radarr")

    assert artifact.source == "remote"
    assert remote.calls == [("download", f"{REMOTE_BASE}/2024-01-05/radarr.tar.zst")]
    assert os.path.dirname(artifact.path) == artifact.staging_dir
    assert os.path.isfile(artifact.path)

    artifact.cleanup()
    artifact.cleanup()
    assert os.listdir(staging_root) == []


def test_remote_dated_lookup(tmp_path, staging_root):
    remote = FakeRemote()
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-04/radarr.tar.zst", {})
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-05/radarr.tar.zst", {})

    artifact = ArtifactResolver(str(tmp_path), remote, REMOTE_BASE).resolve("radarr", "2024-01-04")

    assert remote.calls == [("download", f"{REMOTE_BASE}/2024-01-04/radarr.tar.zst")]
    artifact.cleanup()


def test_failed_download_is_not_found_and_leaves_no_staging(tmp_path, staging_root):
    remote = FakeRemote()
    remote_file = f"{REMOTE_BASE}/2024-01-05/radarr.tar.zst"
    remote.add_artifact(remote_file, {})
    remote.fail_download.add(remote_file)

    assert ArtifactResolver(str(tmp_path), remote, REMOTE_BASE).resolve("radarr") is None
    assert os.listdir(staging_root) == []


def test_unconfigured_remote_is_never_used(tmp_path):
    remote = FakeRemote(configured=False)
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-05/radarr.tar.zst", {})

    assert ArtifactResolver(str(tmp_path), remote, REMOTE_BASE).resolve("radarr") is None
    assert remote.calls == []


def test_missing_everywhere(tmp_path):
    assert ArtifactResolver(str(tmp_path), FakeRemote(), REMOTE_BASE).resolve("radarr") is None


def test_discover_orders_secrets_first_and_fills_from_remote(tmp_path):
    root = str(tmp_path)
    radarr = _local_artifact(root, "2024-01-02", "radarr")
    _local_artifact(root, "2024-01-02", "secrets")
    _point_latest(root, "radarr", radarr)
    os.makedirs(os.path.join(root, "archive", "2024-01-02", "leftover"))
    remote = FakeRemote()
    for name in ("radarr", "sonarr", "secrets"):
        remote.add_artifact(f"{REMOTE_BASE}/2024-01-03/{name}.tar.zst", {})

    discovery = ArtifactResolver(root, remote, REMOTE_BASE).discover()

    assert discovery.names[0] == "secrets"
    assert sorted(discovery.names) == ["radarr", "secrets", "sonarr"]
    assert discovery.sources == {"radarr": "latest", "secrets": "local", "sonarr": "remote"}


def test_discover_nothing(tmp_path):
    discovery = ArtifactResolver(str(tmp_path)).discover("2024-01-01")
    assert discovery.names == []
