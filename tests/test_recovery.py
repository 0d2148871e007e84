import os

import pytest

from conftest import FakeArchiver, FakeDocker, FakeRemote, FakeTimer
from homelab_backup.config.config_manager import ConfigManager
from homelab_backup.core import recovery as recovery_module
from homelab_backup.core.errors import PreconditionError
from homelab_backup.core.models import ItemResult
from homelab_backup.core.phases import Phase, recovery_tracker
from homelab_backup.core.recovery import DisasterRecovery

REMOTE_BASE = "/backups/archive"
DEBIAN = 'PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\nID=debian\nVERSION_CODENAME=bookworm\n'


@pytest.fixture
def host(tmp_path, monkeypatch):
    monkeypatch.setattr(recovery_module, "is_root", lambda: True)
    project = tmp_path / "project"
    project.mkdir()
    (project / "config.yaml").write_text("logging:\n  file: null\n")
    os_release = tmp_path / "os-release"
    os_release.write_text(DEBIAN)
    first_base = tmp_path / "first"
    (project / ".env").write_text(f"BASE_DIR={first_base}\n")
    return {
        "tmp": tmp_path,
        "project": project,
        "os_release": str(os_release),
        "first_base": first_base,
        "restored_base": tmp_path / "restored",
    }


def _app_entries(name):
    return {f"{name}/config": None, f"{name}/config/settings.txt": "restored"}


def _remote_with_backups(host, names=("radarr", "sonarr"), secrets=True):
    remote = FakeRemote()
    remote.add_artifact(f"{REMOTE_BASE}/2024-01-01/radarr.tar.zst", _app_entries("radarr"))
    for name in names:
        remote.add_artifact(f"{REMOTE_BASE}/2024-01-02/{name}.tar.zst", _app_entries(name))
    if secrets:
        remote.add_artifact(f"{REMOTE_BASE}/2024-01-02/secrets.tar.zst", {
            ".env": f"BASE_DIR={host['restored_base']}\nPUID=1000\nPGID=1000\nTZ=Europe/Berlin\n",
        })
    return remote


def _recovery(host, remote, docker=None, archiver=None, timer=None, tracker=None, **kwargs):
    config_manager = ConfigManager(str(host["project"] / "config.yaml"))
    config_manager.load_config()
    return DisasterRecovery(
        config_manager=config_manager,
        remote=remote,
        remote_path=REMOTE_BASE,
        docker=docker or FakeDocker(),
        archiver=archiver or FakeArchiver(),
        timer=timer or FakeTimer(),
        tracker=tracker,
        os_release_path=host["os_release"],
        **kwargs
    )


def test_full_recovery_restores_secrets_first(host, staging_root):
    archiver = FakeArchiver()
    docker = FakeDocker()
    timer = FakeTimer()
    tracker = recovery_tracker()

    report = _recovery(host, _remote_with_backups(host), docker=docker, archiver=archiver,
                       timer=timer, tracker=tracker).run()

    assert report.ok
    assert report.date == "2024-01-02"
    assert report.timer_installed and timer.installed
    assert archiver.extracted() == ["secrets", "radarr", "sonarr"]
    assert archiver.calls[0][2] == str(host["project"])
    # apps land in the BASE_DIR from the restored .env, not the one written before
    for call in archiver.calls[1:]:
        assert call[2] == str(host["restored_base"])
    assert os.path.isfile(host["restored_base"] / "radarr" / "docker-compose.yml")
    assert os.path.isdir(host["first_base"] / "data" / "media" / "movies")
    assert ("up", "radarr") in docker.calls and ("up", "sonarr") in docker.calls
    assert os.listdir(staging_root) == []
    assert tracker.phases == [
        Phase.PREFLIGHT, Phase.DOCKER, Phase.RCLONE, Phase.REMOTE, Phase.BASE_DIR, Phase.DISCOVER,
        Phase.CONFIRMING, Phase.SECRETS, Phase.RESTORING, Phase.SCHEDULER, Phase.DONE,
    ]


def test_base_dir_override(host):
    target = host["tmp"] / "chosen"
    archiver = FakeArchiver()

    _recovery(host, _remote_with_backups(host), archiver=archiver, base_dir=str(target)).run()

    assert (host["project"] / ".env").exists()
    assert archiver.calls[-1][2] == str(target)
    assert os.path.isdir(target / "data" / "downloads" / "tv")


def test_not_root_is_fatal_before_anything_else(host, monkeypatch):
    monkeypatch.setattr(recovery_module, "is_root", lambda: False)
    docker = FakeDocker(installed=False)
    tracker = recovery_tracker()

    with pytest.raises(PreconditionError):
        _recovery(host, _remote_with_backups(host), docker=docker, tracker=tracker).run()
    assert docker.calls == []
    assert tracker.current == Phase.FAILED


def test_unsupported_distro(host):
    with open(host["os_release"], "w") as f:
        f.write("ID=fedora\n")
    with pytest.raises(PreconditionError, match="fedora"):
        _recovery(host, _remote_with_backups(host)).run()


def test_docker_installed_when_missing(host):
    docker = FakeDocker(installed=False)
    _recovery(host, _remote_with_backups(host), docker=docker).run()
    assert docker.calls[0] == ("install",)


def test_docker_never_ready_is_fatal(host):
    archiver = FakeArchiver()
    with pytest.raises(PreconditionError, match="ready"):
        _recovery(host, _remote_with_backups(host), docker=FakeDocker(ready=False), archiver=archiver).run()
    assert archiver.calls == []


def test_rclone_installed_when_missing(host):
    remote = _remote_with_backups(host)
    remote.installed = False
    _recovery(host, remote).run()
    assert remote.calls[0] == ("install",)


def test_unconfigured_remote_without_retry_is_fatal(host):
    remote = _remote_with_backups(host)
    remote.configured = False
    with pytest.raises(PreconditionError, match="not configured"):
        _recovery(host, remote).run()


def test_unconfigured_remote_retry(host):
    remote = _remote_with_backups(host)
    remote.configured = False
    reasons = []

    def retry(reason):
        reasons.append(reason)
        remote.configured = len(reasons) >= 2
        return True

    report = _recovery(host, remote, retry_remote=retry).run()

    assert report.ok
    assert len(reasons) == 2


def test_declined_retry_is_fatal(host):
    remote = _remote_with_backups(host)
    remote.configured = False
    with pytest.raises(PreconditionError):
        _recovery(host, remote, retry_remote=lambda reason: False).run()


def test_no_remote_backups_is_fatal(host):
    with pytest.raises(PreconditionError, match="No remote backups"):
        _recovery(host, FakeRemote()).run()


def test_declined_confirmation_restores_nothing(host):
    archiver = FakeArchiver()
    tracker = recovery_tracker()

    report = _recovery(host, _remote_with_backups(host), archiver=archiver, tracker=tracker,
                       confirm=lambda message: "Docker" in message).run()

    assert report.cancelled
    assert archiver.calls == []
    assert tracker.current == Phase.CANCELLED


def test_app_failures_are_isolated(host):
    docker = FakeDocker()
    docker.fail_compose_up.add("radarr")
    remote = _remote_with_backups(host, names=("radarr", "sonarr", "mystery"))

    report = _recovery(host, remote, docker=docker).run()

    assert not report.ok
    assert report.names(ItemResult.FAILED) == ["radarr"]
    assert "port already allocated" in report.failures[0].message
    assert report.names(ItemResult.SUCCESS) == ["secrets", "sonarr"]
    assert report.names(ItemResult.SKIPPED) == ["mystery"]


def test_secrets_failure_is_not_fatal(host):
    remote = _remote_with_backups(host)
    remote.fail_download.add(f"{REMOTE_BASE}/2024-01-02/secrets.tar.zst")
    archiver = FakeArchiver()

    report = _recovery(host, remote, archiver=archiver).run()

    assert report.ok
    assert report.warnings
    assert archiver.extracted() == ["radarr", "sonarr"]
    for call in archiver.calls:
        assert call[2] == str(host["first_base"])


def test_timer_failure_is_a_warning(host):
    report = _recovery(host, _remote_with_backups(host), timer=FakeTimer(fail=True)).run()
    assert report.ok
    assert not report.timer_installed
    assert any("timer" in warning for warning in report.warnings)


def test_timer_skipped_without_systemd(host):
    timer = FakeTimer(supported=False)
    report = _recovery(host, _remote_with_backups(host), timer=timer).run()
    assert not report.timer_installed
    assert not timer.installed
