"""Shared fixtures and fake collaborators for the test suite.

The fakes stand in for tar, docker and rclone. Fake artifacts are JSON
documents mapping relative paths to file contents (``None`` for a
directory), so extraction produces real files that tests can inspect.
"""

import json
import os
from typing import Dict, List, Optional

import pytest

from homelab_backup.core.errors import ArchiveError, CommandError, RemoteUnavailableError
from homelab_backup.core.naming import is_archive_date
from homelab_backup.core.registry import COMPOSE_FILENAME, get_app, get_archive_members


def write_fake_artifact(path: str, entries: Dict[str, Optional[str]]) -> str:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(entries, f)
    return path


def install_app(base_dir, name: str, marker: str = "original") -> None:
    """Create an app's config directories and compose file under ``base_dir``."""
    app = get_app(name)
    for subdir in app.layout.subdirs():
        config_dir = os.path.join(str(base_dir), name, subdir)
        os.makedirs(config_dir, exist_ok=True)
        with open(os.path.join(config_dir, "settings.txt"), "w", encoding="utf-8") as f:
            f.write(marker)
    with open(os.path.join(str(base_dir), name, COMPOSE_FILENAME), "w", encoding="utf-8") as f:
        f.write("services: {}\n")


class FakeArchiver:
    def __init__(self):
        self.fail_create = set()
        self.fail_extract = set()
        self.calls: List[tuple] = []

    def create_app_archive(self, app, base_dir, output_path):
        self.calls.append(("create", app.name))
        if app.name in self.fail_create:
            raise ArchiveError(f"{app.name}: tar exploded")
        entries = {}
        for member in get_archive_members(app):
            source = os.path.join(base_dir, member)
            if os.path.isdir(source):
                entries[member] = None
                for root, _, files in os.walk(source):
                    for filename in files:
                        full = os.path.join(root, filename)
                        with open(full, "r", encoding="utf-8") as f:
                            entries[os.path.relpath(full, base_dir)] = f.read()
            elif os.path.isfile(source):
                with open(source, "r", encoding="utf-8") as f:
                    entries[member] = f.read()
        write_fake_artifact(output_path, entries)
        return sorted(entries)

    def create_secrets_archive(self, project_root, output_path):
        self.calls.append(("create", "secrets"))
        entries = {}
        for name in (".env", "config.yaml", "config.yml", "backup.conf"):
            path = os.path.join(project_root, name)
            if os.path.isfile(path):
                with open(path, "r", encoding="utf-8") as f:
                    entries[name] = f.read()
        if not entries:
            return []
        write_fake_artifact(output_path, entries)
        return sorted(entries)

    def extract(self, archive_path, dest_dir):
        name = os.path.basename(archive_path).split(".")[0]
        self.calls.append(("extract", name, dest_dir))
        if name in self.fail_extract:
            raise ArchiveError(f"Failed to extract {archive_path}: corrupt archive")
        with open(archive_path, "r", encoding="utf-8") as f:
            entries = json.load(f)
        for relative, content in entries.items():
            target = os.path.join(dest_dir, relative)
            if content is None:
                os.makedirs(target, exist_ok=True)
            else:
                os.makedirs(os.path.dirname(target), exist_ok=True)
                with open(target, "w", encoding="utf-8") as out:
                    out.write(content)

    def extracted(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "extract"]


class FakeDocker:
    def __init__(self, installed=True, ready=True):
        self.installed = installed
        self.ready = ready
        self.running = set()
        self.stopped = set()
        self.fail_compose_up = set()
        self.calls: List[tuple] = []

    def is_installed(self):
        return self.installed

    def install(self):
        self.calls.append(("install",))
        self.installed = True

    def is_ready(self):
        return self.ready

    def wait_until_ready(self, retries=None, interval=None):
        self.calls.append(("wait",))
        return self.ready

    def is_running(self, container):
        return container in self.running

    def exists(self, container):
        return container in self.running or container in self.stopped

    def stop(self, container):
        self.calls.append(("stop", container))
        if container not in self.running:
            return False
        self.running.discard(container)
        self.stopped.add(container)
        return True

    def compose_up(self, compose_path):
        app_name = os.path.basename(os.path.dirname(compose_path))
        self.calls.append(("up", app_name))
        if app_name in self.fail_compose_up:
            raise CommandError(["docker", "compose", "up", "-d"], 1, f"{app_name}: port already allocated")
        self.running.add(app_name)

    def compose_down(self, compose_path):
        self.calls.append(("down", os.path.basename(os.path.dirname(compose_path))))

    def remove_container(self, container):
        self.calls.append(("rm", container))
        self.running.discard(container)
        self.stopped.discard(container)


class FakeRemote:
    """In-memory rclone remote: remote path -> file bytes."""

    def __init__(self, name="gdrive", installed=True, configured=True):
        self.name = name
        self.installed = installed
        self.configured = configured
        self.files: Dict[str, bytes] = {}
        self.fail_download = set()
        self.fail_upload = False
        self.fail_purge = set()
        self.calls: List[tuple] = []

    def add_file(self, remote_path: str, content: bytes) -> None:
        self.files[remote_path] = content

    def add_artifact(self, remote_path: str, entries: Dict[str, Optional[str]]) -> None:
        self.files[remote_path] = json.dumps(entries).encode("utf-8")

    def is_installed(self):
        return self.installed

    def install(self):
        self.calls.append(("install",))
        self.installed = True

    def check_configured(self):
        if not self.installed:
            return False, "rclone is not installed"
        if not self.configured:
            return False, f"remote '{self.name}:' not found in [(empty)]"
        return True, ""

    def ensure_available(self):
        configured, reason = self.check_configured()
        if not configured:
            raise RemoteUnavailableError(reason)

    def list_dirs(self, path):
        prefix = path.rstrip("/") + "/"
        names = set()
        for key in self.files:
            if key.startswith(prefix):
                first = key[len(prefix):].split("/")[0]
                if is_archive_date(first):
                    names.add(first)
        return sorted(names)

    def list_files(self, path):
        prefix = path.rstrip("/") + "/"
        return sorted(key[len(prefix):] for key in self.files
                      if key.startswith(prefix) and "/" not in key[len(prefix):])

    def file_exists(self, path):
        return path in self.files

    def upload(self, local_path, remote_path):
        self.calls.append(("upload", remote_path))
        if self.fail_upload:
            raise CommandError(["rclone", "copy"], 1, "quota exceeded")
        for filename in os.listdir(local_path):
            full = os.path.join(local_path, filename)
            if os.path.isfile(full):
                with open(full, "rb") as f:
                    self.files[f"{remote_path}/{filename}"] = f.read()

    def download(self, remote_path, local_dir):
        self.calls.append(("download", remote_path))
        if remote_path in self.fail_download:
            raise CommandError(["rclone", "copy"], 1, "connection reset")
        target = os.path.join(local_dir, remote_path.split("/")[-1])
        with open(target, "wb") as f:
            f.write(self.files[remote_path])
        return target

    def purge(self, remote_path):
        self.calls.append(("purge", remote_path))
        if remote_path in self.fail_purge:
            raise CommandError(["rclone", "purge"], 1, "permission denied")
        prefix = remote_path.rstrip("/") + "/"
        for key in [k for k in self.files if k.startswith(prefix)]:
            del self.files[key]


class FakeTimer:
    def __init__(self, supported=True, fail=False):
        self.supported = supported
        self.fail = fail
        self.installed = False

    def is_supported(self):
        return self.supported

    def install(self):
        if self.fail:
            raise CommandError(["systemctl", "daemon-reload"], 1, "Failed to connect to bus")
        self.installed = True


@pytest.fixture
def archiver():
    return FakeArchiver()


@pytest.fixture
def docker():
    return FakeDocker()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def staging_root(tmp_path, monkeypatch):
    """Point tempfile at a private directory so leftover staging dirs are visible."""
    import tempfile

    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def layout(tmp_path):
    """Backup root, base dir and project root for one test."""
    paths = {
        "backup_dir": tmp_path / "backups",
        "base_dir": tmp_path / "home",
        "project_root": tmp_path / "project",
    }
    for path in paths.values():
        path.mkdir()
    return {key: str(value) for key, value in paths.items()}
