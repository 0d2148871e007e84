"""Container runtime operations via the docker CLI."""

import logging
import os
import time
from typing import Optional

from .host import read_os_release
from ..utils.shell import command_exists, run_command

OLD_PACKAGES = ["docker.io", "docker-doc", "docker-compose", "podman-docker", "containerd", "runc"]
ENGINE_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin", "docker-compose-plugin"]

# /24 pools avoid "all predefined address pools have been fully subnetted"
DAEMON_JSON = """{
  "default-address-pools": [
    { "base": "172.17.0.0/12", "size": 24 }
  ]
}
"""


class DockerClient:
    """Wraps the docker and docker compose commands used by backup and restore."""

    def __init__(self, ready_retries: int = 30, ready_interval: float = 1.0):
        self.ready_retries = ready_retries
        self.ready_interval = ready_interval
        self.logger = logging.getLogger(__name__)

    def is_installed(self) -> bool:
        return command_exists("docker")

    def is_ready(self) -> bool:
        return run_command(["docker", "info"], check=False).ok

    def wait_until_ready(self, retries: Optional[int] = None, interval: Optional[float] = None) -> bool:
        """Poll ``docker info`` at a fixed interval.

        Returns:
            True once the daemon answers, False after the last attempt.
        """
        retries = self.ready_retries if retries is None else retries
        interval = self.ready_interval if interval is None else interval

        for attempt in range(1, retries + 1):
            if self.is_ready():
                return True
            self.logger.debug(f"Docker daemon not ready (attempt {attempt}/{retries})")
            if attempt < retries:
                time.sleep(interval)
        return False

    def install(self) -> None:
        """Install Docker Engine from the upstream apt repository."""
        self.logger.info("Removing conflicting packages...")
        run_command(["apt-get", "remove", "-y", *OLD_PACKAGES], check=False)

        run_command(["apt-get", "update", "-qq"])
        run_command(["apt-get", "install", "-y", "ca-certificates", "curl"])
        run_command(["install", "-m", "0755", "-d", "/etc/apt/keyrings"])

        release = read_os_release()
        distro = release.get("ID", "debian")
        codename = release.get("VERSION_CODENAME", "")

        run_command(["curl", "-fsSL", f"https://download.docker.com/linux/{distro}/gpg",
                     "-o", "/etc/apt/keyrings/docker.asc"])
        os.chmod("/etc/apt/keyrings/docker.asc", 0o644)

        arch = run_command(["dpkg", "--print-architecture"]).stdout.strip()
        repo_line = (f"deb [arch={arch} signed-by=/etc/apt/keyrings/docker.asc] "
                     f"https://download.docker.com/linux/{distro} {codename} stable\n")
        with open("/etc/apt/sources.list.d/docker.list", "w", encoding="utf-8") as f:
            f.write(repo_line)

        self.logger.info("Installing Docker Engine...")
        run_command(["apt-get", "update", "-qq"])
        run_command(["apt-get", "install", "-y", *ENGINE_PACKAGES])

        os.makedirs("/etc/docker", exist_ok=True)
        with open("/etc/docker/daemon.json", "w", encoding="utf-8") as f:
            f.write(DAEMON_JSON)

        if os.path.isdir("/run/systemd/system") and command_exists("systemctl"):
            for unit in ("containerd", "docker"):
                run_command(["systemctl", "enable", "--now", unit])
        elif not run_command(["pgrep", "-x", "dockerd"], check=False).ok:
            run_command(["bash", "-c", "nohup dockerd > /var/log/dockerd.log 2>&1 &"])

    def is_running(self, container: str) -> bool:
        result = run_command(["docker", "ps", "-q", "-f", f"name=^{container}$"], check=False)
        return bool(result.stdout.strip())

    def exists(self, container: str) -> bool:
        result = run_command(["docker", "ps", "-aq", "-f", f"name=^{container}$"], check=False)
        return bool(result.stdout.strip())

    def stop(self, container: str) -> bool:
        """Stop a container if it is running.

        Returns:
            True if a running container was stopped.
        """
        if not self.is_running(container):
            self.logger.debug(f"Container {container} is not running")
            return False
        run_command(["docker", "stop", container])
        return True

    def compose_up(self, compose_path: str) -> None:
        run_command(["docker", "compose", "up", "-d"], cwd=os.path.dirname(compose_path))

    def compose_down(self, compose_path: str) -> None:
        run_command(["docker", "compose", "down"], cwd=os.path.dirname(compose_path))

    def remove_container(self, container: str) -> None:
        run_command(["docker", "rm", "-f", container], check=False)
