"""Scheduled backup timer managed through systemd."""

import logging
import os

from ..utils.shell import command_exists, run_command

UNIT_NAME = "homelab-backup"
UNIT_DIR = "/etc/systemd/system"

SERVICE_TEMPLATE = """[Unit]
Description=Homelab Backup Service
After=docker.service
Requires=docker.service

[Service]
Type=oneshot
ExecStart={exec_start}
Environment="PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin"
StandardOutput=journal
StandardError=journal

[Install]
WantedBy=multi-user.target
"""

TIMER_TEMPLATE = """[Unit]
Description=Homelab Backup Timer

[Timer]
OnCalendar={on_calendar}
RandomizedDelaySec={randomized_delay_sec}
Persistent=true

[Install]
WantedBy=timers.target
"""


class BackupTimer:
    """Installs and queries the daily backup timer."""

    def __init__(self, exec_start: str = "/usr/local/bin/homelab-backup backup",
                 on_calendar: str = "*-*-* 02:00:00", randomized_delay_sec: int = 1800,
                 unit_dir: str = UNIT_DIR):
        self.exec_start = exec_start
        self.on_calendar = on_calendar
        self.randomized_delay_sec = randomized_delay_sec
        self.unit_dir = unit_dir
        self.logger = logging.getLogger(__name__)

    @property
    def service_path(self) -> str:
        return os.path.join(self.unit_dir, f"{UNIT_NAME}.service")

    @property
    def timer_path(self) -> str:
        return os.path.join(self.unit_dir, f"{UNIT_NAME}.timer")

    def service_unit(self) -> str:
        return SERVICE_TEMPLATE.format(exec_start=self.exec_start)

    def timer_unit(self) -> str:
        return TIMER_TEMPLATE.format(
            on_calendar=self.on_calendar,
            randomized_delay_sec=self.randomized_delay_sec,
        )

    def install(self) -> None:
        """Write both unit files, reload systemd and enable the timer."""
        with open(self.service_path, "w", encoding="utf-8") as f:
            f.write(self.service_unit())
        with open(self.timer_path, "w", encoding="utf-8") as f:
            f.write(self.timer_unit())

        run_command(["systemctl", "daemon-reload"])
        run_command(["systemctl", "enable", "--now", f"{UNIT_NAME}.timer"])
        self.logger.info(f"Installed {UNIT_NAME}.timer ({self.on_calendar})")

    def remove(self) -> None:
        run_command(["systemctl", "disable", "--now", f"{UNIT_NAME}.timer"], check=False)
        run_command(["systemctl", "disable", f"{UNIT_NAME}.service"], check=False)
        for path in (self.service_path, self.timer_path):
            if os.path.exists(path):
                os.remove(path)
        run_command(["systemctl", "daemon-reload"])
        self.logger.info(f"Removed {UNIT_NAME} units")

    def is_active(self) -> bool:
        result = run_command(["systemctl", "is-active", f"{UNIT_NAME}.timer"], check=False)
        return result.stdout.strip() == "active"

    @staticmethod
    def has_systemd() -> bool:
        return os.path.isdir("/run/systemd/system") and command_exists("systemctl")

    @staticmethod
    def is_wsl() -> bool:
        try:
            with open("/proc/version", "r", encoding="utf-8") as f:
                return "microsoft" in f.read().lower()
        except OSError:
            return False

    def is_supported(self) -> bool:
        return self.has_systemd() and not self.is_wsl()
