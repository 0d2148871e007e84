"""Registry of supported applications and their on-disk layout."""

import os
from typing import List, Optional

from .models import (
    AppDefinition,
    Healthcheck,
    MultipleDirs,
    PortMapping,
    SingleDir,
    VolumeMount,
)

COMPOSE_FILENAME = "docker-compose.yml"


APP_REGISTRY: List[AppDefinition] = [
    AppDefinition(
        name="homeassistant",
        display_name="Home Assistant",
        image="lscr.io/linuxserver/homeassistant:latest",
        port=8123,
        layout=SingleDir("data"),
        network_mode="host",
    ),
    AppDefinition(
        name="qbittorrent",
        display_name="qBittorrent",
        image="lscr.io/linuxserver/qbittorrent:latest",
        port=8080,
        layout=SingleDir("config"),
        needs_data_dir=True,
        extra_ports=(PortMapping(6881, 6881, "tcp"), PortMapping(6881, 6881, "udp")),
        environment=(("WEBUI_PORT", "8080"),),
    ),
    AppDefinition(
        name="prowlarr",
        display_name="Prowlarr",
        image="lscr.io/linuxserver/prowlarr:latest",
        port=9696,
        layout=SingleDir("config"),
    ),
    AppDefinition(
        name="radarr",
        display_name="Radarr",
        image="lscr.io/linuxserver/radarr:latest",
        port=7878,
        layout=SingleDir("config"),
        needs_data_dir=True,
    ),
    AppDefinition(
        name="sonarr",
        display_name="Sonarr",
        image="lscr.io/linuxserver/sonarr:latest",
        port=8989,
        layout=SingleDir("config"),
        needs_data_dir=True,
    ),
    AppDefinition(
        name="bazarr",
        display_name="Bazarr",
        image="lscr.io/linuxserver/bazarr:latest",
        port=6767,
        layout=SingleDir("config"),
        needs_data_dir=True,
    ),
    AppDefinition(
        name="lidarr",
        display_name="Lidarr",
        image="lscr.io/linuxserver/lidarr:latest",
        port=8686,
        layout=SingleDir("config"),
        needs_data_dir=True,
    ),
    AppDefinition(
        name="seerr",
        display_name="Seerr",
        image="ghcr.io/seerr-team/seerr:latest",
        port=5055,
        layout=SingleDir("app/config", "/app/config"),
        init=True,
        environment=(("LOG_LEVEL", "debug"), ("PORT", "5055")),
        healthcheck=Healthcheck(
            test="wget --no-verbose --tries=1 --spider http://localhost:5055/api/v1/status || exit 1",
            start_period="20s",
            timeout="3s",
            interval="15s",
            retries=3,
        ),
    ),
    AppDefinition(
        name="homarr",
        display_name="Homarr",
        image="ghcr.io/ajnart/homarr:latest",
        port=7575,
        layout=MultipleDirs((
            ("configs", "/app/data/configs"),
            ("icons", "/app/public/icons"),
            ("data", "/data"),
        )),
        mount_docker_socket=True,
    ),
    AppDefinition(
        name="jellyfin",
        display_name="Jellyfin",
        image="lscr.io/linuxserver/jellyfin:latest",
        port=8096,
        layout=SingleDir("config"),
        needs_data_dir=True,
        data_dir_read_only=True,
        extra_ports=(PortMapping(8920, 8920, "tcp"), PortMapping(7359, 7359, "udp")),
    ),
    AppDefinition(
        name="navidrome",
        display_name="Navidrome",
        image="deluan/navidrome:latest",
        port=4533,
        layout=SingleDir("data", "/data"),
        mount_music_dir=True,
        user_from_env=True,
        environment=(("ND_LOGLEVEL", "debug"),),
        secret_env=(("ND_SPOTIFY_ID", "ND_SPOTIFY_ID"), ("ND_SPOTIFY_SECRET", "ND_SPOTIFY_SECRET")),
    ),
    AppDefinition(
        name="duckdns",
        display_name="DuckDNS",
        image="lscr.io/linuxserver/duckdns:latest",
        layout=SingleDir("config"),
        network_mode="host",
        environment=(("UPDATE_IP", "ipv4"), ("LOG_FILE", "false")),
        secret_env=(("DUCKDNS_SUBDOMAINS", "SUBDOMAINS"), ("DUCKDNS_TOKEN", "TOKEN")),
    ),
    AppDefinition(
        name="wireguard",
        display_name="WireGuard",
        image="lscr.io/linuxserver/wireguard:latest",
        layout=SingleDir("config"),
        cap_add=("NET_ADMIN", "SYS_MODULE"),
        sysctls=(("net.ipv4.conf.all.src_valid_mark", "1"),),
        extra_ports=(PortMapping(51820, 51820, "udp"),),
        extra_volumes=(VolumeMount("lib/modules", "/lib/modules", "ro"),),
        environment=(
            ("SERVERPORT", "51820"),
            ("PEERDNS", "auto"),
            ("INTERNAL_SUBNET", "10.13.13.0"),
            ("LOG_CONFS", "true"),
        ),
        secret_env=(("WG_SERVERURL", "SERVERURL"), ("WG_PEERS", "PEERS")),
    ),
    AppDefinition(
        name="uptime-kuma",
        display_name="Uptime Kuma",
        image="louislam/uptime-kuma:2",
        container_name="uptime-kuma",
        port=3001,
        layout=SingleDir("data", "/app/data"),
        mount_docker_socket=True,
        restart_policy="always",
    ),
]


def get_app(name: str) -> Optional[AppDefinition]:
    """Look up an app definition by name."""
    for app in APP_REGISTRY:
        if app.name == name:
            return app
    return None


def get_app_names() -> List[str]:
    return [app.name for app in APP_REGISTRY]


def get_app_dir(app: AppDefinition, base_dir: str) -> str:
    return os.path.join(base_dir, app.name)


def get_config_paths(app: AppDefinition, base_dir: str) -> List[str]:
    """Absolute config directories for an app."""
    app_dir = get_app_dir(app, base_dir)
    return [os.path.join(app_dir, subdir) for subdir in app.layout.subdirs()]


def get_compose_path(app: AppDefinition, base_dir: str) -> str:
    return os.path.join(get_app_dir(app, base_dir), COMPOSE_FILENAME)


def get_archive_members(app: AppDefinition) -> List[str]:
    """Paths stored in an app artifact, relative to the base directory."""
    members = [f"{app.name}/{subdir}" for subdir in app.layout.subdirs()]
    members.append(f"{app.name}/{COMPOSE_FILENAME}")
    return members
