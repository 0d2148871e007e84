"""docker-compose.yml generation for registry apps."""

import logging
import os
from typing import Any, Dict, List, Mapping

import yaml

from .docker import DockerClient
from .errors import CommandError
from .models import AppDefinition
from .registry import get_app_dir, get_compose_path, get_config_paths

logger = logging.getLogger(__name__)


def generate_compose(app: AppDefinition, env: Mapping[str, str]) -> str:
    """Render a single-service compose document for ``app``.

    Args:
        app: App definition.
        env: Values from the project ``.env`` (BASE_DIR, PUID, PGID, TZ and secrets).

    Returns:
        Compose file content.
    """
    base_dir = env["BASE_DIR"]
    app_dir = get_app_dir(app, base_dir)
    data_dir = os.path.join(base_dir, "data")

    service: Dict[str, Any] = {
        "image": app.image,
        "container_name": app.container,
    }

    if app.init:
        service["init"] = True
    if app.user_from_env:
        service["user"] = f"{env.get('PUID', '1000')}:{env.get('PGID', '1000')}"
    if app.network_mode:
        service["network_mode"] = app.network_mode
    if app.cap_add:
        service["cap_add"] = list(app.cap_add)
    if app.sysctls:
        service["sysctls"] = [f"{key}={value}" for key, value in app.sysctls]

    environment = _environment(app, env)
    if environment:
        service["environment"] = environment

    if app.network_mode != "host":
        ports = []
        if app.port:
            ports.append(f"{app.port}:{app.port}")
        for mapping in app.extra_ports:
            suffix = f"/{mapping.protocol}" if mapping.protocol else ""
            ports.append(f"{mapping.host}:{mapping.container}{suffix}")
        if ports:
            service["ports"] = ports

    volumes = _volumes(app, app_dir, data_dir)
    if volumes:
        service["volumes"] = volumes

    if app.healthcheck:
        check = app.healthcheck
        healthcheck: Dict[str, Any] = {"test": ["CMD-SHELL", check.test]}
        if check.start_period:
            healthcheck["start_period"] = check.start_period
        if check.timeout:
            healthcheck["timeout"] = check.timeout
        if check.interval:
            healthcheck["interval"] = check.interval
        if check.retries:
            healthcheck["retries"] = check.retries
        service["healthcheck"] = healthcheck

    service["restart"] = app.restart_policy

    document = {"services": {app.container: service}}
    return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


def _environment(app: AppDefinition, env: Mapping[str, str]) -> List[str]:
    values: Dict[str, str] = {}
    if "linuxserver" in app.image:
        values["PUID"] = env.get("PUID", "1000")
        values["PGID"] = env.get("PGID", "1000")
    values["TZ"] = env.get("TZ", "Etc/UTC")
    values.update(dict(app.environment))

    for env_var, compose_var in app.secret_env:
        if env.get(env_var):
            values[compose_var] = env[env_var]

    return [f"{key}={value}" for key, value in values.items()]


def _volumes(app: AppDefinition, app_dir: str, data_dir: str) -> List[str]:
    volumes = []
    if app.mount_docker_socket:
        volumes.append("/var/run/docker.sock:/var/run/docker.sock")

    for subdir, container_path in app.layout.mounts():
        volumes.append(f"{os.path.join(app_dir, subdir)}:{container_path}")

    if app.needs_data_dir:
        volumes.append(f"{data_dir}:/data" + (":ro" if app.data_dir_read_only else ""))
    if app.mount_music_dir:
        volumes.append(f"{os.path.join(data_dir, 'media', 'music')}:/music:ro")

    for mount in app.extra_volumes:
        host = mount.host if mount.host.startswith("/") else os.path.join(app_dir, mount.host)
        volumes.append(f"{host}:{mount.container}" + (f":{mount.options}" if mount.options else ""))
    return volumes


def write_compose(app: AppDefinition, env: Mapping[str, str]) -> str:
    """Create the app directories and write its compose file.

    Returns:
        Path of the written compose file.
    """
    base_dir = env["BASE_DIR"]
    app_dir = get_app_dir(app, base_dir)
    os.makedirs(app_dir, exist_ok=True)
    for path in get_config_paths(app, base_dir):
        os.makedirs(path, exist_ok=True)
    for mount in app.extra_volumes:
        if not mount.host.startswith("/"):
            os.makedirs(os.path.join(app_dir, mount.host), exist_ok=True)

    compose_path = get_compose_path(app, base_dir)
    with open(compose_path, "w", encoding="utf-8") as f:
        f.write(generate_compose(app, env))
    return compose_path


def _chown_config(app: AppDefinition, env: Mapping[str, str]) -> None:
    try:
        uid = int(env.get("PUID", "1000"))
        gid = int(env.get("PGID", "1000"))
    except ValueError:
        logger.warning(f"Invalid PUID/PGID for {app.name}, leaving ownership unchanged")
        return

    for path in get_config_paths(app, env["BASE_DIR"]):
        for root, dirs, files in os.walk(path):
            for name in [root] + [os.path.join(root, entry) for entry in dirs + files]:
                try:
                    os.lchown(name, uid, gid)
                except OSError as e:
                    logger.debug(f"Could not chown {name}: {e}")


def write_compose_and_start(app: AppDefinition, env: Mapping[str, str], docker: DockerClient) -> str:
    """Regenerate an app's compose file and (re)start it.

    Returns:
        Path of the compose file.

    Raises:
        CommandError: If ``docker compose up`` fails.
    """
    compose_path = write_compose(app, env)
    _chown_config(app, env)

    # Clear out containers left behind by earlier installs before starting fresh.
    try:
        docker.compose_down(compose_path)
    except CommandError as e:
        logger.debug(f"compose down for {app.name} failed: {e.detail}")
    if docker.exists(app.container):
        docker.remove_container(app.container)

    docker.compose_up(compose_path)
    return compose_path
