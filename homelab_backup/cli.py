"""Command-line interface for homelab backup."""

import logging
import logging.handlers
import sys
from typing import List, Optional

import click

from .config.config_manager import ConfigManager
from .core.backup import BackupExecutor
from .core.docker import DockerClient
from .core.errors import (
    ArtifactNotFoundError,
    HomelabBackupError,
    PreconditionError,
    RemoteUnavailableError,
    RestoreError,
)
from .core.naming import LATEST, is_valid_date_arg
from .core.phases import PhaseChange, backup_tracker, recovery_tracker, restore_tracker
from .core.rclone import RcloneRemote
from .core.recovery import DisasterRecovery
from .core.registry import get_app, get_app_names
from .core.resolver import ArtifactResolver
from .core.restore import RestoreExecutor
from .core.systemd import UNIT_NAME, BackupTimer
from .reporters.summary_reporter import SummaryReporter

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_PRECONDITION = 2


def setup_logging(level: str, log_file: Optional[str] = None,
                  max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
    """Set up logging configuration."""
    # Convert string level to logging constant
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    # Create formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Set up root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Add console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Add file handler if specified
    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except Exception as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)


def _exit_code(error: Exception) -> int:
    if isinstance(error, (PreconditionError, RemoteUnavailableError, ValueError)):
        return EXIT_PRECONDITION
    return EXIT_FAILURE


def _config_manager(ctx) -> ConfigManager:
    """Loaded ConfigManager, or exit with status 2 if the config is unusable."""
    error = ctx.obj.get('config_error')
    if error:
        click.echo(f"❌ Configuration error: {error}", err=True)
        sys.exit(EXIT_PRECONDITION)
    return ctx.obj['config_manager']


def _remote(config_manager: ConfigManager, name: Optional[str] = None) -> RcloneRemote:
    remote_config = config_manager.get_remote_config()
    return RcloneRemote(name or remote_config['name'], remote_config.get('config_file'))


def _docker(config_manager: ConfigManager) -> DockerClient:
    docker_config = config_manager.get_docker_config()
    return DockerClient(
        ready_retries=docker_config['ready_retries'],
        ready_interval=docker_config['ready_interval_seconds'],
    )


def _timer(config_manager: ConfigManager) -> BackupTimer:
    schedule = config_manager.get_schedule_config()
    return BackupTimer(
        exec_start=schedule['exec_start'],
        on_calendar=schedule['on_calendar'],
        randomized_delay_sec=schedule['randomized_delay_sec'],
    )


def _backup_executor(config_manager: ConfigManager, tracker=None) -> BackupExecutor:
    backup_config = config_manager.get_backup_config()
    return BackupExecutor(
        backup_dir=backup_config['backup_dir'],
        base_dir=config_manager.get_base_dir(),
        project_root=config_manager.get_project_root(),
        local_retention=backup_config['local_retention'],
        remote_retention=backup_config['remote_retention'],
        remote=_remote(config_manager),
        remote_path=config_manager.get_remote_config()['path'],
        selected_apps=config_manager.get_selected_apps(),
        tracker=tracker,
    )


def _echo_phase(change: PhaseChange) -> None:
    detail = f" ({change.detail})" if change.detail else ""
    click.echo(f"==> {change.phase.value}{detail}")


def _confirmer(yes: bool):
    """Confirmation callback: --yes proceeds, a TTY prompts, anything else declines."""
    def confirm(message: str) -> bool:
        if yes:
            return True
        if sys.stdin.isatty():
            return click.confirm(message, default=False)
        logger.info("Skipping, run with --yes to proceed non-interactively")
        return False
    return confirm


def _show_report(report, title: str, output: str) -> None:
    reporter = SummaryReporter()
    if output == 'json':
        click.echo(reporter.render_json(report))
    else:
        click.echo(reporter.render_text(title, report))


@click.group()
@click.option('--config', '-c', 'config_path',
              help='Path to configuration file')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level (default: from config, else INFO)')
@click.option('--log-file',
              help='Log file path (default: from config)')
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str], log_file: Optional[str]):
    """Homelab Backup - back up, restore and recover self-hosted apps."""

    # Ensure context exists
    ctx.ensure_object(dict)

    config_manager = ConfigManager(config_path)
    try:
        config_manager.load_config()
        ctx.obj['config_error'] = None
    except (FileNotFoundError, ValueError) as e:
        ctx.obj['config_error'] = e

    # Set up logging before anything else runs
    logging_config = {} if ctx.obj['config_error'] else config_manager.get_logging_config()
    setup_logging(
        log_level or logging_config.get('level', 'INFO'),
        log_file or logging_config.get('file'),
        max_bytes=int(logging_config.get('max_size_mb', 10)) * 1024 * 1024,
        backup_count=int(logging_config.get('backup_count', 5)),
    )

    ctx.obj['config_path'] = config_path
    ctx.obj['config_manager'] = config_manager


class BackupGroup(click.Group):
    """Group that also accepts an app name in place of a subcommand.

    ``backup radarr`` backs up one app while ``backup list local`` still
    dispatches to the ``list`` subcommand.
    """

    def parse_args(self, ctx, args: List[str]) -> List[str]:
        valued_options = set()
        for param in self.params:
            if isinstance(param, click.Option) and not param.is_flag:
                valued_options.update(param.opts)

        app = None
        remaining = list(args)
        index = 0
        while index < len(remaining):
            token = remaining[index]
            if token == '--':
                break
            if token.startswith('-'):
                index += 2 if token in valued_options else 1
                continue
            if token not in self.commands:
                app = remaining.pop(index)
            break

        rest = super().parse_args(ctx, remaining)
        ctx.params['app'] = app
        return rest


@cli.group(cls=BackupGroup, invoke_without_command=True)
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def backup(ctx, output: str, app: Optional[str] = None):
    """Back up all apps, or only APP.

    \b
    Usage: backup [APP]
           backup list {local|remote}
           backup delete {local|remote} [DATE]
    """
    if ctx.invoked_subcommand is not None:
        return

    config_manager = _config_manager(ctx)
    if app and get_app(app) is None:
        click.echo(f"❌ Unknown app: {app}. Known apps: {', '.join(get_app_names())}", err=True)
        sys.exit(EXIT_PRECONDITION)

    try:
        tracker = backup_tracker()
        if output == 'text':
            tracker.subscribe(_echo_phase)
        executor = _backup_executor(config_manager, tracker)
        report = executor.run([app] if app else None)
    except Exception as e:
        click.echo(f"Error during backup: {e}", err=True)
        sys.exit(_exit_code(e))

    _show_report(report, "BACKUP SUMMARY", output)
    if not report.ok:
        sys.exit(EXIT_FAILURE)


@backup.command('list')
@click.argument('location', type=click.Choice(['local', 'remote']))
@click.pass_context
def backup_list(ctx, location: str):
    """List archive directories."""
    config_manager = _config_manager(ctx)
    try:
        executor = _backup_executor(config_manager)
        entries = executor.list_local() if location == 'local' else executor.list_remote()
    except Exception as e:
        click.echo(f"Error listing {location} backups: {e}", err=True)
        sys.exit(_exit_code(e))

    click.echo(SummaryReporter().render_archive_list(entries, location))


@backup.command('delete')
@click.argument('location', type=click.Choice(['local', 'remote']))
@click.argument('date', required=False)
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def backup_delete(ctx, location: str, date: Optional[str], yes: bool):
    """Delete one archive directory (DATE), or all of them."""
    config_manager = _config_manager(ctx)
    if date is not None and (date == LATEST or not is_valid_date_arg(date)):
        click.echo(f"❌ Invalid date: {date}. Use YYYY-MM-DD", err=True)
        sys.exit(EXIT_PRECONDITION)

    what = f"the {location} backup from {date}" if date else f"ALL {location} backups"
    if not _confirmer(yes)(f"Delete {what}?"):
        click.echo("Nothing deleted")
        return

    try:
        executor = _backup_executor(config_manager)
        if location == 'local':
            deleted = executor.delete_local(date)
        else:
            deleted = executor.delete_remote(date)
    except ArtifactNotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        click.echo(f"Error deleting {location} backups: {e}", err=True)
        sys.exit(_exit_code(e))

    click.echo(f"✅ Deleted {len(deleted)} {location} backup(s)" + (f": {', '.join(deleted)}" if deleted else ""))


@cli.command()
@click.argument('target')
@click.argument('date', required=False, default=LATEST)
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def restore(ctx, target: str, date: str, yes: bool, output: str):
    """Restore TARGET (an app name, 'secrets' or 'full') from DATE (default: latest)."""
    config_manager = _config_manager(ctx)

    if not is_valid_date_arg(date):
        click.echo(f"❌ Invalid date format: {date}. Use YYYY-MM-DD or 'latest'", err=True)
        sys.exit(EXIT_PRECONDITION)
    if target not in ('full', 'secrets') and get_app(target) is None:
        click.echo(f"❌ Unknown app: {target}. Known apps: {', '.join(get_app_names())}", err=True)
        sys.exit(EXIT_PRECONDITION)

    remote_config = config_manager.get_remote_config()
    resolver = ArtifactResolver(
        backup_dir=config_manager.get_backup_config()['backup_dir'],
        remote=_remote(config_manager),
        remote_path=remote_config['path'],
    )
    tracker = restore_tracker()
    if output == 'text':
        tracker.subscribe(_echo_phase)
    executor = RestoreExecutor(
        base_dir=config_manager.get_base_dir(),
        project_root=config_manager.get_project_root(),
        resolver=resolver,
        docker=_docker(config_manager),
        tracker=tracker,
    )

    try:
        if target == 'full':
            report = executor.restore_full(date, confirm=_confirmer(yes))
        else:
            report = executor.restore_single(target, date, confirm=_confirmer(yes))
    except RestoreError as e:
        click.echo(f"❌ Restore of {e.app} failed: {e}", err=True)
        if e.config_removed:
            click.echo(f"   The previous configuration of {e.app} was removed and no longer exists.", err=True)
        sys.exit(EXIT_FAILURE)
    except HomelabBackupError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(_exit_code(e))
    except Exception as e:
        click.echo(f"Error during restore: {e}", err=True)
        sys.exit(_exit_code(e))

    _show_report(report, "RESTORE SUMMARY", output)
    if not report.ok:
        sys.exit(EXIT_FAILURE)


@cli.command()
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.option('--remote', 'remote_name', help='rclone remote name (default: from config)')
@click.option('--base-dir', type=click.Path(file_okay=False),
              help='Directory to rebuild the apps in (default: from .env, else home)')
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def recover(ctx, yes: bool, remote_name: Optional[str], base_dir: Optional[str], output: str):
    """Rebuild a bare host from the newest remote backup."""
    config_manager = _config_manager(ctx)
    interactive = sys.stdin.isatty() and not yes

    def retry_remote(reason: str) -> bool:
        click.echo(f"rclone remote is not configured: {reason}")
        return click.confirm("Run 'rclone config' in another terminal, then retry?", default=True)

    tracker = recovery_tracker()
    if output == 'text':
        tracker.subscribe(_echo_phase)

    recovery = DisasterRecovery(
        config_manager=config_manager,
        remote=_remote(config_manager, remote_name),
        remote_path=config_manager.get_remote_config()['path'],
        base_dir=base_dir,
        docker=_docker(config_manager),
        timer=_timer(config_manager),
        tracker=tracker,
        confirm=_confirmer(yes),
        retry_remote=retry_remote if interactive else None,
    )

    try:
        report = recovery.run()
    except PreconditionError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_PRECONDITION)
    except Exception as e:
        click.echo(f"Error during recovery: {e}", err=True)
        sys.exit(_exit_code(e))

    _show_report(report, "RECOVERY SUMMARY", output)
    if not report.ok:
        sys.exit(EXIT_FAILURE)


@cli.command()
@click.argument('action', type=click.Choice(['install', 'remove', 'status']))
@click.pass_context
def schedule(ctx, action: str):
    """Manage the daily backup timer."""
    config_manager = _config_manager(ctx)
    timer = _timer(config_manager)

    if not timer.is_supported():
        click.echo("❌ systemd is not available on this host (or running under WSL)", err=True)
        sys.exit(EXIT_PRECONDITION)

    try:
        if action == 'install':
            timer.install()
            click.echo(f"✅ {UNIT_NAME}.timer installed ({timer.on_calendar})")
        elif action == 'remove':
            timer.remove()
            click.echo(f"✅ {UNIT_NAME}.timer removed")
        else:
            state = "active" if timer.is_active() else "inactive"
            click.echo(f"{UNIT_NAME}.timer: {state}")
    except Exception as e:
        click.echo(f"Error managing backup timer: {e}", err=True)
        sys.exit(_exit_code(e))


@cli.command()
@click.pass_context
def validate_config(ctx):
    """Validate configuration file."""
    try:
        config_manager = ConfigManager(ctx.obj.get('config_path'))
        config_manager.load_config()

        click.echo("✅ Configuration loaded successfully")

        backup_config = config_manager.get_backup_config()
        remote_config = config_manager.get_remote_config()
        selected = config_manager.get_selected_apps()

        click.echo(f"\n📊 Configuration Summary:")
        click.echo(f"   Config file: {config_manager.config_file or '(none, using defaults)'}")
        click.echo(f"   Project root: {config_manager.get_project_root()}")
        click.echo(f"   Base directory: {config_manager.get_base_dir()}")
        click.echo(f"   Backup directory: {backup_config['backup_dir']}")
        click.echo(f"   Retention: {backup_config['local_retention']} local, "
                   f"{backup_config['remote_retention']} remote")
        click.echo(f"   Apps: {', '.join(selected) if selected else 'auto-detect'}")
        click.echo(f"   Remote: {remote_config['name']}:{remote_config['path']}")

    except Exception as e:
        click.echo(f"❌ Configuration validation failed: {e}", err=True)
        sys.exit(1)


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
