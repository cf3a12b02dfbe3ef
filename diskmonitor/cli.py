"""Command-line interface for diskmonitor."""

import logging
import os
import signal
import sys
import traceback
from typing import Optional

import click
import daemon
import structlog
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from diskmonitor.config import ConfigManager
from diskmonitor.core.bus import BusError
from diskmonitor.core.control import ControlError, control_call
from diskmonitor.core.service import DiskMonitorService
from diskmonitor.probes import DiskUsageProber

console = Console()
logger = structlog.get_logger()


def get_app_paths(config=None):
    """Get application paths based on user permissions and config.

    Args:
        config: Optional configuration dictionary

    Returns:
        tuple: (log_file_path, pid_file_path)
    """
    if config is None:
        config = {}

    paths_config = config.get("paths", {})

    if os.getuid() == 0:  # Root user
        default_log_path = "/var/log/diskmonitor/diskmonitor.log"
        default_pid_path = "/var/run/diskmonitor/diskmonitor.pid"
    else:
        home = os.path.expanduser("~")
        default_log_path = os.path.join(home, ".local/log/diskmonitor/diskmonitor.log")
        default_pid_path = os.path.join(home, ".local/run/diskmonitor/diskmonitor.pid")

    log_path = os.path.expanduser(paths_config.get("log_file", default_log_path))
    pid_path = os.path.expanduser(paths_config.get("pid_file", default_pid_path))

    for path in [log_path, pid_path]:
        os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)

    return log_path, pid_path


def get_pid_file(config=None):
    """Get the appropriate PID file location."""
    _, pid_path = get_app_paths(config)
    return pid_path


def get_control_socket(config=None):
    """Get the control socket location, next to the PID file by default."""
    paths_config = (config or {}).get("paths", {})
    default_path = os.path.join(os.path.dirname(get_pid_file(config)), "diskmonitor.sock")
    return os.path.expanduser(paths_config.get("control_socket", default_path))


def create_pid_file(config=None):
    """Create PID file for the daemon."""
    pid_file = get_pid_file(config)
    try:
        with open(pid_file, "w", encoding="utf-8") as f:
            f.write(str(os.getpid()))
        return pid_file
    except Exception as e:
        logger.error("Failed to create PID file", error=str(e), pid_file=pid_file)
        return None


def remove_pid_file(config=None):
    """Remove PID file."""
    try:
        pid_file = get_pid_file(config)
        if os.path.exists(pid_file):
            os.remove(pid_file)
    except Exception as e:
        logger.warning("Failed to remove PID file", error=str(e))


def read_pid(config=None) -> int:
    """Read the daemon PID.

    Raises:
        FileNotFoundError: If no PID file exists
        ValueError: If the PID file is corrupt
    """
    with open(get_pid_file(config), "r", encoding="utf-8") as f:
        return int(f.read().strip())


def setup_logging(config):
    """Set up logging from the ``logging`` section and $LOGLEVEL."""
    if not config:
        config = {}

    log_config = config.get("logging", {})
    log_path, _ = get_app_paths(config)

    # Environment variable wins over the config file
    env_log_level = os.environ.get("LOGLEVEL", "").upper()
    log_level = (env_log_level or log_config.get("level", "INFO")).upper()

    base_processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    handlers = [logging.StreamHandler()]
    if log_config.get("file") != "stdout":
        try:
            handlers.append(logging.FileHandler(log_path))
        except PermissionError:
            logger.warning(
                "Cannot write to log file, falling back to console only",
                log_path=log_path,
            )

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    if log_config.get("file") == "stdout":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*base_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger.info("Logging initialized", log_path=log_path, log_level=log_level)


def install_signal_handlers(service: DiskMonitorService) -> None:
    """Map process signals onto bus calls.

    SIGUSR1 calls the check method and SIGUSR2 emits the boot completion
    signal, so both reach the scheduler through the bus gateway.
    """

    def _check(signum, frame):
        try:
            service.request_check(sender="SIGUSR1")
        except BusError as e:
            logger.warning("Check request dropped", error=str(e))

    def _boot_done(signum, frame):
        service.boot_completed()

    def _stop(signum, frame):
        service.loop.stop()

    signal.signal(signal.SIGUSR1, _check)
    signal.signal(signal.SIGUSR2, _boot_done)
    signal.signal(signal.SIGTERM, _stop)


def run_service(config):
    """Run the disk monitor until stopped."""
    service = None
    try:
        if not create_pid_file(config):
            logger.error("Failed to create PID file")
            return

        setup_logging(config)

        service = DiskMonitorService(config, control_socket=get_control_socket(config))
        install_signal_handlers(service)
        service.start()
        service.run_forever()

    except KeyboardInterrupt:
        logger.info("Monitoring stopped by user")
    except Exception as e:
        logger.error("Disk monitor failed", error=str(e), exc_info=True)
        raise
    finally:
        if service is not None:
            service.stop()
        remove_pid_file(config)


def signal_daemon(signum: int, config=None) -> bool:
    """Send a signal to the running daemon.

    Returns:
        True if the daemon received the signal
    """
    try:
        pid = read_pid(config)
        os.kill(pid, signum)
        return True
    except (FileNotFoundError, ValueError):
        click.echo("Disk monitor is not running.")
    except ProcessLookupError:
        click.echo("Disk monitor is not running.")
        remove_pid_file(config)
    return False


def send_control(method: str, params=None, config=None) -> bool:
    """Send a command over the daemon's control socket.

    Returns:
        True if the daemon accepted the command
    """
    try:
        control_call(get_control_socket(config), method, params)
        return True
    except OSError:
        click.echo("Disk monitor is not running.")
    except ControlError as e:
        click.echo(f"Disk monitor rejected {method}: {e}")
    return False


def load_config_or_exit(config: Optional[str]) -> dict:
    config_manager = ConfigManager(config)
    if not config_manager.validate_config():
        click.echo("Invalid configuration. Please check your config file.")
        sys.exit(1)
    return config_manager.get_config()


@click.group()
def cli():
    """diskmonitor - Adaptive disk space monitoring."""
    pass


@cli.command("version", help="Show version information")
def show_version():
    """Show version information."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        console.print(f"[blue]diskmonitor version {version('diskmonitor')}[/blue]")
    except PackageNotFoundError:
        console.print("[red]Error: Could not determine version[/red]")


@cli.command()
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option(
    "--foreground", "-f", is_flag=True, help="Run in foreground instead of as daemon"
)
def start(config: Optional[str], foreground: bool):
    """Start the disk monitor daemon."""
    try:
        app_config = load_config_or_exit(config)
        click.echo("Starting disk monitor...")

        if foreground:
            run_service(app_config)
            return

        context = daemon.DaemonContext(
            working_directory=os.getcwd(),
            umask=0o002,
            detach_process=True,
            files_preserve=[],
        )
        with context:
            run_service(app_config)
    except SystemExit:
        raise
    except Exception as e:
        logger.error("Startup failed", error=str(e), traceback=traceback.format_exc())
        sys.exit(1)


@cli.command()
def stop():
    """Stop the disk monitor daemon."""
    if signal_daemon(signal.SIGTERM):
        click.echo("Stopped disk monitor.")


@cli.command()
def status():
    """Show daemon status."""
    try:
        pid = read_pid()
        os.kill(pid, 0)
        click.echo(f"Disk monitor is running (pid {pid}).")
    except (FileNotFoundError, ValueError):
        click.echo("Disk monitor is not running.")
    except ProcessLookupError:
        click.echo("Disk monitor is not running.")
        remove_pid_file()


@cli.command()
def check():
    """Ask the running daemon for a disk space check."""
    if send_control("check"):
        click.echo("Check requested.")
    else:
        sys.exit(1)


@cli.command("boot-done")
def boot_done():
    """Tell the running daemon that the boot sequence has completed."""
    if send_control("boot_done"):
        click.echo("Boot completion sent.")
    else:
        sys.exit(1)


@cli.command()
@click.option(
    "--active/--idle",
    default=True,
    help="Whether the device is in use or has gone inactive",
)
def activity(active: bool):
    """Report a change in device activity to the running daemon."""
    if send_control("activity", {"inactive": 0 if active else 1}):
        click.echo(f"Device reported {'active' if active else 'idle'}.")
    else:
        sys.exit(1)


@cli.command()
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
def usage(config: Optional[str]):
    """Display current disk usage of the watched mounts."""
    app_config = ConfigManager(config).get_config()
    prober = DiskUsageProber(lambda result: None, app_config.get("prober", {}))

    table = Table(title="Disk Usage", show_header=True, header_style="bold magenta")
    table.add_column("Mount", style="cyan")
    table.add_column("Used", justify="right", style="green")
    table.add_column("Limit", justify="right")
    table.add_column("Free", justify="right")

    for mount in prober.usage_snapshot():
        used_style = "red" if mount.over_limit else "green"
        table.add_row(
            mount.mount_path,
            f"[{used_style}]{mount.percent_used}%[/{used_style}]",
            f"{mount.max_usage_percent}%",
            f"{mount.free_bytes / 1024**3:.1f} GiB",
        )

    console.print(Panel(table, title="Mounts", border_style="blue"))


@cli.group("config")
def config_group():
    """Manage configuration."""
    pass


@config_group.command("show")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
def show_config(config: Optional[str]):
    """Show current configuration."""
    config_manager = ConfigManager(config)
    click.echo(yaml.dump(config_manager.get_config(), default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
def validate_config(config: Optional[str]):
    """Validate configuration file."""
    config_manager = ConfigManager(config)
    if config_manager.validate_config():
        click.echo("Configuration is valid.")
    else:
        click.echo("Configuration is invalid.")
        sys.exit(1)


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(),
    default="config.yaml",
    help="Path to create the config file",
)
def init(path: str):
    """Initialize a new configuration file with default settings."""
    if os.path.exists(path):
        click.echo(
            f"Error: {path} already exists. Please choose a different path or remove the existing file."
        )
        sys.exit(1)

    default_config = {
        "logging": {
            "level": "info",
            "file": "stdout",
        },
        "prober": {
            "default_max_usage_percent": 90,
            "mounts": [{"path": "/", "max_usage_percent": 90}],
        },
        "heartbeat": {"slot_seconds": 30},
        "boot": {"assume_completed": True},
        "notifications": [{"type": "console", "enabled": True}],
    }

    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
        click.echo(f"Created default configuration at {path}")
        click.echo(f"Start the monitor with: diskmonitor start -c {path}")
    except Exception as e:
        click.echo(f"Error creating config file: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
