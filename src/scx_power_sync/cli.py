"""CLI commands for scx-power-sync."""

from pathlib import Path

import click

from scx_power_sync.config import LOG_LEVELS

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: search XDG config paths)",
)


def _load_config(config_path: Path | None):
    """Load config or exit with the error message."""
    from scx_power_sync.config import Config
    from scx_power_sync.errors import ConfigError

    try:
        return Config.load(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@click.group()
@click.version_option(package_name="scx-power-sync")
def main() -> None:
    """Switch sched_ext scheduler modes when the power profile changes."""
    pass


@main.command()
@config_option
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    envvar="SCX_POWER_SYNC_LOG",
    default=None,
    help="Override configured log level",
)
def daemon(config_path: Path | None, log_level: str | None) -> None:
    """Run the profile watcher in the foreground."""
    import asyncio

    from scx_power_sync.daemon import run_daemon
    from scx_power_sync.errors import ScxPowerSyncError

    config = _load_config(config_path)

    try:
        asyncio.run(run_daemon(config, log_level=log_level))
    except ScxPowerSyncError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@main.command()
@click.argument("profile")
@config_option
def apply(profile: str, config_path: Path | None) -> None:
    """Apply the configured mode for PROFILE once."""
    import asyncio

    from scx_power_sync.applier import ApplyError, ModeApplier
    from scx_power_sync.errors import MissingBinaryError
    from scx_power_sync.gateway import SCXCTL, ToolGateway, ensure_binaries
    from scx_power_sync.logging import Icon, info
    from scx_power_sync.modes import Profile, UnknownProfileError

    config = _load_config(config_path)

    try:
        parsed = Profile.parse(profile)
    except UnknownProfileError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    mode = config.modes.lookup(parsed)
    if mode is None:
        click.echo(f"Error: no mode configured for profile '{parsed}'", err=True)
        raise SystemExit(1)

    try:
        ensure_binaries((SCXCTL,))
        asyncio.run(ModeApplier(ToolGateway()).apply(mode))
    except (MissingBinaryError, ApplyError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    args_display = f" [dim]--args={mode.args}[/]" if mode.args else ""
    info(f"[cyan]{parsed}[/] → [bold]{mode.sched}[/]{args_display}", Icon.OK)


@main.command()
def status() -> None:
    """Show the active power profile and scheduler state."""
    import asyncio

    from scx_power_sync.errors import ToolExecError
    from scx_power_sync.gateway import NOT_RUNNING_MARKER, ToolGateway
    from scx_power_sync.logging import Icon, info, warn

    gateway = ToolGateway()

    async def gather():
        profile = await gateway.read_active_profile()
        scheduler = await gateway.scheduler_status()
        return profile, scheduler

    try:
        profile, scheduler = asyncio.run(gather())
    except ToolExecError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if profile:
        info(f"Power profile: [cyan]{profile}[/]")
    else:
        warn("Power profile: unknown")

    if NOT_RUNNING_MARKER in scheduler.stdout.lower():
        info("Scheduler: [dim]none[/]", Icon.STOPPED)
    else:
        info(f"Scheduler: [cyan]{scheduler.stdout or 'unknown'}[/]", Icon.RUNNING)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@config_option
def config_show(config_path: Path | None) -> None:
    """Display the resolved configuration."""
    cfg = _load_config(config_path)

    click.echo(f"Config file: {cfg.path}")
    click.echo()
    click.echo("[modes]")
    for profile, mode in cfg.modes.items():
        click.echo(f"  {profile.value:12} sched={mode.sched} args={mode.args!r}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")
    click.echo(f"  file = {cfg.logging.file}")
    click.echo(f"  log_path = {cfg.log_path}")


@config.command("paths")
def config_paths() -> None:
    """List config search paths in lookup order."""
    from scx_power_sync.config import config_search_paths

    for path in config_search_paths():
        marker = "*" if path.exists() else " "
        click.echo(f"{marker} {path}")


@config.command("init")
@click.option(
    "--path",
    "target",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write (default: first search path)",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(target: Path | None, force: bool) -> None:
    """Write a config template."""
    from scx_power_sync.config import config_search_paths, write_default_config
    from scx_power_sync.errors import ConfigError

    target = target or config_search_paths()[0]
    try:
        write_default_config(target, force=force)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Created config at {target}")
