"""Configuration system for scx-power-sync."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path

import tomlkit

from scx_power_sync.errors import ConfigError
from scx_power_sync.modes import Mode, ModeTable, Profile

APP_NAME = "scx-power-sync"
CONFIG_FILE_NAME = "config.toml"

LOG_LEVELS = ("debug", "info", "warning", "error")

# Written by `config init`. scx_lavd understands --performance and --powersave.
DEFAULT_MODES: dict[Profile, Mode] = {
    Profile.PERFORMANCE: Mode(sched="scx_lavd", args="--performance"),
    Profile.BALANCED: Mode(sched="scx_lavd", args=""),
    Profile.POWER_SAVER: Mode(sched="scx_lavd", args="--powersave"),
}


@dataclass
class LoggingConfig:
    """Daemon logging configuration."""

    level: str = "info"
    file: bool = True  # JSON Lines log under the state directory
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated log files to keep


@dataclass
class Config:
    """Main configuration container."""

    modes: ModeTable
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Path | None = None  # File the config was loaded from

    @property
    def state_dir(self) -> Path:
        """State directory for logs.

        Logs are expendable persistent state, so they go in XDG_STATE_HOME.
        """
        base = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
        return Path(base) / APP_NAME

    @property
    def log_path(self) -> Path:
        """Daemon log path."""
        return self.state_dir / "daemon.log"

    @property
    def runtime_dir(self) -> Path:
        """Runtime directory for the PID file, cleared on reboot."""
        base = os.environ.get("XDG_RUNTIME_DIR") or "/tmp"
        return Path(base) / APP_NAME

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.runtime_dir / "daemon.pid"

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from a TOML file.

        Without an explicit path the search paths are tried in order.

        Raises:
            ConfigError: If no file is found, it cannot be parsed, or the
                mode table is incomplete.
        """
        path = path or find_config_file()
        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except OSError as e:
            raise ConfigError(f"read configuration {path}: {e}") from e
        except tomlkit.exceptions.KeyAlreadyPresent as e:
            raise ConfigError(f"duplicate configuration in {path}: {e}") from e
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigError(f"parse {path}: {e}") from e

        return cls(
            modes=_load_modes(data.get("modes"), str(path)),
            logging=_load_logging_config(data.get("logging", {}), str(path)),
            path=path,
        )


def _load_modes(data: object, source: str) -> ModeTable:
    """Build the mode table from the [modes] table."""
    if not isinstance(data, Mapping):
        raise ConfigError(f"configuration {source} has no [modes] table")

    entries = []
    for key, definition in data.items():
        if not isinstance(definition, Mapping):
            raise ConfigError(f"modes.{key} in {source} must be a table")
        sched = definition.get("sched")
        args = definition.get("args")
        if not isinstance(sched, str) or not sched:
            raise ConfigError(f"modes.{key}.sched in {source} must be a non-empty string")
        if not isinstance(args, str):
            raise ConfigError(f"modes.{key}.args in {source} must be a string")
        entries.append((key, Mode(sched=sched, args=args)))

    return ModeTable.from_entries(entries, source=source)


def _int_setting(data: Mapping, key: str, default: int, source: str) -> int:
    value = data.get(key, default)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"logging.{key} in {source} must be an integer")
    if value < 0:
        raise ConfigError(f"logging.{key} in {source} must be >= 0, got {value}")
    return value


def _load_logging_config(data: object, source: str) -> LoggingConfig:
    """Load logging config, using dataclass defaults for missing fields."""
    if not isinstance(data, Mapping):
        raise ConfigError(f"logging in {source} must be a table")

    defaults = LoggingConfig()
    level = data.get("level", defaults.level)
    if not isinstance(level, str):
        raise ConfigError(f"logging.level in {source} must be a string")
    level = level.lower()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid logging.level {level!r} in {source}. Must be one of {LOG_LEVELS}"
        )

    file = data.get("file", defaults.file)
    if not isinstance(file, bool):
        raise ConfigError(f"logging.file in {source} must be true or false")

    return LoggingConfig(
        level=level,
        file=file,
        max_bytes=_int_setting(data, "max_bytes", defaults.max_bytes, source),
        backup_count=_int_setting(data, "backup_count", defaults.backup_count, source),
    )


def config_search_paths(env: Mapping[str, str] | None = None) -> list[Path]:
    """Return candidate config file paths in lookup order, without duplicates.

    Order: ~/.config, $XDG_CONFIG_HOME, $XDG_CONFIG_DIRS (or /etc/xdg), /etc.
    """
    env = os.environ if env is None else env
    paths: list[Path] = []

    def add(base: Path) -> None:
        candidate = base / APP_NAME / CONFIG_FILE_NAME
        if candidate not in paths:
            paths.append(candidate)

    if home := env.get("HOME"):
        add(Path(home) / ".config")

    if xdg_home := env.get("XDG_CONFIG_HOME"):
        add(Path(xdg_home))

    if "XDG_CONFIG_DIRS" in env:
        for entry in env["XDG_CONFIG_DIRS"].split(":"):
            if entry:
                add(Path(entry))
    else:
        add(Path("/etc/xdg"))

    add(Path("/etc"))
    return paths


def find_config_file(env: Mapping[str, str] | None = None) -> Path:
    """Return the first existing config file.

    Raises:
        ConfigError: If none of the search paths exist.
    """
    candidates = config_search_paths(env)
    for candidate in candidates:
        if candidate.exists():
            return candidate

    searched = ", ".join(str(p) for p in candidates) or "<none>"
    raise ConfigError(f"configuration file not found; looked in: {searched}")


def _mode_table(mode: Mode) -> tomlkit.items.Table:
    table = tomlkit.table()
    table.add("sched", mode.sched)
    table.add("args", mode.args)
    return table


def write_default_config(path: Path, force: bool = False) -> None:
    """Write a commented config template to path.

    Raises:
        ConfigError: If the file exists and force is not set.
    """
    if path.exists() and not force:
        raise ConfigError(f"{path} already exists (use --force to overwrite)")
    path.parent.mkdir(parents=True, exist_ok=True)

    doc = tomlkit.document()
    doc.add(tomlkit.comment("scx-power-sync: scheduler mode per power profile."))
    doc.add(tomlkit.comment("args is passed to scxctl as a single --args=<args> token."))
    doc.add(tomlkit.nl())

    modes = tomlkit.table(is_super_table=True)
    for profile, mode in DEFAULT_MODES.items():
        modes.add(profile.value, _mode_table(mode))
    doc.add("modes", modes)
    doc.add(tomlkit.nl())

    logging_table = tomlkit.table()
    defaults = LoggingConfig()
    for f in fields(defaults):
        logging_table.add(f.name, getattr(defaults, f.name))
    doc.add("logging", logging_table)

    path.write_text(tomlkit.dumps(doc))
