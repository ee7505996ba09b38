"""Tests for configuration system."""

from pathlib import Path

import pytest
import tomlkit
from conftest import CONFIG_TOML, POWER_SAVER_MODE

from scx_power_sync.config import (
    DEFAULT_MODES,
    Config,
    LoggingConfig,
    config_search_paths,
    find_config_file,
    write_default_config,
)
from scx_power_sync.errors import ConfigError
from scx_power_sync.modes import ModeTable, Profile


def test_logging_config_defaults():
    """LoggingConfig has correct defaults."""
    config = LoggingConfig()
    assert config.level == "info"
    assert config.file is True
    assert config.max_bytes == 5 * 1024 * 1024
    assert config.backup_count == 3


def test_config_load_reads_modes(config_file: Path):
    """Config.load() builds the mode table from [modes]."""
    config = Config.load(config_file)

    assert config.path == config_file
    assert config.modes.lookup(Profile.POWER_SAVER) == POWER_SAVER_MODE
    assert config.modes.lookup(Profile.BALANCED).args == ""
    assert config.logging == LoggingConfig()  # Defaults preserved


def test_config_load_reads_logging(tmp_path: Path):
    """Config.load() reads [logging] values, keeping defaults for the rest."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML + '\n[logging]\nlevel = "DEBUG"\nfile = false\n')

    config = Config.load(path)
    assert config.logging.level == "debug"
    assert config.logging.file is False
    assert config.logging.backup_count == 3


def test_config_load_invalid_level(tmp_path: Path):
    """An unknown log level is rejected."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML + '\n[logging]\nlevel = "chatty"\n')

    with pytest.raises(ConfigError, match="logging.level"):
        Config.load(path)


def test_config_load_logging_not_a_table(tmp_path: Path):
    """A scalar logging key is a config error, not a crash."""
    path = tmp_path / "config.toml"
    path.write_text("logging = 5\n" + CONFIG_TOML)

    with pytest.raises(ConfigError, match="logging in .* must be a table"):
        Config.load(path)


@pytest.mark.parametrize(
    "setting, message",
    [
        ("level = 3", "logging.level .* must be a string"),
        ('file = "no"', "logging.file .* must be true or false"),
        ('max_bytes = "big"', "logging.max_bytes .* must be an integer"),
        ("max_bytes = true", "logging.max_bytes .* must be an integer"),
        ('backup_count = "three"', "logging.backup_count .* must be an integer"),
        ("backup_count = -1", "logging.backup_count .* must be >= 0"),
    ],
)
def test_config_load_logging_value_types(tmp_path: Path, setting: str, message: str):
    """Wrongly typed [logging] values raise ConfigError naming the key."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML + f"\n[logging]\n{setting}\n")

    with pytest.raises(ConfigError, match=message):
        Config.load(path)


def test_config_load_missing_profile(tmp_path: Path):
    """A config without every profile fails naming the missing one."""
    path = tmp_path / "config.toml"
    path.write_text('[modes.performance]\nsched = "scx_lavd"\nargs = ""\n')

    with pytest.raises(ConfigError, match="missing profile 'balanced'"):
        Config.load(path)


def test_config_load_duplicate_profile(tmp_path: Path):
    """A profile defined twice is rejected."""
    path = tmp_path / "config.toml"
    path.write_text(
        "[modes]\n"
        'performance = { sched = "a", args = "" }\n'
        'balanced = { sched = "b", args = "" }\n'
        'balanced = { sched = "c", args = "" }\n'
        '"power-saver" = { sched = "d", args = "" }\n'
    )

    with pytest.raises(ConfigError):
        Config.load(path)


def test_config_load_unknown_profile(tmp_path: Path):
    """A key outside the profile set is rejected."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML + '\n[modes.turbo]\nsched = "scx_lavd"\nargs = ""\n')

    with pytest.raises(ConfigError, match="unknown profile 'turbo'"):
        Config.load(path)


def test_config_load_requires_sched(tmp_path: Path):
    """A mode without sched is rejected."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML.replace('sched = "scx_bpfland"\n', ""))

    with pytest.raises(ConfigError, match=r"modes\.balanced\.sched"):
        Config.load(path)


def test_config_load_args_must_be_string(tmp_path: Path):
    """args given as a list is rejected."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML.replace('args = ""', 'args = ["-a"]'))

    with pytest.raises(ConfigError, match=r"modes\.balanced\.args"):
        Config.load(path)


def test_config_load_without_modes(tmp_path: Path):
    """A config with no [modes] table is rejected."""
    path = tmp_path / "config.toml"
    path.write_text('[logging]\nlevel = "info"\n')

    with pytest.raises(ConfigError, match=r"no \[modes\] table"):
        Config.load(path)


def test_config_load_invalid_toml(tmp_path: Path):
    """Unparseable TOML becomes a ConfigError."""
    path = tmp_path / "config.toml"
    path.write_text("[modes\nsched = ")

    with pytest.raises(ConfigError, match="parse"):
        Config.load(path)


def test_config_paths_follow_xdg(monkeypatch, tmp_path: Path):
    """State and runtime paths honor XDG variables."""
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path / "run"))
    config = Config(modes=ModeTable(DEFAULT_MODES))

    assert config.log_path == tmp_path / "state" / "scx-power-sync" / "daemon.log"
    assert config.pid_path == tmp_path / "run" / "scx-power-sync" / "daemon.pid"


def test_search_paths_order():
    """Search order is ~/.config, XDG_CONFIG_HOME, XDG_CONFIG_DIRS, /etc."""
    paths = config_search_paths(
        {
            "HOME": "/home/me",
            "XDG_CONFIG_HOME": "/xdg/home",
            "XDG_CONFIG_DIRS": "/xdg/a::/xdg/b",
        }
    )

    assert paths == [
        Path("/home/me/.config/scx-power-sync/config.toml"),
        Path("/xdg/home/scx-power-sync/config.toml"),
        Path("/xdg/a/scx-power-sync/config.toml"),
        Path("/xdg/b/scx-power-sync/config.toml"),
        Path("/etc/scx-power-sync/config.toml"),
    ]


def test_search_paths_defaults_and_dedup():
    """Without XDG_CONFIG_DIRS /etc/xdg is used, and duplicates are dropped."""
    paths = config_search_paths({"HOME": "/home/me", "XDG_CONFIG_HOME": "/home/me/.config"})

    assert paths == [
        Path("/home/me/.config/scx-power-sync/config.toml"),
        Path("/etc/xdg/scx-power-sync/config.toml"),
        Path("/etc/scx-power-sync/config.toml"),
    ]


def test_find_config_file_first_existing(tmp_path: Path):
    """The first existing candidate wins."""
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    for base in (home / ".config", xdg):
        (base / "scx-power-sync").mkdir(parents=True)
        (base / "scx-power-sync" / "config.toml").write_text(CONFIG_TOML)

    found = find_config_file({"HOME": str(home), "XDG_CONFIG_HOME": str(xdg)})
    assert found == home / ".config" / "scx-power-sync" / "config.toml"


def test_find_config_file_not_found(tmp_path: Path):
    """A missing config lists every searched path."""
    env = {"HOME": str(tmp_path), "XDG_CONFIG_DIRS": str(tmp_path / "dirs")}

    with pytest.raises(ConfigError, match="configuration file not found; looked in: ") as exc:
        find_config_file(env)
    assert str(tmp_path / "dirs" / "scx-power-sync" / "config.toml") in str(exc.value)


def test_write_default_config_round_trips(tmp_path: Path):
    """The template loads back into the default modes."""
    path = tmp_path / "nested" / "config.toml"
    write_default_config(path)

    config = Config.load(path)
    for profile, mode in DEFAULT_MODES.items():
        assert config.modes.lookup(profile) == mode
    assert "--args=<args>" in path.read_text()
    assert "logging" in tomlkit.parse(path.read_text())


def test_write_default_config_refuses_overwrite(tmp_path: Path):
    """An existing file is kept unless force is set."""
    path = tmp_path / "config.toml"
    path.write_text("# mine\n")

    with pytest.raises(ConfigError, match="already exists"):
        write_default_config(path)
    assert path.read_text() == "# mine\n"

    write_default_config(path, force=True)
    assert "[modes.performance]" in path.read_text()
