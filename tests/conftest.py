"""Shared test fixtures for scx-power-sync."""

from pathlib import Path

import pytest

from scx_power_sync.config import Config
from scx_power_sync.events import ACTIVE_PROFILE, PPD_INTERFACE, RawSignal
from scx_power_sync.gateway import ToolResult
from scx_power_sync.modes import Mode, ModeTable, Profile

PERFORMANCE_MODE = Mode(sched="scx_lavd", args="--performance")
BALANCED_MODE = Mode(sched="scx_bpfland", args="")
POWER_SAVER_MODE = Mode(sched="scx_lavd", args="--powersave --slice-us 5000")

CONFIG_TOML = """\
[modes.performance]
sched = "scx_lavd"
args = "--performance"

[modes.balanced]
sched = "scx_bpfland"
args = ""

[modes.power-saver]
sched = "scx_lavd"
args = "--powersave --slice-us 5000"
"""


def make_modes() -> ModeTable:
    """Create a complete ModeTable for testing."""
    return ModeTable(
        {
            Profile.PERFORMANCE: PERFORMANCE_MODE,
            Profile.BALANCED: BALANCED_MODE,
            Profile.POWER_SAVER: POWER_SAVER_MODE,
        }
    )


def make_signal(
    value: object = "balanced",
    interface: str = PPD_INTERFACE,
    prop: str = ACTIVE_PROFILE,
) -> RawSignal:
    """Create a PropertiesChanged signal carrying one changed property."""
    return RawSignal(args=(interface, {prop: value}, []))


def make_result(
    returncode: int = 0,
    stdout: str = "",
    stderr: str = "",
    argv: tuple[str, ...] = ("scxctl",),
) -> ToolResult:
    """Create a ToolResult for testing."""
    return ToolResult(argv=argv, returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a complete config file and return its path."""
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML)
    return path


@pytest.fixture
def config(config_file: Path) -> Config:
    """Config loaded from config_file."""
    return Config.load(config_file)
