"""Exception types for scx-power-sync."""


class ScxPowerSyncError(Exception):
    """Base class for all scx-power-sync errors."""


class ConfigError(ScxPowerSyncError, ValueError):
    """Configuration file missing, unparseable, or incomplete."""


class MissingBinaryError(ScxPowerSyncError):
    """A required external binary is not on PATH."""

    def __init__(self, binary: str):
        super().__init__(f"required binary not found in PATH: {binary}")
        self.binary = binary


class ToolExecError(ScxPowerSyncError):
    """An external tool could not be spawned."""

    def __init__(self, argv: list[str], error: OSError):
        super().__init__(f"failed to exec {argv[0]}: {error}")
        self.argv = argv
        self.error = error


class BusError(ScxPowerSyncError):
    """The system bus could not be reached or queried."""


class SubscriptionClosed(ScxPowerSyncError):
    """The PropertiesChanged subscription ended."""


class StartupSyncError(ScxPowerSyncError):
    """The initial mode application failed."""


class DaemonAlreadyRunning(ScxPowerSyncError):
    """Another scx-power-sync daemon holds the PID file."""
