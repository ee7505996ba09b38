"""Background daemon for scx-power-sync."""

import asyncio
import os
import signal
from pathlib import Path
from typing import TYPE_CHECKING

import psutil
import structlog

from scx_power_sync import logging as sync_logging
from scx_power_sync.applier import ModeApplier
from scx_power_sync.config import Config
from scx_power_sync.errors import DaemonAlreadyRunning, ScxPowerSyncError
from scx_power_sync.events import Subscription
from scx_power_sync.gateway import ToolGateway, ensure_binaries
from scx_power_sync.reactor import ProfileReactor

if TYPE_CHECKING:
    from scx_power_sync.bus import PowerProfilesBus

log = structlog.get_logger()


class Daemon:
    """Main daemon class: startup sync, then react to profile changes."""

    def __init__(self, config: Config, gateway: ToolGateway | None = None):
        self.config = config
        self.gateway = gateway or ToolGateway()
        self.reactor = ProfileReactor(config.modes, ModeApplier(self.gateway))

        self._bus: "PowerProfilesBus | None" = None
        self._shutdown_event = asyncio.Event()
        self._pid_written = False

    def _connect_bus(self) -> "PowerProfilesBus":
        """Connect to the system bus."""
        from scx_power_sync.bus import PowerProfilesBus

        bus = PowerProfilesBus()
        bus.connect()
        return bus

    async def start(self) -> None:
        """Start the daemon and run until shutdown or the bus goes away.

        Raises:
            ScxPowerSyncError: On any startup failure, or SubscriptionClosed
                when the bus subscription ends.
        """
        from importlib.metadata import version

        log.info(
            "daemon_starting",
            version=version("scx-power-sync"),
            config=str(self.config.path) if self.config.path else None,
        )
        for profile, mode in self.config.modes.items():
            log.info("mode_configured", profile=str(profile), sched=mode.sched, args=mode.args)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        if self._check_already_running():
            log.error("daemon_already_running")
            raise DaemonAlreadyRunning("Daemon is already running")

        self._write_pid_file()

        ensure_binaries()

        self._bus = self._connect_bus()
        raw_profile = await asyncio.to_thread(self._bus.read_active_profile)
        await self.reactor.startup_sync(raw_profile)

        subscription = self._bus.subscribe(loop)
        log.info("daemon_started", last_applied=self._last_applied())

        await self._main_loop(subscription)

    async def stop(self) -> None:
        """Stop the daemon and release the bus and PID file."""
        log.info("daemon_stopping")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

        if self._bus is not None:
            self._bus.close()
            self._bus = None

        if self._pid_written:
            self._remove_pid_file()

        state = self.reactor.state
        log.info(
            "daemon_stopped",
            events_seen=state.events_seen,
            applied=state.applied,
            failures=state.failures,
            last_applied=self._last_applied(),
        )

    def _last_applied(self) -> str | None:
        profile = self.reactor.state.last_applied
        return str(profile) if profile else None

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        self._shutdown_event.set()

    async def _main_loop(self, subscription: Subscription) -> None:
        """Run the reactor until shutdown is requested or it stops on its own.

        A reactor that ends by itself re-raises its error (SubscriptionClosed).
        """
        reactor_task = asyncio.create_task(self.reactor.run(subscription))
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        done, _ = await asyncio.wait(
            {reactor_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )

        if reactor_task in done:
            shutdown_task.cancel()
            reactor_task.result()
            return

        reactor_task.cancel()
        try:
            await reactor_task
        except asyncio.CancelledError:
            log.info("main_loop_cancelled")

    def _write_pid_file(self) -> None:
        """Write PID file."""
        self.config.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_path.write_text(str(os.getpid()))
        self._pid_written = True
        log.debug("pid_file_written", path=str(self.config.pid_path))

    def _remove_pid_file(self) -> None:
        """Remove PID file."""
        if self.config.pid_path.exists():
            self.config.pid_path.unlink()
            log.debug("pid_file_removed")
        self._pid_written = False

    def _check_already_running(self) -> bool:
        """Return True if the PID file names a live `scx-power-sync daemon`.

        Invalid and stale PID files are removed. PIDs are reused, so the
        process command line is checked, not just its existence.
        """
        pid_path = self.config.pid_path
        try:
            pid = int(pid_path.read_text().strip())
        except FileNotFoundError:
            return False
        except ValueError:
            log.warning("pid_file_invalid", path=str(pid_path))
            self._remove_pid_file()
            return False

        try:
            cmdline = psutil.Process(pid).cmdline()
        except psutil.NoSuchProcess:
            cmdline = []
        except psutil.AccessDenied:
            log.warning("pid_check_access_denied", pid=pid)
            return True

        if is_daemon_cmdline(cmdline):
            log.info("daemon_already_running_verified", pid=pid)
            return True

        log.warning("pid_file_stale", pid=pid, cmdline=" ".join(cmdline) or None)
        self._remove_pid_file()
        return False


def is_daemon_cmdline(cmdline: list[str]) -> bool:
    """True if cmdline runs the daemon subcommand of scx-power-sync."""
    for i, arg in enumerate(cmdline):
        if Path(arg).name in ("scx-power-sync", "scx_power_sync"):
            return "daemon" in cmdline[i + 1 :]
    return False


async def run_daemon(config: Config, log_level: str | None = None) -> None:
    """Run the daemon until shutdown.

    Args:
        config: Loaded configuration
        log_level: Overrides the configured log level when given
    """
    sync_logging.configure(config, level=log_level)

    daemon = Daemon(config)

    try:
        await daemon.start()
    except ScxPowerSyncError as e:
        log.error("daemon_failed", error=str(e))
        raise
    except Exception as e:
        log.exception("daemon_crashed", error=str(e))
        raise
    finally:
        await daemon.stop()
