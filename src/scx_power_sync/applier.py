"""Apply a scheduler mode through scxctl."""

import structlog

from scx_power_sync.errors import ScxPowerSyncError, ToolExecError
from scx_power_sync.gateway import ToolGateway
from scx_power_sync.modes import Mode

log = structlog.get_logger()


class ApplyError(ScxPowerSyncError):
    """Mode application failed."""


class ProbeFailed(ApplyError):
    """The scheduler run-state probe could not be run."""


class ToolFailed(ApplyError):
    """scxctl start/switch did not succeed."""

    def __init__(self, subcommand: str, exit_code: int | None, stderr: str):
        code = exit_code if exit_code is not None else -1
        super().__init__(f"scxctl {subcommand} failed (exit={code}): {stderr}")
        self.subcommand = subcommand
        self.exit_code = exit_code
        self.stderr = stderr


class ModeApplier:
    """Start or switch the scheduler. Exactly one attempt per call."""

    def __init__(self, gateway: ToolGateway):
        self.gateway = gateway

    async def apply(self, mode: Mode) -> None:
        """Apply mode, choosing `switch` if a scheduler runs, else `start`.

        Raises:
            ProbeFailed: If `scxctl get` could not be run.
            ToolFailed: If start/switch could not be run or exited nonzero.
        """
        try:
            running = await self.gateway.query_run_state()
        except ToolExecError as e:
            raise ProbeFailed(f"probe scx running: {e}") from e

        subcommand = "switch" if running else "start"
        log.info("apply", subcommand=subcommand, sched=mode.sched, args=mode.args)

        try:
            result = await self.gateway.invoke(subcommand, mode.sched, mode.args)
        except ToolExecError as e:
            raise ToolFailed(subcommand, None, str(e)) from e

        if not result.ok:
            raise ToolFailed(subcommand, result.exit_code, result.stderr)

        if result.stdout:
            log.info("scxctl_output", output=result.stdout)
