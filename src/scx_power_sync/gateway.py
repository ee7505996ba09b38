"""External tool gateway: scxctl and powerprofilesctl.

Every call runs the tool to completion and captures exit status, stdout and
stderr. There is no timeout; a hung tool stalls the caller.
"""

import asyncio
import shutil
from dataclasses import dataclass

import structlog

from scx_power_sync.errors import MissingBinaryError, ToolExecError

log = structlog.get_logger()

SCXCTL = "scxctl"
POWERPROFILESCTL = "powerprofilesctl"
REQUIRED_BINARIES = (SCXCTL, POWERPROFILESCTL)

# Printed by `scxctl get` when no sched_ext scheduler is attached
NOT_RUNNING_MARKER = "no scx scheduler running"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external tool run. stdout/stderr are trimmed."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def exit_code(self) -> int | None:
        """Exit status, or None if the process was killed by a signal."""
        return self.returncode if self.returncode >= 0 else None


def ensure_binaries(binaries: tuple[str, ...] = REQUIRED_BINARIES) -> None:
    """Check every binary resolves on PATH.

    Raises:
        MissingBinaryError: For the first binary that is missing.
    """
    for binary in binaries:
        if shutil.which(binary) is None:
            raise MissingBinaryError(binary)


async def run_tool(*argv: str) -> ToolResult:
    """Run a command and capture its output.

    Raises:
        ToolExecError: If the process cannot be spawned.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ToolExecError(list(argv), e) from e

    stdout, stderr = await process.communicate()
    return ToolResult(
        argv=tuple(argv),
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace").strip(),
        stderr=stderr.decode("utf-8", errors="replace").strip(),
    )


class ToolGateway:
    """Boundary to the scheduler-control and profile-reading tools."""

    def __init__(self, scxctl: str = SCXCTL, powerprofilesctl: str = POWERPROFILESCTL):
        self.scxctl = scxctl
        self.powerprofilesctl = powerprofilesctl

    async def query_run_state(self) -> bool:
        """Return True if a sched_ext scheduler is attached.

        A nonzero exit from `scxctl get` is logged but not authoritative; the
        answer always comes from stdout, and empty output counts as running.
        """
        result = await run_tool(self.scxctl, "get")
        if not result.ok:
            log.warning(
                "scxctl_get_failed",
                exit_code=result.exit_code if result.exit_code is not None else -1,
                stderr=result.stderr,
            )
        return NOT_RUNNING_MARKER not in result.stdout.lower()

    async def invoke(self, subcommand: str, sched: str, args: str) -> ToolResult:
        """Run `scxctl <subcommand> --sched <sched> --args=<args>`.

        The args payload stays one argv element and is never split.
        """
        return await run_tool(self.scxctl, subcommand, "--sched", sched, f"--args={args}")

    async def scheduler_status(self) -> ToolResult:
        """Raw `scxctl get` result, for display."""
        return await run_tool(self.scxctl, "get")

    async def read_active_profile(self) -> str:
        """Return the active profile as reported by `powerprofilesctl get`."""
        result = await run_tool(self.powerprofilesctl, "get")
        if not result.ok:
            log.warning(
                "powerprofilesctl_get_failed",
                exit_code=result.exit_code if result.exit_code is not None else -1,
                stderr=result.stderr,
            )
        return result.stdout
