"""Profile change reactor: keeps the scheduler mode in step with the profile.

The reactor owns the last successfully applied profile. It is driven by one
task; events are handled strictly one at a time, in arrival order, and at
most one scxctl invocation is in flight.
"""

from collections.abc import AsyncIterable
from dataclasses import dataclass

import structlog

from scx_power_sync.applier import ApplyError, ModeApplier
from scx_power_sync.errors import StartupSyncError
from scx_power_sync.events import (
    ACTIVE_PROFILE,
    PPD_INTERFACE,
    RawSignal,
    SignalDecodeError,
    decode_string,
)
from scx_power_sync.modes import ModeTable, Profile, UnknownProfileError

log = structlog.get_logger()


@dataclass
class ReactorState:
    """Runtime state of the reactor."""

    last_applied: Profile | None = None
    events_seen: int = 0
    applied: int = 0
    failures: int = 0


class ProfileReactor:
    """Reacts to ActiveProfile changes by applying the configured mode."""

    def __init__(self, modes: ModeTable, applier: ModeApplier):
        self.modes = modes
        self.applier = applier
        self.state = ReactorState()

    async def startup_sync(self, raw_profile: str) -> None:
        """Apply the mode for the profile active at startup.

        An unknown profile or missing mode leaves nothing applied and the
        daemon waits for the next event.

        Raises:
            StartupSyncError: If the mode application fails.
        """
        try:
            profile = Profile.parse(raw_profile)
        except UnknownProfileError as e:
            log.warning("startup_profile_unknown", error=str(e))
            return

        log.info("startup_profile", profile=str(profile))
        mode = self.modes.lookup(profile)
        if mode is None:
            log.warning("mode_missing", profile=str(profile))
            return

        try:
            await self.applier.apply(mode)
        except ApplyError as e:
            raise StartupSyncError(f"initial sync for '{profile}' failed: {e}") from e

        self.state.last_applied = profile
        self.state.applied += 1

    async def handle(self, signal: RawSignal) -> None:
        """Process one PropertiesChanged signal. Never raises for bad input."""
        try:
            event = signal.decode()
        except SignalDecodeError as e:
            log.warning("signal_decode_failed", error=str(e))
            return

        if event.interface != PPD_INTERFACE:
            return
        if ACTIVE_PROFILE not in event.changed:
            return

        self.state.events_seen += 1
        raw = decode_string(event.changed[ACTIVE_PROFILE])
        if raw is None:
            log.warning(
                "unexpected_variant",
                prop=ACTIVE_PROFILE,
                type=type(event.changed[ACTIVE_PROFILE]).__name__,
            )
            return

        try:
            profile = Profile.parse(raw)
        except UnknownProfileError as e:
            log.warning("event_profile_unknown", error=str(e))
            return

        if profile == self.state.last_applied:
            return

        previous = self.state.last_applied
        log.info(
            "profile_changed",
            previous=str(previous) if previous else None,
            profile=str(profile),
        )

        mode = self.modes.lookup(profile)
        if mode is None:
            # last_applied is not advanced; a repeat of this profile is looked up again
            log.warning("mode_missing", profile=str(profile))
            return

        try:
            await self.applier.apply(mode)
        except ApplyError as e:
            self.state.failures += 1
            log.error("apply_failed", profile=str(profile), error=str(e))
            return

        self.state.last_applied = profile
        self.state.applied += 1
        log.info("mode_applied", profile=str(profile), sched=mode.sched)

    async def run(self, signals: AsyncIterable[RawSignal]) -> None:
        """Consume signals until the subscription ends.

        Raises:
            SubscriptionClosed: When the bus subscription is closed.
        """
        async for signal in signals:
            try:
                await self.handle(signal)
            except Exception as e:
                log.exception("event_failed", error=str(e))
