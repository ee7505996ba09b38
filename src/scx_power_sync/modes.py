"""Power profiles and the profile -> scheduler mode table."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from scx_power_sync.errors import ConfigError


class UnknownProfileError(ValueError):
    """String is not one of the known power profiles."""


class Profile(Enum):
    """Power profile as published by power-profiles-daemon."""

    PERFORMANCE = "performance"
    BALANCED = "balanced"
    POWER_SAVER = "power-saver"

    @classmethod
    def parse(cls, value: str) -> "Profile":
        """Parse the exact profile token (case-sensitive)."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownProfileError(f"unknown power profile: {value}") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Mode:
    """Scheduler invocation for a profile.

    ``args`` is opaque and handed to scxctl as a single ``--args=`` token.
    """

    sched: str
    args: str


class ModeTable:
    """Read-only mapping with exactly one Mode per Profile."""

    def __init__(self, modes: Mapping[Profile, Mode]):
        self._modes = MappingProxyType(dict(modes))

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[tuple[str, Mode]],
        source: str = "<config>",
    ) -> "ModeTable":
        """Build a table from raw (profile key, Mode) pairs.

        Raises:
            ConfigError: On an unknown profile key, a duplicate profile, or a
                profile with no entry. The message names the profile and source.
        """
        modes: dict[Profile, Mode] = {}
        for key, mode in entries:
            try:
                profile = Profile.parse(key)
            except UnknownProfileError:
                raise ConfigError(f"unknown profile '{key}' in {source}") from None
            if profile in modes:
                raise ConfigError(f"duplicate configuration for profile '{profile}' in {source}")
            modes[profile] = mode

        for profile in Profile:
            if profile not in modes:
                raise ConfigError(f"configuration {source} missing profile '{profile}'")

        return cls(modes)

    def lookup(self, profile: Profile) -> Mode | None:
        return self._modes.get(profile)

    def items(self) -> Iterator[tuple[Profile, Mode]]:
        """Entries in Profile declaration order."""
        for profile in Profile:
            if profile in self._modes:
                yield profile, self._modes[profile]

    def __len__(self) -> int:
        return len(self._modes)
