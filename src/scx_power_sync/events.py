"""Power profile change notifications and the queue that delivers them.

The bus binding produces signals on its own thread; Subscription hands them
to the asyncio loop in arrival order for a single consumer.
"""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from scx_power_sync.errors import SubscriptionClosed

PPD_BUS_NAME = "net.hadess.PowerProfiles"
PPD_OBJECT_PATH = "/net/hadess/PowerProfiles"
PPD_INTERFACE = "net.hadess.PowerProfiles"
ACTIVE_PROFILE = "ActiveProfile"


class SignalDecodeError(ValueError):
    """PropertiesChanged arguments did not have the expected shape."""


@dataclass(frozen=True)
class PropertiesChanged:
    """Decoded org.freedesktop.DBus.Properties.PropertiesChanged."""

    interface: str
    changed: Mapping[str, Any]
    invalidated: tuple[str, ...] = ()


@dataclass(frozen=True)
class RawSignal:
    """Undecoded signal arguments as delivered by the bus."""

    args: Sequence[Any] = field(default_factory=tuple)

    def decode(self) -> PropertiesChanged:
        """Decode (interface, changed, invalidated).

        Raises:
            SignalDecodeError: If the arguments have the wrong shape.
        """
        if len(self.args) != 3:
            raise SignalDecodeError(f"expected 3 arguments, got {len(self.args)}")
        interface, changed, invalidated = self.args
        if not isinstance(interface, str):
            raise SignalDecodeError(f"interface name is {type(interface).__name__}, not str")
        if not isinstance(changed, Mapping):
            raise SignalDecodeError(
                f"changed properties is {type(changed).__name__}, not a mapping"
            )
        if isinstance(invalidated, str) or not isinstance(invalidated, Sequence):
            raise SignalDecodeError(
                f"invalidated properties is {type(invalidated).__name__}, not a list"
            )
        return PropertiesChanged(
            interface=str(interface),
            changed={str(k): v for k, v in changed.items()},
            invalidated=tuple(str(name) for name in invalidated),
        )


def decode_string(value: Any) -> str | None:
    """Return value as str if it is string-typed, else None."""
    if isinstance(value, str):
        return str(value)
    return None


_CLOSED = object()


class Subscription:
    """FIFO of RawSignals, fed from any thread, consumed by one task.

    Iteration ends by raising SubscriptionClosed once close() is called and
    every signal pushed before it has been consumed.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed_reason: str | None = None

    def push(self, signal: RawSignal) -> None:
        """Enqueue a signal. Safe to call from the bus thread."""
        self._loop.call_soon_threadsafe(self._queue.put_nowait, signal)

    def close(self, reason: str = "subscription closed") -> None:
        """End the stream after already queued signals. Thread-safe."""
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (_CLOSED, reason))

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> RawSignal:
        if self._closed_reason is not None:
            raise SubscriptionClosed(self._closed_reason)
        item = await self._queue.get()
        if isinstance(item, tuple) and item and item[0] is _CLOSED:
            self._closed_reason = item[1]
            raise SubscriptionClosed(self._closed_reason)
        return item
