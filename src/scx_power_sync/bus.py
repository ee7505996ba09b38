"""System bus binding for power-profiles-daemon.

dbus-python dispatches signals from a GLib main loop, which runs on its own
thread here. Signals are forwarded into a Subscription for the asyncio side.
"""

import asyncio
import threading

import dbus
import dbus.mainloop.glib
import structlog
from gi.repository import GLib

from scx_power_sync.errors import BusError
from scx_power_sync.events import (
    ACTIVE_PROFILE,
    PPD_BUS_NAME,
    PPD_INTERFACE,
    PPD_OBJECT_PATH,
    RawSignal,
    Subscription,
)

log = structlog.get_logger()

DBUS_PROPS_IFACE = "org.freedesktop.DBus.Properties"


class PowerProfilesBus:
    """Reads ActiveProfile and subscribes to its changes on the system bus."""

    def __init__(self) -> None:
        self._bus: dbus.Bus | None = None
        self._glib_loop: GLib.MainLoop | None = None
        self._thread: threading.Thread | None = None
        self._match = None

    def connect(self) -> None:
        """Connect to the system bus.

        Raises:
            BusError: If the bus is unreachable.
        """
        dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
        try:
            self._bus = dbus.SystemBus()
        except dbus.DBusException as e:
            raise BusError(f"connect system D-Bus: {e}") from e
        self._bus.set_exit_on_disconnect(False)
        log.info("bus_connected", service=PPD_BUS_NAME)

    def read_active_profile(self) -> str:
        """Return the current ActiveProfile property value.

        Raises:
            BusError: If the property cannot be read.
        """
        if self._bus is None:
            raise BusError("not connected")
        try:
            obj = self._bus.get_object(PPD_BUS_NAME, PPD_OBJECT_PATH)
            props = dbus.Interface(obj, DBUS_PROPS_IFACE)
            return str(props.Get(PPD_INTERFACE, ACTIVE_PROFILE))
        except dbus.DBusException as e:
            raise BusError(f"read {ACTIVE_PROFILE}: {e}") from e

    def subscribe(self, loop: asyncio.AbstractEventLoop) -> Subscription:
        """Subscribe to PropertiesChanged and start the GLib dispatch thread."""
        if self._bus is None:
            raise BusError("not connected")

        subscription = Subscription(loop)

        def on_properties_changed(*args):
            subscription.push(RawSignal(args=args))

        self._match = self._bus.add_signal_receiver(
            on_properties_changed,
            signal_name="PropertiesChanged",
            dbus_interface=DBUS_PROPS_IFACE,
            bus_name=PPD_BUS_NAME,
            path=PPD_OBJECT_PATH,
        )
        self._bus.call_on_disconnection(
            lambda _conn: subscription.close("system bus connection closed")
        )

        self._glib_loop = GLib.MainLoop()
        self._thread = threading.Thread(
            target=self._glib_loop.run, name="dbus-glib", daemon=True
        )
        self._thread.start()
        log.info("subscribed", signal="PropertiesChanged", path=PPD_OBJECT_PATH)
        return subscription

    def close(self) -> None:
        """Remove the signal match and stop the GLib thread."""
        if self._match is not None:
            self._match.remove()
            self._match = None
        if self._glib_loop is not None:
            self._glib_loop.quit()
            self._glib_loop = None
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
