"""Abstraction of a GATT Characteristic as exposed by BlueZ.

Only the operations the band needs are provided: plain reads, acknowledged
and unacknowledged writes, and the fd based ``AcquireNotify`` /
``AcquireWrite`` channels used for the auth handshake, chunked transfer
and music notifications.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import dbus
from gi.repository import GLib

from bandlink.bt_ref.constants import (
    BLUEZ_SERVICE_NAME,
    GATT_CHARACTERISTIC_INTERFACE,
)
from bandlink.core import errors
from bandlink.core.log import print_and_log, LOG__DEBUG

__all__ = ["Characteristic", "NotifyChannel", "WriteChannel"]


def _take_fd(fd) -> int:
    # dbus.types.UnixFd must be taken to get ownership of the descriptor
    return fd.take() if hasattr(fd, "take") else int(fd)


class _Channel:
    def __init__(self, fd: int, mtu: int, char_uuid: str):
        self._fd = fd
        self.mtu = int(mtu)
        self.char_uuid = char_uuid

    def fileno(self) -> int:
        return self._fd

    @property
    def closed(self) -> bool:
        return self._fd < 0

    def close(self) -> None:
        if self._fd >= 0:
            try:
                os.close(self._fd)
            finally:
                self._fd = -1

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class NotifyChannel(_Channel):
    """Socket returned by ``AcquireNotify``; one ``recv`` returns one notification."""

    def recv(self, timeout: Optional[float] = None) -> bytes:
        """Block (dispatching the default GLib main context) until a frame arrives.

        Raises :class:`errors.ChannelClosedError` on hang-up,
        :class:`errors.TimeoutError` when *timeout* seconds pass first, and
        lets ``OSError`` from the read itself propagate.
        """
        if self.closed:
            raise errors.ChannelClosedError(self.char_uuid)

        state: Dict[str, Any] = {"condition": None, "timed_out": False}

        def _on_io(_source, condition):
            state["condition"] = condition
            return False

        def _on_timeout():
            state["timed_out"] = True
            return False

        watch_id = GLib.io_add_watch(
            self._fd,
            GLib.PRIORITY_DEFAULT,
            GLib.IOCondition.IN | GLib.IOCondition.HUP | GLib.IOCondition.ERR,
            _on_io,
        )
        timer_id = GLib.timeout_add(int(timeout * 1000), _on_timeout) if timeout is not None else None

        context = GLib.MainContext.default()
        while state["condition"] is None and not state["timed_out"]:
            context.iteration(True)

        if state["condition"] is None:
            GLib.source_remove(watch_id)
            raise errors.TimeoutError(f"notification on {self.char_uuid}")
        if timer_id is not None and not state["timed_out"]:
            GLib.source_remove(timer_id)

        if not state["condition"] & GLib.IOCondition.IN:
            raise errors.ChannelClosedError(self.char_uuid)

        data = os.read(self._fd, self.mtu)
        if not data:
            raise errors.ChannelClosedError(self.char_uuid)
        return data

    def watch(self, on_frame, on_closed=None) -> int:
        """Call ``on_frame(bytes)`` for every notification from the main loop.

        The watch removes itself on hang-up, EOF or read failure and then
        calls ``on_closed()``.  Returns the GLib source id.
        """

        def _on_io(_source, condition):
            data = b""
            if condition & GLib.IOCondition.IN and not self.closed:
                try:
                    data = os.read(self._fd, self.mtu)
                except OSError as exc:
                    print_and_log(f"[-] Read from {self.char_uuid} failed: {exc}", LOG__DEBUG)
            if not data:
                if on_closed is not None:
                    on_closed()
                return False
            on_frame(data)
            return True

        return GLib.io_add_watch(
            self._fd,
            GLib.PRIORITY_DEFAULT,
            GLib.IOCondition.IN | GLib.IOCondition.HUP | GLib.IOCondition.ERR,
            _on_io,
        )


class WriteChannel(_Channel):
    """Socket returned by ``AcquireWrite``; every ``send`` is one unacknowledged write."""

    def send(self, data: bytes) -> None:
        if self.closed:
            raise errors.ChannelClosedError(self.char_uuid)
        os.write(self._fd, bytes(data))


class Characteristic:  # noqa: N801 – keep simple name
    """Lightweight wrapper around the BlueZ *GattCharacteristic1* interface."""

    def __init__(self, bus, path: str, uuid: str, service_path: Optional[str] = None):
        self.bus = bus
        self.path = path
        self.uuid = uuid
        self.service_path = service_path
        self._char_iface = dbus.Interface(
            bus.get_object(BLUEZ_SERVICE_NAME, path),
            GATT_CHARACTERISTIC_INTERFACE,
        )

    def __repr__(self) -> str:
        return f"Characteristic({self.uuid} @ {self.path})"

    # ------------------------------------------------------------------
    # Read / Write helpers
    # ------------------------------------------------------------------
    def read_value(self) -> bytes:
        raw = self._char_iface.ReadValue(dbus.Dictionary({}, signature="sv"))
        result = bytes(raw)
        print_and_log(
            f"[DEBUG] Read {len(result)} bytes from characteristic {self.uuid}",
            LOG__DEBUG,
        )
        return result

    def write_value(
        self,
        value: bytes | bytearray | list[int],
        *,
        without_response: bool = False,
        authorize: bool = False,
    ) -> None:
        """Write *value*; ``without_response`` selects a fire-and-forget command write.

        ``authorize`` asks BlueZ for a prepare-authorize write, which the band
        acknowledges before applying it.
        """
        array = dbus.Array(bytes(value), signature="y")
        opts: Dict[str, Any] = {
            "type": dbus.String("command" if without_response else "request"),
        }
        if authorize:
            opts["prepare-authorize"] = dbus.Boolean(True)
        self._char_iface.WriteValue(array, dbus.Dictionary(opts, signature="sv"))
        print_and_log(
            f"[DEBUG] Wrote {len(array)} bytes to characteristic {self.uuid}"
            f" ({opts['type']})",
            LOG__DEBUG,
        )

    # ------------------------------------------------------------------
    # Acquired channels
    # ------------------------------------------------------------------
    def acquire_notify(self) -> NotifyChannel:
        fd, mtu = self._char_iface.AcquireNotify(dbus.Dictionary({}, signature="sv"))
        print_and_log(f"[DEBUG] Acquired notify channel for {self.uuid} (mtu={mtu})", LOG__DEBUG)
        return NotifyChannel(_take_fd(fd), int(mtu), self.uuid)

    def acquire_write(self) -> WriteChannel:
        fd, mtu = self._char_iface.AcquireWrite(dbus.Dictionary({}, signature="sv"))
        print_and_log(f"[DEBUG] Acquired write channel for {self.uuid} (mtu={mtu})", LOG__DEBUG)
        return WriteChannel(_take_fd(fd), int(mtu), self.uuid)
