"""Media player control through playerctld.

playerctld proxies the most recently active MPRIS player under a fixed bus
name, so one pair of interfaces is enough to follow whatever is playing.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional

import dbus

from bandlink.ble_ops.music import MusicEvent
from bandlink.ble_ops.records import MediaInfo, MediaState
from bandlink.bt_ref.constants import (
    DBUS_PROPERTIES,
    MPRIS_PATH,
    MPRIS_PLAYER_INTERFACE,
    PLAYERCTLD_INTERFACE,
    PLAYERCTLD_SERVICE_NAME,
)
from bandlink.core.log import print_and_log, LOG__DEBUG, LOG__GENERAL
from bandlink.dbuslayer.signals import SignalStream

__all__ = ["MprisController", "media_info_from_properties"]

UNKNOWN_TITLE = "Unknown title"
VOLUME_STEP = 0.1

_STATES = {
    "Playing": MediaState.PLAYING,
    "Paused": MediaState.PAUSED,
}


def _micros_to_seconds(value) -> int:
    return int(value) // 1_000_000


def media_info_from_properties(
    metadata: Dict[str, Any],
    status: str,
    position: Optional[int] = None,
    volume: Optional[float] = None,
) -> MediaInfo:
    """Build a :class:`MediaInfo` from raw MPRIS property values.

    *position* and the ``mpris:length`` entry are in microseconds, *volume*
    is the MPRIS 0.0-1.0 scale.
    """
    length = metadata.get("mpris:length")
    return MediaInfo(
        state=_STATES.get(str(status), MediaState.STOPPED),
        track=str(metadata.get("xesam:title") or UNKNOWN_TITLE),
        volume=round(float(volume) * 100) if volume is not None else None,
        duration=_micros_to_seconds(length) if length is not None else None,
        position=_micros_to_seconds(position) if position is not None else None,
    )


class MprisController:
    """Read the now-playing state of playerctld and drive it from band buttons."""

    def __init__(self, bus=None):
        if bus is None:
            bus = dbus.SessionBus()
        self._bus = bus
        obj = bus.get_object(PLAYERCTLD_SERVICE_NAME, MPRIS_PATH)
        self._player = dbus.Interface(obj, MPRIS_PLAYER_INTERFACE)
        self._properties = dbus.Interface(obj, DBUS_PROPERTIES)

    def _get(self, interface: str, name: str):
        return self._properties.Get(interface, name)

    def _get_optional(self, name: str):
        try:
            return self._get(MPRIS_PLAYER_INTERFACE, name)
        except dbus.exceptions.DBusException as e:
            print_and_log(f"[DEBUG] Player property {name} unavailable: {e}", LOG__DEBUG)
            return None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def player_names(self):
        return [str(name) for name in self._get(PLAYERCTLD_INTERFACE, "PlayerNames")]

    def media_info(self) -> Optional[MediaInfo]:
        """Snapshot of the active player, or None when no player is running."""
        if not self.player_names():
            return None
        metadata = self._get(MPRIS_PLAYER_INTERFACE, "Metadata")
        status = self._get(MPRIS_PLAYER_INTERFACE, "PlaybackStatus")
        return media_info_from_properties(
            {str(k): v for k, v in metadata.items()},
            str(status),
            position=self._get_optional("Position"),
            volume=self._get_optional("Volume"),
        )

    def changes(self) -> SignalStream[str]:
        """Stream of interface names whose properties changed on playerctld."""
        stream: SignalStream[str] = SignalStream("mpris-changes")

        def _changed(interface, _changed, _invalidated):
            interface = str(interface)
            if interface in (PLAYERCTLD_INTERFACE, MPRIS_PLAYER_INTERFACE):
                stream.push(interface)

        stream.add_match(
            self._bus.add_signal_receiver(
                _changed,
                signal_name="PropertiesChanged",
                dbus_interface=DBUS_PROPERTIES,
                bus_name=PLAYERCTLD_SERVICE_NAME,
                path=MPRIS_PATH,
            )
        )
        return stream

    def watch_changes(self) -> Iterator[Optional[MediaInfo]]:
        """Yield a fresh :meth:`media_info` after every change."""
        with self.changes() as changes:
            for _ in changes:
                yield self.media_info()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def _step_volume(self, delta: float) -> None:
        current = self._get_optional("Volume")
        if current is None:
            return
        new_volume = min(1.0, max(0.0, float(current) + delta))
        self._properties.Set(MPRIS_PLAYER_INTERFACE, "Volume", dbus.Double(new_volume))

    def handle_event(self, event: MusicEvent) -> None:
        """Apply a band music button to the player; OPEN and CLOSE do nothing here."""
        if event is MusicEvent.PLAY_PAUSE:
            self._player.PlayPause()
        elif event is MusicEvent.NEXT:
            self._player.Next()
        elif event is MusicEvent.PREVIOUS:
            self._player.Previous()
        elif event is MusicEvent.VOLUME_UP:
            self._step_volume(VOLUME_STEP)
        elif event is MusicEvent.VOLUME_DOWN:
            self._step_volume(-VOLUME_STEP)
        else:
            return
        print_and_log(f"[*] Media control: {event.value}", LOG__GENERAL)
