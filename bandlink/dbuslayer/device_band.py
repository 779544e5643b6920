"""Device client for one band.

:class:`Band` owns the band's connection state, its resolved characteristic
handles and the authenticated flag.  Every device operation is a thin layer
over :mod:`bandlink.ble_ops.records` / :mod:`bandlink.ble_ops.auth` and the
raw characteristic primitives handed out by the bus session.

Lifecycle::

    Unconnected -> Connecting -> (ResolvingServices) -> Ready
                -> Authenticating -> Authenticated

``disconnect()`` drops authentication but keeps the cached characteristics,
so a reconnect only re-resolves when nothing is cached.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from bandlink.ble_ops import records
from bandlink.ble_ops.auth import NONCE_LEN, AuthResponse, build_challenge_response, parse_auth_frame
from bandlink.ble_ops.music import MusicEventStream
from bandlink.bt_ref.constants import (
    AUTH_KEY_LEN,
    AUTH_REQUEST_START,
    BAND_REQUIRED_CHARS,
    CHUNK_TYPE_MUSIC,
)
from bandlink.core import errors
from bandlink.core.log import print_and_log, LOG__AUTH, LOG__DEBUG, LOG__GENERAL
from bandlink.core.model import DiscoveredDevice

if TYPE_CHECKING:  # pragma: no cover
    from bandlink.dbuslayer.session import BluezSession

__all__ = ["BandChars", "Band"]


@dataclass(frozen=True)
class BandChars:
    """The ten characteristic handles a band must expose."""

    battery: Any
    steps: Any
    time: Any
    auth: Any
    config: Any
    settings: Any
    alert: Any
    chunked: Any
    music: Any
    firmware: Any

    @classmethod
    def from_services(cls, services: Dict[str, Dict[str, Any]], device_address: str) -> "BandChars":
        """Pick the required handles out of a resolved service map, or raise."""
        found: Dict[str, Any] = {}
        missing: List[str] = []
        for field_name, (service_uuid, char_uuid) in BAND_REQUIRED_CHARS.items():
            handle = services.get(service_uuid, {}).get(char_uuid)
            if handle is None:
                missing.append(f"{field_name} ({service_uuid}/{char_uuid})")
            else:
                found[field_name] = handle
        if missing:
            raise errors.MissingServicesOrChars(device_address, missing)
        return cls(**found)


class Band:
    """Client for a single band, built from a :class:`DiscoveredDevice`."""

    def __init__(self, session: "BluezSession", device: DiscoveredDevice):
        self._session = session
        self.device = device
        self.authenticated = False
        self._chars: Optional[BandChars] = None

    @property
    def address(self) -> str:
        return self.device.address

    @property
    def path(self) -> str:
        return self.device.path

    @property
    def initialized(self) -> bool:
        return self._chars is not None

    def __repr__(self) -> str:
        return f"Band({self.address}, initialized={self.initialized}, authenticated={self.authenticated})"

    def _require_chars(self, operation: str) -> BandChars:
        if self._chars is None:
            raise errors.NotInitialized(operation)
        return self._chars

    def _require_auth(self, operation: str) -> BandChars:
        chars = self._require_chars(operation)
        if not self.authenticated:
            raise errors.RequiresAuth(operation)
        return chars

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    def is_connected(self) -> bool:
        return self._session.is_connected(self.path)

    def initialize(self) -> None:
        """Connect if needed, then resolve the characteristic set if needed."""
        was_connected = self.is_connected()
        if not was_connected:
            self._session.connect(self.path)
        self.device.connected = True

        if not was_connected or self._chars is None:
            self._session.wait_services_resolved(self.path)
            self._fetch_chars()

    def _fetch_chars(self) -> None:
        # The previous set is dropped first so a failure leaves nothing behind.
        self._chars = None
        services = self._session.resolve_characteristics(self.path)
        self._chars = BandChars.from_services(services, self.address)
        print_and_log(f"[+] Band {self.address} initialized", LOG__DEBUG)

    def disconnect(self) -> None:
        try:
            self._session.disconnect(self.path)
        finally:
            self.authenticated = False
            self.device.connected = False

    def device_property_events(self):
        """RSSI / connection changes for this band, see ``BluezSession.device_property_events``."""
        return self._session.device_property_events(self.path)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def authenticate(self, auth_key: bytes, timeout: Optional[float] = None) -> None:
        """Run the challenge-response handshake with *auth_key*.

        Parameters
        ----------
        auth_key : bytes
            The band's 16-byte secret.
        timeout : float, optional
            Overall bound in seconds.  ``None`` waits for a terminal frame
            forever, as the band's own companion app does.

        Raises
        ------
        NotInitialized
            When :meth:`initialize` has not resolved the characteristics.
        ValueError
            When *auth_key* is not 16 bytes long.
        InvalidAuthKey
            When the band rejects the key.
        TimeoutError
            When *timeout* expires before the band answers.
        """
        chars = self._require_chars("authenticate")
        auth_key = bytes(auth_key)
        if len(auth_key) != AUTH_KEY_LEN:
            raise ValueError(f"auth key must be {AUTH_KEY_LEN} bytes, got {len(auth_key)}")

        deadline = time.monotonic() + timeout if timeout is not None else None
        print_and_log(f"[*] Authenticating with {self.address}", LOG__AUTH)

        # The notify channel must exist before the first write; the band
        # answers immediately.
        with chars.auth.acquire_notify() as notify, chars.auth.acquire_write() as write:
            write.send(AUTH_REQUEST_START)
            while True:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise errors.TimeoutError("authentication")
                frame = parse_auth_frame(notify.recv(timeout=remaining))
                if frame is None:
                    continue

                if frame.response is AuthResponse.RESTART:
                    print_and_log("[*] Band asked to restart authentication", LOG__AUTH)
                    write.send(AUTH_REQUEST_START)
                elif frame.response is AuthResponse.CHALLENGE:
                    if len(frame.payload) < NONCE_LEN:
                        print_and_log(f"[!] Ignoring short challenge {frame.payload.hex()}", LOG__AUTH)
                        continue
                    print_and_log("[*] Received authentication challenge", LOG__AUTH)
                    write.send(build_challenge_response(auth_key, frame))
                elif frame.response is AuthResponse.SUCCESS:
                    self.authenticated = True
                    print_and_log(f"[+] Authenticated with {self.address}", LOG__GENERAL)
                    return
                elif frame.response is AuthResponse.INVALID_KEY:
                    self.authenticated = False
                    print_and_log(f"[-] {self.address} rejected the auth key", LOG__AUTH)
                    raise errors.InvalidAuthKey(self.address)
                else:
                    print_and_log(f"[!] Unknown authentication response {frame.code.hex()}", LOG__AUTH)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_battery(self) -> records.BatteryStatus:
        chars = self._require_chars("get_battery")
        return records.decode_battery(chars.battery.read_value())

    def get_band_time(self) -> datetime:
        chars = self._require_chars("get_band_time")
        return records.decode_time(chars.time.read_value())

    def get_current_activity(self) -> records.CurrentActivity:
        chars = self._require_auth("get_current_activity")
        return records.decode_activity(chars.steps.read_value())

    def get_firmware_revision(self) -> str:
        chars = self._require_chars("get_firmware_revision")
        return records.decode_firmware(chars.firmware.read_value())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def set_band_time(self, new_time: datetime) -> None:
        chars = self._require_auth("set_band_time")
        chars.time.write_value(records.encode_time_write(new_time), authorize=True)

    def set_activity_goal(self, goal: records.ActivityGoal) -> None:
        chars = self._require_auth("set_activity_goal")
        steps = records.encode_goal_steps(goal)
        chars.config.write_value(records.encode_goal_config(goal), without_response=True)
        chars.settings.write_value(steps)

    def set_band_lock(self, lock: records.BandLock) -> None:
        chars = self._require_chars("set_band_lock")
        # encode validates the PIN before anything is sent
        chars.config.write_value(records.encode_band_lock(lock), without_response=True)

    def send_alert(self, alert: records.Alert) -> None:
        chars = self._require_chars("send_alert")
        chars.alert.write_value(records.encode_alert(alert))

    def set_media_info(self, media: Optional[records.MediaInfo]) -> None:
        self.write_chunked(CHUNK_TYPE_MUSIC, records.encode_media_info(media))

    def write_chunked(self, message_type: int, payload: bytes) -> None:
        """Send *payload* through the chunked-transfer characteristic.

        Frames go out in order as unacknowledged writes.  A dropped frame is
        neither detected nor retried here.
        """
        chars = self._require_chars("write_chunked")
        frames = records.split_chunks(message_type, payload)
        for frame in frames:
            chars.chunked.write_value(frame, without_response=True)
        print_and_log(
            f"[DEBUG] Chunked write type=0x{message_type:02x}: {len(payload)} bytes in {len(frames)} frame(s)",
            LOG__DEBUG,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def stream_media_button_events(self) -> MusicEventStream:
        chars = self._require_chars("stream_media_button_events")
        return MusicEventStream(chars.music.acquire_notify())
