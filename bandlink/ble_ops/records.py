"""Binary record codecs for the band.

Pure functions converting between the byte layouts the band reads and writes
and typed Python values.  Nothing in here performs I/O.

All multi-byte integers are little-endian.  Timestamps are always seven raw
bytes: year (2), month, day, hour, minute, second.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from bandlink.bt_ref.constants import (
    CHUNK_FLAG_FIRST,
    CHUNK_FLAG_LAST,
    CHUNK_FLAG_MIDDLE,
    CHUNK_FLAG_SINGLE,
    CHUNK_SIZE,
)
from bandlink.core import errors

__all__ = [
    "TIMESTAMP_LEN",
    "BatteryStatus",
    "CurrentActivity",
    "ActivityGoal",
    "BandLock",
    "AlertType",
    "Alert",
    "MediaState",
    "MediaInfo",
    "decode_time",
    "encode_time",
    "encode_time_write",
    "decode_battery",
    "decode_activity",
    "decode_firmware",
    "encode_goal_config",
    "encode_goal_steps",
    "is_valid_lock_pin",
    "encode_band_lock",
    "encode_alert",
    "encode_media_info",
    "MEDIA_CLEAR",
    "chunk_flag",
    "split_chunks",
]

TIMESTAMP_LEN = 7
BATTERY_RECORD_LEN = 18
ACTIVITY_RECORD_LEN = 11

U16_MAX = 0xFFFF


# ---------------------------------------------------------------------------
# Value records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BatteryStatus:
    level: int
    last_charge: datetime
    charging: bool
    # Older firmware also reported when the band was last switched off.
    last_off: Optional[datetime] = None


@dataclass(frozen=True)
class CurrentActivity:
    steps: int
    meters: int
    calories: int


@dataclass(frozen=True)
class ActivityGoal:
    steps: int = 10000
    notifications: bool = True


@dataclass(frozen=True)
class BandLock:
    pin: str = "1234"
    enabled: bool = False


class AlertType(enum.IntEnum):
    MAIL = 1
    CALL = 3
    MISSED_CALL = 4
    MESSAGE = 5


@dataclass(frozen=True)
class Alert:
    type: AlertType
    title: str
    message: str


class MediaState(enum.Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"


@dataclass(frozen=True)
class MediaInfo:
    """Now-playing snapshot; position, duration and volume are whole seconds / percent."""

    state: MediaState
    track: Optional[str] = None
    volume: Optional[int] = None
    duration: Optional[int] = None
    position: Optional[int] = None


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def decode_time(value: bytes) -> datetime:
    """Decode the first seven bytes of *value* into a naive local datetime.

    Raises :class:`errors.InvalidTime` for short input or impossible dates.
    """
    raw = bytes(value[:TIMESTAMP_LEN])
    if len(raw) < TIMESTAMP_LEN:
        raise errors.InvalidTime(raw)
    year, month, day, hour, minute, second = struct.unpack("<HBBBBB", raw)
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError as exc:
        raise errors.InvalidTime(raw) from exc


def encode_time(moment: datetime) -> bytes:
    return struct.pack(
        "<HBBBBB",
        moment.year,
        moment.month,
        moment.day,
        moment.hour,
        moment.minute,
        moment.second,
    )


def encode_time_write(moment: datetime) -> bytes:
    # timestamp, day of week (Sunday == 0), three reserved zero bytes
    day_of_week = moment.isoweekday() % 7
    return encode_time(moment) + bytes([day_of_week, 0, 0, 0])


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _require_len(record: str, value: bytes, expected: int) -> None:
    if len(value) < expected:
        raise errors.InvalidRecordError(record, expected, len(value))


def decode_battery(value: bytes) -> BatteryStatus:
    _require_len("battery", value, BATTERY_RECORD_LEN)
    try:
        last_off = decode_time(value[3:10])
    except errors.InvalidTime:
        last_off = None
    return BatteryStatus(
        level=value[1],
        charging=value[2] != 0,
        last_charge=decode_time(value[11:18]),
        last_off=last_off,
    )


def decode_activity(value: bytes) -> CurrentActivity:
    _require_len("activity", value, ACTIVITY_RECORD_LEN)
    (steps,) = struct.unpack_from("<H", value, 1)
    (meters,) = struct.unpack_from("<H", value, 5)
    (calories,) = struct.unpack_from("<H", value, 9)
    return CurrentActivity(steps=steps, meters=meters, calories=calories)


def decode_firmware(value: bytes) -> str:
    try:
        return bytes(value).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise errors.FirmwareDecodeError(value) from exc


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _u16(name: str, value: int) -> bytes:
    if not 0 <= value <= U16_MAX:
        raise errors.InvalidArgumentError(name, f"{value} does not fit in 16 bits")
    return struct.pack("<H", value)


def encode_goal_config(goal: ActivityGoal) -> bytes:
    return bytes([0x06, 0x06, 0x00, 0x01 if goal.notifications else 0x00])


def encode_goal_steps(goal: ActivityGoal) -> bytes:
    return bytes([0x10, 0x00, 0x00]) + _u16("steps", goal.steps) + bytes([0x00, 0x00])


def is_valid_lock_pin(pin: str) -> bool:
    return len(pin) == 4 and all("1" <= ch <= "4" for ch in pin)


def encode_band_lock(lock: BandLock) -> bytes:
    if not is_valid_lock_pin(lock.pin):
        raise errors.InvalidLockPin(lock.pin)
    return (
        bytes([0x06, 0x21, 0x00, 0x01 if lock.enabled else 0x00])
        + lock.pin.encode("ascii")
        + b"\x00"
    )


def encode_alert(alert: Alert) -> bytes:
    return (
        bytes([int(alert.type), 0x01])
        + alert.title.encode("utf-8")
        + b"\x00"
        + alert.message.encode("utf-8")
        + b"\x00"
    )


# Sent instead of a now-playing record when nothing is playing.
MEDIA_CLEAR = bytes(5)


def encode_media_info(media: Optional[MediaInfo]) -> bytes:
    """Build the music-state payload carried by chunked transfer type 0x03."""
    if media is None:
        return MEDIA_CLEAR

    flags = 0x01
    body = _u16("position", media.position or 0)
    if media.track is not None:
        flags |= 0x08
        body += media.track.encode("utf-8") + b"\x00"
    if media.duration is not None:
        flags |= 0x10
        body += _u16("duration", media.duration)
    if media.volume is not None:
        flags |= 0x40
        body += _u16("volume", media.volume)

    playing = 0x01 if media.state is MediaState.PLAYING else 0x00
    return bytes([flags, playing, 0x00]) + body


# ---------------------------------------------------------------------------
# Chunked transfer framing
# ---------------------------------------------------------------------------

def chunk_flag(message_type: int, index: int, total: int) -> int:
    first = index == 0
    last = index == total - 1
    if first and last:
        marker = CHUNK_FLAG_SINGLE
    elif first:
        marker = CHUNK_FLAG_FIRST
    elif last:
        marker = CHUNK_FLAG_LAST
    else:
        marker = CHUNK_FLAG_MIDDLE
    return message_type | marker


def split_chunks(message_type: int, payload: bytes) -> List[bytes]:
    """Frame *payload* as ``[0x00, flag, index & 0xff] + chunk`` records.

    An empty payload still produces a single (empty) first-and-last frame.
    """
    payload = bytes(payload)
    pieces = [payload[i:i + CHUNK_SIZE] for i in range(0, len(payload), CHUNK_SIZE)] or [b""]
    total = len(pieces)
    return [
        bytes([0x00, chunk_flag(message_type, index, total), index & 0xFF]) + piece
        for index, piece in enumerate(pieces)
    ]
