from __future__ import annotations

from datetime import datetime

import pytest

from bandlink.ble_ops import records
from bandlink.ble_ops.records import (
    ActivityGoal,
    Alert,
    AlertType,
    BandLock,
    MediaInfo,
    MediaState,
)
from bandlink.core import errors


def _ts(year, month, day, hour, minute, second) -> bytes:
    return year.to_bytes(2, "little") + bytes([month, day, hour, minute, second])


def test_time_round_trip() -> None:
    moment = datetime(2023, 11, 5, 21, 7, 59)
    raw = records.encode_time(moment)
    assert raw == bytes([0xE7, 0x07, 11, 5, 21, 7, 59])
    assert records.decode_time(raw) == moment


def test_decode_time_ignores_trailing_bytes() -> None:
    raw = _ts(2024, 1, 2, 3, 4, 5) + b"\x09\x00\x00\x00"
    assert records.decode_time(raw) == datetime(2024, 1, 2, 3, 4, 5)


@pytest.mark.parametrize(
    "raw",
    [
        _ts(2024, 13, 1, 0, 0, 0),
        _ts(2023, 2, 29, 0, 0, 0),
        _ts(2024, 1, 1, 24, 0, 0),
        _ts(2024, 0, 1, 0, 0, 0),
        b"\xe8\x07\x01",
    ],
)
def test_decode_time_rejects_invalid(raw: bytes) -> None:
    with pytest.raises(errors.InvalidTime):
        records.decode_time(raw)


def test_time_write_appends_day_of_week() -> None:
    # 2024-03-10 was a Sunday
    raw = records.encode_time_write(datetime(2024, 3, 10, 8, 30, 0))
    assert len(raw) == 11
    assert raw[:7] == _ts(2024, 3, 10, 8, 30, 0)
    assert raw[7:] == bytes([0, 0, 0, 0])

    monday = records.encode_time_write(datetime(2024, 3, 11, 8, 30, 0))
    assert monday[7] == 1


def test_decode_battery() -> None:
    raw = (
        bytes([0x0F, 85, 0x01])
        + _ts(2024, 5, 1, 12, 0, 0)
        + b"\x00"
        + _ts(2024, 5, 20, 18, 45, 10)
    )
    assert len(raw) == 18
    status = records.decode_battery(raw)
    assert status.level == 85
    assert status.charging is True
    assert status.last_charge == datetime(2024, 5, 20, 18, 45, 10)
    assert status.last_off == datetime(2024, 5, 1, 12, 0, 0)


def test_decode_battery_tolerates_bad_legacy_timestamp() -> None:
    raw = bytes([0x0F, 40, 0x00]) + bytes(7) + b"\x00" + _ts(2024, 5, 20, 18, 45, 10)
    status = records.decode_battery(raw)
    assert status.charging is False
    assert status.last_off is None


def test_decode_battery_reference_vector() -> None:
    # 00 55 01, legacy timestamp and spare byte, E8 07 0B 14 0D 05 09
    raw = bytes([0x00, 0x55, 0x01]) + bytes(8) + bytes([0xE8, 0x07, 0x0B, 0x14, 0x0D, 0x05, 0x09])
    status = records.decode_battery(raw)
    assert status.level == 85
    assert status.charging is True
    assert status.last_charge == datetime(2024, 11, 20, 13, 5, 9)
    assert status.last_off is None


def test_decode_battery_rejects_17_byte_record() -> None:
    # timestamp right after seven spare bytes leaves the record one byte short
    raw = bytes([0x00, 0x55, 0x01]) + bytes(7) + bytes([0xE8, 0x07, 0x0B, 0x14, 0x0D, 0x05, 0x09])
    with pytest.raises(errors.InvalidRecordError):
        records.decode_battery(raw)


def test_decode_battery_invalid_last_charge() -> None:
    raw = bytes([0x0F, 40, 0x00]) + _ts(2024, 5, 1, 12, 0, 0) + b"\x00" + bytes(7)
    with pytest.raises(errors.InvalidTime):
        records.decode_battery(raw)


def test_decode_battery_too_short() -> None:
    with pytest.raises(errors.InvalidRecordError) as info:
        records.decode_battery(bytes(17))
    assert info.value.expected == 18
    assert info.value.actual == 17


def test_decode_activity() -> None:
    raw = bytes([0x0C, 0xD2, 0x04, 0, 0, 0xB6, 0x03, 0, 0, 0x3C, 0x00])
    activity = records.decode_activity(raw)
    assert activity == records.CurrentActivity(steps=1234, meters=950, calories=60)


def test_decode_activity_too_short() -> None:
    with pytest.raises(errors.InvalidRecordError):
        records.decode_activity(bytes(10))


def test_decode_firmware() -> None:
    assert records.decode_firmware(b"V1.0.9.66") == "V1.0.9.66"
    with pytest.raises(errors.FirmwareDecodeError):
        records.decode_firmware(b"\xff\xfe")


def test_goal_encoding() -> None:
    goal = ActivityGoal(steps=8000, notifications=False)
    assert records.encode_goal_config(goal) == bytes([0x06, 0x06, 0x00, 0x00])
    assert records.encode_goal_steps(goal) == bytes([0x10, 0x00, 0x00, 0x40, 0x1F, 0x00, 0x00])
    assert records.encode_goal_config(ActivityGoal())[3] == 0x01


def test_goal_steps_out_of_range() -> None:
    with pytest.raises(errors.InvalidArgumentError):
        records.encode_goal_steps(ActivityGoal(steps=70000))


@pytest.mark.parametrize("pin", ["1234", "4444", "1111", "3142"])
def test_valid_lock_pins(pin: str) -> None:
    assert records.is_valid_lock_pin(pin)


@pytest.mark.parametrize("pin", ["", "123", "12345", "1235", "0123", "12a4"])
def test_invalid_lock_pins(pin: str) -> None:
    assert not records.is_valid_lock_pin(pin)
    with pytest.raises(errors.InvalidLockPin):
        records.encode_band_lock(BandLock(pin=pin, enabled=True))


def test_band_lock_encoding() -> None:
    raw = records.encode_band_lock(BandLock(pin="1234", enabled=True))
    assert raw == bytes([0x06, 0x21, 0x00, 0x01]) + b"1234" + b"\x00"


def test_alert_encoding() -> None:
    raw = records.encode_alert(Alert(AlertType.CALL, "Mum", "Calling"))
    assert raw == bytes([0x03, 0x01]) + b"Mum\x00Calling\x00"


def test_media_info_full() -> None:
    media = MediaInfo(MediaState.PLAYING, track="Song", volume=50, duration=200, position=10)
    raw = records.encode_media_info(media)
    assert raw == (
        bytes([0x59, 0x01, 0x00])
        + bytes([0x0A, 0x00])
        + b"Song\x00"
        + bytes([0xC8, 0x00])
        + bytes([0x32, 0x00])
    )


def test_media_info_minimal_paused() -> None:
    raw = records.encode_media_info(MediaInfo(MediaState.PAUSED))
    assert raw == bytes([0x01, 0x00, 0x00, 0x00, 0x00])


def test_media_info_none_clears() -> None:
    assert records.encode_media_info(None) == bytes(5)


@pytest.mark.parametrize(
    "size, expected_flags, expected_lengths",
    [
        (0, [0xC3], [0]),
        (1, [0xC3], [1]),
        (17, [0xC3], [17]),
        (18, [0x03, 0x83], [17, 1]),
        (34, [0x03, 0x83], [17, 17]),
        (35, [0x03, 0x43, 0x83], [17, 17, 1]),
    ],
)
def test_split_chunks(size: int, expected_flags: list, expected_lengths: list) -> None:
    payload = bytes(range(size))
    frames = records.split_chunks(0x03, payload)
    assert [f[1] for f in frames] == expected_flags
    assert [len(f) - 3 for f in frames] == expected_lengths
    assert [f[2] for f in frames] == list(range(len(frames)))
    assert all(f[0] == 0x00 for f in frames)
    assert b"".join(f[3:] for f in frames) == payload


def test_chunk_index_wraps() -> None:
    frames = records.split_chunks(0x03, bytes(17 * 257))
    assert frames[255][2] == 0xFF
    assert frames[256][2] == 0x00
    assert frames[256][1] == 0x83
