from __future__ import annotations

from conftest import FakeChannel

from bandlink.ble_ops.music import MusicEvent, MusicEventStream, decode_music_frame


def test_decode_music_frame() -> None:
    assert decode_music_frame(b"\x01\xe0") is MusicEvent.OPEN
    assert decode_music_frame(b"\x01\xe1\x00") is MusicEvent.CLOSE
    assert decode_music_frame(b"\x01\x05") is None
    assert decode_music_frame(b"\xe0") is None


def test_stream_skips_unknown_frames_and_ends_on_close() -> None:
    channel = FakeChannel([b"\x01\xe0", b"\x01\x42", b"", b"\x01\xe1"])
    stream = MusicEventStream(channel)
    assert list(stream) == [MusicEvent.OPEN, MusicEvent.CLOSE]
    assert channel.closed
    assert stream.closed


def test_stream_ends_on_os_error() -> None:
    channel = FakeChannel([b"\x01\xe0", OSError("socket gone"), b"\x01\xe1"])
    stream = MusicEventStream(channel)
    assert next(stream) is MusicEvent.OPEN
    assert list(stream) == []
    # not restartable
    assert list(stream) == []
    assert channel.closed
