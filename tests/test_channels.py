from __future__ import annotations

import socket

import pytest

pytest.importorskip("dbus")
pytest.importorskip("gi.repository")

from gi.repository import GLib  # noqa: E402

from bandlink.core import errors  # noqa: E402
from bandlink.dbuslayer.characteristic import NotifyChannel, WriteChannel  # noqa: E402

CHAR_UUID = "00000009-0000-3512-2118-0009af100700"


@pytest.fixture
def pair():
    ours, band = socket.socketpair(socket.AF_UNIX, socket.SOCK_SEQPACKET)
    yield ours, band
    band.close()
    ours.close()


def test_notify_recv_one_frame_per_packet(pair) -> None:
    ours, band = pair
    band.send(b"\x10\x01\x01")
    band.send(b"\x10\x03\x01")
    with NotifyChannel(ours.detach(), 20, CHAR_UUID) as notify:
        assert notify.recv(timeout=1) == b"\x10\x01\x01"
        assert notify.recv() == b"\x10\x03\x01"
    assert notify.closed


def test_notify_recv_timeout(pair) -> None:
    ours, _band = pair
    with NotifyChannel(ours.detach(), 20, CHAR_UUID) as notify:
        with pytest.raises(errors.TimeoutError):
            notify.recv(timeout=0.05)


def test_notify_recv_peer_closed(pair) -> None:
    ours, band = pair
    band.close()
    with NotifyChannel(ours.detach(), 20, CHAR_UUID) as notify:
        with pytest.raises(errors.ChannelClosedError):
            notify.recv(timeout=1)


def test_notify_recv_after_close(pair) -> None:
    ours, _band = pair
    notify = NotifyChannel(ours.detach(), 20, CHAR_UUID)
    notify.close()
    with pytest.raises(errors.ChannelClosedError):
        notify.recv()


def test_notify_watch_until_hangup(pair) -> None:
    ours, band = pair
    frames = []
    hangups = []
    notify = NotifyChannel(ours.detach(), 20, CHAR_UUID)
    notify.watch(frames.append, on_closed=lambda: hangups.append(True))

    band.send(b"\xe0")
    band.send(b"\xe1")
    band.close()

    context = GLib.MainContext.default()
    for _ in range(50):
        if hangups:
            break
        context.iteration(True)

    assert frames == [b"\xe0", b"\xe1"]
    assert hangups == [True]
    notify.close()


def test_write_send(pair) -> None:
    ours, band = pair
    with WriteChannel(ours.detach(), 20, CHAR_UUID) as write:
        write.send(b"\x02\x00")
        write.send(bytearray(b"\x03\x00"))
    assert band.recv(20) == b"\x02\x00"
    assert band.recv(20) == b"\x03\x00"
    with pytest.raises(errors.ChannelClosedError):
        write.send(b"\x00")
