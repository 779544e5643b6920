"""Music-control notifications from the band.

:class:`MusicEventStream` turns the raw notify socket of the music
characteristic into a lazy sequence of :class:`MusicEvent` values.
"""

from __future__ import annotations

import enum
from typing import Callable, Iterator, Optional

from bandlink.bt_ref.constants import MUSIC_CODE_CLOSE, MUSIC_CODE_OPEN
from bandlink.core import errors
from bandlink.core.log import print_and_log, LOG__DEBUG

__all__ = ["MusicEvent", "decode_music_frame", "MusicEventStream"]


class MusicEvent(enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    PLAY_PAUSE = "play_pause"
    NEXT = "next"
    PREVIOUS = "previous"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"


_CODES = {
    MUSIC_CODE_OPEN: MusicEvent.OPEN,
    MUSIC_CODE_CLOSE: MusicEvent.CLOSE,
}


def decode_music_frame(frame: bytes) -> Optional[MusicEvent]:
    if len(frame) < 2:
        return None
    return _CODES.get(frame[1])


class MusicEventStream:
    """Iterate music events read from *channel* until it fails.

    *channel* must provide ``recv()`` returning one frame per call (see
    :class:`bandlink.dbuslayer.characteristic.NotifyChannel`).  The stream
    cannot be restarted once it has ended.
    """

    def __init__(self, channel):
        self._channel = channel
        self._done = False

    @property
    def closed(self) -> bool:
        return self._done

    def __iter__(self) -> Iterator[MusicEvent]:
        return self

    def __next__(self) -> MusicEvent:
        while not self._done:
            try:
                frame = self._channel.recv()
            except (errors.ChannelClosedError, OSError) as exc:
                print_and_log(f"[*] Music notification stream ended: {exc}", LOG__DEBUG)
                self.close()
                break
            event = decode_music_frame(frame)
            if event is not None:
                return event
            print_and_log(f"[DEBUG] Ignoring music frame {bytes(frame).hex()}", LOG__DEBUG)
        raise StopIteration

    def watch(self, callback: Callable[[MusicEvent], None]) -> int:
        """Deliver events to *callback* from the main loop instead of iterating.

        Needs a channel with ``watch()`` (``NotifyChannel``); the stream is
        closed once the channel hangs up.
        """

        def _on_frame(frame: bytes) -> None:
            event = decode_music_frame(frame)
            if event is not None:
                callback(event)

        return self._channel.watch(_on_frame, on_closed=self.close)

    def close(self) -> None:
        if not self._done:
            self._done = True
            close = getattr(self._channel, "close", None)
            if close is not None:
                close()
