"""Band operations that do not need a bus connection of their own.

Record codecs, the auth handshake primitives, the music notification decoder
and discovery (which is driven through a session handle)."""

from bandlink.ble_ops.scan import discover
from bandlink.ble_ops.music import MusicEvent, MusicEventStream

__all__ = [
    "discover",
    "MusicEvent",
    "MusicEventStream",
]
