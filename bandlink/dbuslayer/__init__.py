"""
D-Bus layer for bandlink.

Everything that imports dbus-python / PyGObject is loaded lazily so that
``bandlink.dbuslayer.device_band`` stays importable without them.
"""

from .device_band import Band, BandChars

__all__ = [
    "Band",
    "BandChars",
    "BluezSession",
    "Characteristic",
    "SignalStream",
    "MprisController",
]

_lazy_map = {
    "BluezSession": ".session",
    "Characteristic": ".characteristic",
    "SignalStream": ".signals",
    "MprisController": ".mpris",
}


def __getattr__(name):
    if name in _lazy_map:
        from importlib import import_module

        value = getattr(import_module(_lazy_map[name], __name__), name)
        globals()[name] = value
        return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
