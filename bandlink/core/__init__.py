"""
Core package initialisation for bandlink.

Kept free of D-Bus imports so the codecs, store and error classes can be used
(and tested) on machines without dbus-python.
"""

from bandlink.core.errors import (
    BandError,
    NotInitialized,
    RequiresAuth,
)

__all__ = [
    "BandError",
    "NotInitialized",
    "RequiresAuth",
]
