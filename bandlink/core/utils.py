"""Small helpers shared by the CLI and the store."""

from __future__ import annotations

from typing import Optional

FEET_PER_METER = 3.28084
METERS_PER_MILE = 1609.344
# 161 m is the first whole metre that reads as 0.1 mi
IMPERIAL_MILES_THRESHOLD_M = 161


def decode_hex(hex_string: str) -> Optional[bytes]:
    """Decode *hex_string* into bytes, or return None if it is malformed."""
    hex_string = hex_string.strip()
    if len(hex_string) % 2:
        return None
    try:
        return bytes.fromhex(hex_string)
    except ValueError:
        return None


def meters_to_imperial(meters: int) -> str:
    """Format a distance in metres as feet (short distances) or miles."""
    if meters < IMPERIAL_MILES_THRESHOLD_M:
        return f"{round(meters * FEET_PER_METER)} ft"
    return f"{meters / METERS_PER_MILE:.1f} mi"


def format_rssi(rssi: Optional[int]) -> str:
    if rssi is None:
        return "n/a"
    return f"{rssi} dBm"
