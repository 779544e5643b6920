"""
Bluetooth reference data for bandlink: D-Bus names, band UUIDs and path helpers.
"""

from . import constants, utils

__all__ = ["constants", "utils"]
