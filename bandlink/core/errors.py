"""Core error classes for bandlink.

Transport failures (``dbus.exceptions.DBusException`` and ``OSError`` from the
acquired characteristic sockets) are *not* wrapped: they reach the caller
unchanged so the whole connect sequence can be retried.
"""

from __future__ import annotations

from typing import Optional

from bandlink.bt_ref.constants import (
    RESULT_ERR,
    RESULT_ERR_ACCESS_DENIED,
    RESULT_ERR_BAD_ARGS,
    RESULT_ERR_NO_REPLY,
    RESULT_ERR_NOT_AUTHORIZED,
    RESULT_ERR_REMOTE_DISCONNECT,
    RESULT_ERR_SERVICES_NOT_RESOLVED,
    RESULT_ERR_UNKNOWN_SERVCE,
    RESULT_ERR_VALUE,
    RESULT_ERR_WRONG_STATE,
)


class BandError(Exception):
    """Base exception for every error raised by bandlink itself.

    The `.code` attribute maps to bt_ref.constants RESULT_* values.
    """

    def __init__(self, message: str, code: int = RESULT_ERR):
        super().__init__(message)
        self.code = code


class MissingServicesOrChars(BandError):
    """Raised when the device does not expose every required characteristic."""

    def __init__(self, device_address: str, missing: Optional[list] = None):
        msg = f"Device {device_address} is missing required services or characteristics"
        if missing:
            msg += f": {', '.join(missing)}"
        super().__init__(msg, RESULT_ERR_UNKNOWN_SERVCE)
        self.device_address = device_address
        self.missing = list(missing or [])


class NotInitialized(BandError):
    """Raised when an operation needs resolved characteristics."""

    def __init__(self, operation: str):
        super().__init__(
            f"{operation} requires an initialized band; call initialize() first",
            RESULT_ERR_SERVICES_NOT_RESOLVED,
        )
        self.operation = operation


class InvalidTime(BandError):
    """Raised when the band reports an impossible calendar date."""

    def __init__(self, raw: bytes):
        super().__init__(f"Invalid timestamp bytes: {bytes(raw).hex()}", RESULT_ERR_VALUE)
        self.raw = bytes(raw)


class InvalidRecordError(BandError):
    """Raised when a record read from the band is shorter than its layout."""

    def __init__(self, record: str, expected: int, actual: int):
        super().__init__(
            f"{record} record needs {expected} bytes, got {actual}", RESULT_ERR_VALUE
        )
        self.record = record
        self.expected = expected
        self.actual = actual


class FirmwareDecodeError(BandError):
    """Raised when the firmware revision is not valid UTF-8."""

    def __init__(self, raw: bytes):
        super().__init__(f"Firmware revision is not valid UTF-8: {bytes(raw).hex()}", RESULT_ERR_VALUE)
        self.raw = bytes(raw)


class RequiresAuth(BandError):
    """Raised when an operation is attempted before authenticating."""

    def __init__(self, operation: str):
        super().__init__(f"{operation} requires authentication", RESULT_ERR_NOT_AUTHORIZED)
        self.operation = operation


class InvalidAuthKey(BandError):
    """Raised when the band rejects the authentication key."""

    def __init__(self, device_address: str):
        super().__init__(
            f"Device {device_address} rejected the authentication key",
            RESULT_ERR_ACCESS_DENIED,
        )
        self.device_address = device_address


class InvalidLockPin(BandError):
    """Raised when a band-lock PIN is not four digits in the range 1-4."""

    def __init__(self, pin: str):
        super().__init__(
            f"Invalid band lock PIN {pin!r}: expected 4 digits, each 1-4",
            RESULT_ERR_BAD_ARGS,
        )
        self.pin = pin


class InvalidArgumentError(BandError):
    """Raised when invalid arguments are provided."""

    def __init__(self, argument: str, reason: str = None):
        message = f"Invalid argument: {argument}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, RESULT_ERR_BAD_ARGS)
        self.argument = argument
        self.reason = reason


class TimeoutError(BandError):
    """Raised when an operation times out."""

    def __init__(self, operation: str):
        super().__init__(f"Operation timed out: {operation}", RESULT_ERR_NO_REPLY)
        self.operation = operation


class ChannelClosedError(BandError):
    """Raised when an acquired notify/write socket is hung up by BlueZ."""

    def __init__(self, char_uuid: str):
        super().__init__(f"Channel for characteristic {char_uuid} closed", RESULT_ERR_REMOTE_DISCONNECT)
        self.char_uuid = char_uuid


class NotReadyError(BandError):
    """Raised when the Bluetooth adapter is powered off or not initialised."""

    def __init__(self):
        super().__init__(
            "Bluetooth adapter not ready. Power on the adapter or enable it via bluetoothctl.",
            RESULT_ERR_WRONG_STATE,
        )


__all__ = [
    "BandError",
    "MissingServicesOrChars",
    "NotInitialized",
    "InvalidTime",
    "InvalidRecordError",
    "FirmwareDecodeError",
    "RequiresAuth",
    "InvalidAuthKey",
    "InvalidLockPin",
    "InvalidArgumentError",
    "TimeoutError",
    "ChannelClosedError",
    "NotReadyError",
]
