"""Desktop notifications as a stream.

The session bus connection is turned into a monitor that only sees
``org.freedesktop.Notifications.Notify`` method calls.  A monitoring
connection can no longer send messages, so a private connection is used and
the normal session bus stays available for everything else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import dbus

from bandlink.ble_ops.records import Alert, AlertType
from bandlink.bt_ref.constants import (
    DBUS_MONITORING_IFACE,
    DBUS_OBJECT_PATH,
    DBUS_SERVICE_NAME,
    NOTIFICATIONS_INTERFACE,
    NOTIFICATIONS_PATH,
    NOTIFY_SIGNATURE,
)
from bandlink.core.log import print_and_log, LOG__DEBUG
from bandlink.dbuslayer.signals import SignalStream

__all__ = [
    "Notification",
    "NOTIFY_MATCH_RULE",
    "notification_from_message",
    "stream_notifications",
    "notification_to_alert",
]

NOTIFY_MATCH_RULE = (
    "type='method_call',"
    f"path='{NOTIFICATIONS_PATH}',"
    f"interface='{NOTIFICATIONS_INTERFACE}',"
    "member='Notify'"
)


@dataclass(frozen=True)
class Notification:
    app: str
    summary: str
    body: str


class _MessageFilter:
    """Gives a message filter the ``remove()`` of a signal match."""

    def __init__(self, bus, callback):
        self._bus = bus
        self._callback = callback

    def remove(self) -> None:
        self._bus.remove_message_filter(self._callback)


def _is_notify_call(message) -> bool:
    return (
        message.get_path() == NOTIFICATIONS_PATH
        and message.get_interface() == NOTIFICATIONS_INTERFACE
        and message.get_member() == "Notify"
    )


def notification_from_message(message) -> Optional[Notification]:
    """Parse a ``Notify`` call; returns None (after logging) on a bad signature.

    Arguments are ``app_name, replaces_id, app_icon, summary, body, actions,
    hints, expire_timeout``.
    """
    signature = message.get_signature()
    if signature != NOTIFY_SIGNATURE:
        print_and_log(
            f"[-] Ignoring notification with wrong signature {signature!r}",
            LOG__DEBUG,
        )
        return None
    args = message.get_args_list()
    return Notification(app=str(args[0]), summary=str(args[3]), body=str(args[4]))


def stream_notifications(bus=None) -> SignalStream[Notification]:
    """Return a stream of every notification sent on the session bus.

    *bus* must be a connection that may be turned into a monitor; by default
    a new private session bus connection is opened.
    """
    if bus is None:
        bus = dbus.SessionBus(private=True)

    stream: SignalStream[Notification] = SignalStream("notifications")

    def _filter(_bus, message):
        if not _is_notify_call(message):
            return
        notification = notification_from_message(message)
        if notification is not None:
            stream.push(notification)

    monitoring = dbus.Interface(
        bus.get_object(DBUS_SERVICE_NAME, DBUS_OBJECT_PATH), DBUS_MONITORING_IFACE
    )
    monitoring.BecomeMonitor([NOTIFY_MATCH_RULE], dbus.UInt32(0))
    bus.add_message_filter(_filter)
    stream.add_match(_MessageFilter(bus, _filter))
    print_and_log("[*] Monitoring desktop notifications", LOG__DEBUG)
    return stream


def notification_to_alert(notification: Notification) -> Alert:
    return Alert(
        type=AlertType.MESSAGE,
        title=notification.summary or notification.app,
        message=notification.body,
    )
