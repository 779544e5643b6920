"""
Command-line interface for bandlink.
"""

import argparse
import os
import sys
from datetime import datetime

from . import __version__
from .ble_ops.records import ActivityGoal, Alert, AlertType, BandLock
from .core import config
from .core.errors import BandError
from .core.log import get_logger, print_and_log, LOG__DEBUG, LOG__GENERAL
from .core.store import Store
from .core.utils import decode_hex, format_rssi, meters_to_imperial
from .bt_ref.constants import AUTH_KEY_LEN
from .bt_ref.utils import device_address_to_path


def _add_mac(parser):
    parser.add_argument("mac", help="Band MAC address")


def parse_args(args=None):
    parser = argparse.ArgumentParser(
        description="bandlink - talk to a Mi Band 4 over BlueZ"
    )
    parser.add_argument("--version", action="version", version=f"bandlink {__version__}")
    parser.add_argument("--adapter", default=config.ADAPTER, help="Bluetooth adapter (default: %(default)s)")
    parser.add_argument("--store", default=str(config.STORE_FILE), help="Band store file (default: %(default)s)")

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode")

    # Scan mode
    scan_parser = subparsers.add_parser("scan", help="Discover nearby bands")
    scan_parser.add_argument("--timeout", type=float, default=config.DISCOVERY_TIMEOUT, help="Scan duration (s)")

    # Info mode
    info_parser = subparsers.add_parser("info", help="Battery, time, firmware and (with a stored key) activity")
    _add_mac(info_parser)

    # Auth mode
    auth_parser = subparsers.add_parser("auth", help="Authenticate, optionally storing a new key")
    _add_mac(auth_parser)
    auth_parser.add_argument("--key", help="Auth key as 32 hex characters; stored on success")

    # Time sync
    time_parser = subparsers.add_parser("sync-time", help="Set the band clock to local time")
    _add_mac(time_parser)

    # Alert
    alert_parser = subparsers.add_parser("alert", help="Send an alert to the band")
    _add_mac(alert_parser)
    alert_parser.add_argument("--type", choices=[t.name.lower() for t in AlertType], default="message")
    alert_parser.add_argument("--title", required=True)
    alert_parser.add_argument("--message", default="")

    # Activity goal
    goal_parser = subparsers.add_parser("goal", help="Set the daily step goal")
    _add_mac(goal_parser)
    goal_parser.add_argument("--steps", type=int, required=True)
    goal_parser.add_argument("--notify", dest="notify", action="store_true", default=True, help="Notify when reached (default)")
    goal_parser.add_argument("--no-notify", dest="notify", action="store_false")

    # Band lock
    lock_parser = subparsers.add_parser("lock", help="Configure the band lock PIN")
    _add_mac(lock_parser)
    lock_parser.add_argument("--pin", required=True, help="Four digits, each 1-4")
    lock_parser.add_argument("--enable", dest="enabled", action="store_true", default=True)
    lock_parser.add_argument("--disable", dest="enabled", action="store_false")

    # Alias
    alias_parser = subparsers.add_parser("alias", help="Name a band in the local store")
    _add_mac(alias_parser)
    alias_parser.add_argument("name")

    # Watch
    watch_parser = subparsers.add_parser("watch", help="Forward notifications and media to the band")
    _add_mac(watch_parser)

    return parser.parse_args(args)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _open_band(session, mac):
    """Find *mac* (scanning if BlueZ does not know it yet) and initialize it."""
    from .ble_ops.scan import discover
    from .dbuslayer.device_band import Band

    mac = mac.upper()
    path = device_address_to_path(mac, session.adapter_path)
    known = {d.path: d for d in session.enumerate_devices()}
    device = known.get(path)
    if device is None:
        print_and_log(f"[*] {mac} not known yet, scanning", LOG__GENERAL)
        device = discover(session, config.DISCOVERY_TIMEOUT).get(path)
    if device is None:
        raise BandError(f"Band {mac} not found")

    band = Band(session, device)
    band.initialize()
    return band


def _stored_key(store, mac):
    conf = store.get_band(mac)
    key = decode_hex(conf.auth_key) if conf.auth_key else None
    if key is None or len(key) != AUTH_KEY_LEN:
        return None
    return key


def _authenticate(band, store, mac):
    key = _stored_key(store, mac)
    if key is None:
        raise BandError(f"No auth key stored for {mac}; run 'bandlink auth {mac} --key <hex>'")
    band.authenticate(key, timeout=config.AUTH_TIMEOUT)


def _print_info(band, store, mac):
    name = store.get_band_alias(mac)
    print_and_log(f"[*] {name} ({band.address})", LOG__GENERAL)
    print_and_log(f"    Firmware: {band.get_firmware_revision()}", LOG__GENERAL)

    battery = band.get_battery()
    charging = " (charging)" if battery.charging else ""
    print_and_log(f"    Battery: {battery.level}%{charging}, last charged {battery.last_charge}", LOG__GENERAL)
    print_and_log(f"    Band time: {band.get_band_time()}", LOG__GENERAL)

    if _stored_key(store, mac) is None:
        print_and_log("    (no auth key stored; activity unavailable)", LOG__GENERAL)
        return
    _authenticate(band, store, mac)
    activity = band.get_current_activity()
    print_and_log(
        f"    Activity: {activity.steps} steps, {meters_to_imperial(activity.meters)}, {activity.calories} kcal",
        LOG__GENERAL,
    )


def _watch(band):
    """Mirror desktop notifications and media state onto the band until it goes away."""
    from gi.repository import GLib

    from .ble_ops.music import MusicEvent
    from .dbuslayer.mpris import MprisController
    from .dbuslayer.notifications import notification_to_alert, stream_notifications

    notifications = stream_notifications()
    mpris = MprisController()
    changes = mpris.changes()
    music = band.stream_media_button_events()
    buttons = []
    music.watch(buttons.append)

    band.set_media_info(mpris.media_info())
    print_and_log(f"[*] Watching; forwarding to {band.address} (Ctrl-C to stop)", LOG__GENERAL)

    context = GLib.MainContext.default()
    try:
        while not music.closed:
            context.iteration(True)
            for notification in notifications.drain():
                print_and_log(f"[*] Notification from {notification.app}", LOG__DEBUG)
                band.send_alert(notification_to_alert(notification))
            refresh = bool(changes.drain())
            for event in buttons:
                if event is MusicEvent.OPEN:
                    refresh = True
                else:
                    mpris.handle_event(event)
            buttons.clear()
            if refresh:
                band.set_media_info(mpris.media_info())
    finally:
        music.close()
        changes.close()
        notifications.close()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(args=None):
    """Main entry point for bandlink."""
    args = parse_args(args)
    if args.mode is None:
        parse_args(["--help"])

    # Optional: BANDLINK_LOG_LEVEL=DEBUG adds tracebacks to the general log
    _log = get_logger(__name__)
    _lvl = os.getenv("BANDLINK_LOG_LEVEL")
    if _lvl:
        get_logger().setLevel(_lvl.upper())

    import dbus

    try:
        store = Store.init(args.store)

        if args.mode == "alias":
            store.get_band(args.mac).alias = args.name
            store.save()
            print_and_log(f"[+] {args.mac.upper()} is now '{args.name}'", LOG__GENERAL)
            return 0

        from .dbuslayer.session import BluezSession
        from .core.errors import NotReadyError

        session = BluezSession(args.adapter)
        if not session.is_powered():
            raise NotReadyError()

        if args.mode == "scan":
            from .ble_ops.scan import discover

            devices = discover(session, args.timeout)
            for device in devices.values():
                name = store.get_band_alias(device.address)
                print_and_log(f"  {device.address} ({name}) - RSSI: {format_rssi(device.rssi)}", LOG__GENERAL)
            return 0

        if args.mode == "auth" and args.key is not None:
            key = decode_hex(args.key)
            if key is None or len(key) != AUTH_KEY_LEN:
                print_and_log(f"[-] --key must be {AUTH_KEY_LEN * 2} hex characters", LOG__GENERAL)
                return 1

        band = _open_band(session, args.mac)

        if args.mode == "info":
            _print_info(band, store, args.mac)

        elif args.mode == "auth":
            if args.key is not None:
                band.authenticate(decode_hex(args.key), timeout=config.AUTH_TIMEOUT)
                store.get_band(args.mac).auth_key = args.key.strip().lower()
                store.save()
            else:
                _authenticate(band, store, args.mac)

        elif args.mode == "sync-time":
            _authenticate(band, store, args.mac)
            now = datetime.now()
            band.set_band_time(now)
            print_and_log(f"[+] Band time set to {now:%Y-%m-%d %H:%M:%S}", LOG__GENERAL)

        elif args.mode == "alert":
            band.send_alert(Alert(AlertType[args.type.upper()], args.title, args.message))
            print_and_log("[+] Alert sent", LOG__GENERAL)

        elif args.mode == "goal":
            _authenticate(band, store, args.mac)
            goal = ActivityGoal(steps=args.steps, notifications=args.notify)
            band.set_activity_goal(goal)
            store.get_band(args.mac).activity_goal = goal
            store.save()
            print_and_log(f"[+] Step goal set to {goal.steps}", LOG__GENERAL)

        elif args.mode == "lock":
            lock = BandLock(pin=args.pin, enabled=args.enabled)
            band.set_band_lock(lock)
            store.get_band(args.mac).band_lock = lock
            store.save()
            state = "enabled" if lock.enabled else "disabled"
            print_and_log(f"[+] Band lock {state}", LOG__GENERAL)

        elif args.mode == "watch":
            _authenticate(band, store, args.mac)
            _watch(band)

        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except BandError as e:
        print_and_log(f"[-] {e}", LOG__GENERAL)
        _log.debug("%s failed (code %d)", args.mode, e.code, exc_info=True)
        return 1
    except ValueError as e:
        print_and_log(f"[-] {e}", LOG__GENERAL)
        _log.debug("%s failed", args.mode, exc_info=True)
        return 1
    except dbus.exceptions.DBusException as e:
        print_and_log(f"[-] D-Bus error: {e.get_dbus_name()}: {e.get_dbus_message()}", LOG__GENERAL)
        _log.debug("%s failed", args.mode, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
