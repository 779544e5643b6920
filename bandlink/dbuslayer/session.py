"""BlueZ session for one adapter.

:class:`BluezSession` is the single long-lived handle on the system bus.  It
is created once at start-up and handed to everything that talks to BlueZ.
It answers replayable queries against the object manager (device
enumeration, GATT resolution) and hands out independently consumed event
streams (device add/remove, per-device property changes).

D-Bus failures propagate unchanged; an object that simply lacks the expected
interface is treated as "not there" rather than as an error.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Set, Tuple

import dbus
import dbus.mainloop.glib
from gi.repository import GLib

from bandlink.bt_ref.constants import (
    ADAPTER_INTERFACE,
    ADAPTER_NAME,
    BLUEZ_NAMESPACE,
    BLUEZ_SERVICE_NAME,
    DBUS_OM_IFACE,
    DBUS_PROPERTIES,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_SERVICE_INTERFACE,
)
from bandlink.bt_ref.utils import device_path_to_address, is_device_path, normalize_uuid
from bandlink.core.log import print_and_log, LOG__DEBUG, LOG__GENERAL
from bandlink.core.model import (
    ConnectedChanged,
    DeviceAdded,
    DeviceEvent,
    DeviceRemoved,
    DiscoveredDevice,
    PropertyEvent,
    RssiChanged,
)
from bandlink.dbuslayer.characteristic import Characteristic
from bandlink.dbuslayer.signals import SignalStream, main_context_pump

__all__ = ["BluezSession", "ServiceCharacteristicMap"]

ServiceCharacteristicMap = Dict[str, Dict[str, Characteristic]]


def _device_from_properties(path: str, props) -> Optional[DiscoveredDevice]:
    """Build a :class:`DiscoveredDevice` from *Device1* properties, or None if incomplete."""
    if "Address" not in props or "UUIDs" not in props:
        return None
    rssi = props.get("RSSI")
    return DiscoveredDevice(
        path=str(path),
        address=str(props["Address"]),
        services=frozenset(normalize_uuid(u) for u in props["UUIDs"]),
        rssi=int(rssi) if rssi is not None else None,
        connected=bool(props.get("Connected", False)),
    )


class BluezSession:
    """Entry point for everything that talks to BlueZ over D-Bus."""

    def __init__(
        self,
        adapter_name: str = ADAPTER_NAME,
        bus=None,
        context: Optional[GLib.MainContext] = None,
    ):
        if bus is None:
            dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
            bus = dbus.SystemBus()
        self._bus = bus
        self._context = context or GLib.MainContext.default()

        self.adapter_name = adapter_name
        self.adapter_path = f"{BLUEZ_NAMESPACE}{adapter_name}"
        adapter_obj = self._bus.get_object(BLUEZ_SERVICE_NAME, self.adapter_path)
        self._adapter = dbus.Interface(adapter_obj, ADAPTER_INTERFACE)
        self._adapter_props = dbus.Interface(adapter_obj, DBUS_PROPERTIES)
        self._object_manager = dbus.Interface(
            self._bus.get_object(BLUEZ_SERVICE_NAME, "/"), DBUS_OM_IFACE
        )

    @property
    def bus(self):
        return self._bus

    def _stream(self, name: str) -> SignalStream:
        return SignalStream(name, pump=main_context_pump(self._context))

    def _device_props(self, path: str):
        return dbus.Interface(self._bus.get_object(BLUEZ_SERVICE_NAME, path), DBUS_PROPERTIES)

    def _device_iface(self, path: str):
        return dbus.Interface(self._bus.get_object(BLUEZ_SERVICE_NAME, path), DEVICE_INTERFACE)

    # ------------------------------------------------------------------
    # Adapter
    # ------------------------------------------------------------------
    def is_powered(self) -> bool:
        return bool(self._adapter_props.Get(ADAPTER_INTERFACE, "Powered"))

    def set_discovery_filter(self, uuids, transport: str = "le", duplicate_data: bool = False) -> None:
        discovery_filter = {
            "UUIDs": dbus.Array([dbus.String(u) for u in uuids], signature="s"),
            "Transport": dbus.String(transport),
            "DuplicateData": dbus.Boolean(duplicate_data),
        }
        self._adapter.SetDiscoveryFilter(dbus.Dictionary(discovery_filter, signature="sv"))

    def start_discovery(self) -> None:
        self._adapter.StartDiscovery()
        print_and_log("[*] Discovery started", LOG__DEBUG)

    def stop_discovery(self) -> None:
        self._adapter.StopDiscovery()
        print_and_log("[*] Discovery stopped", LOG__DEBUG)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def call_later(self, seconds: float, callback: Callable[[], None]) -> int:
        """Run *callback* once after *seconds*, from the main context."""

        def _fire(*_args):
            callback()
            return False

        source = GLib.timeout_source_new(int(seconds * 1000))
        source.set_callback(_fire)
        return source.attach(self._context)

    def cancel_call(self, source_id: int) -> None:
        source = self._context.find_source_by_id(source_id)
        if source is not None and not source.is_destroyed():
            source.destroy()

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def enumerate_devices(self) -> Set[DiscoveredDevice]:
        """Return every device object directly under this adapter."""
        devices: Set[DiscoveredDevice] = set()
        for path, interfaces in self._object_manager.GetManagedObjects().items():
            if not is_device_path(str(path), self.adapter_path):
                continue
            props = interfaces.get(DEVICE_INTERFACE)
            if props is None:
                continue
            device = _device_from_properties(path, props)
            if device is not None:
                devices.add(device)
        return devices

    def device_events(self) -> SignalStream[DeviceEvent]:
        """Stream of :class:`DeviceAdded` / :class:`DeviceRemoved` as BlueZ reports them."""
        stream: SignalStream[DeviceEvent] = self._stream("device-events")

        def _added(path, interfaces):
            path = str(path)
            if not is_device_path(path, self.adapter_path):
                return
            props = interfaces.get(DEVICE_INTERFACE)
            if props is None:
                return
            device = _device_from_properties(path, props)
            if device is not None:
                stream.push(DeviceAdded(device))

        def _removed(path, interfaces):
            path = str(path)
            if not is_device_path(path, self.adapter_path):
                return
            if DEVICE_INTERFACE in [str(i) for i in interfaces]:
                print_and_log(f"[DEBUG] Device {device_path_to_address(path)} removed", LOG__DEBUG)
                stream.push(DeviceRemoved(path))

        stream.add_match(
            self._bus.add_signal_receiver(
                _added,
                signal_name="InterfacesAdded",
                dbus_interface=DBUS_OM_IFACE,
                bus_name=BLUEZ_SERVICE_NAME,
                path="/",
            )
        )
        stream.add_match(
            self._bus.add_signal_receiver(
                _removed,
                signal_name="InterfacesRemoved",
                dbus_interface=DBUS_OM_IFACE,
                bus_name=BLUEZ_SERVICE_NAME,
                path="/",
            )
        )
        return stream

    def _properties_stream(self, path: str, name: str, handler) -> SignalStream:
        stream = self._stream(name)

        def _changed(interface, changed, _invalidated):
            if str(interface) != DEVICE_INTERFACE:
                return
            handler(stream, changed)

        stream.add_match(
            self._bus.add_signal_receiver(
                _changed,
                signal_name="PropertiesChanged",
                dbus_interface=DBUS_PROPERTIES,
                bus_name=BLUEZ_SERVICE_NAME,
                path=path,
            )
        )
        return stream

    def device_property_events(self, path: str) -> SignalStream[Tuple[str, PropertyEvent]]:
        """Stream of ``(path, RssiChanged | ConnectedChanged)`` for one device."""

        def _handle(stream, changed):
            if "RSSI" in changed:
                stream.push((path, RssiChanged(int(changed["RSSI"]))))
            if "Connected" in changed:
                stream.push((path, ConnectedChanged(bool(changed["Connected"]))))

        return self._properties_stream(path, f"properties:{path}", _handle)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    def is_connected(self, path: str) -> bool:
        return bool(self._device_props(path).Get(DEVICE_INTERFACE, "Connected"))

    def connect(self, path: str) -> None:
        print_and_log(f"[*] Connecting to {path}", LOG__DEBUG)
        self._device_iface(path).Connect()
        print_and_log(f"[+] Connected to {path}", LOG__GENERAL)

    def disconnect(self, path: str) -> None:
        self._device_iface(path).Disconnect()
        print_and_log(f"[*] Disconnected from {path}", LOG__GENERAL)

    def wait_services_resolved(self, path: str) -> None:
        """Block until BlueZ reports *ServicesResolved* for *path*.

        The signal is subscribed before the current value is read so a flip
        in between cannot be missed.  There is no timeout.
        """

        def _handle(stream, changed):
            if "ServicesResolved" in changed:
                stream.push(bool(changed["ServicesResolved"]))

        with self._properties_stream(path, f"services-resolved:{path}", _handle) as stream:
            if bool(self._device_props(path).Get(DEVICE_INTERFACE, "ServicesResolved")):
                return
            for resolved in stream:
                if resolved:
                    print_and_log(f"[+] Services resolved for {path}", LOG__DEBUG)
                    return

    # ------------------------------------------------------------------
    # GATT
    # ------------------------------------------------------------------
    def resolve_characteristics(self, device_path: str) -> ServiceCharacteristicMap:
        """Map service UUID -> characteristic UUID -> :class:`Characteristic` for a device."""
        prefix = device_path.rstrip("/") + "/"
        services: Dict[str, str] = {}  # service path -> uuid
        chars: Dict[str, Dict[str, Characteristic]] = {}  # service path -> {uuid: char}

        for path, interfaces in self._object_manager.GetManagedObjects().items():
            path = str(path)
            if not path.startswith(prefix):
                continue
            if GATT_SERVICE_INTERFACE in interfaces:
                props = interfaces[GATT_SERVICE_INTERFACE]
                services[path] = normalize_uuid(props["UUID"])
            elif GATT_CHARACTERISTIC_INTERFACE in interfaces:
                props = interfaces[GATT_CHARACTERISTIC_INTERFACE]
                service_path = str(props["Service"])
                uuid = normalize_uuid(props["UUID"])
                chars.setdefault(service_path, {})[uuid] = Characteristic(
                    self._bus, path, uuid, service_path
                )

        resolved: ServiceCharacteristicMap = {}
        for service_path, service_uuid in services.items():
            resolved.setdefault(service_uuid, {}).update(chars.get(service_path, {}))

        summary = {uuid: sorted(found) for uuid, found in resolved.items()}
        print_and_log(
            f"[DEBUG] Resolved {len(resolved)} service(s) under {device_path}: {summary}",
            LOG__DEBUG,
        )
        return resolved
