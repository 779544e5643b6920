from __future__ import annotations

import pytest

dbus = pytest.importorskip("dbus")
pytest.importorskip("gi.repository")

from gi.repository import GLib  # noqa: E402

from dbus_fakes import FakeBus  # noqa: E402

from bandlink.bt_ref.constants import (  # noqa: E402
    ADAPTER_INTERFACE,
    DBUS_OM_IFACE,
    DBUS_PROPERTIES,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_SERVICE_INTERFACE,
    SERVICE_BAND_0,
    SERVICE_BAND_1,
)
from bandlink.core.model import (  # noqa: E402
    ConnectedChanged,
    DeviceAdded,
    DeviceRemoved,
    RssiChanged,
)
from bandlink.dbuslayer.characteristic import Characteristic  # noqa: E402
from bandlink.dbuslayer.session import BluezSession  # noqa: E402

ADAPTER = "/org/bluez/hci0"
DEV = ADAPTER + "/dev_AA_BB_CC_DD_EE_FF"


def _device_props(address="AA:BB:CC:DD:EE:FF", uuids=(SERVICE_BAND_0,), **extra):
    props = {"Address": address, "UUIDs": list(uuids)}
    props.update(extra)
    return props


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def session(bus: FakeBus) -> BluezSession:
    return BluezSession("hci0", bus=bus, context=GLib.MainContext())


def _managed(bus: FakeBus, objects: dict) -> None:
    bus.get_object("org.bluez", "/").replies[(DBUS_OM_IFACE, "GetManagedObjects")] = objects


def test_enumerate_devices_only_direct_children(bus: FakeBus, session: BluezSession) -> None:
    _managed(
        bus,
        {
            ADAPTER: {ADAPTER_INTERFACE: {"Powered": True}},
            DEV: {DEVICE_INTERFACE: _device_props(RSSI=-61, Connected=True)},
            DEV + "/service0010": {GATT_SERVICE_INTERFACE: {"UUID": SERVICE_BAND_0}},
            ADAPTER + "/dev_11_22_33_44_55_66": {DEVICE_INTERFACE: {"Address": "11:22:33:44:55:66"}},
            "/org/bluez/hci1/dev_01_02_03_04_05_06": {DEVICE_INTERFACE: _device_props("01:02:03:04:05:06")},
        },
    )
    (device,) = session.enumerate_devices()
    assert device.path == DEV
    assert device.address == "AA:BB:CC:DD:EE:FF"
    assert device.rssi == -61
    assert device.connected
    assert device.advertises(SERVICE_BAND_0)


def test_device_events(bus: FakeBus, session: BluezSession) -> None:
    stream = session.device_events()
    added = bus.receiver("InterfacesAdded")
    removed = bus.receiver("InterfacesRemoved")

    added(dbus.ObjectPath(DEV), {DEVICE_INTERFACE: _device_props()})
    added(dbus.ObjectPath(DEV + "/service0010"), {GATT_SERVICE_INTERFACE: {"UUID": SERVICE_BAND_0}})
    added(dbus.ObjectPath(ADAPTER + "/dev_XX"), {DEVICE_INTERFACE: {"Address": "XX"}})
    removed(dbus.ObjectPath(DEV + "/service0010"), [GATT_SERVICE_INTERFACE])
    removed(dbus.ObjectPath(DEV), [DEVICE_INTERFACE])

    events = stream.drain()
    assert len(events) == 2
    assert isinstance(events[0], DeviceAdded)
    assert events[0].device.path == DEV
    assert events[1] == DeviceRemoved(DEV)

    stream.close()
    assert bus.receivers == []
    assert list(stream) == []


def test_device_property_events(bus: FakeBus, session: BluezSession) -> None:
    stream = session.device_property_events(DEV)
    changed = bus.receiver("PropertiesChanged", path=DEV)

    changed(DEVICE_INTERFACE, {"RSSI": dbus.Int16(-70), "Connected": dbus.Boolean(False)}, [])
    changed(GATT_SERVICE_INTERFACE, {"RSSI": dbus.Int16(-10)}, [])
    changed(DEVICE_INTERFACE, {"Name": "band"}, [])

    assert stream.drain() == [(DEV, RssiChanged(-70)), (DEV, ConnectedChanged(False))]


def test_wait_services_resolved_when_already_resolved(bus: FakeBus, session: BluezSession) -> None:
    bus.get_object("org.bluez", DEV).replies[(DBUS_PROPERTIES, "Get")] = lambda iface, name: True
    session.wait_services_resolved(DEV)
    assert bus.receivers == []


def test_wait_services_resolved_subscribes_before_polling(bus: FakeBus, session: BluezSession) -> None:
    def _get(iface, name):
        # the flip lands between subscribing and reading the property
        changed = bus.receiver("PropertiesChanged", path=DEV)
        changed(DEVICE_INTERFACE, {"ServicesResolved": dbus.Boolean(True)}, [])
        return dbus.Boolean(False)

    bus.get_object("org.bluez", DEV).replies[(DBUS_PROPERTIES, "Get")] = _get
    session.wait_services_resolved(DEV)
    assert bus.receivers == []


def test_wait_services_resolved_waits_for_true(bus: FakeBus, session: BluezSession) -> None:
    bus.get_object("org.bluez", DEV).replies[(DBUS_PROPERTIES, "Get")] = lambda iface, name: dbus.Boolean(False)
    reports = []

    def _report(value):
        reports.append(value)
        changed = bus.receiver("PropertiesChanged", path=DEV)
        changed(DEVICE_INTERFACE, {"ServicesResolved": dbus.Boolean(value)}, [])

    session.call_later(0, lambda: _report(False))
    session.call_later(0.05, lambda: _report(True))
    session.wait_services_resolved(DEV)

    assert reports == [False, True]
    assert bus.receivers == []


def test_set_discovery_filter(bus: FakeBus, session: BluezSession) -> None:
    session.set_discovery_filter([SERVICE_BAND_0])
    adapter = bus.get_object("org.bluez", ADAPTER)
    ((iface, member, (discovery_filter,)),) = adapter.calls
    assert (iface, member) == (ADAPTER_INTERFACE, "SetDiscoveryFilter")
    assert list(discovery_filter["UUIDs"]) == [SERVICE_BAND_0]
    assert discovery_filter["Transport"] == "le"
    assert not discovery_filter["DuplicateData"]


def test_resolve_characteristics(bus: FakeBus, session: BluezSession) -> None:
    char_uuid = "00000009-0000-3512-2118-0009af100700"
    _managed(
        bus,
        {
            DEV: {DEVICE_INTERFACE: _device_props()},
            DEV + "/service0010": {GATT_SERVICE_INTERFACE: {"UUID": SERVICE_BAND_0.upper()}},
            DEV + "/service0020": {GATT_SERVICE_INTERFACE: {"UUID": SERVICE_BAND_1}},
            DEV + "/service0020/char0021": {
                GATT_CHARACTERISTIC_INTERFACE: {"UUID": char_uuid, "Service": DEV + "/service0020"}
            },
            ADAPTER + "/dev_11_22_33_44_55_66/service0010/char0011": {
                GATT_CHARACTERISTIC_INTERFACE: {"UUID": "x", "Service": ADAPTER + "/dev_11_22_33_44_55_66/service0010"}
            },
        },
    )
    resolved = session.resolve_characteristics(DEV)
    assert resolved[SERVICE_BAND_0] == {}
    char = resolved[SERVICE_BAND_1][char_uuid]
    assert isinstance(char, Characteristic)
    assert char.path == DEV + "/service0020/char0021"
    assert set(resolved) == {SERVICE_BAND_0, SERVICE_BAND_1}


def test_characteristic_write_options(bus: FakeBus) -> None:
    path = DEV + "/service0020/char0021"
    char = Characteristic(bus, path, "uuid")
    char.write_value(b"\x01\x02", without_response=True)
    char.write_value([3], authorize=True)

    obj = bus.get_object("org.bluez", path)
    (_i, member, (value, opts)), (_i2, _m2, (value2, opts2)) = obj.calls
    assert member == "WriteValue"
    assert bytes(value) == b"\x01\x02"
    assert dict(opts) == {"type": "command"}
    assert bytes(value2) == b"\x03"
    assert opts2["type"] == "request"
    assert opts2["prepare-authorize"]


def test_characteristic_read_value(bus: FakeBus) -> None:
    path = DEV + "/service0010/char0011"
    bus.get_object("org.bluez", path).replies[(GATT_CHARACTERISTIC_INTERFACE, "ReadValue")] = (
        lambda opts: dbus.Array([dbus.Byte(1), dbus.Byte(255)], signature="y")
    )
    assert Characteristic(bus, path, "uuid").read_value() == b"\x01\xff"
