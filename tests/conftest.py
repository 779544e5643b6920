from __future__ import annotations

import os
import tempfile

# Log files and the store default live under XDG_DATA_HOME; point it (and the
# YAML config lookup) at a scratch directory before bandlink is imported.
_SCRATCH = tempfile.mkdtemp(prefix="bandlink-tests-")
os.environ["XDG_DATA_HOME"] = os.path.join(_SCRATCH, "data")
os.environ["XDG_CONFIG_HOME"] = os.path.join(_SCRATCH, "config")
for _name in ("BANDLINK_ADAPTER", "BANDLINK_DISCOVERY_TIMEOUT", "BANDLINK_AUTH_TIMEOUT"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402

from bandlink.bt_ref.constants import BAND_REQUIRED_CHARS  # noqa: E402
from bandlink.core import errors  # noqa: E402
from bandlink.core.model import DiscoveredDevice  # noqa: E402

BAND_PATH = "/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF"
BAND_ADDRESS = "AA:BB:CC:DD:EE:FF"


class FakeChannel:
    """Scripted stand-in for NotifyChannel / WriteChannel."""

    def __init__(self, frames=None, on_send=None):
        self.frames = list(frames or [])
        self.sent: list[bytes] = []
        self.on_send = on_send
        self.closed = False
        self.timeouts: list = []

    def recv(self, timeout=None):
        self.timeouts.append(timeout)
        if self.closed or not self.frames:
            raise errors.ChannelClosedError("fake")
        item = self.frames.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def send(self, data: bytes) -> None:
        self.sent.append(bytes(data))
        if self.on_send is not None:
            self.on_send(bytes(data))

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FakeCharacteristic:
    def __init__(self, uuid: str, value: bytes = b"", calls: list | None = None):
        self.uuid = uuid
        self.value = value
        self.writes: list[tuple[bytes, bool, bool]] = []
        self.notify = FakeChannel()
        self.write = FakeChannel()
        self.calls = calls if calls is not None else []

    def read_value(self) -> bytes:
        self.calls.append(("read", self.uuid))
        return self.value

    def write_value(self, value, *, without_response=False, authorize=False):
        self.calls.append(("write", self.uuid))
        self.writes.append((bytes(value), without_response, authorize))

    def acquire_notify(self):
        self.calls.append(("acquire_notify", self.uuid))
        return self.notify

    def acquire_write(self):
        self.calls.append(("acquire_write", self.uuid))
        return self.write


class FakeStream:
    """Device-event stream that fires the pending timer once the script runs out."""

    def __init__(self, session, events):
        self._session = session
        self._events = list(events)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self._events and not self.closed:
            return self._events.pop(0)
        if not self.closed:
            self._session.fire_timers()
        raise StopIteration

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, services=None, connected=False, known=(), events=()):
        self.services = services if services is not None else {}
        self.connected = connected
        self.known = set(known)
        self.events = list(events)
        self.calls: list = []
        self.timers: dict = {}
        self.discovery_filter = None
        self.stream = None

    # connection
    def is_connected(self, path):
        return self.connected

    def connect(self, path):
        self.calls.append("connect")
        self.connected = True

    def disconnect(self, path):
        self.calls.append("disconnect")
        self.connected = False

    def wait_services_resolved(self, path):
        self.calls.append("wait_services_resolved")

    def resolve_characteristics(self, path):
        self.calls.append("resolve_characteristics")
        return self.services

    def device_property_events(self, path):
        self.calls.append(("device_property_events", path))
        return iter(())

    # discovery
    def enumerate_devices(self):
        return set(self.known)

    def set_discovery_filter(self, uuids, transport="le", duplicate_data=False):
        self.discovery_filter = (list(uuids), transport, duplicate_data)

    def start_discovery(self):
        self.calls.append("start_discovery")

    def stop_discovery(self):
        self.calls.append("stop_discovery")

    def device_events(self):
        self.stream = FakeStream(self, self.events)
        return self.stream

    def call_later(self, seconds, callback):
        timer_id = len(self.timers) + 1
        self.timers[timer_id] = (seconds, callback)
        return timer_id

    def cancel_call(self, timer_id):
        self.calls.append(("cancel_call", timer_id))
        self.timers.pop(timer_id, None)

    def fire_timers(self):
        for _seconds, callback in list(self.timers.values()):
            callback()


def band_services(calls=None, skip=()):
    """Service map exposing every required characteristic except *skip*."""
    services: dict = {}
    for field_name, (service_uuid, char_uuid) in BAND_REQUIRED_CHARS.items():
        chars = services.setdefault(service_uuid, {})
        if field_name not in skip:
            chars[char_uuid] = FakeCharacteristic(char_uuid, calls=calls)
    return services


def make_device(path=BAND_PATH, address=BAND_ADDRESS, services=(), rssi=None):
    return DiscoveredDevice(path=path, address=address, services=frozenset(services), rssi=rssi)


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def session(calls) -> FakeSession:
    return FakeSession(services=band_services(calls))
