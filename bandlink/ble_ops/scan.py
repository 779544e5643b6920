"""Band discovery.

The adapter is asked for LE devices advertising the band service.  BlueZ's
discovery filter is a hint rather than a guarantee, so every reported device
is checked against the service UUID again before it is accepted.

The scan is the only operation bounded by a timer: a ``call_later`` callback
closes the device-event stream, which ends the loop below.
"""

from __future__ import annotations

from typing import Dict

from bandlink.bt_ref.constants import SERVICE_BAND_0
from bandlink.bt_ref.utils import normalize_uuid
from bandlink.core import config
from bandlink.core.log import print_and_log, LOG__DEBUG, LOG__GENERAL
from bandlink.core.model import DeviceAdded, DeviceRemoved, DiscoveredDevice

__all__ = ["discover"]


def discover(
    session,
    timeout: float = config.DISCOVERY_TIMEOUT,
    service_uuid: str = SERVICE_BAND_0,
) -> Dict[str, DiscoveredDevice]:
    """Scan for *timeout* seconds and return ``{object path: device}``.

    Devices BlueZ already knows about are included when they advertise
    *service_uuid*; devices removed during the scan are dropped again.
    """
    service_uuid = normalize_uuid(service_uuid)
    found: Dict[str, DiscoveredDevice] = {
        device.path: device
        for device in session.enumerate_devices()
        if device.advertises(service_uuid)
    }
    print_and_log(f"[DEBUG] {len(found)} known device(s) advertise {service_uuid}", LOG__DEBUG)

    session.set_discovery_filter([service_uuid], transport="le", duplicate_data=False)

    events = session.device_events()
    timer_id = session.call_later(timeout, events.close)
    session.start_discovery()
    try:
        for event in events:
            if isinstance(event, DeviceAdded):
                if event.device.advertises(service_uuid):
                    found[event.device.path] = event.device
                    print_and_log(f"[DEBUG] Found band {event.device.address}", LOG__DEBUG)
            elif isinstance(event, DeviceRemoved):
                found.pop(event.path, None)
    finally:
        events.close()
        session.cancel_call(timer_id)
        session.stop_discovery()

    print_and_log(f"[*] Discovered {len(found)} band(s)", LOG__GENERAL)
    return found
