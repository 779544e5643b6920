"""
Bluetooth utility functions.
"""

__all__ = [
    "device_address_to_path",
    "device_path_to_address",
    "is_device_path",
    "normalize_uuid",
]


def device_address_to_path(bdaddr, adapter_path):
    # e.g.convert 12:34:44:00:66:D5 on adapter hci0 to /org/bluez/hci0/dev_12_34_44_00_66_D5
    path = adapter_path + "/dev_" + bdaddr.upper().replace(":", "_")
    return path


def device_path_to_address(path):
    # inverse of device_address_to_path; None if the last segment is not a dev_ node
    leaf = path.rsplit("/", 1)[-1]
    if not leaf.startswith("dev_"):
        return None
    return leaf[len("dev_"):].replace("_", ":")


def is_device_path(path: str, adapter_path: str) -> bool:
    """Return True when *path* sits exactly one segment below *adapter_path*.

    Devices live at ``/org/bluez/hci0/dev_XX_..``; services, characteristics
    and descriptors are nested deeper and must not be mistaken for devices.
    """
    prefix = adapter_path.rstrip("/") + "/"
    if not path.startswith(prefix):
        return False
    relative = path[len(prefix):]
    return bool(relative) and "/" not in relative


def normalize_uuid(uuid) -> str:
    return str(uuid).strip().lower()
