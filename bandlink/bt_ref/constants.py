"""
Core constants for bandlink.

D-Bus / BlueZ names, result codes used by the error classes, and the fixed
set of service and characteristic UUIDs exposed by the band.
"""

# D-Bus Core Constants
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"
DBUS_OM_IFACE = "org.freedesktop.DBus.ObjectManager"
DBUS_MONITORING_IFACE = "org.freedesktop.DBus.Monitoring"
DBUS_SERVICE_NAME = "org.freedesktop.DBus"
DBUS_OBJECT_PATH = "/org/freedesktop/DBus"

# BlueZ Core Constants
ADAPTER_NAME = "hci0"
BLUEZ_SERVICE_NAME = "org.bluez"
BLUEZ_NAMESPACE = "/org/bluez/"

# BlueZ Interface Constants
ADAPTER_INTERFACE = BLUEZ_SERVICE_NAME + ".Adapter1"
DEVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".Device1"

# GATT Interface Constants
GATT_SERVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".GattService1"
GATT_CHARACTERISTIC_INTERFACE = BLUEZ_SERVICE_NAME + ".GattCharacteristic1"

# Desktop notifications / MPRIS
NOTIFICATIONS_PATH = "/org/freedesktop/Notifications"
NOTIFICATIONS_INTERFACE = "org.freedesktop.Notifications"
NOTIFY_SIGNATURE = "susssasa{sv}i"
MPRIS_PATH = "/org/mpris/MediaPlayer2"
MPRIS_PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"
PLAYERCTLD_SERVICE_NAME = "org.mpris.MediaPlayer2.playerctld"
PLAYERCTLD_INTERFACE = "com.github.altdesktop.playerctld"

# Result/Error Codes
RESULT_ERR = 1
RESULT_ERR_SERVICES_NOT_RESOLVED = 4
RESULT_ERR_WRONG_STATE = 5
RESULT_ERR_ACCESS_DENIED = 6
RESULT_ERR_BAD_ARGS = 8
RESULT_ERR_NO_REPLY = 14
RESULT_ERR_UNKNOWN_SERVCE = 17
RESULT_ERR_REMOTE_DISCONNECT = 19
RESULT_ERR_NOT_AUTHORIZED = 23
RESULT_ERR_VALUE = 27

# Base UUID
BASE_UUID__BLUETOOTH = "0000{:04x}-0000-1000-8000-00805f9b34fb"
BASE_UUID__HUAMI = "0000{:04x}-0000-3512-2118-0009af100700"

# Band services
SERVICE_BAND_0 = BASE_UUID__BLUETOOTH.format(0xFEE0)
SERVICE_BAND_1 = BASE_UUID__BLUETOOTH.format(0xFEE1)
SERVICE_ALERT_NOTIFICATION = BASE_UUID__BLUETOOTH.format(0x1811)
SERVICE_DEVICE_INFORMATION = BASE_UUID__BLUETOOTH.format(0x180A)

# Band characteristics
CHAR_CONFIG = BASE_UUID__HUAMI.format(0x0003)
CHAR_BATTERY = BASE_UUID__HUAMI.format(0x0006)
CHAR_STEPS = BASE_UUID__HUAMI.format(0x0007)
CHAR_SETTINGS = BASE_UUID__HUAMI.format(0x0008)
CHAR_AUTH = BASE_UUID__HUAMI.format(0x0009)
CHAR_MUSIC_NOTIFY = BASE_UUID__HUAMI.format(0x0010)
CHAR_CHUNKED_TRANSFER = BASE_UUID__HUAMI.format(0x0020)
CHAR_CURRENT_TIME = BASE_UUID__BLUETOOTH.format(0x2A2B)
CHAR_NEW_ALERT = BASE_UUID__BLUETOOTH.format(0x2A46)
CHAR_SOFTWARE_REVISION = BASE_UUID__BLUETOOTH.format(0x2A28)

# Where each required characteristic lives: field -> (service, characteristic)
BAND_REQUIRED_CHARS = {
    "battery": (SERVICE_BAND_0, CHAR_BATTERY),
    "steps": (SERVICE_BAND_0, CHAR_STEPS),
    "time": (SERVICE_BAND_0, CHAR_CURRENT_TIME),
    "config": (SERVICE_BAND_0, CHAR_CONFIG),
    "settings": (SERVICE_BAND_0, CHAR_SETTINGS),
    "chunked": (SERVICE_BAND_0, CHAR_CHUNKED_TRANSFER),
    "music": (SERVICE_BAND_0, CHAR_MUSIC_NOTIFY),
    "auth": (SERVICE_BAND_1, CHAR_AUTH),
    "alert": (SERVICE_ALERT_NOTIFICATION, CHAR_NEW_ALERT),
    "firmware": (SERVICE_DEVICE_INFORMATION, CHAR_SOFTWARE_REVISION),
}

# Chunked transfer
CHUNK_SIZE = 17
CHUNK_FLAG_FIRST = 0x00
CHUNK_FLAG_MIDDLE = 0x40
CHUNK_FLAG_LAST = 0x80
CHUNK_FLAG_SINGLE = 0xC0
CHUNK_TYPE_MUSIC = 0x03

# Authentication
AUTH_KEY_LEN = 16
AUTH_RESPONSE_PREFIX = 0x10
AUTH_REQUEST_START = bytes([0x02, 0x00])
AUTH_SEND_ENCRYPTED = bytes([0x03, 0x00])

# Music notification codes (byte[1])
MUSIC_CODE_OPEN = 0xE0
MUSIC_CODE_CLOSE = 0xE1
