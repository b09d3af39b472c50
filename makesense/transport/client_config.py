"""
Default GATT layout and timeouts for the MakeSense device.

These values are used when no ``device`` section is present in config.yaml
and can be overridden there.

Attributes
----------
DEVICE_NAME
    Advertised name the scanner filters on.
SERVICE_UUID
    Primary service holding all MakeSense characteristics.
CHAR_RAWDATA_UUID
    Optional raw ADC characteristic (resolved, never subscribed).
CHAR_STATUS_UUID
    Notify characteristic carrying readings and status text.
CHAR_COMMAND_UUID
    Write characteristic for single-byte commands.
SCAN_TIMEOUT_S
    Seconds to scan for the device before giving up.
CONNECT_TIMEOUT_S
    Seconds allowed for the GATT connect.
"""

from __future__ import annotations

DEVICE_NAME: str = "MakeSense"
SERVICE_UUID: str = "12345678-1234-5678-1234-56789abcdef0"
CHAR_RAWDATA_UUID: str = "0000fff1-0000-1000-8000-00805f9b34fb"
CHAR_STATUS_UUID: str = "0000fff2-0000-1000-8000-00805f9b34fb"
CHAR_COMMAND_UUID: str = "0000fff3-0000-1000-8000-00805f9b34fb"
SCAN_TIMEOUT_S: float = 10.0
CONNECT_TIMEOUT_S: float = 10.0
