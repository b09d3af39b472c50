"""
Transport contract between the device link and a wireless backend.

The link only talks to objects satisfying :class:`Transport`; concrete
backends are :class:`~makesense.transport.ble_transport.BleakTransport` and
:class:`~makesense.transport.simulated.SimulatedTransport`.

All methods are blocking and may be called from any thread. Failures are
reported by raising :class:`~makesense.errors.TransportError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from makesense.transport.client_config import (
    CHAR_COMMAND_UUID,
    CHAR_RAWDATA_UUID,
    CHAR_STATUS_UUID,
    DEVICE_NAME,
    SERVICE_UUID,
)

PayloadCallback = Callable[[bytes], None]
DisconnectCallback = Callable[[], None]


@dataclass(frozen=True)
class DeviceFilter:
    """
    Which device to connect to and where its characteristics live.

    Parameters
    ----------
    name
        Advertised device name to match.
    service_uuid
        Primary service UUID.
    status_uuid
        Notify characteristic for readings/status text.
    command_uuid
        Write characteristic for command bytes.
    raw_data_uuid
        Optional raw-data characteristic; missing on older firmware.
    """

    name: str = DEVICE_NAME
    service_uuid: str = SERVICE_UUID
    status_uuid: str = CHAR_STATUS_UUID
    command_uuid: str = CHAR_COMMAND_UUID
    raw_data_uuid: Optional[str] = CHAR_RAWDATA_UUID


@dataclass(frozen=True)
class Channels:
    """
    Resolved characteristics of a connected device.

    The channel objects are backend-specific and opaque to the link.
    """

    status: Any
    command: Any
    raw_data: Optional[Any] = None


class Transport(Protocol):
    """
    Protocol interface for a wireless link backend.

    Methods
    -------
    discover_and_connect(device_filter)
        Find the device and establish the link; return an opaque handle.
    resolve_channels(handle)
        Look up the status/command (and optional raw-data) channels.
    subscribe(handle, channel, on_payload)
        Start notifications; ``on_payload`` receives each raw payload.
    write_command(handle, channel, code)
        Write one command byte.
    teardown(handle)
        Drop the link. Idempotent.
    on_unsolicited_disconnect(handle, callback)
        Call ``callback`` once if the link drops without ``teardown``.
    """

    def discover_and_connect(self, device_filter: DeviceFilter) -> Any:
        ...

    def device_name(self, handle: Any) -> Optional[str]:
        ...

    def resolve_channels(self, handle: Any) -> Channels:
        ...

    def subscribe(self, handle: Any, channel: Any, on_payload: PayloadCallback) -> None:
        ...

    def write_command(self, handle: Any, channel: Any, code: int) -> None:
        ...

    def teardown(self, handle: Any) -> None:
        ...

    def on_unsolicited_disconnect(self, handle: Any, callback: DisconnectCallback) -> None:
        ...
