"""
Bluetooth Low Energy transport backed by ``bleak``.

``bleak`` is asyncio-only. This adapter owns a private event loop running on
a daemon thread and exposes the blocking :class:`~makesense.transport.base.Transport`
interface on top of it, so the rest of the client stays thread-based.

Notification and disconnect callbacks are invoked on the loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Coroutine, Optional, TypeVar

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.exc import BleakError

from makesense.errors import TransportError
from makesense.transport.base import Channels, DeviceFilter, DisconnectCallback, PayloadCallback
from makesense.transport.client_config import CONNECT_TIMEOUT_S, SCAN_TIMEOUT_S
from makesense.transport.protocol import encode_command

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSPORT_ERRORS = (BleakError, asyncio.TimeoutError, OSError)


@dataclass
class BleHandle:
    """
    Opaque handle for one BLE connection.

    Attributes
    ----------
    client
        Connected bleak client.
    name
        Advertised device name.
    address
        Platform device address.
    device_filter
        Filter the device was found with; carries the GATT layout.
    """

    client: BleakClient
    name: Optional[str]
    address: str
    device_filter: DeviceFilter
    torn_down: bool = False
    dropped: bool = False
    on_lost: Optional[DisconnectCallback] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class BleakTransport:
    """
    Blocking BLE transport.

    Parameters
    ----------
    scan_timeout_s
        How long to scan for the device before failing.
    connect_timeout_s
        Timeout for the GATT connect.
    """

    def __init__(self, scan_timeout_s: float = SCAN_TIMEOUT_S, connect_timeout_s: float = CONNECT_TIMEOUT_S):
        self.scan_timeout_s = scan_timeout_s
        self.connect_timeout_s = connect_timeout_s
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="ble-loop", daemon=True)
        self._thread.start()

    def close(self) -> None:
        """Stop the private event loop. Handles must be torn down first."""
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=2.0)

    # --- Transport API ---
    def discover_and_connect(self, device_filter: DeviceFilter) -> BleHandle:
        return self._run(self._discover_and_connect(device_filter), "connect")

    def device_name(self, handle: BleHandle) -> Optional[str]:
        return handle.name

    def resolve_channels(self, handle: BleHandle) -> Channels:
        flt = handle.device_filter
        service = handle.client.services.get_service(flt.service_uuid)
        if service is None:
            raise TransportError(f"Service {flt.service_uuid} not found on {handle.name or handle.address}")

        status = service.get_characteristic(flt.status_uuid)
        command = service.get_characteristic(flt.command_uuid)
        if status is None:
            raise TransportError(f"Status characteristic {flt.status_uuid} not found")
        if command is None:
            raise TransportError(f"Command characteristic {flt.command_uuid} not found")

        raw_data = service.get_characteristic(flt.raw_data_uuid) if flt.raw_data_uuid else None
        if raw_data is None:
            logger.info("RawData characteristic not available")
        return Channels(status=status, command=command, raw_data=raw_data)

    def subscribe(self, handle: BleHandle, channel: BleakGATTCharacteristic, on_payload: PayloadCallback) -> None:
        def _on_notify(_sender: BleakGATTCharacteristic, data: bytearray) -> None:
            on_payload(bytes(data))

        self._run(handle.client.start_notify(channel, _on_notify), "subscribe")

    def write_command(self, handle: BleHandle, channel: BleakGATTCharacteristic, code: int) -> None:
        self._run(handle.client.write_gatt_char(channel, encode_command(code), response=True), "write")

    def teardown(self, handle: BleHandle) -> None:
        with handle._lock:
            if handle.torn_down:
                return
            handle.torn_down = True
        try:
            self._run(handle.client.disconnect(), "disconnect")
        except TransportError:
            logger.warning("Disconnect from %s did not complete cleanly", handle.name or handle.address)

    def on_unsolicited_disconnect(self, handle: BleHandle, callback: DisconnectCallback) -> None:
        with handle._lock:
            handle.on_lost = callback
            fire = handle.dropped and not handle.torn_down
        if fire:
            callback()

    # --- Internals ---
    async def _discover_and_connect(self, device_filter: DeviceFilter) -> BleHandle:
        logger.info("Scanning for %r (%.0fs)", device_filter.name, self.scan_timeout_s)
        device = await BleakScanner.find_device_by_name(device_filter.name, timeout=self.scan_timeout_s)
        if device is None:
            raise TransportError(f"Device {device_filter.name!r} not found")

        holder: dict[str, BleHandle] = {}

        def _on_disconnect(_client: BleakClient) -> None:
            h = holder.get("handle")
            if h is not None:
                self._handle_dropped(h)

        client = BleakClient(device, disconnected_callback=_on_disconnect, timeout=self.connect_timeout_s)
        handle = BleHandle(client=client, name=device.name, address=device.address, device_filter=device_filter)
        holder["handle"] = handle

        await client.connect()
        logger.info("GATT connected to %s (%s)", device.name, device.address)
        return handle

    def _handle_dropped(self, handle: BleHandle) -> None:
        with handle._lock:
            handle.dropped = True
            if handle.torn_down:
                return
            callback = handle.on_lost
        logger.warning("BLE link to %s dropped", handle.name or handle.address)
        if callback is not None:
            callback()

    def _run(self, coro: Coroutine[Any, Any, T], what: str) -> T:
        fut: "Future[T]" = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return fut.result()
        except TransportError:
            raise
        except _TRANSPORT_ERRORS as e:
            logger.debug("BLE %s failed", what, exc_info=True)
            raise TransportError(f"BLE {what} failed: {e or type(e).__name__}") from e
