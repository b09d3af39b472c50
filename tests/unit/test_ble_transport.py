"""
Unit tests for makesense.transport.ble_transport.BleakTransport.

No radio is involved: handles are built around a fake client exposing the
small part of the bleak client API the transport uses. The transport's
private event loop still runs, so coroutine dispatch and error mapping are
exercised for real.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest
from bleak.exc import BleakError

from makesense.errors import TransportError
from makesense.transport.ble_transport import BleakTransport, BleHandle
from makesense.transport.base import DeviceFilter
from makesense.transport.client_config import (
    CHAR_COMMAND_UUID,
    CHAR_RAWDATA_UUID,
    CHAR_STATUS_UUID,
    SERVICE_UUID,
)


@dataclass
class FakeService:
    chars: Dict[str, Any]

    def get_characteristic(self, uuid: str) -> Optional[Any]:
        return self.chars.get(uuid)


@dataclass
class FakeServices:
    services: Dict[str, FakeService]

    def get_service(self, uuid: str) -> Optional[FakeService]:
        return self.services.get(uuid)


@dataclass
class FakeClient:
    """
    Stand-in for BleakClient.

    Parameters
    ----------
    services
        GATT table returned by ``client.services``.
    fail_write
        Raise BleakError from write_gatt_char.
    """

    services: FakeServices
    fail_write: bool = False
    disconnects: int = 0
    writes: List[Tuple[Any, bytes, bool]] = field(default_factory=list)
    notify: Any = None

    async def disconnect(self) -> bool:
        self.disconnects += 1
        return True

    async def write_gatt_char(self, char: Any, data: bytes, response: bool = False) -> None:
        if self.fail_write:
            raise BleakError("GATT write failed")
        self.writes.append((char, bytes(data), response))

    async def start_notify(self, char: Any, callback: Any) -> None:
        self.notify = callback


def _gatt(with_raw: bool = True) -> FakeServices:
    chars = {CHAR_STATUS_UUID: "status-char", CHAR_COMMAND_UUID: "command-char"}
    if with_raw:
        chars[CHAR_RAWDATA_UUID] = "raw-char"
    return FakeServices({SERVICE_UUID: FakeService(chars)})


def _handle(client: FakeClient) -> BleHandle:
    return BleHandle(client=client, name="MakeSense", address="AA:BB", device_filter=DeviceFilter())  # type: ignore[arg-type]


@pytest.fixture
def transport() -> Iterator[BleakTransport]:
    t = BleakTransport(scan_timeout_s=0.1, connect_timeout_s=0.1)
    yield t
    t.close()


def test_resolve_channels_finds_characteristics(transport: BleakTransport) -> None:
    channels = transport.resolve_channels(_handle(FakeClient(_gatt())))

    assert channels.status == "status-char"
    assert channels.command == "command-char"
    assert channels.raw_data == "raw-char"


def test_raw_data_characteristic_is_optional(transport: BleakTransport) -> None:
    channels = transport.resolve_channels(_handle(FakeClient(_gatt(with_raw=False))))

    assert channels.raw_data is None


def test_missing_service_or_required_characteristic_fails(transport: BleakTransport) -> None:
    with pytest.raises(TransportError):
        transport.resolve_channels(_handle(FakeClient(FakeServices({}))))

    no_command = FakeServices({SERVICE_UUID: FakeService({CHAR_STATUS_UUID: "status-char"})})
    with pytest.raises(TransportError):
        transport.resolve_channels(_handle(FakeClient(no_command)))


def test_subscribe_forwards_payload_bytes(transport: BleakTransport) -> None:
    client = FakeClient(_gatt())
    got: List[bytes] = []

    transport.subscribe(_handle(client), "status-char", got.append)
    client.notify("status-char", bytearray(b"0.25"))

    assert got == [b"0.25"]


def test_write_command_sends_one_byte_with_response(transport: BleakTransport) -> None:
    client = FakeClient(_gatt())

    transport.write_command(_handle(client), "command-char", 0x01)

    assert client.writes == [("command-char", b"\x01", True)]


def test_bleak_errors_become_transport_errors(transport: BleakTransport) -> None:
    client = FakeClient(_gatt(), fail_write=True)

    with pytest.raises(TransportError) as excinfo:
        transport.write_command(_handle(client), "command-char", 0x02)

    assert isinstance(excinfo.value.__cause__, BleakError)


def test_teardown_is_idempotent(transport: BleakTransport) -> None:
    client = FakeClient(_gatt())
    h = _handle(client)

    transport.teardown(h)
    transport.teardown(h)

    assert client.disconnects == 1
    assert h.torn_down


def test_drop_notifies_registered_callback_once_per_drop(transport: BleakTransport) -> None:
    h = _handle(FakeClient(_gatt()))
    calls: List[int] = []
    transport.on_unsolicited_disconnect(h, lambda: calls.append(1))

    transport._handle_dropped(h)

    assert calls == [1]
    assert h.dropped


def test_drop_before_registration_fires_on_register(transport: BleakTransport) -> None:
    """
    A drop that happens between connect and callback registration is not lost.
    """
    h = _handle(FakeClient(_gatt()))
    transport._handle_dropped(h)
    calls: List[int] = []

    transport.on_unsolicited_disconnect(h, lambda: calls.append(1))

    assert calls == [1]


def test_drop_after_teardown_is_silent(transport: BleakTransport) -> None:
    h = _handle(FakeClient(_gatt()))
    calls: List[int] = []
    transport.on_unsolicited_disconnect(h, lambda: calls.append(1))

    transport.teardown(h)
    transport._handle_dropped(h)

    assert calls == []
