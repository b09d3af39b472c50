"""
In-process simulated MakeSense device.

Lets the dashboard run without hardware (``--simulate``). The simulated
device streams text readings on the status channel at a fixed rate and reacts
to the command bytes like the firmware does:

- ``0x01`` zero: reports "Zeroing...", re-centres the signal, then reports
  "Zero complete, ready"
- ``0x02`` / ``0x03``: stop / start streaming readings
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from makesense.errors import TransportError
from makesense.transport.base import Channels, DeviceFilter, DisconnectCallback, PayloadCallback
from makesense.transport.protocol import Command

logger = logging.getLogger(__name__)

STATUS_ZEROING = "Zeroing..."
STATUS_ZERO_DONE = "Zero complete, ready"


@dataclass
class CurrentSensorModel:
    """
    Noisy constant-current source.

    Parameters
    ----------
    baseline_ua
        Signal level before zeroing.
    noise_sigma
        Gaussian noise standard deviation (uA).
    seed
        RNG seed for deterministic runs.
    """

    baseline_ua: float = 0.5
    noise_sigma: float = 0.02
    seed: Optional[int] = 123

    offset_ua: float = field(default=0.0, init=False)
    _rng: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def sample(self) -> float:
        return self.baseline_ua + self.offset_ua + self._rng.gauss(0.0, self.noise_sigma)

    def zero(self) -> None:
        self.offset_ua = -self.baseline_ua


@dataclass
class SimHandle:
    """Connection to the simulated device."""

    name: str
    model: CurrentSensorModel
    sampling: bool = True
    zero_pending: bool = False
    on_payload: Optional[PayloadCallback] = None
    on_lost: Optional[DisconnectCallback] = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class SimulatedTransport:
    """
    Transport backend talking to a :class:`CurrentSensorModel`.

    Parameters
    ----------
    hz
        Reading rate.
    model
        Signal model; a default one is created if omitted.
    fail_on
        Name of a transport step to fail ("discover", "resolve", "subscribe"),
        for exercising error paths.
    """

    def __init__(self, hz: float = 1.0, model: Optional[CurrentSensorModel] = None, fail_on: Optional[str] = None):
        self.hz = hz
        self.model = model or CurrentSensorModel()
        self.fail_on = fail_on
        self.handles: List[SimHandle] = []

    def discover_and_connect(self, device_filter: DeviceFilter) -> SimHandle:
        if self.fail_on == "discover":
            raise TransportError(f"Device {device_filter.name!r} not found")
        handle = SimHandle(name=f"{device_filter.name} (simulated)", model=self.model)
        self.handles.append(handle)
        return handle

    def device_name(self, handle: SimHandle) -> Optional[str]:
        return handle.name

    def resolve_channels(self, handle: SimHandle) -> Channels:
        if self.fail_on == "resolve":
            raise TransportError("Status characteristic not found")
        return Channels(status="status", command="command")

    def subscribe(self, handle: SimHandle, channel: object, on_payload: PayloadCallback) -> None:
        if self.fail_on == "subscribe":
            raise TransportError("Could not start notifications")
        handle.on_payload = on_payload
        handle.thread = threading.Thread(target=self._run, args=(handle,), name="sim-device", daemon=True)
        handle.thread.start()

    def write_command(self, handle: SimHandle, channel: object, code: int) -> None:
        if handle.stop_event.is_set():
            raise TransportError("Simulated device is not connected")
        if code == Command.TRIGGER_ZERO:
            with handle.lock:
                handle.zero_pending = True
            self._emit(handle, STATUS_ZEROING)
        elif code == Command.STOP_SAMPLING:
            with handle.lock:
                handle.sampling = False
        elif code == Command.START_SAMPLING:
            with handle.lock:
                handle.sampling = True
        else:
            raise TransportError(f"Unknown command 0x{code:02x}")

    def teardown(self, handle: SimHandle) -> None:
        handle.stop_event.set()
        if handle.thread is not None and handle.thread is not threading.current_thread():
            handle.thread.join(timeout=2.0)

    def on_unsolicited_disconnect(self, handle: SimHandle, callback: DisconnectCallback) -> None:
        handle.on_lost = callback

    def drop(self, handle: SimHandle) -> None:
        """Simulate the device going out of range."""
        if handle.stop_event.is_set():
            return
        self.teardown(handle)
        logger.info("Simulated device dropped the link")
        if handle.on_lost is not None:
            handle.on_lost()

    def tick(self, handle: SimHandle) -> None:
        """Produce the notifications of one sampling period."""
        with handle.lock:
            zero = handle.zero_pending
            handle.zero_pending = False
            sampling = handle.sampling

        if zero:
            handle.model.zero()
            self._emit(handle, STATUS_ZERO_DONE)
        if sampling:
            self._emit(handle, f"{handle.model.sample():.4f}")

    def _run(self, handle: SimHandle) -> None:
        period = 1.0 / self.hz if self.hz > 0 else 1.0
        while not handle.stop_event.wait(period):
            self.tick(handle)

    @staticmethod
    def _emit(handle: SimHandle, text: str) -> None:
        if handle.on_payload is not None and not handle.stop_event.is_set():
            handle.on_payload(text.encode("utf-8"))
