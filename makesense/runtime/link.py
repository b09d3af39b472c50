"""
Device link state machine.

Owns the transport handle of the single MakeSense device and drives the
connection lifecycle::

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED

Every state transition is published as
:class:`~makesense.domain.events.ConnectionChanged`; every status
notification is decoded and published as
:class:`~makesense.domain.events.TelemetryReceived` in arrival order.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Optional

from makesense.domain.events import ConnectionChanged, LinkError, TelemetryReceived
from makesense.domain.models import ConnectionState
from makesense.errors import ConnectAborted, InvalidCommandState, LinkStateError, TransportError
from makesense.runtime.event_bus import EventBus
from makesense.transport.base import Channels, DeviceFilter, Transport
from makesense.transport.protocol import Command, decode_payload

logger = logging.getLogger(__name__)


class _Superseded(Exception):
    """Raised inside connect() once its attempt is no longer current."""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


class DeviceLink:
    """
    Connection lifecycle manager for one device.

    Concurrency Model
    -----------------
    State, handle and the attempt counter are guarded by a re-entrant lock.
    The lock is never held across transport I/O, because backends may invoke
    callbacks (notifications, disconnects) from their own thread while a
    blocking call is in progress.

    Each connect attempt gets a number. ``disconnect()`` bumps the number, so
    an attempt that settles afterwards sees it was superseded, tears its
    handle down and raises :class:`~makesense.errors.ConnectAborted` without
    publishing anything. An unsolicited drop while CONNECTING forces
    DISCONNECTED at once and bumps the number the same way, so the blocked
    connect() later raises :class:`~makesense.errors.TransportError`.
    Callbacks bound to an old attempt are ignored.

    Parameters
    ----------
    transport
        Wireless backend.
    bus
        Event bus receiving connection and telemetry events.
    device_filter
        Device name and GATT layout to look for.
    """

    def __init__(self, transport: Transport, bus: EventBus, device_filter: Optional[DeviceFilter] = None):
        self._transport = transport
        self._bus = bus
        self._filter = device_filter or DeviceFilter()

        self._lock = threading.RLock()
        self._notify_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._attempt = 0
        self._lost_attempt: Optional[int] = None
        self._handle: Any = None
        self._channels: Optional[Channels] = None
        self._device_name: Optional[str] = None
        self._seq = 0

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def device_name(self) -> Optional[str]:
        with self._lock:
            return self._device_name

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    # --- Lifecycle ---
    def connect(self) -> None:
        """
        Discover, connect, resolve channels and subscribe to notifications.

        Blocks until the transport settles.

        Raises
        ------
        LinkStateError
            If the link is not DISCONNECTED.
        TransportError
            If any transport step fails. A :class:`LinkError` event has been
            published and the link is DISCONNECTED again.
        ConnectAborted
            If ``disconnect()`` superseded this attempt.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                raise LinkStateError(f"connect() not allowed while {self._state.value}")
            self._attempt += 1
            attempt = self._attempt
            self._set_state(ConnectionState.CONNECTING)

        logger.info("Connecting to %r", self._filter.name)
        handle: Any = None
        try:
            handle = self._transport.discover_and_connect(self._filter)
            self._ensure_current(attempt)

            self._transport.on_unsolicited_disconnect(handle, lambda: self._on_transport_lost(attempt))
            channels = self._transport.resolve_channels(handle)
            self._ensure_current(attempt)

            self._transport.subscribe(handle, channels.status, lambda payload: self._on_payload(attempt, payload))
            name = self._transport.device_name(handle)
        except _Superseded as s:
            self._teardown(handle)
            raise s.error from None
        except Exception as e:
            err = self._fail(attempt, handle, e)
            if err is e:
                raise
            raise err from e

        with self._lock:
            if attempt == self._attempt:
                self._handle = handle
                self._channels = channels
                self._device_name = name
                self._set_state(ConnectionState.CONNECTED, device_name=name)
                logger.info("Connected to %s", name or "device")
                return
            err = self._abort_error(attempt)

        self._teardown(handle)
        raise err

    def disconnect(self) -> None:
        """
        Tear the link down and force DISCONNECTED.

        Valid from any state. Supersedes a pending connect. Calling it while
        already DISCONNECTED publishes nothing.
        """
        with self._lock:
            self._attempt += 1
            handle = self._handle
            self._handle = None
            self._channels = None
            self._device_name = None
            if self._state is not ConnectionState.DISCONNECTED:
                logger.info("Disconnect requested while %s", self._state.value)
            self._set_state(ConnectionState.DISCONNECTED)

        if handle is not None:
            self._teardown(handle)

    # --- Commands ---
    def send_command(self, code: int) -> None:
        """
        Write one command byte to the device.

        Raises
        ------
        InvalidCommandState
            If the link is not CONNECTED. Nothing is published.
        TransportError
            If the write fails.
        """
        with self._lock:
            if self._state is not ConnectionState.CONNECTED or self._channels is None:
                raise InvalidCommandState("Not connected")
            handle = self._handle
            channel = self._channels.command

        logger.debug("Sending command 0x%02x", int(code))
        self._transport.write_command(handle, channel, int(code))

    def trigger_zero(self) -> None:
        self.send_command(Command.TRIGGER_ZERO)

    def stop_sampling(self) -> None:
        self.send_command(Command.STOP_SAMPLING)

    def start_sampling(self) -> None:
        self.send_command(Command.START_SAMPLING)

    # --- Transport callbacks ---
    def _on_payload(self, attempt: int, payload: bytes) -> None:
        with self._notify_lock:
            with self._lock:
                if attempt != self._attempt or self._state is ConnectionState.DISCONNECTED:
                    return
                self._seq += 1
                seq = self._seq
            event = decode_payload(payload)
            logger.debug("Notification #%d: %r", seq, event)
            self._bus.publish(TelemetryReceived(seq=seq, event=event, received_at=datetime.now()))

    def _on_transport_lost(self, attempt: int) -> None:
        with self._lock:
            if attempt != self._attempt or self._state is ConnectionState.DISCONNECTED:
                return
            if self._state is ConnectionState.CONNECTING:
                # The pending connect() sees the bumped attempt and raises.
                self._lost_attempt = attempt
                logger.warning("Device disconnected during connect")
                self._bus.publish(LinkError(message="Device disconnected during connect"))
            else:
                logger.warning("Device %s disconnected unexpectedly", self._device_name or "")
            self._attempt += 1
            self._handle = None
            self._channels = None
            self._device_name = None
            self._set_state(ConnectionState.DISCONNECTED)

    # --- Internals ---
    def _set_state(self, state: ConnectionState, device_name: Optional[str] = None) -> None:
        if state is self._state:
            return
        self._state = state
        self._bus.publish(ConnectionChanged(state=state, device_name=device_name))

    def _abort_error(self, attempt: int) -> Exception:
        # Caller holds the lock and has seen that ``attempt`` is stale.
        if self._lost_attempt == attempt:
            return TransportError("Device disconnected during connect")
        return ConnectAborted("Connect superseded by disconnect()")

    def _ensure_current(self, attempt: int) -> None:
        with self._lock:
            if attempt != self._attempt:
                raise _Superseded(self._abort_error(attempt))

    def _fail(self, attempt: int, handle: Any, exc: Exception) -> Exception:
        """Tear down a failed attempt and return the exception connect() raises."""
        if handle is not None:
            self._teardown(handle)

        with self._lock:
            if attempt != self._attempt:
                return self._abort_error(attempt)
            message = str(exc) or type(exc).__name__
            logger.warning("Connect failed: %s", message)
            self._bus.publish(LinkError(message=message))
            self._set_state(ConnectionState.DISCONNECTED)

        if isinstance(exc, TransportError):
            return exc
        return TransportError(message)

    def _teardown(self, handle: Any) -> None:
        try:
            self._transport.teardown(handle)
        except Exception:
            logger.exception("Transport teardown failed")
