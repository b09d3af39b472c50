from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from queue import Full, Queue
from typing import Any, Callable, Dict, Iterator, List, Type, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")
Handler = Callable[[Any], None]


@dataclass
class EventBus:
    """
    In-process typed publish/subscribe bus.

    Subscribers register a handler per event class (see
    :mod:`makesense.domain.events`). :meth:`publish` delivers synchronously,
    in registration order, to every handler of the event's exact class.

    Concurrency Model
    -----------------
    Publication is serialized by a re-entrant lock, so events of one type
    reach each subscriber in the exact order they were published, even when
    producers live on different threads. Handlers may publish further events
    from inside a delivery (same thread, re-entrant).

    A state owner that mutates and then publishes wraps both steps in
    :meth:`serialized`, so no other thread can publish in between.

    Handlers must not block. Consumers living on another thread (the Qt UI)
    use :meth:`subscribe_queue` and drain the queue on their own schedule.

    Error Policy
    ------------
    A handler that raises is logged and skipped; later handlers still
    receive the event.
    """

    _handlers: Dict[type, List[Handler]] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """
        Register ``handler`` for events of ``event_type``.

        Returns
        -------
        callable
            Zero-argument function that removes the subscription.
        """
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return _unsubscribe

    def subscribe_queue(self, *event_types: type, maxsize: int = 5000) -> "Queue[Any]":
        """
        Mirror events of the given types into a bounded queue.

        If the queue is full the newest event is dropped (best-effort), which
        protects the producer thread from a stalled consumer.
        """
        q: "Queue[Any]" = Queue(maxsize=maxsize)

        def _put(ev: Any) -> None:
            try:
                q.put_nowait(ev)
            except Full:
                logger.debug("Event queue full, dropping %s", type(ev).__name__)

        for t in event_types:
            self.subscribe(t, _put)
        return q

    def publish(self, event: Any) -> None:
        """
        Deliver ``event`` to every handler registered for its class.

        Parameters
        ----------
        event
            Any bus event instance.
        """
        with self._lock:
            handlers = list(self._handlers.get(type(event), ()))
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception("Event handler %r failed for %s", handler, type(event).__name__)

    @contextmanager
    def serialized(self) -> Iterator[None]:
        """
        Hold the publication lock for the duration of the block.

        Events published by other threads wait until the block exits, so a
        change and the events announcing it are delivered as one unit.
        """
        with self._lock:
            yield
