"""Speech events and the bus that delivers them to subscribers."""

import logging
import queue
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpokenSentence:
    """Text of the current utterance spoken so far (cumulative prefix)."""
    text: str


@dataclass(frozen=True)
class SpeakingEnd:
    """Terminal event of an utterance."""
    canceled: bool


SpeechEvent = Union[SpokenSentence, SpeakingEnd]
EventCallback = Callable[[SpeechEvent], None]


class EventBus:
    """In-process pub/sub for speech events.

    Subscribers register per event class, or for every event by passing no
    class. ``emit`` calls them synchronously on the emitting thread, in
    registration order, and also records the event for ``drain_events``
    polling (e.g. from a UI timer).
    """

    def __init__(self, max_pending: int = 1024):
        self._subscribers: dict = defaultdict(list)
        self._lock = threading.Lock()
        self._pending = queue.Queue(maxsize=max_pending)

    def subscribe(self, callback: EventCallback, event_type: Optional[type] = None):
        """Register ``callback`` for ``event_type`` (all events if None)."""
        with self._lock:
            self._subscribers[event_type].append(callback)

    def unsubscribe(self, callback: EventCallback, event_type: Optional[type] = None):
        """Remove ``callback`` if previously subscribed for ``event_type``."""
        with self._lock:
            callbacks = self._subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def emit(self, event: SpeechEvent):
        """Deliver ``event`` to its subscribers."""
        try:
            self._pending.put_nowait({"event": event, "time": time.time()})
        except queue.Full:
            # Nobody is polling; keep the newest events.
            try:
                self._pending.get_nowait()
            except queue.Empty:
                pass
            self._pending.put_nowait({"event": event, "time": time.time()})

        with self._lock:
            callbacks = (
                list(self._subscribers.get(type(event), []))
                + list(self._subscribers.get(None, []))
            )
        for cb in callbacks:
            try:
                cb(event)
            except Exception as e:
                logger.error(f"Event subscriber error on {type(event).__name__}: {e}",
                             exc_info=True)

    def drain_events(self) -> list:
        """Return and forget all events emitted since the last drain."""
        events = []
        while True:
            try:
                events.append(self._pending.get_nowait()["event"])
            except queue.Empty:
                break
        return events
