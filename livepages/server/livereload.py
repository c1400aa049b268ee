"""Live-reload subscribers and the server-sent event wire format.

Each browser tab holds one :class:`Subscriber`, a bounded queue drained by
the tab's event stream. :class:`LiveReloadHub` owns the set of subscribers:
broadcasting is fire-and-forget, and a subscriber that is closed or has
stopped draining its queue is removed instead of failing the broadcast.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = logging.getLogger(__name__)

CONNECTED = "connected"
BUILD_START = "build-start"
BUILD_COMPLETE = "build-complete"
BUILD_ERROR = "build-error"
RELOAD = "reload"

KEEPALIVE = ": ping\n\n"

HOT_RELOAD_SCRIPT = """\
(function () {
  var source = new EventSource("%(events_route)s");
  source.onmessage = function (event) {
    var data = JSON.parse(event.data);
    switch (data.type) {
      case "build-start":
        console.log("[livepages] rebuilding...");
        break;
      case "build-complete":
        console.log("[livepages] build complete");
        break;
      case "build-error":
        console.error("[livepages] build failed:", data.error);
        break;
      case "reload":
        console.log("[livepages] reloading");
        setTimeout(function () { window.location.reload(); }, 100);
        break;
    }
  };
  source.onerror = function () {
    console.log("[livepages] live-reload connection lost, retrying");
  };
})();
"""


def format_event(event_type: str, **fields: typ.Any) -> str:
    """Encode one event as a server-sent ``data:`` frame."""
    payload = {"type": event_type, **fields}
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


class SubscriberClosedError(ConnectionError):
    """Raised when sending to a subscriber whose stream has ended."""


class Subscriber:
    """One live-reload stream: a bounded queue of pending frames."""

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: queue.Queue[str | None] = queue.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, message: str) -> None:
        """Queue ``message``; raises when the stream is gone or backed up."""
        if self.closed:
            raise SubscriberClosedError
        try:
            self._queue.put_nowait(message)
        except queue.Full as exc:
            raise SubscriberClosedError from exc

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def stream(self, keepalive: float = 15.0) -> cabc.Iterator[str]:
        """Yield queued frames until closed, with periodic keepalive comments."""
        while True:
            try:
                message = self._queue.get(timeout=keepalive)
            except queue.Empty:
                if self.closed:
                    return
                yield KEEPALIVE
                continue
            if message is None:
                return
            yield message


class LiveReloadHub:
    """The open set of live-reload subscribers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: set[Subscriber] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def subscribe(self) -> Subscriber:
        """Register a new subscriber primed with the ``connected`` event."""
        subscriber = Subscriber()
        subscriber.send(format_event(CONNECTED))
        with self._lock:
            self._clients.add(subscriber)
            count = len(self._clients)
        if count == 1:
            logger.info("live-reload client connected")
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._clients.discard(subscriber)
        subscriber.close()

    def broadcast(self, event_type: str, **fields: typ.Any) -> int:
        """Send an event to every subscriber; return how many received it."""
        message = format_event(event_type, **fields)
        with self._lock:
            clients = list(self._clients)
        delivered = 0
        for client in clients:
            try:
                client.send(message)
            except SubscriberClosedError:
                logger.debug("dropping stale live-reload client")
                self.unsubscribe(client)
                continue
            delivered += 1
        return delivered

    def close_all(self) -> None:
        """End every open stream."""
        with self._lock:
            clients, self._clients = self._clients, set()
        for client in clients:
            client.close()


__all__ = [
    "BUILD_COMPLETE",
    "BUILD_ERROR",
    "BUILD_START",
    "CONNECTED",
    "HOT_RELOAD_SCRIPT",
    "RELOAD",
    "LiveReloadHub",
    "Subscriber",
    "SubscriberClosedError",
    "format_event",
]
