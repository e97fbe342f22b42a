"""Progress events for research runs.

Engine code calls ``emit`` from the event loop and from the worker threads
that run provider SDK calls, so the registry is guarded by a plain lock.
Events carry the ``run_id`` of the run that produced them; ``subscribe``
gives a consumer a queue of one run's events.
"""

import logging
import queue
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[dict], None]

_listeners: List[Listener] = []
_lock = threading.Lock()


def add_listener(fn: Listener) -> None:
    with _lock:
        _listeners.append(fn)


def remove_listener(fn: Listener) -> None:
    with _lock:
        if fn in _listeners:
            _listeners.remove(fn)


def emit(event: dict) -> None:
    """Stamp *event* and hand it to every listener.

    Listeners run outside the lock so one may unsubscribe itself; a
    listener that raises is logged and skipped.
    """
    event.setdefault("timestamp", time.time())
    with _lock:
        listeners = list(_listeners)
    for fn in listeners:
        try:
            fn(event)
        except Exception:
            logger.debug("Event listener failed for %s", event.get("type"), exc_info=True)


@contextmanager
def subscribe(run_id: Optional[str] = None) -> Iterator["queue.Queue[dict]"]:
    """Collect events for *run_id* (plus unscoped ones) into a queue.

    With no *run_id* every event is collected.
    """
    events: "queue.Queue[dict]" = queue.Queue()

    def listener(event: dict) -> None:
        if run_id is None or event.get("run_id") in (None, run_id):
            events.put(event)

    add_listener(listener)
    try:
        yield events
    finally:
        remove_listener(listener)
