"""
In-process event bus.

Every topic is a blinker signal in the :data:`signals` namespace.
Publishers call :func:`publish_event`, which sends on the topic's signal.
:func:`start_event_listener` connects a receiver to each of its topics that
queues ``{"topic": ..., "item": ...}`` for the subscription's own daemon
worker thread, so slow handlers never block a request.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from blinker import Namespace

log = logging.getLogger("metaboard.events")

signals = Namespace()

_STOP = object()


@dataclass
class Subscription:
    topics: FrozenSet[str]
    handler: Callable[[Dict[str, Any]], Any]
    queue: "queue.Queue[Any]" = field(default_factory=queue.Queue)
    thread: Optional[threading.Thread] = None

    def receive(self, topic: str, **kw: Any) -> None:
        """blinker receiver: the sender is the topic name."""
        self.queue.put({"topic": topic, "item": kw.get("item")})

    def connect(self) -> None:
        for t in self.topics:
            signals.signal(t).connect(self.receive, weak=False)

    def disconnect(self) -> None:
        for t in self.topics:
            signals.signal(t).disconnect(self.receive)

    def _run(self) -> None:
        while True:
            event = self.queue.get()
            try:
                if event is _STOP:
                    return
                self.handler(event)
            except Exception:
                log.exception("event handler failed topic=%s", event.get("topic") if isinstance(event, dict) else None)
            finally:
                self.queue.task_done()


_SUBSCRIPTIONS: List[Subscription] = []
_LOCK = threading.Lock()


def publish_event(topic: str, item: Any) -> Any:
    """Deliver item to every listener of topic. Returns item."""
    delivered = signals.signal(topic).send(topic, item=item)
    log.debug("published topic=%s listeners=%d", topic, len(delivered))
    return item


def start_event_listener(topics: Iterable[str], handler: Callable[[Dict[str, Any]], Any]) -> Subscription:
    sub = Subscription(topics=frozenset(topics), handler=handler)
    sub.thread = threading.Thread(
        target=sub._run,
        name=f"metaboard-events-{getattr(handler, '__name__', 'handler')}",
        daemon=True,
    )
    sub.thread.start()
    with _LOCK:
        _SUBSCRIPTIONS.append(sub)
    sub.connect()
    return sub


def stop_event_listeners(timeout: float = 5.0) -> None:
    with _LOCK:
        subs = list(_SUBSCRIPTIONS)
        _SUBSCRIPTIONS.clear()
    for s in subs:
        s.disconnect()
        s.queue.put(_STOP)
    for s in subs:
        if s.thread is not None:
            s.thread.join(timeout=timeout)


def drain(timeout: float = 5.0) -> None:
    """Block until every queued event has been handled (tests, shutdown)."""
    with _LOCK:
        subs = list(_SUBSCRIPTIONS)
    for s in subs:
        done = threading.Event()

        def _wait(q=s.queue, ev=done):
            q.join()
            ev.set()

        threading.Thread(target=_wait, daemon=True).start()
        done.wait(timeout)


# ------------------------------------------------------------
# Event payload helpers
# ------------------------------------------------------------
def topic_to_model(topic: str) -> str:
    """``"dashboard-add-cards" -> "dashboard"``"""
    return (topic or "").split("-", 1)[0]


def object_to_model_id(topic: str, obj: Mapping[str, Any]) -> Any:
    return obj.get("id")


def object_to_user_id(obj: Mapping[str, Any]) -> Any:
    for k in ("actor_id", "user_id", "creator_id"):
        if obj.get(k) is not None:
            return obj.get(k)
    return None
