"""Topic-based publish/subscribe for per-document pipeline progress."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dococr.logging.logger import Log

PROGRESS = "ocr:progress"
PAGE_DONE = "ocr:pageDone"
LOG = "ocr:log"
DONE = "ocr:done"
ERROR = "ocr:error"
CANCELLED = "ocr:cancelled"


@dataclass(frozen=True)
class ProgressEvent:
    """One event on a document topic."""

    topic: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)


Observer = Callable[[ProgressEvent], None]


class Subscription:
    """Handle returned by subscribe(). Unsubscribe when the observer disconnects."""

    def __init__(self, publisher: "ProgressPublisher", topic: str, observer: Observer) -> None:
        self._publisher = publisher
        self.topic = topic
        self.observer = observer
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._publisher._remove(self)
            self._active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class ProgressPublisher:
    """Delivers events synchronously to observers of a topic (topic = document id).

    Observers of the wildcard topic ``"*"`` receive events of every topic.
    A failing observer is logged and does not affect the others or the publisher.
    """

    WILDCARD = "*"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, topic: str | int, observer: Observer) -> Subscription:
        subscription = Subscription(self, str(topic), observer)
        with self._lock:
            self._subscriptions.setdefault(subscription.topic, []).append(subscription)
        return subscription

    def subscriber_count(self, topic: str | int) -> int:
        with self._lock:
            return len(self._subscriptions.get(str(topic), []))

    def publish(self, topic: str | int, name: str, payload: dict[str, Any]) -> ProgressEvent:
        event = ProgressEvent(topic=str(topic), name=name, payload=payload)
        with self._lock:
            targets = list(self._subscriptions.get(event.topic, []))
            if event.topic != self.WILDCARD:
                targets += self._subscriptions.get(self.WILDCARD, [])
        for subscription in targets:
            try:
                subscription.observer(event)
            except Exception as exc:
                Log.warning(f"Observer for topic {event.topic} failed on {name}: {exc}")
        return event

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.topic, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                self._subscriptions.pop(subscription.topic, None)
