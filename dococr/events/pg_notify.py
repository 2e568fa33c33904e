import json

import psycopg

from dococr.database.connection import Database
from dococr.events.publisher import ProgressEvent, ProgressPublisher, Subscription
from dococr.logging.logger import Log


class PgNotifyBridge:
    """Forwards every published event to a PostgreSQL NOTIFY channel.

    Lets observers in other processes (the API layer's websocket handlers)
    LISTEN for progress of documents processed by this worker.
    """

    def __init__(self, db: Database, channel: str) -> None:
        self._db = db
        self._channel = channel
        self._subscription: Subscription | None = None

    def attach(self, publisher: ProgressPublisher) -> Subscription:
        self._subscription = publisher.subscribe(ProgressPublisher.WILDCARD, self)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __call__(self, event: ProgressEvent) -> None:
        message = json.dumps(
            {"documentId": event.topic, "event": event.name, "payload": event.payload},
            default=str,
        )
        try:
            with self._db.connection() as conn:
                conn.execute("SELECT pg_notify(%s, %s)", (self._channel, message))
                conn.commit()
        except psycopg.Error as exc:
            Log.warning(f"Cannot NOTIFY {event.name} for document {event.topic}: {exc}")
