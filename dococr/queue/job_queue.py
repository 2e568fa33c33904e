from typing import Any

import psycopg

from dococr.database.connection import Database
from dococr.database.models import QueueItemRecord
from dococr.database.repositories.queue_repository import QueueRepository
from dococr.logging.logger import Log
from dococr.queue.exceptions import QueueDeliveryExhausted
from dococr.queue.models import QueueItem


class JobQueue:
    """Durable, best-effort FIFO queue with bounded at-least-once delivery.

    Built once and injected into producers and the worker pool.
    """

    def __init__(
        self,
        db: Database,
        queue_repo: QueueRepository,
        visibility_timeout_seconds: int = 600,
    ) -> None:
        self._db = db
        self._queue_repo = queue_repo
        self._visibility_timeout_seconds = visibility_timeout_seconds

    def enqueue(self, item: QueueItem, conn: psycopg.Connection[Any] | None = None) -> int:
        """Append an item. With a caller connection, the caller commits."""
        if conn is not None:
            item_id = self._queue_repo.insert(conn, item)
        else:
            with self._db.connection() as own_conn:
                item_id = self._queue_repo.insert(own_conn, item)
                own_conn.commit()
        Log.info(f"Enqueued item {item_id} for document {item.document_id}")
        return item_id

    def claim(self) -> QueueItemRecord | None:
        """Claim the next deliverable item, or None when the backlog is empty.

        Raises:
            QueueDeliveryExhausted: if the claimed item was already delivered
                max_attempts times (a worker crashed on its last attempt).
        """
        with self._db.connection() as conn:
            item = self._queue_repo.claim_next(conn, self._visibility_timeout_seconds)
        if item is not None and item.attempts > item.max_attempts:
            reason = item.error_message or "worker stopped before finishing the item"
            self._queue_repo.mark_dead(item.id, reason)
            raise QueueDeliveryExhausted(item.id, item.document_id, item.max_attempts, reason)
        return item

    def complete(self, item: QueueItemRecord) -> None:
        """Remove a finished item from the backlog."""
        self._queue_repo.delete(item.id)

    def ack_failed(self, item: QueueItemRecord, error: str) -> None:
        """Stop delivering an item whose failure was recorded on its job."""
        self._queue_repo.mark_dead(item.id, error)

    def release(self, item: QueueItemRecord, error: str) -> None:
        """Hand an item back for redelivery.

        Raises:
            QueueDeliveryExhausted: if no attempts remain; the item is parked.
        """
        if item.attempts >= item.max_attempts:
            self._queue_repo.mark_dead(item.id, error)
            raise QueueDeliveryExhausted(item.id, item.document_id, item.attempts, error)
        self._queue_repo.release(item.id, error)
        Log.warning(
            f"Queue item {item.id} released for redelivery "
            f"(attempt {item.attempts}/{item.max_attempts}): {error}"
        )

    def postpone(self, item: QueueItemRecord, error: str, delay_seconds: int) -> None:
        """Hand an item back for a later try without counting this delivery.

        For items that could not start through no fault of their own, e.g. the
        document is leased by another worker.
        """
        self._queue_repo.postpone(item.id, error, delay_seconds)
        Log.info(f"Queue item {item.id} postponed {delay_seconds}s: {error}")

    def heartbeat(self, item: QueueItemRecord) -> None:
        """Keep a long-running item from being delivered to another worker."""
        if not self._queue_repo.touch(item.id):
            Log.warning(f"Queue item {item.id} is no longer held by this worker")
