from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from dococr.database.connection import Database
from dococr.database.models import QueueItemRecord
from dococr.processor.exceptions import PersistenceError
from dococr.queue.models import QueueItem

_COLUMNS = """
    id, document_id, artifact_ref, languages, preprocess_options, status,
    attempts, max_attempts, error_message, locked_at, created_at
"""


class QueueRepository:
    """Database operations for the ocr_queue table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def insert(self, conn: psycopg.Connection[Any], item: QueueItem) -> int:
        """Append a pending item. Caller commits."""
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO ocr_queue
                (document_id, artifact_ref, languages, preprocess_options, max_attempts)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id
                """,
                (
                    item.document_id,
                    item.artifact_ref,
                    item.languages,
                    Jsonb(item.preprocess_options),
                    item.max_attempts,
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise PersistenceError("ocr_queue insert returned no row")
        return int(row[0])

    def claim_next(
        self,
        conn: psycopg.Connection[Any],
        visibility_timeout_seconds: int,
    ) -> QueueItemRecord | None:
        """Claim the oldest deliverable item using SELECT FOR UPDATE SKIP LOCKED.

        An item stuck in processing longer than the visibility timeout belongs to
        a crashed worker and is delivered again. Each claim counts one attempt.
        """
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id
                FROM ocr_queue
                WHERE (status = 'pending' AND available_at <= NOW())
                   OR (status = 'processing'
                       AND locked_at < NOW() - make_interval(secs => %s))
                ORDER BY created_at, id
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (visibility_timeout_seconds,),
            )
            row = cur.fetchone()

            if row is None:
                conn.commit()
                return None

            cur.execute(
                f"""
                UPDATE ocr_queue
                SET status = 'processing', locked_at = NOW(), attempts = attempts + 1
                WHERE id = %s
                RETURNING {_COLUMNS}
                """,
                (row["id"],),
            )
            claimed = cur.fetchone()
        conn.commit()
        if claimed is None:
            return None
        return _to_record(claimed)

    def delete(self, item_id: int) -> None:
        """Purge an item from the backlog."""
        with self._db.connection() as conn:
            conn.execute("DELETE FROM ocr_queue WHERE id = %s", (item_id,))
            conn.commit()

    def release(self, item_id: int, error: str) -> None:
        """Return an item to pending for redelivery."""
        with self._db.connection() as conn:
            conn.execute(
                """
                UPDATE ocr_queue
                SET status = 'pending', locked_at = NULL, error_message = %s
                WHERE id = %s
                """,
                (error, item_id),
            )
            conn.commit()

    def touch(self, item_id: int) -> bool:
        """Refresh the lock of a processing item so it is not redelivered."""
        with self._db.connection() as conn:
            cur = conn.execute(
                "UPDATE ocr_queue SET locked_at = NOW() WHERE id = %s AND status = 'processing'",
                (item_id,),
            )
            conn.commit()
        return cur.rowcount > 0

    def postpone(self, item_id: int, error: str, delay_seconds: int) -> None:
        """Return an item to pending after a delay, giving back the attempt it used."""
        with self._db.connection() as conn:
            conn.execute(
                """
                UPDATE ocr_queue
                SET status = 'pending', locked_at = NULL, error_message = %s,
                    attempts = GREATEST(attempts - 1, 0),
                    available_at = NOW() + make_interval(secs => %s)
                WHERE id = %s
                """,
                (error, delay_seconds, item_id),
            )
            conn.commit()

    def mark_dead(self, item_id: int, error: str) -> None:
        """Park an item that will not be delivered again."""
        with self._db.connection() as conn:
            conn.execute(
                """
                UPDATE ocr_queue
                SET status = 'dead', locked_at = NULL, error_message = %s
                WHERE id = %s
                """,
                (error, item_id),
            )
            conn.commit()

    def find_by_document(self, document_id: int) -> list[QueueItemRecord]:
        """All backlog items referencing a document, oldest first."""
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM ocr_queue WHERE document_id = %s ORDER BY id",
                    (document_id,),
                )
                rows = cur.fetchall()
        return [_to_record(row) for row in rows]


def _to_record(row: dict[str, Any]) -> QueueItemRecord:
    return QueueItemRecord(
        id=row["id"],
        document_id=row["document_id"],
        artifact_ref=row["artifact_ref"],
        languages=row["languages"],
        preprocess_options=row["preprocess_options"] or {},
        status=row["status"],
        attempts=row["attempts"],
        max_attempts=row["max_attempts"],
        error_message=row["error_message"],
        locked_at=row["locked_at"],
        created_at=row["created_at"],
    )
