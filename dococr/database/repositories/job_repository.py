from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from dococr.database.connection import Database
from dococr.database.models import JobRecord, JobStatus
from dococr.processor.exceptions import PersistenceError

_COLUMNS = """
    id, document_id, status, progress, error_message, languages,
    preprocess_options, created_at, updated_at
"""


class JobRepository:
    """Database operations for the ocr_jobs table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self,
        conn: psycopg.Connection[Any],
        document_id: int,
        languages: str,
        preprocess_options: dict[str, Any],
    ) -> JobRecord:
        """Insert a queued job. Caller commits."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                INSERT INTO ocr_jobs (document_id, status, languages, preprocess_options)
                VALUES (%s, 'queued', %s, %s)
                RETURNING {_COLUMNS}
                """,
                (document_id, languages, Jsonb(preprocess_options)),
            )
            row = cur.fetchone()
        if row is None:
            raise PersistenceError("ocr_jobs insert returned no row")
        return _to_record(row)

    def find_by_id(self, job_id: int) -> JobRecord | None:
        """Find a job by ID."""
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM ocr_jobs WHERE id = %s", (job_id,))
                row = cur.fetchone()
        return _to_record(row) if row is not None else None

    def find_by_document(self, document_id: int) -> JobRecord | None:
        """Find the most recent job for a document."""
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS} FROM ocr_jobs
                    WHERE document_id = %s
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (document_id,),
                )
                row = cur.fetchone()
        return _to_record(row) if row is not None else None

    def mark_processing(self, job_id: int) -> bool:
        """Move a job and its document to processing in one statement.

        A job already processing is one reclaimed from a crashed worker.

        Returns False when the job is in any other status, e.g. cancelled.
        """
        return self._update(
            """
            WITH job AS (
                UPDATE ocr_jobs
                SET status = 'processing', updated_at = NOW()
                WHERE id = %s AND status IN ('queued', 'processing')
                RETURNING document_id
            )
            UPDATE documents
            SET ocr_state = 'processing', updated_at = NOW()
            FROM job
            WHERE documents.id = job.document_id
            """,
            (job_id,),
        )

    def update_progress(self, job_id: int, progress: int) -> None:
        """Raise progress of a processing job. Progress never decreases."""
        self._update(
            """
            UPDATE ocr_jobs
            SET progress = GREATEST(progress, %s), updated_at = NOW()
            WHERE id = %s AND status = 'processing'
            """,
            (max(0, min(100, progress)), job_id),
        )

    def mark_done(self, job_id: int) -> bool:
        """Mark a processing job as done.

        Returns False when the job left processing meanwhile, e.g. it was cancelled.
        """
        return self._update(
            """
            UPDATE ocr_jobs
            SET status = 'done', progress = 100, error_message = NULL, updated_at = NOW()
            WHERE id = %s AND status = 'processing'
            """,
            (job_id,),
        )

    def mark_failed(self, job_id: int, error: str) -> None:
        """Mark a job as failed. A cancelled job stays cancelled."""
        self._update(
            """
            UPDATE ocr_jobs
            SET status = 'failed', error_message = %s, updated_at = NOW()
            WHERE id = %s AND status <> 'cancelled'
            """,
            (error, job_id),
        )

    def mark_cancelled(self, job_id: int, from_statuses: tuple[str, ...]) -> bool:
        """Cancel a job if its current status is one of from_statuses."""
        return self._update(
            """
            UPDATE ocr_jobs
            SET status = 'cancelled', error_message = NULL, updated_at = NOW()
            WHERE id = %s AND status = ANY(%s)
            """,
            (job_id, list(from_statuses)),
        )

    def reset_for_retry(self, conn: psycopg.Connection[Any], job_id: int) -> bool:
        """Return a failed job to queued with progress and error cleared. Caller commits."""
        cur = conn.execute(
            """
            UPDATE ocr_jobs
            SET status = 'queued', progress = 0, error_message = NULL, updated_at = NOW()
            WHERE id = %s AND status = %s
            """,
            (job_id, JobStatus.FAILED.value),
        )
        return cur.rowcount > 0

    def _update(self, query: str, params: tuple[Any, ...]) -> bool:
        try:
            with self._db.connection() as conn:
                cur = conn.execute(query, params)  # type: ignore[arg-type]
                conn.commit()
        except psycopg.Error as exc:
            raise PersistenceError(f"ocr_jobs update failed: {exc}") from exc
        return cur.rowcount > 0


def _to_record(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        document_id=row["document_id"],
        status=row["status"],
        progress=row["progress"],
        error_message=row["error_message"],
        languages=row["languages"],
        preprocess_options=row["preprocess_options"] or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
