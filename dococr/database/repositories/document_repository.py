from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from dococr.database.connection import Database
from dococr.database.models import DocumentRecord, OcrState, PageRecord
from dococr.ocr.models import TextLine, Word
from dococr.processor.exceptions import DocumentNotFoundError, PersistenceError

_COLUMNS = """
    id, title, artifact_ref, mime_type, file_size_bytes, file_hash_sha256,
    ocr_state, tags, metadata, uploaded_at, updated_at
"""


class DocumentRepository:
    """Database operations for the documents and document_pages tables."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self,
        conn: psycopg.Connection[Any],
        title: str,
        artifact_ref: str,
        mime_type: str,
        file_size_bytes: int,
        file_hash_sha256: str,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        """Insert a queued document. Caller commits.

        Raises:
            psycopg.errors.UniqueViolation: if the content hash is already stored.
        """
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                INSERT INTO documents
                (title, artifact_ref, mime_type, file_size_bytes, file_hash_sha256,
                 tags, metadata, ocr_state)
                VALUES (%s, %s, %s, %s, %s, %s, %s, 'queued')
                RETURNING {_COLUMNS}
                """,
                (
                    title,
                    artifact_ref,
                    mime_type,
                    file_size_bytes,
                    file_hash_sha256,
                    tags or [],
                    Jsonb(metadata or {}),
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise PersistenceError("documents insert returned no row")
        return _to_record(row)

    def find_by_id(self, document_id: int, with_pages: bool = False) -> DocumentRecord:
        """Find a document by ID.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM documents WHERE id = %s", (document_id,))
                row = cur.fetchone()
            if row is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            document = _to_record(row)
            if with_pages:
                document.pages = self._fetch_pages(conn, document_id)
        return document

    def find_by_hash(self, file_hash_sha256: str) -> DocumentRecord | None:
        """Find a document by content hash (duplicate detection)."""
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM documents WHERE file_hash_sha256 = %s",
                    (file_hash_sha256,),
                )
                row = cur.fetchone()
        return _to_record(row) if row is not None else None

    def set_ocr_state(
        self,
        document_id: int,
        state: OcrState,
        conn: psycopg.Connection[Any] | None = None,
    ) -> None:
        """Set the document's OCR state. Commits unless a caller connection is given.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
            PersistenceError: if the write fails.
        """
        query = "UPDATE documents SET ocr_state = %s, updated_at = NOW() WHERE id = %s"
        params = (state.value, document_id)
        if conn is not None:
            cur = conn.execute(query, params)
            rowcount = cur.rowcount
        else:
            try:
                with self._db.connection() as own_conn:
                    cur = own_conn.execute(query, params)
                    rowcount = cur.rowcount
                    own_conn.commit()
            except psycopg.Error as exc:
                raise PersistenceError(f"documents update failed: {exc}") from exc
        if rowcount == 0:
            raise DocumentNotFoundError(f"Document {document_id} not found")

    def start_run(self, document_id: int) -> None:
        """Drop pages of any earlier run so page numbers start again from 1."""
        try:
            with self._db.connection() as conn:
                conn.execute("DELETE FROM document_pages WHERE document_id = %s", (document_id,))
                conn.commit()
        except psycopg.Error as exc:
            raise PersistenceError(f"Cannot start run for document {document_id}: {exc}") from exc

    def append_page(self, document_id: int, page: PageRecord) -> None:
        """Append one fully recognized page. Existing pages are never rewritten.

        Raises:
            PersistenceError: if the write fails, including a duplicate page number.
        """
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO document_pages
                    (document_id, page_number, text, words, lines, confidence, width,
                     height, low_quality, quality_rating, recommendations, detected_language,
                     processed_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
                    """,
                    (
                        document_id,
                        page.page_number,
                        page.text,
                        Jsonb([w.to_dict() for w in page.words]),
                        Jsonb([ln.to_dict() for ln in page.lines]),
                        page.confidence,
                        page.width,
                        page.height,
                        page.low_quality,
                        page.quality_rating,
                        Jsonb(page.recommendations),
                        page.detected_language,
                        page.processed_at,
                    ),
                )
                conn.execute(
                    "UPDATE documents SET updated_at = NOW() WHERE id = %s", (document_id,)
                )
                conn.commit()
        except psycopg.Error as exc:
            raise PersistenceError(
                f"Cannot append page {page.page_number} to document {document_id}: {exc}"
            ) from exc

    def _fetch_pages(self, conn: psycopg.Connection[Any], document_id: int) -> list[PageRecord]:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT page_number, text, words, lines, confidence, width, height,
                       low_quality, quality_rating, recommendations, detected_language,
                       processed_at
                FROM document_pages
                WHERE document_id = %s
                ORDER BY page_number
                """,
                (document_id,),
            )
            rows = cur.fetchall()
        return [_to_page(row) for row in rows]


def _to_record(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        title=row["title"],
        artifact_ref=row["artifact_ref"],
        mime_type=row["mime_type"],
        file_size_bytes=row["file_size_bytes"],
        file_hash_sha256=row["file_hash_sha256"].strip(),
        ocr_state=row["ocr_state"],
        tags=list(row["tags"] or []),
        metadata=row["metadata"] or {},
        uploaded_at=row["uploaded_at"],
        updated_at=row["updated_at"],
    )


def _to_page(row: dict[str, Any]) -> PageRecord:
    words = [Word.from_dict(w) for w in row["words"] or []]
    lines = [
        TextLine(
            y=ln["y"],
            text=ln["text"],
            words=[Word.from_dict(w) for w in ln.get("words", [])],
        )
        for ln in row["lines"] or []
    ]
    return PageRecord(
        page_number=row["page_number"],
        text=row["text"],
        words=words,
        lines=lines,
        confidence=row["confidence"],
        width=row["width"],
        height=row["height"],
        low_quality=row["low_quality"],
        quality_rating=row["quality_rating"],
        recommendations=list(row["recommendations"] or []),
        detected_language=row["detected_language"],
        processed_at=row["processed_at"],
    )
