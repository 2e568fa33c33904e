import psycopg

from dococr.database.connection import Database
from dococr.processor.exceptions import PersistenceError


class LeaseRepository:
    """Time-bounded exclusive claims on documents (document_leases table)."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def acquire(self, document_id: int, owner: str, ttl_seconds: int) -> bool:
        """Take the lease if it is free, expired, or already held by owner."""
        return self._execute(
            """
            INSERT INTO document_leases (document_id, owner, expires_at)
            VALUES (%s, %s, NOW() + make_interval(secs => %s))
            ON CONFLICT (document_id) DO UPDATE
            SET owner = EXCLUDED.owner, expires_at = EXCLUDED.expires_at
            WHERE document_leases.expires_at < NOW()
               OR document_leases.owner = EXCLUDED.owner
            """,
            (document_id, owner, ttl_seconds),
        )

    def renew(self, document_id: int, owner: str, ttl_seconds: int) -> bool:
        """Extend a lease held by owner. Returns False if it was lost."""
        return self._execute(
            """
            UPDATE document_leases
            SET expires_at = NOW() + make_interval(secs => %s)
            WHERE document_id = %s AND owner = %s
            """,
            (ttl_seconds, document_id, owner),
        )

    def release(self, document_id: int, owner: str) -> None:
        """Drop the lease if owner still holds it."""
        self._execute(
            "DELETE FROM document_leases WHERE document_id = %s AND owner = %s",
            (document_id, owner),
        )

    def holder(self, document_id: int) -> str | None:
        """Return the owner of an unexpired lease on the document, if any."""
        try:
            with self._db.connection() as conn:
                row = conn.execute(
                    """
                    SELECT owner FROM document_leases
                    WHERE document_id = %s AND expires_at >= NOW()
                    """,
                    (document_id,),
                ).fetchone()
        except psycopg.Error as exc:
            raise PersistenceError(f"document_leases read failed: {exc}") from exc
        if row is None:
            return None
        return str(row[0])

    def _execute(self, query: str, params: tuple[object, ...]) -> bool:
        try:
            with self._db.connection() as conn:
                cur = conn.execute(query, params)  # type: ignore[arg-type]
                conn.commit()
        except psycopg.Error as exc:
            raise PersistenceError(f"document_leases write failed: {exc}") from exc
        return cur.rowcount > 0
