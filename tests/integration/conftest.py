import os
from collections.abc import Generator
from pathlib import Path

import pytest

from dococr.config.settings import Settings
from dococr.database.connection import Database
from dococr.database.models import DocumentRecord, JobRecord
from dococr.database.repositories.document_repository import DocumentRepository
from dococr.database.repositories.job_repository import JobRepository
from dococr.database.repositories.lease_repository import LeaseRepository
from dococr.database.repositories.queue_repository import QueueRepository
from dococr.queue.job_queue import JobQueue

TABLES = ("document_leases", "ocr_queue", "document_pages", "ocr_jobs", "documents")


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "dococr_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def database(test_settings: Settings) -> Generator[Database, None, None]:
    db = Database.from_settings(test_settings)
    try:
        db.open(wait_timeout=2)
        db.apply_schema()
    except Exception as e:
        db.close()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env")
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db(database: Database) -> Generator[Database, None, None]:
    yield database
    with database.connection() as conn:
        conn.execute(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE")
        conn.commit()


@pytest.fixture
def doc_repo(db: Database) -> DocumentRepository:
    return DocumentRepository(db)


@pytest.fixture
def job_repo(db: Database) -> JobRepository:
    return JobRepository(db)


@pytest.fixture
def lease_repo(db: Database) -> LeaseRepository:
    return LeaseRepository(db)


@pytest.fixture
def queue(db: Database) -> JobQueue:
    return JobQueue(db, QueueRepository(db), visibility_timeout_seconds=600)


@pytest.fixture
def seed_document(db: Database, doc_repo: DocumentRepository) -> DocumentRecord:
    with db.connection() as conn:
        document = doc_repo.create(
            conn,
            title="scan.pdf",
            artifact_ref="scan.pdf",
            mime_type="application/pdf",
            file_size_bytes=1024,
            file_hash_sha256="a" * 64,
            tags=["tax"],
        )
        conn.commit()
    return document


@pytest.fixture
def seed_job(db: Database, job_repo: JobRepository, seed_document: DocumentRecord) -> JobRecord:
    with db.connection() as conn:
        job = job_repo.create(conn, seed_document.id, "eng", {})
        conn.commit()
    return job


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    return tmp_path
