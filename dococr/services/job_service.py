import hashlib
import mimetypes
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from psycopg import errors as pg_errors

from dococr.config.settings import Settings
from dococr.database.connection import Database
from dococr.database.models import DocumentRecord, JobRecord, JobStatus, OcrState
from dococr.database.repositories.document_repository import DocumentRepository
from dococr.database.repositories.job_repository import JobRepository
from dococr.logging.logger import Log
from dococr.ocr.languages import parse_languages
from dococr.preprocessing.options import resolve_options
from dococr.processor.exceptions import InvalidJobTransitionError, JobNotFoundError
from dococr.queue.job_queue import JobQueue
from dococr.queue.models import QueueItem

CANCELLABLE_STATUSES = (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.FAILED)
HASH_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class SubmitResult:
    document_id: int
    job_id: int | None
    duplicated: bool = False


@dataclass(frozen=True)
class DocumentStatus:
    document: DocumentRecord
    job: JobRecord | None


def sha256_of(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class JobService:
    """Producer-side operations: submit artifacts, cancel and retry jobs."""

    def __init__(
        self,
        db: Database,
        doc_repo: DocumentRepository,
        job_repo: JobRepository,
        queue: JobQueue,
        settings: Settings,
    ) -> None:
        self._db = db
        self._doc_repo = doc_repo
        self._job_repo = job_repo
        self._queue = queue
        self._settings = settings
        self._files_root = Path(settings.files_root)

    def submit(
        self,
        path: Path,
        title: str | None = None,
        mime_type: str | None = None,
        languages: str | None = None,
        preprocess_options: dict[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> SubmitResult:
        """Store a document, create its job and enqueue it.

        An artifact whose content hash is already stored is reported as a
        duplicate of the existing document and no job is created.

        Raises:
            FileNotFoundError: if path does not exist.
            UnsupportedLanguageError: if languages has unsupported codes.
            InvalidPreprocessOptionsError: if the option bag is malformed.
        """
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        languages = parse_languages(languages or self._settings.default_languages)
        options = dict(preprocess_options or {})
        resolve_options(options)

        file_hash = sha256_of(path)
        existing = self._doc_repo.find_by_hash(file_hash)
        if existing is not None:
            return self._duplicate(existing)

        artifact_ref = self._store_artifact(path, file_hash)
        try:
            with self._db.connection() as conn:
                document = self._doc_repo.create(
                    conn,
                    title=title or path.name,
                    artifact_ref=artifact_ref,
                    mime_type=mime_type or _guess_mime_type(path),
                    file_size_bytes=path.stat().st_size,
                    file_hash_sha256=file_hash,
                    tags=tags,
                )
                job = self._job_repo.create(conn, document.id, languages, options)
                self._queue.enqueue(
                    QueueItem(
                        document_id=document.id,
                        artifact_ref=artifact_ref,
                        languages=languages,
                        preprocess_options=options,
                        max_attempts=self._settings.max_job_attempts,
                    ),
                    conn=conn,
                )
                conn.commit()
        except pg_errors.UniqueViolation:
            existing = self._doc_repo.find_by_hash(file_hash)
            if existing is None:
                raise
            return self._duplicate(existing)

        Log.info(f"Submitted document {document.id} ({path.name}) as job {job.id}")
        return SubmitResult(document_id=document.id, job_id=job.id)

    def cancel(self, job_id: int) -> JobRecord:
        """Cancel a queued, processing or failed job.

        A processing job stops before its next page.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidJobTransitionError: if the job is done or already cancelled.
        """
        job = self._get_job(job_id)
        if not self._job_repo.mark_cancelled(job_id, tuple(s.value for s in CANCELLABLE_STATUSES)):
            raise InvalidJobTransitionError(f"Job {job_id} is {job.status} and cannot be cancelled")
        if job.status == JobStatus.QUEUED:
            self._doc_repo.set_ocr_state(job.document_id, OcrState.FAILED)
        Log.info(f"Job {job_id} cancelled (was {job.status})")
        return self._get_job(job_id)

    def retry(self, job_id: int) -> int:
        """Requeue a failed job with progress and error cleared.

        Returns the new queue item id.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidJobTransitionError: if the job is not failed.
        """
        job = self._get_job(job_id)
        if job.status != JobStatus.FAILED:
            raise InvalidJobTransitionError("Only failed jobs can be retried")
        document = self._doc_repo.find_by_id(job.document_id)

        with self._db.connection() as conn:
            if not self._job_repo.reset_for_retry(conn, job_id):
                conn.rollback()
                raise InvalidJobTransitionError("Only failed jobs can be retried")
            self._doc_repo.set_ocr_state(document.id, OcrState.QUEUED, conn=conn)
            item_id = self._queue.enqueue(
                QueueItem(
                    document_id=document.id,
                    artifact_ref=document.artifact_ref,
                    languages=job.languages,
                    preprocess_options=job.preprocess_options,
                    max_attempts=self._settings.max_job_attempts,
                ),
                conn=conn,
            )
            conn.commit()
        Log.info(f"Job {job_id} requeued as item {item_id}")
        return item_id

    def get_status(self, document_id: int) -> DocumentStatus:
        """Return a document with its pages and its latest job.

        Raises:
            DocumentNotFoundError: if the document does not exist.
        """
        document = self._doc_repo.find_by_id(document_id, with_pages=True)
        return DocumentStatus(document=document, job=self._job_repo.find_by_document(document_id))

    def _get_job(self, job_id: int) -> JobRecord:
        job = self._job_repo.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def _duplicate(self, existing: DocumentRecord) -> SubmitResult:
        job = self._job_repo.find_by_document(existing.id)
        Log.info(f"Duplicate artifact, existing document {existing.id}")
        return SubmitResult(
            document_id=existing.id,
            job_id=job.id if job else None,
            duplicated=True,
        )

    def _store_artifact(self, path: Path, file_hash: str) -> str:
        """Copy the artifact under the files root unless it already lives there."""
        root = self._files_root.resolve()
        source = path.resolve()
        if source.is_relative_to(root):
            return str(source.relative_to(root))
        target = root / f"{file_hash}{path.suffix.lower()}"
        root.mkdir(parents=True, exist_ok=True)
        if not target.exists():
            shutil.copyfile(source, target)
        return target.name


def _guess_mime_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"
