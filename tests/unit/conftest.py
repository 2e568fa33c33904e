import io
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from dococr.database.models import (
    DocumentRecord,
    JobRecord,
    JobStatus,
    OcrState,
    PageRecord,
    QueueItemRecord,
)
from dococr.ocr.base import BaseRecognizer, ProgressSink, RecognitionProgress
from dococr.ocr.models import PositionalRow, RecognitionOutput, RowLevel
from dococr.pdf.base import BaseRasterizer
from dococr.processor.exceptions import DocumentNotFoundError, PersistenceError

WORDS_PER_PAGE = 12


class FakeDocumentRepository:
    """In-memory stand-in for DocumentRepository."""

    def __init__(self) -> None:
        self.documents: dict[int, DocumentRecord] = {}
        self.pages: dict[int, list[PageRecord]] = {}
        self.states: dict[int, list[str]] = {}

    def find_by_id(self, document_id: int, with_pages: bool = False) -> DocumentRecord:
        if document_id not in self.documents:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        stored = self.documents[document_id]
        document = replace(stored, pages=[])
        if with_pages:
            document.pages = list(self.pages.get(document_id, []))
        return document

    def set_ocr_state(self, document_id: int, state: OcrState, conn: Any = None) -> None:
        if document_id not in self.documents:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        self.documents[document_id].ocr_state = state.value
        self.states.setdefault(document_id, []).append(state.value)

    def start_run(self, document_id: int) -> None:
        self.pages[document_id] = []

    def append_page(self, document_id: int, page: PageRecord) -> None:
        pages = self.pages.setdefault(document_id, [])
        if any(p.page_number == page.page_number for p in pages):
            raise PersistenceError(f"Duplicate page {page.page_number}")
        pages.append(page)


class FakeJobRepository:
    """In-memory stand-in for JobRepository, recording every progress write."""

    def __init__(self, doc_repo: FakeDocumentRepository) -> None:
        self._doc_repo = doc_repo
        self.jobs: dict[int, JobRecord] = {}
        self.progress_history: dict[int, list[int]] = {}

    def find_by_id(self, job_id: int) -> JobRecord | None:
        return self.jobs.get(job_id)

    def find_by_document(self, document_id: int) -> JobRecord | None:
        matching = [j for j in self.jobs.values() if j.document_id == document_id]
        return max(matching, key=lambda j: j.id) if matching else None

    def mark_processing(self, job_id: int) -> bool:
        job = self.jobs[job_id]
        if job.status not in (JobStatus.QUEUED, JobStatus.PROCESSING):
            return False
        job.status = JobStatus.PROCESSING.value
        self._doc_repo.set_ocr_state(job.document_id, OcrState.PROCESSING)
        return True

    def update_progress(self, job_id: int, progress: int) -> None:
        job = self.jobs[job_id]
        if job.status != JobStatus.PROCESSING:
            return
        job.progress = max(job.progress, max(0, min(100, progress)))
        self.progress_history.setdefault(job_id, []).append(job.progress)

    def mark_done(self, job_id: int) -> bool:
        job = self.jobs[job_id]
        if job.status != JobStatus.PROCESSING:
            return False
        job.status = JobStatus.DONE.value
        job.progress = 100
        job.error_message = None
        return True

    def mark_failed(self, job_id: int, error: str) -> None:
        job = self.jobs[job_id]
        if job.status != JobStatus.CANCELLED:
            job.status = JobStatus.FAILED.value
            job.error_message = error

    def mark_cancelled(self, job_id: int, from_statuses: tuple[str, ...]) -> bool:
        job = self.jobs[job_id]
        if job.status not in from_statuses:
            return False
        job.status = JobStatus.CANCELLED.value
        job.error_message = None
        return True


class FakeLeaseRepository:
    """In-memory stand-in for LeaseRepository without expiry."""

    def __init__(self) -> None:
        self.owners: dict[int, str] = {}
        self.renewals = 0
        self.renew_result = True

    def acquire(self, document_id: int, owner: str, ttl_seconds: int) -> bool:
        current = self.owners.get(document_id)
        if current is not None and current != owner:
            return False
        self.owners[document_id] = owner
        return True

    def renew(self, document_id: int, owner: str, ttl_seconds: int) -> bool:
        self.renewals += 1
        return self.renew_result and self.owners.get(document_id) == owner

    def release(self, document_id: int, owner: str) -> None:
        if self.owners.get(document_id) == owner:
            del self.owners[document_id]

    def holder(self, document_id: int) -> str | None:
        return self.owners.get(document_id)


class FakeStore:
    """Documents, jobs and leases of one test, with seeding helpers."""

    def __init__(self) -> None:
        self.doc_repo = FakeDocumentRepository()
        self.job_repo = FakeJobRepository(self.doc_repo)
        self.lease_repo = FakeLeaseRepository()

    def add_document(
        self,
        document_id: int = 1,
        artifact_ref: str = "doc.pdf",
        mime_type: str = "application/pdf",
    ) -> DocumentRecord:
        document = DocumentRecord(
            id=document_id,
            title=artifact_ref,
            artifact_ref=artifact_ref,
            mime_type=mime_type,
            file_size_bytes=1024,
            file_hash_sha256="a" * 64,
        )
        self.doc_repo.documents[document_id] = document
        return document

    def add_job(
        self, job_id: int = 7, document_id: int = 1, status: str = JobStatus.QUEUED
    ) -> JobRecord:
        job = JobRecord(id=job_id, document_id=document_id, status=status)
        self.job_repo.jobs[job_id] = job
        return job

    def queue_item(
        self, document_id: int = 1, artifact_ref: str = "doc.pdf", **kwargs: Any
    ) -> QueueItemRecord:
        kwargs.setdefault("attempts", 1)
        return QueueItemRecord(
            id=100 + document_id,
            document_id=document_id,
            artifact_ref=artifact_ref,
            status="processing",
            **kwargs,
        )


class FakeRecognizer(BaseRecognizer):
    """Returns one page of words per call, with the next confidence from a list."""

    def __init__(
        self,
        confidences: list[float],
        on_call: Callable[[int], None] | None = None,
    ) -> None:
        self._confidences = list(confidences)
        self._on_call = on_call
        self.calls: list[str] = []

    def recognize(
        self,
        image_bytes: bytes,
        languages: str,
        on_progress: ProgressSink | None = None,
    ) -> RecognitionOutput:
        self.calls.append(languages)
        call_number = len(self.calls)
        if self._on_call is not None:
            self._on_call(call_number)
        if on_progress is not None:
            on_progress(RecognitionProgress(status="recognizing text", progress=1.0))
        confidence = self._confidences[call_number - 1]
        words = [f"word{call_number}_{i}" for i in range(WORDS_PER_PAGE)]
        rows = [PositionalRow(level=RowLevel.PAGE, width=200, height=100, text=" ".join(words))]
        rows += [
            PositionalRow(
                level=RowLevel.WORD,
                left=10 + 15 * i,
                top=20,
                width=12,
                height=10,
                conf=confidence,
                text=word,
                word_num=i + 1,
            )
            for i, word in enumerate(words)
        ]
        return RecognitionOutput(rows=rows, text=" ".join(words), width=200, height=100)


class FakeRasterizer(BaseRasterizer):
    """Writes page_count small PNG files instead of rendering the PDF."""

    def __init__(self, page_count: int = 3, error: Exception | None = None) -> None:
        self._page_count = page_count
        self._error = error

    def rasterize(self, pdf_path: Path, out_dir: Path, dpi: int) -> list[Path]:
        if self._error is not None:
            raise self._error
        paths = []
        for number in range(1, self._page_count + 1):
            path = out_dir / f"page-{number}.png"
            path.write_bytes(png_bytes(shade=40 * number))
            paths.append(path)
        return paths


def png_bytes(width: int = 60, height: int = 40, shade: int = 128) -> bytes:
    image = Image.new("L", (width, height), shade)
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def fake_recognizer() -> Callable[..., FakeRecognizer]:
    return FakeRecognizer


@pytest.fixture()
def fake_rasterizer() -> Callable[..., FakeRasterizer]:
    return FakeRasterizer
