from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from dococr.ocr.models import TextLine, Word


class JobStatus(StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OcrState(StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class QueueItemStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    DEAD = "dead"


@dataclass
class JobRecord:
    """Represents a row from the ocr_jobs table."""

    id: int
    document_id: int
    status: str
    progress: int = 0
    error_message: str | None = None
    languages: str = "eng"
    preprocess_options: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class PageRecord:
    """Represents a row from the document_pages table."""

    page_number: int
    text: str
    words: list[Word]
    confidence: float
    width: int
    height: int
    low_quality: bool
    quality_rating: str = "poor"
    recommendations: list[str] = field(default_factory=list)
    lines: list[TextLine] = field(default_factory=list)
    detected_language: str = ""
    processed_at: datetime | None = None


@dataclass
class DocumentRecord:
    """Represents a row from the documents table, with its pages when loaded."""

    id: int
    title: str
    artifact_ref: str
    mime_type: str
    file_size_bytes: int
    file_hash_sha256: str
    ocr_state: str = OcrState.QUEUED
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    pages: list[PageRecord] = field(default_factory=list)
    uploaded_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class QueueItemRecord:
    """Represents a row from the ocr_queue table."""

    id: int
    document_id: int
    artifact_ref: str
    languages: str = "eng"
    preprocess_options: dict[str, Any] = field(default_factory=dict)
    status: str = QueueItemStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    error_message: str | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
