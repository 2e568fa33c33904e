import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from dococr.database.models import DocumentRecord, QueueItemRecord
from dococr.ocr.models import ParsedPage, QualityAssessment, RecognitionOutput, TextLine
from dococr.preprocessing.options import PreprocessOptions
from dococr.processor.models import RasterPage


class PipelineOutcome(StrEnum):
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"


@dataclass(slots=True)
class PipelineContext:
    item: QueueItemRecord
    job_id: int
    worker_id: str
    checkpoint_reached: bool = False
    document: DocumentRecord | None = None
    artifact_path: Path | None = None
    languages: str = "eng"
    options: PreprocessOptions = field(default_factory=PreprocessOptions)
    pages: list[RasterPage] = field(default_factory=list)
    pages_completed: int = 0
    page: RasterPage | None = None
    processed_image: bytes = b""
    recognition: RecognitionOutput | None = None
    parsed: ParsedPage | None = None
    quality: QualityAssessment | None = None
    low_quality: bool = False
    lines: list[TextLine] = field(default_factory=list)
    detected_language: str = ""
    error_message: str = ""

    @property
    def document_id(self) -> int:
        return self.item.document_id

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    def reset_page(self, page: RasterPage) -> None:
        self.page = page
        self.processed_image = b""
        self.recognition = None
        self.parsed = None
        self.quality = None
        self.low_quality = False
        self.lines = []
        self.detected_language = ""


def progress_percent(completed: int, total: int) -> int:
    """Percentage of pages completed, rounding halves up."""
    if total <= 0:
        return 0
    return min(100, math.floor(100 * completed / total + 0.5))


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
