from pathlib import Path

from dococr.config.settings import Settings
from dococr.database.repositories.document_repository import DocumentRepository
from dococr.database.repositories.job_repository import JobRepository
from dococr.database.repositories.lease_repository import LeaseRepository
from dococr.events.publisher import ProgressPublisher
from dococr.logging.logger import Log
from dococr.ocr.base import BaseRecognizer
from dococr.ocr.tesseract_adapter import TesseractAdapter
from dococr.pdf.factory import RasterizerFactory
from dococr.preprocessing.preprocessor import ImagePreprocessor
from dococr.processor.exceptions import JobCancelledError, LeaseNotAcquiredError
from dococr.processor.file_loader import FileLoader
from dococr.processor.page_extractor import PageExtractor
from dococr.processor.pipeline import PipelineContext, PipelineOutcome, PipelineStep
from dococr.processor.steps import (
    AssessStep,
    ExtractPagesStep,
    LoadDocumentStep,
    MarkCancelledStep,
    MarkDoneStep,
    MarkFailedStep,
    MarkProcessingStep,
    ParseStep,
    PersistPageStep,
    PreprocessStep,
    ProcessPagesStep,
    PublishPageStep,
    RecognizeStep,
    StartRunStep,
)
from dococr.queue.job_queue import JobQueue


class Processor:
    """Orchestrates the OCR pipeline for one document.

    Pipeline: mark processing -> load -> reset pages -> extract pages ->
    per page (preprocess -> recognize -> parse -> assess -> persist -> publish)
    -> mark done.

    Errors raised before the job reaches processing propagate to the caller
    unchanged, so the queue can redeliver. After that, any error fails the
    job through failed_step; pages already persisted are kept.
    """

    def __init__(
        self,
        steps: list[PipelineStep],
        failed_step: PipelineStep,
        cancelled_step: PipelineStep,
    ) -> None:
        self._steps = steps
        self._failed_step = failed_step
        self._cancelled_step = cancelled_step

    def process(self, context: PipelineContext) -> PipelineOutcome:
        """Run all steps for the context's document and report how the run ended."""
        Log.info(f"Processing document {context.document_id} for job {context.job_id}")
        try:
            for step in self._steps:
                step.run(context)
        except JobCancelledError as exc:
            Log.info(str(exc))
            if context.checkpoint_reached:
                self._cancelled_step.run(context)
            return PipelineOutcome.CANCELLED
        except LeaseNotAcquiredError as exc:
            Log.warning(f"Abandoning job {context.job_id}: {exc}")
            return PipelineOutcome.ABANDONED
        except Exception as exc:
            if not context.checkpoint_reached:
                raise
            context.error_message = str(exc) or type(exc).__name__
            Log.exception(f"Job {context.job_id} failed: {context.error_message}")
            self._failed_step.run(context)
            return PipelineOutcome.FAILED
        return PipelineOutcome.DONE


def build_processor(
    settings: Settings,
    doc_repo: DocumentRepository,
    job_repo: JobRepository,
    lease_repo: LeaseRepository,
    publisher: ProgressPublisher,
    recognizer: BaseRecognizer | None = None,
    files_root: Path | None = None,
    queue: JobQueue | None = None,
) -> Processor:
    """Build a Processor with all required adapters.

    With a queue, the running item's lock is refreshed after every page.
    """
    file_loader = FileLoader(
        files_root=files_root if files_root is not None else Path(settings.files_root)
    )
    page_extractor = PageExtractor(RasterizerFactory.create(settings), dpi=settings.raster_dpi)
    if recognizer is None:
        recognizer = TesseractAdapter(tesseract_cmd=settings.tesseract_cmd)

    page_steps: list[PipelineStep] = [
        PreprocessStep(ImagePreprocessor()),
        RecognizeStep(recognizer, publisher),
        ParseStep(),
        AssessStep(settings.low_quality_threshold),
        PersistPageStep(doc_repo),
        PublishPageStep(publisher, job_repo),
    ]
    steps: list[PipelineStep] = [
        MarkProcessingStep(job_repo),
        LoadDocumentStep(file_loader, doc_repo),
        StartRunStep(doc_repo),
        ExtractPagesStep(page_extractor),
        ProcessPagesStep(
            page_steps,
            publisher,
            job_repo,
            lease_repo,
            settings.lease_ttl_seconds,
            queue,
        ),
        MarkDoneStep(doc_repo, job_repo, publisher),
    ]
    return Processor(
        steps=steps,
        failed_step=MarkFailedStep(doc_repo, job_repo, publisher),
        cancelled_step=MarkCancelledStep(doc_repo, publisher),
    )
