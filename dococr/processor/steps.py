from dococr.database.models import JobStatus, OcrState, PageRecord
from dococr.database.repositories.document_repository import DocumentRepository
from dococr.database.repositories.job_repository import JobRepository
from dococr.database.repositories.lease_repository import LeaseRepository
from dococr.events import publisher as events
from dococr.events.publisher import ProgressPublisher
from dococr.logging.logger import Log
from dococr.ocr.base import BaseRecognizer, RecognitionProgress
from dococr.ocr.languages import detect_language, parse_languages
from dococr.ocr.parser import parse
from dococr.ocr.quality import assess_quality
from dococr.ocr.structure import build_lines
from dococr.preprocessing.options import resolve_options
from dococr.preprocessing.preprocessor import ImagePreprocessor
from dococr.processor.exceptions import (
    JobCancelledError,
    LeaseNotAcquiredError,
    ProcessorError,
)
from dococr.processor.file_loader import FileLoader
from dococr.processor.page_extractor import PageExtractor
from dococr.processor.pipeline import PipelineContext, PipelineStep, progress_percent
from dococr.queue.job_queue import JobQueue


class MarkProcessingStep(PipelineStep):
    def __init__(self, job_repo: JobRepository) -> None:
        self._job_repo = job_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        if not self._job_repo.mark_processing(context.job_id):
            raise JobCancelledError(f"Job {context.job_id} is no longer runnable")
        context.checkpoint_reached = True
        Log.info(f"Job {context.job_id} marked as processing")
        return context


class LoadDocumentStep(PipelineStep):
    def __init__(self, file_loader: FileLoader, doc_repo: DocumentRepository) -> None:
        self._file_loader = file_loader
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        context.document = self._doc_repo.find_by_id(context.document_id)
        context.artifact_path = self._file_loader.resolve(context.item.artifact_ref)
        context.languages = parse_languages(context.item.languages)
        context.options = resolve_options(context.item.preprocess_options)
        return context


class StartRunStep(PipelineStep):
    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        self._doc_repo.start_run(context.document_id)
        return context


class ExtractPagesStep(PipelineStep):
    def __init__(self, page_extractor: PageExtractor) -> None:
        self._page_extractor = page_extractor

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.document is None or context.artifact_path is None:
            raise ValueError("PipelineContext.document must be loaded before page extraction")
        context.pages = self._page_extractor.extract(
            context.artifact_path, context.document.mime_type
        )
        Log.info(f"Document {context.document_id}: {context.total_pages} pages to recognize")
        return context


class ProcessPagesStep(PipelineStep):
    """Runs the page steps for every page, strictly in order.

    Before each page the job is checked for cancellation; after each page the
    document lease is renewed and the queue item's lock refreshed.
    """

    def __init__(
        self,
        page_steps: list[PipelineStep],
        publisher: ProgressPublisher,
        job_repo: JobRepository,
        lease_repo: LeaseRepository,
        lease_ttl_seconds: int,
        queue: JobQueue | None = None,
    ) -> None:
        self._page_steps = page_steps
        self._publisher = publisher
        self._job_repo = job_repo
        self._lease_repo = lease_repo
        self._lease_ttl_seconds = lease_ttl_seconds
        self._queue = queue

    def run(self, context: PipelineContext) -> PipelineContext:
        for page in context.pages:
            self._raise_if_cancelled(context)
            self._publisher.publish(
                context.document_id,
                events.PROGRESS,
                {"page": page.number, "totalPages": context.total_pages},
            )
            context.reset_page(page)
            for step in self._page_steps:
                step.run(context)
            self._renew_lease(context)
            if self._queue is not None:
                self._queue.heartbeat(context.item)
        return context

    def _raise_if_cancelled(self, context: PipelineContext) -> None:
        job = self._job_repo.find_by_id(context.job_id)
        if job is not None and job.status == JobStatus.CANCELLED:
            raise JobCancelledError(
                f"Job {context.job_id} cancelled after {context.pages_completed} pages"
            )

    def _renew_lease(self, context: PipelineContext) -> None:
        doc_id, owner, ttl = context.document_id, context.worker_id, self._lease_ttl_seconds
        if self._lease_repo.renew(doc_id, owner, ttl):
            return
        Log.warning(f"Lease on document {doc_id} expired, trying to take it back")
        if not self._lease_repo.acquire(doc_id, owner, ttl):
            raise LeaseNotAcquiredError(f"Lease on document {doc_id} taken by another worker")


class PreprocessStep(PipelineStep):
    def __init__(self, preprocessor: ImagePreprocessor) -> None:
        self._preprocessor = preprocessor

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.page is None:
            raise ValueError("PipelineContext.page must be set before preprocessing")
        if context.options.enabled:
            context.processed_image = self._preprocessor.preprocess(
                context.page.image_bytes, context.options
            )
        else:
            context.processed_image = context.page.image_bytes
        return context


class RecognizeStep(PipelineStep):
    def __init__(self, recognizer: BaseRecognizer, publisher: ProgressPublisher) -> None:
        self._recognizer = recognizer
        self._publisher = publisher

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.page is None:
            raise ValueError("PipelineContext.page must be set before recognition")
        page_number = context.page.number

        def on_progress(progress: RecognitionProgress) -> None:
            self._publisher.publish(
                context.document_id,
                events.LOG,
                {
                    "page": page_number,
                    "message": f"{progress.status} {round(progress.progress * 100)}%",
                },
            )

        context.recognition = self._recognizer.recognize(
            context.processed_image, context.languages, on_progress=on_progress
        )
        return context


class ParseStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if context.recognition is None:
            raise ValueError("PipelineContext.recognition must be set before parsing")
        context.parsed = parse(context.recognition)
        return context


class AssessStep(PipelineStep):
    def __init__(self, low_quality_threshold: float = 70.0) -> None:
        self._low_quality_threshold = low_quality_threshold

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.parsed is None:
            raise ValueError("PipelineContext.parsed must be set before assessment")
        parsed = context.parsed
        context.quality = assess_quality(parsed.avg_confidence, len(parsed.words))
        context.low_quality = parsed.avg_confidence < self._low_quality_threshold
        context.lines = build_lines(parsed.words)
        context.detected_language = detect_language(parsed.text) if parsed.text.strip() else ""
        return context


class PersistPageStep(PipelineStep):
    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.page is None or context.parsed is None or context.quality is None:
            raise ValueError("PipelineContext page results must be set before persist")
        recognition = context.recognition
        page = PageRecord(
            page_number=context.page.number,
            text=context.parsed.text,
            words=context.parsed.words,
            lines=context.lines,
            confidence=context.parsed.avg_confidence,
            width=recognition.width if recognition else 0,
            height=recognition.height if recognition else 0,
            low_quality=context.low_quality,
            quality_rating=context.quality.rating.value,
            recommendations=list(context.quality.recommendations),
            detected_language=context.detected_language,
        )
        self._doc_repo.append_page(context.document_id, page)
        if context.document is not None:
            context.document.pages.append(page)
        Log.info(
            "Page stored",
            document_id=context.document_id,
            page=f"{page.page_number}/{context.total_pages}",
            words=len(page.words),
            confidence=f"{page.confidence:.1f}",
        )
        return context


class PublishPageStep(PipelineStep):
    def __init__(self, publisher: ProgressPublisher, job_repo: JobRepository) -> None:
        self._publisher = publisher
        self._job_repo = job_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.page is None or context.parsed is None:
            raise ValueError("PipelineContext page results must be set before publishing")
        context.pages_completed += 1
        self._publisher.publish(
            context.document_id,
            events.PAGE_DONE,
            {
                "page": context.page.number,
                "confidence": context.parsed.avg_confidence,
                "lowQuality": context.low_quality,
            },
        )
        self._job_repo.update_progress(
            context.job_id, progress_percent(context.pages_completed, context.total_pages)
        )
        return context


class MarkDoneStep(PipelineStep):
    def __init__(
        self,
        doc_repo: DocumentRepository,
        job_repo: JobRepository,
        publisher: ProgressPublisher,
    ) -> None:
        self._doc_repo = doc_repo
        self._job_repo = job_repo
        self._publisher = publisher

    def run(self, context: PipelineContext) -> PipelineContext:
        if not self._job_repo.mark_done(context.job_id):
            job = self._job_repo.find_by_id(context.job_id)
            status = job.status if job is not None else "missing"
            if status == JobStatus.CANCELLED:
                raise JobCancelledError(
                    f"Job {context.job_id} cancelled during its last page"
                )
            raise ProcessorError(f"Job {context.job_id} is {status}, cannot mark it done")
        self._doc_repo.set_ocr_state(context.document_id, OcrState.DONE)
        self._publisher.publish(
            context.document_id, events.DONE, {"documentId": context.document_id}
        )
        Log.info(f"Job {context.job_id} done: {context.total_pages} pages")
        return context


class MarkFailedStep(PipelineStep):
    def __init__(
        self,
        doc_repo: DocumentRepository,
        job_repo: JobRepository,
        publisher: ProgressPublisher,
    ) -> None:
        self._doc_repo = doc_repo
        self._job_repo = job_repo
        self._publisher = publisher

    def run(self, context: PipelineContext) -> PipelineContext:
        self._doc_repo.set_ocr_state(context.document_id, OcrState.FAILED)
        self._job_repo.mark_failed(context.job_id, context.error_message)
        self._publisher.publish(
            context.document_id, events.ERROR, {"error": context.error_message}
        )
        Log.error(f"Job {context.job_id} marked as failed: {context.error_message}")
        return context


class MarkCancelledStep(PipelineStep):
    def __init__(self, doc_repo: DocumentRepository, publisher: ProgressPublisher) -> None:
        self._doc_repo = doc_repo
        self._publisher = publisher

    def run(self, context: PipelineContext) -> PipelineContext:
        self._doc_repo.set_ocr_state(context.document_id, OcrState.FAILED)
        self._publisher.publish(
            context.document_id, events.CANCELLED, {"documentId": context.document_id}
        )
        Log.info(
            f"Job {context.job_id} cancelled after {context.pages_completed} of "
            f"{context.total_pages} pages"
        )
        return context
