from dococr.config.settings import Settings
from dococr.database.models import JobRecord, JobStatus, OcrState, QueueItemRecord
from dococr.database.repositories.document_repository import DocumentRepository
from dococr.database.repositories.job_repository import JobRepository
from dococr.database.repositories.lease_repository import LeaseRepository
from dococr.events import publisher as events
from dococr.events.publisher import ProgressPublisher
from dococr.logging.logger import Log
from dococr.processor.pipeline import PipelineContext, PipelineOutcome
from dococr.processor.processor import Processor
from dococr.queue.exceptions import QueueDeliveryExhausted
from dococr.queue.job_queue import JobQueue

RUNNABLE_STATUSES = (JobStatus.QUEUED, JobStatus.PROCESSING)


class JobRunner:
    """Run one queue item under a document lease and settle it with the queue."""

    def __init__(
        self,
        processor: Processor,
        queue: JobQueue,
        job_repo: JobRepository,
        doc_repo: DocumentRepository,
        lease_repo: LeaseRepository,
        publisher: ProgressPublisher,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._queue = queue
        self._job_repo = job_repo
        self._doc_repo = doc_repo
        self._lease_repo = lease_repo
        self._publisher = publisher
        self._settings = settings

    def run(self, item: QueueItemRecord, worker_id: str) -> PipelineOutcome | None:
        """Execute a single queue item with error handling.

        Returns the pipeline outcome, or None when the item was not run.
        """
        Log.info(
            "Running queue item",
            item_id=item.id,
            document_id=item.document_id,
            attempt=f"{item.attempts}/{item.max_attempts}",
        )
        try:
            job = self._job_repo.find_by_document(item.document_id)
            if job is None:
                Log.error(f"No job for document {item.document_id}, dropping item {item.id}")
                self._queue.ack_failed(item, "no OCR job for document")
                return None
            if not self._is_runnable(item, job):
                return None
            if not self._lease_repo.acquire(
                item.document_id, worker_id, self._settings.lease_ttl_seconds
            ):
                self._queue.postpone(
                    item,
                    "document is leased by another worker",
                    self._settings.lease_busy_retry_seconds,
                )
                return None
        except QueueDeliveryExhausted:
            raise
        except Exception as exc:
            self._release(item, None, f"cannot start item: {exc}", worker_id)
            return None

        try:
            context = PipelineContext(item=item, job_id=job.id, worker_id=worker_id)
            outcome = self._processor.process(context)
            self._settle(item, outcome, context.error_message)
            return outcome
        except Exception as exc:
            Log.error(f"Item {item.id} interrupted before completion: {exc}")
            self._release(item, job, str(exc), worker_id)
            return None
        finally:
            self._release_lease(item.document_id, worker_id)

    def _is_runnable(self, item: QueueItemRecord, job: JobRecord) -> bool:
        if job.status not in RUNNABLE_STATUSES:
            Log.info(f"Job {job.id} is {job.status}, dropping item {item.id}")
            self._queue.complete(item)
            return False
        return True

    def _settle(self, item: QueueItemRecord, outcome: PipelineOutcome, error: str) -> None:
        if outcome == PipelineOutcome.FAILED:
            self._queue.ack_failed(item, error)
        else:
            self._queue.complete(item)

    def _release(
        self, item: QueueItemRecord, job: JobRecord | None, error: str, worker_id: str
    ) -> None:
        """Hand the item back for redelivery; fail the job once attempts run out."""
        try:
            self._queue.release(item, error)
        except QueueDeliveryExhausted as exc:
            Log.error(str(exc))
            self.fail_exhausted(exc, job, worker_id=worker_id)

    def fail_exhausted(
        self,
        exc: QueueDeliveryExhausted,
        job: JobRecord | None = None,
        worker_id: str | None = None,
    ) -> None:
        """Record a queue item's exhaustion on its job and document.

        A job whose document is leased by another worker is left alone: that
        worker is still running it.
        """
        holder = self._lease_repo.holder(exc.document_id)
        if holder is not None and holder != worker_id:
            Log.warning(f"Not failing document {exc.document_id}: lease held by {holder}")
            return
        if job is None:
            job = self._job_repo.find_by_document(exc.document_id)
        if job is None:
            return
        self._job_repo.mark_failed(job.id, str(exc))
        self._doc_repo.set_ocr_state(exc.document_id, OcrState.FAILED)
        self._publisher.publish(exc.document_id, events.ERROR, {"error": str(exc)})

    def _release_lease(self, document_id: int, worker_id: str) -> None:
        try:
            self._lease_repo.release(document_id, worker_id)
        except Exception as exc:
            Log.warning(f"Cannot release lease on document {document_id}: {exc}")
