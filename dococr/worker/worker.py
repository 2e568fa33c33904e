import threading

from dococr.config.settings import Settings
from dococr.database.models import QueueItemRecord
from dococr.logging.logger import Log
from dococr.queue.exceptions import QueueDeliveryExhausted
from dococr.queue.job_queue import JobQueue
from dococr.worker.job_runner import JobRunner


class Worker:
    """Poll loop: claim -> run -> repeat, sleeping when the queue is empty."""

    def __init__(
        self,
        worker_id: str,
        queue: JobQueue,
        job_runner: JobRunner,
        settings: Settings,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.worker_id = worker_id
        self._queue = queue
        self._job_runner = job_runner
        self._settings = settings
        self._stop_event = stop_event if stop_event is not None else threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self, max_jobs: int | None = None) -> int:
        """Main poll loop. Runs until stopped or interrupted.

        If max_jobs is set, stop after processing that many items (for testing).
        Returns the number of items run.
        """
        Log.info(f"Worker {self.worker_id} started, polling for jobs")
        jobs_done = 0
        try:
            while not self._stop_event.is_set():
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                item = self._try_claim_job()
                if item:
                    self._run_item(item)
                    jobs_done += 1
                else:
                    Log.debug(f"Worker {self.worker_id}: no jobs available, sleeping")
                    self._stop_event.wait(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info(f"Worker {self.worker_id} shutting down gracefully")
        Log.info(f"Worker {self.worker_id} stopped after {jobs_done} items")
        return jobs_done

    def _run_item(self, item: QueueItemRecord) -> None:
        try:
            self._job_runner.run(item, self.worker_id)
        except Exception as exc:
            Log.exception(f"Worker {self.worker_id}: item {item.id} left unsettled: {exc}")

    def _try_claim_job(self) -> QueueItemRecord | None:
        """Attempt to claim the next item. Gracefully handle DB errors."""
        try:
            return self._queue.claim()
        except QueueDeliveryExhausted as exc:
            Log.error(str(exc))
            self._job_runner.fail_exhausted(exc, worker_id=self.worker_id)
            return None
        except Exception as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return None
