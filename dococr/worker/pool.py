import os
import signal
import socket
import threading
from collections.abc import Callable

from dococr.config.settings import Settings
from dococr.logging.logger import Log
from dococr.queue.job_queue import JobQueue
from dococr.worker.job_runner import JobRunner
from dococr.worker.worker import Worker


def default_worker_id(index: int) -> str:
    """Identify a worker across processes: host, pid and slot."""
    return f"{socket.gethostname()}:{os.getpid()}:{index}"


class WorkerPool:
    """Fixed number of worker threads draining one queue."""

    def __init__(
        self,
        queue: JobQueue,
        job_runner: JobRunner,
        settings: Settings,
        worker_id_factory: Callable[[int], str] = default_worker_id,
    ) -> None:
        self._stop_event = threading.Event()
        self._workers = [
            Worker(worker_id_factory(i), queue, job_runner, settings, self._stop_event)
            for i in range(settings.worker_concurrency)
        ]
        self._threads: list[threading.Thread] = []

    @property
    def size(self) -> int:
        return len(self._workers)

    def start(self, max_jobs_per_worker: int | None = None) -> None:
        """Start one thread per worker."""
        if self._threads:
            raise RuntimeError("WorkerPool already started")
        self._stop_event.clear()
        for index, worker in enumerate(self._workers):
            thread = threading.Thread(
                target=worker.run,
                kwargs={"max_jobs": max_jobs_per_worker},
                name=f"ocr-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        Log.info(f"Worker pool started with {self.size} workers")

    def stop(self) -> None:
        """Ask every worker to stop after its current item."""
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [t for t in self._threads if t.is_alive()]

    def run(self) -> None:
        """Start the pool and block until interrupted, then drain gracefully.

        SIGTERM is treated like Ctrl-C when called from the main thread.
        """
        previous = None
        if threading.current_thread() is threading.main_thread():
            previous = signal.signal(signal.SIGTERM, self._on_sigterm)
        self.start()
        try:
            while any(t.is_alive() for t in self._threads):
                self._stop_event.wait(1.0)
                if self._stop_event.is_set():
                    break
        except KeyboardInterrupt:
            Log.info("Worker pool shutting down gracefully")
        finally:
            self.stop()
            self.join()
            if previous is not None:
                signal.signal(signal.SIGTERM, previous)

    def _on_sigterm(self, signum: int, frame: object) -> None:
        Log.info("Received SIGTERM, worker pool shutting down gracefully")
        self.stop()
