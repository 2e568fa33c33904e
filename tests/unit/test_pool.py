import signal
import threading
from collections import deque
from unittest.mock import MagicMock

import pytest

from dococr.database.models import QueueItemRecord
from dococr.worker.pool import WorkerPool, default_worker_id


class _ScriptedQueue:
    """Hands out a fixed list of items, then reports an empty backlog."""

    def __init__(self, count: int) -> None:
        self._lock = threading.Lock()
        self._items = deque(
            QueueItemRecord(id=i, document_id=i, artifact_ref=f"{i}.pdf", attempts=1)
            for i in range(1, count + 1)
        )

    def claim(self) -> QueueItemRecord | None:
        with self._lock:
            return self._items.popleft() if self._items else None


class _RecordingRunner:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.runs: list[tuple[int, str]] = []

    def run(self, item: QueueItemRecord, worker_id: str) -> None:
        with self._lock:
            self.runs.append((item.id, worker_id))


def _settings(concurrency: int) -> MagicMock:
    return MagicMock(worker_concurrency=concurrency, job_poll_interval_seconds=0.01)


class TestWorkerPool:
    def test_size_matches_concurrency(self) -> None:
        pool = WorkerPool(MagicMock(), MagicMock(), _settings(3))

        assert pool.size == 3

    def test_each_item_runs_exactly_once(self) -> None:
        runner = _RecordingRunner()
        pool = WorkerPool(
            _ScriptedQueue(10), runner, _settings(3), worker_id_factory=lambda i: f"w-{i}"
        )

        pool.start(max_jobs_per_worker=10)
        pause = threading.Event()
        for _ in range(200):
            if len(runner.runs) == 10:
                break
            pause.wait(0.01)
        pool.stop()
        pool.join(timeout=5)

        assert sorted(item_id for item_id, _ in runner.runs) == list(range(1, 11))
        assert {worker_id for _, worker_id in runner.runs} <= {"w-0", "w-1", "w-2"}

    def test_stop_joins_idle_workers(self) -> None:
        pool = WorkerPool(_ScriptedQueue(0), _RecordingRunner(), _settings(2))

        pool.start()
        pool.stop()
        pool.join(timeout=5)

        assert pool._threads == []

    def test_cannot_start_twice(self) -> None:
        pool = WorkerPool(_ScriptedQueue(0), _RecordingRunner(), _settings(1))
        pool.start()
        try:
            with pytest.raises(RuntimeError, match="already started"):
                pool.start()
        finally:
            pool.stop()
            pool.join(timeout=5)

    def test_sigterm_stops_run_and_restores_handler(self) -> None:
        pool = WorkerPool(_ScriptedQueue(0), _RecordingRunner(), _settings(2))
        previous = signal.getsignal(signal.SIGTERM)
        timer = threading.Timer(0.05, pool._on_sigterm, args=(signal.SIGTERM, None))

        timer.start()
        pool.run()

        assert pool._threads == []
        assert signal.getsignal(signal.SIGTERM) == previous


def test_default_worker_id_is_unique_per_slot() -> None:
    assert default_worker_id(0) != default_worker_id(1)
    assert default_worker_id(0).endswith(":0")
