"""Bounded admission queue drained by a fixed pool of worker threads."""
import logging
import queue
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .errors import JobCancelledError, QueueBusyError
from .models import Job
from .pipeline import JobContext

log = logging.getLogger(__name__)

Handler = Callable[[Job, JobContext], object]


class TaskLocks:
    """One mutex per task name, so rounds for the same task never overlap."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextmanager
    def hold(self, task: str, stop_event: threading.Event, poll: float = 0.5) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(task, threading.Lock())
            self._users[task] = self._users.get(task, 0) + 1
        try:
            while not lock.acquire(timeout=poll):
                if stop_event.is_set():
                    raise JobCancelledError(f"shutdown while waiting for task {task}")
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                self._users[task] -= 1
                if not self._users[task]:
                    del self._users[task]
                    del self._locks[task]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class JobQueue:
    def __init__(
        self,
        handler: Handler,
        capacity: int = 100,
        workers: int = 3,
        job_timeout: float = 300.0,
        poll_interval: float = 0.5,
    ):
        if capacity < 1 or workers < 0:
            raise ValueError("capacity must be >= 1 and workers >= 0")
        self.handler = handler
        self.capacity = capacity
        self.workers = workers
        self.job_timeout = job_timeout
        self.poll_interval = poll_interval
        self._queue: "queue.Queue[Job]" = queue.Queue(maxsize=capacity)
        self._locks = TaskLocks()
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    # ---------- admission ----------
    def try_enqueue(self, job: Job, timeout: float) -> None:
        """Hand ``job`` to the queue, waiting at most ``timeout`` seconds for a free slot."""
        if self._stop.is_set():
            raise QueueBusyError("queue_stopped")
        try:
            self._queue.put(job, timeout=timeout)
        except queue.Full:
            raise QueueBusyError("queue_full_or_slow") from None
        log.info("[%s] queued task=%s round=%s", job.job_id, job.request.task, job.request.round)

    def next_job(self, timeout: float) -> Optional[Job]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def stats(self) -> dict:
        return {"capacity": self.capacity, "len": self._queue.qsize(), "workers": self.workers}

    # ---------- workers ----------
    def start(self, stop_event: Optional[threading.Event] = None) -> None:
        if stop_event is not None:
            self._stop = stop_event
        for i in range(self.workers):
            t = threading.Thread(target=self._worker, args=(i + 1,), name=f"worker-{i + 1}", daemon=True)
            t.start()
            self._threads.append(t)

    def stop(self, join_timeout: float = 5.0) -> None:
        self._stop.set()
        for t in self._threads:
            t.join(join_timeout)
        self._threads = []

    def _worker(self, worker_id: int) -> None:
        log.info("[worker %d] started", worker_id)
        while not self._stop.is_set():
            job = self.next_job(self.poll_interval)
            if job is None:
                continue
            try:
                self.run_job(job)
            finally:
                self._queue.task_done()
        log.info("[worker %d] stopping", worker_id)

    def run_job(self, job: Job) -> None:
        req = job.request
        try:
            with self._locks.hold(req.task, self._stop, self.poll_interval):
                ctx = JobContext(self.job_timeout, self._stop, job.job_id)
                log.info("[%s] processing task=%s round=%s", job.job_id, req.task, req.round)
                result = self.handler(job, ctx)
        except JobCancelledError as e:
            log.warning("[%s] job_abandoned: %s", job.job_id, e)
        except Exception:
            log.exception("[%s] job_failed task=%s round=%s", job.job_id, req.task, req.round)
        else:
            log.info("[%s] job_done task=%s round=%s result=%s", job.job_id, req.task, req.round, result)
