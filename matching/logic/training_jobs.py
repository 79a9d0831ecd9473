"""
Training Job Runner

Runs at most one training job at a time on a single background worker.
A second submission while a job is pending or running is rejected with
TrainingInProgress rather than queued.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .errors import MatchingError, RecordNotFound, TrainingCancelled, TrainingInProgress

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


FINISHED_STATES = (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)


class TrainingJob:
    def __init__(self, job_id: str, scholarship_id: Optional[str] = None):
        self.job_id = job_id
        self.scholarship_id = scholarship_id
        self.state = JobState.PENDING
        self.metrics: Optional[Dict[str, Any]] = None
        self.error: Optional[Dict[str, Any]] = None
        self.exception: Optional[BaseException] = None
        self.created_at = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None
        self.stop_event = threading.Event()
        self.future: Optional[Future] = None

    @property
    def is_finished(self) -> bool:
        return self.state in FINISHED_STATES

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "state": self.state.value,
            "scholarship_id": self.scholarship_id,
            "metrics": self.metrics,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class TrainingJobRunner:
    """
    Single-worker executor for training runs.

    The submitted callable receives the job's `should_stop` predicate and
    must return a metrics dict.
    """

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="training")
        self._lock = threading.Lock()
        self._jobs: Dict[str, TrainingJob] = {}
        self._current: Optional[TrainingJob] = None

    def submit(
        self,
        work: Callable[[Callable[[], bool]], Dict[str, Any]],
        scholarship_id: Optional[str] = None
    ) -> TrainingJob:
        with self._lock:
            if self._current is not None and not self._current.is_finished:
                raise TrainingInProgress(
                    f"Training job {self._current.job_id} is still {self._current.state.value}",
                    details={"job_id": self._current.job_id},
                )
            job = TrainingJob(uuid.uuid4().hex, scholarship_id)
            self._jobs[job.job_id] = job
            self._current = job
            job.future = self._executor.submit(self._run, job, work)

        logger.info(f"🚀 Training job {job.job_id} submitted")
        return job

    def _run(self, job: TrainingJob, work) -> None:
        job.state = JobState.RUNNING
        try:
            job.metrics = work(job.should_stop)
            job.state = JobState.SUCCEEDED
            logger.info(f"✅ Training job {job.job_id} succeeded")
        except TrainingCancelled as e:
            job.exception = e
            job.error = e.to_dict()
            job.state = JobState.CANCELLED
            logger.warning(f"Training job {job.job_id} cancelled: {e.message}")
        except MatchingError as e:
            job.exception = e
            job.error = e.to_dict()
            job.state = JobState.FAILED
            logger.error(f"❌ Training job {job.job_id} failed: {e.message}")
        except Exception as e:
            job.exception = e
            job.error = {"kind": type(e).__name__, "message": str(e)}
            job.state = JobState.FAILED
            logger.exception(f"❌ Training job {job.job_id} crashed")
        finally:
            job.finished_at = datetime.now(timezone.utc)

    def get(self, job_id: str) -> TrainingJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise RecordNotFound(f"Training job {job_id} not found", details={"job_id": job_id})
        return job

    def cancel(self, job_id: str) -> TrainingJob:
        """Request cooperative cancellation; the trainer stops at its next iteration."""
        job = self.get(job_id)
        if not job.is_finished:
            job.stop_event.set()
            logger.info(f"Cancellation requested for training job {job_id}")
        return job

    def wait(self, job_id: str, timeout: Optional[float] = None) -> TrainingJob:
        job = self.get(job_id)
        if job.future is not None:
            job.future.result(timeout=timeout)
        return job

    def shutdown(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.stop_event.set()
        self._executor.shutdown(wait=True)


training_runner = TrainingJobRunner()
