"""In-memory registry of bake jobs for the API."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

from ..core.parameters import BakeMode, NoiseParameters
from ..core.volume_baker import BakeProgress, BakeResult, CancellationToken

logger = structlog.get_logger()

FINISHED_STATUSES = ("completed", "failed", "cancelled")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BakeJob:
    """State of one background bake."""

    id: str
    parameters: NoiseParameters
    mode: BakeMode
    export: bool = False
    status: str = "pending"  # pending, running, completed, failed, cancelled
    progress_percent: int = 0
    stage: Optional[str] = None
    error_message: Optional[str] = None
    result: Optional[BakeResult] = None
    asset_path: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def finished(self) -> bool:
        return self.status in FINISHED_STATUSES


def progress_percent(progress: BakeProgress, mode: BakeMode) -> int:
    """
    Overall percentage for a slice tick.

    Curl bakes spend the first half materializing potentials and the second
    half differentiating.
    """
    if mode is BakeMode.CURL:
        offset = 50 if progress.stage == "curl" else 0
        return offset + int(progress.fraction * 50)
    return int(progress.fraction * 100)


class BakeJobRegistry:
    """
    Thread-safe job store; bakes run on worker threads.

    Finished jobs hold their whole BakeResult, so the registry keeps at most
    ``max_retained_jobs`` entries. When a new job would exceed that, the
    oldest finished jobs are dropped. Pending and running jobs are never
    evicted.
    """

    def __init__(self, max_retained_jobs: Optional[int] = None):
        if max_retained_jobs is not None and max_retained_jobs < 1:
            raise ValueError(f"max_retained_jobs must be >= 1, got {max_retained_jobs}")
        self.max_retained_jobs = max_retained_jobs
        self._jobs: Dict[str, BakeJob] = {}
        self._lock = threading.Lock()

    def create(self, parameters: NoiseParameters, mode: BakeMode, export: bool = False) -> BakeJob:
        job = BakeJob(id=str(uuid.uuid4()), parameters=parameters, mode=mode, export=export)
        with self._lock:
            self._evict_finished(reserve=1)
            self._jobs[job.id] = job
        return job

    def _evict_finished(self, reserve: int) -> None:
        """Drop the oldest finished jobs until ``reserve`` new ones fit. Caller holds the lock."""
        if self.max_retained_jobs is None:
            return
        excess = len(self._jobs) + reserve - self.max_retained_jobs
        if excess <= 0:
            return

        finished = sorted(
            (job for job in self._jobs.values() if job.finished), key=lambda job: job.created_at
        )
        for job in finished[:excess]:
            del self._jobs[job.id]
            job.result = None
            logger.debug("Evicted finished bake job", job_id=job.id, status=job.status)

    def get(self, job_id: str) -> Optional[BakeJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self) -> List[BakeJob]:
        with self._lock:
            return sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)

    def update(self, job_id: str, **changes) -> BakeJob:
        with self._lock:
            job = self._jobs[job_id]
            for name, value in changes.items():
                setattr(job, name, value)
            return job

    def mark_running(self, job_id: str) -> BakeJob:
        return self.update(job_id, status="running", started_at=_now())

    def mark_finished(self, job_id: str, status: str, **changes) -> BakeJob:
        return self.update(job_id, status=status, completed_at=_now(), **changes)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()
