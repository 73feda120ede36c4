"""
Async export job tracking (submit -> poll -> terminal)

bol.com exports are produced asynchronously: the main sync submits the job,
and later "complete" runs poll it. A job only advances when someone polls
it again; there is no background timer.

Policy:
  - attempts is incremented on every poll, before the upstream call, and
    never decreases.
  - once attempts reaches max_attempts without a terminal upstream answer,
    the job is forced to 'failed' ("Exceeded max attempts").
  - upstream FAILURE moves the job to 'failed'.
  - upstream SUCCESS hands the result reference back to the caller; the job
    only becomes 'completed' when the caller has processed the result. If
    processing raises, the job stays 'pending' and a later poll retries it.
  - only jobs started within the retention window are returned for polling.
    Older pending jobs are never picked up again and are not failed either.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from marketplace_audit.config import get_settings
from marketplace_audit.models import SyncJob
from marketplace_audit.models.enums import JobStatus
from marketplace_audit.utils.logger import log

settings = get_settings()

MAX_ATTEMPTS_ERROR = "Exceeded max attempts"


@dataclass
class PollResult:
    status: str  # pending, success, failure
    result_ref: Optional[str] = None
    detail: str = ""


class JobTracker:
    """Owns the SyncJob lifecycle"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Callable[[], datetime]] = None,
        max_attempts: Optional[int] = None,
        retention_hours: Optional[int] = None,
    ):
        self.db = db
        self._clock = clock or datetime.utcnow
        self.max_attempts = max_attempts or settings.export_job_max_attempts
        self.retention = timedelta(hours=retention_hours or settings.export_job_retention_hours)

    async def submit(self, customer_id: int, data_type: str, client) -> SyncJob:
        """Start an upstream export and record it as a pending job"""
        process_status_id = await client.start_offers_export()
        job = SyncJob(
            customer_id=customer_id,
            data_type=data_type,
            process_status_id=process_status_id,
            status=JobStatus.PENDING.value,
            attempts=0,
            started_at=self._clock(),
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        log.info(f"Submitted {data_type} export for customer {customer_id}: job {job.id} ({process_status_id})")
        return job

    def get(self, job_id: int) -> Optional[SyncJob]:
        return self.db.query(SyncJob).filter(SyncJob.id == job_id).first()

    def pending_jobs(self, customer_id: int) -> List[SyncJob]:
        """Pending jobs started within the retention window, oldest first"""
        cutoff = self._clock() - self.retention
        return (
            self.db.query(SyncJob)
            .filter(
                SyncJob.customer_id == customer_id,
                SyncJob.status == JobStatus.PENDING.value,
                SyncJob.started_at >= cutoff,
            )
            .order_by(SyncJob.started_at.asc(), SyncJob.id.asc())
            .all()
        )

    async def poll(self, job: SyncJob, client) -> PollResult:
        """Check the upstream status once and advance the job"""
        if job.status != JobStatus.PENDING.value:
            return PollResult(status="failure" if job.status == JobStatus.FAILED.value else "success",
                              result_ref=job.entity_id, detail=f"Job already {job.status}")

        if job.attempts >= self.max_attempts:
            self.fail(job, MAX_ATTEMPTS_ERROR)
            return PollResult(status="failure", detail="Max attempts exceeded")

        job.attempts += 1
        self.db.commit()

        status = await client.check_process_status(job.process_status_id)

        if status.succeeded:
            return PollResult(status="success", result_ref=status.entity_id)

        if status.failed:
            self.fail(job, status.error_message or f"bol.com {status.status}")
            return PollResult(status="failure", detail=f"bol.com reported {status.status}")

        if job.attempts >= self.max_attempts:
            self.fail(job, MAX_ATTEMPTS_ERROR)
            return PollResult(status="failure", detail="Max attempts exceeded")

        return PollResult(
            status="pending",
            detail=f"bol.com status: {status.status}, export not ready yet (attempt {job.attempts}/{self.max_attempts})",
        )

    def complete(self, job: SyncJob, entity_id: str) -> None:
        job.status = JobStatus.COMPLETED.value
        job.entity_id = entity_id
        job.completed_at = self._clock()
        self.db.commit()

    def fail(self, job: SyncJob, message: str) -> None:
        job.status = JobStatus.FAILED.value
        job.error_message = message
        job.completed_at = self._clock()
        self.db.commit()
        log.warning(f"Export job {job.id} for customer {job.customer_id} failed: {message}")
