"""Report job orchestration: create, process in background, poll.

Each job gets exactly one terminal write, made by the background worker
assigned to it. The worker never raises; every failure ends as a
"failed" record or, if even that write fails, a log line.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from gasreport.errors import JobNotFoundError, ValidationError
from gasreport.jobs.dispatcher import JobDispatcher
from gasreport.jobs.models import JobRecord, JobStatus, SampleType, parse_timestamp, utc_now
from gasreport.jobs.store import JobStore

logger = logging.getLogger(__name__)

STALE_JOB_ERROR = "Job timed out before completion."


def _error_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc)
    if not message:
        return f"{type(exc).__name__} in background task."
    return message


class ReportJobService:
    """Owns the job lifecycle on top of a JobStore.

    generator: anything with `async generate(scenario, sample_type) -> str`.
    dispatcher: assigned after construction when the dispatcher's worker
        is this service's run_background_job.
    """

    def __init__(
        self,
        store: JobStore,
        generator,
        dispatcher: Optional[JobDispatcher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.generator = generator
        self.dispatcher = dispatcher
        self._clock = clock

    @staticmethod
    def validate_request(scenario: Optional[str], sample_type: Any) -> Tuple[str, SampleType]:
        if not scenario or not str(scenario).strip():
            raise ValidationError("scenario is required.")
        if sample_type is None or sample_type == "":
            sample_type = SampleType.ARTERIAL
        try:
            sample_type = SampleType(getattr(sample_type, "value", sample_type))
        except ValueError:
            allowed = ", ".join(s.value for s in SampleType)
            raise ValidationError(f"gasType must be one of: {allowed}.")
        return str(scenario).strip(), sample_type

    # ------------------------------------------------------------------
    # Invoke
    # ------------------------------------------------------------------

    async def create_job(self, scenario: Optional[str], sample_type: Any = None) -> str:
        """Persist a new "processing" job, trigger background work, return its id."""
        scenario, sample_type = self.validate_request(scenario, sample_type)

        job_id = str(uuid.uuid4())
        job = JobRecord(
            status=JobStatus.PROCESSING,
            scenario=scenario,
            gas_type=sample_type,
            timestamp=self._clock().isoformat(),
        )
        await self.store.set_json(job_id, job.to_store())
        logger.info(f"Created report job {job_id} ({sample_type.value})")

        if self.dispatcher is None:
            logger.warning(f"No dispatcher configured; job {job_id} will stay processing")
            return job_id

        try:
            await self.dispatcher.dispatch(job_id)
        except Exception:
            logger.exception(f"Dispatch of job {job_id} failed; job left processing")
        return job_id

    # ------------------------------------------------------------------
    # Background worker
    # ------------------------------------------------------------------

    async def run_background_job(self, job_id: str) -> None:
        """Generate the report for job_id and record the terminal state."""
        job: Optional[JobRecord] = None
        try:
            data = await self.store.get_json(job_id)
            if data is None:
                raise JobNotFoundError(job_id)
            job = JobRecord.from_store(data)
            if job.is_terminal:
                logger.info(f"Job {job_id} already {job.status}; skipping")
                return
            if not job.scenario:
                raise ValidationError(f"Job {job_id} has no scenario.")

            report = await self.generator.generate(
                job.scenario, SampleType(job.gas_type or SampleType.ARTERIAL)
            )
            job.status = JobStatus.COMPLETED.value
            job.report = report
            job.error = None
        except Exception as e:
            logger.exception(f"Background processing error for job {job_id}")
            job = job or JobRecord()
            job.status = JobStatus.FAILED.value
            job.report = None
            job.error = _error_message(e)

        job.completed_at = self._clock().isoformat()
        await self._write_terminal(job_id, job)

    async def _write_terminal(self, job_id: str, job: JobRecord) -> None:
        try:
            await self.store.set_json(job_id, job.to_store())
            logger.info(f"Job {job_id} finished: {job.status}")
        except Exception:
            # Nobody is waiting on this call; the record cannot be repaired here
            logger.exception(f"Could not record terminal state '{job.status}' for job {job_id}")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self, job_id: Optional[str]) -> Dict[str, Any]:
        """Return the stored job document verbatim."""
        if not job_id or not job_id.strip():
            raise ValidationError("jobId is required.")
        data = await self.store.get_json(job_id)
        if data is None:
            raise JobNotFoundError(job_id)
        return data

    # ------------------------------------------------------------------
    # Synchronous variant
    # ------------------------------------------------------------------

    async def generate_report(self, scenario: Optional[str], sample_type: Any = None) -> str:
        scenario, sample_type = self.validate_request(scenario, sample_type)
        return await self.generator.generate(scenario, sample_type)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def reconcile_stale_jobs(self, max_age: timedelta) -> List[str]:
        """Fail "processing" jobs older than max_age. Returns their ids.

        Covers dispatches that were never delivered.
        """
        cutoff = self._clock() - max_age
        failed: List[str] = []
        for job_id in await self.store.keys(status=JobStatus.PROCESSING.value):
            data = await self.store.get_json(job_id)
            if not data or data.get("status") != JobStatus.PROCESSING.value:
                continue
            created = parse_timestamp(data.get("timestamp"))
            if created is None or created > cutoff:
                continue

            data.update(
                status=JobStatus.FAILED.value,
                error=STALE_JOB_ERROR,
                completedAt=self._clock().isoformat(),
            )
            await self.store.set_json(job_id, data)
            failed.append(job_id)

        if failed:
            logger.warning(f"Marked {len(failed)} stale job(s) as failed: {failed}")
        return failed
