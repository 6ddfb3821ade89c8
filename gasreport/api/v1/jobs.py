"""Report job API: start a job, run it in the background, poll its status."""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query
from pydantic import AliasChoices, BaseModel, Field

from gasreport.config import settings

router = APIRouter()

# Set by main.py during lifespan
_service = None


def set_service(service):
    global _service
    _service = service


def get_service():
    if _service is None:
        raise HTTPException(status_code=503, detail="Report service not initialized")
    return _service


class ReportRequest(BaseModel):
    scenario: Optional[str] = None
    gas_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("gasType", "sampleType", "gas_type")
    )


class BackgroundJobRequest(BaseModel):
    job_id: str = Field(validation_alias=AliasChoices("jobId", "job_id"))


@router.post("/generate-report-invoke", status_code=202)
async def invoke_report(request: ReportRequest):
    """Create a job and start generating its report in the background.

    Returns immediately with the job id; poll /get-report-status for the result.
    """
    service = get_service()
    job_id = await service.create_job(request.scenario, request.gas_type)
    return {"jobId": job_id}


@router.post("/generate-report-process-background", status_code=202)
async def process_report_background(request: BackgroundJobRequest, background_tasks: BackgroundTasks):
    """Internal trigger used by the http dispatcher.

    The work runs after the response is sent; its outcome is only visible
    through the status endpoint.
    """
    service = get_service()
    background_tasks.add_task(service.run_background_job, request.job_id)
    return {"jobId": request.job_id}


@router.get("/get-report-status")
async def get_report_status(job_id: Optional[str] = Query(default=None, alias="jobId")):
    """Current job document: {status, report?|error?, ...}."""
    service = get_service()
    return await service.get_status(job_id)


@router.post("/maintenance/reconcile")
async def reconcile_jobs(max_age_minutes: Optional[int] = Query(default=None, alias="maxAgeMinutes", ge=0)):
    """Mark jobs stuck in "processing" past the age limit as failed."""
    service = get_service()
    minutes = settings.stale_job_minutes if max_age_minutes is None else max_age_minutes
    failed = await service.reconcile_stale_jobs(timedelta(minutes=minutes))
    return {"failed": failed, "maxAgeMinutes": minutes}
