"""Synchronous report endpoint. Generates and returns the report in one call."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gasreport.api.v1.jobs import ReportRequest, get_service
from gasreport.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-report")
async def generate_report(request: ReportRequest):
    """Generate a report and wait for it.

    Subject to the caller's own request timeout; prefer
    /generate-report-invoke for slow upstream responses.
    """
    service = get_service()
    try:
        report = await service.generate_report(request.scenario, request.gas_type)
    except ValidationError:
        raise
    except Exception as e:
        logger.exception("Synchronous report generation failed")
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to generate report: {getattr(e, 'message', None) or e}"},
        )
    return {"report": report}
