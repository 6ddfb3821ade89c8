"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from gasreport.api.v1.health import router as health_router
from gasreport.api.v1.jobs import router as jobs_router
from gasreport.api.v1.reports import router as reports_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(jobs_router, tags=["jobs"])
v1_router.include_router(reports_router, tags=["reports"])

# Deployment paths at root: /generate-report, /generate-report-invoke,
# /get-report-status and /maintenance/reconcile
functions_router = APIRouter()
functions_router.include_router(jobs_router, tags=["jobs"])
functions_router.include_router(reports_router, tags=["reports"])
