"""Blood Gas Report Service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gasreport.api.v1 import jobs as jobs_api
from gasreport.api.v1.health import router as health_root_router
from gasreport.api.v1.router import functions_router, v1_router
from gasreport.config import APP_VERSION, settings
from gasreport.errors import ReportServiceError
from gasreport.generation.client import GeminiClient
from gasreport.jobs.dispatcher import build_dispatcher
from gasreport.jobs.service import ReportJobService
from gasreport.jobs.store import build_job_store
from gasreport.report.generator import ReportGenerator

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info("Starting Blood Gas Report Service")
    logger.info(f"Job store: {settings.job_store_backend}, dispatch mode: {settings.dispatch_mode}")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; report generation will fail")

    store = build_job_store(settings)
    client = GeminiClient(settings.external_service(), policy=settings.retry_policy())
    service = ReportJobService(store=store, generator=ReportGenerator(client))

    # Start job dispatcher; its worker is the service's own background step
    dispatcher = build_dispatcher(settings, worker_fn=service.run_background_job)
    service.dispatcher = dispatcher
    await dispatcher.start()
    logger.info("Job dispatcher started")

    # Jobs left processing by a previous instance can never finish now
    try:
        await service.reconcile_stale_jobs(timedelta(minutes=settings.stale_job_minutes))
    except ReportServiceError as e:
        logger.warning(f"Startup reconciliation skipped: {e.message}")

    jobs_api.set_service(service)

    yield

    logger.info("Shutting down Blood Gas Report Service")
    await dispatcher.stop()
    await client.close()
    jobs_api.set_service(None)


app = FastAPI(
    title="Blood Gas Report Service",
    description="Simulated blood gas laboratory reports generated from clinical scenarios",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReportServiceError)
async def report_error_handler(request: Request, exc: ReportServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error."})


# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
app.include_router(functions_router)  # Deployment paths at root
