"""
FastAPI application entry point.

Multi-tenant cron job orchestration API.
Optional API key authentication in front of the job routes.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cronhub import __version__
from cronhub.infra.config import Settings
from cronhub.infra.logging_config import setup_logging
from .routers import jobs, admin, scheduler
from ._scheduler_state import init_scheduler_service, shutdown_scheduler_service
from .dependencies.auth import verify_api_key


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: configure logging from app settings, rebuild triggers from the
    job store and start firing. A store failure aborts startup.
    Shutdown: stop firing and wait for in-flight executions.
    """
    settings: Settings = app.state.settings
    settings.ensure_directories()
    setup_logging(settings.log_level, log_dir=settings.log_dir)

    service = init_scheduler_service(settings)
    stats = service.start()
    logger.info(f"Scheduler ready: {stats['triggers_installed']} triggers installed")

    yield

    shutdown_scheduler_service()


# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "jobs",
        "description": "Job lifecycle - create, update, delete, toggle and run cron jobs in your organization",
    },
    {
        "name": "admin",
        "description": "Cross-organization views - all jobs and job statistics (admin role)",
    },
    {
        "name": "scheduler",
        "description": "Scheduler status - live triggers and in-flight executions",
    },
]

app = FastAPI(
    title="cronhub",
    lifespan=lifespan,
    description="""
## cronhub

Multi-tenant cron job orchestration: recurring HTTP calls and shell commands
with inter-job dependencies, bounded retries, execution history and webhooks.

### Identity
Credentials are verified upstream. Every job route expects the forwarded
`X-User-Id`, `X-Org-Id` and optional `X-User-Role` (`user`/`admin`) headers.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require
an `X-API-Key` header matching `API_KEY`. Both are read from the environment
or a `.env` file in the working directory.

### Usage
```bash
# Start server
uvicorn cronhub.api.main:app --host 127.0.0.1 --port 8000

# Create a job
curl -X POST http://localhost:8000/jobs \\
  -H "Content-Type: application/json" \\
  -H "X-User-Id: u1" -H "X-Org-Id: acme" \\
  -d '{"name": "ping", "kind": "http", "schedule": "*/5 * * * *",
       "payload": {"url": "https://example.com/ping", "method": "GET"}}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)

# Loaded once (including .env); the API key gate and startup both read it
app.state.settings = Settings.from_env()


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are validation errors (400)."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"message": "Invalid request", "errors": jsonable_encoder(exc.errors())}},
    )


# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


# Include routers WITH authentication dependency (passes when auth is disabled)
auth_dependency = [Depends(verify_api_key)]

app.include_router(
    jobs.router, prefix="/jobs", tags=["jobs"], dependencies=auth_dependency
)
app.include_router(
    admin.router, prefix="/admin", tags=["admin"], dependencies=auth_dependency
)
app.include_router(
    scheduler.router, prefix="/scheduler", tags=["scheduler"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
