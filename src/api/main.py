"""
FastAPI application entry point.

Control API for the fixture sync engine: scheduler start/stop, job
management, manual full syncs and execution-log reports.

Optional API key authentication (API_AUTH_ENABLED / API_KEY).
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI

from src import __version__
from .routers import jobs, scheduler, sync
from ._scheduler_state import init_runtime, shutdown_runtime
from .dependencies.auth import verify_api_key, API_AUTH_ENABLED


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the sync runtime on startup (scheduler stays stopped until
    POST /scheduler/start) and releases it on shutdown.
    """
    # Startup
    init_runtime()

    yield

    # Shutdown - stop scheduler, close clients
    await shutdown_runtime()

# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "scheduler",
        "description": "Scheduler control plane - start, stop, and inspect recurrence timers and retries",
    },
    {
        "name": "jobs",
        "description": "Sync job management - list, enable, disable, and run jobs on demand",
    },
    {
        "name": "sync",
        "description": "Full synchronization and execution-log reports",
    },
]

app = FastAPI(
    title="Fixture Sync API",
    lifespan=lifespan,
    description="""
## Fixture Sync API

Control API for the background synchronization of API-Football data
into the relational store.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require
an `X-API-Key` header matching the `API_KEY` environment variable.

### Usage
```bash
# Start server
uvicorn src.api.main:app --host 127.0.0.1 --port 8000

# Start the scheduler
curl -X POST http://localhost:8000/scheduler/start -H "X-API-Key: your-api-key"

# Run one job immediately
curl -X POST http://localhost:8000/jobs/daily-standings/run -H "X-API-Key: your-api-key"
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)

# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


# Include routers WITH authentication dependency (when enabled)
auth_dependency = [Depends(verify_api_key)] if API_AUTH_ENABLED else []

app.include_router(
    scheduler.router, prefix="/scheduler", tags=["scheduler"], dependencies=auth_dependency
)
app.include_router(
    jobs.router, prefix="/jobs", tags=["jobs"], dependencies=auth_dependency
)
app.include_router(
    sync.router, prefix="/sync", tags=["sync"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
