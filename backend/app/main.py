# backend/app/main.py

from __future__ import annotations

import os
import time
import logging

from fastapi import (
    FastAPI,
    Depends,
    HTTPException,
    status,
    Request,
    BackgroundTasks,
)
from fastapi.middleware.cors import CORSMiddleware

from webresearch.core.errors import ResearchError

from .rate_limit import RateLimiter
from .schemas_research import (
    HealthResponse,
    RunBody,
    RunStatus,
    WORKFLOW_WEBSITE_RESEARCH,
)
from .service_research import get_run, run_research_sync, start_run


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

API_TOKEN = os.getenv("API_TOKEN", "").strip()
ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()
]
RATE_LIMIT_PER_MIN = int(os.getenv("RATE_LIMIT_PER_MIN", "60"))

log = logging.getLogger("webresearch_api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())


# ---------------------------------------------------------------------------
# FastAPI setup + CORS
# ---------------------------------------------------------------------------

app = FastAPI(title="Website Research API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = RateLimiter(RATE_LIMIT_PER_MIN, window_seconds=60)


# ---------------------------------------------------------------------------
# Dependencies: authentication + rate limiting
# ---------------------------------------------------------------------------

def auth_dep(request: Request) -> None:
    """Simple bearer-token authentication."""
    token_expected = os.getenv("API_TOKEN", API_TOKEN).strip()
    if not token_expected:
        return

    header_value = request.headers.get("Authorization", "")
    if not header_value.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    token = header_value.replace("Bearer ", "", 1).strip()
    if token != token_expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid token",
        )


def rate_limit_dep(request: Request) -> None:
    """Simple per-IP rate limiting."""
    ip = request.client.host if request.client else "unknown"
    if not limiter.hit(ip):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
        )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(ok=True, ts=int(time.time()))


# ---------------------------------------------------------------------------
# Runs: start
# ---------------------------------------------------------------------------

@app.post(
    "/v1/runs",
    dependencies=[Depends(auth_dep), Depends(rate_limit_dep)],
)
def create_run(body: RunBody, background_tasks: BackgroundTasks):
    if body.workflow != WORKFLOW_WEBSITE_RESEARCH:
        raise HTTPException(status_code=400, detail=f"unknown_workflow: {body.workflow}")

    try:
        run = start_run(body.inputs)
    except ResearchError as e:
        log.info("[/v1/runs] rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    log.info("[/v1/runs] queued run_id=%s start_url=%s crawl_id=%s", run.run_id,
             run.inputs.get("start_url"), run.inputs.get("crawl_id"))
    background_tasks.add_task(run_research_sync, run.run_id)

    return {"run_id": run.run_id, "status": run.status, "inputs": run.inputs}


# ---------------------------------------------------------------------------
# Runs: status / outputs
# ---------------------------------------------------------------------------

@app.get(
    "/v1/runs/{run_id}",
    response_model=RunStatus,
    dependencies=[Depends(auth_dep)],
)
def read_run(run_id: str) -> RunStatus:
    run = get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="run not found")
    log.info("[/v1/runs/%s] status=%s", run_id, run.status)
    return run
