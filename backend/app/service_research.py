# backend/app/service_research.py

from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from webresearch.core.completion import completion_client_from_env
from webresearch.core.config import CrawlConfig, load_crawl_config
from webresearch.core.errors import InvalidCrawlRequest
from webresearch.core.models import CrawlRequest
from webresearch.core.research import ResearchService
from webresearch.core.store import JsonCrawlStore
from webresearch.core.utils import load_json_safe, save_json, utc_now_iso

from .schemas_research import ResearchInputs, RunStatus

log = logging.getLogger(__name__)

_service: Optional[ResearchService] = None
_service_lock = threading.Lock()


def get_service() -> ResearchService:
    """Lazily build the process-wide service (one robots cache for all runs)."""
    global _service
    with _service_lock:
        if _service is None:
            cfg: CrawlConfig = load_crawl_config()
            _service = ResearchService(
                cfg,
                completer=completion_client_from_env(),
                store=JsonCrawlStore(cfg.resolved_data_dir()),
            )
        return _service


def set_service(service: Optional[ResearchService]) -> None:
    global _service
    with _service_lock:
        _service = service


# ---------------------------------------------------------------------------
# Run status file helpers
# ---------------------------------------------------------------------------

def _runs_dir() -> Path:
    return get_service().cfg.resolved_data_dir() / "runs"


def _status_path(run_id: str) -> Path:
    return _runs_dir() / f"{run_id}.json"


def _write_status(status: RunStatus) -> None:
    status.updated_at = utc_now_iso()
    save_json(str(_status_path(status.run_id)), status.model_dump(), pretty=True)


# ---------------------------------------------------------------------------
# Public API used by FastAPI endpoints
# ---------------------------------------------------------------------------

def request_from_inputs(inputs: ResearchInputs) -> CrawlRequest:
    """Raises InvalidUrl / InvalidCrawlRequest for unusable inputs."""
    if not (inputs.start_url or "").strip():
        raise InvalidCrawlRequest("missing_required: start_url_or_crawl_id")
    return CrawlRequest(
        start_url=inputs.start_url.strip(),
        max_pages=inputs.max_pages,
        max_depth=inputs.max_depth,
        include_sitemap=inputs.include_sitemap,
    )


def start_run(inputs: ResearchInputs) -> RunStatus:
    """
    Validate inputs, create a QUEUED run and write its status file.
    A crawl_id reuses a stored crawl and takes precedence over start_url.
    """
    crawl_id = (inputs.crawl_id or "").strip()
    if crawl_id:
        if not _is_uuid(crawl_id):
            raise InvalidCrawlRequest(f"unknown crawl_id: {crawl_id}")
        get_service().load(crawl_id)
        run_inputs: Dict[str, Any] = {"crawl_id": crawl_id, "include_sitemap": inputs.include_sitemap}
    else:
        request = request_from_inputs(inputs)
        run_inputs = {
            "start_url": request.start_url,
            "max_pages": request.max_pages,
            "max_depth": request.max_depth,
            "include_sitemap": request.include_sitemap,
        }
    status = RunStatus(
        run_id=str(uuid.uuid4()),
        status="QUEUED",
        inputs=run_inputs,
        created_at=utc_now_iso(),
    )
    _write_status(status)
    return status


def run_research_sync(run_id: str) -> None:
    """
    Worker entry point, called from a FastAPI background task so it can block.
    """
    status = get_run(run_id)
    if status is None:
        log.error("[run] unknown run_id=%s", run_id)
        return

    status.status = "RUNNING"
    _write_status(status)

    try:
        if status.inputs.get("crawl_id"):
            outcome = get_service().rerun(status.inputs["crawl_id"],
                                          include_sitemap=status.inputs.get("include_sitemap", False))
        else:
            request = CrawlRequest(**status.inputs)
            outcome = get_service().run(request, crawl_id=run_id)
    except Exception as e:
        log.exception("[run] run_id=%s failed", run_id)
        status.status = "FAILED"
        status.error = str(e)
        status.outputs = {"error": str(e)}
        _write_status(status)
        return

    status.status = "SUCCEEDED"
    status.crawl_id = outcome.crawl_id
    status.outputs = outcome.outputs
    _write_status(status)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def get_run(run_id: str) -> Optional[RunStatus]:
    if not _is_uuid(run_id):
        return None
    raw: Dict[str, Any] = load_json_safe(str(_status_path(run_id)), default={})
    if not raw:
        return None
    try:
        return RunStatus(**raw)
    except (TypeError, ValueError):
        log.warning("[run] unreadable status file for run_id=%s", run_id)
        return None
