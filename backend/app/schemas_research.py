# backend/app/schemas_research.py

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field

from webresearch.core.models import DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES

WORKFLOW_WEBSITE_RESEARCH = "website_research_v1"


class ResearchInputs(BaseModel):
    """
    Inputs of the website_research_v1 workflow.
    Accepts both snake_case and camelCase keys. Either start_url or the
    crawl_id of a stored crawl is required; crawl_id wins when both are set.
    """
    start_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("start_url", "startUrl"),
        examples=["https://example.com"],
        description="Absolute http(s) URL to start crawling from",
    )
    crawl_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("crawl_id", "crawlId"),
        description="Recompute the outputs of a stored crawl instead of crawling",
    )
    max_pages: int = Field(
        DEFAULT_MAX_PAGES,
        validation_alias=AliasChoices("max_pages", "maxPages"),
        description="Page budget (capped at 200)",
    )
    max_depth: int = Field(
        DEFAULT_MAX_DEPTH,
        validation_alias=AliasChoices("max_depth", "maxDepth"),
        description="Link depth budget (capped at 3)",
    )
    include_sitemap: bool = Field(
        False,
        validation_alias=AliasChoices("include_sitemap", "includeSitemap"),
        description="Include the crawl tree in the outputs",
    )


class RunBody(BaseModel):
    workflow: str = WORKFLOW_WEBSITE_RESEARCH
    inputs: ResearchInputs


class RunStatus(BaseModel):
    """
    Stored per run (data/runs/<run_id>.json) and exposed via /v1/runs/{run_id}.
    """
    run_id: str
    status: str  # QUEUED, RUNNING, SUCCEEDED, FAILED
    inputs: Dict[str, Any]
    crawl_id: Optional[str] = None
    outputs: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class HealthResponse(BaseModel):
    ok: bool
    ts: int
