# webresearch/core/models.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidCrawlRequest, InvalidUrl
from .urls import is_http_url, normalize

DEFAULT_MAX_PAGES = 30
MAX_PAGES_CAP = 200
DEFAULT_MAX_DEPTH = 2
MAX_DEPTH_CAP = 3

PAGE_TYPES = (
    "home", "about", "contact", "pricing", "product",
    "blog", "case-study", "privacy", "terms", "other",
)


# -------------------------------------------------------------------
# Request / traversal state
# -------------------------------------------------------------------

@dataclass
class CrawlRequest:
    start_url: str
    max_pages: int = DEFAULT_MAX_PAGES
    max_depth: int = DEFAULT_MAX_DEPTH
    include_sitemap: bool = False

    def __post_init__(self) -> None:
        if not is_http_url(self.start_url):
            raise InvalidUrl(self.start_url, "start URL must be an absolute http(s) URL")
        self.max_pages = int(self.max_pages)
        self.max_depth = int(self.max_depth)
        if self.max_pages < 1:
            raise InvalidCrawlRequest(f"max_pages must be at least 1 (got {self.max_pages})")
        if self.max_depth < 0:
            raise InvalidCrawlRequest(f"max_depth must not be negative (got {self.max_depth})")
        self.max_pages = min(self.max_pages, MAX_PAGES_CAP)
        self.max_depth = min(self.max_depth, MAX_DEPTH_CAP)

    @property
    def canonical_start(self) -> str:
        return normalize(self.start_url)


@dataclass(frozen=True)
class QueueItem:
    url: str
    depth: int = 0
    parent_url: Optional[str] = None


# -------------------------------------------------------------------
# Crawl records
# -------------------------------------------------------------------

@dataclass(frozen=True)
class Classification:
    type: str = "other"
    confidence: float = 0.3


@dataclass(frozen=True)
class PageRecord:
    url: str
    depth: int
    http_status: int
    content_type: str
    title: Optional[str]
    meta_description: Optional[str]
    language: Optional[str]
    html: str
    text: str
    outbound_links: Tuple[str, ...]
    fetched_at: str
    classification: Classification = field(default_factory=Classification)
    parent_url: Optional[str] = None

    def to_dict(self, include_html: bool = True) -> Dict[str, Any]:
        d = asdict(self)
        d["outbound_links"] = list(self.outbound_links)
        if not include_html:
            d.pop("html", None)
        return d


@dataclass(frozen=True)
class CrawlError:
    url: str
    depth: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RobotsPolicy:
    origin: str
    disallowed_path_prefixes: Tuple[str, ...]
    fetched_at: float

    def allows(self, path: str) -> bool:
        path = path or "/"
        return not any(path.startswith(rule) for rule in self.disallowed_path_prefixes)


# -------------------------------------------------------------------
# Findings / result
# -------------------------------------------------------------------

@dataclass
class Coverage:
    pages_considered: int = 0
    unique_urls_in_evidence: int = 0


@dataclass
class Findings:
    mentions_pricing: bool = False
    pricing_page_urls: List[str] = field(default_factory=list)
    value_prop: Optional[str] = None
    key_features: List[str] = field(default_factory=list)
    partners_integrations: List[str] = field(default_factory=list)
    noteworthy_metrics: List[str] = field(default_factory=list)
    coverage: Coverage = field(default_factory=Coverage)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CrawlResult:
    pages: List[PageRecord] = field(default_factory=list)
    errors: List[CrawlError] = field(default_factory=list)
    findings: Findings = field(default_factory=Findings)
    elapsed_ms: int = 0

    def to_dict(self, include_html: bool = False) -> Dict[str, Any]:
        return {
            "pages": [p.to_dict(include_html=include_html) for p in self.pages],
            "errors": [e.to_dict() for e in self.errors],
            "findings": self.findings.to_dict(),
            "elapsed_ms": self.elapsed_ms,
        }
