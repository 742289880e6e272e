# webresearch/core/research.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .completion import Completer
from .config import CrawlConfig
from .crawler import Crawler
from .enrich import PageEnricher, PageEntity
from .errors import InvalidCrawlRequest
from .extractor import extract
from .fetcher import FetchClient
from .findings import aggregate_findings
from .models import Classification, CrawlError, CrawlRequest, CrawlResult, Findings, PageRecord
from .robots import RobotsPolicyCache
from .store import CrawlStore

log = logging.getLogger(__name__)

MAX_HIGHLIGHT_FEATURES = 3
MAX_HIGHLIGHT_METRICS = 2


@dataclass
class ResearchOutcome:
    crawl_id: Optional[str]
    result: CrawlResult
    summaries: Dict[str, Optional[str]] = field(default_factory=dict)
    entities: Dict[str, List[PageEntity]] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)


# -------------------------------------------------------------------
# Output shape
# -------------------------------------------------------------------

def build_highlights(findings: Findings) -> List[str]:
    out: List[str] = []
    if findings.value_prop:
        out.append(findings.value_prop)
    if findings.pricing_page_urls:
        out.append("Pricing pages: " + ", ".join(findings.pricing_page_urls))
    elif findings.mentions_pricing:
        out.append("Pricing is mentioned on the site.")
    out.extend(findings.key_features[:MAX_HIGHLIGHT_FEATURES])
    if findings.partners_integrations:
        out.append("Partners / integrations: " + ", ".join(findings.partners_integrations))
    out.extend(findings.noteworthy_metrics[:MAX_HIGHLIGHT_METRICS])
    return out


def build_outputs(result: CrawlResult,
                  summaries: Optional[Dict[str, Optional[str]]] = None,
                  include_sitemap: bool = False) -> Dict[str, Any]:
    """
    {highlights, pages: [{url, title?, type?, depth, summary?}], findings, metrics, sitemap?}
    """
    summaries = summaries or {}
    pages = []
    for p in result.pages:
        entry: Dict[str, Any] = {"url": p.url, "depth": p.depth, "type": p.classification.type}
        if p.title:
            entry["title"] = p.title
        if summaries.get(p.url):
            entry["summary"] = summaries[p.url]
        pages.append(entry)

    outputs: Dict[str, Any] = {
        "highlights": build_highlights(result.findings),
        "pages": pages,
        "findings": result.findings.to_dict(),
        "metrics": {
            "pages_visited": len(result.pages),
            "elapsed_ms": result.elapsed_ms,
            "errors": [f"{e.url} :: {e.error}" for e in result.errors],
        },
    }
    if include_sitemap:
        outputs["sitemap"] = {
            "flat": [{"url": p.url, "depth": p.depth, "parent": p.parent_url} for p in result.pages]
        }
    return outputs


def result_from_doc(doc: Dict[str, Any], detect_lang: bool = False) -> CrawlResult:
    """
    Rebuild a CrawlResult from a stored crawl document.

    Text and links are re-extracted from the stored HTML and findings are
    recomputed, so stored findings from an older heuristic are not reused.
    """
    pages: List[PageRecord] = []
    for url, row in (doc.get("pages") or {}).items():
        html = row.get("content") or ""
        page = extract(html, url, detect_lang=detect_lang)
        pages.append(PageRecord(
            url=url,
            depth=int(row.get("depth") or 0),
            http_status=int(row.get("status_code") or 0),
            content_type=row.get("content_type") or "",
            title=row.get("title"),
            meta_description=row.get("meta_description"),
            language=row.get("language"),
            html=html,
            text=page.text,
            outbound_links=tuple(page.outbound_links),
            fetched_at=row.get("created_at") or "",
            classification=Classification(
                row.get("page_type") or "other",
                float(row.get("type_confidence") or 0.3),
            ),
            parent_url=row.get("parent_url"),
        ))
    errors = [CrawlError(e["url"], int(e["depth"]), e["error"]) for e in doc.get("errors") or []]
    return CrawlResult(
        pages=pages,
        errors=errors,
        findings=aggregate_findings(pages),
        elapsed_ms=int((doc.get("crawl") or {}).get("elapsed_ms") or 0),
    )


# -------------------------------------------------------------------
# Service
# -------------------------------------------------------------------

class ResearchService:
    """
    Crawl -> findings -> enrichment -> persistence -> output shape.

    Owns the robots cache, so it is shared by every crawl this service runs.
    """

    def __init__(self,
                 cfg: Optional[CrawlConfig] = None,
                 completer: Optional[Completer] = None,
                 store: Optional[CrawlStore] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 sleep=None):
        self.cfg = cfg or CrawlConfig()
        self.enricher = PageEnricher(completer)
        self.store = store
        self.fetcher = FetchClient(self.cfg.http, transport=transport)
        self.robots = RobotsPolicyCache(
            self.fetcher,
            ttl_s=self.cfg.limits.robots_ttl_s,
            timeout=self.cfg.http.robots_timeout,
        )
        crawler_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.crawler = Crawler(self.cfg, fetcher=self.fetcher, robots=self.robots, **crawler_kwargs)

    def close(self) -> None:
        self.fetcher.close()

    def run(self, request: CrawlRequest, crawl_id: Optional[str] = None) -> ResearchOutcome:
        if self.store is not None:
            crawl_id = self.store.create_crawl(request, crawl_id=crawl_id)

        result = self.crawler.crawl(request)
        if self.store is not None:
            self.store.save_result(crawl_id, result)

        outcome = ResearchOutcome(crawl_id=crawl_id, result=result)
        for p in result.pages:
            summary, entities = self.enricher.summarize(p)
            outcome.summaries[p.url] = summary
            outcome.entities[p.url] = entities
            if self.store is not None:
                self.store.save_summary(crawl_id, p.url, summary)
                if entities:
                    self.store.save_entities(crawl_id, p.url, entities)

        outcome.outputs = build_outputs(result, outcome.summaries, include_sitemap=request.include_sitemap)
        log.info("[research] %s crawl_id=%s pages=%d errors=%d",
                 request.start_url, crawl_id, len(result.pages), len(result.errors))
        return outcome

    def load(self, crawl_id: str) -> Dict[str, Any]:
        if self.store is None:
            raise InvalidCrawlRequest("crawl_id requires a crawl store")
        doc = self.store.load_crawl(crawl_id)
        if doc is None:
            raise InvalidCrawlRequest(f"unknown crawl_id: {crawl_id}")
        return doc

    def rerun(self, crawl_id: str, include_sitemap: bool = False) -> ResearchOutcome:
        """
        Outputs for a stored crawl, without fetching anything.
        Summaries and entities come from the stored document.
        """
        doc = self.load(crawl_id)
        result = result_from_doc(doc, detect_lang=self.cfg.extract.detect_language)
        outcome = ResearchOutcome(crawl_id=crawl_id, result=result)
        for url, row in (doc.get("pages") or {}).items():
            outcome.summaries[url] = row.get("summary")
            outcome.entities[url] = [PageEntity(**e) for e in (doc.get("entities") or {}).get(url, [])]
        outcome.outputs = build_outputs(result, outcome.summaries, include_sitemap=include_sitemap)
        log.info("[research] reuse crawl_id=%s pages=%d errors=%d",
                 crawl_id, len(result.pages), len(result.errors))
        return outcome
