# webresearch/core/crawler.py
from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Deque, Optional, Set

from .classifier import classify
from .config import CrawlConfig
from .errors import InvalidUrl
from .extractor import extract
from .fetcher import FetchClient
from .findings import aggregate_findings
from .models import CrawlError, CrawlRequest, CrawlResult, PageRecord, QueueItem
from .robots import RobotsPolicyCache
from .urls import normalize, same_origin
from .utils import utc_now_iso

log = logging.getLogger(__name__)

ROBOTS_BLOCKED = "Blocked by robots.txt"


class Crawler:
    """
    Breadth-first crawl of one origin under (max_pages, max_depth).

    The fetch client and robots cache may be shared; queue and visited set
    belong to a single crawl() call.
    """

    def __init__(self,
                 cfg: Optional[CrawlConfig] = None,
                 fetcher: Optional[FetchClient] = None,
                 robots: Optional[RobotsPolicyCache] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.cfg = cfg or CrawlConfig()
        self.fetcher = fetcher or FetchClient(self.cfg.http)
        self.robots = robots or RobotsPolicyCache(
            self.fetcher,
            ttl_s=self.cfg.limits.robots_ttl_s,
            timeout=self.cfg.http.robots_timeout,
        )
        self._sleep = sleep

    def _pace(self) -> None:
        delay_ms = self.cfg.limits.delay_ms_between_requests
        if delay_ms > 0:
            self._sleep(delay_ms / 1000.0)

    def crawl(self, request: CrawlRequest) -> CrawlResult:
        start = request.canonical_start
        ua = self.cfg.http.user_agent
        log.info("[crawl] start %s pages=%d depth=%d", start, request.max_pages, request.max_depth)
        started = time.perf_counter()

        result = CrawlResult()
        visited: Set[str] = set()
        queued: Set[str] = {start}
        queue: Deque[QueueItem] = deque([QueueItem(url=start, depth=0)])
        skipped_non_html = 0
        fetched = 0

        while queue and len(result.pages) < request.max_pages:
            item = queue.popleft()
            if item.url in visited:
                continue
            visited.add(item.url)

            if not self.robots.is_allowed(item.url, ua):
                result.errors.append(CrawlError(item.url, item.depth, ROBOTS_BLOCKED))
                continue

            if fetched:
                self._pace()
            res = self.fetcher.fetch(item.url)
            fetched += 1

            if not res.ok:
                result.errors.append(CrawlError(item.url, item.depth, res.error or f"HTTP {res.status}"))
                continue

            if not res.is_html:
                skipped_non_html += 1
                log.debug("[crawl] skip non-HTML %s (%s)", item.url, res.content_type)
                continue

            try:
                page_url = normalize(res.final_url)
            except InvalidUrl:
                page_url = item.url
            if page_url != item.url:
                if page_url in visited:
                    log.debug("[crawl] %s redirected to already visited %s", item.url, page_url)
                    continue
                visited.add(page_url)
                if not same_origin(page_url, start):
                    log.debug("[crawl] %s redirected off-origin to %s, dropped", item.url, page_url)
                    continue
                if not self.robots.is_allowed(page_url, ua):
                    result.errors.append(CrawlError(page_url, item.depth, ROBOTS_BLOCKED))
                    continue

            html = res.text
            page = extract(html, page_url, detect_lang=self.cfg.extract.detect_language)
            record = PageRecord(
                url=page_url,
                depth=item.depth,
                http_status=res.status,
                content_type=res.content_type,
                title=page.title,
                meta_description=page.meta_description,
                language=page.language,
                html=html,
                text=page.text,
                outbound_links=tuple(page.outbound_links),
                fetched_at=utc_now_iso(),
                classification=classify(page_url, page.title or "", page.text),
                parent_url=item.parent_url,
            )
            result.pages.append(record)
            log.debug("[crawl] [%s] d=%d %s (%s)", res.status, item.depth, page_url, record.classification.type)

            if item.depth < request.max_depth:
                for link in page.outbound_links:
                    if link in visited or link in queued or not same_origin(link, start):
                        continue
                    queued.add(link)
                    queue.append(QueueItem(url=link, depth=item.depth + 1, parent_url=page_url))

        result.findings = aggregate_findings(result.pages)
        result.elapsed_ms = int((time.perf_counter() - started) * 1000)
        log.info(
            "[crawl] done %s pages=%d errors=%d non_html=%d in %dms",
            start, len(result.pages), len(result.errors), skipped_non_html,
            result.elapsed_ms,
        )
        return result
