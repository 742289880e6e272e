# store.py: crawl, page and entity records persisted as JSON
from __future__ import annotations

import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .enrich import PageEntity
from .models import CrawlRequest, CrawlResult, PageRecord
from .utils import load_json_safe, save_json, utc_now_iso


class CrawlStore(Protocol):
    def create_crawl(self, request: CrawlRequest, crawl_id: Optional[str] = None) -> str: ...
    def save_result(self, crawl_id: str, result: CrawlResult) -> None: ...
    def upsert_pages(self, crawl_id: str, pages: Iterable[PageRecord]) -> None: ...
    def save_summary(self, crawl_id: str, url: str, summary: Optional[str]) -> None: ...
    def save_entities(self, crawl_id: str, url: str, entities: Iterable[PageEntity]) -> None: ...
    def load_crawl(self, crawl_id: str) -> Optional[Dict[str, Any]]: ...


def page_row(p: PageRecord) -> Dict[str, Any]:
    return {
        "url": p.url,
        "status_code": p.http_status,
        "depth": p.depth,
        "page_type": p.classification.type,
        "type_confidence": p.classification.confidence,
        "title": p.title,
        "meta_description": p.meta_description,
        "content": p.html,
        "language": p.language,
        "content_type": p.content_type,
        "parent_url": p.parent_url,
        "created_at": p.fetched_at,
    }


class JsonCrawlStore:
    """
    One JSON document per crawl under <root>/crawls/<crawl_id>.json.

    Pages are keyed by URL, so writing the same (crawl, url) twice overwrites.
    Entities are unique per (page, type, value).
    """

    def __init__(self, root: Path):
        self.root = Path(root) / "crawls"
        self._lock = threading.Lock()

    def _path(self, crawl_id: str) -> Path:
        return self.root / f"{crawl_id}.json"

    def _read(self, crawl_id: str) -> Dict[str, Any]:
        doc = load_json_safe(str(self._path(crawl_id)), default=None)
        if not isinstance(doc, dict):
            raise KeyError(f"unknown crawl: {crawl_id}")
        return doc

    def _write(self, crawl_id: str, doc: Dict[str, Any]) -> None:
        save_json(str(self._path(crawl_id)), doc, pretty=True)

    # ------------------------------------------------------------------

    def create_crawl(self, request: CrawlRequest, crawl_id: Optional[str] = None) -> str:
        crawl_id = crawl_id or str(uuid.uuid4())
        doc = {
            "crawl": {
                "id": crawl_id,
                "start_url": request.start_url,
                "status": "running",
                "max_pages": request.max_pages,
                "max_depth": request.max_depth,
                "include_sitemap": request.include_sitemap,
                "created_at": utc_now_iso(),
                "completed_at": None,
            },
            "pages": {},
            "errors": [],
            "entities": {},
            "findings": None,
        }
        with self._lock:
            self._write(crawl_id, doc)
        return crawl_id

    def upsert_pages(self, crawl_id: str, pages: Iterable[PageRecord]) -> None:
        with self._lock:
            doc = self._read(crawl_id)
            for p in pages:
                prev = doc["pages"].get(p.url) or {}
                row = page_row(p)
                if "summary" in prev:
                    row["summary"] = prev["summary"]
                doc["pages"][p.url] = row
            self._write(crawl_id, doc)

    def save_result(self, crawl_id: str, result: CrawlResult) -> None:
        self.upsert_pages(crawl_id, result.pages)
        with self._lock:
            doc = self._read(crawl_id)
            doc["errors"] = [e.to_dict() for e in result.errors]
            doc["findings"] = result.findings.to_dict()
            doc["crawl"]["status"] = "completed"
            doc["crawl"]["elapsed_ms"] = result.elapsed_ms
            doc["crawl"]["completed_at"] = utc_now_iso()
            self._write(crawl_id, doc)

    def save_summary(self, crawl_id: str, url: str, summary: Optional[str]) -> None:
        with self._lock:
            doc = self._read(crawl_id)
            if url in doc["pages"]:
                doc["pages"][url]["summary"] = summary
                self._write(crawl_id, doc)

    def save_entities(self, crawl_id: str, url: str, entities: Iterable[PageEntity]) -> None:
        with self._lock:
            doc = self._read(crawl_id)
            current: List[Dict[str, Any]] = doc["entities"].setdefault(url, [])
            keys = {(e["type"], e["value"]) for e in current}
            for ent in entities:
                if (ent.type, ent.value) in keys:
                    continue
                keys.add((ent.type, ent.value))
                current.append(ent.to_dict())
            self._write(crawl_id, doc)

    def load_crawl(self, crawl_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            try:
                return self._read(crawl_id)
            except KeyError:
                return None
