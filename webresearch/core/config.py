# webresearch/core/config.py

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .utils import DEFAULT_UA, ensure_dir, load_json_safe


def get_project_root() -> Path:
    """
    Return the absolute project root (folder that contains `webresearch` and `backend`).
    """
    here = Path(__file__).resolve()
    # .../webresearch/core/config.py -> project root is parents[2]
    return here.parents[2]


def get_data_root() -> Path:
    env = os.getenv("WEBRESEARCH_DATA_DIR", "").strip()
    d = Path(env) if env else get_project_root() / "data"
    ensure_dir(str(d))
    return d


# ---------------------------------------------------------------------------
# Crawl config
# ---------------------------------------------------------------------------

@dataclass
class HttpSettings:
    engine: str = "httpx"
    timeout: float = 15.0
    robots_timeout: float = 5.0
    retries: int = 1
    http2: bool = False
    proxy: Optional[str] = None
    user_agent: str = DEFAULT_UA


@dataclass
class CrawlLimits:
    delay_ms_between_requests: int = 2000
    robots_ttl_s: int = 6 * 60 * 60


@dataclass
class ExtractSettings:
    detect_language: bool = False


@dataclass
class CrawlConfig:
    http: HttpSettings = field(default_factory=HttpSettings)
    limits: CrawlLimits = field(default_factory=CrawlLimits)
    extract: ExtractSettings = field(default_factory=ExtractSettings)
    data_dir: Optional[str] = None

    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            d = Path(self.data_dir)
            ensure_dir(str(d))
            return d
        return get_data_root()


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(v)


def config_from_dict(raw: Dict[str, Any]) -> CrawlConfig:
    """
    Build a CrawlConfig from a raw JSON object.

    Supports two shapes:

    1) Nested (recommended):
       {
         "http": {"engine": "httpx", "timeout": 15, "retries": 1, "user_agent": "..."},
         "limits": {"delay_ms_between_requests": 2000, "robots_ttl_s": 21600},
         "extract": {"detect_language": false},
         "data_dir": "/var/lib/webresearch"
       }

    2) Flat (same keys at the top level):
       {"timeout": 15, "delay_ms_between_requests": 500}
    """
    if not isinstance(raw, dict):
        raw = {}

    if "http" in raw or "limits" in raw or "extract" in raw:
        http_raw = raw.get("http") or {}
        limits_raw = raw.get("limits") or {}
        extract_raw = raw.get("extract") or {}
    else:
        http_raw = limits_raw = extract_raw = raw

    d_http = HttpSettings()
    http = HttpSettings(
        engine=str(http_raw.get("engine", d_http.engine)),
        timeout=float(http_raw.get("timeout", d_http.timeout)),
        robots_timeout=float(http_raw.get("robots_timeout", d_http.robots_timeout)),
        retries=int(http_raw.get("retries", d_http.retries)),
        http2=_as_bool(http_raw.get("http2"), d_http.http2),
        proxy=http_raw.get("proxy"),
        user_agent=http_raw.get("user_agent") or d_http.user_agent,
    )

    d_limits = CrawlLimits()
    limits = CrawlLimits(
        delay_ms_between_requests=int(
            limits_raw.get("delay_ms_between_requests", d_limits.delay_ms_between_requests)
        ),
        robots_ttl_s=int(limits_raw.get("robots_ttl_s", d_limits.robots_ttl_s)),
    )

    extract = ExtractSettings(
        detect_language=_as_bool(extract_raw.get("detect_language"), False),
    )

    return CrawlConfig(http=http, limits=limits, extract=extract, data_dir=raw.get("data_dir"))


def load_crawl_config(path: Optional[str] = None) -> CrawlConfig:
    """
    Load crawl config from `path`, $WEBRESEARCH_CONFIG or <root>/config_crawl.json.
    Missing or unreadable files give the defaults. Env overrides are applied last.
    """
    cfg_path = path or os.getenv("WEBRESEARCH_CONFIG") or str(get_project_root() / "config_crawl.json")
    cfg = config_from_dict(load_json_safe(cfg_path, default={}))

    ua = os.getenv("CRAWLER_UA", "").strip()
    if ua:
        cfg.http.user_agent = ua
    data_dir = os.getenv("WEBRESEARCH_DATA_DIR", "").strip()
    if data_dir:
        cfg.data_dir = data_dir

    return cfg
