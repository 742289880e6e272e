# utils.py (shared helpers)
import os, re, json
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

import chardet

DEFAULT_UA = "WebsiteResearchBot/0.1 (+https://github.com/webresearch/webresearch)"

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.I)


def ensure_dir(p: str) -> None:
    os.makedirs(p, exist_ok=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def detect_encoding(binary: bytes, default: str = "utf-8") -> str:
    guess = chardet.detect(binary)
    return guess.get("encoding") or default


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    m = _CHARSET_RE.search(content_type or "")
    return m.group(1).lower() if m else None


def to_unicode(b: bytes, encoding: Optional[str] = None) -> str:
    enc = encoding or detect_encoding(b)
    try:
        return b.decode(enc, errors="replace")
    except LookupError:
        return b.decode("utf-8", errors="replace")


def is_html_content_type(content_type: Optional[str]) -> bool:
    low = (content_type or "").lower()
    return "text/html" in low or "application/xhtml+xml" in low


def clean_space(s: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (s or "").strip())


def dedup(seq: Iterable[str]) -> List[str]:
    seen, out = set(), []
    for x in seq:
        if x and x not in seen:
            seen.add(x); out.append(x)
    return out


def cap(s: str, n: int = 600) -> str:
    return s if len(s) <= n else s[:n]


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_json_safe(path: str, default: Any) -> Any:
    """
    Load JSON file if it exists, otherwise return default.
    A parse error also returns default.
    """
    if not os.path.exists(path):
        return default
    try:
        return load_json(path)
    except (OSError, ValueError):
        return default


def save_json(path: str, data: Any, pretty: bool = False) -> None:
    ensure_dir(os.path.dirname(path) or ".")
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        if pretty:
            json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
        else:
            json.dump(data, f, ensure_ascii=False)
    os.replace(tmp, path)
