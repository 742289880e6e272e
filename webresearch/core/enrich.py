# enrich.py: per-page summary + entity enrichment
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

from .completion import Completer
from .errors import CompletionError
from .extractor import main_text
from .findings import split_sentences
from .models import PageRecord
from .utils import cap

log = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 600
PROMPT_MAX_CHARS = 6000

SUMMARY_SYSTEM = "Summarize the following webpage content in exactly 2 concise sentences."
ENTITY_SYSTEM = "Extract structured entities from webpage content. Be concise."
ENTITY_PROMPT = """Extract entities from this page. Capture product names, integrations, plan names, and price points.

Return JSON like:
{{"entities": [{{"type": "product", "value": "X"}}, {{"type": "price", "value": "$99"}}]}}

Content:
{text}"""

_TYPE_ALIASES = {
    "integration": "integration", "integrations": "integration",
    "plan": "plan", "plan_name": "plan",
    "case_study": "case_study", "case": "case_study", "case_studies": "case_study",
    "case_study_name": "case_study", "case_study_brand": "case_study",
    "price": "price", "pricing": "price",
    "product": "product", "tool": "product",
    "url": "url", "link": "url",
    "team_member": "team_member", "teammember": "team_member", "team": "team_member",
}

PRICE_RE = re.compile(r"^[$€£]?\d{1,3}(?:,\d{3})*(?:\.\d{2})?$|^[$€£]?\d+(?:\.\d{2})?$")


@dataclass(frozen=True)
class PageEntity:
    type: str
    value: str
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_type(s: str) -> str:
    k = re.sub(r"\s+", "_", (s or "").strip().lower())
    return _TYPE_ALIASES.get(k, k)


def looks_like_price(s: str) -> bool:
    return bool(PRICE_RE.match(s.strip()))


def parse_entities(raw: str) -> List[PageEntity]:
    """Parse the completion output; bad JSON gives an empty list."""
    try:
        parsed = json.loads(raw or "{}")
    except ValueError:
        log.warning("[enrich] entity response is not JSON")
        return []

    if isinstance(parsed, list):
        items = parsed
    elif isinstance(parsed, dict):
        items = parsed.get("entities") or []
    else:
        items = []

    out: List[PageEntity] = []
    seen = set()
    for ent in items:
        if not isinstance(ent, dict):
            continue
        t = normalize_type(str(ent.get("type") or ""))
        v = str(ent.get("value") or "").strip()
        if not t or not v:
            continue
        if t == "price" and not looks_like_price(v):
            continue
        if (t, v) in seen:
            continue
        seen.add((t, v))
        conf = ent.get("confidence")
        out.append(PageEntity(t, v, float(conf) if isinstance(conf, (int, float)) else None))
    return out


def fallback_summary(record: PageRecord) -> Optional[str]:
    """First two sentences of the readability main text (or the meta description)."""
    text = main_text(record.html) or record.meta_description or ""
    sentences = split_sentences(text.replace("\n", " "))
    if not sentences:
        return None
    return cap(" ".join(sentences[:2]), SUMMARY_MAX_CHARS)


class PageEnricher:
    """
    Summaries and entities per page. Works without a completer (local
    summaries only); completer failures degrade to the same fallback.
    """

    def __init__(self, completer: Optional[Completer] = None):
        self.completer = completer

    def summarize(self, record: PageRecord) -> Tuple[Optional[str], List[PageEntity]]:
        text = cap((record.text or "").strip(), PROMPT_MAX_CHARS)
        if self.completer is None or not text:
            return fallback_summary(record), []

        try:
            summary = self.completer.complete(f"URL: {record.url}\n\n{text}", system=SUMMARY_SYSTEM)
            raw = self.completer.complete(ENTITY_PROMPT.format(text=text), system=ENTITY_SYSTEM, json_mode=True)
        except CompletionError as e:
            log.warning("[enrich] completion failed for %s: %s", record.url, e)
            return fallback_summary(record), []

        return cap(summary, SUMMARY_MAX_CHARS) or fallback_summary(record), parse_entities(raw)
