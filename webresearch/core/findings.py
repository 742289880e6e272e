# findings.py: heuristic business findings over all collected pages
import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

from .extractor import extract_image_alts, parse_html
from .models import Coverage, Findings, PageRecord
from .utils import clean_space, dedup

MAX_FEATURES = 10
MAX_METRICS = 10
LONG_SEGMENT = 240

VALUE_PROP_LEN = (40, 180)
FEATURE_LEN = (40, 220)
ALT_MAX_LEN = 40

# ---------------- patterns ---------------- #

SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z(])")
SECONDARY_SPLIT_RE = re.compile(r"\s*(?:;|—|·|•)\s*")

ACTION_CUE_RE = re.compile(
    r"\b(identif(?:y|ies)|automatic(?:ally)?|automate[sd]?|increase[sd]?|optimi[sz]e[sd]?|"
    r"boost[s]?|reduce[sd]?|track[s]?|analy[sz]e[sd]?|generate[sd]?|discover[s]?|"
    r"launch(?:es)?|scale[sd]?|improve[sd]?|manage[sd]?|monitor[s]?|predict[s]?|"
    r"personali[sz]e[sd]?|connect[s]?|sync(?:s|hronize)?|forecast[s]?|maximi[sz]e[sd]?)\b",
    re.I,
)

RELEVANCE_RE = re.compile(
    r"\b(AI|platform|pricing|ROAS|optimi[sz]\w*|automat\w*|marketing|advertis\w*|ads|"
    r"e-?commerce|revenue|growth|analytics|insights?|software|customers?)\b",
    re.I,
)

TITLE_RELEVANCE_RE = re.compile(
    r"\b(AI|platform|software|app|solutions?|tools?|marketing|ads|commerce|analytics|automation)\b",
    re.I,
)

PRICING_TEXT_RE = re.compile(
    r"\b(pricing|price[sd]?|plans?|per month|per year|monthly|annually|free trial|subscription)\b"
    r"|[$€£]\s?\d",
    re.I,
)

PRICING_PATH_RE = re.compile(r"/(pricing|prices?|plans?|packages)(?:[/._-]|$)", re.I)

PERCENT_RE = re.compile(r"\d+(?:[.,]\d+)?\s?%")
MULTI_DIGIT_RE = re.compile(r"\d{1,3}(?:,\d{3})+|\d{2,}")

BRACKET_ELLIPSIS_RE = re.compile(r"\[\s*(?:…|\.\.\.)\s*\]")
SMART_QUOTES_RE = re.compile(r"[“”‘’«»]")
DASHES_RE = re.compile(r"[–—]")
TRAILING_PUNCT_RE = re.compile(r"[\s.!?;:,]+$")

SHORT_PHRASE_RE = re.compile(r"^[A-Z][\w&.+'-]*(?:\s+[A-Z0-9][\w&.+'-]*){0,3}$")

# Closed set, matched as whole words (case-sensitive).
KNOWN_BRANDS = (
    "Amazon", "BigCommerce", "Facebook", "Google Ads", "Google Analytics",
    "HubSpot", "Instagram", "Intercom", "Klaviyo", "LinkedIn", "Magento",
    "Mailchimp", "Meta", "Microsoft", "PayPal", "Pinterest", "Salesforce",
    "Segment", "Shopify", "Slack", "Snapchat", "Stripe", "TikTok",
    "WooCommerce", "YouTube", "Zapier", "Zendesk",
)

_BRAND_RES = tuple((b, re.compile(r"\b" + re.escape(b) + r"\b")) for b in KNOWN_BRANDS)
_BRANDS_LOWER = {b.lower(): b for b in KNOWN_BRANDS}


# ---------------- helpers ---------------- #

def split_sentences(text: str) -> List[str]:
    out: List[str] = []
    for seg in SENTENCE_SPLIT_RE.split(clean_space(text)):
        seg = seg.strip()
        if not seg:
            continue
        if len(seg) > LONG_SEGMENT and ACTION_CUE_RE.search(seg):
            pieces = [p.strip() for p in SECONDARY_SPLIT_RE.split(seg) if p.strip()]
            if len(pieces) > 1:
                out.extend(pieces)
                continue
        out.append(seg)
    return out


def clean_sentence(s: str) -> str:
    s = BRACKET_ELLIPSIS_RE.sub("", s)
    s = DASHES_RE.sub("-", s)
    return clean_space(s)


def normalize_key(s: str) -> str:
    s = BRACKET_ELLIPSIS_RE.sub("", s.lower())
    s = SMART_QUOTES_RE.sub("", s)
    s = DASHES_RE.sub("-", s)
    s = TRAILING_PUNCT_RE.sub("", s)
    return clean_space(s)


def _dedup_by_key(items: Iterable[str], limit: int) -> List[str]:
    seen, out = set(), []
    for it in items:
        key = normalize_key(it)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(it)
        if len(out) >= limit:
            break
    return out


def _in_range(s: str, bounds) -> bool:
    return bounds[0] <= len(s) <= bounds[1]


# ---------------- miners ---------------- #

def find_value_prop(sentences: Sequence[str], titles: Sequence[Optional[str]]) -> Optional[str]:
    for s in sentences:
        if _in_range(s, VALUE_PROP_LEN) and RELEVANCE_RE.search(s):
            return s
    for t in titles:
        if t and TITLE_RELEVANCE_RE.search(t):
            return t
    return None


def find_key_features(sentences: Sequence[str]) -> List[str]:
    cands = (s for s in sentences if _in_range(s, FEATURE_LEN) and ACTION_CUE_RE.search(s))
    return _dedup_by_key(cands, MAX_FEATURES)


def find_partners(text: str, image_alts: Sequence[str]) -> List[str]:
    found = {brand for brand, rx in _BRAND_RES if rx.search(text)}
    for alt in image_alts:
        if len(alt) > ALT_MAX_LEN:
            continue
        if alt.lower() in _BRANDS_LOWER or SHORT_PHRASE_RE.match(alt):
            found.add(alt)
    return sorted(found)


def is_pricing_url(url: str) -> bool:
    return bool(PRICING_PATH_RE.search(urlsplit(url).path or ""))


def find_pricing_urls(pages: Sequence[PageRecord]) -> List[str]:
    urls: List[str] = []
    for p in pages:
        if is_pricing_url(p.url):
            urls.append(p.url)
        urls.extend(u for u in p.outbound_links if is_pricing_url(u))
    return dedup(urls)


def find_metrics(sentences: Sequence[str]) -> List[str]:
    cands = (
        clean_sentence(s) for s in sentences
        if PERCENT_RE.search(s) or MULTI_DIGIT_RE.search(s)
    )
    return _dedup_by_key(cands, MAX_METRICS)


# ---------------- main ---------------- #

def aggregate_findings(pages: Sequence[PageRecord]) -> Findings:
    """
    Recompute findings from every collected page. Not incremental.
    """
    sentences: List[str] = []
    texts: List[str] = []
    alts: List[str] = []
    for p in pages:
        texts.append(p.text or "")
        sentences.extend(split_sentences(p.text or ""))
        doc = parse_html(p.html)
        if doc is not None:
            alts.extend(extract_image_alts(doc))

    full_text = "\n".join(texts)
    pricing_urls = find_pricing_urls(pages)
    mentions_pricing = bool(PRICING_TEXT_RE.search(full_text)) or bool(pricing_urls)

    return Findings(
        mentions_pricing=mentions_pricing,
        pricing_page_urls=pricing_urls,
        value_prop=find_value_prop(sentences, [p.title for p in pages]),
        key_features=find_key_features(sentences),
        partners_integrations=find_partners(full_text, alts),
        noteworthy_metrics=find_metrics(sentences),
        coverage=Coverage(
            pages_considered=len(pages),
            unique_urls_in_evidence=len(pricing_urls) or len(pages),
        ),
    )
