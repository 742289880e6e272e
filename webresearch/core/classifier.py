# classifier.py: URL / title / text heuristics -> page type + confidence
from typing import NamedTuple, Optional, Tuple
from urllib.parse import urlsplit

from .models import Classification

HOME_PATHS = ("/", "/index", "/index.html")
TEXT_PREFIX_CHARS = 2000


class Rule(NamedTuple):
    source: str  # "path" | "title" | "text"
    keywords: Tuple[str, ...]
    type: str
    confidence: float


# Ordered: first match wins.
RULES: Tuple[Rule, ...] = (
    Rule("path", ("about", "team", "company", "who-we-are"), "about", 0.90),
    Rule("path", ("contact", "contact-us", "support", "help", "get-in-touch"), "contact", 0.90),
    Rule("path", ("pricing", "plans", "plan", "packages"), "pricing", 0.92),
    Rule("path", ("privacy", "privacy-policy"), "privacy", 0.98),
    Rule("path", ("terms", "terms-of-service", "tos", "legal"), "terms", 0.95),
    Rule("path", ("blog", "news", "stories", "insights", "articles"), "blog", 0.85),
    Rule("path", ("case", "case-study", "case-studies", "customers", "success-stories"), "case-study", 0.85),
    Rule("path", ("product", "products", "shop", "store", "item", "sku", "catalog"), "product", 0.75),

    Rule("title", ("about", "our team", "company"), "about", 0.70),
    Rule("title", ("contact", "support"), "contact", 0.70),
    Rule("title", ("pricing", "plans", "packages"), "pricing", 0.75),
    Rule("title", ("privacy",), "privacy", 0.85),
    Rule("title", ("terms",), "terms", 0.85),
    Rule("title", ("blog", "news", "insights", "stories", "articles"), "blog", 0.70),
    Rule("title", ("case study", "case studies", "customers", "success stories"), "case-study", 0.70),
    Rule("title", ("product", "shop", "store"), "product", 0.65),

    Rule("text", ("privacy policy",), "privacy", 0.70),
    Rule("text", ("terms of service", "terms and conditions"), "terms", 0.70),
)

HOME = Classification("home", 0.95)
DEFAULT = Classification("other", 0.30)


def has_any(hay: str, needles: Tuple[str, ...]) -> bool:
    hay = hay.lower()
    return any(n in hay for n in needles)


def _path(url: str) -> str:
    try:
        return (urlsplit(url).path or "/").lower()
    except ValueError:
        return "/"


def classify(url: str, title: Optional[str] = "", text: Optional[str] = "") -> Classification:
    path = _path(url)
    if path in HOME_PATHS:
        return HOME

    haystacks = {
        "path": path,
        "title": (title or "").lower(),
        "text": (text or "")[:TEXT_PREFIX_CHARS].lower(),
    }
    for rule in RULES:
        if has_any(haystacks[rule.source], rule.keywords):
            return Classification(rule.type, rule.confidence)

    return DEFAULT
