# webresearch/core/extractor.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

from langdetect import DetectorFactory, detect as lang_detect
from langdetect.lang_detect_exception import LangDetectException
from lxml import etree
from lxml import html as LH
from readability import Document

from .errors import InvalidUrl
from .urls import normalize, same_origin
from .utils import clean_space, dedup

log = logging.getLogger(__name__)

DetectorFactory.seed = 0

SKIP_HREF_PREFIXES = ("mailto:", "tel:", "javascript:", "data:")
INVISIBLE_TAGS = ("script", "style", "iframe", "noscript")


@dataclass
class ExtractedPage:
    title: Optional[str] = None
    meta_description: Optional[str] = None
    language: Optional[str] = None
    text: str = ""
    outbound_links: List[str] = field(default_factory=list)
    image_alts: List[str] = field(default_factory=list)


# -----------------------------------------------------------
# Helpers
# -----------------------------------------------------------

def parse_html(html_text: str) -> Optional[LH.HtmlElement]:
    """Parse to a full document. Returns None when lxml cannot make anything of it."""
    if not html_text or not html_text.strip():
        return None
    try:
        return LH.document_fromstring(html_text)
    except ValueError:
        # str input with an XML encoding declaration
        try:
            return LH.document_fromstring(html_text.encode("utf-8", errors="replace"))
        except (ValueError, etree.ParserError):
            return None
    except etree.ParserError:
        return None


def primary_subtag(tag: Optional[str]) -> Optional[str]:
    """en-US / en_us -> en"""
    t = clean_space(tag).lower()
    if not t:
        return None
    return re.split(r"[-_]", t, maxsplit=1)[0] or t


def make_abs(base_url: str, raw: Optional[str]) -> Optional[str]:
    """Resolve an href against base_url. None for hrefs that are not crawlable links."""
    if not raw:
        return None
    raw = raw.strip()
    if not raw or raw.startswith("#"):
        return None
    if raw.lower().startswith(SKIP_HREF_PREFIXES):
        return None
    try:
        absu = normalize(urljoin(base_url, raw))
    except (InvalidUrl, ValueError):
        return None
    if not absu.startswith(("http://", "https://")):
        return None
    return absu


def extract_title(doc: LH.HtmlElement) -> Optional[str]:
    for tnode in doc.iter("title"):
        t = clean_space(tnode.text_content())
        if t:
            return t
    return None


def extract_meta_description(doc: LH.HtmlElement) -> Optional[str]:
    by_name = None
    by_og = None
    for m in doc.xpath("//meta[@name or @property]"):
        name = (m.get("name") or "").strip().lower()
        prop = (m.get("property") or "").strip().lower()
        content = clean_space(m.get("content"))
        if not content:
            continue
        if name == "description" and by_name is None:
            by_name = content
        elif prop == "og:description" and by_og is None:
            by_og = content
    return by_name or by_og


def extract_language(doc: LH.HtmlElement) -> Optional[str]:
    lang = primary_subtag(doc.get("lang") or doc.get("xml:lang"))
    if lang:
        return lang
    for content in doc.xpath("//meta[@property='og:locale']/@content"):
        lang = primary_subtag(content)
        if lang:
            return lang
    return None


def extract_links(doc: LH.HtmlElement, base_url: str) -> List[str]:
    out = []
    for a in doc.xpath("//a[@href]"):
        absu = make_abs(base_url, a.get("href"))
        if absu and same_origin(absu, base_url):
            out.append(absu)
    return dedup(out)


def extract_image_alts(doc: LH.HtmlElement) -> List[str]:
    out = []
    for im in doc.xpath("//img[@alt]"):
        alt = clean_space(im.get("alt"))
        if alt:
            out.append(alt)
    return out


def extract_visible_text(doc: LH.HtmlElement) -> str:
    # strip on a copy so the caller's tree stays intact
    root = LH.document_fromstring(etree.tostring(doc))
    etree.strip_elements(root, etree.Comment, *INVISIBLE_TAGS, with_tail=False)
    body = root.find("body")
    node = body if body is not None else root
    return clean_space(" ".join(node.itertext()))


def detect_language(text: str) -> Optional[str]:
    if not text:
        return None
    try:
        return primary_subtag(lang_detect(text[:1000]))
    except LangDetectException:
        return None


def main_text(html_text: str) -> str:
    """Readability main-content text, one block per line."""
    if not html_text or not html_text.strip():
        return ""
    try:
        summary_html = Document(html_text).summary(html_partial=True)
        frag = LH.fromstring(summary_html) if summary_html else None
    except (ValueError, etree.LxmlError):
        return ""
    if frag is None:
        return ""

    lines = []
    for node in frag.iter():
        if node.tag in ("p", "li", "h1", "h2", "h3", "blockquote"):
            t = clean_space(" ".join(node.itertext()))
            if t:
                lines.append(t)

    cleaned, prev = [], None
    for ln in lines:
        if ln != prev:
            cleaned.append(ln)
        prev = ln

    return "\n".join(cleaned).strip()


# -----------------------------------------------------------
# Main function
# -----------------------------------------------------------

def extract(html_text: str, base_url: str, detect_lang: bool = False) -> ExtractedPage:
    """
    Static parse of one HTML page. Malformed or empty markup gives empty
    fields instead of an error.
    """
    doc = parse_html(html_text)
    if doc is None:
        log.debug("[extract] degraded: unparsable HTML at %s", base_url)
        return ExtractedPage()

    text = extract_visible_text(doc)
    language = extract_language(doc)
    if language is None and detect_lang:
        language = detect_language(text)

    return ExtractedPage(
        title=extract_title(doc),
        meta_description=extract_meta_description(doc),
        language=language,
        text=text,
        outbound_links=extract_links(doc, base_url),
        image_alts=extract_image_alts(doc),
    )
