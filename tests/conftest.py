"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional

import httpx
import pytest

from webresearch.core.config import CrawlConfig, CrawlLimits, HttpSettings
from webresearch.core.crawler import Crawler
from webresearch.core.fetcher import FetchClient
from webresearch.core.models import Classification, PageRecord


BASE = "https://site.test"

HOME_HTML = """<!doctype html>
<html lang="en-US">
<head>
  <title>Acme | AI Ads Platform</title>
  <meta name="description" content="Acme helps ecommerce brands optimize ad spend.">
</head>
<body>
  <nav><a href="/about">About</a> <a href="/pricing/">Pricing</a> <a href="https://other.test/x">Elsewhere</a></nav>
  <p>Acme is an AI platform that helps ecommerce brands optimize their ad spend across channels.</p>
  <p>Automatically identify your best-performing creatives and shift budget in real time.</p>
  <p>Customers see a 32% increase in ROAS within 60 days.</p>
  <img src="/logos/shopify.png" alt="Shopify">
  <a href="mailto:hello@site.test">Email us</a>
</body>
</html>"""

ABOUT_HTML = """<html><head><title>About Acme</title></head>
<body><p>We are a small team of marketers and engineers.</p>
<a href="/">Home</a> <a href="/team">Team</a></body></html>"""

PRICING_HTML = """<html><head><title>Plans</title></head>
<body><h1>Simple plans</h1><p>Our pricing starts at $49/month.</p><a href="/">Home</a></body></html>"""


def html_route(body: str, status: int = 200):
    return (status, "text/html; charset=utf-8", body)


def three_page_site() -> Dict[str, object]:
    return {
        "/": html_route(HOME_HTML),
        "/about": html_route(ABOUT_HTML),
        "/pricing": html_route(PRICING_HTML),
    }


def make_transport(routes: Dict[str, object], calls: Optional[List[str]] = None) -> httpx.MockTransport:
    """
    routes: path -> (status, content_type, body) | exception instance.
    Unknown paths answer 404. 3xx bodies are used as the Location header.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, headers={"content-type": "text/html"}, content=b"not found")
        if isinstance(route, Exception):
            raise route
        status, ctype, body = route
        headers = {"content-type": ctype}
        if 300 <= status < 400:
            headers["location"] = body
            body = b""
        content = body.encode("utf-8") if isinstance(body, str) else body
        return httpx.Response(status, headers=headers, content=content)

    return httpx.MockTransport(handler)


@pytest.fixture
def test_config(tmp_path) -> CrawlConfig:
    return CrawlConfig(
        http=HttpSettings(retries=0),
        limits=CrawlLimits(delay_ms_between_requests=0),
        data_dir=str(tmp_path),
    )


@pytest.fixture
def make_crawler(test_config):
    clients = []

    def _make(routes, calls=None, sleeps=None, delay_ms=0):
        test_config.limits.delay_ms_between_requests = delay_ms
        fetcher = FetchClient(test_config.http, transport=make_transport(routes, calls))
        clients.append(fetcher)
        sleep = sleeps.append if sleeps is not None else (lambda s: None)
        return Crawler(test_config, fetcher=fetcher, sleep=sleep)

    yield _make
    for c in clients:
        c.close()


def make_page(url: str, text: str = "", html: str = "", title: Optional[str] = None,
              links=(), depth: int = 0) -> PageRecord:
    return PageRecord(
        url=url,
        depth=depth,
        http_status=200,
        content_type="text/html",
        title=title,
        meta_description=None,
        language=None,
        html=html,
        text=text,
        outbound_links=tuple(links),
        fetched_at="2024-01-01T00:00:00Z",
        classification=Classification(),
    )


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def site_routes():
    return three_page_site()
