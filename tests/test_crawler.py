import httpx
import pytest

from webresearch.core.crawler import ROBOTS_BLOCKED
from webresearch.core.errors import InvalidCrawlRequest, InvalidUrl
from webresearch.core.models import CrawlRequest, MAX_DEPTH_CAP, MAX_PAGES_CAP

from conftest import BASE, html_route


def links_page(*paths, title="Page"):
    anchors = " ".join(f'<a href="{p}">{p}</a>' for p in paths)
    return html_route(f"<html><head><title>{title}</title></head><body><p>{title}</p>{anchors}</body></html>")


@pytest.mark.unit
def test_three_page_site(make_crawler, site_routes):
    result = make_crawler(site_routes).crawl(CrawlRequest(BASE + "/", max_pages=10, max_depth=1))

    assert result.errors == []
    assert [p.url for p in result.pages] == [
        BASE + "/",
        BASE + "/about",
        BASE + "/pricing",
    ]
    assert sorted(p.depth for p in result.pages) == [0, 1, 1]
    assert [p.classification.type for p in result.pages] == ["home", "about", "pricing"]
    assert result.pages[1].parent_url == BASE + "/"
    assert result.pages[0].title == "Acme | AI Ads Platform"
    assert result.pages[0].language == "en"
    assert result.findings.mentions_pricing is True
    assert result.findings.coverage.pages_considered == 3


def test_depth_zero_fetches_only_the_start(make_crawler, site_routes):
    result = make_crawler(site_routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=0))
    assert [p.url for p in result.pages] == [BASE + "/"]


def test_max_pages_bounds_the_crawl(make_crawler):
    routes = {"/": links_page("/a", "/b", "/c", "/d", "/e")}
    for p in "abcde":
        routes["/" + p] = links_page(title=p)
    result = make_crawler(routes).crawl(CrawlRequest(BASE, max_pages=2, max_depth=1))
    assert len(result.pages) == 2


def test_links_beyond_max_depth_are_not_followed(make_crawler, site_routes):
    calls = []
    make_crawler(site_routes, calls=calls).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    assert BASE + "/team" not in calls


def test_cross_origin_links_are_not_followed(make_crawler, site_routes):
    calls = []
    make_crawler(site_routes, calls=calls).crawl(CrawlRequest(BASE, max_pages=10, max_depth=2))
    assert not any(c.startswith("https://other.test") for c in calls)


def test_robots_disallow_all_blocks_everything(make_crawler, site_routes):
    calls = []
    site_routes["/robots.txt"] = (200, "text/plain", "User-agent: *\nDisallow: /\n")
    result = make_crawler(site_routes, calls=calls).crawl(CrawlRequest(BASE, max_pages=10, max_depth=2))
    assert result.pages == []
    assert [(e.url, e.depth, e.error) for e in result.errors] == [(BASE + "/", 0, ROBOTS_BLOCKED)]
    assert calls == [BASE + "/robots.txt"]


def test_robots_disallowed_path_is_reported(make_crawler, site_routes):
    site_routes["/robots.txt"] = (200, "text/plain", "User-agent: *\nDisallow: /pricing\n")
    result = make_crawler(site_routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    assert [p.url for p in result.pages] == [BASE + "/", BASE + "/about"]
    assert [(e.url, e.error) for e in result.errors] == [(BASE + "/pricing", ROBOTS_BLOCKED)]


def test_fetch_failures_become_errors(make_crawler):
    routes = {
        "/": links_page("/missing", "/boom", "/ok"),
        "/ok": links_page(title="ok"),
        "/boom": httpx.ConnectError("connection reset"),
    }
    result = make_crawler(routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    assert [p.url for p in result.pages] == [BASE + "/", BASE + "/ok"]
    errors = {e.url: e.error for e in result.errors}
    assert errors == {BASE + "/missing": "HTTP 404", BASE + "/boom": "connection reset"}
    assert all(e.depth == 1 for e in result.errors)


def test_non_html_is_skipped_silently(make_crawler):
    routes = {
        "/": links_page("/brochure.pdf", "/about"),
        "/brochure.pdf": (200, "application/pdf", b"%PDF-1.4"),
        "/about": links_page(title="About"),
    }
    result = make_crawler(routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    assert [p.url for p in result.pages] == [BASE + "/", BASE + "/about"]
    assert result.errors == []


def test_url_variants_are_fetched_once(make_crawler):
    calls = []
    routes = {
        "/": links_page("/about", "/about/", "/about#team", "https://SITE.test:443/about"),
        "/about": links_page("/", title="About"),
    }
    result = make_crawler(routes, calls=calls).crawl(CrawlRequest(BASE, max_pages=10, max_depth=2))
    urls = [p.url for p in result.pages]
    assert urls == [BASE + "/", BASE + "/about"]
    assert calls.count(BASE + "/about") == 1
    assert calls.count(BASE + "/") == 1


def test_redirect_to_known_page_is_not_recorded_twice(make_crawler):
    routes = {
        "/": links_page("/old", "/about"),
        "/old": (301, "text/html", "/about"),
        "/about": links_page(title="About"),
    }
    result = make_crawler(routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    urls = [p.url for p in result.pages]
    assert urls == [BASE + "/", BASE + "/about"]
    assert len(urls) == len(set(urls))


def test_redirect_into_disallowed_path_is_blocked(make_crawler):
    routes = {
        "/robots.txt": (200, "text/plain", "User-agent: *\nDisallow: /private\n"),
        "/": links_page("/go"),
        "/go": (302, "text/html", "/private/secret"),
        "/private/secret": links_page(title="Secret"),
    }
    result = make_crawler(routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    assert [p.url for p in result.pages] == [BASE + "/"]
    assert [(e.url, e.depth, e.error) for e in result.errors] == [
        (BASE + "/private/secret", 1, ROBOTS_BLOCKED),
    ]


def test_redirect_off_origin_is_dropped(make_crawler):
    routes = {
        "/": links_page("/out", "/about"),
        "/out": (302, "text/html", "https://other.test/landing"),
        "/landing": links_page("/elsewhere", title="Landing"),
        "/about": links_page(title="About"),
    }
    result = make_crawler(routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=2))
    assert [p.url for p in result.pages] == [BASE + "/", BASE + "/about"]
    assert result.errors == []


def test_requests_are_paced(make_crawler, site_routes):
    sleeps = []
    make_crawler(site_routes, sleeps=sleeps, delay_ms=500).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1))
    assert sleeps == [0.5, 0.5]


def test_crawl_result_serialises_without_html(make_crawler, site_routes):
    d = make_crawler(site_routes).crawl(CrawlRequest(BASE, max_pages=10, max_depth=1)).to_dict()
    assert set(d) == {"pages", "errors", "findings", "elapsed_ms"}
    assert "html" not in d["pages"][0]
    assert d["pages"][0]["classification"] == {"type": "home", "confidence": 0.95}


@pytest.mark.parametrize("url", ["notaurl", "ftp://site.test/", "/relative", ""])
def test_request_rejects_bad_start_url(url):
    with pytest.raises(InvalidUrl):
        CrawlRequest(url)


@pytest.mark.parametrize("pages,depth", [(0, 1), (-5, 1), (10, -1)])
def test_request_rejects_bad_bounds(pages, depth):
    with pytest.raises(InvalidCrawlRequest):
        CrawlRequest(BASE, max_pages=pages, max_depth=depth)


def test_request_clamps_to_caps():
    req = CrawlRequest(BASE, max_pages=10_000, max_depth=99)
    assert req.max_pages == MAX_PAGES_CAP
    assert req.max_depth == MAX_DEPTH_CAP
