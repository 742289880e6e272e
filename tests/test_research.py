import pytest

from webresearch.core.errors import InvalidCrawlRequest
from webresearch.core.models import CrawlError, CrawlRequest, CrawlResult, Findings
from webresearch.core.research import ResearchService, build_highlights, build_outputs
from webresearch.core.store import JsonCrawlStore

from conftest import BASE, make_transport


class EchoCompleter:
    def complete(self, prompt, system=None, json_mode=False):
        if json_mode:
            return '{"entities": [{"type": "product", "value": "Acme Ads"}]}'
        return "A short summary. Second sentence."


@pytest.fixture
def service(test_config, site_routes, tmp_path):
    svc = ResearchService(
        test_config,
        completer=EchoCompleter(),
        store=JsonCrawlStore(tmp_path),
        transport=make_transport(site_routes),
        sleep=lambda s: None,
    )
    yield svc
    svc.close()


@pytest.mark.unit
def test_run_produces_outputs_and_persists(service):
    outcome = service.run(CrawlRequest(BASE, max_pages=10, max_depth=1, include_sitemap=True))

    out = outcome.outputs
    assert set(out) == {"highlights", "pages", "findings", "metrics", "sitemap"}
    assert [p["url"] for p in out["pages"]] == [BASE + "/", BASE + "/about", BASE + "/pricing"]
    assert out["pages"][0] == {
        "url": BASE + "/",
        "depth": 0,
        "type": "home",
        "title": "Acme | AI Ads Platform",
        "summary": "A short summary. Second sentence.",
    }
    assert out["sitemap"]["flat"][1] == {"url": BASE + "/about", "depth": 1, "parent": BASE + "/"}
    assert out["findings"]["mentions_pricing"] is True
    assert out["metrics"]["pages_visited"] == 3
    assert out["metrics"]["errors"] == []
    assert out["metrics"]["elapsed_ms"] == outcome.result.elapsed_ms

    doc = service.store.load_crawl(outcome.crawl_id)
    assert doc["crawl"]["status"] == "completed"
    assert doc["pages"][BASE + "/about"]["summary"] == "A short summary. Second sentence."
    assert doc["entities"][BASE + "/"] == [{"type": "product", "value": "Acme Ads", "confidence": None}]


def test_run_without_store(test_config, site_routes):
    svc = ResearchService(test_config, transport=make_transport(site_routes), sleep=lambda s: None)
    try:
        outcome = svc.run(CrawlRequest(BASE, max_pages=1, max_depth=0), crawl_id="given")
    finally:
        svc.close()
    assert outcome.crawl_id == "given"
    assert len(outcome.result.pages) == 1
    assert "sitemap" not in outcome.outputs


def test_robots_cache_is_shared_between_runs(test_config, site_routes):
    calls = []
    svc = ResearchService(test_config, transport=make_transport(site_routes, calls), sleep=lambda s: None)
    try:
        svc.run(CrawlRequest(BASE, max_pages=1, max_depth=0))
        svc.run(CrawlRequest(BASE, max_pages=1, max_depth=0))
    finally:
        svc.close()
    assert calls.count(BASE + "/robots.txt") == 1


def test_highlights():
    findings = Findings(
        mentions_pricing=True,
        pricing_page_urls=["https://x.test/pricing"],
        value_prop="Acme is an AI ads platform.",
        key_features=["a", "b", "c", "d"],
        partners_integrations=["Shopify"],
        noteworthy_metrics=["32% more", "2x", "10,000 users"],
    )
    assert build_highlights(findings) == [
        "Acme is an AI ads platform.",
        "Pricing pages: https://x.test/pricing",
        "a", "b", "c",
        "Partners / integrations: Shopify",
        "32% more", "2x",
    ]


def test_highlights_for_empty_findings():
    assert build_highlights(Findings()) == []


def test_outputs_for_empty_crawl():
    out = build_outputs(CrawlResult(), include_sitemap=True)
    assert out["pages"] == []
    assert out["sitemap"] == {"flat": []}
    assert out["findings"]["coverage"] == {"pages_considered": 0, "unique_urls_in_evidence": 0}


def test_metrics_list_errors_as_url_and_message():
    result = CrawlResult(
        errors=[CrawlError("https://x.test/gone", 1, "HTTP 404")],
        elapsed_ms=1234,
    )
    assert build_outputs(result)["metrics"] == {
        "pages_visited": 0,
        "elapsed_ms": 1234,
        "errors": ["https://x.test/gone :: HTTP 404"],
    }


def test_stored_crawl_is_reused_without_fetching(test_config, site_routes, tmp_path):
    calls = []
    svc = ResearchService(
        test_config,
        completer=EchoCompleter(),
        store=JsonCrawlStore(tmp_path),
        transport=make_transport(site_routes, calls),
        sleep=lambda s: None,
    )
    try:
        first = svc.run(CrawlRequest(BASE, max_pages=10, max_depth=1, include_sitemap=True))
        fetched = len(calls)
        again = svc.rerun(first.crawl_id, include_sitemap=True)
    finally:
        svc.close()

    assert len(calls) == fetched
    assert again.crawl_id == first.crawl_id
    assert again.outputs == first.outputs
    assert again.entities[BASE + "/"][0].value == "Acme Ads"
    assert "sitemap" not in svc.rerun(first.crawl_id).outputs


def test_unknown_crawl_id_is_rejected(service):
    with pytest.raises(InvalidCrawlRequest):
        service.rerun("5b0c4b0e-0000-4000-8000-000000000000")


def test_reuse_needs_a_store(test_config, site_routes):
    svc = ResearchService(test_config, transport=make_transport(site_routes), sleep=lambda s: None)
    try:
        with pytest.raises(InvalidCrawlRequest):
            svc.rerun("anything")
    finally:
        svc.close()
