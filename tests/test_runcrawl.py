import json

import pytest

from webresearch import runcrawl
from webresearch.core.research import ResearchService

from conftest import BASE, make_transport


@pytest.fixture
def offline_service(monkeypatch, test_config, site_routes, tmp_path):
    monkeypatch.setenv("WEBRESEARCH_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("COMPLETION_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    def factory(cfg, completer=None, store=None):
        return ResearchService(test_config, completer=completer, store=store,
                               transport=make_transport(site_routes), sleep=lambda s: None)

    monkeypatch.setattr(runcrawl, "ResearchService", factory)


@pytest.mark.unit
def test_cli_prints_pages_and_outputs(offline_service, capsys, tmp_path):
    assert runcrawl.main([BASE, "10", "1", "--sitemap"]) == 0
    out = capsys.readouterr().out
    assert "[crawler] fetched pages=3 errors=0" in out
    assert f" - [200] d=1 {BASE}/pricing (pricing)" in out
    assert "[crawler] saved crawl_id=" in out

    outputs = json.loads(out[out.index("{"):])
    assert len(outputs["sitemap"]["flat"]) == 3
    assert len(list((tmp_path / "crawls").glob("*.json"))) == 1


def test_cli_no_store(offline_service, capsys, tmp_path):
    assert runcrawl.main([BASE, "1", "0", "--no-store"]) == 0
    assert "saved crawl_id" not in capsys.readouterr().out
    assert not (tmp_path / "crawls").exists()


def test_cli_rejects_bad_url(offline_service, capsys):
    assert runcrawl.main(["not-a-url"]) == 2
    assert "[ERR]" in capsys.readouterr().err
