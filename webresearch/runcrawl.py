# webresearch/runcrawl.py: crawl one site from the command line
import argparse
import json
import logging
import os
import sys

from webresearch.core.completion import completion_client_from_env
from webresearch.core.config import load_crawl_config
from webresearch.core.errors import ResearchError
from webresearch.core.models import CrawlRequest, DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES
from webresearch.core.research import ResearchService
from webresearch.core.store import JsonCrawlStore


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Research a website: bounded crawl + findings")
    parser.add_argument("start_url")
    parser.add_argument("max_pages", nargs="?", type=int, default=DEFAULT_MAX_PAGES)
    parser.add_argument("max_depth", nargs="?", type=int, default=DEFAULT_MAX_DEPTH)
    parser.add_argument("--sitemap", action="store_true", help="include the crawl tree in the output")
    parser.add_argument("--no-store", action="store_true", help="do not persist the crawl")
    parser.add_argument("--config", default=None, help="path to config_crawl.json")
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    cfg = load_crawl_config(args.config)
    store = None if args.no_store else JsonCrawlStore(cfg.resolved_data_dir())

    try:
        request = CrawlRequest(
            start_url=args.start_url,
            max_pages=args.max_pages,
            max_depth=args.max_depth,
            include_sitemap=args.sitemap,
        )
    except ResearchError as e:
        print(f"[ERR] {e}", file=sys.stderr)
        return 2

    print(f"[crawler] start {request.start_url} pages={request.max_pages} depth={request.max_depth}")

    service = ResearchService(cfg, completer=completion_client_from_env(), store=store)
    try:
        outcome = service.run(request)
    finally:
        service.close()

    result = outcome.result
    print(f"[crawler] fetched pages={len(result.pages)} errors={len(result.errors)}")
    for p in result.pages:
        print(f" - [{p.http_status}] d={p.depth} {p.url} ({p.classification.type})")
    if result.errors:
        print("Errors:")
        for e in result.errors:
            print(f" - d={e.depth} {e.url} :: {e.error}")
    if outcome.crawl_id:
        print(f"[crawler] saved crawl_id={outcome.crawl_id}")

    print(json.dumps(outcome.outputs, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
