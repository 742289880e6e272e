# fetcher.py: timeout-bounded GET with redirect and content-type handling
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

import httpx
import requests

from .config import HttpSettings
from .utils import (
    ACCEPT_HTML,
    charset_from_content_type,
    is_html_content_type,
    to_unicode,
)

log = logging.getLogger(__name__)

REQUESTS_CHUNK_SIZE = 512


class FetchTimeout(Exception):
    """The whole request (including the body) did not finish before the deadline."""


@dataclass
class FetchResult:
    ok: bool
    status: int
    final_url: str
    content_type: str = ""
    body: Union[str, bytes] = b""
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def is_html(self) -> bool:
        return is_html_content_type(self.content_type)

    @property
    def text(self) -> str:
        if isinstance(self.body, str):
            return self.body
        return to_unicode(self.body, charset_from_content_type(self.content_type))


def _headers(ua: str) -> Dict[str, str]:
    return {
        "User-Agent": ua,
        "Accept": ACCEPT_HTML,
        "Accept-Language": "en-US,en;q=0.9",
    }


def _check_deadline(deadline: float, timeout: float) -> None:
    if time.perf_counter() > deadline:
        raise FetchTimeout(f"Timed out after {timeout}s")


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class FetchClient:
    """
    One client per crawl (or per service). Use as a context manager, or call close().

    `transport` is handed to httpx (tests pass an httpx.MockTransport).
    """

    def __init__(self,
                 settings: Optional[HttpSettings] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.settings = settings or HttpSettings()
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None
        self._session: Optional[requests.Session] = None

        if self.settings.engine == "requests":
            self._session = requests.Session()
            self._session.headers.update(_headers(self.settings.user_agent))
        else:
            client_kwargs = dict(
                http2=self.settings.http2,
                headers=_headers(self.settings.user_agent),
                follow_redirects=True,
                timeout=self.settings.timeout,
            )
            if transport is not None:
                client_kwargs["transport"] = transport
            elif self.settings.proxy:
                client_kwargs["transport"] = httpx.HTTPTransport(proxy=self.settings.proxy)
            self._client = httpx.Client(**client_kwargs)

    def __enter__(self) -> "FetchClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        if self._session is not None:
            self._session.close()

    # ------------------------------------------------------------------
    # engines
    # ------------------------------------------------------------------

    def _get_httpx(self, url: str, timeout: float):
        deadline = time.perf_counter() + timeout
        with self._client.stream("GET", url, timeout=timeout) as r:
            _check_deadline(deadline, timeout)
            chunks = []
            # no chunk size: every network read is checked, however small
            for chunk in r.iter_bytes():
                chunks.append(chunk)
                _check_deadline(deadline, timeout)
        return r.status_code, str(r.url), dict(r.headers), b"".join(chunks)

    def _get_requests(self, url: str, timeout: float):
        deadline = time.perf_counter() + timeout
        proxies = {"http": self.settings.proxy, "https": self.settings.proxy} if self.settings.proxy else None
        with self._session.get(url, timeout=timeout, allow_redirects=True,
                               stream=True, proxies=proxies) as r:
            _check_deadline(deadline, timeout)
            chunks = []
            # urllib3 blocks until a chunk fills, so keep it small
            for chunk in r.iter_content(REQUESTS_CHUNK_SIZE):
                chunks.append(chunk)
                _check_deadline(deadline, timeout)
            return r.status_code, r.url, {k.lower(): v for k, v in r.headers.items()}, b"".join(chunks)

    def _get(self, url: str, timeout: float):
        if self._session is not None:
            return self._get_requests(url, timeout)
        return self._get_httpx(url, timeout)

    # ------------------------------------------------------------------

    def fetch(self, url: str, timeout: Optional[float] = None) -> FetchResult:
        """
        GET `url`. Never raises for network conditions: failures come back
        with ok=False (status 0 for transport errors and timeouts).
        """
        timeout = float(timeout or self.settings.timeout)
        transport_errors = (httpx.HTTPError, httpx.InvalidURL, requests.RequestException)

        backoff = 0.5
        last_exc: Optional[BaseException] = None
        start = time.perf_counter()
        for attempt in range(self.settings.retries + 1):
            try:
                status, final_url, headers, content = self._get(url, timeout)
                last_exc = None
                break
            except FetchTimeout as e:
                # the deadline is spent, no retry
                last_exc = e
                break
            except transport_errors as e:
                last_exc = e
                log.debug("[fetch] %s attempt=%d failed: %s", url, attempt + 1, _error_message(e))
                if attempt < self.settings.retries:
                    self._sleep(backoff)
                    backoff = min(backoff * 2, 4.0)

        dur = int((time.perf_counter() - start) * 1000)

        if last_exc is not None:
            return FetchResult(ok=False, status=0, final_url=url, error=_error_message(last_exc),
                               duration_ms=dur)

        content_type = headers.get("content-type", "")
        if not 200 <= status < 300:
            return FetchResult(ok=False, status=status, final_url=final_url, content_type=content_type,
                               headers=headers, error=f"HTTP {status}", duration_ms=dur)

        body: Union[str, bytes] = content
        if is_html_content_type(content_type):
            body = to_unicode(content, charset_from_content_type(content_type))

        return FetchResult(ok=True, status=status, final_url=final_url, content_type=content_type,
                           body=body, headers=headers, duration_ms=dur)
