# robots.py: cached robots.txt policy per origin (User-agent: * / Disallow only)
from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit

from .errors import InvalidUrl
from .fetcher import FetchClient
from .models import RobotsPolicy
from .urls import origin

log = logging.getLogger(__name__)

ROBOTS_TTL_S = 6 * 60 * 60

_COMMENT_RE = re.compile(r"\s*#.*$")
_DIRECTIVE_RE = re.compile(r"^(user-agent|disallow|allow|crawl-delay|sitemap)\s*:\s*(.*)$", re.I)


def parse_disallows(robots_txt: str) -> List[str]:
    """
    Disallow prefixes of the `User-agent: *` group(s).

    Consecutive User-agent lines form one group. Allow, Crawl-delay, Sitemap,
    wildcards and other agents are ignored; an empty Disallow adds no rule.
    """
    disallows: List[str] = []
    in_all = False
    reading_agents = False

    for raw in (robots_txt or "").splitlines():
        line = _COMMENT_RE.sub("", raw).strip()
        if not line:
            continue
        m = _DIRECTIVE_RE.match(line)
        if not m:
            continue

        key = m.group(1).lower()
        val = m.group(2).strip()

        if key == "user-agent":
            agent = val.strip("\"'")
            if reading_agents:
                in_all = in_all or agent == "*"
            else:
                in_all = agent == "*"
            reading_agents = True
            continue

        reading_agents = False
        if key == "disallow" and in_all and val and val not in disallows:
            disallows.append(val)

    return disallows


class RobotsPolicyCache:
    """
    Read-mostly map origin -> RobotsPolicy with TTL invalidation.
    Safe to share between crawls.
    """

    def __init__(self,
                 fetcher: FetchClient,
                 ttl_s: float = ROBOTS_TTL_S,
                 timeout: float = 5.0,
                 clock: Callable[[], float] = time.time):
        self.fetcher = fetcher
        self.ttl_s = ttl_s
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._policies: Dict[str, RobotsPolicy] = {}

    def _cached(self, key: str) -> Optional[RobotsPolicy]:
        with self._lock:
            policy = self._policies.get(key)
        if policy and self._clock() - policy.fetched_at < self.ttl_s:
            return policy
        return None

    def _load(self, key: str) -> RobotsPolicy:
        res = self.fetcher.fetch(f"{key}/robots.txt", timeout=self.timeout)
        if res.ok:
            rules = parse_disallows(res.text)
        else:
            log.debug("[robots] %s/robots.txt unavailable (%s), allowing all", key, res.error)
            rules = []
        policy = RobotsPolicy(origin=key, disallowed_path_prefixes=tuple(rules), fetched_at=self._clock())
        with self._lock:
            self._policies[key] = policy
        return policy

    def policy_for(self, url: str) -> RobotsPolicy:
        key = origin(url)
        return self._cached(key) or self._load(key)

    def is_allowed(self, url: str, user_agent: str = "*") -> bool:
        # only the `*` group is honoured, so user_agent does not select rules
        try:
            policy = self.policy_for(url)
        except InvalidUrl:
            return True
        return policy.allows(urlsplit(url).path or "/")

    def clear(self) -> None:
        with self._lock:
            self._policies.clear()
