"""
robots.txt rules cache for the Scout.

Rules are loaded once per origin for the lifetime of the cache, which
is owned by a single Scout instance. Only the ``User-agent: *`` group
is honoured and rules are plain path prefixes compared lower-cased.
"""

import asyncio
import re
from urllib.parse import urlparse

from compscout.core.exceptions import FetchError
from compscout.core.logging import LoggerMixin
from compscout.services.http_fetcher import PageFetcher

BLOCK_ALL = ["/"]

_USER_AGENT_LINE = re.compile(r"^user-agent:\s*(.*)$", re.IGNORECASE)
_DISALLOW_LINE = re.compile(r"^disallow:\s*(.*)$", re.IGNORECASE)


def parse_disallow_rules(robots_txt: str) -> list[str]:
    """
    Return the lower-cased Disallow prefixes of the ``User-agent: *`` group.

    Empty Disallow values allow everything and are skipped.
    """
    disallowed: list[str] = []
    in_star_group = False

    for raw_line in robots_txt.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        agent = _USER_AGENT_LINE.match(line)
        if agent:
            in_star_group = agent.group(1).strip() == "*"
            continue
        if not in_star_group:
            continue
        rule = _DISALLOW_LINE.match(line)
        if rule and rule.group(1).strip():
            disallowed.append(rule.group(1).strip().lower())

    return disallowed


class RobotsRulesCache(LoggerMixin):
    """
    Caches robots.txt disallow rules per origin.

    - 404: no restrictions
    - any other failure: everything blocked
    """

    def __init__(self, fetcher: PageFetcher, *, timeout_seconds: float = 8.0) -> None:
        self._fetcher = fetcher
        self._timeout_seconds = timeout_seconds
        self._cache: dict[str, list[str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def is_allowed(self, url: str) -> bool:
        """Return whether ``url`` may be crawled."""
        rules = await self.rules_for(url)
        path = (urlparse(url).path or "/").lower()
        return not any(path.startswith(rule) for rule in rules)

    async def rules_for(self, url: str) -> list[str]:
        origin = self._origin(url)
        cached = self._cache.get(origin)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            if origin not in self._cache:
                self._cache[origin] = await self._load(origin)
        return self._cache[origin]

    async def _load(self, origin: str) -> list[str]:
        robots_url = f"{origin}/robots.txt"
        try:
            page = await self._fetcher.fetch(robots_url, timeout=self._timeout_seconds)
        except FetchError as e:
            if e.status == 404:
                self.logger.info("robots.txt not found, no restrictions", origin=origin)
                return []
            self.logger.warning(
                "robots.txt unavailable, blocking origin",
                origin=origin,
                reason=e.details.get("reason"),
            )
            return list(BLOCK_ALL)

        rules = parse_disallow_rules(page.text)
        self.logger.info(
            "robots.txt loaded",
            origin=origin,
            rule_count=len(rules),
            sample=rules[:5],
        )
        return rules

    @staticmethod
    def _origin(url: str) -> str:
        parsed = urlparse(url)
        scheme = parsed.scheme or "https"
        return f"{scheme}://{parsed.netloc.lower()}"
