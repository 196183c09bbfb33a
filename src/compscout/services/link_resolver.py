"""
Resolve discovered links to the page that actually runs the competition.

Aggregators often link to their own detail or interstitial pages rather
than to the brand. The resolver follows HTTP redirects and, while the
final host is a known aggregator, fetches that page, picks its best
"enter" call-to-action and follows it. Resolution gives up (returns
None) on a repeated URL, when the depth limit is reached, or when an
aggregator page offers no call-to-action.
"""

import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from compscout.core.exceptions import FetchError
from compscout.core.logging import LoggerMixin
from compscout.schemas.listing import hostname_of
from compscout.services.http_fetcher import PageFetcher
from compscout.services.robots import RobotsRulesCache

# Entry call-to-action anchor texts
CTA_PHRASES = (
    "enter now",
    "enter here",
    "enter competition",
    "enter the competition",
    "enter giveaway",
    "enter prize draw",
    "enter the draw",
    "click here to enter",
    "go to competition",
    "visit competition",
    "visit site",
    "enter",
)
# Navigational anchors never followed
DENY_PHRASES = (
    "login",
    "log in",
    "sign in",
    "sign up",
    "register",
    "home",
    "privacy",
    "terms",
    "cookie",
    "cookies",
    "contact",
    "about us",
    "search",
    "next",
    "previous",
    "reply",
    "comments",
    "newsletter",
    "facebook",
    "twitter",
    "instagram",
)
OUTBOUND_PATH_MARKERS = ("/out", "/go/", "/visit", "/exit", "/redirect")


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


EXACT_MATCH_SCORE = 10
PARTIAL_MATCH_SCORE = 5
OUTBOUND_PATH_BONUS = 3
OFF_ORIGIN_BONUS = 1


@dataclass
class CallToAction:
    url: str
    text: str
    score: int


def score_call_to_action(text: str, url: str, page_url: str) -> int:
    """
    Score one anchor as an entry call-to-action; 0 means not a candidate.

    Exact phrase matches outrank partial ones. Outbound redirect paths
    and off-origin targets add a bonus.
    """
    normalized = " ".join(text.lower().split())
    if any(_contains_phrase(normalized, phrase) for phrase in DENY_PHRASES):
        return 0

    score = 0
    if normalized in CTA_PHRASES:
        score = EXACT_MATCH_SCORE
    elif any(_contains_phrase(normalized, phrase) for phrase in CTA_PHRASES):
        score = PARTIAL_MATCH_SCORE

    path = urlparse(url).path.lower()
    if any(marker in path for marker in OUTBOUND_PATH_MARKERS):
        score += OUTBOUND_PATH_BONUS
    if score == 0:
        return 0

    if urlparse(url).netloc.lower() != urlparse(page_url).netloc.lower():
        score += OFF_ORIGIN_BONUS
    return score


def find_best_call_to_action(html: str, page_url: str) -> CallToAction | None:
    """Return the highest scoring call-to-action; the first wins ties."""
    soup = BeautifulSoup(html, "html.parser")
    best: CallToAction | None = None

    for link in soup.find_all("a", href=True):
        href = str(link["href"]).strip()
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            continue
        url = urljoin(page_url, href)
        if urlparse(url).scheme not in ("http", "https"):
            continue

        text = link.get_text()
        score = score_call_to_action(text, url, page_url)
        if score and (best is None or score > best.score):
            best = CallToAction(url=url, text=" ".join(text.split()), score=score)

    return best


class LinkResolver(LoggerMixin):
    """Follows redirects and aggregator call-to-actions to a final URL."""

    def __init__(
        self,
        fetcher: PageFetcher,
        robots: RobotsRulesCache,
        *,
        aggregator_hosts: list[str] | set[str],
        max_depth: int = 5,
    ) -> None:
        self._fetcher = fetcher
        self._robots = robots
        self.aggregator_hosts = {h.lower().removeprefix("www.") for h in aggregator_hosts if h}
        self.max_depth = max_depth

    def is_aggregator(self, url: str) -> bool:
        host = hostname_of(url)
        if not host:
            return False
        return any(host == known or host.endswith("." + known) for known in self.aggregator_hosts)

    async def resolve(self, url: str) -> str | None:
        """
        Resolve ``url`` to its final non-aggregator destination.

        Returns:
            The destination URL, or None when the link is unresolved
        """
        visited: set[str] = set()
        current = url
        depth = 0

        while True:
            if current in visited:
                self.logger.info("Resolution cycle detected", url=url, repeated=current)
                return None
            visited.add(current)

            if not await self._robots.is_allowed(current):
                if depth == 0 and not self.is_aggregator(current):
                    return current
                self.logger.info("Resolution blocked by robots.txt", url=url, hop=current)
                return None

            try:
                page = await self._fetcher.fetch(current)
            except FetchError as e:
                if depth == 0 and not self.is_aggregator(current):
                    return current
                self.logger.info("Resolution fetch failed", url=url, hop=current, error=e.message)
                return None

            final_url = page.url
            if final_url != current:
                if final_url in visited:
                    self.logger.info("Resolution cycle detected", url=url, repeated=final_url)
                    return None
                visited.add(final_url)

            if not self.is_aggregator(final_url):
                return final_url

            if depth >= self.max_depth:
                self.logger.info("Resolution depth exceeded", url=url, depth=depth)
                return None

            cta = find_best_call_to_action(page.text, final_url)
            if cta is None:
                self.logger.info("No call-to-action on aggregator page", url=url, page=final_url)
                return None

            current = cta.url
            depth += 1
