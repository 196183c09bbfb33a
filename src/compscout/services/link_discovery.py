"""
Competition link discovery for aggregator and forum pages.

Structured pass: the first container selector with at least five
link-bearing matches is treated as the listing, one entry per element.
Fallback pass: every anchor whose text looks like a competition, or
that leaves the site with an enter/out/exit signal.
"""

from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

ENTRY_SELECTORS = (
    "li",
    "article",
    "tr",
    ".competition",
    ".listing",
    ".thread",
    ".post",
    ".item",
)
MIN_STRUCTURED_ENTRIES = 5
MAX_LINKS_PER_PAGE = 40

COMPETITION_KEYWORDS = ("win", "competition", "prize", "giveaway", "draw")
EXCLUDED_HREF_MARKERS = ("login", "register", "terms", "privacy", "cookies")
EXCLUDED_INTERNAL_PATHS = ("/", "/index.php", "/forum.php")
EXCLUDED_INTERNAL_PREFIXES = ("/members/", "/search/", "/style/")


@dataclass
class DiscoveredLink:
    """A candidate competition link found on a listing page."""

    url: str
    title: str
    context: str


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc.lower()}"


def _clean_text(text: str) -> str:
    return " ".join(text.split())


def _absolute_http_url(href: str, base_url: str) -> str | None:
    try:
        absolute = urljoin(base_url, href.strip())
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return absolute


def is_excluded_link(url: str, base_origin: str) -> bool:
    """Login, legal and internal navigation links are never listings."""
    lower = url.lower()
    if any(marker in lower for marker in EXCLUDED_HREF_MARKERS):
        return True

    if _origin(url) == base_origin:
        path = urlparse(url).path or "/"
        if path in EXCLUDED_INTERNAL_PATHS:
            return True
        if path.startswith(EXCLUDED_INTERNAL_PREFIXES):
            return True
    return False


def _structured_entries(soup: BeautifulSoup, base_url: str, base_origin: str) -> list[DiscoveredLink] | None:
    for selector in ENTRY_SELECTORS:
        elements = [el for el in soup.select(selector) if el.find("a") is not None]
        if len(elements) < MIN_STRUCTURED_ENTRIES:
            continue

        results: list[DiscoveredLink] = []
        seen: set[str] = set()
        for el in elements:
            link = el.find("a")
            href = link.get("href") if isinstance(link, Tag) else None
            if not href:
                continue
            url = _absolute_http_url(str(href), base_url)
            if url is None or url in seen or is_excluded_link(url, base_origin):
                continue

            title = _clean_text(link.get_text()) or _clean_text(el.get_text())[:50]
            if len(title) < 5:
                continue

            results.append(DiscoveredLink(url=url, title=title, context=str(el)))
            seen.add(url)
        return results

    return None


def _keyword_entries(soup: BeautifulSoup, base_url: str, base_origin: str) -> list[DiscoveredLink]:
    results: list[DiscoveredLink] = []
    seen: set[str] = set()

    for link in soup.find_all("a", href=True):
        url = _absolute_http_url(str(link["href"]), base_url)
        if url is None or url in seen or is_excluded_link(url, base_origin):
            continue

        text = _clean_text(link.get_text())
        lower_text = text.lower()
        is_external = _origin(url) != base_origin
        is_out_link = "enter" in lower_text or "/out" in url or "/exit" in url

        if any(k in lower_text for k in COMPETITION_KEYWORDS) or (is_external and is_out_link):
            parent = link.parent if isinstance(link.parent, Tag) else link
            results.append(DiscoveredLink(url=url, title=text, context=str(parent)))
            seen.add(url)

    return results


def discover_links(html: str, base_url: str, *, limit: int = MAX_LINKS_PER_PAGE) -> list[DiscoveredLink]:
    """
    Extract candidate competition links from a listing page.

    Args:
        html: Page HTML
        base_url: URL the page was fetched from, for resolving relative links
        limit: Maximum number of links returned

    Returns:
        Links with titles longer than three characters, external links
        first (order otherwise preserved), capped at ``limit``
    """
    soup = BeautifulSoup(html, "html.parser")
    base_origin = _origin(base_url)

    entries = _structured_entries(soup, base_url, base_origin)
    if entries is None:
        entries = _keyword_entries(soup, base_url, base_origin)

    entries = [entry for entry in entries if len(entry.title) > 3]
    entries.sort(key=lambda entry: _origin(entry.url) == base_origin)
    return entries[:limit]
