"""
Scout service - crawls seed sites and publishes raw listings.

Brand pages are published whole as a single listing. Aggregator and
forum pages go through link discovery, and each discovered link is
resolved to its final destination before publishing. A failing page
or site is logged and skipped; a run never raises.
"""

import time
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup

from compscout.channels.base import MessageBroker
from compscout.core.config import Settings, get_settings
from compscout.core.exceptions import FetchError, PublishError
from compscout.core.logging import LoggerMixin
from compscout.core.timeutil import utc_now
from compscout.schemas.listing import RawListing, SeedSite, SiteType, hostname_of
from compscout.services.http_fetcher import PageFetcher
from compscout.services.link_discovery import discover_links
from compscout.services.link_resolver import LinkResolver
from compscout.services.robots import RobotsRulesCache
from compscout.services.seeds import SeedConfig, load_seed_config

BRAND_EXCERPT_CHARS = 50_000
ENTRY_EXCERPT_CHARS = 5_000


def page_url(seed_url: str, page: int) -> str:
    """URL of the given listing page; pages after the first add ``page=N``."""
    if page <= 1:
        return seed_url
    parsed = urlparse(seed_url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "page"]
    query.append(("page", str(page)))
    return urlunparse(parsed._replace(query=urlencode(query)))


def page_title(html: str) -> str | None:
    soup = BeautifulSoup(html, "html.parser")
    if soup.title and soup.title.string:
        title = " ".join(soup.title.string.split())
        return title or None
    return None


class Scout(LoggerMixin):
    """Crawls the configured seed sites and publishes RawListing messages."""

    def __init__(
        self,
        broker: MessageBroker,
        *,
        settings: Settings | None = None,
        seed_config: SeedConfig | None = None,
        fetcher: PageFetcher | None = None,
        robots: RobotsRulesCache | None = None,
        resolver: LinkResolver | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.broker = broker
        self.topic = self.settings.raw_listings_topic
        self.seed_config = seed_config or load_seed_config(self.settings.scout_seed_config_path)
        self.fetcher = fetcher or PageFetcher(settings=self.settings)
        self.robots = robots or RobotsRulesCache(
            self.fetcher,
            timeout_seconds=self.settings.crawler_robots_timeout,
        )

        aggregator_hosts = set(self.settings.aggregator_hosts)
        for site in self.sites:
            host = hostname_of(site.url)
            if site.type == SiteType.AGGREGATOR and host:
                aggregator_hosts.add(host)

        self.resolver = resolver or LinkResolver(
            self.fetcher,
            self.robots,
            aggregator_hosts=aggregator_hosts,
            max_depth=self.settings.crawler_max_resolve_depth,
        )

    @property
    def sites(self) -> tuple[SeedSite, ...]:
        return self.seed_config.sites

    async def run_crawl(self) -> int:
        """
        Crawl every seed site once.

        Returns:
            Number of raw listings published
        """
        started = time.monotonic()
        self.logger.info(
            "Crawl started",
            sites=len(self.sites),
            max_pages=self.settings.max_pages_per_site,
            seed_source=self.seed_config.source,
        )

        total = 0
        # Sites are crawled one after another
        for site in self.sites:
            total += await self.crawl_site(site)

        self.logger.info(
            "Crawl complete",
            published=total,
            sites=len(self.sites),
            duration=round(time.monotonic() - started, 2),
        )
        return total

    async def crawl_site(self, site: SeedSite) -> int:
        published = 0
        pages = self.settings.max_pages_per_site

        for page in range(1, pages + 1):
            url = page_url(site.url, page)
            log = self.logger.bind(site=site.name, site_type=site.type.value, page=page, url=url)
            try:
                count = await self._crawl_page(site, url)
            except FetchError as e:
                log.error("Page fetch failed", error=e.message)
                continue
            except PublishError as e:
                log.error("Publishing failed, skipping rest of page", error=e.message)
                continue
            except Exception as e:
                log.exception("Page crawl failed", error=str(e))
                continue
            published += count
            log.info("Page processed", published=count)

        return published

    async def _crawl_page(self, site: SeedSite, url: str) -> int:
        if not await self.robots.is_allowed(url):
            self.logger.warning("Page disallowed by robots.txt", site=site.name, url=url)
            return 0

        page = await self.fetcher.fetch(url)

        if site.type == SiteType.BRAND:
            await self._publish(
                RawListing(
                    source_url=url,
                    source_site=site.name,
                    site_type=site.type,
                    fetched_at=utc_now(),
                    html_excerpt=page.text[:BRAND_EXCERPT_CHARS],
                    title=page_title(page.text) or site.name,
                )
            )
            return 1

        entries = discover_links(page.text, page.url, limit=self.settings.crawler_max_links_per_page)
        self.logger.info("Links discovered", site=site.name, url=url, count=len(entries))

        published = 0
        for entry in entries:
            resolved = await self.resolver.resolve(entry.url)
            if resolved is None:
                self.logger.info("Link unresolved, dropping", site=site.name, link=entry.url)
                continue
            if resolved != entry.url:
                self.logger.debug("Link resolved", link=entry.url, resolved=resolved)

            await self._publish(
                RawListing(
                    source_url=resolved,
                    source_site=site.name,
                    site_type=site.type,
                    fetched_at=utc_now(),
                    html_excerpt=entry.context[:ENTRY_EXCERPT_CHARS],
                    title=entry.title,
                )
            )
            published += 1

        return published

    async def _publish(self, listing: RawListing) -> None:
        await self.broker.publish(self.topic, listing.to_message())

    async def close(self) -> None:
        await self.fetcher.close()
