"""Scout crawl runs against faked sites."""

import json

import pytest

from compscout.schemas.listing import SeedSite, SiteType
from compscout.services.scout import Scout, page_title, page_url
from compscout.services.seeds import SeedConfig
from helpers import html_response

BRAND = SeedSite(name="Brand Co", url="https://brand.example/win", type=SiteType.BRAND)
AGGREGATOR = SeedSite(name="Agg", url="https://agg.example/", type=SiteType.AGGREGATOR)

AGGREGATOR_HTML = """
<p><a href="https://agg.example/comp/1">Win a holiday to Spain</a></p>
<p><a href="https://agg.example/comp/2">Win a branded mug</a></p>
"""


def make_scout(broker, settings, fetcher, *sites: SeedSite) -> Scout:
    return Scout(
        broker,
        settings=settings,
        seed_config=SeedConfig(tuple(sites), "test"),
        fetcher=fetcher,
    )


def published(broker, settings) -> list[dict]:
    return [json.loads(body) for body in broker.published[settings.raw_listings_topic]]


def test_page_url():
    assert page_url("https://agg.example/list", 1) == "https://agg.example/list"
    assert page_url("https://agg.example/list?sort=new", 3) == "https://agg.example/list?sort=new&page=3"


def test_page_title():
    assert page_title("<html><head><title>  Win   big </title></head></html>") == "Win big"
    assert page_title("<p>no title</p>") is None


@pytest.mark.asyncio
async def test_brand_page_published_whole(broker, settings, make_fetcher):
    html = "<html><head><title>Win a holiday to Spain</title></head><body><form>email</form></body></html>"
    fetcher = make_fetcher({BRAND.url: html_response(html)})
    scout = make_scout(broker, settings, fetcher, BRAND)

    assert await scout.run_crawl() == 1

    [listing] = published(broker, settings)
    assert listing["sourceUrl"] == BRAND.url
    assert listing["sourceSite"] == "Brand Co"
    assert listing["siteType"] == "brand"
    assert listing["title"] == "Win a holiday to Spain"
    assert listing["htmlExcerpt"] == html
    assert listing["fetchedAt"]


@pytest.mark.asyncio
async def test_aggregator_links_resolved_and_unresolved_dropped(broker, settings, make_fetcher):
    fetcher = make_fetcher(
        {
            AGGREGATOR.url: html_response(AGGREGATOR_HTML),
            "https://agg.example/comp/1": html_response('<a href="https://brand.example/spain">Enter now</a>'),
            "https://agg.example/comp/2": html_response("<p>Closed</p>"),
            "https://brand.example/spain": html_response("<h1>Spain</h1>"),
        }
    )
    scout = make_scout(broker, settings, fetcher, AGGREGATOR)

    assert await scout.run_crawl() == 1

    [listing] = published(broker, settings)
    assert listing["sourceUrl"] == "https://brand.example/spain"
    assert listing["sourceSite"] == "Agg"
    assert listing["siteType"] == "aggregator"
    assert listing["title"] == "Win a holiday to Spain"


@pytest.mark.asyncio
async def test_failing_site_does_not_stop_run(broker, settings, make_fetcher):
    fetcher = make_fetcher(
        {
            AGGREGATOR.url: html_response("unavailable", 500),
            BRAND.url: html_response("<title>Brand</title>"),
        }
    )
    scout = make_scout(broker, settings, fetcher, AGGREGATOR, BRAND)

    assert await scout.run_crawl() == 1
    assert [item["sourceUrl"] for item in published(broker, settings)] == [BRAND.url]


@pytest.mark.asyncio
async def test_robots_disallowed_page_skipped(broker, settings, make_fetcher):
    calls: list[str] = []
    fetcher = make_fetcher(
        {
            "https://brand.example/robots.txt": html_response("User-agent: *\nDisallow: /win"),
            BRAND.url: html_response("<title>Brand</title>"),
        },
        calls,
    )
    scout = make_scout(broker, settings, fetcher, BRAND)

    assert await scout.run_crawl() == 0
    assert BRAND.url not in calls


def test_aggregator_seed_hosts_are_aggregators(broker, settings, make_fetcher):
    site = SeedSite(name="Other", url="https://www.compsite.example/", type=SiteType.AGGREGATOR)
    scout = make_scout(broker, settings, make_fetcher({}), site)

    assert scout.resolver.is_aggregator("https://compsite.example/comp/9")
    assert scout.resolver.is_aggregator("https://agg.example/comp/9")
