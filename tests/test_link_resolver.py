"""Call-to-action scoring and link resolution through aggregators."""

import pytest

from compscout.services.link_resolver import LinkResolver, find_best_call_to_action, score_call_to_action
from compscout.services.robots import RobotsRulesCache
from helpers import html_response, redirect_response

PAGE = "https://agg.example/comp/1"


def make_resolver(fetcher, max_depth: int = 5) -> LinkResolver:
    return LinkResolver(
        fetcher,
        RobotsRulesCache(fetcher),
        aggregator_hosts=["agg.example"],
        max_depth=max_depth,
    )


def cta_page(href: str, text: str = "Enter now") -> str:
    return f'<a href="/">Home</a><p>Great prize</p><a href="{href}">{text}</a>'


class TestScoring:
    def test_exact_phrase_off_origin(self):
        assert score_call_to_action("Enter now", "https://brand.example/win", PAGE) == 11

    def test_partial_phrase_same_origin(self):
        assert score_call_to_action("Click to enter the draw", "https://agg.example/x", PAGE) == 5

    def test_outbound_path_bonus(self):
        assert score_call_to_action("Enter here", "https://agg.example/out/55", PAGE) == 13

    def test_outbound_path_alone_is_a_candidate(self):
        assert score_call_to_action("More", "https://agg.example/go/55", PAGE) == 3

    def test_deny_listed_text(self):
        assert score_call_to_action("Login to enter", "https://brand.example/win", PAGE) == 0

    def test_unrelated_text(self):
        assert score_call_to_action("Read the rules", "https://brand.example/rules", PAGE) == 0

    def test_word_boundaries(self):
        assert score_call_to_action("Entertainment news", "https://agg.example/news", PAGE) == 0

    def test_best_wins_and_first_wins_ties(self):
        html = """
        <a href="https://brand.example/a">Enter</a>
        <a href="https://brand.example/b">Enter</a>
        <a href="https://agg.example/terms">Terms</a>
        <a href="https://brand.example/c">Enter now</a>
        """
        cta = find_best_call_to_action(html, PAGE)
        assert cta is not None
        assert cta.url == "https://brand.example/a"

    def test_no_candidates(self):
        assert find_best_call_to_action('<a href="/">Home</a>', PAGE) is None


@pytest.mark.asyncio
async def test_non_aggregator_link_resolves_to_itself(make_fetcher):
    fetcher = make_fetcher({"https://brand.example/win": html_response("<h1>Win</h1>")})

    assert await make_resolver(fetcher).resolve("https://brand.example/win") == "https://brand.example/win"


@pytest.mark.asyncio
async def test_redirect_out_of_aggregator(make_fetcher):
    fetcher = make_fetcher(
        {
            "https://agg.example/out/1": redirect_response("https://brand.example/spain"),
            "https://brand.example/spain": html_response("<h1>Spain</h1>"),
        }
    )

    assert await make_resolver(fetcher).resolve("https://agg.example/out/1") == "https://brand.example/spain"


@pytest.mark.asyncio
async def test_follows_call_to_action(make_fetcher):
    fetcher = make_fetcher(
        {
            PAGE: html_response(cta_page("https://brand.example/spain")),
            "https://brand.example/spain": html_response("<h1>Spain</h1>"),
        }
    )

    assert await make_resolver(fetcher).resolve(PAGE) == "https://brand.example/spain"


@pytest.mark.asyncio
async def test_cycle_is_unresolved(make_fetcher):
    calls: list[str] = []
    fetcher = make_fetcher(
        {
            "https://agg.example/a": html_response(cta_page("https://agg.example/b")),
            "https://agg.example/b": html_response(cta_page("https://agg.example/a")),
        },
        calls,
    )

    assert await make_resolver(fetcher).resolve("https://agg.example/a") is None
    assert calls.count("https://agg.example/a") == 1
    assert calls.count("https://agg.example/b") == 1


@pytest.mark.asyncio
async def test_depth_limit(make_fetcher):
    routes = {
        f"https://agg.example/hop/{n}": html_response(cta_page(f"https://agg.example/hop/{n + 1}"))
        for n in range(10)
    }
    calls: list[str] = []
    fetcher = make_fetcher(routes, calls)

    assert await make_resolver(fetcher, max_depth=2).resolve("https://agg.example/hop/0") is None
    assert [c for c in calls if "/hop/" in c] == [
        "https://agg.example/hop/0",
        "https://agg.example/hop/1",
        "https://agg.example/hop/2",
    ]


@pytest.mark.asyncio
async def test_aggregator_page_without_call_to_action(make_fetcher):
    fetcher = make_fetcher({PAGE: html_response('<a href="/">Home</a>')})

    assert await make_resolver(fetcher).resolve(PAGE) is None


@pytest.mark.asyncio
async def test_robots_block_on_aggregator_hop(make_fetcher):
    fetcher = make_fetcher(
        {
            "https://agg.example/robots.txt": html_response("User-agent: *\nDisallow: /comp/"),
            PAGE: html_response(cta_page("https://brand.example/spain")),
        }
    )

    assert await make_resolver(fetcher).resolve(PAGE) is None


@pytest.mark.asyncio
async def test_unreachable_brand_link_kept(make_fetcher):
    fetcher = make_fetcher({"https://brand.example/win": html_response("down", 503)})

    assert await make_resolver(fetcher).resolve("https://brand.example/win") == "https://brand.example/win"


def test_aggregator_subdomains():
    resolver = LinkResolver(None, None, aggregator_hosts=["www.agg.example"])
    assert resolver.is_aggregator("https://agg.example/x")
    assert resolver.is_aggregator("https://m.agg.example/x")
    assert not resolver.is_aggregator("https://notagg.example/x")
