"""Competition link discovery on listing pages."""

from compscout.services.link_discovery import discover_links, is_excluded_link

BASE_URL = "https://agg.example/competitions"


def test_structured_listing_puts_external_links_first():
    items = [
        '<li><a href="/comp/1">Win a family trip to Paris</a></li>',
        '<li><a href="https://brand.example/enter">Win a new games console</a></li>',
        '<li><a href="/comp/2">Win a year of coffee</a></li>',
        '<li><a href="/login">Log in to your account</a></li>',
        '<li><a href="https://other.example/win">Win a garden makeover</a></li>',
        '<li><a href="/comp/3">Hi</a></li>',
    ]
    html = f"<ul>{''.join(items)}</ul>"

    links = discover_links(html, BASE_URL)

    assert [link.url for link in links] == [
        "https://brand.example/enter",
        "https://other.example/win",
        "https://agg.example/comp/1",
        "https://agg.example/comp/2",
    ]
    assert links[0].title == "Win a new games console"
    assert "<li>" in links[0].context


def test_keyword_fallback_when_no_listing_structure():
    html = """
    <p><a href="/comp/holiday">Win a holiday</a></p>
    <p><a href="https://brand.example/out/1">Click</a></p>
    <p><a href="/about-us">About us</a></p>
    <p><a href="/privacy">Prize draw privacy notice</a></p>
    """

    links = discover_links(html, BASE_URL)

    assert [link.url for link in links] == [
        "https://brand.example/out/1",
        "https://agg.example/comp/holiday",
    ]


def test_limit_caps_results():
    html = "".join(f'<p><a href="/comp/{i}">Win prize number {i}</a></p>' for i in range(10))

    assert len(discover_links(html, BASE_URL, limit=3)) == 3


def test_excluded_links():
    origin = "https://agg.example"
    assert is_excluded_link("https://agg.example/", origin)
    assert is_excluded_link("https://agg.example/members/42", origin)
    assert is_excluded_link("https://brand.example/terms", origin)
    assert not is_excluded_link("https://brand.example/", origin)
    assert not is_excluded_link("https://agg.example/comp/1", origin)
