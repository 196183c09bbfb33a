"""
Deterministic listing features used by the Converter.

These run without any external service and also provide the fallback
summary when the generative text call fails.
"""

import re

from bs4 import BeautifulSoup

PRIZE_SUMMARY_MAX_CHARS = 120
PRIZE_SUMMARY_MIN_CHARS = 5
DEFAULT_PRIZE_SUMMARY = "Prize details to be confirmed"
DEFAULT_CURATED_SUMMARY = "A competition worth a look. Click through for full details."

ENTRY_TIME_SOCIAL = "2–3 minutes"
ENTRY_TIME_SIMPLE = "30–60 seconds"
ENTRY_TIME_DEFAULT = "1–2 minutes"

SOCIAL_SIGNALS = (
    "follow us",
    "follow @",
    "retweet",
    "share this",
    "tag a friend",
    "tag someone",
    "instagram",
    "facebook share",
    "twitter",
)
SIMPLE_FORM_SIGNALS = (
    'type="email"',
    'name="email"',
    'type="text"',
    'name="name"',
    'name="firstname"',
    'name="first_name"',
)

# (keywords, score); the highest matching score wins
HYPE_RULES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("holiday", "cruise", "flight", "vacation", "safari", "travel"), 9),
    (("macbook", "iphone", "ps5", "playstation", "xbox", "gaming laptop", "ipad"), 9),
    (("car", "vehicle", "van", "motorbike", "tesla", "bmw"), 8),
    (("£10,000", "£5,000", "£2,000", "£1,500", "£1,000", "cash prize"), 10),
    (("£500", "£750", "£800", "amazon voucher", "gift card"), 8),
    (("spa", "experience", "event ticket", "concert", "festival"), 7),
    (("kitchen", "appliance", "dyson", "hoover", "vacuum", "coffee machine"), 6),
    (("book", "subscription", "hamper", "beauty", "skincare"), 5),
    (("sample", "trial", "freebie", "goodie bag"), 4),
    (("t-shirt", "cap", "mug", "keyring", "badge", "sticker"), 3),
)
DEFAULT_HYPE_SCORE = 5
MIN_HYPE_SCORE = 1
MAX_HYPE_SCORE = 10

_SKILL_QUESTION_PATTERN = re.compile(r"skill|question|answer|tie.?break", re.IGNORECASE)
_KEYWORD_PATTERNS = {
    keyword: re.compile(rf"(?<!\w){re.escape(keyword)}(?:s|es)?(?!\w)")
    for keywords, _ in HYPE_RULES
    for keyword in keywords
}

_EFFORT_LINES = {
    ENTRY_TIME_SIMPLE: "Entry is lightning-fast: just fill in a couple of details and you're done.",
    ENTRY_TIME_SOCIAL: "Entry involves a few extra steps such as following on social media, but it shouldn't take long.",
    ENTRY_TIME_DEFAULT: "It takes only a minute or two to complete your entry.",
}


def _clean(text: str) -> str:
    return " ".join(text.split())


def infer_prize_summary(html: str, title: str) -> str:
    """
    Pick a short prize description from the page.

    Candidates are the first h1, the first h2 and the title, in that
    order of preference. Among those of 5 to 120 characters the shortest
    wins, earlier candidates winning ties.
    """
    soup = BeautifulSoup(html, "html.parser")
    candidates: list[str] = []
    for tag in ("h1", "h2"):
        element = soup.find(tag)
        if element is not None:
            candidates.append(_clean(element.get_text()))
    candidates.append(_clean(title))
    candidates = [c for c in candidates if len(c) >= PRIZE_SUMMARY_MIN_CHARS]

    if not candidates:
        return DEFAULT_PRIZE_SUMMARY

    short = [c for c in candidates if len(c) <= PRIZE_SUMMARY_MAX_CHARS]
    if short:
        return min(short, key=len)
    return candidates[0][:PRIZE_SUMMARY_MAX_CHARS]


def estimate_entry_time(html: str) -> str:
    """Estimate entry effort from social and form-field signals in the page."""
    lower = html.lower()
    if any(signal in lower for signal in SOCIAL_SIGNALS):
        return ENTRY_TIME_SOCIAL
    if any(signal in lower for signal in SIMPLE_FORM_SIGNALS):
        return ENTRY_TIME_SIMPLE
    # A bare form asking for an email address
    if "<form" in lower and "email" in lower:
        return ENTRY_TIME_SIMPLE
    return ENTRY_TIME_DEFAULT


def score_hype(title: str, prize_summary: str) -> int:
    """Score 1-10 from prize keywords in the title and prize summary."""
    haystack = f"{title} {prize_summary}".lower()
    best: int | None = None
    for keywords, score in HYPE_RULES:
        if any(_KEYWORD_PATTERNS[kw].search(haystack) for kw in keywords):
            best = score if best is None else max(best, score)
    return clamp_hype(DEFAULT_HYPE_SCORE if best is None else best)


def clamp_hype(score: float) -> int:
    return int(max(MIN_HYPE_SCORE, min(MAX_HYPE_SCORE, round(score))))


def has_skill_question(html: str) -> bool:
    return _SKILL_QUESTION_PATTERN.search(html) is not None


def build_template_summary(
    title: str,
    source_site: str,
    prize_summary: str,
    entry_time: str,
    hype_score: int,
) -> str:
    """Deterministic curated summary used when no generated text is available."""
    prize = prize_summary.rstrip(".")
    intros = (
        f"Up for grabs from {source_site} is {prize}.",
        f"{source_site} is running a competition where you could win {prize}.",
        f"This giveaway from {source_site} features {prize} as the top prize.",
    )
    intro = intros[len(title) % len(intros)]
    effort = _EFFORT_LINES.get(entry_time, "Entry is quick and straightforward.")

    if hype_score >= 8:
        hype = "This one is well worth entering: high prize value and a solid chance for dedicated deal hunters."
    elif hype_score >= 6:
        hype = "A decent competition with a worthwhile prize. Add it to your entry list today."
    else:
        hype = "A nice little freebie with low effort, something to add to your daily entries."

    return f"{intro} {effort} {hype}"


def cap_summary(text: str, max_chars: int) -> str:
    """Trim, default when empty, and truncate with an ellipsis past ``max_chars``."""
    trimmed = text.strip()
    if not trimmed:
        return DEFAULT_CURATED_SUMMARY
    if len(trimmed) <= max_chars:
        return trimmed
    return trimmed[: max_chars - 1] + "…"
