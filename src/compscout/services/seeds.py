"""
Seed site configuration for the Scout.

The built-in list is used unless ``SCOUT_SEED_CONFIG_PATH`` points at a
JSON array of ``{"name", "url", "type"}`` objects.
"""

import json
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from compscout.core.logging import get_logger
from compscout.schemas.listing import SeedSite, SiteType

logger = get_logger(__name__)


DEFAULT_SEED_SITES: tuple[SeedSite, ...] = (
    # Aggregators
    SeedSite(name="Loquax", url="https://www.loquax.co.uk/", type=SiteType.AGGREGATOR),
    SeedSite(name="The Prize Finder", url="https://www.theprizefinder.com/", type=SiteType.AGGREGATOR),
    SeedSite(
        name="Competition Database",
        url="https://www.competitiondatabase.co.uk/",
        type=SiteType.AGGREGATOR,
    ),
    SeedSite(
        name="Magic Freebies Competitions",
        url="https://www.magicfreebies.co.uk/competitions/",
        type=SiteType.AGGREGATOR,
    ),
    # Brand pages
    SeedSite(name="Example Brand A", url="https://example.com/competitions", type=SiteType.BRAND),
    SeedSite(name="Example Brand B", url="https://brand-b.example.com/win", type=SiteType.BRAND),
    # Forums
    SeedSite(
        name="MSE Competitions Forum",
        url="https://forums.moneysavingexpert.com/categories/competitions",
        type=SiteType.FORUM,
    ),
    SeedSite(
        name="HotUKDeals Competitions",
        url="https://www.hotukdeals.com/tag/competition",
        type=SiteType.FORUM,
    ),
)


@dataclass(frozen=True)
class SeedConfig:
    """Loaded seed sites and a description of where they came from."""

    sites: tuple[SeedSite, ...]
    source: str


class SeedConfigError(ValueError):
    """Raised when a seed config file has no usable entries."""


def parse_seed_sites(content: str) -> list[SeedSite]:
    """
    Parse a JSON seed list, skipping invalid entries.

    Raises:
        SeedConfigError: If the content is not a JSON array, or holds
            entries but none of them are valid
    """
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise SeedConfigError(f"Seed config is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise SeedConfigError("Seed config must be a JSON array")

    sites: list[SeedSite] = []
    for index, entry in enumerate(parsed):
        try:
            sites.append(SeedSite.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid seed site", index=index, errors=e.error_count())

    if parsed and not sites:
        raise SeedConfigError("No valid seed sites found in seed config")
    return sites


def load_seed_config(config_path: str | None) -> SeedConfig:
    """
    Load the seed list, falling back to the built-in defaults on any problem.

    Args:
        config_path: Path to a JSON seed file, or None for the defaults

    Returns:
        SeedConfig with the sites and a human-readable source label
    """
    if not config_path:
        return SeedConfig(DEFAULT_SEED_SITES, "default (built-in)")

    path = Path(config_path).resolve()
    if not path.exists():
        logger.warning("Seed config file not found, using defaults", path=str(path))
        return SeedConfig(DEFAULT_SEED_SITES, f"default (built-in, file not found: {config_path})")

    try:
        sites = parse_seed_sites(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, SeedConfigError) as e:
        logger.error("Failed to load seed config, using defaults", path=str(path), error=str(e))
        return SeedConfig(DEFAULT_SEED_SITES, f"default (built-in, error loading {config_path})")

    logger.info("Seed config loaded", path=str(path), sites=len(sites))
    return SeedConfig(tuple(sites), f"file ({path}, loaded {len(sites)} sites)")
