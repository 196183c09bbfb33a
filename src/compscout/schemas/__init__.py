"""
Pydantic schemas for channel messages and operator endpoints.
"""

from compscout.schemas.enrichment import Enrichment, PartialEnrichment
from compscout.schemas.listing import (
    Competition,
    ConvertedListing,
    ExemptionType,
    RawListing,
    SeedSite,
    SiteType,
)

__all__ = [
    "Competition",
    "ConvertedListing",
    "Enrichment",
    "ExemptionType",
    "PartialEnrichment",
    "RawListing",
    "SeedSite",
    "SiteType",
]
