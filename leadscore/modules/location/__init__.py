"""Location resolution against DataForSEO gazetteer CSVs."""

from leadscore.modules.location.resolver import (
    DEFAULT_LOCATION_CODE,
    Gazetteer,
    GazetteerEntry,
    LocationMatch,
    LocationResolver,
    RegionRule,
    build_resolver,
    extract_terms,
    match_score,
    normalize_location,
)

__all__ = [
    "DEFAULT_LOCATION_CODE",
    "Gazetteer",
    "GazetteerEntry",
    "LocationMatch",
    "LocationResolver",
    "RegionRule",
    "build_resolver",
    "extract_terms",
    "match_score",
    "normalize_location",
]
