"""Fuzzy resolution of free-text locations to DataForSEO location codes.

Locations are matched against CSV gazetteers by tokenizing both sides into
terms and scoring term overlap, with bonuses for well-known city/state pairs.
An in-scope region (Missouri by default) is searched in its own, more
detailed gazetteer first.
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_CODE = 1016367  # Chicago, Illinois, United States
DEFAULT_LOCATION_NAME = "Chicago,Illinois,United States"
EXACT_MATCH_SCORE = 100

STOP_WORDS = frozenset({"united", "states", "us", "county", "city", "state", "region", "dma"})

US_STATES = {
    "al": "alabama", "ak": "alaska", "az": "arizona", "ar": "arkansas",
    "ca": "california", "co": "colorado", "ct": "connecticut", "de": "delaware",
    "dc": "district of columbia", "fl": "florida", "ga": "georgia", "hi": "hawaii",
    "id": "idaho", "il": "illinois", "in": "indiana", "ia": "iowa",
    "ks": "kansas", "ky": "kentucky", "la": "louisiana", "me": "maine",
    "md": "maryland", "ma": "massachusetts", "mi": "michigan", "mn": "minnesota",
    "ms": "mississippi", "mo": "missouri", "mt": "montana", "ne": "nebraska",
    "nv": "nevada", "nh": "new hampshire", "nj": "new jersey", "nm": "new mexico",
    "ny": "new york", "nc": "north carolina", "nd": "north dakota", "oh": "ohio",
    "ok": "oklahoma", "or": "oregon", "pa": "pennsylvania", "ri": "rhode island",
    "sc": "south carolina", "sd": "south dakota", "tn": "tennessee", "tx": "texas",
    "ut": "utah", "vt": "vermont", "va": "virginia", "wa": "washington",
    "wv": "west virginia", "wi": "wisconsin", "wy": "wyoming",
}
_STATE_BY_NAME = {name: abbr for abbr, name in US_STATES.items()}

# city -> expected state abbreviation
MAJOR_CITIES = {
    "dallas": "tx",
    "houston": "tx",
    "austin": "tx",
    "san antonio": "tx",
    "chicago": "il",
    "new york": "ny",
    "los angeles": "ca",
    "san francisco": "ca",
    "san diego": "ca",
    "miami": "fl",
    "atlanta": "ga",
    "phoenix": "az",
    "seattle": "wa",
    "denver": "co",
    "boston": "ma",
    "detroit": "mi",
    "philadelphia": "pa",
    "washington": "dc",
}

_SPLIT_RE = re.compile(r"[,\s]+")
_NON_WORD_RE = re.compile(r"[^\w]")
_ZIP_RE = re.compile(r"^\d{5}(?:-\d{4})?$")


def normalize_location(text: str) -> str:
    """Lowercase, drop quotes, and tighten whitespace around commas."""
    text = text.replace('"', "").strip().lower()
    text = re.sub(r"\s*,\s*", ",", text)
    return re.sub(r"\s+", " ", text)


def extract_terms(text: str) -> list[str]:
    """Split a location into unique, meaningful lowercase terms.

    Examples:
        >>> extract_terms("St. Louis, MO, United States")
        ['st', 'louis', 'mo']
    """
    terms: list[str] = []
    for raw in _SPLIT_RE.split(text.lower()):
        term = _NON_WORD_RE.sub("", raw)
        if len(term) > 1 and term not in STOP_WORDS and term not in terms:
            terms.append(term)
    return terms


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![a-z]){re.escape(phrase)}(?![a-z])", text) is not None


def state_mentions(text: str, terms: Iterable[str]) -> set[str]:
    """State abbreviations mentioned in *text* by abbreviation or full name."""
    term_set = set(terms)
    found = {abbr for abbr in US_STATES if abbr in term_set}
    for name, abbr in _STATE_BY_NAME.items():
        if _contains_phrase(text, name):
            found.add(abbr)
    return found


def _major_city(normalized_input: str, input_terms: list[str]) -> Optional[str]:
    """Major-city key for the input: its first term, or a multi-word city it starts with."""
    if not input_terms:
        return None
    if input_terms[0] in MAJOR_CITIES:
        return input_terms[0]
    for city in MAJOR_CITIES:
        if " " in city and normalized_input.startswith(city):
            return city
    return None


# ---------------------------------------------------------------------------
# Gazetteer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GazetteerEntry:
    code: int
    name: str
    normalized: str
    terms: tuple[str, ...]
    states: frozenset[str]

    @property
    def city(self) -> str:
        return self.normalized.split(",", 1)[0]

    @classmethod
    def build(cls, code: int, name: str) -> "GazetteerEntry":
        normalized = normalize_location(name)
        terms = extract_terms(normalized)
        return cls(
            code=code,
            name=name.replace('"', "").strip(),
            normalized=normalized,
            terms=tuple(terms),
            states=frozenset(state_mentions(normalized, terms)),
        )


class Gazetteer:
    """In-memory location table loaded from a CSV export.

    Two layouts are understood: the DataForSEO export
    (``location_code,location_name,...``) and the split layout
    (``location_code,city,state,country,...``).  Row order is preserved.
    """

    def __init__(self, entries: Iterable[GazetteerEntry], source: str = "<memory>"):
        self._entries = list(entries)
        self._source = source
        self._by_normalized: dict[str, GazetteerEntry] = {}
        for entry in self._entries:
            self._by_normalized.setdefault(entry.normalized, entry)

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[int, str]], source: str = "<memory>") -> "Gazetteer":
        return cls((GazetteerEntry.build(code, name) for code, name in rows), source=source)

    @classmethod
    def from_csv(cls, path: str | Path) -> "Gazetteer":
        """Load a gazetteer CSV; rows without a numeric code are skipped."""
        path = Path(path)
        entries: list[GazetteerEntry] = []
        skipped = 0
        with path.open("r", encoding="utf-8", newline="") as fh:
            reader = csv.DictReader(fh)
            fieldnames = set(reader.fieldnames or [])
            split_layout = {"city", "state"}.issubset(fieldnames)
            for row in reader:
                code_text = (row.get("location_code") or "").strip()
                if not code_text.isdigit():
                    skipped += 1
                    continue
                if split_layout:
                    parts = [row.get("city") or "", row.get("state") or "", row.get("country") or ""]
                    name = ",".join(p.strip() for p in parts if p and p.strip())
                else:
                    name = (row.get("location_name") or "").strip()
                if not name:
                    skipped += 1
                    continue
                entries.append(GazetteerEntry.build(int(code_text), name))
        logger.info("Loaded %d gazetteer rows from %s (%d skipped)", len(entries), path, skipped)
        return cls(entries, source=str(path))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def source(self) -> str:
        return self._source

    def exact(self, normalized_name: str) -> Optional[GazetteerEntry]:
        return self._by_normalized.get(normalized_name)

    def find_city(self, city: str) -> Optional[GazetteerEntry]:
        """First entry whose city component equals *city* (normalized)."""
        city = normalize_location(city)
        for entry in self._entries:
            if entry.city == city:
                return entry
        return None


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def match_score(normalized_input: str, input_terms: list[str], entry: GazetteerEntry) -> int:
    """Score how well *entry* matches the input.

    An exact normalized name match scores 100.  Partial matches are built
    from term overlap and bonuses and are capped at 99.
    """
    if entry.normalized == normalized_input:
        return EXACT_MATCH_SCORE
    if not input_terms:
        return 0

    score = 0
    for input_term in input_terms:
        for entry_term in entry.terms:
            if input_term == entry_term:
                score += 20
            elif input_term in entry_term or entry_term in input_term:
                score += 10

    if input_terms[0] in entry.terms or _contains_phrase(entry.normalized, input_terms[0]):
        score += 15

    city = _major_city(normalized_input, input_terms)
    if city is not None:
        if MAJOR_CITIES[city] in entry.states:
            score += 25
        else:
            score -= 15

    for state in state_mentions(normalized_input, input_terms):
        if state in entry.states:
            score += 5

    if len(entry.terms) > len(input_terms) + 2:
        score -= 5

    return max(0, min(EXACT_MATCH_SCORE - 1, score))


@dataclass(frozen=True)
class LocationMatch:
    code: int
    name: str
    score: int
    source: str

    @property
    def is_fallback(self) -> bool:
        return self.source == "default"


def best_match(text: str, gazetteer: Gazetteer) -> Optional[LocationMatch]:
    """Highest-scoring entry of *gazetteer*; ties go to the earliest row."""
    normalized = normalize_location(text)
    exact = gazetteer.exact(normalized)
    if exact is not None:
        return LocationMatch(exact.code, exact.name, EXACT_MATCH_SCORE, gazetteer.source)

    terms = extract_terms(normalized)
    best: Optional[GazetteerEntry] = None
    best_score = 0
    for entry in gazetteer:
        score = match_score(normalized, terms, entry)
        if score > best_score:
            best, best_score = entry, score
    if best is None:
        return None
    return LocationMatch(best.code, best.name, best_score, gazetteer.source)


# ---------------------------------------------------------------------------
# Region rules
# ---------------------------------------------------------------------------

@dataclass
class RegionRule:
    """An in-scope region with its own gazetteer and fallback code.

    Input is considered inside the region when it mentions the region name
    or one of its abbreviations as a term, is a ZIP inside ``zip_range``,
    or names a city listed in the region gazetteer.
    """

    name: str
    gazetteer: Gazetteer
    fallback_code: int
    fallback_name: str
    abbreviations: tuple[str, ...] = ()
    zip_range: Optional[tuple[int, int]] = None
    cities: set[str] = field(default_factory=set, repr=False)

    def __post_init__(self) -> None:
        if not self.cities:
            self.cities = {entry.city for entry in self.gazetteer}

    def is_zip(self, text: str) -> bool:
        if self.zip_range is None or not _ZIP_RE.match(text.strip()):
            return False
        low, high = self.zip_range
        return low <= int(text.strip()[:5]) <= high

    def matches(self, text: str) -> bool:
        normalized = normalize_location(text)
        terms = extract_terms(normalized)
        if self.is_zip(text):
            return True
        if _contains_phrase(normalized, self.name.lower()):
            return True
        if any(abbr in terms for abbr in self.abbreviations):
            return True
        return normalized in self.cities


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class LocationResolver:
    """Resolve free text to a location code; never raises for string input.

    Usage::

        resolver = LocationResolver(Gazetteer.from_csv("data/locations_us.csv"))
        resolver.resolve_location_code("Dallas, TX")
    """

    def __init__(
        self,
        gazetteer: Gazetteer,
        region: Optional[RegionRule] = None,
        default_code: int = DEFAULT_LOCATION_CODE,
        default_name: str = DEFAULT_LOCATION_NAME,
    ):
        self._gazetteer = gazetteer
        self._region = region
        self._default = LocationMatch(default_code, default_name, 0, "default")

    def resolve(self, text: str) -> LocationMatch:
        """Resolve *text*.

        Args:
            text: Free-text location, e.g. ``"St. Louis, MO"`` or ``"63041"``.

        Returns:
            The best LocationMatch, or the default/regional fallback.

        Raises:
            TypeError: If *text* is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"location must be a string, got {type(text).__name__}")
        if not text.strip():
            logger.debug("Empty location; using default %s", self._default.code)
            return self._default

        region = self._region
        if region is not None and region.matches(text):
            match = self._resolve_in_region(text, region)
        else:
            match = best_match(text, self._gazetteer) or self._default

        logger.debug("Resolved location %r -> %s (%s, score=%d)", text, match.code, match.name, match.score)
        return match

    def _resolve_in_region(self, text: str, region: RegionRule) -> LocationMatch:
        if region.is_zip(text):
            entry = region.gazetteer.find_city(text.strip()[:5])
            if entry is not None:
                return LocationMatch(entry.code, entry.name, EXACT_MATCH_SCORE, region.gazetteer.source)
        match = best_match(text, region.gazetteer) or best_match(text, self._gazetteer)
        if match is not None:
            return match
        logger.info("No %s match for %r; using regional fallback %d", region.name, text, region.fallback_code)
        return LocationMatch(region.fallback_code, region.fallback_name, 0, "default")

    def __repr__(self) -> str:
        region = self._region.name if self._region else None
        return (
            f"LocationResolver(rows={len(self._gazetteer)}, region={region!r}, "
            f"default={self._default.code})"
        )

    def resolve_location_code(self, text: str) -> int:
        return self.resolve(text).code

    def resolve_location_name(self, text: str) -> str:
        """Gazetteer name for *text*, as used by ``location_name`` API parameters."""
        return self.resolve(text).name


def build_resolver(
    general_csv: str | Path,
    region_csv: Optional[str | Path] = None,
    region_name: str = "Missouri",
    region_abbreviations: tuple[str, ...] = ("mo",),
    region_zip_range: Optional[tuple[int, int]] = (63001, 65899),
    region_fallback_code: int = 1020618,
    region_fallback_name: str = "St. Louis,Missouri,United States",
    default_code: int = DEFAULT_LOCATION_CODE,
) -> LocationResolver:
    """Build a resolver from CSV paths; a missing region file disables the region rule."""
    gazetteer = Gazetteer.from_csv(general_csv)
    region = None
    if region_csv is not None:
        region_path = Path(region_csv)
        if region_path.exists():
            region = RegionRule(
                name=region_name,
                gazetteer=Gazetteer.from_csv(region_path),
                fallback_code=region_fallback_code,
                fallback_name=region_fallback_name,
                abbreviations=tuple(a.lower() for a in region_abbreviations),
                zip_range=region_zip_range,
            )
        else:
            logger.warning("Region gazetteer not found: %s", region_path)
    default_entry = next((e for e in gazetteer if e.code == default_code), None)
    return LocationResolver(
        gazetteer,
        region=region,
        default_code=default_code,
        default_name=default_entry.name if default_entry else DEFAULT_LOCATION_NAME,
    )
