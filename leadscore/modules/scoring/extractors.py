"""Metric extractors: pull scalar metrics out of DataForSEO payload bundles.

Every function here is total.  A missing, ``null`` or wrong-shaped segment
anywhere on a field path resolves to the documented zero value (0, False,
empty list); nothing in this module raises on payload shape.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from leadscore.modules.scoring.payloads import RawMetricBundle, dig
from leadscore.utils.helpers import as_utc, parse_timestamp, safe_float, safe_int

logger = logging.getLogger(__name__)

REVIEW_VELOCITY_WINDOW_DAYS = 90

_ADVERTISER_TYPES = ("ads_advertiser", "ads_multi_account_advertiser")
_CREATIVE_FORMATS = ("text", "image", "video")

# on-page ``checks`` flags that count as critical / warning when true
_CRITICAL_CHECKS = {
    "no_title": "Missing title tag",
    "no_description": "Missing meta description",
    "no_h1_tag": "Missing H1 heading",
    "is_broken": "Broken page",
    "is_4xx_code": "Page returns 4xx status",
    "is_5xx_code": "Page returns 5xx status",
    "https_to_http_links": "HTTPS page links to HTTP",
    "no_content_encoding": "No content encoding",
}
_WARNING_CHECKS = {
    "title_too_long": "Title too long",
    "title_too_short": "Title too short",
    "no_image_alt": "Images missing alt text",
    "low_content_rate": "Low text-to-HTML ratio",
    "high_loading_time": "High loading time",
    "large_page_size": "Large page size",
    "no_favicon": "Missing favicon",
    "duplicate_title_tag": "Duplicate title tags",
}


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExtractedMetrics:
    """Flat scalar metrics for one business; every field defaults to zero."""

    review_rating: float = 0.0
    review_count: int = 0
    organic_traffic: int = 0
    paid_traffic: int = 0
    keyword_count: int = 0
    on_page_score: float = 0.0
    backlink_count: int = 0
    ad_count: int = 0
    nap_complete: bool = False
    claimed: bool = False
    review_velocity: int = 0
    response_rate: float = 0.0
    days_since_last_ad: Optional[int] = None
    verified_advertiser: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AdCreative:
    creative_id: Optional[str] = None
    advertiser_id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    format: Optional[str] = None
    preview_image: Optional[str] = None
    first_shown: Optional[str] = None
    last_shown: Optional[str] = None
    verified: bool = False
    platform: Optional[str] = None


@dataclass(frozen=True)
class AdvertiserSummary:
    approx_ads_count: int = 0
    verified: bool = False
    platforms: tuple[str, ...] = ()


@dataclass(frozen=True)
class AdPerformance:
    """Paid-search activity summary reported alongside the scores."""

    paid_etv: int = 0
    creatives_count: int = 0
    approx_ads_count: int = 0
    ad_recency: float = 0.0
    verified_advertiser: bool = False
    platforms: tuple[str, ...] = ()
    creatives: tuple[AdCreative, ...] = ()
    last_active_date: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["platforms"] = list(self.platforms)
        data["creatives"] = [asdict(c) for c in self.creatives]
        return data


@dataclass(frozen=True)
class NAPRecord:
    name: str = ""
    address: str = ""
    phone: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.name and self.address and self.phone)


@dataclass(frozen=True)
class MetricInsights:
    """Detail lists that only the recommendation rules consume."""

    critical_issues: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    keyword_gaps: tuple[str, ...] = ()
    backlink_targets: tuple[str, ...] = ()
    ad_keyword_opportunities: tuple[str, ...] = ()
    missing_creative_formats: tuple[str, ...] = ()
    unanswered_reviews: int = 0
    negative_reviews: int = 0
    nap: NAPRecord = field(default_factory=NAPRecord)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

def _review_items(bundle: RawMetricBundle) -> list[dict[str, Any]]:
    result = bundle.envelope("reviews").first_result()
    for key in ("items", "reviews"):
        reviews = result.get(key)
        if isinstance(reviews, list):
            return [r for r in reviews if isinstance(r, dict)]
    return []


def _review_timestamp(review: dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(review.get("timestamp") or review.get("posted_time"))


def _has_owner_response(review: dict[str, Any]) -> bool:
    answer = review.get("owner_answer", review.get("owner_response"))
    if isinstance(answer, str):
        return bool(answer.strip())
    return bool(answer)


def _review_stars(review: dict[str, Any]) -> Optional[float]:
    rating = review.get("rating")
    if isinstance(rating, dict):
        rating = rating.get("value")
    if rating is None:
        return None
    return safe_float(rating)


def extract_review_rating(bundle: RawMetricBundle) -> float:
    """Average star rating in [0, 5] from the reviews payload.

    Falls back to the business-info rating when the reviews task has none.
    """
    rating = safe_float(dig(bundle.envelope("reviews").first_result(), "rating", "value"))
    if rating <= 0:
        rating = safe_float(dig(_business_info(bundle), "rating", "value"))
    return max(0.0, min(5.0, rating))


def extract_review_count(bundle: RawMetricBundle) -> int:
    count = safe_int(bundle.envelope("reviews").first_result().get("reviews_count"))
    if count <= 0:
        count = safe_int(dig(_business_info(bundle), "rating", "votes_count"))
    return max(0, count)


def extract_review_velocity(
    bundle: RawMetricBundle,
    now: datetime,
    window_days: int = REVIEW_VELOCITY_WINDOW_DAYS,
) -> int:
    """Number of reviews posted within *window_days* before *now*."""
    now = as_utc(now)
    cutoff = now - timedelta(days=window_days)
    count = 0
    for review in _review_items(bundle):
        posted = _review_timestamp(review)
        if posted is not None and cutoff < posted <= now:
            count += 1
    return count


def extract_response_rate(bundle: RawMetricBundle) -> float:
    """Share of fetched reviews with an owner response; 0.0 with no reviews."""
    reviews = _review_items(bundle)
    if not reviews:
        return 0.0
    responded = sum(1 for review in reviews if _has_owner_response(review))
    return responded / len(reviews)


# ---------------------------------------------------------------------------
# Organic / technical SEO
# ---------------------------------------------------------------------------

def _traffic_value(item: dict[str, Any], channel: str) -> int:
    etv = dig(item, "metrics", channel, "etv")
    if etv is None:
        etv = item.get(f"{channel}_estimated_traffic")
    return max(0, safe_int(etv))


def extract_organic_traffic(bundle: RawMetricBundle) -> int:
    return _traffic_value(bundle.envelope("traffic").first_item(), "organic")


def extract_paid_traffic(bundle: RawMetricBundle) -> int:
    return _traffic_value(bundle.envelope("traffic").first_item(), "paid")


def extract_keyword_count(bundle: RawMetricBundle) -> int:
    return len(bundle.envelope("ranked_keywords").items())


def extract_on_page_score(bundle: RawMetricBundle) -> float:
    score = safe_float(bundle.envelope("on_page").first_item().get("onpage_score"))
    return max(0.0, min(100.0, score))


def extract_backlink_count(bundle: RawMetricBundle) -> int:
    return len(bundle.envelope("backlinks").items())


# ---------------------------------------------------------------------------
# Business identity
# ---------------------------------------------------------------------------

def _business_info(bundle: RawMetricBundle) -> dict[str, Any]:
    result = bundle.envelope("business_info").first_result()
    nested = dig(result, "items", 0, default={})
    return nested if isinstance(nested, dict) and nested else result


def _first_text(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def extract_nap(bundle: RawMetricBundle) -> NAPRecord:
    """Name/address/phone, preferring business info over the listing search."""
    info = _business_info(bundle)
    listing = bundle.envelope("business_listings").first_item()
    return NAPRecord(
        name=_first_text(info.get("name"), info.get("title"), listing.get("name"), listing.get("title")),
        address=_first_text(
            info.get("address"),
            dig(info, "address_info", "address"),
            listing.get("address"),
            dig(listing, "address_info", "address"),
        ),
        phone=_first_text(info.get("phone"), listing.get("phone")),
    )


def extract_claimed(bundle: RawMetricBundle) -> bool:
    info = _business_info(bundle)
    if "is_claimed" in info and info["is_claimed"] is not None:
        return bool(info["is_claimed"])
    return bool(bundle.envelope("business_listings").first_item().get("is_claimed"))


# ---------------------------------------------------------------------------
# Paid search
# ---------------------------------------------------------------------------

def _preview_image(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("url")
    return value if isinstance(value, str) and value else None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def extract_ad_creatives(bundle: RawMetricBundle) -> list[AdCreative]:
    """Ad-search items tagged ``ads_search``, normalized to :class:`AdCreative`."""
    creatives = []
    for item in bundle.envelope("ads_search").items():
        if item.get("type") != "ads_search":
            continue
        creatives.append(
            AdCreative(
                creative_id=_optional_str(item.get("creative_id")),
                advertiser_id=_optional_str(item.get("advertiser_id")),
                title=_optional_str(item.get("title")),
                url=_optional_str(item.get("url")),
                format=_optional_str(item.get("format")),
                preview_image=_preview_image(item.get("preview_image")),
                first_shown=_optional_str(item.get("first_shown")),
                last_shown=_optional_str(item.get("last_shown")),
                verified=bool(item.get("verified")),
                platform=_optional_str(item.get("platform")),
            )
        )
    return creatives


def extract_ad_count(bundle: RawMetricBundle) -> int:
    return len(extract_ad_creatives(bundle))


def extract_advertiser_summary(bundle: RawMetricBundle) -> AdvertiserSummary:
    advertisers = [
        item for item in bundle.envelope("ads_advertisers").items()
        if item.get("type") in _ADVERTISER_TYPES
    ]
    platforms: list[str] = []
    for item in advertisers:
        platform = _optional_str(item.get("platform"))
        if platform and platform not in platforms:
            platforms.append(platform)
    return AdvertiserSummary(
        approx_ads_count=sum(max(0, safe_int(item.get("approx_ads_count"))) for item in advertisers),
        verified=any(bool(item.get("verified")) for item in advertisers),
        platforms=tuple(platforms),
    )


def latest_ad_shown(creatives: list[AdCreative]) -> Optional[datetime]:
    shown = [parse_timestamp(c.last_shown) for c in creatives]
    shown = [ts for ts in shown if ts is not None]
    return max(shown) if shown else None


def days_since_last_ad(creatives: list[AdCreative], now: datetime) -> Optional[int]:
    """Whole days between the most recent ``last_shown`` and *now*."""
    latest = latest_ad_shown(creatives)
    if latest is None:
        return None
    return max(0, (as_utc(now) - latest).days)


# ---------------------------------------------------------------------------
# Aggregate extraction
# ---------------------------------------------------------------------------

def extract_metrics(
    bundle: RawMetricBundle,
    now: datetime,
    velocity_window_days: int = REVIEW_VELOCITY_WINDOW_DAYS,
) -> ExtractedMetrics:
    """Run every extractor over *bundle*.

    Args:
        bundle: Raw payloads; missing sources yield zero values.
        now: Reference time for the review-velocity window and ad recency.
        velocity_window_days: Size of the review-velocity window.

    Returns:
        A frozen ExtractedMetrics record.
    """
    creatives = extract_ad_creatives(bundle)
    metrics = ExtractedMetrics(
        review_rating=extract_review_rating(bundle),
        review_count=extract_review_count(bundle),
        organic_traffic=extract_organic_traffic(bundle),
        paid_traffic=extract_paid_traffic(bundle),
        keyword_count=extract_keyword_count(bundle),
        on_page_score=extract_on_page_score(bundle),
        backlink_count=extract_backlink_count(bundle),
        ad_count=len(creatives),
        nap_complete=extract_nap(bundle).complete,
        claimed=extract_claimed(bundle),
        review_velocity=extract_review_velocity(bundle, now, velocity_window_days),
        response_rate=extract_response_rate(bundle),
        days_since_last_ad=days_since_last_ad(creatives, now),
        verified_advertiser=extract_advertiser_summary(bundle).verified,
    )
    logger.debug("Extracted metrics: %s", metrics)
    return metrics


# ---------------------------------------------------------------------------
# Recommendation insights
# ---------------------------------------------------------------------------

def _issue_titles(value: Any) -> list[str]:
    titles = []
    if isinstance(value, list):
        for issue in value:
            if isinstance(issue, dict):
                titles.append(_first_text(issue.get("title"), issue.get("name")) or "Unknown issue")
            elif isinstance(issue, str) and issue.strip():
                titles.append(issue.strip())
    return titles


def extract_on_page_issues(bundle: RawMetricBundle) -> tuple[list[str], list[str]]:
    """Critical issues and warnings for the audited page.

    Reads explicit ``critical_issues`` / ``warnings`` lists when present,
    otherwise derives them from the boolean ``checks`` map.
    """
    item = bundle.envelope("on_page").first_item()
    critical = _issue_titles(item.get("critical_issues"))
    warnings = _issue_titles(item.get("warnings"))
    checks = item.get("checks")
    if not critical and not warnings and isinstance(checks, dict):
        critical = [label for key, label in _CRITICAL_CHECKS.items() if checks.get(key) is True]
        warnings = [label for key, label in _WARNING_CHECKS.items() if checks.get(key) is True]
    return critical, warnings


def _keyword_fields(item: dict[str, Any]) -> tuple[str, int, int, float]:
    keyword = _first_text(item.get("keyword"), dig(item, "keyword_data", "keyword"))
    rank = item.get("rank_absolute")
    if rank is None:
        rank = dig(item, "ranked_serp_element", "serp_item", "rank_absolute")
    volume = item.get("search_volume")
    if volume is None:
        volume = dig(item, "keyword_data", "keyword_info", "search_volume")
    cpc = item.get("cpc")
    if cpc is None:
        cpc = dig(item, "keyword_data", "keyword_info", "cpc")
    return keyword, safe_int(rank), safe_int(volume), safe_float(cpc)


def extract_keyword_gaps(bundle: RawMetricBundle, limit: int = 5) -> list[str]:
    """Keywords ranking beyond page one with more than 1,000 monthly searches."""
    gaps = []
    for item in bundle.envelope("ranked_keywords").items():
        keyword, rank, volume, _ = _keyword_fields(item)
        if keyword and rank > 10 and volume > 1000:
            gaps.append(keyword)
    return gaps[:limit]


def extract_ad_keyword_opportunities(bundle: RawMetricBundle, limit: int = 3) -> list[str]:
    """High-volume (>5,000) keywords with a CPC under $2.00."""
    opportunities = []
    for item in bundle.envelope("ranked_keywords").items():
        keyword, _, volume, cpc = _keyword_fields(item)
        if keyword and volume > 5000 and cpc < 2.0:
            opportunities.append(keyword)
    return opportunities[:limit]


def extract_backlink_targets(bundle: RawMetricBundle, limit: int = 5) -> list[str]:
    """Referring domains with a domain rank above 50."""
    targets = []
    for item in bundle.envelope("backlinks").items():
        rank = item.get("domain_rank", item.get("domain_from_rank"))
        domain = _first_text(item.get("domain"), item.get("domain_from"))
        if domain and safe_float(rank) > 50 and domain not in targets:
            targets.append(domain)
    return targets[:limit]


def extract_missing_creative_formats(bundle: RawMetricBundle) -> list[str]:
    present = {(c.format or "").lower() for c in extract_ad_creatives(bundle)}
    return [f"{fmt.capitalize()} ads" for fmt in _CREATIVE_FORMATS if fmt not in present]


def extract_insights(bundle: RawMetricBundle) -> MetricInsights:
    reviews = _review_items(bundle)
    critical, warnings = extract_on_page_issues(bundle)
    negative = 0
    for review in reviews:
        stars = _review_stars(review)
        if stars is not None and stars < 3:
            negative += 1
    return MetricInsights(
        critical_issues=tuple(critical),
        warnings=tuple(warnings),
        keyword_gaps=tuple(extract_keyword_gaps(bundle)),
        backlink_targets=tuple(extract_backlink_targets(bundle)),
        ad_keyword_opportunities=tuple(extract_ad_keyword_opportunities(bundle)),
        missing_creative_formats=tuple(extract_missing_creative_formats(bundle)),
        unanswered_reviews=sum(1 for review in reviews if not _has_owner_response(review)),
        negative_reviews=negative,
        nap=extract_nap(bundle),
    )


def build_ad_performance(bundle: RawMetricBundle, recency: float) -> AdPerformance:
    """Assemble the ad-performance summary; *recency* is the computed recency score."""
    creatives = extract_ad_creatives(bundle)
    advertiser = extract_advertiser_summary(bundle)
    latest = latest_ad_shown(creatives)
    return AdPerformance(
        paid_etv=extract_paid_traffic(bundle),
        creatives_count=len(creatives),
        approx_ads_count=advertiser.approx_ads_count,
        ad_recency=recency,
        verified_advertiser=advertiser.verified,
        platforms=advertiser.platforms,
        creatives=tuple(creatives),
        last_active_date=latest.date().isoformat() if latest else None,
    )
