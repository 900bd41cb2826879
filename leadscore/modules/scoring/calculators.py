"""Sub-score calculators, the composite lead score and the opportunity score.

All public calculators return integers in ``[0, 100]`` and accept the zero
values produced by the extractors without raising.  Rounding is
round-half-up throughout (``round_half_up(62.5) == 63``), unlike Python's
built-in banker's rounding.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from leadscore.modules.scoring.extractors import ExtractedMetrics
from leadscore.modules.site_signals.models import SiteSignals

logger = logging.getLogger(__name__)

# Composite lead-score weights, in hundredths (must sum to 100).
LEAD_WEIGHTS = {"presence": 30, "seo": 35, "ads_activity": 25, "engagement": 10}

# Log-normalization domains for the ads score.
PAID_ETV_DOMAIN = (1, 100_000)
CREATIVE_COUNT_DOMAIN = (0, 200)

# Ad recency: 100 when shown within this many days, 0 at ``AD_RECENCY_ZERO_DAYS``.
AD_RECENCY_FULL_DAYS = 7
AD_RECENCY_ZERO_DAYS = 180


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def clamp_score(value: float) -> int:
    return int(clamp(round_half_up(clamp(value))))


def log_normalize(value: float, minimum: float, maximum: float) -> float:
    """Map *value* onto 0-100 on a log10(1+x) scale between *minimum* and *maximum*.

    Values below the domain clamp to 0, values above it to 100.
    """
    log_min = math.log10(1 + max(minimum, 0))
    log_max = math.log10(1 + max(maximum, 1))
    if log_max <= log_min:
        return 0.0
    scaled = 100 * (math.log10(1 + max(value, 0)) - log_min) / (log_max - log_min)
    return clamp(scaled)


# ---------------------------------------------------------------------------
# Component scores
# ---------------------------------------------------------------------------

def rating_score(rating: float) -> float:
    """Star rating mapped linearly from 1..5 to 0..100."""
    return clamp((rating - 1) / 4 * 100)


def review_volume_score(review_count: int) -> float:
    return min(100.0, math.log10(1 + max(review_count, 0)) * 20)


def traffic_score(organic_traffic: int) -> float:
    return min(100.0, math.log10(1 + max(organic_traffic, 0)) * 15)


def keyword_score(keyword_count: int) -> float:
    return min(100.0, math.log10(1 + max(keyword_count, 0)) * 10)


def ad_recency_score(days_since_last_ad: Optional[int]) -> float:
    """Linear decay from 100 (shown within 7 days) to 0 (180+ days or never)."""
    if days_since_last_ad is None:
        return 0.0
    span = AD_RECENCY_ZERO_DAYS - AD_RECENCY_FULL_DAYS
    return clamp((AD_RECENCY_ZERO_DAYS - days_since_last_ad) * 100 / span)


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------

def presence_score(rating: float, review_count: int, nap_complete: bool, claimed: bool) -> int:
    score = (
        rating_score(rating) * 0.4
        + review_volume_score(review_count) * 0.4
        + (20 if nap_complete else 0)
        + (10 if claimed else 0)
    )
    return clamp_score(score)


def seo_score(on_page_score: float, organic_traffic: int, keyword_count: int) -> int:
    """On-page health 50%, organic traffic 30%, ranked keywords 20%."""
    score = (
        clamp(on_page_score) * 0.5
        + traffic_score(organic_traffic) * 0.3
        + keyword_score(keyword_count) * 0.2
    )
    return clamp_score(score)


def ads_activity_score(
    paid_traffic: int,
    creatives_count: int,
    days_since_last_ad: Optional[int],
    verified_advertiser: bool,
) -> int:
    score = (
        log_normalize(paid_traffic, *PAID_ETV_DOMAIN) * 0.6
        + log_normalize(creatives_count, *CREATIVE_COUNT_DOMAIN) * 0.2
        + ad_recency_score(days_since_last_ad) * 0.1
        + (100 if verified_advertiser else 0) * 0.1
    )
    return clamp_score(score)


def engagement_score(review_velocity: int, response_rate: float, rating: float) -> int:
    score = (
        min(100.0, max(review_velocity, 0) * 5) * 0.4
        + clamp(response_rate, 0.0, 1.0) * 100 * 0.3
        + rating_score(rating) * 0.3
    )
    return clamp_score(score)


def lead_score(presence: int, seo: int, ads_activity: int, engagement: int) -> int:
    """Weighted composite of the four sub-scores.

    Computed in integer hundredths so the result is exactly
    ``round_half_up(0.30P + 0.35S + 0.25A + 0.10E)`` with no float error.
    """
    weighted = (
        LEAD_WEIGHTS["presence"] * int(presence)
        + LEAD_WEIGHTS["seo"] * int(seo)
        + LEAD_WEIGHTS["ads_activity"] * int(ads_activity)
        + LEAD_WEIGHTS["engagement"] * int(engagement)
    )
    return max(0, min(100, (weighted + 50) // 100))


@dataclass(frozen=True)
class SubScores:
    presence: int = 0
    seo: int = 0
    ads_activity: int = 0
    engagement: int = 0

    @property
    def lead(self) -> int:
        return lead_score(self.presence, self.seo, self.ads_activity, self.engagement)

    def to_dict(self) -> dict[str, int]:
        return {
            "presence_score": self.presence,
            "seo_score": self.seo,
            "ads_activity_score": self.ads_activity,
            "engagement_score": self.engagement,
            "lead_score": self.lead,
        }


def calculate_sub_scores(metrics: ExtractedMetrics) -> SubScores:
    scores = SubScores(
        presence=presence_score(
            metrics.review_rating, metrics.review_count, metrics.nap_complete, metrics.claimed
        ),
        seo=seo_score(metrics.on_page_score, metrics.organic_traffic, metrics.keyword_count),
        ads_activity=ads_activity_score(
            metrics.paid_traffic,
            metrics.ad_count,
            metrics.days_since_last_ad,
            metrics.verified_advertiser,
        ),
        engagement=engagement_score(
            metrics.review_velocity, metrics.response_rate, metrics.review_rating
        ),
    )
    logger.debug("Sub-scores: %s (lead=%d)", scores, scores.lead)
    return scores


# ---------------------------------------------------------------------------
# Opportunity score
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OpportunityResult:
    score: int
    earned: int
    max_points: int
    breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _serp_points(position: Optional[int]) -> int:
    if position is None or position <= 0:
        return 0
    if position <= 3:
        return 30
    if position <= 10:
        return 20
    if position <= 20:
        return 10
    return 5


def _speed_points(speed: Optional[int]) -> int:
    if speed is None:
        return 0
    if speed >= 90:
        return 10
    if speed >= 70:
        return 5
    return 0


def opportunity_score(signals: SiteSignals, running_ads: Optional[bool] = None) -> OpportunityResult:
    """Tiered point allocation over the site signals, normalized to 0-100.

    Args:
        signals: Observed website signals.
        running_ads: Overrides ``signals.running_ads`` when given.

    Returns:
        OpportunityResult with the normalized score, the raw earned points,
        the evaluated maximum and a per-category breakdown.
    """
    if running_ads is None:
        running_ads = bool(signals.running_ads)

    # category -> (earned, max)
    categories = {
        "serp": (_serp_points(signals.serp_position), 30),
        "local_business_schema": (10 if signals.schemas.local_business else 0, 10),
        "faq_schema": (10 if signals.schemas.faq else 0, 10),
        "google_analytics": (10 if signals.analytics.google_analytics else 0, 10),
        "facebook_pixel": (5 if signals.analytics.facebook_pixel else 0, 5),
        "speed_desktop": (_speed_points(signals.speed_desktop), 10),
        "speed_mobile": (_speed_points(signals.speed_mobile), 10),
        "ppc": (15 if running_ads else 8, 15),
    }

    earned = 0
    max_points = 0
    breakdown: dict[str, int] = {}
    for name, (points, maximum) in categories.items():
        earned += points
        max_points += maximum
        breakdown[name] = points

    score = clamp_score(earned / max_points * 100) if max_points else 0
    return OpportunityResult(score=score, earned=earned, max_points=max_points, breakdown=breakdown)
