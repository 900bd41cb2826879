"""Rule-based recommendation generator.

Rules are evaluated in a fixed order (technical SEO, local presence, paid
advertising, engagement, overall) and each matching rule appends one
message.  Order reflects that sequence, not severity.  Output is a pure
function of the inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from leadscore.modules.scoring.calculators import OpportunityResult, SubScores
from leadscore.modules.scoring.extractors import ExtractedMetrics, MetricInsights
from leadscore.modules.site_signals.models import SiteSignals

logger = logging.getLogger(__name__)

SEO_THRESHOLD = 70
PRESENCE_THRESHOLD = 80
ADS_THRESHOLD = 50
ENGAGEMENT_THRESHOLD = 60
OPPORTUNITY_THRESHOLD = 70
DESKTOP_SPEED_THRESHOLD = 80
MOBILE_SPEED_THRESHOLD = 70
MIN_REVIEW_VELOCITY = 2
MIN_REVIEW_RATING = 4.3


@dataclass(frozen=True)
class RecommendationContext:
    """Everything the rules may inspect."""

    scores: SubScores
    metrics: ExtractedMetrics
    insights: MetricInsights
    signals: SiteSignals
    opportunity: OpportunityResult
    running_ads: bool


Rule = Callable[[RecommendationContext], Optional[str]]


# ---------------------------------------------------------------------------
# Technical SEO
# ---------------------------------------------------------------------------

def _critical_issues(ctx: RecommendationContext) -> Optional[str]:
    issues = ctx.insights.critical_issues
    if ctx.scores.seo < SEO_THRESHOLD and issues:
        return f"Fix {len(issues)} critical on-page issues: {', '.join(issues)}"
    return None


def _on_page_warnings(ctx: RecommendationContext) -> Optional[str]:
    warnings = ctx.insights.warnings
    if ctx.scores.seo < SEO_THRESHOLD and warnings:
        return f"Address {len(warnings)} on-page warnings: {', '.join(warnings)}"
    return None


def _local_business_schema(ctx: RecommendationContext) -> Optional[str]:
    if ctx.scores.seo < SEO_THRESHOLD and not ctx.signals.schemas.local_business:
        return "Add LocalBusiness schema markup to improve local SEO visibility"
    return None


def _faq_schema(ctx: RecommendationContext) -> Optional[str]:
    if not ctx.signals.schemas.faq:
        return "Implement FAQ schema to appear in rich snippets and answer boxes"
    return None


def _serp_position(ctx: RecommendationContext) -> Optional[str]:
    position = ctx.signals.serp_position
    if position is not None and position > 10:
        return (
            f"Improve SERP position (currently #{position}) through content "
            "optimization and link building"
        )
    return None


def _google_analytics(ctx: RecommendationContext) -> Optional[str]:
    if not ctx.signals.analytics.google_analytics:
        return "Install Google Analytics 4 to track website performance and user behavior"
    return None


def _facebook_pixel(ctx: RecommendationContext) -> Optional[str]:
    if not ctx.signals.analytics.facebook_pixel:
        return "Add Facebook Pixel for better ad tracking and retargeting capabilities"
    return None


def _page_speed(ctx: RecommendationContext) -> Optional[str]:
    desktop, mobile = ctx.signals.speed_desktop, ctx.signals.speed_mobile
    slow_desktop = desktop is not None and desktop < DESKTOP_SPEED_THRESHOLD
    slow_mobile = mobile is not None and mobile < MOBILE_SPEED_THRESHOLD
    if slow_desktop or slow_mobile:
        desktop_text = "n/a" if desktop is None else str(desktop)
        mobile_text = "n/a" if mobile is None else str(mobile)
        return (
            f"Optimize page speed (Desktop: {desktop_text}/100, Mobile: {mobile_text}/100) "
            "to improve user experience and rankings"
        )
    return None


def _keyword_gaps(ctx: RecommendationContext) -> Optional[str]:
    gaps = ctx.insights.keyword_gaps
    if ctx.scores.seo < SEO_THRESHOLD and gaps:
        return f"Target keyword gaps: {', '.join(gaps[:3])} (high search volume, low competition)"
    return None


def _backlinks(ctx: RecommendationContext) -> Optional[str]:
    targets = ctx.insights.backlink_targets
    if ctx.scores.seo < SEO_THRESHOLD and targets:
        return (
            f"Build backlinks: Focus on {', '.join(targets[:3])} "
            "(high authority, relevant domains)"
        )
    return None


# ---------------------------------------------------------------------------
# Local presence
# ---------------------------------------------------------------------------

def _nap(ctx: RecommendationContext) -> Optional[str]:
    if ctx.scores.presence < PRESENCE_THRESHOLD and not ctx.metrics.nap_complete:
        return "Complete NAP consistency: Ensure name, address, phone are identical across all platforms"
    return None


def _review_velocity(ctx: RecommendationContext) -> Optional[str]:
    if ctx.scores.presence < PRESENCE_THRESHOLD and ctx.metrics.review_velocity < MIN_REVIEW_VELOCITY:
        return "Increase review velocity: Implement automated review generation campaigns"
    return None


def _review_rating(ctx: RecommendationContext) -> Optional[str]:
    if ctx.scores.presence < PRESENCE_THRESHOLD and ctx.metrics.review_rating < MIN_REVIEW_RATING:
        return "Improve review rating: Address common complaints and improve service quality"
    return None


# ---------------------------------------------------------------------------
# Paid advertising
# ---------------------------------------------------------------------------

def _start_ads(ctx: RecommendationContext) -> Optional[str]:
    if not ctx.running_ads:
        return "Start running Google Ads to capture paid traffic and compete for top positions"
    return None


def _ad_keywords(ctx: RecommendationContext) -> Optional[str]:
    keywords = ctx.insights.ad_keyword_opportunities
    if ctx.scores.ads_activity < ADS_THRESHOLD and keywords:
        return (
            f"Test paid advertising on: {', '.join(keywords[:3])} "
            "(high-intent keywords with low ad competition)"
        )
    return None


def _creative_gaps(ctx: RecommendationContext) -> Optional[str]:
    gaps = ctx.insights.missing_creative_formats
    if ctx.scores.ads_activity < ADS_THRESHOLD and ctx.running_ads and gaps:
        return f"Develop ad creatives: {', '.join(gaps[:2])} (missing ad copy variations)"
    return None


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------

def _unanswered_reviews(ctx: RecommendationContext) -> Optional[str]:
    unanswered = ctx.insights.unanswered_reviews
    if ctx.scores.engagement < ENGAGEMENT_THRESHOLD and unanswered > 0:
        return f"Respond to {unanswered} unanswered reviews: Prioritize recent negative reviews"
    return None


def _service_issues(ctx: RecommendationContext) -> Optional[str]:
    negative = ctx.insights.negative_reviews
    if ctx.scores.engagement < ENGAGEMENT_THRESHOLD and negative > 0:
        return (
            f"Address service issues raised in {negative} negative reviews "
            "(rated below 3 stars)"
        )
    return None


# ---------------------------------------------------------------------------
# Overall
# ---------------------------------------------------------------------------

def _overall(ctx: RecommendationContext) -> Optional[str]:
    score = ctx.opportunity.score
    if score < OPPORTUNITY_THRESHOLD:
        return (
            f"Focus on improving overall SEO health (current score: {score}/100) "
            "to unlock more growth opportunities"
        )
    return None


RULES: tuple[Rule, ...] = (
    _critical_issues,
    _on_page_warnings,
    _local_business_schema,
    _faq_schema,
    _serp_position,
    _google_analytics,
    _facebook_pixel,
    _page_speed,
    _keyword_gaps,
    _backlinks,
    _nap,
    _review_velocity,
    _review_rating,
    _start_ads,
    _ad_keywords,
    _creative_gaps,
    _unanswered_reviews,
    _service_issues,
    _overall,
)


def generate_recommendations(ctx: RecommendationContext, rules: tuple[Rule, ...] = RULES) -> list[str]:
    """Evaluate *rules* in order and collect every message produced."""
    recommendations = []
    for rule in rules:
        message = rule(ctx)
        if message:
            recommendations.append(message)
    logger.debug("Generated %d recommendations", len(recommendations))
    return recommendations


def generate_pitching_points(
    scores: SubScores,
    metrics: ExtractedMetrics,
    has_website: bool,
) -> list[str]:
    """Short sales talking points for a prospect."""
    points = []
    if not has_website:
        points.append("No website found: build a conversion-focused site to capture local patients")
    if scores.seo < 50:
        points.append(f"Weak organic visibility (SEO score {scores.seo}/100): SEO retainer opportunity")
    if metrics.review_count < 10:
        points.append(
            f"Only {metrics.review_count} Google reviews: offer a review generation program"
        )
    if scores.ads_activity < 30:
        points.append("Little or no paid search activity: pitch a managed Google Ads campaign")
    if scores.presence < 40:
        points.append(
            f"Low local presence (score {scores.presence}/100): Google Business Profile optimization"
        )
    return points
