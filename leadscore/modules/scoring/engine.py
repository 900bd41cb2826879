"""Scoring engine: raw payload bundle in, complete score report out.

The engine performs no I/O and keeps no state between calls; fetching the
bundle is the workflow's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from leadscore.modules.scoring.calculators import (
    OpportunityResult,
    SubScores,
    ad_recency_score,
    calculate_sub_scores,
    opportunity_score,
    round_half_up,
)
from leadscore.modules.scoring.extractors import (
    REVIEW_VELOCITY_WINDOW_DAYS,
    AdPerformance,
    ExtractedMetrics,
    build_ad_performance,
    extract_insights,
    extract_metrics,
)
from leadscore.modules.scoring.payloads import RawMetricBundle
from leadscore.modules.scoring.recommendations import (
    RecommendationContext,
    generate_pitching_points,
    generate_recommendations,
)
from leadscore.modules.site_signals.models import SiteSignals
from leadscore.utils.helpers import as_utc, utcnow
from leadscore.utils.validators import require_str

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeadRequest:
    """Business to score.  String fields are type-checked on construction."""

    business_name: str
    domain: str
    location: str
    keywords: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        require_str(self.business_name, "business_name")
        require_str(self.domain, "domain")
        require_str(self.location, "location")
        keywords = self.keywords or ()
        if isinstance(keywords, str):
            raise TypeError("keywords must be a sequence of strings, not a string")
        for keyword in keywords:
            require_str(keyword, "keywords[]")
        object.__setattr__(self, "keywords", tuple(keywords))

    @property
    def primary_keyword(self) -> str:
        return self.keywords[0] if self.keywords else self.business_name


@dataclass(frozen=True)
class ScoreReport:
    request: LeadRequest
    scores: SubScores
    opportunity: OpportunityResult
    recommendations: tuple[str, ...]
    ad_performance: AdPerformance
    metrics: ExtractedMetrics
    signals: SiteSignals
    pitching_points: tuple[str, ...] = ()
    failed_sources: tuple[str, ...] = ()
    location_code: Optional[int] = None
    scored_at: datetime = field(default_factory=utcnow)

    @property
    def lead_score(self) -> int:
        return self.scores.lead

    def to_dict(self) -> dict[str, Any]:
        return {
            "business_name": self.request.business_name,
            "domain": self.request.domain,
            "location": self.request.location,
            "location_code": self.location_code,
            "scores": self.scores.to_dict(),
            "opportunity_score": self.opportunity.score,
            "opportunity_breakdown": dict(self.opportunity.breakdown),
            "recommendations": list(self.recommendations),
            "pitching_points": list(self.pitching_points),
            "ad_performance": self.ad_performance.to_dict(),
            "metrics": self.metrics.to_dict(),
            "signals": self.signals.to_dict(),
            "failed_sources": list(self.failed_sources),
            "scored_at": self.scored_at.isoformat(),
        }


class ScoringEngine:
    """Stateless scorer.

    Usage::

        engine = ScoringEngine()
        report = engine.score(LeadRequest("Acme Dental", "acmedental.com", "St. Louis, MO"), bundle)
        print(report.lead_score, report.recommendations)
    """

    def __init__(self, velocity_window_days: int = REVIEW_VELOCITY_WINDOW_DAYS):
        self._velocity_window_days = velocity_window_days

    def score(
        self,
        request: LeadRequest,
        bundle: RawMetricBundle,
        signals: Optional[SiteSignals] = None,
        now: Optional[datetime] = None,
        location_code: Optional[int] = None,
    ) -> ScoreReport:
        """Compute sub-scores, lead score, opportunity score and recommendations.

        Args:
            request: The business being scored.
            bundle: Raw upstream payloads (any may be ``None``).
            signals: Website signals; defaults to "nothing detected".
            now: Reference time; defaults to the current UTC time.
            location_code: Resolved location code, echoed in the report.

        Returns:
            A complete ScoreReport, even when every source is missing.
        """
        if not isinstance(request, LeadRequest):
            raise TypeError(f"request must be a LeadRequest, got {type(request).__name__}")
        if not isinstance(bundle, RawMetricBundle):
            raise TypeError(f"bundle must be a RawMetricBundle, got {type(bundle).__name__}")
        now = as_utc(now or utcnow())
        signals = signals or SiteSignals()

        metrics = extract_metrics(bundle, now, self._velocity_window_days)
        insights = extract_insights(bundle)
        scores = calculate_sub_scores(metrics)

        running_ads = signals.running_ads if signals.running_ads is not None else metrics.ad_count > 0
        opportunity = opportunity_score(signals, running_ads=running_ads)

        ctx = RecommendationContext(
            scores=scores,
            metrics=metrics,
            insights=insights,
            signals=signals,
            opportunity=opportunity,
            running_ads=running_ads,
        )
        recommendations = generate_recommendations(ctx)
        pitching = generate_pitching_points(scores, metrics, has_website=bool(request.domain.strip()))

        recency = round_half_up(ad_recency_score(metrics.days_since_last_ad))
        report = ScoreReport(
            request=request,
            scores=scores,
            opportunity=opportunity,
            recommendations=tuple(recommendations),
            ad_performance=build_ad_performance(bundle, recency),
            metrics=metrics,
            signals=signals,
            pitching_points=tuple(pitching),
            failed_sources=tuple(sorted(bundle.failed_sources)),
            location_code=location_code,
            scored_at=now,
        )
        logger.info(
            "Scored %s: lead=%d opportunity=%d (%d recommendations, %d failed sources)",
            request.domain or request.business_name,
            scores.lead,
            opportunity.score,
            len(recommendations),
            len(bundle.failed_sources),
        )
        return report
