"""Comprehensive business scoring.

Turns raw DataForSEO payloads into presence, SEO, ads-activity and
engagement sub-scores, a composite lead score, an opportunity score and an
ordered list of improvement recommendations.
"""

from leadscore.modules.scoring.payloads import RawMetricBundle, TaskEnvelope, dig
from leadscore.modules.scoring.extractors import AdPerformance, ExtractedMetrics, extract_metrics
from leadscore.modules.scoring.calculators import (
    OpportunityResult,
    SubScores,
    calculate_sub_scores,
    lead_score,
    opportunity_score,
)
from leadscore.modules.scoring.engine import LeadRequest, ScoreReport, ScoringEngine

__all__ = [
    "AdPerformance",
    "ExtractedMetrics",
    "LeadRequest",
    "OpportunityResult",
    "RawMetricBundle",
    "ScoreReport",
    "ScoringEngine",
    "SubScores",
    "TaskEnvelope",
    "calculate_sub_scores",
    "dig",
    "extract_metrics",
    "lead_score",
    "opportunity_score",
]
