"""Persistence helpers for score reports."""

import logging
from typing import Any, Optional

from sqlalchemy import select

from leadscore.database import get_session
from leadscore.models import BusinessProfile, LeadScoreRecord
from leadscore.modules.scoring.engine import ScoreReport
from leadscore.utils.helpers import normalize_domain

logger = logging.getLogger(__name__)


def save_report(report: ScoreReport) -> int:
    """Store *report*, creating the business profile on first sight.

    Returns:
        The id of the new LeadScoreRecord.
    """
    domain = normalize_domain(report.request.domain) or report.request.domain
    with get_session() as session:
        profile = session.scalars(
            select(BusinessProfile).where(
                BusinessProfile.domain == domain,
                BusinessProfile.business_name == report.request.business_name,
            )
        ).first()
        if profile is None:
            profile = BusinessProfile(
                business_name=report.request.business_name,
                domain=domain,
                location=report.request.location,
            )
            session.add(profile)
        profile.location = report.request.location
        profile.location_code = report.location_code

        scores = report.scores
        record = LeadScoreRecord(
            scored_at=report.scored_at,
            lead_score=scores.lead,
            presence_score=scores.presence,
            seo_score=scores.seo,
            ads_activity_score=scores.ads_activity,
            engagement_score=scores.engagement,
            opportunity_score=report.opportunity.score,
            opportunity_breakdown_json=dict(report.opportunity.breakdown),
            recommendations_json=list(report.recommendations),
            ad_performance_json=report.ad_performance.to_dict(),
            failed_sources_json=list(report.failed_sources),
        )
        profile.reports.append(record)
        session.flush()
        record_id = record.id
    logger.info("Saved lead score record %d for %s", record_id, domain)
    return record_id


def list_reports(domain: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
    """Stored reports for *domain*, newest first, as plain dicts."""
    domain = normalize_domain(domain) or domain
    with get_session() as session:
        stmt = (
            select(LeadScoreRecord, BusinessProfile)
            .join(BusinessProfile, LeadScoreRecord.business_id == BusinessProfile.id)
            .where(BusinessProfile.domain == domain)
            .order_by(LeadScoreRecord.scored_at.desc(), LeadScoreRecord.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        rows = session.execute(stmt).all()
        return [
            {
                "id": record.id,
                "business_name": profile.business_name,
                "domain": profile.domain,
                "location": profile.location,
                "scored_at": record.scored_at.isoformat() if record.scored_at else None,
                "lead_score": record.lead_score,
                "presence_score": record.presence_score,
                "seo_score": record.seo_score,
                "ads_activity_score": record.ads_activity_score,
                "engagement_score": record.engagement_score,
                "opportunity_score": record.opportunity_score,
                "recommendations": record.recommendations_json or [],
            }
            for record, profile in rows
        ]
