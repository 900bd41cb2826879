"""Lead-scoring SQLAlchemy models: scored businesses and their score history."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadscore.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BusinessProfile(Base):
    """A prospect business that has been scored at least once."""

    __tablename__ = "business_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    domain: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    location_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    reports: Mapped[list["LeadScoreRecord"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LeadScoreRecord.scored_at",
    )

    def __repr__(self) -> str:
        return f"<BusinessProfile id={self.id} name={self.business_name!r} domain={self.domain!r}>"


class LeadScoreRecord(Base):
    """One scoring run for a business."""

    __tablename__ = "lead_score_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("business_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scored_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    lead_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    presence_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    seo_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ads_activity_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    engagement_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opportunity_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opportunity_breakdown_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    recommendations_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    ad_performance_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    failed_sources_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    business: Mapped["BusinessProfile"] = relationship(back_populates="reports")

    def __repr__(self) -> str:
        return (
            f"<LeadScoreRecord id={self.id} business_id={self.business_id} "
            f"lead={self.lead_score} opportunity={self.opportunity_score}>"
        )
