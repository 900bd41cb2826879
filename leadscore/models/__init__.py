"""SQLAlchemy ORM models; importing this package registers them with Base.metadata."""

from leadscore.models.lead import BusinessProfile, LeadScoreRecord

__all__ = ["BusinessProfile", "LeadScoreRecord"]
