"""Value objects describing what was observed about a prospect's website."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class SchemaFlags:
    """Structured-data types detected on the homepage."""

    local_business: bool = False
    faq: bool = False
    organization: bool = False
    breadcrumbs: bool = False
    product: bool = False
    review: bool = False


@dataclass(frozen=True)
class AnalyticsFlags:
    """Tracking tags detected on the homepage."""

    google_analytics: bool = False
    google_analytics_type: Optional[str] = None
    google_analytics_id: Optional[str] = None
    facebook_pixel: bool = False
    facebook_pixel_id: Optional[str] = None


@dataclass(frozen=True)
class Competitor:
    name: str
    domain: Optional[str] = None
    address: Optional[str] = None
    rating: float = 0.0
    reviews_count: int = 0


@dataclass(frozen=True)
class SiteSignals:
    """Inputs of the opportunity score.

    ``speed_desktop`` / ``speed_mobile`` are ``None`` when page timing could
    not be measured.  ``running_ads`` is ``None`` when the PPC status was
    not checked, in which case it is derived from the creative count.
    """

    serp_position: Optional[int] = None
    schemas: SchemaFlags = field(default_factory=SchemaFlags)
    analytics: AnalyticsFlags = field(default_factory=AnalyticsFlags)
    speed_desktop: Optional[int] = None
    speed_mobile: Optional[int] = None
    running_ads: Optional[bool] = None
    advertiser_id: Optional[str] = None
    competitors: tuple[Competitor, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["competitors"] = [asdict(c) for c in self.competitors]
        return data
