"""Website signal detection: schema markup, analytics tags, page speed and SERP presence."""

from leadscore.modules.site_signals.detectors import (
    detect_analytics,
    detect_schemas,
    speed_score_from_vitals,
)
from leadscore.modules.site_signals.models import (
    AnalyticsFlags,
    Competitor,
    SchemaFlags,
    SiteSignals,
)
from leadscore.modules.site_signals.serp import (
    filter_local_competitors,
    find_advertiser_for_domain,
    find_serp_position,
)

__all__ = [
    "AnalyticsFlags",
    "Competitor",
    "SchemaFlags",
    "SiteSignals",
    "detect_analytics",
    "detect_schemas",
    "filter_local_competitors",
    "find_advertiser_for_domain",
    "find_serp_position",
    "speed_score_from_vitals",
]
