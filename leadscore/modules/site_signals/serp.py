"""Locate a prospect in SERP, ads-advertiser and local-finder payloads."""

import logging
from typing import Any, Optional

from leadscore.modules.scoring.payloads import TaskEnvelope
from leadscore.modules.site_signals.models import Competitor
from leadscore.utils.helpers import normalize_domain, safe_float, safe_int

logger = logging.getLogger(__name__)


def _domains_match(candidate: str, target: str) -> bool:
    if not candidate or not target:
        return False
    return candidate == target or candidate.endswith("." + target) or target.endswith("." + candidate)


def find_serp_position(serp_payload: Optional[dict], domain: str) -> Optional[int]:
    """Return the organic rank of *domain* in a SERP payload, or ``None``.

    Only ``organic`` items are considered.  The rank is taken from
    ``rank_absolute``, then ``rank_group``, then the 1-based list index.
    """
    target = normalize_domain(domain)
    if not target:
        return None
    organic_index = 0
    for item in TaskEnvelope(serp_payload).items():
        if item.get("type", "organic") != "organic":
            continue
        organic_index += 1
        candidate = normalize_domain(str(item.get("domain") or item.get("url") or ""))
        if _domains_match(candidate, target):
            for key in ("rank_absolute", "rank_group"):
                rank = safe_int(item.get(key))
                if rank > 0:
                    return rank
            return organic_index
    return None


def find_advertiser_for_domain(ads_advertisers_payload: Optional[dict], domain: str) -> Optional[str]:
    """Return the advertiser id whose domain or title matches *domain*."""
    target = normalize_domain(domain)
    if not target:
        return None
    brand = target.split(".")[0]
    for item in TaskEnvelope(ads_advertisers_payload).items():
        if item.get("type") not in ("ads_advertiser", "ads_multi_account_advertiser"):
            continue
        candidate = normalize_domain(str(item.get("domain") or ""))
        title = str(item.get("title") or "").lower()
        if _domains_match(candidate, target) or (brand and brand in title.replace(" ", "")):
            advertiser_id = item.get("advertiser_id")
            if advertiser_id:
                return str(advertiser_id)
    return None


def filter_local_competitors(
    local_payload: Optional[dict],
    domain: str,
    business_name: str,
    limit: int = 5,
) -> list[Competitor]:
    """Map local-finder items to competitors, excluding the business itself."""
    own_domain = normalize_domain(domain)
    own_name = business_name.strip().lower()
    competitors: list[Competitor] = []
    for item in TaskEnvelope(local_payload).items():
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        item_domain = normalize_domain(str(item.get("domain") or item.get("url") or ""))
        if own_domain and _domains_match(item_domain, own_domain):
            continue
        if own_name and title.lower() == own_name:
            continue
        rating: Any = item.get("rating")
        competitors.append(
            Competitor(
                name=title,
                domain=item_domain or None,
                address=item.get("address") or None,
                rating=safe_float(rating.get("value")) if isinstance(rating, dict) else 0.0,
                reviews_count=safe_int(rating.get("votes_count")) if isinstance(rating, dict) else 0,
            )
        )
        if len(competitors) >= limit:
            break
    logger.debug("Found %d local competitors for %s", len(competitors), own_domain)
    return competitors
