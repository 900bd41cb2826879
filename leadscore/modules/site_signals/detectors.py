"""HTML and page-timing detectors for schema markup, analytics tags and speed."""

import json
import logging
import re
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup

from leadscore.modules.site_signals.models import AnalyticsFlags, SchemaFlags
from leadscore.utils.helpers import safe_float

logger = logging.getLogger(__name__)

# @type substring -> SchemaFlags field
_SCHEMA_TYPE_MAP = {
    "localbusiness": "local_business",
    "faqpage": "faq",
    "organization": "organization",
    "breadcrumb": "breadcrumbs",
    "product": "product",
    "review": "review",
}

_GA4_RE = re.compile(r"""gtag\(\s*['"]config['"]\s*,\s*['"](G-[^'"]+)['"]""", re.I)
_UA_RE = re.compile(r"""ga\(\s*['"]create['"]\s*,\s*['"](UA-[^'"]+)['"]""", re.I)
_GAQ_RE = re.compile(r"""_gaq\.push\(\s*\[\s*['"]_?setAccount['"]\s*,\s*['"](UA-[^'"]+)['"]""", re.I)
_FBQ_RE = re.compile(r"""fbq\(\s*['"]init['"]\s*,\s*['"]([^'"]+)['"]""", re.I)


# ---------------------------------------------------------------------------
# Schema markup
# ---------------------------------------------------------------------------

def _iter_jsonld_types(node: Any) -> Iterator[str]:
    """Yield every lowercase ``@type`` value in a JSON-LD document."""
    if isinstance(node, list):
        for child in node:
            yield from _iter_jsonld_types(child)
    elif isinstance(node, dict):
        schema_type = node.get("@type")
        if isinstance(schema_type, str):
            yield schema_type.lower()
        elif isinstance(schema_type, list):
            for value in schema_type:
                if isinstance(value, str):
                    yield value.lower()
        graph = node.get("@graph")
        if graph is not None:
            yield from _iter_jsonld_types(graph)


def detect_schemas(html: str) -> SchemaFlags:
    """Detect JSON-LD and microdata schema types in *html*.

    Args:
        html: Raw page HTML.  Empty input yields all-false flags.

    Returns:
        SchemaFlags with one boolean per recognised type.
    """
    if not html:
        return SchemaFlags()

    found: dict[str, bool] = {name: False for name in _SCHEMA_TYPE_MAP.values()}
    soup = BeautifulSoup(html, "html.parser")
    for script_tag in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script_tag.string or "{}")
        except json.JSONDecodeError:
            logger.debug("Skipping unparseable JSON-LD block")
            continue
        for schema_type in _iter_jsonld_types(data):
            for needle, flag in _SCHEMA_TYPE_MAP.items():
                if needle in schema_type:
                    found[flag] = True

    lower_html = html.lower()
    if "schema.org/localbusiness" in lower_html or (
        "itemtype" in lower_html and "localbusiness" in lower_html
    ):
        found["local_business"] = True
    if "schema.org/faqpage" in lower_html or (
        "itemtype" in lower_html and "faqpage" in lower_html
    ):
        found["faq"] = True

    return SchemaFlags(**found)


# ---------------------------------------------------------------------------
# Analytics tags
# ---------------------------------------------------------------------------

def detect_analytics(html: str) -> AnalyticsFlags:
    """Detect Google Analytics and Facebook Pixel tags in *html*."""
    if not html:
        return AnalyticsFlags()

    ga_found, ga_type, ga_id = False, None, None
    match = _GA4_RE.search(html)
    if match:
        ga_found, ga_type, ga_id = True, "GA4", match.group(1)
    else:
        match = _UA_RE.search(html) or _GAQ_RE.search(html)
        if match:
            ga_found, ga_type, ga_id = True, "UA", match.group(1)
        elif "gtag/js" in html or "gtag.js" in html:
            ga_found, ga_type = True, "gtag"
        elif "analytics.js" in html or "/ga.js" in html:
            ga_found, ga_type = True, "UA"

    fb_id = None
    match = _FBQ_RE.search(html)
    if match:
        fb_id = match.group(1)
    fb_found = bool(fb_id) or "fbevents.js" in html or "facebook.com/tr" in html

    return AnalyticsFlags(
        google_analytics=ga_found,
        google_analytics_type=ga_type,
        google_analytics_id=ga_id,
        facebook_pixel=fb_found,
        facebook_pixel_id=fb_id,
    )


# ---------------------------------------------------------------------------
# Page speed
# ---------------------------------------------------------------------------

def _tier(value: float, good: float, fair: float) -> int:
    if value <= good:
        return 100
    if value <= fair:
        return 70
    return 40


def speed_score_from_vitals(timing: Optional[dict[str, Any]]) -> Optional[int]:
    """Convert Core Web Vitals page timing into a 0-100 speed score.

    LCP is weighted 0.4; FID, CLS and TTI 0.2 each.  Each metric scores
    100 / 70 / 40 for good / needs-improvement / poor.  A first-input delay
    below 1 is taken to be in seconds and converted to milliseconds.

    Returns:
        The score, or ``None`` when no timing block is available.
    """
    if not isinstance(timing, dict) or not timing:
        return None

    lcp = safe_float(timing.get("largest_contentful_paint"))
    fid = safe_float(timing.get("first_input_delay"))
    if 0 < fid < 1:
        fid *= 1000
    cls = safe_float(timing.get("cumulative_layout_shift"))
    tti = safe_float(timing.get("time_to_interactive"))

    score = (
        _tier(lcp, 2500, 4000) * 0.4
        + _tier(fid, 100, 200) * 0.2
        + _tier(cls, 0.1, 0.25) * 0.2
        + _tier(tti, 2000, 4000) * 0.2
    )
    return max(0, min(100, int(score + 0.5)))
