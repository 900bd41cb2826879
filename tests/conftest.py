"""Shared pytest fixtures for the Lead Score Engine test suite."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure project root is on sys.path so 'leadscore' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

PROJECT_ROOT = Path(_project_root)
DATA_DIR = PROJECT_ROOT / "data"


def envelope(result=None, items=None, status_code=20000):
    """Wrap *result* (or a result holding *items*) in a DataForSEO response envelope."""
    if result is None:
        result = {}
    if items is not None:
        result = dict(result, items=items)
    return {
        "status_code": 20000,
        "tasks": [{"status_code": status_code, "result": [result]}],
    }


@pytest.fixture(autouse=True)
def _reset_db_engine():
    """Autouse fixture: reset the global DB engine before and after every test.

    This prevents cross-test pollution when tests create their own in-memory
    databases.
    """
    from leadscore.database import reset_engine
    reset_engine()
    yield
    reset_engine()


@pytest.fixture()
def test_db():
    """Provide an in-memory SQLite database with all tables created.

    Yields a database URL string. The engine is automatically torn down
    after the test by the autouse ``_reset_db_engine`` fixture.
    """
    from leadscore.database import reset_engine, init_db
    reset_engine()
    db_url = "sqlite:///:memory:"
    init_db(database_url=db_url, echo=False)
    yield db_url


@pytest.fixture()
def now():
    """Fixed reference time for review-velocity and ad-recency windows."""
    return datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture()
def make_envelope():
    """Return the envelope builder so tests can shape their own payloads."""
    return envelope


@pytest.fixture()
def sample_payloads():
    """Raw DataForSEO payloads for a well-established dental practice."""
    return {
        "business_listings": envelope(items=[{
            "title": "Acme Dental",
            "address": "100 Main St, St. Louis, MO 63101",
            "phone": "+1 314-555-0100",
            "is_claimed": True,
        }]),
        "business_info": envelope({
            "title": "Acme Dental",
            "address": "100 Main St, St. Louis, MO 63101",
            "phone": "+1 314-555-0100",
            "is_claimed": True,
            "rating": {"value": 4.6, "votes_count": 120},
        }),
        "reviews": envelope({
            "rating": {"value": 4.6},
            "reviews_count": 120,
            "items": [
                {"timestamp": "2024-05-20 10:00:00 +00:00", "rating": {"value": 5}, "owner_answer": "Thanks!"},
                {"timestamp": "2024-04-15 09:00:00 +00:00", "rating": {"value": 2}, "owner_answer": None},
                {"timestamp": "2024-01-10 09:00:00 +00:00", "rating": {"value": 4}, "owner_answer": "Thank you"},
                {"posted_time": "2024-05-30", "rating": {"value": 1}},
            ],
        }),
        "ranked_keywords": envelope(items=[
            {
                "keyword_data": {
                    "keyword": "dentist st louis",
                    "keyword_info": {"search_volume": 8000, "cpc": 1.5},
                },
                "ranked_serp_element": {"serp_item": {"rank_absolute": 14}},
            },
            {
                "keyword_data": {
                    "keyword": "teeth whitening",
                    "keyword_info": {"search_volume": 2400, "cpc": 3.1},
                },
                "ranked_serp_element": {"serp_item": {"rank_absolute": 4}},
            },
            {"keyword": "emergency dentist", "rank_absolute": 22, "search_volume": 1900, "cpc": 6.0},
        ]),
        "traffic": envelope(items=[{
            "target": "acmedental.com",
            "metrics": {"organic": {"etv": 1500}, "paid": {"etv": 300}},
        }]),
        "on_page": envelope(items=[{
            "onpage_score": 72.5,
            "checks": {"no_h1_tag": True, "no_image_alt": True, "title_too_long": False},
            "page_timing": {
                "largest_contentful_paint": 2100,
                "first_input_delay": 40,
                "cumulative_layout_shift": 0.05,
                "time_to_interactive": 1800,
            },
        }]),
        "backlinks": envelope(items=[
            {"domain_from": "stlmag.com", "domain_from_rank": 62},
            {"domain_from": "blog.example.org", "domain_from_rank": 20},
        ]),
        "ads_search": envelope(items=[
            {
                "type": "ads_search",
                "advertiser_id": "AR111",
                "creative_id": "CR1",
                "format": "text",
                "url": "acmedental.com",
                "verified": True,
                "last_shown": "2024-05-29 12:00:00 +00:00",
                "first_shown": "2024-01-02 08:00:00 +00:00",
            },
            {
                "type": "ads_search",
                "advertiser_id": "AR111",
                "creative_id": "CR2",
                "format": "image",
                "preview_image": {"url": "https://tpc.googlesyndication.com/x.png"},
                "last_shown": "2024-04-01 08:00:00 +00:00",
            },
        ]),
        "ads_advertisers": envelope(items=[{
            "type": "ads_advertiser",
            "advertiser_id": "AR111",
            "title": "Acme Dental",
            "domain": "acmedental.com",
            "approx_ads_count": 12,
            "verified": True,
            "platform": "google_search",
        }]),
    }


@pytest.fixture()
def sample_bundle(sample_payloads):
    from leadscore.modules.scoring import RawMetricBundle
    return RawMetricBundle(**sample_payloads)


@pytest.fixture()
def empty_bundle():
    from leadscore.modules.scoring import RawMetricBundle
    return RawMetricBundle()


@pytest.fixture()
def lead_request():
    from leadscore.modules.scoring import LeadRequest
    return LeadRequest("Acme Dental", "acmedental.com", "St. Louis, MO", ("dentist st louis",))


@pytest.fixture()
def resolver():
    """Resolver over the bundled US and Missouri gazetteers."""
    from leadscore.modules.location import build_resolver
    return build_resolver(DATA_DIR / "locations_us.csv", DATA_DIR / "missouri_locations.csv")


@pytest.fixture()
def settings_file(tmp_path):
    """A settings.yaml pointing at a temporary database and the bundled gazetteers."""
    import yaml
    config = {
        "app": {"name": "Lead Score Engine", "data_dir": str(tmp_path / "data")},
        "database": {"url": f"sqlite:///{tmp_path / 'leadscore.db'}", "echo": False},
        "dataforseo": {
            "base_url": "https://api.dataforseo.com/v3",
            "timeout": 5,
            "max_retries": 0,
            "rate_limits": {"requests_per_minute": 60, "requests_per_day": 1000},
        },
        "location": {
            "general_gazetteer": str(DATA_DIR / "locations_us.csv"),
            "default_code": 1016367,
            "region": {
                "name": "Missouri",
                "gazetteer": str(DATA_DIR / "missouri_locations.csv"),
                "abbreviations": ["mo"],
                "zip_range": [63001, 65899],
                "fallback_code": 1020618,
                "fallback_name": "St. Louis,Missouri,United States",
            },
        },
        "scoring": {"review_velocity_window_days": 90},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return str(path)


@pytest.fixture()
def mock_dataforseo_client(sample_payloads):
    """Return a mock DataForSEOClient whose endpoints return the sample payloads."""
    client = MagicMock()
    client.has_credentials = True
    client.business_listings = AsyncMock(return_value=sample_payloads["business_listings"])
    client.my_business_info = AsyncMock(return_value=sample_payloads["business_info"])
    client.reviews = AsyncMock(return_value=sample_payloads["reviews"])
    client.ranked_keywords = AsyncMock(return_value=sample_payloads["ranked_keywords"])
    client.bulk_traffic_estimation = AsyncMock(return_value=sample_payloads["traffic"])
    client.backlinks = AsyncMock(return_value=sample_payloads["backlinks"])
    client.ads_search = AsyncMock(return_value=sample_payloads["ads_search"])
    client.ads_advertisers = AsyncMock(return_value=sample_payloads["ads_advertisers"])
    client.on_page_instant = AsyncMock(return_value=sample_payloads["on_page"])
    client.serp_organic = AsyncMock(return_value=envelope(items=[
        {"type": "organic", "domain": "competitor.com", "rank_absolute": 1},
        {"type": "organic", "domain": "www.acmedental.com", "rank_absolute": 7},
    ]))
    client.local_finder = AsyncMock(return_value=envelope(items=[
        {"title": "Acme Dental", "domain": "acmedental.com"},
        {"title": "Gateway Smiles", "domain": "gatewaysmiles.com",
         "rating": {"value": 4.8, "votes_count": 310}},
    ]))
    client.close = AsyncMock()
    return client


@pytest.fixture()
def mock_page_fetcher():
    """Return a mock PageFetcher serving a homepage with schema and tracking tags."""
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=(
        "<html><head>"
        '<script type="application/ld+json">'
        '{"@context": "https://schema.org", "@type": "Dentist"}'
        "</script>"
        "<script>gtag('config', 'G-TEST123');</script>"
        "</head><body>Acme Dental</body></html>"
    ))
    fetcher.close = AsyncMock()
    return fetcher
