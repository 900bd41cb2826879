"""Lead-scoring workflow: resolve, collect, score and persist."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional

from leadscore.integrations.dataforseo import DataForSEOClient
from leadscore.integrations.page_fetcher import PageFetcher
from leadscore.modules.location import LocationMatch, LocationResolver
from leadscore.modules.scoring import LeadRequest, RawMetricBundle, ScoringEngine
from leadscore.modules.scoring.extractors import extract_ad_count
from leadscore.modules.scoring.payloads import SOURCE_NAMES, TaskEnvelope
from leadscore.modules.site_signals import (
    SiteSignals,
    detect_analytics,
    detect_schemas,
    filter_local_competitors,
    find_advertiser_for_domain,
    find_serp_position,
    speed_score_from_vitals,
)
from leadscore.modules.site_signals.models import AnalyticsFlags, SchemaFlags
from leadscore.utils.helpers import normalize_domain, to_website_url
from leadscore.utils.validators import validate_domain

logger = logging.getLogger(__name__)


def page_timing_speed(payload: Optional[dict]) -> Optional[int]:
    """Speed score from an on-page instant payload's ``page_timing`` block."""
    timing = TaskEnvelope(payload).first_item().get("page_timing")
    return speed_score_from_vitals(timing if isinstance(timing, dict) else None)


class LeadScoringWorkflow:
    """Orchestrate one lead-scoring run.

    Every upstream call is isolated: a failing source is logged, recorded
    in ``failed_sources`` and scored as "no data" without aborting the run.

    Usage::

        workflow = LeadScoringWorkflow(client, resolver)
        result = await workflow.run_lead_scoring(
            LeadRequest("Acme Dental", "acmedental.com", "St. Louis, MO")
        )
    """

    def __init__(
        self,
        client: DataForSEOClient,
        resolver: LocationResolver,
        engine: Optional[ScoringEngine] = None,
        page_fetcher: Optional[PageFetcher] = None,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._engine = engine or ScoringEngine()
        self._page_fetcher = page_fetcher or PageFetcher()
        self._pipeline_status: dict[str, Any] = {}

    def _log_step(
        self,
        pipeline: str,
        step: int,
        total: int,
        description: str,
        status: str = "running",
    ) -> None:
        """Log and record a pipeline step transition."""
        msg = f"[{pipeline}] Step {step}/{total}: {description} ({status})"
        if status == "error":
            logger.error(msg)
        else:
            logger.info(msg)
        self._pipeline_status[pipeline] = {
            "current_step": step,
            "total_steps": total,
            "description": description,
            "status": status,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def get_pipeline_status(self, pipeline: Optional[str] = None) -> dict[str, Any]:
        if pipeline:
            return self._pipeline_status.get(pipeline, {})
        return dict(self._pipeline_status)

    async def close(self) -> None:
        await self._client.close()
        await self._page_fetcher.close()

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    async def collect_bundle(self, request: LeadRequest, location: LocationMatch) -> RawMetricBundle:
        """Fetch every scoring source concurrently.

        Returns:
            A RawMetricBundle where each failed source is ``None`` and listed
            in ``failed_sources``.
        """
        domain = normalize_domain(request.domain)
        client = self._client
        calls: dict[str, Awaitable[dict]] = {
            "business_listings": client.business_listings(request.business_name, location.code),
            "business_info": client.my_business_info(request.business_name, location.name),
            "reviews": client.reviews(request.business_name, location.name),
            "ranked_keywords": client.ranked_keywords(domain, location.name),
            "traffic": client.bulk_traffic_estimation(domain, location.name),
            "on_page": client.on_page_instant(to_website_url(domain), preset="desktop"),
            "backlinks": client.backlinks(domain),
            "ads_search": client.ads_search(domain, location.code),
            "ads_advertisers": client.ads_advertisers(request.primary_keyword, location.code),
        }
        if not domain:
            for name in ("ranked_keywords", "traffic", "on_page", "backlinks", "ads_search"):
                calls.pop(name).close()
        results = await asyncio.gather(*calls.values(), return_exceptions=True)

        payloads: dict[str, Any] = {}
        failed: set[str] = set()
        for name, result in zip(calls.keys(), results):
            if isinstance(result, BaseException):
                logger.error("Source %s failed for %s: %s", name, domain, result)
                failed.add(name)
                payloads[name] = None
            else:
                payloads[name] = result if isinstance(result, dict) else None

        logger.info(
            "Collected %d/%d sources for %s",
            len(SOURCE_NAMES) - len(failed), len(SOURCE_NAMES), domain,
        )
        return RawMetricBundle(**payloads, failed_sources=frozenset(failed))

    async def collect_signals(
        self,
        request: LeadRequest,
        location: LocationMatch,
        bundle: RawMetricBundle,
    ) -> SiteSignals:
        """Gather SERP position, homepage markup, speed, PPC status and competitors.

        The desktop speed score and the advertiser lookup reuse payloads
        already present in *bundle*; each remaining step degrades to
        "not detected" on failure.
        """
        domain = normalize_domain(request.domain)
        url = to_website_url(domain)
        keyword = request.primary_keyword

        serp, html, mobile, local = await asyncio.gather(
            self._client.serp_organic(keyword, location.code),
            self._page_fetcher.fetch(url),
            self._client.on_page_instant(url, preset="mobile"),
            self._client.local_finder(keyword, location.code),
            return_exceptions=True,
        )
        for name, result in (("serp", serp), ("html", html), ("mobile_speed", mobile), ("local_finder", local)):
            if isinstance(result, BaseException):
                logger.error("Signal %s failed for %s: %s", name, domain, result)

        schemas, analytics = SchemaFlags(), AnalyticsFlags()
        if isinstance(html, str):
            schemas = detect_schemas(html)
            analytics = detect_analytics(html)

        advertiser_id = find_advertiser_for_domain(bundle.ads_advertisers, domain)
        running_ads = advertiser_id is not None or extract_ad_count(bundle) > 0

        return SiteSignals(
            serp_position=find_serp_position(serp if isinstance(serp, dict) else None, domain),
            schemas=schemas,
            analytics=analytics,
            speed_desktop=page_timing_speed(bundle.on_page),
            speed_mobile=page_timing_speed(mobile if isinstance(mobile, dict) else None),
            running_ads=running_ads,
            advertiser_id=advertiser_id,
            competitors=tuple(
                filter_local_competitors(
                    local if isinstance(local, dict) else None, domain, request.business_name
                )
            ),
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run_lead_scoring(
        self,
        request: LeadRequest,
        persist: bool = True,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Resolve the location, collect payloads and signals, score and persist.

        Steps:
            1. Location resolution
            2. Source collection
            3. Website signals
            4. Scoring
            5. Persistence (optional)

        Raises:
            TypeError: If *request* is not a LeadRequest.
            ValueError: If the domain is not a valid domain name.
            RuntimeError: If the DataForSEO client has no credentials.
        """
        if not isinstance(request, LeadRequest):
            raise TypeError(f"request must be a LeadRequest, got {type(request).__name__}")
        if request.domain.strip():
            ok, err = validate_domain(request.domain)
            if not ok:
                raise ValueError(f"Invalid domain {request.domain!r}: {err}")
        if not self._client.has_credentials:
            raise RuntimeError("DataForSEO credentials are not configured")

        pipeline = "lead_scoring"
        total = 5 if persist else 4
        results: dict[str, Any] = {
            "business_name": request.business_name,
            "domain": request.domain,
            "location": request.location,
            "steps": {},
        }
        started = time.time()

        self._log_step(pipeline, 1, total, "Location resolution")
        location = self._resolver.resolve(request.location)
        results["steps"]["location"] = {
            "status": "success",
            "code": location.code,
            "name": location.name,
            "score": location.score,
        }
        self._log_step(pipeline, 1, total, "Location resolution", "done")

        self._log_step(pipeline, 2, total, "Source collection")
        bundle = await self.collect_bundle(request, location)
        results["steps"]["collection"] = {
            "status": "success" if not bundle.failed_sources else "partial",
            "available": bundle.available_sources,
            "failed": sorted(bundle.failed_sources),
        }
        self._log_step(pipeline, 2, total, "Source collection", "done")

        self._log_step(pipeline, 3, total, "Website signals")
        if request.domain.strip():
            signals = await self.collect_signals(request, location, bundle)
        else:
            signals = SiteSignals(running_ads=extract_ad_count(bundle) > 0)
        results["steps"]["signals"] = {"status": "success", "data": signals.to_dict()}
        self._log_step(pipeline, 3, total, "Website signals", "done")

        self._log_step(pipeline, 4, total, "Scoring")
        report = self._engine.score(request, bundle, signals=signals, now=now, location_code=location.code)
        results["report"] = report.to_dict()
        results["steps"]["scoring"] = {"status": "success", "lead_score": report.lead_score}
        self._log_step(pipeline, 4, total, "Scoring", "done")

        if persist:
            self._log_step(pipeline, 5, total, "Persistence")
            try:
                from leadscore.history import save_report
                record_id = save_report(report)
                results["steps"]["persistence"] = {"status": "success", "record_id": record_id}
                self._log_step(pipeline, 5, total, "Persistence", "done")
            except Exception as exc:
                logger.exception("Persisting report failed: %s", exc)
                results["steps"]["persistence"] = {"status": "error", "error": str(exc)}
                self._log_step(pipeline, 5, total, "Persistence", "error")

        results["duration_seconds"] = round(time.time() - started, 2)
        logger.info(
            "Lead scoring for %s finished in %.2fs: lead=%d",
            request.domain or request.business_name,
            results["duration_seconds"],
            report.lead_score,
        )
        return results
