"""Tests for the ordered recommendation rules and pitching points."""

from leadscore.modules.scoring.calculators import SubScores, calculate_sub_scores, opportunity_score
from leadscore.modules.scoring.extractors import (
    ExtractedMetrics,
    MetricInsights,
    extract_insights,
    extract_metrics,
)
from leadscore.modules.scoring.recommendations import (
    RULES,
    RecommendationContext,
    generate_pitching_points,
    generate_recommendations,
)
from leadscore.modules.site_signals.models import AnalyticsFlags, SchemaFlags, SiteSignals


def _context(
    scores=None,
    metrics=None,
    insights=None,
    signals=None,
    running_ads=False,
):
    signals = signals or SiteSignals()
    return RecommendationContext(
        scores=scores or SubScores(),
        metrics=metrics or ExtractedMetrics(),
        insights=insights or MetricInsights(),
        signals=signals,
        opportunity=opportunity_score(signals, running_ads=running_ads),
        running_ads=running_ads,
    )


def _healthy_signals(**overrides):
    values = dict(
        serp_position=2,
        schemas=SchemaFlags(local_business=True, faq=True),
        analytics=AnalyticsFlags(google_analytics=True, facebook_pixel=True),
        speed_desktop=95,
        speed_mobile=95,
        running_ads=True,
    )
    values.update(overrides)
    return SiteSignals(**values)


# ===========================================================================
# 1. Rule list
# ===========================================================================
class TestRuleSet:
    """Structure and determinism of the rule list."""

    def test_rule_count(self):
        assert len(RULES) == 19

    def test_deterministic(self, sample_bundle, now):
        metrics = extract_metrics(sample_bundle, now)
        ctx = _context(
            scores=calculate_sub_scores(metrics),
            metrics=metrics,
            insights=extract_insights(sample_bundle),
            running_ads=True,
        )
        assert generate_recommendations(ctx) == generate_recommendations(ctx)

    def test_healthy_business_gets_no_recommendations(self):
        ctx = _context(
            scores=SubScores(presence=95, seo=90, ads_activity=80, engagement=85),
            metrics=ExtractedMetrics(nap_complete=True, review_rating=4.9, review_velocity=10),
            signals=_healthy_signals(),
            running_ads=True,
        )
        assert generate_recommendations(ctx) == []

    def test_custom_rules(self):
        ctx = _context()
        assert generate_recommendations(ctx, rules=(lambda c: "only this",)) == ["only this"]


# ===========================================================================
# 2. Baseline business
# ===========================================================================
class TestZeroBusiness:
    """A business with no data at all."""

    def test_order(self):
        recommendations = generate_recommendations(_context())
        assert recommendations == [
            "Add LocalBusiness schema markup to improve local SEO visibility",
            "Implement FAQ schema to appear in rich snippets and answer boxes",
            "Install Google Analytics 4 to track website performance and user behavior",
            "Add Facebook Pixel for better ad tracking and retargeting capabilities",
            "Complete NAP consistency: Ensure name, address, phone are identical across all platforms",
            "Increase review velocity: Implement automated review generation campaigns",
            "Improve review rating: Address common complaints and improve service quality",
            "Start running Google Ads to capture paid traffic and compete for top positions",
            "Focus on improving overall SEO health (current score: 8/100) "
            "to unlock more growth opportunities",
        ]


# ===========================================================================
# 3. Individual rules
# ===========================================================================
class TestIndividualRules:
    """Threshold gating and embedded values."""

    def test_serp_position_embedded(self):
        recs = generate_recommendations(_context(signals=_healthy_signals(serp_position=14)))
        assert any("currently #14" in r for r in recs)

    def test_serp_position_on_first_page_is_quiet(self):
        recs = generate_recommendations(_context(signals=_healthy_signals(serp_position=10)))
        assert not any("SERP position" in r for r in recs)

    def test_page_speed_embeds_both_scores(self):
        recs = generate_recommendations(
            _context(signals=_healthy_signals(speed_desktop=65, speed_mobile=None))
        )
        assert "Optimize page speed (Desktop: 65/100, Mobile: n/a/100) " \
            "to improve user experience and rankings" in recs

    def test_page_speed_unmeasured_is_quiet(self):
        recs = generate_recommendations(
            _context(signals=_healthy_signals(speed_desktop=None, speed_mobile=None))
        )
        assert not any("page speed" in r for r in recs)

    def test_tracking_rules_precede_page_speed(self):
        signals = _healthy_signals(
            analytics=AnalyticsFlags(),
            speed_desktop=50,
            speed_mobile=40,
            running_ads=False,
        )
        recs = generate_recommendations(_context(signals=signals, running_ads=False))
        ga = recs.index("Install Google Analytics 4 to track website performance and user behavior")
        pixel = recs.index("Add Facebook Pixel for better ad tracking and retargeting capabilities")
        speed = recs.index(
            "Optimize page speed (Desktop: 50/100, Mobile: 40/100) to improve user experience and rankings"
        )
        ads = recs.index("Start running Google Ads to capture paid traffic and compete for top positions")
        assert ga < pixel < speed < ads

    def test_mobile_threshold(self):
        recs = generate_recommendations(_context(signals=_healthy_signals(speed_mobile=69)))
        assert any("Mobile: 69/100" in r for r in recs)

    def test_seo_rules_gated_by_score(self):
        insights = MetricInsights(
            critical_issues=("Missing title tag",),
            keyword_gaps=("a", "b", "c", "d"),
            backlink_targets=("x.com",),
        )
        low = generate_recommendations(_context(scores=SubScores(seo=40), insights=insights))
        high = generate_recommendations(_context(scores=SubScores(seo=70), insights=insights))
        assert "Fix 1 critical on-page issues: Missing title tag" in low
        assert any(r.startswith("Target keyword gaps: a, b, c (") for r in low)
        assert any(r.startswith("Build backlinks: Focus on x.com") for r in low)
        assert not any(r.startswith(("Fix", "Target", "Build")) for r in high)

    def test_local_presence_rules_gated(self):
        metrics = ExtractedMetrics(review_rating=3.9, review_velocity=0)
        recs = generate_recommendations(_context(scores=SubScores(presence=80), metrics=metrics))
        assert not any(r.startswith(("Complete NAP", "Increase review", "Improve review")) for r in recs)

    def test_creative_gaps_require_running_ads(self):
        insights = MetricInsights(missing_creative_formats=("Image ads", "Video ads"))
        running = generate_recommendations(
            _context(insights=insights, signals=_healthy_signals(), running_ads=True)
        )
        idle = generate_recommendations(_context(insights=insights, running_ads=False))
        assert "Develop ad creatives: Image ads, Video ads (missing ad copy variations)" in running
        assert not any(r.startswith("Develop ad creatives") for r in idle)

    def test_engagement_rules_embed_counts(self):
        insights = MetricInsights(unanswered_reviews=7, negative_reviews=3)
        recs = generate_recommendations(_context(scores=SubScores(engagement=59), insights=insights))
        assert "Respond to 7 unanswered reviews: Prioritize recent negative reviews" in recs
        assert "Address service issues raised in 3 negative reviews (rated below 3 stars)" in recs

    def test_overall_embeds_opportunity_score(self):
        signals = _healthy_signals(serp_position=None, speed_desktop=None, speed_mobile=None)
        recs = generate_recommendations(_context(signals=signals, running_ads=True))
        # 10 + 10 + 10 + 5 + 15 = 50 of 100
        assert recs[-1].startswith("Focus on improving overall SEO health (current score: 50/100)")


# ===========================================================================
# 4. Sample business
# ===========================================================================
class TestSampleBusiness:
    """Full ordered output for the sample dental practice."""

    def test_sample_order(self, sample_bundle, now):
        metrics = extract_metrics(sample_bundle, now)
        ctx = _context(
            scores=calculate_sub_scores(metrics),
            metrics=metrics,
            insights=extract_insights(sample_bundle),
            running_ads=True,
        )
        recs = generate_recommendations(ctx)
        assert recs[0] == "Fix 1 critical on-page issues: Missing H1 heading"
        assert recs[1] == "Address 1 on-page warnings: Images missing alt text"
        assert "Target keyword gaps: dentist st louis, emergency dentist " \
            "(high search volume, low competition)" in recs
        assert recs.index("Respond to 2 unanswered reviews: Prioritize recent negative reviews") \
            < recs.index("Address service issues raised in 2 negative reviews (rated below 3 stars)")
        assert recs[-1].startswith("Focus on improving overall SEO health (current score: 15/100)")
        assert not any(r.startswith("Start running Google Ads") for r in recs)


# ===========================================================================
# 5. Pitching points
# ===========================================================================
class TestPitchingPoints:
    """Sales talking points."""

    def test_weak_prospect(self):
        points = generate_pitching_points(SubScores(), ExtractedMetrics(review_count=3), has_website=False)
        assert points[0].startswith("No website found")
        assert "Only 3 Google reviews: offer a review generation program" in points
        assert len(points) == 5

    def test_strong_prospect(self):
        points = generate_pitching_points(
            SubScores(presence=90, seo=80, ads_activity=70, engagement=70),
            ExtractedMetrics(review_count=300),
            has_website=True,
        )
        assert points == []
