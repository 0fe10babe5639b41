"""
Tests for Creative Studio aggregation: hash resolution, rates, fatigue windows, filters and detail.
"""
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from killscale.models import AdData, MediaLibraryItem
from killscale.schemas import AssetMedia
from killscale.services.creative_aggregation import (
    build_asset_detail,
    build_derivative_map,
    build_studio_assets,
    filter_assets,
    sort_assets,
)

ACCOUNT = "act_123"


def media(media_hash, media_type="image", name=None, synced_at=None):
    return MediaLibraryItem(
        id=uuid4(),
        user_id="user-1",
        ad_account_id="123",
        media_hash=media_hash,
        media_type=media_type,
        name=name or media_hash,
        url=f"https://cdn.example.com/{media_hash}.jpg" if media_type == "image" else None,
        synced_at=synced_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


def row(day, media_hash=None, creative_id="c1", ad_id="ad1", adset_id="as1", campaign_id="cmp1",
        spend=10.0, revenue=20.0, impressions=1000, clicks=10, **extra):
    return AdData(
        user_id="user-1",
        ad_account_id=ACCOUNT,
        date_start=day,
        date_end=day,
        media_hash=media_hash,
        creative_id=creative_id,
        ad_id=ad_id,
        ad_name=f"Ad {ad_id}",
        adset_id=adset_id,
        adset_name=f"Ad set {adset_id}",
        campaign_id=campaign_id,
        campaign_name=f"Campaign {campaign_id}",
        status="ACTIVE",
        spend=spend,
        revenue=revenue,
        impressions=impressions,
        clicks=clicks,
        **extra,
    )


START = date(2025, 3, 1)


def days(n):
    return [START + timedelta(days=i) for i in range(n)]


class TestDerivativeMap:
    def test_maps_sibling_hashes_to_inventory(self):
        lineage = [("c1", "orig"), ("c1", "deriv-a"), ("c2", "deriv-b"), ("c2", "orig")]
        mapping = build_derivative_map(lineage, {"orig"})
        assert mapping == {"deriv-a": "orig", "deriv-b": "orig"}

    def test_creative_without_inventory_hash_is_ignored(self):
        assert build_derivative_map([("c1", "x"), ("c1", "y")], {"orig"}) == {}


class TestBuildStudioAssets:
    def test_empty_library(self):
        assert build_studio_assets([], [row(START, "h1")]) == []

    def test_sums_metrics_and_derives_rates(self):
        items = [media("h1")]
        rows = [row(d, "h1", spend=25, revenue=50, impressions=1000, clicks=20) for d in days(3)]

        [asset] = build_studio_assets(items, rows)

        assert asset.has_performance_data is True
        assert asset.spend == 75
        assert asset.revenue == 150
        assert asset.roas == 2
        assert asset.ctr == 2
        assert asset.cpm == 25
        assert asset.cpc == 1.25
        assert asset.ad_count == 1
        assert asset.first_seen == "2025-03-01"
        assert asset.last_seen == "2025-03-03"
        assert asset.days_active == 2
        assert asset.click_score is not None
        assert asset.hook_score is None

    def test_unused_asset_has_no_scores(self):
        [asset] = build_studio_assets([media("h1")], [])
        assert asset.has_performance_data is False
        assert asset.spend == 0
        assert asset.convert_score is None
        assert asset.fatigue_status == "fresh"

    def test_rows_resolve_through_creative_id(self):
        """A row without a media hash inherits the hash of another row with the same creative."""
        items = [media("h1")]
        rows = [row(START, "h1", creative_id="c9"), row(START + timedelta(days=1), None, creative_id="c9", ad_id="ad2")]

        [asset] = build_studio_assets(items, rows)

        assert asset.spend == 20
        assert asset.ad_count == 2

    def test_derivative_video_hash_maps_to_library_video(self):
        items = [media("vid-orig", media_type="video")]
        rows = [
            row(START, "vid-orig", creative_id="c1", spend=10, video_views=100),
            row(START, "vid-placement", creative_id="c1", ad_id="ad2", spend=40, video_views=300),
        ]

        [asset] = build_studio_assets(items, rows)

        assert asset.spend == 50
        assert asset.video_views == 400

    def test_unmatched_video_pairs_by_spend(self):
        items = [media("lib-a", media_type="video"), media("lib-b", media_type="video")]
        rows = [
            row(START, "orphan-small", creative_id="c1", spend=5, video_views=10),
            row(START, "orphan-big", creative_id="c2", ad_id="ad2", spend=500, video_views=1000),
        ]

        assets = build_studio_assets(items, rows)

        by_hash = {a.media_hash: a for a in assets}
        assert by_hash["lib-a"].spend == 500
        assert by_hash["lib-b"].spend == 5

    def test_starred_flag(self):
        assets = build_studio_assets([media("h1"), media("h2")], [], starred_hashes={"h2"})
        assert [a.is_starred for a in assets] == [False, True]

    def test_fatigue_uses_early_and_recent_windows(self):
        """14 days: first 7 strong, last 7 weak ROAS."""
        rows = [
            row(d, "h1", spend=10, revenue=40 if i < 7 else 10)
            for i, d in enumerate(days(14))
        ]
        [asset] = build_studio_assets([media("h1")], rows)

        # ROAS 4 -> 1 is a 75% decline: 30 points + 13 days * 2 * 0.1
        assert asset.fatigue_score == pytest.approx(75 * 0.4 + 26 * 0.1)
        assert asset.fatigue_status == "healthy"

    def test_fewer_than_seven_days_only_age_counts(self):
        rows = [row(d, "h1", revenue=40 if i == 0 else 1) for i, d in enumerate(days(5))]
        [asset] = build_studio_assets([media("h1")], rows)
        assert asset.fatigue_score == pytest.approx(4 * 2 * 0.1)


class TestFilterAndSort:
    def _assets(self):
        items = [media("cheap", name="b"), media("pricey", name="A"), media("unused", name="c")]
        rows = [row(START, "cheap", spend=10, revenue=50), row(START, "pricey", creative_id="c2", spend=100, revenue=100)]
        return build_studio_assets(items, rows)

    def test_min_spend(self):
        assert [a.media_hash for a in filter_assets(self._assets(), min_spend=50)] == ["pricey"]

    def test_has_data(self):
        assets = self._assets()
        assert {a.media_hash for a in filter_assets(assets, has_data="with_spend")} == {"cheap", "pricey"}
        assert [a.media_hash for a in filter_assets(assets, has_data="unused")] == ["unused"]

    def test_fatigue_status_all_is_no_filter(self):
        assets = self._assets()
        assert len(filter_assets(assets, fatigue_status="all")) == 3
        assert filter_assets(assets, fatigue_status="fatigued") == []

    def test_sort_by_roas_desc(self):
        assert [a.media_hash for a in sort_assets(self._assets(), "roas")] == ["cheap", "pricey", "unused"]

    def test_sort_by_name_asc_is_case_insensitive(self):
        assert [a.name for a in sort_assets(self._assets(), "name", "asc")] == ["A", "b", "c"]

    def test_unknown_sort_key_falls_back_to_spend(self):
        assert sort_assets(self._assets(), "bogus")[0].media_hash == "pricey"


class TestAssetDetail:
    def test_detail_splits_periods_and_builds_hierarchy(self):
        rows = [
            row(d, "h1", ad_id="ad1" if i % 2 == 0 else "ad2", adset_id="as1" if i < 2 else "as2",
                spend=10, revenue=30 if i < 2 else 10, headline="Buy now", primary_text="Great")
            for i, d in enumerate(days(4))
        ]
        detail = build_asset_detail(AssetMedia(media_hash="h1", media_type="image"), rows)

        assert [d.date for d in detail.daily_data] == ["2025-03-01", "2025-03-02", "2025-03-03", "2025-03-04"]
        assert detail.early_period.roas == pytest.approx(3)
        assert detail.recent_period.roas == pytest.approx(1)
        assert detail.total_ads == 2
        assert detail.total_adsets == 2
        assert detail.total_campaigns == 1
        assert [a.adset_id for a in detail.hierarchy[0].adsets] == ["as1", "as2"]
        assert len(detail.copy_variations) == 1
        assert detail.copy_variations[0].spend == 40
        assert detail.copy_variations[0].ad_count == 2

    def test_empty_rows(self):
        detail = build_asset_detail(AssetMedia(media_hash="h1", media_type="video"), [], video_source="https://v")
        assert detail.daily_data == []
        assert detail.video_source == "https://v"
        assert detail.total_ads == 0
