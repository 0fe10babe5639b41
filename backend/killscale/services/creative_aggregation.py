"""
Creative Studio aggregation: merge media inventory with synced ad performance.

One StudioAsset per media hash. Meta assigns derivative video ids per
placement, so ad_data rows are mapped back to the inventory hash through
their creative_id before summing.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from killscale.schemas.creative_studio import (
    AssetAd,
    AssetMedia,
    AudiencePerformance,
    CopyVariation,
    DailyMetrics,
    HierarchyAd,
    HierarchyAdset,
    HierarchyCampaign,
    PeriodMetrics,
    StudioAsset,
    StudioAssetDetail,
)
from killscale.services.creative_scores import (
    calculate_composite_scores,
    calculate_fatigue_score,
    classify_audience_fatigue,
)
from killscale.utils import round_half_up, safe_float, safe_int, to_iso_date

logger = logging.getLogger(__name__)

FATIGUE_WINDOW_DAYS = 7


@dataclass
class _DailyPoint:
    date: date
    spend: float
    revenue: float
    impressions: int
    clicks: int


@dataclass
class HashAggregate:
    """Running totals for every ad_data row that resolves to one media hash."""
    first_date: date
    last_date: date
    ad_ids: Set[str] = field(default_factory=set)
    adset_ids: Set[str] = field(default_factory=set)
    campaign_ids: Set[str] = field(default_factory=set)
    spend: float = 0.0
    revenue: float = 0.0
    impressions: int = 0
    clicks: int = 0
    daily: List[_DailyPoint] = field(default_factory=list)
    video_views: int = 0
    video_thruplay: int = 0
    video_p100: int = 0
    video_plays: int = 0
    outbound_clicks: int = 0
    avg_time_weighted_sum: float = 0.0
    avg_time_weight: int = 0
    has_video_data: bool = False

    @classmethod
    def for_row(cls, row) -> "HashAggregate":
        return cls(first_date=row.date_start, last_date=row.date_end or row.date_start)

    def add_row(self, row) -> None:
        spend = safe_float(row.spend)
        revenue = safe_float(row.revenue)
        impressions = safe_int(row.impressions)
        clicks = safe_int(row.clicks)

        self.spend += spend
        self.revenue += revenue
        self.impressions += impressions
        self.clicks += clicks

        if row.ad_id:
            self.ad_ids.add(row.ad_id)
        if row.adset_id:
            self.adset_ids.add(row.adset_id)
        if row.campaign_id:
            self.campaign_ids.add(row.campaign_id)

        if row.video_views:
            self.video_views += row.video_views
            self.has_video_data = True
        self.video_thruplay += safe_int(row.video_thruplay)
        self.video_p100 += safe_int(row.video_p100)
        self.video_plays += safe_int(row.video_plays)
        self.outbound_clicks += safe_int(row.outbound_clicks)
        if row.video_avg_time_watched and impressions:
            self.avg_time_weighted_sum += safe_float(row.video_avg_time_watched) * impressions
            self.avg_time_weight += impressions

        row_end = row.date_end or row.date_start
        if row.date_start < self.first_date:
            self.first_date = row.date_start
        if row_end > self.last_date:
            self.last_date = row_end

        self.daily.append(_DailyPoint(row.date_start, spend, revenue, impressions, clicks))

    def merge(self, other: "HashAggregate") -> None:
        self.spend += other.spend
        self.revenue += other.revenue
        self.impressions += other.impressions
        self.clicks += other.clicks
        self.ad_ids |= other.ad_ids
        self.adset_ids |= other.adset_ids
        self.campaign_ids |= other.campaign_ids
        self.video_views += other.video_views
        self.video_thruplay += other.video_thruplay
        self.video_p100 += other.video_p100
        self.video_plays += other.video_plays
        self.outbound_clicks += other.outbound_clicks
        self.avg_time_weighted_sum += other.avg_time_weighted_sum
        self.avg_time_weight += other.avg_time_weight
        self.has_video_data = self.has_video_data or other.has_video_data
        self.first_date = min(self.first_date, other.first_date)
        self.last_date = max(self.last_date, other.last_date)
        self.daily.extend(other.daily)


# ==================== Hash Resolution ====================

def build_derivative_map(
    lineage: Iterable[Tuple[Optional[str], Optional[str]]],
    inventory_hashes: Set[str],
) -> Dict[str, str]:
    """
    Map derivative media hashes to the inventory hash sharing a creative.

    Args:
        lineage: (creative_id, media_hash) pairs
        inventory_hashes: Hashes present in the media library

    Returns:
        derivative hash -> inventory hash
    """
    creative_hashes: Dict[str, List[str]] = {}
    for creative_id, media_hash in lineage:
        if not creative_id or not media_hash:
            continue
        hashes = creative_hashes.setdefault(creative_id, [])
        if media_hash not in hashes:
            hashes.append(media_hash)

    derivative_to_original: Dict[str, str] = {}
    for hashes in creative_hashes.values():
        original = next((h for h in hashes if h in inventory_hashes), None)
        if original is None:
            continue
        for media_hash in hashes:
            if media_hash != original:
                derivative_to_original[media_hash] = original
    return derivative_to_original


def aggregate_by_media_hash(
    ad_rows: Sequence[Any],
    inventory_hashes: Set[str],
    lineage_rows: Optional[Sequence[Any]] = None,
) -> Dict[str, HashAggregate]:
    """
    Sum ad_data rows per resolved media hash.

    lineage_rows are extra (creative_id, media_hash) rows outside the reporting
    window; they only widen derivative matching.
    """
    creative_to_hash: Dict[str, str] = {}
    for row in ad_rows:
        if row.creative_id and row.media_hash and row.creative_id not in creative_to_hash:
            creative_to_hash[row.creative_id] = row.media_hash

    lineage = [(row.creative_id, row.media_hash) for row in ad_rows]
    if lineage_rows:
        lineage.extend((row.creative_id, row.media_hash) for row in lineage_rows)
    derivative_to_original = build_derivative_map(lineage, inventory_hashes)

    aggregates: Dict[str, HashAggregate] = {}
    for row in ad_rows:
        effective_hash = row.media_hash or creative_to_hash.get(row.creative_id or "")
        if not effective_hash:
            continue
        resolved = derivative_to_original.get(effective_hash, effective_hash)
        if resolved not in aggregates:
            aggregates[resolved] = HashAggregate.for_row(row)
        aggregates[resolved].add_row(row)

    return aggregates


def attach_unmatched_videos(
    aggregates: Dict[str, HashAggregate],
    media_items: Sequence[Any],
) -> None:
    """
    Last-resort pairing for video performance that never resolved to inventory.

    Unmatched video aggregates are handed, highest spend first, to library
    videos that have no performance yet (in library order).
    """
    inventory_hashes = {item.media_hash for item in media_items}
    unmatched = [
        (media_hash, agg)
        for media_hash, agg in aggregates.items()
        if media_hash not in inventory_hashes and agg.has_video_data
    ]
    if not unmatched:
        return

    library_videos = [
        item.media_hash for item in media_items
        if item.media_type == "video" and item.media_hash not in aggregates
    ]
    unmatched.sort(key=lambda pair: pair[1].spend, reverse=True)
    for (derivative_hash, agg), target_hash in zip(unmatched, library_videos):
        logger.info(f"[Creative Studio] Pairing unmatched video {derivative_hash} with library video {target_hash}")
        aggregates[target_hash] = agg
        del aggregates[derivative_hash]


# ==================== Asset Building ====================

def _period_rates(points: Sequence[_DailyPoint]) -> Tuple[float, float, float]:
    spend = sum(p.spend for p in points)
    revenue = sum(p.revenue for p in points)
    impressions = sum(p.impressions for p in points)
    clicks = sum(p.clicks for p in points)
    roas = revenue / spend if spend > 0 else 0
    ctr = clicks / impressions * 100 if impressions > 0 else 0
    cpm = spend / impressions * 1000 if impressions > 0 else 0
    return roas, ctr, cpm


def fatigue_windows(daily: Sequence[_DailyPoint]) -> Tuple[Tuple[float, float, float], Tuple[float, float, float]]:
    """
    Early vs recent (roas, ctr, cpm).

    Needs at least a week of rows; early is the first min(7, n // 2) rows and
    recent the last 7.
    """
    points = sorted(daily, key=lambda p: p.date)
    if len(points) < FATIGUE_WINDOW_DAYS:
        return (0, 0, 0), (0, 0, 0)
    early = points[:min(FATIGUE_WINDOW_DAYS, len(points) // 2)]
    recent = points[-FATIGUE_WINDOW_DAYS:]
    return _period_rates(early), _period_rates(recent)


def build_asset(item, perf: Optional[HashAggregate], is_starred: bool = False) -> StudioAsset:
    """Build one StudioAsset from a media library item and its aggregated performance."""
    is_video = item.media_type == "video"
    asset = StudioAsset(
        id=str(item.id),
        media_hash=item.media_hash,
        media_type=item.media_type,
        name=item.name,
        image_url=item.url if item.media_type == "image" else None,
        thumbnail_url=item.video_thumbnail_url if is_video else None,
        storage_url=item.storage_url,
        width=item.width,
        height=item.height,
        file_size=item.file_size_bytes,
        download_status=item.download_status,
        synced_at=item.synced_at,
        is_starred=is_starred,
    )

    if perf is not None:
        spend, revenue = perf.spend, perf.revenue
        impressions, clicks = perf.impressions, perf.clicks

        asset.has_performance_data = spend > 0
        asset.spend = spend
        asset.revenue = revenue
        asset.impressions = impressions
        asset.clicks = clicks
        asset.ad_count = len(perf.ad_ids)
        asset.adset_count = len(perf.adset_ids)
        asset.campaign_count = len(perf.campaign_ids)
        asset.first_seen = to_iso_date(perf.first_date)
        asset.last_seen = to_iso_date(perf.last_date)

        asset.roas = round_half_up(revenue / spend, 2) if spend > 0 else 0
        asset.ctr = round_half_up(clicks / impressions * 100, 4) if impressions > 0 else 0
        asset.cpm = round_half_up(spend / impressions * 1000, 2) if impressions > 0 else 0
        asset.cpc = round_half_up(spend / clicks, 2) if clicks > 0 else 0
        asset.days_active = max(1, (perf.last_date - perf.first_date).days)

        if perf.has_video_data:
            asset.video_views = perf.video_views
            asset.video_thruplay = perf.video_thruplay
            asset.video_p100 = perf.video_p100
            asset.video_plays = perf.video_plays
            asset.outbound_clicks = perf.outbound_clicks or None
            if perf.avg_time_weight > 0:
                asset.avg_watch_time = round_half_up(perf.avg_time_weighted_sum / perf.avg_time_weight, 2)
            if impressions > 0:
                asset.thumbstop_rate = round_half_up(perf.video_views / impressions * 100, 2)
                asset.completion_rate = round_half_up(perf.video_p100 / impressions * 100, 2)
            if perf.video_views > 0:
                asset.hold_rate = round_half_up(perf.video_thruplay / perf.video_views * 100, 2)

        (early_roas, early_ctr, early_cpm), (recent_roas, recent_ctr, recent_cpm) = fatigue_windows(perf.daily)
        fatigue = calculate_fatigue_score(
            early_roas, recent_roas, early_ctr, recent_ctr, early_cpm, recent_cpm, asset.days_active
        )
        asset.fatigue_score = fatigue.score
        asset.fatigue_status = fatigue.status

    scores = calculate_composite_scores(
        asset.spend,
        asset.roas,
        asset.ctr,
        asset.cpc,
        asset.impressions,
        is_video,
        asset.thumbstop_rate,
        asset.hold_rate,
        asset.completion_rate,
    )
    asset.hook_score = scores.hook_score
    asset.hold_score = scores.hold_score
    asset.click_score = scores.click_score
    asset.convert_score = scores.convert_score
    return asset


def build_studio_assets(
    media_items: Sequence[Any],
    ad_rows: Sequence[Any],
    starred_hashes: Iterable[str] = (),
    lineage_rows: Optional[Sequence[Any]] = None,
) -> List[StudioAsset]:
    """
    Merge media library inventory with ad performance.

    Args:
        media_items: MediaLibraryItem rows (inventory source of truth)
        ad_rows: AdData rows for the account and reporting window
        starred_hashes: Media hashes the user has starred
        lineage_rows: Optional out-of-window AdData rows used only for derivative matching

    Returns:
        One StudioAsset per inventory item, in inventory order
    """
    if not media_items:
        return []

    inventory_hashes = {item.media_hash for item in media_items}
    aggregates = aggregate_by_media_hash(ad_rows, inventory_hashes, lineage_rows)
    attach_unmatched_videos(aggregates, media_items)

    starred = set(starred_hashes)
    return [
        build_asset(item, aggregates.get(item.media_hash), item.media_hash in starred)
        for item in media_items
    ]


# ==================== Filtering and Sorting ====================

def filter_assets(
    assets: List[StudioAsset],
    min_spend: float = 0,
    fatigue_status: Optional[str] = None,
    has_data: Optional[str] = None,
) -> List[StudioAsset]:
    filtered = assets
    if min_spend > 0:
        filtered = [a for a in filtered if a.spend >= min_spend]
    if fatigue_status and fatigue_status != "all":
        filtered = [a for a in filtered if a.fatigue_status == fatigue_status]
    if has_data == "with_spend":
        filtered = [a for a in filtered if a.has_performance_data]
    elif has_data == "unused":
        filtered = [a for a in filtered if not a.has_performance_data]
    return filtered


def _missing_last(value: Optional[float]) -> float:
    return -1 if value is None else value


SORT_KEYS = {
    "roas": lambda a: a.roas,
    "spend": lambda a: a.spend,
    "revenue": lambda a: a.revenue,
    "fatigue": lambda a: a.fatigue_score,
    "adCount": lambda a: a.ad_count,
    "thumbstopRate": lambda a: _missing_last(a.thumbstop_rate),
    "holdRate": lambda a: _missing_last(a.hold_rate),
    "hookScore": lambda a: _missing_last(a.hook_score),
    "fileSize": lambda a: a.file_size or 0,
    "syncedAt": lambda a: a.synced_at.isoformat() if a.synced_at else "",
    "name": lambda a: (a.name or "").lower(),
}


def sort_assets(assets: List[StudioAsset], sort_by: str = "spend", sort_order: str = "desc") -> List[StudioAsset]:
    """Stable sort; unknown keys fall back to spend."""
    key = SORT_KEYS.get(sort_by, SORT_KEYS["spend"])
    return sorted(assets, key=key, reverse=sort_order != "asc")


# ==================== Asset Detail ====================

def _sum_period(days: Sequence[DailyMetrics]) -> PeriodMetrics:
    spend = sum(d.spend for d in days)
    revenue = sum(d.revenue for d in days)
    impressions = sum(d.impressions for d in days)
    clicks = sum(d.clicks for d in days)
    video_views = 0.0
    video_thruplay = 0.0
    for d in days:
        if d.thumbstop_rate is not None and d.impressions > 0:
            views = d.thumbstop_rate / 100 * d.impressions
            video_views += views
            if d.hold_rate is not None:
                video_thruplay += d.hold_rate / 100 * views

    period = PeriodMetrics(
        roas=revenue / spend if spend > 0 else 0,
        ctr=clicks / impressions * 100 if impressions > 0 else 0,
        cpm=spend / impressions * 1000 if impressions > 0 else 0,
    )
    if video_views > 0:
        period.thumbstop_rate = video_views / impressions * 100 if impressions > 0 else 0
        period.hold_rate = video_thruplay / video_views * 100
    return period


def build_daily_metrics(rows: Sequence[Any]) -> List[DailyMetrics]:
    by_date: Dict[date, Dict[str, float]] = {}
    for row in rows:
        day = by_date.setdefault(row.date_start, {
            "spend": 0.0, "revenue": 0.0, "impressions": 0, "clicks": 0,
            "views": 0, "thruplay": 0,
        })
        day["spend"] += safe_float(row.spend)
        day["revenue"] += safe_float(row.revenue)
        day["impressions"] += safe_int(row.impressions)
        day["clicks"] += safe_int(row.clicks)
        day["views"] += safe_int(row.video_views)
        day["thruplay"] += safe_int(row.video_thruplay)

    daily = []
    for day_date in sorted(by_date):
        d = by_date[day_date]
        spend, impressions, views = d["spend"], d["impressions"], d["views"]
        daily.append(DailyMetrics(
            date=to_iso_date(day_date),
            spend=spend,
            revenue=d["revenue"],
            impressions=impressions,
            clicks=d["clicks"],
            roas=d["revenue"] / spend if spend > 0 else 0,
            ctr=d["clicks"] / impressions * 100 if impressions > 0 else 0,
            cpm=spend / impressions * 1000 if impressions > 0 else 0,
            thumbstop_rate=round_half_up(views / impressions * 100, 2) if views > 0 and impressions > 0 else None,
            hold_rate=round_half_up(d["thruplay"] / views * 100, 2) if views > 0 and d["thruplay"] > 0 else None,
        ))
    return daily


def build_audience_performance(rows: Sequence[Any], early: PeriodMetrics) -> List[AudiencePerformance]:
    adsets: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        if not row.adset_id:
            continue
        entry = adsets.setdefault(row.adset_id, {
            "name": row.adset_name or "Unknown Ad Set",
            "spend": 0.0, "revenue": 0.0, "impressions": 0, "clicks": 0,
            "first": row.date_start, "last": row.date_start,
        })
        entry["spend"] += safe_float(row.spend)
        entry["revenue"] += safe_float(row.revenue)
        entry["impressions"] += safe_int(row.impressions)
        entry["clicks"] += safe_int(row.clicks)
        entry["first"] = min(entry["first"], row.date_start)
        entry["last"] = max(entry["last"], row.date_start)

    audiences = []
    for adset_id, entry in adsets.items():
        roas = entry["revenue"] / entry["spend"] if entry["spend"] > 0 else 0
        ctr = entry["clicks"] / entry["impressions"] * 100 if entry["impressions"] > 0 else 0
        days_active = (entry["last"] - entry["first"]).days + 1
        roas_decline = max(0, (early.roas - roas) / early.roas) if early.roas > 0 else 0
        ctr_decline = max(0, (early.ctr - ctr) / early.ctr) if early.ctr > 0 else 0
        audiences.append(AudiencePerformance(
            adset_id=adset_id,
            adset_name=entry["name"],
            spend=entry["spend"],
            revenue=entry["revenue"],
            roas=roas,
            fatigue_status=classify_audience_fatigue(days_active, roas_decline, ctr_decline),
        ))
    audiences.sort(key=lambda a: a.spend, reverse=True)
    return audiences


def build_copy_variations(rows: Sequence[Any]) -> List[CopyVariation]:
    """Group spend by (headline, primary text) pair."""
    variations: Dict[Tuple[Optional[str], Optional[str]], Dict[str, Any]] = {}
    for row in rows:
        if not row.headline and not row.primary_text:
            continue
        entry = variations.setdefault((row.headline, row.primary_text), {"spend": 0.0, "revenue": 0.0, "ads": set()})
        entry["spend"] += safe_float(row.spend)
        entry["revenue"] += safe_float(row.revenue)
        if row.ad_id:
            entry["ads"].add(row.ad_id)

    result = [
        CopyVariation(
            headline=headline,
            primary_text=primary_text,
            spend=entry["spend"],
            revenue=entry["revenue"],
            roas=entry["revenue"] / entry["spend"] if entry["spend"] > 0 else 0,
            ad_count=len(entry["ads"]),
        )
        for (headline, primary_text), entry in variations.items()
    ]
    result.sort(key=lambda v: v.spend, reverse=True)
    return result


def build_asset_hierarchy(rows: Sequence[Any]) -> List[HierarchyCampaign]:
    campaigns: Dict[str, HierarchyCampaign] = {}
    adsets: Dict[Tuple[str, str], HierarchyAdset] = {}
    seen_ads: Set[Tuple[str, str]] = set()

    for row in rows:
        if not row.campaign_id:
            continue
        campaign = campaigns.get(row.campaign_id)
        if campaign is None:
            campaign = HierarchyCampaign(
                campaign_id=row.campaign_id,
                campaign_name=row.campaign_name or row.campaign_id,
            )
            campaigns[row.campaign_id] = campaign
        if not row.adset_id:
            continue
        adset_key = (row.campaign_id, row.adset_id)
        adset = adsets.get(adset_key)
        if adset is None:
            adset = HierarchyAdset(adset_id=row.adset_id, adset_name=row.adset_name or row.adset_id)
            adsets[adset_key] = adset
            campaign.adsets.append(adset)
        if row.ad_id and (row.adset_id, row.ad_id) not in seen_ads:
            seen_ads.add((row.adset_id, row.ad_id))
            adset.ads.append(HierarchyAd(ad_id=row.ad_id, ad_name=row.ad_name or row.ad_id, status=row.status or "UNKNOWN"))

    return list(campaigns.values())


def build_asset_ads(rows: Sequence[Any]) -> List[AssetAd]:
    ads: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        if not row.ad_id:
            continue
        entry = ads.setdefault(row.ad_id, {
            "ad_name": row.ad_name or "Unknown Ad",
            "adset_name": row.adset_name or "Unknown Ad Set",
            "campaign_name": row.campaign_name or "Unknown Campaign",
            "status": row.status or "UNKNOWN",
            "spend": 0.0,
            "revenue": 0.0,
        })
        entry["spend"] += safe_float(row.spend)
        entry["revenue"] += safe_float(row.revenue)

    result = [
        AssetAd(ad_id=ad_id, roas=e["revenue"] / e["spend"] if e["spend"] > 0 else 0, **e)
        for ad_id, e in ads.items()
    ]
    result.sort(key=lambda a: a.spend, reverse=True)
    return result


def build_asset_detail(media: AssetMedia, rows: Sequence[Any], video_source: Optional[str] = None) -> StudioAssetDetail:
    """
    Drill-down for one asset: daily trend, early/late halves, per-audience fatigue.

    Args:
        media: Display fields of the asset
        rows: Every ad_data row for creatives that use the asset
        video_source: Playable video URL, when one could be resolved
    """
    daily = build_daily_metrics(rows)
    midpoint = len(daily) // 2
    early_days, recent_days = daily[:midpoint], daily[midpoint:]
    early = _sum_period(early_days) if early_days else PeriodMetrics()
    recent = _sum_period(recent_days) if recent_days else PeriodMetrics()

    audiences = build_audience_performance(rows, early)
    hierarchy = build_asset_hierarchy(rows)

    return StudioAssetDetail(
        media=media,
        daily_data=daily,
        early_period=early,
        recent_period=recent,
        audience_performance=audiences,
        copy_variations=build_copy_variations(rows),
        ads=build_asset_ads(rows),
        hierarchy=hierarchy,
        video_source=video_source,
        total_ads=len({row.ad_id for row in rows if row.ad_id}),
        total_adsets=len(audiences),
        total_campaigns=len(hierarchy),
    )
