"""
Creative Studio schemas: aggregated media assets, asset detail, starred media.
"""
from pydantic import Field
from typing import List, Literal, Optional
from datetime import datetime

from .common import CamelModel

FatigueStatus = Literal["fresh", "healthy", "warning", "fatiguing", "fatigued"]


# ==================== Asset Schemas ====================

class StudioAsset(CamelModel):
    """One media asset (unique media hash) with performance merged across every ad using it."""
    id: str
    media_hash: str
    media_type: Literal["image", "video"]
    name: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    storage_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    download_status: Optional[str] = None
    synced_at: Optional[datetime] = None

    # Performance
    has_performance_data: bool = False
    spend: float = 0
    revenue: float = 0
    roas: float = 0
    ctr: float = 0
    cpm: float = 0
    cpc: float = 0
    impressions: int = 0
    clicks: int = 0

    # Video
    video_views: Optional[int] = None
    video_thruplay: Optional[int] = None
    video_p100: Optional[int] = None
    avg_watch_time: Optional[float] = None
    video_plays: Optional[int] = None
    outbound_clicks: Optional[int] = None
    thumbstop_rate: Optional[float] = None
    hold_rate: Optional[float] = None
    completion_rate: Optional[float] = None

    # Scores (null below the spend threshold)
    hook_score: Optional[int] = None
    hold_score: Optional[int] = None
    click_score: Optional[int] = None
    convert_score: Optional[int] = None

    # Fatigue
    fatigue_score: float = 0
    fatigue_status: FatigueStatus = "fresh"
    days_active: int = 0
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None

    # Usage
    ad_count: int = 0
    adset_count: int = 0
    campaign_count: int = 0
    is_starred: bool = False


class StudioAssetListResponse(CamelModel):
    assets: List[StudioAsset]
    video_count: int
    image_count: int


# ==================== Asset Detail Schemas ====================

class DailyMetrics(CamelModel):
    date: str
    spend: float
    revenue: float
    roas: float
    impressions: int
    clicks: int
    ctr: float
    cpm: float
    thumbstop_rate: Optional[float] = None
    hold_rate: Optional[float] = None


class PeriodMetrics(CamelModel):
    roas: float = 0
    ctr: float = 0
    cpm: float = 0
    thumbstop_rate: Optional[float] = None
    hold_rate: Optional[float] = None


class AudiencePerformance(CamelModel):
    adset_id: str
    adset_name: str
    spend: float
    revenue: float
    roas: float
    fatigue_status: FatigueStatus


class AssetAd(CamelModel):
    ad_id: str
    ad_name: str
    adset_name: str
    campaign_name: str
    status: str
    spend: float
    revenue: float
    roas: float


class HierarchyAd(CamelModel):
    ad_id: str
    ad_name: str
    status: str


class HierarchyAdset(CamelModel):
    adset_id: str
    adset_name: str
    ads: List[HierarchyAd] = Field(default_factory=list)


class HierarchyCampaign(CamelModel):
    campaign_id: str
    campaign_name: str
    adsets: List[HierarchyAdset] = Field(default_factory=list)


class CopyVariation(CamelModel):
    headline: Optional[str] = None
    primary_text: Optional[str] = None
    spend: float = 0
    revenue: float = 0
    roas: float = 0
    ad_count: int = 0


class AssetMedia(CamelModel):
    media_hash: str
    media_type: str
    name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    storage_url: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    synced_at: Optional[datetime] = None


class StudioAssetDetail(CamelModel):
    media: AssetMedia
    daily_data: List[DailyMetrics]
    early_period: PeriodMetrics
    recent_period: PeriodMetrics
    audience_performance: List[AudiencePerformance]
    copy_variations: List[CopyVariation] = Field(default_factory=list)
    ads: List[AssetAd]
    hierarchy: List[HierarchyCampaign]
    video_source: Optional[str] = None
    total_ads: int = 0
    total_adsets: int = 0
    total_campaigns: int = 0


# ==================== Starred Media Schemas ====================

class StarredMediaItem(CamelModel):
    id: str
    user_id: str
    workspace_id: Optional[str] = None
    ad_account_id: str
    media_hash: str
    media_type: str
    thumbnail_url: Optional[str] = None
    media_name: Optional[str] = None
    starred_at: Optional[datetime] = None


class StarredMediaListResponse(CamelModel):
    starred: List[StarredMediaItem]


class StarMediaRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    workspace_id: Optional[str] = None
    media_hash: Optional[str] = None
    media_type: Optional[str] = None
    thumbnail_url: Optional[str] = None
    media_name: Optional[str] = None


class StarMediaResponse(CamelModel):
    success: bool
    is_new: bool
    message: str
    starred: Optional[StarredMediaItem] = None


class UnstarMediaRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    media_hash: Optional[str] = None
    media_hashes: Optional[List[str]] = None


class UnstarMediaResponse(CamelModel):
    success: bool
    deleted: int
    message: str
