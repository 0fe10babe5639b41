"""
Meta campaign-management schemas: bulk operations, duplication, UTM status.
"""
from pydantic import Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from .common import CamelModel


# ==================== Bulk Operation Schemas ====================

class BulkEntity(CamelModel):
    """An entity picked in the Launch page selection."""
    entity_id: str = Field(..., description="Meta campaign, ad set or ad ID")
    entity_type: str = Field(..., description="campaign, adset or ad")
    name: Optional[str] = Field(None, description="Display name, echoed back in results")


class BulkUpdateStatusRequest(CamelModel):
    user_id: Optional[str] = None
    entities: List[BulkEntity] = Field(default_factory=list)
    status: Optional[str] = Field(None, description="ACTIVE or PAUSED")


class BulkDeleteRequest(CamelModel):
    user_id: Optional[str] = None
    entities: List[BulkEntity] = Field(default_factory=list)


class BulkResultItem(CamelModel):
    entity_id: str
    name: Optional[str] = None
    success: bool
    error: Optional[str] = None


class BulkOperationResponse(CamelModel):
    """Partial-failure report shared by all bulk endpoints."""
    success: bool = Field(..., description="True only when every entity succeeded")
    total: int
    succeeded: int
    failed: int
    results: List[BulkResultItem]


class BudgetEntity(BulkEntity):
    current_budget: float = Field(..., description="Current budget in dollars")
    budget_type: str = Field(..., description="daily or lifetime")


class BulkBudgetScaleRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    entities: List[BudgetEntity] = Field(default_factory=list)
    scale_percentage: Optional[float] = Field(None, description="e.g. 20 for +20%, -10 for -10%")


class BudgetResultItem(BulkResultItem):
    old_budget: float
    new_budget: float


class BulkBudgetScaleResponse(BulkOperationResponse):
    results: List[BudgetResultItem]
    total_old_budget: float
    total_new_budget: float


# ==================== Single Entity Schemas ====================

class UpdateStatusRequest(CamelModel):
    user_id: Optional[str] = None
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    status: Optional[str] = None


class UpdateStatusResponse(CamelModel):
    success: bool
    message: str


# ==================== Duplication Schemas ====================

class TargetingOption(CamelModel):
    id: str
    name: str


class CustomTargeting(CamelModel):
    """Targeting override applied when duplicating an ad set."""
    location_type: str = Field("country", description="city or country")
    location_key: Optional[str] = None
    location_name: Optional[str] = None
    location_radius: Optional[int] = None
    countries: Optional[List[str]] = None
    age_min: int = 18
    age_max: int = 65
    targeting_mode: str = Field("broad", description="broad or custom")
    interests: Optional[List[TargetingOption]] = None
    behaviors: Optional[List[TargetingOption]] = None


class CopyOverride(CamelModel):
    primary_text: Optional[str] = None
    headline: Optional[str] = None
    description: Optional[str] = None


class DuplicateCampaignRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    source_campaign_id: Optional[str] = None
    new_name: Optional[str] = None
    copy_status: str = "PAUSED"


class DuplicateCampaignResponse(CamelModel):
    success: bool
    new_campaign_id: str
    new_campaign_name: str
    adsets_copied: int
    ads_copied: int
    errors: Optional[List[str]] = None


class DuplicateAdsetRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    source_adset_id: Optional[str] = None
    target_campaign_id: Optional[str] = Field(None, description="Defaults to the source ad set's campaign")
    new_name: Optional[str] = None
    copy_status: str = "PAUSED"
    custom_targeting: Optional[CustomTargeting] = None


class DuplicateAdsetResponse(CamelModel):
    success: bool
    new_adset_id: str
    new_adset_name: str
    ads_copied: int
    errors: Optional[List[str]] = None
    needs_sync: bool = True


class DuplicateAdRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    source_ad_id: Optional[str] = None
    target_adset_id: Optional[str] = Field(None, description="Defaults to the source ad's ad set")
    new_name: Optional[str] = None
    copy_status: str = "PAUSED"
    copy_override: Optional[CopyOverride] = None


class DuplicateAdResponse(CamelModel):
    success: bool
    new_ad_id: str
    new_ad_name: str
    needs_sync: bool = True


# ==================== Hierarchy Schemas ====================

class CampaignSummary(CamelModel):
    id: str
    name: str
    status: str
    daily_budget: Optional[float] = None
    lifetime_budget: Optional[float] = None
    objective: Optional[str] = None
    is_cbo: bool = Field(False, alias="isCBO")
    ad_set_count: int = 0
    ad_count: int = 0


class CampaignListResponse(CamelModel):
    success: bool = True
    campaigns: List[CampaignSummary]


class AdSetSummary(CamelModel):
    id: str
    name: str
    status: str
    effective_status: Optional[str] = None
    campaign_id: Optional[str] = None
    daily_budget: Optional[float] = None
    lifetime_budget: Optional[float] = None
    optimization_goal: Optional[str] = None


class AdSetListResponse(CamelModel):
    success: bool = True
    adsets: List[AdSetSummary]


class CreativeSummary(CamelModel):
    id: str
    name: Optional[str] = None
    thumbnail_url: Optional[str] = None
    image_url: Optional[str] = None
    has_creative: bool = True


class AdSummary(CamelModel):
    id: str
    name: str
    status: str
    effective_status: Optional[str] = None
    creative: Optional[CreativeSummary] = None


class AdListResponse(CamelModel):
    success: bool = True
    from_cache: bool = False
    ads: List[AdSummary]


class CustomAudience(CamelModel):
    id: str
    name: str
    subtype: Optional[str] = None
    approximate_count: Optional[int] = None
    delivery_status: Optional[Dict[str, Any]] = None


class CustomAudienceListResponse(CamelModel):
    audiences: List[CustomAudience]


# ==================== UTM Schemas ====================

class SyncUtmStatusRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    ad_ids: List[str] = Field(default_factory=list)


class SyncUtmStatusResponse(CamelModel):
    success: bool = True
    utm_status: Dict[str, bool] = Field(default_factory=dict, description="adId -> has utm_* parameters")


# ==================== Campaign Creation Schemas ====================

class CampaignCreationItem(CamelModel):
    campaign_id: str
    campaign_name: Optional[str] = None
    budget_type: Optional[str] = None
    daily_budget: Optional[float] = None
    status: Optional[str] = None
    ad_ids: Optional[List[str]] = None
    source_campaign_id: Optional[str] = None
    is_duplicate: bool = False
    activated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CampaignCreationListResponse(CamelModel):
    creations: List[CampaignCreationItem]
