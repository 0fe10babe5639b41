from .common import CamelModel
from .meta import (
    BulkEntity,
    BulkUpdateStatusRequest,
    BulkDeleteRequest,
    BulkResultItem,
    BulkOperationResponse,
    BudgetEntity,
    BulkBudgetScaleRequest,
    BudgetResultItem,
    BulkBudgetScaleResponse,
    UpdateStatusRequest,
    UpdateStatusResponse,
    TargetingOption,
    CustomTargeting,
    CopyOverride,
    DuplicateCampaignRequest,
    DuplicateCampaignResponse,
    DuplicateAdsetRequest,
    DuplicateAdsetResponse,
    DuplicateAdRequest,
    DuplicateAdResponse,
    CampaignSummary,
    CampaignListResponse,
    AdSetSummary,
    AdSetListResponse,
    CreativeSummary,
    AdSummary,
    AdListResponse,
    CustomAudience,
    CustomAudienceListResponse,
    SyncUtmStatusRequest,
    SyncUtmStatusResponse,
    CampaignCreationItem,
    CampaignCreationListResponse,
)
from .creative_studio import (
    FatigueStatus,
    StudioAsset,
    StudioAssetListResponse,
    DailyMetrics,
    PeriodMetrics,
    AudiencePerformance,
    AssetAd,
    HierarchyAd,
    HierarchyAdset,
    HierarchyCampaign,
    CopyVariation,
    AssetMedia,
    StudioAssetDetail,
    StarredMediaItem,
    StarredMediaListResponse,
    StarMediaRequest,
    StarMediaResponse,
    UnstarMediaRequest,
    UnstarMediaResponse,
)
from .insights import (
    StageScores,
    ScoreDistributions,
    PerformerData,
    StagePerformers,
    CopyHighlight,
    CopyInsights,
    FatigueBreakdown,
    CreativeInsightsSummary,
    CreativeInsightsRequest,
    CreativeInsightsResponse,
)
