"""
AI creative insights schemas: the portfolio summary sent to the model and its response.
"""
from pydantic import Field
from typing import Any, Dict, List, Optional

from .common import CamelModel


# ==================== Summary Schemas ====================

class StageScores(CamelModel):
    hook: Optional[float] = None
    hold: Optional[float] = None
    click: Optional[float] = None
    convert: Optional[float] = None


class ScoreDistributions(CamelModel):
    """Counts per score range [0-24, 25-49, 50-74, 75-100]."""
    hook: List[int] = Field(default_factory=lambda: [0, 0, 0, 0])
    hold: List[int] = Field(default_factory=lambda: [0, 0, 0, 0])
    click: List[int] = Field(default_factory=lambda: [0, 0, 0, 0])
    convert: List[int] = Field(default_factory=lambda: [0, 0, 0, 0])


class PerformerData(CamelModel):
    name: str
    score: int
    spend: float


class StagePerformers(CamelModel):
    hook: List[PerformerData] = Field(default_factory=list)
    hold: List[PerformerData] = Field(default_factory=list)
    click: List[PerformerData] = Field(default_factory=list)
    convert: List[PerformerData] = Field(default_factory=list)


class CopyHighlight(CamelModel):
    text: str
    roas: float
    spend: float


class CopyInsights(CamelModel):
    total_variations: int = 0
    top_headline: Optional[CopyHighlight] = None
    top_primary_text: Optional[CopyHighlight] = None


class FatigueBreakdown(CamelModel):
    healthy: int = 0
    warning: int = 0
    fatiguing: int = 0
    fatigued: int = 0


class CreativeInsightsSummary(CamelModel):
    total_assets: int = 0
    video_count: int = 0
    image_count: int = 0
    total_spend: float = 0
    total_revenue: float = 0
    avg_scores: StageScores = Field(default_factory=StageScores)
    score_distributions: ScoreDistributions = Field(default_factory=ScoreDistributions)
    top_performers: StagePerformers = Field(default_factory=StagePerformers)
    bottom_performers: StagePerformers = Field(default_factory=StagePerformers)
    copy_insights: CopyInsights = Field(default_factory=CopyInsights)
    active_ads_count: int = 0
    fatigue_breakdown: FatigueBreakdown = Field(default_factory=FatigueBreakdown)


class CreativeInsightsRequest(CamelModel):
    user_id: Optional[str] = None
    ad_account_id: Optional[str] = None
    summary: Optional[CreativeInsightsSummary] = None


# ==================== Response Schemas ====================

class CreativeInsightsResponse(CamelModel):
    """Either parsed `insights` or the `raw` model text when it wasn't valid JSON."""
    insights: Optional[Dict[str, Any]] = None
    raw: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
