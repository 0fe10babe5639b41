"""
Creative Studio AI insights card: portfolio summary, 24h local cache and fetch.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from killscale.config import Settings, get_settings
from killscale.dashboard.api_client import KillScaleApiClient, KillScaleApiError
from killscale.dashboard.storage import JsonFileStore, KeyValueStore, TTLCache, now_ms
from killscale.utils import round_half_up

logger = logging.getLogger(__name__)

STAGES = ("hook", "hold", "click", "convert")
MIN_SPEND = 50
TOP_PERFORMER_MIN_SPEND = 50
BOTTOM_PERFORMER_MIN_SPEND = 100
BOTTOM_PERFORMER_MAX_SCORE = 50
COPY_MIN_SPEND = 50


def insights_cache_key(ad_account_id: str) -> str:
    return f"ks_creative_insights_{ad_account_id}"


def score_distribution(scores: List[float]) -> List[int]:
    """Counts per range [0-24, 25-49, 50-74, 75-100]."""
    dist = [0, 0, 0, 0]
    for score in scores:
        if score < 25:
            dist[0] += 1
        elif score < 50:
            dist[1] += 1
        elif score < 75:
            dist[2] += 1
        else:
            dist[3] += 1
    return dist


def _performer(asset: Dict[str, Any], score_key: str) -> Dict[str, Any]:
    return {"name": asset.get("name") or "Untitled", "score": asset[score_key], "spend": asset["spend"]}


def _top_copy(variations: List[Dict[str, Any]], text_key: str) -> Optional[Dict[str, Any]]:
    candidates = [v for v in variations if v.get(text_key)]
    if not candidates:
        return None
    best = sorted(candidates, key=lambda v: -v["roas"])[0]
    return {"text": best[text_key], "roas": best["roas"], "spend": best["spend"]}


def build_summary(
    assets: List[Dict[str, Any]],
    copy_variations: List[Dict[str, Any]],
    active_ads_count: int,
) -> Dict[str, Any]:
    """
    Condense Creative Studio assets into the summary the insights endpoint expects.

    Args:
        assets: StudioAsset dicts as served by /api/creative-studio/media
        copy_variations: Copy variations with headline/primaryText, roas and spend
        active_ads_count: Number of active ads in the account

    Returns:
        camelCase summary dict
    """
    with_data = [a for a in assets if a.get("hasPerformanceData")]

    avg_scores: Dict[str, Optional[int]] = {}
    distributions: Dict[str, List[int]] = {}
    top_performers: Dict[str, List[Dict[str, Any]]] = {}
    bottom_performers: Dict[str, List[Dict[str, Any]]] = {}
    for stage in STAGES:
        key = f"{stage}Score"
        scored = [a for a in with_data if a.get(key) is not None]
        scores = [a[key] for a in scored]
        avg_scores[stage] = round_half_up(sum(scores) / len(scores)) if scores else None
        distributions[stage] = score_distribution(scores)

        top = [a for a in scored if a["spend"] >= TOP_PERFORMER_MIN_SPEND]
        top_performers[stage] = [_performer(a, key) for a in sorted(top, key=lambda a: -a[key])[:3]]

        # High spend with a low score: the biggest opportunities
        bottom = [
            a for a in scored
            if a["spend"] >= BOTTOM_PERFORMER_MIN_SPEND and a[key] < BOTTOM_PERFORMER_MAX_SCORE
        ]
        bottom_performers[stage] = [_performer(a, key) for a in sorted(bottom, key=lambda a: -a["spend"])[:3]]

    copy_with_spend = [c for c in copy_variations if c.get("spend", 0) >= COPY_MIN_SPEND]

    def count_status(*statuses: str) -> int:
        return sum(1 for a in with_data if a.get("fatigueStatus") in statuses)

    return {
        "totalAssets": len(assets),
        "videoCount": sum(1 for a in assets if a.get("mediaType") == "video"),
        "imageCount": sum(1 for a in assets if a.get("mediaType") == "image"),
        "totalSpend": round_half_up(sum(a.get("spend", 0) for a in with_data), 2),
        "totalRevenue": round_half_up(sum(a.get("revenue", 0) for a in with_data), 2),
        "avgScores": avg_scores,
        "scoreDistributions": distributions,
        "topPerformers": top_performers,
        "bottomPerformers": bottom_performers,
        "copyInsights": {
            "totalVariations": len(copy_variations),
            "topHeadline": _top_copy(copy_with_spend, "headline"),
            "topPrimaryText": _top_copy(copy_with_spend, "primaryText"),
        },
        "activeAdsCount": active_ads_count,
        "fatigueBreakdown": {
            "healthy": count_status("healthy", "fresh"),
            "warning": count_status("warning"),
            "fatiguing": count_status("fatiguing"),
            "fatigued": count_status("fatigued"),
        },
    }


def has_enough_data(assets: List[Dict[str, Any]], summary: Dict[str, Any]) -> bool:
    return bool(assets) and summary["totalSpend"] >= MIN_SPEND


class CreativeInsightsCard:
    """
    Loads AI insights for one ad account, serving them from the local store for 24 hours.

    After `load()` or `refresh()`, exactly one of `insights` / `error` is set
    (both stay None when there was not enough data to ask).
    """

    def __init__(
        self,
        api: KillScaleApiClient,
        ad_account_id: str,
        settings: Optional[Settings] = None,
        local_store: Optional[KeyValueStore] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.api = api
        self.ad_account_id = ad_account_id
        self.settings = settings or get_settings()
        self.cache = TTLCache(
            local_store or JsonFileStore(self.settings.local_store_path),
            ttl_seconds=self.settings.insights_cache_ttl_seconds,
            payload_key="insights",
            clock=clock,
            expire_at_ttl=True,
        )
        self.insights: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None

    @property
    def cache_key(self) -> str:
        return insights_cache_key(self.ad_account_id)

    async def load(
        self,
        assets: List[Dict[str, Any]],
        copy_variations: List[Dict[str, Any]],
        active_ads_count: int = 0,
    ) -> Optional[Dict[str, Any]]:
        cached = self.cache.get(self.cache_key)
        if cached:
            self.insights = cached
            self.error = None
            return cached
        return await self.fetch(assets, copy_variations, active_ads_count)

    async def refresh(
        self,
        assets: List[Dict[str, Any]],
        copy_variations: List[Dict[str, Any]],
        active_ads_count: int = 0,
    ) -> Optional[Dict[str, Any]]:
        self.cache.remove(self.cache_key)
        return await self.fetch(assets, copy_variations, active_ads_count)

    async def fetch(
        self,
        assets: List[Dict[str, Any]],
        copy_variations: List[Dict[str, Any]],
        active_ads_count: int = 0,
    ) -> Optional[Dict[str, Any]]:
        summary = build_summary(assets, copy_variations, active_ads_count)
        if not has_enough_data(assets, summary):
            return None

        self.error = None
        try:
            data = await self.api.creative_insights(self.ad_account_id, summary)
        except KillScaleApiError as e:
            if e.status_code == 403:
                self.error = e.message or "Pro plan required"
            else:
                self.error = e.message or "Failed to fetch insights"
            return None
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch creative insights: {e}")
            self.error = "Failed to connect to AI service"
            return None

        insights = data.get("insights")
        if not insights:
            self.error = "Invalid response from AI"
            return None

        self.insights = insights
        self.cache.set(self.cache_key, insights)
        return insights
