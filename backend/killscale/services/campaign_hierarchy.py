"""
Campaign / ad set / ad hierarchy: Graph reads and the list transforms the Launch page relies on.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from killscale.models import AdData, CampaignCreation
from killscale.services.meta_graph import MetaGraphClient
from killscale.utils import cents_to_dollars, with_act_prefix

logger = logging.getLogger(__name__)

CAMPAIGN_FIELDS = "id,name,status,daily_budget,lifetime_budget,objective"
ADSET_FIELDS = "id,name,status,effective_status,campaign_id,daily_budget,lifetime_budget,optimization_goal"
AD_FIELDS = "id,name,status,effective_status,creative{id,name,thumbnail_url,image_url}"
AUDIENCE_FIELDS = "id,name,subtype,approximate_count_lower_bound,delivery_status"

LISTED_CAMPAIGN_STATUSES = ["ACTIVE", "PAUSED"]
HIDDEN_EFFECTIVE_STATUSES = {"DELETED", "ARCHIVED"}

# delivery_status codes >= 400 mean the audience can't be delivered to
AUDIENCE_UNDELIVERABLE_CODE = 400


# ==================== List Transforms ====================

def _get(item: Any, key: str, default=None):
    if isinstance(item, Mapping):
        return item.get(key, default)
    return getattr(item, key, default)


def sort_campaigns(campaigns: Iterable[Any]) -> List[Any]:
    """ACTIVE campaigns first, then alphabetical by name within equal status."""
    return sorted(
        campaigns,
        key=lambda c: (0 if _get(c, "status") == "ACTIVE" else 1, (_get(c, "name") or "").lower()),
    )


def get_budget_type(campaign: Any) -> str:
    """CBO when the budget lives on the campaign, otherwise ABO (ad set budgets)."""
    daily = _get(campaign, "daily_budget", _get(campaign, "dailyBudget"))
    lifetime = _get(campaign, "lifetime_budget", _get(campaign, "lifetimeBudget"))
    if daily is not None or lifetime is not None:
        return "CBO"
    return "ABO"


def format_objective(objective: Optional[str]) -> str:
    """OUTCOME_SALES -> Sales, LINK_CLICKS -> Link Clicks."""
    if not objective:
        return ""
    words = objective.replace("OUTCOME_", "", 1).replace("_", " ").lower().split(" ")
    return " ".join(word.capitalize() for word in words)


def filter_deliverable_audiences(audiences: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop audiences whose delivery_status.code is 400 or above."""
    deliverable = []
    for audience in audiences:
        code = (audience.get("delivery_status") or {}).get("code")
        if code is not None and int(code) >= AUDIENCE_UNDELIVERABLE_CODE:
            continue
        deliverable.append(audience)
    return deliverable


def merge_campaign_creations(
    campaigns: Iterable[Dict[str, Any]],
    creations: Iterable[Any],
) -> List[Dict[str, Any]]:
    """
    Flag campaigns that were created or duplicated through KillScale.

    Creations may be ORM rows or the camelCase dicts served by /api/campaign-creations.
    """
    by_campaign = {}
    for creation in creations:
        if isinstance(creation, CampaignCreation):
            creation = serialize_campaign_creation(creation)
        by_campaign[_get(creation, "campaignId", _get(creation, "campaign_id"))] = creation

    merged = []
    for campaign in campaigns:
        creation = by_campaign.get(campaign["id"])
        merged.append({
            **campaign,
            "isKillScaleCreated": creation is not None,
            "killScaleData": creation,
        })
    return merged


def serialize_campaign_creation(creation: CampaignCreation) -> Dict[str, Any]:
    return {
        "campaignId": creation.campaign_id,
        "budgetType": creation.budget_type,
        "dailyBudget": float(creation.daily_budget) if creation.daily_budget is not None else None,
        "status": creation.status,
        "adIds": creation.ad_ids or [],
        "sourceCampaignId": creation.source_campaign_id,
        "isDuplicate": bool(creation.is_duplicate),
        "createdAt": creation.created_at.isoformat() if creation.created_at else None,
    }


# ==================== Normalizers ====================

def normalize_campaign(raw: Dict[str, Any], counts: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    counts = counts or {}
    return {
        "id": raw["id"],
        "name": raw.get("name", ""),
        "status": raw.get("status", "UNKNOWN"),
        "daily_budget": cents_to_dollars(raw.get("daily_budget")),
        "lifetime_budget": cents_to_dollars(raw.get("lifetime_budget")),
        "objective": raw.get("objective"),
        "is_cbo": bool(raw.get("daily_budget") or raw.get("lifetime_budget")),
        "ad_set_count": counts.get("adsets", 0),
        "ad_count": counts.get("ads", 0),
    }


def normalize_adset(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": raw["id"],
        "name": raw.get("name", ""),
        "status": raw.get("status", "UNKNOWN"),
        "effective_status": raw.get("effective_status"),
        "campaign_id": raw.get("campaign_id"),
        "daily_budget": cents_to_dollars(raw.get("daily_budget")),
        "lifetime_budget": cents_to_dollars(raw.get("lifetime_budget")),
        "optimization_goal": raw.get("optimization_goal"),
    }


def normalize_ad(raw: Dict[str, Any]) -> Dict[str, Any]:
    creative = raw.get("creative")
    return {
        "id": raw["id"],
        "name": raw.get("name", ""),
        "status": raw.get("status", "UNKNOWN"),
        "effective_status": raw.get("effective_status"),
        "creative": {
            "id": creative["id"],
            "name": creative.get("name"),
            "thumbnail_url": creative.get("thumbnail_url"),
            "image_url": creative.get("image_url"),
            "has_creative": True,
        } if creative else None,
    }


def normalize_audience(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": raw["id"],
        "name": raw.get("name", ""),
        "subtype": raw.get("subtype"),
        "approximate_count": raw.get("approximate_count_lower_bound"),
        "delivery_status": raw.get("delivery_status"),
    }


def _is_visible(raw: Dict[str, Any]) -> bool:
    # Meta's filtered edges lag a few minutes behind; filter here instead
    return (raw.get("effective_status") or "") not in HIDDEN_EFFECTIVE_STATUSES


# ==================== Graph Reads ====================

def count_children(db: Session, user_id: str, ad_account_id: str, campaign_ids: List[str]) -> Dict[str, Dict[str, int]]:
    """Ad set and ad counts per campaign from synced ad_data rows."""
    if not campaign_ids:
        return {}
    rows = (
        db.query(AdData.campaign_id, AdData.adset_id, AdData.ad_id)
        .filter(
            AdData.user_id == user_id,
            AdData.ad_account_id == ad_account_id,
            AdData.campaign_id.in_(campaign_ids),
        )
        .distinct()
        .all()
    )
    adsets: Dict[str, set] = {}
    ads: Dict[str, set] = {}
    for campaign_id, adset_id, ad_id in rows:
        if adset_id:
            adsets.setdefault(campaign_id, set()).add(adset_id)
        if ad_id:
            ads.setdefault(campaign_id, set()).add(ad_id)
    return {
        campaign_id: {"adsets": len(adsets.get(campaign_id, ())), "ads": len(ads.get(campaign_id, ()))}
        for campaign_id in campaign_ids
    }


async def list_campaigns(graph: MetaGraphClient, db: Session, user_id: str, ad_account_id: str) -> List[Dict[str, Any]]:
    raw = await graph.get_edge(
        f"{with_act_prefix(ad_account_id)}/campaigns",
        CAMPAIGN_FIELDS,
        extra_params={
            "filtering": [{"field": "effective_status", "operator": "IN", "value": LISTED_CAMPAIGN_STATUSES}],
        },
    )
    counts = count_children(db, user_id, with_act_prefix(ad_account_id), [c["id"] for c in raw])
    return [normalize_campaign(c, counts.get(c["id"])) for c in raw]


async def list_adsets(graph: MetaGraphClient, campaign_id: str) -> List[Dict[str, Any]]:
    raw = await graph.get_edge(f"{campaign_id}/adsets", ADSET_FIELDS)
    return [normalize_adset(a) for a in raw if _is_visible(a)]


async def list_ads(graph: MetaGraphClient, adset_id: str) -> List[Dict[str, Any]]:
    raw = await graph.get_edge(f"{adset_id}/ads", AD_FIELDS)
    return [normalize_ad(a) for a in raw if _is_visible(a)]


def list_ads_from_sync(db: Session, user_id: str, adset_id: str, ad_account_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Fallback when the Graph API refuses: unique ads from synced rows."""
    query = db.query(AdData.ad_id, AdData.ad_name, AdData.status).filter(
        AdData.user_id == user_id,
        AdData.adset_id == adset_id,
    )
    if ad_account_id:
        query = query.filter(AdData.ad_account_id == ad_account_id)

    ads: Dict[str, Dict[str, Any]] = {}
    for ad_id, ad_name, status in query.all():
        if ad_id and ad_id not in ads:
            ads[ad_id] = {
                "id": ad_id,
                "name": ad_name or "Unknown",
                "status": status or "UNKNOWN",
                "effective_status": status or "UNKNOWN",
                "creative": None,
            }
    return list(ads.values())


async def list_custom_audiences(graph: MetaGraphClient, ad_account_id: str) -> List[Dict[str, Any]]:
    raw = await graph.get_edge(f"{with_act_prefix(ad_account_id)}/customaudiences", AUDIENCE_FIELDS, limit=500)
    return [normalize_audience(a) for a in filter_deliverable_audiences(raw)]
