"""
Meta campaign management routes: hierarchy reads, status changes, bulk operations, duplication, UTM status.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from killscale.config import Settings, get_settings
from killscale.database import get_db
from killscale.dependencies import GraphFactory, get_graph_factory
from killscale.errors import HANDLED_ERRORS
from killscale.schemas import (
    AdListResponse,
    AdSetListResponse,
    BulkBudgetScaleRequest,
    BulkBudgetScaleResponse,
    BulkDeleteRequest,
    BulkOperationResponse,
    BulkUpdateStatusRequest,
    CampaignListResponse,
    CustomAudienceListResponse,
    DuplicateAdRequest,
    DuplicateAdResponse,
    DuplicateAdsetRequest,
    DuplicateAdsetResponse,
    DuplicateCampaignRequest,
    DuplicateCampaignResponse,
    SyncUtmStatusRequest,
    SyncUtmStatusResponse,
    UpdateStatusRequest,
    UpdateStatusResponse,
)
from killscale.services import campaign_hierarchy
from killscale.services.bulk_operations import ENTITY_TYPES, STATUSES, BulkOperationService
from killscale.services.connections import get_meta_connection
from killscale.services.meta_entities import MetaEntityService
from killscale.services.meta_graph import MetaGraphError
from killscale.services.utm import sync_utm_status

router = APIRouter(prefix="/api/meta", tags=["meta"])
logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields"


def _require(*values) -> None:
    if not all(values):
        raise HTTPException(status_code=400, detail=MISSING_FIELDS)


# ==================== Hierarchy ====================

@router.get("/campaigns", response_model=CampaignListResponse)
async def get_campaigns(
    userId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    db: Session = Depends(get_db),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """ACTIVE and PAUSED campaigns for an ad account, budgets in dollars."""
    _require(userId, adAccountId)
    connection = get_meta_connection(db, userId)
    try:
        async with graph_factory(connection.access_token) as graph:
            campaigns = await campaign_hierarchy.list_campaigns(graph, db, userId, adAccountId)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Fetch campaigns error")
        raise HTTPException(status_code=500, detail="Failed to fetch campaigns")
    return {"success": True, "campaigns": campaigns}


@router.get("/campaign-adsets", response_model=AdSetListResponse)
@router.get("/adsets", response_model=AdSetListResponse, include_in_schema=False)
async def get_campaign_adsets(
    userId: Optional[str] = None,
    campaignId: Optional[str] = None,
    db: Session = Depends(get_db),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """Ad sets of one campaign (DELETED / ARCHIVED hidden)."""
    _require(userId, campaignId)
    connection = get_meta_connection(db, userId)
    try:
        async with graph_factory(connection.access_token) as graph:
            adsets = await campaign_hierarchy.list_adsets(graph, campaignId)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Fetch ad sets error")
        raise HTTPException(status_code=500, detail="Failed to fetch ad sets")
    return {"success": True, "adsets": adsets}


@router.get("/ads", response_model=AdListResponse)
async def get_ads(
    userId: Optional[str] = None,
    adsetId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    db: Session = Depends(get_db),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """
    Ads of one ad set.

    When Meta refuses the read, falls back to the ads known from synced
    ad_data rows and flags the response with fromCache.
    """
    _require(userId, adsetId)
    connection = get_meta_connection(db, userId)
    try:
        async with graph_factory(connection.access_token) as graph:
            ads = await campaign_hierarchy.list_ads(graph, adsetId)
    except MetaGraphError as e:
        cached = campaign_hierarchy.list_ads_from_sync(db, userId, adsetId, adAccountId)
        if cached:
            logger.warning(f"Meta ads read failed for adset {adsetId}, serving {len(cached)} synced ads: {e.message}")
            return {"success": True, "from_cache": True, "ads": cached}
        raise
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Fetch ads error")
        raise HTTPException(status_code=500, detail="Failed to fetch ads")
    return {"success": True, "ads": ads}


@router.get("/custom-audiences", response_model=CustomAudienceListResponse)
async def get_custom_audiences(
    userId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    db: Session = Depends(get_db),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """Custom audiences usable for targeting; undeliverable ones are left out."""
    _require(userId, adAccountId)
    connection = get_meta_connection(db, userId)
    try:
        async with graph_factory(connection.access_token) as graph:
            audiences = await campaign_hierarchy.list_custom_audiences(graph, adAccountId)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Fetch custom audiences error")
        raise HTTPException(status_code=500, detail="Failed to fetch custom audiences")
    return {"audiences": audiences}


# ==================== Status ====================

@router.post("/update-status", response_model=UpdateStatusResponse)
async def update_status(
    payload: UpdateStatusRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """Pause or activate one entity, cascading to its children."""
    _require(payload.user_id, payload.entity_id, payload.entity_type, payload.status)
    if payload.entity_type not in ENTITY_TYPES:
        raise HTTPException(status_code=400, detail="Invalid entity type")
    if payload.status not in STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")

    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = MetaEntityService(graph, db, payload.user_id, settings=settings)
            message = await service.update_status(payload.entity_id, payload.entity_type, payload.status)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Update status error")
        raise HTTPException(status_code=500, detail="Failed to update status")
    return {"success": True, "message": message}


# ==================== Bulk Operations ====================

@router.post("/bulk-update-status", response_model=BulkOperationResponse)
async def bulk_update_status(
    payload: BulkUpdateStatusRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    _require(payload.user_id, payload.entities)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = BulkOperationService(graph, db, payload.user_id, settings=settings)
            return await service.update_status(payload.entities, payload.status)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Bulk update status error")
        raise HTTPException(status_code=500, detail="Failed to update status")


@router.post("/bulk-delete", response_model=BulkOperationResponse)
async def bulk_delete(
    payload: BulkDeleteRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    _require(payload.user_id, payload.entities)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = BulkOperationService(graph, db, payload.user_id, settings=settings)
            return await service.delete(payload.entities)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Bulk delete error")
        raise HTTPException(status_code=500, detail="Failed to delete")


@router.post("/bulk-budget-scale", response_model=BulkBudgetScaleResponse)
async def bulk_budget_scale(
    payload: BulkBudgetScaleRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    _require(payload.user_id, payload.ad_account_id, payload.entities)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = BulkOperationService(graph, db, payload.user_id, settings=settings)
            return await service.scale_budgets(
                payload.entities, payload.scale_percentage, ad_account_id=payload.ad_account_id
            )
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Bulk budget scale error")
        raise HTTPException(status_code=500, detail="Failed to scale budgets")


# ==================== Duplication ====================

@router.post("/duplicate-campaign", response_model=DuplicateCampaignResponse, response_model_exclude_none=True)
async def duplicate_campaign(
    payload: DuplicateCampaignRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """Copy a campaign with all of its ad sets and ads."""
    _require(payload.user_id, payload.ad_account_id, payload.source_campaign_id)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = MetaEntityService(graph, db, payload.user_id, settings=settings)
            return await service.duplicate_campaign(
                payload.ad_account_id,
                payload.source_campaign_id,
                new_name=payload.new_name,
                copy_status=payload.copy_status,
            )
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Duplicate campaign error")
        raise HTTPException(status_code=500, detail="Failed to duplicate campaign")


@router.post("/duplicate-adset", response_model=DuplicateAdsetResponse, response_model_exclude_none=True)
async def duplicate_adset(
    payload: DuplicateAdsetRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    _require(payload.user_id, payload.ad_account_id, payload.source_adset_id)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = MetaEntityService(graph, db, payload.user_id, settings=settings)
            return await service.duplicate_adset(
                payload.ad_account_id,
                payload.source_adset_id,
                target_campaign_id=payload.target_campaign_id,
                new_name=payload.new_name,
                copy_status=payload.copy_status,
                custom_targeting=payload.custom_targeting,
            )
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Duplicate adset error")
        raise HTTPException(status_code=500, detail="Failed to duplicate ad set")


@router.post("/duplicate-ad", response_model=DuplicateAdResponse)
async def duplicate_ad(
    payload: DuplicateAdRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    _require(payload.user_id, payload.ad_account_id, payload.source_ad_id)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            service = MetaEntityService(graph, db, payload.user_id, settings=settings)
            return await service.duplicate_ad(
                payload.ad_account_id,
                payload.source_ad_id,
                target_adset_id=payload.target_adset_id,
                new_name=payload.new_name,
                copy_status=payload.copy_status,
                copy_override=payload.copy_override,
            )
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Duplicate ad error")
        raise HTTPException(status_code=500, detail="Failed to duplicate ad")


# ==================== UTM ====================

@router.post("/sync-utm-status", response_model=SyncUtmStatusResponse)
async def sync_utm(
    payload: SyncUtmStatusRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """Which of the given ads carry utm_* parameters on their call-to-action link."""
    _require(payload.user_id, payload.ad_account_id, payload.ad_ids)
    connection = get_meta_connection(db, payload.user_id)
    try:
        async with graph_factory(connection.access_token) as graph:
            utm_status = await sync_utm_status(graph, payload.ad_ids, chunk_size=settings.utm_sync_batch_size)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Sync UTM status error")
        raise HTTPException(status_code=500, detail="Failed to sync UTM status")
    return {"success": True, "utm_status": utm_status}
