"""
Creative Studio routes: media asset gallery, asset drill-down and starred media.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional, Set
import logging
from datetime import date

from killscale.database import get_db
from killscale.dependencies import GraphFactory, get_graph_factory
from killscale.errors import HANDLED_ERRORS
from killscale.models import AdData, MediaLibraryItem, MetaConnection, StarredMedia
from killscale.schemas import (
    AssetMedia,
    StarMediaRequest,
    StarMediaResponse,
    StarredMediaItem,
    StarredMediaListResponse,
    StudioAssetDetail,
    StudioAssetListResponse,
    UnstarMediaRequest,
    UnstarMediaResponse,
)
from killscale.services.creative_aggregation import (
    build_asset_detail,
    build_studio_assets,
    filter_assets,
    sort_assets,
)
from killscale.services.meta_graph import MetaGraphError
from killscale.utils import strip_act_prefix, with_act_prefix

router = APIRouter(prefix="/api/creative-studio", tags=["creative-studio"])
logger = logging.getLogger(__name__)


def _starred_item(row: StarredMedia) -> StarredMediaItem:
    return StarredMediaItem(
        id=str(row.id),
        user_id=row.user_id,
        workspace_id=row.workspace_id,
        ad_account_id=row.ad_account_id,
        media_hash=row.media_hash,
        media_type=row.media_type,
        thumbnail_url=row.thumbnail_url,
        media_name=row.media_name,
        starred_at=row.starred_at,
    )


# ==================== Media Gallery ====================

@router.get("/media", response_model=StudioAssetListResponse)
def get_media(
    userId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    mediaType: Optional[str] = None,
    fatigueStatus: Optional[str] = None,
    minSpend: float = 0,
    hasData: Optional[str] = None,
    sortBy: str = "spend",
    sortOrder: str = "desc",
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Every media asset in the account's library with performance merged in.

    The library is the inventory; ad_data rows (optionally limited to a
    date window) supply spend, rates, fatigue and scores.
    """
    if not userId or not adAccountId:
        raise HTTPException(status_code=400, detail="Missing required parameters: userId and adAccountId")

    try:
        start = date.fromisoformat(startDate[:10]) if startDate else None
        end = date.fromisoformat(endDate[:10]) if endDate else None
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date: use YYYY-MM-DD")

    try:
        media_query = db.query(MediaLibraryItem).filter(
            MediaLibraryItem.user_id == userId,
            MediaLibraryItem.ad_account_id == strip_act_prefix(adAccountId),
        )
        if mediaType:
            media_query = media_query.filter(MediaLibraryItem.media_type == mediaType)
        media_items = media_query.order_by(MediaLibraryItem.synced_at.desc()).all()

        if not media_items:
            return {"assets": [], "video_count": 0, "image_count": 0}

        account_id = with_act_prefix(adAccountId)
        ad_query = db.query(AdData).filter(AdData.user_id == userId, AdData.ad_account_id == account_id)
        if start:
            ad_query = ad_query.filter(AdData.date_start >= start)
        if end:
            ad_query = ad_query.filter(AdData.date_start <= end)
        ad_rows = ad_query.all()

        # Older rows for the same creatives can carry the original library hash
        inventory = {item.media_hash for item in media_items}
        fallback_creatives = {
            row.creative_id for row in ad_rows
            if row.creative_id and row.media_hash and row.media_hash not in inventory
        }
        lineage_rows = []
        if fallback_creatives:
            lineage_rows = (
                db.query(AdData.creative_id, AdData.media_hash)
                .filter(
                    AdData.user_id == userId,
                    AdData.ad_account_id == account_id,
                    AdData.creative_id.in_(fallback_creatives),
                    AdData.media_hash.isnot(None),
                )
                .all()
            )

        starred = {
            row.media_hash for row in db.query(StarredMedia.media_hash).filter(
                StarredMedia.user_id == userId,
                StarredMedia.ad_account_id == adAccountId,
            )
        }

        assets = build_studio_assets(media_items, ad_rows, starred, lineage_rows)
        assets = filter_assets(assets, min_spend=minSpend, fatigue_status=fatigueStatus, has_data=hasData)
        assets = sort_assets(assets, sortBy, sortOrder)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Creative Studio media GET error")
        raise HTTPException(status_code=500, detail="Failed to fetch media")

    image_count = sum(1 for a in assets if a.media_type == "image")
    video_count = sum(1 for a in assets if a.media_type == "video")
    logger.info(f"[Creative Studio] Returning {len(assets)} assets ({image_count} images, {video_count} videos)")
    return {"assets": assets, "video_count": video_count, "image_count": image_count}


# ==================== Asset Detail ====================

def _find_creative_ids(db: Session, user_id: str, account_id: str, media_hash: str) -> Set[str]:
    """
    Creatives using a media hash, directly, through video_id, or through a
    sibling creative that shares any of their hashes.
    """
    base = db.query(AdData).filter(AdData.user_id == user_id, AdData.ad_account_id == account_id)

    creative_ids: Set[str] = set()
    for column in (AdData.media_hash, AdData.video_id):
        rows = (
            base.with_entities(AdData.creative_id)
            .filter(column == media_hash, AdData.creative_id.isnot(None))
            .limit(200)
            .all()
        )
        creative_ids.update(r.creative_id for r in rows)

    if creative_ids:
        hashes = {
            r.media_hash for r in base.with_entities(AdData.media_hash)
            .filter(AdData.creative_id.in_(creative_ids), AdData.media_hash.isnot(None))
            .limit(500)
        }
        if hashes:
            creative_ids.update(
                r.creative_id for r in base.with_entities(AdData.creative_id)
                .filter(AdData.media_hash.in_(hashes), AdData.creative_id.isnot(None))
                .limit(500)
            )
    return creative_ids


def _media_from_sync(db: Session, user_id: str, account_id: str, media_hash: str) -> Optional[dict]:
    """Display fields for a hash that never made it into the library (Active Ads view)."""
    for column in (AdData.media_hash, AdData.video_id):
        row = (
            db.query(AdData)
            .filter(AdData.user_id == user_id, AdData.ad_account_id == account_id, column == media_hash)
            .order_by(AdData.storage_url.is_(None), AdData.storage_url.desc())
            .first()
        )
        if row is not None:
            return {
                "media_hash": row.media_hash or media_hash,
                "media_type": row.media_type or "video",
                "name": row.ad_name or "Untitled",
                "storage_url": row.storage_url,
                # Browsers render the first frame of the video as a thumbnail
                "thumbnail_url": row.storage_url,
            }
    return None


async def _fetch_video_source(
    db: Session,
    user_id: str,
    video_id: str,
    graph_factory: GraphFactory,
) -> Optional[str]:
    connection = db.query(MetaConnection).filter(MetaConnection.user_id == user_id).first()
    if connection is None or connection.is_expired():
        return None
    try:
        async with graph_factory(connection.access_token) as graph:
            video = await graph.get(video_id, {"fields": "source"})
    except MetaGraphError as e:
        logger.error(f"[Media Detail] Error fetching video source for {video_id}: {e.message}")
        return None
    return video.get("source")


@router.get("/media-detail", response_model=StudioAssetDetail)
async def get_media_detail(
    userId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    mediaHash: Optional[str] = None,
    db: Session = Depends(get_db),
    graph_factory: GraphFactory = Depends(get_graph_factory),
):
    """Daily trend, audience fatigue, ads and hierarchy for one media asset."""
    if not userId or not adAccountId or not mediaHash:
        raise HTTPException(status_code=400, detail="Missing required parameters: userId, adAccountId, mediaHash")

    try:
        account_id = with_act_prefix(adAccountId)
        item = db.query(MediaLibraryItem).filter(
            MediaLibraryItem.user_id == userId,
            MediaLibraryItem.ad_account_id == strip_act_prefix(adAccountId),
            MediaLibraryItem.media_hash == mediaHash,
        ).first()

        if item is not None:
            media = AssetMedia(
                media_hash=item.media_hash,
                media_type=item.media_type,
                name=item.name,
                width=item.width,
                height=item.height,
                file_size=item.file_size_bytes,
                storage_url=item.storage_url,
                image_url=item.url,
                thumbnail_url=item.video_thumbnail_url,
                synced_at=item.synced_at,
            )
        else:
            stub = _media_from_sync(db, userId, account_id, mediaHash)
            if stub is None:
                raise HTTPException(status_code=404, detail="Media item not found")
            media = AssetMedia(**stub)

        creative_ids = _find_creative_ids(db, userId, account_id, mediaHash)
        rows: List[AdData] = []
        if creative_ids:
            rows = (
                db.query(AdData)
                .filter(
                    AdData.user_id == userId,
                    AdData.ad_account_id == account_id,
                    AdData.creative_id.in_(creative_ids),
                )
                .order_by(AdData.date_start.asc())
                .all()
            )

        video_source = None
        if media.media_type == "video":
            if media.storage_url:
                video_source = media.storage_url
            else:
                video_id = next((row.video_id for row in rows if row.video_id), None)
                if video_id:
                    video_source = await _fetch_video_source(db, userId, video_id, graph_factory)

        return build_asset_detail(media, rows, video_source)
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Creative Studio media-detail GET error")
        raise HTTPException(status_code=500, detail="Failed to fetch media detail")


# ==================== Starred Media ====================

@router.get("/starred", response_model=StarredMediaListResponse)
def get_starred(
    userId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    workspaceId: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if not userId or not adAccountId:
        raise HTTPException(status_code=400, detail="Missing required parameters: userId and adAccountId")
    try:
        query = db.query(StarredMedia).filter(
            StarredMedia.user_id == userId,
            StarredMedia.ad_account_id == adAccountId,
        )
        if workspaceId:
            query = query.filter(StarredMedia.workspace_id == workspaceId)
        rows = query.order_by(StarredMedia.starred_at.desc()).all()
    except Exception:
        logger.exception("Starred media GET error")
        raise HTTPException(status_code=500, detail="Failed to fetch starred media")
    return {"starred": [_starred_item(row) for row in rows]}


@router.post("/starred", response_model=StarMediaResponse)
def star_media(payload: StarMediaRequest, db: Session = Depends(get_db)):
    """Star a media asset. Starring twice is a no-op that returns the existing row."""
    if not payload.user_id or not payload.ad_account_id or not payload.media_hash or not payload.media_type:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: userId, adAccountId, mediaHash, and mediaType",
        )
    try:
        existing = db.query(StarredMedia).filter(
            StarredMedia.user_id == payload.user_id,
            StarredMedia.ad_account_id == payload.ad_account_id,
            StarredMedia.media_hash == payload.media_hash,
        ).first()
        if existing is not None:
            return {
                "success": True,
                "is_new": False,
                "message": "Media already starred",
                "starred": _starred_item(existing),
            }

        row = StarredMedia(
            user_id=payload.user_id,
            workspace_id=payload.workspace_id,
            ad_account_id=payload.ad_account_id,
            media_hash=payload.media_hash,
            media_type=payload.media_type,
            thumbnail_url=payload.thumbnail_url,
            media_name=payload.media_name,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    except IntegrityError:
        # Lost a race with a concurrent star of the same hash
        db.rollback()
        return {"success": True, "is_new": False, "message": "Media already starred"}
    except Exception:
        db.rollback()
        logger.exception("Starred media POST error")
        raise HTTPException(status_code=500, detail="Failed to star media")

    logger.info(f"[Starred] {payload.user_id} starred {payload.media_hash}")
    return {"success": True, "is_new": True, "message": "Media starred successfully", "starred": _starred_item(row)}


@router.delete("/starred", response_model=UnstarMediaResponse)
def unstar_media(payload: UnstarMediaRequest, db: Session = Depends(get_db)):
    """Unstar one hash (mediaHash) or several (mediaHashes)."""
    if not payload.user_id or not payload.ad_account_id:
        raise HTTPException(status_code=400, detail="Missing required fields: userId and adAccountId")

    hashes = list(payload.media_hashes or [])
    if payload.media_hash:
        hashes.append(payload.media_hash)
    if not hashes:
        raise HTTPException(status_code=400, detail="No media hash(es) provided")

    try:
        deleted = (
            db.query(StarredMedia)
            .filter(
                StarredMedia.user_id == payload.user_id,
                StarredMedia.ad_account_id == payload.ad_account_id,
                StarredMedia.media_hash.in_(hashes),
            )
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Starred media DELETE error")
        raise HTTPException(status_code=500, detail="Failed to unstar media")

    return {"success": True, "deleted": deleted, "message": f"Unstarred {deleted} media item(s)"}
