"""
Account routes: ad platform connection status and KillScale-authored campaigns.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from killscale.database import get_db
from killscale.models import CampaignCreation
from killscale.schemas import CampaignCreationListResponse
from killscale.services.connections import get_connection_status

router = APIRouter(prefix="/api", tags=["connections"])
logger = logging.getLogger(__name__)


@router.get("/connections")
def get_connections(userId: Optional[str] = None, db: Session = Depends(get_db)):
    """Meta and Google connection status for the account page. Tokens are never returned."""
    if not userId:
        raise HTTPException(status_code=400, detail="Missing userId")
    return get_connection_status(db, userId)


@router.get("/campaign-creations", response_model=CampaignCreationListResponse)
def get_campaign_creations(
    userId: Optional[str] = None,
    adAccountId: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Campaigns created or duplicated through KillScale, newest first."""
    if not userId:
        raise HTTPException(status_code=400, detail="Missing userId")
    query = db.query(CampaignCreation).filter(CampaignCreation.user_id == userId)
    if adAccountId:
        query = query.filter(CampaignCreation.ad_account_id == adAccountId)
    creations = query.order_by(CampaignCreation.created_at.desc()).all()
    return {"creations": creations}
