"""
AI routes: creative portfolio insights.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from killscale.database import get_db
from killscale.dependencies import get_insights_service
from killscale.errors import HANDLED_ERRORS
from killscale.schemas import CreativeInsightsRequest, CreativeInsightsResponse
from killscale.services.creative_insights import CreativeInsightsService, InsightsServiceError
from killscale.services.subscriptions import resolve_plan

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = logging.getLogger(__name__)


@router.post("/creative-insights", response_model=CreativeInsightsResponse, response_model_exclude_none=True)
def creative_insights(
    payload: CreativeInsightsRequest,
    db: Session = Depends(get_db),
    service: CreativeInsightsService = Depends(get_insights_service),
):
    """
    Funnel-stage insights for a creative portfolio summary.

    Requires an active subscription (admin grant or Stripe). Returns parsed
    `insights`, or `raw` text when the model's reply wasn't valid JSON.
    """
    if not payload.user_id or not payload.ad_account_id:
        raise HTTPException(status_code=400, detail="Missing userId or adAccountId")
    if payload.summary is None or payload.summary.total_assets == 0:
        raise HTTPException(status_code=400, detail="No creative data to analyze")

    try:
        access = resolve_plan(db, payload.user_id)
        if not access.has_access:
            raise HTTPException(
                status_code=403,
                detail=f"AI Creative Insights require an active subscription. Your plan: {access.plan}",
            )
        return service.generate(payload.summary)
    except InsightsServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except HANDLED_ERRORS:
        raise
    except Exception:
        logger.exception("Creative insights AI error")
        raise HTTPException(status_code=500, detail="Failed to process request")
