from sqlalchemy import Column, String, DateTime, Boolean, Numeric, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base


class CampaignCreation(Base):
    """Campaigns authored (or duplicated) through KillScale."""
    __tablename__ = "campaign_creations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    ad_account_id = Column(String(50), nullable=False)
    campaign_id = Column(String(64), nullable=False, index=True)
    campaign_name = Column(String(512), nullable=True)
    adset_id = Column(String(64), nullable=True)
    ad_ids = Column(JSON, nullable=True)

    budget_type = Column(String(8), nullable=True)  # cbo or abo
    daily_budget = Column(Numeric(14, 2), nullable=True)  # dollars
    status = Column(String(32), nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)

    source_campaign_id = Column(String(64), nullable=True)
    is_duplicate = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<CampaignCreation(campaign_id={self.campaign_id}, is_duplicate={self.is_duplicate})>"
