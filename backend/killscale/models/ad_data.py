from sqlalchemy import Column, String, DateTime, Date, Text, Integer, Numeric, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base


class AdData(Base):
    """
    Daily insight rows synced from Meta, one row per (ad, day).

    Campaign/ad set/ad statuses are denormalized onto every row so the
    dashboard can render the hierarchy without hitting the Graph API.
    """
    __tablename__ = "ad_data"
    __table_args__ = (
        Index("ix_ad_data_user_account", "user_id", "ad_account_id"),
        Index("ix_ad_data_media_hash", "media_hash"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    ad_account_id = Column(String(50), nullable=False)  # with act_ prefix
    source = Column(String(16), nullable=False, default="meta")

    date_start = Column(Date, nullable=False)
    date_end = Column(Date, nullable=True)

    # Hierarchy
    campaign_id = Column(String(64), nullable=True, index=True)
    campaign_name = Column(String(512), nullable=True)
    campaign_status = Column(String(32), nullable=True)
    campaign_daily_budget = Column(Numeric(14, 2), nullable=True)
    campaign_lifetime_budget = Column(Numeric(14, 2), nullable=True)
    adset_id = Column(String(64), nullable=True, index=True)
    adset_name = Column(String(512), nullable=True)
    adset_status = Column(String(32), nullable=True)
    adset_daily_budget = Column(Numeric(14, 2), nullable=True)
    adset_lifetime_budget = Column(Numeric(14, 2), nullable=True)
    ad_id = Column(String(64), nullable=True, index=True)
    ad_name = Column(String(512), nullable=True)
    status = Column(String(32), nullable=True)  # ad status

    # Creative lineage
    creative_id = Column(String(64), nullable=True)
    media_hash = Column(String(128), nullable=True)  # image_hash or video id
    media_type = Column(String(16), nullable=True)  # image or video
    video_id = Column(String(64), nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    storage_url = Column(Text, nullable=True)

    # Copy
    headline = Column(Text, nullable=True)
    primary_text = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    # Performance
    spend = Column(Numeric(14, 2), nullable=True)
    revenue = Column(Numeric(14, 2), nullable=True)
    purchases = Column(Integer, nullable=True)
    impressions = Column(Integer, nullable=True)
    clicks = Column(Integer, nullable=True)

    # Video
    video_views = Column(Integer, nullable=True)  # 3-second views
    video_thruplay = Column(Integer, nullable=True)
    video_p100 = Column(Integer, nullable=True)
    video_avg_time_watched = Column(Numeric(10, 2), nullable=True)
    video_plays = Column(Integer, nullable=True)
    outbound_clicks = Column(Integer, nullable=True)

    synced_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AdData(ad_id={self.ad_id}, date_start={self.date_start}, spend={self.spend})>"
