from sqlalchemy import Column, String, DateTime, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base


class StarredMedia(Base):
    __tablename__ = "starred_media"
    __table_args__ = (
        UniqueConstraint("user_id", "ad_account_id", "media_hash", name="uq_starred_media_user_account_hash"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    workspace_id = Column(String(64), nullable=True)
    ad_account_id = Column(String(50), nullable=False)
    media_hash = Column(String(128), nullable=False)
    media_type = Column(String(16), nullable=False)
    thumbnail_url = Column(Text, nullable=True)
    media_name = Column(String(512), nullable=True)
    starred_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<StarredMedia(media_hash={self.media_hash}, user_id={self.user_id})>"
