from sqlalchemy import Column, String, DateTime, Text, Integer, BigInteger, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base


class MediaLibraryItem(Base):
    """Synced asset inventory for an ad account, one row per media hash."""
    __tablename__ = "media_library"
    __table_args__ = (
        UniqueConstraint("user_id", "ad_account_id", "media_hash", name="uq_media_library_user_account_hash"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    ad_account_id = Column(String(50), nullable=False)  # without act_ prefix
    media_hash = Column(String(128), nullable=False)
    media_type = Column(String(16), nullable=False)  # image or video
    name = Column(String(512), nullable=True)

    url = Column(Text, nullable=True)  # image url
    video_thumbnail_url = Column(Text, nullable=True)
    storage_url = Column(Text, nullable=True)
    storage_path = Column(Text, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    file_size_bytes = Column(BigInteger, nullable=True)
    download_status = Column(String(32), nullable=True)  # pending, complete, failed

    synced_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<MediaLibraryItem(media_hash={self.media_hash}, media_type={self.media_type})>"
