from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base
from killscale.utils import ensure_utc, utc_now


class GoogleConnection(Base):
    __tablename__ = "google_connections"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    customer_id = Column(String(50), nullable=True)  # Google Ads customer id, no dashes
    customer_name = Column(String(255), nullable=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<GoogleConnection(user_id={self.user_id}, customer_id={self.customer_id})>"

    def is_expired(self, now=None):
        expires_at = ensure_utc(self.token_expires_at)
        if expires_at is None:
            return False
        return expires_at < (now or utc_now())
