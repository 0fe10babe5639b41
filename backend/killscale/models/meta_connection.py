"""
Meta connection model: one stored Graph API token per KillScale user.
"""
from sqlalchemy import Column, String, DateTime, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base
from killscale.utils import ensure_utc, utc_now


class MetaConnection(Base):
    __tablename__ = "meta_connections"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    access_token = Column(Text, nullable=False)  # Long-lived user token
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    meta_user_id = Column(String(100), nullable=True)
    meta_user_name = Column(String(255), nullable=True)

    # [{"id": "act_123", "name": "...", "account_status": 1, "currency": "USD"}]
    ad_accounts = Column(JSON, nullable=True)
    selected_ad_account_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<MetaConnection(user_id={self.user_id}, meta_user_id={self.meta_user_id})>"

    def is_expired(self, now=None):
        """A token with no expiry never expires."""
        expires_at = ensure_utc(self.token_expires_at)
        if expires_at is None:
            return False
        return expires_at < (now or utc_now())
