"""
Plan records consulted by plan-gated features (AI insights).
"""
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base
from killscale.utils import ensure_utc, utc_now


class Subscription(Base):
    """Stripe-backed subscription, mirrored by the billing webhook."""
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    plan = Column(String(32), nullable=False, default="free")
    status = Column(String(32), nullable=False, default="inactive")  # active, trialing, canceled, ...
    stripe_customer_id = Column(String(100), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Subscription(user_id={self.user_id}, plan={self.plan}, status={self.status})>"


class AdminGrantedSubscription(Base):
    """Manual plan grants; an active, unexpired grant wins over Stripe."""
    __tablename__ = "admin_granted_subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    plan = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    granted_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AdminGrantedSubscription(user_id={self.user_id}, plan={self.plan})>"

    def is_current(self, now=None):
        return bool(self.is_active) and ensure_utc(self.expires_at) > (now or utc_now())
