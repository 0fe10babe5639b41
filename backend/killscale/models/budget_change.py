from sqlalchemy import Column, String, DateTime, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from killscale.database import Base


class BudgetChange(Base):
    """Audit trail written by bulk budget scaling."""
    __tablename__ = "budget_changes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    ad_account_id = Column(String(50), nullable=True)
    entity_type = Column(String(16), nullable=False)  # campaign or adset
    entity_id = Column(String(64), nullable=False)
    old_budget = Column(Numeric(14, 2), nullable=False)
    new_budget = Column(Numeric(14, 2), nullable=False)
    changed_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<BudgetChange(entity_id={self.entity_id}, {self.old_budget} -> {self.new_budget})>"
