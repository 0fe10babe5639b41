"""
Plan resolution for plan-gated features.
"""
import logging
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from killscale.models import AdminGrantedSubscription, Subscription

logger = logging.getLogger(__name__)

ACTIVE_STRIPE_STATUSES = ("active", "trialing")


class PlanAccess(NamedTuple):
    plan: str
    has_access: bool


def resolve_plan(db: Session, user_id: str) -> PlanAccess:
    """
    Effective plan for a user.

    An active, unexpired admin grant takes precedence; otherwise an active or
    trialing Stripe subscription; otherwise 'free' with no access.
    """
    grant: Optional[AdminGrantedSubscription] = (
        db.query(AdminGrantedSubscription)
        .filter(AdminGrantedSubscription.user_id == user_id, AdminGrantedSubscription.is_active.is_(True))
        .order_by(AdminGrantedSubscription.created_at.desc())
        .first()
    )
    stripe: Optional[Subscription] = db.query(Subscription).filter(Subscription.user_id == user_id).first()

    admin_plan = grant.plan.lower() if grant is not None and grant.is_current() and grant.plan else None
    stripe_active = stripe is not None and stripe.status in ACTIVE_STRIPE_STATUSES
    stripe_plan = stripe.plan.lower() if stripe is not None and stripe.plan else None

    plan = admin_plan or (stripe_plan if stripe_active else None) or "free"
    has_access = bool(admin_plan) or stripe_active

    logger.info(
        f"Plan check for user {user_id}: stripe_plan={stripe_plan}, stripe_active={stripe_active}, "
        f"admin_plan={admin_plan}, effective={plan}, has_access={has_access}"
    )
    return PlanAccess(plan=plan, has_access=has_access)
