"""
Small helpers shared by routes and services.
"""
import math
from datetime import date, datetime, timezone
from typing import Any, Optional


def strip_act_prefix(ad_account_id: str) -> str:
    """Meta ad account ids are stored both with and without the 'act_' prefix."""
    if ad_account_id and ad_account_id.startswith("act_"):
        return ad_account_id[len("act_"):]
    return ad_account_id


def with_act_prefix(ad_account_id: str) -> str:
    return f"act_{strip_act_prefix(ad_account_id)}"


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round like the dashboard does (half away from zero for positive values).

    Python's round() uses banker's rounding, which makes 2.5 -> 2 and would
    shift score boundaries by one point.
    """
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    if digits == 0:
        return int(rounded)
    return rounded


def safe_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def safe_int(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return str(value)[:10]


def cents_to_dollars(value: Any) -> Optional[float]:
    """Meta reports budgets in the account's minor currency unit."""
    if value in (None, ""):
        return None
    try:
        return int(value) / 100
    except (TypeError, ValueError):
        return None
