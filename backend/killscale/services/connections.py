"""
Loading stored ad-platform connections for a user.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from killscale.models import GoogleConnection, MetaConnection

logger = logging.getLogger(__name__)

META_NOT_CONNECTED = "Meta account not connected"
META_TOKEN_EXPIRED = "Token expired, please reconnect"


class MetaConnectionError(Exception):
    """The user has no usable Meta token. Always surfaced as HTTP 401."""

    status_code = 401

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def get_meta_connection(db: Session, user_id: str) -> MetaConnection:
    """
    Return the user's Meta connection with a live token.

    Raises:
        MetaConnectionError: no connection row, or the token has expired
    """
    connection = db.query(MetaConnection).filter(MetaConnection.user_id == user_id).first()
    if connection is None:
        raise MetaConnectionError(META_NOT_CONNECTED)
    if connection.is_expired():
        logger.info(f"Meta token expired for user {user_id}")
        raise MetaConnectionError(META_TOKEN_EXPIRED)
    return connection


def get_connection_status(db: Session, user_id: str) -> Dict[str, Any]:
    """Connection summary for the account page. Never includes tokens."""
    meta: Optional[MetaConnection] = (
        db.query(MetaConnection).filter(MetaConnection.user_id == user_id).first()
    )
    google: Optional[GoogleConnection] = (
        db.query(GoogleConnection).filter(GoogleConnection.user_id == user_id).first()
    )

    return {
        "meta": {
            "connected": meta is not None,
            "expired": meta.is_expired() if meta else False,
            "metaUserName": meta.meta_user_name if meta else None,
            "adAccounts": (meta.ad_accounts or []) if meta else [],
            "selectedAdAccountId": meta.selected_ad_account_id if meta else None,
        },
        "google": {
            "connected": google is not None,
            "expired": google.is_expired() if google else False,
            "customerId": google.customer_id if google else None,
            "customerName": google.customer_name if google else None,
        },
    }
