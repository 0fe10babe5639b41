from killscale.models.meta_connection import MetaConnection
from killscale.models.google_connection import GoogleConnection
from killscale.models.ad_data import AdData
from killscale.models.campaign_creation import CampaignCreation
from killscale.models.budget_change import BudgetChange
from killscale.models.media_library import MediaLibraryItem
from killscale.models.starred_media import StarredMedia
from killscale.models.subscription import Subscription, AdminGrantedSubscription

__all__ = [
    "MetaConnection",
    "GoogleConnection",
    "AdData",
    "CampaignCreation",
    "BudgetChange",
    "MediaLibraryItem",
    "StarredMedia",
    "Subscription",
    "AdminGrantedSubscription",
]
