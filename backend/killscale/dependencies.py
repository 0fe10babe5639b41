"""
FastAPI dependencies shared by the routers.
"""
from typing import Callable

from fastapi import Depends

from killscale.config import Settings, get_settings
from killscale.services.creative_insights import CreativeInsightsService
from killscale.services.meta_graph import MetaGraphClient

GraphFactory = Callable[[str], MetaGraphClient]


def get_graph_factory(settings: Settings = Depends(get_settings)) -> GraphFactory:
    """Builds a Graph client for an access token. Overridden in tests with a mock transport."""
    def factory(access_token: str) -> MetaGraphClient:
        return MetaGraphClient(access_token, settings=settings)
    return factory


def get_insights_service(settings: Settings = Depends(get_settings)) -> CreativeInsightsService:
    return CreativeInsightsService(settings=settings)
