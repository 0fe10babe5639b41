"""
UTM tracking detection for ads: does the creative's call-to-action link carry utm_* parameters?
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import parse_qsl, urlparse

from killscale.services.meta_graph import MetaGraphClient, MetaGraphError

logger = logging.getLogger(__name__)

UTM_CHUNK_SIZE = 50


def link_has_utm(link: Optional[str]) -> bool:
    if not link:
        return False
    try:
        parsed = urlparse(link)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return any(key.startswith("utm_") for key, _ in parse_qsl(parsed.query, keep_blank_values=True))


def has_utm_params(object_story_spec: Optional[Dict[str, Any]]) -> bool:
    """
    Check a creative's object_story_spec for utm_* query parameters.

    Link/image creatives carry the CTA under link_data, video creatives under
    video_data. Only the call-to-action link is inspected.
    """
    if not object_story_spec:
        return False
    link_data = object_story_spec.get("link_data")
    if link_data:
        return link_has_utm(((link_data.get("call_to_action") or {}).get("value") or {}).get("link"))
    video_data = object_story_spec.get("video_data")
    if video_data:
        return link_has_utm(((video_data.get("call_to_action") or {}).get("value") or {}).get("link"))
    return False


async def fetch_ad_utm_status(graph: MetaGraphClient, ad_id: str) -> bool:
    try:
        ad = await graph.get(ad_id, {"fields": "creative{object_story_spec}"})
    except MetaGraphError as exc:
        logger.error(f"[sync-utm-status] Error fetching ad {ad_id}: {exc.message}")
        return False
    return has_utm_params((ad.get("creative") or {}).get("object_story_spec"))


async def sync_utm_status(graph: MetaGraphClient, ad_ids: Sequence[str], chunk_size: int = UTM_CHUNK_SIZE) -> Dict[str, bool]:
    """
    UTM status for every ad id, fetched in concurrent chunks.

    Returns:
        {ad_id: bool}; ads that could not be read report False
    """
    chunks: List[Sequence[str]] = [ad_ids[i:i + chunk_size] for i in range(0, len(ad_ids), chunk_size)]
    logger.info(f"[sync-utm-status] Fetching UTM status for {len(ad_ids)} ads in {len(chunks)} batches")

    utm_status: Dict[str, bool] = {}
    for chunk in chunks:
        outcomes = await asyncio.gather(*(fetch_ad_utm_status(graph, ad_id) for ad_id in chunk))
        utm_status.update(zip(chunk, outcomes))

    tracked = sum(1 for value in utm_status.values() if value)
    logger.info(f"[sync-utm-status] Completed. Found UTM params on {tracked} of {len(ad_ids)} ads")
    return utm_status
