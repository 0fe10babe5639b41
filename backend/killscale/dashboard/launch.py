"""
Launch page controller: loads the campaign tree, keeps UTM flags cached per
account, and runs bulk actions against the API with a progress report.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from killscale.config import Settings, get_settings
from killscale.dashboard.api_client import KillScaleApiClient, KillScaleApiError
from killscale.dashboard.campaign_board import CampaignBoard, SelectedItem
from killscale.dashboard.storage import KeyValueStore, MemoryStore, TTLCache, now_ms
from killscale.services.campaign_hierarchy import merge_campaign_creations, sort_campaigns

logger = logging.getLogger(__name__)

# Request-level failures that collapse a whole bulk report
REQUEST_ERRORS = (httpx.HTTPError, KillScaleApiError, KeyError, TypeError)

BUDGET_ENTITY_TYPES = {"campaign", "adset"}


def utm_cache_key(ad_account_id: str) -> str:
    return f"ks_utm_cache_{ad_account_id}"


def format_amount(value: Any) -> str:
    """Render a dollar amount the way the dashboard prints numbers: 100 -> '100', 120.5 -> '120.5'."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


@dataclass
class BulkProgress:
    title: str
    total: int
    completed: int = 0
    failed: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.get("success"))


def _report_results(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "id": r["entityId"],
            "name": r.get("name") or r["entityId"],
            "success": r["success"],
            "error": r.get("error"),
        }
        for r in result["results"]
    ]


def _succeeded_ids(result: Dict[str, Any]) -> set:
    return {r["entityId"] for r in result["results"] if r.get("success")}


class LaunchController:
    """
    Drives the Launch page for one ad account.

    Args:
        api: Open KillScaleApiClient
        ad_account_id: Current ad account
        settings: Delays and cache TTLs
        session_store: Store for the UTM cache (per dashboard session)
        board: Existing page state, a fresh CampaignBoard by default
        on_progress: Called with the BulkProgress report whenever it changes
        sleep: Async sleep used between duplicated items
        clock: Millisecond clock for cache envelopes
    """

    def __init__(
        self,
        api: KillScaleApiClient,
        ad_account_id: str,
        settings: Optional[Settings] = None,
        session_store: Optional[KeyValueStore] = None,
        board: Optional[CampaignBoard] = None,
        on_progress: Optional[Callable[[BulkProgress], Any]] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], int] = now_ms,
    ):
        self.api = api
        self.ad_account_id = ad_account_id
        self.settings = settings or get_settings()
        self.board = board or CampaignBoard()
        self.utm_cache = TTLCache(
            session_store or MemoryStore(),
            ttl_seconds=self.settings.utm_cache_ttl_seconds,
            clock=clock,
        )
        self.on_progress = on_progress
        self._sleep = sleep
        self.utm_fetched_for_account: Optional[str] = None
        self.progress: Optional[BulkProgress] = None

    # ==================== Loading ====================

    async def load_campaigns(self) -> List[Dict[str, Any]]:
        """
        Load campaigns merged with KillScale creations, then the ad set/ad tree.

        A non-empty UTM cache for the account skips the sync call entirely.
        Without one, UTM status is synced once per account for every ad found.
        """
        campaigns, creations = await asyncio.gather(
            self.api.get_campaigns(self.ad_account_id),
            self.api.get_campaign_creations(self.ad_account_id),
        )
        self.board.campaigns = sort_campaigns(merge_campaign_creations(campaigns, creations))

        cached_utm = self.utm_cache.get(utm_cache_key(self.ad_account_id))
        if cached_utm:
            self.board.utm_status = cached_utm
            await self._load_hierarchy()
        elif self.utm_fetched_for_account != self.ad_account_id:
            self.utm_fetched_for_account = self.ad_account_id
            await self._load_hierarchy()
            await self._sync_all_utm()
        return self.board.campaigns

    async def _load_hierarchy(self) -> None:
        campaign_ids = [c["id"] for c in self.board.campaigns]
        adset_results = await asyncio.gather(
            *(self.api.get_adsets(cid, self.ad_account_id) for cid in campaign_ids),
            return_exceptions=True,
        )
        for campaign_id, adsets in zip(campaign_ids, adset_results):
            if isinstance(adsets, Exception):
                logger.warning(f"Failed to load ad sets for campaign {campaign_id}: {adsets}")
                continue
            self.board.adsets_data[campaign_id] = adsets

        adset_ids = [a["id"] for adsets in self.board.adsets_data.values() for a in adsets]
        ad_results = await asyncio.gather(
            *(self.api.get_ads(aid, self.ad_account_id) for aid in adset_ids),
            return_exceptions=True,
        )
        for adset_id, ads in zip(adset_ids, ad_results):
            if isinstance(ads, Exception):
                logger.warning(f"Failed to load ads for ad set {adset_id}: {ads}")
                continue
            self.board.ads_data[adset_id] = ads

    async def _sync_all_utm(self) -> None:
        ad_ids = self.board.all_ad_ids()
        if not ad_ids:
            return
        try:
            result = await self.api.sync_utm_status(self.ad_account_id, ad_ids)
        except (httpx.HTTPError, KillScaleApiError) as e:
            logger.error(f"Failed to fetch UTM status: {e}")
            return
        if result.get("success"):
            self.board.utm_status = dict(result.get("utmStatus") or {})
            self.utm_cache.set(utm_cache_key(self.ad_account_id), self.board.utm_status)

    async def expand_campaign(self, campaign_id: str) -> List[Dict[str, Any]]:
        if campaign_id not in self.board.adsets_data:
            try:
                self.board.adsets_data[campaign_id] = await self.api.get_adsets(campaign_id, self.ad_account_id)
            except (httpx.HTTPError, KillScaleApiError) as e:
                logger.error(f"Failed to load ad sets: {e}")
                return []
        return self.board.adsets_data[campaign_id]

    async def expand_adset(self, adset_id: str) -> List[Dict[str, Any]]:
        if adset_id not in self.board.ads_data:
            try:
                ads = await self.api.get_ads(adset_id, self.ad_account_id)
            except (httpx.HTTPError, KillScaleApiError) as e:
                logger.error(f"Failed to load ads: {e}")
                return []
            self.board.ads_data[adset_id] = ads
            await self.fetch_utm_status([ad["id"] for ad in ads])
        return self.board.ads_data[adset_id]

    async def fetch_utm_status(self, ad_ids: List[str]) -> None:
        """Sync UTM status for ads not already known, merging into state and the cache."""
        new_ids = [ad_id for ad_id in ad_ids if ad_id not in self.board.utm_status]
        if not new_ids:
            return
        try:
            result = await self.api.sync_utm_status(self.ad_account_id, new_ids)
        except (httpx.HTTPError, KillScaleApiError) as e:
            logger.error(f"Failed to fetch UTM status: {e}")
            return
        if result.get("success"):
            self.board.utm_status = {**self.board.utm_status, **(result.get("utmStatus") or {})}
            self.utm_cache.set(utm_cache_key(self.ad_account_id), self.board.utm_status)

    # ==================== Single Entity ====================

    async def toggle_status(self, entity_id: str, entity_type: str, current_status: str) -> Optional[str]:
        """Flip PAUSED <-> ACTIVE. Returns the new status, or None when the update failed."""
        new_status = "ACTIVE" if current_status == "PAUSED" else "PAUSED"
        try:
            await self.api.update_status(entity_id, entity_type, new_status)
        except (httpx.HTTPError, KillScaleApiError) as e:
            logger.error(f"Failed to update status: {e}")
            return None
        self.board.set_row_status(entity_id, new_status)
        return new_status

    # ==================== Bulk ====================

    def _publish(self, progress: BulkProgress) -> None:
        self.progress = progress
        if self.on_progress is not None:
            self.on_progress(progress)

    def _collapse(self, title: str) -> BulkProgress:
        progress = self.progress
        progress.title = title
        progress.completed = progress.total
        progress.failed = progress.total
        self._publish(progress)
        return progress

    async def _bulk_status(self, status: str, running: str, done: str, failed: str) -> Optional[BulkProgress]:
        items = self.board.selected_items()
        if not items:
            return None
        self._publish(BulkProgress(title=running, total=len(items)))
        try:
            result = await self.api.bulk_update_status([item.as_entity() for item in items], status)
            progress = BulkProgress(
                title=done,
                total=result["total"],
                completed=result["total"],
                failed=result["failed"],
                results=_report_results(result),
            )
        except REQUEST_ERRORS as e:
            logger.error(f"Bulk {status.lower()} error: {e}")
            return self._collapse(failed)

        self._publish(progress)
        if result["succeeded"] > 0:
            self.board.patch_status(_succeeded_ids(result), status)
            self.board.clear_selection()
        return progress

    async def bulk_pause(self) -> Optional[BulkProgress]:
        return await self._bulk_status("PAUSED", "Pausing items...", "Pause Complete", "Pause Failed")

    async def bulk_resume(self) -> Optional[BulkProgress]:
        return await self._bulk_status("ACTIVE", "Activating items...", "Activation Complete", "Activation Failed")

    async def bulk_delete(self) -> Optional[BulkProgress]:
        items = self.board.selected_items()
        if not items:
            return None
        self._publish(BulkProgress(title="Deleting items...", total=len(items)))
        try:
            result = await self.api.bulk_delete([item.as_entity() for item in items])
            progress = BulkProgress(
                title="Delete Complete",
                total=result["total"],
                completed=result["total"],
                failed=result["failed"],
                results=_report_results(result),
            )
        except REQUEST_ERRORS as e:
            logger.error(f"Bulk delete error: {e}")
            return self._collapse("Delete Failed")

        self._publish(progress)
        if result["succeeded"] > 0:
            self.board.remove_entities(_succeeded_ids(result))
            self.board.clear_selection()
        return progress

    async def _duplicate_item(self, item: SelectedItem, new_name: Optional[str], copy_status: str) -> str:
        if item.type == "campaign":
            result = await self.api.duplicate_campaign(self.ad_account_id, item.id, new_name, copy_status)
            return f"→ {result['newCampaignName']} ({result['adsetsCopied']} ad sets, {result['adsCopied']} ads)"
        if item.type == "adset":
            result = await self.api.duplicate_adset(
                self.ad_account_id, item.id, item.parent_campaign_id, new_name, copy_status
            )
            return f"→ {result['newAdsetName']} ({result['adsCopied']} ads)"
        if item.type == "ad":
            result = await self.api.duplicate_ad(
                self.ad_account_id, item.id, item.parent_adset_id, new_name, copy_status
            )
            return f"→ {result['newAdName']}"
        raise ValueError(f"Unknown item type: {item.type}")

    async def bulk_duplicate(self, new_names: Dict[str, str], create_paused: bool = True) -> Optional[BulkProgress]:
        """
        Duplicate each selected item in turn, pausing between items.

        Args:
            new_names: Selected item id -> name for its copy
            create_paused: Create copies PAUSED (otherwise ACTIVE)
        """
        items = self.board.selected_items()
        if not items:
            return None
        copy_status = "PAUSED" if create_paused else "ACTIVE"
        progress = BulkProgress(title="Duplicating items...", total=len(items))
        self._publish(progress)

        delay = self.settings.launch_duplicate_delay_ms / 1000
        succeeded = 0
        for item in items:
            try:
                label = await self._duplicate_item(item, new_names.get(item.id), copy_status)
                progress.results.append({"id": item.id, "name": f"{item.name} {label}", "success": True, "error": None})
                succeeded += 1
            except KillScaleApiError as e:
                progress.results.append({"id": item.id, "name": item.name, "success": False, "error": e.message})
                progress.failed += 1
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                progress.results.append(
                    {"id": item.id, "name": item.name, "success": False, "error": str(e) or "Unknown error"}
                )
                progress.failed += 1
            progress.completed = len(progress.results)
            self._publish(progress)
            await self._sleep(delay)

        progress.title = "Duplication Complete"
        progress.completed = len(items)
        self._publish(progress)

        if succeeded > 0:
            # Copies already exist on Meta; a failed reload must not keep the selection alive
            try:
                await self.load_campaigns()
            except (httpx.HTTPError, KillScaleApiError) as e:
                logger.error(f"Failed to reload campaigns after duplicate: {e}")
            self.board.clear_selection()
        return progress

    async def bulk_scale_budget(self, percentage: float) -> Optional[BulkProgress]:
        """Scale budgets of selected campaigns/ad sets that carry a budget by `percentage`."""
        items = [
            item for item in self.board.selected_items()
            if item.budget and item.budget_type and item.type in BUDGET_ENTITY_TYPES
        ]
        if not items:
            return None
        self._publish(BulkProgress(title="Scaling budgets...", total=len(items)))
        entities = [
            {**item.as_entity(), "currentBudget": item.budget, "budgetType": item.budget_type}
            for item in items
        ]
        try:
            result = await self.api.bulk_budget_scale(self.ad_account_id, entities, percentage)
            progress = BulkProgress(
                title="Budget Scaling Complete",
                total=result["total"],
                completed=result["total"],
                failed=result["failed"],
                results=[
                    {
                        "id": r["entityId"],
                        "name": f"{r.get('name') or r['entityId']} "
                                f"(${format_amount(r['oldBudget'])} → ${format_amount(r['newBudget'])})",
                        "success": r["success"],
                        "error": r.get("error"),
                    }
                    for r in result["results"]
                ],
            )
        except REQUEST_ERRORS as e:
            logger.error(f"Bulk budget scale error: {e}")
            return self._collapse("Budget Scaling Failed")

        self._publish(progress)
        if result["succeeded"] > 0:
            self.board.patch_budgets(
                {r["entityId"]: r["newBudget"] for r in result["results"] if r.get("success")}
            )
            self.board.clear_selection()
        return progress
