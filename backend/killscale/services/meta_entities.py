"""
Single-entity Meta operations: status changes with cascade, and duplication of
campaigns, ad sets and ads.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from killscale.config import Settings, get_settings
from killscale.models import AdData, CampaignCreation
from killscale.services.meta_graph import MetaGraphClient, MetaGraphError
from killscale.utils import utc_now, with_act_prefix

logger = logging.getLogger(__name__)

SOURCE_CAMPAIGN_FIELDS = "name,objective,special_ad_categories,daily_budget,lifetime_budget,bid_strategy,buying_type"
SOURCE_ADSET_FIELDS = (
    "name,campaign_id,daily_budget,lifetime_budget,optimization_goal,billing_event,"
    "targeting,promoted_object,bid_strategy,bid_amount"
)
CHILD_ADSET_FIELDS = (
    "name,daily_budget,lifetime_budget,optimization_goal,billing_event,"
    "targeting,promoted_object,bid_strategy,bid_amount"
)

# Optional ad set fields copied only when the source has them
OPTIONAL_ADSET_FIELDS = ("daily_budget", "lifetime_budget", "promoted_object", "bid_strategy", "bid_amount")

# Above this many children, cascading status changes are paced
CASCADE_PACING_THRESHOLD = 3


def copy_name(name: Optional[str], new_name: Optional[str] = None) -> str:
    return new_name or f"{name} - Copy"


def build_custom_targeting(custom) -> Dict[str, Any]:
    """
    Targeting spec for a duplicated ad set from a CustomTargeting override.

    A city with a key wins over countries; countries default to US.
    """
    if custom.location_type == "city" and custom.location_key:
        geo_locations = {
            "cities": [{
                "key": custom.location_key,
                "radius": custom.location_radius or 25,
                "distance_unit": "mile",
            }]
        }
    else:
        geo_locations = {"countries": custom.countries or ["US"]}

    targeting: Dict[str, Any] = {
        "geo_locations": geo_locations,
        "age_min": custom.age_min or 18,
        "age_max": custom.age_max or 65,
    }

    if custom.targeting_mode == "custom":
        flexible: Dict[str, Any] = {}
        if custom.interests:
            flexible["interests"] = [{"id": i.id, "name": i.name} for i in custom.interests]
        if custom.behaviors:
            flexible["behaviors"] = [{"id": b.id, "name": b.name} for b in custom.behaviors]
        if flexible:
            targeting["flexible_spec"] = [flexible]

    return targeting


def apply_copy_override(object_story_spec: Optional[Dict[str, Any]], override) -> Dict[str, Any]:
    """Overlay primary text / headline / description onto a creative's link_data."""
    spec = dict(object_story_spec or {})
    link_data = dict(spec.get("link_data") or {})
    link_data["message"] = override.primary_text or link_data.get("message")
    link_data["name"] = override.headline or link_data.get("name")
    link_data["description"] = override.description or link_data.get("description")
    spec["link_data"] = link_data
    return spec


def _adset_body(source: Dict[str, Any], campaign_id: str, name: str, status: str, targeting) -> Dict[str, Any]:
    body = {
        "campaign_id": campaign_id,
        "name": name,
        "optimization_goal": source.get("optimization_goal"),
        "billing_event": source.get("billing_event"),
        "targeting": targeting,
        "status": status,
    }
    for field in OPTIONAL_ADSET_FIELDS:
        if source.get(field):
            body[field] = source[field]
    return body


class MetaEntityService:
    """Status and duplication operations for one user's Meta account."""

    def __init__(
        self,
        graph: MetaGraphClient,
        db: Session,
        user_id: str,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.graph = graph
        self.db = db
        self.user_id = user_id
        self.settings = settings or get_settings()
        self._sleep = sleep

    async def _pause(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    # ==================== Status ====================

    async def update_status(self, entity_id: str, entity_type: str, status: str) -> str:
        """
        Set status on an entity and cascade it to the children we know about.

        The primary update must succeed (MetaGraphError propagates). Child
        updates are best effort: failures are logged and skipped.

        Returns:
            Confirmation message, e.g. 'campaign paused successfully'
        """
        await self.graph.post(entity_id, {"status": status})

        if entity_type == "campaign":
            rows = self.db.query(AdData.adset_id, AdData.ad_id).filter(
                AdData.user_id == self.user_id, AdData.campaign_id == entity_id
            ).all()
            adset_ids = list(dict.fromkeys(r.adset_id for r in rows if r.adset_id))
            ad_ids = list(dict.fromkeys(r.ad_id for r in rows if r.ad_id))
            await self._cascade(adset_ids + ad_ids, status)
            if rows:
                logger.info(f"[update-status] Cascaded {status} to {len(adset_ids)} adsets + {len(ad_ids)} ads in campaign {entity_id}")
            updates = {"campaign_status": status, "adset_status": status, "status": status}
            id_column = AdData.campaign_id
        elif entity_type == "adset":
            rows = self.db.query(AdData.ad_id).filter(
                AdData.user_id == self.user_id, AdData.adset_id == entity_id
            ).all()
            ad_ids = list(dict.fromkeys(r.ad_id for r in rows if r.ad_id))
            await self._cascade(ad_ids, status)
            if rows:
                logger.info(f"[update-status] Cascaded {status} to {len(ad_ids)} ads in adset {entity_id}")
            updates = {"adset_status": status, "status": status}
            id_column = AdData.adset_id
        else:
            updates = {"status": status}
            id_column = AdData.ad_id

        self.db.query(AdData).filter(
            AdData.user_id == self.user_id, id_column == entity_id
        ).update(updates, synchronize_session=False)

        if entity_type == "campaign":
            creation = self.db.query(CampaignCreation).filter(
                CampaignCreation.campaign_id == entity_id
            ).first()
            if creation is not None:
                creation.status = status
                if status == "ACTIVE":
                    creation.activated_at = utc_now()

        self.db.commit()
        return f"{entity_type} {'paused' if status == 'PAUSED' else 'activated'} successfully"

    async def _cascade(self, child_ids: List[str], status: str) -> None:
        paced = len(child_ids) > CASCADE_PACING_THRESHOLD
        for child_id in child_ids:
            try:
                await self.graph.post(child_id, {"status": status})
            except MetaGraphError as exc:
                # Some children sit in states Meta won't change (e.g. disapproved ads)
                logger.warning(f"[update-status] Meta API warning for {child_id}: {exc.message}")
            if paced:
                await self._pause(self.settings.status_cascade_delay_ms)

    # ==================== Duplication ====================

    async def _copy_ads(self, source_adset_id: str, new_adset_id: str, account: str, status: str, errors: List[str]) -> int:
        await self._pause(self.settings.duplicate_child_delay_ms)
        ads = await self.graph.get_edge(f"{source_adset_id}/ads", "name,creative")
        copied = 0
        for ad in ads:
            await self._pause(self.settings.duplicate_child_delay_ms)
            try:
                await self.graph.post(f"{account}/ads", {
                    "adset_id": new_adset_id,
                    "name": ad.get("name"),
                    "creative": {"creative_id": (ad.get("creative") or {}).get("id")},
                    "status": status,
                })
            except MetaGraphError as exc:
                errors.append(f'Ad "{ad.get("name")}": {exc.display_message}')
                continue
            copied += 1
        return copied

    async def duplicate_campaign(
        self,
        ad_account_id: str,
        source_campaign_id: str,
        new_name: Optional[str] = None,
        copy_status: str = "PAUSED",
    ) -> Dict[str, Any]:
        """
        Copy a campaign with all of its ad sets and ads.

        Failures creating the campaign itself raise MetaGraphError. Failures
        on individual ad sets or ads are collected into 'errors'.
        """
        account = with_act_prefix(ad_account_id)
        errors: List[str] = []

        source = await self.graph.get(source_campaign_id, {"fields": SOURCE_CAMPAIGN_FIELDS})
        campaign_name = copy_name(source.get("name"), new_name)

        body: Dict[str, Any] = {
            "name": campaign_name,
            "objective": source.get("objective"),
            "status": copy_status,
            "special_ad_categories": source.get("special_ad_categories") or [],
        }
        for field in ("buying_type", "daily_budget", "lifetime_budget", "bid_strategy"):
            if source.get(field):
                body[field] = source[field]

        created = await self.graph.post(f"{account}/campaigns", body)
        new_campaign_id = created["id"]
        logger.info(f"[duplicate-campaign] Created {new_campaign_id} from {source_campaign_id}")

        adsets_copied = 0
        ads_copied = 0
        await self._pause(self.settings.duplicate_child_delay_ms)
        adsets = await self.graph.get_edge(f"{source_campaign_id}/adsets", CHILD_ADSET_FIELDS)
        for adset in adsets:
            await self._pause(self.settings.duplicate_child_delay_ms)
            try:
                new_adset = await self.graph.post(
                    f"{account}/adsets",
                    _adset_body(adset, new_campaign_id, adset.get("name"), copy_status, adset.get("targeting")),
                )
            except MetaGraphError as exc:
                errors.append(f'Ad set "{adset.get("name")}": {exc.display_message}')
                continue
            adsets_copied += 1
            ads_copied += await self._copy_ads(adset["id"], new_adset["id"], account, copy_status, errors)

        daily_budget = source.get("daily_budget")
        self.db.add(CampaignCreation(
            user_id=self.user_id,
            ad_account_id=ad_account_id,
            campaign_id=new_campaign_id,
            campaign_name=campaign_name,
            budget_type="cbo" if daily_budget else "abo",
            daily_budget=Decimal(int(daily_budget)) / 100 if daily_budget else Decimal(0),
            status=copy_status,
            source_campaign_id=source_campaign_id,
            is_duplicate=True,
        ))
        self.db.commit()

        return {
            "success": True,
            "new_campaign_id": new_campaign_id,
            "new_campaign_name": campaign_name,
            "adsets_copied": adsets_copied,
            "ads_copied": ads_copied,
            "errors": errors or None,
        }

    async def duplicate_adset(
        self,
        ad_account_id: str,
        source_adset_id: str,
        target_campaign_id: Optional[str] = None,
        new_name: Optional[str] = None,
        copy_status: str = "PAUSED",
        custom_targeting=None,
    ) -> Dict[str, Any]:
        """Copy an ad set (and its ads) into the target campaign, defaulting to the source's."""
        account = with_act_prefix(ad_account_id)
        errors: List[str] = []

        source = await self.graph.get(source_adset_id, {"fields": SOURCE_ADSET_FIELDS})
        adset_name = copy_name(source.get("name"), new_name)
        campaign_id = target_campaign_id or source.get("campaign_id")
        targeting = build_custom_targeting(custom_targeting) if custom_targeting else source.get("targeting")

        body = _adset_body(source, campaign_id, adset_name, copy_status, targeting)
        if source.get("daily_budget") or source.get("lifetime_budget"):
            # Meta requires this on ABO ad sets
            body["is_adset_budget_sharing_enabled"] = False

        created = await self.graph.post(f"{account}/adsets", body)
        new_adset_id = created["id"]
        logger.info(f"[duplicate-adset] Created {new_adset_id} from {source_adset_id} in campaign {campaign_id}")

        ads_copied = await self._copy_ads(source_adset_id, new_adset_id, account, copy_status, errors)

        return {
            "success": True,
            "new_adset_id": new_adset_id,
            "new_adset_name": adset_name,
            "ads_copied": ads_copied,
            "errors": errors or None,
            "needs_sync": True,
        }

    async def duplicate_ad(
        self,
        ad_account_id: str,
        source_ad_id: str,
        target_adset_id: Optional[str] = None,
        new_name: Optional[str] = None,
        copy_status: str = "PAUSED",
        copy_override=None,
    ) -> Dict[str, Any]:
        """Copy an ad, reusing its creative or building a new one from a copy override."""
        account = with_act_prefix(ad_account_id)

        source = await self.graph.get(source_ad_id, {"fields": "name,adset_id,creative"})
        ad_name = copy_name(source.get("name"), new_name)
        adset_id = target_adset_id or source.get("adset_id")
        creative_id = (source.get("creative") or {}).get("id")

        if copy_override is not None:
            if not creative_id:
                raise MetaGraphError("Source ad has no creative")
            try:
                creative = await self.graph.get(creative_id, {"fields": "object_story_spec,url_tags"})
            except MetaGraphError as exc:
                raise MetaGraphError(f"Failed to fetch creative: {exc.message}", code=exc.code, subcode=exc.subcode) from exc
            try:
                new_creative = await self.graph.post(f"{account}/adcreatives", {
                    "object_story_spec": apply_copy_override(creative.get("object_story_spec"), copy_override),
                    "url_tags": creative.get("url_tags"),
                })
            except MetaGraphError as exc:
                raise MetaGraphError(f"Failed to create creative: {exc.message}", code=exc.code, subcode=exc.subcode) from exc
            creative_id = new_creative["id"]

        created = await self.graph.post(f"{account}/ads", {
            "adset_id": adset_id,
            "name": ad_name,
            "creative": {"creative_id": creative_id},
            "status": copy_status,
        })
        logger.info(f"[duplicate-ad] Created {created['id']} from {source_ad_id} in adset {adset_id}")

        return {
            "success": True,
            "new_ad_id": created["id"],
            "new_ad_name": ad_name,
            "needs_sync": True,
        }
