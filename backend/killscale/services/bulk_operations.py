"""
Bulk campaign management: status changes, deletes and budget scaling across many entities.

Every operation reports per-entity results and never aborts on a single failure.
Calls are paced (batch size + delay) to stay under Meta's rate limits.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from killscale.config import Settings, get_settings
from killscale.models import AdData, BudgetChange, CampaignCreation
from killscale.services.meta_graph import MetaGraphClient, MetaGraphError
from killscale.utils import round_half_up

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("campaign", "adset", "ad")
BUDGET_ENTITY_TYPES = ("campaign", "adset")
BUDGET_TYPES = ("daily", "lifetime")
STATUSES = ("ACTIVE", "PAUSED")

# ad_data column holding the status / id for each entity type
STATUS_COLUMNS = {
    "campaign": ("campaign_status", "campaign_id"),
    "adset": ("adset_status", "adset_id"),
    "ad": ("status", "ad_id"),
}

# Children go before parents so a cascade never deletes something we still need to touch
DELETE_ORDER = {"ad": 0, "adset": 1, "campaign": 2}


class BulkValidationError(ValueError):
    """Request rejected before any Meta call was made (HTTP 400)."""


def validate_entity_types(entities: Sequence[Any], allowed: Sequence[str] = ENTITY_TYPES) -> None:
    for entity in entities:
        if entity.entity_type not in allowed:
            raise BulkValidationError(f"Invalid entity type: {entity.entity_type}")


def build_report(results: List[Dict[str, Any]], total: int) -> Dict[str, Any]:
    succeeded = sum(1 for r in results if r["success"])
    failed = len(results) - succeeded
    return {
        "success": failed == 0,
        "total": total,
        "succeeded": succeeded,
        "failed": failed,
        "results": results,
    }


def _result(entity, success: bool, error: Optional[str] = None) -> Dict[str, Any]:
    return {
        "entity_id": entity.entity_id,
        "name": entity.name,
        "success": success,
        "error": error,
    }


def _error_text(exc: Exception) -> str:
    if isinstance(exc, MetaGraphError):
        return exc.message or "Meta API error"
    return str(exc) or "Unknown error"


class BulkOperationService:
    """Runs bulk operations for one user against one Graph client."""

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

    async def update_status(self, entities: Sequence[Any], status: str) -> Dict[str, Any]:
        """
        Set ACTIVE or PAUSED on every entity.

        Args:
            entities: BulkEntity items (entity_id, entity_type, name)
            status: ACTIVE or PAUSED

        Returns:
            Bulk report dict
        """
        if status not in STATUSES:
            raise BulkValidationError("Invalid status")
        validate_entity_types(entities)

        batch_size = self.settings.bulk_status_batch_size
        results: List[Dict[str, Any]] = []
        logger.info(f"[Bulk] Setting {len(entities)} entities to {status} for user {self.user_id}")

        for start in range(0, len(entities), batch_size):
            batch = entities[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.graph.post(e.entity_id, {"status": status}) for e in batch),
                return_exceptions=True,
            )
            for entity, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    results.append(_result(entity, False, _error_text(outcome)))
                    continue
                self._mirror_status(entity.entity_type, entity.entity_id, status)
                results.append(_result(entity, True))

            if start + batch_size < len(entities):
                await self._pause(self.settings.bulk_status_batch_delay_ms)

        self.db.commit()
        return build_report(results, len(entities))

    def _mirror_status(self, entity_type: str, entity_id: str, status: str) -> None:
        column, id_column = STATUS_COLUMNS[entity_type]
        (
            self.db.query(AdData)
            .filter(AdData.user_id == self.user_id, getattr(AdData, id_column) == entity_id)
            .update({column: status}, synchronize_session=False)
        )

    # ==================== Delete ====================

    async def delete(self, entities: Sequence[Any]) -> Dict[str, Any]:
        """
        Delete entities one at a time, ads first, then ad sets, then campaigns.

        Already-deleted entities (Graph error 100/33) count as success.
        """
        validate_entity_types(entities)
        ordered = sorted(entities, key=lambda e: DELETE_ORDER[e.entity_type])
        results: List[Dict[str, Any]] = []
        logger.info(f"[Bulk] Deleting {len(ordered)} entities for user {self.user_id}")

        for index, entity in enumerate(ordered):
            try:
                await self.graph.post(entity.entity_id, {"status": "DELETED"})
            except MetaGraphError as exc:
                if exc.is_already_deleted:
                    results.append(_result(entity, True))
                else:
                    results.append(_result(entity, False, _error_text(exc)))
            except Exception as exc:
                logger.exception(f"[Bulk] Unexpected error deleting {entity.entity_id}")
                results.append(_result(entity, False, _error_text(exc)))
            else:
                self._remove_local(entity.entity_type, entity.entity_id)
                results.append(_result(entity, True))

            if index < len(ordered) - 1:
                await self._pause(self.settings.bulk_delete_delay_ms)

        self.db.commit()
        return build_report(results, len(entities))

    def _remove_local(self, entity_type: str, entity_id: str) -> None:
        _, id_column = STATUS_COLUMNS[entity_type]
        if entity_type == "campaign":
            (
                self.db.query(CampaignCreation)
                .filter(CampaignCreation.campaign_id == entity_id)
                .delete(synchronize_session=False)
            )
        (
            self.db.query(AdData)
            .filter(AdData.user_id == self.user_id, getattr(AdData, id_column) == entity_id)
            .delete(synchronize_session=False)
        )

    # ==================== Budget ====================

    async def scale_budgets(
        self,
        entities: Sequence[Any],
        scale_percentage: Any,
        ad_account_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Scale campaign/ad set budgets by a percentage.

        Args:
            entities: BudgetEntity items (current_budget in dollars, budget_type daily|lifetime)
            scale_percentage: e.g. 20 for +20%, -10 for -10%. Zero is rejected.
            ad_account_id: Recorded on the budget_changes audit rows

        Returns:
            Bulk report dict with old/new budget per entity plus totals
        """
        if isinstance(scale_percentage, bool) or not isinstance(scale_percentage, (int, float)) or scale_percentage == 0:
            raise BulkValidationError("Invalid scale percentage")
        for entity in entities:
            if entity.entity_type not in BUDGET_ENTITY_TYPES:
                raise BulkValidationError(f"Invalid entity type: {entity.entity_type}")
            if entity.budget_type not in BUDGET_TYPES:
                raise BulkValidationError(f"Invalid budget type: {entity.budget_type}")

        multiplier = 1 + scale_percentage / 100
        batch_size = self.settings.bulk_budget_batch_size
        results: List[Dict[str, Any]] = []
        logger.info(f"[Bulk] Scaling {len(entities)} budgets by {scale_percentage}% for user {self.user_id}")

        for start in range(0, len(entities), batch_size):
            batch = entities[start:start + batch_size]
            new_budgets = [round_half_up(e.current_budget * multiplier, 2) for e in batch]
            outcomes = await asyncio.gather(
                *(
                    self.graph.post(e.entity_id, {f"{e.budget_type}_budget": round_half_up(new * 100)})
                    for e, new in zip(batch, new_budgets)
                ),
                return_exceptions=True,
            )
            for entity, new_budget, outcome in zip(batch, new_budgets, outcomes):
                result = _result(entity, not isinstance(outcome, Exception))
                result["old_budget"] = entity.current_budget
                if isinstance(outcome, Exception):
                    result["error"] = _error_text(outcome)
                    result["new_budget"] = entity.current_budget
                else:
                    result["new_budget"] = new_budget
                    self.db.add(BudgetChange(
                        user_id=self.user_id,
                        ad_account_id=ad_account_id,
                        entity_type=entity.entity_type,
                        entity_id=entity.entity_id,
                        old_budget=Decimal(str(entity.current_budget)),
                        new_budget=Decimal(str(new_budget)),
                    ))
                results.append(result)

            if start + batch_size < len(entities):
                await self._pause(self.settings.bulk_budget_batch_delay_ms)

        self.db.commit()
        report = build_report(results, len(entities))
        report["total_old_budget"] = sum(r["old_budget"] for r in results)
        report["total_new_budget"] = sum(r["new_budget"] for r in results)
        return report
