"""
In-memory state of the Launch page: the campaign tree, UTM flags and the current selection.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set


@dataclass
class SelectedItem:
    """A row ticked in the campaign tree."""
    id: str
    type: str
    name: str
    parent_campaign_id: Optional[str] = None
    parent_adset_id: Optional[str] = None
    budget: Optional[float] = None
    budget_type: Optional[str] = None

    def as_entity(self) -> Dict[str, Any]:
        return {"entityId": self.id, "entityType": self.type, "name": self.name}


@dataclass
class CampaignBoard:
    campaigns: List[Dict[str, Any]] = field(default_factory=list)
    adsets_data: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    ads_data: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    utm_status: Dict[str, bool] = field(default_factory=dict)
    selected: Dict[str, SelectedItem] = field(default_factory=dict)

    # ==================== Selection ====================

    def toggle_selection(self, item: SelectedItem) -> None:
        if item.id in self.selected:
            del self.selected[item.id]
        else:
            self.selected[item.id] = item

    def clear_selection(self) -> None:
        self.selected = {}

    def selected_items(self) -> List[SelectedItem]:
        return list(self.selected.values())

    # ==================== Mutations ====================

    def _all_rows(self) -> Iterable[Dict[str, Any]]:
        yield from self.campaigns
        for adsets in self.adsets_data.values():
            yield from adsets
        for ads in self.ads_data.values():
            yield from ads

    def patch_status(self, entity_ids: Set[str], status: str) -> None:
        """Set `status` on every campaign, ad set and ad whose id is in entity_ids."""
        for row in self._all_rows():
            if row.get("id") in entity_ids:
                row["status"] = status

    def remove_entities(self, entity_ids: Set[str]) -> None:
        self.campaigns = [c for c in self.campaigns if c.get("id") not in entity_ids]
        self.adsets_data = {
            campaign_id: [a for a in adsets if a.get("id") not in entity_ids]
            for campaign_id, adsets in self.adsets_data.items()
        }
        self.ads_data = {
            adset_id: [a for a in ads if a.get("id") not in entity_ids]
            for adset_id, ads in self.ads_data.items()
        }

    def patch_budgets(self, new_budgets: Dict[str, float]) -> None:
        """Write a scaled budget onto daily_budget when the row has one, else lifetime_budget."""
        rows = list(self.campaigns)
        for adsets in self.adsets_data.values():
            rows.extend(adsets)
        for row in rows:
            new_budget = new_budgets.get(row.get("id"))
            if new_budget is None:
                continue
            if row.get("dailyBudget") is not None:
                row["dailyBudget"] = new_budget
            else:
                row["lifetimeBudget"] = new_budget

    def set_row_status(self, entity_id: str, status: str) -> None:
        self.patch_status({entity_id}, status)

    # ==================== UTM ====================

    def all_ad_ids(self) -> List[str]:
        return [ad["id"] for ads in self.ads_data.values() for ad in ads]

    def get_adset_utm_counts(self, adset_id: str) -> Dict[str, int]:
        ads = self.ads_data.get(adset_id, [])
        tracked = sum(1 for ad in ads if self.utm_status.get(ad["id"]))
        return {"tracked": tracked, "total": len(ads)}

    def get_campaign_utm_counts(self, campaign_id: str) -> Dict[str, int]:
        tracked = 0
        total = 0
        for adset in self.adsets_data.get(campaign_id, []):
            counts = self.get_adset_utm_counts(adset["id"])
            tracked += counts["tracked"]
            total += counts["total"]
        return {"tracked": tracked, "total": total}
