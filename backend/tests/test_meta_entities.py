"""
Tests for single-entity status changes and campaign / ad set / ad duplication.
"""
import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest

from killscale.models import AdData, CampaignCreation
from killscale.schemas import CopyOverride, CustomTargeting, TargetingOption
from killscale.services.meta_entities import (
    MetaEntityService,
    apply_copy_override,
    build_custom_targeting,
)
from killscale.services.meta_graph import MetaGraphError
from conftest import AD_ACCOUNT_ID, USER_ID, FakeGraphApi, make_settings


def ad_row(campaign_id, adset_id, ad_id):
    return AdData(
        user_id=USER_ID,
        ad_account_id=AD_ACCOUNT_ID,
        date_start=date(2025, 3, 1),
        campaign_id=campaign_id,
        campaign_status="ACTIVE",
        adset_id=adset_id,
        adset_status="ACTIVE",
        ad_id=ad_id,
        status="ACTIVE",
    )


def run_service(graph, db, operation):
    async def scenario():
        settings = make_settings()
        async with graph.client(settings) as client:
            return await operation(MetaEntityService(client, db, USER_ID, settings=settings))

    return asyncio.run(scenario())


class TestUpdateStatus:
    def test_campaign_pause_cascades_and_ignores_child_failures(self, db_session):
        graph = FakeGraphApi()
        graph.on("POST", "c1", {"success": True})
        graph.on("POST", "as1", {"success": True})
        graph.fail("POST", "a1", "Ad is disapproved")
        graph.on("POST", "a2", {"success": True})
        db_session.add_all([ad_row("c1", "as1", "a1"), ad_row("c1", "as1", "a2")])
        db_session.add(CampaignCreation(user_id=USER_ID, ad_account_id="123", campaign_id="c1", status="ACTIVE"))
        db_session.commit()

        message = run_service(graph, db_session, lambda s: s.update_status("c1", "campaign", "PAUSED"))

        assert message == "campaign paused successfully"
        assert [FakeGraphApi.path_of(r) for r in graph.requests] == ["c1", "as1", "a1", "a2"]
        rows = db_session.query(AdData).all()
        assert {(r.campaign_status, r.adset_status, r.status) for r in rows} == {("PAUSED", "PAUSED", "PAUSED")}
        assert db_session.query(CampaignCreation).one().status == "PAUSED"

    def test_activation_stamps_creation(self, db_session):
        graph = FakeGraphApi()
        graph.on("POST", "c1", {"success": True})
        db_session.add(CampaignCreation(user_id=USER_ID, ad_account_id="123", campaign_id="c1", status="PAUSED"))
        db_session.commit()

        message = run_service(graph, db_session, lambda s: s.update_status("c1", "campaign", "ACTIVE"))

        assert message == "campaign activated successfully"
        creation = db_session.query(CampaignCreation).one()
        assert creation.status == "ACTIVE"
        assert creation.activated_at is not None

    def test_ad_update_leaves_parents(self, db_session):
        graph = FakeGraphApi()
        graph.on("POST", "a1", {"success": True})
        db_session.add(ad_row("c1", "as1", "a1"))
        db_session.commit()

        run_service(graph, db_session, lambda s: s.update_status("a1", "ad", "PAUSED"))

        row = db_session.query(AdData).one()
        assert (row.campaign_status, row.adset_status, row.status) == ("ACTIVE", "ACTIVE", "PAUSED")

    def test_primary_failure_propagates(self, db_session):
        graph = FakeGraphApi()
        graph.fail("POST", "as1", "Permissions error", code=200, user_msg="You can't edit this ad set")
        db_session.add(ad_row("c1", "as1", "a1"))
        db_session.commit()

        with pytest.raises(MetaGraphError) as exc_info:
            run_service(graph, db_session, lambda s: s.update_status("as1", "adset", "PAUSED"))

        assert exc_info.value.display_message == "You can't edit this ad set"
        assert db_session.query(AdData).one().adset_status == "ACTIVE"


class TestDuplicateCampaign:
    def _graph(self):
        graph = FakeGraphApi()
        graph.on("GET", "c1", {"id": "c1", "name": "Spring Sale", "objective": "OUTCOME_SALES", "daily_budget": "5000"})
        graph.on("POST", "act_123/campaigns", {"id": "c2"})
        graph.on("GET", "c1/adsets", {"data": [
            {"id": "as1", "name": "Broad", "optimization_goal": "OFFSITE_CONVERSIONS", "billing_event": "IMPRESSIONS",
             "targeting": {"geo_locations": {"countries": ["US"]}}},
            {"id": "as2", "name": "Lookalike", "optimization_goal": "OFFSITE_CONVERSIONS", "billing_event": "IMPRESSIONS"},
        ]})

        def create_adset(request):
            form = FakeGraphApi.form(request)
            if form["name"] == "Lookalike":
                return 400, {"error": {"message": "Invalid audience", "code": 100, "error_user_msg": "Audience too small"}}
            return {"id": "as9"}

        graph.on("POST", "act_123/adsets", create_adset)
        graph.on("GET", "as1/ads", {"data": [{"id": "a1", "name": "Hero", "creative": {"id": "cr1"}}]})
        graph.on("POST", "act_123/ads", {"id": "a9"})
        return graph

    def test_copies_children_and_records_creation(self, db_session):
        graph = self._graph()

        result = run_service(graph, db_session, lambda s: s.duplicate_campaign("123", "c1"))

        assert result["new_campaign_id"] == "c2"
        assert result["new_campaign_name"] == "Spring Sale - Copy"
        assert (result["adsets_copied"], result["ads_copied"]) == (1, 1)
        assert result["errors"] == ['Ad set "Lookalike": Audience too small']

        [campaign_form] = graph.posted("act_123/campaigns")
        assert campaign_form["status"] == "PAUSED"
        assert campaign_form["daily_budget"] == "5000"
        assert json.loads(campaign_form["special_ad_categories"]) == []

        [ad_form] = graph.posted("act_123/ads")
        assert ad_form["adset_id"] == "as9"
        assert json.loads(ad_form["creative"]) == {"creative_id": "cr1"}

        creation = db_session.query(CampaignCreation).one()
        assert creation.campaign_id == "c2"
        assert creation.is_duplicate is True
        assert creation.budget_type == "cbo"
        assert creation.daily_budget == Decimal("50")
        assert creation.source_campaign_id == "c1"

    def test_campaign_create_failure_raises(self, db_session):
        graph = self._graph()
        graph.fail("POST", "act_123/campaigns", "Invalid objective")

        with pytest.raises(MetaGraphError, match="Invalid objective"):
            run_service(graph, db_session, lambda s: s.duplicate_campaign("act_123", "c1", new_name="Copy"))
        assert db_session.query(CampaignCreation).count() == 0


class TestDuplicateAdset:
    def test_custom_targeting_and_budget_sharing_flag(self, db_session):
        graph = FakeGraphApi()
        graph.on("GET", "as1", {"id": "as1", "name": "Broad", "campaign_id": "c1", "daily_budget": "2000",
                                "targeting": {"geo_locations": {"countries": ["CA"]}}})
        graph.on("POST", "act_123/adsets", {"id": "as2"})
        graph.on("GET", "as1/ads", {"data": []})
        targeting = CustomTargeting(location_type="country", countries=["GB"], age_min=25, age_max=45)

        result = run_service(
            graph, db_session,
            lambda s: s.duplicate_adset("123", "as1", new_name="UK test", custom_targeting=targeting),
        )

        assert result == {
            "success": True, "new_adset_id": "as2", "new_adset_name": "UK test",
            "ads_copied": 0, "errors": None, "needs_sync": True,
        }
        [form] = graph.posted("act_123/adsets")
        assert form["campaign_id"] == "c1"
        assert form["is_adset_budget_sharing_enabled"] == "false"
        assert json.loads(form["targeting"])["geo_locations"] == {"countries": ["GB"]}


class TestDuplicateAd:
    def _graph(self):
        graph = FakeGraphApi()
        graph.on("GET", "a1", {"id": "a1", "name": "Hero", "adset_id": "as1", "creative": {"id": "cr1"}})
        graph.on("POST", "act_123/ads", {"id": "a2"})
        return graph

    def test_reuses_creative(self, db_session):
        graph = self._graph()

        result = run_service(graph, db_session, lambda s: s.duplicate_ad("123", "a1", target_adset_id="as7"))

        assert result["new_ad_name"] == "Hero - Copy"
        [form] = graph.posted("act_123/ads")
        assert form["adset_id"] == "as7"
        assert json.loads(form["creative"]) == {"creative_id": "cr1"}

    def test_copy_override_builds_new_creative(self, db_session):
        graph = self._graph()
        graph.on("GET", "cr1", {"object_story_spec": {"link_data": {"message": "Old", "name": "Old headline"}},
                                "url_tags": "utm_source=fb"})
        graph.on("POST", "act_123/adcreatives", {"id": "cr2"})

        run_service(
            graph, db_session,
            lambda s: s.duplicate_ad("123", "a1", copy_override=CopyOverride(primary_text="New text")),
        )

        [creative_form] = graph.posted("act_123/adcreatives")
        assert json.loads(creative_form["object_story_spec"])["link_data"] == {
            "message": "New text", "name": "Old headline", "description": None,
        }
        assert creative_form["url_tags"] == "utm_source=fb"
        assert json.loads(graph.posted("act_123/ads")[0]["creative"]) == {"creative_id": "cr2"}

    def test_creative_fetch_failure_is_prefixed(self, db_session):
        graph = self._graph()
        graph.fail("GET", "cr1", "Unknown creative")

        with pytest.raises(MetaGraphError, match="^Failed to fetch creative: Unknown creative$"):
            run_service(graph, db_session, lambda s: s.duplicate_ad("123", "a1", copy_override=CopyOverride(headline="H")))

    def test_copy_override_without_source_creative(self, db_session):
        graph = FakeGraphApi()
        graph.on("GET", "a1", {"id": "a1", "name": "Hero", "adset_id": "as1"})

        with pytest.raises(MetaGraphError, match="^Source ad has no creative$"):
            run_service(graph, db_session, lambda s: s.duplicate_ad("123", "a1", copy_override=CopyOverride(headline="H")))
        assert graph.posted("act_123/ads") == []

    def test_creative_create_failure_is_prefixed(self, db_session):
        graph = self._graph()
        graph.on("GET", "cr1", {"object_story_spec": {}})
        graph.fail("POST", "act_123/adcreatives", "Invalid link")

        with pytest.raises(MetaGraphError, match="^Failed to create creative: Invalid link$"):
            run_service(graph, db_session, lambda s: s.duplicate_ad("123", "a1", copy_override=CopyOverride(headline="H")))


class TestBuildCustomTargeting:
    def test_city_wins_over_countries(self):
        targeting = build_custom_targeting(CustomTargeting(
            location_type="city", location_key="2490299", countries=["US"],
        ))
        assert targeting["geo_locations"] == {
            "cities": [{"key": "2490299", "radius": 25, "distance_unit": "mile"}]
        }

    def test_city_without_key_falls_back_to_countries(self):
        targeting = build_custom_targeting(CustomTargeting(location_type="city"))
        assert targeting["geo_locations"] == {"countries": ["US"]}

    def test_custom_mode_adds_flexible_spec(self):
        targeting = build_custom_targeting(CustomTargeting(
            targeting_mode="custom",
            interests=[TargetingOption(id="6003", name="Running")],
        ))
        assert targeting["flexible_spec"] == [{"interests": [{"id": "6003", "name": "Running"}]}]
        assert (targeting["age_min"], targeting["age_max"]) == (18, 65)

    def test_broad_mode_ignores_interests(self):
        targeting = build_custom_targeting(CustomTargeting(interests=[TargetingOption(id="1", name="x")]))
        assert "flexible_spec" not in targeting


def test_apply_copy_override_keeps_unset_fields():
    spec = {"page_id": "p1", "link_data": {"message": "m", "name": "n", "description": "d", "link": "https://x"}}
    result = apply_copy_override(spec, CopyOverride(headline="New"))
    assert result["page_id"] == "p1"
    assert result["link_data"] == {"message": "m", "name": "New", "description": "d", "link": "https://x"}
    assert spec["link_data"]["name"] == "n"
