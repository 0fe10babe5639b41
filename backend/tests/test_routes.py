"""
Integration tests for the HTTP routes: core, Meta management, Creative Studio and connections.
"""
from datetime import date, timedelta

import pytest

from killscale.models import AdData, CampaignCreation, GoogleConnection, MediaLibraryItem, MetaConnection
from killscale.utils import utc_now
from conftest import AD_ACCOUNT_ID, USER_ID


def ad_row(day, media_hash="h1", creative_id="cr1", ad_id="a1", adset_id="as1", campaign_id="c1", **extra):
    values = dict(
        user_id=USER_ID,
        ad_account_id=AD_ACCOUNT_ID,
        date_start=day,
        date_end=day,
        media_hash=media_hash,
        creative_id=creative_id,
        ad_id=ad_id,
        ad_name=f"Ad {ad_id}",
        adset_id=adset_id,
        adset_name=f"Ad set {adset_id}",
        campaign_id=campaign_id,
        campaign_name=f"Campaign {campaign_id}",
        status="ACTIVE",
        spend=60,
        revenue=120,
        impressions=2000,
        clicks=40,
    )
    values.update(extra)
    return AdData(**values)


class TestCoreRoutes:
    def test_api_info(self, client):
        response = client.get("/api")
        assert response.status_code == 200
        assert response.json() == {"message": "KillScale API", "version": "0.1.0"}

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    def test_malformed_body(self, client):
        response = client.post(
            "/api/meta/bulk-delete", content="not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}


class TestHierarchyRoutes:
    def test_requires_meta_connection(self, client):
        response = client.get("/api/meta/campaigns", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})
        assert response.status_code == 401
        assert response.json() == {"error": "Meta account not connected"}

    def test_expired_token(self, client, db_session):
        db_session.add(MetaConnection(user_id=USER_ID, access_token="old", token_expires_at=utc_now() - timedelta(days=1)))
        db_session.commit()

        response = client.get("/api/meta/campaigns", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})

        assert response.status_code == 401
        assert response.json() == {"error": "Token expired, please reconnect"}

    def test_missing_fields(self, client):
        response = client.get("/api/meta/campaigns", params={"userId": USER_ID})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_campaigns(self, client, meta_connection, fake_graph):
        fake_graph.on("GET", "act_123/campaigns", {"data": [
            {"id": "c1", "name": "Prospecting", "status": "ACTIVE", "daily_budget": "2500", "objective": "OUTCOME_SALES"},
        ]})

        response = client.get("/api/meta/campaigns", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})

        assert response.status_code == 200
        [campaign] = response.json()["campaigns"]
        assert campaign["dailyBudget"] == 25
        assert campaign["isCBO"] is True
        assert campaign["adSetCount"] == 0
        assert fake_graph.requests[0].url.params["access_token"] == "token"

    def test_graph_error_uses_user_message(self, client, meta_connection, fake_graph):
        fake_graph.fail("GET", "act_123/campaigns", "Invalid OAuth access token", code=190, user_msg="Session expired")

        response = client.get("/api/meta/campaigns", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})

        assert response.status_code == 400
        assert response.json() == {"error": "Session expired"}

    def test_adsets_alias_route(self, client, meta_connection, fake_graph):
        fake_graph.on("GET", "c1/adsets", {"data": [
            {"id": "as1", "name": "Broad", "status": "ACTIVE", "effective_status": "ACTIVE", "campaign_id": "c1",
             "daily_budget": "1000"},
            {"id": "as2", "name": "Old", "status": "ARCHIVED", "effective_status": "ARCHIVED", "campaign_id": "c1"},
        ]})

        for path in ("/api/meta/adsets", "/api/meta/campaign-adsets"):
            response = client.get(path, params={"userId": USER_ID, "campaignId": "c1"})
            assert response.status_code == 200
            assert [a["id"] for a in response.json()["adsets"]] == ["as1"]
            assert response.json()["adsets"][0]["dailyBudget"] == 10

    def test_ads_fall_back_to_synced_rows(self, client, db_session, meta_connection, fake_graph):
        fake_graph.fail("GET", "as1/ads", "Application request limit reached", code=1)
        db_session.add_all([ad_row(date(2025, 3, 1)), ad_row(date(2025, 3, 2)), ad_row(date(2025, 3, 1), ad_id="a2")])
        db_session.commit()

        response = client.get("/api/meta/ads", params={"userId": USER_ID, "adsetId": "as1"})

        assert response.status_code == 200
        data = response.json()
        assert data["fromCache"] is True
        assert sorted(a["id"] for a in data["ads"]) == ["a1", "a2"]

    def test_ads_error_without_synced_rows(self, client, meta_connection, fake_graph):
        fake_graph.fail("GET", "as1/ads", "Application request limit reached", code=1)

        response = client.get("/api/meta/ads", params={"userId": USER_ID, "adsetId": "as1"})

        assert response.status_code == 400
        assert response.json() == {"error": "Application request limit reached"}

    def test_custom_audiences(self, client, meta_connection, fake_graph):
        fake_graph.on("GET", "act_123/customaudiences", {"data": [
            {"id": "1", "name": "Buyers", "subtype": "CUSTOM", "approximate_count_lower_bound": 1000,
             "delivery_status": {"code": 200}},
            {"id": "2", "name": "Too small", "delivery_status": {"code": 441}},
        ]})

        response = client.get("/api/meta/custom-audiences", params={"userId": USER_ID, "adAccountId": "123"})

        assert response.status_code == 200
        assert response.json()["audiences"] == [{
            "id": "1", "name": "Buyers", "subtype": "CUSTOM", "approximateCount": 1000,
            "deliveryStatus": {"code": 200},
        }]


class TestStatusRoutes:
    def test_update_status(self, client, db_session, meta_connection, fake_graph):
        fake_graph.on("POST", "a1", {"success": True})
        db_session.add(ad_row(date(2025, 3, 1)))
        db_session.commit()

        response = client.post("/api/meta/update-status", json={
            "userId": USER_ID, "entityId": "a1", "entityType": "ad", "status": "PAUSED",
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "ad paused successfully"}
        assert fake_graph.posted("a1") == [{"status": "PAUSED"}]

    def test_invalid_entity_type(self, client, meta_connection):
        response = client.post("/api/meta/update-status", json={
            "userId": USER_ID, "entityId": "x", "entityType": "account", "status": "PAUSED",
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid entity type"}

    def test_invalid_status(self, client, meta_connection):
        response = client.post("/api/meta/update-status", json={
            "userId": USER_ID, "entityId": "x", "entityType": "ad", "status": "ARCHIVED",
        })
        assert response.json() == {"error": "Invalid status"}

    def test_bulk_update_status(self, client, meta_connection, fake_graph):
        fake_graph.on("POST", "c1", {"success": True})
        fake_graph.fail("POST", "c2", "Campaign is in review")

        response = client.post("/api/meta/bulk-update-status", json={
            "userId": USER_ID,
            "status": "ACTIVE",
            "entities": [
                {"entityId": "c1", "entityType": "campaign", "name": "One"},
                {"entityId": "c2", "entityType": "campaign", "name": "Two"},
            ],
        })

        assert response.status_code == 200
        data = response.json()
        assert (data["success"], data["total"], data["succeeded"], data["failed"]) == (False, 2, 1, 1)
        assert data["results"][1] == {"entityId": "c2", "name": "Two", "success": False, "error": "Campaign is in review"}

    def test_bulk_update_rejects_bad_entity_type(self, client, meta_connection, fake_graph):
        response = client.post("/api/meta/bulk-update-status", json={
            "userId": USER_ID, "status": "PAUSED", "entities": [{"entityId": "x", "entityType": "account"}],
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid entity type: account"}
        assert fake_graph.requests == []

    def test_bulk_requires_entities(self, client, meta_connection):
        response = client.post("/api/meta/bulk-delete", json={"userId": USER_ID, "entities": []})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_bulk_delete(self, client, db_session, meta_connection, fake_graph):
        fake_graph.on("POST", "a1", {"success": True})
        db_session.add(ad_row(date(2025, 3, 1)))
        db_session.commit()

        response = client.post("/api/meta/bulk-delete", json={
            "userId": USER_ID, "entities": [{"entityId": "a1", "entityType": "ad", "name": "Ad"}],
        })

        assert response.json()["succeeded"] == 1
        assert db_session.query(AdData).count() == 0

    def test_bulk_budget_scale(self, client, meta_connection, fake_graph):
        fake_graph.on("POST", "c1", {"success": True})

        response = client.post("/api/meta/bulk-budget-scale", json={
            "userId": USER_ID,
            "adAccountId": AD_ACCOUNT_ID,
            "scalePercentage": 20,
            "entities": [{"entityId": "c1", "entityType": "campaign", "name": "One",
                          "currentBudget": 100, "budgetType": "daily"}],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["results"][0]["oldBudget"] == 100
        assert data["results"][0]["newBudget"] == 120
        assert (data["totalOldBudget"], data["totalNewBudget"]) == (100, 120)

    def test_bulk_budget_scale_rejects_zero(self, client, meta_connection):
        response = client.post("/api/meta/bulk-budget-scale", json={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "scalePercentage": 0,
            "entities": [{"entityId": "c1", "entityType": "campaign", "currentBudget": 100, "budgetType": "daily"}],
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid scale percentage"}


class TestDuplicateRoutes:
    def test_duplicate_ad(self, client, meta_connection, fake_graph):
        fake_graph.on("GET", "a1", {"id": "a1", "name": "Hero", "adset_id": "as1", "creative": {"id": "cr1"}})
        fake_graph.on("POST", "act_123/ads", {"id": "a2"})

        response = client.post("/api/meta/duplicate-ad", json={
            "userId": USER_ID, "adAccountId": "123", "sourceAdId": "a1", "newName": "Hero v2",
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "newAdId": "a2", "newAdName": "Hero v2", "needsSync": True}

    def test_duplicate_campaign_without_errors_omits_field(self, client, db_session, meta_connection, fake_graph):
        fake_graph.on("GET", "c1", {"id": "c1", "name": "Spring", "objective": "OUTCOME_SALES"})
        fake_graph.on("POST", "act_123/campaigns", {"id": "c2"})
        fake_graph.on("GET", "c1/adsets", {"data": []})

        response = client.post("/api/meta/duplicate-campaign", json={
            "userId": USER_ID, "adAccountId": "123", "sourceCampaignId": "c1",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["newCampaignName"] == "Spring - Copy"
        assert (data["adsetsCopied"], data["adsCopied"]) == (0, 0)
        assert "errors" not in data
        assert db_session.query(CampaignCreation).one().budget_type == "abo"

    def test_duplicate_adset_missing_source(self, client, meta_connection):
        response = client.post("/api/meta/duplicate-adset", json={"userId": USER_ID, "adAccountId": "123"})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}


def test_sync_utm_status(client, meta_connection, fake_graph):
    fake_graph.on("GET", "a1", {"creative": {"object_story_spec": {
        "link_data": {"call_to_action": {"value": {"link": "https://shop.com/?utm_source=facebook"}}}
    }}})
    fake_graph.fail("GET", "a2", "Unsupported get request")

    response = client.post("/api/meta/sync-utm-status", json={
        "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "adIds": ["a1", "a2"],
    })

    assert response.status_code == 200
    assert response.json() == {"success": True, "utmStatus": {"a1": True, "a2": False}}


class TestCreativeStudioRoutes:
    def _library(self, db_session):
        db_session.add_all([
            MediaLibraryItem(user_id=USER_ID, ad_account_id="123", media_hash="h1", media_type="image",
                             name="Hero", url="https://cdn/h1.jpg"),
            MediaLibraryItem(user_id=USER_ID, ad_account_id="123", media_hash="v1", media_type="video",
                             name="Clip"),
        ])
        db_session.add_all([ad_row(date(2025, 3, 1) + timedelta(days=i)) for i in range(3)])
        db_session.commit()

    def test_media_requires_ids(self, client):
        response = client.get("/api/creative-studio/media", params={"userId": USER_ID})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required parameters: userId and adAccountId"}

    def test_media_gallery(self, client, db_session):
        self._library(db_session)

        response = client.get("/api/creative-studio/media", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})

        assert response.status_code == 200
        data = response.json()
        assert (data["imageCount"], data["videoCount"]) == (1, 1)
        hero = data["assets"][0]
        assert hero["mediaHash"] == "h1"
        assert hero["spend"] == 180
        assert hero["roas"] == 2
        assert hero["convertScore"] is not None
        assert data["assets"][1]["hasPerformanceData"] is False

    def test_media_date_window(self, client, db_session):
        self._library(db_session)

        response = client.get("/api/creative-studio/media", params={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "startDate": "2025-03-02", "endDate": "2025-03-02",
        })

        hero = next(a for a in response.json()["assets"] if a["mediaHash"] == "h1")
        assert hero["spend"] == 60

    @pytest.mark.parametrize("params", [{"startDate": "March 2"}, {"endDate": "2025-13-40"}])
    def test_media_rejects_bad_dates(self, client, db_session, params):
        self._library(db_session)

        response = client.get("/api/creative-studio/media", params={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, **params,
        })

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid date: use YYYY-MM-DD"}

    def test_media_empty_library(self, client):
        response = client.get("/api/creative-studio/media", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})
        assert response.json() == {"assets": [], "videoCount": 0, "imageCount": 0}

    def test_media_detail(self, client, db_session):
        self._library(db_session)

        response = client.get("/api/creative-studio/media-detail", params={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "mediaHash": "h1",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["media"]["name"] == "Hero"
        assert len(data["dailyData"]) == 3
        assert (data["totalAds"], data["totalAdsets"], data["totalCampaigns"]) == (1, 1, 1)

    def test_media_detail_not_found(self, client):
        response = client.get("/api/creative-studio/media-detail", params={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "mediaHash": "nope",
        })
        assert response.status_code == 404
        assert response.json() == {"error": "Media item not found"}

    def test_media_detail_fetches_video_source(self, client, db_session, meta_connection, fake_graph):
        db_session.add(MediaLibraryItem(user_id=USER_ID, ad_account_id="123", media_hash="v1", media_type="video"))
        db_session.add(ad_row(date(2025, 3, 1), media_hash="v1", creative_id="cr9", video_id="vid1", media_type="video"))
        db_session.commit()
        fake_graph.on("GET", "vid1", {"id": "vid1", "source": "https://video.example.com/vid1.mp4"})

        response = client.get("/api/creative-studio/media-detail", params={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "mediaHash": "v1",
        })

        assert response.json()["videoSource"] == "https://video.example.com/vid1.mp4"

    def test_star_is_idempotent_and_unstar_counts(self, client):
        star = {"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "mediaHash": "h1", "mediaType": "image",
                "mediaName": "Hero"}

        first = client.post("/api/creative-studio/starred", json=star)
        second = client.post("/api/creative-studio/starred", json=star)
        client.post("/api/creative-studio/starred", json={**star, "mediaHash": "h2"})

        assert first.json()["isNew"] is True
        assert first.json()["message"] == "Media starred successfully"
        assert second.json()["isNew"] is False
        assert second.json()["starred"]["id"] == first.json()["starred"]["id"]

        listed = client.get("/api/creative-studio/starred", params={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})
        assert sorted(s["mediaHash"] for s in listed.json()["starred"]) == ["h1", "h2"]

        response = client.request("DELETE", "/api/creative-studio/starred", json={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID, "mediaHashes": ["h1", "h2", "h3"],
        })
        assert response.json() == {"success": True, "deleted": 2, "message": "Unstarred 2 media item(s)"}

    def test_star_missing_fields(self, client):
        response = client.post("/api/creative-studio/starred", json={"userId": USER_ID, "adAccountId": AD_ACCOUNT_ID})
        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing required fields: userId, adAccountId, mediaHash, and mediaType"
        }

    def test_unstar_without_hashes(self, client):
        response = client.request("DELETE", "/api/creative-studio/starred", json={
            "userId": USER_ID, "adAccountId": AD_ACCOUNT_ID,
        })
        assert response.status_code == 400
        assert response.json() == {"error": "No media hash(es) provided"}


class TestConnectionRoutes:
    def test_connection_status_hides_tokens(self, client, db_session, meta_connection):
        db_session.add(GoogleConnection(user_id=USER_ID, access_token="g-token", customer_id="555"))
        db_session.commit()

        response = client.get("/api/connections", params={"userId": USER_ID})

        assert response.status_code == 200
        data = response.json()
        assert data["meta"]["connected"] is True
        assert data["meta"]["metaUserName"] == "Test User"
        assert data["google"] == {"connected": True, "expired": False, "customerId": "555", "customerName": None}
        assert "token" not in response.text

    def test_not_connected(self, client):
        data = client.get("/api/connections", params={"userId": USER_ID}).json()
        assert data["meta"]["connected"] is False
        assert data["google"]["connected"] is False

    def test_campaign_creations(self, client, db_session):
        db_session.add(CampaignCreation(
            user_id=USER_ID, ad_account_id="123", campaign_id="c9", budget_type="cbo", daily_budget=50,
            source_campaign_id="c1", is_duplicate=True,
        ))
        db_session.commit()

        response = client.get("/api/campaign-creations", params={"userId": USER_ID})

        assert response.status_code == 200
        [creation] = response.json()["creations"]
        assert creation["campaignId"] == "c9"
        assert creation["isDuplicate"] is True
        assert creation["dailyBudget"] == 50

    def test_campaign_creations_requires_user(self, client):
        response = client.get("/api/campaign-creations")
        assert response.status_code == 400
        assert response.json() == {"error": "Missing userId"}
