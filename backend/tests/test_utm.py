"""
Tests for UTM detection on ad creatives.
"""
import asyncio

import pytest

from killscale.services.utm import has_utm_params, link_has_utm, sync_utm_status
from conftest import FakeGraphApi, make_settings


def spec_with_link(link, key="link_data"):
    return {key: {"call_to_action": {"type": "SHOP_NOW", "value": {"link": link}}}}


class TestHasUtmParams:
    def test_link_data_with_utm(self):
        assert has_utm_params(spec_with_link("https://shop.com/p?utm_source=facebook&utm_medium=paid")) is True

    def test_video_data_with_utm(self):
        assert has_utm_params(spec_with_link("https://shop.com/?utm_campaign=spring", key="video_data")) is True

    def test_link_without_utm(self):
        assert has_utm_params(spec_with_link("https://shop.com/p?ref=ig")) is False

    def test_only_call_to_action_link_is_checked(self):
        spec = {"link_data": {"link": "https://shop.com/?utm_source=fb", "call_to_action": {"type": "LEARN_MORE"}}}
        assert has_utm_params(spec) is False

    @pytest.mark.parametrize("spec", [None, {}, {"photo_data": {}}])
    def test_missing_spec(self, spec):
        assert has_utm_params(spec) is False


@pytest.mark.parametrize("link, expected", [
    ("https://shop.com/?utm_source=", True),
    ("not a url?utm_source=x", False),
    ("", False),
    (None, False),
])
def test_link_has_utm(link, expected):
    assert link_has_utm(link) is expected


def test_sync_reports_false_for_unreadable_ads():
    graph = FakeGraphApi()
    graph.on("GET", "ad1", {"id": "ad1", "creative": {"object_story_spec": spec_with_link("https://s.com/?utm_source=fb")}})
    graph.on("GET", "ad2", {"id": "ad2", "creative": {"object_story_spec": spec_with_link("https://s.com/")}})
    graph.fail("GET", "ad3", "Unsupported get request", code=100, subcode=33)

    async def scenario():
        async with graph.client(make_settings()) as client:
            return await sync_utm_status(client, ["ad1", "ad2", "ad3"], chunk_size=2)

    assert asyncio.run(scenario()) == {"ad1": True, "ad2": False, "ad3": False}
    assert len(graph.requests) == 3


def test_sync_empty_list():
    async def scenario():
        async with FakeGraphApi().client(make_settings()) as client:
            return await sync_utm_status(client, [])

    assert asyncio.run(scenario()) == {}
