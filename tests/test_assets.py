import json

import pytest
import respx
from httpx import Response
from ctms_client.client import CtmsClient
from ctms_client.errors import StateError
from ctms_client.models import Session
from ctms_client.operations.assets import (
    get_asset_by_id,
    get_time_based,
    update_asset_attributes,
    update_asset_attributes_by_id,
    update_asset_by_id,
    upsert_segments,
)
from hal_docs import BASE, asset, make_store

CLIP = asset(
    "/Projects/clip",
    links={"aa:time-based": {"href": f"{BASE}/assets/m1/time-based"}},
)
CLIP["_embedded"] = {
    "loc:referenced-object": {
        "base": {"id": "m1"},
        "_links": {"aa:update-attributes": {"href": f"{BASE}/assets/m1/attributes"}},
    }
}


def _client():
    return CtmsClient(base_url=BASE, session=Session(access_token="tok"))


@pytest.mark.asyncio
async def test_get_asset_by_id_with_attributes():
    async with respx.mock:
        route = respx.get(f"{BASE}/assets/m1").mock(
            return_value=Response(200, json={"base": {"id": "m1"}})
        )

        async with _client() as client:
            found = await get_asset_by_id(client, make_store(), "m1", ["VideoID", "Tape"])

        assert route.calls[0].request.url.params["attributes"] == "VideoID,Tape"

    assert found["base"]["id"] == "m1"


@pytest.mark.asyncio
async def test_get_asset_by_id_without_attributes_sends_no_query():
    async with respx.mock:
        route = respx.get(f"{BASE}/assets/m1").mock(return_value=Response(200, json={}))

        async with _client() as client:
            await get_asset_by_id(client, make_store(), "m1")

        assert "attributes" not in route.calls[0].request.url.params


@pytest.mark.asyncio
async def test_update_asset_attributes_follows_referenced_object():
    attributes = {"attributes": [{"name": "VideoID", "value": "v-1"}]}
    async with respx.mock:
        route = respx.patch(f"{BASE}/assets/m1/attributes").mock(
            return_value=Response(200, json={})
        )

        async with _client() as client:
            await update_asset_attributes(client, CLIP, attributes)

        assert json.loads(route.calls[0].request.content) == attributes


@pytest.mark.asyncio
async def test_update_asset_attributes_without_referenced_object():
    async with _client() as client:
        with pytest.raises(StateError) as exc:
            await update_asset_attributes(client, asset("/Projects/x"), {})

    assert exc.value.relation == "aa:update-attributes"


@pytest.mark.asyncio
async def test_update_by_id_operations():
    async with respx.mock:
        attrs = respx.patch(f"{BASE}/assets/m1/attributes").mock(
            return_value=Response(200, json={})
        )
        common = respx.patch(f"{BASE}/assets/m1").mock(return_value=Response(200, json={}))

        async with _client() as client:
            store = make_store()
            await update_asset_attributes_by_id(
                client, store, "m1", {"attributes": []}, ref="v-1"
            )
            await update_asset_by_id(client, store, "m1", {"name": "renamed"})

        assert attrs.called
        assert json.loads(common.calls[0].request.content) == {
            "common": {"name": "renamed"}
        }


@pytest.mark.asyncio
async def test_time_based_read_and_upsert():
    segments = {"segments": [{"start": 0, "end": 100}]}
    async with respx.mock:
        get = respx.get(f"{BASE}/assets/m1/time-based").mock(
            return_value=Response(200, json=segments)
        )
        patch = respx.patch(f"{BASE}/assets/m1/time-based").mock(
            return_value=Response(200, json=segments)
        )

        async with _client() as client:
            assert await get_time_based(client, CLIP) == segments
            await upsert_segments(client, CLIP, segments)

        assert get.called
        assert json.loads(patch.calls[0].request.content) == segments
