import json

import httpx
import pytest
import respx
from httpx import Response
from ctms_client.client import CtmsClient
from ctms_client.errors import ConflictError, CtmsHTTPError, StateError
from ctms_client.models import Session
from ctms_client.operations.locations import (
    MoveConflictPolicy,
    add_item,
    create_folder,
    delete_all_items_in_folder,
    delete_bulk_items_by_id,
    delete_bulk_items_in_folder,
    delete_item,
    delete_item_in_folder,
    get_item_by_asset,
    get_item_by_id,
    get_item_by_moniker,
    get_root,
    move_item,
    move_items,
    update_item,
)
from hal_docs import BASE, asset, folder, item_url, make_store

DESTINATION = folder("/Projects/Archive/")
BACKUP = folder("/Projects/Archive/Clips copy 123/")
TO_MOVE = {"base": {"id": "/Projects/Clips/", "type": "folder"}}

NAME_COLLISION = {
    "code": "409",
    "message": "Folder already exists; name: Clips",
    "incident": "inc-1",
}


def _client():
    return CtmsClient(base_url=BASE, session=Session(access_token="tok"))


def _link(document, rel):
    return document["_links"][rel]["href"]


@pytest.mark.asyncio
async def test_get_item_by_id_sends_paging_params_and_drains():
    next_href = f"{BASE}/locations/items/p2"
    first = folder("/Projects/", [asset("/Projects/a")], next_href=next_href, total=2)
    second = {"_embedded": {"loc:item": [asset("/Projects/b")]}, "paging": {"offset": 1}}
    async with respx.mock:
        route = respx.get(item_url("Projects")).mock(return_value=Response(200, json=first))
        respx.get(next_href).mock(return_value=Response(200, json=second))

        async with _client() as client:
            item = await get_item_by_id(
                client, make_store(), "Projects", attributes=["a1", "a2"]
            )

        params = route.calls[0].request.url.params
        assert params["offset"] == "0"
        assert params["limit"] == "1000"
        assert params["attributes"] == "a1,a2"

    ids = [i["base"]["id"] for i in item["_embedded"]["loc:collection"]["_embedded"]["loc:item"]]
    assert ids == ["/Projects/a", "/Projects/b"]


@pytest.mark.asyncio
async def test_get_root_uses_discovered_relation():
    async with respx.mock:
        respx.get(f"{BASE}/locations/root").mock(
            return_value=Response(200, json=folder("/"))
        )

        async with _client() as client:
            root = await get_root(client, make_store())

    assert root["base"]["id"] == "/"


@pytest.mark.asyncio
async def test_create_folder_posts_name():
    async with respx.mock:
        route = respx.post(_link(DESTINATION, "loc:create-folder")).mock(
            return_value=Response(200, json=folder("/Projects/Archive/New/"))
        )

        async with _client() as client:
            created = await create_folder(client, DESTINATION, "New")

        assert json.loads(route.calls[0].request.content) == {"common": {"name": "New"}}

    assert created["common"]["name"] == "New"


@pytest.mark.asyncio
async def test_move_item_success():
    async with respx.mock:
        route = respx.post(_link(DESTINATION, "loc:move-item")).mock(
            return_value=Response(200, json={"base": {"id": "/Projects/Archive/Clips/"}})
        )

        async with _client() as client:
            moved = await move_item(client, DESTINATION, TO_MOVE)

        assert json.loads(route.calls[0].request.content) == TO_MOVE

    assert moved["base"]["id"] == "/Projects/Archive/Clips/"


@pytest.mark.asyncio
async def test_move_item_name_collision_moves_into_one_backup_folder():
    policy = MoveConflictPolicy(suffix=lambda: "123")
    async with respx.mock:
        respx.post(_link(DESTINATION, "loc:move-item")).mock(
            return_value=Response(409, json=NAME_COLLISION)
        )
        create = respx.post(_link(DESTINATION, "loc:create-folder")).mock(
            return_value=Response(200, json=BACKUP)
        )
        backup_move = respx.post(_link(BACKUP, "loc:move-item")).mock(
            return_value=Response(200, json={"base": {"id": "moved"}})
        )

        async with _client() as client:
            moved = await move_item(client, DESTINATION, TO_MOVE, policy=policy)

        assert create.call_count == 1
        assert json.loads(create.calls[0].request.content) == {
            "common": {"name": "Clips copy 123"}
        }
        assert backup_move.call_count == 1

    assert moved == {"base": {"id": "moved"}}


@pytest.mark.asyncio
async def test_move_item_other_conflict_is_not_remediated():
    conflict = {"code": "LOCKED", "message": "Item is locked", "incident": "inc-2"}
    async with respx.mock:
        respx.post(_link(DESTINATION, "loc:move-item")).mock(
            return_value=Response(409, json=conflict)
        )
        create = respx.post(_link(DESTINATION, "loc:create-folder")).mock(
            return_value=Response(200, json=BACKUP)
        )

        async with _client() as client:
            with pytest.raises(ConflictError) as exc:
                await move_item(client, DESTINATION, TO_MOVE)

        assert not create.called

    assert not exc.value.is_name_collision


@pytest.mark.asyncio
async def test_move_item_server_error_propagates():
    async with respx.mock:
        respx.post(_link(DESTINATION, "loc:move-item")).mock(
            return_value=Response(500, json={"message": "boom"})
        )

        async with _client() as client:
            with pytest.raises(CtmsHTTPError) as exc:
                await move_item(client, DESTINATION, TO_MOVE)

    assert exc.value.status_code == 500


@pytest.mark.asyncio
async def test_move_item_retries_are_bounded():
    policy = MoveConflictPolicy(max_attempts=3, suffix=lambda: "123")
    async with respx.mock:
        first_move = respx.post(_link(DESTINATION, "loc:move-item")).mock(
            return_value=Response(409, json=NAME_COLLISION)
        )
        first_create = respx.post(_link(DESTINATION, "loc:create-folder")).mock(
            return_value=Response(200, json=BACKUP)
        )
        backup_move = respx.post(_link(BACKUP, "loc:move-item")).mock(
            return_value=Response(409, json=NAME_COLLISION)
        )
        backup_create = respx.post(_link(BACKUP, "loc:create-folder")).mock(
            return_value=Response(200, json=BACKUP)
        )

        async with _client() as client:
            with pytest.raises(ConflictError):
                await move_item(client, DESTINATION, TO_MOVE, policy=policy)

        assert first_move.call_count + backup_move.call_count == 3
        assert first_create.call_count + backup_create.call_count == 2


@pytest.mark.asyncio
async def test_move_item_without_link_raises_state_error():
    destination = {"base": {"id": "/Projects/RO/", "type": "folder"}, "_links": {}}
    async with _client() as client:
        with pytest.raises(StateError) as exc:
            await move_item(client, destination, TO_MOVE)

    assert exc.value.relation == "loc:move-item"


@pytest.mark.asyncio
async def test_move_items_posts_list():
    destination = folder(
        "/Projects/Archive/",
        links={"loc:move-items": {"href": f"{BASE}/locations/move-items"}},
    )
    to_move = [asset("/Projects/a"), asset("/Projects/b")]
    async with respx.mock:
        route = respx.post(f"{BASE}/locations/move-items").mock(
            return_value=Response(200, json={"command": {"id": "c1"}})
        )

        async with _client() as client:
            await move_items(client, destination, to_move)

        assert len(json.loads(route.calls[0].request.content)) == 2


@pytest.mark.asyncio
async def test_update_item_requires_link():
    async with _client() as client:
        with pytest.raises(StateError):
            await update_item(client, asset("/Projects/a"), {"common": {"name": "b"}})


@pytest.mark.asyncio
async def test_update_item_patches_name():
    clip = asset("/Projects/a", links={"loc:update-item": {"href": f"{BASE}/upd/a"}})
    async with respx.mock:
        route = respx.patch(f"{BASE}/upd/a").mock(return_value=Response(200, json={}))

        async with _client() as client:
            await update_item(client, clip, {"common": {"name": "b"}})

        assert json.loads(route.calls[0].request.content) == {"common": {"name": "b"}}


@pytest.mark.asyncio
async def test_add_item_posts_to_folder():
    target = folder("/Projects/A/", links={"loc:add-item": {"href": f"{BASE}/add/a"}})
    async with respx.mock:
        route = respx.post(f"{BASE}/add/a").mock(return_value=Response(200, json={}))

        async with _client() as client:
            await add_item(client, target, {"base": {"id": "x", "type": "asset"}})

        assert route.called


@pytest.mark.asyncio
async def test_delete_item_without_link_returns_false():
    async with respx.mock(assert_all_mocked=True) as mock:
        async with _client() as client:
            assert await delete_item(client, asset("/Projects/a")) is False

        assert not mock.calls


@pytest.mark.asyncio
async def test_delete_item_success_and_failures():
    ok = asset("/Projects/ok", links={"loc:delete-item": {"href": f"{BASE}/del/ok"}})
    denied = asset("/Projects/no", links={"loc:delete-item": {"href": f"{BASE}/del/no"}})
    down = asset("/Projects/down", links={"loc:delete-item": {"href": f"{BASE}/del/down"}})
    async with respx.mock:
        respx.delete(f"{BASE}/del/ok").mock(return_value=Response(204))
        respx.delete(f"{BASE}/del/no").mock(
            return_value=Response(403, json={"message": "Forbidden"})
        )
        respx.delete(f"{BASE}/del/down").mock(side_effect=httpx.ConnectError("reset"))

        async with _client() as client:
            assert await delete_item(client, ok) is True
            assert await delete_item(client, denied) is False
            assert await delete_item(client, down) is False


@pytest.mark.asyncio
async def test_delete_all_items_in_folder_returns_leftovers():
    ok = asset("/Projects/A/ok", links={"loc:delete-item": {"href": f"{BASE}/del/ok"}})
    locked = asset("/Projects/A/locked")
    parent = folder("/Projects/A/", [ok, locked])
    async with respx.mock:
        respx.delete(f"{BASE}/del/ok").mock(return_value=Response(204))

        async with _client() as client:
            left = await delete_all_items_in_folder(client, parent)

    assert left == [locked]


@pytest.mark.asyncio
async def test_delete_item_in_folder_matches_child_id():
    child = asset("/Projects/A/clip", links={"loc:delete-item": {"href": f"{BASE}/del/c"}})
    parent = folder("/Projects/A/", [child])
    async with respx.mock:
        route = respx.delete(f"{BASE}/del/c").mock(return_value=Response(204))

        async with _client() as client:
            assert await delete_item_in_folder(client, parent, "clip") is True
            assert await delete_item_in_folder(client, parent, "other") is False

        assert route.call_count == 1


@pytest.mark.asyncio
async def test_delete_bulk_items_by_id_uses_location_domain():
    async with respx.mock:
        route = respx.post(f"{BASE}/locations/bulk-delete").mock(
            return_value=Response(200, json={"command": {"id": "c9"}})
        )

        async with _client() as client:
            command = await delete_bulk_items_by_id(client, make_store(), ["a", "b"])

        assert json.loads(route.calls[0].request.content) == ["a", "b"]

    assert command["command"]["id"] == "c9"


@pytest.mark.asyncio
async def test_delete_bulk_items_in_folder_skips_sub_folders():
    bulk_link = {"loc:delete-item-in-folder-by-id-bulk-command": {"href": f"{BASE}/bulk/a"}}
    parent = folder(
        "/Projects/A/",
        [asset("/Projects/A/1"), folder("/Projects/A/Sub/"), asset("/Projects/A/2")],
        links=bulk_link,
    )
    only_folders = folder("/Projects/B/", [folder("/Projects/B/Sub/")], links=bulk_link)
    async with respx.mock:
        route = respx.post(f"{BASE}/bulk/a").mock(
            return_value=Response(200, json={"command": {"id": "c1"}})
        )

        async with _client() as client:
            await delete_bulk_items_in_folder(client, parent)
            assert await delete_bulk_items_in_folder(client, only_folders) is None

        assert route.call_count == 1
        assert json.loads(route.calls[0].request.content) == [
            "/Projects/A/1",
            "/Projects/A/2",
        ]


@pytest.mark.asyncio
async def test_get_item_by_moniker_expands_template():
    async with respx.mock:
        route = respx.get(f"{BASE}/locations/monikers/060a2b34").mock(
            return_value=Response(200, json=asset("/Projects/clip"))
        )

        async with _client() as client:
            await get_item_by_moniker(client, make_store(), "060a2b34")

        assert route.called


@pytest.mark.asyncio
async def test_get_item_by_asset_follows_self_link():
    listed = folder("/Projects/A/")
    async with respx.mock:
        route = respx.get(item_url("/Projects/A/")).mock(
            return_value=Response(200, json=folder("/Projects/A/", [asset("/Projects/A/c")]))
        )

        async with _client() as client:
            item = await get_item_by_asset(client, listed, limit=50)

        assert route.calls[0].request.url.params["limit"] == "50"

    assert item["_embedded"]["loc:collection"]["_embedded"]["loc:item"][0]["base"]["id"] == (
        "/Projects/A/c"
    )


@pytest.mark.parametrize("attempts", [0, -1])
def test_move_conflict_policy_rejects_non_positive_attempts(attempts):
    with pytest.raises(ValueError):
        MoveConflictPolicy(max_attempts=attempts)


@pytest.mark.asyncio
async def test_move_item_single_attempt_creates_no_backup():
    policy = MoveConflictPolicy(max_attempts=1, suffix=lambda: "123")
    async with respx.mock:
        move = respx.post(_link(DESTINATION, "loc:move-item")).mock(
            return_value=Response(409, json=NAME_COLLISION)
        )
        create = respx.post(_link(DESTINATION, "loc:create-folder")).mock(
            return_value=Response(200, json=BACKUP)
        )

        async with _client() as client:
            with pytest.raises(ConflictError):
                await move_item(client, DESTINATION, TO_MOVE, policy=policy)

        assert move.call_count == 1
        assert create.call_count == 0


@pytest.mark.asyncio
async def test_delete_item_malformed_document_returns_false():
    href = f"{BASE}/del/bad"
    malformed = {"base": None, "_links": {"loc:delete-item": {"href": href}}}
    async with respx.mock:
        route = respx.delete(href).mock(return_value=Response(204))

        async with _client() as client:
            assert await delete_item(client, malformed) is False

        assert route.call_count == 0
