"""
Location (loc:) operations: folders, items, moves, deletes.

An item acting as a folder links loc:collection and embeds that collection;
its entries can be sub folders, asset references or both.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ctms_client import hal
from ctms_client.client import CtmsClient
from ctms_client.errors import ConflictError, CtmsClientError
from ctms_client.models import AssetObject, BaseType
from ctms_client.observability import log_operation, meta
from ctms_client.paging import DEFAULT_MAX_PAGES, drain_pages, get_items
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.operations.locations")

DEFAULT_ITEM_LIMIT = 1000


def _epoch_millis() -> str:
    return str(int(time.time() * 1000))


@dataclass(frozen=True)
class MoveConflictPolicy:
    """
    How move_item remediates a "folder already exists" conflict: create a
    "<name> copy <suffix>" folder in the destination and move into it.
    """

    max_attempts: int = 3
    suffix: Callable[[], str] = field(default=_epoch_millis)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def _item(document: Dict[str, Any]) -> AssetObject:
    return AssetObject.model_validate(document)


async def get_root(client: CtmsClient, store: ResourceStore) -> Dict[str, Any]:
    with log_operation(log, "root", "", "get root location"):
        return await client.get(store.href("loc:root-item"), action="root")


async def get_item_by_id(
    client: CtmsClient,
    store: ResourceStore,
    item_id: str,
    *,
    limit: int = DEFAULT_ITEM_LIMIT,
    attributes: Optional[List[str]] = None,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> Dict[str, Any]:
    """
    Returns the item (folder or not) identified by ``item_id`` with every
    page of its collection merged in.
    ``item_id`` may be 'Projects', '/Projects', '/Projects/' or '/Projects/Child'.
    """
    with log_operation(log, "get item", item_id, f"get item by id: {item_id}"):
        url = store.expand("loc:item-by-id", id=item_id)
        params: Dict[str, Any] = {"offset": 0, "limit": limit}
        if attributes:
            params["attributes"] = ",".join(attributes)
        item = await client.get(url, params=params, action="get item", ref=item_id)
        return await drain_pages(client, item, max_pages=max_pages, ref=item_id)


async def get_item_by_asset(
    client: CtmsClient,
    asset: Dict[str, Any],
    *,
    limit: int = DEFAULT_ITEM_LIMIT,
) -> Dict[str, Any]:
    """
    Full item information with embedded items. For non-folder assets
    assets.get_asset_by_id is lighter.
    """
    ref = _item(asset).base.id
    with log_operation(log, "get item", ref, f"get item by id: {ref}"):
        url = hal.require_link_href(asset, "self", ref=ref)
        item = await client.get(
            url, params={"offset": 0, "limit": limit}, action="get item", ref=ref
        )
        return await drain_pages(client, item, ref=ref)


async def update_item(
    client: CtmsClient, asset: Dict[str, Any], update: Dict[str, Any]
) -> Dict[str, Any]:
    """Renames a location. ``update`` looks like {"common": {"name": "..."}}."""
    ref = _item(asset).base.id
    name = (update.get("common") or {}).get("name")
    with log_operation(log, "update asset", ref, f"update with name: {name}"):
        url = hal.require_link_href(asset, "loc:update-item", ref=ref)
        return await client.patch(url, json=update, action="update asset", ref=ref)


async def add_item(
    client: CtmsClient, folder: Dict[str, Any], item: Dict[str, Any]
) -> Dict[str, Any]:
    """Adds ``item`` (a {"base": {...}} body) to the folder; copies folders with content."""
    base = item.get("base") or {}
    ref = base.get("id")
    with log_operation(
        log, "add asset", ref, f"add item: {ref} with type: {base.get('type')}"
    ):
        url = hal.require_link_href(folder, "loc:add-item", ref=_item(folder).base.id)
        return await client.post(url, json=item, action="add asset", ref=ref)


async def create_folder(
    client: CtmsClient, parent_folder: Dict[str, Any], folder_name: str
) -> Dict[str, Any]:
    parent_id = _item(parent_folder).base.id
    with log_operation(log, "create folder", folder_name, f"in: {parent_id}"):
        url = hal.require_link_href(parent_folder, "loc:create-folder", ref=parent_id)
        return await client.post(
            url,
            json={"common": {"name": folder_name}},
            action="create folder",
            ref=folder_name,
        )


async def move_item(
    client: CtmsClient,
    destination: Dict[str, Any],
    to_move: Dict[str, Any],
    *,
    policy: MoveConflictPolicy = MoveConflictPolicy(),
) -> Dict[str, Any]:
    """
    Moves an item (a folder with all its content, or a single item) into
    ``destination``. When the destination already holds a folder with the
    same name, a backup copy folder is created and the move is retried into
    it, at most ``policy.max_attempts`` times in total.
    """
    base = to_move.get("base") or {}
    ref = base.get("id") or ""
    extra = meta("move asset", ref)
    name = hal.last_path_segment(ref) or ref

    target = destination
    attempt = 0
    while True:
        attempt += 1
        log.debug(f"move item: {ref} with type: {base.get('type')}", extra=extra)
        url = hal.require_link_href(
            target, "loc:move-item", ref=_item(target).base.id
        )
        try:
            return await client.post(url, json=to_move, action="move asset", ref=ref)
        except ConflictError as exc:
            if not exc.is_name_collision:
                log.error(f"move item failed: {exc}", extra=extra)
                raise
            log.warning(exc.message.split(";")[0], extra=extra)
            if attempt == policy.max_attempts:
                log.error(
                    f"move item still conflicting after {attempt} attempts",
                    extra=extra,
                )
                raise
            target = await create_folder(
                client, target, f"{name} copy {policy.suffix()}"
            )
        except CtmsClientError as exc:
            log.error(f"move item failed: {exc}", extra=extra)
            raise


async def move_items(
    client: CtmsClient, destination: Dict[str, Any], to_move: List[Dict[str, Any]]
) -> Dict[str, Any]:
    ref = _item(destination).base.id
    with log_operation(log, "bulk move", ref, f"move items: {len(to_move)}"):
        url = hal.require_link_href(destination, "loc:move-items", ref=ref)
        return await client.post(url, json=to_move, action="bulk move", ref=ref)


async def delete_item(client: CtmsClient, asset: Dict[str, Any]) -> bool:
    """
    Deletes ``asset``. Never raises: a missing loc:delete-item link or any
    failure returns False so batch callers can carry on.
    """
    url = hal.get_link_href(asset, "loc:delete-item")
    if not url:
        return False
    extra = meta("delete asset", url)
    try:
        item = _item(asset)
        extra = meta("delete asset", item.base.id)
        log.debug(
            f"delete {item.common.asset_type}: {item.common.path}{item.common.name}",
            extra=extra,
        )
        await client.delete(url, action="delete asset", ref=item.base.id)
        return True
    except (CtmsClientError, ValidationError) as exc:
        log.error(f"delete item failed: {exc}", extra=extra)
        return False


async def delete_item_in_folder(
    client: CtmsClient, parent_folder: Dict[str, Any], item_id: str
) -> bool:
    """Deletes the child whose id is the folder id followed by ``item_id``."""
    folder_id = _item(parent_folder).base.id
    wanted = f"{folder_id}{item_id}"
    for child in get_items(parent_folder):
        if _item(child).base.id == wanted:
            return await delete_item(client, child)
    log.warning(
        f"item with id: {item_id} not found in folder: {folder_id} during delete item",
        extra=meta("delete asset", item_id),
    )
    return False


async def delete_all_items_in_folder(
    client: CtmsClient, parent_folder: Dict[str, Any]
) -> List[Dict[str, Any]]:
    """
    Deletes the folder's items one by one and returns those that could not
    be deleted. delete_bulk_items_in_folder is cheaper for large folders.
    """
    not_deleted: List[Dict[str, Any]] = []
    for asset in get_items(parent_folder):
        if not await delete_item(client, asset):
            not_deleted.append(asset)
    return not_deleted


async def delete_bulk_items_by_id(
    client: CtmsClient, store: ResourceStore, ids: List[str]
) -> Dict[str, Any]:
    """
    Deletes assets across folders with one bulk command. Bulk requests need
    a body, so the command is a POST.
    """
    ids_string = ", ".join(ids)
    with log_operation(
        log, "bulk delete", ids_string, f"item(s): {len(ids)} by id: {ids_string}"
    ):
        url = hal.require_link_href(
            store.location, "loc:delete-item-by-id-bulk-command", ref="locations"
        )
        return await client.post(url, json=ids, action="bulk delete", ref=ids_string)


async def get_bulk_delete_status(
    client: CtmsClient, bulk_command: Dict[str, Any], folder: str = ""
) -> Dict[str, Any]:
    command_id = (bulk_command.get("command") or {}).get("id")
    with log_operation(log, "bulk delete", folder, f"get status with id: {command_id}"):
        url = hal.require_link_href(bulk_command, "self", ref=command_id)
        return await client.get(url, action="bulk delete", ref=folder)


async def delete_bulk_items_in_folder(
    client: CtmsClient, folder: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """
    Submits a bulk delete for the non-folder items of ``folder``.
    Returns None when there is nothing to delete.
    """
    item = _item(folder)
    with log_operation(log, "bulk delete", item.common.name, "delete item(s) in folder"):
        url = hal.require_link_href(
            folder, "loc:delete-item-in-folder-by-id-bulk-command", ref=item.base.id
        )
        ids = [
            _item(child).base.id
            for child in get_items(folder)
            if _item(child).base.type != BaseType.FOLDER.value
        ]
        if not ids:
            return None
        log.debug(
            f"delete item(s) in folder total found: {len(ids)}",
            extra=meta("bulk delete", item.common.name),
        )
        return await client.post(
            url, json=ids, action="bulk delete", ref=item.common.name
        )


async def get_item_by_moniker(
    client: CtmsClient, store: ResourceStore, moniker: str
) -> Dict[str, Any]:
    with log_operation(log, "get", moniker, "get item by moniker"):
        template = hal.require_link_href(
            store.location, "pa:location-item-by-moniker", ref="locations"
        )
        url = hal.expand_template(template, moniker=moniker)
        return await client.get(url, action="get", ref=moniker)


__all__ = [
    "MoveConflictPolicy",
    "get_root",
    "get_item_by_id",
    "get_item_by_asset",
    "update_item",
    "add_item",
    "create_folder",
    "move_item",
    "move_items",
    "delete_item",
    "delete_item_in_folder",
    "delete_all_items_in_folder",
    "delete_bulk_items_by_id",
    "get_bulk_delete_status",
    "delete_bulk_items_in_folder",
    "get_item_by_moniker",
]
