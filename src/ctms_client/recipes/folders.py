"""
Folder recipes built on the location operations: recursive walks, path
upserts, bulk clean-up and reservation sweeps.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ctms_client.client import CtmsClient
from ctms_client.models import AssetObject, AssetType, BaseType
from ctms_client.observability import log_operation, meta
from ctms_client.operations.locations import (
    create_folder,
    delete_bulk_items_in_folder,
    get_bulk_delete_status,
    get_item_by_id,
)
from ctms_client.operations.pa import delete_reservation, get_reservation
from ctms_client.paging import get_items
from ctms_client.polling import BulkPollOutcome, Sleep, await_completion
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.recipes.folders")

PROJECTS = "Projects"
DEFAULT_DEPTH_LIMIT = 100


def folder_children(folder: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Folder-typed entries of the folder's collection, in server order."""
    children = [
        child
        for child in get_items(folder)
        if AssetObject.model_validate(child).is_folder
    ]
    log.debug(
        f"{len(children)} folders found",
        extra=meta("get assets", AssetObject.model_validate(folder).common.path),
    )
    return children


class FolderWalker:
    """
    Collects a folder and its nested folders, pre-order and depth first.

    The root is at depth 1. Folders deeper than ``depth_limit`` are never
    fetched. With ``only_depth_folders`` only folders at exactly
    ``depth_limit`` are recorded.
    """

    def __init__(
        self,
        client: CtmsClient,
        store: ResourceStore,
        *,
        depth_limit: int = DEFAULT_DEPTH_LIMIT,
        only_depth_folders: bool = False,
    ):
        if depth_limit < 1:
            raise ValueError("depth_limit must be >= 1")
        self.client = client
        self.store = store
        self.depth_limit = depth_limit
        self.only_depth_folders = only_depth_folders
        self.directories: List[Dict[str, Any]] = []

    async def walk(self, root: str = PROJECTS) -> List[Dict[str, Any]]:
        """``root`` can be 'Projects' or '/Projects/Child Folder'."""
        self.directories = []
        await self._walk(root, 1)
        return self.directories

    async def _walk(self, path: str, depth: int) -> None:
        with log_operation(
            log, "walk", path, f"get child folders with depth: {depth}"
        ):
            folder = await get_item_by_id(self.client, self.store, path)
            children = folder_children(folder)

            if not self.only_depth_folders or depth == self.depth_limit:
                self.directories.append(folder)

            if depth < self.depth_limit:
                for child in children:
                    await self._walk(AssetObject.model_validate(child).base.id, depth + 1)


async def upsert_folder(
    client: CtmsClient,
    store: ResourceStore,
    name: str,
    parent_folder: str = PROJECTS,
) -> Dict[str, Any]:
    """Returns the child folder called ``name`` (case-insensitive), creating it when missing."""
    with log_operation(
        log, "upsert folder", name, f"upsert folder: {name} in: {parent_folder}"
    ) as extra:
        parent = await get_item_by_id(client, store, parent_folder)
        hits = folder_children(parent)
        log.debug(
            f"{len(hits)} folder(s) found in folder: {parent_folder}", extra=extra
        )
        for hit in hits:
            if AssetObject.model_validate(hit).common.name.lower() == name.lower():
                log.debug(f"{name} in {parent_folder} already exists", extra=extra)
                return hit
        return await create_folder(client, parent, name)


async def _create_path(
    client: CtmsClient, store: ResourceStore, parent: str, folders: List[str]
) -> Optional[Dict[str, Any]]:
    created: Optional[Dict[str, Any]] = None
    for folder in folders:
        created = await upsert_folder(client, store, folder, parent)
        parent = AssetObject.model_validate(created).base.id
    return created


async def create_projects_folders_full_path(
    client: CtmsClient, store: ResourceStore, full_folder_path: str
) -> Optional[Dict[str, Any]]:
    """
    Creates every missing folder of ``full_folder_path`` below Projects and
    returns the deepest one (None for an empty path).
    """
    folders = [f for f in full_folder_path.split("/") if f and f != PROJECTS]
    return await _create_path(client, store, PROJECTS, folders)


async def create_folders_full_path(
    client: CtmsClient, store: ResourceStore, full_folder_path: str
) -> Optional[Dict[str, Any]]:
    """Like create_projects_folders_full_path, rooted at the path's first segment."""
    folders = [f for f in full_folder_path.split("/") if f]
    if not folders:
        return None
    root = folders[0]
    return await _create_path(
        client, store, root, [f for f in folders[1:] if f != root]
    )


async def get_child_folders(
    client: CtmsClient, store: ResourceStore, root: str = PROJECTS
) -> List[Dict[str, Any]]:
    with log_operation(log, "get child(s)", root):
        folder = await get_item_by_id(client, store, root)
        return folder_children(folder)


async def get_masterclips_by_folder(
    client: CtmsClient, store: ResourceStore, root: str = PROJECTS
) -> List[Dict[str, Any]]:
    with log_operation(log, "get masterclip(s)", root):
        folder = await get_item_by_id(client, store, root)
        return [
            item
            for item in get_items(folder)
            if AssetObject.model_validate(item).common.asset_type
            == AssetType.MASTERCLIP.value
        ]


async def delete_bulk_assets_in_folder_with_status(
    client: CtmsClient, folder: Dict[str, Any], *, sleep: Sleep = asyncio.sleep
) -> Optional[BulkPollOutcome]:
    """
    Bulk-deletes the assets (not the sub folders) of ``folder`` and waits
    for the command. Returns None when there was nothing to delete.
    """
    path = AssetObject.model_validate(folder).common.path or ""
    with log_operation(log, "bulk delete", path):
        command = await delete_bulk_items_in_folder(client, folder)
        if command is None:
            return None
        status = await get_bulk_delete_status(client, command, path)
        ids = (((status.get("payload") or {}).get("command-parameters")) or {}).get(
            "ids"
        ) or []
        return await await_completion(
            client, command, len(ids), ref=path, sleep=sleep
        )


async def remove_reservations(
    client: CtmsClient, folders: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Releases the reservation of every reserved folder in ``folders``."""
    reserved = [f for f in folders if AssetObject.model_validate(f).status.reserved]
    log.debug(
        f"{len(reserved)} of {len(folders)} folder(s) has a reservation",
        extra=meta("remove reservation", "multiple folders"),
    )
    responses: List[Dict[str, Any]] = []
    for folder in reserved:
        reservation = await get_reservation(client, folder)
        responses.append(await delete_reservation(client, reservation))
    return responses


__all__ = [
    "PROJECTS",
    "FolderWalker",
    "folder_children",
    "upsert_folder",
    "create_projects_folders_full_path",
    "create_folders_full_path",
    "get_child_folders",
    "get_masterclips_by_folder",
    "delete_bulk_assets_in_folder_with_status",
    "remove_reservations",
]
