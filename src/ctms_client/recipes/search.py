from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from ctms_client.client import CtmsClient
from ctms_client.models import AssetObject
from ctms_client.observability import log_operation
from ctms_client.operations.locations import get_item_by_id
from ctms_client.operations.search import (
    elastic_search,
    get_elastic_search_result,
    get_elastic_search_status,
)
from ctms_client.paging import get_items
from ctms_client.polling import Sleep
from ctms_client.recipes.folders import PROJECTS, FolderWalker
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.recipes.search")

STATUS_POLL_SECONDS = 0.1
MAX_STATUS_POLLS = 100


def _matching(
    items: List[Dict[str, Any]], asset_type: str, value: str
) -> List[Dict[str, Any]]:
    # folders carry no assetType
    hits = []
    for item in items:
        common = AssetObject.model_validate(item).common
        if common.asset_type is not None and (
            common.asset_type == asset_type and common.name == value
        ):
            hits.append(item)
    return hits


async def find_in_folder(
    client: CtmsClient,
    store: ResourceStore,
    asset_type: str,
    value: str,
    root: str = PROJECTS,
) -> List[Dict[str, Any]]:
    """
    Items of ``root`` with the given common.assetType and exact name.
    Folders have no assetType and never match.
    """
    with log_operation(
        log, "find in", root, f"for asset type: {asset_type} with value {value}"
    ) as extra:
        folder = await get_item_by_id(client, store, root)
        items = get_items(folder)
        log.debug(f"found: {len(items)} items in folder: {root}", extra=extra)
        hits = _matching(items, asset_type, value)
        log.debug(f"{len(hits)} {asset_type} found in folder: {root}", extra=extra)
        return hits


async def find_in_all_folders(
    client: CtmsClient,
    store: ResourceStore,
    asset_type: str,
    value: str,
    root: str = PROJECTS,
) -> List[Dict[str, Any]]:
    """
    find_in_folder over ``root`` and every nested folder, each folder fetched
    once by the walk. The search service (search_with_elastic_search) is
    much cheaper on large trees.
    """
    with log_operation(log, "find in", root, "find in all folders") as extra:
        tree = await FolderWalker(client, store).walk(root)
        log.debug(f"find in all folders: {len(tree)}", extra=extra)
        found: List[Dict[str, Any]] = []
        for folder in tree:
            found.extend(_matching(get_items(folder), asset_type, value))
        log.debug(f"{len(found)} {asset_type} found under: {root}", extra=extra)
        return found


async def search_with_elastic_search(
    client: CtmsClient,
    store: ResourceStore,
    expression: Dict[str, Any],
    *,
    max_polls: int = MAX_STATUS_POLLS,
    sleep: Sleep = asyncio.sleep,
) -> List[Dict[str, Any]]:
    """
    Runs an expression on the search service, waits until the search
    reports complete and returns its results.
    """
    with log_operation(log, "elastic search", "", "search with elastic search") as extra:
        status = await elastic_search(client, store, expression)
        polls = 0
        while not status.get("complete"):
            if polls >= max_polls:
                log.warning(
                    f"search {status.get('id')} not complete after {polls} polls",
                    extra=extra,
                )
                break
            log.debug(
                f"search with id: {status.get('id')} status: "
                f"{(status.get('progress') or {}).get('status')}",
                extra=extra,
            )
            await sleep(STATUS_POLL_SECONDS)
            status = await get_elastic_search_status(client, status)
            polls += 1

        assets = await get_elastic_search_result(client, status)
        log.debug(f"found assets: {len(assets)}", extra=extra)
        return assets


__all__ = ["find_in_folder", "find_in_all_folders", "search_with_elastic_search"]
