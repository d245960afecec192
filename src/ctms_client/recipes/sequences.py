from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ctms_client import hal
from ctms_client.client import CtmsClient
from ctms_client.models import REFERENCED_OBJECT_REL, AssetObject, AssetType
from ctms_client.observability import log_operation
from ctms_client.operations.assets import update_asset_attributes_by_id
from ctms_client.operations.locations import get_item_by_id
from ctms_client.operations.pa import get_media_info_by_id
from ctms_client.paging import get_items
from ctms_client.recipes.expressions import (
    VIDEO_ID_ATTRIBUTE,
    sequences_by_video_id_expression,
)
from ctms_client.recipes.search import search_with_elastic_search
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.recipes.sequences")

FOLDER_LIMIT = 1000


def get_attributes_from_asset(asset: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Custom attributes of the object referenced by a location item."""
    referenced = hal.get_embedded(asset, REFERENCED_OBJECT_REL) or {}
    attributes = hal.get_embedded(referenced, "aa:attributes") or {}
    values = attributes.get("attributes") if isinstance(attributes, dict) else None
    return [a for a in values or [] if isinstance(a, dict)]


def _referenced_id(asset: Dict[str, Any]) -> Optional[str]:
    referenced = hal.get_embedded(asset, REFERENCED_OBJECT_REL)
    if not isinstance(referenced, dict):
        return None
    return AssetObject.model_validate(referenced).base.id or None


async def update_sequence_metadata_by_video_id(
    client: CtmsClient,
    store: ResourceStore,
    video_id: str,
    attributes: Dict[str, Any],
) -> List[Dict[str, Any]]:
    """
    Finds every sequence tagged with ``video_id`` through the search service
    and updates its custom attributes. Returns one response per sequence.
    """
    with log_operation(
        log, "update sequence", video_id, "upsert sequence with metadata"
    ) as extra:
        hits = await search_with_elastic_search(
            client, store, sequences_by_video_id_expression(video_id)
        )
        if not hits:
            log.debug(f"no sequence found with reference: {video_id}", extra=extra)
            return []

        log.debug(f"{len(hits)} found with reference: {video_id}", extra=extra)
        responses = []
        for hit in hits:
            asset_id = hit["catalog_item"]["metadata"]["payload"]["avid"]["id"]
            responses.append(
                await update_asset_attributes_by_id(
                    client, store, asset_id, attributes, ref=video_id
                )
            )
        return responses


async def get_sequences_with_metadata_by_folder(
    client: CtmsClient,
    store: ResourceStore,
    folder: str,
    attributes: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    with log_operation(
        log, "get", folder, f"get sequences with metadata for folder: {folder}"
    ) as extra:
        item = await get_item_by_id(
            client, store, folder, limit=FOLDER_LIMIT, attributes=attributes
        )
        sequences = [
            i
            for i in get_items(item)
            if AssetObject.model_validate(i).common.asset_type
            == AssetType.SEQUENCE.value
        ]
        log.debug(f"found sequences: {len(sequences)} in folder: {folder}", extra=extra)
        return sequences


async def get_media_info_of_sequences_by_folder(
    client: CtmsClient,
    store: ResourceStore,
    folder: str,
    attributes: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """``folder`` is a full path such as '/Projects/Daily'."""
    with log_operation(
        log, "get", folder, f"get video ids of sequences in the folder: {folder}"
    ):
        sequences = await get_sequences_with_metadata_by_folder(
            client, store, folder, attributes
        )
        media_infos = []
        for asset_id in filter(None, (_referenced_id(s) for s in sequences)):
            response = await get_media_info_by_id(client, store, asset_id)
            media_infos.append(response.get("mediaInfo", response))
        return media_infos


async def get_sequences_by_video_id_for_folder(
    client: CtmsClient, store: ResourceStore, video_id: str, folder: str
) -> List[Dict[str, Any]]:
    with log_operation(
        log, "get", video_id, f"get sequences by video id: {video_id} in: {folder}"
    ):
        sequences = await get_sequences_with_metadata_by_folder(
            client, store, folder, [VIDEO_ID_ATTRIBUTE]
        )
        return [
            s
            for s in sequences
            if any(
                a.get("name") == VIDEO_ID_ATTRIBUTE and a.get("value") == video_id
                for a in get_attributes_from_asset(s)
            )
        ]


__all__ = [
    "get_attributes_from_asset",
    "update_sequence_metadata_by_video_id",
    "get_sequences_with_metadata_by_folder",
    "get_media_info_of_sequences_by_folder",
    "get_sequences_by_video_id_for_folder",
]
