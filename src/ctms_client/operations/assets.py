"""
Asset (aa:) operations.

Custom attributes are updated through the aa:update-attributes link of the
referenced object embedded in a location item; common attributes through
aa:update-asset-by-id.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from ctms_client import hal
from ctms_client.client import CtmsClient
from ctms_client.models import REFERENCED_OBJECT_REL, AssetObject
from ctms_client.observability import log_operation
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.operations.assets")


async def get_asset_by_id(
    client: CtmsClient,
    store: ResourceStore,
    asset_id: str,
    attributes: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Returns the aa:asset identified by ``asset_id`` (also the mob id for
    pa: functions), optionally with the given custom attributes.
    """
    with log_operation(log, "asset", asset_id, "get assets by id"):
        url = store.expand("aa:asset-by-id", id=asset_id)
        params = {"attributes": ",".join(attributes)} if attributes else None
        return await client.get(url, params=params, action="asset", ref=asset_id)


async def update_asset_attributes(
    client: CtmsClient, asset: Dict[str, Any], attributes: Dict[str, Any]
) -> Dict[str, Any]:
    """PATCHes custom attributes through the embedded referenced object."""
    name = AssetObject.model_validate(asset).common.name
    with log_operation(log, "update asset", name, "update asset attributes"):
        log.debug(json.dumps(attributes))
        referenced = hal.get_embedded(asset, REFERENCED_OBJECT_REL) or {}
        url = hal.require_link_href(referenced, "aa:update-attributes", ref=name)
        return await client.patch(url, json=attributes, action="update asset", ref=name)


async def update_asset_attributes_by_id(
    client: CtmsClient,
    store: ResourceStore,
    asset_id: str,
    attributes: Dict[str, Any],
    ref: str = "",
) -> Dict[str, Any]:
    """
    ``asset_id`` is the bare id (base.id), not a path. ``ref`` only labels
    the log lines, for example with a video id or a name.
    """
    with log_operation(log, "update asset", ref, f"attributes for id: {asset_id}"):
        log.debug(json.dumps(attributes))
        url = store.expand("aa:update-attributes-by-id", id=asset_id)
        return await client.patch(url, json=attributes, action="update asset", ref=ref)


async def update_asset_by_id(
    client: CtmsClient, store: ResourceStore, asset_id: str, common: Dict[str, Any]
) -> Dict[str, Any]:
    """Updates an aa:asset; only common properties may change."""
    with log_operation(log, "asset", asset_id, "update asset common properties"):
        url = store.expand("aa:update-asset-by-id", id=asset_id)
        return await client.patch(
            url, json={"common": common}, action="asset", ref=asset_id
        )


async def get_time_based(client: CtmsClient, asset: Dict[str, Any]) -> Dict[str, Any]:
    name = AssetObject.model_validate(asset).common.name
    with log_operation(log, "asset", name, f"get time based for: {name}"):
        url = hal.require_link_href(asset, "aa:time-based", ref=name)
        return await client.get(url, action="asset", ref=name)


async def upsert_segments(
    client: CtmsClient, asset: Dict[str, Any], time_based: Dict[str, Any]
) -> Dict[str, Any]:
    name = AssetObject.model_validate(asset).common.name
    with log_operation(log, "asset", name, f"upsert time based for: {name}"):
        url = hal.require_link_href(asset, "aa:time-based", ref=name)
        return await client.patch(url, json=time_based, action="asset", ref=name)


__all__ = [
    "get_asset_by_id",
    "update_asset_attributes",
    "update_asset_attributes_by_id",
    "update_asset_by_id",
    "get_time_based",
    "upsert_segments",
]
