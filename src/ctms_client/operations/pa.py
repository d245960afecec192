"""
Production automation (pa:, Interplay) operations: sequences, file import,
media info and reservations.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ctms_client import hal
from ctms_client.client import CtmsClient
from ctms_client.errors import CtmsClientError
from ctms_client.models import AssetObject
from ctms_client.observability import log_operation
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.operations.pa")

DEFAULT_RESERVATION = timedelta(days=1)


def _iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _reservation_ref(reservation: Dict[str, Any]) -> str:
    return hal.last_path_segment(hal.get_link_href(reservation, "self")) or ""


async def create_sequence(
    client: CtmsClient, store: ResourceStore, sequence: Dict[str, Any]
) -> Dict[str, Any]:
    """
    ``sequence`` carries ``dbPath`` (target folder) and
    ``item.createSequence.name``.
    """
    name = ((sequence.get("item") or {}).get("createSequence") or {}).get("name")
    with log_operation(
        log, "create sequence", name, f"in folder: {sequence.get('dbPath')}"
    ):
        url = hal.require_link_href(store.pa, "pa:createSequence", ref="pa")
        return await client.post(url, json=sequence, action="create sequence", ref=name)


async def create_subclip(
    client: CtmsClient, store: ResourceStore, asset_id: str, body: Dict[str, Any]
) -> Dict[str, Any]:
    """Creates a sub clip of the master clip ``asset_id``."""
    subclip = (body.get("item") or {}).get("createSequence") or {}
    with log_operation(
        log,
        "create subclip",
        subclip.get("name"),
        f"{subclip.get('type')} sub clip with name: {subclip.get('name')} "
        f"in folder: {body.get('dbPath')}",
    ):
        template = hal.require_link_href(store.pa, "pa:createSubclip", ref="pa")
        url = hal.expand_template(template, assetId=asset_id)
        return await client.post(
            url, json=body, action="create subclip", ref=subclip.get("name")
        )


async def upload_file(
    client: CtmsClient, asset: Dict[str, Any], file_path: str
) -> Dict[str, Any]:
    """PUTs the file's bytes to the folder's pa:upload-file link."""
    name = AssetObject.model_validate(asset).common.name
    with log_operation(log, "upload file", name, file_path):
        path = Path(file_path)
        if not path.is_file():
            raise CtmsClientError(f"File not found: {file_path}")
        url = hal.require_link_href(asset, "pa:upload-file", ref=name)
        return await client.put_bytes(
            url, content=path.read_bytes(), action="upload file", ref=name
        )


async def import_asset(
    client: CtmsClient, import_to: Dict[str, Any], import_body: Dict[str, Any]
) -> Dict[str, Any]:
    """Imports a file previously sent with upload_file; body carries ``fileName``."""
    file_name = import_body.get("fileName")
    with log_operation(log, "import file", file_name, f"{file_name}"):
        url = hal.require_link_href(
            import_to,
            "pa:import-asset-command",
            ref=AssetObject.model_validate(import_to).base.id,
        )
        return await client.post(
            url, json=import_body, action="import file", ref=file_name
        )


async def get_media_info_by_id(
    client: CtmsClient, store: ResourceStore, asset_id: str
) -> Dict[str, Any]:
    with log_operation(log, "media info", asset_id, f"get media info for: {asset_id}"):
        template = hal.require_link_href(store.pa, "pa:mediaInfo-by-id", ref="pa")
        url = hal.expand_template(template, assetId=asset_id)
        return await client.get(url, action="media info", ref=asset_id)


async def get_media_info_bulk(
    client: CtmsClient, store: ResourceStore, ids: List[str]
) -> Dict[str, Any]:
    """Submits a media info bulk command; see polling.await_completion."""
    ids_string = ", ".join(ids)
    with log_operation(log, "bulk media info", ids_string, f"for: {ids_string}"):
        url = hal.require_link_href(store.pa, "pa:mediainfo-command", ref="pa")
        return await client.post(url, json=ids, action="bulk media info", ref=ids_string)


async def get_media_info_bulk_status(
    client: CtmsClient, store: ResourceStore, ids: List[str]
) -> Dict[str, Any]:
    ids_string = ", ".join(ids)
    with log_operation(
        log, "bulk media info", ids_string, f"get media info bulk for: {ids_string}"
    ):
        url = hal.require_link_href(store.pa, "pa:mediaInfoBulk", ref="pa")
        return await client.post(url, json=ids, action="bulk media info", ref=ids_string)


async def get_reservation(client: CtmsClient, asset: Dict[str, Any]) -> Dict[str, Any]:
    ref = AssetObject.model_validate(asset).base.id
    with log_operation(log, "get reservation", ref):
        url = hal.require_link_href(asset, "pa:reservations", ref=ref)
        return await client.get(url, action="get reservation", ref=ref)


async def create_reservation(
    client: CtmsClient,
    reservation: Dict[str, Any],
    expiration: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Reserves the asset until ``expiration`` (default: one day from now).
    Creating again with a later expiration renews the reservation.
    """
    ref = _reservation_ref(reservation)
    if expiration is None:
        expiration = datetime.now(timezone.utc) + DEFAULT_RESERVATION
    with log_operation(log, "create reservation", ref):
        url = hal.require_link_href(reservation, "pa:create-reservation", ref=ref)
        return await client.post(
            url,
            json={"expirationDate": _iso(expiration)},
            action="create reservation",
            ref=ref,
        )


async def delete_reservation(
    client: CtmsClient, reservation: Dict[str, Any]
) -> Dict[str, Any]:
    """Releases the reservations of all users on the asset."""
    ref = _reservation_ref(reservation)
    with log_operation(log, "delete reservation", ref):
        url = hal.require_link_href(reservation, "pa:create-reservation", ref=ref)
        return await client.delete(
            url, params={"user": "all-users"}, action="delete reservation", ref=ref
        )


async def get_associations(
    client: CtmsClient, asset: Dict[str, Any]
) -> Dict[str, Any]:
    ref = AssetObject.model_validate(asset).base.id
    with log_operation(log, "get associations", ref):
        url = hal.require_link_href(asset, "pa:asset-associations", ref=ref)
        return await client.get(url, action="get associations", ref=ref)


__all__ = [
    "create_sequence",
    "create_subclip",
    "upload_file",
    "import_asset",
    "get_media_info_by_id",
    "get_media_info_bulk",
    "get_media_info_bulk_status",
    "get_reservation",
    "create_reservation",
    "delete_reservation",
    "get_associations",
]
