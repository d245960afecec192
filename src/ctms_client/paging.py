from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from . import hal
from .client import CtmsClient
from .errors import CtmsParseError
from .models import COLLECTION_REL, ITEM_REL
from .observability import meta

log = logging.getLogger("ctms_client.paging")

NEXT_REL = "next"
DEFAULT_MAX_PAGES = 1000


def collection_of(document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    The collection carried by ``document``: its embedded loc:collection for
    a folder item, or the document itself when it already is a collection.
    """
    embedded = hal.get_embedded(document, COLLECTION_REL)
    if isinstance(embedded, dict):
        return embedded
    if "paging" in document or isinstance(hal.get_embedded(document, ITEM_REL), list):
        return document
    return None


def page_items(page: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Items of one page; a page without _embedded/loc:item has zero items."""
    items = hal.get_embedded(page, ITEM_REL)
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, dict)]


def get_items(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Items of the collection carried by ``document`` (empty when none)."""
    collection = collection_of(document)
    return page_items(collection) if collection is not None else []


async def drain_pages(
    client: CtmsClient,
    document: Dict[str, Any],
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    ref: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Follows ``next`` links until the server stops sending one and returns a
    copy of ``document`` whose collection holds every item in server order.

    The input is left untouched. The merged collection has no ``next`` link,
    so draining the result again does not hit the network. ``max_pages``
    bounds the number of extra pages fetched against a server that never
    stops paging.
    """
    collection = collection_of(document)
    if collection is None or not hal.get_link_href(collection, NEXT_REL):
        return document

    extra = meta("get pages", ref)
    result = copy.deepcopy(document)
    merged = collection_of(result)
    items = page_items(merged)
    next_link = hal.get_link_href(merged, NEXT_REL)
    total: Optional[int] = (merged.get("paging") or {}).get("totalElements")

    pages = 0
    while next_link:
        if pages >= max_pages:
            log.warning(
                f"stopped paging after {pages} extra pages with {len(items)} items",
                extra=extra,
            )
            break
        page = await client.get(next_link, action="get pages", ref=ref)
        pages += 1
        if not isinstance(page, dict):
            raise CtmsParseError(
                f"Expected a collection page from GET {next_link}, "
                f"got {type(page).__name__}"
            )
        items.extend(page_items(page))
        paging = page.get("paging") or {}
        total = paging.get("totalElements", total)
        log.debug(
            f"page {paging.get('offset')}: {len(items)} items added of {total}",
            extra=extra,
        )
        next_link = hal.get_link_href(page, NEXT_REL)

    merged.setdefault("_embedded", {})[ITEM_REL] = items
    links = merged.setdefault("_links", {})
    if next_link:
        links[NEXT_REL] = {"href": next_link}
    else:
        links.pop(NEXT_REL, None)
    if isinstance(total, int) and not next_link and len(items) != total:
        log.warning(
            f"collected {len(items)} items but server reported {total}", extra=extra
        )
    return result


__all__ = ["drain_pages", "collection_of", "page_items", "get_items", "DEFAULT_MAX_PAGES"]
