"""
Search operations: the CTMS simple search and the platform's asynchronous
(elastic) search service.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List
from urllib.parse import urlsplit

from ctms_client import hal
from ctms_client.client import CtmsClient
from ctms_client.errors import StateError
from ctms_client.observability import log_operation
from ctms_client.store import ResourceStore

log = logging.getLogger("ctms_client.operations.search")

ELASTIC_SEARCH_PATH = "/search/v1/search"


async def simple_search(
    client: CtmsClient,
    store: ResourceStore,
    search: str,
    *,
    offset: int = 0,
    limit: int = 1000,
) -> Dict[str, Any]:
    """
    Full-text search over asset names. Custom attributes are not searched.
    """
    if offset < 0:
        raise ValueError("offset must be >= 0")
    with log_operation(
        log, "simple search", search, f"with offset: {offset} and limit: {limit}"
    ):
        url = store.expand("search:simple-search", search=search)
        return await client.get(
            url,
            params={"offset": offset, "limit": limit},
            action="simple search",
            ref=search,
        )


def elastic_search_url(store: ResourceStore) -> str:
    """The search service lives on the origin of the registry's self link."""
    self_href = hal.get_link_href(store.full, "self")
    if not self_href:
        raise StateError("self", ref="full registry info")
    parts = urlsplit(self_href)
    return f"{parts.scheme}://{parts.netloc}{ELASTIC_SEARCH_PATH}"


async def elastic_search(
    client: CtmsClient, store: ResourceStore, expression: Dict[str, Any]
) -> Dict[str, Any]:
    """Starts a search; the returned status document is polled until complete."""
    with log_operation(
        log, "elastic search", "", f"with expression: {json.dumps(expression)}"
    ):
        return await client.post(
            elastic_search_url(store), json=expression, action="elastic search"
        )


def _status_href(status: Dict[str, Any]) -> str:
    href = status.get("self")
    if not href:
        raise StateError("self", ref=status.get("id"))
    return str(href)


async def get_elastic_search_status(
    client: CtmsClient, status: Dict[str, Any]
) -> Dict[str, Any]:
    with log_operation(log, "elastic status", status.get("id")):
        return await client.get(
            _status_href(status), action="elastic status", ref=status.get("id")
        )


async def get_elastic_search_result(
    client: CtmsClient, status: Dict[str, Any]
) -> List[Dict[str, Any]]:
    with log_operation(log, "elastic result", status.get("id")):
        result = await client.get(
            f"{_status_href(status)}/results",
            action="elastic result",
            ref=status.get("id"),
        )
        return result if isinstance(result, list) else []


__all__ = [
    "simple_search",
    "elastic_search_url",
    "elastic_search",
    "get_elastic_search_status",
    "get_elastic_search_result",
]
