"""
Resource discovery: service root -> full registry info -> domain roots.

The merged relation map lets operations resolve URL templates such as
``loc:item-by-id`` without any locally known path.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from . import hal
from .client import CtmsClient
from .errors import CtmsClientError, DiscoveryError
from .models import Link, ResourceDescriptor
from .observability import meta
from .store import ResourceStore

log = logging.getLogger("ctms_client.registry")

REGISTRY_PATH = "/apis/avid.ctms.registry;version=0;realm=global"
SERVICEROOTS_REL = "registry:serviceroots"

# (registry relation, ResourceStore attribute), fetched in this order
DOMAIN_ROOTS: Tuple[Tuple[str, str], ...] = (
    ("aa:assets", "asset"),
    ("loc:locations", "location"),
    ("search:searches", "search"),
    ("taxonomies:taxonomies", "taxonomies"),
    ("pa:extended", "pa"),
)

# navigational/documentation links, not capabilities
IGNORED_RELS = frozenset({"self", "curies"})

_META = meta("get", "CTMS")


async def get_service_root(client: CtmsClient, base_url: str) -> Dict[str, Any]:
    url = f"{base_url.rstrip('/')}{REGISTRY_PATH}"
    log.debug("service root", extra=_META)
    try:
        return await client.get(url, action="get", ref="service root")
    except CtmsClientError as exc:
        log.error(f"service root: {exc}", extra=_META)
        raise DiscoveryError(f"Service root {url} unreachable: {exc}") from exc


async def get_full_registry_info(
    client: CtmsClient, service_root: Dict[str, Any]
) -> Dict[str, Any]:
    """
    The bus answers the service root with a reduced document; the complete
    one lives behind registry:serviceroots.
    """
    log.debug("full registry info", extra=_META)
    href = hal.get_link_href(service_root, SERVICEROOTS_REL)
    if not href:
        raise DiscoveryError(f"Service root does not expose '{SERVICEROOTS_REL}'")
    url = hal.strip_template(href)
    try:
        full = await client.get(url, action="get", ref="full registry info")
    except CtmsClientError as exc:
        log.error(f"full registry info: {exc}", extra=_META)
        raise DiscoveryError(f"Full registry info {url} unreachable: {exc}") from exc
    if not isinstance(full, dict) or not isinstance(full.get("resources"), dict):
        raise DiscoveryError("Full registry info carries no 'resources' map")
    return full


def _as_links(value: Any) -> List[Link]:
    entries = value if isinstance(value, list) else [value]
    return [Link.model_validate(e) for e in entries if isinstance(e, dict) and e.get("href")]


def service_root_links(full: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Flattens the registry resources into (name, href) pairs."""
    pairs: List[Tuple[str, str]] = []
    for name, descriptions in full.get("resources", {}).items():
        for link in _as_links(descriptions):
            pairs.append((name, link.href))
    return pairs


def domain_links(document: Dict[str, Any]) -> List[Tuple[str, Link]]:
    pairs: List[Tuple[str, Link]] = []
    for name, value in (document.get("_links") or {}).items():
        if name in IGNORED_RELS:
            continue
        for link in _as_links(value)[:1]:
            pairs.append((name, link))
    return pairs


async def get_domain_root(
    client: CtmsClient, full: Dict[str, Any], relation: str
) -> Dict[str, Any]:
    log.debug(f"{relation} resources", extra=_META)
    links = _as_links(full.get("resources", {}).get(relation))
    if not links:
        raise DiscoveryError(
            f"Registry does not advertise domain '{relation}'", domain=relation
        )
    try:
        document = await client.get(links[0].href, action="get", ref=relation)
    except CtmsClientError as exc:
        log.error(f"{relation} resources: {exc}", extra=meta("get", relation))
        raise DiscoveryError(
            f"Discovery of domain '{relation}' failed: {exc}", domain=relation
        ) from exc
    if not isinstance(document, dict):
        raise DiscoveryError(
            f"Domain '{relation}' returned a malformed document", domain=relation
        )
    return document


async def discover(client: CtmsClient, base_url: str) -> ResourceStore:
    """
    Builds the session resource map. Requires a session already installed on
    ``client``. Any domain failure aborts the whole discovery.
    """
    service_root = await get_service_root(client, base_url)
    full = await get_full_registry_info(client, service_root)
    store = ResourceStore(full=full)

    relations: Dict[str, ResourceDescriptor] = {}
    for name, descriptions in full["resources"].items():
        links = _as_links(descriptions)
        if links:
            relations[name] = ResourceDescriptor(name=name, links=links)
    baseline = {name for name, _ in service_root_links(full)}

    for relation, attr in DOMAIN_ROOTS:
        document = await get_domain_root(client, full, relation)
        setattr(store, attr, document)
        for name, link in domain_links(document):
            if name in relations:
                log.debug(
                    f"{relation} republishes {name}", extra=meta("get", name)
                )
            relations[name] = ResourceDescriptor(name=name, links=[link])

    store.relations = dict(sorted(relations.items()))
    for name, desc in store.relations.items():
        log.debug(f"{name} | {desc.href}", extra=_META)

    store.not_in_service_root = [n for n in store.relations if n not in baseline]
    log.debug("Not in service root response", extra=_META)
    for name in store.not_in_service_root:
        log.debug(f"{name} | {store.relations[name].href}", extra=_META)

    return store


__all__ = [
    "REGISTRY_PATH",
    "DOMAIN_ROOTS",
    "get_service_root",
    "get_full_registry_info",
    "get_domain_root",
    "service_root_links",
    "domain_links",
    "discover",
]
