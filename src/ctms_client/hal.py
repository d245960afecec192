import re
from typing import Any, Dict, Optional
from urllib.parse import quote

from .errors import StateError

# RFC 6570 expressions such as {id}, {?offset,limit} or {&offset,limit}
_TEMPLATE_RE = re.compile(r"\{([?&/#+.;]?)([^}]*)\}")


def get_link(payload: Dict[str, Any], relation: str) -> Optional[Dict[str, Any]]:
    """
    Safely retrieves a link object from the _links dictionary.
    CTMS publishes some relations as a list of link objects; the first one wins.
    """
    if not payload or not isinstance(payload.get("_links"), dict):
        return None
    link = payload["_links"].get(relation)
    if isinstance(link, list):
        link = link[0] if link else None
    return link if isinstance(link, dict) else None


def get_link_href(payload: Dict[str, Any], relation: str) -> Optional[str]:
    """
    Extracts the 'href' (URL) from a specific link relation.
    Example: get_link_href(folder, 'loc:create-folder') -> 'https://.../items/Projects'
    """
    link = get_link(payload, relation)
    return link.get("href") if link else None


def require_link_href(
    payload: Dict[str, Any], relation: str, *, ref: Optional[str] = None
) -> str:
    """Like get_link_href, but a missing relation raises StateError."""
    href = get_link_href(payload, relation)
    if not href:
        raise StateError(relation, ref=ref)
    return href


def has_link(payload: Dict[str, Any], relation: str) -> bool:
    return get_link_href(payload, relation) is not None


def get_embedded(payload: Dict[str, Any], relation: str) -> Optional[Any]:
    """
    Extracts an embedded resource from the _embedded dictionary.
    Example: get_embedded(folder, 'loc:collection') -> {'paging': {...}, ...}
    """
    if not payload or not isinstance(payload.get("_embedded"), dict):
        return None
    return payload["_embedded"].get(relation)


def strip_template(href: str) -> str:
    """Drops every template expression: '.../serviceroots{?a,b}' -> '.../serviceroots'"""
    return _TEMPLATE_RE.sub("", href)


def expand_template(href: str, **values: Any) -> str:
    """
    Substitutes simple path variables ({id}, {moniker}, ...) with URL-encoded
    values and removes any remaining expression. Query parameters are passed
    separately to the transport.
    Example: expand_template('/items/{id}{?offset,limit}', id='Projects/A')
             -> '/items/Projects%2FA'
    """

    def _sub(match: "re.Match[str]") -> str:
        operator, name = match.group(1), match.group(2)
        if not operator and name in values:
            return quote(str(values[name]), safe="")
        return ""

    return _TEMPLATE_RE.sub(_sub, href)


def last_path_segment(href_or_id: Optional[str]) -> Optional[str]:
    """
    Extracts the last non-empty path segment.
    Example: '/Projects/Daily/' -> 'Daily'
    """
    if not href_or_id:
        return None
    parts = [p for p in href_or_id.split("/") if p]
    return parts[-1] if parts else None


__all__ = [
    "get_link",
    "get_link_href",
    "require_link_href",
    "has_link",
    "get_embedded",
    "strip_template",
    "expand_template",
    "last_path_segment",
]
