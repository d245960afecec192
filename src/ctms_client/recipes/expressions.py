"""
Ready-made expressions for the asynchronous search service
(operations.search.elastic_search).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

VIDEO_ID_ATTRIBUTE = "com.avid.workgroup.Property.System.VideoID"

# expression vocabulary of the search service
INTERSECT = "intersect"
COMBINED = "combined"
BOOLEAN_METADATA = "boolean-metadata"
EQUALS = "equals"
LESS_THAN = "less-than"
TEXT = "text"
DATE = "date"

CREATED_FIELD = "payload._.source_item_created"
ITEM_TYPE_FIELD = "payload._.source_item_type"
TITLE_FIELD = "payload._.title"


def _expression(
    queries: List[Dict[str, Any]], filter_: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    group = {"type": BOOLEAN_METADATA, "condition": "and", "queries": queries}
    expression: Dict[str, Any] = {
        "query": {"type": INTERSECT, "queries": [group]},
        "username": "",
    }
    if filter_ is not None:
        expression["filter"] = filter_
    return expression


def _item_type_filter(item_type: str) -> Dict[str, Any]:
    any_ = {"type": EQUALS, "field": ITEM_TYPE_FIELD, "value": item_type}
    return {"type": COMBINED, "all": [{"type": COMBINED, "any": [any_]}]}


def _text_query(value: str, fields: List[str]) -> Dict[str, Any]:
    return {"type": TEXT, "value": value, "fields": fields}


def before_date_expression(before: datetime) -> Dict[str, Any]:
    """All assets created before ``before``."""
    if before.tzinfo is None:
        before = before.replace(tzinfo=timezone.utc)
    query = {
        "type": DATE,
        "operator": LESS_THAN,
        "field": CREATED_FIELD,
        "value": before.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    return _expression([query])


def sequences_by_video_id_expression(video_id: str) -> Dict[str, Any]:
    # dots inside the attribute name must not read as a field path
    field = "payload.interplay-pam." + VIDEO_ID_ATTRIBUTE.replace(".", "%2E")
    return _expression([_text_query(video_id, [field])], _item_type_filter("sequence"))


def sequences_by_name_expression(name: str) -> Dict[str, Any]:
    return _expression([_text_query(name, [TITLE_FIELD])], _item_type_filter("sequence"))


__all__ = [
    "VIDEO_ID_ATTRIBUTE",
    "before_date_expression",
    "sequences_by_video_id_expression",
    "sequences_by_name_expression",
]
