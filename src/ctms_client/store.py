from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import hal
from .errors import StateError
from .models import ResourceDescriptor


@dataclass
class ResourceStore:
    """
    Session-scoped cache of everything discovered at bootstrap.
    Populated once by registry.discover(); operations only read it.
    """

    full: Dict[str, Any] = field(default_factory=dict)
    asset: Dict[str, Any] = field(default_factory=dict)
    location: Dict[str, Any] = field(default_factory=dict)
    search: Dict[str, Any] = field(default_factory=dict)
    taxonomies: Dict[str, Any] = field(default_factory=dict)
    pa: Dict[str, Any] = field(default_factory=dict)
    identity: Dict[str, Any] = field(default_factory=dict)
    relations: Dict[str, ResourceDescriptor] = field(default_factory=dict)
    not_in_service_root: List[str] = field(default_factory=list)

    @property
    def relation_names(self) -> frozenset[str]:
        return frozenset(self.relations)

    def descriptor(self, relation: str) -> Optional[ResourceDescriptor]:
        return self.relations.get(relation)

    def href(self, relation: str) -> str:
        """URL template of ``relation``; StateError when the server never offered it."""
        desc = self.relations.get(relation)
        if desc is None or not desc.links:
            raise StateError(relation, ref="resource registry")
        return desc.href

    def expand(self, relation: str, **values: Any) -> str:
        return hal.expand_template(self.href(relation), **values)


__all__ = ["ResourceStore"]
