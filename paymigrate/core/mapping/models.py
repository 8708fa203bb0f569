"""Mapping dictionary models.

A ``MappingDictionary`` is loaded once and treated as read-only until the
resolver is explicitly reloaded.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FieldMapping:
    source_field: str
    destination_field: str
    transformation: Optional[str] = None
    data_type: str = "string"
    required: bool = False
    deprecated: bool = False
    notes: str = ""


@dataclass
class EndpointMapping:
    source_endpoint: str
    destination_endpoint: str
    method: str
    field_mappings: Dict[str, FieldMapping] = field(default_factory=dict)
    """Keyed by source field; one destination per source field."""

    description: str = ""

    @property
    def is_empty(self) -> bool:
        """Found, but no field translation is needed."""
        return not self.field_mappings

    def has_source_field(self, name: str) -> bool:
        lowered = name.lower()
        return any(key.lower() == lowered for key in self.field_mappings)


@dataclass
class MappingDictionary:
    version: str
    last_updated: str
    mappings: List[EndpointMapping] = field(default_factory=list)
    common_fields: List[FieldMapping] = field(default_factory=list)
    transformation_rules: Dict[str, str] = field(default_factory=dict)


@dataclass
class MappingStatistics:
    version: str
    total_mappings: int
    total_fields: int
    endpoint_types: List[str]
    last_updated: str
