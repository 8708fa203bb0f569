"""Endpoint type → field substitution rules.

``resolve_mapping`` distinguishes "not found" (``None``) from "found with
no field translation" (an ``EndpointMapping`` whose ``field_mappings`` is
empty), so callers can tell an unsupported endpoint type apart from one
that needs no field renames.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..detection.models import EndpointType
from ..errors import MappingDictionaryError
from .models import (
    EndpointMapping,
    FieldMapping,
    MappingDictionary,
    MappingStatistics,
)
from .schemas import FieldMappingSchema, MappingDictionarySchema

logger = logging.getLogger(__name__)

RULE_SEPARATOR = " → "


def _field_from_schema(schema: FieldMappingSchema) -> FieldMapping:
    return FieldMapping(
        source_field=schema.source_field,
        destination_field=schema.target_field,
        transformation=schema.transformation,
        data_type=schema.data_type,
        required=schema.required,
        deprecated=schema.deprecated,
        notes=schema.notes,
    )


def parse_mapping_dictionary(document: Dict[str, Any]) -> MappingDictionary:
    """Validate a raw mapping document and convert it to models.

    Raises:
        MappingDictionaryError: If the document does not match the schema.
    """
    try:
        schema = MappingDictionarySchema.model_validate(document)
    except ValidationError as e:
        raise MappingDictionaryError(f"Invalid mapping dictionary: {e}") from e

    mappings = []
    for entry in schema.mappings:
        if isinstance(entry.field_mappings, dict):
            fields = {
                src: FieldMapping(source_field=src, destination_field=dst)
                for src, dst in entry.field_mappings.items()
            }
        else:
            fields = {f.source_field: _field_from_schema(f) for f in entry.field_mappings}
        mappings.append(EndpointMapping(
            source_endpoint=entry.source_endpoint,
            destination_endpoint=entry.target_endpoint,
            method=entry.method,
            field_mappings=fields,
            description=entry.description,
        ))

    return MappingDictionary(
        version=schema.version,
        last_updated=schema.last_updated,
        mappings=mappings,
        common_fields=[_field_from_schema(f) for f in schema.common_fields],
        transformation_rules=dict(schema.transformation_rules),
    )


def flatten_rules(mapping: EndpointMapping) -> List[str]:
    """Render field mappings as ``"ssl_x → dest_x"`` strings for prompts."""
    return [
        f"{fm.source_field}{RULE_SEPARATOR}{fm.destination_field}"
        for fm in mapping.field_mappings.values()
    ]


class MappingResolver:
    """Looks up endpoint and field mappings in a loaded dictionary.

    Args:
        dictionary: Pre-loaded dictionary.
        source_path: JSON file the dictionary came from; enables ``reload()``.
    """

    def __init__(self, dictionary: MappingDictionary, source_path: Optional[str] = None):
        self._dictionary = dictionary
        self.source_path = source_path

    @classmethod
    def from_file(cls, path: str) -> "MappingResolver":
        """Load a mapping dictionary from a JSON file.

        Raises:
            MappingDictionaryError: If the file is missing, not JSON, or invalid.
        """
        return cls(cls._read(path), source_path=path)

    @staticmethod
    def _read(path: str) -> MappingDictionary:
        try:
            document = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MappingDictionaryError(f"Failed to load mapping dictionary {path}: {e}") from e
        dictionary = parse_mapping_dictionary(document)
        logger.info(
            f"Loaded mapping dictionary v{dictionary.version} "
            f"with {len(dictionary.mappings)} mappings"
        )
        return dictionary

    @property
    def dictionary(self) -> MappingDictionary:
        return self._dictionary

    def reload(self) -> MappingDictionary:
        """Re-read the dictionary from ``source_path``.

        The current dictionary stays in place if the new one fails to load.
        """
        if not self.source_path:
            raise MappingDictionaryError("Mapping resolver was not loaded from a file")
        self._dictionary = self._read(self.source_path)
        return self._dictionary

    # ── Endpoint lookup ─────────────────────────────────────────────

    def resolve_mapping(
        self, endpoint_type: Union[EndpointType, str]
    ) -> Optional[EndpointMapping]:
        """Return the mapping for an endpoint type, or ``None`` if unsupported.

        An exact match on the source endpoint wins; otherwise the first
        mapping whose source endpoint is contained in the requested type
        (or vice versa) is used.
        """
        key = endpoint_type.value if isinstance(endpoint_type, EndpointType) else str(endpoint_type)
        if not key:
            return None

        lowered = key.lower()
        for mapping in self._dictionary.mappings:
            if mapping.source_endpoint.lower() == lowered:
                return mapping
        for mapping in self._dictionary.mappings:
            source = mapping.source_endpoint.lower()
            if source in lowered or lowered in source:
                return mapping
        return None

    def is_supported(self, endpoint_type: Union[EndpointType, str]) -> bool:
        return self.resolve_mapping(endpoint_type) is not None

    # ── Field lookup ────────────────────────────────────────────────

    def find_mappings_containing_field(self, name: str) -> List[EndpointMapping]:
        """Mappings that use ``name`` as a source or destination field."""
        lowered = name.lower()
        return [
            mapping for mapping in self._dictionary.mappings
            if any(
                lowered in (fm.source_field.lower(), fm.destination_field.lower())
                for fm in mapping.field_mappings.values()
            )
        ]

    def get_field_mapping(
        self,
        source_field: str,
        endpoint_type: Union[EndpointType, str, None] = None,
    ) -> Optional[FieldMapping]:
        """Find the destination for a source field.

        Common fields are checked first, then the endpoint's own mapping
        (or every mapping when no endpoint type is given).
        """
        lowered = source_field.lower()
        for fm in self._dictionary.common_fields:
            if fm.source_field.lower() == lowered:
                return fm

        if endpoint_type is not None:
            mapping = self.resolve_mapping(endpoint_type)
            candidates = [mapping] if mapping else []
        else:
            candidates = self._dictionary.mappings
        for mapping in candidates:
            for fm in mapping.field_mappings.values():
                if fm.source_field.lower() == lowered:
                    return fm
        return None

    def reverse_lookup(self, destination_field: str) -> List[Dict[str, str]]:
        """Source fields (and their endpoints) that map to ``destination_field``."""
        lowered = destination_field.lower()
        return [
            {"endpoint": mapping.source_endpoint, "source_field": fm.source_field}
            for mapping in self._dictionary.mappings
            for fm in mapping.field_mappings.values()
            if fm.destination_field.lower() == lowered
        ]

    def common_field_pairs(self) -> List[FieldMapping]:
        """Every distinct field rename known to the dictionary, common fields first."""
        seen = set()
        pairs: List[FieldMapping] = []
        for fm in list(self._dictionary.common_fields) + [
            fm for m in self._dictionary.mappings for fm in m.field_mappings.values()
        ]:
            key = fm.source_field.lower()
            if key not in seen:
                seen.add(key)
                pairs.append(fm)
        return pairs

    def get_transformation_rule(self, name: str) -> Optional[str]:
        return self._dictionary.transformation_rules.get(name)

    # ── Observability ───────────────────────────────────────────────

    def statistics(self) -> MappingStatistics:
        d = self._dictionary
        return MappingStatistics(
            version=d.version,
            total_mappings=len(d.mappings),
            total_fields=len(d.common_fields) + sum(len(m.field_mappings) for m in d.mappings),
            endpoint_types=[m.source_endpoint for m in d.mappings],
            last_updated=d.last_updated,
        )
