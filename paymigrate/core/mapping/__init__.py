from .models import EndpointMapping, FieldMapping, MappingDictionary, MappingStatistics
from .resolver import MappingResolver, flatten_rules, parse_mapping_dictionary

__all__ = [
    "EndpointMapping",
    "FieldMapping",
    "MappingDictionary",
    "MappingStatistics",
    "MappingResolver",
    "flatten_rules",
    "parse_mapping_dictionary",
]
