from .detector import Detector, normalize_field
from .models import (
    ConfigReference,
    DetectedEndpoint,
    DetectionResult,
    EndpointMatch,
    EndpointType,
    FieldMatch,
    HttpCall,
    MigrationComment,
)
from .patterns import PatternLibrary, build_pattern_library
from .scanner import EndpointScanner
from .utils import detect_language

__all__ = [
    "Detector",
    "normalize_field",
    "ConfigReference",
    "DetectedEndpoint",
    "DetectionResult",
    "EndpointMatch",
    "EndpointType",
    "FieldMatch",
    "HttpCall",
    "MigrationComment",
    "PatternLibrary",
    "build_pattern_library",
    "EndpointScanner",
    "detect_language",
]
