"""Data models for source API detection.

All models are plain dataclasses so they can be passed between the
detector, the scanner and the migration pipeline without conversion.
``DetectedEndpoint`` is frozen: once the scanner produces it, nothing in
the pipeline mutates it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class EndpointType(str, Enum):
    """Closed set of source API usage categories."""

    HOSTED_PAYMENTS = "hosted-payments"
    CHECKOUT = "Checkout.js"
    PROCESS_TRANSACTION = "ProcessTransactionOnline"
    BATCH_PROCESSING = "batch-processing"
    DEVICE_MANAGEMENT = "NonCertifiedDevice"


@dataclass(frozen=True)
class DetectedEndpoint:
    """A single source API usage found in a file."""

    id: str
    file_path: str
    line_number: int
    """1-based line of the triggering match."""

    endpoint_type: EndpointType
    code: str
    """Snippet that the migration replaces verbatim."""

    ssl_fields: Tuple[str, ...] = ()
    """Normalized field names in first-seen order, no duplicates."""

    language: str = "unknown"
    confidence: float = 0.0
    content_hash: Optional[str] = None
    """Hash of the whole file at detection time, used to report drift."""


@dataclass
class EndpointMatch:
    """One row per matched endpoint category."""

    endpoint_type: EndpointType
    matches: List[str] = field(default_factory=list)
    line_numbers: List[int] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def match_count(self) -> int:
        return len(self.matches)


@dataclass
class FieldMatch:
    field: str
    line_number: int
    confidence: float
    raw: str = ""


@dataclass
class HttpCall:
    method: str
    library: str
    line_number: int
    code: str
    confidence: float


@dataclass
class ConfigReference:
    type: str
    """One of api_key, merchant_id, user_id, pin, secret, endpoint, other."""

    key: str
    line_number: int
    code: str


@dataclass
class MigrationComment:
    kind: str
    """``todo`` for actionable markers (TODO/FIXME/...), ``note`` otherwise."""

    text: str
    line_number: int


@dataclass
class DetectionResult:
    endpoints: List[EndpointMatch] = field(default_factory=list)
    fields: List[FieldMatch] = field(default_factory=list)
    http_calls: List[HttpCall] = field(default_factory=list)
    config_refs: List[ConfigReference] = field(default_factory=list)
    comments: List[MigrationComment] = field(default_factory=list)

    @property
    def has_migration_context(self) -> bool:
        return bool(self.comments)

    @property
    def todos(self) -> List[MigrationComment]:
        return [c for c in self.comments if c.kind == "todo"]

    @property
    def notes(self) -> List[MigrationComment]:
        return [c for c in self.comments if c.kind == "note"]

    @property
    def field_names(self) -> List[str]:
        return [f.field for f in self.fields]

    def is_empty(self) -> bool:
        return not (self.endpoints or self.fields or self.http_calls)
