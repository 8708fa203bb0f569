"""Pattern-based source API detector.

Applies a ``PatternLibrary`` to one unit of source text. Everything here
is a pure function of the input: no I/O, no shared state, and malformed
or empty input yields an empty ``DetectionResult`` instead of an error.

Endpoint confidence::

    0.5 base
    + min(0.1 * distinct matches, 0.3)
    + 0.2 if SSL-style fields appear in the text
    + 0.2 if a source API URL / domain appears
    + 0.1 if an HTTP client idiom appears near the source API name
    capped at 1.0
"""

import logging
import re
from typing import List, Optional, Tuple

from ..constants import DEFAULT_PROXIMITY_LINES
from .models import (
    ConfigReference,
    DetectionResult,
    EndpointMatch,
    FieldMatch,
    HttpCall,
    MigrationComment,
)
from .patterns import PatternLibrary, build_pattern_library, classify_config_key
from .utils import line_of_offset, strip_comments

logger = logging.getLogger(__name__)

# ── Confidence constants ─────────────────────────────────────────────

ENDPOINT_BASE_CONFIDENCE = 0.5
MATCH_COUNT_WEIGHT = 0.1
MATCH_COUNT_MAX_BONUS = 0.3
SSL_FIELD_BONUS = 0.2
SOURCE_URL_BONUS = 0.2
HTTP_IDIOM_BONUS = 0.1

CORE_FIELD_CONFIDENCE = 1.0
VARIATION_TOP_CONFIDENCE = 0.8
VARIATION_RANK_PENALTY = 0.1
VARIATION_MIN_CONFIDENCE = 0.1

HTTP_SAME_LINE_CONFIDENCE = 0.9
HTTP_NEARBY_CONFIDENCE = 0.7

_XML_ELEMENT_NAME = re.compile(r"name\s*=\s*[\"']([^\"']+)[\"']")
_BRACKET_FIELD = re.compile(r"ssl\[[\"']([^\"']+)[\"']\]")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def normalize_field(raw: str) -> str:
    """Reduce a captured field spelling to canonical ``ssl_snake_case``.

    ``"ssl_amount"``, ``$ssl_amount``, ``ssl_amount:``, ``SSL_AMOUNT``,
    ``ssl['amount']`` and ``sslAmount`` all become ``ssl_amount``.
    """
    text = raw.strip()
    xml = _XML_ELEMENT_NAME.search(text)
    if xml:
        text = xml.group(1)
    bracket = _BRACKET_FIELD.search(text)
    if bracket:
        text = "ssl_" + bracket.group(1)
    text = text.strip("\"'$:@ ")
    if re.match(r"ssl[A-Z]", text):
        text = "ssl_" + _CAMEL_BOUNDARY.sub(r"\1_\2", text[3:])
    return text.lower()


def _merge_spans(spans: List[Tuple[int, int, str]]) -> List[Tuple[int, int, str]]:
    """Collapse overlapping match spans so one occurrence counts once."""
    merged: List[Tuple[int, int, str]] = []
    for start, end, text in sorted(spans):
        if merged and start < merged[-1][1]:
            prev_start, prev_end, prev_text = merged[-1]
            merged[-1] = (prev_start, max(prev_end, end), prev_text)
        else:
            merged.append((start, end, text))
    return merged


class Detector:
    """Finds and scores source API usages in source text.

    Args:
        patterns: Compiled pattern set. Defaults to the built-in source API.
        proximity_lines: HTTP idioms are reported only within this many
            lines of a source API mention.
    """

    def __init__(
        self,
        patterns: Optional[PatternLibrary] = None,
        proximity_lines: int = DEFAULT_PROXIMITY_LINES,
    ):
        self.patterns = patterns or build_pattern_library()
        self.proximity_lines = proximity_lines

    # ── Public API ──────────────────────────────────────────────────

    def detect(self, text: str, language: str = "unknown") -> DetectionResult:
        """Run every detection family over ``text``."""
        if not isinstance(text, str) or not text.strip():
            return DetectionResult()

        code = strip_comments(text)
        http_calls = self._http_calls(code, language)
        return DetectionResult(
            endpoints=self._endpoints(code, has_http=bool(http_calls)),
            fields=self._fields(code),
            http_calls=http_calls,
            config_refs=self._config_refs(code),
            comments=self.detect_migration_comments(text),
        )

    def detect_endpoints(self, text: str, language: str = "unknown") -> List[EndpointMatch]:
        if not isinstance(text, str) or not text.strip():
            return []
        code = strip_comments(text)
        return self._endpoints(code, has_http=bool(self._http_calls(code, language)))

    def detect_fields(self, text: str) -> List[FieldMatch]:
        if not isinstance(text, str) or not text.strip():
            return []
        return self._fields(strip_comments(text))

    def detect_http_calls(self, text: str, language: str) -> List[HttpCall]:
        if not isinstance(text, str) or not text.strip():
            return []
        return self._http_calls(strip_comments(text), language)

    def detect_config_refs(self, text: str) -> List[ConfigReference]:
        if not isinstance(text, str) or not text.strip():
            return []
        return self._config_refs(strip_comments(text))

    def detect_migration_comments(self, text: str) -> List[MigrationComment]:
        """Find TODO-style markers and notes that talk about this migration."""
        if not isinstance(text, str):
            return []

        p = self.patterns
        comments: List[MigrationComment] = []
        for idx, line in enumerate(text.split("\n"), start=1):
            m = p.comment.search(line)
            if not m:
                continue
            body = m.group(1).strip()
            if not body or not p.migration_intent.search(body):
                continue
            if p.comment_marker.search(body):
                comments.append(MigrationComment(kind="todo", text=body, line_number=idx))
            elif p.source_mention.search(body):
                comments.append(MigrationComment(kind="note", text=body, line_number=idx))
        return comments

    # ── Endpoints ───────────────────────────────────────────────────

    def _endpoints(self, code: str, has_http: bool) -> List[EndpointMatch]:
        p = self.patterns
        contextual_ok = p.has_source_marker(code)
        has_fields = bool(p.field_core.search(code)) or any(
            v.search(code) for v in p.field_variations
        )
        has_url = any(u.search(code) for u in p.urls)

        results: List[EndpointMatch] = []
        for endpoint_type, category in p.endpoints.items():
            active = category.specific + (category.contextual if contextual_ok else ())
            spans = [
                (m.start(), m.end(), m.group(0))
                for pattern in active
                for m in pattern.finditer(code)
            ]
            if not spans:
                continue

            merged = _merge_spans(spans)
            confidence = ENDPOINT_BASE_CONFIDENCE
            confidence += min(len(merged) * MATCH_COUNT_WEIGHT, MATCH_COUNT_MAX_BONUS)
            if has_fields:
                confidence += SSL_FIELD_BONUS
            if has_url:
                confidence += SOURCE_URL_BONUS
            if has_http:
                confidence += HTTP_IDIOM_BONUS

            results.append(EndpointMatch(
                endpoint_type=endpoint_type,
                matches=[text for _, _, text in merged],
                line_numbers=sorted({line_of_offset(code, start) for start, _, _ in merged}),
                confidence=round(min(confidence, 1.0), 4),
            ))

        results.sort(key=lambda r: r.confidence, reverse=True)
        return results

    # ── Fields ──────────────────────────────────────────────────────

    def _fields(self, code: str) -> List[FieldMatch]:
        p = self.patterns
        lines = code.split("\n")
        found: List[FieldMatch] = []
        seen: List[str] = []

        for idx, line in enumerate(lines, start=1):
            for m in p.field_core.finditer(line):
                name = normalize_field(m.group(0))
                if name not in seen:
                    seen.append(name)
                    found.append(FieldMatch(name, idx, CORE_FIELD_CONFIDENCE, m.group(0)))

        for rank, variation in enumerate(p.field_variations):
            confidence = max(
                VARIATION_MIN_CONFIDENCE,
                round(VARIATION_TOP_CONFIDENCE - VARIATION_RANK_PENALTY * rank, 2),
            )
            for idx, line in enumerate(lines, start=1):
                for m in variation.finditer(line):
                    name = normalize_field(m.group(0))
                    if not name or any(name in s or s in name for s in seen):
                        continue
                    seen.append(name)
                    found.append(FieldMatch(name, idx, confidence, m.group(0)))

        return found

    # ── HTTP idioms ─────────────────────────────────────────────────

    def _http_calls(self, code: str, language: str) -> List[HttpCall]:
        p = self.patterns
        lines = code.split("\n")
        mention_lines = [i for i, line in enumerate(lines) if p.source_mention.search(line)]
        if not mention_lines:
            return []

        calls: List[HttpCall] = []
        seen = set()
        for i, line in enumerate(lines):
            nearest = min(abs(i - j) for j in mention_lines)
            if nearest > self.proximity_lines:
                continue
            for idiom in p.idioms_for(language):
                if not idiom.pattern.search(line) or (i, idiom.method) in seen:
                    continue
                seen.add((i, idiom.method))
                calls.append(HttpCall(
                    method=idiom.method,
                    library=idiom.library,
                    line_number=i + 1,
                    code=line.strip(),
                    confidence=HTTP_SAME_LINE_CONFIDENCE if nearest == 0 else HTTP_NEARBY_CONFIDENCE,
                ))
        return calls

    # ── Configuration references ────────────────────────────────────

    def _config_refs(self, code: str) -> List[ConfigReference]:
        refs: List[ConfigReference] = []
        seen = set()
        for idx, line in enumerate(code.split("\n"), start=1):
            for pattern in self.patterns.config_refs:
                for m in pattern.finditer(line):
                    key = m.group(1)
                    if (idx, key.lower()) in seen:
                        continue
                    seen.add((idx, key.lower()))
                    refs.append(ConfigReference(
                        type=classify_config_key(key[len(self.patterns.source_name):]),
                        key=key,
                        line_number=idx,
                        code=line.strip(),
                    ))
        return refs
