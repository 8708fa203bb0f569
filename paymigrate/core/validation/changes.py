"""Line-aligned diffing and change classification.

The diff compares line *i* of the original against line *i* of the new
text. It does not try to find moved or inserted blocks.
"""

import re
from typing import List, Optional, Sequence

from ..mapping.models import FieldMapping
from .models import ChangeSummary, FieldChange, LineDiff, UrlChange

_SSL_FIELD = re.compile(r"ssl_\w+")
_URL = re.compile(r"https?://[^\s\"']+")
_TOKEN = re.compile(r"[A-Za-z_]\w*")

DIFF_SEPARATOR = " → "


def compute_line_diff(original: str, migrated: str) -> LineDiff:
    old_lines = original.split("\n")
    new_lines = migrated.split("\n")
    diff = LineDiff()

    for i in range(max(len(old_lines), len(new_lines))):
        old = old_lines[i] if i < len(old_lines) else None
        new = new_lines[i] if i < len(new_lines) else None
        if old == new:
            continue
        if old is None:
            diff.added.append(new)
        elif new is None:
            diff.removed.append(old)
        else:
            diff.modified.append(f"{old}{DIFF_SEPARATOR}{new}")
    return diff


def _squash(name: str) -> str:
    return name.replace("_", "").lower()


def _field_replacement(
    old_line: str,
    new_line: str,
    pairs: Sequence[FieldMapping],
) -> Optional[FieldChange]:
    by_source = {p.source_field.lower(): p.destination_field for p in pairs}
    for field in _SSL_FIELD.findall(old_line):
        if field in new_line:
            continue
        destination = by_source.get(field.lower())
        if destination and re.search(rf"\b{re.escape(destination)}\b", new_line, re.IGNORECASE):
            return FieldChange(source=field, destination=destination, line=0)
        suffix = _squash(field[len("ssl_"):])
        for token in _TOKEN.findall(new_line):
            if suffix and _squash(token) == suffix:
                return FieldChange(source=field, destination=token, line=0)
    return None


def _url_replacement(old_line: str, new_line: str) -> Optional[UrlChange]:
    old_urls = _URL.findall(old_line)
    new_urls = _URL.findall(new_line)
    if old_urls and new_urls and old_urls[0] != new_urls[0]:
        return UrlChange(source=old_urls[0], destination=new_urls[0], line=0)
    return None


def summarize_changes(
    original: str,
    migrated: str,
    pairs: Sequence[FieldMapping] = (),
) -> ChangeSummary:
    """Classify each changed line as a field rename and/or URL swap."""
    old_lines = original.split("\n")
    new_lines = migrated.split("\n")
    summary = ChangeSummary()

    for i in range(max(len(old_lines), len(new_lines))):
        old = old_lines[i] if i < len(old_lines) else None
        new = new_lines[i] if i < len(new_lines) else None
        if old == new:
            continue
        if old is None:
            summary.added_lines.append(new)
            continue
        if new is None:
            summary.removed_lines.append(old)
            continue

        field_change = _field_replacement(old, new, pairs)
        if field_change:
            field_change.line = i + 1
            summary.field_changes.append(field_change)
        url_change = _url_replacement(old, new)
        if url_change:
            url_change.line = i + 1
            summary.url_changes.append(url_change)

    return summary
