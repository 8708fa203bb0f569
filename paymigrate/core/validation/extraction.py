"""Isolate code from a transformer's free-text reply."""

import re
from typing import Optional

_FENCE = re.compile(r"```[\w+#-]*[ \t]*\n?([\s\S]*?)```")

BOILERPLATE_PREFIXES = (
    "Here is the migrated code:",
    "Here's the migrated code:",
    "Migrated code:",
    "Updated code:",
    "The migrated code is:",
    "Here is the updated code:",
)

EXPLANATION_MARKERS = (
    "Explanation:",
    "Changes made:",
    "Key changes:",
    "Notes:",
)

_EXPLANATION_LINE = re.compile(
    r"^[ \t]*(?:" + "|".join(re.escape(m) for m in EXPLANATION_MARKERS) + ")",
    re.IGNORECASE | re.MULTILINE,
)


def extract_code(raw: Optional[str]) -> Optional[str]:
    """Strip fences, known preambles, and trailing explanations.

    Fenced code is taken as-is. Unfenced replies are cut at the first line
    that opens with an explanation marker, so a marker inside a code
    comment survives.

    Returns:
        The remaining code, or ``None`` when nothing is left.
    """
    if not raw:
        return None

    code = raw.strip()

    fenced = _FENCE.search(code)
    if fenced:
        code = fenced.group(1).strip()
        return code or None

    for prefix in BOILERPLATE_PREFIXES:
        if code.lower().startswith(prefix.lower()):
            code = code[len(prefix):].strip()

    trailer = next((m for m in _EXPLANATION_LINE.finditer(code) if m.start() > 0), None)
    if trailer:
        code = code[:trailer.start()].strip()

    return code or None
