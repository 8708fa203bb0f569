"""Turns per-file detection results into ``DetectedEndpoint`` records.

The scanner is the only detection component that touches the filesystem.
File reads go through ``asyncio.to_thread`` so a directory scan never
blocks the event loop that also drives migrations.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

from ..constants import DEFAULT_CONTEXT_LINES, DEFAULT_MAX_FILE_SIZE
from ..safety.hashing import content_hash
from .detector import Detector
from .models import DetectedEndpoint
from .utils import SKIP_DIRECTORIES, detect_language, extract_block, should_skip_file

logger = logging.getLogger(__name__)


def _endpoint_id(file_path: str, line_number: int, endpoint_type: str) -> str:
    return f"{Path(file_path).as_posix()}:{line_number}:{endpoint_type}"


class EndpointScanner:
    """Scan text, files, or directory trees for source API endpoints."""

    def __init__(
        self,
        detector: Optional[Detector] = None,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self.detector = detector or Detector()
        self.context_lines = context_lines
        self.max_file_size = max_file_size

    def scan_text(
        self,
        text: str,
        file_path: str,
        language: Optional[str] = None,
    ) -> List[DetectedEndpoint]:
        """Detect endpoints in ``text`` as if it were the content of ``file_path``.

        Matches of one endpoint type whose context blocks would overlap are
        collapsed into a single endpoint anchored on the first match, so
        no two endpoints of the same type claim the same lines.
        """
        language = language or detect_language(file_path) or "unknown"
        result = self.detector.detect(text, language)
        if not result.endpoints:
            return []

        lines = text.split("\n")
        file_hash = content_hash(text)
        endpoints: List[DetectedEndpoint] = []

        for row in result.endpoints:
            anchor_lines: List[int] = []
            for line_number in row.line_numbers:
                if anchor_lines and line_number - anchor_lines[-1] <= 2 * self.context_lines:
                    continue
                anchor_lines.append(line_number)

            for line_number in anchor_lines:
                code = extract_block(lines, line_number, self.context_lines, self.context_lines)
                fields = tuple(
                    f.field for f in result.fields
                    if abs(f.line_number - line_number) <= self.context_lines
                )
                endpoints.append(DetectedEndpoint(
                    id=_endpoint_id(file_path, line_number, row.endpoint_type.value),
                    file_path=file_path,
                    line_number=line_number,
                    endpoint_type=row.endpoint_type,
                    code=code,
                    ssl_fields=fields,
                    language=language,
                    confidence=row.confidence,
                    content_hash=file_hash,
                ))

        logger.debug(f"Found {len(endpoints)} endpoints in {file_path}")
        return endpoints

    async def scan_file(self, file_path: str) -> List[DetectedEndpoint]:
        """Read and scan one file; unreadable files yield no endpoints."""
        path = Path(file_path)
        try:
            size = await asyncio.to_thread(lambda: path.stat().st_size)
            if size > self.max_file_size:
                logger.info(f"Skipping {file_path}: {size} bytes exceeds {self.max_file_size}")
                return []
            text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read {file_path}: {e}")
            return []
        return self.scan_text(text, str(path))

    async def scan_directory(self, root: str) -> List[DetectedEndpoint]:
        """Walk ``root`` and scan every supported source file, sequentially."""
        endpoints: List[DetectedEndpoint] = []
        for file_path in self._walk(root):
            endpoints.extend(await self.scan_file(file_path))
        logger.info(f"Scan of {root} found {len(endpoints)} endpoints")
        return endpoints

    def _walk(self, root: str) -> List[str]:
        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRECTORIES)
            for name in sorted(filenames):
                full = os.path.join(dirpath, name)
                if detect_language(full) and not should_skip_file(full):
                    files.append(full)
        return files
