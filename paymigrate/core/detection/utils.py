"""Detection utilities.

Language detection, comment stripping, and line helpers shared by the
detector and the scanner.
"""

import os
import re
from typing import Dict, List, Optional

# Extension → language mapping
SUPPORTED_EXTENSIONS: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".vue": "javascript",
    ".svelte": "javascript",
    ".html": "javascript",
    ".htm": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".php": "php",
    ".java": "java",
    ".cs": "csharp",
    ".rb": "ruby",
    ".go": "go",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".c": "cpp",
    ".h": "cpp",
}

# Directories to skip during file walking
SKIP_DIRECTORIES = frozenset({
    "__pycache__",
    ".git",
    "venv",
    ".venv",
    "node_modules",
    "vendor",
    "dist",
    "build",
    "out",
    "coverage",
    ".nyc_output",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".paymigrate",
    "bin",
    "obj",
})

# Generated or bundled files that never hold hand-written integrations
SKIP_FILE_SUFFIXES = (".min.js", ".bundle.js", ".map")

_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT = re.compile(r"^\s*(?://|#|\*|<!--)")


def detect_language(file_path: str) -> Optional[str]:
    """Detect programming language from file extension.

    Args:
        file_path: Path to the source file

    Returns:
        Language identifier string or None if unsupported
    """
    _, ext = os.path.splitext(file_path)
    return SUPPORTED_EXTENSIONS.get(ext.lower())


def should_skip_file(file_path: str) -> bool:
    return file_path.endswith(SKIP_FILE_SUFFIXES)


def strip_comments(text: str) -> str:
    """Blank out comment text while keeping line numbering intact.

    Block comments (``/* ... */``) are replaced by the same number of
    newlines; whole-line comments (``//``, ``#``, ``*`` continuations,
    ``<!--``) become empty lines. Trailing comments after code are kept,
    since ``//`` also appears inside URLs.
    """
    text = _BLOCK_COMMENT.sub(lambda m: "\n" * m.group(0).count("\n"), text)
    return "\n".join(
        "" if _LINE_COMMENT.match(line) else line for line in text.split("\n")
    )


def line_of_offset(text: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return text.count("\n", 0, offset) + 1


def extract_block(lines: List[str], line_number: int, before: int, after: int) -> str:
    """Return lines ``[line_number - before, line_number + after]`` (1-based, clamped)."""
    start = max(0, line_number - 1 - before)
    end = min(len(lines), line_number + after)
    return "\n".join(lines[start:end])
