"""Lightweight per-language syntax heuristics.

None of these checks parse the language. They catch the handful of
mistakes generated code tends to make: unbalanced brackets, dropped
semicolons, broken Python indentation, PHP variables missing their
``$`` sigil. Only ``error`` findings make a result invalid.
"""

import re
from typing import Callable, Dict, List

from ..detection.patterns import canonical_language
from .models import Severity, SyntaxFinding, SyntaxValidation

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {v: k for k, v in _PAIRS.items()}

# Line endings that legitimately continue a statement
_CONTINUATIONS = (";", "{", "}", ",", "(", "[", ".", "+", "&&", "||", "=>", "?", ":")


def _is_comment(line: str) -> bool:
    return line.startswith(("//", "/*", "*", "#"))


def check_brackets(code: str) -> List[SyntaxFinding]:
    """Report unbalanced ``()[]{}``, ignoring string literals and line comments."""
    findings: List[SyntaxFinding] = []
    stack = []

    for line_no, line in enumerate(code.split("\n"), start=1):
        quote = None
        col = 0
        while col < len(line):
            ch = line[col]
            if quote:
                if ch == "\\":
                    col += 1
                elif ch == quote:
                    quote = None
            elif ch in ("'", '"', "`"):
                quote = ch
            elif line.startswith("//", col):
                break
            elif ch in _PAIRS:
                stack.append((ch, line_no, col + 1))
            elif ch in _CLOSERS:
                if not stack:
                    findings.append(SyntaxFinding(
                        line_no, col + 1, f"Unmatched closing bracket '{ch}'", Severity.ERROR,
                    ))
                else:
                    opener, _, _ = stack.pop()
                    if _PAIRS[opener] != ch:
                        findings.append(SyntaxFinding(
                            line_no, col + 1,
                            f"Expected '{_PAIRS[opener]}' but found '{ch}'", Severity.ERROR,
                        ))
            col += 1

    for opener, line_no, col in stack:
        findings.append(SyntaxFinding(
            line_no, col, f"Unmatched opening bracket '{opener}'", Severity.ERROR,
        ))
    return findings


def _missing_semicolon(line_no: int, line: str) -> SyntaxFinding:
    return SyntaxFinding(line_no, len(line), "Missing semicolon", Severity.WARNING)


# ── Language checkers ────────────────────────────────────────────────


def check_javascript(code: str) -> List[SyntaxFinding]:
    findings = check_brackets(code)
    for line_no, raw in enumerate(code.split("\n"), start=1):
        line = raw.strip()
        if not line or _is_comment(line):
            continue
        if (
            re.match(r"^(const|let|var)\s+\w+\s*=", line)
            and not line.endswith(_CONTINUATIONS)
            and "//" not in line
        ):
            findings.append(_missing_semicolon(line_no, line))
        if re.search(r"\bundefined\b", line) and not re.search(r"typeof.*undefined", line):
            findings.append(SyntaxFinding(
                line_no, 1, "Potential undefined variable usage", Severity.WARNING,
            ))
    return findings


_PHP_BARE_ASSIGNMENT = re.compile(r"(?<![\$\w>:])([a-zA-Z_]\w*)\s*=(?![=>])")
_PHP_SKIP = ("function", "class", "const ", "define(", "declare(", "->", "::")


def check_php(code: str) -> List[SyntaxFinding]:
    findings = check_brackets(code)
    for line_no, raw in enumerate(code.split("\n"), start=1):
        line = raw.strip()
        if not line or _is_comment(line) or line.startswith(("<?php", "?>", "<")):
            continue
        if re.match(r"^\$\w+\s*=", line) and not line.endswith(_CONTINUATIONS):
            findings.append(_missing_semicolon(line_no, line))
        if any(token in line for token in _PHP_SKIP):
            continue
        match = _PHP_BARE_ASSIGNMENT.search(line)
        if match and not re.search(r"[\"'][^\"']*" + re.escape(match.group(0)), line):
            findings.append(SyntaxFinding(
                line_no, match.start() + 1, "PHP variables should start with $", Severity.ERROR,
            ))
    return findings


def check_python(code: str) -> List[SyntaxFinding]:
    findings: List[SyntaxFinding] = []
    lines = code.split("\n")

    for idx, line in enumerate(lines):
        indent = line[: len(line) - len(line.lstrip())]
        if "\t" in indent and " " in indent:
            findings.append(SyntaxFinding(
                idx + 1, 1, "Mixed tabs and spaces in indentation", Severity.WARNING,
            ))

        stripped = line.split("#", 1)[0].rstrip()
        if not stripped.endswith(":") or stripped.lstrip().startswith(("#", "{")):
            continue
        following = next((n for n in lines[idx + 1:] if n.strip()), None)
        if following is None:
            continue
        next_indent = len(following) - len(following.lstrip())
        if next_indent <= len(indent):
            findings.append(SyntaxFinding(
                lines.index(following, idx + 1) + 1, 1, "Expected indented block", Severity.ERROR,
            ))
    return findings


def _brace_language_checker(keywords: str) -> Callable[[str], List[SyntaxFinding]]:
    skip = re.compile(rf"^({keywords})\b|^[@.)}}]")

    def check(code: str) -> List[SyntaxFinding]:
        findings = check_brackets(code)
        for line_no, raw in enumerate(code.split("\n"), start=1):
            line = raw.strip()
            if not line or _is_comment(line) or skip.match(line):
                continue
            if not line.endswith(_CONTINUATIONS) and not line.endswith(")"):
                findings.append(_missing_semicolon(line_no, line))
        return findings

    return check


check_java = _brace_language_checker(
    "if|else|for|while|do|try|catch|finally|switch|case|default|public|private|protected|class|interface|enum|package|import"
)
check_csharp = _brace_language_checker(
    "if|else|for|foreach|while|do|try|catch|finally|switch|case|default|public|private|protected|internal|class|interface|using|namespace|\\["
)


SYNTAX_CHECKERS: Dict[str, Callable[[str], List[SyntaxFinding]]] = {
    "javascript": check_javascript,
    "typescript": check_javascript,
    "php": check_php,
    "python": check_python,
    "java": check_java,
    "csharp": check_csharp,
}


def check_syntax(code: str, language: str) -> SyntaxValidation:
    """Run the checker for ``language``, falling back to bracket balance."""
    checker = SYNTAX_CHECKERS.get(canonical_language(language), check_brackets)
    return SyntaxValidation(findings=checker(code))
