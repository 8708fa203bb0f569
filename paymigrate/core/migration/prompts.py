"""LLM prompt templates for payment API code migration.

One system prompt per language family carries the mapping rules plus
code-quality and best-practice guidance; the user prompt carries the
snippet and its surrounding context.
"""

from typing import Dict, List, Optional

from .models import TransformationRequest

MIGRATION_ROLE = """You are an expert payment gateway migration assistant.
You rewrite integrations of the {source} payment API so that they call the
{target} API instead, keeping the original behaviour intact. You change field
names, endpoints and request construction according to the mapping rules and
leave unrelated code alone."""

_COMMON_BEST_PRACTICES = [
    "Read API credentials from environment variables or a secret store",
    "Check HTTP status codes before using the response body",
    "Add timeouts to outbound API requests",
]

_LANGUAGE_GUIDANCE: Dict[str, Dict[str, List[str]]] = {
    "javascript": {
        "quality": [
            "Use modern ES syntax and async/await for asynchronous calls",
            "Wrap API calls in try/catch and surface errors to the caller",
        ],
        "practices": ["Validate input parameters before API calls"],
    },
    "typescript": {
        "quality": [
            "Keep type annotations accurate for changed request and response shapes",
            "Use async/await for asynchronous calls",
        ],
        "practices": ["Validate input parameters before API calls"],
    },
    "python": {
        "quality": [
            "Follow PEP 8 style guidelines",
            "Raise or log exceptions instead of silently ignoring failures",
        ],
        "practices": ["Use a session object for repeated requests"],
    },
    "php": {
        "quality": [
            "Use proper PHP syntax and PSR-12 formatting",
            "Prefix every variable with $",
        ],
        "practices": ["Validate and sanitize input data", "Use HTTPS for all API calls"],
    },
    "java": {
        "quality": [
            "Use proper Java syntax and existing project conventions",
            "Handle checked exceptions explicitly",
        ],
        "practices": ["Reuse HTTP client instances"],
    },
    "csharp": {
        "quality": [
            "Use proper C# syntax and async/await",
            "Dispose HTTP resources correctly",
        ],
        "practices": ["Reuse HttpClient instances"],
    },
}

_DEFAULT_GUIDANCE = {
    "quality": ["Preserve the original code style and structure"],
    "practices": [],
}


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items) if items else "- (none)"


def build_system_prompt(
    request: TransformationRequest, source: str, target: str, target_domain: Optional[str] = None
) -> str:
    guidance = _LANGUAGE_GUIDANCE.get(request.language.lower(), _DEFAULT_GUIDANCE)
    rules = list(request.mapping_rules)
    if target_domain:
        rules.append(f"Send {target} requests to https://{target_domain}")
    return f"""{MIGRATION_ROLE.format(source=source, target=target)}

MIGRATION RULES:
{_bullets(rules)}

CODE QUALITY REQUIREMENTS:
{_bullets(guidance["quality"])}

BEST PRACTICES:
{_bullets(guidance["practices"] + _COMMON_BEST_PRACTICES)}
"""


def build_user_prompt(request: TransformationRequest, source: str, target: str) -> str:
    location = ""
    if request.file_path:
        location = f"FILE: {request.file_path}\nLINE: {request.line_number or '?'}\n"

    context = ""
    if request.surrounding_code:
        context = f"""
SURROUNDING CODE (for context only, do not return it):
```{request.language}
{request.surrounding_code}
```
"""

    endpoint_type = getattr(request.endpoint_type, "value", request.endpoint_type)
    return f"""Migrate this {source} payment code ({endpoint_type}) to {target}.

{location}LANGUAGE: {request.language}

ORIGINAL CODE:
```{request.language}
{request.code}
```
{context}
Return ONLY the migrated replacement for ORIGINAL CODE in a single fenced code
block. After the block, add a line "Confidence: <0.0-1.0>" and then an
"Explanation:" section describing the significant changes."""


def build_migration_prompt(
    request: TransformationRequest, source: str, target: str, target_domain: Optional[str] = None
) -> str:
    """Single-string prompt for completion-style LLM calls."""
    system = build_system_prompt(request, source, target, target_domain)
    return system + "\n" + build_user_prompt(request, source, target)
