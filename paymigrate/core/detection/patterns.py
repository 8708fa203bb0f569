"""Regular expression library for source API detection.

``build_pattern_library`` compiles every pattern family once for a given
source API identity and returns an immutable ``PatternLibrary``. The
detector holds a reference to it; nothing here is module-level mutable
state.

Pattern families:
    - endpoint categories, split into *specific* patterns (only ever seen
      in source API code) and *contextual* ones that only count when the
      text carries some other source API marker
    - SSL-style field names: one strict core pattern plus ranked variations
    - source API URLs and domains
    - HTTP client idioms, one disjoint list per language
    - configuration / secret references
    - migration-intent comments
"""

import re
from dataclasses import dataclass
from typing import Dict, Pattern, Tuple

from ..constants import (
    DEFAULT_SOURCE_API_DOMAIN,
    DEFAULT_SOURCE_API_NAME,
    DEFAULT_TARGET_API_NAME,
)
from .models import EndpointType

_I = re.IGNORECASE

_FIELD_TAIL = r"[a-zA-Z_][a-zA-Z0-9_]*"
_NOT_IDENT = r"(?<![A-Za-z0-9_])"
_URL_CHARS = r"[^\s\"'`<>)]*"


@dataclass(frozen=True)
class IdiomPattern:
    method: str
    library: str
    pattern: Pattern


@dataclass(frozen=True)
class CategoryPatterns:
    specific: Tuple[Pattern, ...]
    contextual: Tuple[Pattern, ...] = ()


# ── Language aliases ─────────────────────────────────────────────────

LANGUAGE_ALIASES: Dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "rb": "ruby",
    "cs": "csharp",
    "c#": "csharp",
    "golang": "go",
    "c++": "cpp",
    "cc": "cpp",
}


def canonical_language(language: str) -> str:
    lang = (language or "").strip().lower()
    return LANGUAGE_ALIASES.get(lang, lang)


# ── HTTP client idioms ───────────────────────────────────────────────


def _idioms(*specs: Tuple[str, str, str]) -> Tuple[IdiomPattern, ...]:
    return tuple(IdiomPattern(m, lib, re.compile(p)) for m, lib, p in specs)


_JS_IDIOMS = _idioms(
    ("fetch", "fetch", r"\bfetch\s*\("),
    ("axios", "axios", r"\baxios(?:\.(?:get|post|put|delete|patch|request))?\s*\("),
    ("ajax", "jquery", r"\$\.(?:ajax|post|get)\s*\("),
    ("xhr", "XMLHttpRequest", r"\bnew\s+XMLHttpRequest\b|\.open\s*\(\s*['\"](?:GET|POST|PUT)['\"]"),
)

_HTTP_IDIOMS: Dict[str, Tuple[IdiomPattern, ...]] = {
    "javascript": _JS_IDIOMS,
    "typescript": _JS_IDIOMS,
    "python": _idioms(
        ("requests", "requests", r"\brequests\.(?:get|post|put|delete|patch|request|Session)\b"),
        ("urllib", "urllib", r"\burllib(?:\.request)?\.(?:urlopen|Request)\b|\burlopen\s*\("),
        ("http.client", "http.client", r"\bHTTPS?Connection\s*\("),
        ("httpx", "httpx", r"\bhttpx\.(?:get|post|put|delete|Client|AsyncClient)\b"),
    ),
    "php": _idioms(
        ("curl", "curl", r"\bcurl_(?:init|setopt|setopt_array|exec)\s*\("),
        ("file_get_contents", "file_get_contents", r"\bfile_get_contents\s*\("),
        ("guzzle", "guzzle", r"GuzzleHttp\\Client|->(?:post|request)\s*\("),
    ),
    "java": _idioms(
        ("HttpClient", "java.net.http", r"\bHttpClient\b|\bHttpRequest\.newBuilder\b"),
        ("RestTemplate", "spring", r"\brestTemplate\.\w+\s*\(|\bRestTemplate\b"),
        ("HttpURLConnection", "java.net", r"\bHttpURLConnection\b"),
        ("OkHttp", "okhttp", r"\bOkHttpClient\b"),
    ),
    "csharp": _idioms(
        ("HttpClient", "System.Net.Http", r"\bHttpClient\b|\.(?:PostAsync|GetAsync|SendAsync)\s*\("),
        ("WebRequest", "System.Net", r"\bWebRequest\.Create\b|\bHttpWebRequest\b"),
        ("RestSharp", "RestSharp", r"\bRestClient\b"),
    ),
    "ruby": _idioms(
        ("Net::HTTP", "net/http", r"\bNet::HTTP\b"),
        ("HTTParty", "httparty", r"\bHTTParty\.\w+"),
        ("Faraday", "faraday", r"\bFaraday\.\w+"),
    ),
    "go": _idioms(
        ("http", "net/http", r"\bhttp\.(?:Post|PostForm|Get|NewRequest)\s*\("),
    ),
    "cpp": _idioms(
        ("curl", "libcurl", r"\bcurl_easy_(?:init|setopt|perform)\s*\("),
    ),
    "generic": _idioms(
        ("fetch", "fetch", r"\bfetch\s*\("),
        ("curl", "curl", r"\bcurl\b"),
        ("http", "http", r"\bhttps?\.(?:get|post|request)\s*\("),
    ),
}


# ── Configuration reference classification ───────────────────────────

_CONFIG_KEY_TYPES: Tuple[Tuple[str, str], ...] = (
    ("merchant", "merchant_id"),
    ("user", "user_id"),
    ("pin", "pin"),
    ("secret", "secret"),
    ("password", "secret"),
    ("token", "secret"),
    ("url", "endpoint"),
    ("endpoint", "endpoint"),
    ("host", "endpoint"),
    ("key", "api_key"),
)


def classify_config_key(key: str) -> str:
    """Map a config key such as ``SOURCEPAY_API_KEY`` to a reference type."""
    lowered = key.lower()
    for needle, ref_type in _CONFIG_KEY_TYPES:
        if needle in lowered:
            return ref_type
    return "other"


# ── Library ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PatternLibrary:
    """Compiled, immutable pattern set for one source API."""

    source_name: str
    source_domain: str
    target_name: str
    endpoints: Dict[EndpointType, CategoryPatterns]
    field_core: Pattern
    field_variations: Tuple[Pattern, ...]
    urls: Tuple[Pattern, ...]
    source_mention: Pattern
    config_refs: Tuple[Pattern, ...]
    comment: Pattern
    comment_marker: Pattern
    migration_intent: Pattern

    def idioms_for(self, language: str) -> Tuple[IdiomPattern, ...]:
        return _HTTP_IDIOMS.get(canonical_language(language), _HTTP_IDIOMS["generic"])

    def has_source_marker(self, text: str) -> bool:
        """True if the text names the source API, its URLs, or a source-only endpoint.

        Field-style identifiers alone do not count: ``ssl_context`` and friends
        are ordinary code in most languages.
        """
        if self.source_mention.search(text) or any(u.search(text) for u in self.urls):
            return True
        return any(
            p.search(text)
            for category in self.endpoints.values()
            for p in category.specific
        )


def build_pattern_library(
    source_name: str = DEFAULT_SOURCE_API_NAME,
    source_domain: str = DEFAULT_SOURCE_API_DOMAIN,
    target_name: str = DEFAULT_TARGET_API_NAME,
) -> PatternLibrary:
    """Compile the full pattern set for a source API identity.

    Args:
        source_name: Bare API name, e.g. ``"sourcepay"``. Matched
            case-insensitively wherever the name is part of a pattern.
        source_domain: Registrable domain, e.g. ``"sourcepay.com"``.
        target_name: Destination API name, used by migration-intent comments.
    """
    name = re.escape(source_name)
    name_upper = re.escape(source_name.upper())
    domain = re.escape(source_domain)
    target = re.escape(target_name)

    def c(*patterns: str, flags: int = _I) -> Tuple[Pattern, ...]:
        return tuple(re.compile(p, flags) for p in patterns)

    endpoints = {
        EndpointType.HOSTED_PAYMENTS: CategoryPatterns(
            specific=c(
                r"/?hosted-payments/transaction_token",
                r"hostedpayments/transactiontoken",
                r"hosted_payments_transaction_token",
            ),
            contextual=c(r"hosted[-_]?payments?\b"),
        ),
        EndpointType.CHECKOUT: CategoryPatterns(
            specific=c(
                rf"{name}.*checkout",
                rf"checkout.*{name}",
            ),
            contextual=c(r"\bCheckout\.js\b"),
        ),
        EndpointType.PROCESS_TRANSACTION: CategoryPatterns(
            specific=c(
                r"ProcessTransactionOnline\b",
                r"process_transaction_online",
                r"processxml\.do",
                r"\bVirtualMerchant(?:Demo)?\b",
            ),
            contextual=c(r"\bprocesstransaction\b"),
        ),
        EndpointType.BATCH_PROCESSING: CategoryPatterns(
            specific=c(
                r"/?batch-processing",
            ),
            contextual=c(
                r"batch_processing",
                r"\bbatchprocessing\b",
                r"batch.*process",
            ),
        ),
        EndpointType.DEVICE_MANAGEMENT: CategoryPatterns(
            specific=c(
                r"\bNon\w*CertifiedDevice\b",
                r"\bnon_\w*certified_device\b",
            ),
            contextual=c(r"device.*management", r"terminal.*management"),
        ),
    }

    field_variations = c(
        _NOT_IDENT + r"SSL_[A-Za-z_][A-Za-z0-9_]*",
        _NOT_IDENT + r"ssl[A-Z][a-zA-Z0-9]*",
        r'"ssl_' + _FIELD_TAIL + r'"',
        r"'ssl_" + _FIELD_TAIL + r"'",
        r"\$ssl_" + _FIELD_TAIL,
        r"ssl\[[\"']" + _FIELD_TAIL + r"[\"']\]",
        r":ssl_" + _FIELD_TAIL,
        r"ssl_" + _FIELD_TAIL + r":",
        r"@XmlElement\(name\s*=\s*[\"']ssl_" + _FIELD_TAIL + r"[\"']\)",
        flags=0,
    )

    return PatternLibrary(
        source_name=source_name,
        source_domain=source_domain,
        target_name=target_name,
        endpoints=endpoints,
        field_core=re.compile(_NOT_IDENT + r"ssl_" + _FIELD_TAIL),
        field_variations=field_variations,
        urls=c(
            rf"https?://{_URL_CHARS}{name}{_URL_CHARS}",
            rf"\b{domain}{_URL_CHARS}",
            r"processxml\.do",
            r"\bVirtualMerchant\w*",
        ),
        source_mention=re.compile(rf"{name}|{domain}", _I),
        config_refs=(
            re.compile(
                rf"\b(?:REACT_APP_|VUE_APP_|NEXT_PUBLIC_|VITE_)?({name_upper}_[A-Z0-9_]+)\b"
            ),
            re.compile(
                rf"\b({name}[._-](?:(?:api|merchant|user|account)[_-]?(?:key|id)"
                rf"|pin|secret|password|token|endpoint|url|base[_-]?url))\b",
                _I,
            ),
        ),
        comment=re.compile(r"(?:^|\s)(?://|#|/\*|\*|<!--)\s?(.*)$"),
        comment_marker=re.compile(r"\b(?:TODO|FIXME|HACK|XXX)\b"),
        migration_intent=re.compile(
            rf"migrat|deprecat|legacy|replace|{name}|{target}", _I
        ),
    )
