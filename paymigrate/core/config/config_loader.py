"""YAML-backed configuration for PayMigrate.

Settings live in ``config/paymigrate.yaml`` under a top-level ``paymigrate``
key. The file is read once and cached; ``reload_configs()`` drops the cache
so the next access re-reads it. A missing or unreadable file falls back to
the defaults in ``paymigrate.core.constants``.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..constants import (
    CONTEXT_LINES_AFTER,
    CONTEXT_LINES_BEFORE,
    BULK_SAMPLE_VALIDATION_SIZE,
    DEFAULT_BACKUP_DIR,
    DEFAULT_CONTEXT_LINES,
    DEFAULT_HISTORY_FILE,
    DEFAULT_LLM_MAX_TOKENS,
    DEFAULT_LLM_TEMPERATURE,
    DEFAULT_MAPPING_FILE,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PROXIMITY_LINES,
    DEFAULT_SANDBOX_URL,
    DEFAULT_SOURCE_API_DOMAIN,
    DEFAULT_SOURCE_API_NAME,
    DEFAULT_TARGET_API_DOMAIN,
    DEFAULT_TARGET_API_NAME,
    MAX_BACKUPS_PER_FILE,
    MAX_HISTORY_ENTRIES,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "paymigrate.yaml"
CONFIG_DIR_ENV = "PAYMIGRATE_CONFIG_DIR"

_config_cache: Optional[Dict[str, Any]] = None


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("backoff").setLevel(logging.WARNING)
    logging.getLogger("llama_index").setLevel(logging.WARNING)


def get_config_path() -> Path:
    """Return the directory holding ``paymigrate.yaml``.

    ``PAYMIGRATE_CONFIG_DIR`` overrides the default of ``config/`` at the
    project root.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    return Path(__file__).parent.parent.parent.parent / "config"


def load_unified_config() -> Dict[str, Any]:
    """Load and cache the unified YAML config.

    Returns:
        The parsed document, or an empty dict when the file is absent or
        cannot be parsed.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    config_file = get_config_path() / CONFIG_FILENAME
    if not config_file.exists():
        logger.warning(f"{CONFIG_FILENAME} not found at {config_file}, using defaults")
        _config_cache = {}
        return _config_cache

    try:
        with open(config_file, "r") as f:
            _config_cache = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading {CONFIG_FILENAME}: {e}")
        _config_cache = {}
    return _config_cache


def reload_configs() -> None:
    """Drop the cached config so the next access re-reads the file."""
    global _config_cache
    _config_cache = None


def get_config_value(*keys: str, default: Any = None) -> Any:
    """Walk nested keys of the unified config.

    Example:
        ``get_config_value("paymigrate", "safety", "max_history_entries", default=100)``
    """
    node: Any = load_unified_config()
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


@dataclass
class PayMigrateSettings:
    """Resolved runtime settings."""

    source_api_name: str = DEFAULT_SOURCE_API_NAME
    source_api_domain: str = DEFAULT_SOURCE_API_DOMAIN
    target_api_name: str = DEFAULT_TARGET_API_NAME
    target_api_domain: str = DEFAULT_TARGET_API_DOMAIN

    context_lines: int = DEFAULT_CONTEXT_LINES
    proximity_lines: int = DEFAULT_PROXIMITY_LINES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    mapping_file: str = DEFAULT_MAPPING_FILE

    context_before: int = CONTEXT_LINES_BEFORE
    context_after: int = CONTEXT_LINES_AFTER
    llm_temperature: float = DEFAULT_LLM_TEMPERATURE
    llm_max_tokens: int = DEFAULT_LLM_MAX_TOKENS

    history_file: str = DEFAULT_HISTORY_FILE
    backup_dir: str = DEFAULT_BACKUP_DIR
    max_history_entries: int = MAX_HISTORY_ENTRIES
    max_backups_per_file: int = MAX_BACKUPS_PER_FILE

    sandbox_url: str = DEFAULT_SANDBOX_URL
    sandbox_timeout: float = 30.0
    sample_size: int = BULK_SAMPLE_VALIDATION_SIZE


def get_settings() -> PayMigrateSettings:
    """Build ``PayMigrateSettings`` from the unified config."""
    section = get_config_value("paymigrate", default={}) or {}

    def _get(group: str, key: str, default: Any) -> Any:
        value = (section.get(group) or {}).get(key)
        return default if value is None else value

    source = section.get("source_api") or {}
    target = section.get("target_api") or {}
    llm = (section.get("migration") or {}).get("llm") or {}

    return PayMigrateSettings(
        source_api_name=source.get("name", DEFAULT_SOURCE_API_NAME),
        source_api_domain=source.get("domain", DEFAULT_SOURCE_API_DOMAIN),
        target_api_name=target.get("name", DEFAULT_TARGET_API_NAME),
        target_api_domain=target.get("domain", DEFAULT_TARGET_API_DOMAIN),
        context_lines=_get("detection", "context_lines", DEFAULT_CONTEXT_LINES),
        proximity_lines=_get("detection", "proximity_lines", DEFAULT_PROXIMITY_LINES),
        max_file_size=_get("detection", "max_file_size", DEFAULT_MAX_FILE_SIZE),
        mapping_file=_get("mapping", "dictionary_file", DEFAULT_MAPPING_FILE),
        context_before=_get("migration", "context_before", CONTEXT_LINES_BEFORE),
        context_after=_get("migration", "context_after", CONTEXT_LINES_AFTER),
        llm_temperature=llm.get("temperature", DEFAULT_LLM_TEMPERATURE),
        llm_max_tokens=llm.get("max_tokens", DEFAULT_LLM_MAX_TOKENS),
        history_file=_get("safety", "history_file", DEFAULT_HISTORY_FILE),
        backup_dir=_get("safety", "backup_dir", DEFAULT_BACKUP_DIR),
        max_history_entries=_get("safety", "max_history_entries", MAX_HISTORY_ENTRIES),
        max_backups_per_file=_get("safety", "max_backups_per_file", MAX_BACKUPS_PER_FILE),
        sandbox_url=_get("validation", "sandbox_url", DEFAULT_SANDBOX_URL),
        sandbox_timeout=_get("validation", "timeout_seconds", 30.0),
        sample_size=_get("validation", "sample_size", BULK_SAMPLE_VALIDATION_SIZE),
    )
