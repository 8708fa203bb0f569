"""Shared constants for PayMigrate.

This module contains constants that are used across multiple modules
to avoid duplication and ensure consistency.
"""

# =============================================================================
# API Identity
# =============================================================================

# Legacy payment API being migrated away from
DEFAULT_SOURCE_API_NAME = "sourcepay"
DEFAULT_SOURCE_API_DOMAIN = "sourcepay.com"

# Destination payment API
DEFAULT_TARGET_API_NAME = "targetpay"
DEFAULT_TARGET_API_DOMAIN = "api.targetpay.com"
DEFAULT_SANDBOX_URL = "https://uat.api.targetpay.com"

# =============================================================================
# Detection
# =============================================================================

# Lines of context captured around a detected endpoint
DEFAULT_CONTEXT_LINES = 5

# HTTP idioms are only reported within this many lines of the source API name
DEFAULT_PROXIMITY_LINES = 5

# Files above this size are skipped by the scanner (1 MB)
DEFAULT_MAX_FILE_SIZE = 1024 * 1024

# =============================================================================
# Migration
# =============================================================================

# Surrounding code sent to the transformer: lines above / below the endpoint
CONTEXT_LINES_BEFORE = 5
CONTEXT_LINES_AFTER = 4

# Transformer request defaults
DEFAULT_LLM_TEMPERATURE = 0.3
DEFAULT_LLM_MAX_TOKENS = 2000

# Live validation smoke test sample size after a bulk run
BULK_SAMPLE_VALIDATION_SIZE = 3

# =============================================================================
# Safety Net
# =============================================================================

MAX_HISTORY_ENTRIES = 100
MAX_BACKUPS_PER_FILE = 5
HISTORY_SCHEMA_VERSION = "1.0"
BACKUP_SCHEMA_VERSION = "1.0"
BACKUP_METADATA_FILENAME = "backup-metadata.json"

DEFAULT_HISTORY_FILE = ".paymigrate/history.json"
DEFAULT_BACKUP_DIR = ".paymigrate/backups"
DEFAULT_MAPPING_FILE = "config/mapping.json"
