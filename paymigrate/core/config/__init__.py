from .config_loader import (
    PayMigrateSettings,
    get_config_path,
    get_config_value,
    get_settings,
    load_unified_config,
    reload_configs,
    setup_logging,
)
from .credentials import CredentialProvider, EnvCredentialProvider, TargetCredentials

__all__ = [
    "PayMigrateSettings",
    "get_config_path",
    "get_config_value",
    "get_settings",
    "load_unified_config",
    "reload_configs",
    "setup_logging",
    "CredentialProvider",
    "EnvCredentialProvider",
    "TargetCredentials",
]
