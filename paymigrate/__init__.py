"""PayMigrate: detect legacy payment API usages and migrate them safely."""

__version__ = "0.1.0"
