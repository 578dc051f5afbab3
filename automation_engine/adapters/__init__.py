"""Adapters for configs written by older front-ends.

adapters/
  legacy.py     — legacy agent configs -> AutomationConfig
  migration.py  — legacy tag-trigger fields -> structured UnifiedTriggerConfig
"""

from automation_engine.adapters.legacy import (
    AdaptedConfig,
    adapt_legacy_config,
    adapt_legacy_source,
    adapt_many,
    ensure_new_format,
    infer_modalities,
    is_legacy_config,
    is_new_config,
)
from automation_engine.adapters.migration import (
    ListeningMigrationResult,
    MigrationResult,
    infer_channel,
    migrate_listening_config,
    migrate_trigger,
    needs_migration,
)

__all__ = [
    "AdaptedConfig",
    "ListeningMigrationResult",
    "MigrationResult",
    "adapt_legacy_config",
    "adapt_legacy_source",
    "adapt_many",
    "ensure_new_format",
    "infer_channel",
    "infer_modalities",
    "is_legacy_config",
    "is_new_config",
    "migrate_listening_config",
    "migrate_trigger",
    "needs_migration",
]
