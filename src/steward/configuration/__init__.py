"""
Configuration management for Steward.

- **app_configuration.py**: YAML configuration loader for global settings.
  Provides the data directory and failure policy of the keyed store, and the
  tick intervals and limits of the reminder and poll schedulers. Falls back
  to defaults on missing or malformed config files.
"""
