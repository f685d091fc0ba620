"""
Utility functions and helpers for Steward.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  Discord internals. Uses prompt_toolkit for non-blocking console output.

- **format_utils.py**: The shared duration grammar (``<int>[smhdw]``), duration
  and Discord timestamp formatting, and record id generation.
"""
