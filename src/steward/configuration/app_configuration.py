from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from steward.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DAY_MS = 24 * 60 * 60 * 1000

# Fixed by the positional emoji alphabet used for poll reactions
POLL_OPTION_LIMIT = 10


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml`` and exposes
    dictionary-like access helpers plus typed shortcuts for the storage and
    scheduler settings. Uses fcntl file locks for safe concurrent access
    across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    def _float(self, section: str, key: str, default: float) -> float:
        try:
            return float(self._section(section).get(key, default))
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] %s.%s is not a number; using %s", section, key, default)
            return default

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (which will be an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it; use get(...) or the provided convenience
        properties instead.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # Storage
    # --------------------------
    @property
    def data_dir(self) -> Path:
        """Directory holding the JSON table files. Default ``./data``."""
        value = self._section("storage").get("data_dir") or "./data"
        return Path(str(value)).resolve()

    @property
    def storage_fail_open(self) -> bool:
        """Whether the keyed store swallows read/write failures instead of raising."""
        return bool(self._section("storage").get("fail_open", False))

    # --------------------------
    # Reminders
    # --------------------------
    @property
    def reminder_check_interval(self) -> float:
        """Seconds between two reminder scheduler ticks. Default 30."""
        return self._float("reminders", "check_interval_seconds", 30.0)

    @property
    def reminder_max_duration_ms(self) -> int:
        """Longest accepted ``/remind`` delay in milliseconds. Default 30 days."""
        return int(self._float("reminders", "max_duration_seconds", 30 * DAY_MS / 1000) * 1000)

    # --------------------------
    # Polls
    # --------------------------
    @property
    def poll_check_interval(self) -> float:
        """Seconds between two poll scheduler ticks. Default 30."""
        return self._float("polls", "check_interval_seconds", 30.0)

    @property
    def poll_max_options(self) -> int:
        """Maximum options per poll, clamped to the emoji alphabet (2..10)."""
        value = int(self._float("polls", "max_options", POLL_OPTION_LIMIT))
        return max(2, min(POLL_OPTION_LIMIT, value))

    @property
    def poll_max_duration_ms(self) -> int:
        """Longest accepted poll duration in milliseconds. Default 7 days."""
        return int(self._float("polls", "max_duration_seconds", 7 * DAY_MS / 1000) * 1000)


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
