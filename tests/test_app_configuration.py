from pathlib import Path

import pytest
import yaml

from steward.configuration.app_configuration import DAY_MS, AppConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def write_config(path: Path, payload) -> None:
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_app_config_reads_scheduler_sections(config_path: Path, tmp_path: Path) -> None:
    write_config(config_path, {
        "storage": {"data_dir": str(tmp_path / "tables"), "fail_open": True},
        "reminders": {"check_interval_seconds": 10, "max_duration_seconds": 3600},
        "polls": {"check_interval_seconds": 5, "max_options": 4, "max_duration_seconds": 86400},
    })

    config = AppConfig(config_path)

    assert config.data_dir == (tmp_path / "tables").resolve()
    assert config.storage_fail_open is True
    assert config.reminder_check_interval == pytest.approx(10.0)
    assert config.reminder_max_duration_ms == 3_600_000
    assert config.poll_check_interval == pytest.approx(5.0)
    assert config.poll_max_options == 4
    assert config.poll_max_duration_ms == DAY_MS


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.data_dir == Path("./data").resolve()
    assert config.storage_fail_open is False
    assert config.reminder_check_interval == pytest.approx(30.0)
    assert config.reminder_max_duration_ms == 30 * DAY_MS
    assert config.poll_check_interval == pytest.approx(30.0)
    assert config.poll_max_options == 10
    assert config.poll_max_duration_ms == 7 * DAY_MS


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_app_config_bad_numbers_fall_back(config_path: Path) -> None:
    write_config(config_path, {"reminders": {"check_interval_seconds": "often"}, "polls": "nonsense"})

    config = AppConfig(config_path)

    assert config.reminder_check_interval == pytest.approx(30.0)
    assert config.poll_max_options == 10


@pytest.mark.parametrize(("configured", "expected"), [(1, 2), (25, 10), (6, 6)])
def test_poll_max_options_is_clamped(config_path: Path, configured: int, expected: int) -> None:
    write_config(config_path, {"polls": {"max_options": configured}})

    assert AppConfig(config_path).poll_max_options == expected


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    write_config(config_path, {"reminders": {"check_interval_seconds": 10}})
    config = AppConfig(config_path)

    write_config(config_path, {"reminders": {"check_interval_seconds": 60}})
    config.reload()

    assert config.reminder_check_interval == pytest.approx(60.0)
    assert config.get("reminders") == {"check_interval_seconds": 60}
