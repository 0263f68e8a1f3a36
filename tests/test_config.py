"""
Tests for YAML configuration loading.
"""

import pytest
from pydantic import ValidationError

from slotfinder.config import AppConfig, SlotDefaults


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestAppConfig:
    def test_load_minimal_config(self, tmp_path):
        """Missing sections fall back to the observed booking defaults."""
        path = _write(tmp_path, "client_id: abc\ntenant_id: def\ncalendar_owner: a@example.com\n")

        config = AppConfig.load_from_yaml(path)

        assert config.timezone == "Asia/Kolkata"
        assert config.defaults.duration_minutes == 15
        assert config.defaults.slots_needed == 3
        assert config.defaults.window_days == 7
        assert config.exclude_days == [5, 6]
        assert config.client_secret is None
        assert config.get_authority_url() == "https://login.microsoftonline.com/def"

    def test_to_policy(self, tmp_path):
        path = _write(
            tmp_path,
            "client_id: abc\n"
            "tenant_id: def\n"
            "calendar_owner: a@example.com\n"
            "timezone: Europe/Berlin\n"
            "exclude_days: [6, 6, 2]\n"
            "defaults:\n"
            "  start_hour: 8\n"
            "  end_hour: 20\n"
            "  granularity_minutes: 30\n",
        )

        policy = AppConfig.load_from_yaml(path).to_policy()

        assert policy.start_hour == 8
        assert policy.end_hour == 20
        assert policy.granularity_minutes == 30
        assert policy.excluded_weekdays == frozenset({2, 6})
        assert policy.timezone == "Europe/Berlin"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = _write(tmp_path, "client_id: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(path)

    def test_non_mapping_root(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    def test_invalid_exclude_days(self):
        with pytest.raises(ValidationError):
            AppConfig(client_id="a", tenant_id="b", calendar_owner="c", exclude_days=[7])

    def test_invalid_timeout(self):
        with pytest.raises(ValidationError):
            AppConfig(client_id="a", tenant_id="b", calendar_owner="c", request_timeout_seconds=0)


class TestSlotDefaults:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"duration_minutes": 0},
            {"slots_needed": 0},
            {"window_days": -1},
            {"granularity_minutes": 0},
            {"start_hour": 24},
            {"start_hour": 18, "end_hour": 9},
        ],
    )
    def test_invalid_defaults(self, kwargs):
        with pytest.raises(ValidationError):
            SlotDefaults(**kwargs)
