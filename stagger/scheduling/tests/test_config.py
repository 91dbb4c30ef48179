"""Tests for environment settings and schedule_config.yaml loading."""

from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from stagger.config import Settings, configure_logging, get_settings
from stagger.scheduling import config_loader
from stagger.scheduling.config_loader import (
    CadenceProfile,
    ConfigValidationError,
    ScheduleConfig,
    _validate_and_build,
    get_schedule_config,
    load_schedule_config,
    reload_schedule_config,
)
from stagger.scheduling.generator import TaskGenerator


def write_yaml(tmp_path: Path, body: str, name: str = "schedule.yaml") -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("STAGGER_INTERVAL_SECONDS", "STAGGER_BIN_COUNT", "STAGGER_MAX_DISTRIBUTION_CV"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings(_env_file=None)
        assert settings.interval_seconds == 300
        assert settings.bin_count == 300
        assert settings.max_distribution_cv == pytest.approx(0.15)
        assert settings.schedule_config_path is None

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STAGGER_INTERVAL_SECONDS", "60")
        monkeypatch.setenv("STAGGER_BIN_COUNT", "30")
        monkeypatch.setenv("STAGGER_LOG_LEVEL", "DEBUG")
        settings = Settings(_env_file=None)
        assert settings.interval_seconds == 60
        assert settings.bin_count == 30
        assert settings.log_level == "DEBUG"

    def test_rejects_non_positive_values(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, interval_seconds=0)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, bin_count=-5)

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_configure_logging(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="stagger")
        configure_logging(Settings(_env_file=None, log_level="info", environment="test"))
        assert "Logging configured for Stagger [test] at INFO" in caplog.text


@pytest.mark.usefixtures("reset_schedule_config")
class TestScheduleConfigLoading:
    """The bundled schedule_config.yaml."""

    def test_load_bundled_config(self) -> None:
        config = load_schedule_config()
        assert config.version == "1.0"
        assert config.defaults == CadenceProfile(
            name="default", interval_seconds=300, bin_count=300
        )
        assert config.max_cv == pytest.approx(0.15)

    def test_bundled_profiles_are_valid_cadences(self) -> None:
        config = load_schedule_config()
        assert {"cardiac_monitor", "glucose_monitor", "blood_pressure", "weight_scale"} <= set(
            config.profiles
        )
        for profile in config.profiles.values():
            assert 0 < profile.bin_count <= profile.interval_seconds
            TaskGenerator.from_profile(profile)

    def test_bin_count_defaults_to_interval(self) -> None:
        profile = load_schedule_config().profile("weight_scale")
        assert profile.interval_seconds == 3600
        assert profile.bin_count == 3600

    def test_unknown_profile_raises(self) -> None:
        config = load_schedule_config()
        with pytest.raises(KeyError, match="Unknown cadence profile"):
            config.profile("pacemaker-v9")

    def test_profile_or_default(self) -> None:
        config = load_schedule_config()
        assert config.profile_or_default(None) is config.defaults
        assert config.profile_or_default("nope") is config.defaults
        assert config.profile_or_default("blood_pressure").interval_seconds == 900

    def test_singleton(self) -> None:
        assert get_schedule_config() is get_schedule_config()

    def test_settings_path_override(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = write_yaml(
            tmp_path,
            """
            version: "9.9"
            profiles:
              fast: {interval_seconds: 60}
            """,
        )
        monkeypatch.setenv("STAGGER_SCHEDULE_CONFIG_PATH", str(path))
        get_settings.cache_clear()
        try:
            config = get_schedule_config()
        finally:
            get_settings.cache_clear()
        assert config.version == "9.9"
        assert config.profile("fast").bin_count == 60

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_schedule_config(tmp_path / "absent.yaml")

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path, "profiles: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_schedule_config(path)

    def test_non_mapping_document_raises(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigValidationError, match="mapping at the top level"):
            load_schedule_config(path)


class TestScheduleConfigValidation:
    def test_empty_document_uses_defaults(self) -> None:
        config = _validate_and_build({})
        assert isinstance(config, ScheduleConfig)
        assert config.defaults.interval_seconds == 300
        assert config.defaults.bin_count == 300
        assert config.profiles == {}

    def test_bins_exceeding_interval_rejected(self) -> None:
        raw = {"profiles": {"bad": {"interval_seconds": 60, "bin_count": 120}}}
        with pytest.raises(ConfigValidationError, match="cannot exceed"):
            _validate_and_build(raw)

    def test_non_integer_interval_rejected(self) -> None:
        raw = {"profiles": {"bad": {"interval_seconds": "five minutes"}}}
        with pytest.raises(ConfigValidationError, match="must be an integer"):
            _validate_and_build(raw)

    def test_zero_bin_count_rejected(self) -> None:
        raw = {"defaults": {"interval_seconds": 300, "bin_count": 0}}
        with pytest.raises(ConfigValidationError, match="must be positive"):
            _validate_and_build(raw)

    def test_profile_must_be_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be a mapping"):
            _validate_and_build({"profiles": {"bad": 300}})

    def test_max_cv_must_be_positive(self) -> None:
        with pytest.raises(ConfigValidationError, match="max_cv"):
            _validate_and_build({"distribution": {"max_cv": 0}})

    def test_max_cv_applies_to_every_profile(self) -> None:
        raw = {
            "defaults": {"interval_seconds": 300},
            "profiles": {"bp": {"interval_seconds": 900}},
            "distribution": {"max_cv": 0.4},
        }
        config = _validate_and_build(raw)
        assert config.max_cv == pytest.approx(0.4)
        assert config.defaults.max_cv == pytest.approx(0.4)
        assert config.profile("bp").max_cv == pytest.approx(0.4)
        assert TaskGenerator.from_profile(config.profile("bp")).get_config().max_cv == pytest.approx(0.4)

    def test_all_errors_reported_together(self) -> None:
        raw = {
            "profiles": {
                "a": {"interval_seconds": 0},
                "b": {"interval_seconds": 60, "bin_count": 61},
            },
            "distribution": {"max_cv": "tight"},
        }
        with pytest.raises(ConfigValidationError, match="3 validation error"):
            _validate_and_build(raw)


@pytest.mark.usefixtures("reset_schedule_config")
class TestReload:
    def test_reload_replaces_config(self, tmp_path: Path) -> None:
        original = get_schedule_config()
        path = write_yaml(tmp_path, 'version: "2.0"\n')
        reloaded = reload_schedule_config(path)
        assert reloaded.version == "2.0"
        assert get_schedule_config() is reloaded
        assert original is not reloaded

    def test_failed_reload_keeps_previous(self, tmp_path: Path) -> None:
        original = get_schedule_config()
        path = write_yaml(
            tmp_path, "profiles:\n  bad: {interval_seconds: 10, bin_count: 20}\n"
        )
        with pytest.raises(ConfigValidationError):
            reload_schedule_config(path)
        assert config_loader._config is original
