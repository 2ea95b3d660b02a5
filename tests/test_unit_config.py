"""
Unit tests for engine settings.

Tests cover:
- Defaults
- RULELANG_ environment overrides
- Value validation (log level, app env, firing cap, mode aliases)
- Production enforcement of the firing cap
"""

import pytest
from pydantic import ValidationError

from rulelang.core.config import AppEnvironment, Settings
from rulelang.domain.enums import EvaluationMode


class TestSettingsDefaults:
    """Tests for default values."""

    def test_defaults(self, monkeypatch):
        for name in ("RULELANG_MAX_RULE_FIRINGS", "RULELANG_DEFAULT_MODE", "RULELANG_APP_ENV"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_env == AppEnvironment.LOCAL
        assert settings.max_rule_firings == 1000
        assert settings.default_mode == EvaluationMode.ALL_MATCHES
        assert settings.metrics_enabled is True


class TestSettingsEnvironment:
    """Tests for environment overrides."""

    def test_prefixed_env_vars(self, monkeypatch):
        """Test that RULELANG_-prefixed variables are read."""
        monkeypatch.setenv("RULELANG_MAX_RULE_FIRINGS", "50")
        monkeypatch.setenv("RULELANG_DEFAULT_MODE", "first")
        monkeypatch.setenv("RULELANG_LOG_LEVEL", "debug")
        settings = Settings(_env_file=None)
        assert settings.max_rule_firings == 50
        assert settings.default_mode == EvaluationMode.FIRST_MATCH
        assert settings.log_level == "DEBUG"

    def test_app_env_case_insensitive(self):
        assert Settings(app_env="PROD").app_env == AppEnvironment.PROD


class TestSettingsValidation:
    """Tests for rejected values."""

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_invalid_app_env(self):
        with pytest.raises(ValidationError):
            Settings(app_env="staging")

    def test_firing_cap_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(max_rule_firings=0)

    def test_production_caps_firings(self):
        """Test that production refuses a cap above 1000."""
        with pytest.raises(ValidationError):
            Settings(app_env="prod", max_rule_firings=5000)

    def test_non_production_allows_higher_cap(self):
        assert Settings(app_env="test", max_rule_firings=5000).max_rule_firings == 5000
