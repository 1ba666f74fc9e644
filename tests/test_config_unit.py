"""
Unit tests for config module
Tests configuration management
"""
import os
from unittest.mock import patch

import pytest

from config import get_settings, load_settings


@pytest.mark.unit
class TestConfig:
    """Test configuration management"""

    def test_defaults(self):
        """Test defaults when nothing is set"""
        settings = load_settings()

        assert settings.default_placeholder is None
        assert settings.default_region == "us-east-1"
        assert settings.strict_contracts is True
        assert settings.log_level == "INFO"
        assert settings.cors_origins == ["*"]

    @patch.dict(os.environ, {"STACKFORGE_PLACEHOLDER": "pending", "STACKFORGE_DEFAULT_REGION": "eu-west-1"})
    def test_placeholder_and_region(self):
        settings = load_settings()

        assert settings.default_placeholder == "pending"
        assert settings.default_region == "eu-west-1"

    @pytest.mark.parametrize("raw,expected", [("false", False), ("0", False), ("TRUE", True), ("yes", True)])
    def test_strict_contracts_flag(self, raw, expected):
        with patch.dict(os.environ, {"STACKFORGE_STRICT_CONTRACTS": raw}):
            assert load_settings().strict_contracts is expected

    @patch.dict(os.environ, {"STACKFORGE_LOG_LEVEL": "debug", "STACKFORGE_CORS_ORIGINS": "http://a,http://b"})
    def test_log_level_and_cors(self):
        settings = load_settings()

        assert settings.log_level == "DEBUG"
        assert settings.cors_origins == ["http://a", "http://b"]

    def test_settings_cached(self):
        """Test settings are read once"""
        assert get_settings() is get_settings()

    def test_engine_uses_configured_placeholder(self, monkeypatch, deferred_pair_graph):
        from applier import SimulatedApplier
        from deployment_engine import DeploymentEngine

        monkeypatch.setenv("STACKFORGE_PLACEHOLDER", "configured")
        get_settings.cache_clear()

        engine = DeploymentEngine(deferred_pair_graph, SimulatedApplier())
        assert engine.default_placeholder == "configured"
