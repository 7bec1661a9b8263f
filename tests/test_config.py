"""
Tests for configuration and duration parsing.
"""

import pytest

from probe_exporter.config import ExporterConfig, parse_duration, split_listen_address
from probe_exporter.errors import ConfigurationError


class TestParseDuration:
    """Test Go style duration strings."""

    @pytest.mark.parametrize("text,expected", [
        ("30s", 30.0),
        ("1m", 60.0),
        ("1m30s", 90.0),
        ("500ms", 0.5),
        ("1h", 3600.0),
        ("1.5s", 1.5),
        ("0", 0.0),
    ])
    def test_valid(self, text, expected):
        """Test valid durations."""
        assert parse_duration(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "abc", "10x", "s", "1m foo", "inf", "nan", "-", "45", "1.5"])
    def test_invalid(self, text):
        """Test invalid durations."""
        with pytest.raises(ValueError):
            parse_duration(text)


class TestExporterConfig:
    """Test config validation and timeout resolution."""

    def test_defaults_are_valid(self):
        """Test the default configuration."""
        config = ExporterConfig().validate()

        assert config.request_timeout == 59.0
        assert config.gc_max_age > config.max_request_timeout

    def test_config_is_immutable(self):
        """Test that the configuration is frozen."""
        config = ExporterConfig()

        with pytest.raises(Exception):
            config.request_timeout = 1

    def test_gc_max_age_must_exceed_max_timeout(self):
        """Test the max age check."""
        with pytest.raises(ConfigurationError, match="must exceed"):
            ExporterConfig(max_request_timeout=300, gc_max_age=300).validate()

    def test_max_timeout_below_default(self):
        """Test a maximum timeout below the default."""
        with pytest.raises(ConfigurationError, match="lower than"):
            ExporterConfig(request_timeout=60, max_request_timeout=30).validate()

    def test_invalid_listen_address(self):
        """Test an invalid listen address."""
        with pytest.raises(ConfigurationError, match="Invalid listen address"):
            ExporterConfig(listen_address="localhost").validate()

    def test_with_overrides(self):
        """Test copies with changed settings."""
        config = ExporterConfig().with_overrides(user="ec2-user")

        assert config.user == "ec2-user"

    def test_resolve_timeout_override(self, config):
        """Test a valid timeout override."""
        assert config.resolve_timeout("2s") == 2.0

    @pytest.mark.parametrize("override", [None, "", "soon", "-5s", "0s", "0", "30"])
    def test_resolve_timeout_falls_back_to_default(self, config, override):
        """Test overrides that fall back to the default."""
        assert config.resolve_timeout(override) == config.request_timeout

    def test_resolve_timeout_clamped(self, config):
        """Test overrides above the maximum."""
        assert config.resolve_timeout("1h") == config.max_request_timeout


def test_split_listen_address():
    """Test splitting host and port."""
    assert split_listen_address("127.0.0.1:9539") == ("127.0.0.1", 9539)
    assert split_listen_address(":8080") == ("0.0.0.0", 8080)
