"""
Tests for configuration management.
"""

import logging
import sys
from pathlib import Path

import pytest
import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightdeck.config import Config, Settings, configure_logging


@pytest.fixture
def sample_config():
    """Custom configuration as a YAML document."""
    return yaml.safe_dump(
        {
            "pilot": {
                "id": "pilot-042",
                "display_name": "Anna Muster",
                "glider": "Ozone Rush 6",
            },
            "detection": {
                "takeoff_speed_ms": 3.0,
                "confirmation_seconds": 8,
            },
            "broadcast": {
                "enabled": True,
                "url": "https://observers.example.org/api",
            },
            "database": {"path": "data/flightdeck_anna.db"},
        }
    )


class TestConfig:
    """Tests for Config class."""

    def test_default_config(self):
        """Test loading default configuration."""
        for path in ("non_existent_config.yaml", None):
            config = Config(config_path=path)
            assert config.pilot_id == "local-pilot"
            assert config.db_path == "data/flightdeck.db"
            assert config.takeoff_speed == Settings.TAKEOFF_SPEED_MS
            assert config.auto_close_timeout == Settings.AUTO_CLOSE_TIMEOUT_SECONDS
            assert config.broadcast_url is None
            assert config.sites_path is None

    def test_custom_config(self, tmp_path, sample_config):
        """Test loading custom configuration from YAML file."""
        custom_config_path = tmp_path / "custom_config.yaml"
        custom_config_path.write_text(sample_config)
        config = Config(config_path=str(custom_config_path))

        assert config.pilot_id == "pilot-042"
        assert config.pilot_name == "Anna Muster"
        assert config.takeoff_speed == 3.0
        assert config.confirmation_seconds == 8.0
        assert config.db_path == "data/flightdeck_anna.db"
        assert config.broadcast_url == "https://observers.example.org/api"

    def test_missing_sections_get_defaults(self, tmp_path, sample_config):
        """Sections and keys absent from the file fall back to defaults."""
        custom_config_path = tmp_path / "custom_config.yaml"
        custom_config_path.write_text(sample_config)
        config = Config(config_path=str(custom_config_path))

        assert config.landing_speed == Settings.LANDING_SPEED_MS
        assert config.landing_descent == Settings.LANDING_DESCENT_MS
        assert config.get("airspace.max_altitude_m") == Settings.MAX_ALTITUDE_M
        assert config.get("logging.level") == "INFO"

    def test_save_config(self, tmp_path, sample_config):
        """Test saving configuration to YAML file."""
        custom_config_path = tmp_path / "custom_config.yaml"
        custom_config_path.write_text(sample_config)
        config = Config(config_path=str(custom_config_path))

        config.set("session.auto_close_timeout_seconds", 600)
        config.save_config()

        reloaded_config = Config(config_path=str(custom_config_path))
        assert reloaded_config.auto_close_timeout == 600.0

    def test_save_without_path(self):
        """Saving a default configuration has nowhere to go."""
        with pytest.raises(ValueError):
            Config().save_config()

    def test_malformed_config(self, tmp_path):
        """Test handling of malformed configuration file."""
        malformed_config_path = tmp_path / "malformed_config.yaml"
        malformed_config_path.write_text(
            """
pilot:
  id: pilot-042
database:
  path: data/x.db
detection:
  takeoff_speed_ms: fast
"""
        )
        config = Config(config_path=str(malformed_config_path))
        # Should fall back to default config
        assert config.pilot_id == "local-pilot"
        assert config.takeoff_speed == Settings.TAKEOFF_SPEED_MS

    def test_missing_pilot_id(self, tmp_path):
        """A file without a pilot id is rejected."""
        path = tmp_path / "no_pilot.yaml"
        path.write_text("database:\n  path: data/x.db\n")
        config = Config(config_path=str(path))
        assert config.db_path == "data/flightdeck.db"

    def test_unparsable_yaml(self, tmp_path):
        """Broken YAML falls back to defaults instead of raising."""
        path = tmp_path / "broken.yaml"
        path.write_text("pilot: [unclosed\n")
        config = Config(config_path=str(path))
        assert config.pilot_id == "local-pilot"

    def test_dot_notation(self):
        """Test get/set with dot notation."""
        config = Config()
        assert config.get("pilot.id") == "local-pilot"
        assert config.get("pilot.missing", "fallback") == "fallback"
        assert config.get("nope.nothing") is None

        config.set("new_section.value", 42)
        assert config.get("new_section.value") == 42

    def test_broadcast_disabled_hides_url(self):
        """A configured URL is ignored while broadcasting is disabled."""
        config = Config()
        config.set("broadcast.url", "https://observers.example.org/api")
        assert config.broadcast_url is None
        config.set("broadcast.enabled", True)
        assert config.broadcast_url == "https://observers.example.org/api"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_configure_logging_does_not_raise(self):
        """Logging setup accepts default, custom and unknown levels."""
        configure_logging()
        config = Config()
        config.set("logging.level", "debug")
        configure_logging(config)
        config.set("logging.level", "chatty")
        configure_logging(config)
        assert isinstance(logging.getLogger("flightdeck"), logging.Logger)
