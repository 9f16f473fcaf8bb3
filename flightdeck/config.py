"""
FlightDeck Configuration Management

This module provides configuration management for the FlightDeck flight
logging core. It includes physical constants, detection thresholds, and
runtime configuration loaded from YAML files.
"""

import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# =============================================================================
# Physical Constants
# =============================================================================


class Constants:
    """Physical constants representing real-world measurements."""

    EARTH_RADIUS_M: float = 6371000.0  # Mean Earth radius for distance calculations
    METERS_TO_FEET: float = 3.28084  # Altitude conversion factor
    FEET_TO_METERS: float = 0.3048  # Inverse altitude conversion
    FLIGHT_LEVEL_TO_METERS: float = 30.48  # One flight level = 100 ft
    MS_TO_KMH: float = 3.6  # Velocity conversion: m/s to km/h
    M_PER_DEGREE_LAT: float = 111320.0  # Distance per degree latitude at equator


# =============================================================================
# Detection & Tracking Settings
# =============================================================================


class Settings:
    """Thresholds for flight phase detection, site matching and broadcasting."""

    # --- Flight Phase Detection ---
    TAKEOFF_SPEED_MS: float = 2.0  # Single sample above this starts a flight
    LANDING_SPEED_MS: float = 1.0  # Horizontal speed below this may be a landing
    LANDING_DESCENT_MS: float = 2.0  # Vertical rate below this may be a landing
    LANDING_CONFIRMATION_SECONDS: float = 5.0  # Sustain window before landing

    # --- Site Resolution ---
    SITE_PROXIMITY_HORIZONTAL_M: float = 80.0  # Max horizontal distance to a site
    SITE_PROXIMITY_VERTICAL_M: float = 100.0  # Max altitude difference to a site

    # --- Live Position Broadcasting ---
    UPLOAD_MIN_INTERVAL_SECONDS: float = 12.0  # Upload at least this often
    UPLOAD_MIN_DISTANCE_M: float = 50.0  # Or whenever moved this far

    # --- Session ---
    AUTO_CLOSE_TIMEOUT_SECONDS: float = 300.0  # Stream silence before auto-close

    # --- Airspace ---
    MAX_ALTITUDE_M: float = 4000.0  # Altitude ceiling alert
    ALERT_COOLDOWN_SECONDS: float = 300.0  # Min gap between repeated ceiling alerts
    NEARBY_ZONE_RADIUS_M: float = 5000.0  # Radius for nearby airspace warnings
    ZONE_DEFAULT_LOWER_M: float = 0.0  # Lower limit when a zone omits one
    ZONE_DEFAULT_UPPER_M: float = 99999.0  # Upper limit when a zone omits one


# =============================================================================
# Runtime Configuration
# =============================================================================


class Config:
    """
    Runtime configuration manager for FlightDeck.

    Loads settings from YAML files or uses sensible defaults.
    Provides property-based access to common settings.

    Example:
        >>> config = Config('config.yaml')
        >>> print(f"Logging flights for {config.pilot_name}")
        >>> print(f"Auto-close after {config.auto_close_timeout:.0f} s")
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file. If None or missing,
                        uses default configuration.
        """
        self.config_path = config_path
        self._config: Dict[str, Any] = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from YAML file or return defaults.

        Returns:
            Configuration dictionary
        """
        if self.config_path is None or not os.path.exists(self.config_path):
            return self._get_default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config file %s: %s", self.config_path, e)
            return self._get_default_config()

        if not self._validate_config(config):
            logger.warning("Invalid config structure in %s, using defaults", self.config_path)
            return self._get_default_config()

        return self._merge_defaults(config)

    def _validate_config(self, config: Dict[str, Any]) -> bool:
        """
        Validate configuration structure and required fields.

        Args:
            config: Configuration dictionary to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            # Required: pilot section
            assert "pilot" in config
            assert "id" in config["pilot"]
            assert isinstance(config["pilot"]["id"], str)
            assert config["pilot"]["id"]

            # Required: database section
            assert "database" in config
            assert "path" in config["database"]
            assert isinstance(config["database"]["path"], str)

            # Optional numeric thresholds must be positive when present
            for section, key in (
                ("detection", "takeoff_speed_ms"),
                ("detection", "landing_speed_ms"),
                ("detection", "landing_descent_ms"),
                ("detection", "confirmation_seconds"),
                ("broadcast", "min_interval_seconds"),
                ("broadcast", "min_distance_m"),
                ("session", "auto_close_timeout_seconds"),
            ):
                if section in config and key in config[section]:
                    assert isinstance(config[section][key], (float, int))
                    assert config[section][key] > 0

            return True
        except (AssertionError, KeyError, TypeError):
            return False

    def _merge_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Fill sections missing from a loaded file with default values."""
        merged = self._get_default_config()
        for section, values in config.items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = values
        return merged

    def _get_default_config(self) -> Dict[str, Any]:
        """
        Get default configuration.

        Returns:
            Default configuration dictionary
        """
        return {
            "pilot": {
                "id": "local-pilot",
                "display_name": "Local Pilot",
                "license_number": None,
                "license_type": None,
                "glider": None,
            },
            "detection": {
                "takeoff_speed_ms": Settings.TAKEOFF_SPEED_MS,
                "landing_speed_ms": Settings.LANDING_SPEED_MS,
                "landing_descent_ms": Settings.LANDING_DESCENT_MS,
                "confirmation_seconds": Settings.LANDING_CONFIRMATION_SECONDS,
            },
            "sites": {
                "path": None,
                "language": None,
                "proximity_horizontal_m": Settings.SITE_PROXIMITY_HORIZONTAL_M,
                "proximity_vertical_m": Settings.SITE_PROXIMITY_VERTICAL_M,
            },
            "airspace": {
                "path": None,
                "max_altitude_m": Settings.MAX_ALTITUDE_M,
                "alert_cooldown_seconds": Settings.ALERT_COOLDOWN_SECONDS,
            },
            "broadcast": {
                "enabled": False,
                "url": None,
                "timeout_seconds": 10,
                "min_interval_seconds": Settings.UPLOAD_MIN_INTERVAL_SECONDS,
                "min_distance_m": Settings.UPLOAD_MIN_DISTANCE_M,
            },
            "session": {
                "auto_close_timeout_seconds": Settings.AUTO_CLOSE_TIMEOUT_SECONDS,
            },
            "database": {"path": "data/flightdeck.db"},
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        }

    def save_config(self) -> None:
        """
        Save current configuration to YAML file.

        Raises:
            ValueError: If config_path is not set
        """
        if self.config_path is None:
            raise ValueError("Cannot save config: no config_path specified")

        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                yaml.dump(self._config, f, default_flow_style=False)
        except OSError as e:
            logger.error("Error saving config: %s", e)
            raise

    # --- Property Accessors ---

    @property
    def pilot_id(self) -> str:
        """Get the pilot identity used to key live and stored records."""
        return str(self._config["pilot"]["id"])

    @property
    def pilot_name(self) -> str:
        """Get the pilot display name."""
        return self._config["pilot"].get("display_name") or self.pilot_id

    @property
    def takeoff_speed(self) -> float:
        """Get takeoff speed threshold in m/s."""
        return float(self.get("detection.takeoff_speed_ms", Settings.TAKEOFF_SPEED_MS))

    @property
    def landing_speed(self) -> float:
        """Get landing speed threshold in m/s."""
        return float(self.get("detection.landing_speed_ms", Settings.LANDING_SPEED_MS))

    @property
    def landing_descent(self) -> float:
        """Get landing descent-rate threshold in m/s."""
        return float(
            self.get("detection.landing_descent_ms", Settings.LANDING_DESCENT_MS)
        )

    @property
    def confirmation_seconds(self) -> float:
        """Get landing confirmation window in seconds."""
        return float(
            self.get(
                "detection.confirmation_seconds", Settings.LANDING_CONFIRMATION_SECONDS
            )
        )

    @property
    def auto_close_timeout(self) -> float:
        """Get inactivity timeout before an open flight is auto-closed."""
        return float(
            self.get(
                "session.auto_close_timeout_seconds",
                Settings.AUTO_CLOSE_TIMEOUT_SECONDS,
            )
        )

    @property
    def sites_path(self) -> Optional[str]:
        """Get path to the named-site reference file."""
        return self.get("sites.path")

    @property
    def airspace_path(self) -> Optional[str]:
        """Get path to the airspace GeoJSON file."""
        return self.get("airspace.path")

    @property
    def broadcast_url(self) -> Optional[str]:
        """Get base URL of the live-tracking observer store."""
        if not self.get("broadcast.enabled", False):
            return None
        return self.get("broadcast.url")

    @property
    def db_path(self) -> str:
        """Get database file path."""
        return self._config["database"]["path"]

    # --- Generic Accessors ---

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., 'detection.takeoff_speed_ms')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('broadcast.min_distance_m', 50)
            50.0
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., 'pilot.glider')
            value: Value to set

        Example:
            >>> config.set('session.auto_close_timeout_seconds', 600)
        """
        keys = key.split(".")
        config = self._config

        # Navigate to parent of target key
        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value


def configure_logging(config: Optional[Config] = None) -> None:
    """
    Configure the root logger from the ``logging`` config section.

    Args:
        config: Configuration object; defaults are used when None
    """
    config = config or Config()
    level_name = str(config.get("logging.level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format=config.get(
            "logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ),
    )
