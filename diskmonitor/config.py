"""Configuration management for diskmonitor."""

import copy
import logging
import os
from typing import Optional

import structlog
import yaml

# Configure initial logging with WARNING level
logging.basicConfig(level=logging.WARNING)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

CONFIG_ENV_VAR = "DISKMONITOR_CONFIG"

DEFAULT_CONFIG = {
    "prober": {
        "default_max_usage_percent": 90,  # Report mounts at or above 90% used
        "mounts": [],  # Empty means every physical partition
    },
    "heartbeat": {
        "slot_seconds": 30,  # Align wakeups to 30 second boundaries
    },
    "boot": {
        "assume_completed": True,  # No boot signal source on plain hosts
    },
    "notifications": [],  # Empty by default, user must configure
    "logging": {
        "level": "warning",
        "file": "stdout",  # Default to stdout for container compatibility
    },
}

DEFAULT_CONFIG_LOCATIONS = [
    "/etc/diskmonitor/config.yaml",
    "~/.config/diskmonitor/config.yaml",
    "./config.yaml",
]


def find_config_file() -> Optional[str]:
    """Locate a configuration file from the environment or default locations."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return os.path.expanduser(env_path)

    for path in DEFAULT_CONFIG_LOCATIONS:
        expanded_path = os.path.expanduser(path)
        if os.path.exists(expanded_path):
            return expanded_path
    return None


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path or find_config_file()
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            self.load_config()

    def load_config(self):
        """Load configuration from file."""
        try:
            if not self.config_path:
                return self.config

            with open(self.config_path, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f)

            if file_config:
                self._merge_config(self.config, file_config)

            log_level = self.config.get("logging", {}).get("level", "warning").upper()
            logging.getLogger().setLevel(getattr(logging, log_level, logging.WARNING))

            logger.debug("Configuration loaded", config=self.config)
            return self.config

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            return None

    def _merge_config(self, base: dict, override: dict) -> None:
        """Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def validate_config(self) -> bool:
        """Validate the current configuration.

        Returns:
            True if configuration is valid, False otherwise
        """
        try:
            prober = self.config.get("prober", {})
            if not isinstance(prober, dict):
                logger.error("Prober configuration must be a dictionary")
                return False

            if not _valid_percent(prober.get("default_max_usage_percent")):
                logger.error("Invalid default_max_usage_percent in prober")
                return False

            mounts = prober.get("mounts") or []
            if not isinstance(mounts, list):
                logger.error("Prober mounts must be a list")
                return False

            for mount in mounts:
                if not isinstance(mount, dict) or not mount.get("path"):
                    logger.error(f"Invalid mount configuration: {mount}")
                    return False
                if "max_usage_percent" in mount and not _valid_percent(
                    mount["max_usage_percent"]
                ):
                    logger.error(f"Invalid max_usage_percent for mount: {mount['path']}")
                    return False

            slot_seconds = self.config.get("heartbeat", {}).get("slot_seconds", 0)
            if not isinstance(slot_seconds, int) or slot_seconds < 0:
                logger.error("heartbeat.slot_seconds must be a non-negative integer")
                return False

            notifications = self.config.get("notifications", [])
            if not isinstance(notifications, list):
                logger.error("Notifications must be a list")
                return False

            logging_config = self.config.get("logging", {})
            if not isinstance(logging_config, dict):
                logger.error("Logging configuration must be a dictionary")
                return False

            return True

        except Exception as e:
            logger.error("Configuration validation failed", error=str(e))
            return False

    def get_config(self) -> dict:
        """Get the current configuration.

        Returns:
            The current configuration dictionary
        """
        return self.config


def _valid_percent(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 100
