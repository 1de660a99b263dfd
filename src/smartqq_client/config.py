"""Configuration and customization for SmartQQ Client."""

import os
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict
import json

from .logging import LogLevel

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/55.0.2883.87 Safari/537.36"
)


@dataclass
class ClientConfig:
    """SmartQQ Client configuration."""

    # HTTP
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout_seconds: float = 30
    qr_code_timeout_seconds: float = 10
    https_chat_message: bool = False  # Use HTTPS for poll and send endpoints

    # Login
    qr_check_interval_seconds: float = 1.0

    # Polling
    poll_timeout_seconds: float = 180  # Server holds poll2 open for a long time
    poll_error_delay_seconds: float = 0.0

    # Sending
    send_retry_times: int = 5
    send_retry_backoff_seconds: float = 0.0  # 0 retries immediately

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        data = asdict(self)
        data["log_level"] = self.log_level.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """Create config from dictionary."""
        data = dict(data)
        if "log_level" in data:
            data["log_level"] = LogLevel(data["log_level"])

        return cls(**data)


class ConfigManager:
    """Manage client configuration."""

    _instance: Optional["ConfigManager"] = None
    _config: ClientConfig

    def __new__(cls) -> "ConfigManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize config manager."""
        if self._initialized:
            return

        self._initialized = True
        self._config = ClientConfig()
        self._config_file: Optional[Path] = None

    def load_config(self, config_file: str) -> None:
        """
        Load configuration from JSON file.

        Args:
            config_file: Path to config JSON file
        """
        config_path = Path(config_file).expanduser()

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(config_path, "r") as f:
            data = json.load(f)

        self._config = ClientConfig.from_dict(data)
        self._config_file = config_path

    def save_config(self, config_file: Optional[str] = None) -> None:
        """
        Save configuration to JSON file.

        Args:
            config_file: Path to save config (uses loaded path if not provided)
        """
        if config_file:
            self._config_file = Path(config_file).expanduser()
        elif not self._config_file:
            raise ValueError("No config file path specified")

        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self._config_file, "w") as f:
            json.dump(self._config.to_dict(), f, indent=2)

    def load_config_from_env(self) -> None:
        """Load configuration from environment variables."""
        if "SMARTQQ_USER_AGENT" in os.environ:
            self._config.user_agent = os.environ["SMARTQQ_USER_AGENT"]

        if "SMARTQQ_REQUEST_TIMEOUT" in os.environ:
            self._config.request_timeout_seconds = float(os.environ["SMARTQQ_REQUEST_TIMEOUT"])

        if "SMARTQQ_POLL_TIMEOUT" in os.environ:
            self._config.poll_timeout_seconds = float(os.environ["SMARTQQ_POLL_TIMEOUT"])

        if "SMARTQQ_HTTPS_CHAT_MESSAGE" in os.environ:
            self._config.https_chat_message = (
                os.environ["SMARTQQ_HTTPS_CHAT_MESSAGE"].lower() == "true"
            )

        if "SMARTQQ_SEND_RETRY_TIMES" in os.environ:
            self._config.send_retry_times = int(os.environ["SMARTQQ_SEND_RETRY_TIMES"])

        # Logging
        if "SMARTQQ_LOG_LEVEL" in os.environ:
            self._config.log_level = LogLevel(os.environ["SMARTQQ_LOG_LEVEL"])

        if "SMARTQQ_LOG_FILE" in os.environ:
            self._config.log_file = os.environ["SMARTQQ_LOG_FILE"]

    def get_config(self) -> ClientConfig:
        """Get current configuration."""
        return self._config

    def update_config(self, **kwargs: Any) -> None:
        """
        Update specific configuration values.

        Args:
            **kwargs: Configuration keys and values to update
        """
        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)
            else:
                raise ValueError(f"Unknown configuration key: {key}")

    def get_value(self, key: str) -> Any:
        """
        Get a configuration value.

        Raises:
            KeyError: If key not found
        """
        if not hasattr(self._config, key):
            raise KeyError(f"Unknown configuration key: {key}")
        return getattr(self._config, key)

    def set_value(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Raises:
            KeyError: If key not found
        """
        if not hasattr(self._config, key):
            raise KeyError(f"Unknown configuration key: {key}")
        setattr(self._config, key, value)

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self._config = ClientConfig()


# Global config manager instance
_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get global config manager instance."""
    return _config_manager


def get_config() -> ClientConfig:
    """Get current client configuration."""
    return _config_manager.get_config()


def load_config(config_file: str) -> None:
    """Load configuration from file."""
    _config_manager.load_config(config_file)


def save_config(config_file: Optional[str] = None) -> None:
    """Save configuration to file."""
    _config_manager.save_config(config_file)


def load_config_from_env() -> None:
    """Load configuration from environment variables."""
    _config_manager.load_config_from_env()


def update_config(**kwargs: Any) -> None:
    """Update configuration values."""
    _config_manager.update_config(**kwargs)


def get_config_value(key: str) -> Any:
    """Get a configuration value."""
    return _config_manager.get_value(key)


def set_config_value(key: str, value: Any) -> None:
    """Set a configuration value."""
    _config_manager.set_value(key, value)
